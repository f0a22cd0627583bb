"""Tests for security utilities."""

from unittest.mock import AsyncMock, patch

from servicehub.core.security import (
    failure_delay_seconds,
    generate_refresh_token,
    generate_secure_token,
    hash_token,
    new_correlation_id,
    sleep_failure_delay,
)


class TestTokenGeneration:
    def test_generate_secure_token_is_url_safe(self):
        token = generate_secure_token()

        assert token
        assert "=" not in token
        assert "+" not in token
        assert "/" not in token

    def test_refresh_token_carries_64_random_bytes(self):
        token = generate_refresh_token()

        # 64 bytes -> 86 unpadded base64url characters
        assert len(token) == 86

    def test_refresh_tokens_are_unique(self):
        tokens = {generate_refresh_token() for _ in range(200)}
        assert len(tokens) == 200

    def test_correlation_ids_are_unique_hex(self):
        first, second = new_correlation_id(), new_correlation_id()

        assert first != second
        int(first, 16)


class TestHashToken:
    def test_hash_is_stable_sha256_hex(self):
        digest = hash_token("abc")

        assert digest == (
            "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
        )
        assert hash_token("abc") == digest

    def test_different_tokens_hash_differently(self):
        assert hash_token("token-a") != hash_token("token-b")


class TestFailureDelay:
    def test_delay_stays_within_default_window(self):
        delays = [failure_delay_seconds() for _ in range(500)]

        assert all(0.1 <= d < 0.3 for d in delays)
        assert len(set(delays)) > 1

    def test_custom_window(self):
        delays = [failure_delay_seconds(10, 12) for _ in range(100)]
        assert set(delays) <= {0.01, 0.011}

    def test_degenerate_window_returns_lower_bound(self):
        assert failure_delay_seconds(50, 50) == 0.05

    async def test_sleep_failure_delay_awaits_the_chosen_delay(self):
        with patch(
            "servicehub.core.security.asyncio.sleep", new_callable=AsyncMock
        ) as sleep:
            delay = await sleep_failure_delay(100, 300)

        sleep.assert_awaited_once_with(delay)
        assert 0.1 <= delay < 0.3
