"""Security utilities for the authentication flows."""

import asyncio
import base64
import hashlib
import secrets
import uuid

REFRESH_TOKEN_BYTES = 64


def generate_secure_token(length: int = 32) -> str:
    """Generate a cryptographically secure random token.

    Args:
        length: Number of random bytes to generate (default 32)

    Returns:
        URL-safe base64 encoded token without padding
    """
    return (
        base64.urlsafe_b64encode(secrets.token_bytes(length))
        .decode("utf-8")
        .rstrip("=")
    )


def generate_refresh_token() -> str:
    """Opaque refresh token carrying 512 bits of entropy."""
    return generate_secure_token(REFRESH_TOKEN_BYTES)


def hash_token(token: str) -> str:
    """SHA-256 hex digest used to store and look up opaque tokens."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def new_correlation_id() -> str:
    return uuid.uuid4().hex


def failure_delay_seconds(min_ms: int = 100, max_ms: int = 300) -> float:
    """Pick a delay in ``[min_ms, max_ms)`` milliseconds.

    Drawn from the OS CSPRNG, so concurrent callers share no seeded state.
    """
    if max_ms <= min_ms:
        return min_ms / 1000
    return (min_ms + secrets.randbelow(max_ms - min_ms)) / 1000


async def sleep_failure_delay(min_ms: int = 100, max_ms: int = 300) -> float:
    """Await a randomized delay so failure latency does not reveal the branch taken."""
    delay = failure_delay_seconds(min_ms, max_ms)
    await asyncio.sleep(delay)
    return delay
