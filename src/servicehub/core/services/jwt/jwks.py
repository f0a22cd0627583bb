"""Google OpenID signing keys with background refresh.

Validations read the current :class:`SigningKeySnapshot` without locking.
Refreshes build a complete new snapshot and swap the reference, so a reader
never observes a half-written key set.
"""

import asyncio
import contextlib
import time
from dataclasses import dataclass, field
from typing import Any

import httpx
from authlib.jose import JoseError, JsonWebKey, KeySet
from loguru import logger

from servicehub.core.errors import UpstreamServiceError
from servicehub.runtime.config.config_data import GoogleConfig


@dataclass(frozen=True)
class SigningKeySnapshot:
    """Immutable view of Google's discovery document and key set at one point in time."""

    issuer: str | None
    jwks_uri: str
    jwks: dict[str, Any]
    key_set: KeySet = field(repr=False)
    fetched_at: float

    @property
    def kids(self) -> frozenset[str]:
        return frozenset(k["kid"] for k in self.jwks.get("keys", []) if k.get("kid"))


class GoogleSigningKeyProvider:
    def __init__(
        self,
        google_config: GoogleConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = google_config
        self._transport = transport
        self._snapshot: SigningKeySnapshot | None = None
        self._lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None
        self._last_forced_refresh: float | None = None

    @property
    def refresh_interval_seconds(self) -> float:
        return self._config.key_refresh_interval_hours * 3600

    @property
    def retry_interval_seconds(self) -> float:
        return self._config.key_retry_interval_minutes * 60

    def get_snapshot(self) -> SigningKeySnapshot | None:
        return self._snapshot

    async def refresh(self) -> SigningKeySnapshot:
        """Fetch a fresh snapshot and swap it in.

        Raises:
            UpstreamServiceError: If Google cannot be reached or answers with
                an unusable document. The previous snapshot stays in place.
        """
        async with self._lock:
            snapshot = await self._fetch_snapshot()
            self._snapshot = snapshot

        logger.info(
            f"Loaded {len(snapshot.kids)} Google signing keys from {snapshot.jwks_uri}"
        )
        return snapshot

    async def get_key_set(self, kid: str | None = None) -> KeySet:
        """Return the key set to verify a token signed with ``kid``.

        The first call loads the keys. An unknown ``kid`` triggers at most one
        forced refresh per retry interval so rotated keys are picked up
        without letting bogus tokens hammer Google.
        """
        snapshot = self._snapshot
        if snapshot is None:
            snapshot = await self._load_initial()

        if kid and kid not in snapshot.kids and self._may_force_refresh():
            logger.info(f"Unknown signing key id {kid}, refreshing Google keys")
            self._last_forced_refresh = time.monotonic()
            try:
                snapshot = await self.refresh()
            except UpstreamServiceError as exc:
                logger.warning(f"Forced signing key refresh failed: {exc}")

        return snapshot.key_set

    def start(self) -> None:
        """Launch the background refresh loop on the running event loop."""
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(
            self._refresh_loop(), name="google-signing-key-refresh"
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _refresh_loop(self) -> None:
        while True:
            try:
                await self.refresh()
                delay = self.refresh_interval_seconds
            except UpstreamServiceError as exc:
                delay = self.retry_interval_seconds
                logger.warning(
                    f"Google signing key refresh failed, retrying in {delay:.0f}s: {exc}"
                )
            except Exception:
                delay = self.retry_interval_seconds
                logger.exception(
                    f"Unexpected error refreshing Google signing keys, retrying in {delay:.0f}s"
                )
            await asyncio.sleep(delay)

    async def _load_initial(self) -> SigningKeySnapshot:
        async with self._lock:
            if self._snapshot is None:
                self._snapshot = await self._fetch_snapshot()
            return self._snapshot

    def _may_force_refresh(self) -> bool:
        if self._last_forced_refresh is None:
            return True
        elapsed = time.monotonic() - self._last_forced_refresh
        return elapsed >= self.retry_interval_seconds

    async def _fetch_snapshot(self) -> SigningKeySnapshot:
        try:
            async with httpx.AsyncClient(
                timeout=self._config.http_timeout, transport=self._transport
            ) as client:
                response = await client.get(self._config.discovery_url)
                response.raise_for_status()
                discovery = response.json()

                jwks_uri = (
                    discovery.get("jwks_uri") if isinstance(discovery, dict) else None
                )
                if not jwks_uri:
                    raise UpstreamServiceError("Discovery document has no jwks_uri")

                response = await client.get(jwks_uri)
                response.raise_for_status()
                jwks = response.json()
        except httpx.HTTPStatusError as exc:
            raise UpstreamServiceError(
                f"Google key endpoint returned {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise UpstreamServiceError(f"Failed to fetch Google keys: {exc}") from exc

        keys = jwks.get("keys") if isinstance(jwks, dict) else None
        if not isinstance(keys, list) or not keys:
            raise UpstreamServiceError("Google JWK set contains no keys")

        try:
            key_set = JsonWebKey.import_key_set({"keys": keys})
        except (JoseError, ValueError) as exc:
            raise UpstreamServiceError(f"Unusable Google JWK set: {exc}") from exc

        return SigningKeySnapshot(
            issuer=discovery.get("issuer"),
            jwks_uri=jwks_uri,
            jwks={"keys": keys},
            key_set=key_set,
            fetched_at=time.time(),
        )
