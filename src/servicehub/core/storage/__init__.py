"""Refresh token storage backends."""

from .refresh_token_store import (
    InMemoryRefreshTokenStore,
    RefreshTokenStore,
    SqlRefreshTokenStore,
)

__all__ = ["RefreshTokenStore", "SqlRefreshTokenStore", "InMemoryRefreshTokenStore"]
