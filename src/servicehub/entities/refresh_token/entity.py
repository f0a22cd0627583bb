"""Entity: RefreshToken."""

from datetime import datetime

from pydantic import BaseModel, Field

from servicehub.entities._base import as_utc, utcnow


class RefreshToken(BaseModel):
    """Stored refresh token for a user.

    Only the SHA-256 digest of the opaque token is kept; the raw value is
    handed to the client once and never stored or logged.
    """

    id: int = Field(description="Record identifier")
    user_id: str = Field(description="Owning user identifier")
    token_hash: str = Field(description="SHA-256 digest of the opaque token")
    expires_at: datetime = Field(description="Absolute expiry (UTC)")
    created_at: datetime = Field(description="Creation timestamp (UTC)")

    def is_expired(self, now: datetime | None = None) -> bool:
        return as_utc(self.expires_at) < (now or utcnow())
