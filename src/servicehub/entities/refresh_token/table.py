"""RefreshToken database table model."""

from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from servicehub.entities._base import utcnow


class RefreshTokenTable(SQLModel, table=True):
    """Database persistence model for refresh tokens.

    ``user_id`` is unique: a user holds at most one active refresh token and
    saving a new one replaces the previous row.
    """

    __tablename__ = "user_refresh_tokens"

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(unique=True, index=True)
    token_hash: str = Field(unique=True, index=True, max_length=64)
    expires_at: datetime = Field(sa_type=sa.DateTime(timezone=True))
    created_at: datetime = Field(
        default_factory=utcnow, sa_type=sa.DateTime(timezone=True)
    )
