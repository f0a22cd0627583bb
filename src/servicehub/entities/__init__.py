"""Entities organized by business concept.

Each entity package colocates the domain model (entity.py) with its
persistence model (table.py).
"""

from .refresh_token import RefreshToken, RefreshTokenTable
from .user import (
    RoleTable,
    User,
    UserClaim,
    UserClaimTable,
    UserRoleTable,
    UserTable,
)

__all__ = [
    "User",
    "UserClaim",
    "UserTable",
    "RoleTable",
    "UserRoleTable",
    "UserClaimTable",
    "RefreshToken",
    "RefreshTokenTable",
]
