"""User entity module.

- User / UserClaim: domain entities
- UserTable, RoleTable, UserRoleTable, UserClaimTable: persistence models
"""

from .entity import User, UserClaim
from .table import RoleTable, UserClaimTable, UserRoleTable, UserTable

__all__ = [
    "User",
    "UserClaim",
    "UserTable",
    "RoleTable",
    "UserRoleTable",
    "UserClaimTable",
]
