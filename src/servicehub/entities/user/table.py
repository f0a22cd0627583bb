"""User, role and claim database table models."""

from sqlmodel import Field, SQLModel

from servicehub.entities._base import EntityTable


class UserTable(EntityTable, table=True):
    """Database persistence model for users.

    Normalized (upper-cased) username and email columns carry the uniqueness
    constraints so lookups are case-insensitive.
    """

    __tablename__ = "users"

    username: str
    normalized_username: str = Field(unique=True, index=True)
    email: str
    normalized_email: str = Field(unique=True, index=True)
    email_confirmed: bool = False
    password_hash: str | None = None


class RoleTable(SQLModel, table=True):
    """Named role that users can be assigned to."""

    __tablename__ = "roles"

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True)


class UserRoleTable(SQLModel, table=True):
    """Link table between users and roles."""

    __tablename__ = "user_roles"

    user_id: str = Field(foreign_key="users.id", primary_key=True, ondelete="CASCADE")
    role_id: int = Field(foreign_key="roles.id", primary_key=True, ondelete="CASCADE")


class UserClaimTable(SQLModel, table=True):
    """Arbitrary string-keyed claim attached to a user."""

    __tablename__ = "user_claims"

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True, ondelete="CASCADE")
    claim_type: str = Field(index=True)
    claim_value: str
