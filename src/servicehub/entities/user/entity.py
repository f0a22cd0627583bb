"""User domain entity."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from servicehub.entities._base import Entity


class User(Entity):
    """User identity as seen by the authentication core.

    The identifier is assigned once at creation and never changes; email is
    unique across all users.
    """

    username: str = Field(description="Unique login name")
    email: str = Field(description="Unique email address")
    email_confirmed: bool = Field(
        default=False, description="Whether the email address has been verified"
    )

    def __eq__(self, other: Any) -> bool:
        """Compare users by identity attributes, ignoring timestamps."""
        if not isinstance(other, User):
            return False

        return (
            self.id == other.id
            and self.username == other.username
            and self.email == other.email
            and self.email_confirmed == other.email_confirmed
        )

    def __hash__(self) -> int:
        return hash((self.id, self.username, self.email, self.email_confirmed))


class UserClaim(BaseModel):
    """A named string attribute attached to a user."""

    model_config = ConfigDict(frozen=True)

    claim_type: str
    claim_value: str
