"""Request/response contracts and value objects for the authentication flows."""

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base for HTTP contracts: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(ApiModel):
    user_name: str | None = Field(default=None, description="Unique username")
    email: str | None = Field(default=None, description="Unique email address")
    password: str | None = Field(default=None, description="Account password")


class LoginRequest(ApiModel):
    email: str | None = None
    password: str | None = None


class GoogleAuthCodeRequest(ApiModel):
    code: str | None = Field(
        default=None, description="Authorization code from Google's popup flow"
    )


class RefreshTokenRequest(ApiModel):
    refresh_token: str | None = None


class AuthResponse(ApiModel):
    """Returned after a successful register, login, Google callback or refresh."""

    token: str = Field(description="Bearer access token")
    refresh_token: str = Field(description="Single-use refresh token")
    username: str
    email: str
    roles: list[str] = Field(default_factory=list)


class MeResponse(ApiModel):
    user_id: str
    email: str
    username: str
    roles: list[str]
    display_name: str | None = None
    picture: str | None = None


class GoogleTokenResponse(BaseModel):
    """Google token endpoint response."""

    id_token: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    expires_in: int = 0
    token_type: str | None = None
    scope: str | None = None


class GoogleProfile(BaseModel):
    """Federated profile extracted from a validated Google ID token."""

    model_config = ConfigDict(frozen=True)

    subject: str
    email: str
    email_verified: bool = False
    name: str
    picture: str | None = None


class AccessTokenClaims(BaseModel):
    """Verified claims of an access token issued by this service."""

    subject: str
    email: str
    username: str
    roles: list[str] = Field(default_factory=list)
    jti: str
    issuer: str
    audience: str | list[str]
    expires_at: int
    display_name: str | None = None
    picture: str | None = None


class AuthFailure(str, Enum):
    """Why an operation failed, at the granularity the caller may see."""

    INVALID_INPUT = "invalid_input"
    UNAUTHORIZED = "unauthorized"
    INTERNAL = "internal"


@dataclass(frozen=True)
class AuthResult:
    """Uniform outcome of every orchestrator operation."""

    response: AuthResponse | None
    succeeded: bool
    failure: AuthFailure | None = None

    @classmethod
    def ok(cls, response: AuthResponse) -> "AuthResult":
        return cls(response=response, succeeded=True)

    @classmethod
    def failed(cls, failure: AuthFailure = AuthFailure.UNAUTHORIZED) -> "AuthResult":
        return cls(response=None, succeeded=False, failure=failure)
