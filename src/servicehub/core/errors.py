"""Error taxonomy shared by the authentication core.

Components raise these; the auth orchestrator turns them into ``AuthResult``
values so nothing crosses its boundary as an exception.
"""


class ServiceHubError(Exception):
    """Base class for errors raised by this package."""


class ConfigurationError(ServiceHubError):
    """Required configuration is missing or invalid. Fatal at startup."""


class InvalidInputError(ServiceHubError):
    """The caller supplied blank or malformed input."""


class AuthenticationError(ServiceHubError):
    """Credentials or tokens were rejected.

    The message is for internal logs only; callers see a generic unauthorized.
    """


class IdTokenValidationError(AuthenticationError):
    """A Google ID token failed signature, issuer, audience, expiry or claim checks."""


class UpstreamServiceError(ServiceHubError):
    """Google was unreachable or answered with an error or unusable payload."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PersistenceError(ServiceHubError):
    """The identity store or refresh token storage failed."""
