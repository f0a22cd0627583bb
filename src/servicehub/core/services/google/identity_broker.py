"""Google sign-in: code exchange, ID token validation and local account linking."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

import httpx
from authlib.jose import JoseError, JsonWebToken
from loguru import logger

from servicehub.core.errors import (
    AuthenticationError,
    IdTokenValidationError,
    InvalidInputError,
    PersistenceError,
    UpstreamServiceError,
)
from servicehub.core.models.auth import GoogleProfile, GoogleTokenResponse
from servicehub.core.services.jwt.jwks import GoogleSigningKeyProvider
from servicehub.core.services.jwt.jwt_utils import parse_bool_claim, preview_jwt
from servicehub.core.services.user.identity_store import IdentityStore
from servicehub.entities.user import User, UserClaim
from servicehub.runtime.config.config_data import GoogleConfig

ID_TOKEN_ALGORITHM = "RS256"
GOOGLE_CLAIM_TYPES = ("google_id", "google_picture", "google_name")

_id_token_jwt = JsonWebToken([ID_TOKEN_ALGORITHM])


@dataclass(frozen=True)
class ClaimDiff:
    to_remove: tuple[UserClaim, ...] = ()
    to_add: tuple[UserClaim, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.to_remove or self.to_add)


def google_claims(profile: GoogleProfile) -> dict[str, str]:
    """Claims mirrored from the Google profile onto the local user."""
    return {
        "google_id": profile.subject or "",
        "google_picture": profile.picture or "",
        "google_name": profile.name or "",
    }


def diff_claims(existing: Iterable[UserClaim], desired: Mapping[str, str]) -> ClaimDiff:
    """Compute the writes that turn ``existing`` into ``desired`` for the desired keys.

    Claim types outside ``desired`` are left alone. A key whose current value
    already matches produces no writes; stale duplicates of a key are removed.
    """
    existing = list(existing)
    to_remove: list[UserClaim] = []
    to_add: list[UserClaim] = []

    for claim_type, value in desired.items():
        current = [c for c in existing if c.claim_type == claim_type]
        if any(c.claim_value == value for c in current):
            to_remove.extend(c for c in current if c.claim_value != value)
        else:
            to_remove.extend(current)
            to_add.append(UserClaim(claim_type=claim_type, claim_value=value))

    return ClaimDiff(to_remove=tuple(to_remove), to_add=tuple(to_add))


class GoogleIdentityBroker:
    def __init__(
        self,
        google_config: GoogleConfig,
        key_provider: GoogleSigningKeyProvider,
        identity_store: IdentityStore,
        default_role: str = "Customer",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = google_config
        self._keys = key_provider
        self._identity_store = identity_store
        self._default_role = default_role
        self._transport = transport

    async def exchange_code(self, code: str | None) -> GoogleTokenResponse:
        """Exchange an authorization code from the browser popup flow for Google tokens.

        Raises:
            InvalidInputError: If ``code`` is blank. No request is made.
            UpstreamServiceError: If Google is unreachable, answers non-2xx, or
                returns a body that is not a token response.
        """
        if not code or not code.strip():
            raise InvalidInputError("Authorization code is required")

        form = {
            "code": code,
            "client_id": self._config.client_id,
            "client_secret": self._config.client_secret,
            "redirect_uri": self._config.redirect_uri,
            "grant_type": "authorization_code",
        }

        logger.debug("Exchanging Google authorization code for tokens")
        try:
            async with httpx.AsyncClient(
                timeout=self._config.http_timeout, transport=self._transport
            ) as client:
                response = await client.post(self._config.token_endpoint, data=form)
        except httpx.HTTPError as exc:
            raise UpstreamServiceError(f"Google token endpoint unreachable: {exc}") from exc

        if response.is_error:
            logger.error(
                f"Google token exchange failed with {response.status_code}: "
                f"{response.text[:200]}"
            )
            raise UpstreamServiceError(
                "Failed to exchange authorization code",
                status_code=response.status_code,
            )

        try:
            tokens = GoogleTokenResponse.model_validate(response.json())
        except ValueError as exc:
            raise UpstreamServiceError("Malformed Google token response") from exc

        logger.info("Exchanged Google authorization code for tokens")
        return tokens

    async def validate_id_token(self, id_token: str | None) -> GoogleProfile:
        """Verify a Google ID token and extract the federated profile.

        Raises:
            IdTokenValidationError: If the token is malformed, not RS256, signed
                by an unknown key, or fails issuer, audience, expiry or
                required-claim checks
            UpstreamServiceError: If Google's signing keys cannot be loaded
        """
        if not id_token or not id_token.strip():
            raise IdTokenValidationError("ID token is empty")

        preview = preview_jwt(id_token)
        if preview.alg != ID_TOKEN_ALGORITHM:
            raise IdTokenValidationError(f"Unsupported ID token algorithm: {preview.alg}")

        key_set = await self._keys.get_key_set(preview.kid)

        claims_options = {
            "iss": {"essential": True, "values": list(self._config.issuers)},
            "aud": {"essential": True, "values": [self._config.client_id]},
            "exp": {"essential": True},
            "sub": {"essential": True},
            "email": {"essential": True},
            "name": {"essential": True},
        }
        try:
            claims = _id_token_jwt.decode(id_token, key_set, claims_options=claims_options)
            claims.validate(leeway=self._config.clock_skew)
        except (JoseError, ValueError) as exc:
            raise IdTokenValidationError(f"ID token rejected: {exc}") from exc

        picture = claims.get("picture")
        profile = GoogleProfile(
            subject=str(claims["sub"]),
            email=str(claims["email"]),
            email_verified=parse_bool_claim(claims.get("email_verified")),
            name=str(claims["name"]),
            picture=str(picture) if picture else None,
        )
        logger.info("Validated Google ID token")
        return profile

    async def find_or_create_user(self, profile: GoogleProfile) -> User:
        """Return the local user for ``profile``, creating one on first sign-in.

        New accounts use the email as username, are email-confirmed and get the
        default role. If the role cannot be assigned the account is deleted
        again so no role-less user survives.
        """
        user = await self._identity_store.find_by_email(profile.email)
        if user is not None:
            logger.debug(f"Google user found: {user.id}")
            return user

        result = await self._identity_store.create_user(
            username=profile.email, email=profile.email, email_confirmed=True
        )
        if not result.succeeded or result.user is None:
            logger.error(
                f"Failed to create local user for Google sign-in: {', '.join(result.error_codes)}"
            )
            raise AuthenticationError("Could not provision a local account")

        user = result.user
        role_result = None
        try:
            role_result = await self._identity_store.add_to_role(user, self._default_role)
        finally:
            if role_result is None or not role_result.succeeded:
                await self._identity_store.delete_user(user)

        if not role_result.succeeded:
            logger.warning(
                f"Failed to add {self._default_role} role to user {user.id}: "
                f"{', '.join(role_result.error_codes)}"
            )
            raise PersistenceError(f"Could not assign role {self._default_role}")

        logger.info(f"Created new Google user {user.id}")
        return user

    async def reconcile_claims(self, user: User, profile: GoogleProfile) -> ClaimDiff:
        """Bring the user's ``google_*`` claims in line with ``profile``, writing only changes."""
        existing = await self._identity_store.get_claims(user)
        diff = diff_claims(existing, google_claims(profile))

        if diff.to_remove:
            await self._identity_store.remove_claims(user, diff.to_remove)
        if diff.to_add:
            await self._identity_store.add_claims(user, diff.to_add)

        if diff:
            logger.debug(
                f"Updated Google claims for user {user.id}. "
                f"Removed: {len(diff.to_remove)}, Added: {len(diff.to_add)}"
            )
        return diff
