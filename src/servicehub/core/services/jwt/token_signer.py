"""Access token issuance and verification."""

import time
from typing import Any

from authlib.common.security import generate_token
from authlib.jose import JoseError, JsonWebToken
from loguru import logger

from servicehub.core.errors import AuthenticationError, ConfigurationError
from servicehub.core.models.auth import AccessTokenClaims
from servicehub.core.security import generate_refresh_token
from servicehub.entities.user import User
from servicehub.runtime.config.config_data import JWTConfig


class TokenSigner:
    """Mints the HS256 bearer tokens and opaque refresh tokens this service hands out."""

    def __init__(self, jwt_config: JWTConfig) -> None:
        missing = [
            name
            for name in ("secret_key", "issuer", "audience")
            if not getattr(jwt_config, name)
        ]
        if missing:
            raise ConfigurationError(
                f"JWT configuration incomplete, missing: {', '.join(missing)}"
            )

        self._config = jwt_config
        self._jwt = JsonWebToken([jwt_config.algorithm])

    def generate_access_token(
        self,
        user: User,
        roles: list[str],
        display_name: str | None = None,
        picture_url: str | None = None,
    ) -> str:
        """Generate a signed access token for ``user``.

        Args:
            user: Authenticated user; supplies the subject, email and name claims
            roles: Role names, emitted as the ``role`` claim
            display_name: Federated display name, included only when non-empty
            picture_url: Federated avatar URL, included only when non-empty

        Returns:
            Compact JWS string
        """
        now = int(time.time())
        payload: dict[str, Any] = {
            "iss": self._config.issuer,
            "aud": self._config.audience,
            "sub": user.id,
            "email": user.email,
            "jti": generate_token(32),
            "name": user.username,
            "role": list(roles),
            "iat": now,
            "nbf": now,
            "exp": now + self._config.expiration_minutes * 60,
        }
        if display_name:
            payload["display_name"] = display_name
        if picture_url:
            payload["picture"] = picture_url

        header = {"alg": self._config.algorithm, "typ": "JWT"}
        token = self._jwt.encode(header, payload, self._config.secret_key)
        return token.decode() if isinstance(token, bytes) else token

    def generate_refresh_token(self) -> str:
        return generate_refresh_token()

    def verify_access_token(self, token: str) -> AccessTokenClaims:
        """Verify a bearer token previously issued by :meth:`generate_access_token`.

        Raises:
            AuthenticationError: If the signature, algorithm, issuer, audience
                or lifetime checks fail
        """
        if not token:
            raise AuthenticationError("Missing bearer token")

        claims_options = {
            "iss": {"essential": True, "value": self._config.issuer},
            "aud": {"essential": True, "values": [self._config.audience]},
            "exp": {"essential": True},
            "sub": {"essential": True},
        }
        try:
            claims = self._jwt.decode(
                token, self._config.secret_key, claims_options=claims_options
            )
            claims.validate(leeway=self._config.clock_skew)
        except (JoseError, ValueError) as exc:
            logger.debug(f"Access token rejected: {exc}")
            raise AuthenticationError(f"Invalid access token: {exc}") from exc

        roles = claims.get("role") or []
        if isinstance(roles, str):
            roles = [roles]

        return AccessTokenClaims(
            subject=claims["sub"],
            email=claims.get("email", ""),
            username=claims.get("name", ""),
            roles=list(roles),
            jti=claims.get("jti", ""),
            issuer=claims["iss"],
            audience=claims["aud"],
            expires_at=int(claims["exp"]),
            display_name=claims.get("display_name"),
            picture=claims.get("picture"),
        )
