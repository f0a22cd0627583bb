"""Authentication orchestrator: register, login, Google callback, refresh.

Each operation returns an :class:`AuthResult`. Failures carry only a coarse
:class:`AuthFailure`; the detailed reason goes to the logs, tagged with the
operation's correlation id.
"""

from collections.abc import Awaitable, Callable
from functools import partial
from typing import Any

from loguru import logger

from servicehub.core.errors import (
    AuthenticationError,
    InvalidInputError,
    PersistenceError,
    UpstreamServiceError,
)
from servicehub.core.models.auth import AuthFailure, AuthResponse, AuthResult
from servicehub.core.security import new_correlation_id, sleep_failure_delay
from servicehub.core.services.google.identity_broker import GoogleIdentityBroker
from servicehub.core.services.jwt.token_signer import TokenSigner
from servicehub.core.services.user.identity_store import IdentityStore
from servicehub.core.storage.refresh_token_store import RefreshTokenStore
from servicehub.entities.user import User
from servicehub.runtime.config.config_data import ConfigData

FailureDelay = Callable[[], Awaitable[Any]]

ALL_FAILURES = frozenset(AuthFailure)


class AuthService:
    def __init__(
        self,
        identity_store: IdentityStore,
        refresh_store: RefreshTokenStore,
        token_signer: TokenSigner,
        google_broker: GoogleIdentityBroker,
        config: ConfigData,
        failure_delay: FailureDelay | None = None,
    ) -> None:
        self._identity_store = identity_store
        self._refresh_store = refresh_store
        self._token_signer = token_signer
        self._google_broker = google_broker
        self._security = config.security
        self._jwt = config.jwt
        self._failure_delay = failure_delay or partial(
            sleep_failure_delay,
            config.security.failure_delay_min_ms,
            config.security.failure_delay_max_ms,
        )

    async def register(
        self,
        username: str | None,
        email: str | None,
        password: str | None,
        correlation_id: str | None = None,
    ) -> AuthResult:
        """Create a local account with the default role and sign it in."""
        return await self._run(
            "registration",
            lambda: self._register(username, email, password),
            correlation_id,
            delay_on=ALL_FAILURES,
        )

    async def login(
        self,
        email: str | None,
        password: str | None,
        correlation_id: str | None = None,
    ) -> AuthResult:
        """Sign in with email and password. Every failure looks the same to the caller."""
        return await self._run(
            "login",
            lambda: self._login(email, password),
            correlation_id,
            delay_on=ALL_FAILURES,
        )

    async def google_callback(
        self, authorization_code: str | None, correlation_id: str | None = None
    ) -> AuthResult:
        """Complete Google sign-in from an authorization code.

        A blank code fails with ``INVALID_INPUT`` before Google is contacted.
        """
        return await self._run(
            "Google callback",
            lambda: self._google_callback(authorization_code),
            correlation_id,
            delay_on=frozenset({AuthFailure.UNAUTHORIZED, AuthFailure.INTERNAL}),
        )

    async def refresh_token(
        self, refresh_token: str | None, correlation_id: str | None = None
    ) -> AuthResult:
        """Exchange a refresh token for a new token pair.

        The presented token is revoked before anything else happens, so it can
        be used at most once even if the rest of the exchange fails.
        """
        return await self._run(
            "token refresh",
            lambda: self._refresh(refresh_token),
            correlation_id,
            delay_on=frozenset(),
        )

    async def _register(
        self, username: str | None, email: str | None, password: str | None
    ) -> AuthResult:
        if _blank(username) or _blank(email) or _blank(password):
            return self._reject("Registration attempt with empty fields")

        result = await self._identity_store.create_user(username, email, password)
        if not result.succeeded or result.user is None:
            return self._reject(
                f"Failed to create user {username}. Errors: {', '.join(result.error_codes)}"
            )

        user = result.user
        role_result = await self._identity_store.add_to_role(
            user, self._security.default_role
        )
        if not role_result.succeeded:
            await self._identity_store.delete_user(user)
            raise PersistenceError(
                f"Could not assign role {self._security.default_role}: "
                f"{', '.join(role_result.error_codes)}"
            )

        response = await self._issue_tokens(user)
        logger.info(
            f"Registration successful. UserId: {user.id}, Roles: {len(response.roles)}"
        )
        return AuthResult.ok(response)

    async def _login(self, email: str | None, password: str | None) -> AuthResult:
        if _blank(email) or _blank(password):
            return self._reject("Login attempt with empty credentials")

        user = await self._identity_store.find_by_email(email)
        if user is None:
            return self._reject("Login attempt for non-existent email")

        sign_in = await self._identity_store.check_password(user, password)
        if not sign_in.succeeded:
            return self._reject(
                f"Login failed. Reason: {sign_in.reason}, UserId: {user.id}"
            )

        response = await self._issue_tokens(user)
        logger.info(
            f"Login successful for user {user.id} with {len(response.roles)} role(s)"
        )
        return AuthResult.ok(response)

    async def _google_callback(self, authorization_code: str | None) -> AuthResult:
        if _blank(authorization_code):
            raise InvalidInputError("Authorization code is required")

        tokens = await self._google_broker.exchange_code(authorization_code)
        if not tokens.id_token:
            return self._reject("Google token response missing ID token")

        profile = await self._google_broker.validate_id_token(tokens.id_token)
        user = await self._google_broker.find_or_create_user(profile)
        await self._google_broker.reconcile_claims(user, profile)

        response = await self._issue_tokens(
            user,
            display_name=profile.name,
            picture_url=profile.picture,
            username=profile.name,
            email=profile.email,
        )
        logger.info(
            f"Google OAuth successful. UserId: {user.id}, RoleCount: {len(response.roles)}"
        )
        return AuthResult.ok(response)

    async def _refresh(self, refresh_token: str | None) -> AuthResult:
        if _blank(refresh_token):
            raise InvalidInputError("Refresh token is required")

        record = await self._refresh_store.find_by_token(refresh_token)
        if record is None:
            return self._reject("Refresh token not found")
        if record.is_expired():
            return self._reject(f"Refresh token expired for user {record.user_id}")

        if not await self._refresh_store.revoke(record.id):
            return self._reject(f"Refresh token already used for user {record.user_id}")

        user = await self._identity_store.find_by_id(record.user_id)
        if user is None:
            return self._reject("User associated with refresh token not found")

        response = await self._issue_tokens(user)
        logger.info(f"Token refreshed successfully for user {user.id}")
        return AuthResult.ok(response)

    async def _issue_tokens(
        self,
        user: User,
        display_name: str | None = None,
        picture_url: str | None = None,
        username: str | None = None,
        email: str | None = None,
    ) -> AuthResponse:
        # Persisting the refresh token is the last step; nothing is written if
        # an earlier step fails or the request is cancelled.
        roles = await self._identity_store.get_roles(user)
        access_token = self._token_signer.generate_access_token(
            user, roles, display_name=display_name, picture_url=picture_url
        )
        refresh_token = self._token_signer.generate_refresh_token()
        await self._refresh_store.save(
            user.id, refresh_token, self._jwt.refresh_token_ttl_seconds
        )
        return AuthResponse(
            token=access_token,
            refresh_token=refresh_token,
            username=username or user.username,
            email=email or user.email,
            roles=roles,
        )

    def _reject(self, reason: str) -> AuthResult:
        logger.warning(reason)
        return AuthResult.failed(AuthFailure.UNAUTHORIZED)

    async def _run(
        self,
        operation: str,
        flow: Callable[[], Awaitable[AuthResult]],
        correlation_id: str | None,
        delay_on: frozenset[AuthFailure],
    ) -> AuthResult:
        with logger.contextualize(correlation_id=correlation_id or new_correlation_id()):
            logger.debug(f"Starting {operation}")
            try:
                result = await flow()
            except InvalidInputError as exc:
                logger.warning(f"{operation} rejected: {exc}")
                result = AuthResult.failed(AuthFailure.INVALID_INPUT)
            except AuthenticationError as exc:
                logger.warning(f"{operation} failed: {exc}")
                result = AuthResult.failed(AuthFailure.UNAUTHORIZED)
            except (UpstreamServiceError, PersistenceError) as exc:
                logger.error(f"{operation} failed on a dependency: {exc!r}")
                result = AuthResult.failed(AuthFailure.INTERNAL)
            except Exception:
                logger.exception(f"Unexpected error during {operation}")
                result = AuthResult.failed(AuthFailure.INTERNAL)

            if not result.succeeded and result.failure in delay_on:
                await self._failure_delay()
            return result


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()
