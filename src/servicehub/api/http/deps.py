"""FastAPI dependency implementations."""

from __future__ import annotations

from collections.abc import Iterator

from fastapi import Depends, HTTPException, Request
from sqlmodel import Session

from servicehub.api.http.app_data import ApplicationDependencies
from servicehub.core.errors import AuthenticationError
from servicehub.core.models.auth import AccessTokenClaims
from servicehub.core.security import new_correlation_id
from servicehub.core.services import (
    AuthService,
    GoogleIdentityBroker,
    IdentityStore,
    SqlIdentityStore,
    TokenSigner,
)
from servicehub.core.storage import RefreshTokenStore, SqlRefreshTokenStore


def get_app_dependencies(request: Request) -> ApplicationDependencies:
    return request.app.state.app_dependencies


def get_db_session(
    app_deps: ApplicationDependencies = Depends(get_app_dependencies),
) -> Iterator[Session]:
    """Per-request database session, closed once the response is sent."""
    session = app_deps.database_service.get_session()
    try:
        yield session
    finally:
        session.close()


def get_token_signer(
    app_deps: ApplicationDependencies = Depends(get_app_dependencies),
) -> TokenSigner:
    return app_deps.token_signer


def get_identity_store(
    db: Session = Depends(get_db_session),
    app_deps: ApplicationDependencies = Depends(get_app_dependencies),
) -> IdentityStore:
    return SqlIdentityStore(db, app_deps.config.security)


def get_refresh_token_store(db: Session = Depends(get_db_session)) -> RefreshTokenStore:
    return SqlRefreshTokenStore(db)


def get_google_broker(
    identity_store: IdentityStore = Depends(get_identity_store),
    app_deps: ApplicationDependencies = Depends(get_app_dependencies),
) -> GoogleIdentityBroker:
    return GoogleIdentityBroker(
        app_deps.config.google,
        app_deps.signing_keys,
        identity_store,
        default_role=app_deps.config.security.default_role,
        transport=app_deps.google_transport,
    )


def get_auth_service(
    identity_store: IdentityStore = Depends(get_identity_store),
    refresh_store: RefreshTokenStore = Depends(get_refresh_token_store),
    google_broker: GoogleIdentityBroker = Depends(get_google_broker),
    app_deps: ApplicationDependencies = Depends(get_app_dependencies),
) -> AuthService:
    return AuthService(
        identity_store,
        refresh_store,
        app_deps.token_signer,
        google_broker,
        app_deps.config,
        failure_delay=app_deps.failure_delay,
    )


def get_request_id(request: Request) -> str:
    """Correlation id assigned by the request logging middleware."""
    return getattr(request.state, "request_id", None) or new_correlation_id()


async def get_current_principal(
    request: Request,
    token_signer: TokenSigner = Depends(get_token_signer),
) -> AccessTokenClaims:
    """Authenticate the request with a Bearer access token issued by this service."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=401,
            detail="Missing Bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = auth_header.split(" ", 1)[1].strip()
    try:
        claims = token_signer.verify_access_token(token)
    except AuthenticationError:
        raise HTTPException(
            status_code=401,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    request.state.claims = claims
    request.state.roles = set(claims.roles)
    return claims


def require_role(required_role: str):
    """Create a dependency that requires a specific role for the authenticated user."""

    async def dep(
        principal: AccessTokenClaims = Depends(get_current_principal),
    ) -> AccessTokenClaims:
        if required_role not in principal.roles:
            raise HTTPException(
                status_code=403, detail=f"Missing required role: {required_role}"
            )
        return principal

    return dep
