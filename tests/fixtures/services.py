from __future__ import annotations

import pytest
from argon2 import PasswordHasher, Type
from sqlmodel import Session

from servicehub.core.services import (
    AuthService,
    GoogleIdentityBroker,
    SqlIdentityStore,
    TokenSigner,
)
from servicehub.core.storage import SqlRefreshTokenStore
from servicehub.entities.user import RoleTable
from servicehub.runtime.config.config_data import ConfigData


class DelayRecorder:
    """Failure delay stand-in that counts calls instead of sleeping."""

    def __init__(self) -> None:
        self.calls = 0

    async def __call__(self) -> None:
        self.calls += 1


@pytest.fixture
def password_hasher() -> PasswordHasher:
    # Minimal argon2 cost keeps the suite fast
    return PasswordHasher(time_cost=1, memory_cost=8, parallelism=1, type=Type.ID)


@pytest.fixture
def identity_store(
    session: Session, config: ConfigData, password_hasher: PasswordHasher
) -> SqlIdentityStore:
    """Identity store over the test session with the configured roles present."""
    for role in config.security.roles:
        session.add(RoleTable(name=role))
    session.commit()
    return SqlIdentityStore(session, config.security, hasher=password_hasher)


@pytest.fixture
def refresh_store(session: Session) -> SqlRefreshTokenStore:
    return SqlRefreshTokenStore(session)


@pytest.fixture
def token_signer(config: ConfigData) -> TokenSigner:
    return TokenSigner(config.jwt)


@pytest.fixture
def failure_delay() -> DelayRecorder:
    return DelayRecorder()


@pytest.fixture
def auth_service(
    config: ConfigData,
    identity_store: SqlIdentityStore,
    refresh_store: SqlRefreshTokenStore,
    token_signer: TokenSigner,
    google_broker: GoogleIdentityBroker,
    failure_delay: DelayRecorder,
) -> AuthService:
    return AuthService(
        identity_store,
        refresh_store,
        token_signer,
        google_broker,
        config,
        failure_delay=failure_delay,
    )
