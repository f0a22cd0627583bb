from dataclasses import dataclass

import httpx

from servicehub.core.services import (
    DbSessionService,
    GoogleSigningKeyProvider,
    TokenSigner,
)
from servicehub.core.services.auth.auth_service import FailureDelay
from servicehub.runtime.config.config_data import ConfigData


@dataclass
class ApplicationDependencies:
    """Process-wide services shared by every request."""

    config: ConfigData
    database_service: DbSessionService
    token_signer: TokenSigner
    signing_keys: GoogleSigningKeyProvider
    google_transport: httpx.AsyncBaseTransport | None = None
    failure_delay: FailureDelay | None = None

    @classmethod
    def from_config(
        cls,
        config: ConfigData,
        google_transport: httpx.AsyncBaseTransport | None = None,
    ) -> "ApplicationDependencies":
        return cls(
            config=config,
            database_service=DbSessionService(config.database, config.app.environment),
            token_signer=TokenSigner(config.jwt),
            signing_keys=GoogleSigningKeyProvider(
                config.google, transport=google_transport
            ),
            google_transport=google_transport,
        )
