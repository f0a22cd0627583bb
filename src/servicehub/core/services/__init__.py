"""Core services exports."""

from .auth.auth_service import AuthService
from .database.db_session import DbSessionService
from .database.seeder import DatabaseSeeder
from .google.identity_broker import ClaimDiff, GoogleIdentityBroker, diff_claims
from .jwt.jwks import GoogleSigningKeyProvider, SigningKeySnapshot
from .jwt.token_signer import TokenSigner
from .user.identity_store import IdentityStore, SqlIdentityStore

__all__ = [
    "AuthService",
    "ClaimDiff",
    "DatabaseSeeder",
    "DbSessionService",
    "GoogleIdentityBroker",
    "GoogleSigningKeyProvider",
    "IdentityStore",
    "SigningKeySnapshot",
    "SqlIdentityStore",
    "TokenSigner",
    "diff_claims",
]
