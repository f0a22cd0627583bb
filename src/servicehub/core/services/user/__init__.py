from .identity_store import (
    IdentityError,
    IdentityResult,
    IdentityStore,
    SignInResult,
    SqlIdentityStore,
)

__all__ = [
    "IdentityError",
    "IdentityResult",
    "IdentityStore",
    "SignInResult",
    "SqlIdentityStore",
]
