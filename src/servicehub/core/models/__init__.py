from .auth import (
    AccessTokenClaims,
    AuthFailure,
    AuthResponse,
    AuthResult,
    GoogleAuthCodeRequest,
    GoogleProfile,
    GoogleTokenResponse,
    LoginRequest,
    MeResponse,
    RefreshTokenRequest,
    RegisterRequest,
)

__all__ = [
    "AccessTokenClaims",
    "AuthFailure",
    "AuthResponse",
    "AuthResult",
    "GoogleAuthCodeRequest",
    "GoogleProfile",
    "GoogleTokenResponse",
    "LoginRequest",
    "MeResponse",
    "RefreshTokenRequest",
    "RegisterRequest",
]
