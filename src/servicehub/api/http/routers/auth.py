"""Authentication endpoints consumed by the marketplace frontend."""

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from servicehub.api.http.deps import (
    get_auth_service,
    get_current_principal,
    get_request_id,
    require_role,
)
from servicehub.core.models.auth import (
    AccessTokenClaims,
    AuthFailure,
    AuthResponse,
    AuthResult,
    GoogleAuthCodeRequest,
    LoginRequest,
    MeResponse,
    RefreshTokenRequest,
    RegisterRequest,
)
from servicehub.core.services import AuthService

router = APIRouter(prefix="/api/auth", tags=["auth"])

_FAILURE_RESPONSES: dict[str, Any] = {
    400: {"description": "Missing required input"},
    401: {"description": "Authentication failed"},
    500: {"description": "Upstream or storage failure"},
}


def _to_response(
    result: AuthResult,
    request_id: str,
    unauthorized_message: str,
    bad_request_message: str = "Bad request",
) -> AuthResponse | JSONResponse:
    if result.succeeded and result.response is not None:
        return result.response

    if result.failure == AuthFailure.INVALID_INPUT:
        status_code, message = 400, bad_request_message
    elif result.failure == AuthFailure.INTERNAL:
        status_code, message = 500, "Internal Server Error"
    else:
        status_code, message = 401, unauthorized_message

    return JSONResponse(
        status_code=status_code,
        content={"message": message, "requestId": request_id},
    )


@router.post("/register", response_model=AuthResponse, responses=_FAILURE_RESPONSES)
async def register(
    body: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
    request_id: str = Depends(get_request_id),
) -> AuthResponse | JSONResponse:
    """Register a local account and sign it in."""
    result = await auth_service.register(
        body.user_name, body.email, body.password, correlation_id=request_id
    )
    return _to_response(result, request_id, "Invalid credentials")


@router.post("/login", response_model=AuthResponse, responses=_FAILURE_RESPONSES)
async def login(
    body: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
    request_id: str = Depends(get_request_id),
) -> AuthResponse | JSONResponse:
    result = await auth_service.login(
        body.email, body.password, correlation_id=request_id
    )
    return _to_response(result, request_id, "Invalid credentials")


@router.post(
    "/google/callback", response_model=AuthResponse, responses=_FAILURE_RESPONSES
)
async def google_callback(
    body: GoogleAuthCodeRequest,
    auth_service: AuthService = Depends(get_auth_service),
    request_id: str = Depends(get_request_id),
) -> AuthResponse | JSONResponse:
    """Finish the Google popup sign-in by exchanging its authorization code."""
    result = await auth_service.google_callback(body.code, correlation_id=request_id)
    return _to_response(
        result,
        request_id,
        "Google authentication failed",
        bad_request_message="Authorization code is required",
    )


@router.post(
    "/refresh-token", response_model=AuthResponse, responses=_FAILURE_RESPONSES
)
async def refresh_token(
    body: RefreshTokenRequest,
    auth_service: AuthService = Depends(get_auth_service),
    request_id: str = Depends(get_request_id),
) -> AuthResponse | JSONResponse:
    result = await auth_service.refresh_token(
        body.refresh_token, correlation_id=request_id
    )
    return _to_response(
        result,
        request_id,
        "Invalid or expired refresh token",
        bad_request_message="Refresh token is required",
    )


@router.get("/me", response_model=MeResponse)
async def get_me(
    principal: AccessTokenClaims = Depends(get_current_principal),
) -> MeResponse:
    """Mirror the identity carried by the caller's access token."""
    return MeResponse(
        user_id=principal.subject,
        email=principal.email,
        username=principal.username,
        roles=principal.roles,
        display_name=principal.display_name,
        picture=principal.picture,
    )


@router.get("/admin/me", response_model=MeResponse)
async def get_admin_me(
    principal: AccessTokenClaims = Depends(require_role("Admin")),
) -> MeResponse:
    """Same as ``/me`` but only for administrators."""
    return await get_me(principal)
