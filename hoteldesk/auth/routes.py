# =============================================================================
# Auth API Routes
# =============================================================================
#
# Endpoints (mounted under /api):
#   POST /auth/signup          - Create a local account, returns access token
#   POST /auth/login           - Check password, returns exchange code
#   POST /auth/exchange        - Trade exchange code for access token
#   POST /auth/logout          - Clear the session cookie
#   GET  /auth/status          - Who am I (never 401)
#   GET  /auth/me              - Current user
#   PUT  /auth/me              - Update display name
#   POST /auth/forgot-password - Request password reset
#   POST /auth/reset-password  - Reset password with token
#
# OAuth:
#   GET  /auth/providers        - List configured providers
#   GET  /auth/google           - Redirect to Google
#   GET  /auth/google/callback  - Complete the flow, redirect to the frontend
#
# =============================================================================

from __future__ import annotations

import logging
from typing import TypeVar
from urllib.parse import urlencode

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, Response
from fastapi.responses import RedirectResponse
from pydantic import EmailStr, Field

from hoteldesk.auth.context import AuthContext
from hoteldesk.auth.errors import AuthResult
from hoteldesk.auth.policies import get_auth_service, require_auth
from hoteldesk.auth.reset import ResetConsumedResponse, ResetRequestResponse
from hoteldesk.auth.service import AuthService, AuthSession, ExchangeCodeResponse
from hoteldesk.config import Settings
from hoteldesk.core.models import APIModel, UserResponse
from hoteldesk.integrations.oauth import GoogleOAuth, OAuthError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

T = TypeVar("T")


# =============================================================================
# Request/Response Models
# =============================================================================


class SignupRequest(APIModel):
    email: EmailStr
    password: str
    display_name: str | None = Field(default=None, max_length=80)


class LoginRequest(APIModel):
    email: EmailStr
    password: str


class ExchangeRequest(APIModel):
    code: str


class ForgotPasswordRequest(APIModel):
    email: EmailStr


class ResetPasswordRequest(APIModel):
    token: str
    password: str


class UpdateProfileRequest(APIModel):
    display_name: str


class UserEnvelope(APIModel):
    user: UserResponse


class StatusResponse(APIModel):
    authenticated: bool
    user: UserResponse | None = None


class SuccessResponse(APIModel):
    success: bool = True


class ProvidersResponse(APIModel):
    providers: list[str]


# =============================================================================
# Helpers
# =============================================================================


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_google_oauth(request: Request) -> GoogleOAuth:
    return request.app.state.google_oauth


def unwrap(result: AuthResult[T]) -> T:
    """Return the value or raise the HTTPException for the error kind."""
    if not result.ok:
        raise HTTPException(status_code=result.error.kind.status_code, detail=result.error.message)
    return result.value


def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        max_age=settings.session_max_age,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        path="/",
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=settings.auth_cookie_name,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        path="/",
    )


def safe_next_path(next_path: str | None) -> str | None:
    """Only same-site absolute paths; "//host" would leave the site."""
    if next_path and next_path.startswith("/") and not next_path.startswith("//"):
        return next_path
    return None


def build_frontend_callback_url(
    base_url: str,
    code: str | None = None,
    error: str | None = None,
    next_path: str | None = None,
) -> str:
    params: dict[str, str] = {}
    if code:
        params["code"] = code
    if error:
        params["error"] = error
    next_path = safe_next_path(next_path)
    if next_path:
        params["next"] = next_path
    return f"{base_url.rstrip('/')}/auth/callback?{urlencode(params)}"


# =============================================================================
# Local accounts
# =============================================================================


@router.post("/signup", response_model=AuthSession, status_code=201)
async def signup(data: SignupRequest, service: AuthService = Depends(get_auth_service)):
    """Create a local account and sign it in."""
    return unwrap(await service.signup(data.email, data.password, data.display_name))


@router.post("/login", response_model=ExchangeCodeResponse)
async def login(data: LoginRequest, service: AuthService = Depends(get_auth_service)):
    """
    Check email and password.

    Returns a single-use exchange code, not a token.
    """
    return unwrap(await service.login(data.email, data.password))


@router.post("/exchange", response_model=AuthSession)
async def exchange(data: ExchangeRequest, service: AuthService = Depends(get_auth_service)):
    return unwrap(await service.exchange(data.code))


@router.post("/logout", response_model=SuccessResponse)
async def logout(response: Response, settings: Settings = Depends(get_settings_dep)):
    clear_session_cookie(response, settings)
    return SuccessResponse()


@router.post(
    "/forgot-password",
    response_model=ResetRequestResponse,
    response_model_exclude_none=True,
)
async def forgot_password(
    data: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    service: AuthService = Depends(get_auth_service),
):
    """
    Request a password reset.

    Same response whether or not the account exists. The e-mail goes out
    after the response is sent.
    """
    return await service.request_reset(data.email, schedule=background_tasks.add_task)


@router.post("/reset-password", response_model=ResetConsumedResponse)
async def reset_password(
    data: ResetPasswordRequest,
    service: AuthService = Depends(get_auth_service),
):
    return unwrap(await service.consume_reset(data.token, data.password))


# =============================================================================
# Current user
# =============================================================================


@router.get("/status", response_model=StatusResponse)
async def status(request: Request, service: AuthService = Depends(get_auth_service)):
    identity = service.resolve_identity(request.headers)
    result = await service.resolve_user(identity)
    if not result.ok:
        return StatusResponse(authenticated=False)
    return StatusResponse(authenticated=True, user=await service.build_user_view(result.value))


@router.get("/me", response_model=UserEnvelope)
async def get_current_user(
    ctx: AuthContext = Depends(require_auth()),
    service: AuthService = Depends(get_auth_service),
):
    return UserEnvelope(user=await service.build_user_view(ctx.user))


@router.put("/me", response_model=UserEnvelope)
async def update_current_user(
    data: UpdateProfileRequest,
    ctx: AuthContext = Depends(require_auth()),
    service: AuthService = Depends(get_auth_service),
):
    return UserEnvelope(user=unwrap(await service.update_profile(ctx.user, data.display_name)))


# =============================================================================
# OAuth Endpoints
# =============================================================================


@router.get("/providers", response_model=ProvidersResponse)
async def list_providers(oauth: GoogleOAuth = Depends(get_google_oauth)):
    return ProvidersResponse(providers=["google"] if oauth.is_configured else [])


@router.get("/google")
async def google_authorize(
    next: str | None = None,
    oauth: GoogleOAuth = Depends(get_google_oauth),
):
    """Redirect the browser to Google's consent screen."""
    if not oauth.is_configured:
        raise HTTPException(status_code=503, detail="Google sign-in is not configured")

    state = oauth.create_state(safe_next_path(next))
    return RedirectResponse(oauth.get_authorize_url(state), status_code=302)


@router.get("/google/callback")
async def google_callback(
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    oauth: GoogleOAuth = Depends(get_google_oauth),
    service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings_dep),
):
    """
    Complete the OAuth flow.

    Success sets the session cookie and sends the browser to the
    frontend with an exchange code. Every failure becomes ?error=.
    """
    def fail(message: str) -> RedirectResponse:
        return RedirectResponse(
            build_frontend_callback_url(settings.base_url, error=message),
            status_code=302,
        )

    pending = oauth.validate_state(state)
    if pending is None:
        logger.info("OAuth callback with unknown or expired state")
        return fail("Invalid or expired sign-in attempt. Please try again.")
    if error or not code:
        return fail("Google sign-in was cancelled.")

    try:
        identity = await oauth.authenticate(code)
    except OAuthError as e:
        logger.warning("Google sign-in failed: %s", e)
        return fail("Google sign-in failed. Please try again.")

    result = await service.handle_oauth_callback(identity)
    if not result.ok:
        return fail(result.error.message)

    response = RedirectResponse(
        build_frontend_callback_url(
            settings.base_url,
            code=result.value.code,
            next_path=pending.next_path,
        ),
        status_code=302,
    )
    set_session_cookie(response, service.create_session_token(identity), settings)
    return response
