"""Authentication routes.

Endpoints:
- POST /auth/register: Create a local account and sign in
- POST /auth/login: Email/password sign in
- POST /auth/refresh: Rotate the refresh token
- POST /auth/logout: Revoke the stored refresh token
- GET /auth/github: Redirect to GitHub
- GET /auth/github/callback: Finish GitHub sign in, redirect to the frontend
- GET /auth/profile: Current user
- GET /auth/check: Token validity probe

Handlers are plain ``def`` so bcrypt and the Mongo driver run in
FastAPI's threadpool instead of blocking the event loop.
"""

import logging
import secrets
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse
from starlette.concurrency import run_in_threadpool

from api.dependencies import get_auth_service, get_github_provider, get_settings
from api.models import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    UserResponse,
)
from api.rate_limit import AUTH_RATE_LIMIT, limiter
from api.security import get_current_user_required
from domain.model.errors import (
    AuthenticationError,
    DomainError,
    DuplicateError,
    ValidationError,
)
from domain.model.user import User
from port.oauth_provider import OAuthProvider
from services.auth_service import AuthService
from utils.config import Settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

OAUTH_STATE_COOKIE = "oauth_state"
OAUTH_STATE_MAX_AGE = 600


def _unauthorized(e: AuthenticationError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=str(e),
        headers={"WWW-Authenticate": "Bearer"},
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(AUTH_RATE_LIMIT)
def register(
    request: Request,
    body: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Register a new user.

    Raises:
        HTTPException: 409 if the email already exists, 400 if the password is longer than 72 bytes
    """
    try:
        result = auth_service.register(
            email=body.email,
            password=body.password,
            first_name=body.first_name,
            last_name=body.last_name,
            avatar=body.avatar,
            bio=body.bio,
        )
    except DuplicateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return AuthResponse.from_result(result)


@router.post("/login", response_model=AuthResponse)
@limiter.limit(AUTH_RATE_LIMIT)
def login(
    request: Request,
    body: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Login user and return an access/refresh token pair.

    Raises:
        HTTPException: 401 if credentials are invalid or the account is deactivated
    """
    try:
        result = auth_service.login(body.email, body.password)
    except AuthenticationError as e:
        raise _unauthorized(e)

    return AuthResponse.from_result(result)


@router.post("/refresh", response_model=AuthResponse)
@limiter.limit(AUTH_RATE_LIMIT)
def refresh(
    request: Request,
    body: RefreshRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Exchange a refresh token for a new pair. The presented token is consumed."""
    try:
        result = auth_service.refresh_tokens(body.refresh_token)
    except AuthenticationError as e:
        raise _unauthorized(e)

    return AuthResponse.from_result(result)


@router.post("/logout", response_model=MessageResponse)
def logout(
    current_user: User = Depends(get_current_user_required),
    auth_service: AuthService = Depends(get_auth_service),
):
    auth_service.logout(current_user.id)
    return MessageResponse(message="Successfully logged out")


@router.get("/github")
@limiter.limit(AUTH_RATE_LIMIT)
async def github_auth(
    request: Request,
    provider: OAuthProvider = Depends(get_github_provider),
):
    """Redirect to GitHub. The state cookie is checked again on the callback."""
    state = secrets.token_urlsafe(32)
    response = RedirectResponse(provider.authorization_url(state), status_code=status.HTTP_302_FOUND)
    response.set_cookie(
        OAUTH_STATE_COOKIE,
        state,
        max_age=OAUTH_STATE_MAX_AGE,
        httponly=True,
        samesite="lax",
    )
    return response


def _frontend_redirect(settings: Settings, path: str, params: dict) -> RedirectResponse:
    response = RedirectResponse(
        f"{settings.frontend_url}{path}?{urlencode(params)}",
        status_code=status.HTTP_302_FOUND,
    )
    response.delete_cookie(OAUTH_STATE_COOKIE)
    return response


@router.get("/github/callback")
async def github_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    provider: OAuthProvider = Depends(get_github_provider),
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    """Finish GitHub sign in.

    The browser is mid-redirect here, so failures are sent to the frontend
    error page as a ``message`` query parameter rather than as JSON.
    """
    expected_state = request.cookies.get(OAUTH_STATE_COOKIE)

    try:
        if error:
            raise AuthenticationError(f"GitHub authorization failed: {error}")
        if not code:
            raise AuthenticationError("Missing authorization code")
        if not state or not expected_state or not secrets.compare_digest(state, expected_state):
            raise AuthenticationError("Invalid OAuth state")

        identity = await provider.exchange_code(code)
        result = await run_in_threadpool(auth_service.github_login, identity)
    except DomainError as e:
        logger.warning("GitHub login failed", extra={"error": str(e)})
        return _frontend_redirect(settings, "/auth/error", {"message": str(e)})

    return _frontend_redirect(
        settings,
        "/auth/callback",
        {"token": result.access_token, "refreshToken": result.refresh_token},
    )


@router.get("/profile", response_model=UserResponse)
def get_profile(current_user: User = Depends(get_current_user_required)):
    """Get the current authenticated user (sanitized)."""
    return UserResponse.from_domain(current_user)


@router.get("/check")
def check_auth(current_user: User = Depends(get_current_user_required)):
    return {"message": "Authenticated", "valid": True}
