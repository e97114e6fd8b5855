"""Bearer-token authentication dependencies."""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from api.dependencies import get_auth_service
from domain.model.errors import AuthenticationError
from domain.model.user import User
from services.auth_service import AuthService

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user_required(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    """Get current authenticated user (required). Raises 401 if not authenticated."""
    if not credentials:
        raise _unauthorized("Not authenticated")

    try:
        return auth_service.authenticate_access_token(credentials.credentials)
    except AuthenticationError as e:
        raise _unauthorized(str(e))


def require_admin(current_user: User = Depends(get_current_user_required)) -> User:
    """Raises 403 unless the authenticated user has the admin role."""
    if not current_user.is_admin:
        logger.info("Admin route denied", extra={"userId": current_user.id})
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
    return current_user
