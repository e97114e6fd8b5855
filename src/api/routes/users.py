"""User profile and administration routes.

Endpoints:
- GET /users/profile: Current user's profile
- PATCH /users/profile: Update own profile
- GET /users/stats: Account counts (admin)
- GET /users/{user_id}: User by ID
- PATCH /users/{user_id}: Update any user (admin)
- DELETE /users/{user_id}: Delete a user (admin)
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from api.dependencies import get_user_repo
from api.models import (
    AdminUpdateUserRequest,
    MessageResponse,
    UpdateProfileRequest,
    UserResponse,
    UserStatsResponse,
)
from api.security import get_current_user_required, require_admin
from domain.model.errors import DomainError, DuplicateError, NotFoundError, ValidationError
from domain.model.user import User
from port.user_repository import UserRepository
from services import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


def _to_http(e: DomainError) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, DuplicateError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, ValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.get("/profile", response_model=UserResponse)
def get_profile(
    current_user: User = Depends(get_current_user_required),
    repo: UserRepository = Depends(get_user_repo),
):
    try:
        user = user_service.get_user(repo, current_user.id)
    except DomainError as e:
        raise _to_http(e)
    return UserResponse.from_domain(user)


@router.patch("/profile", response_model=UserResponse)
def update_profile(
    body: UpdateProfileRequest,
    current_user: User = Depends(get_current_user_required),
    repo: UserRepository = Depends(get_user_repo),
):
    """Update own profile. Only name, avatar and bio are accepted."""
    try:
        user = user_service.update_profile(repo, current_user.id, body.model_dump(exclude_unset=True))
    except DomainError as e:
        raise _to_http(e)
    return UserResponse.from_domain(user)


@router.get("/stats", response_model=UserStatsResponse)
def get_stats(
    admin: User = Depends(require_admin),
    repo: UserRepository = Depends(get_user_repo),
):
    try:
        stats = user_service.get_stats(repo)
    except DomainError as e:
        raise _to_http(e)
    return UserStatsResponse.from_domain(stats)


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: str,
    current_user: User = Depends(get_current_user_required),
    repo: UserRepository = Depends(get_user_repo),
):
    try:
        user = user_service.get_user(repo, user_id)
    except DomainError as e:
        raise _to_http(e)
    return UserResponse.from_domain(user)


@router.patch("/{user_id}", response_model=UserResponse)
def admin_update_user(
    user_id: str,
    body: AdminUpdateUserRequest,
    admin: User = Depends(require_admin),
    repo: UserRepository = Depends(get_user_repo),
):
    try:
        user = user_service.admin_update_user(repo, user_id, body.model_dump(exclude_unset=True))
    except DomainError as e:
        raise _to_http(e)

    logger.info("Admin updated user", extra={"adminId": admin.id, "userId": user_id})
    return UserResponse.from_domain(user)


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: str,
    admin: User = Depends(require_admin),
    repo: UserRepository = Depends(get_user_repo),
):
    try:
        user_service.delete_user(repo, user_id)
    except DomainError as e:
        raise _to_http(e)

    logger.info("Admin deleted user", extra={"adminId": admin.id, "userId": user_id})
    return MessageResponse(message="User deleted")
