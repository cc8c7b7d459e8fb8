"""
User account endpoints: profile, password, client settings and admin user management.
"""

from fastapi import APIRouter, Depends, status, Query, Path
from typing import Optional
from uuid import UUID

from rental_api.models.user import User, UserRole
from rental_api.services.auth import AuthService
from rental_api.schemas.auth import CurrentUserResponse
from rental_api.schemas.common import ActionResponse, pagination_meta
from rental_api.schemas.user import (
    UserUpdate,
    UserResponse,
    UserListResponse,
    UserSettings,
    UserSettingsUpdate,
    UserStatusUpdate,
    PasswordChangeRequest
)
from rental_api.schemas.error import get_crud_error_responses, get_error_responses
from rental_api.utils.dependencies import (
    get_auth_service,
    get_current_active_user,
    get_current_admin_user
)


router = APIRouter(prefix="/users", tags=["Users"])


@router.put(
    "/me",
    response_model=CurrentUserResponse,
    status_code=status.HTTP_200_OK,
    summary="Update profile",
    description="Update name, phone number or avatar of the signed-in user",
    responses=get_crud_error_responses()
)
async def update_profile(
    profile_data: UserUpdate,
    current_user: User = Depends(get_current_active_user),
    auth_service: AuthService = Depends(get_auth_service)
) -> CurrentUserResponse:
    user = await auth_service.update_profile(current_user, profile_data)
    return CurrentUserResponse.from_user_dict(user.to_dict())


@router.post(
    "/me/password",
    response_model=ActionResponse,
    status_code=status.HTTP_200_OK,
    summary="Change password",
    responses=get_error_responses(401, 422)
)
async def change_password(
    password_data: PasswordChangeRequest,
    current_user: User = Depends(get_current_active_user),
    auth_service: AuthService = Depends(get_auth_service)
) -> ActionResponse:
    await auth_service.change_password(
        current_user,
        password_data.current_password,
        password_data.new_password
    )
    return ActionResponse(message="Password changed successfully")


@router.get(
    "/me/settings",
    response_model=UserSettings,
    status_code=status.HTTP_200_OK,
    summary="Get client settings",
    description="Locale, theme and text size persisted for the signed-in user"
)
async def get_settings(
    current_user: User = Depends(get_current_active_user)
) -> UserSettings:
    return UserSettings.model_validate(current_user.settings_dict())


@router.put(
    "/me/settings",
    response_model=UserSettings,
    status_code=status.HTTP_200_OK,
    summary="Update client settings",
    responses=get_error_responses(422)
)
async def update_settings(
    settings_data: UserSettingsUpdate,
    current_user: User = Depends(get_current_active_user),
    auth_service: AuthService = Depends(get_auth_service)
) -> UserSettings:
    user = await auth_service.update_settings(current_user, settings_data)
    return UserSettings.model_validate(user.settings_dict())


@router.get(
    "",
    response_model=UserListResponse,
    status_code=status.HTTP_200_OK,
    summary="List users",
    description="Admin only. Filter by role, status or a name/email search.",
    responses=get_error_responses(401, 403)
)
async def list_users(
    role: Optional[UserRole] = Query(None, description="Filter by role"),
    is_active: Optional[bool] = Query(None, description="Filter by account status"),
    search: Optional[str] = Query(None, max_length=100, description="Search name or email"),
    page: int = Query(1, ge=1, description="Page number (starts from 1)"),
    page_size: int = Query(20, ge=1, le=100, description="Number of users per page"),
    current_user: User = Depends(get_current_admin_user),
    auth_service: AuthService = Depends(get_auth_service)
) -> UserListResponse:
    users, total = await auth_service.list_users(
        current_user,
        role=role,
        is_active=is_active,
        search=search,
        page=page,
        page_size=page_size
    )
    return UserListResponse(
        users=[UserResponse.model_validate(user.to_dict()) for user in users],
        **pagination_meta(total, page, page_size)
    )


@router.patch(
    "/{user_id}/status",
    response_model=UserResponse,
    status_code=status.HTTP_200_OK,
    summary="Activate or deactivate a user",
    responses=get_crud_error_responses()
)
async def update_user_status(
    status_data: UserStatusUpdate,
    user_id: UUID = Path(..., description="User ID"),
    current_user: User = Depends(get_current_admin_user),
    auth_service: AuthService = Depends(get_auth_service)
) -> UserResponse:
    user = await auth_service.update_user_status(user_id, status_data.is_active, current_user)
    return UserResponse.model_validate(user.to_dict())
