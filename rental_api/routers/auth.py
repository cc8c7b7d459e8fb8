"""
Authentication API endpoints for sign-up, sign-in, token management and session info.
Provides JWT-based authentication with role-based access control.
"""

from fastapi import APIRouter, Depends, status
from fastapi.security import HTTPAuthorizationCredentials
from rental_api.models.user import User
from rental_api.services.auth import AuthService
from rental_api.schemas.auth import (
    LoginRequest,
    LoginResponse,
    LogoutRequest,
    RefreshTokenRequest,
    AccessTokenResponse,
    CurrentUserResponse,
    TokenValidationResponse
)
from rental_api.schemas.user import UserCreate
from rental_api.schemas.error import get_auth_error_responses, get_error_responses
from rental_api.utils.dependencies import (
    get_auth_service,
    get_current_active_user,
    security
)
from rental_api.utils.exceptions import (
    APIException,
    InvalidCredentialsError,
    InvalidTokenError
)
from rental_api.config import settings
from typing import Optional


router = APIRouter(prefix="/auth", tags=["Authentication"])


def _login_response(user: User, access_token: str, refresh_token: str) -> LoginResponse:
    return LoginResponse(
        user=CurrentUserResponse.from_user_dict(user.to_dict()),
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        expires_in=settings.access_token_expire_minutes * 60
    )


@router.post(
    "/register",
    response_model=LoginResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Sign up",
    description="Create a landlord or renter account and sign it in",
    responses=get_error_responses(403, 409, 422)
)
async def register(
    user_data: UserCreate,
    auth_service: AuthService = Depends(get_auth_service)
) -> LoginResponse:
    """
    Register a new account. Profile defaults and notification preferences are
    provisioned as part of sign-up.

    Args:
        user_data: Registration data
        auth_service: Authentication service

    Returns:
        The new user with a fresh token pair
    """
    user = await auth_service.register(user_data)
    access_token, refresh_token = auth_service.create_tokens(user)
    return _login_response(user, access_token, refresh_token)


@router.post(
    "/login",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    summary="User login",
    description="Authenticate user with email and password, returns JWT tokens",
    responses=get_auth_error_responses()
)
async def login(
    login_data: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service)
) -> LoginResponse:
    """
    Authenticate user and return JWT tokens.

    Raises:
        InvalidCredentialsError: If credentials are invalid
        InactiveUserError: If user account is inactive
    """
    try:
        user, access_token, refresh_token = await auth_service.login(
            email=login_data.email,
            password=login_data.password
        )
        return _login_response(user, access_token, refresh_token)
    except APIException:
        raise
    except Exception:
        raise InvalidCredentialsError()


@router.post(
    "/refresh",
    response_model=AccessTokenResponse,
    status_code=status.HTTP_200_OK,
    summary="Refresh access token",
    description="Generate new access token using refresh token",
    responses=get_auth_error_responses()
)
async def refresh_token(
    refresh_data: RefreshTokenRequest,
    auth_service: AuthService = Depends(get_auth_service)
) -> AccessTokenResponse:
    """
    Create new access token from refresh token.

    Raises:
        InvalidTokenError: If refresh token is invalid
        TokenExpiredError: If refresh token is expired
        InactiveUserError: If user account is inactive
    """
    try:
        access_token = await auth_service.refresh_access_token(
            refresh_token=refresh_data.refresh_token
        )

        return AccessTokenResponse(
            access_token=access_token,
            token_type="bearer",
            expires_in=settings.access_token_expire_minutes * 60
        )
    except APIException:
        raise
    except Exception:
        raise InvalidTokenError("Failed to refresh token")


@router.get(
    "/me",
    response_model=CurrentUserResponse,
    status_code=status.HTTP_200_OK,
    summary="Get current user",
    description="Current session: the signed-in user with settings and permissions",
    responses=get_auth_error_responses()
)
async def get_current_user_info(
    current_user: User = Depends(get_current_active_user)
) -> CurrentUserResponse:
    return CurrentUserResponse.from_user_dict(current_user.to_dict())


@router.post(
    "/validate",
    response_model=TokenValidationResponse,
    status_code=status.HTTP_200_OK,
    summary="Validate token",
    description="Validate JWT token and return token information"
)
async def validate_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> TokenValidationResponse:
    if not credentials:
        return TokenValidationResponse(valid=False)

    result = await auth_service.validate_token(credentials.credentials)
    return TokenValidationResponse(**result)


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="User logout",
    description="Sign out and deactivate this device's push token"
)
async def logout(
    logout_data: Optional[LogoutRequest] = None,
    current_user: User = Depends(get_current_active_user),
    auth_service: AuthService = Depends(get_auth_service)
) -> None:
    """
    Logout user.

    Tokens are stateless and discarded client-side. When the device sends its
    push token it stops receiving push notifications for this account.
    """
    device_token = logout_data.device_token if logout_data else None
    await auth_service.logout(current_user, device_token)
