"""
FastAPI dependency injection utilities for authentication, database sessions
and service construction. Provides reusable dependencies for route protection.
"""

from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from rental_api.database import get_db
from rental_api.models.user import User, UserRole
from rental_api.services.auth import AuthService
from rental_api.services.property import PropertyService
from rental_api.services.rent_request import RentRequestService
from rental_api.services.application import ApplicationService
from rental_api.services.viewing import ViewingService
from rental_api.services.contract import ContractService
from rental_api.services.transaction import TransactionService
from rental_api.services.maintenance import MaintenanceService
from rental_api.services.message import MessageService
from rental_api.services.notification import NotificationService
from rental_api.services.channels import ChannelDispatcher, get_dispatcher
from rental_api.utils.exceptions import (
    APIException,
    UnauthorizedError,
    InactiveUserError,
    InsufficientPermissionsError
)


# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


def get_notification_dispatcher() -> ChannelDispatcher:
    """
    Channel dispatcher used for push, email and SMS delivery.

    Overridden in tests with a recording dispatcher.
    """
    return get_dispatcher()


async def get_auth_service(
    db: AsyncSession = Depends(get_db),
    dispatcher: ChannelDispatcher = Depends(get_notification_dispatcher)
) -> AuthService:
    """
    Get authentication service instance.

    Args:
        db: Database session
        dispatcher: Notification channel dispatcher

    Returns:
        AuthService instance
    """
    return AuthService(db, dispatcher)


async def get_property_service(
    db: AsyncSession = Depends(get_db),
    dispatcher: ChannelDispatcher = Depends(get_notification_dispatcher)
) -> PropertyService:
    return PropertyService(db, dispatcher)


async def get_rent_request_service(
    db: AsyncSession = Depends(get_db),
    dispatcher: ChannelDispatcher = Depends(get_notification_dispatcher)
) -> RentRequestService:
    return RentRequestService(db, dispatcher)


async def get_application_service(
    db: AsyncSession = Depends(get_db),
    dispatcher: ChannelDispatcher = Depends(get_notification_dispatcher)
) -> ApplicationService:
    return ApplicationService(db, dispatcher)


async def get_viewing_service(
    db: AsyncSession = Depends(get_db),
    dispatcher: ChannelDispatcher = Depends(get_notification_dispatcher)
) -> ViewingService:
    return ViewingService(db, dispatcher)


async def get_contract_service(
    db: AsyncSession = Depends(get_db),
    dispatcher: ChannelDispatcher = Depends(get_notification_dispatcher)
) -> ContractService:
    return ContractService(db, dispatcher)


async def get_transaction_service(
    db: AsyncSession = Depends(get_db),
    dispatcher: ChannelDispatcher = Depends(get_notification_dispatcher)
) -> TransactionService:
    return TransactionService(db, dispatcher)


async def get_maintenance_service(
    db: AsyncSession = Depends(get_db),
    dispatcher: ChannelDispatcher = Depends(get_notification_dispatcher)
) -> MaintenanceService:
    return MaintenanceService(db, dispatcher)


async def get_message_service(
    db: AsyncSession = Depends(get_db),
    dispatcher: ChannelDispatcher = Depends(get_notification_dispatcher)
) -> MessageService:
    return MessageService(db, dispatcher)


async def get_notification_service(
    db: AsyncSession = Depends(get_db),
    dispatcher: ChannelDispatcher = Depends(get_notification_dispatcher)
) -> NotificationService:
    return NotificationService(db, dispatcher)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> User:
    """
    Get current authenticated user from JWT token.

    Args:
        credentials: HTTP Bearer credentials
        auth_service: Authentication service

    Returns:
        Current User object

    Raises:
        UnauthorizedError: If no token provided or token is invalid
        TokenExpiredError: If token is expired
    """
    if not credentials:
        raise UnauthorizedError("Authentication token required")

    try:
        return await auth_service.get_current_user(credentials.credentials)
    except APIException:
        raise
    except Exception as e:
        raise UnauthorizedError(f"Authentication failed: {str(e)}")


async def get_current_active_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """
    Raises:
        InactiveUserError: If user account is inactive
    """
    if not current_user.is_active:
        raise InactiveUserError()

    return current_user


async def get_current_admin_user(
    current_user: User = Depends(get_current_active_user)
) -> User:
    if current_user.role != UserRole.ADMIN:
        raise InsufficientPermissionsError("access admin resources")

    return current_user


def require_role(required_role: UserRole):
    """
    Create a dependency that requires a specific user role.

    Args:
        required_role: Required user role

    Returns:
        Dependency function
    """
    async def role_dependency(
        current_user: User = Depends(get_current_active_user)
    ) -> User:
        if current_user.role != required_role:
            raise InsufficientPermissionsError(f"access {required_role.value} resources")
        return current_user

    return role_dependency


get_current_landlord = require_role(UserRole.LANDLORD)
get_current_renter = require_role(UserRole.RENTER)


# Optional authentication dependency (for public endpoints that can benefit from user context)
async def get_optional_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> Optional[User]:
    """
    Get current user if token is provided and valid, otherwise return None.
    """
    if not credentials:
        return None

    try:
        user = await auth_service.get_current_user(credentials.credentials)
        return user if user.is_active else None
    except APIException:
        return None
