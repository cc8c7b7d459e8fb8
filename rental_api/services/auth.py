"""
Authentication service for sign-up, sign-in, token management and account settings.
Registration provisions the user's notification preferences and client settings.
"""

from typing import Optional, Tuple, Dict, Any, List
from sqlalchemy.ext.asyncio import AsyncSession
from rental_api.repositories.user import UserRepository
from rental_api.models.user import User, UserRole, ThemePreference
from rental_api.schemas.user import UserCreate, UserUpdate, UserSettingsUpdate
from rental_api.services.channels import ChannelDispatcher
from rental_api.services.notification import NotificationService
from rental_api.utils.auth import (
    create_access_token,
    create_refresh_token,
    verify_token,
)
from rental_api.utils.exceptions import (
    APIException,
    InvalidCredentialsError,
    InvalidTokenError,
    TokenExpiredError,
    InactiveUserError,
    NotFoundError,
    ForbiddenError,
    ValidationError,
    BadRequestError,
    DuplicateResourceError,
    InsufficientPermissionsError
)
from jose import JWTError, ExpiredSignatureError
import uuid
import logging

logger = logging.getLogger(__name__)


class AuthService:
    """
    Authentication service for managing accounts, sessions and role-based access.
    """

    def __init__(self, db_session: AsyncSession, dispatcher: Optional[ChannelDispatcher] = None):
        self.db = db_session
        self.user_repo = UserRepository(db_session)
        self.notifications = NotificationService(db_session, dispatcher)

    async def register(self, user_data: UserCreate) -> User:
        """
        Create a landlord or renter account and provision its profile defaults.

        Args:
            user_data: Registration data

        Returns:
            Created user

        Raises:
            DuplicateResourceError: If the email is already registered
            ValidationError: If the data breaks account rules
        """
        try:
            if user_data.role == UserRole.ADMIN:
                raise ForbiddenError("Administrator accounts cannot be self-registered")

            existing = await self.user_repo.get_by_email(user_data.email)
            if existing:
                raise DuplicateResourceError("User", user_data.email)

            create_data = user_data.model_dump()
            create_data.update({"locale": "en", "theme": ThemePreference.SYSTEM, "text_size": 1.0})
            try:
                user = await self.user_repo.create_user(create_data)
            except ValueError as e:
                raise ValidationError(str(e))

            await self.notifications.provision_defaults(user)

            logger.info(f"Registered {user.role.value} account: {user.email} (ID: {user.id})")
            return user
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to register {user_data.email}: {e}")
            raise BadRequestError(f"Failed to register user: {str(e)}")

    async def authenticate_user(self, email: str, password: str) -> User:
        """
        Authenticate user with email and password.

        Raises:
            InvalidCredentialsError: If credentials are invalid
            InactiveUserError: If user account is inactive
        """
        try:
            if not email or not email.strip():
                raise ValidationError("Email is required")
            if not password:
                raise ValidationError("Password is required")

            user = await self.user_repo.authenticate_user(email.lower().strip(), password)

            if not user:
                logger.warning(f"Failed authentication attempt for email: {email}")
                raise InvalidCredentialsError()

            if not user.is_active:
                logger.warning(f"Inactive account tried to sign in: {email}")
                raise InactiveUserError()

            return user
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Authentication error for {email}: {e}")
            raise InvalidCredentialsError()

    def create_tokens(self, user: User) -> Tuple[str, str]:
        """
        Create access and refresh tokens for user.

        Returns:
            Tuple of (access_token, refresh_token)
        """
        access_token = create_access_token(user_id=user.id, email=user.email, role=user.role)
        refresh_token = create_refresh_token(user_id=user.id, email=user.email)
        return access_token, refresh_token

    async def login(self, email: str, password: str) -> Tuple[User, str, str]:
        """
        Authenticate user and create tokens.

        Returns:
            Tuple of (user, access_token, refresh_token)
        """
        user = await self.authenticate_user(email, password)
        access_token, refresh_token = self.create_tokens(user)
        logger.info(f"User signed in: {user.email}")
        return user, access_token, refresh_token

    async def refresh_access_token(self, refresh_token: str) -> str:
        """
        Create new access token from refresh token.

        Raises:
            InvalidTokenError: If refresh token is invalid
            TokenExpiredError: If refresh token is expired
            InactiveUserError: If user account is inactive
        """
        try:
            token_payload = verify_token(refresh_token, token_type="refresh")
        except ExpiredSignatureError:
            raise TokenExpiredError()
        except JWTError as e:
            raise InvalidTokenError(str(e))

        user = await self._user_from_subject(token_payload.user_id)
        if not user.is_active:
            raise InactiveUserError()

        return create_access_token(user_id=user.id, email=user.email, role=user.role)

    async def get_current_user(self, token: str) -> User:
        """
        Resolve the user behind an access token.

        Raises:
            InvalidTokenError: If token is invalid or its user no longer exists
            TokenExpiredError: If token is expired
        """
        try:
            token_payload = verify_token(token, token_type="access")
        except ExpiredSignatureError:
            raise TokenExpiredError()
        except JWTError as e:
            raise InvalidTokenError(str(e))

        return await self._user_from_subject(token_payload.user_id)

    async def validate_token(self, token: str) -> Dict[str, Any]:
        """Report whether an access token is valid without raising."""
        try:
            token_payload = verify_token(token, token_type="access")
            user = await self._user_from_subject(token_payload.user_id)
        except (JWTError, APIException):
            return {"valid": False}

        return {
            "valid": user.is_active,
            "user_id": str(user.id),
            "email": user.email,
            "role": user.role,
            "expires_at": token_payload.exp,
        }

    async def logout(self, user: User, device_token: Optional[str] = None) -> None:
        """
        Sign out. Tokens are stateless, so only the device's push token is revoked.
        """
        if device_token:
            await self.notifications.unregister_device_token(user, device_token)
        logger.info(f"User signed out: {user.email}")

    async def _user_from_subject(self, subject: str) -> User:
        try:
            user_id = uuid.UUID(subject)
        except ValueError:
            raise InvalidTokenError("Invalid token subject")

        user = await self.user_repo.get_by_id(user_id)
        if not user:
            raise InvalidTokenError("User no longer exists")
        return user

    async def get_user_by_id(self, user_id: uuid.UUID) -> User:
        """
        Get user by ID.

        Raises:
            NotFoundError: If user not found
        """
        user = await self.user_repo.get_by_id(user_id)
        if not user:
            raise NotFoundError("User", str(user_id))
        return user

    async def update_profile(self, user: User, profile_data: UserUpdate) -> User:
        """
        Update profile metadata (name, phone, avatar).

        Args:
            user: Current user
            profile_data: Fields to change; omitted fields are left as they are

        Returns:
            Updated user
        """
        try:
            update_data = profile_data.model_dump(exclude_unset=True)
            update_data = {k: v for k, v in update_data.items() if v is not None}
            if not update_data:
                raise ValidationError("No valid fields provided for update")

            user_id = user.id
            for field, value in update_data.items():
                setattr(user, field, value)
            user = await self.user_repo.save(user)

            # Keep the SMS contact in step with the profile when none was set separately
            if "phone" in update_data:
                preferences = await self.notifications.get_or_create_preferences(user_id)
                if not preferences.phone_number:
                    await self.notifications.update_contacts(user, phone_number=update_data["phone"])

            logger.info(f"Profile updated for user {user_id}: {sorted(update_data)}")
            return user
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to update profile for user {user.id}: {e}")
            raise BadRequestError(f"Failed to update profile: {str(e)}")

    async def change_password(self, user: User, current_password: str, new_password: str) -> User:
        """
        Change the current user's password.

        Raises:
            InvalidCredentialsError: If current password is incorrect
            ValidationError: If the new password is too short or unchanged
        """
        if not user.verify_password(current_password):
            raise InvalidCredentialsError("Current password is incorrect")

        if not new_password or len(new_password) < 8:
            raise ValidationError("New password must be at least 8 characters long")

        if current_password == new_password:
            raise ValidationError("New password must differ from the current password")

        updated_user = await self.user_repo.update_password(user.id, new_password)
        if not updated_user:
            raise NotFoundError("User", str(user.id))

        logger.info(f"Password changed for user: {user.id}")
        return updated_user

    async def update_settings(self, user: User, settings_data: UserSettingsUpdate) -> User:
        """Persist locale, theme and text size."""
        changes = settings_data.model_dump(exclude_none=True)
        if not changes:
            raise ValidationError("No valid fields provided for update")

        for field, value in changes.items():
            setattr(user, field, value)
        user = await self.user_repo.save(user)
        logger.info(f"Settings updated for user {user.id}: {sorted(changes)}")
        return user

    async def list_users(
        self,
        current_user: User,
        role: Optional[UserRole] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[User], int]:
        if not current_user.is_admin:
            raise InsufficientPermissionsError("list users")
        skip = (page - 1) * page_size
        return await self.user_repo.list_users(role=role, is_active=is_active, search=search, skip=skip, limit=page_size)

    async def update_user_status(self, user_id: uuid.UUID, is_active: bool, current_user: User) -> User:
        """
        Activate or deactivate an account.

        Raises:
            InsufficientPermissionsError: If the caller is not an admin
            ForbiddenError: If an admin tries to deactivate themselves
            NotFoundError: If the user doesn't exist
        """
        if not current_user.is_admin:
            raise InsufficientPermissionsError("update user status")

        if user_id == current_user.id and not is_active:
            raise ForbiddenError("Users cannot deactivate their own account")

        await self.get_user_by_id(user_id)
        updated_user = await self.user_repo.update_user_status(user_id, is_active)
        if not updated_user:
            raise NotFoundError("User", str(user_id))

        status_text = "activated" if is_active else "deactivated"
        logger.info(f"User {status_text} by {current_user.email}: {user_id}")
        return updated_user
