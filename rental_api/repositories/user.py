"""
User repository for authentication and account management operations.
Handles credential checks, profile updates and admin user listings.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, func, desc
from rental_api.repositories.base import BaseRepository
from rental_api.models.user import User, UserRole
from typing import Optional, List, Dict, Any, Tuple
import uuid
import logging

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    """
    Repository for user management with authentication support.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(User, db)

    async def create_user(self, user_data: Dict[str, Any]) -> User:
        """
        Create a new user with email normalisation and password hashing.

        Args:
            user_data: Dictionary containing user information
                      Must include: email, password, full_name, role
                      Optional: phone

        Returns:
            Created user instance

        Raises:
            ValueError: If the email is invalid, taken, or the password too short
        """
        try:
            email = User.validate_email_format(user_data["email"])

            existing_user = await self.get_by_email(email)
            if existing_user:
                raise ValueError(f"User with email {email} already exists")

            data = dict(user_data)
            hashed_password = User.hash_password(data.pop("password"))

            create_data = {
                **data,
                "email": email,
                "hashed_password": hashed_password,
                "is_active": data.get("is_active", True),
            }

            created_user = await self.create(create_data)
            logger.info(f"Created user: {created_user.email} (ID: {created_user.id})")
            return created_user
        except ValueError as e:
            logger.error(f"User validation failed: {e}")
            raise

    async def get_by_email(self, email: str) -> Optional[User]:
        """
        Get user by email address.

        Args:
            email: Email address to search for

        Returns:
            User instance if found, None otherwise
        """
        try:
            normalized_email = email.lower().strip()
            result = await self.db.execute(select(User).where(User.email == normalized_email))
            user = result.scalar_one_or_none()

            if user:
                logger.debug(f"Retrieved user by email: {email}")
            else:
                logger.debug(f"User with email {email} not found")

            return user
        except Exception as e:
            logger.error(f"Failed to get user by email {email}: {e}")
            raise

    async def authenticate_user(self, email: str, password: str) -> Optional[User]:
        """
        Authenticate user with email and password.

        Inactive users are returned as well; the caller decides how to reject them.

        Args:
            email: User's email address
            password: Plain text password

        Returns:
            User instance if the credentials match, None otherwise
        """
        try:
            user = await self.get_by_email(email)

            if not user:
                logger.debug(f"Authentication failed: user {email} not found")
                return None

            if not user.verify_password(password):
                logger.debug(f"Authentication failed: invalid password for {email}")
                return None

            logger.info(f"User authenticated successfully: {email}")
            return user
        except Exception as e:
            logger.error(f"Failed to authenticate user {email}: {e}")
            raise

    async def update_password(self, user_id: uuid.UUID, new_password: str) -> Optional[User]:
        """
        Update user's password with proper hashing.

        Args:
            user_id: UUID of the user
            new_password: New plain text password

        Returns:
            Updated user instance or None if not found

        Raises:
            ValueError: If password validation fails
        """
        hashed_password = User.hash_password(new_password)
        updated_user = await self.update(user_id, {"hashed_password": hashed_password})

        if updated_user:
            logger.info(f"Password updated for user: {updated_user.email}")

        return updated_user

    async def update_user_status(self, user_id: uuid.UUID, is_active: bool) -> Optional[User]:
        """
        Update user's active status.

        Args:
            user_id: UUID of the user
            is_active: New active status

        Returns:
            Updated user instance or None if not found
        """
        updated_user = await self.update(user_id, {"is_active": is_active})

        if updated_user:
            status = "activated" if is_active else "deactivated"
            logger.info(f"User {updated_user.email} {status}")

        return updated_user

    async def list_users(
        self,
        role: Optional[UserRole] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 50
    ) -> Tuple[List[User], int]:
        """
        List users for the admin console with optional role, status and text filters.

        Args:
            role: Optional role filter
            is_active: Optional status filter
            search: Optional term matched against email and full name
            skip: Number of records to skip
            limit: Maximum number of records to return

        Returns:
            Tuple of (users list, total count)
        """
        try:
            conditions = []
            if role is not None:
                conditions.append(User.role == role)
            if is_active is not None:
                conditions.append(User.is_active == is_active)
            if search:
                pattern = f"%{search.strip()}%"
                conditions.append(User.email.ilike(pattern) | User.full_name.ilike(pattern))

            query = select(User)
            count_query = select(func.count(User.id))
            if conditions:
                query = query.where(and_(*conditions))
                count_query = count_query.where(and_(*conditions))

            total_count = (await self.db.execute(count_query)).scalar() or 0

            query = query.order_by(desc(User.created_at)).offset(skip).limit(limit)
            result = await self.db.execute(query)
            users = result.scalars().all()

            logger.debug(f"Retrieved {len(users)} users (role={role}, active={is_active})")
            return list(users), total_count
        except Exception as e:
            logger.error(f"Failed to list users: {e}")
            raise

    async def get_users_by_ids(self, user_ids: List[uuid.UUID]) -> Dict[uuid.UUID, User]:
        """Load several users at once, keyed by id."""
        if not user_ids:
            return {}
        result = await self.db.execute(select(User).where(User.id.in_(set(user_ids))))
        return {user.id: user for user in result.scalars().all()}
