"""
User model with authentication, role management and personal settings.
Handles landlord, renter and administrator accounts.
"""

from sqlalchemy import String, Boolean, Float, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column
from rental_api.database import Base
from rental_api.utils.auth import pwd_context
from rental_api.utils.timeutils import isoformat
from rental_api.utils.validators import ValidationUtils
import enum
import uuid
from typing import Optional


class UserRole(str, enum.Enum):
    """User role enumeration for role-based access control."""
    LANDLORD = "landlord"
    RENTER = "renter"
    ADMIN = "admin"


class ThemePreference(str, enum.Enum):
    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"


SUPPORTED_LOCALES = ("en", "ar")


class User(Base):
    """
    User model for authentication and authorization.
    Landlords list properties, renters request and rent them, admins verify listings.
    """

    __tablename__ = "users"

    # User identification and authentication
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
        comment="User email address - must be unique and valid"
    )

    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Bcrypt hashed password"
    )

    # User profile information
    full_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="User's full name"
    )

    phone: Mapped[Optional[str]] = mapped_column(
        String(32),
        nullable=True,
        comment="Profile phone number"
    )

    avatar_url: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True
    )

    # Role and status
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole),
        nullable=False,
        default=UserRole.RENTER,
        index=True,
        comment="User role for access control"
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        index=True,
        comment="Whether the user account is active"
    )

    # Client settings persisted server-side
    locale: Mapped[str] = mapped_column(String(8), nullable=False, default="en")

    theme: Mapped[ThemePreference] = mapped_column(
        SQLEnum(ThemePreference),
        nullable=False,
        default=ThemePreference.SYSTEM
    )

    text_size: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)

    def __repr__(self) -> str:
        """String representation of the user."""
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"

    @classmethod
    def validate_email_format(cls, email: str) -> str:
        """
        Validate email format using email-validator.

        Args:
            email: Email address to validate

        Returns:
            Normalized email address

        Raises:
            ValueError: If email format is invalid
        """
        return ValidationUtils.normalize_email(email)

    @classmethod
    def hash_password(cls, password: str) -> str:
        """
        Hash a password using bcrypt.

        Args:
            password: Plain text password

        Returns:
            Hashed password string
        """
        if not password or len(password) < 8:
            raise ValueError("Password must be at least 8 characters long")

        return pwd_context.hash(password)

    def verify_password(self, password: str) -> bool:
        """Verify a password against the stored hash."""
        return pwd_context.verify(password, self.hashed_password)

    def set_password(self, password: str) -> None:
        self.hashed_password = self.hash_password(password)

    @property
    def is_admin(self) -> bool:
        """Check if user has admin role."""
        return self.role == UserRole.ADMIN

    @property
    def is_landlord(self) -> bool:
        return self.role == UserRole.LANDLORD

    @property
    def is_renter(self) -> bool:
        return self.role == UserRole.RENTER

    def can_manage_property(self, property_owner_id: uuid.UUID) -> bool:
        """
        Check if user can manage a specific property.

        Args:
            property_owner_id: UUID of the property's landlord

        Returns:
            True if user can manage the property, False otherwise
        """
        if self.is_admin:
            return True

        return self.id == property_owner_id

    def settings_dict(self) -> dict:
        return {
            "locale": self.locale,
            "theme": self.theme.value,
            "text_size": self.text_size,
        }

    def to_dict(self) -> dict:
        """
        Convert user to dictionary (excluding sensitive data).

        Returns:
            Dictionary representation of user
        """
        return {
            "id": str(self.id),
            "email": self.email,
            "full_name": self.full_name,
            "phone": self.phone,
            "avatar_url": self.avatar_url,
            "role": self.role.value,
            "is_active": self.is_active,
            "settings": self.settings_dict(),
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
