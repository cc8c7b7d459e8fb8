"""
Pydantic schemas for user requests and responses.
Handles registration, profile and settings updates, and admin user listings.
"""

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime
from rental_api.models.user import UserRole, ThemePreference, SUPPORTED_LOCALES
from rental_api.schemas.common import PaginatedResponse
from rental_api.utils.validators import ValidationUtils


class UserSettings(BaseModel):
    """Client settings persisted with the account."""

    locale: str = Field(
        "en",
        description="Interface language",
        example="ar"
    )

    theme: ThemePreference = Field(
        ThemePreference.SYSTEM,
        description="Colour scheme",
        example="dark"
    )

    text_size: float = Field(
        1.0,
        ge=0.8,
        le=1.6,
        description="Text scale factor",
        example=1.2
    )

    @field_validator('locale')
    @classmethod
    def validate_locale(cls, v):
        if v not in SUPPORTED_LOCALES:
            raise ValueError(f"Locale must be one of: {', '.join(SUPPORTED_LOCALES)}")
        return v


class UserSettingsUpdate(BaseModel):
    """Partial settings update."""

    locale: Optional[str] = Field(None, description="Interface language", example="en")
    theme: Optional[ThemePreference] = Field(None, description="Colour scheme", example="light")
    text_size: Optional[float] = Field(None, ge=0.8, le=1.6, description="Text scale factor", example=1.0)

    @field_validator('locale')
    @classmethod
    def validate_locale(cls, v):
        if v is not None and v not in SUPPORTED_LOCALES:
            raise ValueError(f"Locale must be one of: {', '.join(SUPPORTED_LOCALES)}")
        return v


class UserCreate(BaseModel):
    """Schema for registering a new account."""

    email: EmailStr = Field(
        ...,
        description="User's email address",
        example="renter@example.com"
    )

    password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        description="User's password (minimum 8 characters)",
        example="securepassword123"
    )

    full_name: str = Field(
        ...,
        min_length=2,
        max_length=255,
        description="User's full name",
        example="Lina Haddad"
    )

    role: UserRole = Field(
        ...,
        description="Account role: landlord or renter",
        example="renter"
    )

    phone: Optional[str] = Field(
        None,
        description="Phone number in international format",
        example="+962791234567"
    )

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        """Normalize email to lowercase."""
        return v.lower().strip()

    @field_validator('full_name')
    @classmethod
    def validate_full_name(cls, v):
        return ValidationUtils.clean_text(v, "Full name")

    @field_validator('role')
    @classmethod
    def validate_role(cls, v):
        """Only landlords and renters can self-register."""
        if v not in (UserRole.LANDLORD, UserRole.RENTER):
            raise ValueError("Role must be landlord or renter")
        return v

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        if v is None or not v.strip():
            return None
        return ValidationUtils.normalize_phone_number(v)


class UserUpdate(BaseModel):
    """Schema for updating profile metadata."""

    full_name: Optional[str] = Field(
        None,
        min_length=2,
        max_length=255,
        description="User's full name"
    )

    phone: Optional[str] = Field(
        None,
        description="Phone number in international format"
    )

    avatar_url: Optional[str] = Field(
        None,
        max_length=500,
        description="Profile picture URL"
    )

    @field_validator('full_name')
    @classmethod
    def validate_full_name(cls, v):
        if v is not None:
            return ValidationUtils.clean_text(v, "Full name")
        return v

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        if v is not None:
            return ValidationUtils.normalize_phone_number(v)
        return v


class UserResponse(BaseModel):
    """User response schema (excluding sensitive data)."""

    id: str = Field(
        ...,
        description="User's unique identifier",
        example="123e4567-e89b-12d3-a456-426614174000"
    )

    email: EmailStr = Field(
        ...,
        description="User's email address",
        example="renter@example.com"
    )

    full_name: str = Field(
        ...,
        description="User's full name",
        example="Lina Haddad"
    )

    phone: Optional[str] = Field(None, description="Phone number")
    avatar_url: Optional[str] = Field(None, description="Profile picture URL")

    role: UserRole = Field(
        ...,
        description="User's role",
        example="renter"
    )

    is_active: bool = Field(
        ...,
        description="Whether the user account is active",
        example=True
    )

    settings: UserSettings = Field(
        default_factory=UserSettings,
        description="Locale, theme and text size"
    )

    created_at: datetime = Field(
        ...,
        description="Account creation timestamp",
        example="2024-01-01T00:00:00Z"
    )

    updated_at: datetime = Field(
        ...,
        description="Last update timestamp",
        example="2024-01-01T00:00:00Z"
    )


class UserListResponse(PaginatedResponse):
    """Schema for paginated user list response."""

    users: List[UserResponse] = Field(
        ...,
        description="List of users"
    )


class UserStatusUpdate(BaseModel):
    """Admin switch for account status."""

    is_active: bool = Field(..., description="Whether the account may sign in", example=False)


class PasswordChangeRequest(BaseModel):
    """Schema for password change request."""

    current_password: str = Field(
        ...,
        min_length=1,
        max_length=128,
        description="Current password",
        example="currentpassword123"
    )

    new_password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        description="New password (minimum 8 characters)",
        example="newpassword123"
    )

    confirm_password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        description="Confirm new password",
        example="newpassword123"
    )

    @model_validator(mode='after')
    def passwords_match(self):
        """Validate that passwords match."""
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self
