"""
Pydantic schemas for authentication requests and responses.
Handles sign-up, sign-in, token refresh and session validation.
"""

from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List
from datetime import datetime
from rental_api.models.user import UserRole
from rental_api.schemas.user import UserResponse


ROLE_PERMISSIONS = {
    UserRole.ADMIN: [
        "verify_property",
        "update_any_property",
        "delete_any_property",
        "manage_users",
        "view_all_properties",
    ],
    UserRole.LANDLORD: [
        "create_property",
        "update_own_property",
        "delete_own_property",
        "manage_contracts",
        "record_charges",
        "manage_viewings",
    ],
    UserRole.RENTER: [
        "request_rent",
        "apply_to_property",
        "request_viewing",
        "sign_contract",
        "pay_charges",
        "request_maintenance",
    ],
}


class LoginRequest(BaseModel):
    """Login request schema."""

    email: EmailStr = Field(
        ...,
        description="User's email address",
        example="landlord@example.com"
    )
    password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        description="User's password (minimum 8 characters)",
        example="securepassword123"
    )

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        """Normalize email to lowercase."""
        return v.lower().strip()


class RefreshTokenRequest(BaseModel):
    """Refresh token request schema."""

    refresh_token: str = Field(
        ...,
        description="Valid refresh token",
        example="eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9..."
    )


class LogoutRequest(BaseModel):
    """Optional push token to deactivate when signing out of a device."""

    device_token: Optional[str] = Field(
        None,
        description="Expo push token registered by this device",
        example="ExponentPushToken[xxxxxxxxxxxxxxxxxxxxxx]"
    )


class AccessTokenResponse(BaseModel):
    """Access token response schema."""

    access_token: str = Field(
        ...,
        description="New JWT access token",
        example="eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9..."
    )
    token_type: str = Field(
        default="bearer",
        description="Token type",
        example="bearer"
    )
    expires_in: int = Field(
        ...,
        description="Access token expiration time in seconds",
        example=1800
    )


class CurrentUserResponse(UserResponse):
    """Current user response with role permissions."""

    permissions: List[str] = Field(
        default_factory=list,
        description="User's permissions based on role",
        example=["create_property", "update_own_property"]
    )

    @classmethod
    def from_user_dict(cls, data: dict) -> "CurrentUserResponse":
        role = UserRole(data["role"])
        return cls.model_validate({**data, "permissions": ROLE_PERMISSIONS.get(role, [])})


class LoginResponse(BaseModel):
    """Complete login response schema."""

    user: CurrentUserResponse = Field(
        ...,
        description="Authenticated user information"
    )
    access_token: str = Field(
        ...,
        description="JWT access token",
        example="eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9..."
    )
    refresh_token: str = Field(
        ...,
        description="JWT refresh token",
        example="eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9..."
    )
    token_type: str = Field(
        default="bearer",
        description="Token type",
        example="bearer"
    )
    expires_in: int = Field(
        ...,
        description="Access token expiration time in seconds",
        example=1800
    )


class TokenValidationResponse(BaseModel):
    """Token validation response schema."""

    valid: bool = Field(
        ...,
        description="Whether the token is valid",
        example=True
    )
    user_id: Optional[str] = Field(
        None,
        description="User ID if token is valid",
        example="123e4567-e89b-12d3-a456-426614174000"
    )
    email: Optional[EmailStr] = Field(
        None,
        description="User email if token is valid",
        example="landlord@example.com"
    )
    role: Optional[UserRole] = Field(
        None,
        description="User role if token is valid",
        example="landlord"
    )
    expires_at: Optional[datetime] = Field(
        None,
        description="Token expiration time",
        example="2024-01-01T01:00:00Z"
    )
