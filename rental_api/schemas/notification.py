"""
Schemas for in-app notifications, notification preferences and push tokens.
"""

from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from rental_api.models.notification import (
    NotificationType,
    NotificationCategory,
    NotificationChannel,
    NotificationPriority,
    DigestFrequency,
    DeliveryStatus,
)
from rental_api.schemas.common import PaginatedResponse
from rental_api.utils.validators import ValidationUtils


class NotificationResponse(BaseModel):
    id: str
    user_id: str
    type: NotificationType
    category: Optional[NotificationCategory] = None
    priority: NotificationPriority
    title: str
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)
    read: bool = Field(..., description="Whether the user has read the notification")
    read_at: Optional[datetime] = None
    created_at: datetime


class NotificationListResponse(PaginatedResponse):
    notifications: List[NotificationResponse]
    unread_count: int = Field(..., description="Unread notifications of the user", example=4)


class UnreadCountResponse(BaseModel):
    unread_count: int = Field(..., example=4)


class MarkAllReadResponse(BaseModel):
    updated: int = Field(..., description="Number of notifications marked read", example=4)


class DeliveryResponse(BaseModel):
    id: str
    notification_id: str
    channel: NotificationChannel
    status: DeliveryStatus
    reason: Optional[str] = None
    deliver_after: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    error: Optional[str] = None


class CategorySettings(BaseModel):
    enabled: bool = True
    push: bool = True
    email: bool = True
    sms: bool = True


class NotificationPreferencesResponse(BaseModel):
    user_id: str
    push: bool
    email: bool
    sms: bool
    categories: Dict[NotificationCategory, CategorySettings]
    quiet_hours_enabled: bool
    quiet_hours_start: int
    quiet_hours_end: int
    timezone: str
    email_digest_frequency: DigestFrequency
    email_address: Optional[str] = None
    phone_number: Optional[str] = None
    updated_at: datetime


class NotificationPreferencesUpdate(BaseModel):
    """Global switches, quiet hours, timezone and digest frequency. Omitted fields are left unchanged."""

    push: Optional[bool] = Field(None, description="Global push switch")
    email: Optional[bool] = Field(None, description="Global email switch")
    sms: Optional[bool] = Field(None, description="Global SMS switch")
    quiet_hours_enabled: Optional[bool] = None
    quiet_hours_start: Optional[int] = Field(None, ge=0, le=23, example=22)
    quiet_hours_end: Optional[int] = Field(None, ge=0, le=23, example=7)
    timezone: Optional[str] = Field(None, description="IANA time zone name", example="Asia/Amman")
    email_digest_frequency: Optional[DigestFrequency] = Field(None, example="daily")

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v):
        if v is not None:
            return ValidationUtils.validate_timezone_name(v)
        return v

    def to_preference_fields(self) -> Dict[str, Any]:
        data = self.model_dump(exclude_none=True)
        for channel in NotificationChannel:
            if channel.value in data:
                data[f"{channel.value}_enabled"] = data.pop(channel.value)
        return data


class CategorySettingUpdate(BaseModel):
    """One cell of the category matrix."""

    key: str = Field(..., description="'enabled' or a channel name (push, email, sms)", example="sms")
    value: bool = Field(..., example=False)


class ContactsUpdate(BaseModel):
    email_address: Optional[EmailStr] = Field(None, example="lina@example.com")
    phone_number: Optional[str] = Field(None, description="Send an empty string to remove", example="+962791234567")

    @field_validator('email_address')
    @classmethod
    def normalize_email(cls, v):
        return v.lower().strip() if v else v

    @field_validator('phone_number')
    @classmethod
    def validate_phone(cls, v):
        if v is None or v == "":
            return v
        return ValidationUtils.normalize_phone_number(v, "phone_number")


class DeviceTokenRegister(BaseModel):
    token: str = Field(..., min_length=10, max_length=255, example="ExponentPushToken[xxxxxxxxxxxxxxxxxxxxxx]")
    platform: Optional[str] = Field(None, example="ios")

    @field_validator('token')
    @classmethod
    def validate_token(cls, v):
        v = v.strip()
        if not (v.startswith("ExponentPushToken[") or v.startswith("ExpoPushToken[")) or not v.endswith("]"):
            raise ValueError("Token must be an Expo push token")
        return v

    @field_validator('platform')
    @classmethod
    def validate_platform(cls, v):
        if v is not None and v.lower() not in ("ios", "android", "web"):
            raise ValueError("Platform must be ios, android or web")
        return v.lower() if v else v


class DeviceTokenResponse(BaseModel):
    id: str
    token: str
    platform: Optional[str] = None
    is_active: bool
    last_seen_at: Optional[datetime] = None
