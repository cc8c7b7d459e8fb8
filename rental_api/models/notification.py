"""
Notification models: in-app notifications, per-user delivery preferences,
registered push tokens and the per-channel delivery log.
"""

from sqlalchemy import (
    String, Text, Boolean, Integer, DateTime, JSON, Enum as SQLEnum, ForeignKey, Uuid, Index
)
from sqlalchemy.orm import Mapped, mapped_column
from rental_api.database import Base
from rental_api.utils.timeutils import isoformat
from datetime import datetime
import enum
import uuid
from typing import Any, Dict, Optional


class NotificationCategory(str, enum.Enum):
    """Preference categories a user can switch on and off."""
    PAYMENTS = "payments"
    LEASE = "lease"
    MAINTENANCE = "maintenance"
    APPLICATIONS = "applications"
    MESSAGES = "messages"


class NotificationChannel(str, enum.Enum):
    """Out-of-app delivery channels. The in-app record is always written."""
    PUSH = "push"
    EMAIL = "email"
    SMS = "sms"


class NotificationPriority(str, enum.Enum):
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


class DigestFrequency(str, enum.Enum):
    IMMEDIATE = "immediate"
    DAILY = "daily"
    WEEKLY = "weekly"


class NotificationType(str, enum.Enum):
    PAYMENT_REMINDER = "payment_reminder"
    PAYMENT_RECEIVED = "payment_received"
    PAYMENT_OVERDUE = "payment_overdue"
    CHARGE_CREATED = "charge_created"
    LEASE_REMINDER = "lease_reminder"
    CONTRACT_UPDATE = "contract_update"
    MAINTENANCE_UPDATE = "maintenance_update"
    RENT_REQUEST_CREATED = "rent_request_created"
    RENT_ACCEPTED = "rent_accepted"
    RENT_REJECTED = "rent_rejected"
    APPLICATION_SUBMITTED = "application_submitted"
    APPLICATION_UPDATE = "application_update"
    PROPERTY_VERIFICATION = "property_verification"
    VIEWING_REQUEST_CREATED = "viewing_request_created"
    VIEWING_REQUEST_CONFIRMED = "viewing_request_confirmed"
    VIEWING_REQUEST_REJECTED = "viewing_request_rejected"
    VIEWING_REQUEST_CANCELLED = "viewing_request_cancelled"
    VIEWING_REQUEST_COMPLETED = "viewing_request_completed"
    NEW_MESSAGE = "new_message"
    GENERAL = "general"


CATEGORY_BY_TYPE: Dict[NotificationType, Optional[NotificationCategory]] = {
    NotificationType.PAYMENT_REMINDER: NotificationCategory.PAYMENTS,
    NotificationType.PAYMENT_RECEIVED: NotificationCategory.PAYMENTS,
    NotificationType.PAYMENT_OVERDUE: NotificationCategory.PAYMENTS,
    NotificationType.CHARGE_CREATED: NotificationCategory.PAYMENTS,
    NotificationType.LEASE_REMINDER: NotificationCategory.LEASE,
    NotificationType.CONTRACT_UPDATE: NotificationCategory.LEASE,
    NotificationType.MAINTENANCE_UPDATE: NotificationCategory.MAINTENANCE,
    NotificationType.RENT_REQUEST_CREATED: NotificationCategory.APPLICATIONS,
    NotificationType.RENT_ACCEPTED: NotificationCategory.APPLICATIONS,
    NotificationType.RENT_REJECTED: NotificationCategory.APPLICATIONS,
    NotificationType.APPLICATION_SUBMITTED: NotificationCategory.APPLICATIONS,
    NotificationType.APPLICATION_UPDATE: NotificationCategory.APPLICATIONS,
    NotificationType.PROPERTY_VERIFICATION: NotificationCategory.APPLICATIONS,
    NotificationType.VIEWING_REQUEST_CREATED: NotificationCategory.APPLICATIONS,
    NotificationType.VIEWING_REQUEST_CONFIRMED: NotificationCategory.APPLICATIONS,
    NotificationType.VIEWING_REQUEST_REJECTED: NotificationCategory.APPLICATIONS,
    NotificationType.VIEWING_REQUEST_CANCELLED: NotificationCategory.APPLICATIONS,
    NotificationType.VIEWING_REQUEST_COMPLETED: NotificationCategory.APPLICATIONS,
    NotificationType.NEW_MESSAGE: NotificationCategory.MESSAGES,
    NotificationType.GENERAL: None,
}


def category_for(notification_type: NotificationType) -> Optional[NotificationCategory]:
    """Preference category of a notification type; None means in-app only."""
    return CATEGORY_BY_TYPE.get(notification_type)


def default_category_settings() -> Dict[str, Dict[str, bool]]:
    """Every category enabled on every channel."""
    return {
        category.value: {
            "enabled": True,
            **{channel.value: True for channel in NotificationChannel},
        }
        for category in NotificationCategory
    }


class DeliveryStatus(str, enum.Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"
    DEFERRED = "deferred"
    DIGEST = "digest"


class Notification(Base):
    """In-app notification polled by the client."""

    __tablename__ = "notifications"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    type: Mapped[NotificationType] = mapped_column(SQLEnum(NotificationType), nullable=False)
    category: Mapped[Optional[NotificationCategory]] = mapped_column(SQLEnum(NotificationCategory), nullable=True)
    priority: Mapped[NotificationPriority] = mapped_column(
        SQLEnum(NotificationPriority),
        nullable=False,
        default=NotificationPriority.NORMAL
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "is_read"),
        Index("ix_notifications_user_created", "user_id", "created_at"),
    )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "type": self.type.value,
            "category": self.category.value if self.category else None,
            "priority": self.priority.value,
            "title": self.title,
            "message": self.message,
            "data": dict(self.data or {}),
            "read": self.is_read,
            "read_at": isoformat(self.read_at),
            "created_at": isoformat(self.created_at),
        }


class NotificationPreferences(Base):
    """Per-user routing preferences and contact details."""

    __tablename__ = "notification_preferences"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True
    )

    push_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    email_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sms_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # {category: {"enabled": bool, "push": bool, "email": bool, "sms": bool}}
    category_settings: Mapped[Dict[str, Dict[str, bool]]] = mapped_column(
        JSON,
        nullable=False,
        default=default_category_settings
    )

    quiet_hours_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    quiet_hours_start: Mapped[int] = mapped_column(Integer, nullable=False, default=22)
    quiet_hours_end: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")

    email_digest_frequency: Mapped[DigestFrequency] = mapped_column(
        SQLEnum(DigestFrequency),
        nullable=False,
        default=DigestFrequency.IMMEDIATE,
        index=True
    )

    email_address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    def channel_enabled(self, channel: NotificationChannel) -> bool:
        return {
            NotificationChannel.PUSH: self.push_enabled,
            NotificationChannel.EMAIL: self.email_enabled,
            NotificationChannel.SMS: self.sms_enabled,
        }[channel]

    def to_dict(self) -> dict:
        settings = default_category_settings()
        for category, values in (self.category_settings or {}).items():
            settings.setdefault(category, {}).update(values)
        return {
            "user_id": str(self.user_id),
            "push": self.push_enabled,
            "email": self.email_enabled,
            "sms": self.sms_enabled,
            "categories": settings,
            "quiet_hours_enabled": self.quiet_hours_enabled,
            "quiet_hours_start": self.quiet_hours_start,
            "quiet_hours_end": self.quiet_hours_end,
            "timezone": self.timezone,
            "email_digest_frequency": self.email_digest_frequency.value,
            "email_address": self.email_address,
            "phone_number": self.phone_number,
            "updated_at": isoformat(self.updated_at),
        }


class DeviceToken(Base):
    """Expo push token registered by a mobile client."""

    __tablename__ = "device_tokens"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    token: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    platform: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_seen_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "token": self.token,
            "platform": self.platform,
            "is_active": self.is_active,
            "last_seen_at": isoformat(self.last_seen_at),
        }


class NotificationDelivery(Base):
    """Outcome of routing one notification to one channel."""

    __tablename__ = "notification_deliveries"

    notification_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("notifications.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    channel: Mapped[NotificationChannel] = mapped_column(SQLEnum(NotificationChannel), nullable=False)
    status: Mapped[DeliveryStatus] = mapped_column(SQLEnum(DeliveryStatus), nullable=False, index=True)
    reason: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    deliver_after: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_notification_deliveries_status_channel", "status", "channel"),
    )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "notification_id": str(self.notification_id),
            "channel": self.channel.value,
            "status": self.status.value,
            "reason": self.reason,
            "deliver_after": isoformat(self.deliver_after),
            "sent_at": isoformat(self.sent_at),
            "error": self.error,
        }
