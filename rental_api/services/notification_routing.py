"""
Notification routing rules.

Decides, per out-of-app channel, what happens to a notification for a given
user: send now, hold until quiet hours end, queue for the email digest, or
skip. The checks run in a fixed order and the first one that applies wins:

1. category disabled
2. channel disabled for the category
3. channel disabled globally
4. quiet hours (push and SMS only, critical notifications bypass)
5. missing contact information
6. email digest queueing

This module holds no I/O; the notification service feeds it a snapshot of the
user's stored preferences.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional
import enum

import pytz

from rental_api.models.notification import (
    NotificationCategory,
    NotificationChannel,
    NotificationPriority,
    DigestFrequency,
    DeliveryStatus,
    default_category_settings,
)
from rental_api.utils.timeutils import ensure_utc


class RoutingOutcome(str, enum.Enum):
    SEND = "send"
    DEFER = "defer"
    DIGEST = "digest"
    SKIP = "skip"


class RoutingReason(str, enum.Enum):
    CATEGORY_DISABLED = "category_disabled"
    CHANNEL_DISABLED_FOR_CATEGORY = "channel_disabled_for_category"
    CHANNEL_DISABLED = "channel_disabled"
    QUIET_HOURS = "quiet_hours"
    MISSING_CONTACT = "missing_contact"
    DIGEST_QUEUED = "digest_queued"


# Delivery log status recorded for each outcome
DELIVERY_STATUS_BY_OUTCOME = {
    RoutingOutcome.SEND: DeliveryStatus.PENDING,
    RoutingOutcome.DEFER: DeliveryStatus.DEFERRED,
    RoutingOutcome.DIGEST: DeliveryStatus.DIGEST,
    RoutingOutcome.SKIP: DeliveryStatus.SKIPPED,
}

# Channels held back during quiet hours
QUIET_HOURS_CHANNELS = (NotificationChannel.PUSH, NotificationChannel.SMS)


@dataclass(frozen=True)
class CategoryPreference:
    enabled: bool = True
    push: bool = True
    email: bool = True
    sms: bool = True

    def allows(self, channel: NotificationChannel) -> bool:
        return getattr(self, channel.value)


@dataclass
class RoutingPreferences:
    """Snapshot of everything routing needs to know about one user."""

    push_enabled: bool = True
    email_enabled: bool = True
    sms_enabled: bool = True
    categories: Dict[NotificationCategory, CategoryPreference] = field(default_factory=dict)
    quiet_hours_enabled: bool = False
    quiet_hours_start: int = 22
    quiet_hours_end: int = 7
    timezone: str = "UTC"
    email_digest_frequency: DigestFrequency = DigestFrequency.IMMEDIATE
    email_address: Optional[str] = None
    phone_number: Optional[str] = None
    has_push_token: bool = False

    @classmethod
    def from_settings(cls, category_settings: Optional[Dict[str, Dict[str, bool]]], **kwargs) -> "RoutingPreferences":
        """Build preferences from the stored per-category JSON, filling gaps with defaults."""
        merged = default_category_settings()
        for name, values in (category_settings or {}).items():
            if name in merged:
                merged[name].update(values)
        categories = {
            NotificationCategory(name): CategoryPreference(
                enabled=values.get("enabled", True),
                push=values.get("push", True),
                email=values.get("email", True),
                sms=values.get("sms", True),
            )
            for name, values in merged.items()
        }
        return cls(categories=categories, **kwargs)

    def category(self, category: NotificationCategory) -> CategoryPreference:
        return self.categories.get(category, CategoryPreference())

    def channel_enabled(self, channel: NotificationChannel) -> bool:
        return {
            NotificationChannel.PUSH: self.push_enabled,
            NotificationChannel.EMAIL: self.email_enabled,
            NotificationChannel.SMS: self.sms_enabled,
        }[channel]

    def has_contact(self, channel: NotificationChannel) -> bool:
        if channel == NotificationChannel.PUSH:
            return self.has_push_token
        if channel == NotificationChannel.EMAIL:
            return bool(self.email_address)
        return bool(self.phone_number)


@dataclass(frozen=True)
class RoutingDecision:
    channel: NotificationChannel
    outcome: RoutingOutcome
    reason: Optional[RoutingReason] = None
    deliver_after: Optional[datetime] = None

    @property
    def delivery_status(self) -> DeliveryStatus:
        return DELIVERY_STATUS_BY_OUTCOME[self.outcome]


def is_quiet_hour(hour: int, start: int, end: int) -> bool:
    """
    Whether a local hour falls inside the quiet window [start, end).

    A window whose start is after its end wraps past midnight; equal
    bounds describe an empty window.
    """
    if start == end:
        return False
    if start < end:
        return start <= hour < end
    return hour >= start or hour < end


def _zone(timezone_name: str):
    try:
        return pytz.timezone(timezone_name)
    except pytz.UnknownTimeZoneError:
        return pytz.utc


def _local_now(now: datetime, timezone_name: str) -> datetime:
    return ensure_utc(now).astimezone(_zone(timezone_name))


def in_quiet_hours(preferences: RoutingPreferences, now: datetime) -> bool:
    if not preferences.quiet_hours_enabled:
        return False
    local = _local_now(now, preferences.timezone)
    return is_quiet_hour(local.hour, preferences.quiet_hours_start, preferences.quiet_hours_end)


def quiet_hours_end(preferences: RoutingPreferences, now: datetime) -> datetime:
    """UTC instant at which the current quiet window closes."""
    zone = _zone(preferences.timezone)
    naive_local = ensure_utc(now).astimezone(zone).replace(tzinfo=None)
    candidate = naive_local.replace(hour=preferences.quiet_hours_end, minute=0, second=0, microsecond=0)
    if candidate <= naive_local:
        candidate += timedelta(days=1)
    # localize() applies the UTC offset in effect at the candidate wall time
    return zone.localize(candidate).astimezone(pytz.utc)


def route_channel(
    preferences: RoutingPreferences,
    category: NotificationCategory,
    channel: NotificationChannel,
    priority: NotificationPriority,
    now: datetime,
) -> RoutingDecision:
    """Apply the routing checks for one channel."""
    category_pref = preferences.category(category)

    if not category_pref.enabled:
        return RoutingDecision(channel, RoutingOutcome.SKIP, RoutingReason.CATEGORY_DISABLED)

    if not category_pref.allows(channel):
        return RoutingDecision(channel, RoutingOutcome.SKIP, RoutingReason.CHANNEL_DISABLED_FOR_CATEGORY)

    if not preferences.channel_enabled(channel):
        return RoutingDecision(channel, RoutingOutcome.SKIP, RoutingReason.CHANNEL_DISABLED)

    if (
        channel in QUIET_HOURS_CHANNELS
        and priority != NotificationPriority.CRITICAL
        and in_quiet_hours(preferences, now)
    ):
        return RoutingDecision(
            channel,
            RoutingOutcome.DEFER,
            RoutingReason.QUIET_HOURS,
            deliver_after=quiet_hours_end(preferences, now),
        )

    if not preferences.has_contact(channel):
        return RoutingDecision(channel, RoutingOutcome.SKIP, RoutingReason.MISSING_CONTACT)

    if channel == NotificationChannel.EMAIL and preferences.email_digest_frequency != DigestFrequency.IMMEDIATE:
        return RoutingDecision(channel, RoutingOutcome.DIGEST, RoutingReason.DIGEST_QUEUED)

    return RoutingDecision(channel, RoutingOutcome.SEND)


def route_notification(
    preferences: RoutingPreferences,
    category: NotificationCategory,
    priority: NotificationPriority,
    now: datetime,
) -> List[RoutingDecision]:
    """Routing decision for every out-of-app channel, in channel declaration order."""
    return [
        route_channel(preferences, category, channel, priority, now)
        for channel in NotificationChannel
    ]
