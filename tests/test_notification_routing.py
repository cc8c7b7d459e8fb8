"""
Tests for notification routing rules.
Pure logic: no database, no channel senders.
"""

from datetime import datetime, timezone

import pytest

from rental_api.models.notification import (
    NotificationCategory,
    NotificationChannel,
    NotificationPriority,
    DigestFrequency,
    DeliveryStatus,
)
from rental_api.services.notification_routing import (
    RoutingPreferences,
    RoutingOutcome,
    RoutingReason,
    is_quiet_hour,
    in_quiet_hours,
    quiet_hours_end,
    route_channel,
    route_notification,
)


NOON_UTC = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
NIGHT_UTC = datetime(2026, 3, 10, 23, 30, tzinfo=timezone.utc)


def reachable(**overrides) -> RoutingPreferences:
    """Preferences of a user reachable on every channel."""
    values = {
        "email_address": "lina@example.com",
        "phone_number": "+962791234567",
        "has_push_token": True,
    }
    values.update(overrides)
    category_settings = values.pop("category_settings", None)
    return RoutingPreferences.from_settings(category_settings, **values)


def decisions_by_channel(preferences, category=NotificationCategory.PAYMENTS,
                         priority=NotificationPriority.NORMAL, now=NOON_UTC):
    return {d.channel: d for d in route_notification(preferences, category, priority, now)}


class TestQuietHourWindow:
    """Test the quiet window arithmetic."""

    @pytest.mark.parametrize("hour,expected", [
        (21, False), (22, True), (23, True), (0, True), (6, True), (7, False), (12, False),
    ])
    def test_window_wrapping_midnight(self, hour, expected):
        assert is_quiet_hour(hour, 22, 7) is expected

    @pytest.mark.parametrize("hour,expected", [(12, False), (13, True), (14, True), (15, False)])
    def test_window_within_one_day(self, hour, expected):
        assert is_quiet_hour(hour, 13, 15) is expected

    def test_equal_bounds_is_empty(self):
        assert not any(is_quiet_hour(hour, 5, 5) for hour in range(24))

    def test_disabled_quiet_hours_never_apply(self):
        preferences = reachable(quiet_hours_enabled=False)
        assert in_quiet_hours(preferences, NIGHT_UTC) is False

    def test_quiet_hours_use_user_timezone(self):
        """12:00 UTC is 16:00 in Dubai."""
        preferences = reachable(
            quiet_hours_enabled=True, quiet_hours_start=15, quiet_hours_end=17, timezone="Asia/Dubai"
        )
        assert in_quiet_hours(preferences, NOON_UTC) is True

        utc_preferences = reachable(quiet_hours_enabled=True, quiet_hours_start=15, quiet_hours_end=17)
        assert in_quiet_hours(utc_preferences, NOON_UTC) is False

    def test_unknown_timezone_falls_back_to_utc(self):
        preferences = reachable(
            quiet_hours_enabled=True, quiet_hours_start=12, quiet_hours_end=13, timezone="Mars/Olympus"
        )
        assert in_quiet_hours(preferences, NOON_UTC) is True

    def test_quiet_hours_end_next_morning(self):
        preferences = reachable(quiet_hours_enabled=True, quiet_hours_start=22, quiet_hours_end=7)
        end = quiet_hours_end(preferences, NIGHT_UTC)
        assert end == datetime(2026, 3, 11, 7, 0, tzinfo=timezone.utc)

    def test_quiet_hours_end_same_morning(self):
        preferences = reachable(quiet_hours_enabled=True, quiet_hours_start=22, quiet_hours_end=7)
        early = datetime(2026, 3, 10, 3, 15, tzinfo=timezone.utc)
        assert quiet_hours_end(preferences, early) == datetime(2026, 3, 10, 7, 0, tzinfo=timezone.utc)

    def test_quiet_hours_end_converted_to_utc(self):
        """07:00 in Dubai is 03:00 UTC."""
        preferences = reachable(
            quiet_hours_enabled=True, quiet_hours_start=22, quiet_hours_end=7, timezone="Asia/Dubai"
        )
        end = quiet_hours_end(preferences, NIGHT_UTC)
        assert end == datetime(2026, 3, 11, 3, 0, tzinfo=timezone.utc)


class TestRouteNotification:
    """Test per-channel routing decisions."""

    def test_everything_enabled_sends_everywhere(self):
        decisions = route_notification(reachable(), NotificationCategory.PAYMENTS, NotificationPriority.NORMAL, NOON_UTC)

        assert [d.channel for d in decisions] == list(NotificationChannel)
        assert all(d.outcome == RoutingOutcome.SEND for d in decisions)
        assert all(d.delivery_status == DeliveryStatus.PENDING for d in decisions)

    def test_category_disabled_skips_all_channels(self):
        preferences = reachable(category_settings={"payments": {"enabled": False}})
        decisions = decisions_by_channel(preferences)

        for decision in decisions.values():
            assert decision.outcome == RoutingOutcome.SKIP
            assert decision.reason == RoutingReason.CATEGORY_DISABLED

    def test_category_disabled_only_affects_that_category(self):
        preferences = reachable(category_settings={"payments": {"enabled": False}})
        decisions = decisions_by_channel(preferences, category=NotificationCategory.MESSAGES)
        assert all(d.outcome == RoutingOutcome.SEND for d in decisions.values())

    def test_channel_disabled_for_category(self):
        preferences = reachable(category_settings={"maintenance": {"sms": False}})
        decisions = decisions_by_channel(preferences, category=NotificationCategory.MAINTENANCE)

        assert decisions[NotificationChannel.SMS].reason == RoutingReason.CHANNEL_DISABLED_FOR_CATEGORY
        assert decisions[NotificationChannel.PUSH].outcome == RoutingOutcome.SEND
        assert decisions[NotificationChannel.EMAIL].outcome == RoutingOutcome.SEND

    def test_channel_disabled_globally(self):
        decisions = decisions_by_channel(reachable(push_enabled=False))

        assert decisions[NotificationChannel.PUSH].outcome == RoutingOutcome.SKIP
        assert decisions[NotificationChannel.PUSH].reason == RoutingReason.CHANNEL_DISABLED

    def test_category_check_wins_over_channel_check(self):
        preferences = reachable(push_enabled=False, category_settings={"payments": {"enabled": False}})
        decision = route_channel(
            preferences, NotificationCategory.PAYMENTS, NotificationChannel.PUSH,
            NotificationPriority.NORMAL, NOON_UTC,
        )
        assert decision.reason == RoutingReason.CATEGORY_DISABLED

    def test_quiet_hours_defer_push_and_sms_only(self):
        preferences = reachable(quiet_hours_enabled=True, quiet_hours_start=22, quiet_hours_end=7)
        decisions = decisions_by_channel(preferences, now=NIGHT_UTC)

        for channel in (NotificationChannel.PUSH, NotificationChannel.SMS):
            assert decisions[channel].outcome == RoutingOutcome.DEFER
            assert decisions[channel].reason == RoutingReason.QUIET_HOURS
            assert decisions[channel].delivery_status == DeliveryStatus.DEFERRED
            assert decisions[channel].deliver_after == datetime(2026, 3, 11, 7, 0, tzinfo=timezone.utc)
        assert decisions[NotificationChannel.EMAIL].outcome == RoutingOutcome.SEND

    def test_critical_priority_bypasses_quiet_hours(self):
        preferences = reachable(quiet_hours_enabled=True, quiet_hours_start=22, quiet_hours_end=7)
        decisions = decisions_by_channel(preferences, priority=NotificationPriority.CRITICAL, now=NIGHT_UTC)
        assert all(d.outcome == RoutingOutcome.SEND for d in decisions.values())

    def test_high_priority_still_deferred(self):
        preferences = reachable(quiet_hours_enabled=True, quiet_hours_start=22, quiet_hours_end=7)
        decisions = decisions_by_channel(preferences, priority=NotificationPriority.HIGH, now=NIGHT_UTC)
        assert decisions[NotificationChannel.PUSH].outcome == RoutingOutcome.DEFER

    def test_quiet_hours_checked_before_contact(self):
        """A user without a push token is still deferred, not skipped, at night."""
        preferences = reachable(
            has_push_token=False, quiet_hours_enabled=True, quiet_hours_start=22, quiet_hours_end=7
        )
        decisions = decisions_by_channel(preferences, now=NIGHT_UTC)
        assert decisions[NotificationChannel.PUSH].outcome == RoutingOutcome.DEFER

    def test_missing_contact_skips_channel(self):
        preferences = reachable(has_push_token=False, phone_number=None, email_address=None)
        decisions = decisions_by_channel(preferences)

        for decision in decisions.values():
            assert decision.outcome == RoutingOutcome.SKIP
            assert decision.reason == RoutingReason.MISSING_CONTACT
            assert decision.delivery_status == DeliveryStatus.SKIPPED

    @pytest.mark.parametrize("frequency", [DigestFrequency.DAILY, DigestFrequency.WEEKLY])
    def test_email_digest_queued(self, frequency):
        decisions = decisions_by_channel(reachable(email_digest_frequency=frequency))

        email = decisions[NotificationChannel.EMAIL]
        assert email.outcome == RoutingOutcome.DIGEST
        assert email.reason == RoutingReason.DIGEST_QUEUED
        assert email.delivery_status == DeliveryStatus.DIGEST
        assert decisions[NotificationChannel.PUSH].outcome == RoutingOutcome.SEND

    def test_digest_without_email_address_is_skipped(self):
        preferences = reachable(email_digest_frequency=DigestFrequency.DAILY, email_address=None)
        email = decisions_by_channel(preferences)[NotificationChannel.EMAIL]
        assert email.reason == RoutingReason.MISSING_CONTACT

    def test_partial_category_settings_fill_defaults(self):
        preferences = RoutingPreferences.from_settings(
            {"lease": {"push": False}, "unknown": {"enabled": False}},
            email_address="lina@example.com",
        )

        lease = preferences.category(NotificationCategory.LEASE)
        assert lease.enabled is True
        assert lease.push is False
        assert lease.email is True
        assert preferences.category(NotificationCategory.MESSAGES).enabled is True
