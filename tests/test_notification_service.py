"""
Tests for NotificationService: storage, routing, channel delivery,
deferred release, digests and preference management.
"""

import pytest
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict

from sqlalchemy.exc import OperationalError

from rental_api.models.notification import (
    NotificationCategory,
    NotificationChannel,
    NotificationDelivery,
    NotificationPriority,
    NotificationType,
    DigestFrequency,
    DeliveryStatus,
)
from rental_api.models.property import Property
from rental_api.models.user import User
from rental_api.services.notification import NotificationService
from rental_api.utils.exceptions import ForbiddenError, NotFoundError, ValidationError
from rental_api.utils.timeutils import utcnow
from tests.conftest import RecordingDispatcher


NIGHT_UTC = datetime(2026, 3, 10, 23, 30, tzinfo=timezone.utc)
AFTER_QUIET_HOURS = datetime(2026, 3, 11, 7, 5, tzinfo=timezone.utc)
PUSH_TOKEN = "ExponentPushToken[lina-phone]"


@pytest.fixture
def service(db_session, dispatcher) -> NotificationService:
    return NotificationService(db_session, dispatcher)


async def deliveries_for(service: NotificationService, notification_id) -> Dict[NotificationChannel, NotificationDelivery]:
    return {d.channel: d for d in await service.delivery_repo.list_for_notification(notification_id)}


async def notify_payment(service: NotificationService, user: User, **kwargs):
    return await service.notify(
        user.id,
        NotificationType.PAYMENT_REMINDER,
        "Rent Payment Reminder",
        "Your rent payment of 450.00 JOD is due in 3 days",
        **kwargs
    )


class TestNotify:
    """Test storing and routing a notification."""

    @pytest.mark.asyncio
    async def test_notify_stores_in_app_notification(self, service: NotificationService, renter: User):
        notification = await notify_payment(service, renter, data={"transaction_id": "abc"})

        assert notification is not None
        assert notification.user_id == renter.id
        assert notification.category == NotificationCategory.PAYMENTS
        assert notification.priority == NotificationPriority.NORMAL
        assert notification.is_read is False
        assert notification.data == {"transaction_id": "abc"}
        assert await service.unread_count(renter) == 1

    @pytest.mark.asyncio
    async def test_notify_delivers_to_reachable_channels(
        self, service: NotificationService, dispatcher: RecordingDispatcher, renter: User
    ):
        """Renter has email and phone but no push token yet."""
        notification = await notify_payment(service, renter)
        deliveries = await deliveries_for(service, notification.id)

        assert set(deliveries) == set(NotificationChannel)
        assert deliveries[NotificationChannel.PUSH].status == DeliveryStatus.SKIPPED
        assert deliveries[NotificationChannel.PUSH].reason == "missing_contact"
        assert deliveries[NotificationChannel.EMAIL].status == DeliveryStatus.SENT
        assert deliveries[NotificationChannel.SMS].status == DeliveryStatus.SENT
        assert deliveries[NotificationChannel.SMS].sent_at is not None

        emails = dispatcher.sent(NotificationChannel.EMAIL)
        assert len(emails) == 1
        assert emails[0].recipients == [renter.email]
        assert emails[0].html_body
        assert emails[0].data["notification_id"] == str(notification.id)

        sms = dispatcher.sent(NotificationChannel.SMS)
        assert sms[0].recipients == ["+962791234567"]
        assert dispatcher.sent(NotificationChannel.PUSH) == []

    @pytest.mark.asyncio
    async def test_push_sent_to_registered_tokens(
        self, service: NotificationService, dispatcher: RecordingDispatcher, renter: User
    ):
        await service.register_device_token(renter, PUSH_TOKEN, "ios")

        notification = await notify_payment(service, renter)
        deliveries = await deliveries_for(service, notification.id)

        assert deliveries[NotificationChannel.PUSH].status == DeliveryStatus.SENT
        pushes = dispatcher.sent(NotificationChannel.PUSH)
        assert pushes[0].recipients == [PUSH_TOKEN]
        assert pushes[0].data["type"] == NotificationType.PAYMENT_REMINDER.value

    @pytest.mark.asyncio
    async def test_uncategorised_type_is_in_app_only(
        self, service: NotificationService, dispatcher: RecordingDispatcher, renter: User
    ):
        notification = await service.notify(renter.id, NotificationType.GENERAL, "Welcome", "Welcome aboard")

        assert notification.category is None
        assert await deliveries_for(service, notification.id) == {}
        assert dispatcher.sent(NotificationChannel.EMAIL) == []

    @pytest.mark.asyncio
    async def test_failed_channel_is_recorded_not_raised(
        self, service: NotificationService, dispatcher: RecordingDispatcher, renter: User
    ):
        dispatcher.fail(NotificationChannel.EMAIL)

        notification = await notify_payment(service, renter)
        deliveries = await deliveries_for(service, notification.id)

        assert notification is not None
        assert deliveries[NotificationChannel.EMAIL].status == DeliveryStatus.FAILED
        assert "provider unavailable" in deliveries[NotificationChannel.EMAIL].error
        assert deliveries[NotificationChannel.SMS].status == DeliveryStatus.SENT

    @pytest.mark.asyncio
    async def test_invalid_push_token_deactivated(
        self, service: NotificationService, dispatcher: RecordingDispatcher, renter: User
    ):
        await service.register_device_token(renter, PUSH_TOKEN)
        dispatcher.senders[NotificationChannel.PUSH].invalid = [PUSH_TOKEN]

        await notify_payment(service, renter)

        assert await service.token_repo.active_tokens(renter.id) == []

    @pytest.mark.asyncio
    async def test_disabled_category_skips_every_channel(
        self, service: NotificationService, dispatcher: RecordingDispatcher, renter: User
    ):
        await service.update_category_setting(renter, NotificationCategory.PAYMENTS, "enabled", False)

        notification = await notify_payment(service, renter)
        deliveries = await deliveries_for(service, notification.id)

        assert all(d.status == DeliveryStatus.SKIPPED for d in deliveries.values())
        assert all(d.reason == "category_disabled" for d in deliveries.values())
        assert dispatcher.sent(NotificationChannel.EMAIL) == []
        assert await service.unread_count(renter) == 1

    @pytest.mark.asyncio
    async def test_cleared_phone_skips_sms(self, service: NotificationService, renter: User):
        await service.update_contacts(renter, clear_phone=True)

        notification = await notify_payment(service, renter)
        sms = (await deliveries_for(service, notification.id))[NotificationChannel.SMS]

        assert sms.status == DeliveryStatus.SKIPPED
        assert sms.reason == "missing_contact"

    @pytest.mark.asyncio
    async def test_routing_failure_does_not_raise(
        self, service: NotificationService, dispatcher: RecordingDispatcher
    ):
        """A recipient without an account cannot be routed; the caller never sees the error."""
        await notify_payment(service, User(id=uuid.uuid4(), email="ghost@test.com", full_name="Ghost"))
        assert dispatcher.sent(NotificationChannel.EMAIL) == []

    @pytest.mark.asyncio
    async def test_loaded_objects_usable_after_failed_delivery_write(
        self, db_session, service: NotificationService, renter: User, listing: Property, monkeypatch
    ):
        async def failing_create(obj_in):
            await db_session.rollback()
            raise OperationalError("INSERT INTO notification_deliveries", {}, Exception("disk I/O error"))

        monkeypatch.setattr(service.delivery_repo, "create", failing_create)

        notification = await notify_payment(service, renter)

        assert notification.title == "Rent Payment Reminder"
        assert listing.title == "Two-bedroom flat in Jabal Amman"
        assert renter.email == "renter@test.com"
        assert await service.delivery_repo.list_for_notification(notification.id) == []


class TestQuietHoursAndDigests:
    """Test deferred delivery and email digests."""

    async def _enable_quiet_hours(self, service: NotificationService, user: User):
        await service.update_preferences(user, {
            "quiet_hours_enabled": True,
            "quiet_hours_start": 22,
            "quiet_hours_end": 7,
            "timezone": "UTC",
        })

    @pytest.mark.asyncio
    async def test_quiet_hours_defer_then_release(
        self, service: NotificationService, dispatcher: RecordingDispatcher, renter: User
    ):
        await self._enable_quiet_hours(service, renter)
        await service.register_device_token(renter, PUSH_TOKEN)

        notification = await notify_payment(service, renter, now=NIGHT_UTC)
        deliveries = await deliveries_for(service, notification.id)

        assert deliveries[NotificationChannel.PUSH].status == DeliveryStatus.DEFERRED
        assert deliveries[NotificationChannel.SMS].status == DeliveryStatus.DEFERRED
        assert deliveries[NotificationChannel.EMAIL].status == DeliveryStatus.SENT
        assert dispatcher.sent(NotificationChannel.PUSH) == []

        assert await service.release_deferred(now=NIGHT_UTC) == 0
        assert await service.release_deferred(now=AFTER_QUIET_HOURS) == 2

        deliveries = await deliveries_for(service, notification.id)
        assert deliveries[NotificationChannel.PUSH].status == DeliveryStatus.SENT
        assert deliveries[NotificationChannel.SMS].status == DeliveryStatus.SENT
        assert len(dispatcher.sent(NotificationChannel.PUSH)) == 1

        # Already released deliveries are not sent twice
        assert await service.release_deferred(now=AFTER_QUIET_HOURS) == 0

    @pytest.mark.asyncio
    async def test_critical_notification_ignores_quiet_hours(
        self, service: NotificationService, dispatcher: RecordingDispatcher, renter: User
    ):
        await self._enable_quiet_hours(service, renter)

        notification = await service.notify(
            renter.id, NotificationType.PAYMENT_OVERDUE, "Payment overdue", "Rent is overdue",
            priority=NotificationPriority.CRITICAL, now=NIGHT_UTC,
        )
        deliveries = await deliveries_for(service, notification.id)

        assert deliveries[NotificationChannel.SMS].status == DeliveryStatus.SENT

    @pytest.mark.asyncio
    async def test_daily_digest_batches_email(
        self, service: NotificationService, dispatcher: RecordingDispatcher, renter: User
    ):
        await service.update_preferences(renter, {"email_digest_frequency": DigestFrequency.DAILY})

        first = await notify_payment(service, renter)
        await service.notify(renter.id, NotificationType.NEW_MESSAGE, "New message from Omar Haddad", "Hello")

        assert (await deliveries_for(service, first.id))[NotificationChannel.EMAIL].status == DeliveryStatus.DIGEST
        assert dispatcher.sent(NotificationChannel.EMAIL) == []

        # Weekly users are untouched by the daily flush
        assert await service.flush_digests(DigestFrequency.WEEKLY) == 0
        assert await service.flush_digests(DigestFrequency.DAILY) == 1

        emails = dispatcher.sent(NotificationChannel.EMAIL)
        assert len(emails) == 1
        assert emails[0].data == {"digest": "daily", "items": 2}
        assert "Rent Payment Reminder" in emails[0].body
        assert (await deliveries_for(service, first.id))[NotificationChannel.EMAIL].status == DeliveryStatus.SENT

        assert await service.flush_digests(DigestFrequency.DAILY) == 0

    @pytest.mark.asyncio
    async def test_failed_digest_marks_items_failed(
        self, service: NotificationService, dispatcher: RecordingDispatcher, renter: User
    ):
        await service.update_preferences(renter, {"email_digest_frequency": DigestFrequency.WEEKLY})
        notification = await notify_payment(service, renter)
        dispatcher.fail(NotificationChannel.EMAIL)

        assert await service.flush_digests(DigestFrequency.WEEKLY) == 0
        email = (await deliveries_for(service, notification.id))[NotificationChannel.EMAIL]
        assert email.status == DeliveryStatus.FAILED

    @pytest.mark.asyncio
    async def test_immediate_frequency_cannot_be_flushed(self, service: NotificationService):
        with pytest.raises(ValidationError):
            await service.flush_digests(DigestFrequency.IMMEDIATE)


class TestPreferences:
    """Test preference provisioning and updates."""

    @pytest.mark.asyncio
    async def test_provision_defaults(self, service: NotificationService, renter: User):
        preferences = await service.provision_defaults(renter)

        assert preferences.push_enabled and preferences.email_enabled and preferences.sms_enabled
        assert preferences.quiet_hours_enabled is False
        assert preferences.email_digest_frequency == DigestFrequency.IMMEDIATE
        assert preferences.email_address == renter.email
        assert preferences.phone_number == renter.phone
        assert all(values["enabled"] for values in preferences.category_settings.values())

        # Provisioning twice keeps the existing row
        again = await service.provision_defaults(renter)
        assert again.id == preferences.id

    @pytest.mark.asyncio
    async def test_update_preferences_ignores_unknown_fields(self, service: NotificationService, renter: User):
        preferences = await service.update_preferences(renter, {"sms_enabled": False, "user_id": "ignored"})

        assert preferences.sms_enabled is False
        assert preferences.user_id == renter.id

    @pytest.mark.asyncio
    async def test_update_preferences_requires_a_field(self, service: NotificationService, renter: User):
        with pytest.raises(ValidationError):
            await service.update_preferences(renter, {"timezone": None})

    @pytest.mark.asyncio
    async def test_update_category_setting(self, service: NotificationService, renter: User):
        preferences = await service.update_category_setting(
            renter, NotificationCategory.MAINTENANCE, "sms", False
        )

        assert preferences.category_settings["maintenance"]["sms"] is False
        assert preferences.category_settings["maintenance"]["email"] is True
        assert preferences.category_settings["payments"]["sms"] is True

    @pytest.mark.asyncio
    async def test_update_category_setting_unknown_key(self, service: NotificationService, renter: User):
        with pytest.raises(ValidationError):
            await service.update_category_setting(renter, NotificationCategory.LEASE, "fax", False)


class TestInbox:
    """Test reading and managing in-app notifications."""

    @pytest.mark.asyncio
    async def test_mark_read_and_unread_count(self, service: NotificationService, renter: User):
        first = await notify_payment(service, renter)
        await notify_payment(service, renter)
        assert await service.unread_count(renter) == 2

        marked = await service.mark_read(first.id, renter)
        assert marked.is_read is True
        assert marked.read_at is not None
        assert await service.unread_count(renter) == 1

        assert await service.mark_all_read(renter) == 1
        assert await service.unread_count(renter) == 0

    @pytest.mark.asyncio
    async def test_list_unread_only(self, service: NotificationService, renter: User):
        first = await notify_payment(service, renter)
        await notify_payment(service, renter)
        await service.mark_read(first.id, renter)

        notifications, total = await service.list_notifications(renter, unread_only=True)
        assert total == 1
        assert notifications[0].id != first.id

    @pytest.mark.asyncio
    async def test_list_since(self, service: NotificationService, renter: User):
        older = await notify_payment(service, renter)
        older.created_at = utcnow() - timedelta(hours=2)
        await service.notification_repo.save(older)
        newer = await notify_payment(service, renter)

        notifications, total = await service.list_notifications(renter, since=utcnow() - timedelta(hours=1))
        assert total == 1
        assert [n.id for n in notifications] == [newer.id]

        _, everything = await service.list_notifications(renter)
        assert everything == 2

    @pytest.mark.asyncio
    async def test_other_users_notification_forbidden(
        self, service: NotificationService, renter: User, other_renter: User
    ):
        notification = await notify_payment(service, renter)

        with pytest.raises(ForbiddenError):
            await service.mark_read(notification.id, other_renter)
        with pytest.raises(ForbiddenError):
            await service.get_deliveries(notification.id, other_renter)

    @pytest.mark.asyncio
    async def test_delete_notification(self, service: NotificationService, renter: User):
        notification = await notify_payment(service, renter)

        assert await service.delete_notification(notification.id, renter) is True
        with pytest.raises(NotFoundError):
            await service.mark_read(notification.id, renter)


class TestDeviceTokens:
    """Test push token registration."""

    @pytest.mark.asyncio
    async def test_register_is_idempotent(self, service: NotificationService, renter: User):
        first = await service.register_device_token(renter, PUSH_TOKEN, "ios")
        second = await service.register_device_token(renter, PUSH_TOKEN)

        assert first.id == second.id
        assert second.platform == "ios"
        assert await service.token_repo.active_tokens(renter.id) == [PUSH_TOKEN]

    @pytest.mark.asyncio
    async def test_token_moves_to_new_owner(
        self, service: NotificationService, renter: User, other_renter: User
    ):
        await service.register_device_token(renter, PUSH_TOKEN)
        await service.register_device_token(other_renter, PUSH_TOKEN)

        assert await service.token_repo.active_tokens(renter.id) == []
        assert await service.token_repo.active_tokens(other_renter.id) == [PUSH_TOKEN]

    @pytest.mark.asyncio
    async def test_unregister(self, service: NotificationService, renter: User, other_renter: User):
        await service.register_device_token(renter, PUSH_TOKEN)

        assert await service.unregister_device_token(other_renter, PUSH_TOKEN) is False
        assert await service.unregister_device_token(renter, PUSH_TOKEN) is True
        assert await service.token_repo.active_tokens(renter.id) == []
