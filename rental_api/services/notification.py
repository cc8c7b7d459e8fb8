"""
Notification service: in-app notifications, preference management, push token
registration and channel delivery.

Every notification is stored in-app first. Typed notifications are then routed
per channel according to the user's preferences and each decision is written to
the delivery log. Channel failures are logged and recorded on the delivery row;
they never propagate to the operation that raised the notification.
"""

from datetime import datetime
from typing import Optional, List, Dict, Any, Tuple
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession
from rental_api.config import settings
from rental_api.models.notification import (
    Notification,
    NotificationPreferences,
    NotificationDelivery,
    NotificationType,
    NotificationCategory,
    NotificationChannel,
    NotificationPriority,
    DigestFrequency,
    DeliveryStatus,
    DeviceToken,
    category_for,
    default_category_settings,
)
from rental_api.models.user import User
from rental_api.repositories.notification import (
    NotificationRepository,
    NotificationPreferencesRepository,
    DeviceTokenRepository,
    NotificationDeliveryRepository,
)
from rental_api.repositories.user import UserRepository
from rental_api.services.channels import (
    ChannelDispatcher,
    ChannelDeliveryError,
    OutboundMessage,
    get_dispatcher,
    render_email,
)
from rental_api.services.notification_routing import (
    RoutingPreferences,
    RoutingOutcome,
    RoutingReason,
    route_notification,
)
from rental_api.utils.exceptions import (
    APIException,
    NotFoundError,
    ForbiddenError,
    ValidationError,
    BadRequestError,
)
from rental_api.utils.timeutils import utcnow
import uuid
import logging

logger = logging.getLogger(__name__)

PREFERENCE_FIELDS = (
    "push_enabled",
    "email_enabled",
    "sms_enabled",
    "quiet_hours_enabled",
    "quiet_hours_start",
    "quiet_hours_end",
    "timezone",
    "email_digest_frequency",
)

CATEGORY_SETTING_KEYS = ("enabled",) + tuple(channel.value for channel in NotificationChannel)


class NotificationService:
    """
    Stores, routes and delivers notifications and manages per-user preferences.
    """

    def __init__(self, db_session: AsyncSession, dispatcher: Optional[ChannelDispatcher] = None):
        self.db = db_session
        self.dispatcher = dispatcher or get_dispatcher()
        self.notification_repo = NotificationRepository(db_session)
        self.preferences_repo = NotificationPreferencesRepository(db_session)
        self.token_repo = DeviceTokenRepository(db_session)
        self.delivery_repo = NotificationDeliveryRepository(db_session)
        self.user_repo = UserRepository(db_session)

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def notify(
        self,
        user_id: uuid.UUID,
        notification_type: NotificationType,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        priority: NotificationPriority = NotificationPriority.NORMAL,
        now: Optional[datetime] = None
    ) -> Optional[Notification]:
        """
        Store an in-app notification and route it to the out-of-app channels.

        Args:
            user_id: Recipient
            notification_type: Notification type; its category drives routing
            title: Short title
            message: Body text
            data: Extra payload for the client (ids to deep-link to)
            priority: Critical notifications bypass quiet hours
            now: Evaluation instant, defaults to the current time

        Returns:
            The stored notification, or None if even the in-app record failed
        """
        now = now or utcnow()
        category = category_for(notification_type)

        try:
            notification = await self.notification_repo.create({
                "user_id": user_id,
                "type": notification_type,
                "category": category,
                "priority": priority,
                "title": title,
                "message": message,
                "data": dict(data or {}),
            })
        except Exception as e:
            logger.error(f"Failed to store {notification_type.value} notification for user {user_id}: {e}")
            return None

        if category is None:
            logger.debug(f"Notification {notification.id} is in-app only")
            return notification

        notification_id = notification.id
        try:
            await self._route_and_deliver(notification, category, priority, now)
        except Exception as e:
            logger.error(f"Failed to route notification {notification_id}: {e}")
            await self._reload_expired()

        return notification

    async def _reload_expired(self) -> None:
        """
        Reload instances expired by a rolled back write.

        Callers keep using the objects they loaded after a routing failure,
        and an async session cannot lazy load expired attributes.
        """
        for instance in list(self.db.identity_map.values()):
            if not inspect(instance).expired_attributes:
                continue
            try:
                await self.db.refresh(instance)
            except Exception as e:
                logger.warning(f"Could not reload {type(instance).__name__} after rollback: {e}")

    async def _route_and_deliver(
        self,
        notification: Notification,
        category: NotificationCategory,
        priority: NotificationPriority,
        now: datetime
    ) -> None:
        preferences = await self.get_or_create_preferences(notification.user_id)
        tokens = await self.token_repo.active_tokens(notification.user_id)
        routing = self._routing_snapshot(preferences, has_push_token=bool(tokens))

        for decision in route_notification(routing, category, priority, now):
            delivery = await self.delivery_repo.create({
                "notification_id": notification.id,
                "user_id": notification.user_id,
                "channel": decision.channel,
                "status": decision.delivery_status,
                "reason": decision.reason.value if decision.reason else None,
                "deliver_after": decision.deliver_after,
            })
            logger.debug(
                f"Notification {notification.id} {decision.channel.value}: "
                f"{decision.outcome.value} ({decision.reason.value if decision.reason else 'ok'})"
            )
            if decision.outcome == RoutingOutcome.SEND:
                await self._deliver(delivery, notification, preferences, tokens)

    def _routing_snapshot(self, preferences: NotificationPreferences, has_push_token: bool) -> RoutingPreferences:
        return RoutingPreferences.from_settings(
            preferences.category_settings,
            push_enabled=preferences.push_enabled,
            email_enabled=preferences.email_enabled,
            sms_enabled=preferences.sms_enabled,
            quiet_hours_enabled=preferences.quiet_hours_enabled,
            quiet_hours_start=preferences.quiet_hours_start,
            quiet_hours_end=preferences.quiet_hours_end,
            timezone=preferences.timezone,
            email_digest_frequency=preferences.email_digest_frequency,
            email_address=preferences.email_address,
            phone_number=preferences.phone_number,
            has_push_token=has_push_token,
        )

    async def _build_message(
        self,
        channel: NotificationChannel,
        notification: Notification,
        preferences: NotificationPreferences,
        tokens: List[str]
    ) -> OutboundMessage:
        payload = {**(notification.data or {}), "notification_id": str(notification.id), "type": notification.type.value}

        if channel == NotificationChannel.PUSH:
            return OutboundMessage(channel, list(tokens), notification.title, notification.message, data=payload)

        if channel == NotificationChannel.SMS:
            recipients = [preferences.phone_number] if preferences.phone_number else []
            return OutboundMessage(channel, recipients, notification.title, notification.message, data=payload)

        user = await self.user_repo.get_by_id(notification.user_id)
        rendered = render_email(
            "notification",
            full_name=user.full_name if user else "",
            title=notification.title,
            message=notification.message,
        )
        recipients = [preferences.email_address] if preferences.email_address else []
        return OutboundMessage(
            channel, recipients, rendered["subject"], rendered["text"], html_body=rendered["html"], data=payload
        )

    async def _deliver(
        self,
        delivery: NotificationDelivery,
        notification: Notification,
        preferences: NotificationPreferences,
        tokens: List[str]
    ) -> bool:
        """Send one delivery and record the outcome on its row."""
        delivery_id, channel = delivery.id, delivery.channel
        try:
            message = await self._build_message(channel, notification, preferences, tokens)
            if not message.recipients:
                delivery.status = DeliveryStatus.SKIPPED
                delivery.reason = RoutingReason.MISSING_CONTACT.value
                await self.delivery_repo.save(delivery)
                return False

            receipt = await self.dispatcher.dispatch(message)
            if receipt.invalid_recipients:
                await self.token_repo.deactivate_tokens(receipt.invalid_recipients)

            delivery.status = DeliveryStatus.SENT
            delivery.sent_at = utcnow()
            delivery.error = None
            await self.delivery_repo.save(delivery)
            logger.info(f"Delivered notification {notification.id} via {channel.value}")
            return True
        except ChannelDeliveryError as e:
            logger.error(f"Delivery {delivery_id} failed: {e}")
            return await self._mark_failed(delivery_id, str(e))
        except Exception as e:
            logger.error(f"Unexpected error delivering {delivery_id} via {channel.value}: {e}")
            return await self._mark_failed(delivery_id, str(e))

    async def _mark_failed(self, delivery_id: uuid.UUID, error: str) -> bool:
        await self.delivery_repo.mark_many([delivery_id], DeliveryStatus.FAILED, error=error[:1000])
        return False

    async def release_deferred(self, now: Optional[datetime] = None) -> int:
        """
        Send deferred deliveries whose quiet window has ended.

        Args:
            now: Evaluation instant, defaults to the current time

        Returns:
            Number of deliveries sent
        """
        now = now or utcnow()
        sent = 0
        for delivery in await self.delivery_repo.get_due_deferred(now):
            notification = await self.notification_repo.get_by_id(delivery.notification_id)
            if notification is None:
                await self.delivery_repo.mark_many([delivery.id], DeliveryStatus.SKIPPED)
                continue
            preferences = await self.get_or_create_preferences(delivery.user_id)
            tokens = await self.token_repo.active_tokens(delivery.user_id)
            if await self._deliver(delivery, notification, preferences, tokens):
                sent += 1

        if sent:
            logger.info(f"Released {sent} deferred deliveries")
        return sent

    async def flush_digests(self, frequency: DigestFrequency, now: Optional[datetime] = None) -> int:
        """
        Email each user on the given digest frequency one summary of their queued items.

        Args:
            frequency: DAILY or WEEKLY
            now: Evaluation instant, defaults to the current time

        Returns:
            Number of digest emails sent
        """
        if frequency == DigestFrequency.IMMEDIATE:
            raise ValidationError("Digests are only flushed for daily or weekly frequency")

        sent = 0
        for user_id in await self.preferences_repo.get_user_ids_with_frequency(frequency):
            items = await self.delivery_repo.get_digest_items(user_id)
            if not items:
                continue

            delivery_ids = [delivery.id for delivery, _ in items]
            preferences = await self.get_or_create_preferences(user_id)
            if not preferences.email_address:
                await self.delivery_repo.mark_many(delivery_ids, DeliveryStatus.SKIPPED)
                continue

            user = await self.user_repo.get_by_id(user_id)
            rendered = render_email(
                "digest",
                full_name=user.full_name if user else "",
                frequency=frequency.value,
                items=[
                    {
                        "title": notification.title,
                        "message": notification.message,
                        "category": notification.category.value if notification.category else "",
                    }
                    for _, notification in items
                ],
            )
            message = OutboundMessage(
                NotificationChannel.EMAIL,
                [preferences.email_address],
                rendered["subject"],
                rendered["text"],
                html_body=rendered["html"],
                data={"digest": frequency.value, "items": len(items)},
            )

            try:
                await self.dispatcher.dispatch(message)
            except Exception as e:
                logger.error(f"{frequency.value} digest for user {user_id} failed: {e}")
                await self.delivery_repo.mark_many(delivery_ids, DeliveryStatus.FAILED, error=str(e)[:1000])
                continue

            await self.delivery_repo.mark_many(delivery_ids, DeliveryStatus.SENT)
            sent += 1

        logger.info(f"Flushed {sent} {frequency.value} digest(s)")
        return sent

    # ------------------------------------------------------------------
    # Polling API
    # ------------------------------------------------------------------

    async def list_notifications(
        self,
        user: User,
        unread_only: bool = False,
        since: Optional[datetime] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[Notification], int]:
        skip = (page - 1) * page_size
        return await self.notification_repo.list_for_user(
            user.id, unread_only=unread_only, since=since, skip=skip, limit=page_size
        )

    async def unread_count(self, user: User) -> int:
        return await self.notification_repo.unread_count(user.id)

    async def _get_owned(self, notification_id: uuid.UUID, user: User) -> Notification:
        notification = await self.notification_repo.get_by_id(notification_id)
        if not notification:
            raise NotFoundError("Notification", str(notification_id))
        if notification.user_id != user.id:
            raise ForbiddenError("You can only access your own notifications")
        return notification

    async def mark_read(self, notification_id: uuid.UUID, user: User) -> Notification:
        """
        Mark one notification read.

        Raises:
            NotFoundError: If the notification doesn't exist
            ForbiddenError: If it belongs to another user
        """
        notification = await self._get_owned(notification_id, user)
        if notification.is_read:
            return notification
        notification.is_read = True
        notification.read_at = utcnow()
        return await self.notification_repo.save(notification)

    async def mark_all_read(self, user: User) -> int:
        updated = await self.notification_repo.mark_all_read(user.id)
        logger.info(f"Marked {updated} notifications read for user {user.id}")
        return updated

    async def delete_notification(self, notification_id: uuid.UUID, user: User) -> bool:
        await self._get_owned(notification_id, user)
        return await self.notification_repo.delete(notification_id)

    async def get_deliveries(self, notification_id: uuid.UUID, user: User) -> List[NotificationDelivery]:
        await self._get_owned(notification_id, user)
        return await self.delivery_repo.list_for_notification(notification_id)

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    async def provision_defaults(self, user: User) -> NotificationPreferences:
        """
        Create the default preferences row for a new account.

        Every category and channel is enabled, quiet hours are off and email is
        immediate. The account email becomes the contact address.
        """
        existing = await self.preferences_repo.get_by_user(user.id)
        if existing:
            return existing
        return await self.preferences_repo.create({
            "user_id": user.id,
            "push_enabled": True,
            "email_enabled": True,
            "sms_enabled": True,
            "category_settings": default_category_settings(),
            "quiet_hours_enabled": False,
            "quiet_hours_start": settings.default_quiet_hours_start,
            "quiet_hours_end": settings.default_quiet_hours_end,
            "timezone": settings.default_timezone,
            "email_digest_frequency": DigestFrequency.IMMEDIATE,
            "email_address": user.email,
            "phone_number": user.phone,
        })

    async def get_or_create_preferences(self, user_id: uuid.UUID) -> NotificationPreferences:
        preferences = await self.preferences_repo.get_by_user(user_id)
        if preferences:
            return preferences
        user = await self.user_repo.get_by_id(user_id)
        if not user:
            raise NotFoundError("User", str(user_id))
        return await self.provision_defaults(user)

    async def update_preferences(self, user: User, update_data: Dict[str, Any]) -> NotificationPreferences:
        """
        Update global switches, quiet hours, timezone and digest frequency.

        Args:
            user: Owner of the preferences
            update_data: Subset of the preference fields; None values are ignored

        Returns:
            Updated preferences
        """
        try:
            preferences = await self.get_or_create_preferences(user.id)
            changes = {k: v for k, v in update_data.items() if k in PREFERENCE_FIELDS and v is not None}
            if not changes:
                raise ValidationError("No valid fields provided for update")

            for field, value in changes.items():
                setattr(preferences, field, value)

            preferences = await self.preferences_repo.save(preferences)
            logger.info(f"Notification preferences updated for user {user.id}: {sorted(changes)}")
            return preferences
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to update notification preferences for user {user.id}: {e}")
            raise BadRequestError(f"Failed to update notification preferences: {str(e)}")

    async def update_category_setting(
        self,
        user: User,
        category: NotificationCategory,
        key: str,
        value: bool
    ) -> NotificationPreferences:
        """
        Update one cell of the category matrix.

        Args:
            user: Owner of the preferences
            category: Category to change
            key: "enabled" or a channel name
            value: New flag

        Returns:
            Updated preferences
        """
        if key not in CATEGORY_SETTING_KEYS:
            raise ValidationError(
                f"Unknown category setting '{key}'",
                field_errors=[{"field": "key", "message": f"Must be one of: {', '.join(CATEGORY_SETTING_KEYS)}"}]
            )

        preferences = await self.get_or_create_preferences(user.id)

        # JSON columns are only persisted on reassignment
        matrix = default_category_settings()
        for name, values in (preferences.category_settings or {}).items():
            if name in matrix:
                matrix[name].update(values)
        matrix[category.value][key] = value
        preferences.category_settings = matrix

        preferences = await self.preferences_repo.save(preferences)
        logger.info(f"User {user.id} set {category.value}.{key}={value}")
        return preferences

    async def update_contacts(
        self,
        user: User,
        email_address: Optional[str] = None,
        phone_number: Optional[str] = None,
        clear_phone: bool = False
    ) -> NotificationPreferences:
        preferences = await self.get_or_create_preferences(user.id)
        if email_address is not None:
            preferences.email_address = email_address
        if phone_number is not None:
            preferences.phone_number = phone_number
        elif clear_phone:
            preferences.phone_number = None
        return await self.preferences_repo.save(preferences)

    # ------------------------------------------------------------------
    # Push tokens
    # ------------------------------------------------------------------

    async def register_device_token(self, user: User, token: str, platform: Optional[str] = None) -> DeviceToken:
        """
        Register an Expo push token, reassigning and reactivating it if already known.

        Args:
            user: Current user
            token: Expo push token
            platform: Optional "ios" / "android" / "web"

        Returns:
            The stored device token
        """
        existing = await self.token_repo.get_by_token(token)
        if existing:
            existing.user_id = user.id
            existing.is_active = True
            existing.platform = platform or existing.platform
            existing.last_seen_at = utcnow()
            device = await self.token_repo.save(existing)
        else:
            device = await self.token_repo.create({
                "user_id": user.id,
                "token": token,
                "platform": platform,
                "is_active": True,
                "last_seen_at": utcnow(),
            })
        logger.info(f"Registered push token for user {user.id}")
        return device

    async def unregister_device_token(self, user: User, token: str) -> bool:
        existing = await self.token_repo.get_by_token(token)
        if not existing or existing.user_id != user.id:
            return False
        existing.is_active = False
        await self.token_repo.save(existing)
        logger.info(f"Unregistered push token for user {user.id}")
        return True
