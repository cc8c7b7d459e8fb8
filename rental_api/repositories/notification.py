"""
Repositories for in-app notifications, notification preferences, push tokens
and the per-channel delivery log.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, func, update
from rental_api.repositories.base import BaseRepository
from rental_api.models.notification import (
    Notification,
    NotificationPreferences,
    DeviceToken,
    NotificationDelivery,
    NotificationChannel,
    DeliveryStatus,
    DigestFrequency,
)
from rental_api.utils.timeutils import utcnow
from datetime import datetime
from typing import Optional, List, Tuple
import uuid
import logging

logger = logging.getLogger(__name__)


class NotificationRepository(BaseRepository[Notification]):
    """
    In-app notifications polled by clients.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(Notification, db)

    def _user_conditions(self, user_id: uuid.UUID, unread_only: bool, since: Optional[datetime]) -> list:
        conditions = [Notification.user_id == user_id]
        if unread_only:
            conditions.append(Notification.is_read == False)  # noqa: E712
        if since is not None:
            conditions.append(Notification.created_at > since)
        return conditions

    async def list_for_user(
        self,
        user_id: uuid.UUID,
        unread_only: bool = False,
        since: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Notification], int]:
        """
        Notifications of a user, newest first.

        Args:
            user_id: UUID of the user
            unread_only: Only include unread notifications
            since: Only include notifications created after this instant
            skip: Number of records to skip
            limit: Maximum number of records to return

        Returns:
            Tuple of (notifications list, total count)
        """
        try:
            conditions = self._user_conditions(user_id, unread_only, since)

            count_query = select(func.count(Notification.id)).where(and_(*conditions))
            total_count = (await self.db.execute(count_query)).scalar() or 0

            query = (
                select(Notification)
                .where(and_(*conditions))
                .order_by(Notification.created_at.desc())
                .offset(skip)
                .limit(limit)
            )
            result = await self.db.execute(query)
            notifications = list(result.scalars().all())

            logger.debug(f"Retrieved {len(notifications)} notifications for user {user_id}")
            return notifications, total_count
        except Exception as e:
            logger.error(f"Failed to list notifications for user {user_id}: {e}")
            raise

    async def unread_count(self, user_id: uuid.UUID) -> int:
        query = select(func.count(Notification.id)).where(
            and_(*self._user_conditions(user_id, unread_only=True, since=None))
        )
        result = await self.db.execute(query)
        return result.scalar() or 0

    async def mark_all_read(self, user_id: uuid.UUID) -> int:
        """
        Mark every unread notification of a user as read.

        Returns:
            Number of notifications updated
        """
        try:
            stmt = (
                update(Notification)
                .where(and_(Notification.user_id == user_id, Notification.is_read == False))  # noqa: E712
                .values(is_read=True, read_at=utcnow())
            )
            result = await self.db.execute(stmt)
            await self.db.commit()
            return result.rowcount
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to mark notifications read for user {user_id}: {e}")
            raise


class NotificationPreferencesRepository(BaseRepository[NotificationPreferences]):

    def __init__(self, db: AsyncSession):
        super().__init__(NotificationPreferences, db)

    async def get_by_user(self, user_id: uuid.UUID) -> Optional[NotificationPreferences]:
        return await self.get_by_field("user_id", user_id)

    async def get_user_ids_with_frequency(self, frequency: DigestFrequency) -> List[uuid.UUID]:
        query = select(NotificationPreferences.user_id).where(
            NotificationPreferences.email_digest_frequency == frequency
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())


class DeviceTokenRepository(BaseRepository[DeviceToken]):

    def __init__(self, db: AsyncSession):
        super().__init__(DeviceToken, db)

    async def get_by_token(self, token: str) -> Optional[DeviceToken]:
        return await self.get_by_field("token", token)

    async def active_tokens(self, user_id: uuid.UUID) -> List[str]:
        query = select(DeviceToken.token).where(
            and_(DeviceToken.user_id == user_id, DeviceToken.is_active == True)  # noqa: E712
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def deactivate_tokens(self, tokens: List[str]) -> int:
        """Deactivate tokens the push service reported as unregistered."""
        if not tokens:
            return 0
        try:
            stmt = update(DeviceToken).where(DeviceToken.token.in_(tokens)).values(is_active=False)
            result = await self.db.execute(stmt)
            await self.db.commit()
            logger.info(f"Deactivated {result.rowcount} push token(s)")
            return result.rowcount
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to deactivate push tokens: {e}")
            raise


class NotificationDeliveryRepository(BaseRepository[NotificationDelivery]):
    """
    Delivery log: one row per notification and channel.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(NotificationDelivery, db)

    async def list_for_notification(self, notification_id: uuid.UUID) -> List[NotificationDelivery]:
        query = select(NotificationDelivery).where(NotificationDelivery.notification_id == notification_id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_due_deferred(self, now: datetime, limit: int = 500) -> List[NotificationDelivery]:
        """
        Deferred deliveries whose quiet window has ended.

        Args:
            now: Current instant
            limit: Maximum number of deliveries to return

        Returns:
            List of deliveries, oldest first
        """
        query = (
            select(NotificationDelivery)
            .where(
                and_(
                    NotificationDelivery.status == DeliveryStatus.DEFERRED,
                    NotificationDelivery.deliver_after <= now,
                )
            )
            .order_by(NotificationDelivery.deliver_after)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_digest_items(self, user_id: uuid.UUID) -> List[Tuple[NotificationDelivery, Notification]]:
        """
        Queued email digest deliveries of a user with their notifications, oldest first.

        Args:
            user_id: UUID of the user

        Returns:
            List of (delivery, notification) tuples
        """
        query = (
            select(NotificationDelivery, Notification)
            .join(Notification, Notification.id == NotificationDelivery.notification_id)
            .where(
                and_(
                    NotificationDelivery.user_id == user_id,
                    NotificationDelivery.channel == NotificationChannel.EMAIL,
                    NotificationDelivery.status == DeliveryStatus.DIGEST,
                )
            )
            .order_by(Notification.created_at)
        )
        result = await self.db.execute(query)
        return [(row[0], row[1]) for row in result.all()]

    async def mark_many(
        self,
        delivery_ids: List[uuid.UUID],
        status: DeliveryStatus,
        error: Optional[str] = None
    ) -> int:
        if not delivery_ids:
            return 0
        values = {"status": status, "error": error}
        if status == DeliveryStatus.SENT:
            values["sent_at"] = utcnow()
        try:
            stmt = update(NotificationDelivery).where(NotificationDelivery.id.in_(delivery_ids)).values(**values)
            result = await self.db.execute(stmt)
            await self.db.commit()
            return result.rowcount
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to update {len(delivery_ids)} deliveries: {e}")
            raise
