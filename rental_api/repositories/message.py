"""
Message repository for direct conversations between users.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, or_, func, update, desc
from rental_api.repositories.base import BaseRepository
from rental_api.models.message import Message
from rental_api.utils.timeutils import utcnow
from typing import List, Dict, Tuple
import uuid
import logging

logger = logging.getLogger(__name__)


class MessageRepository(BaseRepository[Message]):
    """
    Repository for messages and conversation summaries.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(Message, db)

    @staticmethod
    def _between(user_id: uuid.UUID, partner_id: uuid.UUID):
        return or_(
            and_(Message.sender_id == user_id, Message.receiver_id == partner_id),
            and_(Message.sender_id == partner_id, Message.receiver_id == user_id),
        )

    async def get_conversation(
        self,
        user_id: uuid.UUID,
        partner_id: uuid.UUID,
        skip: int = 0,
        limit: int = 100
    ) -> List[Message]:
        """
        Messages exchanged between two users, oldest first.

        Args:
            user_id: UUID of one participant
            partner_id: UUID of the other participant
            skip: Number of records to skip
            limit: Maximum number of records to return

        Returns:
            List of messages ordered by sent time ascending
        """
        try:
            query = (
                select(Message)
                .where(self._between(user_id, partner_id))
                .order_by(Message.sent_at.asc(), Message.created_at.asc())
                .offset(skip)
                .limit(limit)
            )
            result = await self.db.execute(query)
            return list(result.scalars().all())
        except Exception as e:
            logger.error(f"Failed to load conversation {user_id} <-> {partner_id}: {e}")
            raise

    async def count_conversation(self, user_id: uuid.UUID, partner_id: uuid.UUID) -> int:
        query = select(func.count(Message.id)).where(self._between(user_id, partner_id))
        result = await self.db.execute(query)
        return result.scalar() or 0

    async def mark_conversation_read(self, reader_id: uuid.UUID, partner_id: uuid.UUID) -> int:
        """
        Mark every unread message from partner to reader as read.

        Returns:
            Number of messages updated
        """
        try:
            stmt = (
                update(Message)
                .where(
                    and_(
                        Message.sender_id == partner_id,
                        Message.receiver_id == reader_id,
                        Message.is_read == False,  # noqa: E712
                    )
                )
                .values(is_read=True, read_at=utcnow())
            )
            result = await self.db.execute(stmt)
            await self.db.commit()
            return result.rowcount
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to mark conversation read for {reader_id}: {e}")
            raise

    async def unread_count(self, user_id: uuid.UUID) -> int:
        query = select(func.count(Message.id)).where(
            and_(Message.receiver_id == user_id, Message.is_read == False)  # noqa: E712
        )
        result = await self.db.execute(query)
        return result.scalar() or 0

    async def unread_by_sender(self, user_id: uuid.UUID) -> Dict[uuid.UUID, int]:
        query = (
            select(Message.sender_id, func.count(Message.id))
            .where(and_(Message.receiver_id == user_id, Message.is_read == False))  # noqa: E712
            .group_by(Message.sender_id)
        )
        result = await self.db.execute(query)
        return {row[0]: row[1] for row in result.all()}

    async def latest_per_partner(self, user_id: uuid.UUID) -> List[Tuple[uuid.UUID, Message]]:
        """
        Most recent message with each conversation partner, newest conversation first.

        Args:
            user_id: UUID of the user

        Returns:
            List of (partner id, latest message) tuples
        """
        try:
            query = (
                select(Message)
                .where(or_(Message.sender_id == user_id, Message.receiver_id == user_id))
                .order_by(desc(Message.sent_at), desc(Message.created_at))
            )
            result = await self.db.execute(query)

            latest: Dict[uuid.UUID, Message] = {}
            for message in result.scalars().all():
                latest.setdefault(message.partner_of(user_id), message)

            return list(latest.items())
        except Exception as e:
            logger.error(f"Failed to list conversations for {user_id}: {e}")
            raise
