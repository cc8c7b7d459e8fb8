"""
Direct messaging between users.
"""

from typing import Optional, List, Dict, Any, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from rental_api.repositories.message import MessageRepository
from rental_api.repositories.property import PropertyRepository
from rental_api.repositories.user import UserRepository
from rental_api.models.message import Message
from rental_api.models.notification import NotificationType
from rental_api.models.user import User
from rental_api.schemas.message import MessageCreate
from rental_api.services.channels import ChannelDispatcher
from rental_api.services.notification import NotificationService
from rental_api.services.rent_request import parse_uuid
from rental_api.utils.exceptions import (
    APIException,
    NotFoundError,
    ValidationError,
    BadRequestError,
    PropertyNotFoundError,
)
from rental_api.utils.timeutils import utcnow
import uuid
import logging

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 120


class MessageService:
    """Sends messages, builds conversations and tracks read state."""

    def __init__(self, db_session: AsyncSession, dispatcher: Optional[ChannelDispatcher] = None):
        self.db = db_session
        self.message_repo = MessageRepository(db_session)
        self.user_repo = UserRepository(db_session)
        self.property_repo = PropertyRepository(db_session)
        self.notifications = NotificationService(db_session, dispatcher)

    async def send_message(self, message_data: MessageCreate, current_user: User) -> Message:
        """
        Send a message and notify the receiver.

        Args:
            message_data: Receiver, content and optional property
            current_user: Sender

        Returns:
            Stored message

        Raises:
            ValidationError: If the receiver is the sender
            NotFoundError: If the receiver doesn't exist
        """
        try:
            receiver_id = parse_uuid(message_data.receiver_id, "receiver_id")
            if receiver_id == current_user.id:
                raise ValidationError("You cannot send a message to yourself")

            receiver = await self.user_repo.get_by_id(receiver_id)
            if not receiver or not receiver.is_active:
                raise NotFoundError("User", str(receiver_id))

            property_id = None
            if message_data.property_id:
                property_id = parse_uuid(message_data.property_id, "property_id")
                if not await self.property_repo.exists(property_id):
                    raise PropertyNotFoundError(str(property_id))

            message = await self.message_repo.create({
                "sender_id": current_user.id,
                "receiver_id": receiver_id,
                "property_id": property_id,
                "content": message_data.content,
                "sent_at": utcnow(),
            })

            preview = message.content
            if len(preview) > PREVIEW_LENGTH:
                preview = preview[:PREVIEW_LENGTH - 3] + "..."

            data = {"message_id": str(message.id), "sender_id": str(current_user.id)}
            if property_id:
                data["property_id"] = str(property_id)
            await self.notifications.notify(
                receiver_id,
                NotificationType.NEW_MESSAGE,
                f"New message from {current_user.full_name}",
                preview,
                data=data,
            )

            logger.info(f"Message {message.id} sent from {current_user.id} to {receiver_id}")
            return message
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to send message from {current_user.id}: {e}")
            raise BadRequestError(f"Failed to send message: {str(e)}")

    async def get_conversation(
        self,
        partner_id: uuid.UUID,
        current_user: User,
        page: int = 1,
        page_size: int = 50
    ) -> Tuple[List[Message], int]:
        """
        Messages with a partner, oldest first. The partner's messages are marked read.

        Returns:
            Tuple of (messages, total messages in the conversation)
        """
        partner = await self.user_repo.get_by_id(partner_id)
        if not partner:
            raise NotFoundError("User", str(partner_id))

        marked = await self.message_repo.mark_conversation_read(current_user.id, partner_id)
        if marked:
            logger.debug(f"Marked {marked} messages from {partner_id} read for {current_user.id}")

        skip = (page - 1) * page_size
        messages = await self.message_repo.get_conversation(current_user.id, partner_id, skip=skip, limit=page_size)
        total = await self.message_repo.count_conversation(current_user.id, partner_id)
        return messages, total

    async def list_conversations(self, current_user: User) -> Dict[str, Any]:
        """
        Latest message and unread count per partner, most recent conversation first.

        Returns:
            Dict matching ConversationListResponse
        """
        latest = await self.message_repo.latest_per_partner(current_user.id)
        unread = await self.message_repo.unread_by_sender(current_user.id)
        partners = await self.user_repo.get_users_by_ids([partner_id for partner_id, _ in latest])

        conversations = []
        for partner_id, message in latest:
            partner = partners.get(partner_id)
            conversations.append({
                "partner_id": str(partner_id),
                "partner_name": partner.full_name if partner else None,
                "last_message": message.to_dict(),
                "unread_count": unread.get(partner_id, 0),
            })

        return {"conversations": conversations, "total_unread": sum(unread.values())}

    async def unread_count(self, current_user: User) -> int:
        return await self.message_repo.unread_count(current_user.id)
