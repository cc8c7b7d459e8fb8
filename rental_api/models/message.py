"""
Direct message model between two users, optionally about a property.
"""

from sqlalchemy import Text, Boolean, DateTime, ForeignKey, Uuid, Index
from sqlalchemy.orm import Mapped, mapped_column
from rental_api.database import Base
from rental_api.utils.timeutils import isoformat, utcnow
from datetime import datetime
import uuid
from typing import Optional


class Message(Base):
    __tablename__ = "messages"

    sender_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    receiver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    property_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("properties.id", ondelete="SET NULL"),
        nullable=True
    )

    content: Mapped[str] = mapped_column(Text, nullable=False)
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_messages_receiver_unread", "receiver_id", "is_read"),
    )

    def partner_of(self, user_id: uuid.UUID) -> uuid.UUID:
        """The other participant from the point of view of user_id."""
        return self.receiver_id if self.sender_id == user_id else self.sender_id

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "sender_id": str(self.sender_id),
            "receiver_id": str(self.receiver_id),
            "property_id": str(self.property_id) if self.property_id else None,
            "content": self.content,
            "timestamp": isoformat(self.sent_at),
            "is_read": self.is_read,
            "read_at": isoformat(self.read_at),
        }
