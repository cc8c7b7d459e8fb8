"""
Viewing models: landlord-published time slots and renter viewing requests.
"""

from sqlalchemy import String, Text, Boolean, DateTime, Enum as SQLEnum, ForeignKey, Uuid, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column
from rental_api.database import Base
from rental_api.utils.timeutils import isoformat
from datetime import datetime
import enum
import uuid
from typing import Optional


class ViewingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class ViewingTimeSlot(Base):
    """A window in which a landlord can show a property."""

    __tablename__ = "viewing_time_slots"

    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_booked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_viewing_slot_window"),
    )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "property_id": str(self.property_id),
            "start_time": isoformat(self.start_time),
            "end_time": isoformat(self.end_time),
            "is_booked": self.is_booked,
        }


class ViewingRequest(Base):
    """A renter's request to tour a property in one of its time slots."""

    __tablename__ = "viewing_requests"

    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    renter_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    landlord_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    time_slot_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("viewing_time_slots.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[ViewingStatus] = mapped_column(
        SQLEnum(ViewingStatus),
        nullable=False,
        default=ViewingStatus.PENDING,
        index=True
    )

    response_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    cancelled_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "property_id": str(self.property_id),
            "renter_id": str(self.renter_id),
            "landlord_id": str(self.landlord_id),
            "time_slot_id": str(self.time_slot_id),
            "notes": self.notes,
            "status": self.status.value,
            "response_date": isoformat(self.response_date),
            "rejection_reason": self.rejection_reason,
            "cancellation_reason": self.cancellation_reason,
            "cancelled_by": str(self.cancelled_by) if self.cancelled_by else None,
            "created_at": isoformat(self.created_at),
        }
