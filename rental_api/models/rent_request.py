"""
Rent request model: a renter asking a landlord to rent a listing for a number of months.
"""

from sqlalchemy import String, Text, Integer, Date, DateTime, Enum as SQLEnum, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from rental_api.database import Base
from rental_api.utils.timeutils import isoformat, date_isoformat
from datetime import date, datetime
import enum
import uuid
from typing import Optional


class RentRequestStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"


class RentRequest(Base):
    """Rental request raised by a renter against an available property."""

    __tablename__ = "rent_requests"

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

    months: Mapped[int] = mapped_column(Integer, nullable=False)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    desired_start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    status: Mapped[RentRequestStatus] = mapped_column(
        SQLEnum(RentRequestStatus),
        nullable=False,
        default=RentRequestStatus.PENDING,
        index=True
    )

    response_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    response_message: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    contract_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
        comment="Contract created when the request was accepted"
    )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "property_id": str(self.property_id),
            "renter_id": str(self.renter_id),
            "landlord_id": str(self.landlord_id),
            "months": self.months,
            "message": self.message,
            "desired_start_date": date_isoformat(self.desired_start_date),
            "status": self.status.value,
            "request_date": isoformat(self.created_at),
            "response_date": isoformat(self.response_date),
            "response_message": self.response_message,
            "contract_id": str(self.contract_id) if self.contract_id else None,
            "updated_at": isoformat(self.updated_at),
        }
