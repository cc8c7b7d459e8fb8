"""
Transaction model for rent, deposit and utility charges.
"""

from sqlalchemy import String, Date, DateTime, Numeric, Enum as SQLEnum, ForeignKey, Uuid, Index
from sqlalchemy.orm import Mapped, mapped_column
from rental_api.database import Base
from rental_api.utils.timeutils import isoformat, date_isoformat
from datetime import date, datetime
from decimal import Decimal
import enum
import uuid
from typing import Optional


class TransactionType(str, enum.Enum):
    RENT = "rent"
    DEPOSIT = "deposit"
    UTILITY = "utility"


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"


class Transaction(Base):
    """A charge a landlord raises against a renter, and its payment."""

    __tablename__ = "transactions"

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

    amount: Mapped[Decimal] = mapped_column(Numeric(precision=12, scale=2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="JOD")
    type: Mapped[TransactionType] = mapped_column(SQLEnum(TransactionType), nullable=False)

    status: Mapped[TransactionStatus] = mapped_column(
        SQLEnum(TransactionStatus),
        nullable=False,
        default=TransactionStatus.PENDING,
        index=True
    )

    due_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    paid_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    reminder_sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_transactions_status_due", "status", "due_date"),
    )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "property_id": str(self.property_id),
            "renter_id": str(self.renter_id),
            "landlord_id": str(self.landlord_id),
            "amount": float(self.amount),
            "currency": self.currency,
            "type": self.type.value,
            "status": self.status.value,
            "due_date": date_isoformat(self.due_date),
            "paid_date": isoformat(self.paid_date),
            "description": self.description,
            "created_at": isoformat(self.created_at),
        }
