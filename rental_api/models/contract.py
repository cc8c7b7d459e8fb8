"""
Rental contract model with signing, change-request and termination lifecycle.
"""

from sqlalchemy import String, Text, Date, DateTime, Numeric, Enum as SQLEnum, ForeignKey, Uuid, Index
from sqlalchemy.orm import Mapped, mapped_column
from rental_api.database import Base
from rental_api.utils.timeutils import isoformat, date_isoformat
from datetime import date, datetime
from decimal import Decimal
import enum
import uuid
from typing import Optional


class ContractStatus(str, enum.Enum):
    PENDING = "pending"
    CHANGES_REQUESTED = "changes_requested"
    CHANGES_ACCEPTED = "changes_accepted"
    CHANGES_REJECTED = "changes_rejected"
    ACTIVE = "active"
    REJECTED = "rejected"
    TERMINATED = "terminated"
    EXPIRED = "expired"


# Statuses from which the renter may sign
SIGNABLE_STATUSES = (
    ContractStatus.PENDING,
    ContractStatus.CHANGES_ACCEPTED,
    ContractStatus.CHANGES_REJECTED,
)


class RentalContract(Base):
    """
    Lease agreement between a landlord and a renter for one property.
    Only one contract per property can be active at a time.
    """

    __tablename__ = "rental_contracts"

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

    rent_request_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("rent_requests.id", ondelete="SET NULL"),
        nullable=True
    )

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    monthly_rent: Mapped[Decimal] = mapped_column(Numeric(precision=12, scale=2), nullable=False)
    security_deposit: Mapped[Decimal] = mapped_column(Numeric(precision=12, scale=2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="JOD")
    terms: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[ContractStatus] = mapped_column(
        SQLEnum(ContractStatus),
        nullable=False,
        default=ContractStatus.PENDING,
        index=True
    )

    document_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    signature: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    terminated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    requested_changes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    requested_changes_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    changes_response: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    termination_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    expiry_reminder_sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_rental_contracts_property_status", "property_id", "status"),
    )

    @property
    def is_signed(self) -> bool:
        return self.accepted_at is not None

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "property_id": str(self.property_id),
            "renter_id": str(self.renter_id),
            "landlord_id": str(self.landlord_id),
            "rent_request_id": str(self.rent_request_id) if self.rent_request_id else None,
            "start_date": date_isoformat(self.start_date),
            "end_date": date_isoformat(self.end_date),
            "monthly_rent": float(self.monthly_rent),
            "security_deposit": float(self.security_deposit),
            "currency": self.currency,
            "terms": self.terms,
            "status": self.status.value,
            "documents": {"signed": self.is_signed, "url": self.document_url},
            "accepted_at": isoformat(self.accepted_at),
            "rejected_at": isoformat(self.rejected_at),
            "terminated_at": isoformat(self.terminated_at),
            "requested_changes": self.requested_changes,
            "requested_changes_at": isoformat(self.requested_changes_at),
            "changes_response": self.changes_response,
            "termination_reason": self.termination_reason,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
