"""
Rental application model.
"""

from sqlalchemy import Text, DateTime, Enum as SQLEnum, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from rental_api.database import Base
from rental_api.utils.timeutils import isoformat
from datetime import datetime
import enum
import uuid
from typing import Optional


class ApplicationStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Application(Base):
    """A renter's application to a listing, reviewed by the landlord."""

    __tablename__ = "applications"

    applicant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    landlord_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[ApplicationStatus] = mapped_column(
        SQLEnum(ApplicationStatus),
        nullable=False,
        default=ApplicationStatus.PENDING,
        index=True
    )

    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "applicant_id": str(self.applicant_id),
            "property_id": str(self.property_id),
            "landlord_id": str(self.landlord_id),
            "message": self.message,
            "status": self.status.value,
            "reviewed_at": isoformat(self.reviewed_at),
            "created_at": isoformat(self.created_at),
        }
