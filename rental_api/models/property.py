"""
Property model for rental listings.
Handles listing details, location, features, verification status and saved listings.
"""

from sqlalchemy import (
    String, Text, Integer, Numeric, Boolean, Enum as SQLEnum, Index, ForeignKey, JSON, Uuid,
    UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column
from rental_api.database import Base
from rental_api.utils.timeutils import isoformat
from decimal import Decimal
import enum
import uuid
from typing import List, Optional


class PropertyStatus(str, enum.Enum):
    """Listing lifecycle status."""
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    RENTED = "rented"
    PENDING_VERIFICATION = "pending_verification"


class Property(Base):
    """
    Property model for managing rental listings.
    Includes pricing, location data, features, and search-friendly indexes.
    """

    __tablename__ = "properties"

    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Landlord who owns this property"
    )

    # Basic property information
    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Property listing title"
    )

    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Detailed property description"
    )

    # Pricing information
    price: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=2),
        nullable=False,
        index=True,
        comment="Monthly rent"
    )

    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="JOD")

    # Location information
    city: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    area: Mapped[Optional[str]] = mapped_column(String(120), nullable=True, index=True)
    address: Mapped[str] = mapped_column(String(255), nullable=False)

    latitude: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=10, scale=8),
        nullable=True,
        comment="Property latitude coordinate"
    )

    longitude: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=11, scale=8),
        nullable=True,
        comment="Property longitude coordinate"
    )

    # Features
    bedrooms: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    bathrooms: Mapped[int] = mapped_column(Integer, nullable=False)
    size_sqm: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, comment="Size in square meters")
    furnished: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    amenities: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    rules: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    images: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list, comment="Image URLs")

    status: Mapped[PropertyStatus] = mapped_column(
        SQLEnum(PropertyStatus),
        nullable=False,
        default=PropertyStatus.PENDING_VERIFICATION,
        index=True
    )

    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("ix_properties_city_status_price", "city", "status", "price"),
        Index("ix_properties_owner_status", "owner_id", "status"),
    )

    def __repr__(self) -> str:
        """String representation of the property."""
        return f"<Property(id={self.id}, title={self.title[:30]}..., price={self.price})>"

    def to_dict(self) -> dict:
        """
        Convert property to dictionary.

        Returns:
            Dictionary representation of property
        """
        return {
            "id": str(self.id),
            "owner_id": str(self.owner_id),
            "title": self.title,
            "description": self.description,
            "price": float(self.price),
            "currency": self.currency,
            "city": self.city,
            "area": self.area,
            "address": self.address,
            "latitude": float(self.latitude) if self.latitude is not None else None,
            "longitude": float(self.longitude) if self.longitude is not None else None,
            "bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "size_sqm": self.size_sqm,
            "furnished": self.furnished,
            "amenities": list(self.amenities or []),
            "rules": list(self.rules or []),
            "images": list(self.images or []),
            "status": self.status.value,
            "views": self.views,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class SavedProperty(Base):
    """A renter's bookmark on a listing."""

    __tablename__ = "saved_properties"

    user_id: Mapped[uuid.UUID] = mapped_column(
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

    __table_args__ = (
        UniqueConstraint("user_id", "property_id", name="uq_saved_property_user"),
    )
