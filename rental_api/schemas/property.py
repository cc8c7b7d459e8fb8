"""
Pydantic schemas for property requests and responses.
Handles listing CRUD, search filters, verification and landlord dashboard stats.
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from rental_api.models.property import PropertyStatus
from rental_api.schemas.common import PaginatedResponse
from rental_api.utils.validators import ValidationUtils


SORTABLE_FIELDS = ['created_at', 'updated_at', 'price', 'bedrooms', 'bathrooms', 'size_sqm', 'views', 'title']


def _clean_list(values: Optional[List[str]], field_name: str) -> Optional[List[str]]:
    if values is None:
        return values
    cleaned = []
    for value in values:
        item = ValidationUtils.clean_text(value, field_name)
        if item not in cleaned:
            cleaned.append(item)
    return cleaned


class PropertyBase(BaseModel):
    """Base property schema with common fields."""

    title: str = Field(
        ...,
        min_length=5,
        max_length=255,
        description="Property listing title",
        example="Sunny 2BR Apartment in Abdoun"
    )

    description: str = Field(
        ...,
        min_length=20,
        max_length=5000,
        description="Detailed property description",
        example="Bright apartment with a large balcony, close to schools and shops."
    )

    price: Decimal = Field(
        ...,
        gt=0,
        description="Monthly rent",
        example=450.00
    )

    currency: str = Field(
        "JOD",
        min_length=3,
        max_length=3,
        description="ISO 4217 currency code",
        example="JOD"
    )

    city: str = Field(
        ...,
        min_length=2,
        max_length=120,
        description="City",
        example="Amman"
    )

    area: Optional[str] = Field(
        None,
        max_length=120,
        description="District or neighbourhood",
        example="Abdoun"
    )

    address: str = Field(
        ...,
        min_length=5,
        max_length=255,
        description="Street address",
        example="12 Zahran Street"
    )

    latitude: Optional[Decimal] = Field(
        None,
        ge=-90,
        le=90,
        description="Property latitude coordinate",
        example=31.9539
    )

    longitude: Optional[Decimal] = Field(
        None,
        ge=-180,
        le=180,
        description="Property longitude coordinate",
        example=35.9106
    )

    bedrooms: int = Field(
        ...,
        ge=0,
        le=50,
        description="Number of bedrooms",
        example=2
    )

    bathrooms: int = Field(
        ...,
        ge=0,
        le=50,
        description="Number of bathrooms",
        example=1
    )

    size_sqm: Optional[int] = Field(
        None,
        gt=0,
        le=100000,
        description="Size in square meters",
        example=120
    )

    furnished: bool = Field(False, description="Whether the unit is furnished", example=True)

    amenities: List[str] = Field(
        default_factory=list,
        description="Amenity labels",
        example=["parking", "elevator"]
    )

    rules: List[str] = Field(
        default_factory=list,
        description="House rules",
        example=["no smoking"]
    )

    images: List[str] = Field(
        default_factory=list,
        max_length=20,
        description="Image URLs",
        example=["https://cdn.example.com/p/1.jpg"]
    )

    @field_validator('title', 'description', 'city', 'address')
    @classmethod
    def validate_text(cls, v, info):
        return ValidationUtils.clean_text(v, info.field_name.capitalize())

    @field_validator('area')
    @classmethod
    def validate_area(cls, v):
        if v is None or not v.strip():
            return None
        return ValidationUtils.clean_text(v, "Area")

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v):
        return v.upper()

    @field_validator('amenities', 'rules')
    @classmethod
    def validate_labels(cls, v, info):
        return _clean_list(v, info.field_name.capitalize())

    @field_validator('price')
    @classmethod
    def validate_price(cls, v):
        """Validate price value."""
        if v > Decimal('999999999.99'):
            raise ValueError("Price exceeds maximum allowed value")
        return v

    @model_validator(mode='after')
    def validate_coordinates(self):
        """Validate that both coordinates are provided together or both are None."""
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("Both latitude and longitude must be provided together, or both must be None")
        return self


class PropertyCreate(PropertyBase):
    """Schema for creating a new listing."""


class PropertyUpdate(BaseModel):
    """Schema for updating an existing listing. Only supplied fields change."""

    title: Optional[str] = Field(None, min_length=5, max_length=255)
    description: Optional[str] = Field(None, min_length=20, max_length=5000)
    price: Optional[Decimal] = Field(None, gt=0)
    city: Optional[str] = Field(None, min_length=2, max_length=120)
    area: Optional[str] = Field(None, max_length=120)
    address: Optional[str] = Field(None, min_length=5, max_length=255)
    latitude: Optional[Decimal] = Field(None, ge=-90, le=90)
    longitude: Optional[Decimal] = Field(None, ge=-180, le=180)
    bedrooms: Optional[int] = Field(None, ge=0, le=50)
    bathrooms: Optional[int] = Field(None, ge=0, le=50)
    size_sqm: Optional[int] = Field(None, gt=0, le=100000)
    furnished: Optional[bool] = None
    amenities: Optional[List[str]] = None
    rules: Optional[List[str]] = None
    images: Optional[List[str]] = Field(None, max_length=20)

    status: Optional[PropertyStatus] = Field(
        None,
        description="Owners may toggle between available and unavailable",
        example="unavailable"
    )

    @field_validator('title', 'description', 'city', 'address', 'area')
    @classmethod
    def validate_text(cls, v, info):
        if v is not None:
            return ValidationUtils.clean_text(v, info.field_name.capitalize())
        return v

    @field_validator('amenities', 'rules')
    @classmethod
    def validate_labels(cls, v, info):
        return _clean_list(v, info.field_name.capitalize())

    @field_validator('status')
    @classmethod
    def validate_status(cls, v):
        if v is not None and v not in (PropertyStatus.AVAILABLE, PropertyStatus.UNAVAILABLE):
            raise ValueError("Status can only be set to available or unavailable")
        return v

    @model_validator(mode='after')
    def validate_coordinates(self):
        """Validate that both coordinates are provided together."""
        if self.latitude is not None or self.longitude is not None:
            if (self.latitude is None) != (self.longitude is None):
                raise ValueError("Both latitude and longitude must be provided together, or both must be None")
        return self


class PropertyResponse(BaseModel):
    """Schema for property response with metadata."""

    id: str = Field(..., description="Property unique identifier", example="123e4567-e89b-12d3-a456-426614174000")
    owner_id: str = Field(..., description="ID of the landlord who owns this property")
    title: str
    description: str
    price: float = Field(..., example=450.0)
    currency: str
    city: str
    area: Optional[str] = None
    address: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    bedrooms: int
    bathrooms: int
    size_sqm: Optional[int] = None
    furnished: bool
    amenities: List[str] = Field(default_factory=list)
    rules: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    status: PropertyStatus = Field(..., example="available")
    views: int = Field(0, description="Number of detail views", example=42)
    created_at: datetime
    updated_at: datetime


class PropertyListResponse(PaginatedResponse):
    """Schema for paginated property list response."""

    properties: List[PropertyResponse] = Field(
        ...,
        description="List of properties"
    )


class PropertySearchFilters(BaseModel):
    """Schema for public property search with optional filters."""

    query: Optional[str] = Field(
        None,
        min_length=1,
        max_length=255,
        description="Search query for title, description and address",
        example="balcony"
    )

    city: Optional[str] = Field(None, max_length=120, description="City filter", example="Amman")
    area: Optional[str] = Field(None, max_length=120, description="Area filter", example="Abdoun")

    min_price: Optional[Decimal] = Field(None, ge=0, description="Minimum monthly rent", example=200)
    max_price: Optional[Decimal] = Field(None, ge=0, description="Maximum monthly rent", example=800)

    min_bedrooms: Optional[int] = Field(None, ge=0, le=50, description="Minimum number of bedrooms", example=2)
    min_bathrooms: Optional[int] = Field(None, ge=0, le=50, description="Minimum number of bathrooms", example=1)

    furnished: Optional[bool] = Field(None, description="Furnished filter")

    status: Optional[PropertyStatus] = Field(
        PropertyStatus.AVAILABLE,
        description="Listing status (default: available)"
    )

    owner_id: Optional[str] = Field(None, description="Filter by landlord ID")

    page: int = Field(1, ge=1, description="Page number (starts from 1)", example=1)
    page_size: int = Field(20, ge=1, le=100, description="Number of properties per page (max 100)", example=20)

    sort_by: str = Field(
        "created_at",
        description=f"Sort field ({', '.join(SORTABLE_FIELDS)})",
        example="price"
    )

    sort_order: str = Field("desc", description="Sort order (asc or desc)", example="asc")

    @field_validator('sort_by')
    @classmethod
    def validate_sort_by(cls, v):
        """Validate sort field."""
        if v not in SORTABLE_FIELDS:
            raise ValueError(f"Sort field must be one of: {', '.join(SORTABLE_FIELDS)}")
        return v

    @field_validator('sort_order')
    @classmethod
    def validate_sort_order(cls, v):
        """Validate sort order."""
        if v.lower() not in ['asc', 'desc']:
            raise ValueError("Sort order must be 'asc' or 'desc'")
        return v.lower()

    @model_validator(mode='after')
    def validate_ranges(self):
        """Validate price range."""
        if self.min_price is not None and self.max_price is not None:
            if self.min_price > self.max_price:
                raise ValueError("Minimum price cannot be greater than maximum price")
        return self


class PropertyVerificationRequest(BaseModel):
    """Admin decision on a listing pending verification."""

    approved: bool = Field(..., description="Approve (available) or reject (unavailable)", example=True)
    reason: Optional[str] = Field(None, max_length=500, description="Reason shown to the landlord on rejection")


class LandlordStatsResponse(BaseModel):
    """Landlord dashboard figures."""

    total_properties: int = Field(..., example=5)
    active_leases: int = Field(..., example=3)
    expiring_leases: int = Field(..., description="Active leases ending within the reminder window", example=1)
    vacant_units: int = Field(..., example=2)
    occupancy_rate: float = Field(..., description="Percentage of properties under an active lease", example=60.0)
    total_income: float = Field(..., description="Sum of paid charges", example=12500.0)
    pending_income: float = Field(..., description="Sum of pending and overdue charges", example=900.0)
    currency: str = Field(..., example="JOD")
    properties_by_status: dict = Field(default_factory=dict, example={"available": 2, "rented": 3})
