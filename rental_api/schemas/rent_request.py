"""
Schemas for rent requests and rental applications.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import date, datetime
from rental_api.models.rent_request import RentRequestStatus
from rental_api.models.application import ApplicationStatus
from rental_api.schemas.common import PaginatedResponse
from rental_api.utils.validators import ValidationUtils


class RentRequestCreate(BaseModel):
    """Renter's request to rent a listing."""

    property_id: str = Field(..., description="Property to rent", example="123e4567-e89b-12d3-a456-426614174000")

    months: int = Field(
        ...,
        ge=1,
        le=36,
        description="Lease length in months",
        example=12
    )

    message: Optional[str] = Field(
        None,
        max_length=2000,
        description="Note for the landlord",
        example="I work nearby and can move in next month."
    )

    desired_start_date: Optional[date] = Field(
        None,
        description="Preferred lease start date",
        example="2024-03-01"
    )

    @field_validator('message')
    @classmethod
    def validate_message(cls, v):
        if v is None or not v.strip():
            return None
        return ValidationUtils.clean_text(v, "Message")


class RentRequestResponseAction(BaseModel):
    """Landlord's answer to a pending rent request."""

    status: RentRequestStatus = Field(..., description="accepted or rejected", example="accepted")
    message: Optional[str] = Field(None, max_length=1000, description="Optional note for the renter")

    @field_validator('status')
    @classmethod
    def validate_status(cls, v):
        if v not in (RentRequestStatus.ACCEPTED, RentRequestStatus.REJECTED):
            raise ValueError("Status must be accepted or rejected")
        return v


class RentRequestResponse(BaseModel):
    id: str
    property_id: str
    renter_id: str
    landlord_id: str
    months: int
    message: Optional[str] = None
    desired_start_date: Optional[date] = None
    status: RentRequestStatus
    request_date: datetime
    response_date: Optional[datetime] = None
    response_message: Optional[str] = None
    contract_id: Optional[str] = None
    updated_at: datetime


class RentRequestListResponse(PaginatedResponse):
    requests: List[RentRequestResponse] = Field(..., description="List of rent requests")


class ApplicationCreate(BaseModel):
    """Renter's application to a listing."""

    property_id: str = Field(..., description="Property applied to")

    message: str = Field(
        ...,
        min_length=1,
        max_length=2000,
        description="Cover message for the landlord",
        example="Family of three, non-smokers, stable income."
    )

    @field_validator('message')
    @classmethod
    def validate_message(cls, v):
        return ValidationUtils.clean_text(v, "Message")


class ApplicationReview(BaseModel):
    """Landlord's decision on an application."""

    status: ApplicationStatus = Field(..., description="approved or rejected", example="approved")

    @field_validator('status')
    @classmethod
    def validate_status(cls, v):
        if v == ApplicationStatus.PENDING:
            raise ValueError("Status must be approved or rejected")
        return v


class ApplicationResponse(BaseModel):
    id: str
    applicant_id: str
    property_id: str
    landlord_id: str
    message: Optional[str] = None
    status: ApplicationStatus
    reviewed_at: Optional[datetime] = None
    created_at: datetime


class ApplicationListResponse(PaginatedResponse):
    applications: List[ApplicationResponse] = Field(..., description="List of applications")
