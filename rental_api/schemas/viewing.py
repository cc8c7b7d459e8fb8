"""
Schemas for viewing time slots and viewing requests.
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime
from rental_api.models.viewing import ViewingStatus
from rental_api.schemas.common import PaginatedResponse
from rental_api.utils.validators import ValidationUtils


class TimeSlotCreate(BaseModel):
    """A viewing window published by the landlord."""

    start_time: datetime = Field(..., description="Slot start", example="2024-03-01T10:00:00Z")
    end_time: datetime = Field(..., description="Slot end", example="2024-03-01T10:30:00Z")

    @model_validator(mode='after')
    def validate_window(self):
        if self.end_time <= self.start_time:
            raise ValueError("End time must be after start time")
        return self


class TimeSlotBatchCreate(BaseModel):
    slots: List[TimeSlotCreate] = Field(..., min_length=1, max_length=50)


class TimeSlotResponse(BaseModel):
    id: str
    property_id: str
    start_time: datetime
    end_time: datetime
    is_booked: bool


class ViewingRequestCreate(BaseModel):
    property_id: str = Field(..., description="Property to visit")
    time_slot_id: str = Field(..., description="One of the property's available slots")
    notes: Optional[str] = Field(None, max_length=1000, example="Can I bring a friend?")

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, v):
        if v is None or not v.strip():
            return None
        return ValidationUtils.clean_text(v, "Notes")


class ViewingRejectRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500, example="The unit is no longer available that day")

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, v):
        return ValidationUtils.clean_text(v, "Reason")


class ViewingCancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500, example="Schedule conflict")


class ViewingRequestResponse(BaseModel):
    id: str
    property_id: str
    renter_id: str
    landlord_id: str
    time_slot_id: str
    notes: Optional[str] = None
    status: ViewingStatus
    response_date: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[str] = None
    created_at: datetime
    time_slot: Optional[TimeSlotResponse] = None


class ViewingRequestListResponse(PaginatedResponse):
    viewings: List[ViewingRequestResponse] = Field(..., description="List of viewing requests")
