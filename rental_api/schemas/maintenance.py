"""
Schemas for maintenance requests.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime
from rental_api.models.maintenance import MaintenanceStatus, MaintenancePriority
from rental_api.schemas.common import PaginatedResponse
from rental_api.utils.validators import ValidationUtils


class MaintenanceCreate(BaseModel):
    property_id: str = Field(..., description="Leased property")
    title: str = Field(..., min_length=3, max_length=255, example="Leaking kitchen tap")
    description: str = Field(..., min_length=5, max_length=5000, example="Water drips constantly under the sink.")
    priority: MaintenancePriority = Field(MaintenancePriority.MEDIUM, example="high")

    @field_validator('title', 'description')
    @classmethod
    def validate_text(cls, v, info):
        return ValidationUtils.clean_text(v, info.field_name.capitalize())


class MaintenanceSchedule(BaseModel):
    scheduled_date: datetime = Field(..., description="Visit time, must be in the future", example="2024-03-05T09:00:00Z")
    notes: Optional[str] = Field(None, max_length=2000)


class MaintenanceComplete(BaseModel):
    notes: Optional[str] = Field(None, max_length=2000, example="Replaced the cartridge.")


class MaintenanceResponse(BaseModel):
    id: str
    property_id: str
    renter_id: str
    landlord_id: str
    title: str
    description: str
    priority: MaintenancePriority
    status: MaintenanceStatus
    scheduled_date: Optional[datetime] = None
    completed_date: Optional[datetime] = None
    landlord_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class MaintenanceListResponse(PaginatedResponse):
    requests: List[MaintenanceResponse] = Field(..., description="List of maintenance requests")
