"""
Schemas for rental contracts and their lifecycle actions.
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
from rental_api.models.contract import ContractStatus
from rental_api.schemas.common import PaginatedResponse
from rental_api.utils.validators import ValidationUtils


class ContractCreate(BaseModel):
    """Landlord-drafted lease for one of their properties."""

    property_id: str = Field(..., description="Leased property")
    renter_id: str = Field(..., description="Tenant")
    rent_request_id: Optional[str] = Field(None, description="Originating rent request")

    start_date: date = Field(..., example="2024-03-01")
    end_date: date = Field(..., example="2025-02-28")

    monthly_rent: Decimal = Field(..., gt=0, example=450.00)
    security_deposit: Decimal = Field(..., gt=0, description="Must be greater than zero", example=450.00)
    currency: str = Field("JOD", min_length=3, max_length=3)

    terms: Optional[str] = Field(None, max_length=20000, description="Contract terms text")
    document_url: Optional[str] = Field(None, max_length=500, description="Link to the contract document")

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v):
        return v.upper()

    @model_validator(mode='after')
    def validate_dates(self):
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self


class ContractAcceptRequest(BaseModel):
    signature: Optional[str] = Field(None, max_length=100000, description="Signature image data or typed name")


class ContractChangeRequest(BaseModel):
    changes: str = Field(..., min_length=1, max_length=5000, example="Please allow a small pet.")

    @field_validator('changes')
    @classmethod
    def validate_changes(cls, v):
        return ValidationUtils.clean_text(v, "Requested changes")


class ContractChangesResponse(BaseModel):
    """Landlord's answer to requested changes."""

    accept: bool = Field(..., example=True)
    response: Optional[str] = Field(None, max_length=5000, description="Note for the renter")
    terms: Optional[str] = Field(None, max_length=20000, description="Revised terms, when accepting")


class ContractTerminateRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500, example="Relocating abroad")


class ContractExtendRequest(BaseModel):
    new_end_date: date = Field(..., example="2026-02-28")


class ContractDocuments(BaseModel):
    signed: bool
    url: Optional[str] = None


class ContractResponse(BaseModel):
    id: str
    property_id: str
    renter_id: str
    landlord_id: str
    rent_request_id: Optional[str] = None
    start_date: date
    end_date: date
    monthly_rent: float
    security_deposit: float
    currency: str
    terms: Optional[str] = None
    status: ContractStatus
    documents: ContractDocuments
    accepted_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    terminated_at: Optional[datetime] = None
    requested_changes: Optional[str] = None
    requested_changes_at: Optional[datetime] = None
    changes_response: Optional[str] = None
    termination_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ContractListResponse(PaginatedResponse):
    contracts: List[ContractResponse] = Field(..., description="List of contracts")
