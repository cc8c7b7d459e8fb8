"""
Schemas for charges, payments and financial summaries.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
from rental_api.models.transaction import TransactionType, TransactionStatus
from rental_api.schemas.common import PaginatedResponse


class TransactionCreate(BaseModel):
    """A charge the landlord raises against a renter."""

    property_id: str = Field(..., description="Property the charge relates to")
    renter_id: str = Field(..., description="Renter who owes the charge")
    amount: Decimal = Field(..., gt=0, example=450.00)
    currency: Optional[str] = Field(None, min_length=3, max_length=3, description="Defaults to the property currency")
    type: TransactionType = Field(..., example="rent")
    due_date: date = Field(..., example="2024-03-01")
    description: Optional[str] = Field(None, max_length=500, example="March rent")

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v):
        return v.upper() if v else v


class TransactionResponse(BaseModel):
    id: str
    property_id: str
    renter_id: str
    landlord_id: str
    amount: float
    currency: str
    type: TransactionType
    status: TransactionStatus
    due_date: date
    paid_date: Optional[datetime] = None
    description: Optional[str] = None
    created_at: datetime


class FinancialSummary(BaseModel):
    total_paid: float = Field(..., example=5400.0)
    total_pending: float = Field(..., example=450.0)
    total_overdue: float = Field(..., example=0.0)
    paid_count: int = 0
    pending_count: int = 0
    overdue_count: int = 0


class TransactionListResponse(PaginatedResponse):
    transactions: List[TransactionResponse] = Field(..., description="List of transactions")
    summary: FinancialSummary
