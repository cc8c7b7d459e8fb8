"""
Transaction endpoints: charges, payments and financial summaries.
"""

from fastapi import APIRouter, Depends, status, Query, Path
from typing import Optional
from uuid import UUID

from rental_api.models.user import User
from rental_api.models.transaction import TransactionStatus, TransactionType
from rental_api.services.transaction import TransactionService
from rental_api.schemas.common import pagination_meta
from rental_api.schemas.transaction import (
    TransactionCreate,
    TransactionResponse,
    FinancialSummary,
    TransactionListResponse
)
from rental_api.schemas.error import get_crud_error_responses
from rental_api.utils.dependencies import (
    get_current_active_user,
    get_current_landlord,
    get_current_renter,
    get_transaction_service
)


router = APIRouter(prefix="/transactions", tags=["Transactions"])


@router.post(
    "",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a charge",
    description="Landlord raises a rent, deposit or utility charge against a renter",
    responses=get_crud_error_responses()
)
async def create_charge(
    charge_data: TransactionCreate,
    current_user: User = Depends(get_current_landlord),
    service: TransactionService = Depends(get_transaction_service)
) -> TransactionResponse:
    transaction = await service.create_charge(charge_data, current_user)
    return TransactionResponse.model_validate(transaction.to_dict())


@router.get(
    "",
    response_model=TransactionListResponse,
    status_code=status.HTTP_200_OK,
    summary="List transactions",
    description="Charges of the signed-in user with paid, pending and overdue totals"
)
async def list_transactions(
    status_filter: Optional[TransactionStatus] = Query(None, alias="status"),
    type_filter: Optional[TransactionType] = Query(None, alias="type"),
    property_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    service: TransactionService = Depends(get_transaction_service)
) -> TransactionListResponse:
    transactions, total = await service.list_transactions(
        current_user,
        status=status_filter,
        type=type_filter,
        property_id=property_id,
        page=page,
        page_size=page_size
    )
    summary = await service.get_summary(current_user, property_id=property_id)
    return TransactionListResponse(
        transactions=[TransactionResponse.model_validate(item.to_dict()) for item in transactions],
        summary=FinancialSummary.model_validate(summary),
        **pagination_meta(total, page, page_size)
    )


@router.get(
    "/summary",
    response_model=FinancialSummary,
    status_code=status.HTTP_200_OK,
    summary="Financial summary"
)
async def get_financial_summary(
    property_id: Optional[UUID] = Query(None),
    current_user: User = Depends(get_current_active_user),
    service: TransactionService = Depends(get_transaction_service)
) -> FinancialSummary:
    return FinancialSummary.model_validate(await service.get_summary(current_user, property_id=property_id))


@router.get(
    "/{transaction_id}",
    response_model=TransactionResponse,
    status_code=status.HTTP_200_OK,
    summary="Get transaction"
)
async def get_transaction(
    transaction_id: UUID = Path(..., description="Transaction ID"),
    current_user: User = Depends(get_current_active_user),
    service: TransactionService = Depends(get_transaction_service)
) -> TransactionResponse:
    transaction = await service.get_transaction(transaction_id, current_user)
    return TransactionResponse.model_validate(transaction.to_dict())


@router.post(
    "/{transaction_id}/pay",
    response_model=TransactionResponse,
    status_code=status.HTTP_200_OK,
    summary="Pay a charge",
    responses=get_crud_error_responses()
)
async def pay_transaction(
    transaction_id: UUID = Path(..., description="Transaction ID"),
    current_user: User = Depends(get_current_renter),
    service: TransactionService = Depends(get_transaction_service)
) -> TransactionResponse:
    transaction = await service.pay(transaction_id, current_user)
    return TransactionResponse.model_validate(transaction.to_dict())
