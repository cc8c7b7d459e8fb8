"""
Rental contract endpoints: drafting, signing, change negotiation, termination and extension.
"""

from fastapi import APIRouter, Depends, status, Query, Path
from typing import Optional
from uuid import UUID

from rental_api.models.user import User
from rental_api.models.contract import ContractStatus
from rental_api.services.contract import ContractService
from rental_api.schemas.common import pagination_meta
from rental_api.schemas.contract import (
    ContractCreate,
    ContractAcceptRequest,
    ContractChangeRequest,
    ContractChangesResponse,
    ContractTerminateRequest,
    ContractExtendRequest,
    ContractResponse,
    ContractListResponse
)
from rental_api.schemas.error import get_crud_error_responses
from rental_api.utils.dependencies import (
    get_current_active_user,
    get_current_landlord,
    get_current_renter,
    get_contract_service
)


router = APIRouter(prefix="/contracts", tags=["Contracts"])


@router.post(
    "",
    response_model=ContractResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Draft contract",
    description="Landlord drafts a contract for an owned property and a renter",
    responses=get_crud_error_responses()
)
async def create_contract(
    contract_data: ContractCreate,
    current_user: User = Depends(get_current_landlord),
    service: ContractService = Depends(get_contract_service)
) -> ContractResponse:
    contract = await service.create_contract(contract_data, current_user)
    return ContractResponse.model_validate(contract.to_dict())


@router.get(
    "",
    response_model=ContractListResponse,
    status_code=status.HTTP_200_OK,
    summary="List contracts"
)
async def list_contracts(
    status_filter: Optional[ContractStatus] = Query(None, alias="status"),
    property_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    service: ContractService = Depends(get_contract_service)
) -> ContractListResponse:
    contracts, total = await service.list_contracts(
        current_user,
        status=status_filter,
        property_id=property_id,
        page=page,
        page_size=page_size
    )
    return ContractListResponse(
        contracts=[ContractResponse.model_validate(contract.to_dict()) for contract in contracts],
        **pagination_meta(total, page, page_size)
    )


@router.get(
    "/{contract_id}",
    response_model=ContractResponse,
    status_code=status.HTTP_200_OK,
    summary="Get contract"
)
async def get_contract(
    contract_id: UUID = Path(..., description="Contract ID"),
    current_user: User = Depends(get_current_active_user),
    service: ContractService = Depends(get_contract_service)
) -> ContractResponse:
    contract = await service.get_contract(contract_id, current_user)
    return ContractResponse.model_validate(contract.to_dict())


@router.post(
    "/{contract_id}/accept",
    response_model=ContractResponse,
    status_code=status.HTTP_200_OK,
    summary="Accept and sign contract",
    description="Activates the lease; the property becomes rented",
    responses=get_crud_error_responses()
)
async def accept_contract(
    acceptance: Optional[ContractAcceptRequest] = None,
    contract_id: UUID = Path(..., description="Contract ID"),
    current_user: User = Depends(get_current_renter),
    service: ContractService = Depends(get_contract_service)
) -> ContractResponse:
    signature = acceptance.signature if acceptance else None
    contract = await service.accept(contract_id, current_user, signature)
    return ContractResponse.model_validate(contract.to_dict())


@router.post(
    "/{contract_id}/reject",
    response_model=ContractResponse,
    status_code=status.HTTP_200_OK,
    summary="Reject contract",
    responses=get_crud_error_responses()
)
async def reject_contract(
    contract_id: UUID = Path(..., description="Contract ID"),
    current_user: User = Depends(get_current_renter),
    service: ContractService = Depends(get_contract_service)
) -> ContractResponse:
    contract = await service.reject(contract_id, current_user)
    return ContractResponse.model_validate(contract.to_dict())


@router.post(
    "/{contract_id}/request-changes",
    response_model=ContractResponse,
    status_code=status.HTTP_200_OK,
    summary="Request changes",
    responses=get_crud_error_responses()
)
async def request_contract_changes(
    change_request: ContractChangeRequest,
    contract_id: UUID = Path(..., description="Contract ID"),
    current_user: User = Depends(get_current_renter),
    service: ContractService = Depends(get_contract_service)
) -> ContractResponse:
    contract = await service.request_changes(contract_id, change_request.changes, current_user)
    return ContractResponse.model_validate(contract.to_dict())


@router.post(
    "/{contract_id}/respond-changes",
    response_model=ContractResponse,
    status_code=status.HTTP_200_OK,
    summary="Answer requested changes",
    responses=get_crud_error_responses()
)
async def respond_to_contract_changes(
    answer: ContractChangesResponse,
    contract_id: UUID = Path(..., description="Contract ID"),
    current_user: User = Depends(get_current_landlord),
    service: ContractService = Depends(get_contract_service)
) -> ContractResponse:
    contract = await service.respond_to_changes(
        contract_id, answer.accept, current_user, response=answer.response, terms=answer.terms
    )
    return ContractResponse.model_validate(contract.to_dict())


@router.post(
    "/{contract_id}/terminate",
    response_model=ContractResponse,
    status_code=status.HTTP_200_OK,
    summary="Terminate contract",
    description="Either party ends an active lease; the property becomes available",
    responses=get_crud_error_responses()
)
async def terminate_contract(
    termination: Optional[ContractTerminateRequest] = None,
    contract_id: UUID = Path(..., description="Contract ID"),
    current_user: User = Depends(get_current_active_user),
    service: ContractService = Depends(get_contract_service)
) -> ContractResponse:
    reason = termination.reason if termination else None
    contract = await service.terminate(contract_id, current_user, reason)
    return ContractResponse.model_validate(contract.to_dict())


@router.post(
    "/{contract_id}/extend",
    response_model=ContractResponse,
    status_code=status.HTTP_200_OK,
    summary="Extend contract",
    responses=get_crud_error_responses()
)
async def extend_contract(
    extension: ContractExtendRequest,
    contract_id: UUID = Path(..., description="Contract ID"),
    current_user: User = Depends(get_current_landlord),
    service: ContractService = Depends(get_contract_service)
) -> ContractResponse:
    contract = await service.extend(contract_id, extension.new_end_date, current_user)
    return ContractResponse.model_validate(contract.to_dict())
