"""
Rent request endpoints: renters request a lease, landlords accept or reject.
"""

from fastapi import APIRouter, Depends, status, Query, Path
from typing import Optional
from uuid import UUID

from rental_api.models.user import User
from rental_api.models.rent_request import RentRequestStatus
from rental_api.services.rent_request import RentRequestService
from rental_api.schemas.common import pagination_meta
from rental_api.schemas.rent_request import (
    RentRequestCreate,
    RentRequestResponseAction,
    RentRequestResponse,
    RentRequestListResponse
)
from rental_api.schemas.error import get_crud_error_responses, get_error_responses
from rental_api.utils.dependencies import (
    get_current_active_user,
    get_current_landlord,
    get_current_renter,
    get_rent_request_service
)


router = APIRouter(prefix="/rent-requests", tags=["Rent Requests"])


@router.post(
    "",
    response_model=RentRequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send rent request",
    description="Ask to rent an available property for a number of months",
    responses=get_crud_error_responses()
)
async def create_rent_request(
    request_data: RentRequestCreate,
    current_user: User = Depends(get_current_renter),
    service: RentRequestService = Depends(get_rent_request_service)
) -> RentRequestResponse:
    rent_request = await service.create_request(request_data, current_user)
    return RentRequestResponse.model_validate(rent_request.to_dict())


@router.get(
    "",
    response_model=RentRequestListResponse,
    status_code=status.HTTP_200_OK,
    summary="List rent requests",
    description="Renters see requests they sent, landlords requests for their properties"
)
async def list_rent_requests(
    status_filter: Optional[RentRequestStatus] = Query(None, alias="status", description="Filter by status"),
    property_id: Optional[UUID] = Query(None, description="Filter by property"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    service: RentRequestService = Depends(get_rent_request_service)
) -> RentRequestListResponse:
    requests, total = await service.list_requests(
        current_user,
        status=status_filter,
        property_id=property_id,
        page=page,
        page_size=page_size
    )
    return RentRequestListResponse(
        requests=[RentRequestResponse.model_validate(item.to_dict()) for item in requests],
        **pagination_meta(total, page, page_size)
    )


@router.get(
    "/{request_id}",
    response_model=RentRequestResponse,
    status_code=status.HTTP_200_OK,
    summary="Get rent request",
    responses=get_error_responses(403, 404)
)
async def get_rent_request(
    request_id: UUID = Path(..., description="Rent request ID"),
    current_user: User = Depends(get_current_active_user),
    service: RentRequestService = Depends(get_rent_request_service)
) -> RentRequestResponse:
    rent_request = await service.get_request(request_id, current_user)
    return RentRequestResponse.model_validate(rent_request.to_dict())


@router.post(
    "/{request_id}/respond",
    response_model=RentRequestResponse,
    status_code=status.HTTP_200_OK,
    summary="Accept or reject rent request",
    description="Accepting drafts a pending contract for the renter to sign",
    responses=get_crud_error_responses()
)
async def respond_to_rent_request(
    action: RentRequestResponseAction,
    request_id: UUID = Path(..., description="Rent request ID"),
    current_user: User = Depends(get_current_landlord),
    service: RentRequestService = Depends(get_rent_request_service)
) -> RentRequestResponse:
    rent_request = await service.respond(request_id, action.status, current_user, action.message)
    return RentRequestResponse.model_validate(rent_request.to_dict())
