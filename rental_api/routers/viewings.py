"""
Viewing endpoints: landlord time slots and the renter viewing request lifecycle.
"""

from fastapi import APIRouter, Depends, status, Query, Path
from typing import Optional, List
from datetime import date
from uuid import UUID

from rental_api.models.user import User
from rental_api.models.viewing import ViewingRequest, ViewingStatus
from rental_api.services.viewing import ViewingService
from rental_api.schemas.common import ActionResponse, pagination_meta
from rental_api.schemas.viewing import (
    TimeSlotBatchCreate,
    TimeSlotResponse,
    ViewingRequestCreate,
    ViewingRejectRequest,
    ViewingCancelRequest,
    ViewingRequestResponse,
    ViewingRequestListResponse
)
from rental_api.schemas.error import get_crud_error_responses, get_error_responses
from rental_api.utils.dependencies import (
    get_current_active_user,
    get_current_landlord,
    get_current_renter,
    get_viewing_service
)


router = APIRouter(prefix="/viewings", tags=["Viewings"])


async def _viewing_responses(service: ViewingService, viewings: List[ViewingRequest]) -> List[ViewingRequestResponse]:
    slots = await service.slots_for(viewings)
    responses = []
    for viewing in viewings:
        data = viewing.to_dict()
        slot = slots.get(viewing.time_slot_id)
        data["time_slot"] = slot.to_dict() if slot else None
        responses.append(ViewingRequestResponse.model_validate(data))
    return responses


async def _viewing_response(service: ViewingService, viewing: ViewingRequest) -> ViewingRequestResponse:
    return (await _viewing_responses(service, [viewing]))[0]


# Time slots

@router.get(
    "/properties/{property_id}/available-slots",
    response_model=List[TimeSlotResponse],
    status_code=status.HTTP_200_OK,
    summary="Available viewing slots",
    description="Unbooked future slots on a day that no confirmed viewing holds",
    responses=get_error_responses(404)
)
async def get_available_slots(
    property_id: UUID = Path(..., description="Property ID"),
    on_date: date = Query(..., alias="date", description="Day to list (YYYY-MM-DD, UTC)"),
    service: ViewingService = Depends(get_viewing_service)
) -> List[TimeSlotResponse]:
    slots = await service.available_time_slots(property_id, on_date)
    return [TimeSlotResponse.model_validate(slot.to_dict()) for slot in slots]


@router.get(
    "/properties/{property_id}/slots",
    response_model=List[TimeSlotResponse],
    status_code=status.HTTP_200_OK,
    summary="All slots of an owned property"
)
async def list_property_slots(
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_landlord),
    service: ViewingService = Depends(get_viewing_service)
) -> List[TimeSlotResponse]:
    slots = await service.list_time_slots(property_id, current_user)
    return [TimeSlotResponse.model_validate(slot.to_dict()) for slot in slots]


@router.post(
    "/properties/{property_id}/slots",
    response_model=List[TimeSlotResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Add viewing slots",
    responses=get_crud_error_responses()
)
async def add_property_slots(
    slot_data: TimeSlotBatchCreate,
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_landlord),
    service: ViewingService = Depends(get_viewing_service)
) -> List[TimeSlotResponse]:
    slots = await service.add_time_slots(property_id, slot_data.slots, current_user)
    return [TimeSlotResponse.model_validate(slot.to_dict()) for slot in slots]


@router.delete(
    "/slots/{slot_id}",
    response_model=ActionResponse,
    status_code=status.HTTP_200_OK,
    summary="Remove an unbooked slot",
    responses=get_crud_error_responses()
)
async def remove_slot(
    slot_id: UUID = Path(..., description="Time slot ID"),
    current_user: User = Depends(get_current_landlord),
    service: ViewingService = Depends(get_viewing_service)
) -> ActionResponse:
    await service.remove_time_slot(slot_id, current_user)
    return ActionResponse(message="Time slot removed")


@router.get(
    "/properties/{property_id}",
    response_model=ViewingRequestListResponse,
    status_code=status.HTTP_200_OK,
    summary="Viewing requests for an owned property"
)
async def list_property_viewings(
    property_id: UUID = Path(..., description="Property ID"),
    status_filter: Optional[ViewingStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_landlord),
    service: ViewingService = Depends(get_viewing_service)
) -> ViewingRequestListResponse:
    viewings, total = await service.list_for_property(
        property_id, current_user, status=status_filter, page=page, page_size=page_size
    )
    return ViewingRequestListResponse(
        viewings=await _viewing_responses(service, viewings),
        **pagination_meta(total, page, page_size)
    )


# Viewing requests

@router.post(
    "",
    response_model=ViewingRequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request a viewing",
    responses=get_crud_error_responses()
)
async def create_viewing_request(
    request_data: ViewingRequestCreate,
    current_user: User = Depends(get_current_renter),
    service: ViewingService = Depends(get_viewing_service)
) -> ViewingRequestResponse:
    viewing = await service.create_request(request_data, current_user)
    return await _viewing_response(service, viewing)


@router.get(
    "",
    response_model=ViewingRequestListResponse,
    status_code=status.HTTP_200_OK,
    summary="List my viewing requests"
)
async def list_viewing_requests(
    status_filter: Optional[ViewingStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    service: ViewingService = Depends(get_viewing_service)
) -> ViewingRequestListResponse:
    viewings, total = await service.list_requests(current_user, status=status_filter, page=page, page_size=page_size)
    return ViewingRequestListResponse(
        viewings=await _viewing_responses(service, viewings),
        **pagination_meta(total, page, page_size)
    )


@router.get(
    "/{viewing_id}",
    response_model=ViewingRequestResponse,
    status_code=status.HTTP_200_OK,
    summary="Get viewing request"
)
async def get_viewing_request(
    viewing_id: UUID = Path(..., description="Viewing request ID"),
    current_user: User = Depends(get_current_active_user),
    service: ViewingService = Depends(get_viewing_service)
) -> ViewingRequestResponse:
    viewing = await service.get_request(viewing_id, current_user)
    return await _viewing_response(service, viewing)


@router.post(
    "/{viewing_id}/confirm",
    response_model=ViewingRequestResponse,
    status_code=status.HTTP_200_OK,
    summary="Confirm viewing",
    description="Books the slot. Fails with 409 if the slot was taken meanwhile.",
    responses=get_crud_error_responses()
)
async def confirm_viewing(
    viewing_id: UUID = Path(..., description="Viewing request ID"),
    current_user: User = Depends(get_current_landlord),
    service: ViewingService = Depends(get_viewing_service)
) -> ViewingRequestResponse:
    viewing = await service.confirm(viewing_id, current_user)
    return await _viewing_response(service, viewing)


@router.post(
    "/{viewing_id}/reject",
    response_model=ViewingRequestResponse,
    status_code=status.HTTP_200_OK,
    summary="Reject viewing",
    responses=get_crud_error_responses()
)
async def reject_viewing(
    rejection: ViewingRejectRequest,
    viewing_id: UUID = Path(..., description="Viewing request ID"),
    current_user: User = Depends(get_current_landlord),
    service: ViewingService = Depends(get_viewing_service)
) -> ViewingRequestResponse:
    viewing = await service.reject(viewing_id, rejection.reason, current_user)
    return await _viewing_response(service, viewing)


@router.post(
    "/{viewing_id}/cancel",
    response_model=ViewingRequestResponse,
    status_code=status.HTTP_200_OK,
    summary="Cancel viewing",
    description="Either party may cancel a pending or confirmed viewing",
    responses=get_crud_error_responses()
)
async def cancel_viewing(
    cancellation: Optional[ViewingCancelRequest] = None,
    viewing_id: UUID = Path(..., description="Viewing request ID"),
    current_user: User = Depends(get_current_active_user),
    service: ViewingService = Depends(get_viewing_service)
) -> ViewingRequestResponse:
    reason = cancellation.reason if cancellation else None
    viewing = await service.cancel(viewing_id, current_user, reason)
    return await _viewing_response(service, viewing)


@router.post(
    "/{viewing_id}/complete",
    response_model=ViewingRequestResponse,
    status_code=status.HTTP_200_OK,
    summary="Mark viewing completed",
    responses=get_crud_error_responses()
)
async def complete_viewing(
    viewing_id: UUID = Path(..., description="Viewing request ID"),
    current_user: User = Depends(get_current_landlord),
    service: ViewingService = Depends(get_viewing_service)
) -> ViewingRequestResponse:
    viewing = await service.complete(viewing_id, current_user)
    return await _viewing_response(service, viewing)
