"""
Maintenance request endpoints.
"""

from fastapi import APIRouter, Depends, status, Query, Path
from typing import Optional, Literal
from uuid import UUID

from rental_api.models.user import User
from rental_api.services.maintenance import MaintenanceService
from rental_api.schemas.common import pagination_meta
from rental_api.schemas.maintenance import (
    MaintenanceCreate,
    MaintenanceSchedule,
    MaintenanceComplete,
    MaintenanceResponse,
    MaintenanceListResponse
)
from rental_api.schemas.error import get_crud_error_responses
from rental_api.utils.dependencies import (
    get_current_active_user,
    get_current_landlord,
    get_current_renter,
    get_maintenance_service
)


router = APIRouter(prefix="/maintenance", tags=["Maintenance"])


@router.post(
    "",
    response_model=MaintenanceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Report a maintenance issue",
    description="Renter with an active lease on the property reports a problem",
    responses=get_crud_error_responses()
)
async def create_maintenance_request(
    request_data: MaintenanceCreate,
    current_user: User = Depends(get_current_renter),
    service: MaintenanceService = Depends(get_maintenance_service)
) -> MaintenanceResponse:
    request = await service.create_request(request_data, current_user)
    return MaintenanceResponse.model_validate(request.to_dict())


@router.get(
    "",
    response_model=MaintenanceListResponse,
    status_code=status.HTTP_200_OK,
    summary="List maintenance requests",
    description="view=active for pending and scheduled, view=past for completed and cancelled"
)
async def list_maintenance_requests(
    view: Optional[Literal["active", "past"]] = Query(None),
    property_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    service: MaintenanceService = Depends(get_maintenance_service)
) -> MaintenanceListResponse:
    requests, total = await service.list_requests(
        current_user, view=view, property_id=property_id, page=page, page_size=page_size
    )
    return MaintenanceListResponse(
        requests=[MaintenanceResponse.model_validate(item.to_dict()) for item in requests],
        **pagination_meta(total, page, page_size)
    )


@router.get(
    "/{request_id}",
    response_model=MaintenanceResponse,
    status_code=status.HTTP_200_OK,
    summary="Get maintenance request"
)
async def get_maintenance_request(
    request_id: UUID = Path(..., description="Maintenance request ID"),
    current_user: User = Depends(get_current_active_user),
    service: MaintenanceService = Depends(get_maintenance_service)
) -> MaintenanceResponse:
    request = await service.get_request(request_id, current_user)
    return MaintenanceResponse.model_validate(request.to_dict())


@router.post(
    "/{request_id}/schedule",
    response_model=MaintenanceResponse,
    status_code=status.HTTP_200_OK,
    summary="Schedule a visit",
    responses=get_crud_error_responses()
)
async def schedule_maintenance(
    schedule: MaintenanceSchedule,
    request_id: UUID = Path(..., description="Maintenance request ID"),
    current_user: User = Depends(get_current_landlord),
    service: MaintenanceService = Depends(get_maintenance_service)
) -> MaintenanceResponse:
    request = await service.schedule(request_id, schedule.scheduled_date, current_user, schedule.notes)
    return MaintenanceResponse.model_validate(request.to_dict())


@router.post(
    "/{request_id}/complete",
    response_model=MaintenanceResponse,
    status_code=status.HTTP_200_OK,
    summary="Mark completed",
    responses=get_crud_error_responses()
)
async def complete_maintenance(
    completion: Optional[MaintenanceComplete] = None,
    request_id: UUID = Path(..., description="Maintenance request ID"),
    current_user: User = Depends(get_current_landlord),
    service: MaintenanceService = Depends(get_maintenance_service)
) -> MaintenanceResponse:
    notes = completion.notes if completion else None
    request = await service.complete(request_id, current_user, notes)
    return MaintenanceResponse.model_validate(request.to_dict())


@router.post(
    "/{request_id}/cancel",
    response_model=MaintenanceResponse,
    status_code=status.HTTP_200_OK,
    summary="Cancel request",
    responses=get_crud_error_responses()
)
async def cancel_maintenance(
    request_id: UUID = Path(..., description="Maintenance request ID"),
    current_user: User = Depends(get_current_renter),
    service: MaintenanceService = Depends(get_maintenance_service)
) -> MaintenanceResponse:
    request = await service.cancel(request_id, current_user)
    return MaintenanceResponse.model_validate(request.to_dict())
