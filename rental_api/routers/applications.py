"""
Rental application endpoints.
"""

from fastapi import APIRouter, Depends, status, Query, Path
from typing import Optional
from uuid import UUID

from rental_api.models.user import User
from rental_api.models.application import ApplicationStatus
from rental_api.services.application import ApplicationService
from rental_api.schemas.common import pagination_meta
from rental_api.schemas.rent_request import (
    ApplicationCreate,
    ApplicationReview,
    ApplicationResponse,
    ApplicationListResponse
)
from rental_api.schemas.error import get_crud_error_responses
from rental_api.utils.dependencies import (
    get_current_active_user,
    get_current_landlord,
    get_current_renter,
    get_application_service
)


router = APIRouter(prefix="/applications", tags=["Applications"])


@router.post(
    "",
    response_model=ApplicationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Apply to a property",
    responses=get_crud_error_responses()
)
async def submit_application(
    application_data: ApplicationCreate,
    current_user: User = Depends(get_current_renter),
    service: ApplicationService = Depends(get_application_service)
) -> ApplicationResponse:
    application = await service.submit(application_data, current_user)
    return ApplicationResponse.model_validate(application.to_dict())


@router.get(
    "",
    response_model=ApplicationListResponse,
    status_code=status.HTTP_200_OK,
    summary="List applications"
)
async def list_applications(
    status_filter: Optional[ApplicationStatus] = Query(None, alias="status"),
    property_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    service: ApplicationService = Depends(get_application_service)
) -> ApplicationListResponse:
    applications, total = await service.list_applications(
        current_user,
        status=status_filter,
        property_id=property_id,
        page=page,
        page_size=page_size
    )
    return ApplicationListResponse(
        applications=[ApplicationResponse.model_validate(item.to_dict()) for item in applications],
        **pagination_meta(total, page, page_size)
    )


@router.get(
    "/{application_id}",
    response_model=ApplicationResponse,
    status_code=status.HTTP_200_OK,
    summary="Get application"
)
async def get_application(
    application_id: UUID = Path(..., description="Application ID"),
    current_user: User = Depends(get_current_active_user),
    service: ApplicationService = Depends(get_application_service)
) -> ApplicationResponse:
    application = await service.get_application(application_id, current_user)
    return ApplicationResponse.model_validate(application.to_dict())


@router.post(
    "/{application_id}/review",
    response_model=ApplicationResponse,
    status_code=status.HTTP_200_OK,
    summary="Approve or reject application",
    responses=get_crud_error_responses()
)
async def review_application(
    review: ApplicationReview,
    application_id: UUID = Path(..., description="Application ID"),
    current_user: User = Depends(get_current_landlord),
    service: ApplicationService = Depends(get_application_service)
) -> ApplicationResponse:
    application = await service.review(application_id, review.status, current_user)
    return ApplicationResponse.model_validate(application.to_dict())
