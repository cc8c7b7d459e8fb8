"""
Property management API endpoints for listings, search, saved properties,
verification and landlord dashboard figures.
"""

from fastapi import APIRouter, Depends, status, Query, Path
from typing import Optional
from uuid import UUID
from decimal import Decimal

from rental_api.models.user import User
from rental_api.models.property import PropertyStatus
from rental_api.services.property import PropertyService
from rental_api.schemas.common import ActionResponse, pagination_meta
from rental_api.schemas.property import (
    PropertyCreate,
    PropertyUpdate,
    PropertyResponse,
    PropertyListResponse,
    PropertySearchFilters,
    PropertyVerificationRequest,
    LandlordStatsResponse
)
from rental_api.utils.dependencies import (
    get_current_active_user,
    get_current_admin_user,
    get_current_landlord,
    get_current_renter,
    get_optional_current_user,
    get_property_service
)
from rental_api.utils.exceptions import APIException, BadRequestError, NotFoundError
from rental_api.schemas.error import get_crud_error_responses, get_error_responses


router = APIRouter(prefix="/properties", tags=["Properties"])


def _property_list(properties, total: int, page: int, page_size: int) -> PropertyListResponse:
    return PropertyListResponse(
        properties=[PropertyResponse.model_validate(prop.to_dict()) for prop in properties],
        **pagination_meta(total, page, page_size)
    )


@router.post(
    "",
    response_model=PropertyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create new property",
    description="Create a new listing. Requires the landlord role.",
    responses=get_crud_error_responses()
)
async def create_property(
    property_data: PropertyCreate,
    current_user: User = Depends(get_current_landlord),
    property_service: PropertyService = Depends(get_property_service)
) -> PropertyResponse:
    """
    Create a new property listing.

    Args:
        property_data: Property creation data
        current_user: Current landlord
        property_service: Property service instance

    Returns:
        Created property, pending verification unless auto-approval is on
    """
    try:
        property_obj = await property_service.create_property(property_data, current_user)
        return PropertyResponse.model_validate(property_obj.to_dict())
    except APIException:
        raise
    except Exception as e:
        raise BadRequestError(f"Failed to create property: {str(e)}")


@router.get(
    "",
    response_model=PropertyListResponse,
    status_code=status.HTTP_200_OK,
    summary="Search properties",
    description="Public, paginated search with text, location, price and size filters"
)
async def list_properties(
    # Search parameters
    query: Optional[str] = Query(None, description="Search query for title and description"),
    city: Optional[str] = Query(None, description="City filter"),
    area: Optional[str] = Query(None, description="Area filter"),

    # Price filters
    min_price: Optional[Decimal] = Query(None, ge=0, description="Minimum monthly rent"),
    max_price: Optional[Decimal] = Query(None, ge=0, description="Maximum monthly rent"),

    # Listing attribute filters
    min_bedrooms: Optional[int] = Query(None, ge=0, le=50, description="Minimum number of bedrooms"),
    min_bathrooms: Optional[int] = Query(None, ge=0, le=50, description="Minimum number of bathrooms"),
    furnished: Optional[bool] = Query(None, description="Furnished filter"),

    # Status and owner filters
    status_filter: Optional[PropertyStatus] = Query(None, alias="status", description="Listing status (default: available)"),
    owner_id: Optional[str] = Query(None, description="Filter by landlord ID"),

    # Pagination
    page: int = Query(1, ge=1, description="Page number (starts from 1)"),
    page_size: int = Query(20, ge=1, le=100, description="Number of properties per page"),

    # Sorting
    sort_by: str = Query("created_at", description="Sort field"),
    sort_order: str = Query("desc", description="Sort order (asc/desc)"),

    current_user: Optional[User] = Depends(get_optional_current_user),
    property_service: PropertyService = Depends(get_property_service)
) -> PropertyListResponse:
    """
    Get paginated list of properties with search and filtering capabilities.

    Non-public statuses can only be requested by admins, or by a landlord
    filtering on their own listings.
    """
    try:
        search_filters = PropertySearchFilters(
            query=query,
            city=city,
            area=area,
            min_price=min_price,
            max_price=max_price,
            min_bedrooms=min_bedrooms,
            min_bathrooms=min_bathrooms,
            furnished=furnished,
            status=status_filter or PropertyStatus.AVAILABLE,
            owner_id=owner_id,
            page=page,
            page_size=page_size,
            sort_by=sort_by,
            sort_order=sort_order
        )
    except ValueError as e:
        raise BadRequestError(f"Invalid search parameters: {str(e)}")

    properties, total_count = await property_service.search_properties(search_filters, current_user)
    return _property_list(properties, total_count, page, page_size)


@router.get(
    "/mine",
    response_model=PropertyListResponse,
    status_code=status.HTTP_200_OK,
    summary="List my properties",
    description="Listings owned by the signed-in landlord, in any status"
)
async def get_my_properties(
    status_filter: Optional[PropertyStatus] = Query(None, alias="status", description="Listing status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_landlord),
    property_service: PropertyService = Depends(get_property_service)
) -> PropertyListResponse:
    properties, total = await property_service.get_my_properties(
        current_user, status=status_filter, page=page, page_size=page_size
    )
    return _property_list(properties, total, page, page_size)


@router.get(
    "/stats",
    response_model=LandlordStatsResponse,
    status_code=status.HTTP_200_OK,
    summary="Landlord dashboard",
    description="Occupancy, lease and income figures for the signed-in landlord"
)
async def get_landlord_stats(
    current_user: User = Depends(get_current_landlord),
    property_service: PropertyService = Depends(get_property_service)
) -> LandlordStatsResponse:
    stats = await property_service.get_landlord_stats(current_user)
    return LandlordStatsResponse.model_validate(stats)


@router.get(
    "/saved",
    response_model=PropertyListResponse,
    status_code=status.HTTP_200_OK,
    summary="List saved properties"
)
async def list_saved_properties(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_renter),
    property_service: PropertyService = Depends(get_property_service)
) -> PropertyListResponse:
    properties, total = await property_service.list_saved_properties(current_user, page=page, page_size=page_size)
    return _property_list(properties, total, page, page_size)


@router.get(
    "/pending-verification",
    response_model=PropertyListResponse,
    status_code=status.HTTP_200_OK,
    summary="Listings awaiting verification",
    description="Admin only. Oldest submissions first."
)
async def list_pending_verification(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_admin_user),
    property_service: PropertyService = Depends(get_property_service)
) -> PropertyListResponse:
    properties, total = await property_service.list_pending_verification(current_user, page=page, page_size=page_size)
    return _property_list(properties, total, page, page_size)


@router.get(
    "/{property_id}",
    response_model=PropertyResponse,
    status_code=status.HTTP_200_OK,
    summary="Get property details",
    description="Get a listing. Counts a view unless the viewer is the owner.",
    responses=get_error_responses(404)
)
async def get_property(
    property_id: UUID = Path(..., description="Property ID"),
    current_user: Optional[User] = Depends(get_optional_current_user),
    property_service: PropertyService = Depends(get_property_service)
) -> PropertyResponse:
    property_obj = await property_service.get_property(property_id, current_user)
    return PropertyResponse.model_validate(property_obj.to_dict())


@router.put(
    "/{property_id}",
    response_model=PropertyResponse,
    status_code=status.HTTP_200_OK,
    summary="Update property",
    description="Update listing details. Only the owner or an admin can update.",
    responses=get_crud_error_responses()
)
async def update_property(
    property_data: PropertyUpdate,
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_active_user),
    property_service: PropertyService = Depends(get_property_service)
) -> PropertyResponse:
    """
    Update property details.

    Raises:
        NotFoundError: If property doesn't exist
        PropertyOwnershipError: If user doesn't own the property
        ValidationError: If update data is invalid
    """
    updated_property = await property_service.update_property(property_id, property_data, current_user)
    return PropertyResponse.model_validate(updated_property.to_dict())


@router.delete(
    "/{property_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete property",
    description="Delete a listing. Listings under an active contract cannot be deleted.",
    responses=get_crud_error_responses()
)
async def delete_property(
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_active_user),
    property_service: PropertyService = Depends(get_property_service)
) -> None:
    deleted = await property_service.delete_property(property_id, current_user)
    if not deleted:
        raise NotFoundError("Property", str(property_id))


@router.post(
    "/{property_id}/save",
    response_model=PropertyResponse,
    status_code=status.HTTP_200_OK,
    summary="Save property",
    description="Bookmark a listing. Saving twice has no effect."
)
async def save_property(
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_renter),
    property_service: PropertyService = Depends(get_property_service)
) -> PropertyResponse:
    property_obj = await property_service.save_property(property_id, current_user)
    return PropertyResponse.model_validate(property_obj.to_dict())


@router.delete(
    "/{property_id}/save",
    response_model=ActionResponse,
    status_code=status.HTTP_200_OK,
    summary="Unsave property",
    responses=get_error_responses(404)
)
async def unsave_property(
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_renter),
    property_service: PropertyService = Depends(get_property_service)
) -> ActionResponse:
    await property_service.unsave_property(property_id, current_user)
    return ActionResponse(message="Property removed from saved list")


@router.post(
    "/{property_id}/verify",
    response_model=PropertyResponse,
    status_code=status.HTTP_200_OK,
    summary="Verify listing",
    description="Admin only. Approve (available) or reject (unavailable) a pending listing.",
    responses=get_crud_error_responses()
)
async def verify_property(
    verification: PropertyVerificationRequest,
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_admin_user),
    property_service: PropertyService = Depends(get_property_service)
) -> PropertyResponse:
    property_obj = await property_service.verify_property(
        property_id, verification.approved, current_user, verification.reason
    )
    return PropertyResponse.model_validate(property_obj.to_dict())
