"""
Property service for managing rental listings with business logic validation.
Handles CRUD, ownership, public search, saved listings, admin verification
and landlord dashboard figures.
"""

from typing import Optional, List, Dict, Any, Tuple
from datetime import timedelta
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from rental_api.config import settings
from rental_api.repositories.property import PropertyRepository, PropertySearchFilters, SavedPropertyRepository
from rental_api.repositories.contract import ContractRepository
from rental_api.repositories.transaction import TransactionRepository
from rental_api.models.property import Property, PropertyStatus
from rental_api.models.transaction import TransactionStatus
from rental_api.models.notification import NotificationType
from rental_api.models.user import User
from rental_api.schemas.property import PropertyCreate, PropertyUpdate, PropertySearchFilters as PropertySearchSchema
from rental_api.services.channels import ChannelDispatcher
from rental_api.services.notification import NotificationService
from rental_api.utils.exceptions import (
    APIException,
    NotFoundError,
    ForbiddenError,
    ConflictError,
    ValidationError,
    BadRequestError,
    PropertyNotFoundError,
    PropertyOwnershipError,
    InsufficientPermissionsError,
    InvalidStatusTransitionError,
)
from rental_api.utils.timeutils import today_utc
import uuid
import logging

logger = logging.getLogger(__name__)

PUBLIC_STATUSES = (PropertyStatus.AVAILABLE, PropertyStatus.RENTED)


class PropertyService:
    """
    Property service for managing rental listings.
    """

    def __init__(self, db_session: AsyncSession, dispatcher: Optional[ChannelDispatcher] = None):
        self.db = db_session
        self.property_repo = PropertyRepository(db_session)
        self.saved_repo = SavedPropertyRepository(db_session)
        self.contract_repo = ContractRepository(db_session)
        self.transaction_repo = TransactionRepository(db_session)
        self.notifications = NotificationService(db_session, dispatcher)

    async def create_property(self, property_data: PropertyCreate, current_user: User) -> Property:
        """
        Create a new listing owned by the current landlord.

        New listings wait for admin verification unless auto-approval is configured.

        Args:
            property_data: Property creation data
            current_user: Landlord creating the listing

        Returns:
            Created property instance

        Raises:
            InsufficientPermissionsError: If the user is not a landlord
        """
        try:
            if not current_user.is_landlord:
                raise InsufficientPermissionsError("create properties")

            create_data = property_data.model_dump()
            create_data["owner_id"] = current_user.id
            create_data["status"] = (
                PropertyStatus.AVAILABLE if settings.property_auto_approve else PropertyStatus.PENDING_VERIFICATION
            )
            create_data["views"] = 0

            property_obj = await self.property_repo.create_property(create_data)

            logger.info(f"Property created by {current_user.email}: {property_obj.title} (ID: {property_obj.id})")
            return property_obj
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to create property for user {current_user.id}: {e}")
            raise BadRequestError(f"Failed to create property: {str(e)}")

    async def _get_property_or_404(self, property_id: uuid.UUID) -> Property:
        property_obj = await self.property_repo.get_by_id(property_id)
        if not property_obj:
            raise PropertyNotFoundError(str(property_id))
        return property_obj

    def _can_view(self, property_obj: Property, current_user: Optional[User]) -> bool:
        if property_obj.status in PUBLIC_STATUSES:
            return True
        return current_user is not None and current_user.can_manage_property(property_obj.owner_id)

    async def get_property(
        self,
        property_id: uuid.UUID,
        current_user: Optional[User] = None,
        count_view: bool = True
    ) -> Property:
        """
        Get a listing. Listings that are not public are only visible to their owner and admins.

        Args:
            property_id: UUID of the property
            current_user: Optional viewer
            count_view: Increment the view counter when the viewer is not the owner

        Returns:
            Property instance

        Raises:
            PropertyNotFoundError: If the property doesn't exist or is hidden from the viewer
        """
        property_obj = await self._get_property_or_404(property_id)

        if not self._can_view(property_obj, current_user):
            raise PropertyNotFoundError(str(property_id))

        is_owner = current_user is not None and current_user.id == property_obj.owner_id
        if count_view and not is_owner:
            await self.property_repo.increment_views(property_id)
            await self.db.refresh(property_obj)

        return property_obj

    async def get_owned_property(self, property_id: uuid.UUID, current_user: User) -> Property:
        """
        Get a property the current user may manage.

        Raises:
            PropertyNotFoundError: If the property doesn't exist
            PropertyOwnershipError: If the user neither owns it nor is an admin
        """
        property_obj = await self._get_property_or_404(property_id)
        if not current_user.can_manage_property(property_obj.owner_id):
            raise PropertyOwnershipError()
        return property_obj

    async def update_property(
        self,
        property_id: uuid.UUID,
        property_data: PropertyUpdate,
        current_user: User
    ) -> Property:
        """
        Update a listing.

        Args:
            property_id: UUID of the property to update
            property_data: Fields to change
            current_user: Owner or admin

        Returns:
            Updated property instance

        Raises:
            ValidationError: If no fields were supplied
            InvalidStatusTransitionError: If the status change is not allowed
        """
        try:
            existing_property = await self.get_owned_property(property_id, current_user)

            update_data = {k: v for k, v in property_data.model_dump(exclude_unset=True).items() if v is not None}
            if not update_data:
                raise ValidationError("No valid fields provided for update")

            new_status = update_data.get("status")
            if new_status is not None and new_status != existing_property.status:
                if existing_property.status not in (PropertyStatus.AVAILABLE, PropertyStatus.UNAVAILABLE):
                    raise InvalidStatusTransitionError(
                        "property", existing_property.status.value, new_status.value
                    )

            for field, value in update_data.items():
                setattr(existing_property, field, value)
            updated_property = await self.property_repo.save(existing_property)

            logger.info(f"Property updated by {current_user.email}: {property_id} {sorted(update_data)}")
            return updated_property
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to update property {property_id}: {e}")
            raise BadRequestError(f"Failed to update property: {str(e)}")

    async def delete_property(self, property_id: uuid.UUID, current_user: User) -> bool:
        """
        Delete a listing.

        Raises:
            ConflictError: If the property is under an active contract
        """
        await self.get_owned_property(property_id, current_user)

        active_contract = await self.contract_repo.get_active_for_property(property_id)
        if active_contract:
            raise ConflictError("Property with an active contract cannot be deleted", resource="property")

        deleted = await self.property_repo.delete(property_id)
        if not deleted:
            raise PropertyNotFoundError(str(property_id))

        logger.info(f"Property deleted by {current_user.email}: {property_id}")
        return True

    async def search_properties(
        self,
        search_params: PropertySearchSchema,
        current_user: Optional[User] = None
    ) -> Tuple[List[Property], int]:
        """
        Public search over listings.

        Listings that are not public can only be searched by admins, or by a
        landlord filtering on their own listings.

        Returns:
            Tuple of (properties list, total count)
        """
        owner_id = None
        if search_params.owner_id:
            try:
                owner_id = uuid.UUID(search_params.owner_id)
            except ValueError:
                raise ValidationError(
                    "Invalid owner ID format",
                    field_errors=[{"field": "owner_id", "message": "Must be a UUID"}]
                )

        status = search_params.status
        if status not in PUBLIC_STATUSES:
            is_admin = current_user is not None and current_user.is_admin
            is_own = current_user is not None and owner_id == current_user.id
            if not (is_admin or is_own):
                raise ForbiddenError("Only the owner or an admin can search listings with this status")

        filters = PropertySearchFilters(
            query=search_params.query,
            city=search_params.city,
            area=search_params.area,
            min_price=search_params.min_price,
            max_price=search_params.max_price,
            min_bedrooms=search_params.min_bedrooms,
            min_bathrooms=search_params.min_bathrooms,
            furnished=search_params.furnished,
            status=status,
            owner_id=owner_id,
        )

        skip = (search_params.page - 1) * search_params.page_size
        return await self.property_repo.search_properties(
            filters,
            skip=skip,
            limit=search_params.page_size,
            order_by=search_params.sort_by,
            order_direction=search_params.sort_order,
        )

    async def get_my_properties(
        self,
        current_user: User,
        status: Optional[PropertyStatus] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[Property], int]:
        if not current_user.is_landlord:
            raise InsufficientPermissionsError("list owned properties")
        skip = (page - 1) * page_size
        return await self.property_repo.get_properties_by_owner(current_user.id, skip=skip, limit=page_size, status=status)

    # Saved listings

    async def save_property(self, property_id: uuid.UUID, current_user: User) -> Property:
        """Bookmark a listing. Saving twice is a no-op."""
        property_obj = await self._get_property_or_404(property_id)
        if not self._can_view(property_obj, current_user):
            raise PropertyNotFoundError(str(property_id))

        existing = await self.saved_repo.get_saved(current_user.id, property_id)
        if not existing:
            await self.saved_repo.create({"user_id": current_user.id, "property_id": property_id})
            logger.info(f"User {current_user.id} saved property {property_id}")
        return property_obj

    async def unsave_property(self, property_id: uuid.UUID, current_user: User) -> bool:
        removed = await self.saved_repo.remove(current_user.id, property_id)
        if not removed:
            raise NotFoundError("Saved property", str(property_id))
        return True

    async def list_saved_properties(
        self,
        current_user: User,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[Property], int]:
        skip = (page - 1) * page_size
        return await self.saved_repo.list_saved_properties(current_user.id, skip=skip, limit=page_size)

    # Verification

    async def list_pending_verification(
        self,
        current_user: User,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[Property], int]:
        if not current_user.is_admin:
            raise InsufficientPermissionsError("review listings")
        filters = PropertySearchFilters(status=PropertyStatus.PENDING_VERIFICATION)
        skip = (page - 1) * page_size
        return await self.property_repo.search_properties(
            filters, skip=skip, limit=page_size, order_by="created_at", order_direction="asc"
        )

    async def verify_property(
        self,
        property_id: uuid.UUID,
        approved: bool,
        current_user: User,
        reason: Optional[str] = None
    ) -> Property:
        """
        Approve or reject a listing pending verification and notify its owner.

        Args:
            property_id: UUID of the property
            approved: True makes it available, False makes it unavailable
            current_user: Admin taking the decision
            reason: Optional note for the landlord

        Returns:
            Updated property

        Raises:
            InvalidStatusTransitionError: If the property is not pending verification
        """
        if not current_user.is_admin:
            raise InsufficientPermissionsError("verify properties")

        property_obj = await self._get_property_or_404(property_id)
        target = PropertyStatus.AVAILABLE if approved else PropertyStatus.UNAVAILABLE

        if property_obj.status != PropertyStatus.PENDING_VERIFICATION:
            raise InvalidStatusTransitionError("property", property_obj.status.value, target.value)

        property_obj.status = target
        property_obj = await self.property_repo.save(property_obj)

        outcome = "approved" if approved else "rejected"
        message = f"Your listing {property_obj.title} was {outcome}."
        if reason:
            message = f"{message} {reason}"
        await self.notifications.notify(
            property_obj.owner_id,
            NotificationType.PROPERTY_VERIFICATION,
            "Listing verification",
            message,
            data={"property_id": str(property_obj.id), "status": target.value},
        )

        logger.info(f"Property {property_id} {outcome} by {current_user.email}")
        return property_obj

    # Dashboard

    async def get_landlord_stats(self, current_user: User) -> Dict[str, Any]:
        """
        Landlord dashboard figures.

        Returns:
            Dictionary with property counts, lease counts, occupancy and income totals
        """
        if not current_user.is_landlord:
            raise InsufficientPermissionsError("view landlord statistics")

        by_status = await self.property_repo.count_by_status(current_user.id)
        total_properties = sum(by_status.values())
        active_leases = await self.contract_repo.count_active_for_landlord(current_user.id)

        until = today_utc() + timedelta(days=settings.lease_reminder_days)
        expiring = await self.contract_repo.get_expiring(until, landlord_id=current_user.id)

        totals = await self.transaction_repo.totals_by_status(landlord_id=current_user.id)
        paid_total = totals.get(TransactionStatus.PAID, (Decimal("0"), 0))[0]
        pending_total = sum(
            (totals.get(status, (Decimal("0"), 0))[0] for status in (TransactionStatus.PENDING, TransactionStatus.OVERDUE)),
            Decimal("0"),
        )

        occupied = min(active_leases, total_properties)
        occupancy_rate = round(occupied / total_properties * 100, 1) if total_properties else 0.0

        return {
            "total_properties": total_properties,
            "active_leases": active_leases,
            "expiring_leases": len(expiring),
            "vacant_units": total_properties - occupied,
            "occupancy_rate": occupancy_rate,
            "total_income": float(paid_total),
            "pending_income": float(pending_total),
            "currency": settings.default_currency,
            "properties_by_status": {status.value: count for status, count in by_status.items()},
        }
