"""
Rent request service: renters ask to rent a listing, landlords accept or reject.
Accepting a request drafts the rental contract the renter then reviews and signs.
"""

from typing import Optional, List, Tuple
from datetime import date
from sqlalchemy.ext.asyncio import AsyncSession
from rental_api.repositories.rent_request import RentRequestRepository
from rental_api.repositories.property import PropertyRepository
from rental_api.repositories.contract import ContractRepository
from rental_api.models.rent_request import RentRequest, RentRequestStatus
from rental_api.models.contract import RentalContract, ContractStatus
from rental_api.models.property import Property, PropertyStatus
from rental_api.models.notification import NotificationType
from rental_api.models.user import User
from rental_api.schemas.rent_request import RentRequestCreate
from rental_api.services.channels import ChannelDispatcher
from rental_api.services.notification import NotificationService
from rental_api.utils.exceptions import (
    APIException,
    NotFoundError,
    ForbiddenError,
    ValidationError,
    BadRequestError,
    PropertyNotFoundError,
    PropertyUnavailableError,
    DuplicateResourceError,
    InvalidStatusTransitionError,
    InsufficientPermissionsError,
)
from rental_api.utils.timeutils import utcnow, today_utc
import calendar
import uuid
import logging

logger = logging.getLogger(__name__)


def add_months(start: date, months: int) -> date:
    """Same day `months` later, clamped to the last day of the target month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def parse_uuid(value: str, field: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise ValidationError(
            f"Invalid {field} format",
            field_errors=[{"field": field, "message": "Must be a UUID"}]
        )


class RentRequestService:
    """
    Handles the rent request lifecycle: pending -> accepted | rejected, accepted -> completed.
    """

    def __init__(self, db_session: AsyncSession, dispatcher: Optional[ChannelDispatcher] = None):
        self.db = db_session
        self.request_repo = RentRequestRepository(db_session)
        self.property_repo = PropertyRepository(db_session)
        self.contract_repo = ContractRepository(db_session)
        self.notifications = NotificationService(db_session, dispatcher)

    async def create_request(self, request_data: RentRequestCreate, current_user: User) -> RentRequest:
        """
        Send a rent request for an available listing.

        Args:
            request_data: Property, months and optional message and start date
            current_user: Renter sending the request

        Returns:
            Created rent request

        Raises:
            PropertyUnavailableError: If the property is not available
            DuplicateResourceError: If a pending request already exists
        """
        try:
            if not current_user.is_renter:
                raise InsufficientPermissionsError("send rent requests")

            property_id = parse_uuid(request_data.property_id, "property_id")
            property_obj = await self.property_repo.get_by_id(property_id)
            if not property_obj:
                raise PropertyNotFoundError(str(property_id))

            if property_obj.owner_id == current_user.id:
                raise ForbiddenError("You cannot rent your own property")

            if property_obj.status != PropertyStatus.AVAILABLE:
                raise PropertyUnavailableError("Property is not available for rent")

            if request_data.desired_start_date and request_data.desired_start_date < today_utc():
                raise ValidationError(
                    "Desired start date cannot be in the past",
                    field_errors=[{"field": "desired_start_date", "message": "Must be today or later"}]
                )

            existing = await self.request_repo.get_pending_for(current_user.id, property_id)
            if existing:
                raise DuplicateResourceError("Rent request", str(property_id))

            rent_request = await self.request_repo.create({
                "property_id": property_id,
                "renter_id": current_user.id,
                "landlord_id": property_obj.owner_id,
                "months": request_data.months,
                "message": request_data.message,
                "desired_start_date": request_data.desired_start_date,
                "status": RentRequestStatus.PENDING,
            })

            await self.notifications.notify(
                property_obj.owner_id,
                NotificationType.RENT_REQUEST_CREATED,
                "New rent request",
                f"{current_user.full_name} wants to rent {property_obj.title} for {request_data.months} months.",
                data={"request_id": str(rent_request.id), "property_id": str(property_id)},
            )

            logger.info(f"Rent request {rent_request.id} created by {current_user.id} for property {property_id}")
            return rent_request
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to create rent request for user {current_user.id}: {e}")
            raise BadRequestError(f"Failed to create rent request: {str(e)}")

    async def get_request(self, request_id: uuid.UUID, current_user: User) -> RentRequest:
        rent_request = await self.request_repo.get_by_id(request_id)
        if not rent_request:
            raise NotFoundError("Rent request", str(request_id))
        if not current_user.is_admin and current_user.id not in (rent_request.renter_id, rent_request.landlord_id):
            raise ForbiddenError("You can only view your own rent requests")
        return rent_request

    async def list_requests(
        self,
        current_user: User,
        status: Optional[RentRequestStatus] = None,
        property_id: Optional[uuid.UUID] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[RentRequest], int]:
        """Renters see the requests they sent; landlords the requests for their properties."""
        skip = (page - 1) * page_size
        renter_id = current_user.id if current_user.is_renter else None
        landlord_id = current_user.id if current_user.is_landlord else None
        return await self.request_repo.list_requests(
            renter_id=renter_id,
            landlord_id=landlord_id,
            property_id=property_id,
            status=status,
            skip=skip,
            limit=page_size,
        )

    async def respond(
        self,
        request_id: uuid.UUID,
        status: RentRequestStatus,
        current_user: User,
        response_message: Optional[str] = None
    ) -> RentRequest:
        """
        Accept or reject a pending rent request.

        Accepting drafts a pending contract running from the desired start date
        (or today) for the requested number of months at the listing price.

        Args:
            request_id: UUID of the request
            status: ACCEPTED or REJECTED
            current_user: Landlord of the property
            response_message: Optional note for the renter

        Returns:
            Updated rent request

        Raises:
            InvalidStatusTransitionError: If the request was already answered
            PropertyUnavailableError: If accepting while the property is leased
        """
        try:
            if status not in (RentRequestStatus.ACCEPTED, RentRequestStatus.REJECTED):
                raise ValidationError("Status must be accepted or rejected")

            rent_request = await self.request_repo.get_by_id(request_id)
            if not rent_request:
                raise NotFoundError("Rent request", str(request_id))

            if rent_request.landlord_id != current_user.id:
                raise ForbiddenError("Only the landlord can answer this rent request")

            if rent_request.status == status:
                return rent_request

            if rent_request.status != RentRequestStatus.PENDING:
                raise InvalidStatusTransitionError("rent request", rent_request.status.value, status.value)

            property_obj = await self.property_repo.get_by_id(rent_request.property_id)
            if not property_obj:
                raise PropertyNotFoundError(str(rent_request.property_id))

            contract = None
            if status == RentRequestStatus.ACCEPTED:
                if await self.contract_repo.get_active_for_property(property_obj.id):
                    raise PropertyUnavailableError("Property already has an active contract")
                contract = await self._draft_contract(rent_request, property_obj)
                rent_request.contract_id = contract.id

            rent_request.status = status
            rent_request.response_date = utcnow()
            rent_request.response_message = response_message
            rent_request = await self.request_repo.save(rent_request)

            await self._notify_renter(rent_request, property_obj, contract)

            logger.info(f"Rent request {request_id} {status.value} by landlord {current_user.id}")
            return rent_request
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to answer rent request {request_id}: {e}")
            raise BadRequestError(f"Failed to update rent request: {str(e)}")

    async def _draft_contract(self, rent_request: RentRequest, property_obj: Property) -> RentalContract:
        start_date = rent_request.desired_start_date or today_utc()
        return await self.contract_repo.create({
            "property_id": property_obj.id,
            "renter_id": rent_request.renter_id,
            "landlord_id": property_obj.owner_id,
            "rent_request_id": rent_request.id,
            "start_date": start_date,
            "end_date": add_months(start_date, rent_request.months),
            "monthly_rent": property_obj.price,
            "security_deposit": property_obj.price,
            "currency": property_obj.currency,
            "status": ContractStatus.PENDING,
        })

    async def _notify_renter(
        self,
        rent_request: RentRequest,
        property_obj: Property,
        contract: Optional[RentalContract]
    ) -> None:
        data = {"request_id": str(rent_request.id), "property_id": str(property_obj.id)}
        if rent_request.status == RentRequestStatus.ACCEPTED:
            data.update({"contract_id": str(contract.id), "contract_available": True})
            await self.notifications.notify(
                rent_request.renter_id,
                NotificationType.RENT_ACCEPTED,
                "Rent request accepted",
                f"Your rental request for {property_obj.title} has been accepted! "
                f"You can now proceed with signing the contract.",
                data=data,
            )
        else:
            await self.notifications.notify(
                rent_request.renter_id,
                NotificationType.RENT_REJECTED,
                "Rent request declined",
                f"Your rental request for {property_obj.title} has been declined.",
                data=data,
            )
