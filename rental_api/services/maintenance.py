"""
Maintenance request service.
"""

from typing import Optional, List, Tuple
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from rental_api.repositories.maintenance import MaintenanceRepository, OPEN_STATUSES, CLOSED_STATUSES
from rental_api.repositories.contract import ContractRepository
from rental_api.repositories.property import PropertyRepository
from rental_api.models.maintenance import MaintenanceRequest, MaintenanceStatus, MaintenancePriority
from rental_api.models.notification import NotificationType, NotificationPriority
from rental_api.models.user import User
from rental_api.schemas.maintenance import MaintenanceCreate
from rental_api.services.channels import ChannelDispatcher
from rental_api.services.notification import NotificationService
from rental_api.services.rent_request import parse_uuid
from rental_api.utils.exceptions import (
    APIException,
    NotFoundError,
    ForbiddenError,
    ValidationError,
    BadRequestError,
    PropertyNotFoundError,
    InvalidStatusTransitionError,
    InsufficientPermissionsError,
)
from rental_api.utils.timeutils import utcnow, ensure_utc
import uuid
import logging

logger = logging.getLogger(__name__)


class MaintenanceService:
    """
    pending -> scheduled -> completed; pending and scheduled may be cancelled by the renter.
    """

    def __init__(self, db_session: AsyncSession, dispatcher: Optional[ChannelDispatcher] = None):
        self.db = db_session
        self.maintenance_repo = MaintenanceRepository(db_session)
        self.contract_repo = ContractRepository(db_session)
        self.property_repo = PropertyRepository(db_session)
        self.notifications = NotificationService(db_session, dispatcher)

    async def create_request(self, request_data: MaintenanceCreate, current_user: User) -> MaintenanceRequest:
        """
        Report a problem with a leased property.

        Raises:
            ForbiddenError: If the renter has no active contract on the property
        """
        try:
            if not current_user.is_renter:
                raise InsufficientPermissionsError("create maintenance requests")

            property_id = parse_uuid(request_data.property_id, "property_id")
            property_obj = await self.property_repo.get_by_id(property_id)
            if not property_obj:
                raise PropertyNotFoundError(str(property_id))

            if not await self.contract_repo.has_active_contract(current_user.id, property_id):
                raise ForbiddenError("Maintenance can only be requested for a property you currently lease")

            request = await self.maintenance_repo.create({
                "property_id": property_id,
                "renter_id": current_user.id,
                "landlord_id": property_obj.owner_id,
                "title": request_data.title,
                "description": request_data.description,
                "priority": request_data.priority,
                "status": MaintenanceStatus.PENDING,
            })

            await self._notify(
                request, request.landlord_id,
                f"New maintenance request for {property_obj.title}: {request.title}",
            )

            logger.info(f"Maintenance request {request.id} created by renter {current_user.id}")
            return request
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to create maintenance request for user {current_user.id}: {e}")
            raise BadRequestError(f"Failed to create maintenance request: {str(e)}")

    async def get_request(self, request_id: uuid.UUID, current_user: User) -> MaintenanceRequest:
        request = await self.maintenance_repo.get_by_id(request_id)
        if not request:
            raise NotFoundError("Maintenance request", str(request_id))
        if not current_user.is_admin and current_user.id not in (request.renter_id, request.landlord_id):
            raise ForbiddenError("You can only view your own maintenance requests")
        return request

    async def list_requests(
        self,
        current_user: User,
        view: Optional[str] = None,
        property_id: Optional[uuid.UUID] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[MaintenanceRequest], int]:
        """
        List the user's requests. `view` is "active" (pending or scheduled) or "past".
        """
        statuses = None
        if view == "active":
            statuses = OPEN_STATUSES
        elif view == "past":
            statuses = CLOSED_STATUSES
        elif view is not None:
            raise ValidationError("view must be 'active' or 'past'")

        skip = (page - 1) * page_size
        return await self.maintenance_repo.list_requests(
            renter_id=current_user.id if current_user.is_renter else None,
            landlord_id=current_user.id if current_user.is_landlord else None,
            property_id=property_id,
            statuses=statuses,
            skip=skip,
            limit=page_size,
        )

    async def schedule(
        self,
        request_id: uuid.UUID,
        scheduled_date: datetime,
        current_user: User,
        notes: Optional[str] = None
    ) -> MaintenanceRequest:
        """
        Book a visit for a pending request, or move an already scheduled one.

        Raises:
            ValidationError: If the date is not in the future
        """
        request = await self._landlord_request(request_id, current_user)
        if not request.is_open:
            raise InvalidStatusTransitionError("maintenance request", request.status.value, MaintenanceStatus.SCHEDULED.value)

        scheduled_date = ensure_utc(scheduled_date)
        if scheduled_date <= utcnow():
            raise ValidationError(
                "Scheduled date must be in the future",
                field_errors=[{"field": "scheduled_date", "message": "Must be in the future"}]
            )

        request.status = MaintenanceStatus.SCHEDULED
        request.scheduled_date = scheduled_date
        if notes:
            request.landlord_notes = notes
        request = await self.maintenance_repo.save(request)

        await self._notify(request, request.renter_id)
        logger.info(f"Maintenance request {request_id} scheduled for {scheduled_date.isoformat()}")
        return request

    async def complete(self, request_id: uuid.UUID, current_user: User, notes: Optional[str] = None) -> MaintenanceRequest:
        request = await self._landlord_request(request_id, current_user)
        if request.status != MaintenanceStatus.SCHEDULED:
            raise InvalidStatusTransitionError("maintenance request", request.status.value, MaintenanceStatus.COMPLETED.value)

        request.status = MaintenanceStatus.COMPLETED
        request.completed_date = utcnow()
        if notes:
            request.landlord_notes = notes
        request = await self.maintenance_repo.save(request)

        await self._notify(request, request.renter_id)
        logger.info(f"Maintenance request {request_id} completed")
        return request

    async def cancel(self, request_id: uuid.UUID, current_user: User) -> MaintenanceRequest:
        request = await self.maintenance_repo.get_by_id(request_id)
        if not request:
            raise NotFoundError("Maintenance request", str(request_id))
        if request.renter_id != current_user.id:
            raise ForbiddenError("Only the renter who raised the request can cancel it")
        if not request.is_open:
            raise InvalidStatusTransitionError("maintenance request", request.status.value, MaintenanceStatus.CANCELLED.value)

        request.status = MaintenanceStatus.CANCELLED
        request = await self.maintenance_repo.save(request)

        await self._notify(request, request.landlord_id)
        logger.info(f"Maintenance request {request_id} cancelled by renter")
        return request

    async def _landlord_request(self, request_id: uuid.UUID, current_user: User) -> MaintenanceRequest:
        request = await self.maintenance_repo.get_by_id(request_id)
        if not request:
            raise NotFoundError("Maintenance request", str(request_id))
        if request.landlord_id != current_user.id:
            raise ForbiddenError("Only the landlord can manage this maintenance request")
        return request

    async def _notify(self, request: MaintenanceRequest, user_id: uuid.UUID, message: Optional[str] = None) -> None:
        priority = NotificationPriority.NORMAL
        if request.priority == MaintenancePriority.URGENT:
            priority = NotificationPriority.HIGH

        await self.notifications.notify(
            user_id,
            NotificationType.MAINTENANCE_UPDATE,
            "Maintenance Update",
            message or f"Request #{request.id}: {request.status.value}",
            data={
                "request_id": str(request.id),
                "property_id": str(request.property_id),
                "status": request.status.value,
            },
            priority=priority,
        )
