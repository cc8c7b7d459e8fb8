"""
Viewing service: landlord time slots and renter viewing requests.
"""

from typing import Optional, List, Tuple, Dict
from datetime import date, datetime, time, timedelta, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from rental_api.repositories.viewing import TimeSlotRepository, ViewingRequestRepository
from rental_api.repositories.property import PropertyRepository
from rental_api.models.viewing import ViewingTimeSlot, ViewingRequest, ViewingStatus
from rental_api.models.property import Property
from rental_api.models.notification import NotificationType
from rental_api.models.user import User
from rental_api.schemas.viewing import TimeSlotCreate, ViewingRequestCreate
from rental_api.services.channels import ChannelDispatcher
from rental_api.services.notification import NotificationService
from rental_api.services.rent_request import parse_uuid
from rental_api.utils.exceptions import (
    APIException,
    NotFoundError,
    ForbiddenError,
    ValidationError,
    ConflictError,
    BadRequestError,
    PropertyNotFoundError,
    PropertyOwnershipError,
    InvalidStatusTransitionError,
    InsufficientPermissionsError,
    TimeSlotUnavailableError,
)
from rental_api.utils.timeutils import utcnow, ensure_utc
import uuid
import logging

logger = logging.getLogger(__name__)


class ViewingService:
    """
    Time slot management and the viewing request lifecycle:
    pending -> confirmed | rejected | cancelled, confirmed -> completed | cancelled.
    """

    def __init__(self, db_session: AsyncSession, dispatcher: Optional[ChannelDispatcher] = None):
        self.db = db_session
        self.slot_repo = TimeSlotRepository(db_session)
        self.viewing_repo = ViewingRequestRepository(db_session)
        self.property_repo = PropertyRepository(db_session)
        self.notifications = NotificationService(db_session, dispatcher)

    async def _owned_property(self, property_id: uuid.UUID, current_user: User) -> Property:
        property_obj = await self.property_repo.get_by_id(property_id)
        if not property_obj:
            raise PropertyNotFoundError(str(property_id))
        if not current_user.can_manage_property(property_obj.owner_id):
            raise PropertyOwnershipError("You can only manage viewings for your own properties")
        return property_obj

    # Time slots

    async def add_time_slots(
        self,
        property_id: uuid.UUID,
        slots: List[TimeSlotCreate],
        current_user: User
    ) -> List[ViewingTimeSlot]:
        """
        Publish viewing windows for an owned property.

        Args:
            property_id: UUID of the property
            slots: Windows to add, each ending after it starts
            current_user: Owner of the property

        Returns:
            Created time slots

        Raises:
            ValidationError: If a slot starts in the past
            PropertyOwnershipError: If the user doesn't own the property
        """
        try:
            await self._owned_property(property_id, current_user)

            now = utcnow()
            for index, slot in enumerate(slots):
                if ensure_utc(slot.start_time) <= now:
                    raise ValidationError(
                        "Time slots must start in the future",
                        field_errors=[{"field": f"slots.{index}.start_time", "message": "Must be in the future"}]
                    )

            created = await self.slot_repo.bulk_create([
                {
                    "property_id": property_id,
                    "start_time": ensure_utc(slot.start_time),
                    "end_time": ensure_utc(slot.end_time),
                    "is_booked": False,
                }
                for slot in slots
            ])

            logger.info(f"Added {len(created)} time slots to property {property_id}")
            return created
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to add time slots to property {property_id}: {e}")
            raise BadRequestError(f"Failed to add time slots: {str(e)}")

    async def remove_time_slot(self, slot_id: uuid.UUID, current_user: User) -> bool:
        """
        Remove an unbooked slot.

        Raises:
            ConflictError: If the slot is booked
        """
        slot = await self.slot_repo.get_by_id(slot_id)
        if not slot:
            raise NotFoundError("Time slot", str(slot_id))

        await self._owned_property(slot.property_id, current_user)

        if slot.is_booked:
            raise ConflictError("Booked time slots cannot be removed", resource="time_slot")

        deleted = await self.slot_repo.delete(slot_id)
        logger.info(f"Time slot {slot_id} removed by {current_user.id}")
        return deleted

    async def list_time_slots(self, property_id: uuid.UUID, current_user: User) -> List[ViewingTimeSlot]:
        """All slots of an owned property, booked or not."""
        await self._owned_property(property_id, current_user)
        return await self.slot_repo.list_for_property(property_id)

    async def available_time_slots(self, property_id: uuid.UUID, on_date: date) -> List[ViewingTimeSlot]:
        """
        Slots on a day that can still be requested.

        A slot is available when it is not booked, starts in the future and is
        not held by a confirmed viewing.

        Args:
            property_id: UUID of the property
            on_date: Calendar day (UTC)

        Returns:
            Available time slots ordered by start time
        """
        property_obj = await self.property_repo.get_by_id(property_id)
        if not property_obj:
            raise PropertyNotFoundError(str(property_id))

        day_start = datetime.combine(on_date, time.min, tzinfo=timezone.utc)
        slots = await self.slot_repo.list_for_property(
            property_id,
            start=day_start,
            end=day_start + timedelta(days=1),
            only_unbooked=True,
        )

        now = utcnow()
        slots = [slot for slot in slots if ensure_utc(slot.start_time) > now]
        held = await self.viewing_repo.slot_ids_with_status([slot.id for slot in slots], ViewingStatus.CONFIRMED)
        return [slot for slot in slots if slot.id not in held]

    # Viewing requests

    async def create_request(self, request_data: ViewingRequestCreate, current_user: User) -> ViewingRequest:
        """
        Request a viewing in one of the property's available slots.

        Raises:
            TimeSlotUnavailableError: If the slot is booked, past or held
            ValidationError: If the slot belongs to another property
        """
        try:
            if not current_user.is_renter:
                raise InsufficientPermissionsError("request viewings")

            property_id = parse_uuid(request_data.property_id, "property_id")
            slot_id = parse_uuid(request_data.time_slot_id, "time_slot_id")

            property_obj = await self.property_repo.get_by_id(property_id)
            if not property_obj:
                raise PropertyNotFoundError(str(property_id))

            if property_obj.owner_id == current_user.id:
                raise ForbiddenError("You cannot request a viewing of your own property")

            slot = await self.slot_repo.get_by_id(slot_id)
            if not slot:
                raise NotFoundError("Time slot", str(slot_id))

            if slot.property_id != property_id:
                raise ValidationError(
                    "Time slot does not belong to this property",
                    field_errors=[{"field": "time_slot_id", "message": "Unknown slot for this property"}]
                )

            if slot.is_booked or ensure_utc(slot.start_time) <= utcnow():
                raise TimeSlotUnavailableError()

            if await self.viewing_repo.slot_ids_with_status([slot_id], ViewingStatus.CONFIRMED):
                raise TimeSlotUnavailableError()

            viewing = await self.viewing_repo.create({
                "property_id": property_id,
                "renter_id": current_user.id,
                "landlord_id": property_obj.owner_id,
                "time_slot_id": slot_id,
                "notes": request_data.notes,
                "status": ViewingStatus.PENDING,
            })

            await self.notifications.notify(
                property_obj.owner_id,
                NotificationType.VIEWING_REQUEST_CREATED,
                "New viewing request",
                f"New viewing request for property {property_obj.title} "
                f"on {ensure_utc(slot.start_time).strftime('%Y-%m-%d %H:%M')} UTC.",
                data={"viewing_id": str(viewing.id), "property_id": str(property_id)},
            )

            logger.info(f"Viewing request {viewing.id} created by {current_user.id} for slot {slot_id}")
            return viewing
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to create viewing request for user {current_user.id}: {e}")
            raise BadRequestError(f"Failed to create viewing request: {str(e)}")

    async def get_request(self, viewing_id: uuid.UUID, current_user: User) -> ViewingRequest:
        viewing = await self.viewing_repo.get_by_id(viewing_id)
        if not viewing:
            raise NotFoundError("Viewing request", str(viewing_id))
        if not current_user.is_admin and current_user.id not in (viewing.renter_id, viewing.landlord_id):
            raise ForbiddenError("You can only view your own viewing requests")
        return viewing

    async def confirm(self, viewing_id: uuid.UUID, current_user: User) -> ViewingRequest:
        """
        Confirm a pending viewing and book its slot.

        Raises:
            TimeSlotUnavailableError: If the slot was booked in the meantime
        """
        viewing = await self._landlord_request(viewing_id, current_user)
        self._require_status(viewing, (ViewingStatus.PENDING,), ViewingStatus.CONFIRMED)

        slot_id = viewing.time_slot_id
        if not await self.slot_repo.book(slot_id):
            logger.warning(f"Slot {slot_id} was already booked when confirming viewing {viewing_id}")
            raise TimeSlotUnavailableError("The time slot was booked by another viewing")

        viewing.status = ViewingStatus.CONFIRMED
        viewing.response_date = utcnow()
        viewing = await self.viewing_repo.save(viewing)

        title = await self._property_title(viewing.property_id)
        await self.notifications.notify(
            viewing.renter_id,
            NotificationType.VIEWING_REQUEST_CONFIRMED,
            "Viewing confirmed",
            f"Your viewing request for property {title} has been confirmed.",
            data={"viewing_id": str(viewing.id), "property_id": str(viewing.property_id)},
        )

        logger.info(f"Viewing {viewing_id} confirmed by {current_user.id}")
        return viewing

    async def reject(self, viewing_id: uuid.UUID, reason: str, current_user: User) -> ViewingRequest:
        viewing = await self._landlord_request(viewing_id, current_user)
        self._require_status(viewing, (ViewingStatus.PENDING,), ViewingStatus.REJECTED)

        if not reason or not reason.strip():
            raise ValidationError("A rejection reason is required")

        viewing.status = ViewingStatus.REJECTED
        viewing.response_date = utcnow()
        viewing.rejection_reason = reason.strip()
        viewing = await self.viewing_repo.save(viewing)

        title = await self._property_title(viewing.property_id)
        await self.notifications.notify(
            viewing.renter_id,
            NotificationType.VIEWING_REQUEST_REJECTED,
            "Viewing rejected",
            f"Your viewing request for property {title} has been rejected. Reason: {viewing.rejection_reason}",
            data={"viewing_id": str(viewing.id), "property_id": str(viewing.property_id)},
        )

        logger.info(f"Viewing {viewing_id} rejected by {current_user.id}")
        return viewing

    async def cancel(self, viewing_id: uuid.UUID, current_user: User, reason: Optional[str] = None) -> ViewingRequest:
        """
        Cancel a pending or confirmed viewing. Either party may cancel.

        A confirmed viewing releases its slot. The other party is notified.
        """
        viewing = await self.viewing_repo.get_by_id(viewing_id)
        if not viewing:
            raise NotFoundError("Viewing request", str(viewing_id))

        if current_user.id not in (viewing.renter_id, viewing.landlord_id):
            raise ForbiddenError("Only the renter or the landlord can cancel this viewing")

        self._require_status(viewing, (ViewingStatus.PENDING, ViewingStatus.CONFIRMED), ViewingStatus.CANCELLED)

        was_confirmed = viewing.status == ViewingStatus.CONFIRMED
        viewing.status = ViewingStatus.CANCELLED
        viewing.cancellation_reason = reason.strip() if reason and reason.strip() else None
        viewing.cancelled_by = current_user.id
        viewing = await self.viewing_repo.save(viewing)

        if was_confirmed:
            await self.slot_repo.release(viewing.time_slot_id)

        cancelled_by_renter = current_user.id == viewing.renter_id
        recipient_id = viewing.landlord_id if cancelled_by_renter else viewing.renter_id
        who = "the renter" if cancelled_by_renter else "the landlord"
        title = await self._property_title(viewing.property_id)

        message = f"Viewing request for property {title} has been cancelled by {who}."
        if viewing.cancellation_reason:
            message += f" Reason: {viewing.cancellation_reason}"

        await self.notifications.notify(
            recipient_id,
            NotificationType.VIEWING_REQUEST_CANCELLED,
            "Viewing cancelled",
            message,
            data={"viewing_id": str(viewing.id), "property_id": str(viewing.property_id)},
        )

        logger.info(f"Viewing {viewing_id} cancelled by {current_user.id}")
        return viewing

    async def complete(self, viewing_id: uuid.UUID, current_user: User) -> ViewingRequest:
        """
        Mark a confirmed viewing as done once its slot has started.

        Raises:
            ValidationError: If the slot is still in the future
        """
        viewing = await self._landlord_request(viewing_id, current_user)
        self._require_status(viewing, (ViewingStatus.CONFIRMED,), ViewingStatus.COMPLETED)

        slot = await self.slot_repo.get_by_id(viewing.time_slot_id)
        if slot and ensure_utc(slot.start_time) > utcnow():
            raise ValidationError("A viewing can only be completed after its time slot has started")

        viewing.status = ViewingStatus.COMPLETED
        viewing = await self.viewing_repo.save(viewing)

        title = await self._property_title(viewing.property_id)
        await self.notifications.notify(
            viewing.renter_id,
            NotificationType.VIEWING_REQUEST_COMPLETED,
            "Viewing completed",
            f"Your viewing of {title} is marked as completed.",
            data={"viewing_id": str(viewing.id), "property_id": str(viewing.property_id)},
        )

        logger.info(f"Viewing {viewing_id} completed")
        return viewing

    async def list_requests(
        self,
        current_user: User,
        status: Optional[ViewingStatus] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[ViewingRequest], int]:
        skip = (page - 1) * page_size
        return await self.viewing_repo.list_requests(
            renter_id=current_user.id if current_user.is_renter else None,
            landlord_id=current_user.id if current_user.is_landlord else None,
            status=status,
            skip=skip,
            limit=page_size,
        )

    async def list_for_property(
        self,
        property_id: uuid.UUID,
        current_user: User,
        status: Optional[ViewingStatus] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[ViewingRequest], int]:
        await self._owned_property(property_id, current_user)
        skip = (page - 1) * page_size
        return await self.viewing_repo.list_requests(property_id=property_id, status=status, skip=skip, limit=page_size)

    async def slots_for(self, viewings: List[ViewingRequest]) -> Dict[uuid.UUID, ViewingTimeSlot]:
        """Time slots of the given viewings keyed by slot id."""
        slots = {}
        for slot_id in {viewing.time_slot_id for viewing in viewings}:
            slot = await self.slot_repo.get_by_id(slot_id)
            if slot:
                slots[slot_id] = slot
        return slots

    async def _landlord_request(self, viewing_id: uuid.UUID, current_user: User) -> ViewingRequest:
        viewing = await self.viewing_repo.get_by_id(viewing_id)
        if not viewing:
            raise NotFoundError("Viewing request", str(viewing_id))
        if viewing.landlord_id != current_user.id:
            raise ForbiddenError("Only the landlord can manage this viewing request")
        return viewing

    @staticmethod
    def _require_status(viewing: ViewingRequest, allowed: tuple, target: ViewingStatus) -> None:
        if viewing.status not in allowed:
            raise InvalidStatusTransitionError("viewing request", viewing.status.value, target.value)

    async def _property_title(self, property_id: uuid.UUID) -> str:
        property_obj = await self.property_repo.get_by_id(property_id)
        return property_obj.title if property_obj else str(property_id)
