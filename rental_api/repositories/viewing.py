"""
Repositories for viewing time slots and viewing requests.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, update
from rental_api.repositories.base import BaseRepository
from rental_api.models.viewing import ViewingTimeSlot, ViewingRequest, ViewingStatus
from datetime import datetime
from typing import Optional, List, Tuple
import uuid
import logging

logger = logging.getLogger(__name__)


class TimeSlotRepository(BaseRepository[ViewingTimeSlot]):
    """Landlord-defined viewing windows."""

    def __init__(self, db: AsyncSession):
        super().__init__(ViewingTimeSlot, db)

    async def list_for_property(
        self,
        property_id: uuid.UUID,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        only_unbooked: bool = False
    ) -> List[ViewingTimeSlot]:
        """
        Slots of a property ordered by start time, optionally within [start, end).

        Args:
            property_id: UUID of the property
            start: Inclusive lower bound on slot start
            end: Exclusive upper bound on slot start
            only_unbooked: Skip slots already booked

        Returns:
            List of time slots
        """
        try:
            conditions = [ViewingTimeSlot.property_id == property_id]
            if start is not None:
                conditions.append(ViewingTimeSlot.start_time >= start)
            if end is not None:
                conditions.append(ViewingTimeSlot.start_time < end)
            if only_unbooked:
                conditions.append(ViewingTimeSlot.is_booked == False)  # noqa: E712

            query = select(ViewingTimeSlot).where(and_(*conditions)).order_by(ViewingTimeSlot.start_time)
            result = await self.db.execute(query)
            return list(result.scalars().all())
        except Exception as e:
            logger.error(f"Failed to list time slots for property {property_id}: {e}")
            raise

    async def book(self, slot_id: uuid.UUID) -> bool:
        """
        Mark a slot booked only if it is still free.

        Returns:
            True if this call booked the slot, False if it was already booked
        """
        try:
            stmt = (
                update(ViewingTimeSlot)
                .where(and_(ViewingTimeSlot.id == slot_id, ViewingTimeSlot.is_booked == False))  # noqa: E712
                .values(is_booked=True)
            )
            result = await self.db.execute(stmt)
            await self.db.commit()
            booked = result.rowcount > 0
            logger.debug(f"Booking slot {slot_id}: {booked}")
            return booked
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to book time slot {slot_id}: {e}")
            raise

    async def release(self, slot_id: uuid.UUID) -> None:
        await self.update(slot_id, {"is_booked": False})


class ViewingRequestRepository(BaseRepository[ViewingRequest]):
    """Renter requests to view a property in a time slot."""

    def __init__(self, db: AsyncSession):
        super().__init__(ViewingRequest, db)

    async def slot_ids_with_status(self, slot_ids: List[uuid.UUID], status: ViewingStatus) -> set:
        """Which of the given slots carry a request in the given status."""
        if not slot_ids:
            return set()
        query = select(ViewingRequest.time_slot_id).where(
            and_(ViewingRequest.time_slot_id.in_(slot_ids), ViewingRequest.status == status)
        )
        result = await self.db.execute(query)
        return set(result.scalars().all())

    async def list_requests(
        self,
        renter_id: Optional[uuid.UUID] = None,
        landlord_id: Optional[uuid.UUID] = None,
        property_id: Optional[uuid.UUID] = None,
        status: Optional[ViewingStatus] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[ViewingRequest], int]:
        filters = {
            "renter_id": renter_id,
            "landlord_id": landlord_id,
            "property_id": property_id,
            "status": status,
        }
        return await self.get_page(filters=filters, skip=skip, limit=limit, order_by="-created_at")
