"""
Repositories for rent requests and rental applications.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_
from rental_api.repositories.base import BaseRepository
from rental_api.models.rent_request import RentRequest, RentRequestStatus
from rental_api.models.application import Application, ApplicationStatus
from typing import Optional, List, Tuple
import uuid
import logging

logger = logging.getLogger(__name__)


class RentRequestRepository(BaseRepository[RentRequest]):
    """Rent requests sent by renters to landlords."""

    def __init__(self, db: AsyncSession):
        super().__init__(RentRequest, db)

    async def get_pending_for(self, renter_id: uuid.UUID, property_id: uuid.UUID) -> Optional[RentRequest]:
        """
        Pending request of a renter for a property, if any.

        Args:
            renter_id: UUID of the renter
            property_id: UUID of the property

        Returns:
            The pending request or None
        """
        query = select(RentRequest).where(
            and_(
                RentRequest.renter_id == renter_id,
                RentRequest.property_id == property_id,
                RentRequest.status == RentRequestStatus.PENDING,
            )
        ).limit(1)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def list_requests(
        self,
        renter_id: Optional[uuid.UUID] = None,
        landlord_id: Optional[uuid.UUID] = None,
        property_id: Optional[uuid.UUID] = None,
        status: Optional[RentRequestStatus] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[RentRequest], int]:
        filters = {
            "renter_id": renter_id,
            "landlord_id": landlord_id,
            "property_id": property_id,
            "status": status,
        }
        return await self.get_page(filters=filters, skip=skip, limit=limit, order_by="-created_at")


class ApplicationRepository(BaseRepository[Application]):
    """Rental applications."""

    def __init__(self, db: AsyncSession):
        super().__init__(Application, db)

    async def get_pending_for(self, applicant_id: uuid.UUID, property_id: uuid.UUID) -> Optional[Application]:
        query = select(Application).where(
            and_(
                Application.applicant_id == applicant_id,
                Application.property_id == property_id,
                Application.status == ApplicationStatus.PENDING,
            )
        ).limit(1)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def list_applications(
        self,
        applicant_id: Optional[uuid.UUID] = None,
        landlord_id: Optional[uuid.UUID] = None,
        property_id: Optional[uuid.UUID] = None,
        status: Optional[ApplicationStatus] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Application], int]:
        filters = {
            "applicant_id": applicant_id,
            "landlord_id": landlord_id,
            "property_id": property_id,
            "status": status,
        }
        return await self.get_page(filters=filters, skip=skip, limit=limit, order_by="-created_at")
