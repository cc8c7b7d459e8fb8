"""
Maintenance request repository.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from rental_api.repositories.base import BaseRepository
from rental_api.models.maintenance import MaintenanceRequest, MaintenanceStatus
from typing import Optional, List, Tuple
import uuid

OPEN_STATUSES = [MaintenanceStatus.PENDING, MaintenanceStatus.SCHEDULED]
CLOSED_STATUSES = [MaintenanceStatus.COMPLETED, MaintenanceStatus.CANCELLED]


class MaintenanceRepository(BaseRepository[MaintenanceRequest]):

    def __init__(self, db: AsyncSession):
        super().__init__(MaintenanceRequest, db)

    async def list_requests(
        self,
        renter_id: Optional[uuid.UUID] = None,
        landlord_id: Optional[uuid.UUID] = None,
        property_id: Optional[uuid.UUID] = None,
        statuses: Optional[List[MaintenanceStatus]] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[MaintenanceRequest], int]:
        filters = {
            "renter_id": renter_id,
            "landlord_id": landlord_id,
            "property_id": property_id,
            "status": statuses or None,
        }
        return await self.get_page(filters=filters, skip=skip, limit=limit, order_by="-created_at")
