"""
Rental contract repository with lease lifecycle queries used by the scheduler.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, func
from rental_api.repositories.base import BaseRepository
from rental_api.models.contract import RentalContract, ContractStatus
from datetime import date
from typing import Optional, List, Tuple
import uuid
import logging

logger = logging.getLogger(__name__)


class ContractRepository(BaseRepository[RentalContract]):
    """
    Repository for rental contracts.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(RentalContract, db)

    async def get_active_for_property(self, property_id: uuid.UUID) -> Optional[RentalContract]:
        """
        Currently active contract on a property.

        Args:
            property_id: UUID of the property

        Returns:
            The active contract or None
        """
        query = select(RentalContract).where(
            and_(
                RentalContract.property_id == property_id,
                RentalContract.status == ContractStatus.ACTIVE,
            )
        ).limit(1)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def has_active_contract(self, renter_id: uuid.UUID, property_id: uuid.UUID) -> bool:
        query = select(func.count(RentalContract.id)).where(
            and_(
                RentalContract.renter_id == renter_id,
                RentalContract.property_id == property_id,
                RentalContract.status == ContractStatus.ACTIVE,
            )
        )
        result = await self.db.execute(query)
        return (result.scalar() or 0) > 0

    async def list_contracts(
        self,
        renter_id: Optional[uuid.UUID] = None,
        landlord_id: Optional[uuid.UUID] = None,
        property_id: Optional[uuid.UUID] = None,
        status: Optional[ContractStatus] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[RentalContract], int]:
        filters = {
            "renter_id": renter_id,
            "landlord_id": landlord_id,
            "property_id": property_id,
            "status": status,
        }
        return await self.get_page(filters=filters, skip=skip, limit=limit, order_by="-created_at")

    async def get_expiring(
        self,
        until: date,
        landlord_id: Optional[uuid.UUID] = None,
        only_unreminded: bool = False
    ) -> List[RentalContract]:
        """
        Active contracts ending on or before a date.

        Args:
            until: Last end date to include
            landlord_id: Optional landlord filter
            only_unreminded: Skip contracts whose expiry reminder was already sent

        Returns:
            List of contracts ordered by end date
        """
        try:
            conditions = [
                RentalContract.status == ContractStatus.ACTIVE,
                RentalContract.end_date <= until,
            ]
            if landlord_id is not None:
                conditions.append(RentalContract.landlord_id == landlord_id)
            if only_unreminded:
                conditions.append(RentalContract.expiry_reminder_sent_at.is_(None))

            query = select(RentalContract).where(and_(*conditions)).order_by(RentalContract.end_date)
            result = await self.db.execute(query)
            contracts = list(result.scalars().all())
            logger.debug(f"Found {len(contracts)} active contracts ending by {until}")
            return contracts
        except Exception as e:
            logger.error(f"Failed to get expiring contracts: {e}")
            raise

    async def get_past_end(self, today: date) -> List[RentalContract]:
        """Active contracts whose end date is before today."""
        query = select(RentalContract).where(
            and_(
                RentalContract.status == ContractStatus.ACTIVE,
                RentalContract.end_date < today,
            )
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def count_active_for_landlord(self, landlord_id: uuid.UUID) -> int:
        return await self.count({"landlord_id": landlord_id, "status": ContractStatus.ACTIVE})
