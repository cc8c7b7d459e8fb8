"""
Transaction repository: rent, deposit and utility charges and their payment state.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, func
from rental_api.repositories.base import BaseRepository
from rental_api.models.transaction import Transaction, TransactionStatus, TransactionType
from datetime import date
from decimal import Decimal
from typing import Optional, List, Dict, Tuple
import uuid
import logging

logger = logging.getLogger(__name__)


class TransactionRepository(BaseRepository[Transaction]):
    """
    Repository for charges and payments.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(Transaction, db)

    async def list_transactions(
        self,
        renter_id: Optional[uuid.UUID] = None,
        landlord_id: Optional[uuid.UUID] = None,
        property_id: Optional[uuid.UUID] = None,
        status: Optional[TransactionStatus] = None,
        type: Optional[TransactionType] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Transaction], int]:
        filters = {
            "renter_id": renter_id,
            "landlord_id": landlord_id,
            "property_id": property_id,
            "status": status,
            "type": type,
        }
        return await self.get_page(filters=filters, skip=skip, limit=limit, order_by="-due_date")

    async def totals_by_status(
        self,
        renter_id: Optional[uuid.UUID] = None,
        landlord_id: Optional[uuid.UUID] = None,
        property_id: Optional[uuid.UUID] = None
    ) -> Dict[TransactionStatus, Tuple[Decimal, int]]:
        """
        Sum and count of charges per status.

        Args:
            renter_id: Optional renter filter
            landlord_id: Optional landlord filter
            property_id: Optional property filter

        Returns:
            Mapping of status to (total amount, number of charges)
        """
        try:
            query = select(
                Transaction.status,
                func.coalesce(func.sum(Transaction.amount), 0),
                func.count(Transaction.id),
            )
            query = self._apply_filters(
                query,
                {"renter_id": renter_id, "landlord_id": landlord_id, "property_id": property_id},
            ).group_by(Transaction.status)

            result = await self.db.execute(query)
            return {row[0]: (Decimal(str(row[1])), row[2]) for row in result.all()}
        except Exception as e:
            logger.error(f"Failed to compute transaction totals: {e}")
            raise

    async def get_past_due(self, today: date) -> List[Transaction]:
        """Pending charges whose due date has passed."""
        query = select(Transaction).where(
            and_(
                Transaction.status == TransactionStatus.PENDING,
                Transaction.due_date < today,
            )
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_due_for_reminder(self, today: date, until: date) -> List[Transaction]:
        """
        Pending charges due between today and a lead date that have not been reminded yet.

        Args:
            today: First due date to include
            until: Last due date to include

        Returns:
            List of charges ordered by due date
        """
        query = select(Transaction).where(
            and_(
                Transaction.status == TransactionStatus.PENDING,
                Transaction.due_date >= today,
                Transaction.due_date <= until,
                Transaction.reminder_sent_at.is_(None),
            )
        ).order_by(Transaction.due_date)
        result = await self.db.execute(query)
        return list(result.scalars().all())
