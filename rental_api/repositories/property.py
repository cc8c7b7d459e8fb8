"""
Property repository for managing rental listings with search and filtering.
Also covers saved listings and the landlord dashboard queries.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, or_, func, desc, asc, update, delete
from rental_api.repositories.base import BaseRepository
from rental_api.models.property import Property, PropertyStatus, SavedProperty
from typing import Optional, List, Dict, Any, Tuple
from decimal import Decimal
import uuid
import logging

logger = logging.getLogger(__name__)


class PropertySearchFilters:
    """Data class for property search filters."""

    def __init__(
        self,
        query: Optional[str] = None,
        city: Optional[str] = None,
        area: Optional[str] = None,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
        min_bedrooms: Optional[int] = None,
        min_bathrooms: Optional[int] = None,
        furnished: Optional[bool] = None,
        status: Optional[PropertyStatus] = PropertyStatus.AVAILABLE,
        owner_id: Optional[uuid.UUID] = None,
    ):
        self.query = query
        self.city = city
        self.area = area
        self.min_price = min_price
        self.max_price = max_price
        self.min_bedrooms = min_bedrooms
        self.min_bathrooms = min_bathrooms
        self.furnished = furnished
        self.status = status
        self.owner_id = owner_id


class PropertyRepository(BaseRepository[Property]):
    """
    Repository for property listings with search and filtering capabilities.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(Property, db)

    async def create_property(self, property_data: Dict[str, Any]) -> Property:
        """
        Create a new property listing.

        Args:
            property_data: Dictionary containing property information

        Returns:
            Created property instance
        """
        created_property = await self.create(property_data)
        logger.info(f"Created property: {created_property.title} (ID: {created_property.id})")
        return created_property

    async def search_properties(
        self,
        filters: PropertySearchFilters,
        skip: int = 0,
        limit: int = 20,
        order_by: str = "created_at",
        order_direction: str = "desc"
    ) -> Tuple[List[Property], int]:
        """
        Search properties with filtering and pagination.

        Args:
            filters: PropertySearchFilters instance with search criteria
            skip: Number of records to skip for pagination
            limit: Maximum number of records to return
            order_by: Field to order by
            order_direction: 'asc' or 'desc'

        Returns:
            Tuple of (properties list, total count)
        """
        try:
            query = select(Property)
            count_query = select(func.count(Property.id))

            conditions = self._build_filter_conditions(filters)
            if conditions:
                query = query.where(and_(*conditions))
                count_query = count_query.where(and_(*conditions))

            count_result = await self.db.execute(count_query)
            total_count = count_result.scalar() or 0

            order_field = getattr(Property, order_by, Property.created_at)
            if order_direction.lower() == "desc":
                query = query.order_by(desc(order_field))
            else:
                query = query.order_by(asc(order_field))

            query = query.offset(skip).limit(limit)

            result = await self.db.execute(query)
            properties = result.scalars().all()

            logger.debug(f"Property search returned {len(properties)} of {total_count} total results")
            return list(properties), total_count
        except Exception as e:
            logger.error(f"Failed to search properties: {e}")
            raise

    def _build_filter_conditions(self, filters: PropertySearchFilters) -> List:
        """
        Build SQLAlchemy filter conditions from search filters.

        Args:
            filters: PropertySearchFilters instance

        Returns:
            List of SQLAlchemy conditions
        """
        conditions = []

        if filters.status is not None:
            conditions.append(Property.status == filters.status)

        if filters.city:
            conditions.append(Property.city.ilike(f"%{filters.city}%"))
        if filters.area:
            conditions.append(Property.area.ilike(f"%{filters.area}%"))

        if filters.min_price is not None:
            conditions.append(Property.price >= filters.min_price)
        if filters.max_price is not None:
            conditions.append(Property.price <= filters.max_price)

        if filters.min_bedrooms is not None:
            conditions.append(Property.bedrooms >= filters.min_bedrooms)
        if filters.min_bathrooms is not None:
            conditions.append(Property.bathrooms >= filters.min_bathrooms)

        if filters.furnished is not None:
            conditions.append(Property.furnished == filters.furnished)

        if filters.owner_id:
            conditions.append(Property.owner_id == filters.owner_id)

        # Free text matches title, description, city and area
        if filters.query:
            search_term = f"%{filters.query.strip()}%"
            conditions.append(
                or_(
                    Property.title.ilike(search_term),
                    Property.description.ilike(search_term),
                    Property.city.ilike(search_term),
                    Property.area.ilike(search_term),
                )
            )

        return conditions

    async def get_properties_by_owner(
        self,
        owner_id: uuid.UUID,
        skip: int = 0,
        limit: int = 20,
        status: Optional[PropertyStatus] = None
    ) -> Tuple[List[Property], int]:
        """
        Get properties owned by a landlord, any status unless one is given.

        Args:
            owner_id: UUID of the landlord
            skip: Number of records to skip
            limit: Maximum number of records to return
            status: Optional status filter

        Returns:
            Tuple of (properties list, total count)
        """
        filters = PropertySearchFilters(status=status, owner_id=owner_id)
        return await self.search_properties(filters, skip=skip, limit=limit, order_by="updated_at")

    async def increment_views(self, property_id: uuid.UUID) -> None:
        """Bump the view counter in a single UPDATE."""
        try:
            stmt = (
                update(Property)
                .where(Property.id == property_id)
                .values(views=Property.views + 1)
            )
            await self.db.execute(stmt)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to increment views for property {property_id}: {e}")
            raise

    async def update_status(self, property_id: uuid.UUID, status: PropertyStatus) -> Optional[Property]:
        """
        Update property listing status.

        Args:
            property_id: UUID of the property
            status: New status

        Returns:
            Updated property or None if not found
        """
        updated_property = await self.update(property_id, {"status": status})
        if updated_property:
            logger.info(f"Property {property_id} status -> {status.value}")
        return updated_property

    async def count_by_status(self, owner_id: uuid.UUID) -> Dict[PropertyStatus, int]:
        """Number of a landlord's properties per status."""
        try:
            query = (
                select(Property.status, func.count(Property.id))
                .where(Property.owner_id == owner_id)
                .group_by(Property.status)
            )
            result = await self.db.execute(query)
            return {row[0]: row[1] for row in result.all()}
        except Exception as e:
            logger.error(f"Failed to count properties by status for owner {owner_id}: {e}")
            raise


class SavedPropertyRepository(BaseRepository[SavedProperty]):
    """Renter bookmarks."""

    def __init__(self, db: AsyncSession):
        super().__init__(SavedProperty, db)

    async def get_saved(self, user_id: uuid.UUID, property_id: uuid.UUID) -> Optional[SavedProperty]:
        query = select(SavedProperty).where(
            and_(SavedProperty.user_id == user_id, SavedProperty.property_id == property_id)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def remove(self, user_id: uuid.UUID, property_id: uuid.UUID) -> bool:
        try:
            stmt = delete(SavedProperty).where(
                and_(SavedProperty.user_id == user_id, SavedProperty.property_id == property_id)
            )
            result = await self.db.execute(stmt)
            await self.db.commit()
            return result.rowcount > 0
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to remove saved property {property_id} for user {user_id}: {e}")
            raise

    async def list_saved_properties(
        self,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Property], int]:
        """
        Properties a user has saved, most recently saved first.

        Args:
            user_id: UUID of the user
            skip: Number of records to skip
            limit: Maximum number of records to return

        Returns:
            Tuple of (properties list, total count)
        """
        try:
            count_query = select(func.count(SavedProperty.id)).where(SavedProperty.user_id == user_id)
            total_count = (await self.db.execute(count_query)).scalar() or 0

            query = (
                select(Property)
                .join(SavedProperty, SavedProperty.property_id == Property.id)
                .where(SavedProperty.user_id == user_id)
                .order_by(desc(SavedProperty.created_at))
                .offset(skip)
                .limit(limit)
            )
            result = await self.db.execute(query)
            return list(result.scalars().all()), total_count
        except Exception as e:
            logger.error(f"Failed to list saved properties for user {user_id}: {e}")
            raise
