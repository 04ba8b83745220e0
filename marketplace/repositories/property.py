"""
Property repository for listings: lookups, search, moderation queues and statistics.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, or_, func, desc, asc
from marketplace.repositories.base import LIKE_ESCAPE, BaseRepository, contains_pattern
from marketplace.models.property import Property, PropertyStatus
from marketplace.flows.definitions import FlowType
from typing import Optional, List, Dict, Any, Tuple
from datetime import datetime
from decimal import Decimal
import uuid
import logging

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {"created_at", "updated_at", "price", "title", "bedrooms", "square_feet"}


class PropertySearchFilters:
    """Search criteria for published listings."""

    def __init__(
        self,
        query: Optional[str] = None,
        city: Optional[str] = None,
        state: Optional[str] = None,
        flow_types: Optional[List[FlowType]] = None,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
        bedrooms: Optional[int] = None,
        min_bedrooms: Optional[int] = None,
        bathrooms: Optional[int] = None,
        min_area: Optional[int] = None,
        max_area: Optional[int] = None,
        owner_id: Optional[uuid.UUID] = None,
        statuses: Optional[List[PropertyStatus]] = None,
    ):
        self.query = query
        self.city = city
        self.state = state
        self.flow_types = flow_types
        self.min_price = min_price
        self.max_price = max_price
        self.bedrooms = bedrooms
        self.min_bedrooms = min_bedrooms
        self.bathrooms = bathrooms
        self.min_area = min_area
        self.max_area = max_area
        self.owner_id = owner_id
        self.statuses = statuses or [PropertyStatus.PUBLISHED]


class PropertyRepository(BaseRepository[Property]):
    """
    Repository for property listings.
    Owner and images are loaded eagerly through the model relationships.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(Property, db)

    async def create_property(self, property_data: Dict[str, Any]) -> Property:
        created_property = await self.create(property_data)
        logger.info(f"Created property {created_property.code} (ID: {created_property.id})")
        return created_property

    async def get_by_code(self, code: str) -> Optional[Property]:
        """
        Get a property by its public code, ignoring case.

        Args:
            code: Six character property code

        Returns:
            Property if found, None otherwise
        """
        try:
            query = select(Property).where(Property.code == code.strip().upper())
            result = await self.db.execute(query)
            property_obj = result.scalar_one_or_none()
            logger.debug(f"Lookup by code {code}: {'found' if property_obj else 'not found'}")
            return property_obj
        except Exception as e:
            logger.error(f"Failed to get property by code {code}: {e}")
            raise

    async def code_exists(self, code: str) -> bool:
        try:
            result = await self.db.execute(select(func.count(Property.id)).where(Property.code == code))
            return (result.scalar() or 0) > 0
        except Exception as e:
            logger.error(f"Failed to check property code {code}: {e}")
            raise

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
            conditions = self._build_filter_conditions(filters)

            count_query = select(func.count(Property.id)).where(and_(*conditions))
            total_count = (await self.db.execute(count_query)).scalar() or 0

            order_field = getattr(Property, order_by if order_by in SORTABLE_FIELDS else "created_at")
            ordering = asc(order_field) if order_direction.lower() == "asc" else desc(order_field)

            query = (
                select(Property)
                .where(and_(*conditions))
                .order_by(ordering, desc(Property.id))
                .offset(skip)
                .limit(limit)
            )
            result = await self.db.execute(query)
            properties = list(result.scalars().all())

            logger.debug(f"Property search returned {len(properties)} of {total_count} total results")
            return properties, total_count
        except Exception as e:
            logger.error(f"Failed to search properties: {e}")
            raise

    def _build_filter_conditions(self, filters: PropertySearchFilters) -> List:
        conditions = [Property.status.in_(filters.statuses)]

        if filters.query:
            term = contains_pattern(filters.query)
            conditions.append(
                or_(
                    Property.title.ilike(term, escape=LIKE_ESCAPE),
                    Property.description.ilike(term, escape=LIKE_ESCAPE),
                    Property.address.ilike(term, escape=LIKE_ESCAPE),
                    Property.city.ilike(term, escape=LIKE_ESCAPE),
                    Property.code.ilike(term, escape=LIKE_ESCAPE),
                )
            )

        if filters.city:
            conditions.append(Property.city.ilike(contains_pattern(filters.city), escape=LIKE_ESCAPE))
        if filters.state:
            conditions.append(Property.state.ilike(contains_pattern(filters.state), escape=LIKE_ESCAPE))

        if filters.flow_types:
            conditions.append(Property.flow_type.in_(filters.flow_types))

        if filters.min_price is not None:
            conditions.append(Property.price >= filters.min_price)
        if filters.max_price is not None:
            conditions.append(Property.price <= filters.max_price)

        if filters.bedrooms is not None:
            conditions.append(Property.bedrooms == filters.bedrooms)
        if filters.min_bedrooms is not None:
            conditions.append(Property.bedrooms >= filters.min_bedrooms)
        if filters.bathrooms is not None:
            conditions.append(Property.bathrooms >= filters.bathrooms)

        if filters.min_area is not None:
            conditions.append(Property.square_feet >= filters.min_area)
        if filters.max_area is not None:
            conditions.append(Property.square_feet <= filters.max_area)

        if filters.owner_id:
            conditions.append(Property.owner_id == filters.owner_id)

        return conditions

    async def get_properties_by_owner(
        self,
        owner_id: uuid.UUID,
        skip: int = 0,
        limit: int = 20,
        status: Optional[PropertyStatus] = None,
        include_archived: bool = False
    ) -> Tuple[List[Property], int]:
        """
        Get properties listed by an owner, most recently updated first.

        Returns:
            Tuple of (properties list, total count)
        """
        try:
            conditions = [Property.owner_id == owner_id]
            if status is not None:
                conditions.append(Property.status == status)
            elif not include_archived:
                conditions.append(Property.status != PropertyStatus.ARCHIVED)

            total_count = (
                await self.db.execute(select(func.count(Property.id)).where(*conditions))
            ).scalar() or 0

            query = (
                select(Property)
                .where(*conditions)
                .order_by(desc(Property.updated_at))
                .offset(skip)
                .limit(limit)
            )
            result = await self.db.execute(query)
            properties = list(result.scalars().all())

            logger.debug(f"Retrieved {len(properties)} properties for owner {owner_id}")
            return properties, total_count
        except Exception as e:
            logger.error(f"Failed to get properties by owner {owner_id}: {e}")
            raise

    async def get_by_status(
        self,
        statuses: List[PropertyStatus],
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Property], int]:
        """Properties in the given statuses, oldest update first."""
        try:
            condition = Property.status.in_(statuses)
            total_count = (
                await self.db.execute(select(func.count(Property.id)).where(condition))
            ).scalar() or 0

            query = (
                select(Property)
                .where(condition)
                .order_by(asc(Property.updated_at))
                .offset(skip)
                .limit(limit)
            )
            result = await self.db.execute(query)
            return list(result.scalars().all()), total_count
        except Exception as e:
            logger.error(f"Failed to get properties by status: {e}")
            raise

    async def get_similar_candidates(self, property_obj: Property, limit: int = 200) -> List[Property]:
        """
        Published properties sharing the flow or the city of the given one.
        Scoring happens in the service.
        """
        try:
            match = [Property.flow_type == property_obj.flow_type]
            if property_obj.city:
                match.append(func.lower(Property.city) == property_obj.city.lower())

            query = (
                select(Property)
                .where(
                    and_(
                        Property.status == PropertyStatus.PUBLISHED,
                        Property.id != property_obj.id,
                        or_(*match),
                    )
                )
                .order_by(desc(Property.created_at))
                .limit(limit)
            )
            result = await self.db.execute(query)
            candidates = list(result.scalars().all())
            logger.debug(f"Found {len(candidates)} similar candidates for {property_obj.id}")
            return candidates
        except Exception as e:
            logger.error(f"Failed to get similar candidates for {property_obj.id}: {e}")
            raise

    async def get_batch(self, offset: int, limit: int) -> List[Property]:
        """Stable page over every property, used by batch jobs."""
        try:
            query = select(Property).order_by(asc(Property.created_at), asc(Property.id)).offset(offset).limit(limit)
            result = await self.db.execute(query)
            return list(result.scalars().all())
        except Exception as e:
            logger.error(f"Failed to get property batch at offset {offset}: {e}")
            raise

    async def get_property_statistics(self, owner_id: Optional[uuid.UUID] = None) -> Dict[str, Any]:
        """
        Counts by status and flow plus price statistics of published listings.

        Args:
            owner_id: Optional owner to scope the statistics to

        Returns:
            Dictionary with property statistics
        """
        try:
            scope = [Property.owner_id == owner_id] if owner_id else []

            total = (await self.db.execute(select(func.count(Property.id)).where(*scope))).scalar() or 0

            status_result = await self.db.execute(
                select(Property.status, func.count(Property.id)).where(*scope).group_by(Property.status)
            )
            by_status = {status.value: 0 for status in PropertyStatus}
            by_status.update({row[0].value: row[1] for row in status_result.all()})

            flow_result = await self.db.execute(
                select(Property.flow_type, func.count(Property.id)).where(*scope).group_by(Property.flow_type)
            )
            by_flow = {row[0].value: row[1] for row in flow_result.all()}

            price_result = await self.db.execute(
                select(func.min(Property.price), func.max(Property.price), func.avg(Property.price))
                .where(Property.status == PropertyStatus.PUBLISHED, *scope)
            )
            min_price, max_price, avg_price = price_result.first()

            return {
                "total_properties": total,
                "properties_by_status": by_status,
                "properties_by_flow": by_flow,
                "price_statistics": {
                    "min_price": float(min_price) if min_price is not None else 0,
                    "max_price": float(max_price) if max_price is not None else 0,
                    "avg_price": round(float(avg_price), 2) if avg_price is not None else 0,
                },
            }
        except Exception as e:
            logger.error(f"Failed to get property statistics: {e}")
            raise

    async def get_moderation_counts(self, recent_since: datetime) -> Dict[str, int]:
        """Totals used by the moderation dashboard."""
        try:
            total = (await self.db.execute(select(func.count(Property.id)))).scalar() or 0

            status_result = await self.db.execute(
                select(Property.status, func.count(Property.id)).group_by(Property.status)
            )
            by_status = {row[0]: row[1] for row in status_result.all()}

            recent = (
                await self.db.execute(select(func.count(Property.id)).where(Property.created_at >= recent_since))
            ).scalar() or 0

            unique_cities = (
                await self.db.execute(
                    select(func.count(func.distinct(func.lower(Property.city)))).where(Property.city.isnot(None))
                )
            ).scalar() or 0

            unique_owners = (
                await self.db.execute(select(func.count(func.distinct(Property.owner_id))))
            ).scalar() or 0

            return {
                "total": total,
                "pending": by_status.get(PropertyStatus.DRAFT, 0),
                "approved": by_status.get(PropertyStatus.PUBLISHED, 0),
                "rejected": by_status.get(PropertyStatus.REJECTED, 0),
                "archived": by_status.get(PropertyStatus.ARCHIVED, 0),
                "recent": recent,
                "unique_cities": unique_cities,
                "unique_owners": unique_owners,
            }
        except Exception as e:
            logger.error(f"Failed to get moderation counts: {e}")
            raise
