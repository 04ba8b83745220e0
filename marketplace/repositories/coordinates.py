"""
Repository for the property coordinates side table.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_
from marketplace.repositories.base import BaseRepository
from marketplace.models.coordinates import PropertyCoordinates
from marketplace.models.property import Property, PropertyStatus
from typing import Any, Dict, List, Optional
import uuid
import logging

logger = logging.getLogger(__name__)


class CoordinatesRepository(BaseRepository[PropertyCoordinates]):
    """One coordinates row per property, written by the coordinate sync."""

    def __init__(self, db: AsyncSession):
        super().__init__(PropertyCoordinates, db)

    async def get_by_property_id(self, property_id: uuid.UUID) -> Optional[PropertyCoordinates]:
        query = select(PropertyCoordinates).where(PropertyCoordinates.property_id == property_id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def upsert(self, property_id: uuid.UUID, values: Dict[str, Any]) -> PropertyCoordinates:
        """
        Insert or update the coordinates row of a property.

        Args:
            property_id: Property the coordinates belong to
            values: latitude, longitude, address, city, state

        Returns:
            The stored row
        """
        existing = await self.get_by_property_id(property_id)
        if existing:
            return await self.update_instance(existing, values)
        return await self.create({"property_id": property_id, **values})

    async def count_synced(self) -> int:
        return (await self.db.execute(select(func.count(PropertyCoordinates.id)))).scalar() or 0

    async def get_published_with_coordinates(self) -> List[PropertyCoordinates]:
        """Coordinates of every published property, with the property loaded."""
        query = (
            select(PropertyCoordinates)
            .join(Property, Property.id == PropertyCoordinates.property_id)
            .where(Property.status == PropertyStatus.PUBLISHED)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def find_in_bounds(
        self,
        south: float,
        west: float,
        north: float,
        east: float,
        limit: int = 200
    ) -> List[PropertyCoordinates]:
        """
        Published properties inside a bounding box.
        A box whose west edge is east of its east edge crosses the antimeridian.
        """
        try:
            if west <= east:
                longitude_condition = PropertyCoordinates.longitude.between(west, east)
            else:
                longitude_condition = (PropertyCoordinates.longitude >= west) | (PropertyCoordinates.longitude <= east)

            query = (
                select(PropertyCoordinates)
                .join(Property, Property.id == PropertyCoordinates.property_id)
                .where(
                    and_(
                        Property.status == PropertyStatus.PUBLISHED,
                        PropertyCoordinates.latitude.between(south, north),
                        longitude_condition,
                    )
                )
                .limit(limit)
            )
            result = await self.db.execute(query)
            rows = list(result.scalars().all())
            logger.debug(f"Found {len(rows)} properties in bounds ({south},{west})-({north},{east})")
            return rows
        except Exception as e:
            logger.error(f"Failed to query coordinates in bounds: {e}")
            raise
