"""
Repository for PropertyImage model operations.
"""

import uuid
import logging
from typing import List, Optional
from sqlalchemy import select, update, delete, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.models.image import PropertyImage
from marketplace.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class ImageRepository(BaseRepository[PropertyImage]):
    """Repository for PropertyImage database operations."""

    def __init__(self, db: AsyncSession):
        super().__init__(PropertyImage, db)

    async def get_by_property_id(self, property_id: uuid.UUID) -> List[PropertyImage]:
        """
        Get all images for a property.

        Returns:
            Images ordered primary first, then by display order and upload time
        """
        query = (
            select(PropertyImage)
            .where(PropertyImage.property_id == property_id)
            .order_by(
                PropertyImage.is_primary.desc(),
                PropertyImage.display_order.asc(),
                PropertyImage.created_at.asc()
            )
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_primary_image(self, property_id: uuid.UUID) -> Optional[PropertyImage]:
        query = select(PropertyImage).where(
            and_(
                PropertyImage.property_id == property_id,
                PropertyImage.is_primary == True  # noqa: E712
            )
        )
        result = await self.db.execute(query)
        return result.scalars().first()

    async def count_by_property_id(self, property_id: uuid.UUID) -> int:
        query = select(func.count(PropertyImage.id)).where(PropertyImage.property_id == property_id)
        result = await self.db.execute(query)
        return result.scalar() or 0

    async def next_display_order(self, property_id: uuid.UUID) -> int:
        query = select(func.max(PropertyImage.display_order)).where(PropertyImage.property_id == property_id)
        current = (await self.db.execute(query)).scalar()
        return 0 if current is None else current + 1

    async def update_primary_status(self, property_id: uuid.UUID, new_primary_id: uuid.UUID) -> bool:
        """
        Make one image the primary image and clear the flag on the others.

        Returns:
            True if the image was found and updated
        """
        try:
            await self.db.execute(
                update(PropertyImage)
                .where(PropertyImage.property_id == property_id)
                .values(is_primary=False)
            )
            result = await self.db.execute(
                update(PropertyImage)
                .where(and_(PropertyImage.id == new_primary_id, PropertyImage.property_id == property_id))
                .values(is_primary=True)
            )
            await self.db.commit()
            logger.debug(f"Primary image of property {property_id} set to {new_primary_id}")
            return result.rowcount > 0
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to set primary image {new_primary_id}: {e}")
            raise

    async def delete_by_property_id(self, property_id: uuid.UUID) -> int:
        try:
            result = await self.db.execute(delete(PropertyImage).where(PropertyImage.property_id == property_id))
            await self.db.commit()
            return result.rowcount or 0
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to delete images of property {property_id}: {e}")
            raise
