"""
Repository for property likes.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func, and_, desc
from marketplace.repositories.base import BaseRepository
from marketplace.models.favorite import PropertyLike
from typing import Dict, List, Optional, Set, Tuple
import uuid
import logging

logger = logging.getLogger(__name__)


class FavoriteRepository(BaseRepository[PropertyLike]):
    """Likes are unique per (user, property)."""

    def __init__(self, db: AsyncSession):
        super().__init__(PropertyLike, db)

    async def get_like(self, user_id: uuid.UUID, property_id: uuid.UUID) -> Optional[PropertyLike]:
        query = select(PropertyLike).where(
            and_(PropertyLike.user_id == user_id, PropertyLike.property_id == property_id)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def remove_like(self, user_id: uuid.UUID, property_id: uuid.UUID) -> bool:
        """
        Delete the like if there is one.

        Returns:
            True if a like was removed
        """
        try:
            result = await self.db.execute(
                delete(PropertyLike).where(
                    and_(PropertyLike.user_id == user_id, PropertyLike.property_id == property_id)
                )
            )
            await self.db.commit()
            removed = (result.rowcount or 0) > 0
            logger.debug(f"Unlike {property_id} by {user_id}: removed={removed}")
            return removed
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to remove like {user_id}/{property_id}: {e}")
            raise

    async def get_liked_property_ids(self, user_id: uuid.UUID) -> List[uuid.UUID]:
        query = (
            select(PropertyLike.property_id)
            .where(PropertyLike.user_id == user_id)
            .order_by(desc(PropertyLike.created_at))
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_user_likes(
        self,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[PropertyLike], int]:
        """Likes of a user with their properties loaded, newest first."""
        total = (
            await self.db.execute(select(func.count(PropertyLike.id)).where(PropertyLike.user_id == user_id))
        ).scalar() or 0

        query = (
            select(PropertyLike)
            .where(PropertyLike.user_id == user_id)
            .order_by(desc(PropertyLike.created_at))
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def count_for_property(self, property_id: uuid.UUID) -> int:
        query = select(func.count(PropertyLike.id)).where(PropertyLike.property_id == property_id)
        return (await self.db.execute(query)).scalar() or 0

    async def count_for_properties(self, property_ids: List[uuid.UUID]) -> Dict[uuid.UUID, int]:
        """Like counts for several properties; properties without likes are absent."""
        if not property_ids:
            return {}
        query = (
            select(PropertyLike.property_id, func.count(PropertyLike.id))
            .where(PropertyLike.property_id.in_(property_ids))
            .group_by(PropertyLike.property_id)
        )
        result = await self.db.execute(query)
        return {property_id: count for property_id, count in result.all()}

    async def liked_among(self, user_id: uuid.UUID, property_ids: List[uuid.UUID]) -> Set[uuid.UUID]:
        if not property_ids:
            return set()
        query = select(PropertyLike.property_id).where(
            and_(PropertyLike.user_id == user_id, PropertyLike.property_id.in_(property_ids))
        )
        result = await self.db.execute(query)
        return set(result.scalars().all())
