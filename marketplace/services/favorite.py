"""
Favorite service for property likes.
"""

from typing import Dict, Iterable, List, Optional, Set, Tuple
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from marketplace.models.favorite import PropertyLike
from marketplace.models.property import Property
from marketplace.models.user import User
from marketplace.repositories.favorite import FavoriteRepository
from marketplace.repositories.property import PropertyRepository
from marketplace.utils.exceptions import APIException, BadRequestError, PropertyNotFoundError
import uuid
import logging

logger = logging.getLogger(__name__)


class FavoriteService:
    """Likes are idempotent in both directions."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.favorite_repo = FavoriteRepository(db_session)
        self.property_repo = PropertyRepository(db_session)

    async def like_property(self, current_user: User, property_id: uuid.UUID) -> PropertyLike:
        """
        Like a property. Liking it again returns the existing like.

        Raises:
            PropertyNotFoundError: If the property doesn't exist, or is
                unpublished and not owned by the user
        """
        user_id, email = current_user.id, current_user.email
        try:
            property_obj = await self.property_repo.get_by_id(property_id)
            if not property_obj or not self._can_like(property_obj, current_user):
                raise PropertyNotFoundError(str(property_id))

            existing = await self.favorite_repo.get_like(user_id, property_id)
            if existing:
                return existing

            try:
                like = await self.favorite_repo.create({"user_id": user_id, "property_id": property_id})
            except IntegrityError:
                # a concurrent request stored the same like first
                like = await self.favorite_repo.get_like(user_id, property_id)
                await self.db.refresh(current_user)

            logger.info(f"User {email} liked property {property_id}")
            return like

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to like property {property_id}: {e}")
            raise BadRequestError(f"Failed to like property: {str(e)}")

    async def unlike_property(self, current_user: User, property_id: uuid.UUID) -> bool:
        """
        Returns:
            True if a like was removed, False if there was none
        """
        try:
            removed = await self.favorite_repo.remove_like(current_user.id, property_id)
            if removed:
                logger.info(f"User {current_user.email} unliked property {property_id}")
            return removed
        except Exception as e:
            logger.error(f"Failed to unlike property {property_id}: {e}")
            raise BadRequestError(f"Failed to unlike property: {str(e)}")

    async def get_liked_property_ids(self, current_user: User) -> List[uuid.UUID]:
        return await self.favorite_repo.get_liked_property_ids(current_user.id)

    async def list_liked_properties(
        self,
        current_user: User,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[Property], int]:
        """Liked properties the user can still see, newest like first."""
        likes, total = await self.favorite_repo.get_user_likes(
            current_user.id, skip=(page - 1) * page_size, limit=page_size
        )
        properties = [
            like.property_rel for like in likes
            if like.property_rel is not None and self._can_like(like.property_rel, current_user)
        ]
        return properties, total

    async def is_liked(self, current_user: User, property_id: uuid.UUID) -> bool:
        return await self.favorite_repo.get_like(current_user.id, property_id) is not None

    async def like_count(self, property_id: uuid.UUID) -> int:
        return await self.favorite_repo.count_for_property(property_id)

    async def like_summary(
        self,
        property_ids: Iterable[uuid.UUID],
        current_user: Optional[User] = None
    ) -> Tuple[Dict[uuid.UUID, int], Set[uuid.UUID]]:
        """
        Like counts and the user's likes for a page of properties.

        Returns:
            Tuple of (counts by property id, ids liked by the user)
        """
        ids = list(property_ids)
        counts = await self.favorite_repo.count_for_properties(ids)
        liked = await self.favorite_repo.liked_among(current_user.id, ids) if current_user else set()
        return counts, liked

    def _can_like(self, property_obj: Property, user: User) -> bool:
        return property_obj.is_published or property_obj.owner_id == user.id
