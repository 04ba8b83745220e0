"""
Moderation service: the review queue, approve/reject decisions, dashboard
statistics and user management for staff.
"""

from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime, timedelta, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from marketplace.config import settings
from marketplace.flows.extraction import denormalize, with_meta
from marketplace.models.property import Property, PropertyStatus, PUBLIC_TAG
from marketplace.models.user import User, UserRole, ADMIN_ROLES
from marketplace.repositories.property import PropertyRepository
from marketplace.repositories.user import UserRepository
from marketplace.utils.exceptions import (
    APIException,
    BadRequestError,
    ForbiddenError,
    InsufficientPermissionsError,
    NotFoundError,
    PropertyNotFoundError,
    PropertyStatusError,
    ValidationError,
)
import uuid
import logging

logger = logging.getLogger(__name__)

PENDING_STATUSES = [PropertyStatus.DRAFT]


class ModerationService:
    """
    Moderators and admins review listings.
    Only admins manage users; only super admins grant admin roles.
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.property_repo = PropertyRepository(db_session)
        self.user_repo = UserRepository(db_session)

    async def list_pending(
        self,
        current_user: User,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[Property], int]:
        """Drafts and resubmissions awaiting review, oldest first."""
        self._require_staff(current_user, "view the moderation queue")
        return await self.property_repo.get_by_status(
            PENDING_STATUSES, skip=(page - 1) * page_size, limit=page_size
        )

    async def approve_property(self, property_id: uuid.UUID, current_user: User) -> Property:
        """
        Publish a listing and mark it public.

        Raises:
            PropertyStatusError: If the property is archived
        """
        try:
            self._require_staff(current_user, "approve properties")
            property_obj = await self._get_property(property_id)

            if property_obj.status == PropertyStatus.ARCHIVED:
                raise PropertyStatusError("Archived properties cannot be approved")

            tags = list(property_obj.tags or [])
            if PUBLIC_TAG not in tags:
                tags.append(PUBLIC_TAG)

            now = datetime.now(timezone.utc).isoformat()
            details = with_meta(
                property_obj.property_details or {},
                status=PropertyStatus.PUBLISHED.value,
                rejectionReason=None,
                rejectedAt=None,
                approvedAt=now,
                approvedBy=str(current_user.id),
            )

            updated = await self.property_repo.update_instance(property_obj, {
                **denormalize(property_obj.flow_type, details),
                "status": PropertyStatus.PUBLISHED,
                "tags": tags,
                "property_details": details,
            })

            logger.info(f"Property {property_obj.code} approved by {current_user.email}")
            return updated

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to approve property {property_id}: {e}")
            raise BadRequestError(f"Failed to approve property: {str(e)}")

    async def reject_property(self, property_id: uuid.UUID, reason: str, current_user: User) -> Property:
        """
        Reject a listing; the reason is stored in the details blob for the owner.

        Raises:
            ValidationError: If no reason is given
            PropertyStatusError: If the property is archived
        """
        try:
            self._require_staff(current_user, "reject properties")
            if not reason or not reason.strip():
                raise ValidationError("Rejection reason is required")

            property_obj = await self._get_property(property_id)
            if property_obj.status == PropertyStatus.ARCHIVED:
                raise PropertyStatusError("Archived properties cannot be rejected")

            details = with_meta(
                property_obj.property_details or {},
                status=PropertyStatus.REJECTED.value,
                rejectionReason=reason.strip(),
                rejectedAt=datetime.now(timezone.utc).isoformat(),
                rejectedBy=str(current_user.id),
                approvedAt=None,
                approvedBy=None,
            )

            updated = await self.property_repo.update_instance(property_obj, {
                **denormalize(property_obj.flow_type, details),
                "status": PropertyStatus.REJECTED,
                "tags": [tag for tag in property_obj.tags or [] if tag != PUBLIC_TAG],
                "property_details": details,
            })

            logger.info(f"Property {property_obj.code} rejected by {current_user.email}: {reason}")
            return updated

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to reject property {property_id}: {e}")
            raise BadRequestError(f"Failed to reject property: {str(e)}")

    async def get_moderation_stats(self, current_user: User) -> Dict[str, Any]:
        self._require_staff(current_user, "view moderation statistics")

        recent_since = datetime.now(timezone.utc) - timedelta(hours=settings.moderation_recent_hours)
        if settings.is_sqlite:
            # SQLite stores the timestamps without an offset
            recent_since = recent_since.replace(tzinfo=None)

        counts = await self.property_repo.get_moderation_counts(recent_since)
        return {**counts, "recent_hours": settings.moderation_recent_hours}

    # User management

    async def list_users(
        self,
        current_user: User,
        search: Optional[str] = None,
        role: Optional[UserRole] = None,
        is_active: Optional[bool] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[User], int]:
        self._require_admin(current_user, "list users")
        return await self.user_repo.search_users(
            search_term=search,
            role=role,
            is_active=is_active,
            skip=(page - 1) * page_size,
            limit=page_size,
        )

    async def get_user_statistics(self, current_user: User) -> Dict[str, Any]:
        self._require_admin(current_user, "view user statistics")
        return await self.user_repo.get_user_statistics()

    async def update_user_role(self, user_id: uuid.UUID, new_role: UserRole, current_user: User) -> User:
        """
        Change a user's role.

        Raises:
            ForbiddenError: If the user changes their own role, or a non super
                admin grants or revokes an admin role
        """
        try:
            self._require_admin(current_user, "update user roles")
            target_user = await self._get_user(user_id)

            if target_user.id == current_user.id:
                raise ForbiddenError("Users cannot change their own role")

            touches_admin = new_role in ADMIN_ROLES or target_user.role in ADMIN_ROLES
            if touches_admin and not current_user.is_super_admin:
                raise ForbiddenError("Only super admins can grant or revoke admin roles")

            updated_user = await self.user_repo.update_user_role(user_id, new_role)
            logger.info(f"User role updated by {current_user.email}: {user_id} -> {new_role.value}")
            return updated_user

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to update user role {user_id}: {e}")
            raise BadRequestError(f"Failed to update user role: {str(e)}")

    async def update_user_status(self, user_id: uuid.UUID, is_active: bool, current_user: User) -> User:
        """
        Activate or deactivate an account.

        Raises:
            ForbiddenError: If the user deactivates themselves, or a non super
                admin changes an admin account
        """
        try:
            self._require_admin(current_user, "update user status")
            target_user = await self._get_user(user_id)

            if target_user.id == current_user.id and not is_active:
                raise ForbiddenError("Users cannot deactivate their own account")
            if target_user.role in ADMIN_ROLES and not current_user.is_super_admin:
                raise ForbiddenError("Only super admins can change admin accounts")

            updated_user = await self.user_repo.update_user_status(user_id, is_active)
            status_text = "activated" if is_active else "deactivated"
            logger.info(f"User {status_text} by {current_user.email}: {user_id}")
            return updated_user

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to update user status {user_id}: {e}")
            raise BadRequestError(f"Failed to update user status: {str(e)}")

    def _require_staff(self, user: User, action: str) -> None:
        if not (user.is_active and user.is_staff):
            raise InsufficientPermissionsError(action)

    def _require_admin(self, user: User, action: str) -> None:
        if not (user.is_active and user.is_admin):
            raise InsufficientPermissionsError(action)

    async def _get_property(self, property_id: uuid.UUID) -> Property:
        property_obj = await self.property_repo.get_by_id(property_id)
        if not property_obj:
            raise PropertyNotFoundError(str(property_id))
        return property_obj

    async def _get_user(self, user_id: uuid.UUID) -> User:
        user = await self.user_repo.get_by_id(user_id)
        if not user:
            raise NotFoundError("User", str(user_id))
        return user
