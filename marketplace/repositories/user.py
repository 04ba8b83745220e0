"""
User repository for authentication and account management.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_, desc
from marketplace.repositories.base import LIKE_ESCAPE, BaseRepository, contains_pattern
from marketplace.models.user import User, UserRole
from typing import Optional, List, Dict, Any, Tuple
import uuid
import logging

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    """
    Repository for user accounts.
    Handles email normalization and password hashing on create.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(User, db)

    async def create_user(self, user_data: Dict[str, Any]) -> User:
        """
        Create a new user with email validation and password hashing.

        Args:
            user_data: Must include email, password, full_name.
                       Optional: phone, role (defaults to property seeker)

        Returns:
            Created user instance

        Raises:
            ValueError: If the email is taken or validation fails
        """
        data = dict(user_data)
        email = User.validate_email_format(data["email"])

        existing_user = await self.get_by_email(email)
        if existing_user:
            raise ValueError(f"User with email {email} already exists")

        password = data.pop("password")
        create_data = {
            **data,
            "email": email,
            "hashed_password": User.hash_password(password),
            "role": data.get("role") or UserRole.PROPERTY_SEEKER,
            "is_active": data.get("is_active", True),
        }

        created_user = await self.create(create_data)
        logger.info(f"Created user: {created_user.email} (ID: {created_user.id})")
        return created_user

    async def get_by_email(self, email: str) -> Optional[User]:
        try:
            query = select(User).where(User.email == email.lower().strip())
            result = await self.db.execute(query)
            user = result.scalar_one_or_none()

            if user:
                logger.debug(f"Retrieved user by email: {email}")
            else:
                logger.debug(f"User with email {email} not found")

            return user
        except Exception as e:
            logger.error(f"Failed to get user by email {email}: {e}")
            raise

    async def authenticate_user(self, email: str, password: str) -> Optional[User]:
        """
        Authenticate user with email and password.

        Returns:
            User instance if the credentials match, None otherwise
        """
        user = await self.get_by_email(email)

        if not user:
            logger.debug(f"Authentication failed: user {email} not found")
            return None

        if not user.verify_password(password):
            logger.debug(f"Authentication failed: invalid password for {email}")
            return None

        logger.info(f"User authenticated successfully: {email}")
        return user

    async def update_password(self, user_id: uuid.UUID, new_password: str) -> Optional[User]:
        """
        Update user's password with proper hashing.

        Raises:
            ValueError: If the new password is too short
        """
        hashed_password = User.hash_password(new_password)
        updated_user = await self.update(user_id, {"hashed_password": hashed_password})

        if updated_user:
            logger.info(f"Password updated for user: {updated_user.email}")

        return updated_user

    async def update_user_status(self, user_id: uuid.UUID, is_active: bool) -> Optional[User]:
        updated_user = await self.update(user_id, {"is_active": is_active})

        if updated_user:
            status = "activated" if is_active else "deactivated"
            logger.info(f"User {updated_user.email} {status}")

        return updated_user

    async def update_user_role(self, user_id: uuid.UUID, new_role: UserRole) -> Optional[User]:
        updated_user = await self.update(user_id, {"role": new_role})

        if updated_user:
            logger.info(f"User {updated_user.email} role updated to {new_role.value}")

        return updated_user

    async def search_users(
        self,
        search_term: Optional[str] = None,
        role: Optional[UserRole] = None,
        is_active: Optional[bool] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[User], int]:
        """
        List users, optionally filtered by a term over email and name, role and status.

        Returns:
            Tuple of (users list, total count)
        """
        try:
            conditions = []
            if search_term:
                pattern = contains_pattern(search_term)
                conditions.append(or_(
                    User.email.ilike(pattern, escape=LIKE_ESCAPE),
                    User.full_name.ilike(pattern, escape=LIKE_ESCAPE),
                ))
            if role is not None:
                conditions.append(User.role == role)
            if is_active is not None:
                conditions.append(User.is_active == is_active)

            count_query = select(func.count(User.id)).where(*conditions)
            total_count = (await self.db.execute(count_query)).scalar() or 0

            query = (
                select(User)
                .where(*conditions)
                .order_by(desc(User.created_at))
                .offset(skip)
                .limit(limit)
            )
            result = await self.db.execute(query)
            users = list(result.scalars().all())

            logger.debug(f"Retrieved {len(users)} of {total_count} users")
            return users, total_count
        except Exception as e:
            logger.error(f"Failed to search users: {e}")
            raise

    async def get_user_statistics(self) -> Dict[str, Any]:
        """Account counts for the admin dashboard."""
        try:
            total_users = (await self.db.execute(select(func.count(User.id)))).scalar() or 0
            active_users = (
                await self.db.execute(select(func.count(User.id)).where(User.is_active == True))  # noqa: E712
            ).scalar() or 0

            role_result = await self.db.execute(
                select(User.role, func.count(User.id)).group_by(User.role)
            )
            users_by_role = {role.value: count for role, count in role_result.all()}

            return {
                "total_users": total_users,
                "active_users": active_users,
                "inactive_users": total_users - active_users,
                "users_by_role": users_by_role,
            }
        except Exception as e:
            logger.error(f"Failed to get user statistics: {e}")
            raise
