"""
Authentication service for registration, login, token management and password changes.
"""

from typing import Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from jose import ExpiredSignatureError, JWTError
from marketplace.repositories.user import UserRepository
from marketplace.models.user import User
from marketplace.schemas.auth import RegisterRequest
from marketplace.utils.auth import create_access_token, create_refresh_token, verify_token
from marketplace.utils.exceptions import (
    APIException,
    BadRequestError,
    ConflictError,
    InactiveUserError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    TokenExpiredError,
    ValidationError,
)
import uuid
import logging

logger = logging.getLogger(__name__)


class AuthService:
    """
    Authentication service for accounts and JWT tokens.
    Role changes and activation live in the moderation service.
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.user_repo = UserRepository(db_session)

    async def register(self, user_data: RegisterRequest) -> User:
        """
        Register a property owner or seeker.

        Raises:
            ConflictError: If the email is already registered
        """
        try:
            existing = await self.user_repo.get_by_email(user_data.email)
            if existing:
                raise ConflictError(f"Email {user_data.email} is already registered")

            user = await self.user_repo.create_user(user_data.model_dump())
            logger.info(f"User registered: {user.email} as {user.role.value}")
            return user

        except APIException:
            raise
        except ValueError as e:
            raise ValidationError(str(e))
        except Exception as e:
            logger.error(f"Failed to register {user_data.email}: {e}")
            raise BadRequestError(f"Failed to register user: {str(e)}")

    async def authenticate_user(self, email: str, password: str) -> User:
        """
        Authenticate user with email and password.

        Raises:
            InvalidCredentialsError: If credentials are invalid
            InactiveUserError: If user account is inactive
        """
        if not email or not email.strip():
            raise ValidationError("Email is required")
        if not password:
            raise ValidationError("Password is required")

        try:
            user = await self.user_repo.authenticate_user(email, password)
        except Exception as e:
            logger.error(f"Authentication error for {email}: {e}")
            raise InvalidCredentialsError()

        if not user:
            logger.warning(f"Failed authentication attempt for email: {email}")
            raise InvalidCredentialsError()

        if not user.is_active:
            raise InactiveUserError()

        logger.info(f"User authenticated successfully: {user.email}")
        return user

    def create_tokens(self, user: User) -> Tuple[str, str]:
        """
        Returns:
            Tuple of (access_token, refresh_token)
        """
        access_token = create_access_token(user_id=user.id, email=user.email, role=user.role)
        refresh_token = create_refresh_token(user_id=user.id, email=user.email)
        return access_token, refresh_token

    async def login(self, email: str, password: str) -> Tuple[User, str, str]:
        """
        Authenticate user and create tokens.

        Returns:
            Tuple of (user, access_token, refresh_token)
        """
        user = await self.authenticate_user(email, password)
        access_token, refresh_token = self.create_tokens(user)
        return user, access_token, refresh_token

    async def refresh_access_token(self, refresh_token: str) -> str:
        """
        Create new access token from refresh token.

        Raises:
            InvalidTokenError: If refresh token is invalid
            TokenExpiredError: If refresh token is expired
            InactiveUserError: If user account is inactive
        """
        user = await self._user_from_token(refresh_token, "refresh")
        return create_access_token(user_id=user.id, email=user.email, role=user.role)

    async def get_current_user(self, token: str) -> User:
        """
        Get current user from access token.

        Raises:
            InvalidTokenError: If token is invalid or the user no longer exists
            TokenExpiredError: If token is expired
            InactiveUserError: If user account is inactive
        """
        return await self._user_from_token(token, "access")

    async def change_password(self, user: User, current_password: str, new_password: str) -> User:
        """
        Change the user's own password.

        Raises:
            InvalidCredentialsError: If current password is incorrect
            ValidationError: If the new password is too short or unchanged
        """
        try:
            if not user.verify_password(current_password):
                raise InvalidCredentialsError("Current password is incorrect")

            if not new_password or len(new_password) < 8:
                raise ValidationError("New password must be at least 8 characters long")

            if current_password == new_password:
                raise ValidationError("New password must be different from current password")

            updated_user = await self.user_repo.update_password(user.id, new_password)
            if not updated_user:
                raise NotFoundError("User", str(user.id))

            logger.info(f"Password changed for user: {user.id}")
            return updated_user

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to change password for user {user.id}: {e}")
            raise BadRequestError(f"Failed to change password: {str(e)}")

    async def _user_from_token(self, token: str, token_type: str) -> User:
        try:
            payload = verify_token(token, token_type=token_type)
            user_id = uuid.UUID(payload.user_id)
        except ExpiredSignatureError:
            raise TokenExpiredError()
        except (JWTError, ValueError) as e:
            raise InvalidTokenError(str(e) or "Invalid token")

        user = await self.user_repo.get_by_id(user_id)
        if not user:
            raise InvalidTokenError("User no longer exists")

        if not user.is_active:
            raise InactiveUserError()

        return user
