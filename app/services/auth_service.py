"""Authentication logic"""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.core.exceptions import AuthenticationError, ConflictError
from app.core.security import create_access_token, hash_password, verify_password
from app.models.user import User
from app.repositories.user_repository import UserRepository
from app.schemas.auth import Token
from app.schemas.user import UserCreate

settings = get_settings()
logger = logging.getLogger(__name__)


class AuthService:
    """Service for treasurer accounts and tokens"""

    @staticmethod
    async def register_user(user_data: UserCreate, db: AsyncSession) -> User:
        """
        Register a treasurer account.

        Raises:
            ConflictError: If email or username already exists
        """
        if await UserRepository.check_email_exists(db, user_data.email):
            raise ConflictError(f"Email '{user_data.email}' is already registered")
        if await UserRepository.check_username_exists(db, user_data.username):
            raise ConflictError(f"Username '{user_data.username}' is already taken")

        user = User(
            email=user_data.email,
            username=user_data.username,
            hashed_password=hash_password(user_data.password),
            full_name=user_data.full_name,
            is_active=True,
        )
        created = await UserRepository.create(db, user)
        await db.commit()
        logger.info("Registered user %s", created.username)
        return created

    @staticmethod
    async def authenticate_user(identifier: str, password: str, db: AsyncSession) -> Optional[User]:
        """
        Check credentials.

        Args:
            identifier: Email or username
            password: Plain text password
            db: Database session

        Returns:
            The active user if the password matches, None otherwise
        """
        user = await UserRepository.get_by_email_or_username(db, identifier)
        if not user or not user.is_active:
            return None
        if not verify_password(password, user.hashed_password):
            return None
        return user

    @staticmethod
    def issue_token(user: User) -> Token:
        """Bearer token whose subject is the user id"""
        return Token(
            access_token=create_access_token({"sub": str(user.id)}),
            expires_in=settings.access_token_expire_minutes * 60,
        )

    @staticmethod
    async def login(identifier: str, password: str, db: AsyncSession) -> Token:
        """
        Log in with email or username.

        Raises:
            AuthenticationError: If credentials are invalid
        """
        user = await AuthService.authenticate_user(identifier, password, db)
        if not user:
            logger.info("Failed login for %s", identifier)
            raise AuthenticationError("Incorrect email/username or password")
        return AuthService.issue_token(user)
