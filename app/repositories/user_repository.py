"""User data access"""
from typing import Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User


class UserRepository:
    """Repository for User database operations"""

    @staticmethod
    async def create(db: AsyncSession, user: User) -> User:
        """Persist a new user and return it refreshed"""
        db.add(user)
        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: UUID) -> Optional[User]:
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_email_or_username(db: AsyncSession, identifier: str) -> Optional[User]:
        """
        Get user by login identifier.

        Args:
            db: Database session
            identifier: Email or username

        Returns:
            User if found, None otherwise
        """
        result = await db.execute(
            select(User).where(or_(User.email == identifier, User.username == identifier))
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def check_email_exists(db: AsyncSession, email: str) -> bool:
        result = await db.execute(select(User.id).where(User.email == email))
        return result.first() is not None

    @staticmethod
    async def check_username_exists(db: AsyncSession, username: str) -> bool:
        result = await db.execute(select(User.id).where(User.username == username))
        return result.first() is not None
