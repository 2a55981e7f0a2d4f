"""Comment data access"""
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.comment import Comment


class CommentRepository:
    """Repository for Comment database operations"""

    @staticmethod
    async def create(db: AsyncSession, comment: Comment) -> Comment:
        """
        Create a new comment.

        Args:
            db: Database session
            comment: Comment object to create

        Returns:
            Created comment
        """
        db.add(comment)
        await db.flush()
        await db.refresh(comment)
        return comment

    @staticmethod
    async def get_by_id(db: AsyncSession, comment_id: UUID) -> Optional[Comment]:
        result = await db.execute(select(Comment).where(Comment.id == comment_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_for_settlement(db: AsyncSession, settlement_id: UUID) -> List[Comment]:
        """
        Get every comment of a settlement, deleted ones included.

        Deleted comments are needed to keep threads whose replies are still
        visible; the tree builder decides what is shown.

        Args:
            db: Database session
            settlement_id: Settlement UUID

        Returns:
            Comments ordered oldest first
        """
        result = await db.execute(
            select(Comment)
            .where(Comment.settlement_id == settlement_id)
            .order_by(Comment.created_at.asc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def save(db: AsyncSession, comment: Comment) -> Comment:
        """Flush changes made to a loaded comment"""
        await db.flush()
        await db.refresh(comment)
        return comment
