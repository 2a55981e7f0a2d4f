"""Settlement data access"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.settlement import Settlement, SettlementStatus

SORT_ORDERS = ("latest", "oldest", "title")


class SettlementRepository:
    """Repository for Settlement database operations"""

    @staticmethod
    async def create(db: AsyncSession, settlement: Settlement) -> Settlement:
        """
        Create a new settlement.

        Args:
            db: Database session
            settlement: Settlement object to create

        Returns:
            Created settlement
        """
        db.add(settlement)
        await db.flush()
        await db.refresh(settlement)
        return settlement

    @staticmethod
    async def get_by_id(db: AsyncSession, settlement_id: UUID) -> Optional[Settlement]:
        """
        Get a settlement that has not been deleted.

        Rows are re-read from the database even if already in the session,
        since the autosaver writes through its own sessions.

        Args:
            db: Database session
            settlement_id: Settlement UUID

        Returns:
            Settlement if found, None otherwise
        """
        query = select(Settlement).where(
            Settlement.id == settlement_id, Settlement.status != SettlementStatus.DELETED
        )
        result = await db.execute(query.execution_options(populate_existing=True))
        return result.scalar_one_or_none()

    @staticmethod
    def _apply_filters(query, search: Optional[str], owner_id: Optional[UUID]):
        query = query.where(Settlement.status != SettlementStatus.DELETED)
        if owner_id:
            query = query.where(Settlement.owner_id == owner_id)
        if search:
            title = func.lower(Settlement.data["title"].as_string())
            query = query.where(title.contains(search.lower(), autoescape=True))
        return query

    @staticmethod
    async def list_settlements(
        db: AsyncSession,
        skip: int = 0,
        limit: int = 20,
        search: Optional[str] = None,
        sort: str = "latest",
        owner_id: Optional[UUID] = None,
    ) -> List[Settlement]:
        """
        List non-deleted settlements.

        Args:
            db: Database session
            skip: Number of records to skip
            limit: Maximum number of records to return
            search: Optional case-insensitive title substring
            sort: "latest" (default), "oldest" or "title"
            owner_id: Optional owner filter

        Returns:
            List of settlements
        """
        query = SettlementRepository._apply_filters(select(Settlement), search, owner_id)

        if sort == "oldest":
            query = query.order_by(Settlement.created_at.asc())
        elif sort == "title":
            query = query.order_by(Settlement.data["title"].as_string().asc(), Settlement.created_at.desc())
        else:
            query = query.order_by(Settlement.created_at.desc())

        result = await db.execute(query.offset(skip).limit(limit))
        return list(result.scalars().all())

    @staticmethod
    async def count(
        db: AsyncSession, search: Optional[str] = None, owner_id: Optional[UUID] = None
    ) -> int:
        """Count non-deleted settlements matching the filters"""
        query = SettlementRepository._apply_filters(
            select(func.count(Settlement.id)), search, owner_id
        )
        result = await db.execute(query)
        return result.scalar_one()

    @staticmethod
    async def get_recent(db: AsyncSession, owner_id: UUID, limit: int = 5) -> List[Settlement]:
        """Most recently updated settlements of an owner"""
        query = (
            select(Settlement)
            .where(Settlement.owner_id == owner_id, Settlement.status != SettlementStatus.DELETED)
            .order_by(Settlement.updated_at.desc())
            .limit(limit)
        )
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def update_data(db: AsyncSession, settlement: Settlement, data: dict) -> Settlement:
        """Replace the sheet blob (last write wins)"""
        settlement.data = data
        settlement.updated_at = datetime.utcnow()
        await db.flush()
        return settlement

    @staticmethod
    async def update_status(
        db: AsyncSession, settlement: Settlement, status: SettlementStatus
    ) -> Settlement:
        settlement.status = status
        settlement.updated_at = datetime.utcnow()
        await db.flush()
        return settlement
