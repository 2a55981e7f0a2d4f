"""Debounced settlement persistence

Sheet edits are buffered per settlement and written after a quiet period.
Each new edit cancels the pending write and restarts the timer (trailing
debounce). The whole blob is written; concurrent editors overwrite each
other (last write wins).
"""
import asyncio
import enum
import logging
from typing import Awaitable, Callable, Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import async_sessionmaker

from app.config import get_settings
from app.database import AsyncSessionLocal
from app.repositories.settlement_repository import SettlementRepository
from app.schemas.settlement import SettlementData

logger = logging.getLogger(__name__)

# Returns False when the settlement no longer exists and nothing was written
Writer = Callable[[UUID, SettlementData], Awaitable[bool]]


class SaveStatus(str, enum.Enum):
    """Save indicator shown next to the sheet"""
    IDLE = "idle"
    PENDING = "pending"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


class SettlementAutosaver:
    """Per-settlement write-behind buffer with a trailing debounce"""

    def __init__(
        self,
        writer: Writer,
        delay_seconds: float = 1.0,
        archived_delay_seconds: float = 0.5,
    ):
        self._writer = writer
        self.delay_seconds = delay_seconds
        self.archived_delay_seconds = archived_delay_seconds
        self._pending: Dict[UUID, SettlementData] = {}
        self._inflight: Dict[UUID, SettlementData] = {}
        self._timers: Dict[UUID, asyncio.Task] = {}
        self._status: Dict[UUID, SaveStatus] = {}

    def schedule(self, settlement_id: UUID, data: SettlementData, archived: bool = False) -> None:
        """
        Buffer a sheet and (re)start its flush timer.

        Args:
            settlement_id: Settlement UUID
            data: Latest sheet
            archived: Archived sheets use the shorter delay
        """
        self._pending[settlement_id] = data
        self._status[settlement_id] = SaveStatus.PENDING
        self._cancel_timer(settlement_id)

        delay = self.archived_delay_seconds if archived else self.delay_seconds
        self._timers[settlement_id] = asyncio.create_task(
            self._flush_later(settlement_id, delay)
        )

    def pending(self, settlement_id: UUID) -> Optional[SettlementData]:
        """Latest sheet not yet committed, if any"""
        data = self._pending.get(settlement_id)
        if data is None:
            data = self._inflight.get(settlement_id)
        return data

    def status(self, settlement_id: UUID) -> SaveStatus:
        return self._status.get(settlement_id, SaveStatus.IDLE)

    def discard(self, settlement_id: UUID) -> None:
        """Drop a buffered sheet without writing it"""
        self._cancel_timer(settlement_id)
        self._pending.pop(settlement_id, None)
        self._status.pop(settlement_id, None)

    async def flush(self, settlement_id: UUID) -> None:
        """Write a buffered sheet now"""
        self._cancel_timer(settlement_id)
        await self._write(settlement_id)

    async def flush_all(self) -> None:
        """Write every buffered sheet (application shutdown)"""
        for settlement_id in list(self._pending):
            await self.flush(settlement_id)

    def _cancel_timer(self, settlement_id: UUID) -> None:
        timer = self._timers.pop(settlement_id, None)
        if timer is not None and not timer.done():
            timer.cancel()

    async def _flush_later(self, settlement_id: UUID, delay: float) -> None:
        await asyncio.sleep(delay)
        if self._timers.get(settlement_id) is asyncio.current_task():
            del self._timers[settlement_id]
        await self._write(settlement_id)

    async def _write(self, settlement_id: UUID) -> None:
        data = self._pending.pop(settlement_id, None)
        if data is None:
            return

        self._inflight[settlement_id] = data
        self._status[settlement_id] = SaveStatus.SAVING
        try:
            written = await self._writer(settlement_id, data)
        except Exception:
            logger.exception("Autosave failed for settlement %s", settlement_id)
            # Keep the sheet so the next edit or flush retries it
            self._pending.setdefault(settlement_id, data)
            self._status[settlement_id] = SaveStatus.ERROR
            return
        finally:
            self._inflight.pop(settlement_id, None)

        if settlement_id in self._pending:
            return
        if not written:
            self._status.pop(settlement_id, None)
            return
        self._status[settlement_id] = SaveStatus.SAVED
        logger.debug("Autosaved settlement %s", settlement_id)


def make_repository_writer(session_factory: async_sessionmaker) -> Writer:
    """
    Build a writer that stores the sheet blob in its own session.

    Args:
        session_factory: Session factory to open a session per write
    """

    async def write(settlement_id: UUID, data: SettlementData) -> bool:
        async with session_factory() as session:
            settlement = await SettlementRepository.get_by_id(session, settlement_id)
            if settlement is None:
                logger.warning("Skipping autosave, settlement %s no longer exists", settlement_id)
                return False
            await SettlementRepository.update_data(session, settlement, data.to_blob())
            await session.commit()
            return True

    return write


_autosaver: Optional[SettlementAutosaver] = None


def get_autosaver() -> SettlementAutosaver:
    """Process-wide autosaver (FastAPI dependency)"""
    global _autosaver
    if _autosaver is None:
        settings = get_settings()
        _autosaver = SettlementAutosaver(
            make_repository_writer(AsyncSessionLocal),
            delay_seconds=settings.autosave_delay_seconds,
            archived_delay_seconds=settings.archived_autosave_delay_seconds,
        )
    return _autosaver
