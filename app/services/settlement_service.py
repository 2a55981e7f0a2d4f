"""Settlement business logic"""
import logging
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (AuthorizationError, InvalidTransitionError,
                                 NotFoundError, ReadOnlySettlementError)
from app.models.settlement import Settlement, SettlementStatus
from app.repositories.settlement_repository import SettlementRepository
from app.schemas.settlement import (CalculatorRequest, SettlementCreate,
                                    SettlementData, SettlementResponse,
                                    SettlementSummary, SheetEdit)
from app.services.autosave_service import SettlementAutosaver
from app.services.settlement_calculator import SettlementCalculator
from app.services.sheet_editor import SheetEditor

logger = logging.getLogger(__name__)

ACTIVE_NOTICE = "Settlement in progress. Please hold off on transfers until it is finalized."
# Edits still allowed once a settlement is archived
ARCHIVED_EDITS = {"toggle_payment_status"}


class SettlementService:
    """Service for settlement operations"""

    @staticmethod
    async def get_settlement(db: AsyncSession, settlement_id: UUID) -> Settlement:
        """
        Load a non-deleted settlement.

        Raises:
            NotFoundError: If missing or soft-deleted
        """
        settlement = await SettlementRepository.get_by_id(db, settlement_id)
        if not settlement:
            raise NotFoundError("Settlement not found")
        return settlement

    @staticmethod
    def current_sheet(settlement: Settlement, autosaver: SettlementAutosaver) -> SettlementData:
        """Buffered sheet if an autosave is pending, otherwise the stored one"""
        pending = autosaver.pending(settlement.id)
        if pending is not None:
            return pending
        return SettlementData.model_validate(settlement.data)

    @staticmethod
    def is_owner(settlement: Settlement, user_id: Optional[UUID]) -> bool:
        return user_id is not None and settlement.owner_id == user_id

    @staticmethod
    def _require_owner(settlement: Settlement, user_id: Optional[UUID], action: str) -> None:
        if not SettlementService.is_owner(settlement, user_id):
            raise AuthorizationError(f"Only the settlement owner can {action}")

    @staticmethod
    def build_response(
        settlement: Settlement,
        sheet: SettlementData,
        user_id: Optional[UUID],
        autosaver: SettlementAutosaver,
        notice: Optional[str] = None,
        participant_id: Optional[int] = None,
    ) -> SettlementResponse:
        """
        Assemble the detail response.

        Totals are always computed over the full sheet; ``participant_id``
        only narrows the rows and columns returned.
        """
        summary = SettlementCalculator.summarize(
            sheet.participants,
            sheet.expenses,
            sheet.personal_deduction_items,
            sheet.payment_status,
        )
        if participant_id is not None:
            visible = {e.id for e in SheetEditor.expenses_for_participant(sheet, participant_id)}
            summary.shares = [s for s in summary.shares if s.participant_id == participant_id]
            summary.expenses = [r for r in summary.expenses if r.expense_id in visible]

        owner = SettlementService.is_owner(settlement, user_id)
        if notice is None and settlement.status == SettlementStatus.ACTIVE:
            notice = ACTIVE_NOTICE

        return SettlementResponse(
            id=settlement.id,
            owner_id=settlement.owner_id,
            status=settlement.status,
            data=SheetEditor.filter_view(sheet, participant_id),
            summary=summary,
            is_owner=owner,
            read_only=not owner or settlement.status != SettlementStatus.ACTIVE,
            save_status=autosaver.status(settlement.id).value,
            notice=notice,
            created_at=settlement.created_at,
            updated_at=settlement.updated_at,
        )

    @staticmethod
    async def create_settlement(
        settlement_data: SettlementCreate, user_id: UUID, db: AsyncSession
    ) -> Settlement:
        """
        Create a settlement with a default one-participant, one-expense sheet.

        Args:
            settlement_data: Optional title and subtitle
            user_id: Owner (treasurer)
            db: Database session

        Returns:
            Created settlement
        """
        sheet = SheetEditor.default_sheet(settlement_data.title, settlement_data.subtitle)
        settlement = Settlement(
            owner_id=user_id,
            data=sheet.to_blob(),
            status=SettlementStatus.ACTIVE,
        )
        created = await SettlementRepository.create(db, settlement)
        await db.commit()
        logger.info("Settlement %s created by %s", created.id, user_id)
        return created

    @staticmethod
    async def list_settlements(
        db: AsyncSession,
        page: int = 1,
        page_size: int = 20,
        search: Optional[str] = None,
        sort: str = "latest",
        owner_id: Optional[UUID] = None,
    ) -> Tuple[List[Settlement], int]:
        """
        List settlements with search, sort and pagination.

        Returns:
            Tuple of (settlements, total count)
        """
        skip = (page - 1) * page_size
        settlements = await SettlementRepository.list_settlements(
            db, skip=skip, limit=page_size, search=search, sort=sort, owner_id=owner_id
        )
        total_count = await SettlementRepository.count(db, search=search, owner_id=owner_id)
        return settlements, total_count

    @staticmethod
    async def get_recent(user_id: UUID, db: AsyncSession, limit: int = 5) -> List[Settlement]:
        """Dashboard: the user's most recently updated settlements"""
        return await SettlementRepository.get_recent(db, user_id, limit=limit)

    @staticmethod
    async def get_settlement_detail(
        settlement_id: UUID,
        user_id: Optional[UUID],
        db: AsyncSession,
        autosaver: SettlementAutosaver,
        participant_id: Optional[int] = None,
    ) -> SettlementResponse:
        """
        Get a settlement with its computed summary; open to guests.

        Raises:
            NotFoundError: If settlement not found
        """
        settlement = await SettlementService.get_settlement(db, settlement_id)
        sheet = SettlementService.current_sheet(settlement, autosaver)
        return SettlementService.build_response(
            settlement, sheet, user_id, autosaver, participant_id=participant_id
        )

    @staticmethod
    async def apply_edit(
        settlement_id: UUID,
        edit: SheetEdit,
        user_id: Optional[UUID],
        db: AsyncSession,
        autosaver: SettlementAutosaver,
    ) -> SettlementResponse:
        """
        Apply one sheet edit and schedule a debounced save.

        Args:
            settlement_id: Settlement UUID
            edit: Edit command
            user_id: Current user, None for guests
            db: Database session
            autosaver: Write-behind buffer

        Returns:
            Updated settlement; ``notice`` is set when the edit was refused

        Raises:
            NotFoundError: If settlement not found
            ReadOnlySettlementError: Guest edit, or archived and not a payment toggle
            ValidationError: If the edit references unknown ids
        """
        settlement = await SettlementService.get_settlement(db, settlement_id)
        if not SettlementService.is_owner(settlement, user_id):
            raise ReadOnlySettlementError("Guests cannot edit this settlement")

        archived = settlement.status == SettlementStatus.ARCHIVED
        if archived and edit.op not in ARCHIVED_EDITS:
            raise ReadOnlySettlementError("Archived settlements only accept payment confirmations")

        sheet = SettlementService.current_sheet(settlement, autosaver)
        result = SheetEditor.apply(sheet, edit)
        if result.notice is None:
            autosaver.schedule(settlement.id, result.data, archived=archived)

        return SettlementService.build_response(
            settlement, result.data, user_id, autosaver, notice=result.notice
        )

    @staticmethod
    async def replace_data(
        settlement_id: UUID,
        sheet: SettlementData,
        user_id: Optional[UUID],
        db: AsyncSession,
        autosaver: SettlementAutosaver,
    ) -> SettlementResponse:
        """
        Overwrite the whole sheet immediately (last write wins).

        Raises:
            NotFoundError: If settlement not found
            ReadOnlySettlementError: Guest or archived settlement
        """
        settlement = await SettlementService.get_settlement(db, settlement_id)
        if not SettlementService.is_owner(settlement, user_id):
            raise ReadOnlySettlementError("Guests cannot edit this settlement")
        if settlement.status == SettlementStatus.ARCHIVED:
            raise ReadOnlySettlementError("Reactivate the settlement before editing it")

        autosaver.discard(settlement.id)
        await SettlementRepository.update_data(db, settlement, sheet.to_blob())
        await db.commit()

        return SettlementService.build_response(settlement, sheet, user_id, autosaver)

    @staticmethod
    async def complete_settlement(
        settlement_id: UUID,
        user_id: Optional[UUID],
        db: AsyncSession,
        autosaver: SettlementAutosaver,
        final_sheet: Optional[SettlementData] = None,
    ) -> SettlementResponse:
        """
        Archive an active settlement, saving its final sheet.

        Raises:
            NotFoundError: If settlement not found
            AuthorizationError: If user is not the owner
            InvalidTransitionError: If the settlement is not active
        """
        settlement = await SettlementService.get_settlement(db, settlement_id)
        SettlementService._require_owner(settlement, user_id, "complete it")
        if settlement.status != SettlementStatus.ACTIVE:
            raise InvalidTransitionError(settlement.status.value, SettlementStatus.ARCHIVED.value)

        sheet = final_sheet or SettlementService.current_sheet(settlement, autosaver)
        autosaver.discard(settlement.id)
        await SettlementRepository.update_data(db, settlement, sheet.to_blob())
        await SettlementRepository.update_status(db, settlement, SettlementStatus.ARCHIVED)
        await db.commit()
        logger.info("Settlement %s archived", settlement.id)

        return SettlementService.build_response(settlement, sheet, user_id, autosaver)

    @staticmethod
    async def reactivate_settlement(
        settlement_id: UUID,
        user_id: Optional[UUID],
        db: AsyncSession,
        autosaver: SettlementAutosaver,
    ) -> SettlementResponse:
        """
        Move an archived settlement back to active.

        Raises:
            NotFoundError: If settlement not found
            AuthorizationError: If user is not the owner
            InvalidTransitionError: If the settlement is not archived
        """
        settlement = await SettlementService.get_settlement(db, settlement_id)
        SettlementService._require_owner(settlement, user_id, "reactivate it")
        if settlement.status != SettlementStatus.ARCHIVED:
            raise InvalidTransitionError(settlement.status.value, SettlementStatus.ACTIVE.value)

        # Payment confirmations may still be buffered; reload after writing them
        await autosaver.flush(settlement.id)
        settlement = await SettlementService.get_settlement(db, settlement_id)
        await SettlementRepository.update_status(db, settlement, SettlementStatus.ACTIVE)
        await db.commit()
        logger.info("Settlement %s reactivated", settlement.id)

        sheet = SettlementService.current_sheet(settlement, autosaver)
        return SettlementService.build_response(settlement, sheet, user_id, autosaver)

    @staticmethod
    async def delete_settlement(
        settlement_id: UUID,
        user_id: Optional[UUID],
        db: AsyncSession,
        autosaver: SettlementAutosaver,
    ) -> bool:
        """
        Soft-delete a settlement; it disappears from listings for good.

        Raises:
            NotFoundError: If settlement not found
            AuthorizationError: If user is not the owner
        """
        settlement = await SettlementService.get_settlement(db, settlement_id)
        SettlementService._require_owner(settlement, user_id, "delete it")

        autosaver.discard(settlement.id)
        await SettlementRepository.update_status(db, settlement, SettlementStatus.DELETED)
        await db.commit()
        logger.info("Settlement %s deleted", settlement.id)
        return True

    @staticmethod
    def calculate(request: CalculatorRequest) -> SettlementSummary:
        """Stateless calculation over an unsaved sheet"""
        return SettlementCalculator.summarize(
            request.participants,
            request.expenses,
            request.personal_deduction_items,
            request.payment_status,
        )
