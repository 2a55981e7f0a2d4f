"""Unit tests for settlement service"""

from datetime import datetime
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (AuthorizationError, InvalidTransitionError,
                                 NotFoundError, ReadOnlySettlementError,
                                 ValidationError)
from app.models.settlement import Settlement, SettlementStatus
from app.schemas.settlement import (AddParticipant, CalculatorRequest,
                                    RemoveParticipant, SettlementCreate,
                                    TogglePaymentStatus, ToggleSelectAll)
from app.services.autosave_service import SaveStatus, SettlementAutosaver
from app.services.settlement_service import ACTIVE_NOTICE, SettlementService
from app.services.sheet_editor import MIN_PARTICIPANTS_NOTICE, SheetEditor


@pytest.fixture
def mock_db():
    """Create mock database session"""
    db = AsyncMock(spec=AsyncSession)
    db.commit = AsyncMock()
    return db


@pytest.fixture
def autosaver():
    """Autosaver that never fires on its own"""
    saver = SettlementAutosaver(AsyncMock(), delay_seconds=60, archived_delay_seconds=60)
    yield saver
    for settlement_id in list(saver._pending):
        saver.discard(settlement_id)


@pytest.fixture
def owner_id():
    return uuid4()


def make_settlement(owner_id, status=SettlementStatus.ACTIVE):
    now = datetime.utcnow()
    return Settlement(
        id=uuid4(),
        owner_id=owner_id,
        data=SheetEditor.default_sheet("Dinner").to_blob(),
        status=status,
        created_at=now,
        updated_at=now,
    )


class TestCreateSettlement:
    @pytest.mark.asyncio
    @patch("app.services.settlement_service.SettlementRepository")
    async def test_create_uses_default_sheet(self, mock_repo, mock_db, owner_id):
        mock_repo.create = AsyncMock(side_effect=lambda db, s: s)

        settlement = await SettlementService.create_settlement(
            SettlementCreate(title="Camping"), owner_id, mock_db
        )

        assert settlement.owner_id == owner_id
        assert settlement.status == SettlementStatus.ACTIVE
        assert settlement.data["title"] == "Camping"
        assert len(settlement.data["participants"]) == 1
        mock_db.commit.assert_called_once()


class TestGetSettlementDetail:
    @pytest.mark.asyncio
    @patch("app.services.settlement_service.SettlementRepository")
    async def test_guest_gets_read_only_view(self, mock_repo, mock_db, autosaver, owner_id):
        settlement = make_settlement(owner_id)
        mock_repo.get_by_id = AsyncMock(return_value=settlement)

        detail = await SettlementService.get_settlement_detail(settlement.id, None, mock_db, autosaver)

        assert detail.is_owner is False
        assert detail.read_only is True
        assert detail.notice == ACTIVE_NOTICE
        assert detail.save_status == "idle"

    @pytest.mark.asyncio
    @patch("app.services.settlement_service.SettlementRepository")
    async def test_missing_settlement(self, mock_repo, mock_db, autosaver):
        mock_repo.get_by_id = AsyncMock(return_value=None)
        with pytest.raises(NotFoundError):
            await SettlementService.get_settlement_detail(uuid4(), None, mock_db, autosaver)

    @pytest.mark.asyncio
    @patch("app.services.settlement_service.SettlementRepository")
    async def test_archived_has_no_notice(self, mock_repo, mock_db, autosaver, owner_id):
        settlement = make_settlement(owner_id, SettlementStatus.ARCHIVED)
        mock_repo.get_by_id = AsyncMock(return_value=settlement)

        detail = await SettlementService.get_settlement_detail(
            settlement.id, owner_id, mock_db, autosaver
        )

        assert detail.notice is None
        assert detail.read_only is True
        assert detail.is_owner is True


class TestApplyEdit:
    @pytest.mark.asyncio
    @patch("app.services.settlement_service.SettlementRepository")
    async def test_owner_edit_is_buffered(self, mock_repo, mock_db, autosaver, owner_id):
        settlement = make_settlement(owner_id)
        mock_repo.get_by_id = AsyncMock(return_value=settlement)

        response = await SettlementService.apply_edit(
            settlement.id, AddParticipant(op="add_participant"), owner_id, mock_db, autosaver
        )

        assert len(response.data.participants) == 2
        assert response.save_status == SaveStatus.PENDING.value
        assert len(autosaver.pending(settlement.id).participants) == 2
        mock_repo.update_data.assert_not_called()

    @pytest.mark.asyncio
    @patch("app.services.settlement_service.SettlementRepository")
    async def test_refused_edit_returns_notice(self, mock_repo, mock_db, autosaver, owner_id):
        settlement = make_settlement(owner_id)
        mock_repo.get_by_id = AsyncMock(return_value=settlement)

        response = await SettlementService.apply_edit(
            settlement.id, RemoveParticipant(op="remove_participant"), owner_id, mock_db, autosaver
        )

        assert response.notice == MIN_PARTICIPANTS_NOTICE
        assert autosaver.pending(settlement.id) is None

    @pytest.mark.asyncio
    @patch("app.services.settlement_service.SettlementRepository")
    async def test_guest_cannot_edit(self, mock_repo, mock_db, autosaver, owner_id):
        settlement = make_settlement(owner_id)
        mock_repo.get_by_id = AsyncMock(return_value=settlement)

        with pytest.raises(ReadOnlySettlementError):
            await SettlementService.apply_edit(
                settlement.id, AddParticipant(op="add_participant"), None, mock_db, autosaver
            )

    @pytest.mark.asyncio
    @patch("app.services.settlement_service.SettlementRepository")
    async def test_archived_allows_only_payment_toggle(self, mock_repo, mock_db, autosaver, owner_id):
        settlement = make_settlement(owner_id, SettlementStatus.ARCHIVED)
        mock_repo.get_by_id = AsyncMock(return_value=settlement)

        with pytest.raises(ReadOnlySettlementError):
            await SettlementService.apply_edit(
                settlement.id, AddParticipant(op="add_participant"), owner_id, mock_db, autosaver
            )

        response = await SettlementService.apply_edit(
            settlement.id,
            TogglePaymentStatus(op="toggle_payment_status", participant_id=1),
            owner_id,
            mock_db,
            autosaver,
        )
        assert response.data.payment_status == {1: True}

    @pytest.mark.asyncio
    @patch("app.services.settlement_service.SettlementRepository")
    async def test_unknown_expense(self, mock_repo, mock_db, autosaver, owner_id):
        settlement = make_settlement(owner_id)
        mock_repo.get_by_id = AsyncMock(return_value=settlement)

        with pytest.raises(ValidationError):
            await SettlementService.apply_edit(
                settlement.id,
                ToggleSelectAll(op="toggle_select_all", expense_id=42),
                owner_id,
                mock_db,
                autosaver,
            )


class TestLifecycle:
    @pytest.mark.asyncio
    @patch("app.services.settlement_service.SettlementRepository")
    async def test_complete_archives_buffered_sheet(self, mock_repo, mock_db, autosaver, owner_id):
        settlement = make_settlement(owner_id)
        mock_repo.get_by_id = AsyncMock(return_value=settlement)
        mock_repo.update_data = AsyncMock()
        mock_repo.update_status = AsyncMock()
        autosaver.schedule(
            settlement.id,
            SheetEditor.add_participant(SheetEditor.default_sheet()).data,
        )

        await SettlementService.complete_settlement(settlement.id, owner_id, mock_db, autosaver)

        saved_blob = mock_repo.update_data.call_args.args[2]
        assert len(saved_blob["participants"]) == 2
        mock_repo.update_status.assert_called_once_with(mock_db, settlement, SettlementStatus.ARCHIVED)
        assert autosaver.pending(settlement.id) is None

    @pytest.mark.asyncio
    @patch("app.services.settlement_service.SettlementRepository")
    async def test_complete_twice_is_invalid(self, mock_repo, mock_db, autosaver, owner_id):
        settlement = make_settlement(owner_id, SettlementStatus.ARCHIVED)
        mock_repo.get_by_id = AsyncMock(return_value=settlement)

        with pytest.raises(InvalidTransitionError):
            await SettlementService.complete_settlement(settlement.id, owner_id, mock_db, autosaver)

    @pytest.mark.asyncio
    @patch("app.services.settlement_service.SettlementRepository")
    async def test_reactivate_requires_archived(self, mock_repo, mock_db, autosaver, owner_id):
        settlement = make_settlement(owner_id)
        mock_repo.get_by_id = AsyncMock(return_value=settlement)

        with pytest.raises(InvalidTransitionError):
            await SettlementService.reactivate_settlement(settlement.id, owner_id, mock_db, autosaver)

    @pytest.mark.asyncio
    @patch("app.services.settlement_service.SettlementRepository")
    async def test_only_owner_deletes(self, mock_repo, mock_db, autosaver, owner_id):
        settlement = make_settlement(owner_id)
        mock_repo.get_by_id = AsyncMock(return_value=settlement)

        with pytest.raises(AuthorizationError):
            await SettlementService.delete_settlement(settlement.id, uuid4(), mock_db, autosaver)

    @pytest.mark.asyncio
    @patch("app.services.settlement_service.SettlementRepository")
    async def test_delete_marks_deleted(self, mock_repo, mock_db, autosaver, owner_id):
        settlement = make_settlement(owner_id)
        mock_repo.get_by_id = AsyncMock(return_value=settlement)
        mock_repo.update_status = AsyncMock()

        assert await SettlementService.delete_settlement(settlement.id, owner_id, mock_db, autosaver)
        mock_repo.update_status.assert_called_once_with(mock_db, settlement, SettlementStatus.DELETED)


class TestCalculate:
    def test_calculate_without_persistence(self):
        request = CalculatorRequest.model_validate(
            {
                "participants": [{"id": 1, "name": "A"}, {"id": 2, "name": "B"}],
                "expenses": [{"id": 1, "itemName": "Dinner", "totalCost": 100000,
                              "attendees": {"1": True, "2": True}}],
            }
        )
        summary = SettlementService.calculate(request)
        assert [s.display_amount for s in summary.shares] == [50000, 50000]
        assert summary.grand_total == 100000
