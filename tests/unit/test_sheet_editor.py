"""Unit tests for sheet edit operations"""

import pytest
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from app.core.exceptions import ValidationError
from app.models.settlement import Settlement
from app.schemas.settlement import SettlementData, SheetEdit
from app.services.sheet_editor import (MIN_EXPENSES_NOTICE,
                                       MIN_PARTICIPANTS_NOTICE, SheetEditor)
from app.utils.decimal_utils import parse_cost

edit_adapter = TypeAdapter(SheetEdit)


@pytest.fixture
def sheet():
    """Two participants, two expenses, a deduction on expense 2"""
    return SettlementData.model_validate(
        {
            "title": "Trip",
            "participants": [{"id": 1, "name": "A"}, {"id": 2, "name": "B"}],
            "expenses": [
                {"id": 1, "itemName": "Hotel", "totalCost": 200, "attendees": {"1": True, "2": True}},
                {"id": 2, "itemName": "Bar", "totalCost": 60, "attendees": {"1": True, "2": False}},
            ],
            "personalDeductionItems": {
                "2": {"id": 2, "itemName": "Bar", "totalCost": 60,
                      "deductingParticipants": {"1": True, "2": False}},
            },
            "paymentStatus": {"2": True},
        }
    )


class TestDefaultSheet:
    def test_default_sheet_satisfies_minimums(self):
        data = SheetEditor.default_sheet()
        assert data.title == "New settlement"
        assert len(data.participants) == 1
        assert len(data.expenses) == 1

    def test_default_title_shared_by_schema_and_model(self):
        blank = SettlementData.model_validate(
            {"participants": [{"id": 1}], "expenses": [{"id": 1}]}
        )
        assert blank.title == SheetEditor.default_sheet().title
        assert Settlement(data={}).title == SheetEditor.default_sheet().title


class TestSheetReferences:
    def test_orphan_deduction_rejected(self, sheet):
        blob = sheet.to_blob()
        blob["personalDeductionItems"]["7"] = {
            "id": 7, "totalCost": 1000, "deductingParticipants": {"1": True}
        }
        with pytest.raises(PydanticValidationError, match="does not match an expense"):
            SettlementData.model_validate(blob)

    def test_mismatched_deduction_id_rejected(self, sheet):
        blob = sheet.to_blob()
        blob["personalDeductionItems"]["2"]["id"] = 1
        with pytest.raises(PydanticValidationError, match="mismatched id"):
            SettlementData.model_validate(blob)

    def test_unknown_participant_keys_rejected(self, sheet):
        for mutate in (
            lambda b: b["expenses"][0]["attendees"].update({"9": True}),
            lambda b: b["personalDeductionItems"]["2"]["deductingParticipants"].update({"9": True}),
            lambda b: b["paymentStatus"].update({"9": True}),
        ):
            blob = sheet.to_blob()
            mutate(blob)
            with pytest.raises(PydanticValidationError):
                SettlementData.model_validate(blob)

    def test_edits_keep_references_valid(self, sheet):
        for body in (
            {"op": "add_participant"},
            {"op": "toggle_payment_status", "participant_id": 3},
            {"op": "remove_participant"},
            {"op": "remove_expense"},
            {"op": "change_cost", "expense_id": 1, "total_cost": "9" * 5000},
        ):
            sheet = SheetEditor.apply(sheet, edit_adapter.validate_python(body)).data
            SettlementData.model_validate(sheet.to_blob())
        assert sheet.expenses[0].total_cost == 0
        assert sheet.expenses[0].total_cost == 0

    def test_default_sheet_uses_given_title(self):
        assert SheetEditor.default_sheet("Camp", "July").subtitle == "July"


class TestParticipants:
    """Test adding and removing participants"""

    def test_add_participant_attends_every_expense(self, sheet):
        result = SheetEditor.add_participant(sheet)

        assert [p.id for p in result.data.participants] == [1, 2, 3]
        assert all(e.attendees[3] is True for e in result.data.expenses)
        assert result.data.personal_deduction_items[2].deducting_participants[3] is False
        # Input is left untouched
        assert len(sheet.participants) == 2

    def test_add_then_remove_restores_sheet(self, sheet):
        added = SheetEditor.add_participant(sheet).data
        removed = SheetEditor.remove_participant(added).data
        assert removed == sheet

    def test_remove_drops_all_references(self, sheet):
        result = SheetEditor.remove_participant(sheet)

        assert [p.id for p in result.data.participants] == [1]
        assert all(2 not in e.attendees for e in result.data.expenses)
        assert 2 not in result.data.personal_deduction_items[2].deducting_participants
        assert 2 not in result.data.payment_status
        assert result.notice is None

    def test_remove_last_participant_refused(self):
        data = SheetEditor.default_sheet()
        result = SheetEditor.remove_participant(data)
        assert result.notice == MIN_PARTICIPANTS_NOTICE
        assert result.data == data

    def test_rename_participant(self, sheet):
        result = SheetEditor.rename_participant(sheet, 2, "Bea")
        assert result.data.participants[1].name == "Bea"


class TestExpenses:
    """Test expense rows"""

    def test_add_expense_selects_everyone(self, sheet):
        result = SheetEditor.add_expense(sheet)
        new = result.data.expenses[-1]
        assert new.id == 3
        assert new.total_cost == 0
        assert new.attendees == {1: True, 2: True}

    def test_remove_expense_drops_deduction(self, sheet):
        result = SheetEditor.remove_expense(sheet)
        assert [e.id for e in result.data.expenses] == [1]
        assert result.data.personal_deduction_items == {}

    def test_remove_last_expense_refused(self):
        data = SheetEditor.default_sheet()
        result = SheetEditor.remove_expense(data)
        assert result.notice == MIN_EXPENSES_NOTICE
        assert len(result.data.expenses) == 1

    def test_rename_and_cost_mirror_into_deduction(self, sheet):
        data = SheetEditor.rename_expense(sheet, 2, "Pub").data
        data = SheetEditor.change_cost(data, 2, "75").data

        assert data.expenses[1].item_name == "Pub"
        assert data.expenses[1].total_cost == 75
        assert data.personal_deduction_items[2].item_name == "Pub"
        assert data.personal_deduction_items[2].total_cost == 75

    def test_change_cost_without_deduction(self, sheet):
        data = SheetEditor.change_cost(sheet, 1, "abc").data
        assert data.expenses[0].total_cost == 0
        assert 1 not in data.personal_deduction_items

    def test_toggle_attendee(self, sheet):
        data = SheetEditor.toggle_attendee(sheet, 2, 2).data
        assert data.expenses[1].attendees[2] is True

    def test_select_all_when_partial(self, sheet):
        data = SheetEditor.toggle_select_all(sheet, 2).data
        assert data.expenses[1].attendees == {1: True, 2: True}

    def test_select_all_when_full_clears(self, sheet):
        data = SheetEditor.toggle_select_all(sheet, 1).data
        assert data.expenses[0].attendees == {1: False, 2: False}


class TestDeductionsAndHeader:
    def test_toggle_personal_expense_creates_item(self, sheet):
        data = SheetEditor.toggle_personal_expense(sheet, 1).data
        item = data.personal_deduction_items[1]
        assert item.item_name == "Hotel"
        assert item.total_cost == 200
        assert item.deducting_participants == {1: False, 2: False}

    def test_toggle_personal_expense_removes_item(self, sheet):
        data = SheetEditor.toggle_personal_expense(sheet, 2).data
        assert 2 not in data.personal_deduction_items

    def test_toggle_deduction_participant(self, sheet):
        data = SheetEditor.toggle_deduction_participant(sheet, 2, 2).data
        assert data.personal_deduction_items[2].deducting_participants[2] is True

    def test_toggle_deduction_participant_without_item_is_noop(self, sheet):
        result = SheetEditor.toggle_deduction_participant(sheet, 1, 1)
        assert result.data == sheet

    def test_toggle_payment_status(self, sheet):
        data = SheetEditor.toggle_payment_status(sheet, 1).data
        data = SheetEditor.toggle_payment_status(data, 2).data
        assert data.payment_status == {1: True, 2: False}

    def test_title_and_subtitle(self, sheet):
        data = SheetEditor.set_title(sheet, "Ski trip").data
        data = SheetEditor.set_subtitle(data, "2 nights").data
        assert (data.title, data.subtitle) == ("Ski trip", "2 nights")


class TestApply:
    """Test command dispatch"""

    def test_apply_dispatches_by_op(self, sheet):
        edit = edit_adapter.validate_python({"op": "change_cost", "expense_id": 1, "total_cost": 300})
        result = SheetEditor.apply(sheet, edit)
        assert result.data.expenses[0].total_cost == 300

    def test_apply_unknown_expense(self, sheet):
        edit = edit_adapter.validate_python({"op": "toggle_select_all", "expense_id": 99})
        with pytest.raises(ValidationError):
            SheetEditor.apply(sheet, edit)

    def test_apply_unknown_participant(self, sheet):
        edit = edit_adapter.validate_python({"op": "toggle_payment_status", "participant_id": 7})
        with pytest.raises(ValidationError):
            SheetEditor.apply(sheet, edit)


class TestViews:
    def test_filter_view_keeps_attended_expenses(self, sheet):
        view = SheetEditor.filter_view(sheet, 2)
        assert [p.id for p in view.participants] == [2]
        assert [e.id for e in view.expenses] == [1]

    def test_filter_view_without_participant(self, sheet):
        assert SheetEditor.filter_view(sheet, None) is sheet


class TestParseCost:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            (1500, 1500),
            ("1500", 1500),
            ("12abc", 12),
            ("3.9", 3),
            (" 42", 42),
            ("", 0),
            ("abc", 0),
            (None, 0),
            (True, 0),
            (-5, 0),
            ("-20", 0),
            ("9" * 5000, 0),
        ],
    )
    def test_parse_cost(self, raw, expected):
        assert parse_cost(raw) == expected
