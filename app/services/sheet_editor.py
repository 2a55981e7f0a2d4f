"""Sheet editing operations

Every operation takes a sheet and returns a new one; the input is never
mutated. Refused operations (removing the last participant or expense)
return the sheet unchanged together with a notice for the user.
"""
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel

from app.core.exceptions import ValidationError
from app.schemas.settlement import (DEFAULT_TITLE, Expense, Participant,
                                    PersonalDeductionItem, SettlementData,
                                    SheetEdit)
from app.utils.decimal_utils import parse_cost

MIN_PARTICIPANTS_NOTICE = "At least one participant is required."
MIN_EXPENSES_NOTICE = "At least one expense item is required."
NEW_EXPENSE_NAME = "New item"


class SheetEditResult(BaseModel):
    """Outcome of a sheet edit"""

    data: SettlementData
    notice: Optional[str] = None


def _next_id(ids: List[int]) -> int:
    return max(ids) + 1 if ids else 1


class SheetEditor:
    """Pure edit operations on a SettlementData sheet"""

    @staticmethod
    def default_sheet(title: Optional[str] = None, subtitle: Optional[str] = None) -> SettlementData:
        """Fresh sheet with one participant and one empty expense"""
        return SettlementData(
            title=title or DEFAULT_TITLE,
            subtitle=subtitle or "",
            participants=[Participant(id=1, name="Participant 1")],
            expenses=[Expense(id=1, item_name=NEW_EXPENSE_NAME, total_cost=0, attendees={1: True})],
        )

    # -- participants -----------------------------------------------------

    @staticmethod
    def add_participant(data: SettlementData) -> SheetEditResult:
        """
        Append a participant with the next id.

        The newcomer attends every existing expense and deducts nothing.
        """
        sheet = data.model_copy(deep=True)
        new_id = _next_id([p.id for p in sheet.participants])
        sheet.participants.append(Participant(id=new_id, name=f"Participant {new_id}"))
        for expense in sheet.expenses:
            expense.attendees[new_id] = True
        for item in sheet.personal_deduction_items.values():
            item.deducting_participants[new_id] = False
        return SheetEditResult(data=sheet)

    @staticmethod
    def remove_participant(data: SettlementData) -> SheetEditResult:
        """
        Remove the highest-id participant and every reference to it.

        Refused when only one participant remains.
        """
        if len(data.participants) <= 1:
            return SheetEditResult(data=data, notice=MIN_PARTICIPANTS_NOTICE)

        sheet = data.model_copy(deep=True)
        last = max(sheet.participants, key=lambda p: p.id)
        sheet.participants = [p for p in sheet.participants if p.id != last.id]
        for expense in sheet.expenses:
            expense.attendees.pop(last.id, None)
        for item in sheet.personal_deduction_items.values():
            item.deducting_participants.pop(last.id, None)
        sheet.payment_status.pop(last.id, None)
        return SheetEditResult(data=sheet)

    @staticmethod
    def rename_participant(data: SettlementData, participant_id: int, name: str) -> SheetEditResult:
        sheet = data.model_copy(deep=True)
        for participant in sheet.participants:
            if participant.id == participant_id:
                participant.name = name
        return SheetEditResult(data=sheet)

    # -- expenses ---------------------------------------------------------

    @staticmethod
    def add_expense(data: SettlementData) -> SheetEditResult:
        """Append an empty expense attended by everyone"""
        sheet = data.model_copy(deep=True)
        new_id = _next_id([e.id for e in sheet.expenses])
        sheet.expenses.append(
            Expense(
                id=new_id,
                item_name=NEW_EXPENSE_NAME,
                total_cost=0,
                attendees={p.id: True for p in sheet.participants},
            )
        )
        return SheetEditResult(data=sheet)

    @staticmethod
    def remove_expense(data: SettlementData) -> SheetEditResult:
        """
        Remove the highest-id expense together with its deduction item.

        Refused when only one expense remains.
        """
        if len(data.expenses) <= 1:
            return SheetEditResult(data=data, notice=MIN_EXPENSES_NOTICE)

        sheet = data.model_copy(deep=True)
        last = max(sheet.expenses, key=lambda e: e.id)
        sheet.expenses = [e for e in sheet.expenses if e.id != last.id]
        sheet.personal_deduction_items.pop(last.id, None)
        return SheetEditResult(data=sheet)

    @staticmethod
    def rename_expense(data: SettlementData, expense_id: int, item_name: str) -> SheetEditResult:
        """Rename an expense; its deduction item mirrors the name"""
        sheet = data.model_copy(deep=True)
        for expense in sheet.expenses:
            if expense.id == expense_id:
                expense.item_name = item_name
        if expense_id in sheet.personal_deduction_items:
            sheet.personal_deduction_items[expense_id].item_name = item_name
        return SheetEditResult(data=sheet)

    @staticmethod
    def change_cost(data: SettlementData, expense_id: int, raw_cost) -> SheetEditResult:
        """Set an expense cost from raw input; its deduction item mirrors it"""
        cost = parse_cost(raw_cost)
        sheet = data.model_copy(deep=True)
        for expense in sheet.expenses:
            if expense.id == expense_id:
                expense.total_cost = cost
        if expense_id in sheet.personal_deduction_items:
            sheet.personal_deduction_items[expense_id].total_cost = cost
        return SheetEditResult(data=sheet)

    @staticmethod
    def toggle_attendee(data: SettlementData, expense_id: int, participant_id: int) -> SheetEditResult:
        sheet = data.model_copy(deep=True)
        for expense in sheet.expenses:
            if expense.id == expense_id:
                expense.attendees[participant_id] = not expense.attendees.get(participant_id, False)
        return SheetEditResult(data=sheet)

    @staticmethod
    def toggle_select_all(data: SettlementData, expense_id: int) -> SheetEditResult:
        """
        Row-level select all.

        If every existing attendee flag is set, everyone is cleared;
        otherwise every current participant is marked attending.
        """
        sheet = data.model_copy(deep=True)
        for expense in sheet.expenses:
            if expense.id != expense_id:
                continue
            flags = list(expense.attendees.values())
            all_checked = len(flags) > 0 and all(flags)
            expense.attendees = {p.id: not all_checked for p in sheet.participants}
        return SheetEditResult(data=sheet)

    # -- personal deductions ---------------------------------------------

    @staticmethod
    def toggle_personal_expense(data: SettlementData, expense_id: int) -> SheetEditResult:
        """Create the deduction item for an expense, or drop the existing one"""
        sheet = data.model_copy(deep=True)
        expense = next((e for e in sheet.expenses if e.id == expense_id), None)
        if expense is None:
            return SheetEditResult(data=data)

        if expense_id in sheet.personal_deduction_items:
            del sheet.personal_deduction_items[expense_id]
        else:
            sheet.personal_deduction_items[expense_id] = PersonalDeductionItem(
                id=expense.id,
                item_name=expense.item_name,
                total_cost=expense.total_cost,
                deducting_participants={p.id: False for p in sheet.participants},
            )
        return SheetEditResult(data=sheet)

    @staticmethod
    def toggle_deduction_participant(
        data: SettlementData, expense_id: int, participant_id: int
    ) -> SheetEditResult:
        """Flip a participant on an existing deduction item; no-op otherwise"""
        if expense_id not in data.personal_deduction_items:
            return SheetEditResult(data=data)
        sheet = data.model_copy(deep=True)
        flags = sheet.personal_deduction_items[expense_id].deducting_participants
        flags[participant_id] = not flags.get(participant_id, False)
        return SheetEditResult(data=sheet)

    # -- header & payments -----------------------------------------------

    @staticmethod
    def toggle_payment_status(data: SettlementData, participant_id: int) -> SheetEditResult:
        sheet = data.model_copy(deep=True)
        sheet.payment_status[participant_id] = not sheet.payment_status.get(participant_id, False)
        return SheetEditResult(data=sheet)

    @staticmethod
    def set_title(data: SettlementData, title: str) -> SheetEditResult:
        return SheetEditResult(data=data.model_copy(update={"title": title}, deep=True))

    @staticmethod
    def set_subtitle(data: SettlementData, subtitle: str) -> SheetEditResult:
        return SheetEditResult(data=data.model_copy(update={"subtitle": subtitle}, deep=True))

    # -- views ------------------------------------------------------------

    @staticmethod
    def expenses_for_participant(data: SettlementData, participant_id: int) -> List[Expense]:
        """Expenses the participant attends (participant filter view)"""
        return [e for e in data.expenses if e.attendees.get(participant_id)]

    @staticmethod
    def filter_view(data: SettlementData, participant_id: Optional[int]) -> SettlementData:
        """Copy of the sheet narrowed to one participant's columns and rows"""
        if participant_id is None:
            return data
        return data.model_copy(
            update={
                "participants": [p for p in data.participants if p.id == participant_id],
                "expenses": SheetEditor.expenses_for_participant(data, participant_id),
            },
            deep=True,
        )

    # -- dispatch ---------------------------------------------------------

    @staticmethod
    def validate_edit(data: SettlementData, edit: SheetEdit) -> None:
        """
        Check that the ids an edit refers to exist on the sheet.

        Raises:
            ValidationError: If a referenced participant or expense is unknown
        """
        participant_id = getattr(edit, "participant_id", None)
        if participant_id is not None and participant_id not in {p.id for p in data.participants}:
            raise ValidationError(f"Participant {participant_id} does not exist")

        expense_id = getattr(edit, "expense_id", None)
        if expense_id is not None and expense_id not in {e.id for e in data.expenses}:
            raise ValidationError(f"Expense {expense_id} does not exist")

    @staticmethod
    def apply(data: SettlementData, edit: SheetEdit) -> SheetEditResult:
        """
        Apply a tagged edit command.

        Args:
            data: Current sheet
            edit: Validated edit command

        Returns:
            SheetEditResult with the new sheet and an optional notice

        Raises:
            ValidationError: If the edit references unknown ids
        """
        SheetEditor.validate_edit(data, edit)
        handlers: Dict[str, Callable[[], SheetEditResult]] = {
            "add_participant": lambda: SheetEditor.add_participant(data),
            "remove_participant": lambda: SheetEditor.remove_participant(data),
            "rename_participant": lambda: SheetEditor.rename_participant(
                data, edit.participant_id, edit.name
            ),
            "add_expense": lambda: SheetEditor.add_expense(data),
            "remove_expense": lambda: SheetEditor.remove_expense(data),
            "rename_expense": lambda: SheetEditor.rename_expense(
                data, edit.expense_id, edit.item_name
            ),
            "change_cost": lambda: SheetEditor.change_cost(
                data, edit.expense_id, edit.total_cost
            ),
            "toggle_attendee": lambda: SheetEditor.toggle_attendee(
                data, edit.expense_id, edit.participant_id
            ),
            "toggle_select_all": lambda: SheetEditor.toggle_select_all(data, edit.expense_id),
            "toggle_personal_expense": lambda: SheetEditor.toggle_personal_expense(
                data, edit.expense_id
            ),
            "toggle_deduction_participant": lambda: SheetEditor.toggle_deduction_participant(
                data, edit.expense_id, edit.participant_id
            ),
            "toggle_payment_status": lambda: SheetEditor.toggle_payment_status(
                data, edit.participant_id
            ),
            "set_title": lambda: SheetEditor.set_title(data, edit.title),
            "set_subtitle": lambda: SheetEditor.set_subtitle(data, edit.subtitle),
        }
        return handlers[edit.op]()
