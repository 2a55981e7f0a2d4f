"""Settlement schemas

The sheet blob keeps camelCase keys on the wire and in storage
(``itemName``, ``totalCost``, ``personalDeductionItems`` ...); Python code
uses the snake_case field names.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Dict, List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.settlement import DEFAULT_TITLE, SettlementStatus
from app.schemas.common import PaginationMeta


class SheetModel(BaseModel):
    """Base for blob models: accept both alias and field names"""

    model_config = ConfigDict(populate_by_name=True)


class Participant(SheetModel):
    """A person sharing in one or more expenses"""

    id: int = Field(..., ge=1)
    name: str = ""


class Expense(SheetModel):
    """A cost line item with its attendee map"""

    id: int = Field(..., ge=1)
    item_name: str = Field(default="", alias="itemName")
    total_cost: int = Field(default=0, ge=0, alias="totalCost")
    attendees: Dict[int, bool] = Field(default_factory=dict)


class PersonalDeductionItem(SheetModel):
    """Expense re-flagged as paid personally by some participants"""

    id: int = Field(..., ge=1)
    item_name: str = Field(default="", alias="itemName")
    total_cost: int = Field(default=0, ge=0, alias="totalCost")
    deducting_participants: Dict[int, bool] = Field(
        default_factory=dict, alias="deductingParticipants"
    )


class SheetView(SheetModel):
    """Sheet as returned to clients; may be narrowed to one participant"""

    title: str = DEFAULT_TITLE
    subtitle: str = ""
    participants: List[Participant] = Field(default_factory=list)
    expenses: List[Expense] = Field(default_factory=list)
    personal_deduction_items: Dict[int, PersonalDeductionItem] = Field(
        default_factory=dict, alias="personalDeductionItems"
    )
    payment_status: Dict[int, bool] = Field(default_factory=dict, alias="paymentStatus")


class SettlementData(SheetView):
    """The whole sheet, persisted as one blob"""

    participants: List[Participant] = Field(..., min_length=1)
    expenses: List[Expense] = Field(..., min_length=1)

    @model_validator(mode="after")
    def check_references(self):
        """
        Ids are unique and every reference points at an existing row.

        Deduction items are keyed by their expense id; attendee, deductor
        and payment keys are participant ids.
        """
        participant_ids = [p.id for p in self.participants]
        if len(set(participant_ids)) != len(participant_ids):
            raise ValueError("Participant ids must be unique")
        expense_ids = [e.id for e in self.expenses]
        if len(set(expense_ids)) != len(expense_ids):
            raise ValueError("Expense ids must be unique")

        known = set(participant_ids)
        for expense in self.expenses:
            if not set(expense.attendees) <= known:
                raise ValueError(f"Expense {expense.id} has attendees that are not participants")
        for key, item in self.personal_deduction_items.items():
            if key not in expense_ids:
                raise ValueError(f"Deduction item {key} does not match an expense")
            if item.id != key:
                raise ValueError(f"Deduction item {key} has mismatched id {item.id}")
            if not set(item.deducting_participants) <= known:
                raise ValueError(f"Deduction item {key} has deductors that are not participants")
        if not set(self.payment_status) <= known:
            raise ValueError("Payment status refers to unknown participants")
        return self

    def to_blob(self) -> dict:
        """Serialize for the JSON column"""
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Sheet edit commands
# ---------------------------------------------------------------------------


class AddParticipant(BaseModel):
    op: Literal["add_participant"]


class RemoveParticipant(BaseModel):
    op: Literal["remove_participant"]


class RenameParticipant(BaseModel):
    op: Literal["rename_participant"]
    participant_id: int
    name: str


class AddExpense(BaseModel):
    op: Literal["add_expense"]


class RemoveExpense(BaseModel):
    op: Literal["remove_expense"]


class RenameExpense(BaseModel):
    op: Literal["rename_expense"]
    expense_id: int
    item_name: str


class ChangeCost(BaseModel):
    """Raw input is parsed leniently, like a spreadsheet cell"""

    op: Literal["change_cost"]
    expense_id: int
    total_cost: Union[int, str]


class ToggleAttendee(BaseModel):
    op: Literal["toggle_attendee"]
    expense_id: int
    participant_id: int


class ToggleSelectAll(BaseModel):
    op: Literal["toggle_select_all"]
    expense_id: int


class TogglePersonalExpense(BaseModel):
    op: Literal["toggle_personal_expense"]
    expense_id: int


class ToggleDeductionParticipant(BaseModel):
    op: Literal["toggle_deduction_participant"]
    expense_id: int
    participant_id: int


class TogglePaymentStatus(BaseModel):
    op: Literal["toggle_payment_status"]
    participant_id: int


class SetTitle(BaseModel):
    op: Literal["set_title"]
    title: str = Field(..., max_length=200)


class SetSubtitle(BaseModel):
    op: Literal["set_subtitle"]
    subtitle: str = Field(..., max_length=500)


SheetEdit = Annotated[
    Union[
        AddParticipant,
        RemoveParticipant,
        RenameParticipant,
        AddExpense,
        RemoveExpense,
        RenameExpense,
        ChangeCost,
        ToggleAttendee,
        ToggleSelectAll,
        TogglePersonalExpense,
        ToggleDeductionParticipant,
        TogglePaymentStatus,
        SetTitle,
        SetSubtitle,
    ],
    Field(discriminator="op"),
]


# ---------------------------------------------------------------------------
# Calculation results
# ---------------------------------------------------------------------------


class ParticipantShare(BaseModel):
    """Computed amounts for one participant"""

    participant_id: int
    name: str
    base_amount: Decimal  # equal split only
    final_amount: Decimal  # after personal deductions
    display_amount: int  # ceiling of final_amount
    paid: bool = False


class ExpenseRow(BaseModel):
    """Per-expense figures shown next to each line item"""

    expense_id: int
    item_name: str
    total_cost: int
    attendee_count: int
    cost_per_person: int
    is_personal: bool


class SettlementSummary(BaseModel):
    """Derived totals for a sheet; never stored"""

    shares: List[ParticipantShare]
    expenses: List[ExpenseRow]
    total_expenses_sum: int
    grand_total: int
    has_personal_deductions: bool


class CalculatorRequest(SheetView):
    """Stateless calculation input; title and subtitle are ignored"""


# ---------------------------------------------------------------------------
# API payloads
# ---------------------------------------------------------------------------


class SettlementCreate(BaseModel):
    """Schema for creating a settlement"""

    title: Optional[str] = Field(default=None, max_length=200)
    subtitle: Optional[str] = Field(default=None, max_length=500)


class SettlementComplete(BaseModel):
    """Optional final sheet submitted when completing"""

    data: Optional[SettlementData] = None


class SettlementResponse(BaseModel):
    """Complete settlement response"""

    id: UUID
    owner_id: UUID
    status: SettlementStatus
    data: SheetView
    summary: SettlementSummary
    is_owner: bool
    read_only: bool
    save_status: str
    notice: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class SettlementListItem(BaseModel):
    """Settlement in list views"""

    id: UUID
    title: str
    status: SettlementStatus
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SettlementListResponse(BaseModel):
    """Paginated settlement list"""

    items: List[SettlementListItem]
    pagination: PaginationMeta
