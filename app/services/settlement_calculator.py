"""Settlement calculation logic

Shares are accumulated with exact rational arithmetic and only rounded when
presented, so per-person figures never drift before summation.
"""
from fractions import Fraction
from typing import Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from app.schemas.settlement import (Expense, ExpenseRow, Participant,
                                    ParticipantShare, PersonalDeductionItem,
                                    SettlementSummary)
from app.utils.decimal_utils import (ceil_amount, fraction_to_decimal,
                                     sum_fractions)


class SettlementTotals(BaseModel):
    """Unrounded per-participant totals"""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    participant_totals: Dict[int, Fraction]
    final_totals: Dict[int, Fraction]

    @property
    def grand_total(self) -> Fraction:
        return sum_fractions(self.final_totals.values())


class SettlementCalculator:
    """Pure calculator over participants, expenses and personal deductions"""

    @staticmethod
    def split_evenly(
        total_cost: int,
        flags: Mapping[int, bool],
        eligible: Optional[Iterable[int]] = None,
    ) -> Dict[int, Fraction]:
        """
        Split a cost equally among the flagged participants.

        Args:
            total_cost: Cost to split
            flags: Participant id -> selected
            eligible: Optional ids to restrict the selection to (in order)

        Returns:
            Participant id -> exact share; empty if nobody is selected
        """
        if eligible is None:
            selected = [pid for pid, checked in flags.items() if checked]
        else:
            selected = [pid for pid in eligible if flags.get(pid)]

        if not selected:
            return {}

        share = Fraction(total_cost, len(selected))
        return {pid: share for pid in selected}

    @staticmethod
    def participant_totals(
        participants: List[Participant], expenses: List[Expense]
    ) -> Dict[int, Fraction]:
        """
        Equal split of every expense among its attendees.

        An expense nobody attends contributes to no one.
        """
        totals: Dict[int, Fraction] = {p.id: Fraction(0) for p in participants}
        for expense in expenses:
            shares = SettlementCalculator.split_evenly(expense.total_cost, expense.attendees)
            for pid, share in shares.items():
                totals[pid] = totals.get(pid, Fraction(0)) + share
        return totals

    @staticmethod
    def apply_deductions(
        participants: List[Participant],
        participant_totals: Dict[int, Fraction],
        deductions: Mapping[int, PersonalDeductionItem],
    ) -> Dict[int, Fraction]:
        """
        Subtract personal deductions from the base split.

        The deduction is an overlay: the expense stays in the base split and
        the deducting participants are credited with its cost on top.
        """
        final = dict(participant_totals)
        participant_ids = [p.id for p in participants]
        for item in deductions.values():
            credits = SettlementCalculator.split_evenly(
                item.total_cost, item.deducting_participants, eligible=participant_ids
            )
            for pid, credit in credits.items():
                final[pid] = final.get(pid, Fraction(0)) - credit
        return final

    @staticmethod
    def calculate(
        participants: List[Participant],
        expenses: List[Expense],
        deductions: Optional[Mapping[int, PersonalDeductionItem]] = None,
    ) -> SettlementTotals:
        """
        Compute base and final totals for a sheet.

        Args:
            participants: Sheet participants
            expenses: Expense line items
            deductions: Personal deduction items keyed by expense id

        Returns:
            SettlementTotals with unrounded amounts
        """
        base = SettlementCalculator.participant_totals(participants, expenses)
        final = SettlementCalculator.apply_deductions(participants, base, deductions or {})
        return SettlementTotals(participant_totals=base, final_totals=final)

    @staticmethod
    def summarize(
        participants: List[Participant],
        expenses: List[Expense],
        deductions: Optional[Mapping[int, PersonalDeductionItem]] = None,
        payment_status: Optional[Mapping[int, bool]] = None,
    ) -> SettlementSummary:
        """
        Build the display summary: rounded shares, per-row figures and totals.

        Per-person amounts and the grand total are ceiling-rounded
        independently, so they may not add up exactly.
        """
        deductions = deductions or {}
        payment_status = payment_status or {}
        totals = SettlementCalculator.calculate(participants, expenses, deductions)

        shares = [
            ParticipantShare(
                participant_id=p.id,
                name=p.name,
                base_amount=fraction_to_decimal(totals.participant_totals.get(p.id, Fraction(0))),
                final_amount=fraction_to_decimal(totals.final_totals.get(p.id, Fraction(0))),
                display_amount=ceil_amount(totals.final_totals.get(p.id, Fraction(0))),
                paid=bool(payment_status.get(p.id)),
            )
            for p in participants
        ]

        rows = []
        for expense in expenses:
            attendee_count = sum(1 for checked in expense.attendees.values() if checked)
            rows.append(
                ExpenseRow(
                    expense_id=expense.id,
                    item_name=expense.item_name,
                    total_cost=expense.total_cost,
                    attendee_count=attendee_count,
                    cost_per_person=expense.total_cost // attendee_count if attendee_count else 0,
                    is_personal=expense.id in deductions,
                )
            )

        return SettlementSummary(
            shares=shares,
            expenses=rows,
            total_expenses_sum=sum(e.total_cost for e in expenses),
            grand_total=ceil_amount(totals.grand_total),
            has_personal_deductions=bool(deductions),
        )
