"""Stateless calculator endpoint"""
from fastapi import APIRouter

from app.schemas.settlement import CalculatorRequest, SettlementSummary
from app.services.settlement_service import SettlementService

router = APIRouter(prefix="/calculator", tags=["Calculator"])


@router.post("", response_model=SettlementSummary)
async def calculate(request: CalculatorRequest):
    """
    Compute shares for an unsaved sheet.

    Nothing is stored; the same rules as saved settlements apply
    (equal split per expense, then personal deductions, ceiling for display).
    """
    return SettlementService.calculate(request)
