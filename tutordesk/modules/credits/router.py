"""Credit ledger API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from tutordesk.modules.credits.schemas import LedgerGrantRequest, LedgerRead
from tutordesk.modules.credits.service import CreditLedgerService, get_credit_ledger_service
from tutordesk.modules.identity.service import get_current_user

router = APIRouter(prefix="/credits", tags=["credits"])


@router.get("/ledgers/{ledger_id}", response_model=LedgerRead)
async def get_ledger(
    ledger_id: UUID,
    service: CreditLedgerService = Depends(get_credit_ledger_service),
    current_user=Depends(get_current_user),
) -> LedgerRead:
    """Return bucket balances of one ledger."""
    ledger = await service.get_ledger(ledger_id, current_user)
    return LedgerRead.model_validate(ledger)


@router.get("/students/{student_id}/ledgers", response_model=list[LedgerRead])
async def list_student_ledgers(
    student_id: UUID,
    service: CreditLedgerService = Depends(get_credit_ledger_service),
    current_user=Depends(get_current_user),
) -> list[LedgerRead]:
    """List course ledgers of a learner."""
    ledgers = await service.list_student_ledgers(student_id, current_user)
    return [LedgerRead.model_validate(item) for item in ledgers]


@router.post("/ledgers/{ledger_id}/grant", response_model=LedgerRead)
async def grant_hours(
    ledger_id: UUID,
    payload: LedgerGrantRequest,
    service: CreditLedgerService = Depends(get_credit_ledger_service),
    current_user=Depends(get_current_user),
) -> LedgerRead:
    """Grant hours outside the payment flow (admin)."""
    ledger = await service.manual_grant(ledger_id, payload.hours, current_user)
    return LedgerRead.model_validate(ledger)
