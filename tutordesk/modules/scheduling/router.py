"""Scheduling gate API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from tutordesk.core.enums import GateOutcomeEnum
from tutordesk.modules.approvals.schemas import ApprovalRead
from tutordesk.modules.identity.service import get_current_user
from tutordesk.modules.lessons.schemas import SessionInstanceRead
from tutordesk.modules.scheduling.schemas import (
    GateResultRead,
    SessionBookRequest,
    SessionCancelRequest,
    SessionRescheduleRequest,
)
from tutordesk.modules.scheduling.service import GateResult, SchedulingGateService, get_scheduling_service
from tutordesk.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/scheduling", tags=["scheduling"])


def _serialize(result: GateResult, response: Response) -> GateResultRead:
    if result.outcome == GateOutcomeEnum.PENDING_APPROVAL:
        response.status_code = status.HTTP_202_ACCEPTED
    return GateResultRead(
        outcome=result.outcome,
        decision=result.decision,
        session=SessionInstanceRead.model_validate(result.session) if result.session is not None else None,
        approval=ApprovalRead.model_validate(result.approval) if result.approval is not None else None,
    )


@router.post("/sessions", response_model=GateResultRead, status_code=status.HTTP_201_CREATED)
async def book_session(
    payload: SessionBookRequest,
    response: Response,
    service: SchedulingGateService = Depends(get_scheduling_service),
    current_user=Depends(get_current_user),
) -> GateResultRead:
    """Book a session, or queue a new learner's first booking for approval."""
    return _serialize(await service.book_session(payload, current_user), response)


@router.post("/sessions/{session_id}/cancel", response_model=GateResultRead)
async def cancel_session(
    session_id: UUID,
    payload: SessionCancelRequest,
    response: Response,
    service: SchedulingGateService = Depends(get_scheduling_service),
    current_user=Depends(get_current_user),
) -> GateResultRead:
    """Cancel a session or request a late cancellation."""
    return _serialize(await service.cancel_session(session_id, payload, current_user), response)


@router.post("/sessions/{session_id}/reschedule", response_model=GateResultRead)
async def reschedule_session(
    session_id: UUID,
    payload: SessionRescheduleRequest,
    response: Response,
    service: SchedulingGateService = Depends(get_scheduling_service),
    current_user=Depends(get_current_user),
) -> GateResultRead:
    """Reschedule a session or request a late reschedule."""
    return _serialize(await service.reschedule_session(session_id, payload, current_user), response)


@router.post("/sessions/{session_id}/complete", response_model=SessionInstanceRead)
async def complete_session(
    session_id: UUID,
    service: SchedulingGateService = Depends(get_scheduling_service),
    current_user=Depends(get_current_user),
) -> SessionInstanceRead:
    """Mark a session as taught (teacher/admin)."""
    instance = await service.complete_session(session_id, current_user)
    return SessionInstanceRead.model_validate(instance)


@router.get("/sessions/my", response_model=Page[SessionInstanceRead])
async def list_my_sessions(
    pagination=Depends(get_pagination_params),
    service: SchedulingGateService = Depends(get_scheduling_service),
    current_user=Depends(get_current_user),
) -> Page[SessionInstanceRead]:
    """List sessions for current user."""
    items, total = await service.list_sessions(current_user, pagination.limit, pagination.offset)
    serialized = [SessionInstanceRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)
