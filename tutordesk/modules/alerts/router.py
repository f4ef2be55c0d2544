"""Alert feed API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from tutordesk.modules.alerts.schemas import AlertRead
from tutordesk.modules.alerts.service import AlertsService, get_alerts_service
from tutordesk.modules.identity.service import get_current_user

router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.get("/teacher", response_model=list[AlertRead])
async def teacher_alerts(
    teacher_id: UUID | None = Query(default=None),
    service: AlertsService = Depends(get_alerts_service),
    current_user=Depends(get_current_user),
) -> list[AlertRead]:
    """Prioritised alerts across the teacher's learners."""
    alerts = await service.teacher_alerts(current_user, teacher_id)
    return [AlertRead.model_validate(alert) for alert in alerts]


@router.get("/learner", response_model=list[AlertRead])
async def learner_alerts(
    student_id: UUID | None = Query(default=None),
    service: AlertsService = Depends(get_alerts_service),
    current_user=Depends(get_current_user),
) -> list[AlertRead]:
    """Prioritised alerts for one learner."""
    alerts = await service.learner_alerts(current_user, student_id)
    return [AlertRead.model_validate(alert) for alert in alerts]
