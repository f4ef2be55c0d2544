"""Routers over in-memory services: status codes and the error envelope."""

from __future__ import annotations

from datetime import UTC, datetime

import httpx
import pytest

from fakes import COURSE_ID, build_engine, enroll, freeze_time
from tutordesk.main import app, settings
from tutordesk.modules.approvals.service import get_approvals_service
from tutordesk.modules.identity.service import get_current_user
from tutordesk.modules.scheduling.schemas import SessionBookRequest
from tutordesk.modules.scheduling.service import get_scheduling_service

NOW = datetime(2026, 10, 19, 9, 0, tzinfo=UTC)
BOOKING = {"course_id": str(COURSE_ID), "lesson_date": "2026-10-21", "start_time": "09:00:00", "duration_hours": "1"}


@pytest.fixture()
def engine(monkeypatch: pytest.MonkeyPatch):
    engine = build_engine(freeze_time(monkeypatch, NOW))
    app.dependency_overrides[get_scheduling_service] = lambda: engine.scheduling_service
    app.dependency_overrides[get_approvals_service] = lambda: engine.approvals_service
    yield engine
    app.dependency_overrides.clear()


def client_for(user) -> httpx.AsyncClient:
    app.dependency_overrides[get_current_user] = lambda: user
    transport = httpx.ASGITransport(app=app)
    return httpx.AsyncClient(transport=transport, base_url=f"http://testserver{settings.api_prefix}")


@pytest.mark.asyncio
async def test_first_booking_answers_202_with_the_approval(engine) -> None:
    enrollment = await enroll(engine, hours=5, returning=False)

    async with client_for(enrollment.learner) as client:
        response = await client.post("/scheduling/sessions", json=BOOKING)

    assert response.status_code == 202
    body = response.json()
    assert body["outcome"] == "pending_approval"
    assert body["session"] is None
    assert body["approval"]["type"] == "new_student_booking"
    assert body["approval"]["details"]["kind"] == "new_student_booking"


@pytest.mark.asyncio
async def test_business_rule_errors_use_the_error_envelope(engine) -> None:
    enrollment = await enroll(engine, hours=None)

    async with client_for(enrollment.learner) as client:
        response = await client.post("/scheduling/sessions", json=BOOKING)

    assert response.status_code == 422
    assert response.json()["error"] == {
        "code": "business_rule_violation",
        "message": "No active package for this course",
    }


@pytest.mark.asyncio
async def test_second_resolution_answers_409(engine) -> None:
    enrollment = await enroll(engine, hours=5, returning=False)
    pending = await engine.scheduling_service.book_session(SessionBookRequest.model_validate(BOOKING), enrollment.learner)

    async with client_for(enrollment.teacher) as client:
        first = await client.post(f"/approvals/{pending.approval.id}/resolve", json={"decision": "reject"})
        second = await client.post(f"/approvals/{pending.approval.id}/resolve", json={"decision": "approve"})

    assert first.status_code == 200
    assert first.json()["status"] == "rejected"
    assert first.json()["details"] is None
    assert second.status_code == 409
    assert second.json()["error"]["code"] == "already_resolved"
    assert second.json()["error"]["details"] == {"status": "rejected"}

