from __future__ import annotations

import httpx
import pytest

from tutordesk.main import app, settings
from tutordesk.modules.identity.service import get_current_user
from tutordesk.modules.notifications.service import get_notifications_service
from tutordesk.shared.pagination import PaginationParams, build_page


@pytest.mark.parametrize(
    ("count", "total", "offset", "has_more", "next_offset"),
    [
        (2, 5, 0, True, 2),
        (2, 5, 2, True, 4),
        (1, 5, 4, False, None),
        (0, 0, 0, False, None),
        (0, 3, 10, False, None),
    ],
)
def test_page_reports_the_next_window(count, total, offset, has_more, next_offset) -> None:
    page = build_page(list(range(count)), total, PaginationParams(limit=2, offset=offset))

    assert page.has_more is has_more
    assert page.next_offset == next_offset
    assert page.model_dump()["next_offset"] == next_offset


class _NotificationsService:
    def __init__(self) -> None:
        self.calls: list[tuple[int, int]] = []

    async def list_my_notifications(self, actor, limit: int, offset: int):
        self.calls.append((limit, offset))
        return [], 0


@pytest.mark.asyncio
async def test_list_endpoints_apply_configured_page_bounds() -> None:
    service = _NotificationsService()
    app.dependency_overrides[get_notifications_service] = lambda: service
    app.dependency_overrides[get_current_user] = lambda: object()
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url=f"http://testserver{settings.api_prefix}") as client:
            default = await client.get("/notifications/my")
            too_large = await client.get("/notifications/my", params={"limit": settings.page_size_max + 1})
    finally:
        app.dependency_overrides.clear()

    assert default.status_code == 200
    assert default.json() == {
        "items": [],
        "total": 0,
        "limit": settings.page_size_default,
        "offset": 0,
        "has_more": False,
        "next_offset": None,
    }
    assert service.calls == [(settings.page_size_default, 0)]
    assert too_large.status_code == 422
