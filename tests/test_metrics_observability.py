from __future__ import annotations

import pytest
from fastapi import Request, Response
from prometheus_client import REGISTRY

import tutordesk.main as main_module
from tutordesk.core.metrics import (
    build_metrics_response,
    instrument_http_request,
    record_approval_resolution,
    record_gate_decision,
    record_ledger_transfer,
)


def _make_request(path: str) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": path,
        "headers": [],
        "client": ("127.0.0.1", 12345),
        "scheme": "http",
        "server": ("testserver", 80),
        "query_string": b"",
    }
    return Request(scope)


@pytest.mark.asyncio
async def test_http_metrics_instrumentation_tracks_status_and_path() -> None:
    async def _no_content(_: Request) -> Response:
        return Response(status_code=204)

    request = _make_request("/health")
    await instrument_http_request(request, _no_content)

    payload = build_metrics_response().body.decode("utf-8")
    assert "tutordesk_http_requests_total" in payload
    assert 'path="/health"' in payload
    assert 'status_code="204"' in payload


@pytest.mark.asyncio
async def test_metrics_endpoint_exposes_prometheus_payload() -> None:
    response = await main_module.metrics_endpoint(_make_request("/metrics"))
    payload = response.body.decode("utf-8")

    assert response.status_code == 200
    assert "tutordesk_http_requests_total" in payload


COUNTER_SAMPLES = (
    ("tutordesk_ledger_transfers_total", {"operation": "reserve", "outcome": "ok"}),
    ("tutordesk_gate_decisions_total", {"action": "cancel", "decision": "deferred"}),
    ("tutordesk_approval_resolutions_total", {"type": "cancellation", "decision": "approve"}),
)


def _sample(name: str, labels: dict[str, str]) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


def test_domain_counters_are_exported() -> None:
    before = [_sample(name, labels) for name, labels in COUNTER_SAMPLES]

    record_ledger_transfer("reserve", "ok")
    record_gate_decision("cancel", "deferred")
    record_approval_resolution("cancellation", "approve")

    after = [_sample(name, labels) for name, labels in COUNTER_SAMPLES]
    assert [value - previous for value, previous in zip(after, before)] == [1.0, 1.0, 1.0]

    payload = build_metrics_response().body.decode("utf-8")
    for name, _ in COUNTER_SAMPLES:
        assert f"# TYPE {name.removesuffix('_total')} counter" in payload
