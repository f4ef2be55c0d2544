"""Prometheus metrics for HTTP traffic and the scheduling engine."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from time import perf_counter

from fastapi import Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

HTTP_REQUESTS_TOTAL = Counter(
    "tutordesk_http_requests_total",
    "Total number of HTTP requests handled by the API.",
    ["method", "path", "status_code"],
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "tutordesk_http_request_duration_seconds",
    "HTTP request latency in seconds.",
    ["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

LEDGER_TRANSFERS_TOTAL = Counter(
    "tutordesk_ledger_transfers_total",
    "Credit ledger bucket transfers by operation and outcome.",
    ["operation", "outcome"],
)

GATE_DECISIONS_TOTAL = Counter(
    "tutordesk_gate_decisions_total",
    "Scheduling gate verdicts by action.",
    ["action", "decision"],
)

APPROVAL_RESOLUTIONS_TOTAL = Counter(
    "tutordesk_approval_resolutions_total",
    "Resolved approval requests by type and decision.",
    ["type", "decision"],
)


def _request_path_label(request: Request) -> str:
    route = request.scope.get("route")
    route_path = getattr(route, "path", None)
    if route_path:
        return str(route_path)
    return request.url.path


async def instrument_http_request(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Track request count and latency for each endpoint."""
    started_at = perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        path_label = _request_path_label(request)
        method_label = request.method.upper()

        HTTP_REQUESTS_TOTAL.labels(
            method=method_label,
            path=path_label,
            status_code=str(status_code),
        ).inc()
        HTTP_REQUEST_DURATION_SECONDS.labels(
            method=method_label,
            path=path_label,
        ).observe(perf_counter() - started_at)


def record_ledger_transfer(operation: str, outcome: str) -> None:
    """Count one ledger transfer attempt."""
    LEDGER_TRANSFERS_TOTAL.labels(operation=operation, outcome=outcome).inc()


def record_gate_decision(action: str, decision: str) -> None:
    """Count one scheduling gate verdict."""
    GATE_DECISIONS_TOTAL.labels(action=action, decision=decision).inc()


def record_approval_resolution(approval_type: str, decision: str) -> None:
    """Count one approval resolution."""
    APPROVAL_RESOLUTIONS_TOTAL.labels(type=approval_type, decision=decision).inc()


def build_metrics_response() -> Response:
    """Return metrics payload in Prometheus text format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
