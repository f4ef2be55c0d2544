"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, Response, status
from sqlalchemy import text

from tutordesk.core.config import get_settings
from tutordesk.core.database import SessionLocal, close_engine
from tutordesk.core.metrics import build_metrics_response, instrument_http_request
from tutordesk.modules.alerts.router import router as alerts_router
from tutordesk.modules.approvals.router import router as approvals_router
from tutordesk.modules.audit.repository import AuditRepository
from tutordesk.modules.audit.router import router as audit_router
from tutordesk.modules.credits.router import router as credits_router
from tutordesk.modules.identity.repository import IdentityRepository
from tutordesk.modules.identity.router import router as identity_router
from tutordesk.modules.identity.service import IdentityService
from tutordesk.modules.notifications.router import router as notifications_router
from tutordesk.modules.packages.router import router as packages_router
from tutordesk.modules.scheduling.router import router as scheduling_router
from tutordesk.shared.exceptions import register_exception_handlers
from tutordesk.shared.utils import utc_now

settings = get_settings()
logger = logging.getLogger(__name__)

API_ROUTERS = (
    identity_router,
    credits_router,
    packages_router,
    scheduling_router,
    approvals_router,
    alerts_router,
    notifications_router,
    audit_router,
)


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Seed roles on startup, dispose the engine on shutdown."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logger.info(
        "Starting %s (cancel window %sh, reschedule window %sh, schedule tz %s)",
        settings.app_name,
        settings.cancel_approval_window_hours,
        settings.reschedule_approval_window_hours,
        settings.schedule_timezone,
    )

    async with SessionLocal() as session:
        try:
            await IdentityService(IdentityRepository(session)).ensure_default_roles()
            await session.commit()
        except Exception:
            await session.rollback()
            logger.exception("Could not seed default roles")
            raise

    yield

    logger.info("Shutting down %s", settings.app_name)
    await close_engine()


app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)
app.middleware("http")(instrument_http_request)
register_exception_handlers(app)
for api_router in API_ROUTERS:
    app.include_router(api_router, prefix=settings.api_prefix)


@app.get("/", include_in_schema=False)
async def index() -> dict[str, str]:
    return {"name": settings.app_name, "api_prefix": settings.api_prefix, "docs": app.docs_url or ""}


@app.get("/health")
async def healthcheck() -> dict[str, str]:
    """Liveness endpoint; never touches the database."""
    return {"status": "ok"}


async def _outbox_backlog() -> dict[str, int] | None:
    """Return undelivered outbox counts, or None when the database is unreachable."""
    try:
        async with SessionLocal() as session:
            await session.execute(text("SELECT 1"))
            return await AuditRepository(session).count_outbox_backlog()
    except Exception:
        logger.exception("Database readiness check failed")
        return None


@app.get("/ready")
async def readiness_check() -> dict[str, object]:
    """Readiness: database reachable, plus the outbox backlog."""
    backlog = await _outbox_backlog()
    if backlog is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database is not ready",
        )
    return {
        "status": "ready",
        "database": "ok",
        "outbox": backlog,
        "timestamp": utc_now().isoformat(),
    }


@app.get("/metrics", include_in_schema=False)
async def metrics_endpoint(_: Request) -> Response:
    """Prometheus metrics endpoint."""
    return build_metrics_response()
