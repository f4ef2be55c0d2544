"""Custom exception hierarchy and handlers."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    status_code = 400
    code = "app_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundException(AppException):
    """Raised when entity is not found."""

    status_code = 404
    code = "not_found"


class ConflictException(AppException):
    """Raised when entity conflicts with current state."""

    status_code = 409
    code = "conflict"


class UnauthorizedException(AppException):
    """Raised when user has no rights for operation."""

    status_code = 403
    code = "forbidden"


class BusinessRuleException(AppException):
    """Raised when business rule validation fails."""

    status_code = 422
    code = "business_rule_violation"


class InsufficientCreditException(BusinessRuleException):
    """Raised when a reservation asks for more than the uncommitted balance."""

    code = "insufficient_credit"

    def __init__(self, available: Decimal, requested: Decimal) -> None:
        super().__init__(
            f"Insufficient credit. Available: {available}h, required: {requested}h",
            details={"available": str(available), "requested": str(requested)},
        )
        self.available = available
        self.requested = requested


class InvariantViolationException(AppException):
    """Raised when a release/settle would move more than the committed bucket holds."""

    status_code = 500
    code = "invariant_violation"


class PauseQuotaExceededException(BusinessRuleException):
    """Raised when a package has no pause allowance left."""

    code = "pause_quota_exceeded"

    def __init__(self, pauses_remaining: int, max_pauses: int) -> None:
        super().__init__(
            "Package cannot be paused: pause quota exhausted or package not active",
            details={"pauses_remaining": pauses_remaining, "max_pauses": max_pauses},
        )
        self.pauses_remaining = pauses_remaining
        self.max_pauses = max_pauses


class AlreadyResolvedException(ConflictException):
    """Raised when resolving an approval request that is no longer pending."""

    code = "already_resolved"

    def __init__(self, status: str) -> None:
        super().__init__(
            f"Approval request is already {status}",
            details={"status": status},
        )
        self.status = status


async def app_exception_handler(_: Request, exc: AppException) -> JSONResponse:
    """Handle custom domain exceptions."""
    error: dict[str, Any] = {"code": exc.code, "message": exc.message}
    if exc.details:
        error["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content={"error": error})


async def http_exception_handler(_: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTP exceptions in unified shape."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": "http_error", "message": str(exc.detail)}},
    )


async def unhandled_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception("Unhandled error: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"error": {"code": "internal_error", "message": "Internal server error"}},
    )


def register_exception_handlers(app) -> None:
    """Register global exception handlers."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
