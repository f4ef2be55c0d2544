"""Credit ledger business logic layer."""

from __future__ import annotations

import logging
from decimal import Decimal
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tutordesk.core.database import get_db_session
from tutordesk.core.enums import RoleEnum
from tutordesk.core.metrics import record_ledger_transfer
from tutordesk.modules.audit.repository import AuditRepository
from tutordesk.modules.credits.models import CreditLedger
from tutordesk.modules.credits.repository import CreditLedgerRepository
from tutordesk.modules.identity.models import User
from tutordesk.shared.exceptions import (
    BusinessRuleException,
    InsufficientCreditException,
    InvariantViolationException,
    NotFoundException,
    UnauthorizedException,
)
from tutordesk.shared.utils import to_hours

logger = logging.getLogger(__name__)


class CreditLedgerService:
    """Ledger transfers: grant, reserve, release and settle."""

    def __init__(
        self,
        repository: CreditLedgerRepository,
        audit_repository: AuditRepository,
    ) -> None:
        self.repository = repository
        self.audit_repository = audit_repository

    async def get_ledger(self, ledger_id: UUID, actor: User) -> CreditLedger:
        """Return ledger visible to the actor."""
        ledger = await self.repository.get_by_id(ledger_id)
        if ledger is None:
            raise NotFoundException("Ledger not found")
        if actor.role.name == RoleEnum.LEARNER and ledger.student_id != actor.id:
            raise UnauthorizedException("Ledger does not belong to current learner")
        return ledger

    async def list_student_ledgers(self, student_id: UUID, actor: User) -> list[CreditLedger]:
        """List all course ledgers of a learner."""
        if actor.role.name == RoleEnum.LEARNER and actor.id != student_id:
            raise UnauthorizedException("Access denied")
        return await self.repository.list_for_students([student_id])

    async def open_or_grant(
        self,
        student_id: UUID,
        course_id: UUID,
        hours: Decimal,
        currency: str,
        actor_id: UUID | None = None,
    ) -> CreditLedger:
        """Grant hours on the learner's course ledger, creating it on first payment."""
        ledger = await self.repository.get_for_student_course(student_id, course_id)
        if ledger is None:
            ledger = await self.repository.create_ledger(student_id, course_id, currency)
            logger.info("Opened ledger %s for student %s course %s", ledger.id, student_id, course_id)
        return await self.grant(ledger.id, hours, actor_id=actor_id)

    async def manual_grant(self, ledger_id: UUID, hours: Decimal, actor: User) -> CreditLedger:
        """Top up a ledger by hand (admin only)."""
        if actor.role.name != RoleEnum.ADMIN:
            raise UnauthorizedException("Only admin can grant credit manually")
        return await self.grant(ledger_id, hours, actor_id=actor.id)

    async def grant(self, ledger_id: UUID, hours: Decimal, actor_id: UUID | None = None) -> CreditLedger:
        """Increase total and uncommitted hours together."""
        amount = self._validated_hours(hours)
        ledger = await self.repository.grant(ledger_id, amount)
        if ledger is None:
            record_ledger_transfer("grant", "not_found")
            raise NotFoundException("Ledger not found")
        return await self._transferred("grant", ledger, amount, actor_id)

    async def reserve(self, ledger_id: UUID, hours: Decimal, actor_id: UUID | None = None) -> CreditLedger:
        """Move hours from uncommitted to committed."""
        amount = self._validated_hours(hours)
        ledger = await self.repository.reserve(ledger_id, amount)
        if ledger is None:
            current = await self._require_ledger(ledger_id, "reserve")
            record_ledger_transfer("reserve", "insufficient_credit")
            logger.info(
                "Reservation of %sh rejected on ledger %s (uncommitted %sh)",
                amount,
                ledger_id,
                current.uncommitted_hours,
            )
            raise InsufficientCreditException(available=current.uncommitted_hours, requested=amount)
        return await self._transferred("reserve", ledger, amount, actor_id)

    async def release(self, ledger_id: UUID, hours: Decimal, actor_id: UUID | None = None) -> CreditLedger:
        """Move hours from committed back to uncommitted."""
        amount = self._validated_hours(hours)
        ledger = await self.repository.release(ledger_id, amount)
        if ledger is None:
            await self._committed_underflow(ledger_id, "release", amount)
        return await self._transferred("release", ledger, amount, actor_id)

    async def settle(self, ledger_id: UUID, hours: Decimal, actor_id: UUID | None = None) -> CreditLedger:
        """Move hours from committed to completed."""
        amount = self._validated_hours(hours)
        ledger = await self.repository.settle(ledger_id, amount)
        if ledger is None:
            await self._committed_underflow(ledger_id, "settle", amount)
        return await self._transferred("settle", ledger, amount, actor_id)

    @staticmethod
    def _validated_hours(hours: Decimal) -> Decimal:
        amount = to_hours(hours)
        if amount <= 0:
            raise BusinessRuleException("Hours must be positive")
        return amount

    async def _require_ledger(self, ledger_id: UUID, operation: str) -> CreditLedger:
        ledger = await self.repository.get_by_id(ledger_id)
        if ledger is None:
            record_ledger_transfer(operation, "not_found")
            raise NotFoundException("Ledger not found")
        return ledger

    async def _committed_underflow(self, ledger_id: UUID, operation: str, amount: Decimal) -> None:
        current = await self._require_ledger(ledger_id, operation)
        record_ledger_transfer(operation, "invariant_violation")
        logger.critical(
            "Ledger %s %s of %sh exceeds committed %sh",
            ledger_id,
            operation,
            amount,
            current.committed_hours,
        )
        raise InvariantViolationException(
            f"Cannot {operation} {amount}h: ledger {ledger_id} has only {current.committed_hours}h committed",
            details={"committed": str(current.committed_hours), "requested": str(amount)},
        )

    async def _transferred(
        self,
        operation: str,
        ledger: CreditLedger,
        amount: Decimal,
        actor_id: UUID | None,
    ) -> CreditLedger:
        record_ledger_transfer(operation, "ok")
        logger.info("Ledger %s %s %sh", ledger.id, operation, amount)
        balances = {
            "hours": str(amount),
            "total_hours": str(ledger.total_hours),
            "uncommitted_hours": str(ledger.uncommitted_hours),
            "committed_hours": str(ledger.committed_hours),
            "completed_hours": str(ledger.completed_hours),
        }
        await self.audit_repository.create_audit_log(
            actor_id=actor_id,
            action=f"credits.ledger.{operation}",
            entity_type="credit_ledger",
            entity_id=str(ledger.id),
            payload=balances,
        )
        await self.audit_repository.create_outbox_event(
            aggregate_type="credits",
            aggregate_id=str(ledger.id),
            event_type=f"credits.ledger.{operation}",
            payload={"ledger_id": str(ledger.id), "student_id": str(ledger.student_id), **balances},
        )
        return ledger


async def get_credit_ledger_service(
    session: AsyncSession = Depends(get_db_session),
) -> CreditLedgerService:
    """Dependency provider for credit ledger service."""
    return CreditLedgerService(
        repository=CreditLedgerRepository(session),
        audit_repository=AuditRepository(session),
    )
