"""Credit ledger repository layer.

Callers never read-modify-write bucket columns. Each transfer is one guarded
``UPDATE ... WHERE <source bucket> >= :hours RETURNING`` so the balance check and
the move happen in a single row operation. A ``None`` result means the guard
rejected the transfer (or the row does not exist).
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from tutordesk.modules.credits.models import CreditLedger


class CreditLedgerRepository:
    """DB operations for the credit ledger."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_id(self, ledger_id: UUID) -> CreditLedger | None:
        stmt = select(CreditLedger).where(CreditLedger.id == ledger_id).execution_options(populate_existing=True)
        return await self.session.scalar(stmt)

    async def get_for_student_course(self, student_id: UUID, course_id: UUID) -> CreditLedger | None:
        stmt = select(CreditLedger).where(
            CreditLedger.student_id == student_id,
            CreditLedger.course_id == course_id,
        )
        return await self.session.scalar(stmt)

    async def list_for_students(self, student_ids: list[UUID]) -> list[CreditLedger]:
        if not student_ids:
            return []
        stmt = (
            select(CreditLedger)
            .where(CreditLedger.student_id.in_(student_ids))
            .order_by(CreditLedger.created_at.asc())
        )
        return (await self.session.scalars(stmt)).all()

    async def create_ledger(self, student_id: UUID, course_id: UUID, currency: str) -> CreditLedger:
        """Create an empty ledger for the pair, or return the existing one."""
        stmt = (
            insert(CreditLedger)
            .values(
                student_id=student_id,
                course_id=course_id,
                currency=currency.upper(),
                total_hours=Decimal("0"),
                uncommitted_hours=Decimal("0"),
                committed_hours=Decimal("0"),
                completed_hours=Decimal("0"),
            )
            .on_conflict_do_nothing(index_elements=["student_id", "course_id"])
        )
        await self.session.execute(stmt)
        ledger = await self.get_for_student_course(student_id, course_id)
        if ledger is None:
            raise RuntimeError(f"Ledger for student {student_id} course {course_id} was not created")
        return ledger

    async def grant(self, ledger_id: UUID, hours: Decimal) -> CreditLedger | None:
        return await self._transfer(
            ledger_id,
            guard=None,
            total_hours=CreditLedger.total_hours + hours,
            uncommitted_hours=CreditLedger.uncommitted_hours + hours,
        )

    async def reserve(self, ledger_id: UUID, hours: Decimal) -> CreditLedger | None:
        return await self._transfer(
            ledger_id,
            guard=CreditLedger.uncommitted_hours >= hours,
            uncommitted_hours=CreditLedger.uncommitted_hours - hours,
            committed_hours=CreditLedger.committed_hours + hours,
        )

    async def release(self, ledger_id: UUID, hours: Decimal) -> CreditLedger | None:
        return await self._transfer(
            ledger_id,
            guard=CreditLedger.committed_hours >= hours,
            committed_hours=CreditLedger.committed_hours - hours,
            uncommitted_hours=CreditLedger.uncommitted_hours + hours,
        )

    async def settle(self, ledger_id: UUID, hours: Decimal) -> CreditLedger | None:
        return await self._transfer(
            ledger_id,
            guard=CreditLedger.committed_hours >= hours,
            committed_hours=CreditLedger.committed_hours - hours,
            completed_hours=CreditLedger.completed_hours + hours,
        )

    async def _transfer(self, ledger_id: UUID, guard, **values) -> CreditLedger | None:
        stmt = update(CreditLedger).where(CreditLedger.id == ledger_id)
        if guard is not None:
            stmt = stmt.where(guard)
        stmt = (
            stmt.values(**values)
            .returning(CreditLedger)
            .execution_options(populate_existing=True, synchronize_session=False)
        )
        return await self.session.scalar(stmt)
