from __future__ import annotations

import re
from datetime import UTC, datetime
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.dialects import postgresql

from fakes import FakeAuditRepository, FakeLedgerRepository, make_user
from tutordesk.core.enums import ApprovalStatusEnum, RoleEnum
from tutordesk.modules.approvals.repository import ApprovalRepository
from tutordesk.modules.credits.repository import CreditLedgerRepository
from tutordesk.modules.credits.service import CreditLedgerService
from tutordesk.shared.exceptions import (
    BusinessRuleException,
    InsufficientCreditException,
    InvariantViolationException,
    NotFoundException,
    UnauthorizedException,
)


def make_service() -> tuple[CreditLedgerService, FakeLedgerRepository, FakeAuditRepository]:
    repository = FakeLedgerRepository()
    audit = FakeAuditRepository()
    return CreditLedgerService(repository, audit), repository, audit  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_every_transfer_keeps_buckets_summing_to_total() -> None:
    service, repository, _ = make_service()
    ledger = repository.add(uuid4(), hours=10)

    await service.reserve(ledger.id, Decimal("2"))
    assert ledger.is_conserved()
    await service.reserve(ledger.id, Decimal("1.5"))
    assert ledger.is_conserved()
    await service.release(ledger.id, Decimal("1.5"))
    assert ledger.is_conserved()
    await service.settle(ledger.id, Decimal("2"))
    assert ledger.is_conserved()
    await service.grant(ledger.id, Decimal("5"))
    assert ledger.is_conserved()

    assert ledger.buckets() == (Decimal("15"), Decimal("13"), Decimal("0"), Decimal("2"))


@pytest.mark.asyncio
async def test_reserve_rejects_overdraw_and_leaves_balance_untouched() -> None:
    service, repository, audit = make_service()
    ledger = repository.add(uuid4(), hours=1)

    with pytest.raises(InsufficientCreditException) as exc:
        await service.reserve(ledger.id, Decimal("1.01"))

    assert exc.value.available == Decimal("1")
    assert exc.value.requested == Decimal("1.01")
    assert ledger.buckets() == (Decimal("1"), Decimal("1"), Decimal("0"), Decimal("0"))
    assert audit.events == []


@pytest.mark.asyncio
async def test_reservations_succeed_only_while_balance_covers_them() -> None:
    service, repository, _ = make_service()
    ledger = repository.add(uuid4(), hours=3)

    outcomes = []
    for _ in range(5):
        try:
            await service.reserve(ledger.id, Decimal("1"))
            outcomes.append(True)
        except InsufficientCreditException:
            outcomes.append(False)

    assert outcomes == [True, True, True, False, False]
    assert ledger.committed_hours == Decimal("3")
    assert ledger.uncommitted_hours == Decimal("0")


@pytest.mark.asyncio
async def test_release_more_than_committed_is_an_invariant_violation() -> None:
    service, repository, _ = make_service()
    ledger = repository.add(uuid4(), hours=4)
    await service.reserve(ledger.id, Decimal("1"))

    with pytest.raises(InvariantViolationException):
        await service.release(ledger.id, Decimal("2"))
    with pytest.raises(InvariantViolationException):
        await service.settle(ledger.id, Decimal("2"))

    assert ledger.buckets() == (Decimal("4"), Decimal("3"), Decimal("1"), Decimal("0"))


@pytest.mark.asyncio
@pytest.mark.parametrize("hours", [Decimal("0"), Decimal("-1"), Decimal("0.001")])
async def test_non_positive_amounts_are_rejected(hours: Decimal) -> None:
    service, repository, _ = make_service()
    ledger = repository.add(uuid4(), hours=4)

    with pytest.raises(BusinessRuleException):
        await service.reserve(ledger.id, hours)


@pytest.mark.asyncio
async def test_unknown_ledger_is_not_found() -> None:
    service, _, _ = make_service()

    with pytest.raises(NotFoundException):
        await service.reserve(uuid4(), Decimal("1"))
    with pytest.raises(NotFoundException):
        await service.grant(uuid4(), Decimal("1"))


@pytest.mark.asyncio
async def test_transfers_are_audited_with_balances() -> None:
    service, repository, audit = make_service()
    ledger = repository.add(uuid4(), hours=2)

    await service.reserve(ledger.id, Decimal("1"), actor_id=ledger.student_id)

    assert [entry.action for entry in audit.logs] == ["credits.ledger.reserve"]
    assert audit.logs[0].payload["committed_hours"] == "1.00"
    assert audit.event_types() == ["credits.ledger.reserve"]
    assert audit.events[0].payload["ledger_id"] == str(ledger.id)


@pytest.mark.asyncio
async def test_open_or_grant_reuses_the_pair_ledger() -> None:
    service, repository, _ = make_service()
    student_id = uuid4()
    course_id = uuid4()

    first = await service.open_or_grant(student_id, course_id, Decimal("10"), "usd")
    second = await service.open_or_grant(student_id, course_id, Decimal("5"), "usd")

    assert first.id == second.id
    assert len(repository.ledgers) == 1
    assert second.buckets() == (Decimal("15"), Decimal("15"), Decimal("0"), Decimal("0"))
    assert second.currency == "USD"


@pytest.mark.asyncio
async def test_learner_cannot_read_foreign_ledger() -> None:
    service, repository, _ = make_service()
    ledger = repository.add(uuid4(), hours=1)

    with pytest.raises(UnauthorizedException):
        await service.get_ledger(ledger.id, make_user(RoleEnum.LEARNER))
    owner = make_user(RoleEnum.LEARNER, ledger.student_id)
    assert (await service.get_ledger(ledger.id, owner)).id == ledger.id


@pytest.mark.asyncio
async def test_manual_grant_is_admin_only() -> None:
    service, repository, _ = make_service()
    ledger = repository.add(uuid4(), hours=1)

    with pytest.raises(UnauthorizedException):
        await service.manual_grant(ledger.id, Decimal("1"), make_user(RoleEnum.TEACHER))

    await service.manual_grant(ledger.id, Decimal("1"), make_user(RoleEnum.ADMIN))
    assert ledger.total_hours == Decimal("2")


class CapturingSession:
    """Records the statement a repository would send to the database."""

    def __init__(self) -> None:
        self.statements: list = []

    async def scalar(self, stmt):
        self.statements.append(stmt)
        return None


def _compile(stmt) -> tuple[str, dict[str, str], dict]:
    compiled = stmt.compile(dialect=postgresql.dialect())
    sql = " ".join(str(compiled).split())
    set_clause = sql.split(" SET ", 1)[1].split(" WHERE ", 1)[0]
    assignments = dict(re.findall(r"(?:^|, )(\w+)=(.+?)(?=, \w+=|$)", set_clause))
    assignments.pop("updated_at", None)
    return sql, assignments, compiled.params


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("operation", "guarded", "debited", "credited"),
    [
        ("reserve", "uncommitted_hours", "uncommitted_hours", "committed_hours"),
        ("release", "committed_hours", "committed_hours", "uncommitted_hours"),
        ("settle", "committed_hours", "committed_hours", "completed_hours"),
    ],
)
async def test_transfer_statement_guards_source_bucket(
    operation: str,
    guarded: str,
    debited: str,
    credited: str,
) -> None:
    session = CapturingSession()
    repository = CreditLedgerRepository(session)  # type: ignore[arg-type]
    hours = Decimal("1.5")

    assert await getattr(repository, operation)(uuid4(), hours) is None

    sql, assignments, params = _compile(session.statements[0])
    where_clause = sql.split(" WHERE ", 1)[1].split(" RETURNING ", 1)[0]
    assert re.search(rf"credit_ledgers\.{guarded} >= %\(\w+\)s", where_clause)
    assert "credit_ledgers.id = " in where_clause
    assert " RETURNING credit_ledgers." in sql
    assert set(assignments) == {debited, credited}
    assert f"credit_ledgers.{debited} - " in assignments[debited]
    assert f"credit_ledgers.{credited} + " in assignments[credited]
    assert list(params.values()).count(hours) == 3


@pytest.mark.asyncio
async def test_grant_statement_moves_total_and_uncommitted_together() -> None:
    session = CapturingSession()
    repository = CreditLedgerRepository(session)  # type: ignore[arg-type]

    await repository.grant(uuid4(), Decimal("4"))

    sql, assignments, params = _compile(session.statements[0])
    assert ">=" not in sql
    assert set(assignments) == {"total_hours", "uncommitted_hours"}
    assert all(" + " in expression for expression in assignments.values())
    assert list(params.values()).count(Decimal("4")) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "clears_payload"),
    [(ApprovalStatusEnum.REJECTED, True), (ApprovalStatusEnum.APPROVED, False)],
)
async def test_resolution_statement_only_matches_pending_requests(
    status: ApprovalStatusEnum,
    clears_payload: bool,
) -> None:
    session = CapturingSession()
    repository = ApprovalRepository(session)  # type: ignore[arg-type]

    await repository.mark_resolved(uuid4(), status, uuid4(), datetime(2026, 10, 19, 9, 0, tzinfo=UTC))

    sql, assignments, _ = _compile(session.statements[0])
    where_clause = sql.split(" WHERE ", 1)[1].split(" RETURNING ", 1)[0]
    assert re.search(r"approval_requests\.status = %\(\w+\)s", where_clause)
    assert ("payload" in assignments) is clears_payload
    if clears_payload:
        assert assignments["payload"] == "NULL"
