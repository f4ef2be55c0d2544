"""Hour package repository layer."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tutordesk.core.enums import ACTIVE_SESSION_STATUSES, BillingTypeEnum, PackageStatusEnum
from tutordesk.modules.lessons.models import SessionInstance
from tutordesk.modules.packages.models import HourPackage


class PackageRepository:
    """DB access methods for hour packages."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_package(
        self,
        *,
        student_id: UUID,
        course_id: UUID,
        ledger_id: UUID,
        total_hours: Decimal,
        price: Decimal,
        currency: str,
        purchase_date: datetime,
        expires_at: datetime,
        external_reference: str | None,
    ) -> HourPackage:
        package = HourPackage(
            student_id=student_id,
            course_id=course_id,
            ledger_id=ledger_id,
            total_hours=total_hours,
            hours_remaining=total_hours,
            price=price,
            currency=currency.upper(),
            purchase_date=purchase_date,
            expires_at=expires_at,
            external_reference=external_reference,
            status=PackageStatusEnum.ACTIVE,
            pause_count=0,
            total_days_paused=0,
        )
        self.session.add(package)
        await self.session.flush()
        return package

    async def get_by_id(self, package_id: UUID, *, for_update: bool = False) -> HourPackage | None:
        stmt = select(HourPackage).where(HourPackage.id == package_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return await self.session.scalar(stmt)

    async def get_by_external_reference(self, reference: str) -> HourPackage | None:
        stmt = select(HourPackage).where(HourPackage.external_reference == reference)
        return await self.session.scalar(stmt)

    async def list_by_student(
        self,
        student_id: UUID,
        limit: int,
        offset: int,
    ) -> tuple[list[HourPackage], int]:
        base_stmt: Select[tuple[HourPackage]] = select(HourPackage).where(
            HourPackage.student_id == student_id,
        )
        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(HourPackage.purchase_date.desc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total

    async def list_for_students(self, student_ids: list[UUID]) -> list[HourPackage]:
        if not student_ids:
            return []
        stmt = (
            select(HourPackage)
            .where(HourPackage.student_id.in_(student_ids))
            .order_by(HourPackage.purchase_date.asc())
        )
        return (await self.session.scalars(stmt)).all()

    async def list_open_for_course(self, student_id: UUID, course_id: UUID) -> list[HourPackage]:
        """Active and paused packages of the pair, soonest expiry first."""
        stmt = (
            select(HourPackage)
            .where(
                HourPackage.student_id == student_id,
                HourPackage.course_id == course_id,
                HourPackage.status.in_([PackageStatusEnum.ACTIVE, PackageStatusEnum.PAUSED]),
            )
            .order_by(HourPackage.expires_at.asc())
            .with_for_update()
        )
        return (await self.session.scalars(stmt)).all()

    async def held_hours_by_package(self, package_ids: list[UUID]) -> dict[UUID, Decimal]:
        """Hours committed by active credit sessions, per funding package."""
        if not package_ids:
            return {}
        stmt = (
            select(SessionInstance.package_id, func.sum(SessionInstance.duration_hours))
            .where(
                SessionInstance.package_id.in_(package_ids),
                SessionInstance.billing_type == BillingTypeEnum.CREDIT,
                SessionInstance.status.in_(list(ACTIVE_SESSION_STATUSES)),
            )
            .group_by(SessionInstance.package_id)
        )
        rows = (await self.session.execute(stmt)).all()
        return {package_id: Decimal(total) for package_id, total in rows}

    async def find_packages_to_expire(self, now: datetime) -> list[HourPackage]:
        stmt = select(HourPackage).where(
            HourPackage.status == PackageStatusEnum.ACTIVE,
            HourPackage.expires_at <= now,
        )
        return (await self.session.scalars(stmt)).all()

    async def save(self, package: HourPackage) -> HourPackage:
        await self.session.flush()
        return package
