"""Approval request repository layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, func, null, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tutordesk.core.enums import ApprovalStatusEnum
from tutordesk.modules.approvals.models import ApprovalRequest
from tutordesk.modules.approvals.payloads import ApprovalPayload, dump_payload


class ApprovalRepository:
    """DB operations for the approval queue."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_request(
        self,
        payload: ApprovalPayload,
        *,
        student_id: UUID,
        teacher_id: UUID | None,
        requested_by_id: UUID | None,
        reason: str | None,
        session_instance_id: UUID | None = None,
        package_id: UUID | None = None,
    ) -> ApprovalRequest:
        request = ApprovalRequest(
            type=payload.kind,
            status=ApprovalStatusEnum.PENDING,
            payload=dump_payload(payload),
            reason=reason,
            student_id=student_id,
            teacher_id=teacher_id,
            requested_by_id=requested_by_id,
            session_instance_id=session_instance_id,
            package_id=package_id,
        )
        self.session.add(request)
        await self.session.flush()
        return request

    async def get_by_id(self, request_id: UUID) -> ApprovalRequest | None:
        stmt = (
            select(ApprovalRequest)
            .where(ApprovalRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        return await self.session.scalar(stmt)

    async def get_pending_for_session(self, session_instance_id: UUID) -> ApprovalRequest | None:
        stmt = select(ApprovalRequest).where(
            ApprovalRequest.session_instance_id == session_instance_id,
            ApprovalRequest.status == ApprovalStatusEnum.PENDING,
        )
        return await self.session.scalar(stmt)

    async def get_pending_for_package(self, package_id: UUID) -> ApprovalRequest | None:
        stmt = select(ApprovalRequest).where(
            ApprovalRequest.package_id == package_id,
            ApprovalRequest.status == ApprovalStatusEnum.PENDING,
        )
        return await self.session.scalar(stmt)

    async def list_requests(
        self,
        limit: int,
        offset: int,
        status: ApprovalStatusEnum | None = None,
        party_id: UUID | None = None,
    ) -> tuple[list[ApprovalRequest], int]:
        """List requests, restricted to those where party_id is the learner or teacher."""
        base_stmt: Select[tuple[ApprovalRequest]] = select(ApprovalRequest)
        if status is not None:
            base_stmt = base_stmt.where(ApprovalRequest.status == status)
        if party_id is not None:
            base_stmt = base_stmt.where(
                or_(ApprovalRequest.student_id == party_id, ApprovalRequest.teacher_id == party_id),
            )

        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(ApprovalRequest.created_at.desc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total

    async def list_pending_for_students(self, student_ids: list[UUID]) -> list[ApprovalRequest]:
        if not student_ids:
            return []
        stmt = select(ApprovalRequest).where(
            ApprovalRequest.student_id.in_(student_ids),
            ApprovalRequest.status == ApprovalStatusEnum.PENDING,
        )
        return (await self.session.scalars(stmt)).all()

    async def mark_resolved(
        self,
        request_id: UUID,
        status: ApprovalStatusEnum,
        resolved_by_id: UUID,
        resolved_at: datetime,
    ) -> ApprovalRequest | None:
        """Flip a pending request to its final status; None if it was not pending.

        Rejection discards the payload, so a rejected change can never be replayed.
        """
        values = {
            "status": status,
            "resolved_by_id": resolved_by_id,
            "resolved_at": resolved_at,
            "updated_at": resolved_at,
        }
        if status == ApprovalStatusEnum.REJECTED:
            values["payload"] = null()
        stmt = (
            update(ApprovalRequest)
            .where(
                ApprovalRequest.id == request_id,
                ApprovalRequest.status == ApprovalStatusEnum.PENDING,
            )
            .values(**values)
            .returning(ApprovalRequest)
            .execution_options(populate_existing=True, synchronize_session=False)
        )
        return await self.session.scalar(stmt)
