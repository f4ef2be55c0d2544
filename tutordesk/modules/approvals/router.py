"""Approval queue API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from tutordesk.core.enums import ApprovalStatusEnum
from tutordesk.modules.approvals.schemas import ApprovalRead, ApprovalResolve
from tutordesk.modules.approvals.service import ApprovalsService, get_approvals_service
from tutordesk.modules.identity.service import get_current_user
from tutordesk.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/approvals", tags=["approvals"])


@router.get("", response_model=Page[ApprovalRead])
async def list_approvals(
    status: ApprovalStatusEnum | None = Query(default=None),
    pagination=Depends(get_pagination_params),
    service: ApprovalsService = Depends(get_approvals_service),
    current_user=Depends(get_current_user),
) -> Page[ApprovalRead]:
    """List approval requests the current user is party to."""
    items, total = await service.list_requests(current_user, pagination.limit, pagination.offset, status=status)
    serialized = [ApprovalRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.get("/{request_id}", response_model=ApprovalRead)
async def get_approval(
    request_id: UUID,
    service: ApprovalsService = Depends(get_approvals_service),
    current_user=Depends(get_current_user),
) -> ApprovalRead:
    request = await service.get_request(request_id, current_user)
    return ApprovalRead.model_validate(request)


@router.post("/{request_id}/resolve", response_model=ApprovalRead)
async def resolve_approval(
    request_id: UUID,
    payload: ApprovalResolve,
    service: ApprovalsService = Depends(get_approvals_service),
    current_user=Depends(get_current_user),
) -> ApprovalRead:
    """Approve or reject a pending request."""
    request = await service.resolve(request_id, payload.decision, current_user)
    return ApprovalRead.model_validate(request)
