"""Hour package API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status

from tutordesk.modules.approvals.schemas import ApprovalRead
from tutordesk.modules.identity.service import get_current_user
from tutordesk.modules.packages.schemas import CompletedPaymentEvent, PackageRead, PauseRequestCreate
from tutordesk.modules.packages.service import PackageService, get_package_service
from tutordesk.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/packages", tags=["packages"])


@router.post("/payments/completed", response_model=PackageRead, status_code=status.HTTP_201_CREATED)
async def record_completed_payment(
    payload: CompletedPaymentEvent,
    service: PackageService = Depends(get_package_service),
    current_user=Depends(get_current_user),
) -> PackageRead:
    """Grant credit and open a package for a completed payment."""
    package = await service.handle_completed_payment(payload, current_user)
    return PackageRead.model_validate(package)


@router.get("/students/{student_id}", response_model=Page[PackageRead])
async def list_student_packages(
    student_id: UUID,
    pagination=Depends(get_pagination_params),
    service: PackageService = Depends(get_package_service),
    current_user=Depends(get_current_user),
) -> Page[PackageRead]:
    """List packages for a specific learner."""
    items, total = await service.list_student_packages(
        student_id=student_id,
        actor=current_user,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    serialized = [PackageRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.post(
    "/{package_id}/pause-requests",
    response_model=ApprovalRead,
    status_code=status.HTTP_202_ACCEPTED,
)
async def request_pause(
    package_id: UUID,
    payload: PauseRequestCreate,
    service: PackageService = Depends(get_package_service),
    current_user=Depends(get_current_user),
) -> ApprovalRead:
    """Ask the counter-party to approve a pause."""
    request = await service.request_pause(package_id, payload.reason, current_user, override=payload.override)
    return ApprovalRead.model_validate(request)


@router.post("/{package_id}/unpause", response_model=PackageRead)
async def unpause_package(
    package_id: UUID,
    service: PackageService = Depends(get_package_service),
    current_user=Depends(get_current_user),
) -> PackageRead:
    """Resume a paused package and extend its expiry."""
    package = await service.unpause(package_id, current_user)
    return PackageRead.model_validate(package)


@router.post("/expire", response_model=int)
async def expire_packages(
    service: PackageService = Depends(get_package_service),
    current_user=Depends(get_current_user),
) -> int:
    """Expire outdated active packages (admin)."""
    return await service.expire_packages(current_user)
