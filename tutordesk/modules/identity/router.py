"""Identity API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from tutordesk.modules.identity.schemas import AccessToken, LoginRequest, TimezoneUpdate, UserRead
from tutordesk.modules.identity.service import IdentityService, get_current_user, get_identity_service

router = APIRouter(prefix="/identity", tags=["identity"])


@router.post("/auth/login", response_model=AccessToken)
async def login(
    payload: LoginRequest,
    service: IdentityService = Depends(get_identity_service),
) -> AccessToken:
    """Sign in by email/password and return a bearer token."""
    return await service.login(payload)


@router.get("/users/me", response_model=UserRead)
async def get_me(current_user=Depends(get_current_user)) -> UserRead:
    """Return profile of authenticated user."""
    return UserRead.model_validate(current_user)


@router.patch("/users/me/timezone", response_model=UserRead)
async def update_my_timezone(
    payload: TimezoneUpdate,
    service: IdentityService = Depends(get_identity_service),
    current_user=Depends(get_current_user),
) -> UserRead:
    """Change the timezone slots are interpreted in."""
    user = await service.update_timezone(current_user, payload)
    return UserRead.model_validate(user)
