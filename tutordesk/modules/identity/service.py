"""Identity business logic layer."""

from __future__ import annotations

from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tutordesk.core.database import get_db_session
from tutordesk.core.enums import RoleEnum
from tutordesk.core.security import (
    create_access_token,
    decode_token,
    oauth2_scheme,
    verify_password,
)
from tutordesk.modules.identity.models import User
from tutordesk.modules.identity.repository import IdentityRepository
from tutordesk.modules.identity.schemas import AccessToken, LoginRequest, TimezoneUpdate
from tutordesk.shared.exceptions import BusinessRuleException, UnauthorizedException


class IdentityService:
    """Identity domain service."""

    def __init__(self, repository: IdentityRepository) -> None:
        self.repository = repository

    async def ensure_default_roles(self) -> None:
        """Ensure all default roles exist."""
        for role_name in (RoleEnum.LEARNER, RoleEnum.TEACHER, RoleEnum.ADMIN):
            role = await self.repository.get_role_by_name(role_name)
            if role is None:
                await self.repository.create_role(role_name)

    async def login(self, payload: LoginRequest) -> AccessToken:
        """Authenticate user and issue an access token."""
        user = await self.repository.get_user_by_email(payload.email)
        if user is None or not verify_password(payload.password, user.password_hash):
            raise UnauthorizedException("Invalid credentials")
        if not user.is_active:
            raise UnauthorizedException("User is inactive")

        access_token = create_access_token(subject=str(user.id), role=user.role.name)
        return AccessToken(access_token=access_token)

    async def get_user_from_access_token(self, token: str) -> User:
        """Resolve user from access token."""
        payload = decode_token(token)
        if payload.get("type") != "access":
            raise UnauthorizedException("Invalid access token")

        subject = payload.get("sub")
        if not subject:
            raise UnauthorizedException("Token subject is missing")

        user = await self.repository.get_user_by_id(UUID(subject))
        if user is None:
            raise UnauthorizedException("User not found")
        if not user.is_active:
            raise UnauthorizedException("User is inactive")

        return user

    async def update_timezone(self, user: User, payload: TimezoneUpdate) -> User:
        """Set the IANA zone used to read the user's wall-clock slots."""
        try:
            ZoneInfo(payload.timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise BusinessRuleException(f"Unknown timezone: {payload.timezone}") from exc
        return await self.repository.set_timezone(user, payload.timezone)


async def get_identity_service(session: AsyncSession = Depends(get_db_session)) -> IdentityService:
    """Dependency to provide identity service."""
    return IdentityService(IdentityRepository(session))


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    service: IdentityService = Depends(get_identity_service),
) -> User:
    """Resolve currently authenticated user from bearer token."""
    return await service.get_user_from_access_token(token)

