from __future__ import annotations

from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest

import tutordesk.modules.identity.service as identity_service_module
from tutordesk.core.enums import RoleEnum
from tutordesk.core.security import create_access_token, decode_token
from tutordesk.modules.identity.schemas import LoginRequest, TimezoneUpdate
from tutordesk.modules.identity.service import IdentityService
from tutordesk.shared.exceptions import BusinessRuleException, UnauthorizedException


class FakeIdentityRepository:
    def __init__(self) -> None:
        self.roles: dict[RoleEnum, SimpleNamespace] = {}
        self.users: dict[UUID, SimpleNamespace] = {}

    def add_user(self, email: str, role: RoleEnum = RoleEnum.LEARNER, **values) -> SimpleNamespace:
        values.setdefault("is_active", True)
        values.setdefault("timezone", "UTC")
        user = SimpleNamespace(
            id=uuid4(),
            email=email,
            password_hash="hashed:secret",
            role=SimpleNamespace(name=role),
            **values,
        )
        self.users[user.id] = user
        return user

    async def get_role_by_name(self, role_name: RoleEnum):
        return self.roles.get(role_name)

    async def create_role(self, role_name: RoleEnum):
        role = SimpleNamespace(id=uuid4(), name=role_name)
        self.roles[role_name] = role
        return role

    async def get_user_by_email(self, email: str):
        return next((user for user in self.users.values() if user.email == email), None)

    async def get_user_by_id(self, user_id: UUID):
        return self.users.get(user_id)

    async def set_timezone(self, user, timezone: str):
        user.timezone = timezone
        return user


@pytest.fixture()
def repository(monkeypatch: pytest.MonkeyPatch) -> FakeIdentityRepository:
    monkeypatch.setattr(
        identity_service_module,
        "verify_password",
        lambda plain, hashed: hashed == f"hashed:{plain}",
    )
    return FakeIdentityRepository()


@pytest.mark.asyncio
async def test_default_roles_are_created_once(repository: FakeIdentityRepository) -> None:
    service = IdentityService(repository)  # type: ignore[arg-type]

    await service.ensure_default_roles()
    first = dict(repository.roles)
    await service.ensure_default_roles()

    assert set(repository.roles) == {RoleEnum.LEARNER, RoleEnum.TEACHER, RoleEnum.ADMIN}
    assert repository.roles == first


@pytest.mark.asyncio
async def test_login_issues_token_carrying_role(repository: FakeIdentityRepository) -> None:
    user = repository.add_user("teacher@tutordesk.dev", RoleEnum.TEACHER)
    service = IdentityService(repository)  # type: ignore[arg-type]

    token = await service.login(LoginRequest(email="teacher@tutordesk.dev", password="secret"))

    claims = decode_token(token.access_token)
    assert token.token_type == "bearer"
    assert claims["sub"] == str(user.id)
    assert claims["role"] == RoleEnum.TEACHER
    assert await service.get_user_from_access_token(token.access_token) is user


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("password", "is_active", "message"),
    [
        ("wrong", True, "Invalid credentials"),
        ("secret", False, "User is inactive"),
    ],
)
async def test_login_rejections(
    repository: FakeIdentityRepository,
    password: str,
    is_active: bool,
    message: str,
) -> None:
    repository.add_user("learner@tutordesk.dev", is_active=is_active)
    service = IdentityService(repository)  # type: ignore[arg-type]

    with pytest.raises(UnauthorizedException, match=message):
        await service.login(LoginRequest(email="learner@tutordesk.dev", password=password))


@pytest.mark.asyncio
async def test_token_for_unknown_user_is_rejected(repository: FakeIdentityRepository) -> None:
    service = IdentityService(repository)  # type: ignore[arg-type]
    token = create_access_token(subject=str(uuid4()))

    with pytest.raises(UnauthorizedException, match="User not found"):
        await service.get_user_from_access_token(token)


@pytest.mark.asyncio
async def test_non_access_token_is_rejected(repository: FakeIdentityRepository) -> None:
    user = repository.add_user("learner@tutordesk.dev")
    service = IdentityService(repository)  # type: ignore[arg-type]
    token = create_access_token(subject=str(user.id), type="invite")

    with pytest.raises(UnauthorizedException, match="Invalid access token"):
        await service.get_user_from_access_token(token)


@pytest.mark.asyncio
async def test_timezone_update_accepts_iana_names_only(repository: FakeIdentityRepository) -> None:
    user = repository.add_user("teacher@tutordesk.dev", RoleEnum.TEACHER)
    service = IdentityService(repository)  # type: ignore[arg-type]

    await service.update_timezone(user, TimezoneUpdate(timezone="America/New_York"))
    assert user.timezone == "America/New_York"

    with pytest.raises(BusinessRuleException, match="Unknown timezone"):
        await service.update_timezone(user, TimezoneUpdate(timezone="Mars/Olympus_Mons"))
    assert user.timezone == "America/New_York"
