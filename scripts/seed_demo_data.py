"""Seed idempotent demo data for local/non-production environments."""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tutordesk.core.config import get_settings
from tutordesk.core.database import SessionLocal, close_engine
from tutordesk.core.enums import LearnerStatusEnum, RoleEnum
from tutordesk.core.security import hash_password, verify_password
from tutordesk.modules.catalog.models import CatalogSession
from tutordesk.modules.identity.models import Role, User
from tutordesk.modules.identity.repository import IdentityRepository
from tutordesk.modules.identity.service import IdentityService
from tutordesk.modules.learners.models import LearnerProfile
from tutordesk.modules.packages.schemas import CompletedPaymentEvent
from tutordesk.modules.packages.service import build_package_service

DEMO_PASSWORD = "DemoPass123!"

DEMO_ADMIN_EMAIL = "demo-admin@tutordesk.dev"
DEMO_TEACHER_EMAIL = "demo-teacher@tutordesk.dev"
DEMO_LEARNER_EMAIL = "demo-learner@tutordesk.dev"

DEMO_COURSE_ID = UUID("6f1c2a52-8d7e-4b7a-9d55-0c6a1f3e9b10")
DEMO_CATALOG_TITLES = ("Getting started", "Core techniques", "Putting it together")
DEMO_SESSION_HOURS = Decimal("1")

DEMO_PACKAGE_HOURS = Decimal("20")
DEMO_PAYMENT_REFERENCE = "demo-seed-payment-0001"


@dataclass(slots=True)
class SeedStats:
    roles_created: int = 0
    users_created: int = 0
    users_updated: int = 0
    learner_profile_created: bool = False
    catalog_sessions_created: int = 0
    package_id: str | None = None


async def _ensure_roles(session: AsyncSession) -> int:
    before = len((await session.scalars(select(Role))).all())
    await IdentityService(IdentityRepository(session)).ensure_default_roles()
    return len((await session.scalars(select(Role))).all()) - before


async def _ensure_user(
    session: AsyncSession,
    *,
    email: str,
    role_name: RoleEnum,
    timezone: str,
) -> tuple[User, bool]:
    role = await session.scalar(select(Role).where(Role.name == role_name))
    if role is None:
        raise RuntimeError(f"Role {role_name} was not found after ensure_roles")

    user = await session.scalar(
        select(User).options(selectinload(User.role)).where(User.email == email),
    )
    created = False
    if user is None:
        user = User(
            email=email,
            password_hash=hash_password(DEMO_PASSWORD),
            timezone=timezone,
            is_active=True,
            role_id=role.id,
        )
        session.add(user)
        created = True
    else:
        if not verify_password(DEMO_PASSWORD, user.password_hash):
            user.password_hash = hash_password(DEMO_PASSWORD)
        if user.role_id != role.id:
            user.role_id = role.id
        if user.timezone != timezone:
            user.timezone = timezone
        if not user.is_active:
            user.is_active = True

    await session.flush()
    await session.refresh(user, attribute_names=["role"])
    return user, created


async def _ensure_learner_profile(session: AsyncSession, learner: User, teacher: User) -> bool:
    profile = await session.scalar(select(LearnerProfile).where(LearnerProfile.user_id == learner.id))
    if profile is None:
        session.add(
            LearnerProfile(
                user_id=learner.id,
                teacher_id=teacher.id,
                name="Demo Learner",
                email=learner.email,
                status=LearnerStatusEnum.TRIAL,
            ),
        )
        await session.flush()
        return True

    profile.teacher_id = teacher.id
    await session.flush()
    return False


async def _ensure_catalog(session: AsyncSession) -> int:
    created = 0
    for title in DEMO_CATALOG_TITLES:
        existing = await session.scalar(
            select(CatalogSession).where(
                CatalogSession.course_id == DEMO_COURSE_ID,
                CatalogSession.title == title,
            ),
        )
        if existing is None:
            session.add(CatalogSession(course_id=DEMO_COURSE_ID, title=title, estimated_hours=DEMO_SESSION_HOURS))
            created += 1
    await session.flush()
    return created


async def _run_seed(*, allow_production: bool) -> SeedStats:
    settings = get_settings()
    app_env = settings.app_env.strip().lower()
    if app_env in {"production", "prod"} and not allow_production:
        raise RuntimeError(
            "Refusing to seed demo data in production. "
            "Re-run with --allow-production only if you are absolutely sure.",
        )

    stats = SeedStats()

    async with SessionLocal() as session:
        try:
            stats.roles_created = await _ensure_roles(session)

            admin_user, admin_created = await _ensure_user(
                session,
                email=DEMO_ADMIN_EMAIL,
                role_name=RoleEnum.ADMIN,
                timezone="UTC",
            )
            teacher_user, teacher_created = await _ensure_user(
                session,
                email=DEMO_TEACHER_EMAIL,
                role_name=RoleEnum.TEACHER,
                timezone="Europe/London",
            )
            learner_user, learner_created = await _ensure_user(
                session,
                email=DEMO_LEARNER_EMAIL,
                role_name=RoleEnum.LEARNER,
                timezone="Europe/London",
            )

            stats.users_created = sum([admin_created, teacher_created, learner_created])
            stats.users_updated = 3 - stats.users_created

            stats.learner_profile_created = await _ensure_learner_profile(session, learner_user, teacher_user)
            stats.catalog_sessions_created = await _ensure_catalog(session)

            # Replaying the same reference returns the existing package.
            package = await build_package_service(session).handle_completed_payment(
                CompletedPaymentEvent(
                    student_id=learner_user.id,
                    course_id=DEMO_COURSE_ID,
                    hours=DEMO_PACKAGE_HOURS,
                    external_reference=DEMO_PAYMENT_REFERENCE,
                ),
                admin_user,
            )
            stats.package_id = str(package.id)

            await session.commit()
        except Exception:
            await session.rollback()
            raise

    return stats


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Seed idempotent demo data for TutorDesk (users, learner profile, "
            "catalog sessions, a paid hour package)."
        ),
    )
    parser.add_argument(
        "--allow-production",
        action="store_true",
        help="Allow seeding even when APP_ENV is production/prod.",
    )
    return parser


def _print_summary(stats: SeedStats) -> None:
    print("Demo seed completed.")
    print(f"- Roles created: {stats.roles_created}")
    print(f"- Users created: {stats.users_created}")
    print(f"- Users updated: {stats.users_updated}")
    print(f"- Learner profile created: {stats.learner_profile_created}")
    print(f"- Catalog sessions created: {stats.catalog_sessions_created}")
    print(f"- Hour package id: {stats.package_id}")
    print(f"- Course id: {DEMO_COURSE_ID}")
    print("")
    print("Demo credentials (non-production only):")
    print(f"- admin:   {DEMO_ADMIN_EMAIL} / {DEMO_PASSWORD}")
    print(f"- teacher: {DEMO_TEACHER_EMAIL} / {DEMO_PASSWORD}")
    print(f"- learner: {DEMO_LEARNER_EMAIL} / {DEMO_PASSWORD}")


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()

    try:
        stats = asyncio.run(_run_seed(allow_production=args.allow_production))
    except Exception as exc:
        print(f"Demo seed failed: {exc}")
        return 1
    finally:
        asyncio.run(close_engine())

    _print_summary(stats)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
