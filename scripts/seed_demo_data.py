"""Seed idempotent demo data for local/non-production environments."""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import SessionLocal, close_engine
from app.core.enums import EnrollmentStatusEnum, ProductFormatEnum, RoleEnum
from app.core.security import create_access_token
from app.modules.cohorts.models import Cohort, Enrollment, Product, WeeklySession
from app.modules.identity.models import Role, User
from app.modules.students.models import Student
from app.modules.teachers.models import Teacher

DEMO_ADMIN_EMAIL = "demo-admin@linguadesk.dev"
DEMO_TEACHER_EMAIL = "demo-teacher@linguadesk.dev"
DEMO_STUDENT_EMAIL = "demo-student@linguadesk.dev"

DEMO_PRODUCT_NAME = "Private French Lessons"
DEMO_COHORT_NICKNAME = "Demo Private Cohort"
DEMO_WEEKLY_SESSIONS = (
    ("Tuesday", "10:00", "11:00"),
    ("Thursday", "18:30", "19:30"),
)


@dataclass(slots=True)
class SeedStats:
    roles_created: int = 0
    users_created: int = 0
    teacher_created: bool = False
    student_created: bool = False
    cohort_created: bool = False
    sessions_created: int = 0
    enrollment_created: bool = False
    cohort_id: str | None = None
    tokens: dict[str, str] | None = None


async def _ensure_roles(session: AsyncSession) -> int:
    created = 0
    for role_name in (RoleEnum.STUDENT, RoleEnum.TEACHER, RoleEnum.ADMIN):
        existing = await session.scalar(select(Role).where(Role.name == role_name))
        if existing is None:
            session.add(Role(name=role_name))
            created += 1
    await session.flush()
    return created


async def _ensure_user(session: AsyncSession, *, email: str, role_name: RoleEnum) -> tuple[User, bool]:
    role = await session.scalar(select(Role).where(Role.name == role_name))
    if role is None:
        raise RuntimeError(f"Role {role_name} was not found after ensure_roles")

    user = await session.scalar(select(User).where(User.email == email))
    created = False
    if user is None:
        user = User(email=email, is_active=True, role_id=role.id)
        session.add(user)
        created = True
    else:
        user.role_id = role.id
        user.is_active = True

    await session.flush()
    return user, created


async def _ensure_teacher(session: AsyncSession, teacher_user: User) -> tuple[Teacher, bool]:
    teacher = await session.scalar(select(Teacher).where(Teacher.user_id == teacher_user.id))
    if teacher is not None:
        return teacher, False
    teacher = Teacher(user_id=teacher_user.id, first_name="Camille", last_name="Durand")
    session.add(teacher)
    await session.flush()
    return teacher, True


async def _ensure_student(session: AsyncSession, student_user: User) -> tuple[Student, bool]:
    student = await session.scalar(select(Student).where(Student.user_id == student_user.id))
    if student is not None:
        return student, False
    student = Student(
        user_id=student_user.id,
        first_name="Alex",
        full_name="Alex Martin",
        email=student_user.email,
    )
    session.add(student)
    await session.flush()
    return student, True


async def _ensure_cohort(session: AsyncSession, teacher: Teacher) -> tuple[Cohort, bool, int]:
    product = await session.scalar(select(Product).where(Product.display_name == DEMO_PRODUCT_NAME))
    if product is None:
        product = Product(display_name=DEMO_PRODUCT_NAME, format=ProductFormatEnum.PRIVATE)
        session.add(product)
        await session.flush()

    cohort = await session.scalar(select(Cohort).where(Cohort.nickname == DEMO_COHORT_NICKNAME))
    cohort_created = False
    if cohort is None:
        cohort = Cohort(
            product_id=product.id,
            nickname=DEMO_COHORT_NICKNAME,
            start_date=date.today() - timedelta(days=30),
        )
        session.add(cohort)
        await session.flush()
        cohort_created = True

    sessions_created = 0
    for day_of_week, start_time, end_time in DEMO_WEEKLY_SESSIONS:
        existing = await session.scalar(
            select(WeeklySession).where(
                WeeklySession.cohort_id == cohort.id,
                WeeklySession.day_of_week == day_of_week,
                WeeklySession.start_time == start_time,
            ),
        )
        if existing is not None:
            continue
        session.add(
            WeeklySession(
                cohort_id=cohort.id,
                teacher_id=teacher.id,
                day_of_week=day_of_week,
                start_time=start_time,
                end_time=end_time,
            ),
        )
        sessions_created += 1

    await session.flush()
    return cohort, cohort_created, sessions_created


async def _ensure_enrollment(session: AsyncSession, student: Student, cohort: Cohort) -> bool:
    enrollment = await session.scalar(
        select(Enrollment).where(
            Enrollment.student_id == student.id,
            Enrollment.cohort_id == cohort.id,
        ),
    )
    if enrollment is None:
        session.add(Enrollment(student_id=student.id, cohort_id=cohort.id, status=EnrollmentStatusEnum.PAID))
        await session.flush()
        return True
    enrollment.status = EnrollmentStatusEnum.PAID
    await session.flush()
    return False


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

            admin_user, admin_created = await _ensure_user(session, email=DEMO_ADMIN_EMAIL, role_name=RoleEnum.ADMIN)
            teacher_user, teacher_user_created = await _ensure_user(
                session,
                email=DEMO_TEACHER_EMAIL,
                role_name=RoleEnum.TEACHER,
            )
            student_user, student_user_created = await _ensure_user(
                session,
                email=DEMO_STUDENT_EMAIL,
                role_name=RoleEnum.STUDENT,
            )
            stats.users_created = sum([admin_created, teacher_user_created, student_user_created])

            teacher, stats.teacher_created = await _ensure_teacher(session, teacher_user)
            student, stats.student_created = await _ensure_student(session, student_user)
            cohort, stats.cohort_created, stats.sessions_created = await _ensure_cohort(session, teacher)
            stats.enrollment_created = await _ensure_enrollment(session, student, cohort)
            stats.cohort_id = str(cohort.id)

            await session.commit()
        except Exception:
            await session.rollback()
            raise

    stats.tokens = {
        "admin": create_access_token(str(admin_user.id)),
        "teacher": create_access_token(str(teacher_user.id)),
        "student": create_access_token(str(student_user.id)),
    }
    return stats


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Seed idempotent demo data for LinguaDesk (users, teacher, student, "
            "private cohort with weekly sessions, active enrollment)."
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
    print(f"- Teacher created: {stats.teacher_created}")
    print(f"- Student created: {stats.student_created}")
    print(f"- Cohort created: {stats.cohort_created}")
    print(f"- Weekly sessions created: {stats.sessions_created}")
    print(f"- Enrollment created: {stats.enrollment_created}")
    print(f"- Private cohort id: {stats.cohort_id}")
    print("")
    print("Demo access tokens (non-production only):")
    for role_name, token in (stats.tokens or {}).items():
        print(f"- {role_name}: {token}")


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
