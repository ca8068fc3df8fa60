"""Cohorts repository layer (read side of the enrollment store)."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.enums import ACTIVE_ENROLLMENT_STATUSES, ProductFormatEnum
from app.modules.cohorts.models import Cohort, Enrollment, Product, WeeklySession
from app.modules.teachers.models import Teacher


class CohortsRepository:
    """DB operations for cohorts, weekly sessions and enrollments."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_active_enrollment(self, student_id: UUID, cohort_id: UUID) -> Enrollment | None:
        stmt = (
            select(Enrollment)
            .options(selectinload(Enrollment.cohort).selectinload(Cohort.product))
            .where(
                Enrollment.student_id == student_id,
                Enrollment.cohort_id == cohort_id,
                Enrollment.status.in_(ACTIVE_ENROLLMENT_STATUSES),
            )
        )
        return await self.session.scalar(stmt)

    async def find_private_enrollment(self, student_id: UUID) -> Enrollment | None:
        stmt = (
            select(Enrollment)
            .join(Enrollment.cohort)
            .join(Cohort.product)
            .options(
                selectinload(Enrollment.cohort).selectinload(Cohort.product),
                selectinload(Enrollment.cohort)
                .selectinload(Cohort.weekly_sessions)
                .selectinload(WeeklySession.teacher),
            )
            .where(
                Enrollment.student_id == student_id,
                Enrollment.status.in_(ACTIVE_ENROLLMENT_STATUSES),
                Product.format == ProductFormatEnum.PRIVATE,
            )
            .order_by(Enrollment.created_at.asc())
            .limit(1)
        )
        return await self.session.scalar(stmt)

    async def find_weekly_sessions_with_teacher(self, cohort_id: UUID) -> list[WeeklySession]:
        stmt = (
            select(WeeklySession)
            .options(selectinload(WeeklySession.teacher).selectinload(Teacher.user))
            .where(
                WeeklySession.cohort_id == cohort_id,
                WeeklySession.teacher_id.is_not(None),
            )
            .order_by(WeeklySession.created_at.asc(), WeeklySession.id.asc())
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_cohort_ids_for_teacher(self, teacher_id: UUID) -> list[UUID]:
        stmt = select(WeeklySession.cohort_id).where(WeeklySession.teacher_id == teacher_id).distinct()
        return list((await self.session.scalars(stmt)).all())
