"""Rescheduling repository layer (the reschedule request ledger)."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import RescheduleStatusEnum
from app.modules.rescheduling.models import RescheduleRequest

ACTIVE_CLASS_INDEX = "uq_reschedule_requests_active_class"


class DuplicateRescheduleRequest(Exception):
    """Raised when the active-class unique index rejects an insert."""


class ReschedulingRepository:
    """DB operations for reschedule requests."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_request(
        self,
        student_id: UUID,
        cohort_id: UUID,
        original_class_date: datetime,
        proposed_datetime: str,
        reason: str | None,
    ) -> RescheduleRequest:
        request = RescheduleRequest(
            student_id=student_id,
            cohort_id=cohort_id,
            original_class_date=original_class_date,
            proposed_datetime=proposed_datetime,
            reason=reason,
            status=RescheduleStatusEnum.PENDING,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(request)
                await self.session.flush()
        except IntegrityError as exc:
            if ACTIVE_CLASS_INDEX not in str(exc.orig):
                raise
            raise DuplicateRescheduleRequest(str(exc.orig)) from exc
        return request

    async def get_request_by_id(self, request_id: UUID) -> RescheduleRequest | None:
        stmt = select(RescheduleRequest).where(RescheduleRequest.id == request_id)
        return await self.session.scalar(stmt)

    async def save(self, request: RescheduleRequest) -> RescheduleRequest:
        await self.session.flush()
        return request

    async def count_requests(
        self,
        student_id: UUID,
        *,
        cohort_id: UUID | None = None,
        status: RescheduleStatusEnum | None = None,
        status_not: RescheduleStatusEnum | None = None,
        since: datetime | None = None,
    ) -> int:
        stmt = select(func.count()).select_from(RescheduleRequest).where(
            RescheduleRequest.student_id == student_id,
        )
        if cohort_id is not None:
            stmt = stmt.where(RescheduleRequest.cohort_id == cohort_id)
        if status is not None:
            stmt = stmt.where(RescheduleRequest.status == status)
        if status_not is not None:
            stmt = stmt.where(RescheduleRequest.status != status_not)
        if since is not None:
            stmt = stmt.where(RescheduleRequest.created_at >= since)
        return int((await self.session.scalar(stmt)) or 0)

    async def exists_request_for_date(
        self,
        student_id: UUID,
        cohort_id: UUID,
        original_class_date: datetime,
        status_not: RescheduleStatusEnum = RescheduleStatusEnum.CANCELLED,
    ) -> bool:
        stmt = select(
            select(RescheduleRequest.id)
            .where(
                RescheduleRequest.student_id == student_id,
                RescheduleRequest.cohort_id == cohort_id,
                RescheduleRequest.original_class_date == original_class_date,
                RescheduleRequest.status != status_not,
            )
            .exists(),
        )
        return bool(await self.session.scalar(stmt))

    async def count_active_requests_in_period(
        self,
        student_id: UUID,
        cohort_id: UUID,
        window_start: datetime,
    ) -> int:
        """Non-cancelled requests for a student and cohort created since ``window_start``."""
        return await self.count_requests(
            student_id,
            cohort_id=cohort_id,
            status_not=RescheduleStatusEnum.CANCELLED,
            since=window_start,
        )

    async def has_existing_request_for_date(
        self,
        student_id: UUID,
        cohort_id: UUID,
        class_date: datetime,
    ) -> bool:
        return await self.exists_request_for_date(student_id, cohort_id, class_date)

    async def count_pending_requests_since(self, student_id: UUID, since: datetime) -> int:
        return await self.count_requests(
            student_id,
            status=RescheduleStatusEnum.PENDING,
            since=since,
        )

    async def list_requests_for_student(
        self,
        student_id: UUID,
        *,
        cohort_id: UUID | None = None,
        since: datetime | None = None,
    ) -> list[RescheduleRequest]:
        stmt = select(RescheduleRequest).where(RescheduleRequest.student_id == student_id)
        if cohort_id is not None:
            stmt = stmt.where(RescheduleRequest.cohort_id == cohort_id)
        if since is not None:
            stmt = stmt.where(RescheduleRequest.created_at >= since)
        stmt = stmt.order_by(RescheduleRequest.created_at.desc())
        return list((await self.session.scalars(stmt)).all())

    async def list_requests(
        self,
        *,
        cohort_ids: Sequence[UUID] | None,
        status: RescheduleStatusEnum | None,
        cohort_id: UUID | None,
        student_id: UUID | None,
        limit: int,
        offset: int,
    ) -> tuple[list[RescheduleRequest], int]:
        base_stmt: Select[tuple[RescheduleRequest]] = select(RescheduleRequest)
        if cohort_ids is not None:
            base_stmt = base_stmt.where(RescheduleRequest.cohort_id.in_(cohort_ids))
        if status is not None:
            base_stmt = base_stmt.where(RescheduleRequest.status == status)
        if cohort_id is not None:
            base_stmt = base_stmt.where(RescheduleRequest.cohort_id == cohort_id)
        if student_id is not None:
            base_stmt = base_stmt.where(RescheduleRequest.student_id == student_id)

        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(RescheduleRequest.created_at.desc()).limit(limit).offset(offset)
        items = list((await self.session.scalars(stmt)).all())
        return items, total
