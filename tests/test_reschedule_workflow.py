from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import Settings
from app.core.enums import ProductFormatEnum, RescheduleStatusEnum, RoleEnum
from app.modules.rescheduling.repository import DuplicateRescheduleRequest
from app.modules.rescheduling.schemas import (
    RescheduleDecisionRequest,
    RescheduleErrorKind,
    RescheduleRequestCreate,
    RescheduleRequestFilters,
)
from app.modules.rescheduling.service import RescheduleService
from app.shared.exceptions import ConflictException, NotFoundException, UnauthorizedException

NOW = datetime(2025, 1, 1, 0, 0, tzinfo=UTC)
CLASS_JAN_7 = datetime(2025, 1, 7, 10, 0, tzinfo=UTC)
CLASS_JAN_14 = datetime(2025, 1, 14, 10, 0, tzinfo=UTC)


@dataclass
class FakeRescheduleRequest:
    student_id: UUID
    cohort_id: UUID
    original_class_date: datetime
    proposed_datetime: str
    reason: str | None = None
    status: RescheduleStatusEnum = RescheduleStatusEnum.PENDING
    admin_notes: str | None = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = NOW
    updated_at: datetime = NOW


class FakeStudentsRepository:
    def __init__(self, students: list[SimpleNamespace]) -> None:
        self.students = students
        self.locked: list[UUID] = []

    async def get_student_by_user_id(self, user_id: UUID) -> SimpleNamespace | None:
        return next((s for s in self.students if s.user_id == user_id), None)

    async def get_student_by_id(self, student_id: UUID) -> SimpleNamespace | None:
        return next((s for s in self.students if s.id == student_id), None)

    async def lock_student(self, student_id: UUID) -> None:
        self.locked.append(student_id)


class FakeTeachersRepository:
    def __init__(self, teachers: list[SimpleNamespace]) -> None:
        self.teachers = teachers

    async def get_teacher_by_user_id(self, user_id: UUID) -> SimpleNamespace | None:
        return next((t for t in self.teachers if t.user_id == user_id), None)


class FakeCohortsRepository:
    def __init__(self, enrollments: list[SimpleNamespace]) -> None:
        self.enrollments = enrollments
        self.fail_session_lookup = False

    async def find_active_enrollment(self, student_id: UUID, cohort_id: UUID) -> SimpleNamespace | None:
        return next(
            (e for e in self.enrollments if e.student_id == student_id and e.cohort_id == cohort_id and e.active),
            None,
        )

    async def find_private_enrollment(self, student_id: UUID) -> SimpleNamespace | None:
        return next(
            (
                e
                for e in self.enrollments
                if e.student_id == student_id and e.active and e.cohort.product.format == ProductFormatEnum.PRIVATE
            ),
            None,
        )

    async def find_weekly_sessions_with_teacher(self, cohort_id: UUID) -> list[SimpleNamespace]:
        if self.fail_session_lookup:
            raise SQLAlchemyError("canceling statement due to statement timeout")
        for enrollment in self.enrollments:
            if enrollment.cohort_id == cohort_id:
                return [s for s in enrollment.cohort.weekly_sessions if s.teacher is not None]
        return []

    async def list_cohort_ids_for_teacher(self, teacher_id: UUID) -> list[UUID]:
        return list(
            {
                e.cohort_id
                for e in self.enrollments
                if any(s.teacher_id == teacher_id for s in e.cohort.weekly_sessions)
            },
        )


class FakeReschedulingRepository:
    def __init__(self, clock) -> None:
        self.clock = clock
        self.requests: list[FakeRescheduleRequest] = []
        self.fail_on_create = False
        self.skip_duplicate_check = False

    def _active_for(self, student_id: UUID, cohort_id: UUID, class_date: datetime) -> bool:
        return any(
            r.student_id == student_id
            and r.cohort_id == cohort_id
            and r.original_class_date == class_date
            and r.status != RescheduleStatusEnum.CANCELLED
            for r in self.requests
        )

    async def create_request(
        self,
        student_id: UUID,
        cohort_id: UUID,
        original_class_date: datetime,
        proposed_datetime: str,
        reason: str | None,
    ) -> FakeRescheduleRequest:
        if self.fail_on_create:
            raise SQLAlchemyError("connection reset")
        if self._active_for(student_id, cohort_id, original_class_date):
            raise DuplicateRescheduleRequest("uq_reschedule_requests_active_class")
        request = FakeRescheduleRequest(
            student_id=student_id,
            cohort_id=cohort_id,
            original_class_date=original_class_date,
            proposed_datetime=proposed_datetime,
            reason=reason,
            created_at=self.clock(),
            updated_at=self.clock(),
        )
        self.requests.append(request)
        return request

    async def get_request_by_id(self, request_id: UUID) -> FakeRescheduleRequest | None:
        return next((r for r in self.requests if r.id == request_id), None)

    async def save(self, request: FakeRescheduleRequest) -> FakeRescheduleRequest:
        return request

    async def has_existing_request_for_date(self, student_id: UUID, cohort_id: UUID, class_date: datetime) -> bool:
        if self.skip_duplicate_check:
            return False
        return self._active_for(student_id, cohort_id, class_date)

    async def count_pending_requests_since(self, student_id: UUID, since: datetime) -> int:
        return sum(
            1
            for r in self.requests
            if r.student_id == student_id and r.status == RescheduleStatusEnum.PENDING and r.created_at >= since
        )

    async def count_active_requests_in_period(self, student_id: UUID, cohort_id: UUID, window_start: datetime) -> int:
        return sum(
            1
            for r in self.requests
            if r.student_id == student_id
            and r.cohort_id == cohort_id
            and r.status != RescheduleStatusEnum.CANCELLED
            and r.created_at >= window_start
        )

    async def list_requests_for_student(
        self,
        student_id: UUID,
        *,
        cohort_id: UUID | None = None,
        since: datetime | None = None,
    ) -> list[FakeRescheduleRequest]:
        items = [
            r
            for r in self.requests
            if r.student_id == student_id
            and (cohort_id is None or r.cohort_id == cohort_id)
            and (since is None or r.created_at >= since)
        ]
        return sorted(items, key=lambda r: r.created_at, reverse=True)

    async def list_requests(
        self,
        *,
        cohort_ids,
        status,
        cohort_id,
        student_id,
        limit: int,
        offset: int,
    ) -> tuple[list[FakeRescheduleRequest], int]:
        items = [
            r
            for r in self.requests
            if (cohort_ids is None or r.cohort_id in cohort_ids)
            and (status is None or r.status == status)
            and (cohort_id is None or r.cohort_id == cohort_id)
            and (student_id is None or r.student_id == student_id)
        ]
        return items[offset : offset + limit], len(items)


class FakeOutboxRepository:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.events: list[dict] = []
        self.savepoints: list[str] = []

    @asynccontextmanager
    async def savepoint(self):
        try:
            yield
        except SQLAlchemyError:
            self.savepoints.append("rolled_back")
            raise
        self.savepoints.append("released")

    async def create_outbox_event(self, aggregate_type: str, aggregate_id: str, event_type: str, payload: dict):
        if self.fail:
            raise SQLAlchemyError("outbox table is locked")
        event = {
            "aggregate_type": aggregate_type,
            "aggregate_id": aggregate_id,
            "event_type": event_type,
            "payload": payload,
        }
        self.events.append(event)
        return event


def make_user(role: RoleEnum = RoleEnum.STUDENT) -> SimpleNamespace:
    return SimpleNamespace(id=uuid4(), role=SimpleNamespace(name=role))


def make_teacher(first_name: str = "Camille", email: str | None = "camille@school.dev") -> SimpleNamespace:
    user = SimpleNamespace(id=uuid4(), email=email) if email is not None else None
    return SimpleNamespace(
        id=uuid4(),
        user_id=user.id if user is not None else uuid4(),
        first_name=first_name,
        display_name=f"{first_name} Durand",
        user=user,
    )


def make_enrollment(
    student: SimpleNamespace,
    *,
    product_format: ProductFormatEnum = ProductFormatEnum.PRIVATE,
    teacher: SimpleNamespace | None = None,
    active: bool = True,
    start_date: date | None = None,
) -> SimpleNamespace:
    cohort_id = uuid4()
    sessions = [
        SimpleNamespace(
            id=uuid4(),
            day_of_week="Tuesday",
            start_time="10:00",
            end_time="11:00",
            teacher_id=teacher.id if teacher is not None else None,
            teacher=teacher,
        ),
    ]
    cohort = SimpleNamespace(
        id=cohort_id,
        nickname=None,
        start_date=start_date,
        display_label="Private Class",
        product=SimpleNamespace(format=product_format, display_name="Private French"),
        weekly_sessions=sessions,
    )
    return SimpleNamespace(id=uuid4(), student_id=student.id, cohort_id=cohort_id, cohort=cohort, active=active)


@dataclass
class Harness:
    service: RescheduleService
    user: SimpleNamespace
    student: SimpleNamespace
    enrollment: SimpleNamespace
    teacher: SimpleNamespace | None
    students_repo: FakeStudentsRepository
    cohorts_repo: FakeCohortsRepository
    ledger: FakeReschedulingRepository
    outbox: FakeOutboxRepository

    def payload(self, class_date: datetime = CLASS_JAN_7, cohort_id: UUID | None = None) -> RescheduleRequestCreate:
        return RescheduleRequestCreate(
            cohort_id=cohort_id or self.enrollment.cohort_id,
            original_class_date=class_date,
            proposed_datetime="Wednesday 8th at 3pm",
            reason="Dentist appointment",
        )

    def add_student(self) -> SimpleNamespace:
        user = make_user()
        student = SimpleNamespace(id=uuid4(), user_id=user.id, first_name="Sam", full_name="Sam Lee", email=None)
        self.students_repo.students.append(student)
        return user


def make_harness(
    *,
    product_format: ProductFormatEnum = ProductFormatEnum.PRIVATE,
    teacher: SimpleNamespace | None = None,
    with_teacher: bool = True,
    active: bool = True,
    outbox_fails: bool = False,
    now: datetime = NOW,
) -> Harness:
    user = make_user()
    student = SimpleNamespace(
        id=uuid4(),
        user_id=user.id,
        first_name="Alex",
        full_name="Alex Martin",
        email="alex@student.dev",
    )
    if teacher is None and with_teacher:
        teacher = make_teacher()
    enrollment = make_enrollment(student, product_format=product_format, teacher=teacher, active=active)

    students_repo = FakeStudentsRepository([student])
    cohorts_repo = FakeCohortsRepository([enrollment])
    teachers_repo = FakeTeachersRepository([teacher] if teacher is not None else [])
    ledger = FakeReschedulingRepository(lambda: now)
    outbox = FakeOutboxRepository(fail=outbox_fails)
    service = RescheduleService(
        students_repository=students_repo,  # type: ignore[arg-type]
        teachers_repository=teachers_repo,  # type: ignore[arg-type]
        cohorts_repository=cohorts_repo,  # type: ignore[arg-type]
        rescheduling_repository=ledger,  # type: ignore[arg-type]
        outbox_repository=outbox,  # type: ignore[arg-type]
        settings=Settings(_env_file=None),
        now_provider=lambda: now,
    )
    return Harness(service, user, student, enrollment, teacher, students_repo, cohorts_repo, ledger, outbox)


def seed_request(
    harness: Harness,
    class_date: datetime,
    *,
    status: RescheduleStatusEnum = RescheduleStatusEnum.PENDING,
    created_at: datetime = NOW - timedelta(days=3),
) -> FakeRescheduleRequest:
    request = FakeRescheduleRequest(
        student_id=harness.student.id,
        cohort_id=harness.enrollment.cohort_id,
        original_class_date=class_date,
        proposed_datetime="Any time",
        status=status,
        created_at=created_at,
    )
    harness.ledger.requests.append(request)
    return request


@pytest.mark.asyncio
async def test_create_request_records_pending_request_and_queues_teacher_email() -> None:
    harness = make_harness()

    outcome = await harness.service.create_request(harness.payload(), harness.user)

    assert outcome.success is True
    request = harness.ledger.requests[0]
    assert outcome.request_id == request.id
    assert request.status == RescheduleStatusEnum.PENDING
    assert request.original_class_date == CLASS_JAN_7
    assert harness.students_repo.locked == [harness.student.id]

    event = harness.outbox.events[0]
    assert event["event_type"] == "reschedule_request.created"
    assert event["payload"] == {
        "request_id": str(request.id),
        "teacher_email": "camille@school.dev",
        "teacher_name": "Camille",
        "student_name": "Alex",
        "cohort_name": "Private Class",
        "original_class_date": "Tuesday, January 7, 2025",
        "original_class_time": "10:00 AM",
        "proposed_datetime": "Wednesday 8th at 3pm",
        "reason": "Dentist appointment",
    }


@pytest.mark.asyncio
async def test_anonymous_caller_is_unauthorized_before_any_other_check() -> None:
    harness = make_harness(product_format=ProductFormatEnum.GROUP)

    outcome = await harness.service.create_request(harness.payload(NOW), None)

    assert outcome.success is False
    assert outcome.error == RescheduleErrorKind.UNAUTHORIZED
    assert harness.ledger.requests == []


@pytest.mark.asyncio
async def test_user_without_student_record_is_rejected() -> None:
    harness = make_harness()

    outcome = await harness.service.create_request(harness.payload(), make_user())

    assert outcome.error == RescheduleErrorKind.STUDENT_NOT_FOUND


@pytest.mark.asyncio
async def test_inactive_enrollment_is_rejected() -> None:
    harness = make_harness(active=False)

    outcome = await harness.service.create_request(harness.payload(), harness.user)

    assert outcome.error == RescheduleErrorKind.NO_ACTIVE_ENROLLMENT
    assert outcome.message == "No active private enrollment found"


@pytest.mark.asyncio
async def test_group_enrollment_always_fails_format_gate() -> None:
    harness = make_harness(product_format=ProductFormatEnum.GROUP)

    outcome = await harness.service.create_request(harness.payload(), harness.user)

    assert outcome.error == RescheduleErrorKind.NOT_PRIVATE_FORMAT
    assert harness.ledger.requests == []


@pytest.mark.asyncio
async def test_class_exactly_at_lead_time_is_too_soon() -> None:
    harness = make_harness()

    outcome = await harness.service.create_request(harness.payload(NOW + timedelta(hours=24)), harness.user)

    assert outcome.error == RescheduleErrorKind.TOO_SOON
    assert outcome.message == "Classes must be more than 24 hours away to reschedule"


@pytest.mark.asyncio
async def test_class_past_the_two_week_window_is_too_far_ahead() -> None:
    harness = make_harness()

    outcome = await harness.service.create_request(
        harness.payload(NOW + timedelta(weeks=2, minutes=1)),
        harness.user,
    )

    assert outcome.error == RescheduleErrorKind.TOO_FAR_AHEAD


@pytest.mark.asyncio
async def test_class_exactly_at_window_ceiling_is_accepted() -> None:
    harness = make_harness()

    outcome = await harness.service.create_request(harness.payload(NOW + timedelta(weeks=2)), harness.user)

    assert outcome.success is True


@pytest.mark.asyncio
async def test_three_recent_pending_requests_hit_the_rate_limit() -> None:
    harness = make_harness()
    for offset in range(3):
        seed_request(harness, CLASS_JAN_14 + timedelta(hours=offset + 1))

    outcome = await harness.service.create_request(harness.payload(), harness.user)

    assert outcome.error == RescheduleErrorKind.RATE_LIMIT_EXCEEDED
    assert outcome.message == "Maximum 3 pending requests allowed per 2-week period"
    assert len(harness.ledger.requests) == 3


@pytest.mark.asyncio
async def test_two_recent_pending_requests_still_allow_a_third() -> None:
    harness = make_harness()
    for offset in range(2):
        seed_request(harness, CLASS_JAN_14 + timedelta(hours=offset + 1))

    outcome = await harness.service.create_request(harness.payload(), harness.user)

    assert outcome.success is True
    assert len(harness.ledger.requests) == 3


@pytest.mark.asyncio
async def test_rate_limit_ignores_decided_and_old_requests() -> None:
    harness = make_harness()
    seed_request(harness, CLASS_JAN_14 + timedelta(hours=1), status=RescheduleStatusEnum.APPROVED)
    seed_request(harness, CLASS_JAN_14 + timedelta(hours=2), status=RescheduleStatusEnum.REJECTED)
    seed_request(harness, CLASS_JAN_14 + timedelta(hours=3), created_at=NOW - timedelta(days=15))
    seed_request(harness, CLASS_JAN_14 + timedelta(hours=4))
    seed_request(harness, CLASS_JAN_14 + timedelta(hours=5))

    outcome = await harness.service.create_request(harness.payload(), harness.user)

    assert outcome.success is True


@pytest.mark.asyncio
async def test_duplicate_request_is_blocked_until_the_first_is_cancelled() -> None:
    harness = make_harness()

    first = await harness.service.create_request(harness.payload(), harness.user)
    second = await harness.service.create_request(harness.payload(), harness.user)
    cancelled = await harness.service.cancel_request(first.request_id, harness.user)
    third = await harness.service.create_request(harness.payload(), harness.user)

    assert first.success is True
    assert second.error == RescheduleErrorKind.DUPLICATE_REQUEST
    assert cancelled.success is True
    assert third.success is True
    assert third.request_id != first.request_id


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [RescheduleStatusEnum.APPROVED, RescheduleStatusEnum.REJECTED])
async def test_decided_request_for_the_same_class_blocks_a_new_one(status: RescheduleStatusEnum) -> None:
    harness = make_harness()
    seed_request(harness, CLASS_JAN_7, status=status)

    outcome = await harness.service.create_request(harness.payload(), harness.user)

    assert outcome.error == RescheduleErrorKind.DUPLICATE_REQUEST


@pytest.mark.asyncio
async def test_concurrent_duplicate_rejected_by_unique_index_maps_to_duplicate() -> None:
    harness = make_harness()
    seed_request(harness, CLASS_JAN_7)
    harness.ledger.skip_duplicate_check = True

    outcome = await harness.service.create_request(harness.payload(), harness.user)

    assert outcome.error == RescheduleErrorKind.DUPLICATE_REQUEST
    assert len(harness.ledger.requests) == 1


@pytest.mark.asyncio
async def test_storage_failure_is_reported_as_storage_error() -> None:
    harness = make_harness()
    harness.ledger.fail_on_create = True

    outcome = await harness.service.create_request(harness.payload(), harness.user)

    assert outcome.success is False
    assert outcome.error == RescheduleErrorKind.STORAGE_ERROR


@pytest.mark.asyncio
async def test_notification_failure_does_not_change_the_outcome() -> None:
    harness = make_harness(outbox_fails=True)

    outcome = await harness.service.create_request(harness.payload(), harness.user)

    assert outcome.success is True
    assert len(harness.ledger.requests) == 1
    assert harness.outbox.events == []


@pytest.mark.asyncio
async def test_teacher_lookup_failure_is_contained_in_a_savepoint() -> None:
    harness = make_harness()
    harness.cohorts_repo.fail_session_lookup = True

    outcome = await harness.service.create_request(harness.payload(), harness.user)

    assert outcome.success is True
    assert outcome.request_id == harness.ledger.requests[0].id
    assert harness.outbox.savepoints == ["rolled_back"]
    assert harness.outbox.events == []


@pytest.mark.asyncio
async def test_teacher_notification_is_queued_inside_a_savepoint() -> None:
    harness = make_harness()

    await harness.service.create_request(harness.payload(), harness.user)

    assert harness.outbox.savepoints == ["released"]
    assert len(harness.outbox.events) == 1


@pytest.mark.asyncio
async def test_no_teacher_contact_skips_notification() -> None:
    harness = make_harness(teacher=make_teacher(email=None))

    outcome = await harness.service.create_request(harness.payload(), harness.user)

    assert outcome.success is True
    assert harness.outbox.events == []


@pytest.mark.asyncio
async def test_student_name_falls_back_to_full_name_then_placeholder() -> None:
    harness = make_harness()
    harness.student.first_name = None

    await harness.service.create_request(harness.payload(), harness.user)
    harness.student.full_name = None
    await harness.service.create_request(harness.payload(CLASS_JAN_14), harness.user)

    names = [event["payload"]["student_name"] for event in harness.outbox.events]
    assert names == ["Alex Martin", "A student"]


@pytest.mark.asyncio
async def test_cancel_succeeds_exactly_once() -> None:
    harness = make_harness()
    created = await harness.service.create_request(harness.payload(), harness.user)

    first = await harness.service.cancel_request(created.request_id, harness.user)
    second = await harness.service.cancel_request(created.request_id, harness.user)

    assert first.success is True
    assert second.error == RescheduleErrorKind.INVALID_STATE
    assert harness.ledger.requests[0].status == RescheduleStatusEnum.CANCELLED


@pytest.mark.asyncio
async def test_cancel_by_another_student_is_forbidden_and_leaves_ledger_unchanged() -> None:
    harness = make_harness()
    created = await harness.service.create_request(harness.payload(), harness.user)
    other_user = harness.add_student()

    outcome = await harness.service.cancel_request(created.request_id, other_user)

    assert outcome.error == RescheduleErrorKind.FORBIDDEN
    assert harness.ledger.requests[0].status == RescheduleStatusEnum.PENDING


@pytest.mark.asyncio
async def test_cancel_unknown_request_is_not_found() -> None:
    harness = make_harness()

    outcome = await harness.service.cancel_request(uuid4(), harness.user)

    assert outcome.error == RescheduleErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_cancel_requires_a_caller() -> None:
    harness = make_harness()
    request = seed_request(harness, CLASS_JAN_7)

    outcome = await harness.service.cancel_request(request.id, None)

    assert outcome.error == RescheduleErrorKind.UNAUTHORIZED
    assert request.status == RescheduleStatusEnum.PENDING


@pytest.mark.asyncio
async def test_overview_lists_unclaimed_classes_and_quota() -> None:
    harness = make_harness()
    seed_request(harness, CLASS_JAN_7)

    overview = await harness.service.get_overview(harness.user)

    assert overview.enrollment is not None
    assert overview.enrollment.teacher is not None
    assert overview.enrollment.teacher.name == "Camille Durand"
    assert [item.date for item in overview.future_classes] == [CLASS_JAN_14]
    assert overview.pending_requests_in_window == 1
    assert overview.active_requests_in_window == 1
    assert overview.max_pending_requests == 3
    assert len(overview.requests) == 1


@pytest.mark.asyncio
async def test_overview_without_private_enrollment_is_empty() -> None:
    harness = make_harness(product_format=ProductFormatEnum.GROUP)

    overview = await harness.service.get_overview(harness.user)

    assert overview.enrollment is None
    assert overview.future_classes == []
    assert await harness.service.get_private_enrollment(harness.user) is None


@pytest.mark.asyncio
async def test_read_side_requires_a_student_record() -> None:
    harness = make_harness()

    with pytest.raises(NotFoundException):
        await harness.service.list_future_classes(make_user())


@pytest.mark.asyncio
async def test_admin_lists_every_request_and_teacher_only_their_cohorts() -> None:
    harness = make_harness()
    seed_request(harness, CLASS_JAN_7)
    foreign = FakeRescheduleRequest(
        student_id=uuid4(),
        cohort_id=uuid4(),
        original_class_date=CLASS_JAN_14,
        proposed_datetime="Any",
    )
    harness.ledger.requests.append(foreign)
    teacher_user = SimpleNamespace(id=harness.teacher.user_id, role=SimpleNamespace(name=RoleEnum.TEACHER))

    _, admin_total = await harness.service.list_requests(
        make_user(RoleEnum.ADMIN),
        RescheduleRequestFilters(),
        20,
        0,
    )
    teacher_items, teacher_total = await harness.service.list_requests(
        teacher_user,
        RescheduleRequestFilters(),
        20,
        0,
    )
    outside_items, _ = await harness.service.list_requests(
        teacher_user,
        RescheduleRequestFilters(cohort_id=foreign.cohort_id),
        20,
        0,
    )

    assert admin_total == 2
    assert teacher_total == 1
    assert teacher_items[0].cohort_id == harness.enrollment.cohort_id
    assert outside_items == []


@pytest.mark.asyncio
async def test_students_cannot_list_requests() -> None:
    harness = make_harness()

    with pytest.raises(UnauthorizedException):
        await harness.service.list_requests(harness.user, RescheduleRequestFilters(), 20, 0)


@pytest.mark.asyncio
async def test_approve_moves_pending_request_and_notifies_student() -> None:
    harness = make_harness()
    request = seed_request(harness, CLASS_JAN_7)

    approved = await harness.service.approve_request(
        request.id,
        RescheduleDecisionRequest(admin_notes="See you Wednesday"),
        make_user(RoleEnum.ADMIN),
    )

    assert approved.status == RescheduleStatusEnum.APPROVED
    assert approved.admin_notes == "See you Wednesday"
    event = harness.outbox.events[-1]
    assert event["event_type"] == "reschedule_request.approved"
    assert event["payload"]["student_email"] == "alex@student.dev"


@pytest.mark.asyncio
async def test_decided_requests_are_immutable() -> None:
    harness = make_harness()
    request = seed_request(harness, CLASS_JAN_7, status=RescheduleStatusEnum.CANCELLED)

    with pytest.raises(ConflictException):
        await harness.service.decline_request(request.id, RescheduleDecisionRequest(), make_user(RoleEnum.ADMIN))
    assert request.status == RescheduleStatusEnum.CANCELLED


@pytest.mark.asyncio
async def test_teacher_cannot_decide_requests_of_other_cohorts() -> None:
    harness = make_harness()
    request = seed_request(harness, CLASS_JAN_7)
    stranger = make_teacher(first_name="Louis", email="louis@school.dev")
    harness.service.teachers_repository.teachers.append(stranger)
    stranger_user = SimpleNamespace(id=stranger.user_id, role=SimpleNamespace(name=RoleEnum.TEACHER))

    with pytest.raises(UnauthorizedException):
        await harness.service.decline_request(request.id, RescheduleDecisionRequest(), stranger_user)
    assert request.status == RescheduleStatusEnum.PENDING
