"""Rescheduling business logic layer."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from uuid import UUID

from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, get_settings
from app.core.database import get_db_session
from app.core.enums import ProductFormatEnum, RescheduleStatusEnum, RoleEnum
from app.core.metrics import record_reschedule_outcome
from app.modules.cohorts.models import Cohort, Enrollment
from app.modules.cohorts.repository import CohortsRepository
from app.modules.identity.models import User
from app.modules.outbox.repository import OutboxRepository
from app.modules.rescheduling.models import RescheduleRequest
from app.modules.rescheduling.projector import (
    format_class_date,
    format_class_time,
    generate_future_classes,
)
from app.modules.rescheduling.repository import DuplicateRescheduleRequest, ReschedulingRepository
from app.modules.rescheduling.schemas import (
    FutureClassRead,
    PrivateEnrollmentRead,
    RescheduleDecisionRequest,
    RescheduleErrorKind,
    RescheduleOutcome,
    RescheduleOverviewRead,
    RescheduleRequestCreate,
    RescheduleRequestFilters,
    RescheduleRequestRead,
    TeacherRef,
    WeeklySessionView,
)
from app.modules.students.models import Student
from app.modules.students.repository import StudentsRepository
from app.modules.teachers.repository import TeachersRepository
from app.shared.exceptions import ConflictException, NotFoundException, UnauthorizedException
from app.shared.utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)

EVENT_REQUEST_CREATED = "reschedule_request.created"
EVENT_REQUEST_APPROVED = "reschedule_request.approved"
EVENT_REQUEST_DECLINED = "reschedule_request.declined"


class RescheduleWorkflowError(Exception):
    """Business rule violation; converted into a failed outcome."""

    def __init__(self, kind: RescheduleErrorKind, message: str) -> None:
        self.kind = kind
        self.message = message
        super().__init__(message)


class RescheduleService:
    """Reschedule request workflow: eligibility, rate limiting and decisions."""

    def __init__(
        self,
        students_repository: StudentsRepository,
        teachers_repository: TeachersRepository,
        cohorts_repository: CohortsRepository,
        rescheduling_repository: ReschedulingRepository,
        outbox_repository: OutboxRepository,
        *,
        settings: Settings | None = None,
        now_provider: Callable[[], datetime] = utc_now,
    ) -> None:
        self.students_repository = students_repository
        self.teachers_repository = teachers_repository
        self.cohorts_repository = cohorts_repository
        self.rescheduling_repository = rescheduling_repository
        self.outbox_repository = outbox_repository
        self.now_provider = now_provider

        settings = settings or get_settings()
        self.lead_time = timedelta(hours=settings.reschedule_min_lead_hours)
        self.window = timedelta(weeks=settings.reschedule_window_weeks)
        self.max_pending_requests = settings.reschedule_max_pending_requests
        self.school_tz = settings.school_tz
        self._lead_hours = settings.reschedule_min_lead_hours
        self._window_weeks = settings.reschedule_window_weeks

    def _now(self) -> datetime:
        return ensure_utc(self.now_provider())

    # Student workflow

    async def create_request(self, payload: RescheduleRequestCreate, actor: User | None) -> RescheduleOutcome:
        """Validate and record a reschedule request, then queue the teacher notification."""
        try:
            request = await self._create_request(payload, actor, self._now())
        except RescheduleWorkflowError as exc:
            logger.info("Reschedule request rejected: %s (%s)", exc.kind, exc.message)
            return self._finish("create", RescheduleOutcome.fail(exc.kind, exc.message))
        except SQLAlchemyError:
            logger.exception("Storage failure while creating reschedule request")
            return self._finish(
                "create",
                RescheduleOutcome.fail(
                    RescheduleErrorKind.STORAGE_ERROR,
                    "Failed to create reschedule request, please try again later",
                ),
            )
        return self._finish("create", RescheduleOutcome.ok(request.id))

    async def cancel_request(self, request_id: UUID, actor: User | None) -> RescheduleOutcome:
        """Cancel a pending request owned by the calling student."""
        try:
            request = await self._cancel_request(request_id, actor, self._now())
        except RescheduleWorkflowError as exc:
            logger.info("Reschedule cancel rejected: %s (%s)", exc.kind, exc.message)
            return self._finish("cancel", RescheduleOutcome.fail(exc.kind, exc.message))
        except SQLAlchemyError:
            logger.exception("Storage failure while cancelling reschedule request %s", request_id)
            return self._finish(
                "cancel",
                RescheduleOutcome.fail(
                    RescheduleErrorKind.STORAGE_ERROR,
                    "Failed to cancel request, please try again later",
                ),
            )
        return self._finish("cancel", RescheduleOutcome.ok(request.id))

    async def _create_request(
        self,
        payload: RescheduleRequestCreate,
        actor: User | None,
        now: datetime,
    ) -> RescheduleRequest:
        student = await self._resolve_student(actor)

        await self.students_repository.lock_student(student.id)
        enrollment = await self.cohorts_repository.find_active_enrollment(student.id, payload.cohort_id)
        if enrollment is None:
            raise RescheduleWorkflowError(
                RescheduleErrorKind.NO_ACTIVE_ENROLLMENT,
                "No active private enrollment found",
            )
        cohort = enrollment.cohort
        if cohort is None or cohort.product is None or cohort.product.format != ProductFormatEnum.PRIVATE:
            raise RescheduleWorkflowError(
                RescheduleErrorKind.NOT_PRIVATE_FORMAT,
                "Rescheduling is only available for private classes",
            )

        class_date = ensure_utc(payload.original_class_date)
        if class_date <= now + self.lead_time:
            raise RescheduleWorkflowError(
                RescheduleErrorKind.TOO_SOON,
                f"Classes must be more than {self._lead_hours} hours away to reschedule",
            )
        if class_date > now + self.window:
            raise RescheduleWorkflowError(
                RescheduleErrorKind.TOO_FAR_AHEAD,
                f"Can only reschedule classes within the next {self._window_weeks} weeks",
            )

        if await self.rescheduling_repository.has_existing_request_for_date(
            student.id,
            payload.cohort_id,
            class_date,
        ):
            raise self._duplicate_error()

        pending_count = await self.rescheduling_repository.count_pending_requests_since(
            student.id,
            now - self.window,
        )
        if pending_count >= self.max_pending_requests:
            raise RescheduleWorkflowError(
                RescheduleErrorKind.RATE_LIMIT_EXCEEDED,
                f"Maximum {self.max_pending_requests} pending requests allowed "
                f"per {self._window_weeks}-week period",
            )

        try:
            request = await self.rescheduling_repository.create_request(
                student_id=student.id,
                cohort_id=payload.cohort_id,
                original_class_date=class_date,
                proposed_datetime=payload.proposed_datetime,
                reason=payload.reason,
            )
        except DuplicateRescheduleRequest as exc:
            raise self._duplicate_error() from exc

        await self._enqueue_teacher_notification(request, student, cohort, class_date)
        return request

    async def _cancel_request(self, request_id: UUID, actor: User | None, now: datetime) -> RescheduleRequest:
        student = await self._resolve_student(actor)

        request = await self.rescheduling_repository.get_request_by_id(request_id)
        if request is None:
            raise RescheduleWorkflowError(RescheduleErrorKind.NOT_FOUND, "Request not found")
        if request.student_id != student.id:
            raise RescheduleWorkflowError(
                RescheduleErrorKind.FORBIDDEN,
                "Unauthorized to cancel this request",
            )
        if request.status != RescheduleStatusEnum.PENDING:
            raise RescheduleWorkflowError(
                RescheduleErrorKind.INVALID_STATE,
                "Only pending requests can be cancelled",
            )

        request.status = RescheduleStatusEnum.CANCELLED
        request.updated_at = now
        return await self.rescheduling_repository.save(request)

    async def _resolve_student(self, actor: User | None) -> Student:
        if actor is None:
            raise RescheduleWorkflowError(RescheduleErrorKind.UNAUTHORIZED, "Unauthorized")
        student = await self.students_repository.get_student_by_user_id(actor.id)
        if student is None:
            raise RescheduleWorkflowError(RescheduleErrorKind.STUDENT_NOT_FOUND, "Student not found")
        return student

    @staticmethod
    def _duplicate_error() -> RescheduleWorkflowError:
        return RescheduleWorkflowError(
            RescheduleErrorKind.DUPLICATE_REQUEST,
            "A reschedule request already exists for this class",
        )

    @staticmethod
    def _finish(operation: str, outcome: RescheduleOutcome) -> RescheduleOutcome:
        result = "success" if outcome.success else str(outcome.error)
        record_reschedule_outcome(operation, result)
        return outcome

    async def _enqueue_teacher_notification(
        self,
        request: RescheduleRequest,
        student: Student,
        cohort: Cohort,
        class_date: datetime,
    ) -> None:
        """Queue the teacher email; failures are logged and never reach the caller."""
        try:
            async with self.outbox_repository.savepoint():
                sessions = await self.cohorts_repository.find_weekly_sessions_with_teacher(cohort.id)
                teacher = next(
                    (
                        session.teacher
                        for session in sessions
                        if session.teacher is not None
                        and session.teacher.user is not None
                        and session.teacher.user.email
                    ),
                    None,
                )
                if teacher is None:
                    logger.info("No teacher with a contact address for cohort %s", cohort.id)
                    return

                await self.outbox_repository.create_outbox_event(
                    aggregate_type="reschedule_request",
                    aggregate_id=str(request.id),
                    event_type=EVENT_REQUEST_CREATED,
                    payload={
                        "request_id": str(request.id),
                        "teacher_email": teacher.user.email,
                        "teacher_name": teacher.first_name or "Teacher",
                        "student_name": student.first_name or student.full_name or "A student",
                        "cohort_name": cohort.display_label,
                        "original_class_date": format_class_date(class_date, self.school_tz),
                        "original_class_time": format_class_time(class_date, self.school_tz),
                        "proposed_datetime": request.proposed_datetime,
                        "reason": request.reason,
                    },
                )
        except SQLAlchemyError:
            logger.exception("Failed to queue reschedule notification for request %s", request.id)

    # Student read side

    async def get_private_enrollment(self, actor: User) -> PrivateEnrollmentRead | None:
        """Return the caller's active private enrollment, if any."""
        student = await self._require_student(actor)
        enrollment = await self.cohorts_repository.find_private_enrollment(student.id)
        if enrollment is None:
            return None
        return self._build_private_enrollment(enrollment)

    async def get_overview(self, actor: User) -> RescheduleOverviewRead:
        """Enrollment, selectable classes, recent requests and remaining quota."""
        student = await self._require_student(actor)
        now = self._now()
        window_start = now - self.window

        enrollment = await self.cohorts_repository.find_private_enrollment(student.id)
        recent_requests = await self.rescheduling_repository.list_requests_for_student(
            student.id,
            since=window_start,
        )
        pending_count = await self.rescheduling_repository.count_pending_requests_since(
            student.id,
            window_start,
        )

        enrollment_view = None
        future_classes: list[FutureClassRead] = []
        active_count = 0
        if enrollment is not None:
            enrollment_view = self._build_private_enrollment(enrollment)
            future_classes = await self._project_classes(student.id, enrollment_view, now)
            active_count = await self.rescheduling_repository.count_active_requests_in_period(
                student.id,
                enrollment_view.cohort_id,
                window_start,
            )

        return RescheduleOverviewRead(
            enrollment=enrollment_view,
            future_classes=future_classes,
            requests=[RescheduleRequestRead.model_validate(item) for item in recent_requests],
            pending_requests_in_window=pending_count,
            active_requests_in_window=active_count,
            max_pending_requests=self.max_pending_requests,
        )

    async def list_future_classes(self, actor: User) -> list[FutureClassRead]:
        """Classes the caller may currently ask to reschedule."""
        student = await self._require_student(actor)
        enrollment = await self.cohorts_repository.find_private_enrollment(student.id)
        if enrollment is None:
            return []
        return await self._project_classes(student.id, self._build_private_enrollment(enrollment), self._now())

    async def _project_classes(
        self,
        student_id: UUID,
        enrollment: PrivateEnrollmentRead,
        now: datetime,
    ) -> list[FutureClassRead]:
        history = await self.rescheduling_repository.list_requests_for_student(
            student_id,
            cohort_id=enrollment.cohort_id,
        )
        return generate_future_classes(
            enrollment.weekly_sessions,
            enrollment.cohort_id,
            enrollment.cohort_start_date,
            history,
            now,
            tz=self.school_tz,
            lead_time=self.lead_time,
            lookahead=self.window,
        )

    async def _require_student(self, actor: User) -> Student:
        student = await self.students_repository.get_student_by_user_id(actor.id)
        if student is None:
            raise NotFoundException("Student not found")
        return student

    @staticmethod
    def _build_private_enrollment(enrollment: Enrollment) -> PrivateEnrollmentRead:
        cohort = enrollment.cohort
        sessions = [
            WeeklySessionView(
                id=session.id,
                day_of_week=session.day_of_week,
                start_time=session.start_time,
                end_time=session.end_time,
                teacher_id=session.teacher_id,
                teacher_name=session.teacher.display_name if session.teacher is not None else None,
            )
            for session in cohort.weekly_sessions
        ]
        primary = sessions[0] if sessions else None
        teacher = None
        if primary is not None and primary.teacher_id is not None and primary.teacher_name:
            teacher = TeacherRef(id=primary.teacher_id, name=primary.teacher_name)

        return PrivateEnrollmentRead(
            enrollment_id=enrollment.id,
            cohort_id=cohort.id,
            cohort_nickname=cohort.nickname,
            cohort_start_date=cohort.start_date,
            product_format=str(cohort.product.format),
            weekly_sessions=sessions,
            teacher=teacher,
        )

    # Staff side

    async def list_requests(
        self,
        actor: User,
        filters: RescheduleRequestFilters,
        limit: int,
        offset: int,
    ) -> tuple[list[RescheduleRequest], int]:
        """List requests visible to an admin or to the teacher of the cohort."""
        cohort_ids = await self._visible_cohort_ids(actor)
        if cohort_ids is not None:
            if not cohort_ids:
                return [], 0
            if filters.cohort_id is not None and filters.cohort_id not in cohort_ids:
                return [], 0

        return await self.rescheduling_repository.list_requests(
            cohort_ids=cohort_ids,
            status=filters.status,
            cohort_id=filters.cohort_id,
            student_id=filters.student_id,
            limit=limit,
            offset=offset,
        )

    async def approve_request(
        self,
        request_id: UUID,
        payload: RescheduleDecisionRequest,
        actor: User,
    ) -> RescheduleRequest:
        """Move a pending request to APPROVED and notify the student."""
        return await self._decide(
            request_id,
            payload,
            actor,
            RescheduleStatusEnum.APPROVED,
            EVENT_REQUEST_APPROVED,
        )

    async def decline_request(
        self,
        request_id: UUID,
        payload: RescheduleDecisionRequest,
        actor: User,
    ) -> RescheduleRequest:
        """Move a pending request to REJECTED and notify the student."""
        return await self._decide(
            request_id,
            payload,
            actor,
            RescheduleStatusEnum.REJECTED,
            EVENT_REQUEST_DECLINED,
        )

    async def _decide(
        self,
        request_id: UUID,
        payload: RescheduleDecisionRequest,
        actor: User,
        target_status: RescheduleStatusEnum,
        event_type: str,
    ) -> RescheduleRequest:
        request = await self.rescheduling_repository.get_request_by_id(request_id)
        if request is None:
            raise NotFoundException("Request not found")

        cohort_ids = await self._visible_cohort_ids(actor)
        if cohort_ids is not None and request.cohort_id not in cohort_ids:
            raise UnauthorizedException("You cannot manage this request")

        if request.status != RescheduleStatusEnum.PENDING:
            raise ConflictException("Only pending requests can be approved or declined")

        request.status = target_status
        request.admin_notes = payload.admin_notes
        request.updated_at = self._now()
        await self.rescheduling_repository.save(request)
        operation = "approve" if target_status == RescheduleStatusEnum.APPROVED else "decline"
        record_reschedule_outcome(operation, "success")

        await self._enqueue_student_notification(request, event_type)
        return request

    async def _visible_cohort_ids(self, actor: User) -> list[UUID] | None:
        """None means unrestricted (admin)."""
        if actor.role.name == RoleEnum.ADMIN:
            return None
        if actor.role.name != RoleEnum.TEACHER:
            raise UnauthorizedException("Only admin and teachers can manage reschedule requests")

        teacher = await self.teachers_repository.get_teacher_by_user_id(actor.id)
        if teacher is None:
            return []
        return await self.cohorts_repository.list_cohort_ids_for_teacher(teacher.id)

    async def _enqueue_student_notification(self, request: RescheduleRequest, event_type: str) -> None:
        try:
            async with self.outbox_repository.savepoint():
                student = await self.students_repository.get_student_by_id(request.student_id)
                if student is None or not student.email:
                    logger.info("Student of request %s has no email; decision not mailed", request.id)
                    return

                await self.outbox_repository.create_outbox_event(
                    aggregate_type="reschedule_request",
                    aggregate_id=str(request.id),
                    event_type=event_type,
                    payload={
                        "request_id": str(request.id),
                        "student_email": student.email,
                        "student_name": student.first_name or student.full_name or "Student",
                        "original_class_date": format_class_date(request.original_class_date, self.school_tz),
                        "original_class_time": format_class_time(request.original_class_date, self.school_tz),
                        "proposed_datetime": request.proposed_datetime,
                        "admin_notes": request.admin_notes,
                    },
                )
        except SQLAlchemyError:
            logger.exception("Failed to queue decision notification for request %s", request.id)


async def get_reschedule_service(session: AsyncSession = Depends(get_db_session)) -> RescheduleService:
    """Dependency provider for reschedule service."""
    return RescheduleService(
        students_repository=StudentsRepository(session),
        teachers_repository=TeachersRepository(session),
        cohorts_repository=CohortsRepository(session),
        rescheduling_repository=ReschedulingRepository(session),
        outbox_repository=OutboxRepository(session),
    )
