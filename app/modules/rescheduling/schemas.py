"""Rescheduling schemas."""

from __future__ import annotations

from datetime import date, datetime
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.enums import RescheduleStatusEnum


class RescheduleErrorKind(StrEnum):
    """Failure kinds of the reschedule workflow."""

    UNAUTHORIZED = "Unauthorized"
    STUDENT_NOT_FOUND = "StudentNotFound"
    NO_ACTIVE_ENROLLMENT = "NoActiveEnrollment"
    NOT_PRIVATE_FORMAT = "NotPrivateFormat"
    TOO_SOON = "TooSoon"
    TOO_FAR_AHEAD = "TooFarAhead"
    DUPLICATE_REQUEST = "DuplicateRequest"
    RATE_LIMIT_EXCEEDED = "RateLimitExceeded"
    NOT_FOUND = "NotFound"
    FORBIDDEN = "Forbidden"
    INVALID_STATE = "InvalidState"
    STORAGE_ERROR = "StorageError"


class TeacherRef(BaseModel):
    id: UUID
    name: str


class WeeklySessionView(BaseModel):
    """Read-only projection of a weekly session."""

    id: UUID
    day_of_week: str | None
    start_time: str | None
    end_time: str | None
    teacher_id: UUID | None = None
    teacher_name: str | None = None


class FutureClassRead(BaseModel):
    """One concrete upcoming class occurrence."""

    date: datetime
    start_time: str
    end_time: str
    time_label: str
    day_of_week: str
    teacher: TeacherRef | None
    weekly_session_id: UUID
    cohort_id: UUID


class PrivateEnrollmentRead(BaseModel):
    enrollment_id: UUID
    cohort_id: UUID
    cohort_nickname: str | None
    cohort_start_date: date | None
    product_format: str
    weekly_sessions: list[WeeklySessionView]
    teacher: TeacherRef | None


class RescheduleRequestCreate(BaseModel):
    """Create reschedule request."""

    cohort_id: UUID
    original_class_date: datetime
    proposed_datetime: str = Field(min_length=1, max_length=255)
    reason: str | None = Field(default=None, max_length=2000)

    @field_validator("proposed_datetime")
    @classmethod
    def strip_proposed_datetime(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Proposed date/time is required")
        return value

    @field_validator("reason")
    @classmethod
    def blank_reason_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class RescheduleDecisionRequest(BaseModel):
    """Approve or decline reschedule request."""

    admin_notes: str | None = Field(default=None, max_length=2000)


class RescheduleRequestRead(BaseModel):
    """Reschedule request response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    cohort_id: UUID
    original_class_date: datetime
    proposed_datetime: str
    reason: str | None
    status: RescheduleStatusEnum
    admin_notes: str | None
    created_at: datetime
    updated_at: datetime


class RescheduleOutcome(BaseModel):
    """Discriminated result of create/cancel operations."""

    success: bool
    request_id: UUID | None = None
    error: RescheduleErrorKind | None = None
    message: str | None = None

    @classmethod
    def ok(cls, request_id: UUID) -> RescheduleOutcome:
        return cls(success=True, request_id=request_id)

    @classmethod
    def fail(cls, error: RescheduleErrorKind, message: str) -> RescheduleOutcome:
        return cls(success=False, error=error, message=message)


class RescheduleOverviewRead(BaseModel):
    """Everything the student portal needs to render the rescheduling page."""

    enrollment: PrivateEnrollmentRead | None
    future_classes: list[FutureClassRead]
    requests: list[RescheduleRequestRead]
    pending_requests_in_window: int
    active_requests_in_window: int = 0
    max_pending_requests: int


class RescheduleRequestFilters(BaseModel):
    status: RescheduleStatusEnum | None = None
    cohort_id: UUID | None = None
    student_id: UUID | None = None
