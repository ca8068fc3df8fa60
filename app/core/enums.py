"""Core enums used across modules."""

from enum import StrEnum


class RoleEnum(StrEnum):
    """System roles."""

    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"


class ProductFormatEnum(StrEnum):
    """Delivery format of a course product."""

    PRIVATE = "private"
    GROUP = "group"
    HYBRID = "hybrid"


class EnrollmentStatusEnum(StrEnum):
    """Enrollment lifecycle status."""

    INTERESTED = "interested"
    PAID = "paid"
    WELCOME_PACKAGE_SENT = "welcome_package_sent"
    DROPPED = "dropped"
    DECLINED = "declined"


ACTIVE_ENROLLMENT_STATUSES = (
    EnrollmentStatusEnum.PAID,
    EnrollmentStatusEnum.WELCOME_PACKAGE_SENT,
)


class RescheduleStatusEnum(StrEnum):
    """Reschedule request status. Only PENDING is non-terminal."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class NotificationStatusEnum(StrEnum):
    """Notification delivery status."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class OutboxStatusEnum(StrEnum):
    """Outbox event status for integration publishing."""

    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"
