"""Rescheduling ORM models."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, BaseModelMixin, str_enum
from app.core.enums import RescheduleStatusEnum

if TYPE_CHECKING:
    from app.modules.cohorts.models import Cohort
    from app.modules.students.models import Student


class RescheduleRequest(BaseModelMixin, Base):
    """Student request to move one concrete class occurrence."""

    __tablename__ = "reschedule_requests"
    __table_args__ = (
        # At most one non-cancelled request per concrete class occurrence.
        Index(
            "uq_reschedule_requests_active_class",
            "student_id",
            "cohort_id",
            "original_class_date",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
        ),
        Index("ix_reschedule_requests_student_status_created", "student_id", "status", "created_at"),
    )

    student_id: Mapped[UUID] = mapped_column(
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    cohort_id: Mapped[UUID] = mapped_column(
        ForeignKey("cohorts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    original_class_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    proposed_datetime: Mapped[str] = mapped_column(String(255), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[RescheduleStatusEnum] = mapped_column(
        str_enum(RescheduleStatusEnum, "reschedule_status_enum"),
        default=RescheduleStatusEnum.PENDING,
        nullable=False,
        index=True,
    )
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    student: Mapped["Student"] = relationship()
    cohort: Mapped["Cohort"] = relationship()
