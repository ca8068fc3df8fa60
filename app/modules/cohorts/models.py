"""Cohorts ORM models: products, cohorts, weekly sessions and enrollments."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Date, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, BaseModelMixin, str_enum
from app.core.enums import EnrollmentStatusEnum, ProductFormatEnum

if TYPE_CHECKING:
    from app.modules.students.models import Student
    from app.modules.teachers.models import Teacher


class Product(BaseModelMixin, Base):
    """Sellable course product; its format decides rescheduling eligibility."""

    __tablename__ = "products"

    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    format: Mapped[ProductFormatEnum] = mapped_column(
        str_enum(ProductFormatEnum, "product_format_enum"),
        nullable=False,
        index=True,
    )

    cohorts: Mapped[list["Cohort"]] = relationship(back_populates="product")


class Cohort(BaseModelMixin, Base):
    """Group of students sharing a class schedule."""

    __tablename__ = "cohorts"

    product_id: Mapped[UUID] = mapped_column(
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    nickname: Mapped[str | None] = mapped_column(String(255), nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    product: Mapped[Product] = relationship(back_populates="cohorts")
    weekly_sessions: Mapped[list["WeeklySession"]] = relationship(
        back_populates="cohort",
        order_by="WeeklySession.created_at",
    )
    enrollments: Mapped[list["Enrollment"]] = relationship(back_populates="cohort")

    @property
    def display_label(self) -> str:
        """Human label used in notifications."""
        if self.nickname:
            return self.nickname
        if self.product is not None and self.product.display_name:
            return self.product.display_name
        return "Private Class"


class WeeklySession(BaseModelMixin, Base):
    """Recurring weekly class slot of a cohort (school-local wall clock)."""

    __tablename__ = "weekly_sessions"

    cohort_id: Mapped[UUID] = mapped_column(
        ForeignKey("cohorts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    teacher_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("teachers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    day_of_week: Mapped[str | None] = mapped_column(String(16), nullable=True)
    start_time: Mapped[str | None] = mapped_column(String(8), nullable=True)
    end_time: Mapped[str | None] = mapped_column(String(8), nullable=True)

    cohort: Mapped[Cohort] = relationship(back_populates="weekly_sessions")
    teacher: Mapped["Teacher | None"] = relationship(back_populates="weekly_sessions")


class Enrollment(BaseModelMixin, Base):
    """Student enrollment in a cohort."""

    __tablename__ = "enrollments"
    __table_args__ = (UniqueConstraint("student_id", "cohort_id", name="uq_enrollments_student_cohort"),)

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
    status: Mapped[EnrollmentStatusEnum] = mapped_column(
        str_enum(EnrollmentStatusEnum, "enrollment_status_enum"),
        default=EnrollmentStatusEnum.INTERESTED,
        nullable=False,
        index=True,
    )

    student: Mapped["Student"] = relationship(back_populates="enrollments")
    cohort: Mapped[Cohort] = relationship(back_populates="enrollments")
