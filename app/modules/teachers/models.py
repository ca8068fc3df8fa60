"""Teachers ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, BaseModelMixin

if TYPE_CHECKING:
    from app.modules.cohorts.models import WeeklySession
    from app.modules.identity.models import User


class Teacher(BaseModelMixin, Base):
    """Teacher record; the contact address lives on the linked user account."""

    __tablename__ = "teachers"

    user_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        unique=True,
        nullable=True,
    )
    first_name: Mapped[str] = mapped_column(String(128), default="", nullable=False)
    last_name: Mapped[str] = mapped_column(String(128), default="", nullable=False)

    user: Mapped["User | None"] = relationship(back_populates="teacher")
    weekly_sessions: Mapped[list["WeeklySession"]] = relationship(back_populates="teacher")

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
