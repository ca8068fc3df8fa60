"""Students repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.students.models import Student


class StudentsRepository:
    """DB operations for students domain."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_student_by_user_id(self, user_id: UUID) -> Student | None:
        stmt = select(Student).where(Student.user_id == user_id)
        return await self.session.scalar(stmt)

    async def get_student_by_id(self, student_id: UUID) -> Student | None:
        stmt = select(Student).where(Student.id == student_id)
        return await self.session.scalar(stmt)

    async def lock_student(self, student_id: UUID) -> None:
        """Take a row lock that serializes request creation for one student."""
        stmt = select(Student.id).where(Student.id == student_id).with_for_update()
        await self.session.execute(stmt)
