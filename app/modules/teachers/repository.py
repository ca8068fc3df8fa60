"""Teachers repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.teachers.models import Teacher


class TeachersRepository:
    """DB operations for teachers domain."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_teacher_by_user_id(self, user_id: UUID) -> Teacher | None:
        stmt = select(Teacher).where(Teacher.user_id == user_id)
        return await self.session.scalar(stmt)
