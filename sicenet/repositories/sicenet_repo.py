from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from sicenet.db.base import Base
from sicenet.models.sicenet_models import (
    SicenetCourseLoad,
    SicenetFinalGrade,
    SicenetProfile,
    SicenetTranscript,
    SicenetUnitGrade,
)
from sicenet.schemas.sicenet import (
    CourseLoadEntry,
    FinalGradeEntry,
    StudentProfile,
    TranscriptEntry,
    UnitGradeEntry,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=BaseModel)

# 这两个字段由持久层负责填，解析器产出的值不算数
_OWNED_FIELDS = {"student_id", "last_updated"}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _columns(entry: BaseModel) -> dict:
    return entry.model_dump(exclude=_OWNED_FIELDS)


def _to_schema(schema: Type[E], row: Base) -> E:
    return schema(**{name: getattr(row, name) for name in schema.model_fields})


class SicenetRepo:
    """
    本地缓存（离线兜底）

    - 都以 student_id 为键；列表类数据按学生整体覆盖，重复保存结果一样
    - 只 flush 不 commit，事务由调用方（service）控制
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def ensure_profile(self, student_id: str) -> SicenetProfile:
        """
        确保 sicenet_profile 有这一行，列表数据先于 profile 保存时也不会撞外键
        """
        obj = await self.session.get(SicenetProfile, student_id)
        if obj is None:
            obj = SicenetProfile(student_id=student_id)
            self.session.add(obj)
            await self.session.flush()
        return obj

    # ========= Profile =========
    async def save_profile(self, profile: StudentProfile) -> None:
        if not profile.student_id:
            logger.warning("学业概要没有学号，跳过保存")
            return

        obj = await self.ensure_profile(profile.student_id)
        for name, value in _columns(profile).items():
            setattr(obj, name, value)
        obj.last_updated = utc_now()
        await self.session.flush()
        logger.debug("学业概要已保存: %s", profile.student_id)

    async def get_profile_by_student_id(self, student_id: str) -> Optional[StudentProfile]:
        obj = await self.session.get(SicenetProfile, student_id)
        if obj is None:
            return None
        return _to_schema(StudentProfile, obj)

    # ========= 列表类：整体覆盖 =========
    async def _replace_rows(self, model: Type[Base], student_id: str, entries: Sequence[BaseModel]) -> int:
        await self.ensure_profile(student_id)
        await self.session.execute(delete(model).where(model.student_id == student_id))

        now = utc_now()
        for entry in entries:
            self.session.add(model(student_id=student_id, last_updated=now, **_columns(entry)))
        await self.session.flush()
        return len(entries)

    async def _rows(self, model: Type[Base], schema: Type[E], student_id: str) -> List[E]:
        q = select(model).where(model.student_id == student_id)
        rows = (await self.session.execute(q)).scalars().all()
        return [_to_schema(schema, r) for r in rows]

    async def save_course_load(self, student_id: str, entries: Sequence[CourseLoadEntry]) -> None:
        n = await self._replace_rows(SicenetCourseLoad, student_id, entries)
        logger.debug("课程负载已保存: %s (%d 门)", student_id, n)

    async def get_course_load_by_student_id(self, student_id: str) -> List[CourseLoadEntry]:
        return await self._rows(SicenetCourseLoad, CourseLoadEntry, student_id)

    async def save_transcript(self, student_id: str, entries: Sequence[TranscriptEntry]) -> None:
        n = await self._replace_rows(SicenetTranscript, student_id, entries)
        logger.debug("卡德克斯已保存: %s (%d 门)", student_id, n)

    async def get_transcript_by_student_id(self, student_id: str) -> List[TranscriptEntry]:
        return await self._rows(SicenetTranscript, TranscriptEntry, student_id)

    async def save_unit_grades(self, student_id: str, entries: Sequence[UnitGradeEntry]) -> None:
        n = await self._replace_rows(SicenetUnitGrade, student_id, entries)
        logger.debug("单元成绩已保存: %s (%d 条)", student_id, n)

    async def get_unit_grades_by_student_id(self, student_id: str) -> List[UnitGradeEntry]:
        return await self._rows(SicenetUnitGrade, UnitGradeEntry, student_id)

    async def save_final_grades(self, student_id: str, entries: Sequence[FinalGradeEntry]) -> None:
        n = await self._replace_rows(SicenetFinalGrade, student_id, entries)
        logger.debug("期末成绩已保存: %s (%d 条)", student_id, n)

    async def get_final_grades_by_student_id(self, student_id: str) -> List[FinalGradeEntry]:
        return await self._rows(SicenetFinalGrade, FinalGradeEntry, student_id)
