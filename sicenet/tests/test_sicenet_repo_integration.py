import os
import uuid

import pytest
import pytest_asyncio

from sicenet.core.db import AsyncSessionLocal, engine
from sicenet.db.base import Base
from sicenet.models import sicenet_models  # noqa: F401
from sicenet.repositories.sicenet_repo import SicenetRepo
from sicenet.schemas.sicenet import CourseLoadEntry, StudentProfile, UnitGradeEntry

pytestmark = pytest.mark.integration


@pytest.fixture(autouse=True)
def _require_db():
    if not os.getenv("DATABASE_URL"):
        pytest.skip("DATABASE_URL not set")


@pytest_asyncio.fixture(autouse=True)
async def _dispose_engine(_require_db):
    # 每个用例一个事件循环，连接池不能跨循环复用
    yield
    await engine.dispose()


async def _fresh_student_id() -> str:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return f"T{uuid.uuid4().hex[:10]}"


@pytest.mark.asyncio
async def test_list_save_replaces_rows_and_creates_stub_profile():
    sid = await _fresh_student_id()

    async with AsyncSessionLocal() as session:
        repo = SicenetRepo(session)
        await repo.save_course_load(sid, [CourseLoadEntry(clv_oficial="A"), CourseLoadEntry(clv_oficial="B")])
        await repo.save_course_load(sid, [CourseLoadEntry(clv_oficial="C", creditos=5)])
        await session.commit()

    async with AsyncSessionLocal() as session:
        repo = SicenetRepo(session)
        rows = await repo.get_course_load_by_student_id(sid)
        assert [(r.clv_oficial, r.creditos, r.student_id) for r in rows] == [("C", 5, sid)]
        assert rows[0].last_updated is not None

        profile = await repo.get_profile_by_student_id(sid)
        assert profile is not None
        assert profile.name == ""


@pytest.mark.asyncio
async def test_profile_upsert_and_unit_grades():
    sid = await _fresh_student_id()

    async with AsyncSessionLocal() as session:
        repo = SicenetRepo(session)
        await repo.save_unit_grades(sid, [UnitGradeEntry(clv_oficial="X", unidad=2, calificacion=88.5)])
        await repo.save_profile(StudentProfile(student_id=sid, name="ANA", curriculum_code=3))
        await repo.save_profile(StudentProfile(student_id=sid, name="ANA MARIA", curriculum_code=4))
        await session.commit()

    async with AsyncSessionLocal() as session:
        repo = SicenetRepo(session)
        profile = await repo.get_profile_by_student_id(sid)
        assert profile.name == "ANA MARIA"
        assert profile.curriculum_code == 4

        grades = await repo.get_unit_grades_by_student_id(sid)
        assert [(g.unidad, g.calificacion) for g in grades] == [(2, 88.5)]


@pytest.mark.asyncio
async def test_profile_without_student_id_is_skipped():
    async with AsyncSessionLocal() as session:
        await SicenetRepo(session).save_profile(StudentProfile(name="nobody"))
        assert await SicenetRepo(session).get_profile_by_student_id("") is None
