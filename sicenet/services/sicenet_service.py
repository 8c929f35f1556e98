from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from fastapi import Depends, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from sicenet.clients.sicenet_client import SicenetClient
from sicenet.core.config import settings
from sicenet.core.db import get_session
from sicenet.core.errors import CredentialsRejected, NetworkError, NotAuthenticated, ProtocolError
from sicenet.repositories.sicenet_repo import SicenetRepo
from sicenet.schemas.sicenet import TranscriptAverage, TranscriptReport

logger = logging.getLogger(__name__)

# 只有这两类错误才走本地缓存兜底；其它错误（解析、并发）原样抛出
_FALLBACK_ERRORS = (NetworkError, ProtocolError)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, (list, tuple)):
        return [_dump(v) for v in value]
    return value


class SicenetService:
    """
    一个进程只有一个 SICENET 会话（client 在 lifespan 里创建），这里负责：
    - 登录结果 -> 业务异常
    - 远端拉取 -> 落库（commit/rollback 在这一层）
    - 远端失败 -> 回退到本地缓存
    """

    def __init__(self, client: SicenetClient, db: AsyncSession, repo: Optional[SicenetRepo] = None) -> None:
        self.client = client
        self.db = db
        self.repo = repo or SicenetRepo(db)

    # -----------------------------
    # 会话
    # -----------------------------

    async def login(self, *, student_id: str, secret: str) -> Dict[str, Any]:
        result = await self.client.login(student_id, secret)
        if not result.granted:
            raise CredentialsRejected("学号或密码错误")

        return {
            "success": True,
            "message": "登录成功",
            "data": _dump(result),
            "timestamp": _utc_now_iso(),
        }

    async def logout(self) -> Dict[str, Any]:
        await self.client.clear_session()
        return {"success": True}

    async def session_info(self) -> Dict[str, Any]:
        cookies = await self.client.cookie_store.load()
        return {
            "success": True,
            "data": {
                "state": self.client.state.value,
                "studentId": self.client.student_id,
                "cookieCount": len(cookies),
            },
        }

    async def _require_session(self) -> None:
        """
        没登录过、存储里也没有 cookie，就不用去打 SICENET 了（本地也查不到是谁的缓存）
        重启后 cookie 还在的情况照常放行，state 虽然是 UNAUTHENTICATED 但会话可能仍然有效
        """
        if self.client.is_authenticated:
            return
        if not await self.client.cookie_store.load():
            raise NotAuthenticated("当前没有 SICENET 登录会话")

    async def _persist(self, save: Callable[[str], Awaitable[None]]) -> None:
        sid = self.client.student_id
        if not sid:
            logger.warning("不知道当前会话属于哪个学号，跳过落库")
            return
        await self._commit(lambda: save(sid))

    async def _commit(self, save: Callable[[], Awaitable[None]]) -> None:
        try:
            await save()
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

    async def _fallback(self, err: Exception, load: Callable[[str], Awaitable[Any]]) -> Dict[str, Any]:
        sid = self.client.student_id
        cached = await load(sid) if sid else None
        if not cached:
            raise err

        logger.warning("SICENET 拉取失败，使用本地缓存: %s", err)
        return {
            "success": True,
            "data": _dump(cached),
            "cached": True,
            "fallback": True,
            "reason": getattr(err, "reason", None),
        }

    # -----------------------------
    # 默认参数：先看本地 profile，再看配置
    # -----------------------------

    async def _default_curriculum_code(self) -> int:
        sid = self.client.student_id
        if sid:
            profile = await self.repo.get_profile_by_student_id(sid)
            if profile and profile.curriculum_code:
                return profile.curriculum_code
        return settings.sicenet_default_curriculum_code

    async def _default_education_model_code(self) -> int:
        sid = self.client.student_id
        if sid:
            profile = await self.repo.get_profile_by_student_id(sid)
            if profile and profile.education_model_code:
                return profile.education_model_code
        return settings.sicenet_default_education_model_code

    # -----------------------------
    # 数据
    # -----------------------------

    async def profile(self) -> Dict[str, Any]:
        await self._require_session()
        try:
            profile = await self.client.get_profile()
        except _FALLBACK_ERRORS as e:
            return await self._fallback(e, self.repo.get_profile_by_student_id)

        if not profile.student_id and self.client.student_id:
            profile = profile.model_copy(update={"student_id": self.client.student_id})
        if profile.student_id:
            await self._commit(lambda: self.repo.save_profile(profile))

        return {"success": True, "data": _dump(profile), "cached": False}

    async def _list(
            self,
            fetch: Callable[[], Awaitable[List[Any]]],
            save: Callable[[str, Sequence[Any]], Awaitable[None]],
            load: Callable[[str], Awaitable[List[Any]]],
    ) -> Dict[str, Any]:
        await self._require_session()
        try:
            entries = await fetch()
        except _FALLBACK_ERRORS as e:
            return await self._fallback(e, load)

        # 空结果不覆盖缓存：SICENET 偶尔会在会话半失效时返回空列表
        if entries:
            await self._persist(lambda sid: save(sid, entries))

        return {"success": True, "data": _dump(entries), "cached": False}

    async def course_load(self) -> Dict[str, Any]:
        return await self._list(
            self.client.get_course_load,
            self.repo.save_course_load,
            self.repo.get_course_load_by_student_id,
        )

    async def transcript(self, *, curriculum_code: Optional[int] = None) -> Dict[str, Any]:
        await self._require_session()
        code = curriculum_code if curriculum_code is not None else await self._default_curriculum_code()

        try:
            report = await self.client.get_transcript_report(code)
        except _FALLBACK_ERRORS as e:
            async def load_report(sid: str) -> Optional[TranscriptReport]:
                entries = await self.repo.get_transcript_by_student_id(sid)
                if not entries:
                    return None
                return TranscriptReport(entries=entries, average=transcript_average_of(entries))

            return await self._fallback(e, load_report)

        if report.entries:
            await self._persist(lambda sid: self.repo.save_transcript(sid, report.entries))

        return {"success": True, "data": _dump(report), "curriculum": code, "cached": False}

    async def unit_grades(self) -> Dict[str, Any]:
        return await self._list(
            self.client.get_unit_grades,
            self.repo.save_unit_grades,
            self.repo.get_unit_grades_by_student_id,
        )

    async def final_grades(self, *, education_model_code: Optional[int] = None) -> Dict[str, Any]:
        code = education_model_code if education_model_code is not None else await self._default_education_model_code()
        out = await self._list(
            lambda: self.client.get_final_grades(code),
            self.repo.save_final_grades,
            self.repo.get_final_grades_by_student_id,
        )
        out["model"] = code
        return out


def transcript_average_of(entries: Sequence[Any]) -> TranscriptAverage:
    """本地缓存里没有存平均分时，按已缓存的数字成绩粗算一个"""
    total = 0.0
    counted = 0
    credits = 0
    for e in entries:
        try:
            grade = float(e.calificacion)
        except (TypeError, ValueError):
            continue
        total += grade
        counted += 1
        credits += e.creditos
    avg = round(total / counted, 2) if counted else 0.0
    return TranscriptAverage(general_average=avg, accumulated_credits=credits, courses_counted=counted)


def get_sicenet_service(request: Request, db: AsyncSession = Depends(get_session)) -> SicenetService:
    return SicenetService(client=request.app.state.sicenet_client, db=db)
