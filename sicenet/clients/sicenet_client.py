# sicenet/clients/sicenet_client.py
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional
from urllib.parse import urlsplit

import httpx

from sicenet.clients import envelopes
from sicenet.clients.cookie_hooks import CookieHooks
from sicenet.clients.envelopes import SoapOperation
from sicenet.core.config import settings
from sicenet.core.errors import NetworkError, OperationInFlight, ProtocolError
from sicenet.core.session_store import CookieStore
from sicenet.schemas.sicenet import (
    CourseLoadEntry,
    FinalGradeEntry,
    LoginResult,
    StudentProfile,
    TranscriptEntry,
    TranscriptReport,
    UnitGradeEntry,
)
from sicenet.utils import payload_parser as parser
from sicenet.utils.soap import extract_text, find_fault

logger = logging.getLogger(__name__)

_LOG_SAMPLE = 500


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


class SicenetClient:
    """
    SICENET SOAP 访问层（会话 + 提取）

    - 每次调用新建一个 httpx.AsyncClient，不用它的 cookie jar；会话只存在 CookieStore 里
    - follow_redirects=False：asmx 不该跳转，跳了就当协议错误
    - transport：仅用于测试注入（MockTransport / 自定义 transport）
    - 同一个实例上，同一种操作同时只能有一个在跑，重叠的调用直接抛 OperationInFlight
    """

    def __init__(
            self,
            cookie_store: CookieStore,
            *,
            transport: httpx.AsyncBaseTransport | None = None,
            base_url: Optional[str] = None,
            service_path: Optional[str] = None,
            connect_timeout: Optional[float] = None,
            read_timeout: Optional[float] = None,
            write_timeout: Optional[float] = None,
            verify: Optional[bool] = None,
    ) -> None:
        self._base_url = (base_url or settings.sicenet_base_url).rstrip("/")
        self._service_path = service_path or settings.sicenet_service_path

        self._connect_timeout = connect_timeout if connect_timeout is not None else settings.sicenet_connect_timeout
        self._read_timeout = read_timeout if read_timeout is not None else settings.sicenet_read_timeout
        self._write_timeout = write_timeout if write_timeout is not None else settings.sicenet_write_timeout

        self._verify = verify if verify is not None else not settings.sicenet_insecure_skip_verify
        self._transport = transport

        self._store = cookie_store
        self._cookie_lock = asyncio.Lock()
        self._hooks = CookieHooks(cookie_store, self._cookie_lock, host=urlsplit(self._base_url).hostname)

        self._inflight: set[str] = set()
        self._state = SessionState.UNAUTHENTICATED
        self._student_id = ""

    # -----------------------------
    # 会话状态
    # -----------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_authenticated(self) -> bool:
        return self._state is SessionState.AUTHENTICATED

    @property
    def student_id(self) -> str:
        return self._student_id

    @property
    def cookie_store(self) -> CookieStore:
        return self._store

    async def clear_session(self) -> None:
        async with self._cookie_lock:
            await self._store.clear()
            self._hooks.new_session()
        self._state = SessionState.UNAUTHENTICATED
        self._student_id = ""
        logger.info("SICENET 会话 cookie 已清空")

    @asynccontextmanager
    async def _single_flight(self, name: str) -> AsyncIterator[None]:
        if name in self._inflight:
            raise OperationInFlight(f"{name} 正在进行中，忽略重复调用")
        self._inflight.add(name)
        try:
            yield
        finally:
            self._inflight.discard(name)

    # -----------------------------
    # HTTP
    # -----------------------------

    def _timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            connect=self._connect_timeout,
            read=self._read_timeout,
            write=self._write_timeout,
            pool=self._connect_timeout,
        )

    def _client_kwargs(self, extra_headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        headers = {
            "User-Agent": settings.sicenet_user_agent,
            "Accept": "text/xml, application/soap+xml, */*",
        }
        if extra_headers:
            headers.update(extra_headers)

        kw: Dict[str, Any] = {
            "base_url": self._base_url,
            "timeout": self._timeout(),
            "follow_redirects": False,
            "verify": self._verify,
            "headers": headers,
            "event_hooks": self._hooks.event_hooks(),
        }

        if self._transport is not None:
            kw["transport"] = self._transport

        return kw

    async def _call(self, operation: SoapOperation, *args: Any) -> str:
        """渲染请求体 -> POST -> 校验状态码/SOAP Fault -> 取结果标签里的文本"""
        body = envelopes.render(operation, *args)

        try:
            async with httpx.AsyncClient(**self._client_kwargs(operation.headers)) as client:
                resp = await client.post(self._service_path, content=envelopes.encode_body(body))
        except httpx.RequestError as e:
            logger.error("SICENET %s 网络错误: %s", operation.name, e)
            raise NetworkError(f"无法连接 SICENET: {e}") from e

        text = resp.text or ""
        logger.debug("SICENET %s 响应 %s: %s", operation.name, resp.status_code, text[:_LOG_SAMPLE])

        fault = find_fault(text)
        if not resp.is_success:
            raise ProtocolError(
                f"SICENET {operation.name} 返回 HTTP {resp.status_code}",
                http_status=resp.status_code,
                fault=fault,
            )
        if fault is not None:
            raise ProtocolError(
                f"SICENET {operation.name} SOAP Fault: {fault}",
                http_status=resp.status_code,
                fault=fault,
            )

        return extract_text(text, operation.result_tag)

    # -----------------------------
    # 六个操作
    # -----------------------------

    async def login(self, student_id: str, secret: str) -> LoginResult:
        """
        登录前必须先清掉旧 cookie：
        上一个账号的会话 cookie 要是跟着新的登录请求发出去，服务端可能直接沿用旧会话。
        """
        async with self._single_flight("login"):
            await self.clear_session()
            logger.info("SICENET 登录: %s", student_id)

            inner = await self._call(envelopes.LOGIN, student_id, secret)
            result = parser.parse_login(inner)

            if not result.granted:
                logger.info("SICENET 登录被拒绝: %s", student_id)
                return result

            if not result.student_id:
                result = result.model_copy(update={"student_id": student_id})
            self._state = SessionState.AUTHENTICATED
            self._student_id = result.student_id
            return result

    async def get_profile(self) -> StudentProfile:
        async with self._single_flight("profile"):
            epoch = self._hooks.epoch
            inner = await self._call(envelopes.PROFILE)
            profile = parser.parse_profile(inner)

            # 重启后靠存下来的 cookie 续上会话时，不知道是谁；profile 能取到就认下这个学号
            # 调用期间会话被清过（登出/换号）就不认
            if profile.student_id and not self._student_id and epoch == self._hooks.epoch:
                self._student_id = profile.student_id
                self._state = SessionState.AUTHENTICATED
                logger.info("从学业概要恢复会话学号: %s", profile.student_id)
            return profile

    async def get_course_load(self) -> List[CourseLoadEntry]:
        async with self._single_flight("course_load"):
            inner = await self._call(envelopes.COURSE_LOAD)
            return parser.parse_course_load(inner, self._student_id)

    async def get_transcript_report(self, curriculum_code: int) -> TranscriptReport:
        async with self._single_flight("transcript"):
            inner = await self._call(envelopes.TRANSCRIPT, int(curriculum_code))
            return TranscriptReport(
                entries=parser.parse_transcript(inner, self._student_id),
                average=parser.parse_transcript_average(inner),
            )

    async def get_transcript(self, curriculum_code: int) -> List[TranscriptEntry]:
        report = await self.get_transcript_report(curriculum_code)
        return report.entries

    async def get_unit_grades(self) -> List[UnitGradeEntry]:
        async with self._single_flight("unit_grades"):
            inner = await self._call(envelopes.UNIT_GRADES)
            return parser.parse_unit_grades(inner, self._student_id)

    async def get_final_grades(self, education_model_code: int) -> List[FinalGradeEntry]:
        async with self._single_flight("final_grades"):
            inner = await self._call(envelopes.FINAL_GRADES, int(education_model_code))
            return parser.parse_final_grades(inner, self._student_id)
