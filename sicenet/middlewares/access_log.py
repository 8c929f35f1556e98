# sicenet/middlewares/access_log.py
"""请求 ID + 访问日志（纯 ASGI 中间件）

- 入站带 X-Request-ID 就沿用，否则生成一个；写进 scope["state"]，
  错误处理器里的 request.state.request_id 就是它
- 请求体里的 password / secret 一律打码后再记
"""
from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger("api.access")

REQUEST_ID_HEADER = "X-Request-ID"
MASKED_FIELDS = frozenset({"password", "secret", "strContrasenia"})
MAX_LOGGED_BODY = 2000


def mask_secrets(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: ("***" if k in MASKED_FIELDS else mask_secrets(v)) for k, v in value.items()}
    if isinstance(value, list):
        return [mask_secrets(v) for v in value]
    return value


def _as_json(raw: bytes) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return None


def _clip(text: str) -> str:
    if len(text) > MAX_LOGGED_BODY:
        return text[:MAX_LOGGED_BODY] + "...[截断]"
    return text


class AccessLogMiddleware:
    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        rid = headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        scope.setdefault("state", {})["request_id"] = rid

        method = scope.get("method", "")
        path = scope.get("path", "")
        query = scope.get("query_string", b"").decode("latin-1")
        started = time.perf_counter()

        request_body: list[bytes] = []
        response_body: list[bytes] = []
        status = 0

        async def receive_wrapper() -> Message:
            message = await receive()
            if message["type"] == "http.request" and message.get("body"):
                request_body.append(message["body"])
            return message

        async def send_wrapper(message: Message) -> None:
            nonlocal status
            if message["type"] == "http.response.start":
                status = message.get("status", 0)
                MutableHeaders(scope=message)[REQUEST_ID_HEADER] = rid
            elif message["type"] == "http.response.body" and message.get("body"):
                response_body.append(message["body"])
            await send(message)

        logger.info(">>> %s %s%s [%s]", method, path, f"?{query}" if query else "", rid)

        try:
            await self.app(scope, receive_wrapper, send_wrapper)
        finally:
            elapsed = time.perf_counter() - started

            if method in ("POST", "PUT", "PATCH"):
                body = _as_json(b"".join(request_body))
                if body is not None:
                    logger.debug("    Body: %s", json.dumps(mask_secrets(body), ensure_ascii=False))

            line = f"<<< {method} {path} | Status: {status} | Time: {elapsed:.3f}s [{rid}]"
            resp = _as_json(b"".join(response_body))
            if isinstance(resp, (dict, list)):
                line += "\n" + _clip(json.dumps(mask_secrets(resp), ensure_ascii=False, indent=2))
            logger.info(line)
