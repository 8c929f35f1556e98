from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


def _now():
    return datetime.now(timezone.utc).isoformat()


class SicenetError(Exception):
    """SICENET 访问层异常基类；reason 是给前端/调用方用的稳定错误码"""

    reason = "SICENET_ERROR"
    status_code = 500

    def __init__(self, message: str = "", *, reason: Optional[str] = None) -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        if reason:
            self.reason = reason


class NetworkError(SicenetError):
    """传输层失败：连接/读/写超时、DNS、TLS"""

    reason = "NETWORK_ERROR"
    status_code = 503


class ProtocolError(SicenetError):
    """HTTP 状态码不是 2xx，或者响应体是 SOAP Fault"""

    reason = "PROTOCOL_ERROR"
    status_code = 502

    def __init__(
            self,
            message: str = "",
            *,
            http_status: Optional[int] = None,
            fault: Optional[str] = None,
            reason: Optional[str] = None,
    ) -> None:
        super().__init__(message, reason=reason)
        self.http_status = http_status
        self.fault = fault


class DecodeError(SicenetError):
    reason = "DECODE_ERROR"
    status_code = 502


class CredentialsRejected(SicenetError):
    """服务端正常响应，但 acceso=false"""

    reason = "CREDENTIALS_REJECTED"
    status_code = 401


class NotAuthenticated(SicenetError):
    reason = "NOT_AUTHENTICATED"
    status_code = 401


class OperationInFlight(SicenetError):
    """同一个 client 上同一种操作还没返回，又来了一次调用"""

    reason = "OPERATION_IN_FLIGHT"
    status_code = 409


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": exc.detail,
            "path": str(request.url.path),
            "requestId": getattr(request.state, "request_id", None),
            "timestamp": _now(),
        },
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "message": "参数校验失败",
            "errors": exc.errors(),
            "path": str(request.url.path),
            "requestId": getattr(request.state, "request_id", None),
            "timestamp": _now(),
        },
    )


async def sicenet_exception_handler(request: Request, exc: SicenetError):
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": exc.message,
            "reason": exc.reason,
            "path": str(request.url.path),
            "requestId": getattr(request.state, "request_id", None),
            "timestamp": _now(),
        },
    )
