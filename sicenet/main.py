# sicenet/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from sicenet.api.health import router as health_router
from sicenet.api.sicenet import router as sicenet_router
from sicenet.clients.sicenet_client import SicenetClient
from sicenet.core.config import settings
from sicenet.core.errors import (
    SicenetError,
    http_exception_handler,
    sicenet_exception_handler,
    validation_exception_handler,
)
from sicenet.core.session_store import build_cookie_store
from sicenet.middlewares.access_log import AccessLogMiddleware


def configure_logging() -> None:
    root = logging.getLogger()
    root.setLevel(settings.log_level.upper())
    # uvicorn 已经挂了 handler 的话就不重复加
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
        root.addHandler(handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    # 进程内只有一个 SICENET 会话：client 全局一份，cookie 存储按配置选 file / redis
    app.state.sicenet_client = SicenetClient(build_cookie_store())
    yield


app = FastAPI(
    title="SICENET Hub",
    lifespan=lifespan,
)

# middleware
app.add_middleware(AccessLogMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# exception handlers
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(SicenetError, sicenet_exception_handler)

# routers
app.include_router(health_router)
app.include_router(sicenet_router)
