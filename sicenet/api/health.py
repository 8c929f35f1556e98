from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from sicenet.core.db import get_session

router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("/liveness")
async def liveness():
    # 进程活着就算 OK（给 k8s/ALB 用）
    return {"status": "ok"}


@router.get("/readiness")
async def readiness(request: Request, session: AsyncSession = Depends(get_session)):
    # 依赖就绪：DB 能查 + cookie 存储能读
    await session.execute(text("SELECT 1"))
    await request.app.state.sicenet_client.cookie_store.load()
    return {"status": "ok", "db": "ok", "cookieStore": "ok"}
