# sicenet/core/db.py
from __future__ import annotations

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from sicenet.core.config import settings


def build_engine(url: str | None = None, *, echo: bool | None = None) -> AsyncEngine:
    # 本地缓存库可能长时间没人访问，取连接前先 ping 一下
    return create_async_engine(
        url or settings.database_url,
        echo=settings.database_echo if echo is None else echo,
        pool_pre_ping=True,
    )


engine = build_engine()

AsyncSessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    路由用 Depends(get_session)；commit 由 service 决定，这里只兜底 rollback
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
