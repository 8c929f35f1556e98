from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable, Optional, Protocol, Set

import redis.asyncio as aioredis
from redis.asyncio import Redis

from sicenet.core.config import Settings, settings as default_settings

logger = logging.getLogger("sicenet.cookies")


class CookieStore(Protocol):
    """
    会话 cookie 的持久化槽位：原样保存 Set-Cookie 头字符串的集合

    - 不解析 name/value/attributes，也不做过期判断
    - clear() 之后 load() 必须返回空集合
    """

    async def load(self) -> Set[str]: ...

    async def save(self, cookies: Iterable[str]) -> None: ...

    async def clear(self) -> None: ...


def redis_from_settings(cfg: Settings | None = None) -> Redis:
    cfg = cfg or default_settings
    if cfg.redis_url:
        # URL 方式：支持 redis:// 和 rediss://
        return aioredis.from_url(cfg.redis_url, decode_responses=cfg.redis_decode_responses)

    # 字段方式：cookie 只存在本机 Redis 时允许无密码
    return aioredis.Redis(
        host=cfg.redis_host,
        port=cfg.redis_port,
        db=cfg.redis_db,
        username=cfg.redis_username,
        password=cfg.redis_password,
        ssl=cfg.redis_ssl,
        decode_responses=cfg.redis_decode_responses,
    )


class RedisCookieStore:
    """
    用一个 Redis SET 存 cookie（key 默认 sicenet:cookies）

    - save 是整体替换：DELETE + SADD 放在同一个事务 pipeline 里
    - 不设 TTL，会话寿命跟服务端自己的一致
    """

    def __init__(self, *, redis: Optional[Redis] = None, key: Optional[str] = None) -> None:
        self._redis = redis if redis is not None else redis_from_settings()
        self._key = key or default_settings.sicenet_cookie_key

    async def load(self) -> Set[str]:
        members = await self._redis.smembers(self._key)
        out: Set[str] = set()
        for m in members or ():
            out.add(m.decode("utf-8") if isinstance(m, bytes) else str(m))
        return out

    async def save(self, cookies: Iterable[str]) -> None:
        values = [c for c in cookies if c]
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.delete(self._key)
            if values:
                pipe.sadd(self._key, *values)
            await pipe.execute()

    async def clear(self) -> None:
        await self._redis.delete(self._key)


class FileCookieStore:
    """
    单机落盘版本：JSON 数组写在应用自己的目录里

    - 写入走 临时文件 + os.replace，进程中途挂掉也不会留下半个文件
    - 文件不存在/内容坏了，一律当作空会话
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> Set[str]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return set()

        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("cookie 文件内容损坏，按空会话处理: %s", self._path)
            return set()

        if not isinstance(data, list):
            return set()
        return {str(x) for x in data if x}

    def _write(self, cookies: Set[str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".cookies-", dir=str(self._path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(sorted(cookies), f, ensure_ascii=False)
            os.replace(tmp, self._path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def _remove(self) -> None:
        self._path.unlink(missing_ok=True)

    async def load(self) -> Set[str]:
        return await asyncio.to_thread(self._read)

    async def save(self, cookies: Iterable[str]) -> None:
        await asyncio.to_thread(self._write, {c for c in cookies if c})

    async def clear(self) -> None:
        await asyncio.to_thread(self._remove)


def build_cookie_store(cfg: Settings | None = None) -> CookieStore:
    cfg = cfg or default_settings
    backend = (cfg.sicenet_cookie_backend or "file").strip().lower()

    if backend == "redis":
        return RedisCookieStore(redis=redis_from_settings(cfg), key=cfg.sicenet_cookie_key)
    if backend == "file":
        return FileCookieStore(cfg.sicenet_cookie_file)

    raise ValueError(f"未知的 SICENET_COOKIE_BACKEND: {cfg.sicenet_cookie_backend!r}")
