from __future__ import annotations

import asyncio
import logging
from typing import Optional

import httpx

from sicenet.core.session_store import CookieStore

logger = logging.getLogger("sicenet.cookies")

# 请求发出时所属的会话代次，记在 request.extensions 里，响应回来时比对
EPOCH_EXTENSION = "sicenet_session_epoch"


class CookieHooks:
    """
    不用 httpx 自带的 cookie jar，改成两个 event hook 手动维护会话：

    - attach（request hook）：把存储里的每一条 cookie 原样作为一个独立的 Cookie 头发出去
      （不合并成一个头；SICENET 能接受多个 Cookie 头）
    - capture（response hook）：把响应里所有 Set-Cookie 并进存储（读-改-写，取并集）

    lock 和 client 的 clear_session 共用，保证第 N 个响应的 cookie 落盘之后
    第 N+1 个请求才会去读存储。

    每次清空会话，epoch 加一。清空之前发出的请求，响应回来得晚了，
    它带的 Set-Cookie 属于上一个会话，直接丢掉，不能混进新会话。
    """

    def __init__(self, store: CookieStore, lock: asyncio.Lock, *, host: Optional[str] = None) -> None:
        self._store = store
        self._lock = lock
        self._host = (host or "").lower() or None
        self._epoch = 0

    @property
    def epoch(self) -> int:
        return self._epoch

    def new_session(self) -> int:
        """调用方必须已经持有 lock（和清空存储放在同一个临界区里）"""
        self._epoch += 1
        return self._epoch

    def _in_scope(self, url: httpx.URL) -> bool:
        # 只对 SICENET 自己的域名生效，别把会话 cookie 带到别的站
        return self._host is None or url.host.lower() == self._host

    async def attach(self, request: httpx.Request) -> None:
        if not self._in_scope(request.url):
            return

        async with self._lock:
            request.extensions[EPOCH_EXTENSION] = self._epoch
            cookies = await self._store.load()
        if not cookies:
            return

        items = list(request.headers.multi_items())
        for cookie in sorted(cookies):
            items.append(("Cookie", cookie))
            logger.debug("附加 cookie: %s", cookie)
        request.headers = httpx.Headers(items)

    async def capture(self, response: httpx.Response) -> None:
        if not self._in_scope(response.request.url):
            return

        received = response.headers.get_list("set-cookie")
        if not received:
            return

        async with self._lock:
            sent_in = response.request.extensions.get(EPOCH_EXTENSION)
            if sent_in != self._epoch:
                logger.info("丢弃上一个会话的 Set-Cookie: %d 条 (epoch %s -> %d)", len(received), sent_in, self._epoch)
                return

            cookies = await self._store.load()
            for header in received:
                cookies.add(header)
                logger.debug("收到 cookie: %s", header)
            await self._store.save(cookies)

        logger.info("cookie 已保存: %d 条", len(cookies))

    def event_hooks(self) -> dict[str, list]:
        return {"request": [self.attach], "response": [self.capture]}
