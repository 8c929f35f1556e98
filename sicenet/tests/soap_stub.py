# sicenet/tests/soap_stub.py
"""测试共用的桩：内存 cookie 存储 + asmx 风格的响应拼装"""
from __future__ import annotations

from html import escape
from typing import Iterable, Set

import httpx

from sicenet.clients.sicenet_client import SicenetClient

BASE_URL = "https://sicenet.test"

class MemoryCookieStore:
    """测试用 CookieStore：只放内存；load 返回副本，和真实存储一样不能被调用方改到"""

    def __init__(self, initial: Iterable[str] = ()) -> None:
        self.cookies: Set[str] = set(initial)
        self.saves = 0
        self.clears = 0

    async def load(self) -> Set[str]:
        return set(self.cookies)

    async def save(self, cookies: Iterable[str]) -> None:
        self.saves += 1
        self.cookies = set(cookies)

    async def clear(self) -> None:
        self.clears += 1
        self.cookies = set()


def soap_envelope(result_tag: str, inner: str, *, escape_inner: bool = True) -> str:
    """
    拼一个 asmx 风格的响应：JSON 文本作为 <xxxResult> 的字符内容（默认做 XML 转义，和线上一致）
    """
    body = escape(inner, quote=False) if escape_inner else inner
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/">'
        "<soap:Body>"
        f'<{result_tag[:-len("Result")]}Response xmlns="http://tempuri.org/">'
        f"<{result_tag}>{body}</{result_tag}>"
        f'</{result_tag[:-len("Result")]}Response>'
        "</soap:Body>"
        "</soap:Envelope>"
    )


def soap_fault(message: str) -> str:
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/">'
        "<soap:Body><soap:Fault>"
        "<faultcode>soap:Server</faultcode>"
        f"<faultstring>{escape(message)}</faultstring>"
        "</soap:Fault></soap:Body></soap:Envelope>"
    )


def make_client(handler, store: MemoryCookieStore | None = None) -> SicenetClient:
    return SicenetClient(
        store if store is not None else MemoryCookieStore(),
        transport=httpx.MockTransport(handler),
        base_url=BASE_URL,
    )

