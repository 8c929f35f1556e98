import asyncio

import httpx
import pytest

from sicenet.clients.cookie_hooks import EPOCH_EXTENSION, CookieHooks
from sicenet.tests.soap_stub import MemoryCookieStore


def _hooks(store):
    return CookieHooks(store, asyncio.Lock(), host="sicenet.test")


@pytest.mark.anyio
async def test_attach_adds_one_header_per_cookie():
    store = MemoryCookieStore({"b=2", "a=1; Path=/"})
    request = httpx.Request("POST", "https://sicenet.test/ws/wsalumnos.asmx", headers={"SOAPAction": "x"})

    await _hooks(store).attach(request)

    assert request.headers.get_list("cookie") == ["a=1; Path=/", "b=2"]
    assert request.headers["SOAPAction"] == "x"


@pytest.mark.anyio
async def test_attach_with_empty_store_is_noop():
    request = httpx.Request("POST", "https://sicenet.test/")
    await _hooks(MemoryCookieStore()).attach(request)
    assert "cookie" not in request.headers


@pytest.mark.anyio
async def test_capture_unions_with_existing_cookies():
    store = MemoryCookieStore({"old=1"})
    request = httpx.Request("POST", "https://sicenet.test/")
    hooks = _hooks(store)
    await hooks.attach(request)
    response = httpx.Response(
        200,
        headers=[("Set-Cookie", "new=2"), ("Set-Cookie", "old=1")],
        request=request,
    )

    await hooks.capture(response)

    assert store.cookies == {"old=1", "new=2"}
    assert store.saves == 1


@pytest.mark.anyio
async def test_capture_without_set_cookie_does_not_write():
    store = MemoryCookieStore({"old=1"})
    response = httpx.Response(200, request=httpx.Request("POST", "https://sicenet.test/"))

    await _hooks(store).capture(response)

    assert store.saves == 0


@pytest.mark.anyio
async def test_other_hosts_are_left_alone():
    store = MemoryCookieStore({"sess=abc"})
    hooks = _hooks(store)

    request = httpx.Request("GET", "https://elsewhere.test/")
    await hooks.attach(request)
    assert "cookie" not in request.headers

    await hooks.capture(httpx.Response(200, headers={"Set-Cookie": "evil=1"}, request=request))
    assert store.cookies == {"sess=abc"}


@pytest.mark.anyio
async def test_capture_drops_cookies_from_previous_session():
    store = MemoryCookieStore({"sess=old"})
    lock = asyncio.Lock()
    hooks = CookieHooks(store, lock, host="sicenet.test")

    stale = httpx.Request("POST", "https://sicenet.test/")
    await hooks.attach(stale)
    assert stale.extensions[EPOCH_EXTENSION] == 0

    async with lock:
        await store.clear()
        hooks.new_session()

    await hooks.capture(httpx.Response(200, headers={"Set-Cookie": "sess=old-refresh"}, request=stale))
    assert store.cookies == set()

    fresh = httpx.Request("POST", "https://sicenet.test/")
    await hooks.attach(fresh)
    await hooks.capture(httpx.Response(200, headers={"Set-Cookie": "sess=new"}, request=fresh))
    assert store.cookies == {"sess=new"}
