import json

import pytest

from sicenet.core.config import Settings
from sicenet.core.session_store import FileCookieStore, RedisCookieStore, build_cookie_store


class FakePipeline:
    def __init__(self, redis: "FakeRedis") -> None:
        self.redis = redis
        self.ops = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def delete(self, key):
        self.ops.append(("delete", key))

    def sadd(self, key, *values):
        self.ops.append(("sadd", key, values))

    async def execute(self):
        for op in self.ops:
            if op[0] == "delete":
                self.redis.data.pop(op[1], None)
            else:
                self.redis.data.setdefault(op[1], set()).update(op[2])
        self.redis.executed += 1
        return []


class FakeRedis:
    """只实现 RedisCookieStore 用到的几个命令；成员按 bytes 存，模拟 decode_responses=False"""

    def __init__(self) -> None:
        self.data = {}
        self.executed = 0

    def pipeline(self, transaction=True):
        assert transaction is True
        return FakePipeline(self)

    async def smembers(self, key):
        return {v.encode("utf-8") for v in self.data.get(key, set())}

    async def delete(self, key):
        return 1 if self.data.pop(key, None) is not None else 0


@pytest.mark.anyio
async def test_file_store_roundtrip_and_clear(tmp_path):
    store = FileCookieStore(tmp_path / "nested" / "cookies.json")
    assert await store.load() == set()

    await store.save({"a=1; Path=/", "b=2"})
    assert await store.load() == {"a=1; Path=/", "b=2"}
    assert json.loads(store.path.read_text(encoding="utf-8")) == ["a=1; Path=/", "b=2"]

    # 新实例（模拟进程重启）还能读到
    assert await FileCookieStore(store.path).load() == {"a=1; Path=/", "b=2"}

    await store.clear()
    assert await store.load() == set()
    assert not store.path.exists()
    # 重复 clear 不报错
    await store.clear()


@pytest.mark.anyio
async def test_file_store_corrupt_file_is_empty_session(tmp_path):
    path = tmp_path / "cookies.json"
    path.write_text("{not json", encoding="utf-8")
    assert await FileCookieStore(path).load() == set()

    path.write_text('{"a": 1}', encoding="utf-8")
    assert await FileCookieStore(path).load() == set()


@pytest.mark.anyio
async def test_file_store_leaves_no_temp_files(tmp_path):
    store = FileCookieStore(tmp_path / "cookies.json")
    await store.save({"x=1"})
    await store.save({"x=1", "y=2"})
    assert sorted(p.name for p in tmp_path.iterdir()) == ["cookies.json"]


@pytest.mark.anyio
async def test_redis_store_replaces_set_atomically():
    redis = FakeRedis()
    store = RedisCookieStore(redis=redis, key="t:cookies")

    await store.save({"a=1"})
    await store.save({"b=2", "c=3"})
    assert await store.load() == {"b=2", "c=3"}
    assert redis.executed == 2

    await store.clear()
    assert await store.load() == set()


@pytest.mark.anyio
async def test_redis_store_save_empty_just_deletes():
    redis = FakeRedis()
    store = RedisCookieStore(redis=redis, key="t:cookies")
    await store.save({"a=1"})
    await store.save([])
    assert "t:cookies" not in redis.data


def test_build_cookie_store_backends(tmp_path):
    cfg = Settings(SICENET_COOKIE_BACKEND="file", SICENET_COOKIE_FILE=str(tmp_path / "c.json"))
    store = build_cookie_store(cfg)
    assert isinstance(store, FileCookieStore)
    assert store.path == tmp_path / "c.json"

    with pytest.raises(ValueError):
        build_cookie_store(Settings(SICENET_COOKIE_BACKEND="memcached"))

    redis_store = build_cookie_store(
        Settings(SICENET_COOKIE_BACKEND="redis", REDIS_URL="redis://localhost:6379/0", SICENET_COOKIE_KEY="k")
    )
    assert isinstance(redis_store, RedisCookieStore)
