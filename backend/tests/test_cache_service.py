import time

import pytest
import redis.asyncio as redis

import campus_assistant.services.cache_service as cs


class _DummyRedis:
    def __init__(self, fail: bool = False) -> None:
        self.kv: dict[str, str] = {}
        self.fail = fail
        self.closed = False

    async def ping(self):
        return True

    async def set(self, key: str, value: str, ex: int, nx: bool):
        _ = ex
        if self.fail:
            raise redis.ConnectionError("gone")
        if nx and key in self.kv:
            return None
        self.kv[key] = value
        return True

    async def aclose(self):
        self.closed = True


@pytest.mark.asyncio
async def test_memory_claim_once_until_expiry(monkeypatch):
    now = 1000.0
    monkeypatch.setattr(time, "time", lambda: now, raising=True)
    svc = cs.CacheService()

    assert await svc.claim("inbound:1", 60) is True
    assert await svc.claim("inbound:1", 60) is False
    assert await svc.claim("inbound:2", 60) is True

    now = 1061.0
    assert await svc.claim("inbound:1", 60) is True


@pytest.mark.asyncio
async def test_memory_prunes_expired_entries(monkeypatch):
    now = 1000.0
    monkeypatch.setattr(time, "time", lambda: now, raising=True)
    svc = cs.CacheService()
    svc._memory = {f"old:{i}": 500.0 for i in range(10001)}

    assert await svc.claim("fresh", 60) is True
    assert svc._memory == {"fresh": 1060.0}


@pytest.mark.asyncio
async def test_redis_claim_uses_set_nx():
    svc = cs.CacheService()
    dummy = _DummyRedis()
    svc._redis = dummy
    svc._connected = True

    assert await svc.claim("inbound:9", 30) is True
    assert await svc.claim("inbound:9", 30) is False
    assert dummy.kv == {"inbound:9": "1"}
    assert svc._memory == {}


@pytest.mark.asyncio
async def test_redis_error_falls_back_to_memory():
    svc = cs.CacheService()
    svc._redis = _DummyRedis(fail=True)
    svc._connected = True

    assert await svc.claim("inbound:7", 30) is True
    assert await svc.claim("inbound:7", 30) is False
    assert "inbound:7" in svc._memory


@pytest.mark.asyncio
async def test_connect_without_url_stays_in_memory():
    svc = cs.CacheService()
    assert await svc.connect("") is False
    assert svc.is_connected is False


@pytest.mark.asyncio
async def test_connect_and_disconnect(monkeypatch):
    dummy = _DummyRedis()
    monkeypatch.setattr(cs.redis, "from_url", lambda url, decode_responses: dummy, raising=True)
    svc = cs.CacheService()

    assert await svc.connect("redis://localhost:6379/0") is True
    assert svc.is_connected is True

    await svc.disconnect()
    assert dummy.closed is True
    assert svc.is_connected is False


@pytest.mark.asyncio
async def test_connect_failure_is_reported(monkeypatch):
    class _Unreachable(_DummyRedis):
        async def ping(self):
            raise redis.ConnectionError("refused")

    monkeypatch.setattr(cs.redis, "from_url", lambda url, decode_responses: _Unreachable(), raising=True)
    svc = cs.CacheService()

    assert await svc.connect("redis://nowhere:6379/0") is False
    assert svc.is_connected is False
