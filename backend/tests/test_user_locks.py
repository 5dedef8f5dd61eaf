import asyncio

import pytest

from campus_assistant.utils.user_locks import UserLockRegistry


@pytest.mark.asyncio
async def test_same_key_is_serialised():
    locks = UserLockRegistry()
    events: list[str] = []

    async def turn(name: str, delay: float) -> None:
        async with locks.hold("233200000001"):
            events.append(f"{name}:start")
            await asyncio.sleep(delay)
            events.append(f"{name}:end")

    await asyncio.gather(turn("a", 0.05), turn("b", 0))

    assert events == ["a:start", "a:end", "b:start", "b:end"]
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_different_keys_run_concurrently():
    locks = UserLockRegistry()
    inside = asyncio.Event()
    released = asyncio.Event()

    async def first() -> None:
        async with locks.hold("u1"):
            inside.set()
            await released.wait()

    async def second() -> None:
        await inside.wait()
        async with locks.hold("u2"):
            released.set()

    await asyncio.wait_for(asyncio.gather(first(), second()), timeout=1.0)


@pytest.mark.asyncio
async def test_entry_removed_after_release_even_on_error():
    locks = UserLockRegistry()

    with pytest.raises(RuntimeError):
        async with locks.hold("u1"):
            assert "u1" in locks
            raise RuntimeError("boom")

    assert "u1" not in locks
    assert len(locks) == 0
