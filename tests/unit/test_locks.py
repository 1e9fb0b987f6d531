"""Tests for pt_common.locks: ordered multi-entity locking."""

import asyncio

from src.pt_common.locks import EntityLockManager


async def test_acquire_holds_every_key() -> None:
    locks = EntityLockManager()
    async with locks.acquire("account:b", "account:a"):
        assert locks.is_locked("account:a")
        assert locks.is_locked("account:b")
    assert not locks.is_locked("account:a")
    assert not locks.is_locked("account:b")


async def test_duplicate_keys_do_not_self_deadlock() -> None:
    locks = EntityLockManager()
    async with locks.acquire("wallet:u1", "wallet:u1"):
        assert locks.is_locked("wallet:u1")


async def test_opposite_order_transfers_complete() -> None:
    """Two callers naming the same pair in opposite order must both finish."""
    locks = EntityLockManager()
    order: list[str] = []

    async def worker(name: str, *keys: str) -> None:
        async with locks.acquire(*keys):
            order.append(f"{name}-in")
            await asyncio.sleep(0.01)
            order.append(f"{name}-out")

    await asyncio.wait_for(
        asyncio.gather(
            worker("ab", "account:a", "account:b"),
            worker("ba", "account:b", "account:a"),
        ),
        timeout=2,
    )
    # Critical sections never interleave
    assert order in (
        ["ab-in", "ab-out", "ba-in", "ba-out"],
        ["ba-in", "ba-out", "ab-in", "ab-out"],
    )


async def test_disjoint_keys_run_concurrently() -> None:
    locks = EntityLockManager()
    inside = asyncio.Event()
    release = asyncio.Event()

    async def holder() -> None:
        async with locks.acquire("wallet:u1"):
            inside.set()
            await release.wait()

    task = asyncio.create_task(holder())
    await inside.wait()
    async with locks.acquire("wallet:u2"):
        assert locks.is_locked("wallet:u1")
    release.set()
    await task


async def test_released_keys_are_forgotten() -> None:
    locks = EntityLockManager()
    for n in range(100):
        async with locks.acquire(f"account:{n}", "wallet:u1"):
            assert len(locks) == 2
    assert len(locks) == 0


async def test_waiter_keeps_key_alive_until_done() -> None:
    locks = EntityLockManager()
    inside = asyncio.Event()
    release = asyncio.Event()
    order: list[str] = []

    async def holder() -> None:
        async with locks.acquire("wallet:u1"):
            inside.set()
            await release.wait()
            order.append("holder")

    async def waiter() -> None:
        async with locks.acquire("wallet:u1"):
            order.append("waiter")

    first = asyncio.create_task(holder())
    await inside.wait()
    second = asyncio.create_task(waiter())
    await asyncio.sleep(0)
    assert len(locks) == 1
    release.set()
    await asyncio.gather(first, second)

    assert order == ["holder", "waiter"]
    assert len(locks) == 0


async def test_cancelled_waiter_releases_its_claim() -> None:
    locks = EntityLockManager()
    inside = asyncio.Event()
    release = asyncio.Event()

    async def holder() -> None:
        async with locks.acquire("wallet:u1"):
            inside.set()
            await release.wait()

    first = asyncio.create_task(holder())
    await inside.wait()
    stuck = asyncio.create_task(locks.acquire("wallet:u1").__aenter__())
    await asyncio.sleep(0)
    stuck.cancel()
    await asyncio.gather(stuck, return_exceptions=True)
    release.set()
    await first

    assert len(locks) == 0
