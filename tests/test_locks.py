"""Tests for OwnerLocks — per-owner serialization with bounded waits."""

from __future__ import annotations

import asyncio

import pytest

from drivetree.store.exceptions import LockTimeoutError
from drivetree.store.locks import OwnerLocks


class TestOwnerLocks:
    async def test_hold_and_release(self):
        locks = OwnerLocks()
        async with locks.hold("alice"):
            assert locks.is_locked("alice")
        assert not locks.is_locked("alice")

    async def test_released_on_error(self):
        locks = OwnerLocks()
        with pytest.raises(RuntimeError):
            async with locks.hold("alice"):
                raise RuntimeError("boom")
        assert not locks.is_locked("alice")

    async def test_same_owner_serialized(self):
        locks = OwnerLocks()
        order: list[str] = []

        async def worker(name: str) -> None:
            async with locks.hold("alice"):
                order.append(f"{name}-start")
                await asyncio.sleep(0.01)
                order.append(f"{name}-end")

        await asyncio.gather(worker("a"), worker("b"))
        assert order in (
            ["a-start", "a-end", "b-start", "b-end"],
            ["b-start", "b-end", "a-start", "a-end"],
        )

    async def test_owners_independent(self):
        locks = OwnerLocks(timeout=0.05)
        async with locks.hold("alice"), locks.hold("bob"):
            assert locks.is_locked("alice")
            assert locks.is_locked("bob")
            assert len(locks) == 2
        assert len(locks) == 0

    async def test_timeout(self):
        locks = OwnerLocks(timeout=0.01)
        async with locks.hold("alice"):
            with pytest.raises(LockTimeoutError, match="alice"):
                async with locks.hold("alice"):
                    pass
        # Still usable after a timed-out waiter
        async with locks.hold("alice", timeout=0.5):
            pass

    async def test_idle_locks_dropped(self):
        locks = OwnerLocks()
        for i in range(50):
            async with locks.hold(f"user-{i}"):
                pass
        assert len(locks) == 0

    async def test_lock_kept_while_waiter_queued(self):
        locks = OwnerLocks()
        entered = asyncio.Event()
        release = asyncio.Event()

        async def holder() -> None:
            async with locks.hold("alice"):
                entered.set()
                await release.wait()

        async def waiter() -> None:
            async with locks.hold("alice"):
                assert locks.is_locked("alice")

        first = asyncio.create_task(holder())
        await entered.wait()
        second = asyncio.create_task(waiter())
        await asyncio.sleep(0)
        release.set()
        await asyncio.gather(first, second)
        assert len(locks) == 0

    async def test_timed_out_waiter_dropped(self):
        locks = OwnerLocks(timeout=0.01)
        async with locks.hold("alice"):
            with pytest.raises(LockTimeoutError):
                async with locks.hold("alice"):
                    pass
            assert len(locks) == 1
        assert len(locks) == 0
