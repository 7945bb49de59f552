"""Per-owner mutation locks."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from .exceptions import LockTimeoutError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


class OwnerLocks:
    """One ``asyncio.Lock`` per owner id.

    Structural mutations of the same owner's tree run one at a time;
    different owners never contend.  Locks are bound to the event loop
    that first awaits them, so a registry belongs to a single loop.  An
    owner's lock is dropped once nobody holds or waits for it.
    """

    def __init__(self, timeout: float = 10.0) -> None:
        self.timeout = timeout
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def lock_for(self, owner_id: str) -> asyncio.Lock:
        lock = self._locks.get(owner_id)
        if lock is None:
            lock = self._locks[owner_id] = asyncio.Lock()
        return lock

    def is_locked(self, owner_id: str) -> bool:
        lock = self._locks.get(owner_id)
        return lock is not None and lock.locked()

    def _release_user(self, owner_id: str) -> None:
        remaining = self._users[owner_id] - 1
        if remaining:
            self._users[owner_id] = remaining
        else:
            del self._users[owner_id]
            self._locks.pop(owner_id, None)

    @asynccontextmanager
    async def hold(self, owner_id: str, timeout: float | None = None) -> AsyncIterator[None]:
        """Hold *owner_id*'s lock, waiting at most *timeout* seconds for it."""
        wait = self.timeout if timeout is None else timeout
        lock = self.lock_for(owner_id)
        self._users[owner_id] = self._users.get(owner_id, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), wait)
            except TimeoutError as e:
                logger.warning("Timed out after %ss waiting for owner lock %s", wait, owner_id)
                raise LockTimeoutError(
                    f"Timed out after {wait}s waiting for mutation lock of owner {owner_id}"
                ) from e
            try:
                yield
            finally:
                lock.release()
        finally:
            self._release_user(owner_id)
