"""QuotaTracker — per-owner storage usage counter."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import case, func, update
from sqlmodel import select

from .dialect import insert_ignore
from .exceptions import QuotaExceededError
from .types import QuotaInfo

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from drivetree.models.accounts import StorageAccountBase
    from drivetree.models.nodes import FileBase

logger = logging.getLogger(__name__)


class QuotaTracker:
    """Tracks ``storage_used`` per owner.

    Increments and decrements are single ``UPDATE`` statements computed by
    the database, never read-modify-write in Python, so concurrent uploads
    and trash operations for one owner cannot lose updates.  The counter
    covers live files only: trashing a file subtracts its size and
    restoring adds it back.  ``reconcile`` resets it to the live-file total.
    """

    def __init__(
        self,
        account_model: type[StorageAccountBase],
        file_model: type[FileBase],
        *,
        dialect: str = "sqlite",
        default_limit: int,
    ) -> None:
        self._account_model = account_model
        self._file_model = file_model
        self.dialect = dialect
        self.default_limit = default_limit

    async def ensure_account(self, session: AsyncSession, owner_id: str) -> None:
        """Create the owner's account row if it does not exist yet."""
        await insert_ignore(
            session,
            self.dialect,
            self._account_model,
            {"owner_id": owner_id, "storage_used": 0, "storage_limit": self.default_limit},
            ["owner_id"],
        )

    async def increment(self, session: AsyncSession, owner_id: str, size: int) -> None:
        if size < 0:
            raise ValueError(f"size must be >= 0, got {size}")
        await self.ensure_account(session, owner_id)
        model = self._account_model
        await session.execute(
            update(model)
            .where(model.owner_id == owner_id)
            .values(storage_used=model.storage_used + size)
        )
        logger.debug("Quota +%d for %s", size, owner_id)

    async def decrement(self, session: AsyncSession, owner_id: str, size: int) -> None:
        """Subtract *size*, never going below zero."""
        if size < 0:
            raise ValueError(f"size must be >= 0, got {size}")
        model = self._account_model
        await session.execute(
            update(model)
            .where(model.owner_id == owner_id)
            .values(
                storage_used=case(
                    (model.storage_used > size, model.storage_used - size),
                    else_=0,
                )
            )
            .execution_options(synchronize_session="fetch")
        )
        logger.debug("Quota -%d for %s", size, owner_id)

    async def live_total(self, session: AsyncSession, owner_id: str) -> int:
        model = self._file_model
        result = await session.execute(
            select(func.coalesce(func.sum(model.size_bytes), 0)).where(
                model.owner_id == owner_id,
                model.is_deleted.is_(False),  # type: ignore[union-attr]
            )
        )
        return int(result.scalar_one())

    async def reconcile(self, session: AsyncSession, owner_id: str) -> int:
        """Overwrite ``storage_used`` with the sum of the owner's live file sizes.

        Idempotent; returns the new value.
        """
        await self.ensure_account(session, owner_id)
        total = await self.live_total(session, owner_id)
        model = self._account_model
        result = await session.execute(
            select(model.storage_used).where(model.owner_id == owner_id)  # type: ignore[arg-type]
        )
        previous = int(result.scalar_one())
        await session.execute(
            update(model)
            .where(model.owner_id == owner_id)
            .values(storage_used=total, reconciled_at=datetime.now(UTC))
        )
        if previous != total:
            logger.info("Reconciled storage for %s: %d -> %d", owner_id, previous, total)
        return total

    async def get_usage(self, session: AsyncSession, owner_id: str) -> QuotaInfo:
        await self.ensure_account(session, owner_id)
        model = self._account_model
        result = await session.execute(
            select(model.storage_used, model.storage_limit).where(  # type: ignore[arg-type]
                model.owner_id == owner_id
            )
        )
        used, limit = result.one()
        return QuotaInfo(owner_id=owner_id, storage_used=int(used), storage_limit=int(limit))

    async def check_room(
        self,
        session: AsyncSession,
        owner_id: str,
        size: int,
        *,
        enforce: bool,
    ) -> None:
        """Raise QuotaExceededError (when *enforce*) if *size* more bytes would not fit."""
        usage = await self.get_usage(session, owner_id)
        if usage.storage_used + size <= usage.storage_limit:
            return
        if enforce:
            raise QuotaExceededError(owner_id, usage.storage_limit, usage.storage_used, size)
        logger.warning(
            "Owner %s is over quota: %d + %d > %d bytes",
            owner_id,
            usage.storage_used,
            size,
            usage.storage_limit,
        )
