"""Blob storage collaborator, a local-disk implementation, and the cleanup queue."""

from __future__ import annotations

import asyncio
import logging
import secrets
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, runtime_checkable

from .exceptions import StorageError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredBlob:
    """Where a stored blob can be fetched from and how to delete it."""

    url: str
    public_id: str


@runtime_checkable
class BlobStore(Protocol):
    """Binary object storage used for file contents.

    Implementations raise on failure; callers bound each call with their
    own timeout.
    """

    async def put(self, data: bytes, hint: str) -> StoredBlob:
        """Store *data* and return its reference. *hint* is a display name."""
        ...

    async def delete(self, public_id: str) -> bool:
        """Delete the blob. Returns False if it did not exist."""
        ...


class LocalDiskBlobStore:
    """BlobStore writing each blob to its own file under *root_dir*.

    Public ids are random hex names, so caller-supplied hints never reach
    the filesystem path.
    """

    def __init__(self, root_dir: Path | str, base_url: str | None = None) -> None:
        self.root_dir = Path(root_dir).resolve()
        self.base_url = base_url.rstrip("/") if base_url else None
        if not self.root_dir.exists():
            raise FileNotFoundError(f"Blob directory does not exist: {self.root_dir}")
        if not self.root_dir.is_dir():
            raise NotADirectoryError(f"Blob path is not a directory: {self.root_dir}")

    def _resolve(self, public_id: str) -> Path:
        if not public_id or not all(c in "0123456789abcdef" for c in public_id):
            raise ValueError(f"Invalid blob id: {public_id!r}")
        return self.root_dir / public_id

    def url_for(self, public_id: str) -> str:
        if self.base_url is None:
            return self._resolve(public_id).as_uri()
        return f"{self.base_url}/{public_id}"

    async def put(self, data: bytes, hint: str) -> StoredBlob:
        public_id = secrets.token_hex(16)
        target = self._resolve(public_id)
        await asyncio.to_thread(target.write_bytes, data)
        logger.debug("Stored blob %s (%d bytes) for %s", public_id, len(data), hint)
        return StoredBlob(url=self.url_for(public_id), public_id=public_id)

    async def delete(self, public_id: str) -> bool:
        target = self._resolve(public_id)
        try:
            await asyncio.to_thread(target.unlink)
        except FileNotFoundError:
            return False
        return True

    async def exists(self, public_id: str) -> bool:
        return await asyncio.to_thread(self._resolve(public_id).exists)


async def put_blob(store: BlobStore, data: bytes, hint: str, timeout: float) -> StoredBlob:
    """Store a blob, turning failures and timeouts into StorageError."""
    try:
        return await asyncio.wait_for(store.put(data, hint), timeout)
    except TimeoutError as e:
        raise StorageError(f"Blob store timed out after {timeout}s storing {hint}") from e
    except Exception as e:
        raise StorageError(f"Blob store failed storing {hint}: {e}") from e


async def delete_blob(store: BlobStore, public_id: str, timeout: float) -> bool:
    """Best-effort delete. Returns False, after logging, if the delete failed."""
    try:
        await asyncio.wait_for(store.delete(public_id), timeout)
    except Exception:
        logger.warning("Failed to delete blob %s", public_id, exc_info=True)
        return False
    return True


@dataclass
class PendingDelete:
    public_id: str
    owner_id: str | None = None
    attempts: int = 1


@dataclass
class CleanupReport:
    """Outcome of one retry pass over the cleanup queue."""

    deleted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    abandoned: list[str] = field(default_factory=list)


class BlobCleanupQueue:
    """Blobs whose delete failed after their metadata was removed.

    Entries are retried by ``retry``; after *limit* failed attempts an
    entry is abandoned and logged as an orphan.
    """

    def __init__(self) -> None:
        self._pending: dict[str, PendingDelete] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, public_id: object) -> bool:
        return public_id in self._pending

    def add(self, public_id: str, owner_id: str | None = None) -> None:
        entry = self._pending.get(public_id)
        if entry is None:
            self._pending[public_id] = PendingDelete(public_id=public_id, owner_id=owner_id)
        else:
            entry.attempts += 1

    def pending(self) -> list[PendingDelete]:
        return list(self._pending.values())

    async def retry(self, store: BlobStore, *, limit: int, timeout: float) -> CleanupReport:
        report = CleanupReport()
        for entry in list(self._pending.values()):
            if await delete_blob(store, entry.public_id, timeout):
                del self._pending[entry.public_id]
                report.deleted.append(entry.public_id)
                continue
            entry.attempts += 1
            if entry.attempts >= limit:
                del self._pending[entry.public_id]
                report.abandoned.append(entry.public_id)
                logger.error(
                    "Giving up on blob %s after %d attempts; it is now orphaned",
                    entry.public_id,
                    entry.attempts,
                )
            else:
                report.failed.append(entry.public_id)
        if report.deleted or report.abandoned:
            logger.info(
                "Blob cleanup: %d deleted, %d still pending, %d abandoned",
                len(report.deleted),
                len(report.failed),
                len(report.abandoned),
            )
        return report
