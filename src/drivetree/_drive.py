"""Drive — synchronous wrapper around DriveAsync."""

from __future__ import annotations

import asyncio
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import create_async_engine

from drivetree._drive_async import DriveAsync
from drivetree.store.blobs import LocalDiskBlobStore

if TYPE_CHECKING:
    from collections.abc import Iterable

    from drivetree.config import DriveConfig
    from drivetree.store.blobs import BlobStore, CleanupReport
    from drivetree.store.types import (
        AccessResult,
        BreadcrumbEntry,
        FolderListing,
        NodeInfo,
        PurgeResult,
        QuotaInfo,
        SharedView,
        ShareInfo,
        ShareResult,
        TrashResult,
    )


class Drive:
    """Synchronous drive backed by a private event loop in a background thread.

    Usage::

        with Drive("sqlite+aiosqlite:///drive.db", blob_dir="/srv/blobs") as drive:
            docs = drive.create_folder("Docs", user_id="alice")
            drive.upload_file("a.txt", b"hello", user_id="alice", parent_id=docs.id)
    """

    def __init__(
        self,
        database_url: str = "sqlite+aiosqlite://",
        *,
        blob_store: BlobStore | None = None,
        blob_dir: str | Path | None = None,
        config: DriveConfig | None = None,
    ) -> None:
        if blob_store is None:
            if blob_dir is None:
                raise ValueError("Provide blob_store or blob_dir")
            Path(blob_dir).mkdir(parents=True, exist_ok=True)
            blob_store = LocalDiskBlobStore(blob_dir)

        self._closed = False

        # Private event loop in a daemon thread
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, daemon=True)
        self._thread.start()

        try:
            self._drive: DriveAsync = self._run(
                self._async_init(database_url, blob_store, config)
            )
        except BaseException:
            self._stop_loop()
            raise

    async def _async_init(
        self,
        database_url: str,
        blob_store: BlobStore,
        config: DriveConfig | None,
    ) -> DriveAsync:
        # The engine must be created on the loop that will use it.
        self._engine = create_async_engine(database_url)
        drive = DriveAsync(engine=self._engine, blob_store=blob_store, config=config)
        await drive.open()
        return drive

    def _run(self, coro: Any) -> Any:
        """Submit *coro* to the private loop and block for the result."""
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()

    def _stop_loop(self) -> None:
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=5)

    @property
    def async_drive(self) -> DriveAsync:
        return self._drive

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the drive, dispose the engine, stop the loop and join the thread."""
        if self._closed:
            return
        self._closed = True

        try:
            self._run(self._async_close())
        finally:
            self._stop_loop()

    async def _async_close(self) -> None:
        await self._drive.close()
        await self._engine.dispose()

    def __enter__(self) -> Drive:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Tree
    # ------------------------------------------------------------------

    def create_folder(
        self,
        name: str,
        *,
        user_id: str,
        parent_id: str | None = None,
        color: str | None = None,
        description: str | None = None,
    ) -> NodeInfo:
        return self._run(
            self._drive.create_folder(
                name, user_id=user_id, parent_id=parent_id, color=color, description=description
            )
        )

    def upload_file(
        self,
        name: str,
        data: bytes,
        *,
        user_id: str,
        parent_id: str | None = None,
        mime_type: str | None = None,
        original_name: str | None = None,
        tags: Iterable[str] | None = None,
    ) -> NodeInfo:
        return self._run(
            self._drive.upload_file(
                name,
                data,
                user_id=user_id,
                parent_id=parent_id,
                mime_type=mime_type,
                original_name=original_name,
                tags=tags,
            )
        )

    def rename(self, node_id: str, new_name: str, *, user_id: str) -> NodeInfo:
        return self._run(self._drive.rename(node_id, new_name, user_id=user_id))

    def move(self, node_id: str, new_parent_id: str | None, *, user_id: str) -> NodeInfo:
        return self._run(self._drive.move(node_id, new_parent_id, user_id=user_id))

    def update_folder(
        self,
        folder_id: str,
        *,
        user_id: str,
        color: str | None = None,
        description: str | None = None,
    ) -> NodeInfo:
        return self._run(
            self._drive.update_folder(
                folder_id, user_id=user_id, color=color, description=description
            )
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, node_id: str, *, user_id: str | None = None) -> NodeInfo:
        return self._run(self._drive.get(node_id, user_id=user_id))

    def list_folder(self, folder_id: str | None = None, *, user_id: str) -> FolderListing:
        return self._run(self._drive.list_folder(folder_id, user_id=user_id))

    def breadcrumb(self, node_id: str, *, user_id: str) -> list[BreadcrumbEntry]:
        return self._run(self._drive.breadcrumb(node_id, user_id=user_id))

    def search(self, query: str, *, user_id: str, limit: int = 50) -> list[NodeInfo]:
        return self._run(self._drive.search(query, user_id=user_id, limit=limit))

    def resolve_access(self, node_id: str, *, user_id: str | None) -> AccessResult:
        return self._run(self._drive.resolve_access(node_id, user_id=user_id))

    # ------------------------------------------------------------------
    # Trash
    # ------------------------------------------------------------------

    def trash(self, node_id: str, *, user_id: str) -> TrashResult:
        return self._run(self._drive.trash(node_id, user_id=user_id))

    def restore(self, node_id: str, *, user_id: str) -> TrashResult:
        return self._run(self._drive.restore(node_id, user_id=user_id))

    def delete_permanently(self, node_id: str, *, user_id: str) -> PurgeResult:
        return self._run(self._drive.delete_permanently(node_id, user_id=user_id))

    def list_trash(self, *, user_id: str, roots_only: bool = True) -> list[NodeInfo]:
        return self._run(self._drive.list_trash(user_id=user_id, roots_only=roots_only))

    def empty_trash(self, *, user_id: str) -> list[PurgeResult]:
        return self._run(self._drive.empty_trash(user_id=user_id))

    def retry_blob_cleanup(self) -> CleanupReport:
        return self._run(self._drive.retry_blob_cleanup())

    # ------------------------------------------------------------------
    # Sharing
    # ------------------------------------------------------------------

    def share(
        self, node_id: str, grantee_id: str, permission: str = "read", *, user_id: str
    ) -> ShareResult:
        return self._run(self._drive.share(node_id, grantee_id, permission, user_id=user_id))

    def unshare(self, node_id: str, grantee_id: str, *, user_id: str) -> bool:
        return self._run(self._drive.unshare(node_id, grantee_id, user_id=user_id))

    def set_public(self, node_id: str, is_public: bool, *, user_id: str) -> ShareResult:
        return self._run(self._drive.set_public(node_id, is_public, user_id=user_id))

    def revoke_link(self, node_id: str, *, user_id: str) -> ShareResult:
        return self._run(self._drive.revoke_link(node_id, user_id=user_id))

    def list_shares(self, node_id: str, *, user_id: str) -> list[ShareInfo]:
        return self._run(self._drive.list_shares(node_id, user_id=user_id))

    def shared_with_me(self, *, user_id: str) -> list[NodeInfo]:
        return self._run(self._drive.shared_with_me(user_id=user_id))

    def open_shared(self, token: str, *, user_id: str | None = None) -> SharedView:
        return self._run(self._drive.open_shared(token, user_id=user_id))

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def storage_usage(self, *, user_id: str) -> QuotaInfo:
        return self._run(self._drive.storage_usage(user_id=user_id))

    def reconcile_storage(self, *, user_id: str) -> int:
        return self._run(self._drive.reconcile_storage(user_id=user_id))
