"""DriveAsync — primary async class wiring the node store together."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from drivetree.config import DriveConfig
from drivetree.events import EventBus, EventType, NodeEvent
from drivetree.models.accounts import StorageAccount
from drivetree.models.nodes import File, Folder
from drivetree.models.shares import ShareGrant
from drivetree.store.blobs import BlobCleanupQueue, delete_blob, put_blob
from drivetree.store.dialect import get_dialect
from drivetree.store.exceptions import AccessDeniedError, NotFoundError
from drivetree.store.locks import OwnerLocks
from drivetree.store.nodes import NodeService
from drivetree.store.paths import guess_mime_type, validate_name
from drivetree.store.permissions import PermissionResolver
from drivetree.store.quota import QuotaTracker
from drivetree.store.sharing import SharingService
from drivetree.store.trash import TrashService
from drivetree.store.tree import TreeService
from drivetree.store.types import AccessLevel, SharedView

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable, Iterable

    from sqlalchemy.ext.asyncio import AsyncEngine

    from drivetree.models.accounts import StorageAccountBase
    from drivetree.models.nodes import FileBase, FolderBase, NodeBase
    from drivetree.models.shares import ShareGrantBase
    from drivetree.store.blobs import BlobStore, CleanupReport
    from drivetree.store.types import (
        AccessResult,
        BreadcrumbEntry,
        FolderListing,
        NodeInfo,
        PurgeResult,
        QuotaInfo,
        ShareInfo,
        ShareResult,
        TrashResult,
    )

logger = logging.getLogger(__name__)


class DriveAsync:
    """Async facade over the folder/file tree of every owner.

    Each public operation runs in its own session: commit on success,
    rollback on any exception.  Structural mutations additionally hold
    the owner's mutation lock.  Blob-store calls and event dispatch
    happen outside the lock, after commit.

    Engine-based (creates tables on ``open``)::

        engine = create_async_engine("sqlite+aiosqlite:///drive.db")
        drive = DriveAsync(engine=engine, blob_store=LocalDiskBlobStore("/srv/blobs"))
        await drive.open()
        docs = await drive.create_folder("Docs", user_id="alice")

    ``user_id`` is the authenticated principal of each call; it is
    trusted as given.
    """

    def __init__(
        self,
        *,
        blob_store: BlobStore,
        engine: AsyncEngine | None = None,
        session_factory: Callable[..., AsyncSession] | None = None,
        dialect: str = "sqlite",
        config: DriveConfig | None = None,
        folder_model: type[FolderBase] | None = None,
        file_model: type[FileBase] | None = None,
        share_model: type[ShareGrantBase] | None = None,
        account_model: type[StorageAccountBase] | None = None,
    ) -> None:
        if engine is not None and session_factory is not None:
            raise ValueError("Provide engine or session_factory, not both")
        if engine is not None:
            session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
            dialect = get_dialect(engine)
        if session_factory is None:
            raise ValueError("Provide engine or session_factory")

        self._engine = engine
        self._session_factory = session_factory
        self._blob_store = blob_store
        self.config = config or DriveConfig()
        self._closed = False

        self._folder_model = folder_model or Folder
        self._file_model = file_model or File
        self._share_model = share_model or ShareGrant
        self._account_model = account_model or StorageAccount

        cfg = self.config
        self._nodes = NodeService(
            self._folder_model,
            self._file_model,
            root_label=cfg.root_label,
            max_depth=cfg.max_breadcrumb_depth,
        )
        self._permissions = PermissionResolver(self._share_model)
        self._tree = TreeService(
            self._nodes, self._permissions, default_color=cfg.default_folder_color
        )
        self._trash = TrashService(self._nodes, self._permissions, self._share_model)
        self._sharing = SharingService(
            self._nodes, self._permissions, self._share_model, base_url=cfg.share_base_url
        )
        self._quota = QuotaTracker(
            self._account_model,
            self._file_model,
            dialect=dialect,
            default_limit=cfg.default_storage_limit,
        )
        self._locks = OwnerLocks(timeout=cfg.lock_timeout)
        self._blob_cleanup = BlobCleanupQueue()

        self._event_bus = EventBus()
        self._event_bus.register(EventType.FILE_UPLOADED, self._on_file_uploaded)
        self._event_bus.register(EventType.NODE_TRASHED, self._on_node_trashed)
        self._event_bus.register(EventType.NODE_RESTORED, self._on_node_restored)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Create the drive tables if an engine was given."""
        if self._engine is None:
            return
        models = (self._folder_model, self._file_model, self._share_model, self._account_model)
        async with self._engine.begin() as conn:
            for model in models:
                await conn.run_sync(
                    lambda c, m=model: m.__table__.create(c, checkfirst=True)  # type: ignore[attr-defined]
                )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._blob_cleanup:
            logger.warning(
                "Closing drive with %d blob deletes still pending", len(self._blob_cleanup)
            )

    async def __aenter__(self) -> DriveAsync:
        await self.open()
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.close()

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    @property
    def blob_cleanup(self) -> BlobCleanupQueue:
        return self._blob_cleanup

    @property
    def locks(self) -> OwnerLocks:
        return self._locks

    # ------------------------------------------------------------------
    # Session helpers
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession]:
        """One transaction: commit on success, rollback on exception."""
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    @asynccontextmanager
    async def _mutation(self, owner_id: str) -> AsyncGenerator[AsyncSession]:
        """Hold *owner_id*'s lock around one transaction."""
        async with self._locks.hold(owner_id), self._session() as session:
            yield session

    async def _owner_of(self, node_id: str) -> str:
        # Owners never change, so the lock key can be read outside the lock.
        async with self._session() as session:
            node = await self._nodes.require_node(session, node_id)
            return node.owner_id

    async def _emit(
        self,
        event_type: EventType,
        node: NodeInfo,
        *,
        old_path: str | None = None,
        size_bytes: int = 0,
        user_id: str | None = None,
    ) -> None:
        await self._event_bus.emit(
            NodeEvent(
                event_type=event_type,
                node_id=node.id,
                owner_id=node.owner_id,
                path=node.path,
                old_path=old_path,
                size_bytes=size_bytes,
                principal_id=user_id,
            )
        )

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    async def _on_file_uploaded(self, event: NodeEvent) -> None:
        async with self._session() as session:
            await self._quota.increment(session, event.owner_id, event.size_bytes)

    async def _on_node_trashed(self, event: NodeEvent) -> None:
        if event.size_bytes <= 0:
            return
        async with self._session() as session:
            await self._quota.decrement(session, event.owner_id, event.size_bytes)

    async def _on_node_restored(self, event: NodeEvent) -> None:
        if event.size_bytes <= 0:
            return
        async with self._session() as session:
            await self._quota.increment(session, event.owner_id, event.size_bytes)

    # ------------------------------------------------------------------
    # Tree
    # ------------------------------------------------------------------

    async def create_folder(
        self,
        name: str,
        *,
        user_id: str,
        parent_id: str | None = None,
        color: str | None = None,
        description: str | None = None,
    ) -> NodeInfo:
        """Create a folder owned by *user_id* under *parent_id* (root when None)."""
        async with self._mutation(user_id) as session:
            folder = await self._tree.create_folder(
                session, name, parent_id, user_id, color=color, description=description
            )
            info = self._nodes.to_info(folder)
        await self._emit(EventType.FOLDER_CREATED, info, user_id=user_id)
        return info

    async def upload_file(
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
        """Store *data* and record it as a file.

        The blob is stored first; if the metadata write then fails, the
        blob is deleted again (or queued for deletion).
        """
        name = validate_name(name)
        size = len(data)
        async with self._session() as session:
            if parent_id is not None:
                await self._nodes.require_parent(session, parent_id, user_id)
            await self._quota.check_room(
                session, user_id, size, enforce=self.config.enforce_quota
            )

        blob = await put_blob(self._blob_store, data, name, self.config.blob_timeout)
        try:
            async with self._mutation(user_id) as session:
                file = await self._tree.create_file(
                    session,
                    name,
                    parent_id,
                    user_id,
                    blob=blob,
                    size_bytes=size,
                    mime_type=mime_type or guess_mime_type(name),
                    original_name=original_name,
                    tags=tags,
                )
                info = self._nodes.to_info(file)
        except Exception:
            if not await delete_blob(self._blob_store, blob.public_id, self.config.blob_timeout):
                self._blob_cleanup.add(blob.public_id, user_id)
            raise

        logger.info("Uploaded %s (%d bytes) for %s", info.path, size, user_id)
        await self._emit(EventType.FILE_UPLOADED, info, size_bytes=size, user_id=user_id)
        return info

    async def rename(self, node_id: str, new_name: str, *, user_id: str) -> NodeInfo:
        owner_id = await self._owner_of(node_id)
        async with self._mutation(owner_id) as session:
            node, old_path = await self._tree.rename(session, node_id, new_name, user_id)
            info = self._nodes.to_info(node)
        await self._emit(EventType.NODE_RENAMED, info, old_path=old_path, user_id=user_id)
        return info

    async def move(self, node_id: str, new_parent_id: str | None, *, user_id: str) -> NodeInfo:
        """Move a node under *new_parent_id*, or to the root when None."""
        owner_id = await self._owner_of(node_id)
        async with self._mutation(owner_id) as session:
            node, old_path = await self._tree.move(session, node_id, new_parent_id, user_id)
            info = self._nodes.to_info(node)
        await self._emit(EventType.NODE_MOVED, info, old_path=old_path, user_id=user_id)
        return info

    async def update_folder(
        self,
        folder_id: str,
        *,
        user_id: str,
        color: str | None = None,
        description: str | None = None,
    ) -> NodeInfo:
        owner_id = await self._owner_of(folder_id)
        async with self._mutation(owner_id) as session:
            folder = await self._tree.update_folder(
                session, folder_id, user_id, color=color, description=description
            )
            return self._nodes.to_info(folder)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _readable(
        self, session: AsyncSession, node_id: str, user_id: str | None
    ) -> tuple[NodeBase, AccessLevel]:
        node = await self._nodes.require_node(session, node_id)
        if node.is_deleted and node.owner_id != user_id:
            raise NotFoundError(f"Node not found: {node_id}")
        level = await self._permissions.require_read(session, node, user_id)
        return node, level

    async def get(self, node_id: str, *, user_id: str | None = None) -> NodeInfo:
        """Describe one node the caller can read. Owners also see trashed nodes."""
        async with self._session() as session:
            node, _ = await self._readable(session, node_id, user_id)
            return self._nodes.to_info(node)

    async def list_folder(
        self,
        folder_id: str | None = None,
        *,
        user_id: str,
    ) -> FolderListing:
        """List a folder's live children, or the caller's root when *folder_id* is None."""
        async with self._session() as session:
            if folder_id is None:
                return await self._nodes.list_children(session, None, user_id)
            folder = await self._nodes.get_folder(session, folder_id)
            if folder is None or folder.is_deleted:
                raise NotFoundError(f"Folder not found: {folder_id}")
            await self._permissions.require_read(session, folder, user_id)
            return await self._nodes.list_children(session, folder, folder.owner_id)

    async def breadcrumb(self, node_id: str, *, user_id: str) -> list[BreadcrumbEntry]:
        """Root-first trail to the node. Ancestors the caller cannot read are left out."""
        async with self._session() as session:
            node, _ = await self._readable(session, node_id, user_id)
            ancestors = await self._nodes.ancestors(session, node)
            if node.owner_id != user_id:
                visible = []
                for folder in ancestors:
                    resolved = await self._permissions.resolve(session, folder, user_id)
                    if resolved.access:
                        visible.append(folder)
                ancestors = visible
            return await self._nodes.breadcrumb(session, node, ancestors)

    async def search(self, query: str, *, user_id: str, limit: int = 50) -> list[NodeInfo]:
        async with self._session() as session:
            return await self._nodes.search(session, user_id, query, limit=limit)

    async def resolve_access(self, node_id: str, *, user_id: str | None) -> AccessResult:
        async with self._session() as session:
            node = await self._nodes.require_node(session, node_id)
            return await self._permissions.resolve(session, node, user_id)

    # ------------------------------------------------------------------
    # Trash
    # ------------------------------------------------------------------

    async def trash(self, node_id: str, *, user_id: str) -> TrashResult:
        """Soft-delete a node and its subtree. Owner only."""
        owner_id = await self._owner_of(node_id)
        async with self._mutation(owner_id) as session:
            result = await self._trash.soft_delete(session, node_id, user_id)
            info = self._nodes.to_info(await self._nodes.require_node(session, node_id))
        await self._emit(
            EventType.NODE_TRASHED, info, size_bytes=result.size_bytes, user_id=user_id
        )
        return result

    async def restore(self, node_id: str, *, user_id: str) -> TrashResult:
        owner_id = await self._owner_of(node_id)
        async with self._mutation(owner_id) as session:
            result = await self._trash.restore(session, node_id, user_id)
            info = self._nodes.to_info(await self._nodes.require_node(session, node_id))
        await self._emit(
            EventType.NODE_RESTORED, info, size_bytes=result.size_bytes, user_id=user_id
        )
        return result

    async def delete_permanently(self, node_id: str, *, user_id: str) -> PurgeResult:
        """Remove a trashed node and its subtree for good, then release the blobs."""
        owner_id = await self._owner_of(node_id)
        async with self._mutation(owner_id) as session:
            node = await self._nodes.require_node(session, node_id)
            info = self._nodes.to_info(node)
            result = await self._trash.permanently_delete(session, node_id, user_id)
        await self._release_blobs(result)
        await self._emit(
            EventType.NODE_PURGED, info, size_bytes=result.freed_bytes, user_id=user_id
        )
        return result

    async def list_trash(self, *, user_id: str, roots_only: bool = True) -> list[NodeInfo]:
        async with self._session() as session:
            return await self._trash.list_trash(session, user_id, roots_only=roots_only)

    async def empty_trash(self, *, user_id: str) -> list[PurgeResult]:
        """Permanently delete everything in *user_id*'s trash."""
        results: list[PurgeResult] = []
        infos: list[NodeInfo] = []
        async with self._mutation(user_id) as session:
            roots = await self._trash.trashed_nodes(session, user_id, roots_only=True)
            purged: set[str] = set()
            for root in roots:
                if root.id in purged:
                    continue
                infos.append(self._nodes.to_info(root))
                result = await self._trash.permanently_delete(session, root.id, user_id)
                purged.update(result.folder_ids, result.file_ids)
                results.append(result)

        for info, result in zip(infos, results, strict=True):
            await self._release_blobs(result)
            await self._emit(
                EventType.NODE_PURGED, info, size_bytes=result.freed_bytes, user_id=user_id
            )
        if results:
            logger.info("Emptied trash of %s: %d items", user_id, len(results))
        return results

    async def _release_blobs(self, result: PurgeResult) -> None:
        for ref in result.blobs:
            deleted = await delete_blob(self._blob_store, ref.public_id, self.config.blob_timeout)
            if not deleted:
                self._blob_cleanup.add(ref.public_id, result.owner_id)
                result.blob_failures.append(ref.public_id)
        if result.blob_failures:
            logger.warning(
                "%d blob deletes failed for purge of %s; queued for retry",
                len(result.blob_failures),
                result.node_id,
            )

    async def retry_blob_cleanup(self) -> CleanupReport:
        """Retry queued blob deletes once."""
        return await self._blob_cleanup.retry(
            self._blob_store,
            limit=self.config.blob_retry_limit,
            timeout=self.config.blob_timeout,
        )

    # ------------------------------------------------------------------
    # Sharing
    # ------------------------------------------------------------------

    async def share(
        self,
        node_id: str,
        grantee_id: str,
        permission: str = "read",
        *,
        user_id: str,
    ) -> ShareResult:
        """Grant *grantee_id* ``read`` or ``write`` access to one node."""
        owner_id = await self._owner_of(node_id)
        async with self._mutation(owner_id) as session:
            node, _ = await self._sharing.share_with(
                session, node_id, grantee_id, permission, user_id
            )
            grants = await self._sharing.list_grants(session, node.id)
            info = self._nodes.to_info(node)
            result = self._sharing.to_result(node, grants)
        await self._emit(EventType.NODE_SHARED, info, user_id=user_id)
        return result

    async def unshare(self, node_id: str, grantee_id: str, *, user_id: str) -> bool:
        owner_id = await self._owner_of(node_id)
        async with self._mutation(owner_id) as session:
            return await self._sharing.unshare(session, node_id, grantee_id, user_id)

    async def set_public(self, node_id: str, is_public: bool, *, user_id: str) -> ShareResult:
        owner_id = await self._owner_of(node_id)
        async with self._mutation(owner_id) as session:
            node = await self._sharing.set_public(session, node_id, is_public, user_id)
            grants = await self._sharing.list_grants(session, node.id)
            return self._sharing.to_result(node, grants)

    async def revoke_link(self, node_id: str, *, user_id: str) -> ShareResult:
        owner_id = await self._owner_of(node_id)
        async with self._mutation(owner_id) as session:
            node = await self._sharing.revoke_link(session, node_id, user_id)
            grants = await self._sharing.list_grants(session, node.id)
            return self._sharing.to_result(node, grants)

    async def list_shares(self, node_id: str, *, user_id: str) -> list[ShareInfo]:
        """Grants on a node, visible to its owner and write grantees."""
        async with self._session() as session:
            node = await self._nodes.require_node(session, node_id)
            await self._permissions.require_write(session, node, user_id)
            return await self._sharing.list_grants(session, node.id)

    async def shared_with_me(self, *, user_id: str) -> list[NodeInfo]:
        async with self._session() as session:
            shared = await self._sharing.list_shared_with(session, user_id)
            return [self._nodes.to_info(node) for node, _ in shared]

    async def open_shared(self, token: str, *, user_id: str | None = None) -> SharedView:
        """Open a node through its share link.

        Public nodes open for anyone; otherwise the caller must be the
        owner or a grantee.  Folders come with their listing.
        """
        async with self._session() as session:
            node = await self._sharing.get_by_token(session, token)
            if node is None:
                raise NotFoundError("Shared item not found")
            resolved = await self._permissions.resolve(session, node, user_id)
            if not resolved.access:
                raise AccessDeniedError("Access denied to shared item")
            listing = None
            if node.is_folder:
                listing = await self._nodes.list_children(
                    session, node, node.owner_id  # type: ignore[arg-type]
                )
            return SharedView(
                node=self._nodes.to_info(node),
                permission=resolved.permission,
                listing=listing,
            )

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    async def storage_usage(self, *, user_id: str) -> QuotaInfo:
        async with self._session() as session:
            return await self._quota.get_usage(session, user_id)

    async def reconcile_storage(self, *, user_id: str) -> int:
        """Recompute *user_id*'s usage from their live files."""
        async with self._mutation(user_id) as session:
            return await self._quota.reconcile(session, user_id)
