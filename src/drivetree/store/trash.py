"""TrashService — cascading soft-delete, restore, purge, and trash listing."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete as sa_delete
from sqlmodel import select

from .exceptions import ConflictError, NotFoundError
from .types import BlobRef, NodeInfo, PurgeResult, TrashResult

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from drivetree.models.nodes import FolderBase, NodeBase
    from drivetree.models.shares import ShareGrantBase

    from .nodes import NodeService
    from .permissions import PermissionResolver

logger = logging.getLogger(__name__)


def _as_utc(value: datetime | None) -> datetime:
    # SQLite hands back naive datetimes
    if value is None:
        return datetime.min.replace(tzinfo=UTC)
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class TrashService:
    """Trash lifecycle applied to whole subtrees.

    Each operation touches the node's full cascade set (see
    ``NodeService.collect_subtree``) inside the caller's transaction, so
    the set transitions together or not at all.  All three operations are
    owner-only.
    """

    def __init__(
        self,
        nodes: NodeService,
        permissions: PermissionResolver,
        share_model: type[ShareGrantBase],
    ) -> None:
        self._nodes = nodes
        self._permissions = permissions
        self._share_model = share_model

    async def soft_delete(
        self,
        session: AsyncSession,
        node_id: str,
        principal_id: str,
    ) -> TrashResult:
        """Move a node and its whole subtree to trash."""
        node = await self._nodes.require_node(session, node_id)
        self._permissions.require_owner(node, principal_id)
        if node.is_deleted:
            raise NotFoundError(f"Node is already in trash: {node_id}")

        folders, files = await self._nodes.collect_subtree(session, node)
        # Files trashed on their own earlier already left the usage count.
        size_bytes = sum(f.size_bytes for f in files if not f.is_deleted)  # type: ignore[attr-defined]
        now = datetime.now(UTC)
        for member in [*folders, *files]:
            member.is_deleted = True
            member.deleted_at = now
            member.updated_at = now
        await session.flush()

        logger.info(
            "Moved %s %s to trash (%d folders, %d files)",
            node.node_kind,
            node.path,
            len(folders),
            len(files),
        )
        return TrashResult(
            node_id=node.id,
            folder_ids=[f.id for f in folders],
            file_ids=[f.id for f in files],
            size_bytes=size_bytes,
        )

    async def restore(
        self,
        session: AsyncSession,
        node_id: str,
        principal_id: str,
    ) -> TrashResult:
        """Restore a trashed node and everything under it.

        Descendants that were trashed on their own before the ancestor
        are restored too.
        """
        node = await self._nodes.require_node(session, node_id)
        self._permissions.require_owner(node, principal_id)
        if not node.is_deleted:
            raise NotFoundError(f"Node not found in trash: {node_id}")

        if node.parent_id is not None:
            parent = await self._nodes.get_folder(session, node.parent_id)
            if parent is None:
                raise NotFoundError(f"Parent folder no longer exists: {node.parent_id}")
            if parent.is_deleted:
                raise ConflictError(
                    f"Parent folder {parent.path} is in trash; restore it first"
                )

        folders, files = await self._nodes.collect_subtree(session, node)
        await self._check_restore_names(session, folders)

        size_bytes = sum(f.size_bytes for f in files if f.is_deleted)  # type: ignore[attr-defined]
        now = datetime.now(UTC)
        for member in [*folders, *files]:
            member.is_deleted = False
            member.deleted_at = None
            member.updated_at = now
        await session.flush()

        logger.info(
            "Restored %s %s from trash (%d folders, %d files)",
            node.node_kind,
            node.path,
            len(folders),
            len(files),
        )
        return TrashResult(
            node_id=node.id,
            folder_ids=[f.id for f in folders],
            file_ids=[f.id for f in files],
            size_bytes=size_bytes,
        )

    async def _check_restore_names(
        self,
        session: AsyncSession,
        folders: Sequence[FolderBase],
    ) -> None:
        """Raise ConflictError if restoring *folders* would duplicate a live folder name.

        Checks each folder against live folders outside the set and
        against the other members of the set.
        """
        member_ids = {f.id for f in folders}
        seen: dict[tuple[str | None, str], FolderBase] = {}
        for folder in folders:
            key = (folder.parent_id, folder.name)
            twin = seen.get(key)
            if twin is not None:
                raise ConflictError(
                    f"Folder with this name already exists in this location: {twin.path}"
                )
            seen[key] = folder

            existing = await self._nodes.find_live_sibling_folder(
                session, folder.owner_id, folder.parent_id, folder.name, exclude_id=folder.id
            )
            if existing is not None and existing.id not in member_ids:
                raise ConflictError(
                    f"Folder with this name already exists in this location: {existing.path}"
                )

    async def permanently_delete(
        self,
        session: AsyncSession,
        node_id: str,
        principal_id: str,
    ) -> PurgeResult:
        """Remove a trashed node's records and grants. Flushes but does not commit.

        Blob deletion is left to the caller, after commit; the returned
        ``blobs`` list names what to release.
        """
        node = await self._nodes.require_node(session, node_id)
        self._permissions.require_owner(node, principal_id)
        if not node.is_deleted:
            raise NotFoundError(f"Node not found in trash: {node_id}")

        folders, files = await self._nodes.collect_subtree(session, node)
        result = PurgeResult(
            node_id=node.id,
            owner_id=node.owner_id,
            folder_ids=[f.id for f in folders],
            file_ids=[f.id for f in files],
            blobs=[
                BlobRef(file_id=f.id, public_id=f.public_id, size_bytes=f.size_bytes)  # type: ignore[attr-defined]
                for f in files
            ],
        )
        result.freed_bytes = sum(b.size_bytes for b in result.blobs)

        node_ids = result.folder_ids + result.file_ids
        share_model = self._share_model
        await session.execute(
            sa_delete(share_model).where(share_model.node_id.in_(node_ids))  # type: ignore[union-attr]
        )
        for member in [*files, *folders]:
            await session.delete(member)
        await session.flush()

        logger.info(
            "Permanently deleted %s %s (%d folders, %d files, %d bytes)",
            node.node_kind,
            node.path,
            len(folders),
            len(files),
            result.freed_bytes,
        )
        return result

    async def list_trash(
        self,
        session: AsyncSession,
        owner_id: str,
        *,
        roots_only: bool = False,
    ) -> list[NodeInfo]:
        """List *owner_id*'s trashed nodes, newest first.

        With *roots_only*, nodes whose parent folder is also in trash are
        left out, so each trashed subtree appears once.
        """
        nodes = await self.trashed_nodes(session, owner_id, roots_only=roots_only)
        return [self._nodes.to_info(n) for n in nodes]

    async def trashed_nodes(
        self,
        session: AsyncSession,
        owner_id: str,
        *,
        roots_only: bool = False,
    ) -> list[NodeBase]:
        trashed: list[NodeBase] = []
        for model in (self._nodes.folder_model, self._nodes.file_model):
            result = await session.execute(
                select(model).where(
                    model.owner_id == owner_id,
                    model.is_deleted.is_(True),  # type: ignore[union-attr]
                )
            )
            trashed.extend(result.scalars().all())

        if roots_only:
            trashed_folder_ids = {n.id for n in trashed if n.is_folder}
            trashed = [n for n in trashed if n.parent_id not in trashed_folder_ids]

        trashed.sort(key=lambda n: (_as_utc(n.deleted_at), n.path), reverse=True)
        return trashed
