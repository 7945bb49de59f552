"""TreeService — create, rename, move and update with path maintenance."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from .exceptions import ConflictError, CycleViolationError, NotFoundError
from .paths import (
    compute_path,
    is_same_or_descendant,
    validate_color,
    validate_description,
    validate_name,
    validate_tags,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from drivetree.models.nodes import FileBase, FolderBase, NodeBase

    from .blobs import StoredBlob
    from .nodes import NodeService
    from .permissions import PermissionResolver

logger = logging.getLogger(__name__)


class TreeService:
    """Structural mutations of the node tree.

    Every check (parent liveness, sibling uniqueness, cycles) runs inside
    the caller's transaction immediately before the write, so callers
    holding the owner lock see a consistent tree.  Paths of descendants
    are derived state and are rewritten on every rename and move.
    """

    def __init__(
        self,
        nodes: NodeService,
        permissions: PermissionResolver,
        *,
        default_color: str,
    ) -> None:
        self._nodes = nodes
        self._permissions = permissions
        self.default_color = default_color

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_folder(
        self,
        session: AsyncSession,
        name: str,
        parent_id: str | None,
        owner_id: str,
        *,
        color: str | None = None,
        description: str | None = None,
    ) -> FolderBase:
        """Create a folder. Flushes but does not commit."""
        name = validate_name(name)
        color = validate_color(color) if color is not None else self.default_color
        description = validate_description(description)

        parent_path: str | None = None
        if parent_id is not None:
            parent = await self._nodes.require_parent(session, parent_id, owner_id)
            parent_path = parent.path

        await self._check_sibling(session, owner_id, parent_id, name)

        folder = self._nodes.folder_model(
            owner_id=owner_id,
            parent_id=parent_id,
            name=name,
            path=compute_path(name, parent_path),
            color=color,
            description=description,
        )
        session.add(folder)
        await session.flush()
        logger.debug("Created folder %s at %s", folder.id, folder.path)
        return folder

    async def create_file(
        self,
        session: AsyncSession,
        name: str,
        parent_id: str | None,
        owner_id: str,
        *,
        blob: StoredBlob,
        size_bytes: int,
        mime_type: str,
        original_name: str | None = None,
        tags: Iterable[str] | None = None,
    ) -> FileBase:
        """Record an already-stored blob as a file. Flushes but does not commit.

        Files are not subject to sibling-name uniqueness.
        """
        name = validate_name(name)
        if size_bytes < 0:
            raise ValueError(f"size_bytes must be >= 0, got {size_bytes}")
        clean_tags = validate_tags(tags)

        parent_path: str | None = None
        if parent_id is not None:
            parent = await self._nodes.require_parent(session, parent_id, owner_id)
            parent_path = parent.path

        file = self._nodes.file_model(
            owner_id=owner_id,
            parent_id=parent_id,
            name=name,
            path=compute_path(name, parent_path),
            original_name=original_name or name,
            size_bytes=size_bytes,
            mime_type=mime_type,
            url=blob.url,
            public_id=blob.public_id,
            tags=clean_tags,
        )
        session.add(file)
        await session.flush()
        logger.debug("Created file %s at %s (%d bytes)", file.id, file.path, size_bytes)
        return file

    # ------------------------------------------------------------------
    # Rename / move
    # ------------------------------------------------------------------

    async def rename(
        self,
        session: AsyncSession,
        node_id: str,
        new_name: str,
        principal_id: str,
    ) -> tuple[NodeBase, str]:
        """Rename a node and rewrite descendant paths.

        Returns ``(node, old_path)``.
        """
        node = await self._require_live(session, node_id)
        await self._permissions.require_write(session, node, principal_id)
        new_name = validate_name(new_name)

        if node.is_folder:
            await self._check_sibling(
                session, node.owner_id, node.parent_id, new_name, exclude_id=node.id
            )

        parent_path = await self._parent_path(session, node)
        old_path = node.path
        new_path = compute_path(new_name, parent_path)

        node.name = new_name
        await self._relocate(session, node, old_path, new_path)
        logger.debug("Renamed %s %s: %s -> %s", node.node_kind, node.id, old_path, new_path)
        return node, old_path

    async def move(
        self,
        session: AsyncSession,
        node_id: str,
        new_parent_id: str | None,
        principal_id: str,
    ) -> tuple[NodeBase, str]:
        """Move a node under *new_parent_id* (root when None).

        Returns ``(node, old_path)``.
        """
        node = await self._require_live(session, node_id)
        await self._permissions.require_write(session, node, principal_id)

        if new_parent_id is not None and new_parent_id == node.id:
            raise CycleViolationError(f"Cannot move {node.path} into itself")

        parent_path: str | None = None
        if new_parent_id is not None:
            dest = await self._nodes.get_folder(session, new_parent_id)
            if dest is None or dest.is_deleted or dest.owner_id != node.owner_id:
                raise NotFoundError(f"Destination folder not found: {new_parent_id}")
            await self._permissions.require_write(session, dest, principal_id)
            if node.is_folder and is_same_or_descendant(dest.path, node.path):
                raise CycleViolationError(
                    f"Cannot move folder into itself: {dest.path} is inside {node.path}"
                )
            parent_path = dest.path

        if node.is_folder:
            await self._check_sibling(
                session, node.owner_id, new_parent_id, node.name, exclude_id=node.id
            )

        old_path = node.path
        new_path = compute_path(node.name, parent_path)
        node.parent_id = new_parent_id
        await self._relocate(session, node, old_path, new_path)
        logger.debug("Moved %s %s: %s -> %s", node.node_kind, node.id, old_path, new_path)
        return node, old_path

    async def update_folder(
        self,
        session: AsyncSession,
        folder_id: str,
        principal_id: str,
        *,
        color: str | None = None,
        description: str | None = None,
    ) -> FolderBase:
        """Change a folder's colour and/or description."""
        folder = await self._nodes.get_folder(session, folder_id)
        if folder is None or folder.is_deleted:
            raise NotFoundError(f"Folder not found: {folder_id}")
        await self._permissions.require_write(session, folder, principal_id)

        if color is not None:
            folder.color = validate_color(color)
        if description is not None:
            folder.description = validate_description(description)
        folder.touch()
        await session.flush()
        return folder

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _require_live(self, session: AsyncSession, node_id: str) -> NodeBase:
        node = await self._nodes.require_node(session, node_id)
        if node.is_deleted:
            raise NotFoundError(f"Node is in trash: {node_id}")
        return node

    async def _parent_path(self, session: AsyncSession, node: NodeBase) -> str | None:
        if node.parent_id is None:
            return None
        parent = await self._nodes.get_folder(session, node.parent_id)
        if parent is None:
            raise NotFoundError(f"Parent folder not found: {node.parent_id}")
        return parent.path

    async def _check_sibling(
        self,
        session: AsyncSession,
        owner_id: str,
        parent_id: str | None,
        name: str,
        *,
        exclude_id: str | None = None,
    ) -> None:
        existing = await self._nodes.find_live_sibling_folder(
            session, owner_id, parent_id, name, exclude_id=exclude_id
        )
        if existing is not None:
            raise ConflictError(
                f"Folder with this name already exists in this location: {existing.path}"
            )

    async def _relocate(
        self,
        session: AsyncSession,
        node: NodeBase,
        old_path: str,
        new_path: str,
    ) -> None:
        """Set *node*'s path and rewrite every descendant's path."""
        now = datetime.now(UTC)
        if node.is_folder and old_path != new_path:
            # Enumerate before the root's path changes; the subtree query
            # matches on the old prefix.  Folders come parents first.
            folders, files = await self._nodes.collect_subtree(session, node)
            new_paths = {node.id: new_path}
            for desc in [*folders, *files]:
                if desc.id == node.id:
                    continue
                desc.path = compute_path(desc.name, new_paths[desc.parent_id])  # type: ignore[index]
                desc.updated_at = now
                new_paths[desc.id] = desc.path
        node.path = new_path
        node.updated_at = now
        await session.flush()
