"""NodeService — node lookup, subtree enumeration, listings, breadcrumbs."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import func
from sqlmodel import select

from .exceptions import NotFoundError
from .paths import SEPARATOR, split_segments
from .types import BreadcrumbEntry, FolderListing, FolderStats, NodeInfo

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from drivetree.models.nodes import FileBase, FolderBase, NodeBase

logger = logging.getLogger(__name__)

DEFAULT_ROOT_LABEL = "My Drive"
DEFAULT_MAX_DEPTH = 256


def escape_like(value: str) -> str:
    """Escape SQL LIKE wildcards so *value* matches literally (escape char ``\\``)."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class NodeService:
    """Stateless helpers for node lookup and conversion.

    Receives the concrete folder and file models at construction so
    callers can use custom SQLModel subclasses.
    """

    def __init__(
        self,
        folder_model: type[FolderBase],
        file_model: type[FileBase],
        *,
        root_label: str = DEFAULT_ROOT_LABEL,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self._folder_model = folder_model
        self._file_model = file_model
        self.root_label = root_label
        self.max_depth = max_depth

    @property
    def folder_model(self) -> type[FolderBase]:
        return self._folder_model

    @property
    def file_model(self) -> type[FileBase]:
        return self._file_model

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_folder(self, session: AsyncSession, folder_id: str) -> FolderBase | None:
        return await session.get(self._folder_model, folder_id)

    async def get_file(self, session: AsyncSession, file_id: str) -> FileBase | None:
        return await session.get(self._file_model, file_id)

    async def get_node(self, session: AsyncSession, node_id: str) -> NodeBase | None:
        """Get a folder or file by id, deleted or not."""
        folder = await self.get_folder(session, node_id)
        if folder is not None:
            return folder
        return await self.get_file(session, node_id)

    async def require_node(self, session: AsyncSession, node_id: str) -> NodeBase:
        node = await self.get_node(session, node_id)
        if node is None:
            raise NotFoundError(f"Node not found: {node_id}")
        return node

    async def require_parent(
        self,
        session: AsyncSession,
        parent_id: str,
        owner_id: str,
    ) -> FolderBase:
        """Return the live folder *parent_id* owned by *owner_id*, else raise."""
        parent = await self.get_folder(session, parent_id)
        if parent is None or parent.owner_id != owner_id or parent.is_deleted:
            raise NotFoundError(f"Parent folder not found or access denied: {parent_id}")
        return parent

    async def find_live_sibling_folder(
        self,
        session: AsyncSession,
        owner_id: str,
        parent_id: str | None,
        name: str,
        *,
        exclude_id: str | None = None,
    ) -> FolderBase | None:
        """Find a live folder named *name* under *parent_id* for *owner_id*."""
        model = self._folder_model
        conditions = [
            model.owner_id == owner_id,
            model.name == name,
            model.is_deleted.is_(False),  # type: ignore[union-attr]
        ]
        if parent_id is None:
            conditions.append(model.parent_id.is_(None))  # type: ignore[union-attr]
        else:
            conditions.append(model.parent_id == parent_id)
        if exclude_id is not None:
            conditions.append(model.id != exclude_id)
        result = await session.execute(select(model).where(*conditions).limit(1))
        return result.scalars().first()

    # ------------------------------------------------------------------
    # Subtree enumeration
    # ------------------------------------------------------------------

    async def collect_subtree(
        self,
        session: AsyncSession,
        node: NodeBase,
    ) -> tuple[list[FolderBase], list[FileBase]]:
        """Return ``(folders, files)`` making up the cascade set of *node*.

        For a folder: the folder itself, every folder whose path has the
        folder's path as a strict prefix and that is linked to it through
        ``parent_id``, and every file whose parent is in that folder set.
        Deleted and live nodes are both included.  For a file: just the
        file.
        """
        if not node.is_folder:
            return [], [node]  # type: ignore[list-item]

        model = self._folder_model
        root: FolderBase = node  # type: ignore[assignment]
        prefix = root.path + SEPARATOR
        result = await session.execute(
            select(model).where(
                model.owner_id == root.owner_id,
                model.path.startswith(prefix, autoescape=True),  # type: ignore[union-attr]
            )
        )
        candidates = result.scalars().all()

        # LIKE is case-insensitive on SQLite and a trashed folder may share
        # the path of a live one, so only keep folders linked by parent_id.
        children: dict[str | None, list[FolderBase]] = {}
        for candidate in candidates:
            if candidate.path.startswith(prefix):
                children.setdefault(candidate.parent_id, []).append(candidate)

        folders: list[FolderBase] = [root]
        pending = [root.id]
        while pending:
            current = pending.pop()
            for child in children.get(current, []):
                folders.append(child)
                pending.append(child.id)

        files = await self._files_in(session, [f.id for f in folders], root.owner_id)
        return folders, files

    async def _files_in(
        self,
        session: AsyncSession,
        folder_ids: Sequence[str],
        owner_id: str,
    ) -> list[FileBase]:
        model = self._file_model
        result = await session.execute(
            select(model).where(
                model.owner_id == owner_id,
                model.parent_id.in_(folder_ids),  # type: ignore[union-attr]
            )
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    async def list_children(
        self,
        session: AsyncSession,
        folder: FolderBase | None,
        owner_id: str,
    ) -> FolderListing:
        """List live subfolders and files of *folder* (root when None), sorted by name."""
        parent_id = folder.id if folder is not None else None
        folder_model = self._folder_model
        file_model = self._file_model

        folder_query = select(folder_model).where(
            folder_model.owner_id == owner_id,
            folder_model.is_deleted.is_(False),  # type: ignore[union-attr]
        )
        file_query = select(file_model).where(
            file_model.owner_id == owner_id,
            file_model.is_deleted.is_(False),  # type: ignore[union-attr]
        )
        if parent_id is None:
            folder_query = folder_query.where(folder_model.parent_id.is_(None))  # type: ignore[union-attr]
            file_query = file_query.where(file_model.parent_id.is_(None))  # type: ignore[union-attr]
        else:
            folder_query = folder_query.where(folder_model.parent_id == parent_id)
            file_query = file_query.where(file_model.parent_id == parent_id)

        folders = (await session.execute(folder_query.order_by(folder_model.name))).scalars().all()
        files = (await session.execute(file_query.order_by(file_model.name))).scalars().all()

        child_stats = await self.folder_stats(session, [f.id for f in folders])

        return FolderListing(
            folder=self.to_info(folder) if folder is not None else None,
            folders=[self.to_info(f) for f in folders],
            files=[self.to_info(f) for f in files],
            stats=FolderStats(
                file_count=len(files),
                folder_count=len(folders),
                total_size=sum(f.size_bytes for f in files),
            ),
            child_stats=child_stats,
        )

    async def folder_stats(
        self,
        session: AsyncSession,
        folder_ids: Sequence[str],
    ) -> dict[str, FolderStats]:
        """Direct live file count, subfolder count and size per folder id."""
        stats = {fid: FolderStats() for fid in folder_ids}
        if not stats:
            return stats

        file_model = self._file_model
        file_rows = await session.execute(
            select(
                file_model.parent_id,
                func.count(file_model.id),  # type: ignore[arg-type]
                func.coalesce(func.sum(file_model.size_bytes), 0),
            )
            .where(
                file_model.parent_id.in_(folder_ids),  # type: ignore[union-attr]
                file_model.is_deleted.is_(False),  # type: ignore[union-attr]
            )
            .group_by(file_model.parent_id)
        )
        for parent_id, count, total in file_rows.all():
            stats[parent_id].file_count = count
            stats[parent_id].total_size = int(total)

        folder_model = self._folder_model
        folder_rows = await session.execute(
            select(folder_model.parent_id, func.count(folder_model.id))  # type: ignore[arg-type]
            .where(
                folder_model.parent_id.in_(folder_ids),  # type: ignore[union-attr]
                folder_model.is_deleted.is_(False),  # type: ignore[union-attr]
            )
            .group_by(folder_model.parent_id)
        )
        for parent_id, count in folder_rows.all():
            stats[parent_id].folder_count = count

        return stats

    async def search(
        self,
        session: AsyncSession,
        owner_id: str,
        query: str,
        *,
        limit: int = 50,
    ) -> list[NodeInfo]:
        """Case-insensitive substring match on names of the owner's live nodes."""
        query = query.strip()
        if not query:
            return []
        pattern = f"%{escape_like(query)}%"

        entries: list[NodeInfo] = []
        for model in (self._folder_model, self._file_model):
            result = await session.execute(
                select(model)
                .where(
                    model.owner_id == owner_id,
                    model.is_deleted.is_(False),  # type: ignore[union-attr]
                    model.name.ilike(pattern, escape="\\"),  # type: ignore[union-attr]
                )
                .order_by(model.path)
                .limit(limit)
            )
            entries.extend(self.to_info(n) for n in result.scalars().all())
        return entries[:limit]

    # ------------------------------------------------------------------
    # Breadcrumbs
    # ------------------------------------------------------------------

    async def ancestors(self, session: AsyncSession, node: NodeBase) -> list[FolderBase]:
        """Return the ancestor folders of *node*, root first.

        All candidates are fetched with one query on their materialized
        paths, then chained through ``parent_id`` with a bounded walk.
        """
        segments = split_segments(node.path)
        ancestor_paths = [
            SEPARATOR + SEPARATOR.join(segments[:i]) for i in range(1, len(segments))
        ]
        if not ancestor_paths or node.parent_id is None:
            return []

        model = self._folder_model
        result = await session.execute(
            select(model).where(
                model.owner_id == node.owner_id,
                model.path.in_(ancestor_paths),  # type: ignore[union-attr]
            )
        )
        by_id = {f.id: f for f in result.scalars().all()}

        chain: list[FolderBase] = []
        current_id: str | None = node.parent_id
        while current_id is not None and len(chain) < self.max_depth:
            folder = by_id.get(current_id)
            if folder is None:
                # Path and linkage disagree; fall back to a direct lookup.
                logger.warning("Breadcrumb path mismatch for node %s at %s", node.id, current_id)
                folder = await self.get_folder(session, current_id)
                if folder is None:
                    break
            chain.append(folder)
            current_id = folder.parent_id
        chain.reverse()
        return chain

    async def breadcrumb(
        self,
        session: AsyncSession,
        node: NodeBase,
        ancestors: Sequence[FolderBase] | None = None,
    ) -> list[BreadcrumbEntry]:
        """Root-first breadcrumb ending at *node*, led by a synthetic root entry."""
        if ancestors is None:
            ancestors = await self.ancestors(session, node)
        trail = [BreadcrumbEntry(id=None, name=self.root_label, path=SEPARATOR)]
        trail.extend(BreadcrumbEntry(id=f.id, name=f.name, path=f.path) for f in ancestors)
        trail.append(BreadcrumbEntry(id=node.id, name=node.name, path=node.path))
        return trail

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    @staticmethod
    def to_info(node: NodeBase) -> NodeInfo:
        """Convert a folder or file record to NodeInfo."""
        info = NodeInfo(
            id=node.id,
            kind=node.node_kind,
            name=node.name,
            path=node.path,
            parent_id=node.parent_id,
            owner_id=node.owner_id,
            is_deleted=node.is_deleted,
            deleted_at=node.deleted_at,
            created_at=node.created_at,
            updated_at=node.updated_at,
            is_public=node.is_public,
        )
        if node.is_folder:
            info.color = node.color  # type: ignore[attr-defined]
            info.description = node.description  # type: ignore[attr-defined]
        else:
            info.original_name = node.original_name  # type: ignore[attr-defined]
            info.size_bytes = node.size_bytes  # type: ignore[attr-defined]
            info.mime_type = node.mime_type  # type: ignore[attr-defined]
            info.url = node.url  # type: ignore[attr-defined]
            info.version = node.version  # type: ignore[attr-defined]
            info.tags = list(node.tags or [])  # type: ignore[attr-defined]
        return info
