"""Result types: NodeInfo, AccessResult, TrashResult, ShareResult, etc."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime


class AccessLevel(str, Enum):
    """Effective access of a principal on a single node."""

    OWNER = "owner"
    WRITE = "write"
    READ = "read"
    NONE = "none"

    @property
    def can_read(self) -> bool:
        return self is not AccessLevel.NONE

    @property
    def can_write(self) -> bool:
        return self in (AccessLevel.OWNER, AccessLevel.WRITE)


@dataclass
class NodeInfo:
    """Folder/file descriptor.

    File-only fields are ``None`` for folders; ``color`` is ``None`` for files.
    """

    id: str
    kind: str
    name: str
    path: str
    parent_id: str | None
    owner_id: str
    is_deleted: bool = False
    deleted_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    color: str | None = None
    description: str | None = None
    original_name: str | None = None
    size_bytes: int | None = None
    mime_type: str | None = None
    url: str | None = None
    version: int | None = None
    tags: list[str] = field(default_factory=list)
    is_public: bool = False

    @property
    def is_folder(self) -> bool:
        return self.kind == "folder"


@dataclass
class FolderStats:
    """Live direct contents of a folder."""

    file_count: int = 0
    folder_count: int = 0
    total_size: int = 0


@dataclass
class FolderListing:
    """Result of listing a folder (or the namespace root when ``folder`` is None)."""

    folder: NodeInfo | None
    folders: list[NodeInfo] = field(default_factory=list)
    files: list[NodeInfo] = field(default_factory=list)
    stats: FolderStats = field(default_factory=FolderStats)
    child_stats: dict[str, FolderStats] = field(default_factory=dict)
    """Per-subfolder stats keyed by subfolder id."""


@dataclass
class BreadcrumbEntry:
    """One step of a breadcrumb. The synthetic root entry has ``id=None``."""

    id: str | None
    name: str
    path: str


@dataclass
class AccessResult:
    """Result of permission resolution."""

    access: bool
    permission: AccessLevel


@dataclass
class TrashResult:
    """Result of a soft-delete or restore cascade."""

    node_id: str
    folder_ids: list[str] = field(default_factory=list)
    file_ids: list[str] = field(default_factory=list)
    size_bytes: int = 0
    """Bytes of the files whose trash state this cascade changed."""

    @property
    def total(self) -> int:
        return len(self.folder_ids) + len(self.file_ids)


@dataclass
class BlobRef:
    """Blob-store reference of a purged file."""

    file_id: str
    public_id: str
    size_bytes: int


@dataclass
class PurgeResult:
    """Result of a permanent delete."""

    node_id: str
    owner_id: str
    folder_ids: list[str] = field(default_factory=list)
    file_ids: list[str] = field(default_factory=list)
    blobs: list[BlobRef] = field(default_factory=list)
    freed_bytes: int = 0
    blob_failures: list[str] = field(default_factory=list)
    """public ids whose blob delete failed and were queued for retry."""

    @property
    def total(self) -> int:
        return len(self.folder_ids) + len(self.file_ids)


@dataclass
class ShareInfo:
    """One explicit grant on a node."""

    node_id: str
    grantee_id: str
    permission: str
    granted_by: str
    shared_at: datetime | None = None


@dataclass
class ShareResult:
    """Result of a share/unshare/publish operation."""

    node_id: str
    share_token: str | None
    share_url: str | None
    is_public: bool = False
    grants: list[ShareInfo] = field(default_factory=list)


@dataclass
class SharedView:
    """A node opened through its share token."""

    node: NodeInfo
    permission: AccessLevel
    listing: FolderListing | None = None


@dataclass
class QuotaInfo:
    """Storage usage of an owner."""

    owner_id: str
    storage_used: int
    storage_limit: int

    @property
    def available(self) -> int:
        return max(0, self.storage_limit - self.storage_used)

    @property
    def over_limit(self) -> bool:
        return self.storage_used > self.storage_limit
