"""drivetree: per-user folder/file trees with trash, sharing and quotas."""

__version__ = "0.1.0"

from drivetree._drive import Drive
from drivetree._drive_async import DriveAsync
from drivetree.config import DriveConfig
from drivetree.events import EventBus, EventType, NodeEvent
from drivetree.store.blobs import BlobStore, LocalDiskBlobStore, StoredBlob
from drivetree.store.exceptions import (
    AccessDeniedError,
    ConflictError,
    CycleViolationError,
    DriveError,
    LockTimeoutError,
    NotFoundError,
    QuotaExceededError,
    StorageError,
    ValidationError,
)
from drivetree.store.types import (
    AccessLevel,
    AccessResult,
    BreadcrumbEntry,
    FolderListing,
    FolderStats,
    NodeInfo,
    PurgeResult,
    QuotaInfo,
    SharedView,
    ShareInfo,
    ShareResult,
    TrashResult,
)

__all__ = [
    "AccessDeniedError",
    "AccessLevel",
    "AccessResult",
    "BlobStore",
    "BreadcrumbEntry",
    "ConflictError",
    "CycleViolationError",
    "Drive",
    "DriveAsync",
    "DriveConfig",
    "DriveError",
    "EventBus",
    "EventType",
    "FolderListing",
    "FolderStats",
    "LocalDiskBlobStore",
    "LockTimeoutError",
    "NodeEvent",
    "NodeInfo",
    "NotFoundError",
    "PurgeResult",
    "QuotaExceededError",
    "QuotaInfo",
    "SharedView",
    "ShareInfo",
    "ShareResult",
    "StorageError",
    "StoredBlob",
    "TrashResult",
    "ValidationError",
]
