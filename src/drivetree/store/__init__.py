"""Node store layer — tree, trash, permissions, sharing, quota, blobs."""

from drivetree.store.blobs import BlobCleanupQueue, BlobStore, LocalDiskBlobStore, StoredBlob
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
from drivetree.store.locks import OwnerLocks
from drivetree.store.nodes import NodeService
from drivetree.store.permissions import PermissionResolver
from drivetree.store.quota import QuotaTracker
from drivetree.store.sharing import SharingService
from drivetree.store.trash import TrashService
from drivetree.store.tree import TreeService
from drivetree.store.types import (
    AccessLevel,
    AccessResult,
    BlobRef,
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
    "BlobCleanupQueue",
    "BlobRef",
    "BlobStore",
    "BreadcrumbEntry",
    "ConflictError",
    "CycleViolationError",
    "DriveError",
    "FolderListing",
    "FolderStats",
    "LocalDiskBlobStore",
    "LockTimeoutError",
    "NodeInfo",
    "NodeService",
    "NotFoundError",
    "OwnerLocks",
    "PermissionResolver",
    "PurgeResult",
    "QuotaExceededError",
    "QuotaInfo",
    "QuotaTracker",
    "ShareInfo",
    "ShareResult",
    "SharedView",
    "SharingService",
    "StorageError",
    "StoredBlob",
    "TrashResult",
    "TrashService",
    "TreeService",
    "ValidationError",
]
