"""Custom exception hierarchy for the drivetree node store."""


class DriveError(Exception):
    """Base exception for all drivetree errors."""


class NotFoundError(DriveError):
    """Raised when a node is missing, not owned, or in the wrong trash state."""


class ConflictError(DriveError):
    """Raised when a live sibling folder already holds the requested name."""


class CycleViolationError(DriveError):
    """Raised when a move would place a folder inside itself or a descendant."""


class AccessDeniedError(DriveError):
    """Raised when the principal's access level is below what the operation needs."""


class ValidationError(DriveError):
    """Raised on malformed names, colours, permissions or tags."""


class QuotaExceededError(DriveError):
    """Raised when an upload would exceed the owner's storage limit.

    Only raised when quota enforcement is switched on in ``DriveConfig``.
    """

    def __init__(self, owner_id: str, storage_limit: int, storage_used: int, required: int) -> None:
        self.owner_id = owner_id
        self.storage_limit = storage_limit
        self.storage_used = storage_used
        self.required = required
        available = max(0, storage_limit - storage_used)
        super().__init__(
            f"Quota exceeded for {owner_id!r}: need {required} bytes, "
            f"only {available} bytes available "
            f"(limit: {storage_limit}, used: {storage_used})"
        )


class StorageError(DriveError):
    """Raised when the blob store fails or times out during an upload."""


class LockTimeoutError(DriveError):
    """Raised when the per-owner mutation lock cannot be acquired in time."""
