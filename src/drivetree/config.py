"""DriveConfig — settings passed to the drive facades."""

from __future__ import annotations

from dataclasses import dataclass

from drivetree.models.accounts import DEFAULT_STORAGE_LIMIT
from drivetree.models.nodes import DEFAULT_FOLDER_COLOR
from drivetree.store.paths import validate_color


@dataclass
class DriveConfig:
    """Configuration for one drive instance."""

    share_base_url: str = "http://localhost:3000"
    """Frontend origin used to build share links (``{base}/shared/{token}``)."""

    default_folder_color: str = DEFAULT_FOLDER_COLOR
    """Colour given to folders created without one."""

    default_storage_limit: int = DEFAULT_STORAGE_LIMIT
    """Storage limit of newly created accounts, in bytes."""

    enforce_quota: bool = False
    """If True, uploads that would exceed the limit raise ``QuotaExceededError``.
    Otherwise they succeed and a warning is logged."""

    blob_timeout: float = 30.0
    """Seconds allowed for each blob-store call."""

    lock_timeout: float = 10.0
    """Seconds to wait for an owner's mutation lock."""

    blob_retry_limit: int = 5
    """Attempts before a failed blob delete is abandoned as an orphan."""

    max_breadcrumb_depth: int = 256
    """Upper bound on ancestor walks."""

    root_label: str = "My Drive"
    """Name of the synthetic root breadcrumb entry."""

    def __post_init__(self) -> None:
        self.share_base_url = self.share_base_url.rstrip("/")
        if not self.share_base_url:
            raise ValueError("share_base_url cannot be empty")
        self.default_folder_color = validate_color(self.default_folder_color)
        if self.default_storage_limit < 0:
            raise ValueError("default_storage_limit must be >= 0")
        for name in ("blob_timeout", "lock_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")
        if self.blob_retry_limit < 1:
            raise ValueError("blob_retry_limit must be >= 1")
        if self.max_breadcrumb_depth < 1:
            raise ValueError("max_breadcrumb_depth must be >= 1")
