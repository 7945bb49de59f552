"""StorageAccount model — per-owner storage usage counter."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import BigInteger, DateTime
from sqlmodel import Field, SQLModel

DEFAULT_STORAGE_LIMIT: int = 5 * 1024 * 1024 * 1024
"""5 GiB."""


class StorageAccountBase(SQLModel):
    """Base fields for a storage account. Subclass with ``table=True`` for a concrete table.

    ``storage_used`` is only ever changed by single-statement SQL updates
    so concurrent uploads and trash operations for the same owner never lose writes.
    """

    owner_id: str = Field(primary_key=True)
    storage_used: int = Field(
        default=0,
        ge=0,
        sa_type=BigInteger,  # type: ignore[invalid-argument-type]
    )
    storage_limit: int = Field(
        default=DEFAULT_STORAGE_LIMIT,
        ge=0,
        sa_type=BigInteger,  # type: ignore[invalid-argument-type]
    )
    reconciled_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class StorageAccount(StorageAccountBase, table=True):
    """Default storage account table — ``drive_storage_accounts``."""

    __tablename__ = "drive_storage_accounts"
