"""Folder and File models sharing one ``NodeBase``.

Both node kinds carry the same capability set (materialized path, owner,
parent linkage, trash state, public flag, share token) so that trash and
permission logic is written once against ``NodeBase``.

Provides ``FolderBase`` and ``FileBase`` non-table base classes.
Subclass with ``table=True`` and a custom ``__tablename__`` to use a
different table name per deployment.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import ClassVar

from sqlalchemy import JSON, BigInteger, DateTime
from sqlmodel import Field, SQLModel

DEFAULT_FOLDER_COLOR: str = "#1976d2"

FOLDER: str = "folder"
FILE: str = "file"


class NodeBase(SQLModel):
    """Fields shared by folders and files."""

    node_kind: ClassVar[str] = ""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    owner_id: str = Field(index=True)
    parent_id: str | None = Field(default=None, index=True)
    """Containing folder id; ``None`` at the namespace root."""
    name: str = Field(index=True)
    path: str = Field(index=True)
    is_deleted: bool = Field(default=False, index=True)
    deleted_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    is_public: bool = Field(default=False)
    share_token: str | None = Field(default=None, unique=True, index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )

    @property
    def is_folder(self) -> bool:
        return self.node_kind == FOLDER

    def touch(self) -> None:
        self.updated_at = datetime.now(UTC)


class FolderBase(NodeBase):
    """Base fields for a folder. Subclass with ``table=True`` for a concrete table."""

    node_kind: ClassVar[str] = FOLDER

    color: str = Field(default=DEFAULT_FOLDER_COLOR)
    description: str | None = Field(default=None)


class Folder(FolderBase, table=True):
    """Default folder table — ``drive_folders``."""

    __tablename__ = "drive_folders"


class FileBase(NodeBase):
    """Base fields for a stored file. Subclass with ``table=True`` for a concrete table.

    ``parent_id`` holds the containing folder id.  The binary content
    lives in the blob store under ``public_id``.
    """

    node_kind: ClassVar[str] = FILE

    original_name: str = Field(default="")
    size_bytes: int = Field(
        default=0,
        ge=0,
        sa_type=BigInteger,  # type: ignore[invalid-argument-type]
    )
    mime_type: str = Field(default="application/octet-stream")
    url: str = Field(default="")
    public_id: str = Field(default="", index=True)
    tags: list[str] = Field(
        default_factory=list,
        sa_type=JSON,  # type: ignore[invalid-argument-type]
    )
    version: int = Field(default=1)


class File(FileBase, table=True):
    """Default file table — ``drive_files``."""

    __tablename__ = "drive_files"
