"""SQLModel database models for drivetree."""

from drivetree.models.accounts import DEFAULT_STORAGE_LIMIT, StorageAccount, StorageAccountBase
from drivetree.models.nodes import (
    DEFAULT_FOLDER_COLOR,
    FILE,
    FOLDER,
    File,
    FileBase,
    Folder,
    FolderBase,
    NodeBase,
)
from drivetree.models.shares import ShareGrant, ShareGrantBase

__all__ = [
    "DEFAULT_FOLDER_COLOR",
    "DEFAULT_STORAGE_LIMIT",
    "FILE",
    "FOLDER",
    "File",
    "FileBase",
    "Folder",
    "FolderBase",
    "NodeBase",
    "ShareGrant",
    "ShareGrantBase",
    "StorageAccount",
    "StorageAccountBase",
]
