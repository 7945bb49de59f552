"""Shared fixtures for drivetree tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from drivetree._drive_async import DriveAsync
from drivetree.models import File, Folder, ShareGrant, StorageAccount
from drivetree.store.blobs import LocalDiskBlobStore
from drivetree.store.nodes import NodeService
from drivetree.store.permissions import PermissionResolver
from drivetree.store.quota import QuotaTracker
from drivetree.store.sharing import SharingService
from drivetree.store.trash import TrashService
from drivetree.store.tree import TreeService

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Async in-memory SQLite engine with all tables created."""
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def async_session(async_engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Async SQLModel session, rolled back after each test."""
    factory = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture
def nodes() -> NodeService:
    return NodeService(Folder, File)


@pytest.fixture
def permissions() -> PermissionResolver:
    return PermissionResolver(ShareGrant)


@pytest.fixture
def tree(nodes: NodeService, permissions: PermissionResolver) -> TreeService:
    return TreeService(nodes, permissions, default_color="#1976d2")


@pytest.fixture
def trash(nodes: NodeService, permissions: PermissionResolver) -> TrashService:
    return TrashService(nodes, permissions, ShareGrant)


@pytest.fixture
def sharing(nodes: NodeService, permissions: PermissionResolver) -> SharingService:
    return SharingService(nodes, permissions, ShareGrant, base_url="https://drive.example.com")


@pytest.fixture
def quota() -> QuotaTracker:
    return QuotaTracker(StorageAccount, File, dialect="sqlite", default_limit=1000)


# ---------------------------------------------------------------------------
# Facade
# ---------------------------------------------------------------------------


@pytest.fixture
def blob_store(tmp_path: Path) -> LocalDiskBlobStore:
    blob_dir = tmp_path / "blobs"
    blob_dir.mkdir()
    return LocalDiskBlobStore(blob_dir)


@pytest.fixture
async def drive(
    async_engine: AsyncEngine, blob_store: LocalDiskBlobStore
) -> AsyncIterator[DriveAsync]:
    d = DriveAsync(engine=async_engine, blob_store=blob_store)
    await d.open()
    yield d
    await d.close()
