"""Tests for SharingService — grants, public flag and share links."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from drivetree.store.exceptions import AccessDeniedError, NotFoundError, ValidationError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from drivetree.store.sharing import SharingService
    from drivetree.store.trash import TrashService
    from drivetree.store.tree import TreeService


@pytest.fixture
async def folder(tree: TreeService, async_session: AsyncSession):
    return await tree.create_folder(async_session, "Docs", None, "alice")


# ---------------------------------------------------------------------------
# share_with / unshare
# ---------------------------------------------------------------------------


class TestShareWith:
    async def test_creates_grant_and_token(
        self, sharing: SharingService, folder, async_session: AsyncSession
    ):
        node, grant = await sharing.share_with(async_session, folder.id, "bob", "read", "alice")
        assert grant.node_id == folder.id
        assert grant.node_kind == "folder"
        assert grant.grantee_id == "bob"
        assert grant.permission == "read"
        assert grant.granted_by == "alice"
        assert node.share_token is not None
        assert len(node.share_token) == 32

    async def test_reshare_updates_permission(
        self, sharing: SharingService, folder, async_session: AsyncSession
    ):
        _, first = await sharing.share_with(async_session, folder.id, "bob", "read", "alice")
        token = folder.share_token
        _, second = await sharing.share_with(async_session, folder.id, "bob", "write", "alice")
        assert second.id == first.id
        assert second.permission == "write"
        assert folder.share_token == token

        grants = await sharing.list_grants(async_session, folder.id)
        assert len(grants) == 1

    async def test_grants_listed_in_order(
        self, sharing: SharingService, folder, async_session: AsyncSession
    ):
        for grantee in ("bob", "carol", "dave"):
            await sharing.share_with(async_session, folder.id, grantee, "read", "alice")
        grants = await sharing.list_grants(async_session, folder.id)
        assert [g.grantee_id for g in grants] == ["bob", "carol", "dave"]

    async def test_cannot_share_with_owner(
        self, sharing: SharingService, folder, async_session: AsyncSession
    ):
        with pytest.raises(ValidationError, match="owner"):
            await sharing.share_with(async_session, folder.id, "alice", "read", "alice")

    async def test_invalid_permission(
        self, sharing: SharingService, folder, async_session: AsyncSession
    ):
        with pytest.raises(ValidationError, match="Invalid permission"):
            await sharing.share_with(async_session, folder.id, "bob", "admin", "alice")

    async def test_requires_write(
        self, sharing: SharingService, folder, async_session: AsyncSession
    ):
        with pytest.raises(AccessDeniedError):
            await sharing.share_with(async_session, folder.id, "carol", "read", "bob")

    async def test_write_grantee_can_reshare(
        self, sharing: SharingService, folder, async_session: AsyncSession
    ):
        await sharing.share_with(async_session, folder.id, "bob", "write", "alice")
        _, grant = await sharing.share_with(async_session, folder.id, "carol", "read", "bob")
        assert grant.granted_by == "bob"

    async def test_trashed_node(
        self,
        sharing: SharingService,
        trash: TrashService,
        folder,
        async_session: AsyncSession,
    ):
        await trash.soft_delete(async_session, folder.id, "alice")
        with pytest.raises(NotFoundError):
            await sharing.share_with(async_session, folder.id, "bob", "read", "alice")


class TestUnshare:
    async def test_unshare(self, sharing: SharingService, folder, async_session: AsyncSession):
        await sharing.share_with(async_session, folder.id, "bob", "read", "alice")
        assert await sharing.unshare(async_session, folder.id, "bob", "alice") is True
        assert await sharing.list_grants(async_session, folder.id) == []

    async def test_unshare_missing(
        self, sharing: SharingService, folder, async_session: AsyncSession
    ):
        assert await sharing.unshare(async_session, folder.id, "bob", "alice") is False


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------


class TestLinks:
    async def test_set_public_creates_token(
        self, sharing: SharingService, folder, async_session: AsyncSession
    ):
        node = await sharing.set_public(async_session, folder.id, True, "alice")
        assert node.is_public is True
        assert node.share_token is not None

        result = sharing.to_result(node)
        assert result.share_url == f"https://drive.example.com/shared/{node.share_token}"

    async def test_set_private_keeps_token(
        self, sharing: SharingService, folder, async_session: AsyncSession
    ):
        await sharing.set_public(async_session, folder.id, True, "alice")
        node = await sharing.set_public(async_session, folder.id, False, "alice")
        assert node.is_public is False
        assert node.share_token is not None

    async def test_get_by_token(
        self, sharing: SharingService, folder, async_session: AsyncSession
    ):
        await sharing.set_public(async_session, folder.id, True, "alice")
        found = await sharing.get_by_token(async_session, folder.share_token)
        assert found is folder
        assert await sharing.get_by_token(async_session, "deadbeef") is None
        assert await sharing.get_by_token(async_session, "") is None

    async def test_get_by_token_ignores_trash(
        self,
        sharing: SharingService,
        trash: TrashService,
        folder,
        async_session: AsyncSession,
    ):
        await sharing.set_public(async_session, folder.id, True, "alice")
        token = folder.share_token
        await trash.soft_delete(async_session, folder.id, "alice")
        assert await sharing.get_by_token(async_session, token) is None

    async def test_revoke_link(self, sharing: SharingService, folder, async_session: AsyncSession):
        await sharing.share_with(async_session, folder.id, "bob", "read", "alice")
        await sharing.set_public(async_session, folder.id, True, "alice")
        token = folder.share_token

        node = await sharing.revoke_link(async_session, folder.id, "alice")
        assert node.share_token is None
        assert node.is_public is False
        assert await sharing.get_by_token(async_session, token) is None
        assert len(await sharing.list_grants(async_session, folder.id)) == 1

    async def test_share_url_none_without_token(
        self, sharing: SharingService, folder, async_session: AsyncSession
    ):
        result = sharing.to_result(folder)
        assert result.share_token is None
        assert result.share_url is None


# ---------------------------------------------------------------------------
# list_shared_with
# ---------------------------------------------------------------------------


class TestListSharedWith:
    async def test_lists_live_nodes(
        self,
        sharing: SharingService,
        tree: TreeService,
        trash: TrashService,
        folder,
        async_session: AsyncSession,
    ):
        music = await tree.create_folder(async_session, "Music", None, "alice")
        await sharing.share_with(async_session, folder.id, "bob", "read", "alice")
        await sharing.share_with(async_session, music.id, "bob", "write", "alice")
        await trash.soft_delete(async_session, music.id, "alice")

        shared = await sharing.list_shared_with(async_session, "bob")
        assert [(n.id, p) for n, p in shared] == [(folder.id, "read")]

    async def test_nothing_shared(self, sharing: SharingService, async_session: AsyncSession):
        assert await sharing.list_shared_with(async_session, "bob") == []
