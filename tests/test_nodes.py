"""Tests for NodeService — lookups, subtree enumeration, breadcrumbs."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from drivetree.models import File, Folder
from drivetree.store.exceptions import NotFoundError
from drivetree.store.nodes import NodeService, escape_like

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from drivetree.store.tree import TreeService


class TestLookups:
    async def test_get_node_either_kind(
        self, nodes: NodeService, tree: TreeService, async_session: AsyncSession
    ):
        docs = await tree.create_folder(async_session, "Docs", None, "alice")
        assert (await nodes.get_node(async_session, docs.id)) is docs
        assert await nodes.get_node(async_session, "nope") is None
        with pytest.raises(NotFoundError):
            await nodes.require_node(async_session, "nope")

    def test_escape_like(self):
        assert escape_like("100%_a\\b") == "100\\%\\_a\\\\b"


class TestCollectSubtree:
    async def test_parents_first(
        self, nodes: NodeService, tree: TreeService, async_session: AsyncSession
    ):
        a = await tree.create_folder(async_session, "A", None, "alice")
        b = await tree.create_folder(async_session, "B", a.id, "alice")
        c = await tree.create_folder(async_session, "C", b.id, "alice")
        folders, files = await nodes.collect_subtree(async_session, a)
        order = [f.id for f in folders]
        assert order.index(a.id) < order.index(b.id) < order.index(c.id)
        assert files == []

    async def test_wildcards_in_names(
        self, nodes: NodeService, tree: TreeService, async_session: AsyncSession
    ):
        pct = await tree.create_folder(async_session, "50%", None, "alice")
        inner = await tree.create_folder(async_session, "in", pct.id, "alice")
        other = await tree.create_folder(async_session, "50x", None, "alice")
        await tree.create_folder(async_session, "in", other.id, "alice")

        folders, _ = await nodes.collect_subtree(async_session, pct)
        assert {f.id for f in folders} == {pct.id, inner.id}

    async def test_case_variant_sibling_excluded(
        self, nodes: NodeService, tree: TreeService, async_session: AsyncSession
    ):
        lower = await tree.create_folder(async_session, "docs", None, "alice")
        upper = await tree.create_folder(async_session, "Docs", None, "alice")
        await tree.create_folder(async_session, "x", upper.id, "alice")

        folders, _ = await nodes.collect_subtree(async_session, lower)
        assert [f.id for f in folders] == [lower.id]


class TestBreadcrumb:
    async def test_root_node(
        self, nodes: NodeService, tree: TreeService, async_session: AsyncSession
    ):
        docs = await tree.create_folder(async_session, "Docs", None, "alice")
        trail = await nodes.breadcrumb(async_session, docs)
        assert [(e.id, e.name) for e in trail] == [(None, "My Drive"), (docs.id, "Docs")]

    async def test_depth_bound(self, tree: TreeService, async_session: AsyncSession):
        bounded = NodeService(Folder, File, max_depth=2)
        parent_id = None
        for name in ("a", "b", "c", "d"):
            folder = await tree.create_folder(async_session, name, parent_id, "alice")
            parent_id = folder.id
        ancestors = await bounded.ancestors(async_session, folder)
        assert [f.name for f in ancestors] == ["b", "c"]
