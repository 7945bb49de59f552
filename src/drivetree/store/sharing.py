"""SharingService — explicit grants, public flag and share links.

Stateless service that receives the share model at construction and a
session at call time.  Grants reference nodes by id, so renames and
moves never touch them.
"""

from __future__ import annotations

import logging
import secrets
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlmodel import select

from .exceptions import NotFoundError, ValidationError
from .paths import validate_permission
from .types import ShareInfo, ShareResult

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from drivetree.models.nodes import NodeBase
    from drivetree.models.shares import ShareGrantBase

    from .nodes import NodeService
    from .permissions import PermissionResolver

logger = logging.getLogger(__name__)


def new_share_token() -> str:
    return secrets.token_hex(16)


class SharingService:
    """Manages per-node grants and link sharing.

    Constructor receives the concrete share model so callers can use
    custom SQLModel subclasses with different table names.
    """

    def __init__(
        self,
        nodes: NodeService,
        permissions: PermissionResolver,
        share_model: type[ShareGrantBase],
        *,
        base_url: str,
    ) -> None:
        self._nodes = nodes
        self._permissions = permissions
        self._share_model = share_model
        self.base_url = base_url.rstrip("/")

    def share_url(self, token: str | None) -> str | None:
        if token is None:
            return None
        return f"{self.base_url}/shared/{token}"

    async def _require_live(self, session: AsyncSession, node_id: str) -> NodeBase:
        node = await self._nodes.require_node(session, node_id)
        if node.is_deleted:
            raise NotFoundError(f"Node is in trash: {node_id}")
        return node

    @staticmethod
    def _ensure_token(node: NodeBase) -> str:
        if node.share_token is None:
            node.share_token = new_share_token()
        return node.share_token

    # ------------------------------------------------------------------
    # Grants
    # ------------------------------------------------------------------

    async def share_with(
        self,
        session: AsyncSession,
        node_id: str,
        grantee_id: str,
        permission: str,
        principal_id: str,
    ) -> tuple[NodeBase, ShareGrantBase]:
        """Grant *grantee_id* access to one node. Flushes but does not commit.

        Sharing again with the same grantee updates the permission and
        ``shared_at`` of the existing grant.
        """
        permission = validate_permission(permission)
        node = await self._require_live(session, node_id)
        await self._permissions.require_write(session, node, principal_id)

        grantee_id = grantee_id.strip() if grantee_id else ""
        if not grantee_id:
            raise ValidationError("Grantee id cannot be empty")
        if grantee_id == node.owner_id:
            raise ValidationError("Cannot share with the node's owner")

        model = self._share_model
        result = await session.execute(
            select(model).where(model.node_id == node.id, model.grantee_id == grantee_id)
        )
        grant = result.scalar_one_or_none()
        now = datetime.now(UTC)
        if grant is None:
            grant = model(
                node_id=node.id,
                node_kind=node.node_kind,
                grantee_id=grantee_id,
                permission=permission,
                granted_by=principal_id,
            )
            session.add(grant)
        else:
            grant.permission = permission
            grant.granted_by = principal_id
            grant.shared_at = now

        self._ensure_token(node)
        node.updated_at = now
        await session.flush()
        logger.debug("Shared %s %s with %s (%s)", node.node_kind, node.id, grantee_id, permission)
        return node, grant

    async def unshare(
        self,
        session: AsyncSession,
        node_id: str,
        grantee_id: str,
        principal_id: str,
    ) -> bool:
        """Remove *grantee_id*'s grant. Returns True if one existed."""
        node = await self._require_live(session, node_id)
        await self._permissions.require_write(session, node, principal_id)

        model = self._share_model
        result = await session.execute(
            select(model).where(model.node_id == node.id, model.grantee_id == grantee_id)
        )
        grant = result.scalar_one_or_none()
        if grant is None:
            return False
        await session.delete(grant)
        node.updated_at = datetime.now(UTC)
        await session.flush()
        return True

    async def list_grants(self, session: AsyncSession, node_id: str) -> list[ShareInfo]:
        """Grants on one node, oldest first."""
        model = self._share_model
        result = await session.execute(
            select(model).where(model.node_id == node_id).order_by(model.created_at)
        )
        return [self.to_share_info(g) for g in result.scalars().all()]

    async def list_shared_with(
        self,
        session: AsyncSession,
        grantee_id: str,
    ) -> list[tuple[NodeBase, str]]:
        """Live nodes explicitly shared with *grantee_id*, with the granted permission."""
        model = self._share_model
        result = await session.execute(
            select(model).where(model.grantee_id == grantee_id).order_by(model.shared_at.desc())  # type: ignore[union-attr]
        )
        shared: list[tuple[NodeBase, str]] = []
        for grant in result.scalars().all():
            node = await self._nodes.get_node(session, grant.node_id)
            if node is None or node.is_deleted:
                continue
            shared.append((node, grant.permission))
        return shared

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    async def set_public(
        self,
        session: AsyncSession,
        node_id: str,
        is_public: bool,
        principal_id: str,
    ) -> NodeBase:
        """Toggle public read access. Making a node public gives it a token."""
        node = await self._require_live(session, node_id)
        await self._permissions.require_write(session, node, principal_id)
        node.is_public = is_public
        if is_public:
            self._ensure_token(node)
        node.updated_at = datetime.now(UTC)
        await session.flush()
        return node

    async def revoke_link(
        self,
        session: AsyncSession,
        node_id: str,
        principal_id: str,
    ) -> NodeBase:
        """Invalidate the share link and public access. Grants are kept."""
        node = await self._require_live(session, node_id)
        await self._permissions.require_write(session, node, principal_id)
        node.share_token = None
        node.is_public = False
        node.updated_at = datetime.now(UTC)
        await session.flush()
        return node

    async def get_by_token(self, session: AsyncSession, token: str) -> NodeBase | None:
        """The live node carrying *token*, if any."""
        if not token:
            return None
        for model in (self._nodes.folder_model, self._nodes.file_model):
            result = await session.execute(
                select(model).where(
                    model.share_token == token,
                    model.is_deleted.is_(False),  # type: ignore[union-attr]
                )
            )
            node = result.scalars().first()
            if node is not None:
                return node
        return None

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    @staticmethod
    def to_share_info(grant: ShareGrantBase) -> ShareInfo:
        return ShareInfo(
            node_id=grant.node_id,
            grantee_id=grant.grantee_id,
            permission=grant.permission,
            granted_by=grant.granted_by,
            shared_at=grant.shared_at,
        )

    def to_result(self, node: NodeBase, grants: Sequence[ShareInfo] = ()) -> ShareResult:
        return ShareResult(
            node_id=node.id,
            share_token=node.share_token,
            share_url=self.share_url(node.share_token),
            is_public=node.is_public,
            grants=list(grants),
        )
