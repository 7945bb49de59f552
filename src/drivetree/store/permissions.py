"""PermissionResolver — node-scoped access resolution.

Access is decided on the node alone.  A grant on a folder says nothing
about the folder's contents; each node's own grants and public flag
govern its own access.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlmodel import select

from .exceptions import AccessDeniedError
from .types import AccessLevel, AccessResult

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from drivetree.models.nodes import NodeBase
    from drivetree.models.shares import ShareGrantBase


class PermissionResolver:
    """Resolves the effective access of a principal on one node.

    Rules, first match wins:

    1. principal owns the node → ``owner``
    2. principal holds an explicit grant → the grant's permission
    3. node is public → ``read``
    4. otherwise → ``none``
    """

    def __init__(self, share_model: type[ShareGrantBase]) -> None:
        self._share_model = share_model

    async def resolve(
        self,
        session: AsyncSession,
        node: NodeBase,
        principal_id: str | None,
    ) -> AccessResult:
        """Resolve *principal_id*'s access on *node*.

        ``principal_id`` may be None for anonymous callers, who can only
        ever get public read access.
        """
        if principal_id is not None and principal_id == node.owner_id:
            return AccessResult(access=True, permission=AccessLevel.OWNER)

        if principal_id is not None:
            model = self._share_model
            result = await session.execute(
                select(model.permission).where(  # type: ignore[arg-type]
                    model.node_id == node.id,
                    model.grantee_id == principal_id,
                )
            )
            permission = result.scalars().first()
            if permission is not None:
                return AccessResult(access=True, permission=AccessLevel(permission))

        if node.is_public:
            return AccessResult(access=True, permission=AccessLevel.READ)

        return AccessResult(access=False, permission=AccessLevel.NONE)

    async def require_read(
        self,
        session: AsyncSession,
        node: NodeBase,
        principal_id: str | None,
    ) -> AccessLevel:
        resolved = await self.resolve(session, node, principal_id)
        if not resolved.permission.can_read:
            raise AccessDeniedError(
                f"Access denied: {principal_id!r} cannot read {node.node_kind} {node.id}"
            )
        return resolved.permission

    async def require_write(
        self,
        session: AsyncSession,
        node: NodeBase,
        principal_id: str | None,
    ) -> AccessLevel:
        resolved = await self.resolve(session, node, principal_id)
        if not resolved.permission.can_write:
            raise AccessDeniedError(
                f"Access denied: {principal_id!r} does not have 'write' permission "
                f"on {node.node_kind} {node.id}"
            )
        return resolved.permission

    @staticmethod
    def require_owner(node: NodeBase, principal_id: str | None) -> None:
        """Trash operations are never delegated through grants."""
        if principal_id is None or principal_id != node.owner_id:
            raise AccessDeniedError(
                f"Access denied: only the owner can do this on {node.node_kind} {node.id}"
            )
