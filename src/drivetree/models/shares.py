"""ShareGrant model — explicit per-node grants to other principals.

Provides ``ShareGrantBase`` (non-table) and ``ShareGrant`` (concrete table).
A node's ordered ``sharedWith`` list is its grants ordered by
``created_at``.  Grants never propagate to descendants.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel


class ShareGrantBase(SQLModel):
    """Base fields for a share grant. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    node_id: str = Field(index=True)
    node_kind: str = Field(default="folder")
    grantee_id: str = Field(index=True)
    permission: str = Field(default="read")
    granted_by: str = Field(default="")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    shared_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class ShareGrant(ShareGrantBase, table=True):
    """Default share grant table — ``drive_share_grants``."""

    __tablename__ = "drive_share_grants"
    __table_args__ = (
        UniqueConstraint("node_id", "grantee_id", name="uq_drive_share_grants_node_grantee"),
    )
