"""Dialect-aware SQL helpers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sqlalchemy import Engine
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession


def get_dialect(engine: Engine | AsyncEngine) -> str:
    """Return 'sqlite', 'postgresql', or the engine's own dialect name."""
    # AsyncEngine wraps a sync engine
    sync_engine = getattr(engine, "sync_engine", engine)
    name = sync_engine.dialect.name
    if name in ("postgresql", "postgres"):
        return "postgresql"
    return name


async def insert_ignore(
    session: AsyncSession,
    dialect: str,
    model: type,
    values: dict[str, Any],
    conflict_keys: list[str],
) -> int:
    """Insert a row unless one with the same *conflict_keys* exists. Returns rowcount.

    - SQLite/PostgreSQL: INSERT ... ON CONFLICT DO NOTHING
    - Others: SELECT then INSERT (relies on the caller's owner lock)
    """
    if dialect in ("sqlite", "postgresql"):
        if dialect == "postgresql":
            from sqlalchemy.dialects import postgresql as dialect_module
        else:
            from sqlalchemy.dialects import sqlite as dialect_module

        stmt = dialect_module.insert(model).values(**values)
        stmt = stmt.on_conflict_do_nothing(index_elements=conflict_keys)
        result = await session.execute(stmt)
        return result.rowcount  # type: ignore[return-value]

    from sqlmodel import select

    criteria = [getattr(model, k) == values[k] for k in conflict_keys]
    existing = await session.execute(select(model).where(*criteria))
    if existing.scalars().first() is not None:
        return 0
    session.add(model(**values))
    await session.flush()
    return 1
