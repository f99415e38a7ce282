"""Dialect-aware INSERT ... ON CONFLICT DO UPDATE.

PostgreSQL in production, SQLite in tests; both support the same
``on_conflict_do_update`` construct with column expressions in ``set_``
referring to the existing row.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def _insert_for(db: AsyncSession, model: Any):  # noqa: ANN202, ANN401
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    msg = f"Upsert not supported for dialect {dialect!r}"
    raise NotImplementedError(msg)


async def upsert(
    db: AsyncSession,
    model: Any,  # noqa: ANN401
    values: dict[str, Any],
    index_elements: list[str],
    set_: dict[str, Any],
) -> None:
    """Insert ``values`` or, on conflict with ``index_elements``, apply ``set_``."""
    stmt = _insert_for(db, model).values(**values)
    stmt = stmt.on_conflict_do_update(index_elements=index_elements, set_=set_)
    await db.execute(stmt)


async def insert_ignore(
    db: AsyncSession,
    model: Any,  # noqa: ANN401
    values: dict[str, Any],
    index_elements: list[str],
) -> None:
    """Insert ``values`` unless a row with the same ``index_elements`` exists."""
    stmt = _insert_for(db, model).values(**values)
    await db.execute(stmt.on_conflict_do_nothing(index_elements=index_elements))
