"""Storage capability consumed by the operation resolvers.

Resolvers only talk to a :class:`StorageBackend`; :class:`SQLAlchemyStorage`
is the implementation over SQLAlchemy's asyncio extension.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from .adapters import get_adapter
from .core.descriptors import SchemaRegistry, TableDescriptor
from .core.filters import Predicate
from .core.planner import SelectionNode
from .core.utils import get_context_lock, get_db_session
from .exceptions import StorageError
from .sql.builders import FetchStatementBuilder, delete_statement, insert_statement, update_statement
from .sql.hydration import RowHydrator

_logger = logging.getLogger("tableql")


class StorageBackend(Protocol):
    async def fetch(self, registry: SchemaRegistry, node: SelectionNode, context: Any) -> List[Dict[str, Any]]:
        """Rows for ``node`` with every nested relation filled in, in one round trip."""

    async def insert(self, table: TableDescriptor, rows: List[Dict[str, Any]], context: Any) -> List[Any]:
        """Insert ``rows``; return the primary keys written, in input order."""

    async def update(self, table: TableDescriptor, values: Dict[str, Any], where: Optional[Predicate], context: Any) -> List[Any]:
        """Update matching rows; return their primary keys."""

    async def delete(self, registry: SchemaRegistry, node: SelectionNode, context: Any) -> List[Dict[str, Any]]:
        """Delete rows matching ``node.where``; return them projected to ``node.columns``."""


def _driver_message(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, 'orig', None)
    return str(orig) if orig is not None else str(exc)


def _group_by_keys(rows: List[Dict[str, Any]]) -> List[List[Dict[str, Any]]]:
    """Split rows into runs sharing one key set, keeping input order."""
    groups: List[List[Dict[str, Any]]] = []
    last = None
    for row in rows:
        keys = tuple(sorted(row))
        if not keys or keys != last:
            groups.append([row])
        else:
            groups[-1].append(row)
        last = keys
    return groups


class SQLAlchemyStorage:
    """SQLAlchemy asyncio storage.

    With ``bind`` (an ``AsyncEngine`` or ``async_sessionmaker``) every call opens
    its own session, so sibling root fields can run concurrently. Without it the
    session is borrowed from the per-request context (``db_session``, ``db``,
    ``session`` or ``async_session``) and calls are serialised with a lock kept
    on that context.
    """

    def __init__(self, bind: Union[AsyncEngine, async_sessionmaker, None] = None):
        if isinstance(bind, AsyncEngine):
            bind = async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)
        self._factory: Optional[async_sessionmaker] = bind

    @asynccontextmanager
    async def session(self, context: Any) -> AsyncIterator[AsyncSession]:
        if self._factory is not None:
            async with self._factory() as session:
                yield session
            return
        session = get_db_session(context)
        if session is None:
            raise StorageError(
                "No database session in context (expected one of db_session, db, session, async_session)"
            )
        async with get_context_lock(context):
            yield session

    @staticmethod
    def _dialect(session: AsyncSession) -> str:
        return session.get_bind().dialect.name

    async def _run(self, session: AsyncSession, stmt, table: str, *, write: bool):
        try:
            result = await session.execute(stmt)
            rows = [dict(r) for r in result.mappings().all()]
            if write:
                await session.commit()
            return rows
        except SQLAlchemyError as exc:
            if write:
                await session.rollback()
            raise StorageError(_driver_message(exc), original=exc, table=table) from exc

    async def fetch(self, registry: SchemaRegistry, node: SelectionNode, context: Any) -> List[Dict[str, Any]]:
        async with self.session(context) as session:
            stmt = FetchStatementBuilder(registry, get_adapter(self._dialect(session))).build(node)
            _logger.debug("fetch %s (depth %s)", node.table, node.depth)
            rows = await self._run(session, stmt, node.table, write=False)
        return RowHydrator(registry).hydrate_rows(node, rows)

    async def insert(self, table: TableDescriptor, rows: List[Dict[str, Any]], context: Any) -> List[Any]:
        keys: List[Any] = []
        async with self.session(context) as session:
            try:
                for group in _group_by_keys(rows):
                    result = await session.execute(insert_statement(table, group))
                    keys.extend(r[table.primary_key] for r in result.mappings().all())
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                raise StorageError(_driver_message(exc), original=exc, table=table.name) from exc
        _logger.debug("inserted %d rows into %s", len(keys), table.name)
        return keys

    async def update(self, table: TableDescriptor, values: Dict[str, Any], where: Optional[Predicate], context: Any) -> List[Any]:
        async with self.session(context) as session:
            rows = await self._run(session, update_statement(table, values, where), table.name, write=True)
        return [r[table.primary_key] for r in rows]

    async def delete(self, registry: SchemaRegistry, node: SelectionNode, context: Any) -> List[Dict[str, Any]]:
        table = registry.table(node.table)
        async with self.session(context) as session:
            rows = await self._run(session, delete_statement(table, node.where, node.columns), table.name, write=True)
        return RowHydrator(registry).hydrate_rows(node, rows)


__all__ = ['StorageBackend', 'SQLAlchemyStorage']
