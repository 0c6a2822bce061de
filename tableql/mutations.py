"""Mutation resolvers: insert-many, update-many and delete-many per table.

Inserts and updates write first and then re-select the affected rows by
primary key with the caller's sub-selection, so relations can be requested on
mutation results. The write and the re-select are separate storage calls; a
concurrent writer may change the rows in between.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping

from .core.descriptors import TableDescriptor
from .core.naming import DELETE_MANY, INSERT_MANY, UPDATE_MANY, root_field
from .core.selection import as_resolve_tree
from .core.utils import coerce_value
from .exceptions import ArgumentValidationError
from .factory import Resolver, ResolverFactory

_logger = logging.getLogger("tableql")


def _coerce_row(table: TableDescriptor, values: Mapping[str, Any], action: str) -> Dict[str, Any]:
    row: Dict[str, Any] = {}
    for key, value in values.items():
        column = table.column(key)
        if column is None:
            raise ArgumentValidationError(
                f"{action} {table.name}: unknown column '{key}'",
                table=table.name,
                column=key,
            )
        try:
            row[key] = coerce_value(column, value)
        except (TypeError, ValueError) as exc:
            raise ArgumentValidationError(
                f"{action} {table.name}: invalid value for '{key}': {exc}",
                table=table.name,
                column=key,
            ) from exc
    return row


class MutationResolvers:
    def __init__(self, factory: ResolverFactory):
        self.factory = factory
        self.registry = factory.registry
        self.storage = factory.storage

    async def insert_many(self, table_name: str, args: Mapping[str, Any], context: Any, info: Any) -> List[Dict[str, Any]]:
        table = self.registry.table(table_name)
        values = (args or {}).get('values')
        if not values:
            raise ArgumentValidationError("No values provided for insert", table=table.name)
        rows = [_coerce_row(table, v, 'INSERT') for v in values]
        keys = await self.storage.insert(table, rows, context)
        return await self.factory.fetch_by_keys(table, keys, info, context)

    async def update_many(self, table_name: str, args: Mapping[str, Any], context: Any, info: Any) -> List[Dict[str, Any]]:
        table = self.registry.table(table_name)
        args = args or {}
        payload = args.get('set')
        if not payload:
            raise ArgumentValidationError("No values provided for update", table=table.name)
        values = _coerce_row(table, payload, 'UPDATE')
        where = self.factory.planner.filters.compile(table, args.get('where'))
        keys = await self.storage.update(table, values, where, context)
        _logger.debug("updated %d rows in %s", len(keys), table.name)
        return await self.factory.fetch_by_keys(table, keys, info, context)

    async def delete_many(self, table_name: str, args: Mapping[str, Any], context: Any, info: Any) -> List[Dict[str, Any]]:
        """Delete matching rows and return them; relations on deleted rows resolve empty."""
        args = args or {}
        node = self.factory.planner.plan(
            table_name,
            as_resolve_tree(info, args),
            {'where': args.get('where')},
        ).without_relations()
        return await self.storage.delete(self.registry, node, context)

    def resolvers(self) -> Dict[str, Resolver]:
        out: Dict[str, Resolver] = {}
        for table in self.registry:
            out[root_field(table.name, INSERT_MANY)] = self.factory.bind_table(self.insert_many, table.name)
            out[root_field(table.name, UPDATE_MANY)] = self.factory.bind_table(self.update_many, table.name)
            out[root_field(table.name, DELETE_MANY)] = self.factory.bind_table(self.delete_many, table.name)
        return out


__all__ = ['MutationResolvers']
