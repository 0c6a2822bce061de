"""Query resolvers: find-many / find-first per table, plus relation field readers."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from .config import BuildConfig
from .core.descriptors import SchemaRegistry, TableDescriptor
from .core.filters import Comparison
from .core.naming import FIND_FIRST, FIND_MANY, root_field, type_name
from .core.planner import SelectionNode, SelectionPlanner, relation_result_key
from .core.selection import as_resolve_tree
from .storage import StorageBackend

_logger = logging.getLogger("tableql")

Resolver = Callable[[Any, Dict[str, Any], Any, Any], Any]


class ResolverFactory:
    """Shared state for the generated resolvers of one build.

    Every resolver takes ``(parent, args, context, info)``; ``info`` is either
    graphql-core resolve info or a prebuilt :class:`~tableql.core.selection.ResolveTree`.
    """

    def __init__(self, registry: SchemaRegistry, storage: StorageBackend, config: Optional[BuildConfig] = None):
        self.registry = registry
        self.storage = storage
        self.config = config or BuildConfig()
        self.planner = SelectionPlanner(registry, self.config.max_depth)

    def plan(self, table: str, args: Mapping[str, Any], info: Any) -> SelectionNode:
        return self.planner.plan(table, as_resolve_tree(info, args), args)

    async def find_many(self, table: str, args: Mapping[str, Any], context: Any, info: Any) -> List[Dict[str, Any]]:
        node = self.plan(table, args or {}, info)
        return await self.storage.fetch(self.registry, node, context)

    async def find_first(self, table: str, args: Mapping[str, Any], context: Any, info: Any) -> Optional[Dict[str, Any]]:
        node = self.plan(table, args or {}, info)
        node.limit = 1
        rows = await self.storage.fetch(self.registry, node, context)
        return rows[0] if rows else None

    async def fetch_by_keys(self, table: TableDescriptor, keys: List[Any], info: Any, context: Any) -> List[Dict[str, Any]]:
        """Re-select written rows by primary key with the caller's sub-selection."""
        if not keys:
            return []
        pk = table.primary_key
        node = self.planner.plan(
            table.name,
            as_resolve_tree(info, {}),
            {},
            extra_where=Comparison(pk, 'inArray', tuple(keys)),
        )
        added_pk = pk not in node.columns
        if added_pk:
            node.columns.append(pk)
        rows = await self.storage.fetch(self.registry, node, context)
        position = {k: i for i, k in enumerate(keys)}
        rows.sort(key=lambda r: position.get(r.get(pk), len(position)))
        if added_pk:
            for r in rows:
                r.pop(pk, None)
        return rows

    def bind_table(self, method, table: str) -> Resolver:
        async def resolve(parent, args, context, info):
            return await method(table, args, context, info)
        resolve.__name__ = f"{method.__name__}_{table}"
        return resolve

    def query_resolvers(self) -> Dict[str, Resolver]:
        out: Dict[str, Resolver] = {}
        for table in self.registry:
            out[root_field(table.name, FIND_MANY)] = self.bind_table(self.find_many, table.name)
            out[root_field(table.name, FIND_FIRST)] = self.bind_table(self.find_first, table.name)
        return out

    def relation_resolvers(self) -> Dict[str, Dict[str, Resolver]]:
        """Per object type, readers that pick a relation's prefetched value off the parent row."""
        out: Dict[str, Dict[str, Resolver]] = {}
        for table in self.registry:
            if not table.relations:
                continue
            fields: Dict[str, Resolver] = {}
            for rel in table.relations.values():
                fields[rel.name] = _relation_reader(table, rel.is_many)
            out[type_name(table.name)] = fields
        return out


def _relation_reader(table: TableDescriptor, is_many: bool) -> Resolver:
    def resolve(parent, args, context, info):
        key = getattr(getattr(info, 'path', None), 'key', None) or getattr(info, 'key', None)
        value = None
        if isinstance(parent, Mapping) and key is not None:
            value = parent.get(relation_result_key(table, key))
        if value is None:
            return [] if is_many else None
        return value
    return resolve


__all__ = ['ResolverFactory', 'Resolver']
