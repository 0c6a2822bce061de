from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional

from ..config import DEFAULT_MAX_DEPTH
from ..exceptions import ArgumentValidationError, SchemaBuildError
from .descriptors import RelationDescriptor, SchemaRegistry, TableDescriptor
from .filters import FilterCompiler, Predicate, conjoin
from .ordering import OrderEntry, compile_order
from .selection import ResolveTree

_logger = logging.getLogger("tableql")


def relation_result_key(table: TableDescriptor, response_key: str) -> str:
    """Row key holding a relation's nested result; never shadows a column."""
    if response_key in table.columns:
        return f"_{response_key}"
    return response_key


@dataclass
class SelectionNode:
    """What to fetch from one table at one nesting level.

    ``relations`` maps the relation's row key (see :func:`relation_result_key`)
    to the child node; ``truncated`` lists relation keys cut off by the depth
    limit, which resolve to an empty list or ``None``.
    """

    table: str
    columns: List[str] = field(default_factory=list)
    where: Optional[Predicate] = None
    order_by: Optional[List[OrderEntry]] = None
    limit: Optional[int] = None
    offset: Optional[int] = None
    relations: Dict[str, 'SelectionNode'] = field(default_factory=dict)
    relation: Optional[RelationDescriptor] = None
    truncated: Dict[str, RelationDescriptor] = field(default_factory=dict)

    @property
    def depth(self) -> int:
        if not self.relations:
            return 0
        return 1 + max(child.depth for child in self.relations.values())

    def without_relations(self) -> 'SelectionNode':
        dropped = dict(self.truncated)
        dropped.update({k: child.relation for k, child in self.relations.items()})
        return replace(self, relations={}, truncated=dropped)


def _pagination(table: TableDescriptor, name: str, value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ArgumentValidationError(
            f"{name} on {table.name} must be a non-negative integer, got {value!r}",
            table=table.name,
        )
    return value


class SelectionPlanner:
    """Builds the complete nested :class:`SelectionNode` for one root field.

    The planner never touches storage; the node it returns describes every
    level, so the storage layer can fetch it in a single statement.
    """

    def __init__(self, registry: SchemaRegistry, max_depth: int = DEFAULT_MAX_DEPTH, filters: Optional[FilterCompiler] = None):
        if isinstance(max_depth, bool) or not isinstance(max_depth, int) or max_depth < 1:
            raise SchemaBuildError(f"max_depth must be a positive integer, got {max_depth!r}")
        self.registry = registry
        self.max_depth = max_depth
        self.filters = filters or FilterCompiler()

    def plan(
        self,
        table_name: str,
        tree: ResolveTree,
        args: Optional[Mapping[str, Any]] = None,
        *,
        extra_where: Optional[Predicate] = None,
    ) -> SelectionNode:
        node = self._plan(self.registry.table(table_name), tree.fields, tree.args if args is None else args, None, 0)
        if extra_where is not None:
            node.where = conjoin(node.where, extra_where)
        _logger.debug("planned %s: depth=%s columns=%s", table_name, node.depth, node.columns)
        return node

    def _plan(
        self,
        table: TableDescriptor,
        fields: Mapping[str, ResolveTree],
        args: Mapping[str, Any],
        relation: Optional[RelationDescriptor],
        depth: int,
    ) -> SelectionNode:
        args = args or {}
        node = SelectionNode(table=table.name, relation=relation)
        node.where = self.filters.compile(table, args.get('where'))
        if relation is None or relation.is_many:
            node.order_by = compile_order(table, args.get('orderBy'))
            node.limit = _pagination(table, 'limit', args.get('limit'))
            node.offset = _pagination(table, 'offset', args.get('offset'))
        for key, sub in fields.items():
            if sub.name in table.columns:
                if sub.name not in node.columns:
                    node.columns.append(sub.name)
                continue
            rel = table.relations.get(sub.name)
            if rel is None:
                # computed or meta fields are resolved by the runtime
                continue
            row_key = relation_result_key(table, key)
            if depth + 1 > self.max_depth:
                _logger.warning(
                    "relation %s.%s exceeds max_depth=%s; resolving it empty",
                    table.name, sub.name, self.max_depth,
                )
                node.truncated[row_key] = rel
                continue
            target = self.registry.table(rel.target)
            node.relations[row_key] = self._plan(target, sub.fields, sub.args, rel, depth + 1)
        return node


__all__ = ['SelectionNode', 'SelectionPlanner', 'relation_result_key']
