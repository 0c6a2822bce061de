"""SelectionNode -> one SQLAlchemy SELECT.

Relations become correlated scalar subqueries that aggregate the child rows to
JSON, nested as deep as the node goes, so a whole selection tree is fetched
with a single statement.
"""
from __future__ import annotations

import itertools
from typing import List, Optional

from sqlalchemy import JSON, String, and_, delete, insert, literal_column, select, type_coerce, update
from sqlalchemy.sql import Select

from ..adapters.base import BaseAdapter
from ..core.descriptors import SchemaRegistry, TableDescriptor
from ..core.filters import Predicate
from ..core.planner import SelectionNode


def _key(name: str):
    return literal_column("'" + name.replace("'", "''") + "'")


def _is_enum(table: TableDescriptor, name: str) -> bool:
    col = table.column(name)
    return col is not None and bool(col.enum_values)


def project_column(table: TableDescriptor, source, name: str):
    """Column labelled by its key; enums come back as their stored strings."""
    col = source.c[name]
    if _is_enum(table, name):
        return type_coerce(col, String()).label(name)
    return col.label(name)


def apply_node_clauses(stmt, node: SelectionNode, source, *, single: bool = False):
    if node.where is not None:
        stmt = stmt.where(node.where.to_clause(source))
    if node.order_by:
        stmt = stmt.order_by(*(entry.to_clause(source) for entry in node.order_by))
    if single:
        stmt = stmt.limit(1)
    elif node.limit is not None:
        stmt = stmt.limit(node.limit)
    if node.offset is not None:
        stmt = stmt.offset(node.offset)
    return stmt


class FetchStatementBuilder:
    def __init__(self, registry: SchemaRegistry, adapter: BaseAdapter):
        self.registry = registry
        self.adapter = adapter
        self._counter = itertools.count(1)

    def _fallback_column(self, table: TableDescriptor) -> str:
        return table.primary_key or next(iter(table.columns))

    def build(self, node: SelectionNode) -> Select:
        table = self.registry.table(node.table)
        src = table.table
        cols = [project_column(table, src, c) for c in node.columns]
        for key, child in node.relations.items():
            cols.append(type_coerce(self._relation_expr(src, child), JSON).label(key))
        if not cols:
            cols = [project_column(table, src, self._fallback_column(table))]
        stmt = select(*cols).select_from(src)
        return apply_node_clauses(stmt, node, src)

    def _relation_expr(self, parent_src, node: SelectionNode):
        rel = node.relation
        target = self.registry.table(node.table)
        child = target.table.alias(f"t{next(self._counter)}")

        needed: List[str] = list(node.columns)
        for grandchild in node.relations.values():
            for f in grandchild.relation.fields:
                if f not in needed:
                    needed.append(f)
        if not needed:
            needed.append(self._fallback_column(target))

        join = and_(*(child.c[ref] == parent_src.c[fld] for fld, ref in rel.pairs))
        inner = select(*(child.c[c].label(c) for c in needed)).select_from(child).where(join)
        inner = apply_node_clauses(inner, node, child, single=not rel.is_many)
        sub = inner.correlate(parent_src).subquery(f"s{next(self._counter)}")

        args = []
        for c in node.columns:
            args.extend((_key(c), sub.c[c]))
        for key, grandchild in node.relations.items():
            args.extend((_key(key), self.adapter.json_nested(self._relation_expr(sub, grandchild))))
        row = self.adapter.json_object(*args)

        if rel.is_many:
            agg = select(self.adapter.json_array_coalesce(self.adapter.json_array_agg(row)))
        else:
            agg = select(row)
        return agg.select_from(sub).correlate(parent_src).scalar_subquery()


def _returning(table: TableDescriptor, columns: Optional[List[str]]):
    names = list(columns or [])
    if table.primary_key and table.primary_key not in names:
        names.append(table.primary_key)
    return [project_column(table, table.table, n) for n in names]


def insert_statement(table: TableDescriptor, rows: List[dict]):
    stmt = insert(table.table)
    if rows and any(rows):
        stmt = stmt.values(rows)
    return stmt.returning(*_returning(table, None))


def update_statement(table: TableDescriptor, values: dict, where: Optional[Predicate]):
    stmt = update(table.table).values(values)
    if where is not None:
        stmt = stmt.where(where.to_clause(table.table))
    return stmt.returning(*_returning(table, None))


def delete_statement(table: TableDescriptor, where: Optional[Predicate], columns: List[str]):
    stmt = delete(table.table)
    if where is not None:
        stmt = stmt.where(where.to_clause(table.table))
    return stmt.returning(*_returning(table, columns))


__all__ = [
    'FetchStatementBuilder',
    'project_column',
    'apply_node_clauses',
    'insert_statement',
    'update_statement',
    'delete_statement',
]
