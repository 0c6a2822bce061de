"""Filter expression compiler.

GraphQL ``where`` inputs are compiled into a small, storage-neutral predicate
tree (:class:`Comparison`, :class:`And`, :class:`Or`). The SQL layer turns that
tree into SQLAlchemy clauses against whichever table or alias it is selecting
from, so the same compiled filter works at any nesting level.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple, Union

from sqlalchemy import and_, or_

from ..exceptions import ArgumentValidationError
from .descriptors import TableDescriptor
from .utils import coerce_value

_logger = logging.getLogger("tableql")

# Operator name -> clause factory (column, operand)
OPERATOR_REGISTRY: Dict[str, Callable[[Any, Any], Any]] = {
    'eq': lambda col, v: col == v,
    'ne': lambda col, v: col != v,
    'lt': lambda col, v: col < v,
    'lte': lambda col, v: col <= v,
    'gt': lambda col, v: col > v,
    'gte': lambda col, v: col >= v,
    'like': lambda col, v: col.like(v),
    'notLike': lambda col, v: col.not_like(v),
    'ilike': lambda col, v: col.ilike(v),
    'notIlike': lambda col, v: col.not_ilike(v),
    'inArray': lambda col, v: col.in_(v),
    'notInArray': lambda col, v: col.not_in(v),
    'isNull': lambda col, v: col.is_(None),
    'isNotNull': lambda col, v: col.is_not(None),
}

OPERATORS: Tuple[str, ...] = tuple(OPERATOR_REGISTRY)
LIST_OPERATORS = frozenset({'inArray', 'notInArray'})
NULL_OPERATORS = frozenset({'isNull', 'isNotNull'})
PATTERN_OPERATORS = frozenset({'like', 'notLike', 'ilike', 'notIlike'})

_SQL_SYMBOLS = {
    'eq': '=', 'ne': '<>', 'lt': '<', 'lte': '<=', 'gt': '>', 'gte': '>=',
    'like': 'LIKE', 'notLike': 'NOT LIKE', 'ilike': 'ILIKE', 'notIlike': 'NOT ILIKE',
    'inArray': 'IN', 'notInArray': 'NOT IN',
}


def _literal(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return '(' + ', '.join(_literal(v) for v in value) + ')'
    if isinstance(value, str):
        return repr(value)
    return str(value)


@dataclass(frozen=True)
class Comparison:
    column: str
    operator: str
    value: Any = None

    def render(self, nested: bool = False) -> str:
        if self.operator == 'isNull':
            return f"{self.column} IS NULL"
        if self.operator == 'isNotNull':
            return f"{self.column} IS NOT NULL"
        return f"{self.column} {_SQL_SYMBOLS[self.operator]} {_literal(self.value)}"

    def to_clause(self, source):
        return OPERATOR_REGISTRY[self.operator](source.c[self.column], self.value)

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True)
class And:
    items: Tuple['Predicate', ...]

    def render(self, nested: bool = False) -> str:
        text = ' AND '.join(i.render(True) for i in self.items)
        return f"({text})" if nested else text

    def to_clause(self, source):
        return and_(*(i.to_clause(source) for i in self.items))

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True)
class Or:
    items: Tuple['Predicate', ...]

    def render(self, nested: bool = False) -> str:
        text = ' OR '.join(i.render(True) for i in self.items)
        return f"({text})" if nested else text

    def to_clause(self, source):
        return or_(*(i.to_clause(source) for i in self.items))

    def __str__(self) -> str:
        return self.render()


Predicate = Union[Comparison, And, Or]


def conjoin(*parts: Optional[Predicate]) -> Optional[Predicate]:
    items = tuple(p for p in parts if p is not None)
    if not items:
        return None
    if len(items) == 1:
        return items[0]
    return And(items)


def _disjoin(parts: Sequence[Optional[Predicate]]) -> Optional[Predicate]:
    # branches without constraints are dropped
    parts = [p for p in parts if p is not None]
    if not parts:
        return None
    if len(parts) == 1:
        return parts[0]
    return Or(tuple(parts))


def _coerce(table: TableDescriptor, column, op: str, value: Any) -> Any:
    try:
        return coerce_value(column, value)
    except (TypeError, ValueError) as exc:
        raise ArgumentValidationError(
            f"WHERE {column.name}: Invalid value for operator {op}: {exc}",
            table=table.name,
            column=column.name,
            operator=op,
        ) from exc


def _present_keys(mapping: Mapping[str, Any]):
    return [k for k, v in mapping.items() if k != 'OR' and v is not None]


class FilterCompiler:
    """Compiles ``XFilters`` / ``*FieldFilter`` inputs into predicate trees.

    A level holding a non-empty ``OR`` list may not hold any other key. Unknown
    columns and empty column objects are skipped; operator values of ``None`` or
    ``False`` count as "not given". Zero predicates compile to ``None`` so the
    caller can tell "no constraint" apart from an always-false filter.
    """

    def compile(self, table: TableDescriptor, where: Optional[Mapping[str, Any]]) -> Optional[Predicate]:
        if not where:
            return None
        or_items = where.get('OR')
        if or_items:
            if _present_keys(where):
                raise ArgumentValidationError(
                    f"WHERE {table.name}: Cannot specify both fields and 'OR' in table filters!",
                    table=table.name,
                )
            return _disjoin([self.compile(table, item) for item in or_items])
        parts = []
        for key, operators in where.items():
            if key == 'OR' or not operators:
                continue
            if table.column(key) is None:
                _logger.debug("where on %s: skipping unknown column %s", table.name, key)
                continue
            parts.append(self.compile_column(table, key, operators))
        return conjoin(*parts)

    def compile_column(self, table: TableDescriptor, name: str, operators: Mapping[str, Any]) -> Optional[Predicate]:
        column = table.column(name)
        if column is None:
            return None
        or_items = operators.get('OR')
        if or_items:
            if _present_keys(operators):
                raise ArgumentValidationError(
                    f"WHERE {name}: Cannot specify both fields and 'OR' in column operators!",
                    table=table.name,
                    column=name,
                )
            return _disjoin([self.compile_column(table, name, item) for item in or_items])
        parts = []
        for op, value in operators.items():
            if op == 'OR' or value is None or value is False:
                continue
            if op not in OPERATOR_REGISTRY:
                raise ArgumentValidationError(
                    f"WHERE {name}: Unknown operator '{op}'",
                    table=table.name,
                    column=name,
                    operator=op,
                )
            if op in NULL_OPERATORS:
                parts.append(Comparison(name, op))
                continue
            if op in LIST_OPERATORS:
                if not isinstance(value, (list, tuple)):
                    value = [value]
                if not value:
                    raise ArgumentValidationError(
                        f"WHERE {name}: Unable to use operator {op} with an empty array!",
                        table=table.name,
                        column=name,
                        operator=op,
                    )
                parts.append(Comparison(name, op, tuple(_coerce(table, column, op, v) for v in value)))
                continue
            if op in PATTERN_OPERATORS:
                parts.append(Comparison(name, op, str(value)))
                continue
            parts.append(Comparison(name, op, _coerce(table, column, op, value)))
        return conjoin(*parts)


__all__ = [
    'OPERATOR_REGISTRY',
    'OPERATORS',
    'Comparison',
    'And',
    'Or',
    'Predicate',
    'FilterCompiler',
    'conjoin',
]
