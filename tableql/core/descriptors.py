"""Classified, typed view of the relational schema.

Everything downstream of the schema loader works on these descriptors instead
of poking at SQLAlchemy objects directly.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional, Tuple

from sqlalchemy import Column, Table
from sqlalchemy.sql import sqltypes
from sqlalchemy.types import TypeDecorator, UserDefinedType


class ColumnKind(str, enum.Enum):
    BOOLEAN = 'boolean'
    DATE = 'date'
    DATETIME = 'datetime'
    TIME = 'time'
    BIGINT = 'bigint'
    JSON = 'json'
    BUFFER = 'buffer'
    STRING = 'string'
    NUMBER = 'number'
    ARRAY = 'array'
    CUSTOM = 'custom'


# Finer-grained flags carried next to the kind
INTEGER = 'integer'
FLOAT = 'float'
VECTOR = 'vector'
GEOMETRY = 'geometry'
UUID = 'uuid'

# Keys used in ``Column.info`` for caller supplied overrides
GRAPHQL_TYPE_KEY = 'graphql_type'
GRAPHQL_DESCRIPTION_KEY = 'graphql_description'


@dataclass(frozen=True)
class ColumnDescriptor:
    name: str
    kind: ColumnKind
    nullable: bool
    has_default: bool
    column: Column = field(repr=False, compare=False)
    sub_kind: Optional[str] = None
    enum_values: Optional[Tuple[str, ...]] = None
    custom_type_name: Optional[str] = None
    graphql_type: Optional[str] = None
    description: Optional[str] = None

    @property
    def required(self) -> bool:
        return not self.nullable


@dataclass(frozen=True)
class RelationDescriptor:
    """Navigable link ``source.fields`` -> ``target.references``.

    For a one-relation the fields usually hold the foreign key; for a
    many-relation they usually hold the source primary key.
    """

    name: str
    cardinality: str
    source: str
    target: str
    fields: Tuple[str, ...]
    references: Tuple[str, ...]

    @property
    def is_many(self) -> bool:
        return self.cardinality == 'many'

    @property
    def pairs(self) -> Tuple[Tuple[str, str], ...]:
        return tuple(zip(self.fields, self.references))


@dataclass
class TableDescriptor:
    name: str
    table: Table = field(repr=False)
    columns: Dict[str, ColumnDescriptor] = field(default_factory=dict)
    relations: Dict[str, RelationDescriptor] = field(default_factory=dict)
    primary_key: Optional[str] = None
    description: Optional[str] = None
    model: Any = field(default=None, repr=False)

    def column(self, name: str) -> Optional[ColumnDescriptor]:
        return self.columns.get(name)

    def sa_column(self, name: str):
        return self.table.c[name]


@dataclass
class SchemaRegistry:
    """Tables (with their relations) for one schema build, keyed by table name."""

    tables: Dict[str, TableDescriptor] = field(default_factory=dict)

    def __iter__(self) -> Iterator[TableDescriptor]:
        return iter(self.tables.values())

    def __len__(self) -> int:
        return len(self.tables)

    def __contains__(self, name: object) -> bool:
        return name in self.tables

    def table(self, name: str) -> TableDescriptor:
        try:
            return self.tables[name]
        except KeyError:
            raise KeyError(f"Unknown table '{name}'") from None

    def relation(self, table: str, name: str) -> Optional[RelationDescriptor]:
        return self.table(table).relations.get(name)


def _custom_type_name(col_type) -> Optional[str]:
    explicit = getattr(col_type, 'graphql_name', None)
    if explicit:
        return str(explicit)
    if isinstance(col_type, (TypeDecorator, UserDefinedType)):
        return type(col_type).__name__
    return None


def classify_type(col_type) -> Tuple[ColumnKind, Optional[str], Optional[Tuple[str, ...]], Optional[str]]:
    """Map a SQLAlchemy type to (kind, sub_kind, enum values, custom type name)."""
    type_name = type(col_type).__name__.lower()
    if 'vector' in type_name:
        return ColumnKind.ARRAY, VECTOR, None, None
    if 'geometry' in type_name:
        return ColumnKind.ARRAY, GEOMETRY, None, None
    if isinstance(col_type, (TypeDecorator, UserDefinedType)):
        return ColumnKind.CUSTOM, None, None, _custom_type_name(col_type)
    if isinstance(col_type, sqltypes.Boolean):
        return ColumnKind.BOOLEAN, None, None, None
    if isinstance(col_type, sqltypes.DateTime):
        return ColumnKind.DATETIME, None, None, None
    if isinstance(col_type, sqltypes.Date):
        return ColumnKind.DATE, None, None, None
    if isinstance(col_type, sqltypes.Time):
        return ColumnKind.TIME, None, None, None
    if isinstance(col_type, sqltypes.Enum):
        return ColumnKind.STRING, None, tuple(col_type.enums), None
    if isinstance(col_type, sqltypes.BigInteger):
        return ColumnKind.BIGINT, None, None, None
    if isinstance(col_type, sqltypes.Integer):
        return ColumnKind.NUMBER, INTEGER, None, None
    if isinstance(col_type, (sqltypes.Float, sqltypes.Numeric)):
        return ColumnKind.NUMBER, FLOAT, None, None
    if isinstance(col_type, sqltypes.JSON):
        return ColumnKind.JSON, None, None, None
    if isinstance(col_type, sqltypes.ARRAY):
        return ColumnKind.ARRAY, None, None, None
    if isinstance(col_type, sqltypes._Binary):
        return ColumnKind.BUFFER, None, None, None
    if isinstance(col_type, sqltypes.Uuid):
        return ColumnKind.STRING, UUID, None, None
    if isinstance(col_type, sqltypes.String):
        return ColumnKind.STRING, None, None, None
    return ColumnKind.CUSTOM, None, None, _custom_type_name(col_type)


def _has_default(column: Column) -> bool:
    if column.default is not None or column.server_default is not None:
        return True
    if getattr(column, 'identity', None) is not None or getattr(column, 'computed', None) is not None:
        return True
    table = column.table
    return column.primary_key and table is not None and table.autoincrement_column is column


def describe_column(column: Column) -> ColumnDescriptor:
    kind, sub_kind, enum_values, custom_name = classify_type(column.type)
    info = column.info or {}
    return ColumnDescriptor(
        name=column.key,
        kind=kind,
        sub_kind=sub_kind,
        nullable=bool(column.nullable),
        has_default=_has_default(column),
        column=column,
        enum_values=enum_values,
        custom_type_name=custom_name,
        graphql_type=info.get(GRAPHQL_TYPE_KEY),
        description=info.get(GRAPHQL_DESCRIPTION_KEY) or column.comment,
    )


def detect_primary_key(table: Table) -> Optional[str]:
    """The designated primary-key column: the single PK column, else a column named ``id``."""
    pk_cols = list(table.primary_key.columns)
    if len(pk_cols) == 1:
        return pk_cols[0].key
    if not pk_cols and 'id' in table.c:
        return 'id'
    return None


def describe_table(name: str, table: Table, model: Any = None) -> TableDescriptor:
    columns = {c.key: describe_column(c) for c in table.columns}
    return TableDescriptor(
        name=name,
        table=table,
        columns=columns,
        primary_key=detect_primary_key(table),
        description=table.info.get(GRAPHQL_DESCRIPTION_KEY) or table.comment,
        model=model,
    )


__all__ = [
    'ColumnKind',
    'ColumnDescriptor',
    'RelationDescriptor',
    'TableDescriptor',
    'SchemaRegistry',
    'classify_type',
    'describe_column',
    'describe_table',
    'detect_primary_key',
    'INTEGER',
    'FLOAT',
    'VECTOR',
    'GEOMETRY',
    'UUID',
    'GRAPHQL_TYPE_KEY',
    'GRAPHQL_DESCRIPTION_KEY',
]
