"""Schema loading: classify a schema source into tables and relations.

A schema source may be a declarative base, a ``MetaData``, a mapping of names
to tables / mapped classes / :func:`relations` declarations, or a list of any
of these. Every entry is classified exactly once; nothing downstream inspects
raw SQLAlchemy objects to guess what they are.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from sqlalchemy import MetaData, Table
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import Mapper
from sqlalchemy.orm.interfaces import MANYTOMANY, MANYTOONE

from .core.descriptors import (
    GRAPHQL_DESCRIPTION_KEY,
    GRAPHQL_TYPE_KEY,
    RelationDescriptor,
    SchemaRegistry,
    describe_table,
)
from .exceptions import SchemaBuildError

_logger = logging.getLogger("tableql")

TableLike = Union[Table, type, str]


@dataclass(frozen=True)
class One:
    target: TableLike
    fields: Optional[Tuple[str, ...]] = None
    references: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class Many:
    target: TableLike
    fields: Optional[Tuple[str, ...]] = None
    references: Optional[Tuple[str, ...]] = None


@dataclass
class Relations:
    """Relation declarations for one plain (Core) table."""

    table: TableLike
    one: Dict[str, One] = field(default_factory=dict)
    many: Dict[str, Many] = field(default_factory=dict)


def _names(cols: Optional[Sequence[Any]]) -> Optional[Tuple[str, ...]]:
    if cols is None:
        return None
    return tuple(getattr(c, 'key', c) for c in cols)


def one(target: TableLike, fields: Optional[Sequence[Any]] = None, references: Optional[Sequence[Any]] = None) -> One:
    """Declare a to-one relation; ``fields`` are local columns, ``references`` target columns.

    Without pairs the relation is resolved from foreign keys.
    """
    return One(target, _names(fields), _names(references))


def many(target: TableLike, fields: Optional[Sequence[Any]] = None, references: Optional[Sequence[Any]] = None) -> Many:
    """Declare a to-many relation.

    Without pairs it is completed from the inverse ``one`` relation declared on
    the target, then from the target's foreign keys.
    """
    return Many(target, _names(fields), _names(references))


def relations(table: TableLike, *, one: Optional[Mapping[str, One]] = None, many: Optional[Mapping[str, Many]] = None) -> Relations:
    return Relations(table=table, one=dict(one or {}), many=dict(many or {}))


def _as_table(obj: Any) -> Optional[Table]:
    if isinstance(obj, Table):
        return obj
    table = getattr(obj, '__table__', None)
    if isinstance(table, Table):
        return table
    return None


def _mapper_of(obj: Any) -> Optional[Mapper]:
    if not isinstance(obj, type):
        return None
    try:
        mapper = sa_inspect(obj)
    except NoInspectionAvailable:
        return None
    return mapper if isinstance(mapper, Mapper) else None


def _column_map(table: Table, mapping: Mapping[str, Any]):
    for key, value in mapping.items():
        if key not in table.c:
            _logger.warning("%s has no column %s; override ignored", table.name, key)
            continue
        yield table.c[key], value


def set_custom_graphql_types(table: TableLike, types: Mapping[str, str]) -> None:
    """Override the GraphQL type of columns, e.g. ``{"id": "ID"}``.

    Overrides are used verbatim and never declared automatically; the caller
    provides any scalar they name.
    """
    sa_table = _as_table(table)
    if sa_table is None:
        raise TypeError(f"Expected a Table or mapped class, got {table!r}")
    for column, graphql_type in _column_map(sa_table, types):
        column.info[GRAPHQL_TYPE_KEY] = graphql_type


def set_custom_graphql(table: TableLike, overrides: Mapping[str, Mapping[str, str]]) -> None:
    """Set ``{"type": ..., "description": ...}`` overrides per column."""
    sa_table = _as_table(table)
    if sa_table is None:
        raise TypeError(f"Expected a Table or mapped class, got {table!r}")
    for column, spec in _column_map(sa_table, overrides):
        if spec.get('type'):
            column.info[GRAPHQL_TYPE_KEY] = spec['type']
        if spec.get('description'):
            column.info[GRAPHQL_DESCRIPTION_KEY] = spec['description']


@dataclass
class ClassifiedSchema:
    tables: List[Tuple[str, Table, Any]] = field(default_factory=list)
    relation_sets: List[Relations] = field(default_factory=list)
    mappers: List[Mapper] = field(default_factory=list)
    other: List[Tuple[str, Any]] = field(default_factory=list)


class SchemaLoader:
    """Turns a schema source into a :class:`SchemaRegistry`."""

    def __init__(self) -> None:
        self.classified = ClassifiedSchema()
        self.registry = SchemaRegistry()
        self._names_by_table: Dict[Table, str] = {}

    # classification ---------------------------------------------------------
    def _add_table(self, name: str, table: Table, model: Any = None) -> None:
        known = self._names_by_table.get(table)
        if known is not None:
            if model is not None:
                self.classified.tables = [
                    (n, t, model if t is table else m) for n, t, m in self.classified.tables
                ]
            return
        self._names_by_table[table] = name
        self.classified.tables.append((name, table, model))

    def _add_mapper(self, mapper: Mapper, name: Optional[str] = None) -> None:
        table = mapper.local_table
        if not isinstance(table, Table):
            self.classified.other.append((name or mapper.class_.__name__, mapper.class_))
            return
        self._add_table(name or table.name, table, mapper.class_)
        if mapper not in self.classified.mappers:
            self.classified.mappers.append(mapper)

    def classify(self, source: Any, name: Optional[str] = None) -> None:
        if isinstance(source, Relations):
            self.classified.relation_sets.append(source)
        elif isinstance(source, MetaData):
            for table in source.sorted_tables:
                self._add_table(table.name, table)
        elif isinstance(source, Table):
            self._add_table(name or source.name, source)
        elif isinstance(source, Mapping):
            for key, value in source.items():
                self.classify(value, key)
        elif _mapper_of(source) is not None:
            self._add_mapper(_mapper_of(source), name)
        elif isinstance(source, type) and hasattr(source, 'registry') and isinstance(getattr(source, 'metadata', None), MetaData):
            # declarative base: tables in declaration order, mapped ones with their mapper
            by_table = {m.local_table: m for m in source.registry.mappers}
            for table in source.metadata.tables.values():
                mapper = by_table.get(table)
                if mapper is not None:
                    self._add_mapper(mapper)
                else:
                    self._add_table(table.name, table)
        elif isinstance(source, (list, tuple, set)):
            for item in source:
                self.classify(item)
        else:
            _logger.debug("ignoring schema entry %s (%s)", name, type(source).__name__)
            self.classified.other.append((name or repr(source), source))

    # registry --------------------------------------------------------------
    def _table_name(self, target: TableLike, owner: str) -> str:
        if isinstance(target, str):
            if target in self.registry:
                return target
            for table, tname in self._names_by_table.items():
                if table.name == target:
                    return tname
        else:
            table = _as_table(target)
            if table is not None and table in self._names_by_table:
                return self._names_by_table[table]
        raise SchemaBuildError(
            f"Relation on '{owner}' targets {getattr(target, 'name', target)!r}, which is not part of the schema",
            table=owner,
        )

    def _add_relation(self, relation: RelationDescriptor) -> None:
        source = self.registry.table(relation.source)
        target = self.registry.table(relation.target)
        for f, r in relation.pairs:
            if f not in source.columns or r not in target.columns:
                raise SchemaBuildError(
                    f"Relation {relation.source}.{relation.name} pairs unknown columns ({f} -> {relation.target}.{r})",
                    table=relation.source,
                )
        if relation.name in source.columns:
            raise SchemaBuildError(
                f"Relation {relation.source}.{relation.name} clashes with a column of the same name",
                table=relation.source,
            )
        source.relations[relation.name] = relation

    def _from_mapper(self, mapper: Mapper) -> None:
        owner = self._names_by_table[mapper.local_table]
        for prop in mapper.relationships:
            if prop.direction is MANYTOMANY:
                _logger.debug("skipping many-to-many relationship %s.%s", owner, prop.key)
                continue
            target = self._table_name(prop.mapper.local_table, owner)
            pairs = prop.local_remote_pairs or []
            cardinality = 'one' if (prop.direction is MANYTOONE or not prop.uselist) else 'many'
            self._add_relation(RelationDescriptor(
                name=prop.key,
                cardinality=cardinality,
                source=owner,
                target=target,
                fields=tuple(local.key for local, _ in pairs),
                references=tuple(remote.key for _, remote in pairs),
            ))

    def _fk_pairs(self, child: Table, parent: Table) -> List[Tuple[str, str]]:
        """(child column, parent column) for every FK on ``child`` pointing at ``parent``."""
        return [
            (fk.parent.key, fk.column.key)
            for fk in child.foreign_keys
            if fk.column.table is parent
        ]

    def _resolve_one(self, owner: str, name: str, decl: One) -> RelationDescriptor:
        target = self._table_name(decl.target, owner)
        if decl.fields and decl.references:
            fields, references = decl.fields, decl.references
        else:
            src = self.registry.table(owner).table
            tgt = self.registry.table(target).table
            pairs = self._fk_pairs(src, tgt)
            if not pairs:
                pairs = [(p, c) for c, p in self._fk_pairs(tgt, src)]
            if len(pairs) != 1:
                raise SchemaBuildError(
                    f"Relation {owner}.{name}: cannot infer join columns to '{target}'; pass fields/references",
                    table=owner,
                )
            fields, references = (pairs[0][0],), (pairs[0][1],)
        return RelationDescriptor(name, 'one', owner, target, tuple(fields), tuple(references))

    def _resolve_many(self, owner: str, name: str, decl: Many, pending_one: Dict[str, Dict[str, RelationDescriptor]]) -> RelationDescriptor:
        target = self._table_name(decl.target, owner)
        if decl.fields and decl.references:
            return RelationDescriptor(name, 'many', owner, target, tuple(decl.fields), tuple(decl.references))
        inverse = [
            rel for rel in pending_one.get(target, {}).values()
            if rel.target == owner and not rel.is_many
        ]
        if len(inverse) == 1:
            rel = inverse[0]
            return RelationDescriptor(name, 'many', owner, target, rel.references, rel.fields)
        pairs = self._fk_pairs(self.registry.table(target).table, self.registry.table(owner).table)
        if len(pairs) != 1:
            raise SchemaBuildError(
                f"Relation {owner}.{name}: cannot infer join columns to '{target}'; pass fields/references",
                table=owner,
            )
        child_col, parent_col = pairs[0]
        return RelationDescriptor(name, 'many', owner, target, (parent_col,), (child_col,))

    def load(self, source: Any) -> SchemaRegistry:
        self.classify(source)
        self.registry = SchemaRegistry()
        for name, table, model in self.classified.tables:
            self.registry.tables[name] = describe_table(name, table, model)
        for mapper in self.classified.mappers:
            self._from_mapper(mapper)

        # one-relations first so many-relations can be completed from their inverse
        pending_one: Dict[str, Dict[str, RelationDescriptor]] = {}
        for decl in self.classified.relation_sets:
            owner = self._table_name(decl.table, '<relations>')
            for rel_name, spec in decl.one.items():
                pending_one.setdefault(owner, {})[rel_name] = self._resolve_one(owner, rel_name, spec)
        for owner_rels in pending_one.values():
            for rel in owner_rels.values():
                self._add_relation(rel)
        for decl in self.classified.relation_sets:
            owner = self._table_name(decl.table, '<relations>')
            for rel_name, spec in decl.many.items():
                self._add_relation(self._resolve_many(owner, rel_name, spec, pending_one))

        _logger.info(
            "schema loaded: %d tables, %d relations, %d ignored entries",
            len(self.registry),
            sum(len(t.relations) for t in self.registry),
            len(self.classified.other),
        )
        return self.registry


def load_schema(source: Any) -> SchemaRegistry:
    """Classify ``source`` and return the typed registry for one build."""
    if isinstance(source, SchemaRegistry):
        return source
    return SchemaLoader().load(source)


def validate_primary_keys(registry: SchemaRegistry) -> None:
    missing = [t.name for t in registry if t.primary_key is None]
    if missing:
        raise SchemaBuildError(
            f"Tables without a single primary key column cannot have mutations: {', '.join(missing)}",
            table=missing[0],
        )


__all__ = [
    'One',
    'Many',
    'Relations',
    'one',
    'many',
    'relations',
    'set_custom_graphql_types',
    'set_custom_graphql',
    'SchemaLoader',
    'load_schema',
    'validate_primary_keys',
]
