"""Column -> GraphQL type mapping and the per-build bookkeeping it needs."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from .descriptors import (
    FLOAT,
    GEOMETRY,
    VECTOR,
    ColumnDescriptor,
    ColumnKind,
    SchemaRegistry,
)
from .naming import (
    disambiguate,
    enum_type_name,
    enum_value_name,
    normalize_type,
    scoped_scalar_name,
)

_logger = logging.getLogger("tableql")

# Declared scalars a column kind maps onto
FIXED_SCALARS: Dict[ColumnKind, str] = {
    ColumnKind.DATE: 'Date',
    ColumnKind.DATETIME: 'DateTime',
    ColumnKind.TIME: 'Time',
    ColumnKind.BIGINT: 'BigInt',
    ColumnKind.JSON: 'JSON',
}


@dataclass
class EnumSpec:
    """A generated GraphQL enum: GraphQL value name -> stored column value."""

    name: str
    values: Dict[str, str]
    table: str
    column: str

    def to_sdl(self) -> str:
        body = '\n'.join(f"  {v}" for v in self.values)
        return f"enum {self.name} {{\n{body}\n}}"


@dataclass
class BuildContext:
    """Bookkeeping for one schema build; created per build and then discarded."""

    scalars: Set[str] = field(default_factory=set)
    enums: Dict[str, EnumSpec] = field(default_factory=dict)
    filter_types: Dict[str, str] = field(default_factory=dict)
    foreign_key_types: Dict[Tuple[str, str], str] = field(default_factory=dict)
    _filter_owner: Dict[str, str] = field(default_factory=dict, repr=False)

    def need_scalar(self, name: str) -> str:
        self.scalars.add(name)
        return name

    def register_enum(self, table: str, column: str, stored_values) -> EnumSpec:
        name = enum_type_name(table, column)
        existing = self.enums.get(name)
        if existing is not None:
            return existing
        values: Dict[str, str] = {}
        for index, stored in enumerate(stored_values):
            gql_name = enum_value_name(str(stored), index)
            while gql_name in values:
                gql_name = f"{gql_name}_"
            values[gql_name] = stored
        spec = EnumSpec(name=name, values=values, table=table, column=column)
        self.enums[name] = spec
        return spec

    def filter_type_for(self, base_type: str) -> str:
        """Name of the shared filter input for ``base_type``, allocated on first use.

        Names come from the base type stripped of non-alphanumerics; a second base
        type stripping to a taken name gets a hash suffix instead of sharing it.
        """
        known = self.filter_types.get(base_type)
        if known is not None:
            return known
        name = f"{normalize_type(base_type)}FieldFilter"
        if name in self._filter_owner:
            name = f"{disambiguate(normalize_type(base_type), base_type)}FieldFilter"
            _logger.debug("filter type for %s disambiguated as %s", base_type, name)
        self._filter_owner[name] = base_type
        self.filter_types[base_type] = name
        return name

    def enum_values(self) -> Dict[str, Dict[str, str]]:
        return {name: dict(spec.values) for name, spec in self.enums.items()}


def strip_non_null(type_ref: str) -> str:
    ref = type_ref.strip()
    while ref.endswith('!'):
        ref = ref[:-1].rstrip()
    return ref


class TypeMapper:
    """Maps one column to its GraphQL type reference, recording what it introduces."""

    def __init__(self, context: BuildContext):
        self.context = context

    def base_type(self, table: str, column: ColumnDescriptor) -> str:
        if column.graphql_type:
            return strip_non_null(column.graphql_type)
        inherited = self.context.foreign_key_types.get((table, column.name))
        if inherited:
            return strip_non_null(inherited)
        kind = column.kind
        if kind is ColumnKind.BOOLEAN:
            return 'Boolean'
        if kind in FIXED_SCALARS:
            return self.context.need_scalar(FIXED_SCALARS[kind])
        if kind is ColumnKind.BUFFER:
            return '[Int!]'
        if kind is ColumnKind.STRING:
            if column.enum_values:
                return self.context.register_enum(table, column.name, column.enum_values).name
            return 'String'
        if kind is ColumnKind.NUMBER:
            return 'Float' if column.sub_kind == FLOAT else 'Int'
        if kind is ColumnKind.ARRAY:
            if column.sub_kind in (VECTOR, GEOMETRY):
                return '[Float!]'
            return self.context.need_scalar(scoped_scalar_name(table, column.name, 'Array'))
        if column.custom_type_name:
            return self.context.need_scalar(column.custom_type_name)
        return self.context.need_scalar(scoped_scalar_name(table, column.name))

    def to_sdl(
        self,
        table: str,
        column: ColumnDescriptor,
        *,
        force_nullable: bool = False,
        relax_defaults: bool = True,
    ) -> str:
        base = self.base_type(table, column)
        if force_nullable or column.nullable:
            return base
        if relax_defaults and column.has_default:
            return base
        return f"{base}!"


def _foreign_key_side(registry: SchemaRegistry, relation, field_name: str, ref_name: str) -> Optional[Tuple[Tuple[str, str], Tuple[str, str]]]:
    source = registry.table(relation.source)
    target = registry.table(relation.target)
    src_col = source.column(field_name)
    tgt_col = target.column(ref_name)
    if src_col is None or tgt_col is None:
        return None
    if any(fk.column is tgt_col.column for fk in src_col.column.foreign_keys):
        return (relation.source, field_name), (relation.target, ref_name)
    if any(fk.column is src_col.column for fk in tgt_col.column.foreign_keys):
        return (relation.target, ref_name), (relation.source, field_name)
    if not relation.is_many:
        return (relation.source, field_name), (relation.target, ref_name)
    return None


def propagate_foreign_key_types(registry: SchemaRegistry, context: BuildContext) -> List[Tuple[str, str]]:
    """Let foreign keys without an override adopt the override of the key they reference."""
    adopted: List[Tuple[str, str]] = []
    for table in registry:
        for relation in table.relations.values():
            for field_name, ref_name in relation.pairs:
                sides = _foreign_key_side(registry, relation, field_name, ref_name)
                if sides is None:
                    continue
                (fk_table, fk_col), (ref_table, ref_col) = sides
                fk_desc = registry.table(fk_table).column(fk_col)
                ref_desc = registry.table(ref_table).column(ref_col)
                if fk_desc.graphql_type or not ref_desc.graphql_type:
                    continue
                key = (fk_table, fk_col)
                if key not in context.foreign_key_types:
                    context.foreign_key_types[key] = ref_desc.graphql_type
                    adopted.append(key)
    if adopted:
        _logger.debug("foreign keys adopting referenced types: %s", adopted)
    return adopted


__all__ = [
    'BuildContext',
    'EnumSpec',
    'TypeMapper',
    'FIXED_SCALARS',
    'propagate_foreign_key_types',
    'strip_non_null',
]
