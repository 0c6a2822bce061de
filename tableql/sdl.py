"""SDL generation for a loaded schema."""
from __future__ import annotations

import logging
from typing import List, Optional

from .config import BuildConfig
from .core.descriptors import SchemaRegistry, TableDescriptor
from .core.naming import (
    DELETE_MANY,
    FIND_FIRST,
    FIND_MANY,
    INSERT_MANY,
    UPDATE_MANY,
    root_field,
    type_name,
)
from .core.types import BuildContext, TypeMapper, propagate_foreign_key_types
from .exceptions import SchemaBuildError
from .registry import validate_primary_keys

_logger = logging.getLogger("tableql")

ORDER_DIRECTION_SDL = """enum OrderByDirection {
  asc
  desc
}"""

INNER_ORDER_SDL = """input InnerOrder {
  direction: OrderByDirection!
  priority: Int!
}"""

_RESERVED_TYPE_NAMES = {
    'Query', 'Mutation', 'Subscription', 'OrderByDirection', 'InnerOrder',
    'String', 'Int', 'Float', 'Boolean', 'ID',
}
_COMPARISON_OPERATORS = ('eq', 'ne', 'lt', 'lte', 'gt', 'gte')
_PATTERN_OPERATORS = ('like', 'notLike', 'ilike', 'notIlike')


def describe(text: Optional[str], indent: str = '') -> str:
    if not text:
        return ''
    body = str(text).replace('"""', '\\"""')
    return f'{indent}"""{body}"""\n'


def filters_name(table: str) -> str:
    return f"{type_name(table)}Filters"


def order_by_name(table: str) -> str:
    return f"{type_name(table)}OrderBy"


def insert_input_name(table: str) -> str:
    return f"{type_name(table)}InsertInput"


def update_input_name(table: str) -> str:
    return f"{type_name(table)}UpdateInput"


def filter_input_sdl(name: str, base_type: str) -> str:
    lines = [f"  {op}: {base_type}" for op in _COMPARISON_OPERATORS]
    lines += [f"  {op}: String" for op in _PATTERN_OPERATORS]
    lines += [
        f"  inArray: [{base_type}!]",
        f"  notInArray: [{base_type}!]",
        "  isNull: Boolean",
        "  isNotNull: Boolean",
        f"  OR: [{name}!]",
    ]
    return f"input {name} {{\n" + '\n'.join(lines) + "\n}"


class SchemaAssembler:
    """Emits the SDL for every table of a registry.

    One instance serves one build: the :class:`BuildContext` it owns collects the
    scalars, enums and filter inputs the generated types need, and is dropped
    together with the assembler.
    """

    def __init__(self, registry: SchemaRegistry, config: Optional[BuildConfig] = None, context: Optional[BuildContext] = None):
        self.registry = registry
        self.config = config or BuildConfig()
        self.context = context or BuildContext()
        self.mapper = TypeMapper(self.context)

    def _validate(self) -> None:
        seen = {}
        for table in self.registry:
            tname = type_name(table.name)
            if tname in _RESERVED_TYPE_NAMES:
                raise SchemaBuildError(f"Table '{table.name}' maps to reserved type name {tname}", table=table.name)
            if tname in seen:
                raise SchemaBuildError(
                    f"Tables '{seen[tname]}' and '{table.name}' both map to type {tname}",
                    table=table.name,
                )
            seen[tname] = table.name
            if not table.columns:
                raise SchemaBuildError(f"Table '{table.name}' has no columns", table=table.name)
            for rel in table.relations.values():
                if rel.target not in self.registry:
                    raise SchemaBuildError(
                        f"Relation {table.name}.{rel.name} targets unknown table '{rel.target}'",
                        table=table.name,
                    )
        if self.config.mutations:
            validate_primary_keys(self.registry)

    def object_type(self, table: TableDescriptor) -> str:
        lines = []
        for col in table.columns.values():
            lines.append(describe(col.description, '  ') + f"  {col.name}: {self.mapper.to_sdl(table.name, col, relax_defaults=False)}")
        for rel in table.relations.values():
            target = type_name(rel.target)
            where = f"where: {filters_name(rel.target)}"
            if rel.is_many:
                args = f"{where}, orderBy: {order_by_name(rel.target)}, limit: Int, offset: Int"
                lines.append(f"  {rel.name}({args}): [{target}!]!")
            else:
                lines.append(f"  {rel.name}({where}): {target}")
        return describe(table.description) + f"type {type_name(table.name)} {{\n" + '\n'.join(lines) + "\n}"

    def insert_input(self, table: TableDescriptor) -> str:
        lines = [f"  {c.name}: {self.mapper.to_sdl(table.name, c)}" for c in table.columns.values()]
        return f"input {insert_input_name(table.name)} {{\n" + '\n'.join(lines) + "\n}"

    def update_input(self, table: TableDescriptor) -> str:
        lines = [f"  {c.name}: {self.mapper.to_sdl(table.name, c, force_nullable=True)}" for c in table.columns.values()]
        return f"input {update_input_name(table.name)} {{\n" + '\n'.join(lines) + "\n}"

    def filters_input(self, table: TableDescriptor) -> str:
        name = filters_name(table.name)
        lines = []
        for c in table.columns.values():
            base = self.mapper.base_type(table.name, c)
            lines.append(f"  {c.name}: {self.context.filter_type_for(base)}")
        lines.append(f"  OR: [{name}!]")
        return f"input {name} {{\n" + '\n'.join(lines) + "\n}"

    def order_by_input(self, table: TableDescriptor) -> str:
        lines = [f"  {c.name}: InnerOrder" for c in table.columns.values()]
        return f"input {order_by_name(table.name)} {{\n" + '\n'.join(lines) + "\n}"

    def query_type(self) -> str:
        lines = []
        for table in self.registry:
            t = type_name(table.name)
            lines.append(
                f"  {root_field(table.name, FIND_MANY)}(where: {t}Filters, orderBy: {t}OrderBy, limit: Int, offset: Int): [{t}!]!"
            )
            lines.append(f"  {root_field(table.name, FIND_FIRST)}(where: {t}Filters, orderBy: {t}OrderBy): {t}")
        return "type Query {\n" + '\n'.join(lines) + "\n}"

    def mutation_type(self) -> str:
        lines = []
        for table in self.registry:
            t = type_name(table.name)
            lines.append(f"  {root_field(table.name, INSERT_MANY)}(values: [{t}InsertInput!]!): [{t}!]!")
            lines.append(f"  {root_field(table.name, UPDATE_MANY)}(where: {t}Filters, set: {t}UpdateInput!): [{t}!]!")
            lines.append(f"  {root_field(table.name, DELETE_MANY)}(where: {t}Filters): [{t}!]!")
        return "type Mutation {\n" + '\n'.join(lines) + "\n}"

    def assemble(self) -> str:
        self._validate()
        propagate_foreign_key_types(self.registry, self.context)

        table_defs: List[str] = []
        for table in self.registry:
            table_defs.append(self.object_type(table))
            table_defs.append(self.insert_input(table))
            table_defs.append(self.update_input(table))
            table_defs.append(self.filters_input(table))
            table_defs.append(self.order_by_input(table))

        defs: List[str] = [f"scalar {name}" for name in sorted(self.context.scalars)]
        defs += [spec.to_sdl() for spec in self.context.enums.values()]
        defs.append(ORDER_DIRECTION_SDL)
        defs.append(INNER_ORDER_SDL)
        defs += [filter_input_sdl(name, base) for base, name in self.context.filter_types.items()]
        defs += table_defs
        defs.append(self.query_type())
        if self.config.mutations:
            defs.append(self.mutation_type())

        _logger.info(
            "assembled SDL for %d tables (%d scalars, %d enums, %d filter inputs, mutations=%s)",
            len(self.registry),
            len(self.context.scalars),
            len(self.context.enums),
            len(self.context.filter_types),
            self.config.mutations,
        )
        return '\n\n'.join(defs)


__all__ = [
    'SchemaAssembler',
    'filters_name',
    'order_by_name',
    'insert_input_name',
    'update_input_name',
    'filter_input_sdl',
]
