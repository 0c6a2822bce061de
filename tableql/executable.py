"""Bind generated SDL and resolver maps into a graphql-core schema."""
from __future__ import annotations

import inspect
from datetime import date, datetime, time
from typing import Any, Callable, Dict, Mapping, Optional

from graphql import (
    GraphQLArgument,
    GraphQLDirective,
    GraphQLEnumType,
    GraphQLError,
    GraphQLInputObjectType,
    GraphQLInterfaceType,
    GraphQLList,
    GraphQLNamedType,
    GraphQLNonNull,
    GraphQLObjectType,
    GraphQLScalarType,
    GraphQLSchema,
    build_schema,
    is_specified_scalar_type,
)
from graphql.utilities import value_from_ast_untyped

from .exceptions import TableQLError


def _iso(value: Any) -> str:
    if isinstance(value, (date, datetime, time)):
        return value.isoformat()
    if isinstance(value, str):
        return value
    raise TypeError(f"Cannot serialize {type(value).__name__} as an ISO string")


def _serialize_date(value: Any) -> str:
    if isinstance(value, datetime):
        value = value.date()
    return _iso(value)


def _parse_with(parser: Callable[[str], Any], kind: str):
    def parse_value(value: Any) -> Any:
        if not isinstance(value, str):
            raise GraphQLError(f"{kind} cannot represent non-string value: {value!r}")
        try:
            return parser(value)
        except ValueError as exc:
            raise GraphQLError(f"{kind} cannot represent value: {value!r}") from exc
    return parse_value


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value.replace('Z', '+00:00') if value.endswith('Z') else value)


def _parse_bigint(value: Any) -> int:
    if isinstance(value, bool):
        raise GraphQLError(f"BigInt cannot represent value: {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise GraphQLError(f"BigInt cannot represent value: {value!r}") from exc


def _literal_parser(parse_value: Callable[[Any], Any]):
    def parse_literal(node, variables=None):
        return parse_value(value_from_ast_untyped(node, variables))
    return parse_literal


# Each coercion has a graphql-core 3.2 attribute and, from 3.3 on, a renamed one
# that execution reads instead. Both are kept in step.
_COERCIONS = {
    'serialize': ('serialize', 'coerce_output_value'),
    'parse_value': ('parse_value', 'coerce_input_value'),
    'parse_literal': ('parse_literal', 'coerce_input_literal'),
}


def scalar_coercion(scalar: GraphQLScalarType, kind: str) -> Callable:
    """The function ``scalar`` actually applies for ``kind`` on this graphql-core."""
    legacy, current = _COERCIONS[kind]
    return getattr(scalar, current, None) or getattr(scalar, legacy)


def set_scalar_coercion(scalar: GraphQLScalarType, kind: str, fn: Callable) -> None:
    for attr in _COERCIONS[kind]:
        if hasattr(scalar, attr):
            setattr(scalar, attr, fn)


def _identity(value: Any) -> Any:
    return value


def _scalar(name: str, serialize, parse_value, description: str) -> GraphQLScalarType:
    scalar = GraphQLScalarType(name, description=description)
    set_scalar_coercion(scalar, 'serialize', serialize)
    set_scalar_coercion(scalar, 'parse_value', parse_value)
    set_scalar_coercion(scalar, 'parse_literal', _literal_parser(parse_value))
    return scalar


DateScalar = _scalar('Date', _serialize_date, _parse_with(date.fromisoformat, 'Date'), 'ISO-8601 calendar date')
DateTimeScalar = _scalar('DateTime', _iso, _parse_with(_parse_datetime, 'DateTime'), 'ISO-8601 date and time')
TimeScalar = _scalar('Time', _iso, _parse_with(time.fromisoformat, 'Time'), 'ISO-8601 time of day')
BigIntScalar = _scalar('BigInt', int, _parse_bigint, 'Integer that may exceed 32 bits')
JSONScalar = _scalar('JSON', _identity, _identity, 'Arbitrary JSON value')

DEFAULT_SCALARS: Dict[str, GraphQLScalarType] = {
    s.name: s for s in (DateScalar, DateTimeScalar, TimeScalar, BigIntScalar, JSONScalar)
}


def adapt_resolver(fn: Callable) -> Callable:
    """``fn(parent, args, context, info)`` -> graphql-core's ``resolve(parent, info, **args)``.

    Package errors surface as GraphQL errors carrying their context in ``extensions``.
    """
    if inspect.iscoroutinefunction(fn):
        async def resolve(parent, info, **args):
            try:
                return await fn(parent, args, info.context, info)
            except TableQLError as exc:
                raise exc.to_graphql_error() from exc
    else:
        def resolve(parent, info, **args):
            try:
                return fn(parent, args, info.context, info)
            except TableQLError as exc:
                raise exc.to_graphql_error() from exc
    resolve.__name__ = getattr(fn, '__name__', 'resolve')
    return resolve


class SchemaScalarType(GraphQLScalarType):
    """Scalar owned by one schema, allowed to reuse a built-in name such as ``Int``."""

    def __new__(cls, *args: Any, **kwargs: Any) -> "SchemaScalarType":
        return object.__new__(cls)


def copy_scalar(scalar: GraphQLScalarType, **coercions: Callable) -> GraphQLScalarType:
    """Independent copy of ``scalar`` with some coercions replaced."""
    copy = SchemaScalarType(
        scalar.name,
        description=scalar.description,
        specified_by_url=scalar.specified_by_url,
        extensions=scalar.extensions,
    )
    for kind in _COERCIONS:
        set_scalar_coercion(copy, kind, coercions.get(kind) or scalar_coercion(scalar, kind))
    return copy


def _install_scalar(target: GraphQLScalarType, impl: GraphQLScalarType) -> None:
    for kind in _COERCIONS:
        set_scalar_coercion(target, kind, scalar_coercion(impl, kind))
    if impl.description and not target.description:
        target.description = impl.description


def _rewrap(type_, old, new):
    if isinstance(type_, (GraphQLNonNull, GraphQLList)):
        inner = _rewrap(type_.of_type, old, new)
        return type_ if inner is type_.of_type else type(type_)(inner)
    return new if type_ is old else type_


def _swap_named_type(schema: GraphQLSchema, old: GraphQLNamedType, new: GraphQLNamedType) -> None:
    """Point every reference in ``schema`` from ``old`` to ``new``; ``old`` itself is untouched."""
    for name, named in schema.type_map.items():
        if name.startswith('__'):
            continue
        if isinstance(named, (GraphQLObjectType, GraphQLInterfaceType)):
            for fld in named.fields.values():
                fld.type = _rewrap(fld.type, old, new)
                for arg in fld.args.values():
                    arg.type = _rewrap(arg.type, old, new)
        elif isinstance(named, GraphQLInputObjectType):
            for fld in named.fields.values():
                fld.type = _rewrap(fld.type, old, new)
    schema.type_map[old.name] = new

    directives = []
    for directive in schema.directives:
        if all(_rewrap(arg.type, old, new) is arg.type for arg in directive.args.values()):
            directives.append(directive)
            continue
        # built-in directives are shared singletons, so they are copied
        args = {
            arg_name: GraphQLArgument(
                _rewrap(arg.type, old, new),
                default_value=arg.default_value,
                description=arg.description,
                out_name=arg.out_name,
            )
            for arg_name, arg in directive.args.items()
        }
        directives.append(GraphQLDirective(
            directive.name,
            locations=directive.locations,
            args=args,
            is_repeatable=directive.is_repeatable,
            description=directive.description,
        ))
    schema.directives = tuple(directives)


def make_executable_schema(
    type_defs: str,
    resolvers: Mapping[str, Mapping[str, Callable]],
    *,
    scalars: Optional[Mapping[str, GraphQLScalarType]] = None,
    enum_values: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> GraphQLSchema:
    schema = build_schema(type_defs)

    impls = dict(DEFAULT_SCALARS)
    impls.update(scalars or {})
    for name, impl in impls.items():
        target = schema.type_map.get(name)
        if not isinstance(target, GraphQLScalarType):
            continue
        if is_specified_scalar_type(target):
            # Int, String and friends are process-wide; override a copy local to this schema
            local = copy_scalar(target)
            _swap_named_type(schema, target, local)
            target = local
        _install_scalar(target, impl)

    for enum_name, values in (enum_values or {}).items():
        enum_type = schema.type_map.get(enum_name)
        if not isinstance(enum_type, GraphQLEnumType):
            continue
        for gql_name, stored in values.items():
            enum_type.values[gql_name].value = stored

    for type_name, fields in resolvers.items():
        obj = schema.type_map.get(type_name)
        if not isinstance(obj, GraphQLObjectType):
            raise ValueError(f"Resolvers given for unknown object type '{type_name}'")
        for field_name, fn in fields.items():
            if field_name not in obj.fields:
                raise ValueError(f"Resolver given for unknown field '{type_name}.{field_name}'")
            obj.fields[field_name].resolve = adapt_resolver(fn)
    return schema


__all__ = [
    'make_executable_schema',
    'adapt_resolver',
    'copy_scalar',
    'scalar_coercion',
    'set_scalar_coercion',
    'SchemaScalarType',
    'DEFAULT_SCALARS',
    'DateScalar',
    'DateTimeScalar',
    'TimeScalar',
    'BigIntScalar',
    'JSONScalar',
]
