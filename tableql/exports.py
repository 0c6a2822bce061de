"""Cross-field value exchange within one operation.

A field marked ``@export(as: "name")`` publishes its resolved value; a sibling
root field may pass the string ``"$_name"`` as (part of) an argument and its
resolver waits until that value is published. The store lives on the request
context, so nothing is shared between operations.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Dict, List, Mapping, Optional

from graphql import FieldNode, GraphQLScalarType, StringValueNode

from .exceptions import ExportTimeoutError
from .executable import copy_scalar, scalar_coercion
from .factory import Resolver

_logger = logging.getLogger("tableql")

EXPORT_DIRECTIVE_SDL = "directive @export(as: String!) on FIELD"
EXPORT_PREFIX = '$_'
DEFAULT_EXPORT_TIMEOUT = 5.0
_STORE_KEY = '_tableql_exports'


class ExportStore:
    """Named values published during one operation, awaitable by name."""

    def __init__(self) -> None:
        self._values: Dict[str, Any] = {}
        self._pending: Dict[str, List[asyncio.Future]] = {}

    def set(self, name: str, value: Any) -> None:
        self._values[name] = value
        for fut in self._pending.pop(name, []):
            if not fut.done():
                fut.set_result(value)

    def get(self, name: str, default: Any = None) -> Any:
        return self._values.get(name, default)

    def has(self, name: str) -> bool:
        return name in self._values

    async def wait_for(self, name: str, timeout: float = DEFAULT_EXPORT_TIMEOUT) -> Any:
        if name in self._values:
            return self._values[name]
        fut = asyncio.get_running_loop().create_future()
        self._pending.setdefault(name, []).append(fut)
        try:
            return await asyncio.wait_for(fut, timeout)
        except asyncio.TimeoutError:
            raise ExportTimeoutError(f'Timeout waiting for export variable "{name}"') from None
        finally:
            waiters = self._pending.get(name)
            if waiters and fut in waiters:
                waiters.remove(fut)

    def clear(self) -> None:
        self._values.clear()
        for waiters in self._pending.values():
            for fut in waiters:
                fut.cancel()
        self._pending.clear()

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._values)


def get_export_store(context: Any) -> ExportStore:
    if isinstance(context, dict):
        store = context.get(_STORE_KEY)
        if store is None:
            store = context[_STORE_KEY] = ExportStore()
        return store
    store = getattr(context, _STORE_KEY, None)
    if store is None:
        store = ExportStore()
        setattr(context, _STORE_KEY, store)
    return store


def export_name_of(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.startswith(EXPORT_PREFIX) and len(value) > len(EXPORT_PREFIX):
        return value[len(EXPORT_PREFIX):]
    return None


def has_export_variables(value: Any) -> bool:
    if export_name_of(value) is not None:
        return True
    if isinstance(value, Mapping):
        return any(has_export_variables(v) for v in value.values())
    if isinstance(value, (list, tuple)):
        return any(has_export_variables(v) for v in value)
    return False


async def resolve_export_variables(value: Any, store: ExportStore, timeout: float = DEFAULT_EXPORT_TIMEOUT) -> Any:
    name = export_name_of(value)
    if name is not None:
        return await store.wait_for(name, timeout)
    if isinstance(value, Mapping):
        return {k: await resolve_export_variables(v, store, timeout) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        items = await asyncio.gather(*(resolve_export_variables(v, store, timeout) for v in value))
        return list(items)
    return value


def export_directive(node: FieldNode) -> Optional[str]:
    for directive in node.directives or ():
        if directive.name.value != 'export':
            continue
        for arg in directive.arguments or ():
            if arg.name.value == 'as' and isinstance(arg.value, StringValueNode):
                return arg.value.value
    return None


def _lookup(item: Mapping[str, Any], node: FieldNode):
    # rows key columns by name and relations by response key (prefixed on clashes)
    key = node.alias.value if node.alias else node.name.value
    for candidate in (key, node.name.value, f"_{key}"):
        if candidate in item:
            return True, item[candidate]
    return False, None


def process_exports(result: Any, selection_set, store: ExportStore) -> None:
    if result is None or selection_set is None:
        return
    if isinstance(result, (list, tuple)):
        for item in result:
            process_exports(item, selection_set, store)
        return
    if not isinstance(result, Mapping):
        return
    for selection in selection_set.selections:
        if not isinstance(selection, FieldNode):
            continue
        found, value = _lookup(result, selection)
        if not found:
            continue
        name = export_directive(selection)
        if name:
            store.set(name, value)
        if selection.selection_set is not None and value is not None:
            process_exports(value, selection.selection_set, store)


def export_middleware(resolver: Resolver, timeout: float = DEFAULT_EXPORT_TIMEOUT) -> Resolver:
    """Wrap a ``(parent, args, context, info)`` resolver with export handling."""

    async def resolve(parent, args, context, info):
        store = get_export_store(context)
        if args and has_export_variables(args):
            try:
                args = await resolve_export_variables(args, store, timeout)
            except ExportTimeoutError as exc:
                raise ExportTimeoutError(
                    f"Failed to resolve export variables in {info.parent_type.name}.{info.field_name}: {exc.message}"
                ) from exc
        result = resolver(parent, args, context, info)
        if inspect.isawaitable(result):
            result = await result
        node = info.field_nodes[0] if info.field_nodes else None
        if node is None or result is None:
            return result
        name = export_directive(node)
        if name:
            store.set(name, result)
        process_exports(result, node.selection_set, store)
        return result

    resolve.__name__ = getattr(resolver, '__name__', 'resolve')
    return resolve


def apply_export_middleware(resolvers: Mapping[str, Mapping[str, Resolver]], timeout: float = DEFAULT_EXPORT_TIMEOUT) -> Dict[str, Dict[str, Resolver]]:
    return {
        type_name: {field: export_middleware(fn, timeout) for field, fn in fields.items()}
        for type_name, fields in resolvers.items()
    }


def scalar_accepting_exports(scalar: GraphQLScalarType) -> GraphQLScalarType:
    """Copy of ``scalar`` that also lets ``"$_name"`` (and ``""``) strings through.

    Built-in scalars may be wrapped too; install the result on a single schema
    with ``make_executable_schema(..., scalars={'Int': scalar_accepting_exports(GraphQLInt)})``.
    """
    original_value = scalar_coercion(scalar, 'parse_value')
    original_literal = scalar_coercion(scalar, 'parse_literal')

    def parse_value(value):
        if isinstance(value, str) and (value.startswith(EXPORT_PREFIX) or value == ''):
            return value
        return original_value(value)

    def parse_literal(node, variables=None):
        if isinstance(node, StringValueNode) and (node.value.startswith(EXPORT_PREFIX) or node.value == ''):
            return node.value
        if variables is None:
            return original_literal(node)
        return original_literal(node, variables)

    return copy_scalar(scalar, parse_value=parse_value, parse_literal=parse_literal)


__all__ = [
    'ExportStore',
    'EXPORT_DIRECTIVE_SDL',
    'get_export_store',
    'export_middleware',
    'apply_export_middleware',
    'process_exports',
    'resolve_export_variables',
    'has_export_variables',
    'scalar_accepting_exports',
]
