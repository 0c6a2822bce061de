from __future__ import annotations

import hashlib
import re

import inflection

__all__ = [
    'type_name',
    'field_prefix',
    'root_field',
    'enum_type_name',
    'scoped_scalar_name',
    'enum_value_name',
    'normalize_type',
    'is_graphql_name',
    'disambiguate',
    'FIND_MANY',
    'FIND_FIRST',
    'INSERT_MANY',
    'UPDATE_MANY',
    'DELETE_MANY',
]

FIND_MANY = 'FindMany'
FIND_FIRST = 'FindFirst'
INSERT_MANY = 'InsertMany'
UPDATE_MANY = 'UpdateMany'
DELETE_MANY = 'DeleteMany'

_name_pattern = re.compile(r'^[_A-Za-z][_0-9A-Za-z]*$')
_unsafe_chars = re.compile(r'[^0-9A-Za-z_]')
_non_alnum = re.compile(r'[^0-9A-Za-z]')
_reserved_enum_values = {'true', 'false', 'null'}


def is_graphql_name(name: str) -> bool:
    return bool(name) and bool(_name_pattern.match(name))


def _safe(name: str) -> str:
    return _unsafe_chars.sub('_', str(name))


def type_name(table_name: str) -> str:
    """GraphQL object type name for a table: ``post_comments`` -> ``PostComments``."""
    return inflection.camelize(_safe(table_name))


def field_prefix(table_name: str) -> str:
    """Root field prefix for a table: ``post_comments`` -> ``postComments``."""
    return inflection.camelize(_safe(table_name), False)


def root_field(table_name: str, suffix: str) -> str:
    return f"{field_prefix(table_name)}{suffix}"


def enum_type_name(table_name: str, column_name: str) -> str:
    return f"{type_name(table_name)}{inflection.camelize(_safe(column_name))}Enum"


def scoped_scalar_name(table_name: str, column_name: str, suffix: str = '') -> str:
    return f"{type_name(table_name)}{inflection.camelize(_safe(column_name))}{suffix}"


def enum_value_name(value: str, index: int) -> str:
    """GraphQL enum value for a stored value; falls back to ``Option{index}``."""
    if is_graphql_name(value) and value not in _reserved_enum_values:
        return value
    return f"Option{index}"


def normalize_type(base_type: str) -> str:
    return _non_alnum.sub('', base_type)


def disambiguate(name: str, key: str) -> str:
    digest = hashlib.sha1(key.encode('utf-8')).hexdigest()[:8]
    return f"{name}_{digest}"
