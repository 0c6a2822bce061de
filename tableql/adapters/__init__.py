from __future__ import annotations

from .base import BaseAdapter
from .sqlite import SQLiteAdapter
from .postgres import PostgresAdapter


def get_adapter(dialect_name: str) -> BaseAdapter:
    dn = (dialect_name or '').lower()
    if dn.startswith('postgres'):
        return PostgresAdapter()
    if dn.startswith('sqlite'):
        return SQLiteAdapter()
    raise NotImplementedError(f"No JSON adapter for dialect '{dialect_name}'")


__all__ = [
    'BaseAdapter',
    'SQLiteAdapter',
    'PostgresAdapter',
    'get_adapter',
]
