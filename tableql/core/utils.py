from __future__ import annotations

import asyncio
import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Optional

from .descriptors import FLOAT, INTEGER, UUID, ColumnDescriptor, ColumnKind

_LOCK_KEY = '_tableql_db_lock'


def _parse_datetime(value: str, column: ColumnDescriptor) -> datetime:
    s = value.replace('Z', '+00:00') if value.endswith('Z') else value
    dv = datetime.fromisoformat(s)
    if dv.tzinfo is not None and not getattr(column.column.type, 'timezone', False):
        dv = dv.replace(tzinfo=None)
    return dv


def coerce_value(column: ColumnDescriptor, value: Any) -> Any:
    """Convert a GraphQL input value into the Python value the column binds.

    Lists are coerced element-wise except for buffer columns, where a list of
    ints is the value itself.
    """
    if value is None:
        return None
    kind = column.kind
    if kind is ColumnKind.BUFFER:
        if isinstance(value, (bytes, bytearray, memoryview)):
            return bytes(value)
        if isinstance(value, (list, tuple)) and value and isinstance(value[0], (list, tuple)):
            return [coerce_value(column, v) for v in value]
        return bytes(value)
    if isinstance(value, (list, tuple)) and kind not in (ColumnKind.ARRAY, ColumnKind.JSON):
        return [coerce_value(column, v) for v in value]
    if kind is ColumnKind.DATETIME and isinstance(value, str):
        return _parse_datetime(value, column)
    if kind is ColumnKind.DATE and isinstance(value, str):
        return date.fromisoformat(value[:10])
    if kind is ColumnKind.TIME and isinstance(value, str):
        return time.fromisoformat(value)
    if kind is ColumnKind.BIGINT and isinstance(value, str):
        return int(value)
    if kind is ColumnKind.NUMBER and isinstance(value, str):
        return int(value) if column.sub_kind == INTEGER else float(value)
    if kind is ColumnKind.STRING and column.sub_kind == UUID and isinstance(value, str):
        return uuid.UUID(value)
    return value


def to_output_value(column: ColumnDescriptor, value: Any) -> Any:
    """Normalise a stored value (from a row or from nested JSON) for GraphQL output."""
    if value is None:
        return None
    kind = column.kind
    if kind is ColumnKind.BOOLEAN:
        return bool(value)
    if kind is ColumnKind.DATETIME and isinstance(value, str):
        return _parse_datetime(value, column)
    if kind is ColumnKind.DATE:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, str):
            return date.fromisoformat(value[:10])
    if kind is ColumnKind.TIME and isinstance(value, str):
        return time.fromisoformat(value)
    if kind is ColumnKind.BIGINT:
        return int(value)
    if kind is ColumnKind.NUMBER:
        if column.sub_kind == FLOAT:
            return float(value)
        if isinstance(value, (Decimal, float, str)):
            return int(value)
    if kind is ColumnKind.BUFFER:
        if isinstance(value, str):
            hexed = value[2:] if value.startswith('\\x') else value
            return list(bytes.fromhex(hexed))
        return list(bytes(value))
    if kind is ColumnKind.STRING and isinstance(value, uuid.UUID):
        return str(value)
    return value


def dir_value(order_dir: Any) -> Optional[str]:
    if order_dir is None:
        return None
    val = getattr(order_dir, 'value', order_dir)
    return str(val).lower()


def get_db_session(info_or_ctx: Any) -> Any | None:
    """Extract an AsyncSession-like object from a context object or dict.

    Tries ``db_session``, ``db``, ``session`` and ``async_session`` in order.
    Accepts a resolve info too, in which case its ``context`` is used.
    """
    if info_or_ctx is None:
        return None
    ctx = getattr(info_or_ctx, 'context', info_or_ctx)
    if ctx is None:
        return None
    candidates = ('db_session', 'db', 'session', 'async_session')
    if isinstance(ctx, dict):
        for k in candidates:
            v = ctx.get(k)
            if v is not None:
                return v
        return None
    for k in candidates:
        v = getattr(ctx, k, None)
        if v is not None:
            return v
    return None


def get_context_lock(ctx: Any) -> asyncio.Lock:
    """Per-request lock stored on the context, serialising use of a shared session."""
    if isinstance(ctx, dict):
        lock = ctx.get(_LOCK_KEY)
        if lock is None:
            lock = ctx[_LOCK_KEY] = asyncio.Lock()
        return lock
    lock = getattr(ctx, _LOCK_KEY, None)
    if lock is None:
        lock = asyncio.Lock()
        setattr(ctx, _LOCK_KEY, lock)
    return lock


__all__ = [
    'coerce_value',
    'to_output_value',
    'dir_value',
    'get_db_session',
    'get_context_lock',
]
