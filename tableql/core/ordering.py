from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Union

from sqlalchemy import asc as _asc, desc as _desc

from ..exceptions import ArgumentValidationError
from .descriptors import TableDescriptor
from .utils import dir_value

DIRECTIONS = ('asc', 'desc')


@dataclass(frozen=True)
class OrderEntry:
    column: str
    direction: str = 'asc'
    priority: int = 0

    def to_clause(self, source):
        col = source.c[self.column]
        return _desc(col) if self.direction == 'desc' else _asc(col)

    def __str__(self) -> str:
        return f"{self.column} {self.direction.upper()}"


def _entries(order_by: Union[Mapping[str, Any], Iterable[Mapping[str, Any]]]):
    if isinstance(order_by, Mapping):
        for index, (column, spec) in enumerate(order_by.items()):
            if spec:
                yield column, spec.get('direction'), spec.get('priority', index)
        return
    for index, spec in enumerate(order_by):
        if spec:
            yield spec.get('column'), spec.get('direction'), spec.get('priority', index)


def compile_order(table: TableDescriptor, order_by) -> Optional[List[OrderEntry]]:
    """Compile ``XOrderBy`` (or a list of ``{column, direction, priority}``) into sort keys.

    Entries are sorted by ascending priority (stable for equal priorities) and
    entries naming unknown columns are dropped. ``None`` means no explicit order.
    """
    if not order_by:
        return None
    collected: List[OrderEntry] = []
    for column, direction, priority in _entries(order_by):
        if table.column(column) is None:
            continue
        d = dir_value(direction) or 'asc'
        if d not in DIRECTIONS:
            raise ArgumentValidationError(
                f"ORDER BY {table.name}.{column}: Unknown direction '{direction}'",
                table=table.name,
                column=column,
            )
        if priority is None:
            priority = 0
        collected.append(OrderEntry(column=column, direction=d, priority=int(priority)))
    collected.sort(key=lambda e: e.priority)
    return collected or None


__all__ = ['OrderEntry', 'compile_order', 'DIRECTIONS']
