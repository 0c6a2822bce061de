from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..core.descriptors import SchemaRegistry
from ..core.planner import SelectionNode
from ..core.utils import to_output_value


def _decode(raw: Any) -> Any:
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode('utf-8')
    if isinstance(raw, str):
        return json.loads(raw)
    return raw


class RowHydrator:
    """Turns fetched rows (and their nested JSON relation payloads) into plain dicts.

    Values inside nested JSON arrive as JSON primitives (ISO strings, 0/1, hex
    blobs); they are normalised per column kind so every level looks the same
    as a top-level row.
    """

    def __init__(self, registry: SchemaRegistry):
        self.registry = registry

    def hydrate_rows(self, node: SelectionNode, rows: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        return [self.hydrate(node, row) for row in rows]

    def hydrate(self, node: SelectionNode, row: Mapping[str, Any]) -> Dict[str, Any]:
        table = self.registry.table(node.table)
        out: Dict[str, Any] = {}
        for name in node.columns:
            out[name] = to_output_value(table.columns[name], row.get(name))
        for key, child in node.relations.items():
            payload = _decode(row.get(key))
            out[key] = self._relation_value(child, payload)
        for key, rel in node.truncated.items():
            out[key] = [] if rel.is_many else None
        return out

    def _relation_value(self, child: SelectionNode, payload: Any) -> Optional[Any]:
        if child.relation.is_many:
            return [self.hydrate(child, item) for item in (payload or [])]
        if not payload:
            return None
        return self.hydrate(child, payload)


__all__ = ['RowHydrator']
