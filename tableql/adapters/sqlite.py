from __future__ import annotations

from sqlalchemy import func, literal
from sqlalchemy.sql.sqltypes import JSON as _JSON, LargeBinary as _LB

from .base import BaseAdapter


class SQLiteAdapter(BaseAdapter):
    name = 'sqlite'

    def json_object(self, *args):
        # args alternate key, value; BLOBs cannot live in JSON so they travel as hex
        conv: list = []
        for i, a in enumerate(args):
            if i % 2 == 0:
                conv.append(a)
                continue
            t = getattr(a, 'type', None)
            if isinstance(t, _LB):
                a = func.lower(func.hex(a))
            elif isinstance(t, _JSON):
                a = func.json(a)
            conv.append(a)
        return func.json_object(*conv)

    def json_array_agg(self, expr):
        return func.json_group_array(func.json(expr))

    def json_array_coalesce(self, expr):
        return func.coalesce(expr, literal('[]'))

    def json_nested(self, expr):
        return func.json(expr)
