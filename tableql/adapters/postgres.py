from __future__ import annotations

from sqlalchemy import func, literal
from sqlalchemy.dialects.postgresql import JSON as _PG_JSON

from .base import BaseAdapter


class PostgresAdapter(BaseAdapter):
    name = 'postgres'

    def json_object(self, *args):
        return func.json_build_object(*args)

    def json_array_agg(self, expr):
        return func.json_agg(expr)

    def json_array_coalesce(self, expr):
        return func.coalesce(expr, literal('[]', type_=_PG_JSON()))
