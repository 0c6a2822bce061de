from __future__ import annotations


class BaseAdapter:
    """JSON building blocks used to push relation fetches into one statement."""

    name = 'base'

    def json_object(self, *args):
        raise NotImplementedError

    def json_array_agg(self, expr):
        raise NotImplementedError

    def json_array_coalesce(self, expr):
        raise NotImplementedError

    def json_nested(self, expr):
        """Wrap a nested relation subquery so it embeds as JSON, not as text."""
        return expr
