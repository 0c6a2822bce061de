from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .exceptions import SchemaBuildError

DEFAULT_MAX_DEPTH = 5

_TRUTHY = {'1', 'true', 'yes', 'on'}
_FALSY = {'0', 'false', 'no', 'off'}


@dataclass(frozen=True)
class BuildConfig:
    """Options for one schema build.

    mutations: generate the ``Mutation`` root type and its resolvers.
    max_depth: maximum number of relation levels a single query may nest; deeper
        relation selections are truncated (resolved empty) rather than planned.
    """

    mutations: bool = True
    max_depth: int = DEFAULT_MAX_DEPTH

    def __post_init__(self) -> None:
        if isinstance(self.max_depth, bool) or not isinstance(self.max_depth, int) or self.max_depth < 1:
            raise SchemaBuildError(f"max_depth must be a positive integer, got {self.max_depth!r}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> 'BuildConfig':
        """Read TABLEQL_MAX_DEPTH / TABLEQL_MUTATIONS, explicit overrides win."""
        env = os.environ if environ is None else environ
        values = {}
        raw_depth = env.get('TABLEQL_MAX_DEPTH')
        if raw_depth not in (None, ''):
            try:
                values['max_depth'] = int(raw_depth)
            except ValueError:
                raise SchemaBuildError(f"TABLEQL_MAX_DEPTH must be an integer, got {raw_depth!r}") from None
        raw_mut = env.get('TABLEQL_MUTATIONS')
        if raw_mut not in (None, ''):
            flag = raw_mut.strip().lower()
            if flag in _TRUTHY:
                values['mutations'] = True
            elif flag in _FALSY:
                values['mutations'] = False
            else:
                raise SchemaBuildError(f"TABLEQL_MUTATIONS must be a boolean flag, got {raw_mut!r}")
        values.update(overrides)
        return cls(**values)


__all__ = ['BuildConfig', 'DEFAULT_MAX_DEPTH']
