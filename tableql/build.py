"""Build entry point: schema source in, SDL text plus resolver map out."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional

from graphql import GraphQLScalarType, GraphQLSchema

from .config import BuildConfig
from .core.descriptors import SchemaRegistry
from .core.types import BuildContext
from .executable import make_executable_schema
from .exports import EXPORT_DIRECTIVE_SDL, apply_export_middleware
from .factory import ResolverFactory
from .mutations import MutationResolvers
from .registry import load_schema
from .sdl import SchemaAssembler
from .storage import SQLAlchemyStorage, StorageBackend

_logger = logging.getLogger("tableql")


@dataclass
class BuildResult:
    type_defs: str
    resolvers: Dict[str, Dict[str, Callable]]
    registry: SchemaRegistry = field(repr=False)
    enum_values: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    scalars: frozenset = frozenset()

    def executable_schema(
        self,
        extra_type_defs: str = '',
        scalars: Optional[Mapping[str, GraphQLScalarType]] = None,
        *,
        exports: bool = False,
    ) -> GraphQLSchema:
        """graphql-core schema with the generated resolvers attached.

        ``exports=True`` declares ``@export`` and wraps every root resolver with
        the export middleware.
        """
        type_defs = self.type_defs
        resolvers = self.resolvers
        if exports:
            type_defs = f"{EXPORT_DIRECTIVE_SDL}\n\n{type_defs}"
            root = {k: v for k, v in resolvers.items() if k in ('Query', 'Mutation')}
            resolvers = {**resolvers, **apply_export_middleware(root)}
        if extra_type_defs:
            type_defs = f"{type_defs}\n\n{extra_type_defs}"
        return make_executable_schema(type_defs, resolvers, scalars=scalars, enum_values=self.enum_values)


def build_schema_sdl(
    source: Any,
    storage: Optional[StorageBackend] = None,
    config: Optional[BuildConfig] = None,
) -> BuildResult:
    """Derive SDL and resolvers from ``source``.

    ``source`` is anything :func:`tableql.registry.load_schema` accepts. Without
    ``storage`` the resolvers use :class:`SQLAlchemyStorage` borrowing the
    session from the request context. Raises :class:`SchemaBuildError` on a
    broken schema.
    """
    config = config or BuildConfig()
    registry = load_schema(source)
    context = BuildContext()
    type_defs = SchemaAssembler(registry, config, context).assemble()

    factory = ResolverFactory(registry, storage or SQLAlchemyStorage(), config)
    resolvers: Dict[str, Dict[str, Callable]] = {'Query': factory.query_resolvers()}
    if config.mutations:
        resolvers['Mutation'] = MutationResolvers(factory).resolvers()
    resolvers.update(factory.relation_resolvers())

    _logger.info("built schema: %d root query fields, mutations=%s", len(resolvers['Query']), config.mutations)
    return BuildResult(
        type_defs=type_defs,
        resolvers=resolvers,
        registry=registry,
        enum_values=context.enum_values(),
        scalars=frozenset(context.scalars),
    )


__all__ = ['BuildResult', 'build_schema_sdl']
