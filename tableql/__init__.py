"""tableql public API with lazy exports.

Importing the package stays cheap; submodules (and graphql-core / SQLAlchemy
pieces behind them) load on first attribute access.

Exposes:
- build_schema_sdl, BuildResult, BuildConfig
- load_schema, relations, one, many, set_custom_graphql_types, set_custom_graphql
- SQLAlchemyStorage, make_executable_schema
- ExportStore, export_middleware, apply_export_middleware, scalar_accepting_exports
- error types
"""
from __future__ import annotations

_EXPORTS = {
    'build_schema_sdl': 'build',
    'BuildResult': 'build',
    'BuildConfig': 'config',
    'load_schema': 'registry',
    'relations': 'registry',
    'one': 'registry',
    'many': 'registry',
    'set_custom_graphql_types': 'registry',
    'set_custom_graphql': 'registry',
    'SQLAlchemyStorage': 'storage',
    'StorageBackend': 'storage',
    'make_executable_schema': 'executable',
    'ExportStore': 'exports',
    'export_middleware': 'exports',
    'apply_export_middleware': 'exports',
    'scalar_accepting_exports': 'exports',
    'get_export_store': 'exports',
    'TableQLError': 'exceptions',
    'SchemaBuildError': 'exceptions',
    'ArgumentValidationError': 'exceptions',
    'StorageError': 'exceptions',
    'ExportTimeoutError': 'exceptions',
}


def __getattr__(name: str):  # PEP 562 lazy exports
    import importlib as _importlib
    module = _EXPORTS.get(name)
    if module is None:
        raise AttributeError(name)
    return getattr(_importlib.import_module(f"{__name__}.{module}"), name)


__all__ = list(_EXPORTS)
