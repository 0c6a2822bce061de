"""Error types raised while building schemas and resolving operations."""
from __future__ import annotations

from typing import Any, Dict, Optional

from graphql import GraphQLError


class TableQLError(Exception):
    """Base error carrying table/column/operator context.

    The context ends up in the GraphQL ``extensions`` map so clients can act on
    a failure without parsing the message.
    """

    code = 'TABLEQL_ERROR'

    def __init__(
        self,
        message: str,
        *,
        table: Optional[str] = None,
        column: Optional[str] = None,
        operator: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.table = table
        self.column = column
        self.operator = operator

    @property
    def extensions(self) -> Dict[str, Any]:
        ext: Dict[str, Any] = {'code': self.code}
        if self.table is not None:
            ext['table'] = self.table
        if self.column is not None:
            ext['column'] = self.column
        if self.operator is not None:
            ext['operator'] = self.operator
        return ext

    def to_graphql_error(self) -> GraphQLError:
        return GraphQLError(self.message, original_error=self, extensions=self.extensions)


class SchemaBuildError(TableQLError):
    """Fatal problem in the schema source; aborts the build."""

    code = 'SCHEMA_BUILD_ERROR'


class ArgumentValidationError(TableQLError, ValueError):
    """Invalid operation arguments (filters, ordering, pagination, write payloads)."""

    code = 'ARGUMENT_VALIDATION_ERROR'


class StorageError(TableQLError):
    """The storage engine rejected or failed a statement.

    The driver message is kept verbatim; ``original`` holds the wrapped exception.
    """

    code = 'STORAGE_ERROR'

    def __init__(self, message: str, *, original: Optional[BaseException] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.original = original


class ExportTimeoutError(TableQLError):
    code = 'EXPORT_TIMEOUT'


__all__ = [
    'TableQLError',
    'SchemaBuildError',
    'ArgumentValidationError',
    'StorageError',
    'ExportTimeoutError',
]
