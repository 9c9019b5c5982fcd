"""
Pydantic schemas package.

Exports all schemas for persisted documents and execution results.
"""

from ._common import CURRENT_VERSION

from .request import (
    HTTP_METHODS,
    HttpMethod,
    RequestBase,
    SavedRequest,
)

from .history import (
    QueryExecution,
    RequestExecution,
)

from .environment import (
    Environment,
    EnvironmentConfig,
    Variable,
)

from .database import (
    SSL_MODES,
    ColumnInfo,
    ConnectionConfig,
    SavedQuery,
    SslMode,
)

from .execute import (
    EXPORT_FORMATS,
    ExportFormat,
    ExportResult,
    ExecuteErrorResponse,
    ExecuteRequest,
    ExecuteResponse,
    QueryErrorResponse,
    QueryResult,
    StatusBand,
)

from .documents import (
    DOCUMENT_MODELS,
    DatabaseDocument,
    Document,
    DocumentKind,
    EnvironmentsDocument,
    RequestsDocument,
)

from .diff import (
    BodyDiff,
    Change,
    ResponseDiff,
    TimeDiff,
    ValueDiff,
)

from .postman import (
    POSTMAN_SCHEMA,
    PostmanCollection,
    PostmanItem,
)

__all__ = [
    "CURRENT_VERSION",
    # Request schemas
    "HTTP_METHODS",
    "HttpMethod",
    "RequestBase",
    "SavedRequest",
    # History schemas
    "QueryExecution",
    "RequestExecution",
    # Environment schemas
    "Environment",
    "EnvironmentConfig",
    "Variable",
    # Database schemas
    "SSL_MODES",
    "ColumnInfo",
    "ConnectionConfig",
    "SavedQuery",
    "SslMode",
    # Execute schemas
    "EXPORT_FORMATS",
    "ExportFormat",
    "ExportResult",
    "ExecuteErrorResponse",
    "ExecuteRequest",
    "ExecuteResponse",
    "QueryErrorResponse",
    "QueryResult",
    "StatusBand",
    # Document schemas
    "DOCUMENT_MODELS",
    "DatabaseDocument",
    "Document",
    "DocumentKind",
    "EnvironmentsDocument",
    "RequestsDocument",
    # Comparison schemas
    "BodyDiff",
    "Change",
    "ResponseDiff",
    "TimeDiff",
    "ValueDiff",
    # Postman schemas
    "POSTMAN_SCHEMA",
    "PostmanCollection",
    "PostmanItem",
]
