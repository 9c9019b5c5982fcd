"""
Events consumed by the controller.

Key presses and ticks come from the terminal host; everything else is the
completion of a command, posted by the command runner. Completions of HTTP
and database commands carry the token they were issued with. Every event
carries `at`, the monotonic clock reading when it was created.
"""

from dataclasses import dataclass
from typing import Any

from ..schemas.database import ColumnInfo, ConnectionConfig
from ..schemas.documents import DocumentKind
from ..schemas.execute import (
    ExecuteErrorResponse,
    ExecuteRequest,
    ExecuteResponse,
    ExportResult,
    QueryErrorResponse,
    QueryResult,
)
from ..schemas.request import RequestBase, SavedRequest


@dataclass(frozen=True)
class KeyPress:
    key: str
    character: str | None = None
    at: float = 0.0


@dataclass(frozen=True)
class Tick:
    at: float = 0.0


@dataclass(frozen=True)
class HttpCompleted:
    token: int
    request: RequestBase
    resolved: ExecuteRequest
    result: ExecuteResponse | ExecuteErrorResponse
    warnings: tuple[str, ...] = ()
    at: float = 0.0


@dataclass(frozen=True)
class ConnectCompleted:
    token: int
    config: ConnectionConfig
    session: Any = None
    error: str | None = None
    at: float = 0.0


@dataclass(frozen=True)
class QueryCompleted:
    token: int
    query: str
    result: QueryResult | QueryErrorResponse
    at: float = 0.0


@dataclass(frozen=True)
class TablesLoaded:
    token: int
    tables: tuple[str, ...] = ()
    error: str | None = None
    connection_lost: bool = False
    at: float = 0.0


@dataclass(frozen=True)
class ColumnsLoaded:
    token: int
    table: str
    columns: tuple[ColumnInfo, ...] = ()
    error: str | None = None
    connection_lost: bool = False
    at: float = 0.0


@dataclass(frozen=True)
class SaveCompleted:
    kind: DocumentKind
    error: str | None = None
    at: float = 0.0


@dataclass(frozen=True)
class ExportCompleted:
    result: ExportResult | None = None
    error: str | None = None
    at: float = 0.0


@dataclass(frozen=True)
class RequestsExported:
    path: str | None = None
    count: int = 0
    error: str | None = None
    at: float = 0.0


@dataclass(frozen=True)
class RequestsImported:
    path: str
    requests: tuple[SavedRequest, ...] = ()
    skipped: tuple[str, ...] = ()
    error: str | None = None
    at: float = 0.0


@dataclass(frozen=True)
class ClipboardCompleted:
    label: str
    error: str | None = None
    at: float = 0.0


Event = (
    KeyPress
    | Tick
    | HttpCompleted
    | ConnectCompleted
    | QueryCompleted
    | TablesLoaded
    | ColumnsLoaded
    | SaveCompleted
    | ExportCompleted
    | RequestsExported
    | RequestsImported
    | ClipboardCompleted
)
