"""
Commands emitted by the controller.

A command describes an effect; the command runner performs it and posts the
matching completion event.
"""

from dataclasses import dataclass
from typing import Any

from ..schemas.database import ConnectionConfig
from ..schemas.documents import Document, DocumentKind
from ..schemas.execute import ExecuteRequest, ExportFormat, QueryResult
from ..schemas.request import RequestBase, SavedRequest


@dataclass(frozen=True)
class SendHttp:
    """Send a resolved request; `request` is the edited version kept in history."""
    token: int
    request: RequestBase
    resolved: ExecuteRequest
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class Connect:
    token: int
    config: ConnectionConfig


@dataclass(frozen=True)
class Disconnect:
    session: Any


@dataclass(frozen=True)
class ExecuteQuery:
    token: int
    session: Any
    query: str


@dataclass(frozen=True)
class LoadTables:
    token: int
    session: Any


@dataclass(frozen=True)
class LoadColumns:
    token: int
    session: Any
    table: str


@dataclass(frozen=True)
class SaveDocument:
    kind: DocumentKind
    document: Document


@dataclass(frozen=True)
class CopyToClipboard:
    text: str
    label: str


@dataclass(frozen=True)
class ExportQuery:
    result: QueryResult
    format: ExportFormat
    table: str = ""


@dataclass(frozen=True)
class ExportRequests:
    requests: tuple[SavedRequest, ...]


@dataclass(frozen=True)
class ImportRequests:
    """Read a Postman collection file; `path` is as the user typed it."""
    path: str


@dataclass(frozen=True)
class Quit:
    pass


Command = (
    SendHttp
    | Connect
    | Disconnect
    | ExecuteQuery
    | LoadTables
    | LoadColumns
    | SaveDocument
    | CopyToClipboard
    | ExportQuery
    | ExportRequests
    | ImportRequests
    | Quit
)
