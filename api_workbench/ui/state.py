"""
Application state for the terminal interface.

The whole interface is described by one immutable AppState value. The
controller produces a new AppState for every event; the renderer reads it and
never changes it.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..schemas.database import SSL_MODES, ColumnInfo, ConnectionConfig
from ..schemas.documents import DatabaseDocument, RequestsDocument
from ..schemas.environment import EnvironmentConfig
from ..schemas.execute import (
    EXPORT_FORMATS,
    ExecuteErrorResponse,
    ExecuteRequest,
    ExecuteResponse,
    QueryErrorResponse,
    QueryResult,
)
from ..schemas.request import RequestBase
from .editors import ListEditor, Pairs


class Screen(Enum):
    HOME = "home"
    REQUEST_BUILDER = "request_builder"
    LOADING = "loading"
    VIEW_RESPONSE = "view_response"
    REQUEST_LIST = "request_list"
    HEADER_EDITOR = "header_editor"
    BODY_EDITOR = "body_editor"
    QUERY_PARAM_EDITOR = "query_param_editor"
    HELP = "help"
    HISTORY = "history"
    DATABASE = "database"
    DATABASE_CONNECT = "database_connect"
    DATABASE_QUERY_EDITOR = "database_query_editor"
    DATABASE_RESULT = "database_result"
    DATABASE_QUERY_LIST = "database_query_list"
    DATABASE_SCHEMA = "database_schema"
    DATABASE_QUERY_HISTORY = "database_query_history"
    DATABASE_EXPORT = "database_export"
    ENVIRONMENTS = "environments"
    ENVIRONMENT_EDITOR = "environment_editor"


# Focusable fields of the request builder, in tab order
BUILDER_FIELDS = ("method", "url", "params", "headers", "body", "send", "save")

# Fields of the connect form, in tab order
CONNECT_FIELDS = ("host", "port", "database", "user", "password", "ssl_mode")


@dataclass(frozen=True)
class Flash:
    """A transient message shown until `expires_at` (event clock seconds)."""
    text: str
    expires_at: float
    error: bool = False

    def visible(self, now: float) -> bool:
        return now < self.expires_at


@dataclass(frozen=True)
class Prompt:
    """
    A one-line text prompt layered over the current screen.

    Attributes:
        purpose: What enter does with the value ("save_request", "save_query",
            "import_requests")
        label: Text shown before the input
        value: Current input
        error: Inline validation message
    """
    purpose: str
    label: str
    value: str = ""
    error: str | None = None


@dataclass(frozen=True)
class ListView:
    """Cursor, search and confirmation state of a browsable list screen."""
    cursor: int = 0
    search: str = ""
    searching: bool = False
    confirming: str | None = None


@dataclass(frozen=True)
class BuilderState:
    """
    The request being edited.

    `loaded_id` is the id of the saved request it was loaded from; saving
    again updates that request in place.
    """
    method: str = "GET"
    url: str = ""
    headers: Pairs = ()
    query_params: Pairs = ()
    body: str = ""
    focus: int = 1
    loaded_id: str | None = None
    url_error: str | None = None
    body_error: str | None = None

    @property
    def focused_field(self) -> str:
        return BUILDER_FIELDS[self.focus]

    def to_request(self) -> RequestBase:
        return RequestBase(
            method=self.method,
            url=self.url,
            headers=dict(self.headers),
            body=self.body,
            query_params=dict(self.query_params),
        )


@dataclass(frozen=True)
class ResponseView:
    """What the response screen shows for the last send."""
    request: ExecuteRequest | None = None
    response: ExecuteResponse | None = None
    error: ExecuteErrorResponse | None = None
    warnings: tuple[str, ...] = ()
    show_headers: bool = False
    scroll: int = 0


@dataclass(frozen=True)
class ConnectForm:
    host: str = "localhost"
    port: str = "5432"
    database: str = ""
    user: str = ""
    password: str = ""
    ssl_mode: str = SSL_MODES[0]
    focus: int = 0
    saved_index: int = -1
    error: str | None = None

    @property
    def focused_field(self) -> str:
        return CONNECT_FIELDS[self.focus]

    @classmethod
    def from_config(cls, config: ConnectionConfig, saved_index: int = -1) -> "ConnectForm":
        return cls(
            host=config.host,
            port=str(config.port),
            database=config.database,
            user=config.user,
            password=config.password,
            ssl_mode=config.ssl_mode,
            saved_index=saved_index,
        )


@dataclass(frozen=True)
class DatabaseState:
    """
    Database mode state.

    `session` is the open SqlSession; it is handed to the executor with each
    command and dropped when the connection is lost.
    """
    session: Any = field(default=None, compare=False)
    connect_form: ConnectForm = field(default_factory=ConnectForm)
    query: str = ""
    loaded_query_id: str | None = None
    last_query: str = ""
    result: QueryResult | None = None
    result_error: QueryErrorResponse | None = None
    result_scroll: int = 0
    tables: tuple[str, ...] = ()
    table_cursor: int = 0
    columns: tuple[ColumnInfo, ...] = ()
    columns_table: str | None = None
    export_format: int = 0
    export_table: str = ""
    export_focus_table: bool = False

    @property
    def connected(self) -> bool:
        return self.session is not None

    @property
    def export_format_name(self) -> str:
        return EXPORT_FORMATS[self.export_format]


@dataclass(frozen=True)
class EnvironmentEditorState:
    """
    Environment being edited.

    Attributes:
        original_name: Name of the environment being edited, None for a new one
        name: Name buffer
        editor: Variable list editor
        name_focused: Whether typing goes to the name buffer
        dirty: Whether anything changed since the editor opened
        error: Inline validation message
    """
    original_name: str | None
    name: str
    editor: ListEditor
    name_focused: bool = False
    dirty: bool = False
    error: str | None = None


@dataclass(frozen=True)
class AppState:
    """
    Everything the interface shows and the documents it edits.

    `history_mark` is the id of the history entry picked as the baseline of a
    comparison; `history_diff` is the rendered comparison shown under the
    history list.

    The in-flight tokens are independent: one HTTP send and one database
    operation may be outstanding at the same time. A completion whose token
    does not match is stale and is dropped.
    """
    requests: RequestsDocument = field(default_factory=RequestsDocument)
    database_doc: DatabaseDocument = field(default_factory=DatabaseDocument)
    environments: EnvironmentConfig = field(default_factory=EnvironmentConfig)

    screen: Screen = Screen.HOME
    previous_screen: Screen = Screen.HOME
    builder: BuilderState = field(default_factory=BuilderState)
    editor: ListEditor | None = None
    response: ResponseView = field(default_factory=ResponseView)
    db: DatabaseState = field(default_factory=DatabaseState)
    env_list: ListView = field(default_factory=ListView)
    env_editor: EnvironmentEditorState | None = None
    env_return: Screen = Screen.HOME

    request_list: ListView = field(default_factory=ListView)
    history_list: ListView = field(default_factory=ListView)
    query_list: ListView = field(default_factory=ListView)
    query_history_list: ListView = field(default_factory=ListView)
    history_mark: str | None = None
    history_diff: str | None = None

    prompt: Prompt | None = None
    flash: Flash | None = None
    storage_warning: str | None = None

    http_token: int | None = None
    sql_token: int | None = None
    next_token: int = 1
    now: float = 0.0

    history_limit: int = 100
    flash_seconds: float = 3.0
    quitting: bool = False
