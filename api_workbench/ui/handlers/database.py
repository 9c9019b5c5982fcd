"""
Database mode screens and the merge of database command completions.

All database work shares one in-flight token. Cancelling only forgets the
token; a statement already sent keeps running, and the session lock makes the
next one wait for it.
"""

import logging
from dataclasses import replace

from pydantic import ValidationError as PydanticValidationError

from ...schemas._common import utcnow
from ...schemas.database import SSL_MODES, ConnectionConfig, SavedQuery
from ...schemas.documents import DocumentKind
from ...schemas.execute import EXPORT_FORMATS, QueryErrorResponse
from ...services.filtering import filter_items
from ...services.history_service import append_execution, record_query_execution
from ..commands import Command, Connect, Disconnect, ExecuteQuery, ExportQuery, LoadColumns, LoadTables
from ..events import ColumnsLoaded, ConnectCompleted, ExportCompleted, KeyPress, QueryCompleted, TablesLoaded
from ..state import CONNECT_FIELDS, AppState, ConnectForm, Prompt, Screen
from .common import (
    Result,
    allocate_token,
    browse_list,
    busy,
    clamp,
    edit_text,
    flash,
    move_cursor,
    navigate,
    save_command,
    selected,
)


logger = logging.getLogger(__name__)

NOT_CONNECTED = "Not connected. Press c on the database screen to connect"


def _is_stale(state: AppState, token: int, what: str) -> bool:
    if state.sql_token is None or token != state.sql_token:
        logger.warning("Discarding stale %s completion (token %s, expected %s)", what, token, state.sql_token)
        return True
    return False


def drop_session(state: AppState, message: str) -> Result:
    """Forget a session whose connection is gone and ask the user to reconnect."""
    commands: list[Command] = []
    if state.db.session is not None:
        commands.append(Disconnect(session=state.db.session))
    state = replace(
        state,
        sql_token=None,
        db=replace(state.db, session=None, tables=(), columns=(), columns_table=None),
    )
    return flash(state, message, error=True), commands


def disconnect(state: AppState) -> Result:
    if state.db.session is None:
        return state, []
    command = Disconnect(session=state.db.session)
    state = replace(
        state,
        sql_token=None,
        db=replace(state.db, session=None, tables=(), columns=(), columns_table=None),
    )
    return flash(state, "Disconnected"), [command]


def handle_database(state: AppState, event: KeyPress) -> Result:
    key = event.key
    db = state.db

    if key == "c":
        form = db.connect_form
        saved = state.database_doc.saved_connections
        if not form.database and not form.user and saved:
            form = ConnectForm.from_config(saved[0], saved_index=0)
        return replace(navigate(state, Screen.DATABASE_CONNECT), db=replace(db, connect_form=form)), []

    if key == "q":
        return navigate(state, Screen.DATABASE_QUERY_EDITOR), []
    if key == "l":
        return navigate(replace(state, query_list=replace(state.query_list, cursor=0)), Screen.DATABASE_QUERY_LIST), []
    if key == "h":
        return navigate(
            replace(state, query_history_list=replace(state.query_history_list, cursor=0)),
            Screen.DATABASE_QUERY_HISTORY,
        ), []

    if key in ("s", "t"):
        if not db.connected:
            return flash(state, NOT_CONNECTED, error=True), []
        return open_schema(navigate(state, Screen.DATABASE_SCHEMA))

    if key == "x":
        return disconnect(state)

    if key == "escape":
        state, commands = disconnect(state)
        return replace(state, screen=Screen.HOME), commands

    if key == "?":
        return navigate(state, Screen.HELP), []

    return state, []


def build_connection(form: ConnectForm) -> ConnectionConfig:
    """
    Raises:
        pydantic.ValidationError: if a field is missing or out of range
    """
    return ConnectionConfig(
        host=form.host,
        port=form.port or 0,
        database=form.database,
        user=form.user,
        password=form.password,
        ssl_mode=form.ssl_mode,
    )


def _form_error(error: PydanticValidationError) -> str:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first["loc"])
    return f"{field}: {first['msg']}" if field else first["msg"]


def handle_connect(state: AppState, event: KeyPress) -> Result:
    key = event.key
    form = state.db.connect_form

    def with_form(new_form: ConnectForm) -> AppState:
        return replace(state, db=replace(state.db, connect_form=new_form))

    if key == "escape":
        return replace(state, screen=Screen.DATABASE), []

    if key in ("tab", "shift+tab", "down", "up"):
        step = 1 if key in ("tab", "down") else -1
        return with_form(replace(form, focus=(form.focus + step) % len(CONNECT_FIELDS))), []

    if key in ("left", "right") and form.focused_field == "ssl_mode":
        step = 1 if key == "right" else -1
        index = SSL_MODES.index(form.ssl_mode) if form.ssl_mode in SSL_MODES else 0
        return with_form(replace(form, ssl_mode=SSL_MODES[(index + step) % len(SSL_MODES)])), []

    if key == "ctrl+n":
        saved = state.database_doc.saved_connections
        if not saved:
            return flash(state, "No saved connections"), []
        index = (form.saved_index + 1) % len(saved)
        return with_form(replace(ConnectForm.from_config(saved[index], saved_index=index), focus=form.focus)), []

    if key == "enter":
        if state.sql_token is not None:
            return busy(state, "a database operation is")
        try:
            config = build_connection(form)
        except PydanticValidationError as e:
            return with_form(replace(form, error=_form_error(e))), []
        state, token = allocate_token(with_form(replace(form, error=None)))
        state = replace(state, sql_token=token)
        return flash(state, f"Connecting to {config.describe()}..."), [Connect(token=token, config=config)]

    field = form.focused_field
    if field == "ssl_mode":
        return state, []

    value = edit_text(getattr(form, field), key, event.character)
    if value is None:
        return state, []
    if field == "port" and value and not value.isdigit():
        return state, []
    return with_form(replace(form, **{field: value}, error=None)), []


def remember_connection(state: AppState, config: ConnectionConfig) -> AppState:
    """Store a successful connection, replacing a saved one with the same target."""
    connections = list(state.database_doc.saved_connections)
    for i, saved in enumerate(connections):
        if saved.same_target(config):
            connections[i] = config
            break
    else:
        connections.append(config)
    return replace(state, database_doc=state.database_doc.model_copy(update={"saved_connections": connections}))


def handle_connect_completed(state: AppState, event: ConnectCompleted) -> Result:
    if _is_stale(state, event.token, "connect"):
        if event.session is not None:
            return state, [Disconnect(session=event.session)]
        return state, []

    state = replace(state, sql_token=None)

    if event.session is None:
        form = replace(state.db.connect_form, error=event.error)
        state = replace(state, db=replace(state.db, connect_form=form))
        return flash(state, event.error or "Connection failed", error=True), []

    commands: list[Command] = []
    if state.db.session is not None:
        commands.append(Disconnect(session=state.db.session))

    state = remember_connection(state, event.config)
    state = replace(
        state,
        db=replace(state.db, session=event.session, tables=(), columns=(), columns_table=None),
    )
    if state.screen is Screen.DATABASE_CONNECT:
        state = replace(state, screen=Screen.DATABASE)
    commands.append(save_command(state, DocumentKind.DATABASE))
    return flash(state, f"Connected to {event.config.describe()}"), commands


def execute_query(state: AppState) -> Result:
    """Dispatch the query in the editor once the gate checks pass."""
    if state.sql_token is not None:
        return busy(state, "a database operation is")
    if not state.db.connected:
        return flash(state, NOT_CONNECTED, error=True), []

    query = state.db.query.strip()
    if not query:
        return flash(state, "Query cannot be empty", error=True), []

    state, token = allocate_token(state)
    state = navigate(replace(state, sql_token=token), Screen.LOADING)
    return state, [ExecuteQuery(token=token, session=state.db.session, query=query)]


def handle_query_completed(state: AppState, event: QueryCompleted) -> Result:
    if _is_stale(state, event.token, "query"):
        return state, []

    connection_info = state.db.session.description if state.db.session is not None else ""
    record = record_query_execution(event.query, event.result, connection_info)
    history = append_execution(state.database_doc.query_history, record, limit=state.history_limit)

    if isinstance(event.result, QueryErrorResponse):
        db = replace(state.db, last_query=event.query, result=None, result_error=event.result, result_scroll=0)
    else:
        db = replace(state.db, last_query=event.query, result=event.result, result_error=None, result_scroll=0)

    state = replace(
        state,
        sql_token=None,
        db=db,
        database_doc=state.database_doc.model_copy(update={"query_history": history}),
    )
    if state.screen is Screen.LOADING:
        state = replace(state, screen=Screen.DATABASE_RESULT)

    commands: list[Command] = [save_command(state, DocumentKind.DATABASE)]
    if isinstance(event.result, QueryErrorResponse) and event.result.connection_lost:
        state, extra = drop_session(state, "Connection lost. Press c on the database screen to reconnect")
        commands.extend(extra)
    return state, commands


def open_save_query_prompt(state: AppState) -> Result:
    default_name = ""
    if state.db.loaded_query_id:
        saved = next((q for q in state.database_doc.saved_queries if q.id == state.db.loaded_query_id), None)
        default_name = saved.name if saved else ""
    return replace(state, prompt=Prompt(purpose="save_query", label="Query name", value=default_name)), []


def save_query(state: AppState, name: str) -> Result:
    """Save the editor query; a query loaded from the saved list is updated in place."""
    query = state.db.query.strip() or state.db.last_query
    if not query:
        return replace(state, prompt=replace(state.prompt, error="Query cannot be empty")), []

    queries = list(state.database_doc.saved_queries)
    index = next((i for i, q in enumerate(queries) if q.id == state.db.loaded_query_id), None)
    if index is not None:
        saved = queries[index].model_copy(update={"name": name, "query": query, "last_used": utcnow()})
        queries[index] = saved
        message = f"Updated query '{name}'"
    else:
        saved = SavedQuery(name=name, query=query)
        queries.append(saved)
        message = f"Saved query '{name}'"

    state = replace(
        state,
        database_doc=state.database_doc.model_copy(update={"saved_queries": queries}),
        db=replace(state.db, loaded_query_id=saved.id),
        prompt=None,
    )
    return flash(state, message), [save_command(state, DocumentKind.DATABASE)]


def handle_query_editor(state: AppState, event: KeyPress) -> Result:
    key = event.key

    if key == "escape":
        return replace(state, screen=Screen.DATABASE), []
    if key == "ctrl+k":
        return execute_query(state)
    if key == "ctrl+s":
        return open_save_query_prompt(state)
    if key == "ctrl+l":
        return navigate(state, Screen.DATABASE_QUERY_LIST), []

    query = edit_text(state.db.query, key, event.character, multiline=True)
    if query is not None:
        return replace(state, db=replace(state.db, query=query)), []
    return state, []


def handle_result(state: AppState, event: KeyPress) -> Result:
    key = event.key
    db = state.db

    if key in ("escape", "q"):
        return replace(state, screen=Screen.DATABASE_QUERY_EDITOR), []

    if key in ("up", "k"):
        return replace(state, db=replace(db, result_scroll=max(db.result_scroll - 1, 0))), []
    if key in ("down", "j"):
        rows = len(db.result.rows) if db.result else 0
        return replace(state, db=replace(db, result_scroll=clamp(db.result_scroll + 1, rows))), []

    if key == "s":
        return open_save_query_prompt(state)

    if key == "e":
        if db.result is None or not db.result.columns:
            return flash(state, "No rows to export", error=True), []
        return navigate(replace(state, db=replace(db, export_focus_table=False)), Screen.DATABASE_EXPORT), []

    if key == "?":
        return navigate(state, Screen.HELP), []

    return state, []


def handle_export(state: AppState, event: KeyPress) -> Result:
    key = event.key
    db = state.db

    if key == "escape":
        return replace(state, screen=Screen.DATABASE_RESULT), []

    if key in ("tab", "shift+tab"):
        return replace(state, db=replace(db, export_focus_table=not db.export_focus_table)), []

    if key == "enter":
        if db.result is None:
            return flash(replace(state, screen=Screen.DATABASE_RESULT), "No rows to export", error=True), []
        command = ExportQuery(result=db.result, format=db.export_format_name, table=db.export_table.strip())
        return state, [command]

    if db.export_focus_table:
        table = edit_text(db.export_table, key, event.character)
        if table is not None:
            return replace(state, db=replace(db, export_table=table)), []
        return state, []

    cursor = move_cursor(db.export_format, key, len(EXPORT_FORMATS))
    if cursor is not None:
        return replace(state, db=replace(db, export_format=cursor)), []
    return state, []


def handle_export_completed(state: AppState, event: ExportCompleted) -> Result:
    if state.screen is Screen.DATABASE_EXPORT:
        state = replace(state, screen=Screen.DATABASE_RESULT)
    if event.result is None:
        return flash(state, f"Export failed: {event.error}", error=True), []
    return flash(state, f"Exported {event.result.row_count} rows to {event.result.file_path}"), []


def load_query(state: AppState, query: str, saved_id: str | None) -> AppState:
    db = replace(state.db, query=query, loaded_query_id=saved_id)
    return replace(state, db=db, screen=Screen.DATABASE_QUERY_EDITOR)


def handle_query_list(state: AppState, event: KeyPress) -> Result:
    items = filter_items(state.database_doc.saved_queries, state.query_list.search)
    view, action = browse_list(state.query_list, event.key, event.character, len(items))
    state = replace(state, query_list=view)
    current = selected(items, view)

    if action == "open" and current is not None:
        queries = [
            q.model_copy(update={"last_used": utcnow()}) if q.id == current.id else q
            for q in state.database_doc.saved_queries
        ]
        state = replace(state, database_doc=state.database_doc.model_copy(update={"saved_queries": queries}))
        state = load_query(state, current.query, current.id)
        return flash(state, f"Loaded '{current.name}'"), [save_command(state, DocumentKind.DATABASE)]

    if action == "delete" and current is not None:
        queries = [q for q in state.database_doc.saved_queries if q.id != current.id]
        db = state.db
        if db.loaded_query_id == current.id:
            db = replace(db, loaded_query_id=None)
        state = replace(
            state,
            db=db,
            database_doc=state.database_doc.model_copy(update={"saved_queries": queries}),
            query_list=replace(view, cursor=clamp(view.cursor, len(items) - 1)),
        )
        return flash(state, f"Deleted '{current.name}'"), [save_command(state, DocumentKind.DATABASE)]

    if action == "back":
        return replace(state, screen=Screen.DATABASE), []

    return state, []


def handle_query_history(state: AppState, event: KeyPress) -> Result:
    items = filter_items(state.database_doc.query_history, state.query_history_list.search)
    view, action = browse_list(
        state.query_history_list, event.key, event.character, len(items),
        confirm_delete=False, can_clear=True,
    )
    state = replace(state, query_history_list=view)
    current = selected(items, view)

    if action == "open" and current is not None:
        return load_query(state, current.query, None), []

    if action == "delete" and current is not None:
        history = [h for h in state.database_doc.query_history if h.id != current.id]
        state = replace(
            state,
            database_doc=state.database_doc.model_copy(update={"query_history": history}),
            query_history_list=replace(view, cursor=clamp(view.cursor, len(items) - 1)),
        )
        return state, [save_command(state, DocumentKind.DATABASE)]

    if action == "clear":
        state = replace(
            state,
            database_doc=state.database_doc.model_copy(update={"query_history": []}),
            query_history_list=replace(view, cursor=0, search=""),
        )
        return flash(state, "Query history cleared"), [save_command(state, DocumentKind.DATABASE)]

    if action == "back":
        return replace(state, screen=Screen.DATABASE), []

    return state, []


def open_schema(state: AppState) -> Result:
    """Load the table list unless it is already loaded."""
    if state.db.tables or state.sql_token is not None or not state.db.connected:
        return state, []
    return refresh_tables(state)


def refresh_tables(state: AppState) -> Result:
    if state.sql_token is not None:
        return busy(state, "a database operation is")
    if not state.db.connected:
        return flash(state, NOT_CONNECTED, error=True), []
    state, token = allocate_token(state)
    return replace(state, sql_token=token), [LoadTables(token=token, session=state.db.session)]


def handle_schema(state: AppState, event: KeyPress) -> Result:
    key = event.key
    db = state.db

    cursor = move_cursor(db.table_cursor, key, len(db.tables))
    if cursor is not None:
        return replace(state, db=replace(db, table_cursor=cursor)), []

    if key == "enter" and db.tables:
        if state.sql_token is not None:
            return busy(state, "a database operation is")
        if not db.connected:
            return flash(state, NOT_CONNECTED, error=True), []
        table = db.tables[db.table_cursor]
        state, token = allocate_token(state)
        state = replace(state, sql_token=token)
        return state, [LoadColumns(token=token, session=state.db.session, table=table)]

    if key == "r":
        return refresh_tables(state)
    if key == "q":
        return replace(state, screen=Screen.DATABASE_QUERY_EDITOR), []
    if key == "l":
        return replace(state, screen=Screen.DATABASE_QUERY_LIST), []
    if key == "escape":
        return replace(state, screen=Screen.DATABASE), []
    if key == "?":
        return navigate(state, Screen.HELP), []

    return state, []


def handle_tables_loaded(state: AppState, event: TablesLoaded) -> Result:
    if _is_stale(state, event.token, "table list"):
        return state, []
    state = replace(state, sql_token=None)

    if event.error is not None:
        if event.connection_lost:
            return drop_session(state, "Connection lost. Press c on the database screen to reconnect")
        return flash(state, event.error, error=True), []

    db = replace(state.db, tables=event.tables, table_cursor=0, columns=(), columns_table=None)
    return replace(state, db=db), []


def handle_columns_loaded(state: AppState, event: ColumnsLoaded) -> Result:
    if _is_stale(state, event.token, "column list"):
        return state, []
    state = replace(state, sql_token=None)

    if event.error is not None:
        if event.connection_lost:
            return drop_session(state, "Connection lost. Press c on the database screen to reconnect")
        return flash(state, event.error, error=True), []

    return replace(state, db=replace(state.db, columns=event.columns, columns_table=event.table)), []
