"""
Pure projection of the application state to screen text.

Nothing here changes state; the same state always renders the same text.
"""

import json
from typing import Callable

from ..schemas.execute import EXPORT_FORMATS
from ..services.filtering import filter_items
from .editors import EditorMode, FieldFocus, ListEditor
from .state import CONNECT_FIELDS, AppState, ListView, Screen


# Response body lines shown per page
PAGE_SIZE = 30

HELP_TEXT = """\
Home:          1/a builder   2/d database   e environments   ? help   q quit
Builder:       tab/shift+tab focus   left/right method   enter activate
               ctrl+s save   ctrl+l saved   ctrl+r history   ctrl+d database
               ctrl+e environments   ctrl+y copy as curl   esc home
Response:      h headers   up/down scroll   s save   c copy body   x copy curl
Lists:         up/down move   / search   enter load   d delete   c clear history
Saved list:    x export Postman collection   i import Postman collection
History:       m mark for comparison   = compare with marked   esc close comparison
Editors:       a/n add   e/enter edit   d delete   tab switch field   esc back
Body:          ctrl+f format JSON   esc back
Database:      c connect   q editor   l saved   s schema   h history   x disconnect
Query editor:  ctrl+k execute   ctrl+s save   ctrl+l saved   esc back
Result:        up/down scroll   s save   e export   esc editor
Environments:  n new   enter edit   d delete   s activate   esc back
Env editor:    tab name/variables   ctrl+s save   esc discard

Press any key to go back."""


def _title(text: str) -> list[str]:
    return [text, "=" * len(text), ""]


def _list_lines(view: ListView, rows: list[str], empty: str) -> list[str]:
    lines = []
    if view.searching or view.search:
        lines.append(f"Search: {view.search}{'_' if view.searching else ''}")
        lines.append("")
    if not rows:
        lines.append(empty)
    for i, row in enumerate(rows):
        marker = ">" if i == view.cursor else " "
        lines.append(f"{marker} {row}")
    if view.confirming == "delete":
        lines += ["", "Delete the selected item? (y/n)"]
    elif view.confirming == "clear":
        lines += ["", "Clear the whole history? (y/n)"]
    return lines


def _editor_lines(editor: ListEditor) -> list[str]:
    lines = []
    if not editor.items:
        lines.append(f"No {editor.kind.label}s. Press a to add one.")
    for i, (key, value) in enumerate(editor.items):
        marker = ">" if i == editor.cursor and editor.mode is EditorMode.BROWSING else " "
        lines.append(f"{marker} {key}: {value}")

    if editor.is_editing:
        verb = "Add" if editor.mode is EditorMode.ADDING_NEW else "Edit"
        key_cursor = "_" if editor.field is FieldFocus.KEY else ""
        value_cursor = "_" if editor.field is FieldFocus.VALUE else ""
        lines += [
            "",
            f"{verb} {editor.kind.label}",
            f"  Key:   {editor.key_buffer}{key_cursor}",
            f"  Value: {editor.value_buffer}{value_cursor}",
        ]
        if editor.error:
            lines.append(f"  ! {editor.error}")
    elif editor.mode is EditorMode.CONFIRMING_DELETE and editor.selected:
        lines += ["", f"Delete {editor.kind.label} '{editor.selected[0]}'? (y/n)"]
    return lines


def render_home(state: AppState) -> list[str]:
    active = state.environments.active_environment or "none"
    return _title("API Workbench") + [
        "1  HTTP request builder",
        "2  Database",
        "e  Environments",
        "?  Help",
        "q  Quit",
        "",
        f"Active environment: {active}",
        f"Saved requests: {len(state.requests.requests)}   History: {len(state.requests.history)}",
    ]


def render_builder(state: AppState) -> list[str]:
    b = state.builder
    focus = b.focused_field

    def mark(field: str) -> str:
        return ">" if focus == field else " "

    lines = _title("Request Builder")
    lines.append(f"{mark('method')} Method:  < {b.method} >")
    lines.append(f"{mark('url')} URL:     {b.url}{'_' if focus == 'url' else ''}")
    if b.url_error:
        lines.append(f"    ! {b.url_error}")
    lines.append(f"{mark('params')} Params:  {len(b.query_params)}")
    lines.append(f"{mark('headers')} Headers: {len(b.headers)}")
    body_preview = b.body.splitlines()[0] if b.body else ""
    lines.append(f"{mark('body')} Body:    {body_preview}")
    lines.append("")
    lines.append(f"{mark('send')} [ Send ]   {mark('save')} [ Save ]")
    lines.append("")
    active = state.environments.active_environment
    lines.append(f"Environment: {active or 'none'}")
    if state.http_token is not None:
        lines.append("A request is in flight...")
    return lines


def render_loading(state: AppState) -> list[str]:
    if state.previous_screen is Screen.DATABASE_QUERY_EDITOR:
        return ["Executing query...", "", "esc cancel"]
    return [f"Sending {state.builder.method} {state.builder.url}...", "", "esc cancel"]


def render_response(state: AppState) -> list[str]:
    view = state.response
    lines = _title("Response")
    if view.request is not None:
        lines.append(f"{view.request.method} {view.request.url}")
    for warning in view.warnings:
        lines.append(f"warning: {warning}")

    if view.error is not None:
        lines += ["", f"Error ({view.error.error_type}): {view.error.message}"]
        return lines

    response = view.response
    if response is None:
        return lines + ["No response yet."]

    lines.append(
        f"{response.status_code} {response.status_text}  [{response.status_band.value}]"
        f"  {response.response_time_ms} ms  {response.response_size} bytes"
    )
    lines.append("")

    if view.show_headers:
        content = [f"{k}: {v}" for k, v in response.headers.items()]
    elif response.body_json is not None:
        content = json.dumps(response.body_json, indent=2, ensure_ascii=False).splitlines()
    else:
        content = response.body.splitlines()

    start = min(view.scroll, max(len(content) - 1, 0))
    lines += content[start:start + PAGE_SIZE]
    return lines


def render_request_list(state: AppState) -> list[str]:
    items = filter_items(state.requests.requests, state.request_list.search)
    rows = [f"{r.name}  {r.method} {r.url}" for r in items]
    return _title("Saved Requests") + _list_lines(state.request_list, rows, "No saved requests.")


def render_history(state: AppState) -> list[str]:
    items = filter_items(state.requests.history, state.history_list.search)
    rows = []
    for h in items:
        status = h.error or str(h.status_code)
        mark = "* " if h.id == state.history_mark else ""
        rows.append(f"{mark}{h.timestamp:%Y-%m-%d %H:%M:%S}  {h.method} {h.url}  {status}  {h.response_time_ms} ms")
    lines = _title("History") + _list_lines(state.history_list, rows, "No history yet.")
    if state.history_diff is not None:
        lines += [""] + state.history_diff.splitlines()
    return lines


def render_list_editor(state: AppState) -> list[str]:
    if state.editor is None:
        return []
    title = "Headers" if state.screen is Screen.HEADER_EDITOR else "Query Parameters"
    return _title(title) + _editor_lines(state.editor)


def render_body_editor(state: AppState) -> list[str]:
    lines = _title(f"Body ({state.builder.method})")
    lines += (state.builder.body + "_").splitlines()
    if state.builder.body_error:
        lines += ["", f"! {state.builder.body_error}"]
    return lines


def render_help(state: AppState) -> list[str]:
    return _title("Help") + HELP_TEXT.splitlines()


def render_environments(state: AppState) -> list[str]:
    active = state.environments.active_environment
    rows = [
        f"{env.name}{'  (active)' if env.name == active else ''}  {len(env.variables)} variables"
        for env in state.environments.environments
    ]
    return _title("Environments") + _list_lines(state.env_list, rows, "No environments. Press n to create one.")


def render_environment_editor(state: AppState) -> list[str]:
    editor_state = state.env_editor
    if editor_state is None:
        return []
    marker = ">" if editor_state.name_focused else " "
    lines = _title("Edit Environment")
    lines.append(f"{marker} Name: {editor_state.name}{'_' if editor_state.name_focused else ''}")
    if editor_state.error:
        lines.append(f"  ! {editor_state.error}")
    lines.append("")
    return lines + _editor_lines(editor_state.editor)


def render_database(state: AppState) -> list[str]:
    db = state.db
    lines = _title("Database")
    if db.connected:
        lines.append(f"Connected: {db.session.description}")
        lines += ["", "q  Query editor", "l  Saved queries", "s  Schema", "h  Query history", "x  Disconnect"]
    else:
        lines += ["Not connected.", "", "c  Connect", "q  Query editor", "l  Saved queries", "h  Query history"]
    return lines


def render_connect(state: AppState) -> list[str]:
    form = state.db.connect_form
    lines = _title("Connect to PostgreSQL")
    for i, field in enumerate(CONNECT_FIELDS):
        value = getattr(form, field)
        if field == "password":
            value = "*" * len(value)
        elif field == "ssl_mode":
            value = f"< {value} >"
        cursor = "_" if i == form.focus and field != "ssl_mode" else ""
        marker = ">" if i == form.focus else " "
        lines.append(f"{marker} {field:<9} {value}{cursor}")
    if form.error:
        lines += ["", f"! {form.error}"]
    if state.sql_token is not None:
        lines += ["", "Connecting..."]
    return lines


def render_query_editor(state: AppState) -> list[str]:
    lines = _title("Query Editor")
    lines += (state.db.query + "_").splitlines()
    lines += ["", "ctrl+k execute   ctrl+s save   esc back"]
    return lines


def render_result(state: AppState) -> list[str]:
    db = state.db
    lines = _title("Result")
    lines.append(db.last_query)
    lines.append("")

    if db.result_error is not None:
        return lines + [f"Error: {db.result_error.message}"]

    result = db.result
    if result is None:
        return lines + ["No result."]

    if not result.returns_rows:
        return lines + [f"{result.rows_affected} rows affected in {result.execution_time_ms} ms"]

    widths = [len(c) for c in result.columns]
    for row in result.rows:
        for i, value in enumerate(row[:len(widths)]):
            widths[i] = min(max(widths[i], len(value)), 40)

    def fmt(values: list[str]) -> str:
        return " | ".join(v[:widths[i]].ljust(widths[i]) for i, v in enumerate(values[:len(widths)]))

    lines.append(fmt(result.columns))
    lines.append("-+-".join("-" * w for w in widths))
    start = db.result_scroll
    lines += [fmt(row) for row in result.rows[start:start + PAGE_SIZE]]
    lines.append("")
    summary = f"{len(result.rows)} rows in {result.execution_time_ms} ms"
    if result.truncated:
        summary += " (truncated)"
    lines.append(summary)
    return lines


def render_query_list(state: AppState) -> list[str]:
    items = filter_items(state.database_doc.saved_queries, state.query_list.search)
    rows = [f"{q.name}  {q.query.splitlines()[0] if q.query else ''}" for q in items]
    return _title("Saved Queries") + _list_lines(state.query_list, rows, "No saved queries.")


def render_schema(state: AppState) -> list[str]:
    db = state.db
    lines = _title("Schema")
    if not db.tables:
        lines.append("Loading tables..." if state.sql_token is not None else "No tables. Press r to refresh.")
    for i, table in enumerate(db.tables):
        lines.append(f"{'>' if i == db.table_cursor else ' '} {table}")
    if db.columns_table:
        lines += ["", f"Columns of {db.columns_table}:"]
        for col in db.columns:
            lines.append(f"  {col.name}  {col.type}{'' if col.nullable else '  NOT NULL'}")
    return lines


def render_query_history(state: AppState) -> list[str]:
    items = filter_items(state.database_doc.query_history, state.query_history_list.search)
    rows = []
    for h in items:
        outcome = f"error: {h.error}" if h.error else f"{h.row_count or h.rows_affected} rows"
        first_line = h.query.splitlines()[0] if h.query else ""
        rows.append(f"{h.timestamp:%Y-%m-%d %H:%M:%S}  {first_line}  {outcome}")
    return _title("Query History") + _list_lines(state.query_history_list, rows, "No query history yet.")


def render_export(state: AppState) -> list[str]:
    db = state.db
    lines = _title("Export Result")
    for i, name in enumerate(EXPORT_FORMATS):
        marker = ">" if i == db.export_format and not db.export_focus_table else " "
        lines.append(f"{marker} {name.upper()}")
    marker = ">" if db.export_focus_table else " "
    lines += ["", f"{marker} Table name (SQL): {db.export_table}{'_' if db.export_focus_table else ''}"]
    return lines


RENDERERS: dict[Screen, Callable[[AppState], list[str]]] = {
    Screen.HOME: render_home,
    Screen.REQUEST_BUILDER: render_builder,
    Screen.LOADING: render_loading,
    Screen.VIEW_RESPONSE: render_response,
    Screen.REQUEST_LIST: render_request_list,
    Screen.HEADER_EDITOR: render_list_editor,
    Screen.BODY_EDITOR: render_body_editor,
    Screen.QUERY_PARAM_EDITOR: render_list_editor,
    Screen.HELP: render_help,
    Screen.HISTORY: render_history,
    Screen.DATABASE: render_database,
    Screen.DATABASE_CONNECT: render_connect,
    Screen.DATABASE_QUERY_EDITOR: render_query_editor,
    Screen.DATABASE_RESULT: render_result,
    Screen.DATABASE_QUERY_LIST: render_query_list,
    Screen.DATABASE_SCHEMA: render_schema,
    Screen.DATABASE_QUERY_HISTORY: render_query_history,
    Screen.DATABASE_EXPORT: render_export,
    Screen.ENVIRONMENTS: render_environments,
    Screen.ENVIRONMENT_EDITOR: render_environment_editor,
}


def render(state: AppState) -> str:
    """Render the current screen, the storage warning, the prompt and any live message."""
    lines: list[str] = []
    if state.storage_warning:
        lines += [f"WARNING: {state.storage_warning}", ""]

    lines += RENDERERS[state.screen](state)

    if state.prompt is not None:
        lines += ["", f"{state.prompt.label}: {state.prompt.value}_"]
        if state.prompt.error:
            lines.append(f"! {state.prompt.error}")

    if state.flash is not None and state.flash.visible(state.now):
        prefix = "Error: " if state.flash.error else ""
        lines += ["", f"{prefix}{state.flash.text}"]

    return "\n".join(lines)
