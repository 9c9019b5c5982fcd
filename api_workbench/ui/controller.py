"""
Application controller.

`handle(state, event)` is the single transition function of the interface:
it takes the current state and one event and returns the next state plus the
commands to run. It performs no I/O; every effect is a command and every
result comes back as an event.
"""

import logging
from dataclasses import replace
from typing import Callable

from ..schemas.documents import DocumentKind
from .commands import Command, Disconnect, Quit
from .events import (
    ClipboardCompleted,
    ColumnsLoaded,
    ConnectCompleted,
    Event,
    ExportCompleted,
    HttpCompleted,
    KeyPress,
    QueryCompleted,
    RequestsExported,
    RequestsImported,
    SaveCompleted,
    TablesLoaded,
    Tick,
)
from .handlers import database, environments, history, requests, responses
from .handlers.common import Result, edit_text, flash, navigate
from .state import AppState, Screen


logger = logging.getLogger(__name__)

KeyHandler = Callable[[AppState, KeyPress], Result]


def handle_home(state: AppState, event: KeyPress) -> Result:
    key = event.key
    if key in ("1", "a"):
        return navigate(state, Screen.REQUEST_BUILDER), []
    if key in ("2", "d"):
        return navigate(state, Screen.DATABASE), []
    if key == "e":
        return replace(navigate(state, Screen.ENVIRONMENTS), env_return=Screen.HOME), []
    if key == "?":
        return navigate(state, Screen.HELP), []
    if key == "q":
        return quit_app(state)
    return state, []


def handle_help(state: AppState, event: KeyPress) -> Result:
    return replace(state, screen=state.previous_screen), []


SCREEN_HANDLERS: dict[Screen, KeyHandler] = {
    Screen.HOME: handle_home,
    Screen.HELP: handle_help,
    Screen.REQUEST_BUILDER: requests.handle_builder,
    Screen.HEADER_EDITOR: requests.handle_list_editor,
    Screen.QUERY_PARAM_EDITOR: requests.handle_list_editor,
    Screen.BODY_EDITOR: requests.handle_body_editor,
    Screen.REQUEST_LIST: requests.handle_request_list,
    Screen.LOADING: responses.handle_loading,
    Screen.VIEW_RESPONSE: responses.handle_view_response,
    Screen.HISTORY: history.handle_history,
    Screen.ENVIRONMENTS: environments.handle_environments,
    Screen.ENVIRONMENT_EDITOR: environments.handle_environment_editor,
    Screen.DATABASE: database.handle_database,
    Screen.DATABASE_CONNECT: database.handle_connect,
    Screen.DATABASE_QUERY_EDITOR: database.handle_query_editor,
    Screen.DATABASE_RESULT: database.handle_result,
    Screen.DATABASE_QUERY_LIST: database.handle_query_list,
    Screen.DATABASE_SCHEMA: database.handle_schema,
    Screen.DATABASE_QUERY_HISTORY: database.handle_query_history,
    Screen.DATABASE_EXPORT: database.handle_export,
}


def quit_app(state: AppState) -> Result:
    commands: list[Command] = []
    if state.db.session is not None:
        commands.append(Disconnect(session=state.db.session))
    commands.append(Quit())
    return replace(state, quitting=True, db=replace(state.db, session=None)), commands


def handle_prompt(state: AppState, event: KeyPress) -> Result:
    """Keys go to the open prompt before the screen underneath sees them."""
    prompt = state.prompt

    if event.key == "escape":
        return replace(state, prompt=None), []

    if event.key == "enter":
        name = prompt.value.strip()
        if not name:
            what = "Path" if prompt.purpose == "import_requests" else "Name"
            return replace(state, prompt=replace(prompt, error=f"{what} cannot be empty")), []
        if prompt.purpose == "import_requests":
            return requests.import_requests(state, name)
        if prompt.purpose == "save_query":
            return database.save_query(state, name)
        return requests.save_request(state, name)

    value = edit_text(prompt.value, event.key, event.character)
    if value is not None:
        return replace(state, prompt=replace(prompt, value=value, error=None)), []
    return state, []


def handle_key(state: AppState, event: KeyPress) -> Result:
    if event.key == "ctrl+c":
        return quit_app(state)
    if state.prompt is not None:
        return handle_prompt(state, event)
    return SCREEN_HANDLERS[state.screen](state, event)


def handle_tick(state: AppState, event: Tick) -> Result:
    if state.flash is not None and not state.flash.visible(state.now):
        return replace(state, flash=None), []
    return state, []


def handle_save_completed(state: AppState, event: SaveCompleted) -> Result:
    if event.error is None:
        return state, []
    return flash(state, f"Could not save {DocumentKind(event.kind).filename}: {event.error}", error=True), []


def handle_clipboard_completed(state: AppState, event: ClipboardCompleted) -> Result:
    if event.error is not None:
        return flash(state, f"Clipboard unavailable: {event.error}", error=True), []
    return flash(state, f"Copied {event.label} to clipboard"), []


def handle(state: AppState, event: Event) -> Result:
    """
    Apply one event to the state.

    Args:
        state: Current application state
        event: A key press, a tick or a command completion

    Returns:
        Tuple of (next state, commands to run)
    """
    state = replace(state, now=max(state.now, event.at))

    if isinstance(event, KeyPress):
        return handle_key(state, event)
    if isinstance(event, Tick):
        return handle_tick(state, event)
    if isinstance(event, HttpCompleted):
        return responses.handle_http_completed(state, event)
    if isinstance(event, ConnectCompleted):
        return database.handle_connect_completed(state, event)
    if isinstance(event, QueryCompleted):
        return database.handle_query_completed(state, event)
    if isinstance(event, TablesLoaded):
        return database.handle_tables_loaded(state, event)
    if isinstance(event, ColumnsLoaded):
        return database.handle_columns_loaded(state, event)
    if isinstance(event, SaveCompleted):
        return handle_save_completed(state, event)
    if isinstance(event, ExportCompleted):
        return database.handle_export_completed(state, event)
    if isinstance(event, RequestsExported):
        return requests.handle_requests_exported(state, event)
    if isinstance(event, RequestsImported):
        return requests.handle_requests_imported(state, event)
    if isinstance(event, ClipboardCompleted):
        return handle_clipboard_completed(state, event)

    logger.warning("Ignoring unknown event %r", event)
    return state, []
