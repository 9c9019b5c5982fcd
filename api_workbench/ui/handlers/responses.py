"""
Loading and response screens, and the merge of HTTP completions.
"""

import logging
from dataclasses import replace

from ...schemas.documents import DocumentKind
from ...schemas.execute import ExecuteResponse
from ...services.history_service import append_execution, record_request_execution
from ..commands import CopyToClipboard
from ..events import HttpCompleted, KeyPress
from ..state import AppState, ResponseView, Screen
from .common import Result, flash, navigate, save_command
from .requests import copy_as_curl, open_save_prompt


logger = logging.getLogger(__name__)

DATABASE_SCREENS = frozenset({
    Screen.DATABASE,
    Screen.DATABASE_CONNECT,
    Screen.DATABASE_QUERY_EDITOR,
    Screen.DATABASE_RESULT,
    Screen.DATABASE_QUERY_LIST,
    Screen.DATABASE_SCHEMA,
    Screen.DATABASE_QUERY_HISTORY,
    Screen.DATABASE_EXPORT,
})


def handle_loading(state: AppState, event: KeyPress) -> Result:
    """
    Escape abandons the outstanding command.

    The worker is not interrupted; clearing the token makes its completion
    stale so it is dropped on arrival.
    """
    if event.key != "escape":
        return state, []

    if state.previous_screen in DATABASE_SCREENS:
        state = replace(state, sql_token=None, screen=state.previous_screen)
        return flash(state, "Query cancelled"), []

    state = replace(state, http_token=None, screen=state.previous_screen)
    return flash(state, "Request cancelled"), []


def handle_http_completed(state: AppState, event: HttpCompleted) -> Result:
    if state.http_token is None or event.token != state.http_token:
        logger.warning("Discarding stale HTTP completion (token %s, expected %s)", event.token, state.http_token)
        return state, []

    record = record_request_execution(event.request, event.result)
    history = append_execution(state.requests.history, record, limit=state.history_limit)
    requests = state.requests.model_copy(update={"history": history})

    if isinstance(event.result, ExecuteResponse):
        result = event.result.model_copy(update={"warnings": list(event.warnings)})
        view = ResponseView(request=event.resolved, response=result, warnings=event.warnings)
    else:
        view = ResponseView(request=event.resolved, error=event.result, warnings=event.warnings)

    state = replace(state, http_token=None, requests=requests, response=view)
    if state.screen is Screen.LOADING:
        state = replace(state, screen=Screen.VIEW_RESPONSE)

    return state, [save_command(state, DocumentKind.REQUESTS)]


def handle_view_response(state: AppState, event: KeyPress) -> Result:
    key = event.key
    view = state.response

    if key == "escape":
        return replace(state, screen=Screen.REQUEST_BUILDER), []

    if key == "h":
        return replace(state, response=replace(view, show_headers=not view.show_headers, scroll=0)), []

    if key in ("up", "k"):
        return replace(state, response=replace(view, scroll=max(view.scroll - 1, 0))), []
    if key in ("down", "j"):
        return replace(state, response=replace(view, scroll=view.scroll + 1)), []

    if key == "s":
        return open_save_prompt(state)

    if key == "c":
        if view.response is None:
            return flash(state, "No response body to copy", error=True), []
        return state, [CopyToClipboard(text=view.response.body, label="response body")]

    if key == "x":
        return copy_as_curl(state)

    if key == "?":
        return navigate(state, Screen.HELP), []

    return state, []
