"""
Request history screen.

Besides replaying entries, two entries can be compared: `m` marks the
baseline and `=` shows how the selected entry's response differs from it.
"""

from dataclasses import replace

from ...schemas.documents import DocumentKind
from ...schemas.history import RequestExecution
from ...services.filtering import filter_items
from ...services.response_diff import compare_executions, format_diff
from ..events import KeyPress
from ..state import AppState, BuilderState, Screen
from .common import Result, browse_list, clamp, flash, save_command, selected


def replay(state: AppState, entry: RequestExecution) -> Result:
    """Load a history entry into the builder as a new, unsaved request."""
    builder = BuilderState(
        method=entry.method,
        url=entry.url,
        headers=tuple(entry.headers.items()),
        query_params=tuple(entry.query_params.items()),
        body=entry.body,
    )
    state = replace(state, builder=builder, screen=Screen.REQUEST_BUILDER)
    return flash(state, f"Loaded {entry.method} {entry.url}"), []


def compare(state: AppState, current: RequestExecution) -> Result:
    baseline = next((h for h in state.requests.history if h.id == state.history_mark), None)
    if baseline is None:
        return flash(state, "Mark an entry with m first", error=True), []
    if baseline.id == current.id:
        return flash(state, "Select a different entry to compare with", error=True), []
    return replace(state, history_diff=format_diff(compare_executions(baseline, current))), []


def handle_history(state: AppState, event: KeyPress) -> Result:
    items = filter_items(state.requests.history, state.history_list.search)

    if state.history_diff is not None and event.key == "escape":
        return replace(state, history_diff=None), []

    if not state.history_list.searching and not state.history_list.confirming:
        current = selected(items, state.history_list)
        if event.key == "m" and current is not None:
            state = replace(state, history_mark=current.id, history_diff=None)
            return flash(state, f"Marked {current.method} {current.url} for comparison"), []
        if event.key == "=" and current is not None:
            return compare(state, current)

    view, action = browse_list(
        state.history_list, event.key, event.character, len(items),
        confirm_delete=False, can_clear=True,
    )
    state = replace(state, history_list=view)
    current = selected(items, view)

    if action == "open" and current is not None:
        return replay(state, current)

    if action == "delete" and current is not None:
        history = [h for h in state.requests.history if h.id != current.id]
        state = replace(
            state,
            requests=state.requests.model_copy(update={"history": history}),
            history_list=replace(view, cursor=clamp(view.cursor, len(items) - 1)),
        )
        return state, [save_command(state, DocumentKind.REQUESTS)]

    if action == "clear":
        state = replace(
            state,
            requests=state.requests.model_copy(update={"history": []}),
            history_list=replace(view, cursor=0, search=""),
            history_mark=None,
            history_diff=None,
        )
        return flash(state, "History cleared"), [save_command(state, DocumentKind.REQUESTS)]

    if action == "back":
        return replace(state, screen=Screen.REQUEST_BUILDER), []

    return state, []
