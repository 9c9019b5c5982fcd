"""
Request builder screens: the builder itself, the header, query parameter and
body editors, and the saved request list with its Postman import and export.
"""

import json
from dataclasses import replace

from ...exceptions import ValidationError
from ...schemas._common import utcnow
from ...schemas.documents import DocumentKind
from ...schemas.request import HTTP_METHODS, SavedRequest
from ...services.exporters import to_curl
from ...services.filtering import filter_items
from ...services.http_executor import apply_variable_substitution, validate_url
from ...services.variable_substitution import resolve
from ..commands import CopyToClipboard, ExportRequests, ImportRequests, SendHttp
from ..editors import EditorOutcome, ItemKind, ListEditor, handle_key
from ..events import KeyPress, RequestsExported, RequestsImported
from ..state import BUILDER_FIELDS, AppState, BuilderState, Prompt, Screen
from .common import (
    Result,
    allocate_token,
    browse_list,
    busy,
    clamp,
    edit_text,
    flash,
    navigate,
    save_command,
    selected,
)


def cycle_method(method: str, step: int) -> str:
    index = HTTP_METHODS.index(method) if method in HTTP_METHODS else 0
    return HTTP_METHODS[(index + step) % len(HTTP_METHODS)]


def send_request(state: AppState) -> Result:
    """
    Resolve, validate and dispatch the request in the builder.

    Validation failures stay inline on the builder; nothing is sent.
    """
    if state.http_token is not None:
        return busy(state, "a request is")

    request = state.builder.to_request()
    variables = state.environments.active_variables()
    resolved, warnings = apply_variable_substitution(request, variables)

    try:
        # query params are appended later and never affect scheme or host
        validate_url(resolve(request.url, variables))
    except ValidationError as e:
        builder = replace(state.builder, url_error=e.detail, focus=BUILDER_FIELDS.index("url"))
        return replace(state, builder=builder, screen=Screen.REQUEST_BUILDER), []

    state, token = allocate_token(state)
    state = replace(state, builder=replace(state.builder, url_error=None), http_token=token)
    state = navigate(state, Screen.LOADING)
    return state, [SendHttp(token=token, request=request, resolved=resolved, warnings=tuple(warnings))]


def copy_as_curl(state: AppState) -> Result:
    request = state.response.request
    if request is None or state.screen is Screen.REQUEST_BUILDER:
        request, _ = apply_variable_substitution(
            state.builder.to_request(), state.environments.active_variables()
        )
    text = to_curl(request.method, request.url, request.headers, request.body)
    return state, [CopyToClipboard(text=text, label="curl command")]


def open_save_prompt(state: AppState) -> Result:
    default_name = ""
    if state.builder.loaded_id:
        saved = next((r for r in state.requests.requests if r.id == state.builder.loaded_id), None)
        default_name = saved.name if saved else ""
    return replace(state, prompt=Prompt(purpose="save_request", label="Request name", value=default_name)), []


def save_request(state: AppState, name: str) -> Result:
    """
    Save the builder contents under a name.

    A request that was loaded from the saved list is updated in place;
    otherwise a new saved request is created. Names need not be unique.
    """
    builder = state.builder
    fields = builder.to_request().model_dump()
    requests = list(state.requests.requests)

    index = next((i for i, r in enumerate(requests) if r.id == builder.loaded_id), None)
    if index is not None:
        saved = requests[index].model_copy(update={**fields, "name": name, "last_used": utcnow()})
        requests[index] = saved
        message = f"Updated request '{name}'"
    else:
        saved = SavedRequest(name=name, **fields)
        requests.append(saved)
        message = f"Saved request '{name}'"

    state = replace(
        state,
        requests=state.requests.model_copy(update={"requests": requests}),
        builder=replace(builder, loaded_id=saved.id),
        prompt=None,
    )
    return flash(state, message), [save_command(state, DocumentKind.REQUESTS)]


def open_list_editor(state: AppState, kind: ItemKind) -> AppState:
    if kind is ItemKind.HEADER:
        editor, screen = ListEditor(kind=kind, items=state.builder.headers), Screen.HEADER_EDITOR
    else:
        editor, screen = ListEditor(kind=kind, items=state.builder.query_params), Screen.QUERY_PARAM_EDITOR
    return replace(navigate(state, screen), editor=editor)


def activate_field(state: AppState) -> Result:
    field = state.builder.focused_field
    if field == "method":
        return replace(state, builder=replace(state.builder, method=cycle_method(state.builder.method, 1))), []
    if field in ("url", "send"):
        return send_request(state)
    if field == "params":
        return open_list_editor(state, ItemKind.QUERY_PARAM), []
    if field == "headers":
        return open_list_editor(state, ItemKind.HEADER), []
    if field == "body":
        return navigate(state, Screen.BODY_EDITOR), []
    return open_save_prompt(state)


def handle_builder(state: AppState, event: KeyPress) -> Result:
    key = event.key
    builder = state.builder

    if key in ("tab", "shift+tab"):
        step = 1 if key == "tab" else -1
        return replace(state, builder=replace(builder, focus=(builder.focus + step) % len(BUILDER_FIELDS))), []

    if key in ("left", "right") and builder.focused_field == "method":
        step = 1 if key == "right" else -1
        return replace(state, builder=replace(builder, method=cycle_method(builder.method, step))), []

    if key == "enter":
        return activate_field(state)

    if key == "escape":
        return navigate(state, Screen.HOME), []

    if key == "ctrl+s":
        return open_save_prompt(state)
    if key == "ctrl+l":
        return navigate(replace(state, request_list=replace(state.request_list, cursor=0)), Screen.REQUEST_LIST), []
    if key == "ctrl+r":
        return navigate(replace(state, history_list=replace(state.history_list, cursor=0)), Screen.HISTORY), []
    if key == "ctrl+d":
        return navigate(state, Screen.DATABASE), []
    if key == "ctrl+e":
        return replace(navigate(state, Screen.ENVIRONMENTS), env_return=Screen.REQUEST_BUILDER), []
    if key == "ctrl+y":
        return copy_as_curl(state)

    if builder.focused_field == "url":
        url = edit_text(builder.url, key, event.character)
        if url is not None:
            return replace(state, builder=replace(builder, url=url, url_error=None)), []
        return state, []

    if key == "?":
        return navigate(state, Screen.HELP), []

    return state, []


def handle_list_editor(state: AppState, event: KeyPress) -> Result:
    """Header and query parameter editors."""
    if state.editor is None:
        return replace(state, screen=Screen.REQUEST_BUILDER), []

    editor, outcome = handle_key(state.editor, event.key, event.character)
    state = replace(state, editor=editor)

    if outcome is EditorOutcome.COMMITTED:
        if editor.kind is ItemKind.HEADER:
            return replace(state, builder=replace(state.builder, headers=editor.items)), []
        return replace(state, builder=replace(state.builder, query_params=editor.items)), []

    if outcome is EditorOutcome.DELEGATE:
        if event.key == "escape":
            return replace(state, screen=Screen.REQUEST_BUILDER, editor=None), []
        if event.key == "?":
            return navigate(state, Screen.HELP), []

    return state, []


def handle_body_editor(state: AppState, event: KeyPress) -> Result:
    key = event.key
    builder = state.builder

    if key == "escape":
        return replace(state, screen=Screen.REQUEST_BUILDER, builder=replace(builder, body_error=None)), []

    if key == "ctrl+f":
        if not builder.body.strip():
            return state, []
        try:
            pretty = json.dumps(json.loads(builder.body), indent=2, ensure_ascii=False)
        except json.JSONDecodeError as e:
            return replace(state, builder=replace(builder, body_error=f"Invalid JSON: {e}")), []
        return replace(state, builder=replace(builder, body=pretty, body_error=None)), []

    body = edit_text(builder.body, key, event.character, multiline=True)
    if body is not None:
        return replace(state, builder=replace(builder, body=body, body_error=None)), []
    return state, []


def load_request(state: AppState, saved: SavedRequest) -> Result:
    requests = [
        r.model_copy(update={"last_used": utcnow()}) if r.id == saved.id else r
        for r in state.requests.requests
    ]
    builder = BuilderState(
        method=saved.method,
        url=saved.url,
        headers=tuple(saved.headers.items()),
        query_params=tuple(saved.query_params.items()),
        body=saved.body,
        loaded_id=saved.id,
    )
    state = replace(
        state,
        requests=state.requests.model_copy(update={"requests": requests}),
        builder=builder,
        screen=Screen.REQUEST_BUILDER,
    )
    return flash(state, f"Loaded '{saved.name}'"), [save_command(state, DocumentKind.REQUESTS)]


def export_requests(state: AppState) -> Result:
    if not state.requests.requests:
        return flash(state, "No saved requests to export", error=True), []
    return state, [ExportRequests(requests=tuple(state.requests.requests))]


def open_import_prompt(state: AppState) -> Result:
    return replace(state, prompt=Prompt(purpose="import_requests", label="Postman collection file")), []


def import_requests(state: AppState, path: str) -> Result:
    return replace(state, prompt=None), [ImportRequests(path=path)]


def handle_requests_exported(state: AppState, event: RequestsExported) -> Result:
    if event.error is not None:
        return flash(state, f"Export failed: {event.error}", error=True), []
    return flash(state, f"Exported {event.count} requests to {event.path}"), []


def handle_requests_imported(state: AppState, event: RequestsImported) -> Result:
    """Append imported requests to the saved list; they get fresh ids."""
    if event.error is not None:
        return flash(state, f"Import failed: {event.error}", error=True), []
    if not event.requests:
        return flash(state, f"No requests found in {event.path}", error=True), []

    requests = list(state.requests.requests) + list(event.requests)
    state = replace(state, requests=state.requests.model_copy(update={"requests": requests}))
    message = f"Imported {len(event.requests)} requests from {event.path}"
    if event.skipped:
        message += f" ({len(event.skipped)} skipped)"
    return flash(state, message), [save_command(state, DocumentKind.REQUESTS)]


def handle_request_list(state: AppState, event: KeyPress) -> Result:
    view = state.request_list
    if not view.searching and not view.confirming:
        if event.key == "x":
            return export_requests(state)
        if event.key == "i":
            return open_import_prompt(state)

    items = filter_items(state.requests.requests, state.request_list.search)
    view, action = browse_list(state.request_list, event.key, event.character, len(items))
    state = replace(state, request_list=view)
    current = selected(items, view)

    if action == "open" and current is not None:
        return load_request(state, current)

    if action == "delete" and current is not None:
        requests = [r for r in state.requests.requests if r.id != current.id]
        builder = state.builder
        if builder.loaded_id == current.id:
            builder = replace(builder, loaded_id=None)
        state = replace(
            state,
            requests=state.requests.model_copy(update={"requests": requests}),
            builder=builder,
            request_list=replace(view, cursor=clamp(view.cursor, len(items) - 1)),
        )
        return flash(state, f"Deleted '{current.name}'"), [save_command(state, DocumentKind.REQUESTS)]

    if action == "back":
        return replace(state, screen=Screen.REQUEST_BUILDER), []

    return state, []
