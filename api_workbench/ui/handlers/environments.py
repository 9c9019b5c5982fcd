"""
Environment list and environment editor screens.

Every change to the environments document goes through EnvironmentConfig,
which rejects anything that would break its invariants.
"""

from dataclasses import replace

from ...exceptions import ValidationError
from ...schemas.documents import DocumentKind
from ...schemas.environment import Variable
from ..editors import EditorMode, EditorOutcome, ItemKind, ListEditor, handle_key
from ..events import KeyPress
from ..state import AppState, EnvironmentEditorState, Screen
from .common import Result, clamp, edit_text, flash, move_cursor, navigate, save_command


def open_editor(state: AppState, name: str | None) -> AppState:
    if name is None:
        editor_state = EnvironmentEditorState(
            original_name=None,
            name="",
            editor=ListEditor(kind=ItemKind.ENV_VARIABLE),
            name_focused=True,
        )
    else:
        env = state.environments.get(name)
        pairs = env.as_pairs() if env else []
        editor_state = EnvironmentEditorState(
            original_name=name,
            name=name,
            editor=ListEditor(kind=ItemKind.ENV_VARIABLE, items=tuple(pairs)),
        )
    return replace(state, env_editor=editor_state, screen=Screen.ENVIRONMENT_EDITOR)


def handle_environments(state: AppState, event: KeyPress) -> Result:
    key = event.key
    environments = state.environments.environments
    view = state.env_list
    current = environments[view.cursor] if 0 <= view.cursor < len(environments) else None

    if view.confirming:
        state = replace(state, env_list=replace(view, confirming=None))
        if key != "y" or current is None:
            return state, []
        try:
            config = state.environments.delete_environment(current.name)
        except ValidationError as e:
            return flash(state, e.detail, error=True), []
        state = replace(
            state,
            environments=config,
            env_list=replace(state.env_list, cursor=clamp(view.cursor, len(config.environments))),
        )
        return flash(state, f"Deleted environment '{current.name}'"), [
            save_command(state, DocumentKind.ENVIRONMENTS)
        ]

    cursor = move_cursor(view.cursor, key, len(environments))
    if cursor is not None:
        return replace(state, env_list=replace(view, cursor=cursor)), []

    if key == "n":
        return open_editor(state, None), []

    if key in ("enter", "e") and current is not None:
        return open_editor(state, current.name), []

    if key == "d" and current is not None:
        return replace(state, env_list=replace(view, confirming="delete")), []

    if key in ("s", " ") and current is not None:
        active = "" if state.environments.active_environment == current.name else current.name
        state = replace(state, environments=state.environments.set_active(active))
        message = f"Active environment: {active}" if active else "No active environment"
        return flash(state, message), [save_command(state, DocumentKind.ENVIRONMENTS)]

    if key == "escape":
        return replace(state, screen=state.env_return), []

    if key == "?":
        return navigate(state, Screen.HELP), []

    return state, []


def commit_editor(state: AppState) -> Result:
    editor_state = state.env_editor
    variables = [Variable(key=k, value=v) for k, v in editor_state.editor.items]

    try:
        config = state.environments.save_environment(editor_state.original_name, editor_state.name, variables)
    except ValidationError as e:
        return replace(state, env_editor=replace(editor_state, error=e.detail)), []

    state = replace(state, environments=config, env_editor=None, screen=Screen.ENVIRONMENTS)
    return flash(state, f"Saved environment '{editor_state.name.strip()}'"), [
        save_command(state, DocumentKind.ENVIRONMENTS)
    ]


def handle_environment_editor(state: AppState, event: KeyPress) -> Result:
    """
    Edit the name and variables of one environment.

    ctrl+s commits the whole environment. Escape while browsing discards the
    changes; escape inside the variable form only cancels that form.
    """
    editor_state = state.env_editor
    if editor_state is None:
        return replace(state, screen=Screen.ENVIRONMENTS), []

    key = event.key
    editor = editor_state.editor

    if key == "ctrl+s":
        return commit_editor(state)

    if key == "escape" and editor.mode is EditorMode.BROWSING:
        state = replace(state, env_editor=None, screen=Screen.ENVIRONMENTS)
        if editor_state.dirty:
            return flash(state, "Changes discarded"), []
        return state, []

    if key == "tab" and not editor.is_editing:
        return replace(state, env_editor=replace(editor_state, name_focused=not editor_state.name_focused)), []

    if editor_state.name_focused:
        if key == "enter":
            return replace(state, env_editor=replace(editor_state, name_focused=False)), []
        name = edit_text(editor_state.name, key, event.character)
        if name is not None:
            return replace(state, env_editor=replace(editor_state, name=name, dirty=True, error=None)), []
        return state, []

    editor, outcome = handle_key(editor, key, event.character)
    editor_state = replace(editor_state, editor=editor)
    if outcome is EditorOutcome.COMMITTED:
        editor_state = replace(editor_state, dirty=True, error=None)
    return replace(state, env_editor=editor_state), []
