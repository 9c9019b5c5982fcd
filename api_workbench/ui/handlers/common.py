"""
Helpers shared by the screen handlers.
"""

from dataclasses import replace
from typing import Sequence

from ...schemas.documents import DocumentKind
from ..commands import Command, SaveDocument
from ..state import AppState, Flash, ListView, Screen


Result = tuple[AppState, list[Command]]

# Keys that move a list cursor
UP_KEYS = ("up", "k")
DOWN_KEYS = ("down", "j")


def flash(state: AppState, text: str, error: bool = False) -> AppState:
    """Show a transient message that expires after the configured duration."""
    return replace(state, flash=Flash(text=text, expires_at=state.now + state.flash_seconds, error=error))


def busy(state: AppState, what: str) -> Result:
    return flash(state, f"Busy: {what} already in progress", error=True), []


def navigate(state: AppState, screen: Screen) -> AppState:
    """Switch screens, remembering where we came from."""
    return replace(state, screen=screen, previous_screen=state.screen)


def allocate_token(state: AppState) -> tuple[AppState, int]:
    token = state.next_token
    return replace(state, next_token=token + 1), token


def save_command(state: AppState, kind: DocumentKind) -> SaveDocument:
    documents = {
        DocumentKind.REQUESTS: state.requests,
        DocumentKind.DATABASE: state.database_doc,
        DocumentKind.ENVIRONMENTS: state.environments,
    }
    return SaveDocument(kind=kind, document=documents[kind])


def edit_text(text: str, key: str, character: str | None, multiline: bool = False) -> str | None:
    """
    Apply a typing key to a text buffer.

    Returns:
        The new text, or None if the key is not a typing key
    """
    if key == "backspace":
        return text[:-1]
    if multiline and key == "enter":
        return text + "\n"
    if multiline and key == "tab":
        return text + "  "
    if character and len(character) == 1 and character.isprintable():
        return text + character
    return None


def move_cursor(cursor: int, key: str, count: int) -> int | None:
    """Move a list cursor without wrapping; None if the key is not a movement key."""
    if key in UP_KEYS:
        return max(cursor - 1, 0)
    if key in DOWN_KEYS:
        return max(min(cursor + 1, count - 1), 0)
    return None


def clamp(cursor: int, count: int) -> int:
    return max(min(cursor, count - 1), 0)


def browse_list(
    view: ListView,
    key: str,
    character: str | None,
    count: int,
    confirm_delete: bool = True,
    can_clear: bool = False,
) -> tuple[ListView, str | None]:
    """
    Shared key handling of the list screens.

    Returns:
        Tuple of (new view, action). The action is one of "open", "delete",
        "clear", "back" or None when the key was absorbed.
    """
    if view.searching:
        if key == "escape":
            return replace(view, searching=False, search="", cursor=0), None
        if key == "enter":
            return replace(view, searching=False), None
        text = edit_text(view.search, key, character)
        if text is not None:
            return replace(view, search=text, cursor=0), None
        return view, None

    if view.confirming:
        action = view.confirming if key == "y" else None
        return replace(view, confirming=None), action

    cursor = move_cursor(view.cursor, key, count)
    if cursor is not None:
        return replace(view, cursor=cursor), None

    if key == "/":
        return replace(view, searching=True), None

    if key == "enter" and count:
        return view, "open"

    if key == "d" and count:
        if confirm_delete:
            return replace(view, confirming="delete"), None
        return view, "delete"

    if key == "c" and can_clear and count:
        return replace(view, confirming="clear"), None

    if key == "escape":
        if view.search:
            return replace(view, search="", cursor=0), None
        return view, "back"

    return view, None


def selected(items: Sequence, view: ListView):
    if 0 <= view.cursor < len(items):
        return items[view.cursor]
    return None
