"""
Generic key/value list editor.

One state machine serves the header, query parameter and environment variable
screens. It owns its edit buffers until a commit, then upserts into its
ordered item list. Keys it does not recognize while browsing are handed back
to the caller as a Delegate outcome.

    BROWSING --a/n--> ADDING_NEW --enter--> BROWSING (item upserted)
    BROWSING --e/enter--> EDITING_EXISTING --escape--> BROWSING (discarded)
    BROWSING --d--> CONFIRMING_DELETE --y--> BROWSING (item removed)
"""

from dataclasses import dataclass, replace
from enum import Enum


Pairs = tuple[tuple[str, str], ...]


class ItemKind(Enum):
    HEADER = "header"
    QUERY_PARAM = "query parameter"
    ENV_VARIABLE = "variable"

    @property
    def label(self) -> str:
        return self.value


class EditorMode(Enum):
    BROWSING = "browsing"
    ADDING_NEW = "adding_new"
    EDITING_EXISTING = "editing_existing"
    CONFIRMING_DELETE = "confirming_delete"


class FieldFocus(Enum):
    KEY = "key"
    VALUE = "value"


class EditorOutcome(Enum):
    HANDLED = "handled"
    DELEGATE = "delegate"
    COMMITTED = "committed"


@dataclass(frozen=True)
class ListEditor:
    """
    State of one list editor.

    Attributes:
        kind: What the items are; used in messages
        items: Ordered (key, value) pairs with unique keys
        cursor: Index of the selected item while browsing
        mode: Current editor state
        key_buffer, value_buffer: Text being typed while adding or editing
        field: Which buffer receives typed characters
        editing_key: Key of the item being edited, None while adding
        error: Inline message for a rejected commit
    """
    kind: ItemKind
    items: Pairs = ()
    cursor: int = 0
    mode: EditorMode = EditorMode.BROWSING
    key_buffer: str = ""
    value_buffer: str = ""
    field: FieldFocus = FieldFocus.KEY
    editing_key: str | None = None
    error: str | None = None

    @property
    def selected(self) -> tuple[str, str] | None:
        if 0 <= self.cursor < len(self.items):
            return self.items[self.cursor]
        return None

    @property
    def is_editing(self) -> bool:
        return self.mode in (EditorMode.ADDING_NEW, EditorMode.EDITING_EXISTING)

    def as_dict(self) -> dict[str, str]:
        return dict(self.items)


def upsert(items: Pairs, key: str, value: str, replacing: str | None = None) -> tuple[Pairs, int]:
    """
    Insert or overwrite an item, keeping keys unique.

    An existing item with the same key is overwritten in place. When
    `replacing` names the item being edited, the new pair takes its position
    and the old key is dropped.

    Returns:
        Tuple of (new items, index of the written item)
    """
    result = list(items)
    existing = next((i for i, (k, _) in enumerate(result) if k == key), None)

    if replacing is not None and replacing != key:
        original = next((i for i, (k, _) in enumerate(result) if k == replacing), None)
        if original is not None:
            if existing is None:
                result[original] = (key, value)
                return tuple(result), original
            del result[original]
            if original < existing:
                existing -= 1

    if existing is not None:
        result[existing] = (key, value)
        return tuple(result), existing

    result.append((key, value))
    return tuple(result), len(result) - 1


def _clamp(cursor: int, items: Pairs) -> int:
    if not items:
        return 0
    return max(0, min(cursor, len(items) - 1))


def _browse(editor: ListEditor, key: str) -> tuple[ListEditor, EditorOutcome]:
    if key in ("up", "k"):
        return replace(editor, cursor=max(editor.cursor - 1, 0)), EditorOutcome.HANDLED

    if key in ("down", "j"):
        return replace(editor, cursor=_clamp(editor.cursor + 1, editor.items)), EditorOutcome.HANDLED

    if key in ("a", "n"):
        return replace(
            editor,
            mode=EditorMode.ADDING_NEW,
            key_buffer="",
            value_buffer="",
            field=FieldFocus.KEY,
            editing_key=None,
            error=None,
        ), EditorOutcome.HANDLED

    if key in ("e", "enter") and editor.selected is not None:
        item_key, item_value = editor.selected
        return replace(
            editor,
            mode=EditorMode.EDITING_EXISTING,
            key_buffer=item_key,
            value_buffer=item_value,
            field=FieldFocus.KEY,
            editing_key=item_key,
            error=None,
        ), EditorOutcome.HANDLED

    if key == "d" and editor.selected is not None:
        return replace(editor, mode=EditorMode.CONFIRMING_DELETE), EditorOutcome.HANDLED

    return editor, EditorOutcome.DELEGATE


def _confirm_delete(editor: ListEditor, key: str) -> tuple[ListEditor, EditorOutcome]:
    if key == "y":
        items = editor.items[:editor.cursor] + editor.items[editor.cursor + 1:]
        return replace(
            editor,
            items=items,
            cursor=_clamp(editor.cursor, items),
            mode=EditorMode.BROWSING,
        ), EditorOutcome.COMMITTED

    if key in ("n", "escape"):
        return replace(editor, mode=EditorMode.BROWSING), EditorOutcome.HANDLED

    return editor, EditorOutcome.HANDLED


def _commit(editor: ListEditor) -> tuple[ListEditor, EditorOutcome]:
    key = editor.key_buffer.strip()
    if not key:
        return replace(editor, error=f"The {editor.kind.label} name cannot be empty"), EditorOutcome.HANDLED

    items, index = upsert(editor.items, key, editor.value_buffer, replacing=editor.editing_key)
    return replace(
        editor,
        items=items,
        cursor=index,
        mode=EditorMode.BROWSING,
        key_buffer="",
        value_buffer="",
        field=FieldFocus.KEY,
        editing_key=None,
        error=None,
    ), EditorOutcome.COMMITTED


def _edit(editor: ListEditor, key: str, character: str | None) -> tuple[ListEditor, EditorOutcome]:
    if key == "escape":
        return replace(
            editor,
            mode=EditorMode.BROWSING,
            key_buffer="",
            value_buffer="",
            editing_key=None,
            error=None,
        ), EditorOutcome.HANDLED

    if key in ("tab", "shift+tab"):
        field = FieldFocus.VALUE if editor.field is FieldFocus.KEY else FieldFocus.KEY
        return replace(editor, field=field), EditorOutcome.HANDLED

    if key == "enter":
        return _commit(editor)

    buffer_name = "key_buffer" if editor.field is FieldFocus.KEY else "value_buffer"
    buffer = getattr(editor, buffer_name)

    if key == "backspace":
        return replace(editor, **{buffer_name: buffer[:-1]}), EditorOutcome.HANDLED

    if character and character.isprintable():
        return replace(editor, **{buffer_name: buffer + character}, error=None), EditorOutcome.HANDLED

    return editor, EditorOutcome.HANDLED


def handle_key(editor: ListEditor, key: str, character: str | None = None) -> tuple[ListEditor, EditorOutcome]:
    """
    Apply one key press to an editor.

    Args:
        editor: Current editor state
        key: Normalized key name ("up", "enter", "ctrl+s", "a", ...)
        character: Printable character produced by the key, if any

    Returns:
        Tuple of (new editor state, outcome). COMMITTED means `items` changed
        and the owner should take the new list; DELEGATE means the key was not
        used and the owner should handle it.
    """
    if editor.mode is EditorMode.BROWSING:
        return _browse(editor, key)
    if editor.mode is EditorMode.CONFIRMING_DELETE:
        return _confirm_delete(editor, key)
    return _edit(editor, key, character)
