"""
Textual host for the workbench.

The app is a thin shell: it forwards key presses and a once-a-second tick to
the dispatcher and redraws a single view from each new state.
"""

import logging
import time

from textual import events
from textual.app import App, ComposeResult
from textual.widgets import Static

from .dispatcher import CommandRunner, Dispatcher
from .events import KeyPress, Tick
from .render import render
from .state import AppState


logger = logging.getLogger(__name__)

TICK_SECONDS = 1.0


def normalize_key(key: str, character: str | None) -> str:
    """
    Name a key the way the controller expects.

    Printable keys are named by their character ("?" instead of
    "question_mark"); everything else keeps textual's name ("enter", "ctrl+s").
    """
    if character and len(character) == 1 and character.isprintable():
        return character
    return key


class WorkbenchView(Static, can_focus=True):
    """The focused view; it takes every key before textual's own bindings do."""

    def on_key(self, event: events.Key) -> None:
        event.prevent_default()
        event.stop()
        self.app.handle_key(event)


class WorkbenchApp(App):
    """API Workbench terminal application."""

    TITLE = "API Workbench"
    ENABLE_COMMAND_PALETTE = False
    CSS = """
    WorkbenchView {
        padding: 1 2;
        height: 1fr;
    }
    """

    def __init__(self, state: AppState, runner: CommandRunner):
        super().__init__()
        self.dispatcher = Dispatcher(state, runner, on_state=self.show_state)

    def compose(self) -> ComposeResult:
        yield WorkbenchView(render(self.dispatcher.state), markup=False, id="view")

    def on_mount(self) -> None:
        self.query_one(WorkbenchView).focus()
        self.run_worker(self.run_dispatcher(), exclusive=True)
        self.set_interval(TICK_SECONDS, self.tick)

    async def run_dispatcher(self) -> None:
        await self.dispatcher.run()
        self.exit()

    def handle_key(self, event: events.Key) -> None:
        key = normalize_key(event.key, event.character)
        self.dispatcher.post(KeyPress(key=key, character=event.character, at=time.monotonic()))

    def tick(self) -> None:
        self.dispatcher.post(Tick(at=time.monotonic()))

    def show_state(self, state: AppState) -> None:
        self.query_one(WorkbenchView).update(render(state))

    def on_unmount(self) -> None:
        session = self.dispatcher.state.db.session
        if session is not None:
            logger.info("Closing database session on exit")
            session.close()
