# Terminal interface package

from .controller import handle
from .dispatcher import CommandRunner, Dispatcher
from .state import AppState, Screen

__all__ = [
    "handle",
    "CommandRunner",
    "Dispatcher",
    "AppState",
    "Screen",
]
