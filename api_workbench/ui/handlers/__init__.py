# Screen handlers package

from . import database, environments, history, requests, responses

__all__ = ["database", "environments", "history", "requests", "responses"]
