"""
Migration: Upgrade database.json to the current document shape.

Version 0.1.0 could hold null lists and predates the row_count field on
query history entries.
"""

from typing import Any


def upgrade_from_0_1_0(data: dict[str, Any]) -> dict[str, Any]:
    history = []
    for entry in data.get("query_history") or []:
        entry = dict(entry)
        entry.setdefault("row_count", 0)
        entry["connection_info"] = entry.get("connection_info") or ""
        history.append(entry)

    return {
        **data,
        "version": "0.4.0",
        "saved_queries": data.get("saved_queries") or [],
        "query_history": history,
        "saved_connections": data.get("saved_connections") or [],
    }


def normalize(data: dict[str, Any]) -> dict[str, Any]:
    """Replace null collections with empty ones."""
    return {
        **data,
        "saved_queries": data.get("saved_queries") or [],
        "query_history": data.get("query_history") or [],
        "saved_connections": data.get("saved_connections") or [],
    }


STEPS = {
    "0.1.0": upgrade_from_0_1_0,
}
