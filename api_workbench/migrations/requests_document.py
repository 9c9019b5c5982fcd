"""
Migration: Upgrade requests.json to the current document shape.

Version 0.1.0 stored saved requests without query parameters and kept no
execution history. Null headers were written for requests saved without any.
"""

from typing import Any


def upgrade_from_0_1_0(data: dict[str, Any]) -> dict[str, Any]:
    """Add query_params to every saved request and an empty history."""
    requests = []
    for request in data.get("requests") or []:
        request = dict(request)
        request["headers"] = request.get("headers") or {}
        request["query_params"] = request.get("query_params") or {}
        request["body"] = request.get("body") or ""
        requests.append(request)

    return {
        **data,
        "version": "0.4.0",
        "requests": requests,
        "history": data.get("history") or [],
    }


def normalize(data: dict[str, Any]) -> dict[str, Any]:
    """Replace null collections with empty ones."""
    return {
        **data,
        "requests": data.get("requests") or [],
        "history": data.get("history") or [],
    }


STEPS = {
    "0.1.0": upgrade_from_0_1_0,
}
