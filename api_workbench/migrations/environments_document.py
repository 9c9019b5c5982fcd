"""
Migration: Upgrade environments.json to the current document shape.

Version 0.1.0 could hold null variable lists.
"""

from typing import Any


def upgrade_from_0_1_0(data: dict[str, Any]) -> dict[str, Any]:
    environments = []
    for env in data.get("environments") or []:
        env = dict(env)
        env["variables"] = env.get("variables") or []
        environments.append(env)

    return {
        **data,
        "version": "0.4.0",
        "environments": environments,
        "active_environment": data.get("active_environment") or "",
    }


def normalize(data: dict[str, Any]) -> dict[str, Any]:
    """
    Replace null collections and clear an active name that points nowhere.

    A hand-edited file can reference an environment that no longer exists;
    the active name is cleared rather than failing the whole load.
    """
    environments = data.get("environments") or []
    active = data.get("active_environment") or ""
    names = {env.get("name") for env in environments if isinstance(env, dict)}
    if active and active not in names:
        active = ""

    return {**data, "environments": environments, "active_environment": active}


STEPS = {
    "0.1.0": upgrade_from_0_1_0,
}
