"""
Comparison of two recorded responses.

JSON bodies are compared structurally and every change is reported with its
path; any other body is compared line by line.
"""

import json
from typing import Any

from ..schemas.diff import BodyDiff, Change, ResponseDiff, TimeDiff, ValueDiff
from ..schemas.history import RequestExecution


_MISSING = object()


def format_json_value(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return json.dumps(value, ensure_ascii=False)


def _child_path(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def json_differences(old: Any, new: Any, path: str = "") -> list[Change]:
    """
    List the differences between two decoded JSON values.

    Objects are compared key by key (keys of `old` first, in their order) and
    arrays index by index; any other pair of values is either equal or one
    modification at `path`.
    """
    if old is None and new is None:
        return []
    if old is None:
        return [Change(type="added", path=path, old_value="null", new_value=format_json_value(new))]
    if new is None:
        return [Change(type="removed", path=path, old_value=format_json_value(old), new_value="null")]

    changes: list[Change] = []

    if isinstance(old, dict) and isinstance(new, dict):
        keys = list(old) + [k for k in new if k not in old]
        for key in keys:
            child = _child_path(path, key)
            old_value = old.get(key, _MISSING)
            new_value = new.get(key, _MISSING)
            if old_value is _MISSING:
                changes.append(Change(type="added", path=child, new_value=format_json_value(new_value)))
            elif new_value is _MISSING:
                changes.append(Change(type="removed", path=child, old_value=format_json_value(old_value)))
            else:
                changes.extend(json_differences(old_value, new_value, child))
        return changes

    if isinstance(old, list) and isinstance(new, list):
        for i in range(max(len(old), len(new))):
            child = f"{path}[{i}]"
            if i >= len(old):
                changes.append(Change(type="added", path=child, new_value=format_json_value(new[i])))
            elif i >= len(new):
                changes.append(Change(type="removed", path=child, old_value=format_json_value(old[i])))
            else:
                changes.extend(json_differences(old[i], new[i], child))
        return changes

    old_text, new_text = format_json_value(old), format_json_value(new)
    if old_text != new_text:
        changes.append(Change(type="modified", path=path, old_value=old_text, new_value=new_text))
    return changes


def text_differences(old: str, new: str) -> list[Change]:
    old_lines = old.split("\n")
    new_lines = new.split("\n")
    changes = []
    for i in range(max(len(old_lines), len(new_lines))):
        path = f"line {i + 1}"
        if i >= len(old_lines):
            changes.append(Change(type="added", path=path, new_value=new_lines[i]))
        elif i >= len(new_lines):
            changes.append(Change(type="removed", path=path, old_value=old_lines[i]))
        elif old_lines[i] != new_lines[i]:
            changes.append(Change(type="modified", path=path, old_value=old_lines[i], new_value=new_lines[i]))
    return changes


def _decode(body: str) -> tuple[bool, Any]:
    try:
        return True, json.loads(body)
    except ValueError:
        return False, None


def compare_bodies(old: str, new: str) -> BodyDiff:
    old_ok, old_json = _decode(old)
    new_ok, new_json = _decode(new)

    if old_ok and new_ok:
        changes = json_differences(old_json, new_json)
        counts = {kind: sum(1 for c in changes if c.type == kind) for kind in ("modified", "added", "removed")}
        summary = f"{counts['modified']} modified, {counts['added']} added, {counts['removed']} removed"
        return BodyDiff(type="json", changes=changes, summary=summary)

    changes = text_differences(old, new)
    return BodyDiff(type="text", changes=changes, summary=f"{len(changes)} lines changed")


def compare_executions(old: RequestExecution, new: RequestExecution) -> ResponseDiff:
    """
    Compare the responses recorded by two history entries.

    Args:
        old: The entry treated as the baseline
        new: The entry compared against it

    Returns:
        ResponseDiff with the status, body and timing differences
    """
    status = None
    if old.status_code != new.status_code:
        status = ValueDiff(old=str(old.status_code), new=str(new.status_code))

    timing = None
    if old.response_time_ms != new.response_time_ms:
        diff_ms = new.response_time_ms - old.response_time_ms
        percent = diff_ms / old.response_time_ms * 100 if old.response_time_ms > 0 else 0.0
        timing = TimeDiff(
            old_ms=old.response_time_ms, new_ms=new.response_time_ms, diff_ms=diff_ms, diff_percent=percent
        )

    return ResponseDiff(
        status_code=status,
        body=compare_bodies(old.response_body, new.response_body),
        response_time=timing,
    )


def format_diff(diff: ResponseDiff) -> str:
    """Render a diff as plain text, one change per line."""
    lines = ["Response Comparison", "===================", ""]

    if not diff.has_differences:
        lines.append("No differences.")
        return "\n".join(lines)

    if diff.status_code is not None:
        lines += [f"Status Code: {diff.status_code.old} -> {diff.status_code.new}", ""]

    if diff.response_time is not None:
        t = diff.response_time
        lines += [f"Response Time: {t.old_ms}ms -> {t.new_ms}ms ({t.diff_ms:+d}ms, {t.diff_percent:+.1f}%)", ""]

    if diff.body.changes:
        lines += [f"Body Changes ({diff.body.summary}):", ""]
        for change in diff.body.changes:
            if change.type == "added":
                lines.append(f"  + {change.path}: {change.new_value}")
            elif change.type == "removed":
                lines.append(f"  - {change.path}: {change.old_value}")
            else:
                lines.append(f"  ~ {change.path}: {change.old_value} -> {change.new_value}")

    return "\n".join(lines).rstrip("\n")
