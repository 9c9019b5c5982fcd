"""
Export helpers: requests as curl commands, query results as files.
"""

import csv
import itertools
import json
import logging
import os
import re
from datetime import datetime
from pathlib import Path

from ..exceptions import StorageError, ValidationError
from ..schemas.execute import EXPORT_FORMATS, ExportFormat, ExportResult, QueryResult


logger = logging.getLogger(__name__)

EXPORT_FILE_MODE = 0o600
EXPORT_DIR_MODE = 0o700

DEFAULT_TABLE_NAME = "exported_table"

_NUMERIC = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


def shell_quote(value: str) -> str:
    """Wrap a value in single quotes for a POSIX shell."""
    return "'" + value.replace("'", "'\\''") + "'"


def to_curl(method: str, url: str, headers: dict[str, str] | None = None, body: str = "") -> str:
    """
    Render a request as a curl command with one flag per line.

    Example:
        >>> print(to_curl("POST", "http://a/b", {"X-Id": "1"}, "{}"))
        curl 'http://a/b' \\
          -X POST \\
          -H 'X-Id: 1' \\
          -d '{}'
    """
    parts = ["curl " + shell_quote(url), f"-X {method}"]
    for key, value in (headers or {}).items():
        parts.append("-H " + shell_quote(f"{key}: {value}"))
    if body:
        parts.append("-d " + shell_quote(body))
    return " \\\n  ".join(parts)


def quote_identifier(name: str) -> str:
    """Quote a table or column name for PostgreSQL."""
    return '"' + name.replace('"', '""') + '"'


def sql_literal(value: str) -> str:
    if value == "" or value.upper() == "NULL":
        return "NULL"
    if _NUMERIC.match(value):
        return value
    escaped = value.replace("\\", "\\\\").replace("'", "''")
    return f"'{escaped}'"


def _write_csv(path: Path, result: QueryResult, table: str) -> None:
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(result.columns)
        writer.writerows(result.rows)


def _write_json(path: Path, result: QueryResult, table: str) -> None:
    records = [
        {column: row[i] for i, column in enumerate(result.columns) if i < len(row)}
        for row in result.rows
    ]
    path.write_text(json.dumps(records, indent=2, ensure_ascii=False), encoding="utf-8")


def _write_sql(path: Path, result: QueryResult, table: str) -> None:
    table_name = quote_identifier(table or DEFAULT_TABLE_NAME)
    column_list = ", ".join(quote_identifier(col) for col in result.columns)

    lines = [
        f"-- SQL Export generated at {datetime.now():%Y-%m-%d %H:%M:%S}",
        f"-- Total rows: {len(result.rows)}",
        "",
    ]
    for row in result.rows:
        values = ", ".join(sql_literal(value) for value in row)
        lines.append(f"INSERT INTO {table_name} ({column_list}) VALUES ({values});")

    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def reserve_path(directory: Path, stem: str, extension: str) -> Path:
    """Create an empty export file whose name is not taken yet."""
    for counter in itertools.count(1):
        suffix = f"_{counter}" if counter > 1 else ""
        path = directory / f"{stem}{suffix}.{extension}"
        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, EXPORT_FILE_MODE)
        except FileExistsError:
            continue
        os.close(fd)
        return path


_WRITERS = {
    "csv": _write_csv,
    "json": _write_json,
    "sql": _write_sql,
}


def export_query_result(
    result: QueryResult,
    format: ExportFormat,
    directory: Path,
    table: str = "",
    now: datetime | None = None,
) -> ExportResult:
    """
    Write a query result to a timestamped file.

    Args:
        result: A row-returning query result
        format: One of csv, json, sql
        directory: Export directory, created if missing
        table: Table name used in SQL INSERT statements
        now: Timestamp used in the file name (defaults to the current time)

    Returns:
        ExportResult describing the written file

    Raises:
        ValidationError: if there is nothing to export or the format is unknown
        StorageError: if the file cannot be written
    """
    if not result.columns:
        raise ValidationError("No data to export")
    if format not in EXPORT_FORMATS:
        raise ValidationError(f"Unsupported export format: {format}", field="format")

    stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    path = Path(directory) / f"export_{stamp}.{format}"

    try:
        Path(directory).mkdir(mode=EXPORT_DIR_MODE, parents=True, exist_ok=True)
        path = reserve_path(Path(directory), f"export_{stamp}", format)
        _WRITERS[format](path, result, table)
        os.chmod(path, EXPORT_FILE_MODE)
    except OSError as e:
        logger.error("Export to %s failed: %s", path, e)
        raise StorageError(f"Failed to write {path.name}", e)

    logger.info("Exported %d rows to %s", len(result.rows), path)
    return ExportResult(file_path=str(path), format=format, row_count=len(result.rows))
