"""
SQL execution service for running queries against the open database session.

Read-only statements return their rows as display strings; every other
statement is committed and reports the number of affected rows. Failures are
returned as QueryErrorResponse values, never raised, except for an empty
query which is rejected before the connection is touched.
"""

import logging
import re
import time
from datetime import date, datetime, time as dt_time
from typing import Any

from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError

from ..database import SqlSession, is_connection_lost
from ..exceptions import DatabaseError, ValidationError
from ..schemas.database import ColumnInfo
from ..schemas.execute import QueryErrorResponse, QueryResult


logger = logging.getLogger(__name__)

# Rows kept in memory for one result
MAX_ROWS = 10000

NULL_DISPLAY = "NULL"

READ_ONLY_KEYWORDS = ("SELECT", "SHOW", "EXPLAIN", "DESCRIBE", "DESC", "WITH")

_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_FIRST_WORD = re.compile(r"^\s*\(*\s*([A-Za-z]+)")


def remove_comments(query: str) -> str:
    """
    Strip /* block */ and -- line comments from a query.

    Comment markers inside string literals are not recognized.
    """
    result = _BLOCK_COMMENT.sub(" ", query)
    lines = []
    for line in result.split("\n"):
        index = line.find("--")
        if index != -1:
            line = line[:index]
        if line.strip():
            lines.append(line.rstrip())
    return "\n".join(lines).strip()


def is_read_only_query(query: str) -> bool:
    """Check whether a query starts with a row-returning keyword once comments are removed."""
    match = _FIRST_WORD.match(remove_comments(query))
    if match is None:
        return False
    return match.group(1).upper() in READ_ONLY_KEYWORDS


def format_value(value: Any) -> str:
    """Render a database value for display."""
    if value is None:
        return NULL_DISPLAY
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, (date, dt_time)):
        return value.isoformat()
    if isinstance(value, float):
        return format(value, "g")
    return str(value)


def _elapsed_ms(start_time: float) -> int:
    return int((time.perf_counter() - start_time) * 1000)


def _rollback_quietly(session: SqlSession) -> None:
    try:
        session.connection.rollback()
    except (SQLAlchemyError, DatabaseError) as e:
        logger.debug("Rollback failed on %s: %s", session.description, e)


def execute_query(
    session: SqlSession,
    query: str,
    max_rows: int = MAX_ROWS,
) -> QueryResult | QueryErrorResponse:
    """
    Execute a SQL statement.

    Args:
        session: The open database session
        query: SQL text as typed by the user
        max_rows: Row limit for read-only statements; extra rows are dropped
            and the result is flagged as truncated

    Returns:
        QueryResult on success, QueryErrorResponse on failure

    Raises:
        ValidationError: if the query is empty or whitespace only
    """
    query = query.strip() if query else ""
    if not query:
        raise ValidationError("Query cannot be empty", field="query")

    with session.lock:
        return _execute(session, query, max_rows)


def _execute(session: SqlSession, query: str, max_rows: int) -> QueryResult | QueryErrorResponse:
    read_only = is_read_only_query(query)
    start_time = time.perf_counter()

    try:
        connection = session.connection
        result = connection.execute(text(query))

        if read_only and result.returns_rows:
            columns = list(result.keys())
            fetched = result.fetchmany(max_rows + 1)
            truncated = len(fetched) > max_rows
            rows = [[format_value(value) for value in row] for row in fetched[:max_rows]]
            result.close()
            connection.rollback()
            query_result = QueryResult(
                returns_rows=True,
                columns=columns,
                rows=rows,
                execution_time_ms=_elapsed_ms(start_time),
                truncated=truncated,
            )
        else:
            rows_affected = max(result.rowcount, 0)
            result.close()
            connection.commit()
            query_result = QueryResult(
                returns_rows=False,
                rows_affected=rows_affected,
                execution_time_ms=_elapsed_ms(start_time),
            )

    except (SQLAlchemyError, DatabaseError) as e:
        lost = is_connection_lost(e, session)
        if not lost:
            _rollback_quietly(session)
        logger.error("Query failed on %s: %s", session.description, e)
        detail = str(getattr(e, "orig", None) or e).strip()
        return QueryErrorResponse(
            error="Connection to database lost" if lost else "Query failed",
            details=detail,
            execution_time_ms=_elapsed_ms(start_time),
            connection_lost=lost,
        )

    logger.info(
        "Query on %s finished in %dms (%s)",
        session.description,
        query_result.execution_time_ms,
        f"{len(query_result.rows)} rows" if query_result.returns_rows
        else f"{query_result.rows_affected} affected",
    )
    return query_result


def list_tables(session: SqlSession) -> list[str]:
    """
    List the tables of the connected database in alphabetical order.

    Raises:
        DatabaseError: if introspection fails; connection_lost is set when
            the connection dropped
    """
    try:
        with session.lock:
            names = inspect(session.connection).get_table_names()
            session.connection.rollback()
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to list tables", e, connection_lost=is_connection_lost(e, session))
    return sorted(names)


def list_columns(session: SqlSession, table: str) -> list[ColumnInfo]:
    """
    List the columns of a table in alphabetical order.

    Raises:
        DatabaseError: if introspection fails
    """
    try:
        with session.lock:
            columns = inspect(session.connection).get_columns(table)
            session.connection.rollback()
    except SQLAlchemyError as e:
        raise DatabaseError(
            f"Failed to describe table {table}", e, connection_lost=is_connection_lost(e, session)
        )

    infos = [
        ColumnInfo(name=col["name"], type=str(col["type"]), nullable=bool(col.get("nullable", True)))
        for col in columns
    ]
    return sorted(infos, key=lambda info: info.name)
