"""
History service for recording request and query executions.

Histories are bounded, newest-first lists of immutable execution records.
The controller records every send/execute attempt here, successful or not,
and persists the owning document afterwards.
"""

from datetime import datetime
from typing import Protocol, TypeVar

from ..schemas.execute import ExecuteErrorResponse, ExecuteResponse, QueryErrorResponse, QueryResult
from ..schemas.history import QueryExecution, RequestExecution
from ..schemas.request import RequestBase


# Maximum number of entries kept in each history
DEFAULT_HISTORY_LIMIT = 100


class _Timestamped(Protocol):
    timestamp: datetime


EntryT = TypeVar("EntryT", bound=_Timestamped)


def append_execution(history: list[EntryT], entry: EntryT, limit: int = DEFAULT_HISTORY_LIMIT) -> list[EntryT]:
    """
    Add an execution record to a history.

    The new entry goes first; the result is ordered newest-first and the oldest
    entries (lowest timestamp) are evicted once the limit is exceeded. Entries
    with equal timestamps keep their relative order, so the most recently
    appended one stays in front.

    Args:
        history: Existing history, newest-first
        entry: The record to add
        limit: Maximum number of entries to keep

    Returns:
        A new list; the input list is not modified
    """
    entries = [entry, *history]
    entries.sort(key=lambda item: item.timestamp, reverse=True)
    return entries[:max(limit, 0)]


def record_request_execution(
    request: RequestBase,
    response: ExecuteResponse | ExecuteErrorResponse | None = None,
    error: str | None = None,
) -> RequestExecution:
    """
    Build the history record for one HTTP send attempt.

    Args:
        request: The request as edited, before environment substitution
        response: The gateway result, None when the request never left
        error: Error description overriding the one in an error response

    Returns:
        The immutable execution record
    """
    fields = request.model_dump(include={"method", "url", "headers", "body", "query_params"})

    if isinstance(response, ExecuteResponse):
        return RequestExecution(
            **fields,
            status_code=response.status_code,
            status_text=response.status_text,
            response_body=response.body,
            response_time_ms=response.response_time_ms,
            response_size=response.response_size,
            error=error,
        )

    if isinstance(response, ExecuteErrorResponse):
        return RequestExecution(
            **fields,
            response_time_ms=response.response_time_ms,
            error=error or response.message,
        )

    return RequestExecution(**fields, error=error)


def record_query_execution(
    query: str,
    result: QueryResult | QueryErrorResponse,
    connection_info: str,
) -> QueryExecution:
    """Build the history record for one SQL execution attempt."""
    if isinstance(result, QueryErrorResponse):
        return QueryExecution(
            query=query,
            execution_time_ms=result.execution_time_ms,
            error=result.message,
            connection_info=connection_info,
        )

    return QueryExecution(
        query=query,
        rows_affected=result.rows_affected,
        row_count=len(result.rows),
        execution_time_ms=result.execution_time_ms,
        connection_info=connection_info,
    )
