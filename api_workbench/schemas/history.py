"""
Pydantic schemas for request and query execution history.

Execution records are immutable snapshots appended on every attempt,
successful or not.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from ._common import new_id, utcnow
from .request import RequestBase


class RequestExecution(RequestBase):
    """
    Snapshot of one HTTP send attempt.

    Attributes:
        id: Unique identifier for the history entry
        timestamp: When the request was sent
        method, url, headers, body, query_params: The request as edited, before
            environment substitution
        status_code: HTTP status code, 0 when no response was received
        status_text: HTTP reason phrase
        response_body: Body received in the response
        response_time_ms: Wall-clock duration of the call
        response_size: Response body size in bytes
        error: Error description when the request failed
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    timestamp: datetime = Field(default_factory=utcnow)
    status_code: int = 0
    status_text: str = ""
    response_body: str = ""
    response_time_ms: int = 0
    response_size: int = 0
    error: str | None = None

    @property
    def search_fields(self) -> tuple[str, ...]:
        return (self.method, self.url)


class QueryExecution(BaseModel):
    """
    Snapshot of one SQL execution attempt.

    Attributes:
        query: The SQL text that was executed
        rows_affected: Rows changed by a mutating statement
        row_count: Rows returned by a read-only statement
        execution_time_ms: Wall-clock duration of the call
        error: Error description when the query failed
        connection_info: Connection description (never includes the password)
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    timestamp: datetime = Field(default_factory=utcnow)
    query: str
    rows_affected: int = 0
    row_count: int = 0
    execution_time_ms: int = 0
    error: str | None = None
    connection_info: str = ""

    @property
    def search_fields(self) -> tuple[str, ...]:
        return (self.query,)
