"""
Pydantic schemas for request and query execution.

Defines what the execution gateway accepts and the tagged success/error
results it hands back to the controller.
"""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from .request import HttpMethod


class StatusBand(str, Enum):
    """Display band of an HTTP status code."""
    INFORMATIONAL = "informational"
    SUCCESS = "success"
    REDIRECT = "redirect"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"


class ExecuteRequest(BaseModel):
    """A fully resolved request ready to be sent."""
    method: HttpMethod
    url: str
    headers: dict[str, str] = Field(default_factory=dict)
    body: str = ""


class ExecuteResponse(BaseModel):
    """
    Schema for a received HTTP response.

    Contains status, headers, body, timing information, and any warnings from
    variable substitution.
    """
    status_code: int
    status_text: str
    headers: dict[str, str]
    body: str
    body_json: Any | None = None
    response_time_ms: int
    response_size: int
    status_band: StatusBand
    warnings: list[str] = Field(default_factory=list)


class ExecuteErrorResponse(BaseModel):
    """Schema for an HTTP execution failure."""
    error: str
    error_type: Literal["network_error", "timeout", "invalid_url", "too_large", "unknown"]
    details: str | None = None
    response_time_ms: int = 0

    @property
    def message(self) -> str:
        if self.details:
            return f"{self.error}: {self.details}"
        return self.error


class QueryResult(BaseModel):
    """
    Result of a SQL statement.

    Read-only statements fill columns/rows; mutating statements fill
    rows_affected. `returns_rows` tells the two shapes apart.
    """
    returns_rows: bool
    columns: list[str] = Field(default_factory=list)
    rows: list[list[str]] = Field(default_factory=list)
    rows_affected: int = 0
    execution_time_ms: int = 0
    truncated: bool = False


class QueryErrorResponse(BaseModel):
    """Schema for a SQL execution failure."""
    error: str
    details: str | None = None
    execution_time_ms: int = 0
    connection_lost: bool = False

    @property
    def message(self) -> str:
        if self.details:
            return f"{self.error}: {self.details}"
        return self.error


ExportFormat = Literal["csv", "json", "sql"]

EXPORT_FORMATS: tuple[str, ...] = ("csv", "json", "sql")


class ExportResult(BaseModel):
    """Where a query result was exported to."""
    file_path: str
    format: ExportFormat
    row_count: int
