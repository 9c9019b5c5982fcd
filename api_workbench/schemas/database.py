"""
Pydantic schemas for database connections and saved queries.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from ._common import new_id, utcnow


SslMode = Literal["disable", "require", "verify-ca", "verify-full"]

SSL_MODES: tuple[str, ...] = ("disable", "require", "verify-ca", "verify-full")

DEFAULT_PORT = 5432


class ConnectionConfig(BaseModel):
    """
    PostgreSQL connection parameters.

    The password is stored in plain JSON alongside the other fields; the
    document file is written with owner-only permissions but is not encrypted.
    """
    host: str
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    database: str
    user: str
    password: str = ""
    ssl_mode: SslMode = "disable"

    @field_validator("host", "database", "user")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("cannot be empty")
        return value

    def same_target(self, other: "ConnectionConfig") -> bool:
        return (self.host, self.port, self.database) == (other.host, other.port, other.database)

    def describe(self) -> str:
        """Connection description that never includes the password."""
        return f"{self.user}@{self.host}:{self.port}/{self.database}"


class SavedQuery(BaseModel):
    """A named SQL query persisted in the database document."""
    id: str = Field(default_factory=new_id)
    name: str
    query: str
    created_at: datetime = Field(default_factory=utcnow)
    last_used: datetime = Field(default_factory=utcnow)

    @property
    def search_fields(self) -> tuple[str, ...]:
        return (self.name, self.query)


class ColumnInfo(BaseModel):
    """Column description returned by schema introspection."""
    name: str
    type: str
    nullable: bool = True
