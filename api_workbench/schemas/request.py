"""
Pydantic schemas for saved HTTP requests.

Headers and query parameters are ordered mappings; JSON objects keep their
key order, so the order the user entered survives a save/load cycle.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from ._common import new_id, utcnow


# HTTP methods supported by the request builder
HttpMethod = Literal["GET", "POST", "PUT", "DELETE", "PATCH"]

HTTP_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "DELETE", "PATCH")


class RequestBase(BaseModel):
    """Common request fields shared by saved requests and executions."""
    method: HttpMethod = "GET"
    url: str = ""
    headers: dict[str, str] = Field(default_factory=dict)
    body: str = ""
    query_params: dict[str, str] = Field(default_factory=dict)


class SavedRequest(RequestBase):
    """
    A named request persisted in the requests document.

    Attributes:
        id: Opaque unique identifier, the identity of the request
        name: Human-readable name, not required to be unique
        created_at: Timestamp when the request was first saved
        last_used: Timestamp when the request was last loaded into the builder
    """
    id: str = Field(default_factory=new_id)
    name: str
    created_at: datetime = Field(default_factory=utcnow)
    last_used: datetime = Field(default_factory=utcnow)

    @property
    def search_fields(self) -> tuple[str, ...]:
        return (self.name, self.method, self.url)
