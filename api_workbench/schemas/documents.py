"""
Pydantic schemas for the persisted JSON documents.

Each document carries a `version` string; older shapes are upgraded by the
migrations package before they are validated against these models.
"""

from enum import Enum

from pydantic import BaseModel, Field

from ._common import CURRENT_VERSION
from .database import ConnectionConfig, SavedQuery
from .environment import EnvironmentConfig
from .history import QueryExecution, RequestExecution
from .request import SavedRequest


class DocumentKind(str, Enum):
    """The persisted documents, valued by their file name stem."""
    REQUESTS = "requests"
    DATABASE = "database"
    ENVIRONMENTS = "environments"

    @property
    def filename(self) -> str:
        return f"{self.value}.json"


class RequestsDocument(BaseModel):
    """Saved requests and request execution history."""
    version: str = CURRENT_VERSION
    requests: list[SavedRequest] = Field(default_factory=list)
    history: list[RequestExecution] = Field(default_factory=list)


class DatabaseDocument(BaseModel):
    """Saved queries, query history and saved connections."""
    version: str = CURRENT_VERSION
    saved_queries: list[SavedQuery] = Field(default_factory=list)
    query_history: list[QueryExecution] = Field(default_factory=list)
    saved_connections: list[ConnectionConfig] = Field(default_factory=list)


# The environments document is the EnvironmentConfig itself
EnvironmentsDocument = EnvironmentConfig

Document = RequestsDocument | DatabaseDocument | EnvironmentConfig

DOCUMENT_MODELS: dict[DocumentKind, type[BaseModel]] = {
    DocumentKind.REQUESTS: RequestsDocument,
    DocumentKind.DATABASE: DatabaseDocument,
    DocumentKind.ENVIRONMENTS: EnvironmentConfig,
}
