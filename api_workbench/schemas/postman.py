"""
Pydantic schemas for the subset of the Postman collection format (v2.1) that
maps onto saved requests.

Unknown fields are ignored on import.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


POSTMAN_SCHEMA = "https://schema.getpostman.com/json/collection/v2.1.0/collection.json"


class PostmanPair(BaseModel):
    key: str
    value: str | None = ""
    disabled: bool = False


class PostmanUrl(BaseModel):
    raw: str = ""
    query: list[PostmanPair] = Field(default_factory=list)


class PostmanBody(BaseModel):
    mode: str = ""
    raw: str = ""


class PostmanRequest(BaseModel):
    method: str = "GET"
    url: PostmanUrl | str = ""
    header: list[PostmanPair] = Field(default_factory=list)
    body: PostmanBody | None = None


class PostmanItem(BaseModel):
    """A request, or a folder of further items when `request` is absent."""
    name: str = ""
    request: PostmanRequest | None = None
    item: list["PostmanItem"] = Field(default_factory=list)


PostmanItem.model_rebuild()


class PostmanInfo(BaseModel):
    name: str = ""
    description: str | dict[str, Any] = ""
    schema_: str = Field(default=POSTMAN_SCHEMA, alias="schema")

    model_config = ConfigDict(populate_by_name=True)


class PostmanCollection(BaseModel):
    info: PostmanInfo = Field(default_factory=PostmanInfo)
    item: list[PostmanItem] = Field(default_factory=list)
