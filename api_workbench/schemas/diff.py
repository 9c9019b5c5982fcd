"""
Pydantic schemas for comparing two recorded HTTP responses.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


ChangeType = Literal["added", "removed", "modified"]


class ValueDiff(BaseModel):
    model_config = ConfigDict(frozen=True)

    old: str
    new: str


class Change(BaseModel):
    """
    One difference between two bodies.

    Attributes:
        type: added, removed or modified
        path: JSON path such as `items[0].name`, or `line N` for text bodies
        old_value: Value in the older response, empty when added
        new_value: Value in the newer response, empty when removed
    """
    model_config = ConfigDict(frozen=True)

    type: ChangeType
    path: str
    old_value: str = ""
    new_value: str = ""


class BodyDiff(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["json", "text"]
    changes: list[Change] = Field(default_factory=list)
    summary: str = ""


class TimeDiff(BaseModel):
    model_config = ConfigDict(frozen=True)

    old_ms: int
    new_ms: int
    diff_ms: int
    diff_percent: float


class ResponseDiff(BaseModel):
    """
    Differences between two responses. A field is None when it did not change.

    History entries do not record response headers, so headers are not
    compared.
    """
    model_config = ConfigDict(frozen=True)

    status_code: ValueDiff | None = None
    body: BodyDiff
    response_time: TimeDiff | None = None

    @property
    def has_differences(self) -> bool:
        return self.status_code is not None or bool(self.body.changes) or self.response_time is not None
