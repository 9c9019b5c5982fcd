"""
Search filtering for saved items and histories.
"""

from typing import Protocol, Sequence, TypeVar


class Searchable(Protocol):
    @property
    def search_fields(self) -> tuple[str, ...]: ...


ItemT = TypeVar("ItemT", bound=Searchable)


def matches(item: Searchable, query: str) -> bool:
    needle = query.strip().lower()
    if not needle:
        return True
    return any(needle in (field or "").lower() for field in item.search_fields)


def filter_items(items: Sequence[ItemT], query: str | None) -> list[ItemT]:
    """
    Return the items whose searchable fields contain the query.

    Matching is a case-insensitive substring test. The original order is kept,
    and an empty or whitespace-only query returns every item.

    Example:
        >>> [r.name for r in filter_items(requests, "get")]
        ['Get Users']
    """
    if not query or not query.strip():
        return list(items)
    return [item for item in items if matches(item, query)]
