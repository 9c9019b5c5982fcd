"""
Property-based tests for execution history.

Histories are newest-first, bounded, and evict the oldest entries first.
"""

from datetime import datetime, timedelta, timezone

import pytest
from hypothesis import given, strategies as st, settings

from api_workbench.schemas.execute import (
    ExecuteErrorResponse,
    ExecuteResponse,
    QueryErrorResponse,
    QueryResult,
    StatusBand,
)
from api_workbench.schemas.history import QueryExecution, RequestExecution
from api_workbench.schemas.request import RequestBase
from api_workbench.services.history_service import (
    DEFAULT_HISTORY_LIMIT,
    append_execution,
    record_query_execution,
    record_request_execution,
)


BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)

http_method_strategy = st.sampled_from(["GET", "POST", "PUT", "DELETE", "PATCH"])

url_strategy = st.text(
    alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz0123456789-._~/"),
    min_size=1,
    max_size=40,
).map(lambda s: f"https://example.com/{s}")

offset_strategy = st.integers(min_value=0, max_value=10_000)


def make_execution(offset: int, method: str = "GET", url: str = "https://example.com/") -> RequestExecution:
    return RequestExecution(
        method=method,
        url=url,
        timestamp=BASE_TIME + timedelta(seconds=offset),
        status_code=200,
    )


def build_history(offsets: list[int], limit: int = DEFAULT_HISTORY_LIMIT) -> list[RequestExecution]:
    history: list[RequestExecution] = []
    for offset in offsets:
        history = append_execution(history, make_execution(offset), limit=limit)
    return history


class TestProperty4HistoryBound:
    """
    Property 4: History bound

    After any sequence of appends the history holds at most `limit` entries.
    """

    @given(offsets=st.lists(offset_strategy, min_size=0, max_size=250))
    @settings(max_examples=50)
    def test_history_never_exceeds_limit(self, offsets: list[int]):
        history = build_history(offsets)

        assert len(history) == min(len(offsets), DEFAULT_HISTORY_LIMIT)

    @given(
        offsets=st.lists(offset_strategy, min_size=1, max_size=60),
        limit=st.integers(min_value=1, max_value=20),
    )
    @settings(max_examples=100)
    def test_custom_limit_is_respected(self, offsets: list[int], limit: int):
        assert len(build_history(offsets, limit=limit)) <= limit

    def test_101st_entry_evicts_the_oldest(self):
        history = build_history(list(range(100)))
        oldest = history[-1]

        history = append_execution(history, make_execution(500))

        assert len(history) == 100
        assert history[0].timestamp == BASE_TIME + timedelta(seconds=500)
        assert oldest.id not in {entry.id for entry in history}


class TestProperty5HistoryOrder:
    """
    Property 5: Newest first

    Entries are ordered by timestamp descending and the kept entries are the
    most recent ones.
    """

    @given(offsets=st.lists(offset_strategy, min_size=1, max_size=150))
    @settings(max_examples=50)
    def test_history_is_sorted_newest_first(self, offsets: list[int]):
        history = build_history(offsets)

        timestamps = [entry.timestamp for entry in history]
        assert timestamps == sorted(timestamps, reverse=True)

    @given(offsets=st.lists(offset_strategy, min_size=1, max_size=150))
    @settings(max_examples=50)
    def test_kept_entries_are_the_most_recent(self, offsets: list[int]):
        history = build_history(offsets)

        expected = sorted(offsets, reverse=True)[:DEFAULT_HISTORY_LIMIT]
        assert [int((e.timestamp - BASE_TIME).total_seconds()) for e in history] == expected

    def test_append_does_not_modify_input(self):
        history = build_history([1, 2])

        append_execution(history, make_execution(3))

        assert len(history) == 2

    def test_equal_timestamps_keep_newest_append_first(self):
        first = make_execution(5, url="https://example.com/first")
        second = make_execution(5, url="https://example.com/second")

        history = append_execution(append_execution([], first), second)

        assert [entry.url for entry in history] == ["https://example.com/second", "https://example.com/first"]


class TestRecordRequestExecution:

    @given(method=http_method_strategy, url=url_strategy)
    @settings(max_examples=50)
    def test_request_fields_are_copied(self, method: str, url: str):
        request = RequestBase(method=method, url=url, headers={"A": "1"}, query_params={"q": "x"})

        record = record_request_execution(request)

        assert (record.method, record.url) == (method, url)
        assert record.headers == {"A": "1"}
        assert record.query_params == {"q": "x"}

    def test_successful_response(self):
        response = ExecuteResponse(
            status_code=201,
            status_text="Created",
            headers={},
            body='{"id": 1}',
            response_time_ms=12,
            response_size=9,
            status_band=StatusBand.SUCCESS,
        )

        record = record_request_execution(RequestBase(url="http://h/"), response)

        assert record.status_code == 201
        assert record.response_body == '{"id": 1}'
        assert record.response_time_ms == 12
        assert record.error is None

    def test_failed_request_keeps_the_error(self):
        error = ExecuteErrorResponse(error="Request timed out", error_type="timeout", details="30s")

        record = record_request_execution(RequestBase(url="http://h/"), error)

        assert record.status_code == 0
        assert record.error == "Request timed out: 30s"

    def test_records_are_immutable(self):
        record = make_execution(0)
        with pytest.raises(Exception):
            record.url = "changed"


class TestRecordQueryExecution:

    def test_rows_are_counted(self):
        result = QueryResult(returns_rows=True, columns=["a"], rows=[["1"], ["2"]], execution_time_ms=3)

        record = record_query_execution("SELECT a FROM t", result, "u@h:5432/db")

        assert record.row_count == 2
        assert record.rows_affected == 0
        assert record.connection_info == "u@h:5432/db"

    def test_error_is_recorded(self):
        record = record_query_execution("SELEC", QueryErrorResponse(error="Query failed", details="syntax"), "")

        assert record.error == "Query failed: syntax"

    def test_query_history_is_bounded_too(self):
        history: list[QueryExecution] = []
        for i in range(DEFAULT_HISTORY_LIMIT + 5):
            entry = QueryExecution(query=f"SELECT {i}", timestamp=BASE_TIME + timedelta(seconds=i))
            history = append_execution(history, entry)

        assert len(history) == DEFAULT_HISTORY_LIMIT
        assert history[0].query == f"SELECT {DEFAULT_HISTORY_LIMIT + 4}"
