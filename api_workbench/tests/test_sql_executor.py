"""
Tests for the SQL gateway against an in-memory SQLite database.
"""

import threading
from datetime import date, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from api_workbench.database import SqlSession, build_database_url, is_connection_lost
from api_workbench.exceptions import DatabaseError, ValidationError
from api_workbench.schemas.database import ConnectionConfig
from api_workbench.schemas.execute import QueryErrorResponse, QueryResult
from api_workbench.services.sql_executor import (
    NULL_DISPLAY,
    execute_query,
    format_value,
    is_read_only_query,
    list_columns,
    list_tables,
    remove_comments,
)


@pytest.fixture
def session():
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    session = SqlSession(engine, "test")
    execute_query(session, "CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT, email TEXT)")
    execute_query(session, "INSERT INTO users (id, name, email) VALUES (1, 'ada', NULL), (2, 'bob', 'b@x')")
    yield session
    session.close()


class TestReadOnlyDetection:

    @pytest.mark.parametrize("query", [
        "SELECT 1",
        "  select * from t",
        "WITH x AS (SELECT 1) SELECT * FROM x",
        "EXPLAIN SELECT 1",
        "SHOW tables",
        "(SELECT 1) UNION (SELECT 2)",
        "-- comment\nSELECT 1",
        "/* leading */ SELECT 1",
    ])
    def test_read_only(self, query):
        assert is_read_only_query(query) is True

    @pytest.mark.parametrize("query", [
        "INSERT INTO t VALUES (1)",
        "update t set a = 1",
        "DELETE FROM t",
        "CREATE TABLE t (a int)",
        "-- SELECT\nDROP TABLE t",
        "",
    ])
    def test_mutating(self, query):
        assert is_read_only_query(query) is False

    def test_remove_comments(self):
        assert remove_comments("SELECT 1 -- one\n/* two */ FROM t") == "SELECT 1\n  FROM t"


class TestFormatValue:

    @pytest.mark.parametrize("value,expected", [
        (None, NULL_DISPLAY),
        (True, "true"),
        (3, "3"),
        (1.5, "1.5"),
        (b"bytes", "bytes"),
        (date(2024, 1, 2), "2024-01-02"),
        (datetime(2024, 1, 2, 3, 4, 5), "2024-01-02 03:04:05"),
    ])
    def test_values(self, value, expected):
        assert format_value(value) == expected


class TestExecuteQuery:

    def test_select_returns_columns_and_rows(self, session):
        result = execute_query(session, "SELECT id, name, email FROM users ORDER BY id")

        assert isinstance(result, QueryResult)
        assert result.returns_rows is True
        assert result.columns == ["id", "name", "email"]
        assert result.rows == [["1", "ada", "NULL"], ["2", "bob", "b@x"]]
        assert result.truncated is False

    def test_rows_are_limited(self, session):
        result = execute_query(session, "SELECT id FROM users ORDER BY id", max_rows=1)

        assert result.rows == [["1"]]
        assert result.truncated is True

    def test_update_reports_affected_rows_and_commits(self, session):
        result = execute_query(session, "UPDATE users SET email = 'x@x' WHERE email IS NULL")

        assert result.returns_rows is False
        assert result.rows_affected == 1
        assert execute_query(session, "SELECT count(*) FROM users WHERE email = 'x@x'").rows == [["1"]]

    def test_syntax_error_is_returned(self, session):
        result = execute_query(session, "SELEC * FROM users")

        assert isinstance(result, QueryErrorResponse)
        assert result.error == "Query failed"
        assert result.connection_lost is False

    def test_session_is_usable_after_an_error(self, session):
        execute_query(session, "SELECT * FROM missing_table")

        assert execute_query(session, "SELECT count(*) FROM users").rows == [["2"]]

    @pytest.mark.parametrize("query", ["", "   \n"])
    def test_empty_query_is_rejected(self, session, query):
        with pytest.raises(ValidationError):
            execute_query(session, query)

    def test_closed_session_reports_lost_connection(self, session):
        session.close()

        result = execute_query(session, "SELECT 1")

        assert isinstance(result, QueryErrorResponse)
        assert result.connection_lost is True
        assert result.error == "Connection to database lost"

    def test_statements_wait_for_the_session_lock(self, session):
        results = []
        worker = threading.Thread(target=lambda: results.append(execute_query(session, "SELECT 1")))

        with session.lock:
            worker.start()
            worker.join(timeout=0.2)
            assert worker.is_alive()
            assert results == []

        worker.join(timeout=5)
        assert results[0].rows == [["1"]]

    def test_close_waits_for_a_running_statement(self, session):
        with session.lock:
            closer = threading.Thread(target=session.close)
            closer.start()
            closer.join(timeout=0.2)
            assert closer.is_alive()
            assert session.closed is False

        closer.join(timeout=5)
        assert session.closed is True


class TestIntrospection:

    def test_tables_are_sorted(self, session):
        execute_query(session, "CREATE TABLE accounts (id INTEGER)")

        assert list_tables(session) == ["accounts", "users"]

    def test_columns_are_sorted_by_name(self, session):
        columns = list_columns(session, "users")

        assert [c.name for c in columns] == ["email", "id", "name"]
        assert all(c.type for c in columns)

    def test_closed_session(self, session):
        session.close()

        with pytest.raises(DatabaseError) as exc_info:
            list_tables(session)

        assert exc_info.value.connection_lost is True


class TestConnectionHelpers:

    def test_url_carries_ssl_mode_and_no_password_in_description(self):
        config = ConnectionConfig(host="db", port=6543, database="app", user="me", password="s3cret", ssl_mode="require")

        url = build_database_url(config)

        assert url.host == "db"
        assert url.port == 6543
        assert url.query["sslmode"] == "require"
        assert "s3cret" not in config.describe()
        assert config.describe() == "me@db:6543/app"

    def test_is_connection_lost(self):
        assert is_connection_lost(DatabaseError("gone", connection_lost=True)) is True
        assert is_connection_lost(DatabaseError("syntax")) is False

    def test_blank_fields_are_rejected(self):
        with pytest.raises(Exception):
            ConnectionConfig(host=" ", database="app", user="me")
