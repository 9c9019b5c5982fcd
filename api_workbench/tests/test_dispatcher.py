"""
End-to-end tests: dispatcher, controller and command runner together.

HTTP goes through httpx.MockTransport, SQL through an in-memory SQLite
session and documents through a store in a temporary directory.
"""

import asyncio
import json
import time
from dataclasses import replace

import httpx
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.pool import StaticPool

from api_workbench.database import SqlSession
from api_workbench.main import load_documents
from api_workbench.schemas.database import ConnectionConfig
from api_workbench.schemas.documents import DocumentKind
from api_workbench.schemas.request import SavedRequest
from api_workbench.services.document_store import DocumentStore
from api_workbench.ui.dispatcher import CommandRunner, Dispatcher
from api_workbench.ui.events import KeyPress
from api_workbench.ui.state import AppState, BuilderState, ConnectForm, DatabaseState, Screen


class RecordingClipboard:
    def __init__(self):
        self.texts: list[str] = []

    def write(self, text: str) -> str | None:
        self.texts.append(text)
        return None


def sqlite_connector(config, connect_timeout):
    engine = create_engine("sqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False})
    return SqlSession(engine, config.describe())


@pytest.fixture
def seen_requests():
    return []


@pytest.fixture
def runner(tmp_path, seen_requests):
    def handler(request: httpx.Request) -> httpx.Response:
        seen_requests.append(request)
        return httpx.Response(200, json={"ok": True})

    return CommandRunner(
        DocumentStore.open(tmp_path / "config"),
        export_dir=tmp_path / "exports",
        clipboard=RecordingClipboard(),
        transport=httpx.MockTransport(handler),
        connector=sqlite_connector,
    )


def run_keys(dispatcher: Dispatcher, *keys: str) -> AppState:
    async def scenario():
        for key in keys:
            dispatcher.post(KeyPress(key=key, character=key if len(key) == 1 else None))
            await dispatcher.drain()
        return dispatcher.state

    return asyncio.run(scenario())


class TestHttpRoundTrip:

    def test_get_with_header_and_param(self, runner, seen_requests, tmp_path):
        state = AppState(
            screen=Screen.REQUEST_BUILDER,
            builder=BuilderState(
                url="http://api.test/users",
                headers=(("X-Api-Key", "secret"),),
                query_params=(("page", "2"),),
            ),
        )
        dispatcher = Dispatcher(state, runner)

        final = run_keys(dispatcher, "enter")

        [request] = seen_requests
        assert request.method == "GET"
        assert str(request.url) == "http://api.test/users?page=2"
        assert request.headers["x-api-key"] == "secret"

        assert final.screen is Screen.VIEW_RESPONSE
        assert final.response.response.status_code == 200
        assert final.response.response.body_json == {"ok": True}

        [entry] = final.requests.history
        assert entry.method == "GET"
        assert entry.url == "http://api.test/users"
        assert entry.headers == {"X-Api-Key": "secret"}
        assert entry.query_params == {"page": "2"}
        assert entry.status_code == 200

        on_disk = json.loads((tmp_path / "config" / "requests.json").read_text(encoding="utf-8"))
        assert len(on_disk["history"]) == 1
        assert dispatcher.pending == 0

    def test_copy_as_curl_reports_back(self, runner):
        dispatcher = Dispatcher(AppState(screen=Screen.REQUEST_BUILDER, builder=BuilderState(url="http://h/")), runner)

        final = run_keys(dispatcher, "ctrl+y")

        assert runner.clipboard.texts == ["curl 'http://h/' \\\n  -X GET"]
        assert final.flash.text == "Copied curl command to clipboard"


class TestSqlRoundTrip:

    def test_connect_query_export_and_quit(self, runner, tmp_path):
        state = AppState(
            screen=Screen.DATABASE_CONNECT,
            db=DatabaseState(connect_form=ConnectForm(database="app", user="me")),
        )
        dispatcher = Dispatcher(state, runner)

        state = run_keys(dispatcher, "enter")
        session = state.db.session
        assert isinstance(session, SqlSession)
        assert state.screen is Screen.DATABASE
        assert state.database_doc.saved_connections[0].describe() == "me@localhost:5432/app"

        dispatcher.state = replace(
            state,
            screen=Screen.DATABASE_QUERY_EDITOR,
            db=replace(state.db, query="SELECT 42 AS answer"),
        )
        state = run_keys(dispatcher, "ctrl+k")
        assert state.screen is Screen.DATABASE_RESULT
        assert state.db.result.columns == ["answer"]
        assert state.db.result.rows == [["42"]]
        assert state.database_doc.query_history[0].connection_info == "me@localhost:5432/app"

        state = run_keys(dispatcher, "e", "enter")
        exports = list((tmp_path / "exports").iterdir())
        assert len(exports) == 1
        assert exports[0].suffix == ".csv"
        assert state.flash.text.startswith("Exported 1 rows")

        state = run_keys(dispatcher, "ctrl+c")
        assert state.quitting is True
        assert session.closed is True


class TestPostmanRoundTrip:

    def test_exported_collection_imports_back(self, runner, tmp_path):
        saved = [
            SavedRequest(name="List", url="http://api.test/users", query_params={"page": "2"}),
            SavedRequest(name="Create", method="POST", url="http://api.test/users", body='{"a": 1}'),
        ]
        requests = AppState().requests.model_copy(update={"requests": saved})
        dispatcher = Dispatcher(replace(AppState(screen=Screen.REQUEST_LIST), requests=requests), runner)

        async def scenario():
            dispatcher.post(KeyPress(key="x", character="x"))
            await dispatcher.drain()
            [exported] = list((tmp_path / "exports").iterdir())
            assert exported.name.endswith(".postman_collection.json")

            for key in ["i", *str(exported), "enter"]:
                dispatcher.post(KeyPress(key=key, character=key if len(key) == 1 else None))
                await dispatcher.drain()
            return dispatcher.state

        final = asyncio.run(scenario())

        assert [r.name for r in final.requests.requests] == ["List", "Create", "List", "Create"]
        assert final.requests.requests[2].query_params == {"page": "2"}
        assert final.requests.requests[3].body == '{"a": 1}'
        on_disk = json.loads((tmp_path / "config" / "requests.json").read_text(encoding="utf-8"))
        assert len(on_disk["requests"]) == 4

    def test_unreadable_file_is_reported(self, runner, tmp_path):
        dispatcher = Dispatcher(AppState(screen=Screen.REQUEST_LIST), runner)

        final = run_keys(dispatcher, "i", *str(tmp_path / "missing.json"), "enter")

        assert final.flash.error is True
        assert final.flash.text.startswith("Import failed")
        assert final.requests.requests == []


def test_run_stops_on_quit(runner):
    async def scenario():
        dispatcher = Dispatcher(AppState(), runner)
        dispatcher.post(KeyPress(key="q", character="q"))
        return await asyncio.wait_for(dispatcher.run(), timeout=5)

    final = asyncio.run(scenario())

    assert final.quitting is True


def test_cancelled_query_and_the_next_one_never_overlap(runner):
    engine = create_engine("sqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False})
    session = SqlSession(engine, "sqlite")
    running = []
    overlaps = []

    @event.listens_for(engine, "before_cursor_execute")
    def before(conn, cursor, statement, parameters, context, executemany):
        running.append(statement)
        overlaps.append(len(running))
        time.sleep(0.1)

    @event.listens_for(engine, "after_cursor_execute")
    def after(conn, cursor, statement, parameters, context, executemany):
        running.remove(statement)

    state = AppState(screen=Screen.DATABASE_QUERY_EDITOR, db=DatabaseState(session=session, query="SELECT 1"))
    dispatcher = Dispatcher(state, runner)

    async def scenario():
        for key in ("ctrl+k", "escape", "ctrl+k"):
            dispatcher.post(KeyPress(key=key))
        return await dispatcher.drain()

    final = asyncio.run(scenario())

    assert overlaps == [1, 1]
    assert final.screen is Screen.DATABASE_RESULT
    assert len(final.database_doc.query_history) == 1
    session.close()


def test_send_leaves_a_requests_file_that_failed_to_load_alone(runner, seen_requests, tmp_path):
    path = tmp_path / "config" / "requests.json"
    content = json.dumps({"version": "9.0.0", "requests": [{"id": "x", "name": "precious"}]})
    path.write_text(content, encoding="utf-8")
    documents, problems = load_documents(runner.store)
    state = AppState(
        screen=Screen.REQUEST_BUILDER,
        builder=BuilderState(url="http://api.test/users"),
        requests=documents[DocumentKind.REQUESTS],
        storage_warning="; ".join(problems),
    )

    final = run_keys(Dispatcher(state, runner), "enter")

    assert len(seen_requests) == 1
    assert len(final.requests.history) == 1
    assert "newer release" in final.storage_warning
    assert path.read_text(encoding="utf-8") == content


class TestUnexpectedCommandFailures:

    def test_connect_failure_releases_the_database(self, runner):
        def broken_connector(config, connect_timeout):
            raise RuntimeError("driver exploded")

        runner.connector = broken_connector
        state = AppState(
            screen=Screen.DATABASE_CONNECT,
            db=DatabaseState(connect_form=ConnectForm(database="app", user="me")),
        )

        final = run_keys(Dispatcher(state, runner), "enter")

        assert final.sql_token is None
        assert final.db.session is None
        assert final.flash.error is True
        assert "driver exploded" in final.flash.text

    def test_query_failure_releases_the_database(self, runner, monkeypatch):
        def broken_execute(session, query, max_rows):
            raise RuntimeError("worker died")

        monkeypatch.setattr("api_workbench.ui.dispatcher.execute_query", broken_execute)
        session = sqlite_connector(ConnectionConfig(host="h", database="d", user="u"), 1)
        state = AppState(screen=Screen.DATABASE_QUERY_EDITOR, db=DatabaseState(session=session, query="SELECT 1"))

        final = run_keys(Dispatcher(state, runner), "ctrl+k")

        assert final.sql_token is None
        assert final.database_doc.query_history[0].error == "Query failed: Unexpected error: worker died"
        session.close()
