"""
Tests for the JSON document store.
"""

import json
import os
import stat

import pytest

from api_workbench.exceptions import StorageError
from api_workbench.schemas.database import ConnectionConfig, SavedQuery
from api_workbench.schemas.documents import DatabaseDocument, DocumentKind, RequestsDocument
from api_workbench.schemas.environment import EnvironmentConfig, Variable
from api_workbench.schemas.history import RequestExecution
from api_workbench.schemas.request import SavedRequest
from api_workbench.services.document_store import FILE_MODE, DocumentStore, default_document


@pytest.fixture
def store(tmp_path):
    return DocumentStore.open(tmp_path / "config")


def file_mode(path) -> int:
    return stat.S_IMODE(os.stat(path).st_mode)


class TestLoad:

    def test_missing_files_yield_defaults(self, store):
        documents = store.load_all()

        assert documents[DocumentKind.REQUESTS] == RequestsDocument()
        assert documents[DocumentKind.DATABASE] == DatabaseDocument()
        assert documents[DocumentKind.ENVIRONMENTS] == EnvironmentConfig()

    def test_invalid_json_raises_storage_error(self, store):
        store.path(DocumentKind.REQUESTS).write_text("{not json", encoding="utf-8")

        with pytest.raises(StorageError) as exc_info:
            store.load(DocumentKind.REQUESTS)

        assert exc_info.value.kind is DocumentKind.REQUESTS

    def test_legacy_document_is_migrated_and_rewritten(self, store):
        path = store.path(DocumentKind.REQUESTS)
        path.write_text(json.dumps({"requests": [{"name": "a", "url": "http://h/"}]}), encoding="utf-8")

        document = store.load(DocumentKind.REQUESTS)

        assert document.requests[0].query_params == {}
        on_disk = json.loads(path.read_text(encoding="utf-8"))
        assert on_disk["version"] == document.version
        assert on_disk["history"] == []

    def test_newer_document_is_not_touched(self, store):
        path = store.path(DocumentKind.DATABASE)
        content = json.dumps({"version": "99.0.0"})
        path.write_text(content, encoding="utf-8")

        with pytest.raises(StorageError):
            store.load(DocumentKind.DATABASE)

        assert path.read_text(encoding="utf-8") == content

    def test_document_that_failed_to_load_is_never_overwritten(self, store):
        path = store.path(DocumentKind.REQUESTS)
        content = json.dumps({"version": "9.0.0", "requests": [{"id": "x", "name": "precious"}]})
        path.write_text(content, encoding="utf-8")

        with pytest.raises(StorageError):
            store.load(DocumentKind.REQUESTS)
        store.save(DocumentKind.REQUESTS, RequestsDocument())
        store.save(DocumentKind.DATABASE, DatabaseDocument())

        assert store.held == {DocumentKind.REQUESTS}
        assert path.read_text(encoding="utf-8") == content
        assert store.path(DocumentKind.DATABASE).exists()


class TestSave:

    def test_round_trip_keeps_every_field(self, store):
        requests = RequestsDocument(
            requests=[
                SavedRequest(
                    name="Create",
                    method="POST",
                    url="{{base}}/items",
                    headers={"X-B": "2", "X-A": "1"},
                    query_params={"z": "1", "a": "2"},
                    body='{"k": 1}',
                )
            ],
            history=[RequestExecution(method="GET", url="http://h/", status_code=204)],
        )
        database = DatabaseDocument(
            saved_queries=[SavedQuery(name="q", query="SELECT 1")],
            saved_connections=[ConnectionConfig(host="db", database="app", user="me", password="pw")],
        )
        environments = EnvironmentConfig().save_environment(None, "dev", [Variable(key="base", value="http://dev")])

        store.save(DocumentKind.REQUESTS, requests)
        store.save(DocumentKind.DATABASE, database)
        store.save(DocumentKind.ENVIRONMENTS, environments)

        assert store.load(DocumentKind.REQUESTS) == requests
        assert store.load(DocumentKind.DATABASE) == database
        assert store.load(DocumentKind.ENVIRONMENTS) == environments

    def test_header_order_is_preserved(self, store):
        headers = {"Zulu": "1", "Alpha": "2", "Mike": "3"}
        store.save(DocumentKind.REQUESTS, RequestsDocument(requests=[SavedRequest(name="r", headers=headers)]))

        loaded = store.load(DocumentKind.REQUESTS)

        assert list(loaded.requests[0].headers) == ["Zulu", "Alpha", "Mike"]

    def test_files_are_owner_only(self, store):
        store.save(DocumentKind.ENVIRONMENTS, EnvironmentConfig())

        assert file_mode(store.path(DocumentKind.ENVIRONMENTS)) == FILE_MODE
        assert file_mode(store.base_dir) == 0o700

    def test_no_temporary_file_is_left_behind(self, store):
        store.save(DocumentKind.REQUESTS, RequestsDocument())

        assert sorted(p.name for p in store.base_dir.iterdir()) == ["requests.json"]

    def test_save_failure_raises_storage_error(self, store, tmp_path):
        store.base_dir = tmp_path / "does-not-exist"

        with pytest.raises(StorageError):
            store.save(DocumentKind.REQUESTS, RequestsDocument())


class TestInMemoryMode:

    def test_open_failure_raises(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x", encoding="utf-8")

        with pytest.raises(StorageError):
            DocumentStore.open(blocker / "config")

    def test_in_memory_store_loads_defaults_and_ignores_saves(self):
        store = DocumentStore(None)

        store.save(DocumentKind.REQUESTS, RequestsDocument(requests=[SavedRequest(name="x")]))

        assert store.in_memory is True
        assert store.load(DocumentKind.REQUESTS) == default_document(DocumentKind.REQUESTS)


class TestLegacyRelocation:

    def test_documents_are_copied_when_absent(self, store, tmp_path):
        legacy = tmp_path / "legacy"
        legacy.mkdir()
        (legacy / "config.json").write_text(json.dumps({"requests": [{"name": "old"}]}), encoding="utf-8")
        (legacy / "environments.json").write_text(json.dumps({"environments": []}), encoding="utf-8")

        copied = store.relocate_legacy(legacy)

        assert set(copied) == {DocumentKind.REQUESTS, DocumentKind.ENVIRONMENTS}
        assert store.load(DocumentKind.REQUESTS).requests[0].name == "old"

    def test_existing_documents_are_not_overwritten(self, store, tmp_path):
        store.save(DocumentKind.REQUESTS, RequestsDocument(requests=[SavedRequest(name="current")]))
        legacy = tmp_path / "legacy"
        legacy.mkdir()
        (legacy / "requests.json").write_text(json.dumps({"requests": [{"name": "old"}]}), encoding="utf-8")

        assert store.relocate_legacy(legacy) == []
        assert store.load(DocumentKind.REQUESTS).requests[0].name == "current"

    def test_missing_legacy_directory(self, store, tmp_path):
        assert store.relocate_legacy(tmp_path / "nowhere") == []
        assert store.relocate_legacy(None) == []
