"""
Tests for Postman collection import and export.
"""

import json
import os
import stat
from datetime import datetime

import pytest

from api_workbench.exceptions import StorageError, ValidationError
from api_workbench.schemas.postman import POSTMAN_SCHEMA
from api_workbench.schemas.request import SavedRequest
from api_workbench.services.postman import (
    export_postman,
    import_postman,
    read_collection,
    write_collection,
)


NOW = datetime(2024, 3, 5, 14, 30, 9)

COLLECTION = {
    "info": {"name": "Shop", "schema": POSTMAN_SCHEMA},
    "item": [
        {
            "name": "List products",
            "request": {
                "method": "GET",
                "url": {
                    "raw": "{{base}}/products?page=1&debug=1",
                    "query": [{"key": "page", "value": "1"}, {"key": "debug", "value": "1", "disabled": True}],
                },
                "header": [{"key": "Accept", "value": "application/json"}],
            },
        },
        {
            "name": "Orders",
            "item": [
                {
                    "name": "Create",
                    "request": {
                        "method": "post",
                        "url": "{{base}}/orders",
                        "body": {"mode": "raw", "raw": "{\"qty\": 2}"},
                    },
                },
                {
                    "name": "Upload",
                    "request": {"method": "PUT", "url": "{{base}}/files", "body": {"mode": "formdata"}},
                },
                {"name": "Health check", "request": {"method": "HEAD", "url": "{{base}}/"}},
            ],
        },
    ],
}


class TestImport:

    def test_requests_and_folders(self):
        requests, skipped = import_postman(json.dumps(COLLECTION))

        assert [r.name for r in requests] == ["List products", "Orders / Create", "Orders / Upload"]
        assert skipped == ["Orders / Health check"]

        listing, create, upload = requests
        assert listing.url == "{{base}}/products"
        assert listing.query_params == {"page": "1"}
        assert listing.headers == {"Accept": "application/json"}
        assert create.method == "POST"
        assert create.url == "{{base}}/orders"
        assert create.body == '{"qty": 2}'
        assert upload.body == ""

    def test_raw_url_is_kept_without_a_query_list(self):
        collection = {"item": [{"name": "r", "request": {"url": {"raw": "http://h/x?a=1"}}}]}

        [request], _ = import_postman(json.dumps(collection))

        assert request.url == "http://h/x?a=1"
        assert request.query_params == {}

    @pytest.mark.parametrize("data", ["{not json", "[]", '{"item": "nope"}'])
    def test_invalid_collections_are_rejected(self, data):
        with pytest.raises(ValidationError):
            import_postman(data)


class TestExport:

    def test_collection_layout(self):
        saved = SavedRequest(
            name="Create",
            method="POST",
            url="{{base}}/orders",
            headers={"X-B": "2", "X-A": "1"},
            query_params={"dry": "true"},
            body='{"qty": 2}',
        )

        collection = json.loads(export_postman([saved], name="Shop"))

        assert collection["info"]["name"] == "Shop"
        assert collection["info"]["schema"] == POSTMAN_SCHEMA
        [item] = collection["item"]
        assert item["name"] == "Create"
        assert item["request"]["url"]["raw"] == "{{base}}/orders?dry=true"
        assert [h["key"] for h in item["request"]["header"]] == ["X-B", "X-A"]
        assert item["request"]["body"] == {"mode": "raw", "raw": '{"qty": 2}'}

    def test_empty_body_is_left_out(self):
        collection = json.loads(export_postman([SavedRequest(name="r", url="http://h/")]))

        assert "body" not in collection["item"][0]["request"]

    def test_exported_requests_import_unchanged(self):
        saved = [
            SavedRequest(name="a", url="http://h/a", query_params={"q": "x y"}, headers={"K": "v"}),
            SavedRequest(name="b", method="DELETE", url="http://h/b", body="gone"),
        ]

        imported, skipped = import_postman(export_postman(saved))

        assert skipped == []
        fields = {"name", "method", "url", "headers", "query_params", "body"}
        for original, copy in zip(saved, imported):
            assert copy.model_dump(include=fields) == original.model_dump(include=fields)
            assert copy.id != original.id


class TestFiles:

    def test_write_collection(self, tmp_path):
        path = write_collection([SavedRequest(name="r", url="http://h/")], tmp_path / "exports", now=NOW)

        assert path.name == "requests_20240305_143009.postman_collection.json"
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600
        assert read_collection(path)[0][0].name == "r"

    def test_nothing_to_write(self, tmp_path):
        with pytest.raises(ValidationError):
            write_collection([], tmp_path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(StorageError):
            read_collection(tmp_path / "missing.json")
