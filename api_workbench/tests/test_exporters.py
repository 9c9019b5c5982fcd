"""
Tests for curl rendering and query result export.
"""

import csv
import json
import os
import stat
from datetime import datetime

import pytest

from api_workbench.exceptions import ValidationError
from api_workbench.schemas.execute import QueryResult
from api_workbench.services.exporters import (
    export_query_result,
    quote_identifier,
    shell_quote,
    sql_literal,
    to_curl,
)


NOW = datetime(2024, 3, 5, 14, 30, 9)


@pytest.fixture
def result():
    return QueryResult(
        returns_rows=True,
        columns=["id", "name", "note"],
        rows=[["1", "ada", "NULL"], ["2", "o'brien", "said \"hi\""]],
    )


class TestToCurl:

    def test_get_with_header(self):
        command = to_curl("GET", "https://api.test/users?page=1", {"Accept": "application/json"})

        assert command == (
            "curl 'https://api.test/users?page=1' \\\n"
            "  -X GET \\\n"
            "  -H 'Accept: application/json'"
        )

    def test_post_with_body(self):
        command = to_curl("POST", "http://h/items", {}, '{"a": 1}')

        assert command.splitlines()[-1] == "  -d '{\"a\": 1}'"

    def test_single_quotes_are_escaped(self):
        assert shell_quote("it's") == "'it'\\''s'"

    def test_headers_keep_their_order(self):
        command = to_curl("GET", "http://h/", {"B": "2", "A": "1"})

        assert command.index("-H 'B: 2'") < command.index("-H 'A: 1'")


class TestSqlHelpers:

    @pytest.mark.parametrize("value,expected", [
        ("", "NULL"),
        ("NULL", "NULL"),
        ("42", "42"),
        ("-3.5e2", "-3.5e2"),
        ("abc", "'abc'"),
        ("o'brien", "'o''brien'"),
        ("back\\slash", "'back\\\\slash'"),
    ])
    def test_sql_literal(self, value, expected):
        assert sql_literal(value) == expected

    def test_quote_identifier(self):
        assert quote_identifier('we"ird') == '"we""ird"'


class TestExportQueryResult:

    def test_csv(self, result, tmp_path):
        exported = export_query_result(result, "csv", tmp_path, now=NOW)

        assert exported.file_path.endswith("export_20240305_143009.csv")
        assert exported.row_count == 2
        with open(exported.file_path, newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))
        assert rows[0] == ["id", "name", "note"]
        assert rows[2] == ["2", "o'brien", 'said "hi"']

    def test_json(self, result, tmp_path):
        exported = export_query_result(result, "json", tmp_path, now=NOW)

        records = json.loads(open(exported.file_path, encoding="utf-8").read())
        assert records[0] == {"id": "1", "name": "ada", "note": "NULL"}

    def test_sql(self, result, tmp_path):
        exported = export_query_result(result, "sql", tmp_path, table="people", now=NOW)

        lines = open(exported.file_path, encoding="utf-8").read().splitlines()
        inserts = [line for line in lines if line.startswith("INSERT")]
        assert inserts[0] == 'INSERT INTO "people" ("id", "name", "note") VALUES (1, \'ada\', NULL);'
        assert inserts[1].endswith("VALUES (2, 'o''brien', 'said \"hi\"');")

    def test_sql_default_table_name(self, result, tmp_path):
        exported = export_query_result(result, "sql", tmp_path, now=NOW)

        assert '"exported_table"' in open(exported.file_path, encoding="utf-8").read()

    def test_file_is_owner_only_and_directory_is_created(self, result, tmp_path):
        exported = export_query_result(result, "csv", tmp_path / "exports", now=NOW)

        assert stat.S_IMODE(os.stat(exported.file_path).st_mode) == 0o600

    def test_exports_in_the_same_second_get_distinct_files(self, result, tmp_path):
        first = export_query_result(result, "csv", tmp_path, now=NOW)
        second = export_query_result(result, "csv", tmp_path, now=NOW)
        third = export_query_result(result, "csv", tmp_path, now=NOW)

        assert first.file_path.endswith("export_20240305_143009.csv")
        assert second.file_path.endswith("export_20240305_143009_2.csv")
        assert third.file_path.endswith("export_20240305_143009_3.csv")
        assert len(list(tmp_path.iterdir())) == 3

    def test_empty_result_is_rejected(self, tmp_path):
        with pytest.raises(ValidationError):
            export_query_result(QueryResult(returns_rows=False, rows_affected=3), "csv", tmp_path)

    def test_unknown_format_is_rejected(self, result, tmp_path):
        with pytest.raises(ValidationError):
            export_query_result(result, "xml", tmp_path)
