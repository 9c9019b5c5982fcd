# Services package

from .variable_substitution import extract_variables, resolve, substitute, substitute_dict
from .http_executor import apply_variable_substitution, build_url, execute_request, validate_url
from .sql_executor import execute_query, is_read_only_query, list_columns, list_tables
from .history_service import append_execution, record_query_execution, record_request_execution
from .filtering import filter_items
from .document_store import DocumentStore
from .exporters import export_query_result, to_curl
from .response_diff import compare_executions, format_diff
from .postman import export_postman, import_postman
from .clipboard import ClipboardSink

__all__ = [
    "extract_variables",
    "resolve",
    "substitute",
    "substitute_dict",
    "apply_variable_substitution",
    "build_url",
    "execute_request",
    "validate_url",
    "execute_query",
    "is_read_only_query",
    "list_columns",
    "list_tables",
    "append_execution",
    "record_query_execution",
    "record_request_execution",
    "filter_items",
    "DocumentStore",
    "export_query_result",
    "to_curl",
    "compare_executions",
    "format_diff",
    "export_postman",
    "import_postman",
    "ClipboardSink",
]
