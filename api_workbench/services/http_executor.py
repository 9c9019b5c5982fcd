"""
HTTP execution service for sending HTTP requests.

This service handles request preparation (variable substitution, query
string building, URL validation) and the actual HTTP call using httpx,
including response capture, timing and error handling. It never touches
persisted documents.
"""

import json
import logging
import time
from typing import Any
from urllib.parse import urlencode, urlsplit

import httpx

from ..exceptions import HttpError, ValidationError
from ..schemas.execute import ExecuteErrorResponse, ExecuteRequest, ExecuteResponse, StatusBand
from ..schemas.request import RequestBase
from .variable_substitution import VariableSource, build_lookup, substitute, substitute_dict


logger = logging.getLogger(__name__)

# Default timeout in seconds
DEFAULT_TIMEOUT = 30.0

# Responses larger than this are rejected
MAX_RESPONSE_SIZE = 100 * 1024 * 1024

ALLOWED_SCHEMES = ("http", "https")


def classify_status(status_code: int) -> StatusBand:
    """Map a status code onto its display band."""
    if status_code >= 500:
        return StatusBand.SERVER_ERROR
    if status_code >= 400:
        return StatusBand.CLIENT_ERROR
    if status_code >= 300:
        return StatusBand.REDIRECT
    if status_code >= 200:
        return StatusBand.SUCCESS
    return StatusBand.INFORMATIONAL


def build_url(url: str, query_params: dict[str, str]) -> str:
    """
    Append query parameters to a URL in their stored order.

    Example:
        >>> build_url("http://a/b", {"q": "x y", "n": "1"})
        'http://a/b?q=x+y&n=1'
    """
    if not query_params:
        return url

    query = urlencode(list(query_params.items()))
    separator = "&" if "?" in url else "?"
    if url.endswith(("?", "&")):
        separator = ""
    return f"{url}{separator}{query}"


def validate_url(url: str) -> None:
    """
    Validate a URL before sending.

    Raises:
        ValidationError: with a distinct message for an empty URL, a missing
            scheme, an unsupported scheme and a missing host
    """
    if not url or not url.strip():
        raise ValidationError("URL cannot be empty", field="url")

    parsed = urlsplit(url.strip())
    if not parsed.scheme or "://" not in url:
        raise ValidationError("URL is missing scheme (http:// or https://)", field="url")

    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise ValidationError(
            f"URL has unsupported scheme '{parsed.scheme}' (expected http or https)",
            field="url",
        )

    if not parsed.hostname:
        raise ValidationError("URL is missing host", field="url")


def apply_variable_substitution(
    request: RequestBase,
    variables: VariableSource,
) -> tuple[ExecuteRequest, list[str]]:
    """
    Apply variable substitution to all parts of a request and build the final URL.

    Args:
        request: The request as edited in the builder
        variables: Variables of the active environment

    Returns:
        Tuple of (resolved request, list of warning messages)
    """
    lookup = build_lookup(variables)
    warnings: list[str] = []

    url, url_unmatched = substitute(request.url, lookup)
    if url_unmatched:
        warnings.extend([f"Undefined variable in URL: {{{{{v}}}}}" for v in url_unmatched])

    headers, headers_unmatched = substitute_dict(request.headers, lookup)
    if headers_unmatched:
        warnings.extend([f"Undefined variable in headers: {{{{{v}}}}}" for v in headers_unmatched])

    query_params, params_unmatched = substitute_dict(request.query_params, lookup)
    if params_unmatched:
        warnings.extend([f"Undefined variable in query params: {{{{{v}}}}}" for v in params_unmatched])

    body, body_unmatched = substitute(request.body, lookup)
    if body_unmatched:
        warnings.extend([f"Undefined variable in body: {{{{{v}}}}}" for v in body_unmatched])

    processed = ExecuteRequest(
        method=request.method,
        url=build_url(url.strip(), query_params),
        headers=headers,
        body=body,
    )
    return processed, warnings


def parse_json_body(body: str | None, content_type: str | None) -> Any | None:
    """
    Try to parse response body as JSON if content type indicates JSON.

    Returns:
        Parsed JSON object or None if not JSON or parsing fails
    """
    if not body or not content_type:
        return None

    if "json" in content_type.lower():
        try:
            return json.loads(body)
        except json.JSONDecodeError:
            return None

    return None


def _elapsed_ms(start_time: float) -> int:
    return int((time.perf_counter() - start_time) * 1000)


def classify_http_exception(exc: Exception, timeout: float) -> HttpError:
    """Turn an exception raised while sending into an HttpError."""
    if isinstance(exc, HttpError):
        return exc
    if isinstance(exc, httpx.TimeoutException):
        return HttpError(
            "Request timed out", "timeout", f"Request exceeded {timeout} seconds timeout", exc
        )
    if isinstance(exc, httpx.ConnectError):
        return HttpError("Failed to connect to server", "network_error", str(exc), exc)
    if isinstance(exc, httpx.InvalidURL):
        return HttpError("Invalid URL", "invalid_url", str(exc), exc)
    if isinstance(exc, httpx.HTTPError):
        return HttpError("HTTP error occurred", "network_error", str(exc), exc)
    return HttpError("An unexpected error occurred", "unknown", str(exc), exc)


async def _read_body(response: httpx.Response, max_response_size: int) -> bytes:
    chunks: list[bytes] = []
    received = 0
    async for chunk in response.aiter_bytes():
        received += len(chunk)
        if received > max_response_size:
            raise HttpError(
                "Response too large", "too_large", f"Response exceeds {max_response_size} bytes"
            )
        chunks.append(chunk)
    return b"".join(chunks)


async def execute_request(
    request: ExecuteRequest,
    timeout: float = DEFAULT_TIMEOUT,
    max_response_size: int = MAX_RESPONSE_SIZE,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ExecuteResponse | ExecuteErrorResponse:
    """
    Execute an HTTP request and return the response.

    Args:
        request: The resolved request to execute
        timeout: Single deadline for the whole call, in seconds; no retry
        max_response_size: Largest accepted response body in bytes
        transport: Optional httpx transport (used by tests)

    Returns:
        ExecuteResponse on success, ExecuteErrorResponse on failure
    """
    content = request.body.encode("utf-8") if request.body else None
    start_time = time.perf_counter()

    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            async with client.stream(
                request.method,
                request.url,
                headers=request.headers,
                content=content,
            ) as response:
                raw_body = await _read_body(response, max_response_size)
    except Exception as e:
        error = classify_http_exception(e, timeout)
        if error.error_type == "unknown":
            logger.exception("Unexpected error sending %s %s", request.method, request.url)
        elif error.error_type != "invalid_url":
            logger.error("%s: %s %s: %s", error.detail, request.method, request.url, error.details)
        return ExecuteErrorResponse(
            error=error.detail,
            error_type=error.error_type,
            details=error.details,
            response_time_ms=_elapsed_ms(start_time),
        )

    response_time_ms = _elapsed_ms(start_time)
    try:
        response_body = raw_body.decode(response.charset_encoding or "utf-8", errors="replace")
    except LookupError:
        response_body = raw_body.decode("utf-8", errors="replace")
    response_headers = dict(response.headers)

    logger.info(
        "%s %s -> %d in %dms (%d bytes)",
        request.method, request.url, response.status_code, response_time_ms, len(raw_body),
    )

    return ExecuteResponse(
        status_code=response.status_code,
        status_text=response.reason_phrase or "",
        headers=response_headers,
        body=response_body,
        body_json=parse_json_body(response_body, response_headers.get("content-type", "")),
        response_time_ms=response_time_ms,
        response_size=len(raw_body),
        status_band=classify_status(response.status_code),
    )
