"""
Postman collection import and export for saved requests.

Only what a saved request can hold is carried over: method, URL, enabled
headers, enabled query parameters and a raw body. Folders are flattened on
import; their names prefix the request names.
"""

import logging
import os
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from ..exceptions import StorageError, ValidationError
from ..schemas.postman import (
    PostmanBody,
    PostmanCollection,
    PostmanInfo,
    PostmanItem,
    PostmanPair,
    PostmanRequest,
    PostmanUrl,
)
from ..schemas.request import HTTP_METHODS, SavedRequest
from .exporters import EXPORT_DIR_MODE, EXPORT_FILE_MODE, reserve_path


logger = logging.getLogger(__name__)

DEFAULT_COLLECTION_NAME = "API Workbench"


def _raw_url(url: str, query_params: dict[str, str]) -> str:
    if not query_params:
        return url
    query = "&".join(f"{key}={value}" for key, value in query_params.items())
    return f"{url}{'&' if '?' in url else '?'}{query}"


def _enabled(pairs: list[PostmanPair]) -> dict[str, str]:
    return {p.key: p.value or "" for p in pairs if not p.disabled}


def _to_saved_request(name: str, request: PostmanRequest) -> SavedRequest:
    url, query_params = request.url, {}
    if isinstance(url, PostmanUrl):
        query_params = _enabled(url.query)
        # the raw URL repeats the query; keep it only where no params were listed
        url = url.raw.split("?", 1)[0] if url.query else url.raw

    body = ""
    if request.body is not None and request.body.mode == "raw":
        body = request.body.raw

    return SavedRequest(
        name=name or url,
        method=request.method.upper(),
        url=url,
        headers=_enabled(request.header),
        query_params=query_params,
        body=body,
    )


def _walk(items: list[PostmanItem], prefix: str, requests: list[SavedRequest], skipped: list[str]) -> None:
    for item in items:
        name = f"{prefix} / {item.name}" if prefix else item.name
        if item.request is None:
            _walk(item.item, name, requests, skipped)
            continue
        if item.request.method.upper() not in HTTP_METHODS:
            logger.warning("Skipping %s: unsupported method %s", name, item.request.method)
            skipped.append(name)
            continue
        requests.append(_to_saved_request(name, item.request))


def import_postman(data: str | bytes) -> tuple[list[SavedRequest], list[str]]:
    """
    Convert a Postman collection into saved requests.

    Args:
        data: The collection JSON

    Returns:
        Tuple of (new saved requests, names of items that were skipped)

    Raises:
        ValidationError: if the data is not a Postman collection
    """
    try:
        collection = PostmanCollection.model_validate_json(data)
    except PydanticValidationError as e:
        raise ValidationError(f"Not a Postman collection: {e.errors()[0]['msg']}")

    requests: list[SavedRequest] = []
    skipped: list[str] = []
    _walk(collection.item, "", requests, skipped)
    return requests, skipped


def export_postman(requests: list[SavedRequest], name: str = DEFAULT_COLLECTION_NAME) -> str:
    """Render saved requests as a Postman v2.1 collection."""
    items = []
    for r in requests:
        request = PostmanRequest(
            method=r.method,
            url=PostmanUrl(
                raw=_raw_url(r.url, r.query_params),
                query=[PostmanPair(key=k, value=v) for k, v in r.query_params.items()],
            ),
            header=[PostmanPair(key=k, value=v) for k, v in r.headers.items()],
            body=PostmanBody(mode="raw", raw=r.body) if r.body else None,
        )
        items.append(PostmanItem(name=r.name, request=request))

    collection = PostmanCollection(info=PostmanInfo(name=name), item=items)
    return collection.model_dump_json(indent=2, by_alias=True, exclude_none=True)


def read_collection(path: Path) -> tuple[list[SavedRequest], list[str]]:
    """
    Import the Postman collection stored at `path`.

    Raises:
        StorageError: if the file cannot be read
        ValidationError: if it is not a Postman collection
    """
    path = Path(path).expanduser()
    try:
        data = path.read_bytes()
    except OSError as e:
        logger.error("Failed to read %s: %s", path, e)
        raise StorageError(f"Failed to read {path}", e)

    requests, skipped = import_postman(data)
    logger.info("Imported %d requests from %s", len(requests), path)
    return requests, skipped


def write_collection(requests: list[SavedRequest], directory: Path, now: datetime | None = None) -> Path:
    """
    Export saved requests to a timestamped collection file.

    Raises:
        ValidationError: if there are no saved requests
        StorageError: if the file cannot be written
    """
    if not requests:
        raise ValidationError("No saved requests to export")

    stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    content = export_postman(requests)
    path = Path(directory)

    try:
        path.mkdir(mode=EXPORT_DIR_MODE, parents=True, exist_ok=True)
        path = reserve_path(path, f"requests_{stamp}", "postman_collection.json")
        path.write_text(content, encoding="utf-8")
        os.chmod(path, EXPORT_FILE_MODE)
    except OSError as e:
        logger.error("Export to %s failed: %s", path, e)
        raise StorageError(f"Failed to write {path.name}", e)

    logger.info("Exported %d requests to %s", len(requests), path)
    return path
