"""
Document migrations.

Each persisted document kind has a module holding its upgrade steps, keyed by
the version they upgrade from. `migrate` walks the steps until the document
reaches the current version, then validates it against the current schema.
"""

from typing import Any, Callable

from pydantic import ValidationError as PydanticValidationError

from ..exceptions import StorageError
from ..schemas._common import CURRENT_VERSION
from ..schemas.documents import DOCUMENT_MODELS, Document, DocumentKind
from . import database_document, environments_document, requests_document


# Documents written before versioning are treated as this version
OLDEST_VERSION = "0.1.0"

Step = Callable[[dict[str, Any]], dict[str, Any]]

MIGRATIONS: dict[DocumentKind, dict[str, Step]] = {
    DocumentKind.REQUESTS: requests_document.STEPS,
    DocumentKind.DATABASE: database_document.STEPS,
    DocumentKind.ENVIRONMENTS: environments_document.STEPS,
}

NORMALIZERS: dict[DocumentKind, Step] = {
    DocumentKind.REQUESTS: requests_document.normalize,
    DocumentKind.DATABASE: database_document.normalize,
    DocumentKind.ENVIRONMENTS: environments_document.normalize,
}


def parse_version(version: str) -> tuple[int, ...]:
    """
    Parse a dotted version string.

    Raises:
        ValueError: if any component is not a number
    """
    return tuple(int(part) for part in version.strip().split("."))


def migrate(kind: DocumentKind, raw: Any) -> tuple[Document, bool]:
    """
    Bring a raw document up to the current version and validate it.

    Args:
        kind: Which document the data belongs to
        raw: Parsed JSON content of the file

    Returns:
        Tuple of (validated document, whether the data changed and should be
        written back)

    Raises:
        StorageError: if the data is not an object, carries a version newer
            than this release understands or one with no upgrade path, or
            does not match the current schema after migration
    """
    if not isinstance(raw, dict):
        raise StorageError(f"{kind.filename} does not contain a JSON object", kind=kind)

    data = dict(raw)
    version = str(data.get("version") or OLDEST_VERSION)
    changed = "version" not in raw

    try:
        parsed = parse_version(version)
    except ValueError as e:
        raise StorageError(f"{kind.filename} has an unreadable version '{version}'", e, kind=kind)

    if parsed > parse_version(CURRENT_VERSION):
        raise StorageError(
            f"{kind.filename} was written by a newer release (version {version}, "
            f"supported {CURRENT_VERSION})",
            kind=kind,
        )

    steps = MIGRATIONS[kind]
    while version != CURRENT_VERSION:
        step = steps.get(version)
        if step is None:
            raise StorageError(
                f"No migration path for {kind.filename} from version {version}",
                kind=kind,
            )
        data = step(data)
        version = data["version"]
        changed = True

    normalized = NORMALIZERS[kind](data)
    if normalized != data:
        changed = True

    try:
        document = DOCUMENT_MODELS[kind].model_validate(normalized)
    except PydanticValidationError as e:
        raise StorageError(f"{kind.filename} is invalid", e, kind=kind)

    return document, changed


__all__ = [
    "MIGRATIONS",
    "OLDEST_VERSION",
    "migrate",
    "parse_version",
]
