"""
API Workbench - application entry point

Builds the initial state from the persisted documents and starts the
terminal interface.
"""

import logging

from .config import Settings, legacy_config_dir, load_settings
from .exceptions import StorageError
from .logging_config import setup_logging
from .schemas.documents import DocumentKind
from .services.document_store import DocumentStore, default_document
from .ui.app import WorkbenchApp
from .ui.dispatcher import CommandRunner
from .ui.state import AppState


logger = logging.getLogger(__name__)


def open_store(settings: Settings) -> tuple[DocumentStore, str | None]:
    """
    Open the document store in the configuration directory.

    Falls back to an in-memory store when the directory cannot be created.

    Returns:
        Tuple of (store, warning or None)
    """
    try:
        store = DocumentStore.open(settings.config_dir)
    except StorageError as e:
        setup_logging(settings, to_file=False)
        logger.error("Configuration directory unavailable: %s", e)
        return DocumentStore(None), f"Running in memory only: {e}"

    setup_logging(settings)
    copied = store.relocate_legacy(legacy_config_dir())
    if copied:
        logger.info("Relocated legacy documents: %s", ", ".join(kind.value for kind in copied))
    return store, None


def load_documents(store: DocumentStore) -> tuple[dict[DocumentKind, object], list[str]]:
    """
    Load every document.

    An unreadable document is replaced by a default one that lives in memory
    only; the store keeps the file on disk untouched.
    """
    documents: dict[DocumentKind, object] = {}
    problems: list[str] = []
    for kind in DocumentKind:
        try:
            documents[kind] = store.load(kind)
        except StorageError as e:
            problems.append(f"{e}; changes to it are kept in memory only")
            documents[kind] = default_document(kind)
    return documents, problems


def build_application(settings: Settings) -> WorkbenchApp:
    """Create the textual app with its initial state and command runner."""
    store, warning = open_store(settings)
    documents, problems = load_documents(store)

    warnings = [w for w in [warning, *problems] if w]
    state = AppState(
        requests=documents[DocumentKind.REQUESTS],
        database_doc=documents[DocumentKind.DATABASE],
        environments=documents[DocumentKind.ENVIRONMENTS],
        storage_warning="; ".join(warnings) or None,
        history_limit=settings.history_limit,
        flash_seconds=settings.flash_seconds,
    )

    runner = CommandRunner(
        store,
        export_dir=settings.export_dir,
        http_timeout=settings.http_timeout,
        max_response_size=settings.max_response_size,
        max_rows=settings.max_rows,
        db_connect_timeout=settings.db_connect_timeout,
    )
    logger.info("Starting API Workbench (config: %s)", settings.config_dir)
    return WorkbenchApp(state, runner)


def run(settings: Settings | None = None) -> None:
    settings = settings or load_settings()
    build_application(settings).run()
    logger.info("API Workbench stopped")
