"""
Document store for the persisted JSON documents.

Each document kind lives in its own file inside the configuration directory.
Saves overwrite the whole document atomically (temporary file + rename) with
owner-only permissions. Loads migrate older versions and write the upgraded
document back. A store without a directory keeps everything in memory.
"""

import json
import logging
import os
import shutil
from pathlib import Path

from ..exceptions import StorageError
from ..migrations import migrate
from ..schemas.documents import DOCUMENT_MODELS, Document, DocumentKind


logger = logging.getLogger(__name__)

FILE_MODE = 0o600
DIR_MODE = 0o700

# File names used by older releases, in lookup order
LEGACY_FILENAMES: dict[DocumentKind, tuple[str, ...]] = {
    DocumentKind.REQUESTS: ("requests.json", "config.json"),
    DocumentKind.DATABASE: ("database.json",),
    DocumentKind.ENVIRONMENTS: ("environments.json",),
}


def default_document(kind: DocumentKind) -> Document:
    """A fresh, empty document of the given kind."""
    return DOCUMENT_MODELS[kind]()


class DocumentStore:
    """
    Reads and writes the persisted documents.

    Attributes:
        base_dir: Directory holding the document files, None for in-memory mode
        held: Document kinds whose file failed to load; they are never
            written, so the file stays as the user left it
    """

    def __init__(self, base_dir: Path | None):
        self.base_dir = Path(base_dir) if base_dir is not None else None
        self.held: set[DocumentKind] = set()

    @classmethod
    def open(cls, base_dir: Path) -> "DocumentStore":
        """
        Create a store, making sure its directory exists.

        Raises:
            StorageError: if the directory cannot be created
        """
        base_dir = Path(base_dir)
        try:
            base_dir.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create directory {base_dir}", e)
        return cls(base_dir)

    @property
    def in_memory(self) -> bool:
        return self.base_dir is None

    def path(self, kind: DocumentKind) -> Path:
        if self.base_dir is None:
            raise StorageError("Store has no directory (in-memory mode)", kind=kind)
        return self.base_dir / kind.filename

    def load(self, kind: DocumentKind) -> Document:
        """
        Load a document, migrating it if it was written by an older release.

        A missing file yields a fresh default document. A file that fails to
        load is held: later saves of its kind leave it untouched.

        Raises:
            StorageError: if the file cannot be read, is not valid JSON, or
                cannot be migrated to the current version
        """
        if self.base_dir is None:
            return default_document(kind)

        path = self.path(kind)
        if not path.exists():
            return default_document(kind)

        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except OSError as e:
            logger.error("Failed to read %s: %s", path, e)
            self.held.add(kind)
            raise StorageError(f"Failed to read {kind.filename}", e, kind=kind)
        except json.JSONDecodeError as e:
            logger.error("Failed to parse %s: %s", path, e)
            self.held.add(kind)
            raise StorageError(f"Failed to parse {kind.filename}", e, kind=kind)

        try:
            document, changed = migrate(kind, raw)
        except StorageError:
            logger.exception("Failed to migrate %s", path)
            self.held.add(kind)
            raise

        if changed:
            logger.info("Migrated %s to version %s", path, document.version)
            try:
                self.save(kind, document)
            except StorageError:
                logger.warning("Keeping migrated %s in memory until the next save", path)

        return document

    def load_all(self) -> dict[DocumentKind, Document]:
        return {kind: self.load(kind) for kind in DocumentKind}

    def save(self, kind: DocumentKind, document: Document) -> None:
        """
        Overwrite a document on disk.

        The content goes to a temporary file first and is renamed into place.
        Does nothing in in-memory mode or for a held kind.

        Raises:
            StorageError: if the document cannot be written
        """
        if self.base_dir is None:
            return
        if kind in self.held:
            logger.warning("Not saving %s: the file on disk failed to load", kind.filename)
            return

        path = self.path(kind)
        temp_path = path.with_name(path.name + ".tmp")
        content = document.model_dump_json(indent=2)

        try:
            fd = os.open(temp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, FILE_MODE)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(temp_path, path)
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            logger.error("Failed to save %s: %s", path, e)
            raise StorageError(f"Failed to save {kind.filename}", e, kind=kind)

        logger.debug("Saved %s", path)

    def relocate_legacy(self, legacy_dir: Path | None) -> list[DocumentKind]:
        """
        Copy documents from an older configuration directory.

        Only documents absent from the current directory are copied; they are
        migrated on their first load. Unreadable files are skipped.

        Returns:
            The document kinds that were copied
        """
        if self.base_dir is None or legacy_dir is None:
            return []

        legacy_dir = Path(legacy_dir)
        if not legacy_dir.is_dir() or legacy_dir.resolve() == self.base_dir.resolve():
            return []

        copied: list[DocumentKind] = []
        for kind, names in LEGACY_FILENAMES.items():
            target = self.path(kind)
            if target.exists():
                continue
            for name in names:
                source = legacy_dir / name
                if not source.is_file():
                    continue
                try:
                    shutil.copyfile(source, target)
                    os.chmod(target, FILE_MODE)
                except OSError as e:
                    logger.warning("Failed to copy %s to %s: %s", source, target, e)
                    continue
                logger.info("Copied %s from %s", kind.filename, legacy_dir)
                copied.append(kind)
                break

        return copied
