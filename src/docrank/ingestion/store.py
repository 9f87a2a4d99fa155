"""Document store interface and a filesystem-backed implementation."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, Iterable, List, Protocol

from docrank.models import DocumentRef
from docrank.utils.files import MARKDOWN_SUFFIXES

LOGGER = logging.getLogger(__name__)


class DocumentStoreError(OSError):
    """Base class for document store failures."""


class DocumentNotFoundError(DocumentStoreError):
    """Raised when a tracked path no longer exists."""


class DocumentReadError(DocumentStoreError):
    """Raised when a document exists but cannot be read."""


class DocumentStore(Protocol):
    def enumerate_tracked_documents(self) -> List[DocumentRef]: ...

    def describe(self, path: str) -> DocumentRef: ...

    async def read_text(self, path: str) -> str: ...


class FileSystemDocumentStore:
    """Serve tracked Markdown documents from a directory tree.

    Paths are POSIX-style and relative to ``root``. The set of tracked paths
    is owned by the caller and queried on every enumeration.
    """

    def __init__(self, root: Path, tracked_paths: Callable[[], Iterable[str]]) -> None:
        self.root = Path(root).resolve()
        self._tracked_paths = tracked_paths

    def _resolve(self, path: str) -> Path:
        try:
            candidate = (self.root / path).resolve()
        except (OSError, ValueError) as exc:
            raise DocumentReadError(f"Invalid document path {path!r}: {exc}") from exc
        try:
            candidate.relative_to(self.root)
        except ValueError as exc:
            raise DocumentReadError(f"Path is outside the document root: {path}") from exc
        return candidate

    def describe(self, path: str) -> DocumentRef:
        resolved = self._resolve(path)
        try:
            stat = resolved.stat()
        except FileNotFoundError as exc:
            raise DocumentNotFoundError(f"Document not found: {path}") from exc
        except (OSError, ValueError) as exc:
            raise DocumentReadError(f"Cannot stat {path}: {exc}") from exc
        return DocumentRef(
            path=path,
            display_name=resolved.stem,
            modify_time=stat.st_mtime * 1000,
        )

    def enumerate_tracked_documents(self) -> List[DocumentRef]:
        documents: List[DocumentRef] = []
        for path in self._tracked_paths():
            if Path(path).suffix.lower() not in MARKDOWN_SUFFIXES:
                continue
            try:
                documents.append(self.describe(path))
            except DocumentStoreError as exc:
                LOGGER.warning("Skipping tracked document %s: %s", path, exc)
        return documents

    def _read(self, path: str) -> str:
        resolved = self._resolve(path)
        try:
            return resolved.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise DocumentNotFoundError(f"Document not found: {path}") from exc
        except (OSError, ValueError) as exc:
            raise DocumentReadError(f"Failed to read {path}: {exc}") from exc

    async def read_text(self, path: str) -> str:
        return await asyncio.to_thread(self._read, path)
