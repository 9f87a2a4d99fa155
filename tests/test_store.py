"""Tests for the filesystem document store."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from docrank.ingestion.store import (
    DocumentNotFoundError,
    DocumentReadError,
    DocumentStoreError,
    FileSystemDocumentStore,
)


@pytest.fixture
def vault(tmp_path: Path) -> Path:
    (tmp_path / "notes").mkdir()
    (tmp_path / "notes" / "alpha.md").write_text("# Alpha\n\nFirst note.", encoding="utf-8")
    (tmp_path / "beta.markdown").write_text("Beta note body.", encoding="utf-8")
    (tmp_path / "image.png").write_bytes(b"\x89PNG")
    return tmp_path


class TestEnumerate:
    """Tests for enumerate_tracked_documents."""

    def test_describes_tracked_documents(self, vault: Path) -> None:
        store = FileSystemDocumentStore(vault, lambda: ["notes/alpha.md", "beta.markdown"])
        documents = store.enumerate_tracked_documents()

        assert [doc.path for doc in documents] == ["notes/alpha.md", "beta.markdown"]
        assert documents[0].display_name == "alpha"
        assert documents[0].modify_time > 0

    def test_skips_missing_and_non_markdown(self, vault: Path) -> None:
        """Should drop missing files and other file types without raising."""
        store = FileSystemDocumentStore(vault, lambda: ["gone.md", "image.png", "beta.markdown"])
        assert [doc.path for doc in store.enumerate_tracked_documents()] == ["beta.markdown"]

    def test_skips_unusable_paths(self, vault: Path) -> None:
        """Should skip paths the filesystem rejects instead of failing the batch."""
        tracked = ["x" * 300 + ".md", "bad\0name.md", "notes/alpha.md/child.md", "beta.markdown"]
        store = FileSystemDocumentStore(vault, lambda: tracked)
        assert [doc.path for doc in store.enumerate_tracked_documents()] == ["beta.markdown"]

    def test_tracked_paths_queried_each_time(self, vault: Path) -> None:
        tracked = ["beta.markdown"]
        store = FileSystemDocumentStore(vault, lambda: tracked)
        assert len(store.enumerate_tracked_documents()) == 1
        tracked.append("notes/alpha.md")
        assert len(store.enumerate_tracked_documents()) == 2

    def test_modify_time_changes_on_edit(self, vault: Path) -> None:
        store = FileSystemDocumentStore(vault, lambda: ["beta.markdown"])
        before = store.describe("beta.markdown").modify_time
        target = vault / "beta.markdown"
        os.utime(target, (target.stat().st_atime, target.stat().st_mtime + 10))
        assert store.describe("beta.markdown").modify_time > before


class TestDescribe:
    def test_missing_document(self, vault: Path) -> None:
        store = FileSystemDocumentStore(vault, list)
        with pytest.raises(DocumentNotFoundError):
            store.describe("missing.md")

    def test_rejects_paths_outside_root(self, vault: Path) -> None:
        store = FileSystemDocumentStore(vault / "notes", list)
        with pytest.raises(DocumentReadError):
            store.describe("../beta.markdown")

    def test_file_name_too_long(self, vault: Path) -> None:
        store = FileSystemDocumentStore(vault, list)
        with pytest.raises(DocumentReadError):
            store.describe("x" * 300 + ".md")

    def test_embedded_null_byte(self, vault: Path) -> None:
        store = FileSystemDocumentStore(vault, list)
        with pytest.raises(DocumentReadError):
            store.describe("bad\0name.md")


class TestReadText:
    """Tests for the async read_text."""

    @pytest.mark.asyncio
    async def test_reads_utf8(self, vault: Path) -> None:
        store = FileSystemDocumentStore(vault, list)
        assert await store.read_text("notes/alpha.md") == "# Alpha\n\nFirst note."

    @pytest.mark.asyncio
    async def test_missing_raises_not_found(self, vault: Path) -> None:
        store = FileSystemDocumentStore(vault, list)
        with pytest.raises(DocumentNotFoundError):
            await store.read_text("missing.md")

    @pytest.mark.asyncio
    async def test_invalid_encoding_raises_read_error(self, vault: Path) -> None:
        (vault / "broken.md").write_bytes(b"\xff\xfe\xfa invalid")
        store = FileSystemDocumentStore(vault, list)
        with pytest.raises(DocumentReadError):
            await store.read_text("broken.md")

    def test_errors_share_a_base_class(self) -> None:
        assert issubclass(DocumentNotFoundError, DocumentStoreError)
        assert issubclass(DocumentReadError, DocumentStoreError)
        assert issubclass(DocumentStoreError, OSError)
