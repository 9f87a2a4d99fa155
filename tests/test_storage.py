"""Tests for SQLiteMetricsStore."""

from __future__ import annotations

import pytest

from docrank.index.storage import SQLiteMetricsStore
from docrank.models import DocumentMetrics


@pytest.fixture
def temp_db(tmp_path):
    """Create a temporary database for testing."""
    store = SQLiteMetricsStore(tmp_path / "test.db")
    yield store
    store.close()


def _defaults() -> DocumentMetrics:
    return DocumentMetrics(values={"importance": 5.0, "urgency": 5.0})


class TestSchema:
    """Test SQLiteMetricsStore initialization and schema."""

    def test_init_creates_database(self, tmp_path):
        db_path = tmp_path / "new.db"
        assert not db_path.exists()

        store = SQLiteMetricsStore(db_path)

        assert db_path.exists()
        assert store.db_path == db_path
        store.close()

    def test_schema_creation(self, temp_db):
        conn = temp_db.connection
        for table in ("tracked_documents", "document_metrics"):
            cursor = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table,)
            )
            assert cursor.fetchone() is not None

    def test_reopen_keeps_data(self, tmp_path):
        db_path = tmp_path / "persist.db"
        store = SQLiteMetricsStore(db_path)
        store.track(["a.md"], _defaults())
        store.close()

        reopened = SQLiteMetricsStore(db_path)
        assert reopened.tracked_paths() == ["a.md"]
        reopened.close()


class TestTracking:
    """Tests for the tracked-document set."""

    def test_track_creates_default_metrics(self, temp_db):
        result = temp_db.track(["a.md", "b.md"], _defaults())

        assert result.added == 2
        assert result.skipped == 0
        assert temp_db.is_tracked("a.md")
        assert temp_db.get_metrics("a.md").values == {"importance": 5.0, "urgency": 5.0}

    def test_track_twice_skips(self, temp_db):
        temp_db.track(["a.md"], _defaults())
        result = temp_db.track(["a.md", "c.md"], _defaults())
        assert result.added == 1
        assert result.skipped == 1

    def test_track_keeps_existing_metrics(self, temp_db):
        """Should not overwrite metrics kept from an earlier tracking period."""
        temp_db.save_metrics("a.md", DocumentMetrics(values={"importance": 9.0}, visit_count=4))
        temp_db.track(["a.md"], _defaults())
        assert temp_db.get_metrics("a.md").values == {"importance": 9.0}
        assert temp_db.get_metrics("a.md").visit_count == 4

    def test_untrack_keeps_metrics(self, temp_db):
        temp_db.track(["a.md"], _defaults())
        assert temp_db.untrack("a.md")
        assert not temp_db.is_tracked("a.md")
        assert temp_db.get_metrics("a.md") is not None
        assert not temp_db.untrack("a.md")

    def test_tracked_paths_order(self, temp_db):
        temp_db.track(["b.md", "a.md"], _defaults())
        assert temp_db.tracked_paths() == ["a.md", "b.md"]

    def test_remove_missing(self, tmp_path, temp_db):
        (tmp_path / "present.md").write_text("here")
        temp_db.track(["present.md", "gone.md"], _defaults())

        assert temp_db.remove_missing(tmp_path) == 1
        assert temp_db.tracked_paths() == ["present.md"]


class TestMetrics:
    """Tests for per-document metrics persistence."""

    def test_missing_metrics(self, temp_db):
        assert temp_db.get_metrics("nothing.md") is None

    def test_save_and_update(self, temp_db):
        temp_db.save_metrics("a.md", DocumentMetrics(values={"importance": 7.0}, last_visited=10, visit_count=1))
        temp_db.save_metrics("a.md", DocumentMetrics(values={"importance": 8.0}, last_visited=20, visit_count=2))

        metrics = temp_db.get_metrics("a.md")
        assert metrics.values == {"importance": 8.0}
        assert metrics.last_visited == 20
        assert metrics.visit_count == 2

    def test_all_metrics(self, temp_db):
        temp_db.save_metrics("a.md", DocumentMetrics(values={"importance": 1.0}))
        temp_db.save_metrics("b.md", DocumentMetrics(values={"importance": 2.0}))
        assert set(temp_db.all_metrics()) == {"a.md", "b.md"}

    def test_corrupt_values_are_ignored(self, temp_db):
        """Should tolerate unreadable or non-numeric stored values."""
        temp_db.save_metrics("a.md", DocumentMetrics())
        with temp_db.transaction() as conn:
            conn.execute(
                "UPDATE document_metrics SET metric_values = ? WHERE path = ?",
                ('{"importance": "high", "urgency": 3, "flag": true}', "a.md"),
            )
            conn.execute(
                "INSERT INTO document_metrics(path, metric_values) VALUES (?, ?)",
                ("b.md", "not json"),
            )

        assert temp_db.get_metrics("a.md").values == {"urgency": 3.0}
        assert temp_db.get_metrics("b.md").values == {}

    def test_remove_metric_key(self, temp_db):
        temp_db.save_metrics("a.md", DocumentMetrics(values={"importance": 1.0, "urgency": 2.0}))
        temp_db.save_metrics("b.md", DocumentMetrics(values={"urgency": 4.0}))

        assert temp_db.remove_metric_key("importance") == 1
        assert temp_db.get_metrics("a.md").values == {"urgency": 2.0}
        assert temp_db.get_metrics("b.md").values == {"urgency": 4.0}


class TestResetHistory:
    """Tests for reset_history."""

    def test_zeroes_history_keeps_values(self, temp_db):
        temp_db.track(["a.md"], _defaults())
        temp_db.save_metrics("a.md", DocumentMetrics(values={"importance": 9.0}, last_visited=99, visit_count=5))

        assert temp_db.reset_history() == 1

        metrics = temp_db.get_metrics("a.md")
        assert metrics.values == {"importance": 9.0}
        assert metrics.last_visited == 0
        assert metrics.visit_count == 0
        assert temp_db.is_tracked("a.md")

    def test_untrack_all(self, temp_db):
        temp_db.track(["a.md", "b.md"], _defaults())
        temp_db.reset_history(untrack_all=True)
        assert temp_db.tracked_paths() == []


def test_get_stats(temp_db):
    temp_db.track(["a.md", "b.md"], _defaults())
    temp_db.untrack("b.md")
    assert temp_db.get_stats() == {"tracked_count": 1, "metrics_count": 2}


def test_transaction_rolls_back(temp_db):
    with pytest.raises(RuntimeError):
        with temp_db.transaction() as conn:
            conn.execute("INSERT INTO tracked_documents(path, added_at) VALUES ('x.md', 1)")
            raise RuntimeError("abort")
    assert temp_db.tracked_paths() == []
