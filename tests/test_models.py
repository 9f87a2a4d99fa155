"""Tests for the core data models."""

from __future__ import annotations

import math

import pytest

from docrank.models import (
    DEFAULT_METRIC_VALUE,
    CustomMetric,
    DocumentMetrics,
    DocumentRef,
    DocumentVector,
    RankingEntry,
    Recommendation,
)


class TestDocumentRef:
    """Tests for DocumentRef."""

    def test_extension_is_lowercase_without_dot(self) -> None:
        """Should expose the suffix lower-cased and without the dot."""
        ref = DocumentRef(path="notes/Idea.MD", display_name="Idea", modify_time=1.0)
        assert ref.extension == "md"

    def test_extension_empty_without_suffix(self) -> None:
        ref = DocumentRef(path="README", display_name="README", modify_time=1.0)
        assert ref.extension == ""

    def test_is_frozen(self) -> None:
        """Should reject attribute assignment."""
        ref = DocumentRef(path="a.md", display_name="a", modify_time=1.0)
        with pytest.raises(AttributeError):
            ref.path = "b.md"  # type: ignore[misc]

    def test_is_hashable(self) -> None:
        ref = DocumentRef(path="a.md", display_name="a", modify_time=1.0)
        assert {ref: 1}[DocumentRef(path="a.md", display_name="a", modify_time=1.0)] == 1


class TestDocumentMetrics:
    """Tests for DocumentMetrics."""

    def test_value_falls_back_to_default(self) -> None:
        """Should return 5.0 for a metric never rated."""
        metrics = DocumentMetrics(values={"importance": 8.0})
        assert metrics.value("importance") == 8.0
        assert metrics.value("urgency") == DEFAULT_METRIC_VALUE

    def test_value_custom_default(self) -> None:
        metrics = DocumentMetrics()
        assert metrics.value("importance", default=0.0) == 0.0

    def test_zero_value_is_not_replaced_by_default(self) -> None:
        """Should treat an explicit 0 as a real value."""
        metrics = DocumentMetrics(values={"importance": 0.0})
        assert metrics.value("importance") == 0.0

    def test_copy_is_independent(self) -> None:
        metrics = DocumentMetrics(values={"importance": 8.0}, last_visited=10, visit_count=2)
        copied = metrics.copy()
        copied.values["importance"] = 1.0
        copied.visit_count = 99
        assert metrics.values["importance"] == 8.0
        assert metrics.visit_count == 2

    def test_to_dict(self) -> None:
        metrics = DocumentMetrics(values={"a": 1.0}, last_visited=5, visit_count=3)
        assert metrics.to_dict() == {"values": {"a": 1.0}, "last_visited": 5, "visit_count": 3}


class TestDocumentVector:
    """Tests for DocumentVector."""

    def test_from_weights_computes_magnitude(self) -> None:
        vector = DocumentVector.from_weights({"x": 3.0, "y": 4.0})
        assert math.isclose(vector.magnitude, 5.0)
        assert len(vector) == 2

    def test_from_weights_copies_input(self) -> None:
        weights = {"x": 1.0}
        vector = DocumentVector.from_weights(weights)
        weights["x"] = 2.0
        assert vector.weights["x"] == 1.0

    def test_is_zero(self) -> None:
        assert DocumentVector().is_zero()
        assert DocumentVector(weights={"x": 0.0}).is_zero()
        assert not DocumentVector(weights={"x": 0.1}).is_zero()


def test_custom_metric_to_dict() -> None:
    metric = CustomMetric(id="importance", display_name="Importance", weight=40)
    assert metric.to_dict() == {"id": "importance", "display_name": "Importance", "weight": 40}


def test_ranking_entry_defaults() -> None:
    ref = DocumentRef(path="a.md", display_name="a", modify_time=1.0)
    entry = RankingEntry(document=ref, metrics=DocumentMetrics(), priority=5.0)
    assert entry.rank == 0
    assert entry.weight_breakdown is None
    assert Recommendation(document=ref, score=0.5).metrics is None
