"""Tests for DocumentSelector."""

from __future__ import annotations

import random

import pytest

from docrank.models import CustomMetric, DocumentMetrics, DocumentRef
from docrank.scoring.priority import PriorityScorer
from docrank.scoring.selection import DocumentSelector


class FixedRandom(random.Random):
    """Random source whose ``random()`` always returns the same value."""

    def __init__(self, value: float) -> None:
        super().__init__(0)
        self.value = value

    def random(self) -> float:
        return self.value


def _doc(path: str) -> DocumentRef:
    return DocumentRef(path=path, display_name=path.rsplit(".", 1)[0], modify_time=1.0)


def _scorer() -> PriorityScorer:
    return PriorityScorer([CustomMetric(id="importance", display_name="Importance", weight=100)])


@pytest.fixture
def documents() -> list[DocumentRef]:
    return [_doc("high.md"), _doc("low.md")]


@pytest.fixture
def metrics_map() -> dict[str, DocumentMetrics]:
    return {
        "high.md": DocumentMetrics(values={"importance": 8.0}),
        "low.md": DocumentMetrics(values={"importance": 2.0}),
    }


class TestSelectionWeights:
    def test_probabilities_follow_priority(self, documents, metrics_map) -> None:
        selections = DocumentSelector(_scorer()).selection_weights(documents, metrics_map)

        assert [item.probability for item in selections] == pytest.approx([0.8, 0.2])
        assert [item.priority for item in selections] == pytest.approx([8.0, 2.0])

    def test_zero_priority_keeps_minimum_weight(self) -> None:
        """Should give a zero-priority document weight 0.1 rather than no chance."""
        metrics = {
            "a.md": DocumentMetrics(values={"importance": 0.0}),
            "b.md": DocumentMetrics(values={"importance": 9.9}),
        }
        selections = DocumentSelector(_scorer()).selection_weights([_doc("a.md"), _doc("b.md")], metrics)
        assert selections[0].probability == pytest.approx(0.01)


class TestPickWeighted:
    """Tests for pick_weighted."""

    def test_low_draw_picks_first(self, documents, metrics_map) -> None:
        selection = DocumentSelector(_scorer(), FixedRandom(0.5)).pick_weighted(documents, metrics_map)
        assert selection.document.path == "high.md"
        assert selection.probability == pytest.approx(0.8)

    def test_high_draw_picks_second(self, documents, metrics_map) -> None:
        selection = DocumentSelector(_scorer(), FixedRandom(0.85)).pick_weighted(documents, metrics_map)
        assert selection.document.path == "low.md"

    def test_draw_near_one_picks_last(self, documents, metrics_map) -> None:
        selection = DocumentSelector(_scorer(), FixedRandom(0.9999999)).pick_weighted(documents, metrics_map)
        assert selection.document.path == "low.md"

    def test_skip_path(self, documents, metrics_map) -> None:
        selection = DocumentSelector(_scorer(), FixedRandom(0.0)).pick_weighted(
            documents, metrics_map, exclude_path="high.md"
        )
        assert selection.document.path == "low.md"
        assert selection.probability == pytest.approx(1.0)

    def test_nothing_to_pick(self, metrics_map) -> None:
        assert DocumentSelector(_scorer()).pick_weighted([], metrics_map) is None
        assert DocumentSelector(_scorer()).pick_weighted([_doc("a.md")], {}, exclude_path="a.md") is None

    def test_high_priority_drawn_more_often(self, documents, metrics_map) -> None:
        selector = DocumentSelector(_scorer(), random.Random(42))
        picks = [selector.pick_weighted(documents, metrics_map).document.path for _ in range(2000)]
        assert picks.count("high.md") > picks.count("low.md") * 2


class TestPickUntracked:
    def test_uniform_choice(self) -> None:
        selector = DocumentSelector(_scorer(), random.Random(7))
        picks = {selector.pick_untracked(["a.md", "b.md", "c.md"]) for _ in range(200)}
        assert picks == {"a.md", "b.md", "c.md"}

    def test_empty(self) -> None:
        assert DocumentSelector(_scorer()).pick_untracked([]) is None
