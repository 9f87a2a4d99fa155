"""Priority rankings and summary statistics over tracked documents."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Literal, Mapping, Optional, Sequence

import numpy as np

from docrank.models import DocumentMetrics, DocumentRef, RankingEntry, RankingStatistics
from docrank.scoring.priority import PriorityScorer

SortOrder = Literal["asc", "desc"]

# upper-exclusive bucket edges: <4 low, [4,6) medium, [6,8) medium_high, >=8 high
_BUCKET_EDGES = np.array([4.0, 6.0, 8.0])
_BUCKET_NAMES = ("low", "medium", "medium_high", "high")


@dataclass(slots=True)
class RankingOptions:
    limit: Optional[int] = 10
    sort_by: str = "priority"
    sort_order: SortOrder = "desc"
    include_empty_metrics: bool = False


@dataclass(slots=True)
class RankingFilters:
    min_priority: Optional[float] = None
    max_priority: Optional[float] = None
    min_visit_count: Optional[int] = None
    max_visit_count: Optional[int] = None
    extensions: Optional[Sequence[str]] = None


def _sort_value(entry: RankingEntry, sort_by: str) -> float:
    if sort_by == "priority":
        return entry.priority
    if sort_by == "visit_count":
        return float(entry.metrics.visit_count)
    if sort_by == "last_visited":
        return float(entry.metrics.last_visited)
    if sort_by == "rank":
        return float(entry.rank)
    # anything else is a metric id
    return entry.metrics.value(sort_by)


class RankingEngine:
    """Build, analyse and compare priority rankings."""

    def __init__(self, scorer: PriorityScorer) -> None:
        self.scorer = scorer

    def _entries(
        self,
        documents: Sequence[DocumentRef],
        metrics_map: Mapping[str, DocumentMetrics],
    ) -> List[RankingEntry]:
        entries = []
        for document in documents:
            metrics = self.scorer.get_document_metrics(metrics_map.get(document.path))
            entries.append(
                RankingEntry(
                    document=document,
                    metrics=metrics,
                    priority=self.scorer.calculate_priority(metrics),
                    weight_breakdown=self.scorer.weight_breakdown(metrics),
                )
            )
        return entries

    def generate_ranking(
        self,
        documents: Sequence[DocumentRef],
        metrics_map: Mapping[str, DocumentMetrics],
        options: Optional[RankingOptions] = None,
    ) -> List[RankingEntry]:
        """Score, sort and rank documents.

        Sorting is stable, so documents with equal keys keep their input
        order. Ranks are 1-based and assigned before ``limit`` truncation.
        """
        options = options or RankingOptions()
        entries = self._entries(documents, metrics_map)
        if not options.include_empty_metrics:
            entries = [entry for entry in entries if entry.priority > 0]

        entries.sort(
            key=lambda entry: _sort_value(entry, options.sort_by),
            reverse=options.sort_order == "desc",
        )
        for index, entry in enumerate(entries, start=1):
            entry.rank = index

        if options.limit is not None:
            return entries[: max(options.limit, 0)]
        return entries

    def top_documents(
        self,
        documents: Sequence[DocumentRef],
        metrics_map: Mapping[str, DocumentMetrics],
        n: int = 10,
    ) -> List[RankingEntry]:
        return self.generate_ranking(documents, metrics_map, RankingOptions(limit=n))

    def sort_by_metric(
        self,
        documents: Sequence[DocumentRef],
        metrics_map: Mapping[str, DocumentMetrics],
        metric_id: str,
        order: SortOrder = "desc",
    ) -> List[RankingEntry]:
        """Rank by a single metric value; unrated documents count as 0."""
        entries = self._entries(documents, metrics_map)
        for entry in entries:
            entry.metric_value = entry.metrics.value(metric_id, default=0.0)
        entries.sort(key=lambda entry: entry.metric_value or 0.0, reverse=order == "desc")
        for index, entry in enumerate(entries, start=1):
            entry.rank = index
        return entries

    @staticmethod
    def analyze_ranking(ranking: Sequence[RankingEntry]) -> RankingStatistics:
        if not ranking:
            return RankingStatistics(distribution={name: 0 for name in _BUCKET_NAMES})

        priorities = np.array([entry.priority for entry in ranking], dtype="float64")
        buckets = np.bincount(
            np.digitize(priorities, _BUCKET_EDGES, right=False), minlength=len(_BUCKET_NAMES)
        )
        return RankingStatistics(
            total_documents=len(ranking),
            average_priority=float(priorities.mean()),
            top_priority=float(priorities.max()),
            bottom_priority=float(priorities.min()),
            distribution={name: int(count) for name, count in zip(_BUCKET_NAMES, buckets)},
        )

    @staticmethod
    def rank_change(
        previous: Sequence[RankingEntry],
        current: Sequence[RankingEntry],
        path: str,
    ) -> int:
        """Positive when ``path`` moved up; 0 when it is missing from either side."""
        previous_rank = next((e.rank for e in previous if e.document.path == path), None)
        current_rank = next((e.rank for e in current if e.document.path == path), None)
        if previous_rank is None or current_rank is None:
            return 0
        return previous_rank - current_rank

    @staticmethod
    def search_ranking(ranking: Sequence[RankingEntry], query: str) -> List[RankingEntry]:
        if not query.strip():
            return list(ranking)
        needle = query.strip().lower()
        return [
            entry
            for entry in ranking
            if needle in entry.document.display_name.lower() or needle in entry.document.path.lower()
        ]

    @staticmethod
    def filter_ranking(
        ranking: Sequence[RankingEntry], filters: RankingFilters
    ) -> List[RankingEntry]:
        extensions = (
            {ext.lower().lstrip(".") for ext in filters.extensions}
            if filters.extensions
            else None
        )
        result = []
        for entry in ranking:
            if filters.min_priority is not None and entry.priority < filters.min_priority:
                continue
            if filters.max_priority is not None and entry.priority > filters.max_priority:
                continue
            visits = entry.metrics.visit_count
            if filters.min_visit_count is not None and visits < filters.min_visit_count:
                continue
            if filters.max_visit_count is not None and visits > filters.max_visit_count:
                continue
            if extensions is not None and entry.document.extension not in extensions:
                continue
            result.append(entry)
        return result
