"""Weighted multi-metric priority scoring."""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from docrank.models import DEFAULT_METRIC_VALUE, CustomMetric, DocumentMetrics, MetricContribution

MIN_METRIC_VALUE = 0.0
MAX_METRIC_VALUE = 10.0


class PriorityBand(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    MINIMAL = "minimal"


def priority_band(score: float) -> PriorityBand:
    if score >= 8:
        return PriorityBand.CRITICAL
    if score >= 6:
        return PriorityBand.HIGH
    if score >= 4:
        return PriorityBand.MEDIUM
    if score >= 2:
        return PriorityBand.LOW
    return PriorityBand.MINIMAL


def clamp_metric_value(value: Any) -> Optional[float]:
    """Coerce a metric value into [0, 10]; None when it is not numeric."""
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return max(MIN_METRIC_VALUE, min(MAX_METRIC_VALUE, number))


def normalize_weights(metrics: Sequence[CustomMetric]) -> None:
    """Rescale weights in place to integers summing to exactly 100.

    Uses largest-remainder rounding. A list whose weights are all zero is
    split evenly.
    """
    if not metrics:
        return

    weights = [max(0.0, float(metric.weight)) for metric in metrics]
    total = sum(weights)
    if total <= 0:
        weights = [1.0] * len(metrics)
        total = float(len(metrics))

    exact = [weight / total * 100 for weight in weights]
    floored = [math.floor(value) for value in exact]
    remainder = 100 - sum(floored)
    order = sorted(range(len(exact)), key=lambda i: (-(exact[i] - floored[i]), i))
    for index in order[:remainder]:
        floored[index] += 1

    for metric, weight in zip(metrics, floored):
        metric.weight = weight


class PriorityScorer:
    """Compute 0-10 priority scores from a document's metric values."""

    def __init__(
        self,
        custom_metrics: Sequence[CustomMetric],
        metric_weights: Optional[Mapping[str, float]] = None,
    ) -> None:
        self.custom_metrics = list(custom_metrics)
        self.metric_weights = dict(metric_weights or {})

    def _weight(self, metric: CustomMetric) -> float:
        weight = self.metric_weights.get(metric.id)
        return metric.weight if weight is None else weight

    def calculate_priority(self, metrics: Optional[DocumentMetrics]) -> float:
        """Weighted mean of metric values, on the same 0-10 scale as the values.

        Dividing by the accumulated weight fraction keeps the score on scale
        even when the weights do not sum to exactly 100. Missing values count
        as the default of 5. No active weight at all scores 0.
        """
        contribution = 0.0
        weight_fraction = 0.0
        for metric in self.custom_metrics:
            value = metrics.value(metric.id) if metrics is not None else DEFAULT_METRIC_VALUE
            fraction = self._weight(metric) / 100
            contribution += value * fraction
            weight_fraction += fraction

        if weight_fraction <= 0:
            return 0.0
        return contribution / weight_fraction

    def weight_breakdown(self, metrics: Optional[DocumentMetrics]) -> List[MetricContribution]:
        rows: List[MetricContribution] = []
        for metric in self.custom_metrics:
            value = metrics.value(metric.id) if metrics is not None else DEFAULT_METRIC_VALUE
            weight = self._weight(metric)
            rows.append(
                MetricContribution(
                    metric_id=metric.id,
                    name=metric.display_name,
                    value=value,
                    weight=weight,
                    contribution=value * (weight / 100),
                )
            )
        return rows

    def default_metrics(self) -> DocumentMetrics:
        return DocumentMetrics(
            values={metric.id: DEFAULT_METRIC_VALUE for metric in self.custom_metrics},
            last_visited=0,
            visit_count=0,
        )

    def get_document_metrics(self, stored: Optional[DocumentMetrics]) -> DocumentMetrics:
        """Validated copy of stored metrics, or fresh defaults when absent."""
        if stored is None:
            return self.default_metrics()
        return self.validate_metrics(stored)

    def validate_metrics(self, metrics: DocumentMetrics) -> DocumentMetrics:
        """Clamp values into range; non-numeric values are dropped."""
        values: Dict[str, float] = {}
        for metric_id, raw in metrics.values.items():
            clamped = clamp_metric_value(raw)
            if clamped is not None:
                values[metric_id] = clamped

        try:
            last_visited = max(0, int(metrics.last_visited))
        except (TypeError, ValueError):
            last_visited = 0
        try:
            visit_count = max(0, math.floor(float(metrics.visit_count)))
        except (TypeError, ValueError):
            visit_count = 0

        return DocumentMetrics(values=values, last_visited=last_visited, visit_count=visit_count)

    def update_metrics(
        self,
        current: DocumentMetrics,
        updates: Mapping[str, Any],
        *,
        now: int,
    ) -> DocumentMetrics:
        """Apply metric value updates and stamp the visit.

        ``last_visited`` is always set to ``now``. ``visit_count`` grows by
        one only when at least one metric value actually changes.
        """
        updated = current.copy()
        changed = False
        for metric_id, raw in updates.items():
            value = clamp_metric_value(raw)
            if value is None:
                continue
            if updated.values.get(metric_id) != value:
                changed = True
            updated.values[metric_id] = value

        updated.last_visited = max(0, int(now))
        if changed:
            updated.visit_count = current.visit_count + 1
        return self.validate_metrics(updated)

    def compare_priority(self, first: DocumentMetrics, second: DocumentMetrics) -> float:
        """Negative when ``first`` ranks ahead of ``second`` (descending order)."""
        return self.calculate_priority(second) - self.calculate_priority(first)
