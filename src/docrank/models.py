"""Core docrank data models."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Dict, List, Optional

DEFAULT_METRIC_VALUE = 5.0


@dataclass(slots=True, frozen=True)
class DocumentRef:
    """Identity of a document as reported by the document store."""

    path: str
    display_name: str
    modify_time: float

    @property
    def extension(self) -> str:
        return PurePosixPath(self.path).suffix.lstrip(".").lower()


@dataclass(slots=True)
class DocumentMetrics:
    """User-assigned metric values for one tracked document.

    ``values`` maps metric ids to scores in [0, 10]. Lookups for a metric the
    document has never been rated on fall back to ``DEFAULT_METRIC_VALUE``.
    ``last_visited`` is an epoch timestamp in milliseconds.
    """

    values: Dict[str, float] = field(default_factory=dict)
    last_visited: int = 0
    visit_count: int = 0

    def value(self, metric_id: str, default: float = DEFAULT_METRIC_VALUE) -> float:
        stored = self.values.get(metric_id)
        return default if stored is None else stored

    def copy(self) -> DocumentMetrics:
        return DocumentMetrics(
            values=dict(self.values),
            last_visited=self.last_visited,
            visit_count=self.visit_count,
        )

    def to_dict(self) -> dict:
        return {
            "values": dict(self.values),
            "last_visited": self.last_visited,
            "visit_count": self.visit_count,
        }


@dataclass(slots=True)
class CustomMetric:
    """A user-defined scoring dimension with a percentage weight."""

    id: str
    display_name: str
    weight: float

    def to_dict(self) -> dict:
        return {"id": self.id, "display_name": self.display_name, "weight": self.weight}


@dataclass(slots=True)
class DocumentVector:
    """Sparse term-weight vector with its L2 magnitude."""

    weights: Dict[str, float] = field(default_factory=dict)
    magnitude: float = 0.0

    @classmethod
    def from_weights(cls, weights: Dict[str, float]) -> DocumentVector:
        copied = dict(weights)
        magnitude = math.sqrt(sum(value * value for value in copied.values()))
        return cls(weights=copied, magnitude=magnitude)

    def __len__(self) -> int:
        return len(self.weights)

    def is_zero(self) -> bool:
        return not any(self.weights.values())


@dataclass(slots=True)
class MetricContribution:
    """One row of a priority weight breakdown."""

    metric_id: str
    name: str
    value: float
    weight: float
    contribution: float


@dataclass(slots=True)
class RankingEntry:
    document: DocumentRef
    metrics: DocumentMetrics
    priority: float
    rank: int = 0
    weight_breakdown: Optional[List[MetricContribution]] = None
    metric_value: Optional[float] = None


@dataclass(slots=True)
class Recommendation:
    document: DocumentRef
    score: float
    metrics: Optional[DocumentMetrics] = None


@dataclass(slots=True)
class RankingStatistics:
    total_documents: int = 0
    average_priority: float = 0.0
    top_priority: float = 0.0
    bottom_priority: float = 0.0
    distribution: Dict[str, int] = field(default_factory=dict)
