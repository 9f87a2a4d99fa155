"""Random picks of what to read next."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence

from docrank.models import DocumentMetrics, DocumentRef
from docrank.scoring.priority import PriorityScorer

LOGGER = logging.getLogger(__name__)

MIN_SELECTION_WEIGHT = 0.1


@dataclass(slots=True)
class Selection:
    document: DocumentRef
    metrics: DocumentMetrics
    priority: float
    probability: float


class DocumentSelector:
    """Pick documents at random, favouring high priority.

    Each tracked document is drawn with probability proportional to
    ``max(0.1, priority)``, so zero-priority documents still come up now and
    then. ``rng`` can be any ``random.Random`` for reproducible draws.
    """

    def __init__(self, scorer: PriorityScorer, rng: Optional[random.Random] = None) -> None:
        self.scorer = scorer
        self._rng = rng or random.Random()

    def selection_weights(
        self,
        documents: Sequence[DocumentRef],
        metrics_map: Mapping[str, DocumentMetrics],
    ) -> List[Selection]:
        """Every document with its priority and chance of being picked."""
        selections = []
        for document in documents:
            metrics = self.scorer.get_document_metrics(metrics_map.get(document.path))
            priority = self.scorer.calculate_priority(metrics)
            selections.append(
                Selection(document=document, metrics=metrics, priority=priority, probability=0.0)
            )

        total = sum(max(MIN_SELECTION_WEIGHT, item.priority) for item in selections)
        for item in selections:
            item.probability = max(MIN_SELECTION_WEIGHT, item.priority) / total
        return selections

    def pick_weighted(
        self,
        documents: Sequence[DocumentRef],
        metrics_map: Mapping[str, DocumentMetrics],
        *,
        exclude_path: Optional[str] = None,
    ) -> Optional[Selection]:
        pool = [doc for doc in documents if doc.path != exclude_path]
        if not pool:
            return None

        selections = self.selection_weights(pool, metrics_map)
        threshold = self._rng.random()
        cumulative = 0.0
        for item in selections:
            cumulative += item.probability
            if threshold < cumulative:
                break
        LOGGER.debug("Picked %s with probability %.3f", item.document.path, item.probability)
        return item

    def pick_untracked(self, paths: Sequence[str]) -> Optional[str]:
        """Uniform pick among documents that are not tracked yet."""
        if not paths:
            return None
        return self._rng.choice(list(paths))
