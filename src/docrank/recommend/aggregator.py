"""Anchor-based document recommendations.

Two scoring modes are available:

* corpus mode builds one TF-IDF vocabulary over candidates and anchors and
  blends the mean anchor similarity with priority, staleness and
  under-visit terms;
* direct mode compares every candidate with one current document using raw
  term-frequency cosine similarity, skipping the corpus-wide IDF pass.

Both modes fall back to plain priority order when no candidate shows any
textual similarity. Unreadable documents are logged and skipped; a batch
never fails because of a single document.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from docrank.config import AppConfig
from docrank.index.cache import ContentCache, FileContent, VectorCache, now_ms, vector_key
from docrank.index.similarity import cosine_similarity, direct_similarity
from docrank.index.vectorizer import Vocabulary, build_vocabulary, vectorize
from docrank.ingestion.markdown import clean_markdown, extract_sampled_text
from docrank.ingestion.store import DocumentStore, DocumentStoreError
from docrank.models import DocumentMetrics, DocumentRef, DocumentVector, Recommendation
from docrank.scoring.priority import PriorityScorer
from docrank.utils.files import should_include

LOGGER = logging.getLogger(__name__)

MIN_CONTENT_CHARS = 10
MS_PER_DAY = 24 * 60 * 60 * 1000
NEVER_VISITED_DAYS = 999.0

SIMILARITY_WEIGHT = 0.4
PRIORITY_WEIGHT = 0.3
STALENESS_WEIGHT = 0.2
EXPLORATION_WEIGHT = 0.1


class EmptyContentError(ValueError):
    """Raised when a document has too little text to compare."""


MetricsSource = Callable[[], Mapping[str, DocumentMetrics]]


def composite_score(
    similarity: float,
    priority: float,
    metrics: DocumentMetrics,
    *,
    now: int,
) -> float:
    """Blend relevance, quality, staleness and under-visit into one score."""
    if metrics.last_visited > 0:
        days_since_visit = max(0.0, (now - metrics.last_visited) / MS_PER_DAY)
    else:
        days_since_visit = NEVER_VISITED_DAYS
    staleness = min(days_since_visit / 30, 1.0)
    exploration = max(0.0, 1 - metrics.visit_count * 0.1)
    return (
        SIMILARITY_WEIGHT * similarity
        + PRIORITY_WEIGHT * (priority / 50)
        + STALENESS_WEIGHT * staleness
        + EXPLORATION_WEIGHT * exploration
    )


def deduplicate(recommendations: Iterable[Recommendation]) -> List[Recommendation]:
    """Keep one recommendation per path, the one with the highest score.

    The surviving entries keep the position of the first occurrence.
    """
    best: Dict[str, Recommendation] = {}
    for recommendation in recommendations:
        path = recommendation.document.path
        existing = best.get(path)
        if existing is None or recommendation.score > existing.score:
            if existing is not None:
                LOGGER.debug(
                    "Duplicate recommendation for %s, keeping %.4f over %.4f",
                    path,
                    recommendation.score,
                    existing.score,
                )
            best[path] = recommendation
    return list(best.values())


def _vocabulary_fingerprint(vocabulary: Vocabulary) -> str:
    digest = hashlib.sha256(str(vocabulary.total_documents).encode("utf-8"))
    for term in sorted(vocabulary.document_frequencies):
        digest.update(f"\0{term}\0{vocabulary.document_frequencies[term]}".encode("utf-8"))
    return digest.hexdigest()[:16]


class RecommendationAggregator:
    """Rank tracked documents as reading recommendations."""

    def __init__(
        self,
        store: DocumentStore,
        config: AppConfig,
        metrics_source: MetricsSource,
        *,
        scorer: Optional[PriorityScorer] = None,
        content_cache: Optional[ContentCache] = None,
        text_cache: Optional[ContentCache] = None,
        vector_cache: Optional[VectorCache] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.config = config
        self._metrics_source = metrics_source
        self.scorer = scorer or PriorityScorer(config.custom_metrics)
        self._clock = clock
        # sampled title + paragraphs for corpus vectors
        self.content_cache = content_cache or ContentCache(namespace="sampled", clock=clock)
        # whole cleaned text for pairwise comparison
        self.text_cache = text_cache or ContentCache(namespace="clean", clock=clock)
        self.vector_cache = vector_cache or VectorCache(clock=clock)

    async def _read_sampled(self, path: str) -> str:
        text = await self.store.read_text(path)
        return extract_sampled_text(text, max_paragraphs=self.config.recommendation.max_paragraphs)

    async def _read_clean(self, path: str) -> str:
        return clean_markdown(await self.store.read_text(path))

    async def _comparable_text(self, document: DocumentRef) -> FileContent:
        content = await self.text_cache.get_content(document, self._read_clean)
        if len(content.text) < MIN_CONTENT_CHARS:
            raise EmptyContentError(f"{document.path} has too little text to compare")
        return content

    def _metrics_for(self, metrics_map: Mapping[str, DocumentMetrics], path: str) -> DocumentMetrics:
        return self.scorer.get_document_metrics(metrics_map.get(path))

    def select_anchors(
        self,
        documents: Sequence[DocumentRef],
        metrics_map: Mapping[str, DocumentMetrics],
        *,
        exclude_path: Optional[str] = None,
    ) -> List[DocumentRef]:
        """Most recently visited plus most frequently visited documents."""
        settings = self.config.recommendation
        pool = [doc for doc in documents if doc.path != exclude_path]
        metrics = {doc.path: self._metrics_for(metrics_map, doc.path) for doc in pool}

        recent = sorted(pool, key=lambda doc: metrics[doc.path].last_visited, reverse=True)
        frequent = sorted(pool, key=lambda doc: metrics[doc.path].visit_count, reverse=True)

        anchors: Dict[str, DocumentRef] = {}
        for doc in recent[: settings.recent_count] + frequent[: settings.top_count]:
            anchors.setdefault(doc.path, doc)
        return list(anchors.values())

    def priority_fallback(
        self,
        candidates: Sequence[DocumentRef],
        metrics_map: Mapping[str, DocumentMetrics],
    ) -> List[Recommendation]:
        """Rank by priority alone, scores scaled to [0, 1]."""
        recommendations = []
        for document in candidates:
            metrics = self._metrics_for(metrics_map, document.path)
            priority = self.scorer.calculate_priority(metrics)
            recommendations.append(Recommendation(document=document, score=priority / 10, metrics=metrics))
        recommendations.sort(key=lambda rec: rec.score, reverse=True)
        return recommendations

    async def _load_corpus_tokens(self, documents: Iterable[DocumentRef]) -> Dict[str, List[str]]:
        tokens: Dict[str, List[str]] = {}
        for document in documents:
            if document.path in tokens:
                continue
            try:
                content = await self.content_cache.get_content(document, self._read_sampled)
            except DocumentStoreError as exc:
                LOGGER.warning("Skipping %s: %s", document.path, exc)
                continue
            # too-short documents stay in the corpus as zero vectors
            tokens[document.path] = content.tokens if len(content.text) >= MIN_CONTENT_CHARS else []
        return tokens

    def _vector_for(
        self,
        document: DocumentRef,
        tokens: Sequence[str],
        vocabulary: Vocabulary,
        fingerprint: str,
    ) -> DocumentVector:
        key = vector_key(document, fingerprint)
        cached = self.vector_cache.get_vector(key)
        if cached is not None:
            return cached
        return self.vector_cache.set_vector(key, vectorize(tokens, vocabulary))

    async def score_corpus(
        self,
        candidates: Sequence[DocumentRef],
        anchors: Sequence[DocumentRef],
        metrics_map: Mapping[str, DocumentMetrics],
    ) -> List[Recommendation]:
        tokens = await self._load_corpus_tokens(list(candidates) + list(anchors))
        if not tokens:
            return []

        vocabulary = build_vocabulary(tokens.values())
        fingerprint = _vocabulary_fingerprint(vocabulary)
        anchor_vectors = [
            (anchor.path, self._vector_for(anchor, tokens[anchor.path], vocabulary, fingerprint))
            for anchor in anchors
            if anchor.path in tokens
        ]

        now = self._clock()
        scored: List[Recommendation] = []
        any_similarity = False
        for candidate in candidates:
            if candidate.path not in tokens:
                continue
            vector = self._vector_for(candidate, tokens[candidate.path], vocabulary, fingerprint)
            similarities = [
                similarity
                for path, anchor_vector in anchor_vectors
                if path != candidate.path
                for similarity in (cosine_similarity(vector, anchor_vector),)
                if similarity > 0
            ]
            average = sum(similarities) / len(similarities) if similarities else 0.0
            any_similarity = any_similarity or average > 0

            metrics = self._metrics_for(metrics_map, candidate.path)
            priority = self.scorer.calculate_priority(metrics)
            score = composite_score(average, priority, metrics, now=now)
            LOGGER.debug("%s: similarity %.4f, score %.4f", candidate.path, average, score)
            scored.append(Recommendation(document=candidate, score=score, metrics=metrics))

        if not any_similarity:
            LOGGER.info("No candidate is similar to any anchor, ranking by priority")
            return self.priority_fallback([rec.document for rec in scored], metrics_map)

        scored.sort(key=lambda rec: rec.score, reverse=True)
        return scored

    async def score_direct(
        self,
        current: DocumentRef,
        candidates: Sequence[DocumentRef],
        metrics_map: Mapping[str, DocumentMetrics],
    ) -> List[Recommendation]:
        try:
            reference = await self._comparable_text(current)
        except (DocumentStoreError, EmptyContentError) as exc:
            LOGGER.info("Cannot compare against %s (%s), ranking by priority", current.path, exc)
            return self.priority_fallback(candidates, metrics_map)

        scored: List[Recommendation] = []
        for candidate in candidates:
            try:
                content = await self._comparable_text(candidate)
                similarity = direct_similarity(reference.text, content.text)
            except EmptyContentError as exc:
                LOGGER.debug("%s", exc)
                similarity = 0.0
            except DocumentStoreError as exc:
                LOGGER.warning("Skipping %s: %s", candidate.path, exc)
                continue
            metrics = self._metrics_for(metrics_map, candidate.path)
            scored.append(Recommendation(document=candidate, score=similarity, metrics=metrics))

        if not any(rec.score > 0 for rec in scored):
            LOGGER.info("No document is similar to %s, ranking by priority", current.path)
            return self.priority_fallback([rec.document for rec in scored], metrics_map)

        scored.sort(key=lambda rec: rec.score, reverse=True)
        return scored

    def _describe(self, path: str, documents: Sequence[DocumentRef]) -> Optional[DocumentRef]:
        for document in documents:
            if document.path == path:
                return document
        try:
            return self.store.describe(path)
        except DocumentStoreError as exc:
            LOGGER.warning("Current document %s is unavailable: %s", path, exc)
            return None

    async def recommend(
        self,
        current_path: Optional[str] = None,
        *,
        full: bool = False,
    ) -> List[Recommendation]:
        """Return up to ``top_k`` recommendations among tracked documents.

        With ``current_path`` the candidates are compared directly against that
        document; without it, or when ``full`` is set, the corpus mode runs
        against anchors chosen from visit history, led by the current document
        when there is one. A candidate is never its own anchor.
        """
        settings = self.config.recommendation
        documents = [
            doc
            for doc in self.store.enumerate_tracked_documents()
            if should_include(doc.path, self.config.excluded_paths)
        ]
        candidates = [doc for doc in documents if doc.path != current_path][: settings.max_candidates]
        if not candidates:
            LOGGER.info("No tracked documents to recommend")
            return []

        metrics_map = self._metrics_source()
        current = self._describe(current_path, documents) if current_path else None

        if current is not None and not full:
            recommendations = await self.score_direct(current, candidates, metrics_map)
        else:
            anchors = self.select_anchors(documents, metrics_map)
            if current is not None:
                anchors = [current] + [doc for doc in anchors if doc.path != current.path]
            recommendations = await self.score_corpus(candidates, anchors, metrics_map)

        unique = deduplicate(recommendations)
        unique.sort(key=lambda rec: rec.score, reverse=True)
        return unique[: settings.top_k]
