"""FastAPI application exposing docrank over HTTP."""

from __future__ import annotations

import logging
import random
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from docrank.config import AppConfig, ConfigError, load_config
from docrank.index.cache import ContentCache, VectorCache, now_ms
from docrank.index.storage import SQLiteMetricsStore
from docrank.ingestion.store import FileSystemDocumentStore
from docrank.models import DocumentMetrics, RankingEntry, Recommendation
from docrank.recommend.aggregator import RecommendationAggregator
from docrank.recommend.coalescer import RequestCoalescer
from docrank.scoring.priority import PriorityScorer, priority_band
from docrank.scoring.ranking import RankingEngine, RankingOptions
from docrank.scoring.selection import DocumentSelector
from docrank.utils.files import iter_markdown_paths, relative_posix, should_include

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="docrank", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.state.root = None
app.state.db_path = None
# shared across requests
app.state.content_cache = ContentCache(namespace="sampled")
app.state.text_cache = ContentCache(namespace="clean")
app.state.vector_cache = VectorCache()
app.state.coalescer = None
app.state.rng = random.Random()


class TrackPayload(BaseModel):
    paths: List[str]


class MetricsPayload(BaseModel):
    path: str
    values: Dict[str, float] = Field(default_factory=dict)


class RecommendationPayload(BaseModel):
    current_path: str | None = None
    full: bool = False


def _load_config() -> AppConfig:
    root = Path(app.state.root) if app.state.root is not None else Path.cwd()
    try:
        config = load_config(root)
    except ConfigError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    if app.state.db_path is not None:
        config.db_path = Path(app.state.db_path)
    return config


def _open_store(config: AppConfig) -> SQLiteMetricsStore:
    resolved_db = config.resolve_db_path()
    resolved_db.parent.mkdir(parents=True, exist_ok=True)
    return SQLiteMetricsStore(resolved_db)


def _metrics_payload(metrics: DocumentMetrics | None) -> Dict[str, Any] | None:
    return metrics.to_dict() if metrics is not None else None


def _entry_payload(entry: RankingEntry) -> Dict[str, Any]:
    return {
        "path": entry.document.path,
        "name": entry.document.display_name,
        "rank": entry.rank,
        "priority": entry.priority,
        "band": priority_band(entry.priority).value,
        "metrics": entry.metrics.to_dict(),
        "breakdown": [asdict(row) for row in entry.weight_breakdown or []],
    }


def _recommendation_payload(recommendation: Recommendation) -> Dict[str, Any]:
    return {
        "path": recommendation.document.path,
        "name": recommendation.document.display_name,
        "score": recommendation.score,
        "metrics": _metrics_payload(recommendation.metrics),
    }


def _snapshot(config: AppConfig) -> tuple[list, Dict[str, DocumentMetrics]]:
    store = _open_store(config)
    try:
        documents = FileSystemDocumentStore(config.root, store.tracked_paths).enumerate_tracked_documents()
        metrics_map = store.all_metrics()
    finally:
        store.close()
    return documents, metrics_map


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


@app.get("/documents")
async def list_documents() -> dict[str, Any]:
    """List tracked documents with their stored metrics."""
    config = _load_config()
    store = _open_store(config)
    try:
        paths = store.tracked_paths()
        metrics_map = store.all_metrics()
        stats = store.get_stats()
    finally:
        store.close()

    scorer = PriorityScorer(config.custom_metrics)
    documents = []
    for path in paths:
        metrics = scorer.get_document_metrics(metrics_map.get(path))
        documents.append(
            {
                "path": path,
                "metrics": metrics.to_dict(),
                "priority": scorer.calculate_priority(metrics),
            }
        )
    return {"documents": documents, "stats": stats}


@app.post("/documents/track")
async def track_documents(payload: TrackPayload) -> dict[str, Any]:
    config = _load_config()
    paths = [path.strip().replace("\\", "/") for path in payload.paths if path.strip()]
    if not paths:
        raise HTTPException(status_code=400, detail="No path provided")

    rejected = [path for path in paths if not should_include(path, config.excluded_paths)]
    accepted = [path for path in paths if path not in rejected]

    scorer = PriorityScorer(config.custom_metrics)
    store = _open_store(config)
    try:
        result = store.track(accepted, scorer.default_metrics())
    finally:
        store.close()
    return {"status": "ok", "added": result.added, "skipped": result.skipped, "excluded": rejected}


@app.post("/documents/metrics")
async def update_document_metrics(payload: MetricsPayload) -> dict[str, Any]:
    """Apply metric updates to a tracked document and stamp the visit."""
    config = _load_config()
    unknown = [metric_id for metric_id in payload.values if config.get_metric(metric_id) is None]
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown metrics: {', '.join(sorted(unknown))}")

    scorer = PriorityScorer(config.custom_metrics)
    store = _open_store(config)
    try:
        if not store.is_tracked(payload.path):
            raise HTTPException(status_code=404, detail=f"Document not tracked: {payload.path}")
        current = scorer.get_document_metrics(store.get_metrics(payload.path))
        updated = scorer.update_metrics(current, payload.values, now=now_ms())
        store.save_metrics(payload.path, updated)
    finally:
        store.close()

    priority = scorer.calculate_priority(updated)
    return {
        "status": "ok",
        "path": payload.path,
        "metrics": updated.to_dict(),
        "priority": priority,
        "band": priority_band(priority).value,
    }


@app.get("/ranking")
async def get_ranking(
    limit: int = 10,
    sort_by: str = "priority",
    sort_order: str = "desc",
    query: str | None = None,
    include_empty: bool = False,
) -> dict[str, Any]:
    if sort_order not in ("asc", "desc"):
        raise HTTPException(status_code=400, detail="sort_order must be 'asc' or 'desc'")
    config = _load_config()
    documents, metrics_map = _snapshot(config)

    engine = RankingEngine(PriorityScorer(config.custom_metrics))
    ranking = engine.generate_ranking(
        documents,
        metrics_map,
        RankingOptions(
            limit=None,
            sort_by=sort_by,
            sort_order=sort_order,  # type: ignore[arg-type]
            include_empty_metrics=include_empty,
        ),
    )
    if query:
        ranking = engine.search_ranking(ranking, query)
    limit = max(1, min(limit, 500))
    return {"ranking": [_entry_payload(entry) for entry in ranking[:limit]]}


@app.get("/ranking/stats")
async def get_ranking_stats() -> dict[str, Any]:
    config = _load_config()
    documents, metrics_map = _snapshot(config)
    engine = RankingEngine(PriorityScorer(config.custom_metrics))
    ranking = engine.generate_ranking(
        documents, metrics_map, RankingOptions(limit=None, include_empty_metrics=True)
    )
    return {"stats": asdict(engine.analyze_ranking(ranking))}


@app.get("/next")
async def get_next_document(skip: str | None = None, untracked: bool = False) -> dict[str, Any]:
    """Pick a tracked document at random, weighted by priority."""
    config = _load_config()
    selector = DocumentSelector(PriorityScorer(config.custom_metrics), app.state.rng)
    documents, metrics_map = _snapshot(config)

    if untracked:
        known = {document.path for document in documents}
        available = [
            relative
            for relative in (relative_posix(path, config.root) for path in iter_markdown_paths([config.root]))
            if relative not in known and should_include(relative, config.excluded_paths)
        ]
        return {"path": selector.pick_untracked(available)}

    documents = [doc for doc in documents if should_include(doc.path, config.excluded_paths)]
    selection = selector.pick_weighted(documents, metrics_map, exclude_path=skip)
    if selection is None:
        return {"selection": None}
    return {
        "selection": {
            "path": selection.document.path,
            "name": selection.document.display_name,
            "priority": selection.priority,
            "probability": selection.probability,
        }
    }


async def _compute_recommendations(current_path: str | None, full: bool) -> List[Recommendation]:
    config = _load_config()
    documents, metrics_map = _snapshot(config)
    tracked = [document.path for document in documents]
    aggregator = RecommendationAggregator(
        FileSystemDocumentStore(config.root, lambda: tracked),
        config,
        lambda: metrics_map,
        content_cache=app.state.content_cache,
        text_cache=app.state.text_cache,
        vector_cache=app.state.vector_cache,
    )
    return await aggregator.recommend(current_path, full=full)


def _coalescer() -> RequestCoalescer[List[Recommendation]]:
    window = _load_config().debounce_seconds
    if app.state.coalescer is None:
        app.state.coalescer = RequestCoalescer(_compute_recommendations, window=window)
    else:
        app.state.coalescer.window = max(0.0, window)
    return app.state.coalescer


@app.post("/recommendations")
async def get_recommendations(payload: RecommendationPayload) -> dict[str, Any]:
    """Recommend documents; bursts of requests collapse into the latest one.

    Requests arriving within `debounce_seconds` of each other share one
    computation. Every caller in the burst gets the result for the last
    request, even when it named a different `current_path`. The window is
    re-read from the config on each request.
    """
    try:
        recommendations = await _coalescer().submit(payload.current_path, payload.full)
    except Exception as exc:
        LOGGER.exception("Recommendation failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return {"recommendations": [_recommendation_payload(rec) for rec in recommendations]}
