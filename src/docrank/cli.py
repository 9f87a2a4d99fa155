"""Command line interface for docrank."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from docrank.config import AppConfig, ConfigError, load_config, save_config
from docrank.index.cache import now_ms
from docrank.index.storage import SQLiteMetricsStore
from docrank.ingestion.store import FileSystemDocumentStore
from docrank.recommend.aggregator import RecommendationAggregator
from docrank.scoring.priority import PriorityScorer, priority_band
from docrank.scoring.ranking import RankingEngine, RankingOptions
from docrank.scoring.selection import DocumentSelector
from docrank.utils.files import iter_markdown_paths, relative_posix, should_include
from docrank.web.app import app as web_app


console = Console()
app = typer.Typer(help="docrank - prioritise and recommend Markdown notes")
metrics_app = typer.Typer(help="Manage the custom metrics used for priority scoring")
app.add_typer(metrics_app, name="metrics")

ROOT_OPTION = typer.Option(Path("."), "--root", help="Document root directory", resolve_path=True)
DB_OPTION = typer.Option(None, "--db", help="SQLite database path")
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Verbose logging")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _load(root: Path, db: Optional[Path]) -> AppConfig:
    try:
        config = load_config(root)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc
    if db is not None:
        config.db_path = db
    return config


def _open_store(config: AppConfig) -> SQLiteMetricsStore:
    resolved_db = config.resolve_db_path()
    _ensure_db_parent(resolved_db)
    return SQLiteMetricsStore(resolved_db)


def _parse_assignments(assignments: List[str], config: AppConfig) -> Dict[str, float]:
    values: Dict[str, float] = {}
    for item in assignments:
        metric_id, sep, raw = item.partition("=")
        metric_id = metric_id.strip()
        if not sep or not metric_id:
            raise typer.BadParameter(f"Expected METRIC=VALUE, got {item!r}")
        if config.get_metric(metric_id) is None:
            known = ", ".join(m.id for m in config.custom_metrics)
            raise typer.BadParameter(f"Unknown metric {metric_id!r} (known: {known})")
        try:
            values[metric_id] = float(raw)
        except ValueError as exc:
            raise typer.BadParameter(f"Metric value must be a number, got {raw!r}") from exc
    return values


@app.command()
def track(
    inputs: List[Path] = typer.Argument(
        ..., help="Markdown files or directories to track.", resolve_path=True
    ),
    root: Path = ROOT_OPTION,
    db: Path = DB_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Start tracking Markdown documents."""
    _setup_logging(verbose)
    config = _load(root, db)

    paths: List[str] = []
    for path in iter_markdown_paths(inputs):
        try:
            relative = relative_posix(path, config.root)
        except ValueError:
            console.print(f"[yellow]Skipping {path}: outside {config.root}[/yellow]")
            continue
        if should_include(relative, config.excluded_paths):
            paths.append(relative)

    if not paths:
        console.print("[yellow]No Markdown documents found.[/yellow]")
        return

    scorer = PriorityScorer(config.custom_metrics)
    store = _open_store(config)
    try:
        result = store.track(paths, scorer.default_metrics())
    finally:
        store.close()
    console.print(f"Tracked: {result.added}, already tracked: {result.skipped}")


@app.command()
def untrack(
    path: str = typer.Argument(..., help="Document path relative to the root"),
    root: Path = ROOT_OPTION,
    db: Path = DB_OPTION,
) -> None:
    """Stop tracking a document. Its metrics are kept."""
    config = _load(root, db)
    store = _open_store(config)
    try:
        removed = store.untrack(path)
    finally:
        store.close()
    if not removed:
        console.print(f"[yellow]{path} is not tracked.[/yellow]")
        return
    console.print(f"Untracked {path}")


@app.command()
def rate(
    path: str = typer.Argument(..., help="Document path relative to the root"),
    assignments: List[str] = typer.Option(
        ..., "--set", "-s", help="Metric assignment such as importance=8"
    ),
    root: Path = ROOT_OPTION,
    db: Path = DB_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Set metric values on a tracked document."""
    _setup_logging(verbose)
    config = _load(root, db)
    updates = _parse_assignments(assignments, config)
    _record_visit(config, path, updates)


@app.command()
def visit(
    path: str = typer.Argument(..., help="Document path relative to the root"),
    root: Path = ROOT_OPTION,
    db: Path = DB_OPTION,
) -> None:
    """Record that a tracked document was opened."""
    _record_visit(_load(root, db), path, {})


def _record_visit(config: AppConfig, path: str, updates: Dict[str, float]) -> None:
    scorer = PriorityScorer(config.custom_metrics)
    store = _open_store(config)
    try:
        if not store.is_tracked(path):
            raise typer.BadParameter(f"{path} is not tracked")
        current = scorer.get_document_metrics(store.get_metrics(path))
        updated = scorer.update_metrics(current, updates, now=now_ms())
        store.save_metrics(path, updated)
    finally:
        store.close()
    priority = scorer.calculate_priority(updated)
    console.print(
        f"{path}: priority [bold]{priority:.2f}[/bold] ({priority_band(priority).value}), "
        f"visits: {updated.visit_count}"
    )


@app.command()
def rank(
    limit: int = typer.Option(10, help="Number of documents to display"),
    sort_by: str = typer.Option("priority", help="priority, visit_count, last_visited or a metric id"),
    ascending: bool = typer.Option(False, "--asc", help="Sort ascending"),
    query: Optional[str] = typer.Option(None, help="Filter by name or path"),
    include_empty: bool = typer.Option(False, help="Include documents scoring 0"),
    root: Path = ROOT_OPTION,
    db: Path = DB_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Show tracked documents ordered by priority."""
    _setup_logging(verbose)
    config = _load(root, db)
    store = _open_store(config)
    try:
        documents = FileSystemDocumentStore(config.root, store.tracked_paths).enumerate_tracked_documents()
        metrics_map = store.all_metrics()
    finally:
        store.close()

    engine = RankingEngine(PriorityScorer(config.custom_metrics))
    options = RankingOptions(
        limit=None if query else limit,
        sort_by=sort_by,
        sort_order="asc" if ascending else "desc",
        include_empty_metrics=include_empty,
    )
    ranking = engine.generate_ranking(documents, metrics_map, options)
    if query:
        ranking = engine.search_ranking(ranking, query)[:limit]

    if not ranking:
        console.print("[yellow]No tracked documents.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Rank")
    table.add_column("Priority")
    table.add_column("Band")
    table.add_column("Visits")
    table.add_column("Document")
    for entry in ranking:
        table.add_row(
            str(entry.rank),
            f"{entry.priority:.2f}",
            priority_band(entry.priority).value,
            str(entry.metrics.visit_count),
            entry.document.path,
        )
    console.print(table)


@app.command()
def recommend(
    current: Optional[str] = typer.Argument(None, help="Document currently being read"),
    full: bool = typer.Option(False, "--full", help="Score against visit-history anchors"),
    top_k: Optional[int] = typer.Option(None, help="Override the number of recommendations"),
    root: Path = ROOT_OPTION,
    db: Path = DB_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Recommend what to read next."""
    _setup_logging(verbose)
    config = _load(root, db)
    if top_k is not None:
        config.recommendation.top_k = max(1, top_k)

    store = _open_store(config)
    try:
        aggregator = RecommendationAggregator(
            FileSystemDocumentStore(config.root, store.tracked_paths),
            config,
            store.all_metrics,
        )
        recommendations = asyncio.run(aggregator.recommend(current, full=full))
    finally:
        store.close()

    if not recommendations:
        console.print("[yellow]Nothing to recommend.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Score")
    table.add_column("Document")
    table.add_column("Visits")
    for recommendation in recommendations:
        visits = recommendation.metrics.visit_count if recommendation.metrics else 0
        table.add_row(f"{recommendation.score:.4f}", recommendation.document.path, str(visits))
    console.print(table)


@app.command("next")
def next_document(
    skip: Optional[str] = typer.Option(None, "--skip", help="Document to leave out, such as the one just read"),
    untracked: bool = typer.Option(False, "--untracked", help="Pick a random document that is not tracked yet"),
    root: Path = ROOT_OPTION,
    db: Path = DB_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Pick something to read at random, weighted by priority."""
    _setup_logging(verbose)
    config = _load(root, db)
    selector = DocumentSelector(PriorityScorer(config.custom_metrics))
    store = _open_store(config)
    try:
        tracked = store.tracked_paths()
        documents = FileSystemDocumentStore(config.root, lambda: tracked).enumerate_tracked_documents()
        metrics_map = store.all_metrics()
    finally:
        store.close()

    if untracked:
        known = set(tracked)
        available = [
            relative
            for relative in (relative_posix(path, config.root) for path in iter_markdown_paths([config.root]))
            if relative not in known and should_include(relative, config.excluded_paths)
        ]
        picked = selector.pick_untracked(available)
        if picked is None:
            console.print("[yellow]Every document is already tracked.[/yellow]")
            return
        console.print(f"Next untracked: {picked}")
        return

    documents = [doc for doc in documents if should_include(doc.path, config.excluded_paths)]
    selection = selector.pick_weighted(documents, metrics_map, exclude_path=skip)
    if selection is None:
        console.print("[yellow]No tracked documents.[/yellow]")
        return
    console.print(
        f"Next: {selection.document.path} (priority {selection.priority:.2f}, "
        f"chance {selection.probability * 100:.1f}%)"
    )


@app.command()
def stats(
    root: Path = ROOT_OPTION,
    db: Path = DB_OPTION,
) -> None:
    """Summarise tracked documents and their priority distribution."""
    config = _load(root, db)
    store = _open_store(config)
    try:
        documents = FileSystemDocumentStore(config.root, store.tracked_paths).enumerate_tracked_documents()
        metrics_map = store.all_metrics()
        counts = store.get_stats()
    finally:
        store.close()

    engine = RankingEngine(PriorityScorer(config.custom_metrics))
    summary = engine.analyze_ranking(
        engine.generate_ranking(documents, metrics_map, RankingOptions(limit=None, include_empty_metrics=True))
    )
    console.print(f"Tracked documents: {counts['tracked_count']}")
    console.print(f"Documents with metrics: {counts['metrics_count']}")
    console.print(
        f"Priority average {summary.average_priority:.2f}, "
        f"top {summary.top_priority:.2f}, bottom {summary.bottom_priority:.2f}"
    )
    for bucket, count in summary.distribution.items():
        console.print(f"  {bucket}: {count}")


@app.command("reset-history")
def reset_history(
    untrack_all: bool = typer.Option(False, "--untrack-all", help="Also clear the tracked set"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    root: Path = ROOT_OPTION,
    db: Path = DB_OPTION,
) -> None:
    """Zero visit history for every document."""
    if not yes:
        typer.confirm("Reset visit history for all documents?", abort=True)
    config = _load(root, db)
    store = _open_store(config)
    try:
        reset = store.reset_history(untrack_all=untrack_all)
    finally:
        store.close()
    console.print(f"Reset history for {reset} documents.")


@app.command()
def prune(
    root: Path = ROOT_OPTION,
    db: Path = DB_OPTION,
) -> None:
    """Untrack documents that no longer exist on disk."""
    config = _load(root, db)
    resolved_db = config.resolve_db_path()
    if not resolved_db.exists():
        console.print("[yellow]Database not found, nothing to prune.[/yellow]")
        return
    store = SQLiteMetricsStore(resolved_db)
    try:
        removed = store.remove_missing(config.root)
    finally:
        store.close()
    console.print(f"Removed {removed} missing documents.")


@metrics_app.command("list")
def metrics_list(root: Path = ROOT_OPTION) -> None:
    """Show the configured metrics and their weights."""
    config = _load(root, None)
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Id")
    table.add_column("Name")
    table.add_column("Weight")
    for metric in config.custom_metrics:
        table.add_row(metric.id, metric.display_name, f"{metric.weight:g}%")
    console.print(table)


@metrics_app.command("add")
def metrics_add(
    name: str = typer.Argument(..., help="Display name of the new metric"),
    weight: float = typer.Option(20.0, help="Relative weight before normalisation"),
    root: Path = ROOT_OPTION,
) -> None:
    """Add a metric; weights are renormalised to sum to 100."""
    config = _load(root, None)
    try:
        metric = config.add_metric(name, weight)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc
    save_config(config)
    console.print(f"Added metric [bold]{metric.id}[/bold] ({metric.weight:g}%)")


@metrics_app.command("update")
def metrics_update(
    metric_id: str = typer.Argument(..., help="Metric id"),
    name: Optional[str] = typer.Option(None, help="New display name"),
    weight: Optional[float] = typer.Option(None, help="New relative weight"),
    root: Path = ROOT_OPTION,
) -> None:
    """Rename or reweight a metric."""
    config = _load(root, None)
    try:
        metric = config.update_metric(metric_id, display_name=name, weight=weight)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc
    save_config(config)
    console.print(f"Updated metric [bold]{metric.id}[/bold] ({metric.weight:g}%)")


@metrics_app.command("remove")
def metrics_remove(
    metric_id: str = typer.Argument(..., help="Metric id"),
    root: Path = ROOT_OPTION,
    db: Path = DB_OPTION,
) -> None:
    """Remove a metric and drop its stored values."""
    config = _load(root, None)
    try:
        config.remove_metric(metric_id)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc
    save_config(config)
    if db is not None:
        config.db_path = db

    touched = 0
    if config.resolve_db_path().exists():
        store = SQLiteMetricsStore(config.resolve_db_path())
        try:
            touched = store.remove_metric_key(metric_id)
        finally:
            store.close()
    console.print(f"Removed metric {metric_id} ({touched} stored entries updated)")


@metrics_app.command("count")
def metrics_count(
    count: int = typer.Argument(..., help="Number of metrics (1-10)"),
    root: Path = ROOT_OPTION,
) -> None:
    """Grow or shrink the metric list."""
    config = _load(root, None)
    try:
        config.set_metric_count(count)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc
    save_config(config)
    console.print(f"Now using {len(config.custom_metrics)} metrics.")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
    root: Path = ROOT_OPTION,
    db: Path = DB_OPTION,
) -> None:
    """Start the HTTP API."""
    import uvicorn

    config = _load(root, db)
    resolved_db = config.resolve_db_path()
    if not resolved_db.exists():
        console.print("[yellow]Warning: database not found, nothing is tracked yet.[/yellow]")

    web_app.state.root = config.root
    web_app.state.db_path = db
    console.print(f"Starting web API on http://{host}:{port} (root: {config.root})")
    uvicorn.run(
        web_app,
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )
