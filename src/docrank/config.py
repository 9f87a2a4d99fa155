"""Application configuration defaults and custom-metric management."""

from __future__ import annotations

import json
import math
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from docrank.models import CustomMetric
from docrank.scoring.priority import normalize_weights

LOGGER = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".docrank"
CONFIG_FILE_NAME = "config.json"
DB_FILE_NAME = "docrank.db"
MAX_METRICS = 10

DEFAULT_EXCLUDED_PATHS = (
    "Templates/**",
    "Scripts/**",
    "Archive/**",
    ".obsidian/**",
    "**/.git/**",
)


class ConfigError(ValueError):
    """Raised when a configuration file or value is invalid."""


def _default_metrics() -> List[CustomMetric]:
    return [
        CustomMetric(id="importance", display_name="Importance", weight=40),
        CustomMetric(id="urgency", display_name="Urgency", weight=30),
        CustomMetric(id="completion", display_name="Completion", weight=30),
    ]


_ID_INVALID_RE = re.compile(r"[^\w\u4e00-\u9fff]")
_ID_UNDERSCORES_RE = re.compile(r"_+")


def metric_id_from_name(name: str, existing: Optional[set] = None) -> str:
    """Derive a stable metric id from a display name.

    ``"Reading Time (min)"`` becomes ``"reading_time_min"``. When the id is
    already taken a numeric suffix is appended.
    """
    base = _ID_INVALID_RE.sub("_", name.strip().lower())
    base = _ID_UNDERSCORES_RE.sub("_", base).strip("_") or "metric"
    if not existing or base not in existing:
        return base
    suffix = 2
    while f"{base}_{suffix}" in existing:
        suffix += 1
    return f"{base}_{suffix}"


def _clamp_int(value: Any, low: int, high: int, name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc
    return max(low, min(high, number))


def _parse_seconds(value: Any, name: str) -> float:
    try:
        seconds = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number of seconds, got {value!r}") from exc
    if not math.isfinite(seconds):
        raise ConfigError(f"{name} must be finite, got {value!r}")
    return max(0.0, seconds)


@dataclass(slots=True)
class RecommendationSettings:
    recent_count: int = 5
    top_count: int = 5
    top_k: int = 10
    max_candidates: int = 100
    max_paragraphs: int = 5

    def __post_init__(self) -> None:
        self.recent_count = _clamp_int(self.recent_count, 0, 100, "recent_count")
        self.top_count = _clamp_int(self.top_count, 0, 100, "top_count")
        self.top_k = _clamp_int(self.top_k, 1, 1000, "top_k")
        self.max_candidates = _clamp_int(self.max_candidates, 10, 1000, "max_candidates")
        self.max_paragraphs = _clamp_int(self.max_paragraphs, 1, 100, "max_paragraphs")

    def to_dict(self) -> Dict[str, int]:
        return {
            "recent_count": self.recent_count,
            "top_count": self.top_count,
            "top_k": self.top_k,
            "max_candidates": self.max_candidates,
            "max_paragraphs": self.max_paragraphs,
        }


@dataclass(slots=True)
class AppConfig:
    root: Path = field(default_factory=Path.cwd)
    db_path: Path | None = None
    custom_metrics: List[CustomMetric] = field(default_factory=_default_metrics)
    recommendation: RecommendationSettings = field(default_factory=RecommendationSettings)
    excluded_paths: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDED_PATHS))
    debounce_seconds: float = 0.1

    def __post_init__(self) -> None:
        self.root = Path(self.root)
        if self.db_path is None:
            self.db_path = Path(CONFIG_DIR_NAME) / DB_FILE_NAME
        if self.custom_metrics:
            normalize_weights(self.custom_metrics)

    def resolve_db_path(self, base_dir: Path | None = None) -> Path:
        if self.db_path is None:
            self.db_path = Path(CONFIG_DIR_NAME) / DB_FILE_NAME
        base = self.root if base_dir is None else base_dir
        if Path(self.db_path).is_absolute():
            return Path(self.db_path)
        return base / self.db_path

    @property
    def metric_weights(self) -> Dict[str, float]:
        return {metric.id: metric.weight for metric in self.custom_metrics}

    def get_metric(self, metric_id: str) -> Optional[CustomMetric]:
        return next((m for m in self.custom_metrics if m.id == metric_id), None)

    def add_metric(self, display_name: str, weight: float) -> CustomMetric:
        if len(self.custom_metrics) >= MAX_METRICS:
            raise ConfigError(f"At most {MAX_METRICS} metrics are supported")
        if not display_name.strip():
            raise ConfigError("Metric name must not be empty")
        metric = CustomMetric(
            id=metric_id_from_name(display_name, {m.id for m in self.custom_metrics}),
            display_name=display_name.strip(),
            weight=max(0.0, min(100.0, float(weight))),
        )
        self.custom_metrics.append(metric)
        normalize_weights(self.custom_metrics)
        return metric

    def remove_metric(self, metric_id: str) -> CustomMetric:
        metric = self.get_metric(metric_id)
        if metric is None:
            raise ConfigError(f"Unknown metric: {metric_id}")
        if len(self.custom_metrics) == 1:
            raise ConfigError("At least one metric is required")
        self.custom_metrics.remove(metric)
        normalize_weights(self.custom_metrics)
        return metric

    def update_metric(
        self,
        metric_id: str,
        *,
        display_name: Optional[str] = None,
        weight: Optional[float] = None,
    ) -> CustomMetric:
        """Rename or reweight a metric. The id never changes."""
        metric = self.get_metric(metric_id)
        if metric is None:
            raise ConfigError(f"Unknown metric: {metric_id}")
        if display_name is not None and display_name.strip():
            metric.display_name = display_name.strip()
        if weight is not None:
            metric.weight = max(0.0, min(100.0, float(weight)))
        normalize_weights(self.custom_metrics)
        return metric

    def set_metric_count(self, count: int) -> None:
        """Grow with generic metrics or truncate the list to ``count`` entries."""
        if not 1 <= count <= MAX_METRICS:
            raise ConfigError(f"Metric count must be between 1 and {MAX_METRICS}")
        current = len(self.custom_metrics)
        if count > current:
            for index in range(current, count):
                name = f"Metric {index + 1}"
                self.custom_metrics.append(
                    CustomMetric(
                        id=metric_id_from_name(name, {m.id for m in self.custom_metrics}),
                        display_name=name,
                        weight=100 // count,
                    )
                )
        elif count < current:
            del self.custom_metrics[count:]
        normalize_weights(self.custom_metrics)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "db_path": str(self.db_path) if self.db_path is not None else None,
            "custom_metrics": [metric.to_dict() for metric in self.custom_metrics],
            "recommendation": self.recommendation.to_dict(),
            "excluded_paths": list(self.excluded_paths),
            "debounce_seconds": self.debounce_seconds,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], *, root: Path) -> AppConfig:
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a JSON object")

        metrics: List[CustomMetric] = []
        seen: set = set()
        for raw in data.get("custom_metrics") or []:
            if not isinstance(raw, dict) or not raw.get("display_name"):
                raise ConfigError(f"Invalid metric entry: {raw!r}")
            metric_id = raw.get("id") or metric_id_from_name(str(raw["display_name"]), seen)
            if metric_id in seen:
                raise ConfigError(f"Duplicate metric id: {metric_id}")
            seen.add(metric_id)
            try:
                weight = max(0.0, min(100.0, float(raw.get("weight", 0))))
            except (TypeError, ValueError) as exc:
                raise ConfigError(f"Invalid weight for metric {metric_id}") from exc
            metrics.append(CustomMetric(id=metric_id, display_name=str(raw["display_name"]), weight=weight))

        recommendation = data.get("recommendation") or {}
        if not isinstance(recommendation, dict):
            raise ConfigError("recommendation must be an object")
        unknown = set(recommendation) - set(RecommendationSettings.__dataclass_fields__)
        if unknown:
            raise ConfigError(f"Unknown recommendation settings: {', '.join(sorted(unknown))}")

        excluded = data.get("excluded_paths", list(DEFAULT_EXCLUDED_PATHS))
        if not isinstance(excluded, list):
            raise ConfigError("excluded_paths must be a list")

        db_path = data.get("db_path")
        return cls(
            root=root,
            db_path=Path(db_path) if db_path else None,
            custom_metrics=metrics or _default_metrics(),
            recommendation=RecommendationSettings(**recommendation),
            excluded_paths=[path for path in excluded if isinstance(path, str)],
            debounce_seconds=_parse_seconds(data.get("debounce_seconds", 0.1), "debounce_seconds"),
        )


def default_config_path(root: Path) -> Path:
    return Path(root) / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def load_config(root: Path, config_path: Path | None = None) -> AppConfig:
    """Load configuration for ``root``, falling back to defaults when absent."""
    path = config_path or default_config_path(root)
    if not path.exists():
        LOGGER.debug("No configuration at %s, using defaults", path)
        return AppConfig(root=root)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid configuration file {path}: {exc}") from exc
    return AppConfig.from_dict(data, root=root)


def save_config(config: AppConfig, config_path: Path | None = None) -> Path:
    path = config_path or default_config_path(config.root)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(config.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
    return path
