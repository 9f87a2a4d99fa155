"""Utility helpers for working with files and path patterns."""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Iterator, Sequence

MARKDOWN_SUFFIXES = (".md", ".markdown")


def iter_markdown_paths(inputs: Iterable[Path]) -> Iterator[Path]:
    """Yield Markdown paths from input paths, descending into directories."""
    for item in inputs:
        if item.is_dir():
            children = sorted(
                child for child in item.rglob("*") if child.suffix.lower() in MARKDOWN_SUFFIXES
            )
            yield from iter_markdown_paths(children)
        elif item.is_file() and item.suffix.lower() in MARKDOWN_SUFFIXES:
            yield item


@lru_cache(maxsize=256)
def _compile_pattern(pattern: str) -> re.Pattern[str]:
    parts = (re.escape(part) for part in pattern.split("*"))
    return re.compile(".*".join(parts), re.IGNORECASE)


def matches_excluded(path: str, patterns: Sequence[str]) -> bool:
    """Return True when ``path`` matches any exclusion pattern.

    ``*`` matches any run of characters (``**`` is equivalent), every other
    character is literal, matching is case-insensitive and may occur anywhere
    in the path.
    """
    normalized = path.replace("\\", "/")
    return any(_compile_pattern(pattern).search(normalized) for pattern in patterns if pattern)


def should_include(path: str, patterns: Sequence[str]) -> bool:
    return not matches_excluded(path, patterns)


def relative_posix(path: Path, root: Path) -> str:
    """Path of ``path`` relative to ``root`` using forward slashes."""
    return path.resolve().relative_to(root.resolve()).as_posix()
