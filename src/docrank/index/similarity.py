"""Cosine similarity over sparse vectors and raw term-frequency maps."""

from __future__ import annotations

import math
from typing import Mapping

from docrank.models import DocumentVector
from docrank.utils.text import term_frequencies, tokenize


def _magnitude(weights: Mapping[str, float]) -> float:
    return math.sqrt(sum(value * value for value in weights.values()))


def _bounded(value: float) -> float:
    if not math.isfinite(value):
        return 0.0
    return max(0.0, min(1.0, value))


def sparse_cosine(a: Mapping[str, float], b: Mapping[str, float]) -> float:
    """Cosine similarity of two sparse maps, clamped to [0, 1].

    Shared terms are found by walking the map with fewer entries. Magnitudes
    are always computed from the maps themselves.
    """
    if not a or not b:
        return 0.0

    magnitude_a = _magnitude(a)
    magnitude_b = _magnitude(b)
    if magnitude_a == 0 or magnitude_b == 0:
        return 0.0

    smaller, larger = (a, b) if len(a) <= len(b) else (b, a)
    # fixed summation order keeps sim(a, b) == sim(b, a) bit for bit
    shared = sorted(term for term in smaller if term in larger)
    dot = 0.0
    for term in shared:
        dot += a[term] * b[term]

    return _bounded(dot / (magnitude_a * magnitude_b))


def cosine_similarity(a: DocumentVector, b: DocumentVector) -> float:
    """Cosine similarity between two document vectors.

    The norm is recomputed from ``weights``; ``DocumentVector.magnitude`` is
    not read.
    """
    return sparse_cosine(a.weights, b.weights)


def frequency_similarity(freq_a: Mapping[str, int], freq_b: Mapping[str, int]) -> float:
    """Cosine similarity of two raw term-frequency maps."""
    return sparse_cosine(
        {term: float(count) for term, count in freq_a.items()},
        {term: float(count) for term, count in freq_b.items()},
    )


def direct_similarity(text_a: str, text_b: str) -> float:
    """Compare two cleaned texts without building a corpus vocabulary."""
    tokens_a = tokenize(text_a)
    tokens_b = tokenize(text_b)
    if not tokens_a or not tokens_b:
        return 0.0
    return frequency_similarity(term_frequencies(tokens_a), term_frequencies(tokens_b))
