"""TF-IDF vocabulary building and document vectorisation."""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Set

import numpy as np

from docrank.models import DocumentVector


@dataclass(slots=True)
class Vocabulary:
    terms: Set[str] = field(default_factory=set)
    document_frequencies: Dict[str, int] = field(default_factory=dict)
    total_documents: int = 0

    def idf(self, term: str) -> float:
        if self.total_documents <= 0:
            return 0.0
        df = self.document_frequencies.get(term) or 1
        return math.log(self.total_documents / df)


def build_vocabulary(documents: Iterable[Sequence[str]]) -> Vocabulary:
    """Count, for every term, how many documents contain it at least once."""
    frequencies: Counter = Counter()
    total = 0
    for tokens in documents:
        total += 1
        frequencies.update(set(tokens))
    return Vocabulary(
        terms=set(frequencies),
        document_frequencies=dict(frequencies),
        total_documents=total,
    )


def _l2_normalize(weights: Dict[str, float]) -> DocumentVector:
    if not weights:
        return DocumentVector()

    terms = list(weights)
    values = np.fromiter((weights[term] for term in terms), dtype="float64", count=len(terms))
    values[~np.isfinite(values)] = 0.0
    magnitude = float(np.sqrt(np.dot(values, values)))
    if magnitude > 0 and math.isfinite(magnitude):
        values = values / magnitude
        magnitude = 1.0
    else:
        magnitude = 0.0

    return DocumentVector(
        weights={term: float(value) for term, value in zip(terms, values)},
        magnitude=magnitude,
    )


def vectorize(tokens: Sequence[str], vocabulary: Vocabulary) -> DocumentVector:
    """Return the L2-normalised TF-IDF vector for one token sequence.

    Empty token lists and corpora where every term occurs in every document
    (idf = 0 everywhere) both produce an all-zero vector.
    """
    if not tokens:
        return DocumentVector()

    counts = Counter(tokens)
    length = len(tokens)
    raw = {term: (count / length) * vocabulary.idf(term) for term, count in counts.items()}
    return _l2_normalize(raw)


class TfidfVectorizer:
    """Stateful wrapper: fit a vocabulary once, transform many documents."""

    def __init__(self) -> None:
        self.vocabulary = Vocabulary()

    def fit(self, documents: Iterable[Sequence[str]]) -> TfidfVectorizer:
        self.vocabulary = build_vocabulary(documents)
        return self

    def transform(self, tokens: Sequence[str]) -> DocumentVector:
        return vectorize(tokens, self.vocabulary)

    def fit_transform(self, documents: Sequence[Sequence[str]]) -> List[DocumentVector]:
        self.fit(documents)
        return [self.transform(tokens) for tokens in documents]
