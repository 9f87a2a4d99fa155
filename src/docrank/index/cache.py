"""In-memory TTL caches for document content and TF-IDF vectors.

Cache keys embed the document's modify-time, so editing a document simply
produces a new key; stale entries age out through TTL or capacity eviction.
Nothing here is a source of truth and every entry can be recomputed.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Generic, List, Optional, TypeVar

from docrank.models import DocumentRef, DocumentVector
from docrank.utils.text import tokenize, truncate_text

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_MS = 5 * 60 * 1000
CONTENT_TTL_MS = 10 * 60 * 1000
VECTOR_TTL_MS = 15 * 60 * 1000
DEFAULT_MAX_SIZE = 1000
EVICTION_FRACTION = 0.1
MAX_CONTENT_CHARS = 50_000


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(slots=True)
class CacheEntry(Generic[T]):
    value: T
    created_at: int
    expires_at: int

    def is_valid(self, now: int) -> bool:
        return now <= self.expires_at


@dataclass(slots=True)
class CacheStats:
    size: int = 0
    expired: int = 0


class TTLCache(Generic[T]):
    """Key/value store with per-entry TTL and a coarse capacity bound.

    When full, the oldest tenth of the entries by insertion time is dropped
    before a new key is inserted. This approximates LRU on insertion rather
    than access time.
    """

    def __init__(
        self,
        *,
        default_ttl: int = DEFAULT_TTL_MS,
        max_size: int = DEFAULT_MAX_SIZE,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.default_ttl = default_ttl
        self.max_size = max_size
        self._clock = clock
        self._entries: Dict[str, CacheEntry[T]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def get(self, key: str) -> Optional[T]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not entry.is_valid(self._clock()):
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: T, ttl: Optional[int] = None) -> None:
        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self.max_size:
            self._evict_oldest()

        now = self._clock()
        lifetime = self.default_ttl if ttl is None else ttl
        self._entries[key] = CacheEntry(value=value, created_at=now, expires_at=now + lifetime)

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def evict_expired(self) -> int:
        """Drop every expired entry; return how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if not entry.is_valid(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def _evict_oldest(self) -> None:
        count = max(1, int(self.max_size * EVICTION_FRACTION))
        ordered = sorted(self._entries.items(), key=lambda item: item[1].created_at)
        for key, _ in ordered[:count]:
            del self._entries[key]
        LOGGER.debug("Cache full, evicted %d oldest entries", count)

    def stats(self) -> CacheStats:
        now = self._clock()
        expired = sum(1 for entry in self._entries.values() if not entry.is_valid(now))
        return CacheStats(size=len(self._entries), expired=expired)


@dataclass(slots=True)
class FileContent:
    text: str
    tokens: List[str]
    modify_time: float


def content_key(document: DocumentRef, namespace: str = "content") -> str:
    return f"{namespace}:{document.path}:{document.modify_time}"


def vector_key(document: DocumentRef, purpose: str | None = None) -> str:
    key = f"tfidf:{document.path}:{document.modify_time}"
    return f"{key}:{purpose}" if purpose else key


class ContentCache:
    """Truncated text and token stream per (path, modify-time)."""

    def __init__(
        self,
        *,
        namespace: str = "content",
        max_chars: int = MAX_CONTENT_CHARS,
        ttl: int = CONTENT_TTL_MS,
        max_size: int = DEFAULT_MAX_SIZE,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.namespace = namespace
        self.max_chars = max_chars
        self.ttl = ttl
        self._cache: TTLCache[FileContent] = TTLCache(
            default_ttl=ttl, max_size=max_size, clock=clock
        )

    def get(self, document: DocumentRef) -> Optional[FileContent]:
        return self._cache.get(content_key(document, self.namespace))

    def put(self, document: DocumentRef, text: str) -> FileContent:
        truncated = truncate_text(text, self.max_chars)
        content = FileContent(
            text=truncated,
            tokens=tokenize(truncated),
            modify_time=document.modify_time,
        )
        self._cache.set(content_key(document, self.namespace), content, self.ttl)
        return content

    async def get_content(
        self, document: DocumentRef, loader: Callable[[str], Awaitable[str]]
    ) -> FileContent:
        """Return cached content or load, tokenize and cache it.

        ``loader`` receives the document path and returns text that has
        already been cleaned for tokenizing. Loader errors propagate.
        """
        cached = self.get(document)
        if cached is not None:
            return cached
        text = await loader(document.path)
        return self.put(document, text)

    def clear(self) -> None:
        self._cache.clear()

    def evict_expired(self) -> int:
        return self._cache.evict_expired()

    def stats(self) -> CacheStats:
        return self._cache.stats()


class VectorCache:
    """TF-IDF vectors per (path, modify-time, purpose)."""

    def __init__(
        self,
        *,
        ttl: int = VECTOR_TTL_MS,
        max_size: int = DEFAULT_MAX_SIZE,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.ttl = ttl
        self._cache: TTLCache[DocumentVector] = TTLCache(
            default_ttl=ttl, max_size=max_size, clock=clock
        )

    def get_vector(self, key: str) -> Optional[DocumentVector]:
        return self._cache.get(key)

    def set_vector(self, key: str, vector: DocumentVector) -> DocumentVector:
        stored = DocumentVector.from_weights(vector.weights)
        self._cache.set(key, stored, self.ttl)
        return stored

    def clear(self) -> None:
        self._cache.clear()

    def evict_expired(self) -> int:
        return self._cache.evict_expired()

    def stats(self) -> CacheStats:
        return self._cache.stats()
