"""
Embedding access for semantic scoring.

The backend (native inference) is an external collaborator. Everything the
engine asks of it goes through EmbeddingProvider, which fronts it with a
bounded LRU cache and keeps backend calls off the event loop.
"""

import asyncio
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, runtime_checkable

import numpy as np
from loguru import logger

from .metrics import MetricsCollector

try:
    from sentence_transformers import SentenceTransformer
    HAS_SENTENCE_TRANSFORMERS = True
except ImportError:
    HAS_SENTENCE_TRANSFORMERS = False


@dataclass
class EmbeddingResult:
    """Outcome of one backend call."""
    success: bool
    vector: List[float] = field(default_factory=list)
    dimension: int = 0

    @classmethod
    def failed(cls) -> "EmbeddingResult":
        return cls(success=False)

    @property
    def usable(self) -> bool:
        return self.success and len(self.vector) > 0


@runtime_checkable
class EmbeddingBackend(Protocol):
    """Converts text to a fixed-dimension vector. Must be safe to call from worker threads."""

    def embed(self, text: str) -> EmbeddingResult: ...


class SentenceTransformerBackend:
    """Local embedding backend built on sentence-transformers."""

    def __init__(self, model_name: str = "all-MiniLM-L6-v2", device: str = "cpu"):
        if not HAS_SENTENCE_TRANSFORMERS:
            raise ImportError(
                "sentence-transformers is not installed; "
                "install the 'embeddings' extra to enable semantic retrieval"
            )
        self.model_name = model_name
        self.model = SentenceTransformer(model_name, device=device)
        self.dimension = self.model.get_sentence_embedding_dimension()
        self._lock = threading.Lock()
        logger.info(f"Loaded embedding model {model_name} (dim={self.dimension})")

    def embed(self, text: str) -> EmbeddingResult:
        # The model is not guaranteed to be re-entrant.
        with self._lock:
            vector = self.model.encode(text, convert_to_numpy=True)
        return EmbeddingResult(success=True, vector=vector.tolist(), dimension=len(vector))


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine similarity in [-1, 1]; 0 for empty, mismatched or zero vectors."""
    if a.size == 0 or a.shape != b.shape:
        return 0.0
    denominator = float(np.linalg.norm(a) * np.linalg.norm(b))
    if denominator <= 0:
        return 0.0
    return float(np.dot(a, b) / denominator)


class EmbeddingCache:
    """
    Fixed-capacity text -> vector map with least-recently-used eviction.

    All operations take a single lock, so hit promotion and insert+evict are
    atomic with respect to concurrent retrievers.
    """

    def __init__(self, max_size: int = 500, max_key_chars: int = 512):
        """
        Initialize embedding cache.

        Args:
            max_size: Maximum cache entries
            max_key_chars: Keys are trimmed text truncated to this length
        """
        self.max_size = max_size
        self.max_key_chars = max_key_chars
        self._entries: "OrderedDict[str, np.ndarray]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def normalize_key(self, text: str) -> str:
        return text.strip()[:self.max_key_chars]

    def get(self, key: str) -> Optional[np.ndarray]:
        """Return the cached vector and mark it most recently used."""
        with self._lock:
            vector = self._entries.get(key)
            if vector is None:
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return vector

    def put(self, key: str, vector: np.ndarray) -> None:
        """Store a vector, evicting the least recently used entry when full."""
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
                self._entries[key] = vector
                return
            if len(self._entries) >= self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                self.evictions += 1
                logger.trace(f"Evicted embedding for: {evicted[:30]}")
            self._entries[key] = vector

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class EmbeddingProvider:
    """Cache-fronted, non-blocking access to an embedding backend."""

    def __init__(self,
                 backend: EmbeddingBackend,
                 cache: Optional[EmbeddingCache] = None,
                 metrics: Optional[MetricsCollector] = None):
        self.backend = backend
        self.cache = cache if cache is not None else EmbeddingCache()
        self.metrics = metrics

    async def probe(self, text: str) -> EmbeddingResult:
        """Call the backend directly, bypassing the cache. Never raises."""
        try:
            result = await asyncio.to_thread(self.backend.embed, text)
        except Exception as e:
            logger.warning(f"Embedding probe failed: {type(e).__name__}: {e}")
            return EmbeddingResult.failed()
        if not isinstance(result, EmbeddingResult):
            logger.warning(f"Embedding probe returned {type(result).__name__}")
            return EmbeddingResult.failed()
        return result

    async def embed(self, text: str) -> Optional[np.ndarray]:
        """
        Embedding for text, or None when it cannot be produced.

        The backend runs in a worker thread, outside the cache lock. A failure
        only affects this text; nothing is cached for it.
        """
        key = self.cache.normalize_key(text)
        if not key:
            return None

        cached = self.cache.get(key)
        if cached is not None:
            logger.trace(f"Embedding cache hit for: {key[:30]}...")
            if self.metrics:
                self.metrics.increment_counter("embedding.cache_hit")
            return cached

        if self.metrics:
            self.metrics.increment_counter("embedding.cache_miss")
        start = time.perf_counter()
        try:
            result = await asyncio.to_thread(self.backend.embed, key)
        except Exception as e:
            logger.warning(f"Embedding generation error: {type(e).__name__}: {e}")
            if self.metrics:
                self.metrics.increment_counter("embedding.failure")
            return None
        finally:
            if self.metrics:
                self.metrics.record_latency("embedding", (time.perf_counter() - start) * 1000)

        if result is None or not result.usable:
            logger.warning("Embedding generation returned empty/failed")
            if self.metrics:
                self.metrics.increment_counter("embedding.failure")
            return None

        vector = np.asarray(result.vector, dtype=np.float32)
        self.cache.put(key, vector)
        logger.trace(f"Generated embedding (dim={result.dimension}) for: {key[:30]}...")
        return vector
