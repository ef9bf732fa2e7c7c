"""Shared retrieval pipeline for one recall source."""

import time
from typing import Generic, List, Optional, Sequence, TypeVar

import numpy as np
from loguru import logger

from ..config import EngineConfig, ProfileConfig, SourcePool
from ..error_handling import IsolatedExecutor
from ..metrics import MetricsCollector
from ..models import RankedItem, now_ms
from ..scoring import ScoringEngine, admission_threshold
from ..stores import RecallStore


T = TypeVar("T")


class SourceRetriever(Generic[T]):
    """
    Pool -> score -> filter -> rank -> cap, for one store.

    Subclasses describe the source: its name, text and boost rules, pool
    size and cap.
    """

    name: str = "source"

    def __init__(self,
                 store: RecallStore[T],
                 scorer: ScoringEngine,
                 config: EngineConfig,
                 executor: Optional[IsolatedExecutor] = None,
                 metrics: Optional[MetricsCollector] = None):
        self.store = store
        self.scorer = scorer
        self.config = config
        self.executor = executor or IsolatedExecutor()
        self.metrics = metrics

    # Source description -------------------------------------------------

    def pool(self, profile: ProfileConfig) -> SourcePool:
        raise NotImplementedError

    def cap(self) -> int:
        raise NotImplementedError

    def text_of(self, item: T) -> str:
        return item.text

    def static_boost(self, item: T, profile: ProfileConfig) -> float:
        return 0.0

    def recency_boost(self, item: T, profile: ProfileConfig, now: int) -> float:
        return 0.0

    # Pipeline -----------------------------------------------------------

    async def candidate_pool(self, keywords: Sequence[str], profile: ProfileConfig) -> List[T]:
        """Recent items plus per-keyword matches, first occurrence wins."""
        pool = self.pool(profile)
        candidates = list(await self.store.get_recent(pool.recent))
        if pool.per_keyword > 0:
            for keyword in keywords:
                candidates.extend(await self.store.search_by_keyword(keyword, pool.per_keyword))

        seen = set()
        unique = []
        for item in candidates:
            identity = item.identity
            if identity in seen:
                continue
            seen.add(identity)
            unique.append(item)
        return unique

    async def rank(self,
                   query: str,
                   keywords: Sequence[str],
                   query_embedding: Optional[np.ndarray] = None) -> List[RankedItem[T]]:
        """Rank this source's candidates. Store errors propagate."""
        semantic_mode = query_embedding is not None
        profile = self.config.profile(semantic_mode)
        threshold = admission_threshold(semantic_mode, self.config.scoring)
        now = now_ms()

        ranked: List[RankedItem[T]] = []
        for item in await self.candidate_pool(keywords, profile):
            result = await self.scorer.score(
                query=query,
                query_embedding=query_embedding,
                keywords=keywords,
                text=self.text_of(item),
                static_boost=self.static_boost(item, profile),
                recency=self.recency_boost(item, profile, now),
            )
            if result.total >= threshold:
                ranked.append(RankedItem(item, result.total, result.used_semantic))

        ranked.sort(key=lambda r: r.score, reverse=True)
        return ranked[:self.cap()]

    async def retrieve(self,
                       query: str,
                       keywords: Sequence[str],
                       query_embedding: Optional[np.ndarray] = None) -> List[RankedItem[T]]:
        """
        Ranked, capped list for the query.

        A failing store yields an empty list rather than an exception.
        """
        start = time.perf_counter()
        ranked = await self.executor.execute(
            f"store.{self.name}",
            self.rank,
            query,
            keywords,
            query_embedding,
            fallback=[],
        )
        latency = (time.perf_counter() - start) * 1000
        if self.metrics:
            self.metrics.record_latency(f"retrieve.{self.name}", latency)
        logger.debug(f"{self.name}: {len(ranked)} items in {latency:.1f}ms")
        return ranked
