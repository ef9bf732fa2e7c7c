"""
Retrieval-augmented context engine.

Front door for the recall subsystem: retrieves memories, clipboard, screen
activity and searches relevant to a query, ranks them and assembles a
character-budgeted context block for a downstream model. Whether semantic
scoring is available is decided once, at initialization, by probing the
embedding backend; without it the engine runs on lexical scoring alone.
"""

import asyncio
import time
from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np
from loguru import logger

from .assembler import ContextAssembler
from .config import EngineConfig
from .embeddings import EmbeddingBackend, EmbeddingCache, EmbeddingProvider, cosine_similarity
from .error_handling import IsolatedExecutor
from .keywords import extract_keywords
from .metrics import MetricsCollector
from .models import (
    RAGContext, SmartRecallResult, SimilarContent, ContentType, EmbeddingCacheStats,
    RecallSearchResults, RecallTimeline, MemoryItem, ClipboardItem, ActivityItem,
    SearchItem, HOUR_MS, truncate, now_ms
)
from .recall import RecallRouter
from .scoring import ScoringEngine
from .sources import MemoryRetriever, ClipboardRetriever, ActivityRetriever, SearchRetriever
from .stores import RecallStore, AppUsageStore


class EngineState(Enum):
    UNINITIALIZED = "uninitialized"
    SEMANTIC_READY = "semantic_ready"
    LEXICAL_ONLY = "lexical_only"


class RAGEngine:
    """
    Unified lexical/semantic recall engine.

    The availability decision is sticky: a backend that fails its probe keeps
    the engine lexical-only until reinitialize() is called, and a backend that
    passes keeps it semantic even if later calls fail (those items just fall
    back to lexical scoring).
    """

    def __init__(self,
                 memories: RecallStore[MemoryItem],
                 clipboard: RecallStore[ClipboardItem],
                 activities: RecallStore[ActivityItem],
                 searches: RecallStore[SearchItem],
                 app_usage: Optional[AppUsageStore] = None,
                 backend: Optional[EmbeddingBackend] = None,
                 config: Optional[EngineConfig] = None):
        """
        Initialize the engine.

        Args:
            memories, clipboard, activities, searches: Source stores
            app_usage: Optional app-usage store for recall answers and timelines
            backend: Optional embedding backend; None means lexical-only
            config: Engine configuration (defaults when omitted)
        """
        self.config = config or EngineConfig()
        self.metrics = MetricsCollector()
        self.executor = IsolatedExecutor(metrics=self.metrics)

        self.memories = memories
        self.clipboard = clipboard
        self.activities = activities
        self.searches = searches
        self.app_usage = app_usage

        self.cache = EmbeddingCache(
            max_size=self.config.cache.max_size,
            max_key_chars=self.config.cache.max_key_chars,
        )
        self.provider: Optional[EmbeddingProvider] = None
        if backend is not None:
            self.provider = EmbeddingProvider(backend, self.cache, self.metrics)

        self.scorer = ScoringEngine(self.config.scoring, self.provider)

        retriever_args = (self.scorer, self.config, self.executor, self.metrics)
        self.memory_retriever = MemoryRetriever(memories, *retriever_args)
        self.clipboard_retriever = ClipboardRetriever(clipboard, *retriever_args)
        self.activity_retriever = ActivityRetriever(activities, *retriever_args)
        self.search_retriever = SearchRetriever(searches, *retriever_args)

        self.assembler = ContextAssembler(self.config.assembler)
        self.router = RecallRouter(
            clipboard, searches, activities, app_usage,
            general=self.retrieve_context,
            config=self.config.recall,
            executor=self.executor,
        )

        self._state = EngineState.UNINITIALIZED
        self._init_lock = asyncio.Lock()

    # Lifecycle ----------------------------------------------------------

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def embeddings_available(self) -> bool:
        return self._state == EngineState.SEMANTIC_READY

    async def initialize(self) -> EngineState:
        """Probe the embedding backend once. Safe to call concurrently."""
        if self._state != EngineState.UNINITIALIZED:
            return self._state
        async with self._init_lock:
            if self._state == EngineState.UNINITIALIZED:
                self._state = await self._probe()
        return self._state

    async def reinitialize(self) -> EngineState:
        """Forget the availability decision and probe again."""
        async with self._init_lock:
            self._state = EngineState.UNINITIALIZED
            self._state = await self._probe()
        return self._state

    async def _probe(self) -> EngineState:
        if self.provider is None:
            logger.info("No embedding backend configured, using lexical retrieval")
            return EngineState.LEXICAL_ONLY

        result = await self.provider.probe(self.config.cache.probe_text)
        if result.usable:
            logger.info(f"Embeddings available (dim={result.dimension}), using semantic retrieval")
            return EngineState.SEMANTIC_READY

        logger.warning("Embedding backend failed its probe, falling back to lexical retrieval")
        return EngineState.LEXICAL_ONLY

    # Retrieval ----------------------------------------------------------

    async def _query_embedding(self, query: str) -> Optional[np.ndarray]:
        if await self.initialize() != EngineState.SEMANTIC_READY:
            return None
        return await self.provider.embed(query)

    async def retrieve_context(self,
                               query: str,
                               include_recall: bool = True,
                               max_chars: Optional[int] = None) -> RAGContext:
        """
        Retrieve and assemble context for a query.

        Args:
            query: User query
            include_recall: Also search clipboard, activity and searches
            max_chars: Context budget; defaults to the active profile's budget

        Returns:
            RAGContext with ranked items and the assembled context string
        """
        start = time.perf_counter()
        keywords = extract_keywords(query)
        query_embedding = await self._query_embedding(query)
        semantic = query_embedding is not None
        profile = self.config.profile(semantic)

        if include_recall:
            memories, activities, clipboard, searches = await asyncio.gather(
                self.memory_retriever.retrieve(query, keywords, query_embedding),
                self.activity_retriever.retrieve(query, keywords, query_embedding),
                self.clipboard_retriever.retrieve(query, keywords, query_embedding),
                self.search_retriever.retrieve(query, keywords, query_embedding),
            )
        else:
            memories = await self.memory_retriever.retrieve(query, keywords, query_embedding)
            activities, clipboard, searches = [], [], []

        budget = max_chars if max_chars is not None else profile.max_context_chars
        context_string = self.assembler.assemble(
            query, memories, activities, clipboard, searches,
            max_chars=budget,
            limits=profile.sections,
        )

        latency = (time.perf_counter() - start) * 1000
        self.metrics.record_latency("retrieve.total", latency)
        self.metrics.increment_counter("retrieve.calls")

        context = RAGContext(
            query=query,
            keywords=keywords,
            memories=memories,
            activities=activities,
            clipboard=clipboard,
            searches=searches,
            context_string=context_string,
            used_semantic_search=semantic,
        )
        logger.debug(
            f"Retrieved {context.total_items} items "
            f"({'semantic' if semantic else 'lexical'}) in {latency:.1f}ms"
        )
        return context

    async def smart_recall(self, query: str) -> SmartRecallResult:
        """Retrieve context and summarize it for display."""
        context = await self.retrieve_context(query)
        return SmartRecallResult(
            query=query,
            summary=self._summarize(query, context),
            context=context,
            total_matches=context.total_items,
            used_semantic_search=context.used_semantic_search,
        )

    def _summarize(self, query: str, context: RAGContext) -> str:
        if context.is_empty:
            return (
                f"I couldn't find anything related to \"{query}\" in your history. "
                "Try a different search or check if you have activity history enabled."
            )

        cfg = self.config.recall
        method = "semantic" if context.used_semantic_search else "keyword"
        lines = [f"Found {context.total_items} related items using {method} search:", ""]

        if context.memories:
            lines.append("**Remembered Info:**")
            for ranked in context.memories[:cfg.summary_memories]:
                lines.append(f"• {ranked.item.key}: {truncate(ranked.item.value, 100)}")
            lines.append("")

        if context.activities:
            lines.append("**Related Activity:**")
            for ranked in context.activities[:cfg.summary_activities]:
                lines.append(f"• {ranked.item.app_name}: {ranked.item.title}")
            lines.append("")

        if context.clipboard:
            lines.append("**From Clipboard:**")
            for ranked in context.clipboard[:cfg.summary_clipboard]:
                lines.append(f"• {truncate(ranked.item.content, 80)}")
            lines.append("")

        if context.searches:
            lines.append("**Related Searches:**")
            for ranked in context.searches[:cfg.summary_searches]:
                lines.append(f"• \"{ranked.item.query}\"")

        return "\n".join(lines).strip()

    async def find_similar(self, text: str, limit: int = 10) -> List[SimilarContent]:
        """
        Activity and clipboard items semantically close to text.

        Returns an empty list when embeddings are unavailable or text cannot
        be embedded.
        """
        target = await self._query_embedding(text)
        if target is None:
            return []

        cfg = self.config.recall
        with self.metrics.timer("similar"):
            activities, clips = await asyncio.gather(
                self.executor.execute(
                    "store.activities", self.activities.get_recent,
                    cfg.similar_activity_pool, fallback=[],
                ),
                self.executor.execute(
                    "store.clipboard", self.clipboard.get_recent,
                    cfg.similar_clipboard_pool, fallback=[],
                ),
            )

            results: List[SimilarContent] = []
            for activity in activities:
                similarity = await self._similarity(target, activity.text)
                if similarity is not None and similarity > cfg.similar_threshold:
                    results.append(SimilarContent(
                        type=ContentType.ACTIVITY,
                        title=f"{activity.app_name}: {activity.title}",
                        preview=activity.visible_text[:150],
                        similarity=similarity,
                        timestamp=activity.timestamp,
                    ))

            for clip in clips:
                similarity = await self._similarity(target, clip.content)
                if similarity is not None and similarity > cfg.similar_threshold:
                    results.append(SimilarContent(
                        type=ContentType.CLIPBOARD,
                        title="Clipboard",
                        preview=clip.content[:150],
                        similarity=similarity,
                        timestamp=clip.timestamp,
                    ))

        results.sort(key=lambda r: r.similarity, reverse=True)
        return results[:limit]

    async def _similarity(self, target: np.ndarray, text: str) -> Optional[float]:
        embedding = await self.provider.embed(text)
        if embedding is None:
            return None
        return cosine_similarity(target, embedding)

    async def answer_recall_query(self, query: str) -> str:
        """Answer a natural-language question about past activity."""
        await self.initialize()
        with self.metrics.timer("recall.answer"):
            return await self.router.answer(query)

    async def search_recall(self, query: str, limit: int = 20) -> RecallSearchResults:
        """Direct substring search across clipboard, activity and searches."""
        needle = query.strip()
        if not needle:
            return RecallSearchResults([], [], [])

        clips, activities, searches = await asyncio.gather(
            self.executor.execute(
                "store.clipboard", self.clipboard.search_by_keyword, needle, limit, fallback=[]
            ),
            self.executor.execute(
                "store.activities", self.activities.search_by_keyword, needle, limit, fallback=[]
            ),
            self.executor.execute(
                "store.searches", self.searches.search_by_keyword, needle, limit, fallback=[]
            ),
        )
        return RecallSearchResults(
            clipboard_matches=clips,
            activity_matches=activities,
            search_matches=searches,
        )

    async def activity_timeline(self,
                                hours_back: int = 4,
                                max_snapshots: int = 20,
                                max_clips: int = 10) -> RecallTimeline:
        """Recent activity, clipboard, searches and app usage."""
        since = now_ms() - hours_back * HOUR_MS

        activities, clips, searches = await asyncio.gather(
            self.executor.execute("store.activities", self.activities.get_since, since, fallback=[]),
            self.executor.execute("store.clipboard", self.clipboard.get_recent, max_clips, fallback=[]),
            self.executor.execute("store.searches", self.searches.get_since, since, fallback=[]),
        )

        usage = []
        if self.app_usage is not None:
            usage = await self.executor.execute(
                "store.app_usage", self.app_usage.get_recent_usage,
                self.config.recall.most_used_apps, fallback=[],
            )

        return RecallTimeline(
            recent_activity=activities[:max_snapshots],
            recent_clipboard=clips,
            recent_searches=searches[:self.config.recall.recent_searches],
            app_usage=usage,
        )

    # Introspection ------------------------------------------------------

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Embedding cache cleared")

    def get_cache_stats(self) -> EmbeddingCacheStats:
        return EmbeddingCacheStats(
            size=len(self.cache),
            max_size=self.cache.max_size,
            embeddings_available=self.embeddings_available,
            hits=self.cache.hits,
            misses=self.cache.misses,
        )

    def get_metrics(self) -> Dict[str, Any]:
        return self.metrics.get_summary()

    def get_health(self) -> Dict[str, Any]:
        """Engine state plus per-source health."""
        return {
            "state": self._state.value,
            "embeddings_available": self.embeddings_available,
            "cache_size": len(self.cache),
            **self.executor.get_health_status(),
        }
