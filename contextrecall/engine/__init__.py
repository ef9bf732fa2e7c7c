"""Recall engine: scoring, per-source retrieval, context assembly."""

from .config import EngineConfig, ProfileConfig
from .embeddings import (
    EmbeddingBackend, EmbeddingResult, EmbeddingCache, EmbeddingProvider,
    SentenceTransformerBackend
)
from .error_handling import ContextRecallError, StoreError, ConfigError
from .keywords import extract_keywords
from .models import (
    MemoryItem, ClipboardItem, ActivityItem, SearchItem, AppUsageSummary,
    RankedItem, RAGContext, SmartRecallResult, SimilarContent, ContentType,
    EmbeddingCacheStats, RecallSearchResults, RecallTimeline
)
from .rag_engine import RAGEngine, EngineState
from .recall import RecallRouter, RecallIntent
from .stores import (
    RecallStore, AppUsageStore, InMemoryStore, InMemoryAppUsageStore,
    memory_store, clipboard_store, activity_store, search_store
)

__all__ = [
    'RAGEngine',
    'EngineState',
    'EngineConfig',
    'ProfileConfig',
    'EmbeddingBackend',
    'EmbeddingResult',
    'EmbeddingCache',
    'EmbeddingProvider',
    'SentenceTransformerBackend',
    'ContextRecallError',
    'StoreError',
    'ConfigError',
    'extract_keywords',
    'MemoryItem',
    'ClipboardItem',
    'ActivityItem',
    'SearchItem',
    'AppUsageSummary',
    'RankedItem',
    'RAGContext',
    'SmartRecallResult',
    'SimilarContent',
    'ContentType',
    'EmbeddingCacheStats',
    'RecallSearchResults',
    'RecallTimeline',
    'RecallRouter',
    'RecallIntent',
    'RecallStore',
    'AppUsageStore',
    'InMemoryStore',
    'InMemoryAppUsageStore',
    'memory_store',
    'clipboard_store',
    'activity_store',
    'search_store',
]
