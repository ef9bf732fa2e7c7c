"""Shared fakes and fixtures for engine tests."""

import asyncio
import hashlib
import re
from typing import List, Optional, Set

import numpy as np
import pytest

from contextrecall.engine.embeddings import EmbeddingResult
from contextrecall.engine.error_handling import StoreError
from contextrecall.engine.models import (
    MemoryItem, ClipboardItem, ActivityItem, SearchItem, AppUsageSummary,
    HOUR_MS, now_ms
)
from contextrecall.engine.stores import (
    InMemoryAppUsageStore, memory_store, clipboard_store, activity_store, search_store
)


DIMENSION = 64


def bag_of_words(text: str, dimension: int = DIMENSION) -> List[float]:
    """Deterministic hashed bag-of-words vector; shared words mean higher cosine."""
    vector = np.zeros(dimension, dtype=np.float32)
    for word in re.findall(r"[a-z0-9]+", text.lower()):
        bucket = int(hashlib.md5(word.encode()).hexdigest(), 16) % dimension
        vector[bucket] += 1.0
    return vector.tolist()


class FakeBackend:
    """Embedding backend with switchable failures."""

    def __init__(self, fail_all: bool = False, fail_texts: Optional[Set[str]] = None):
        self.fail_all = fail_all
        self.fail_texts = fail_texts or set()
        self.calls: List[str] = []

    def embed(self, text: str) -> EmbeddingResult:
        self.calls.append(text)
        if self.fail_all:
            raise RuntimeError("model not loaded")
        if text in self.fail_texts:
            return EmbeddingResult.failed()
        vector = bag_of_words(text)
        if not any(vector):
            vector[0] = 1.0
        return EmbeddingResult(success=True, vector=vector, dimension=len(vector))


class FailingStore:
    """Store whose every query fails."""

    async def get_recent(self, limit):
        raise StoreError("database is locked")

    async def search_by_keyword(self, keyword, limit):
        raise StoreError("database is locked")

    async def get_since(self, timestamp_ms):
        raise StoreError("database is locked")


class BlockingStore:
    """Store that never answers; records whether it was cancelled."""

    def __init__(self):
        self.started = asyncio.Event()
        self.cancelled = False

    async def _block(self):
        self.started.set()
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return []

    async def get_recent(self, limit):
        return await self._block()

    async def search_by_keyword(self, keyword, limit):
        return await self._block()

    async def get_since(self, timestamp_ms):
        return await self._block()


def minutes_ago(minutes: float, now: Optional[int] = None) -> int:
    return (now or now_ms()) - int(minutes * 60_000)


@pytest.fixture
def now():
    return now_ms()


@pytest.fixture
def memories():
    return [
        MemoryItem(key="favorite_color", value="blue", category="preference", importance=8),
        MemoryItem(key="dentist", value="Dr. Patel on Tuesday mornings", importance=6),
    ]


@pytest.fixture
def clips(now):
    return [
        ClipboardItem(content="Flight LH 441 departs Frankfurt 13:55", timestamp=minutes_ago(30, now)),
        ClipboardItem(content="asyncio task cancellation docs", timestamp=minutes_ago(300, now)),
        ClipboardItem(content="Wifi password greenhouse", timestamp=now - 50 * HOUR_MS, is_pinned=True),
    ]


@pytest.fixture
def activities(now):
    return [
        ActivityItem(id=1, app_name="Chrome", package_name="com.android.chrome",
                     screen_title="Hiking trails near Boulder",
                     visible_text="Top rated hiking trails near Boulder Colorado",
                     timestamp=minutes_ago(45, now)),
        ActivityItem(id=2, app_name="Slack", package_name="com.Slack",
                     screen_title="#release",
                     visible_text="Release train for version 4.2 leaves Thursday",
                     timestamp=minutes_ago(25 * 60, now)),
    ]


@pytest.fixture
def searches(now):
    return [
        SearchItem(id=1, query="best hiking boots", source_app="com.android.chrome",
                   timestamp=minutes_ago(50, now)),
        SearchItem(id=2, query="asyncio cancel task", source_app="com.android.chrome",
                   timestamp=minutes_ago(310, now)),
    ]


@pytest.fixture
def usage(now):
    return [
        AppUsageSummary(package_name="com.android.chrome", app_name="Chrome",
                        total_duration_ms=90 * 60_000, open_count=14, last_used=now),
        AppUsageSummary(package_name="com.Slack", app_name="Slack",
                        total_duration_ms=50 * 60_000, open_count=22, last_used=now - HOUR_MS),
    ]


@pytest.fixture
def stores(memories, clips, activities, searches, usage):
    return {
        "memories": memory_store(memories),
        "clipboard": clipboard_store(clips),
        "activities": activity_store(activities),
        "searches": search_store(searches),
        "app_usage": InMemoryAppUsageStore(usage),
    }
