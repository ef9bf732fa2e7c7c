"""
Store contracts for the four recall sources, plus in-memory implementations.

Real deployments back these with whatever database the capture layer writes
to. The in-memory stores mirror the query semantics (newest first,
case-insensitive substring search) and are used by tests and the evaluation
harness.
"""

import asyncio
from typing import Callable, Generic, Iterable, List, Optional, Protocol, TypeVar

from .models import (
    MemoryItem, ClipboardItem, ActivityItem, SearchItem, AppUsageSummary
)


T = TypeVar("T")


class RecallStore(Protocol[T]):
    """Queryable collection of one source's items."""

    async def get_recent(self, limit: int) -> List[T]: ...

    async def search_by_keyword(self, keyword: str, limit: int) -> List[T]: ...

    async def get_since(self, timestamp_ms: int) -> List[T]: ...


class AppUsageStore(Protocol):
    async def get_most_used(self, limit: int) -> List[AppUsageSummary]: ...

    async def get_recent_usage(self, limit: int) -> List[AppUsageSummary]: ...


class InMemoryStore(Generic[T]):
    """List-backed store ordered newest first."""

    def __init__(self,
                 items: Optional[Iterable[T]] = None,
                 searchable: Callable[[T], str] = lambda item: item.text,
                 order_key: Callable[[T], tuple] = lambda item: (item.timestamp,)):
        """
        Args:
            items: Initial contents
            searchable: Field matched by search_by_keyword
            order_key: Sort key for get_recent, highest first
        """
        self._items: List[T] = list(items or [])
        self._searchable = searchable
        self._order_key = order_key
        self._lock = asyncio.Lock()

    def _ordered(self) -> List[T]:
        return sorted(self._items, key=self._order_key, reverse=True)

    async def add(self, item: T) -> None:
        async with self._lock:
            self._items.append(item)

    async def get_recent(self, limit: int) -> List[T]:
        async with self._lock:
            return self._ordered()[:limit]

    async def search_by_keyword(self, keyword: str, limit: int) -> List[T]:
        needle = keyword.lower()
        async with self._lock:
            matches = [item for item in self._ordered() if needle in self._searchable(item).lower()]
        return matches[:limit]

    async def get_since(self, timestamp_ms: int) -> List[T]:
        async with self._lock:
            return [item for item in self._ordered() if item.timestamp >= timestamp_ms]

    def __len__(self) -> int:
        return len(self._items)


def memory_store(items: Optional[Iterable[MemoryItem]] = None) -> InMemoryStore[MemoryItem]:
    """Memories come back most important first."""
    return InMemoryStore(
        items,
        searchable=lambda m: f"{m.key} {m.value}",
        order_key=lambda m: (m.importance, m.access_count),
    )


def clipboard_store(items: Optional[Iterable[ClipboardItem]] = None) -> InMemoryStore[ClipboardItem]:
    return InMemoryStore(items, searchable=lambda c: c.content)


def activity_store(items: Optional[Iterable[ActivityItem]] = None) -> InMemoryStore[ActivityItem]:
    return InMemoryStore(items, searchable=lambda a: a.visible_text)


def search_store(items: Optional[Iterable[SearchItem]] = None) -> InMemoryStore[SearchItem]:
    return InMemoryStore(items, searchable=lambda s: s.query)


class InMemoryAppUsageStore:
    """App usage summaries kept in a list."""

    def __init__(self, usage: Optional[Iterable[AppUsageSummary]] = None):
        self._usage: List[AppUsageSummary] = list(usage or [])

    async def get_most_used(self, limit: int) -> List[AppUsageSummary]:
        return sorted(self._usage, key=lambda u: u.total_duration_ms, reverse=True)[:limit]

    async def get_recent_usage(self, limit: int) -> List[AppUsageSummary]:
        return sorted(self._usage, key=lambda u: u.last_used, reverse=True)[:limit]
