"""Data model for recall items, ranked results and engine outputs."""

import hashlib
import time
from typing import List, Dict, Any, Optional, Generic, TypeVar
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


HOUR_MS = 3600_000
DAY_MS = 24 * HOUR_MS


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def content_hash(text: str) -> str:
    """Stable identity for clipboard content."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:32]


def short_app_name(source_app: Optional[str]) -> str:
    """'com.android.chrome' -> 'chrome'."""
    if not source_app:
        return ""
    return source_app.rsplit(".", 1)[-1]


def format_relative_time(timestamp: int, now: Optional[int] = None) -> str:
    """Human-friendly age of an item: 'just now', '5m ago', '3h ago', 'Oct 3'."""
    if now is None:
        now = now_ms()
    diff = now - timestamp
    if diff < 60_000:
        return "just now"
    if diff < HOUR_MS:
        return f"{diff // 60_000}m ago"
    if diff < DAY_MS:
        return f"{diff // HOUR_MS}h ago"
    moment = datetime.fromtimestamp(timestamp / 1000)
    return f"{moment:%b} {moment.day}"


def truncate(text: str, limit: int) -> str:
    """Cut text to limit characters, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


@dataclass
class MemoryItem:
    """A remembered fact or preference."""
    key: str
    value: str
    category: str = "fact"  # preference|fact|context|task
    importance: int = 5  # 1-10
    access_count: int = 0
    created_at: int = field(default_factory=now_ms)
    updated_at: Optional[int] = None

    @property
    def identity(self) -> str:
        return self.key

    @property
    def text(self) -> str:
        return f"{self.key} {self.value}"

    @property
    def timestamp(self) -> int:
        return self.updated_at or self.created_at

    @property
    def boost(self) -> float:
        return self.importance / 10 + self.access_count / 100


@dataclass
class ClipboardItem:
    """A clipboard snapshot."""
    content: str
    timestamp: int = field(default_factory=now_ms)
    is_pinned: bool = False
    content_type: str = "text"
    source_app: Optional[str] = None
    access_count: int = 0
    id: Optional[int] = None
    content_hash: str = ""

    def __post_init__(self):
        if not self.content_hash:
            self.content_hash = content_hash(self.content)

    @property
    def identity(self) -> str:
        return self.content_hash

    @property
    def text(self) -> str:
        return self.content


@dataclass
class ActivityItem:
    """A screen-activity snapshot captured from the foreground app."""
    id: int
    app_name: str
    visible_text: str
    package_name: str = ""
    screen_title: Optional[str] = None
    activity_type: str = "view"  # view|search|message|browse|...
    timestamp: int = field(default_factory=now_ms)
    duration_ms: int = 0

    @property
    def identity(self) -> int:
        return self.id

    @property
    def text(self) -> str:
        return f"{self.app_name} {self.screen_title or ''} {self.visible_text}"

    @property
    def title(self) -> str:
        return self.screen_title or self.activity_type


@dataclass
class SearchItem:
    """A search query the user typed into some app."""
    id: int
    query: str
    source_app: str = ""
    search_type: str = "general"
    timestamp: int = field(default_factory=now_ms)

    @property
    def identity(self) -> int:
        return self.id

    @property
    def text(self) -> str:
        return self.query


@dataclass
class AppUsageSummary:
    """Aggregated foreground time for one app."""
    package_name: str
    app_name: str
    total_duration_ms: int = 0
    open_count: int = 0
    last_used: int = field(default_factory=now_ms)

    @property
    def minutes(self) -> int:
        return self.total_duration_ms // 60_000


T = TypeVar("T")


@dataclass
class RankedItem(Generic[T]):
    """A candidate with its relevance score."""
    item: T
    score: float
    used_semantic: bool = False


@dataclass
class RAGContext:
    """Everything retrieved for one query, plus the assembled context block."""
    query: str
    keywords: List[str]
    memories: List[RankedItem[MemoryItem]]
    activities: List[RankedItem[ActivityItem]]
    clipboard: List[RankedItem[ClipboardItem]]
    searches: List[RankedItem[SearchItem]]
    context_string: str
    used_semantic_search: bool = False

    @property
    def is_empty(self) -> bool:
        return not (self.memories or self.activities or self.clipboard or self.searches)

    @property
    def total_items(self) -> int:
        return len(self.memories) + len(self.activities) + len(self.clipboard) + len(self.searches)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "keywords": self.keywords,
            "counts": {
                "memories": len(self.memories),
                "activities": len(self.activities),
                "clipboard": len(self.clipboard),
                "searches": len(self.searches),
            },
            "total_items": self.total_items,
            "used_semantic_search": self.used_semantic_search,
            "context": self.context_string,
        }


@dataclass
class SmartRecallResult:
    """Display-ready summary of a recall query."""
    query: str
    summary: str
    context: RAGContext
    total_matches: int
    used_semantic_search: bool


class ContentType(Enum):
    """Kind of content returned by similarity search."""
    ACTIVITY = "activity"
    CLIPBOARD = "clipboard"
    MEMORY = "memory"
    SEARCH = "search"


@dataclass
class SimilarContent:
    """An item semantically close to some reference text."""
    type: ContentType
    title: str
    preview: str
    similarity: float
    timestamp: int


@dataclass
class EmbeddingCacheStats:
    size: int
    max_size: int
    embeddings_available: bool
    hits: int = 0
    misses: int = 0


@dataclass
class RecallSearchResults:
    """Direct substring matches across the recall stores."""
    clipboard_matches: List[ClipboardItem]
    activity_matches: List[ActivityItem]
    search_matches: List[SearchItem]

    @property
    def is_empty(self) -> bool:
        return not (self.clipboard_matches or self.activity_matches or self.search_matches)

    @property
    def total_matches(self) -> int:
        return len(self.clipboard_matches) + len(self.activity_matches) + len(self.search_matches)


@dataclass
class RecallTimeline:
    """Chronological snapshot of recent activity for prompt context."""
    recent_activity: List[ActivityItem]
    recent_clipboard: List[ClipboardItem]
    recent_searches: List[SearchItem]
    app_usage: List[AppUsageSummary]

    def to_context_string(self, now: Optional[int] = None) -> str:
        """Render the timeline as markdown-like sections."""
        lines: List[str] = []

        if self.recent_activity:
            lines.append("## Recent Activity:")
            for activity in self.recent_activity[:10]:
                when = format_relative_time(activity.timestamp, now)
                lines.append(f"- [{when}] {activity.app_name}: {activity.title}")
            lines.append("")

        if self.recent_clipboard:
            lines.append("## Recent Clipboard:")
            for clip in self.recent_clipboard[:5]:
                when = format_relative_time(clip.timestamp, now)
                lines.append(f"- [{when}] {truncate(clip.content, 100)}")
            lines.append("")

        if self.recent_searches:
            lines.append("## Recent Searches:")
            for search in self.recent_searches[:5]:
                when = format_relative_time(search.timestamp, now)
                lines.append(f"- [{when}] \"{search.query}\" in {short_app_name(search.source_app)}")
            lines.append("")

        if self.app_usage:
            lines.append("## Most Used Apps Today:")
            for usage in self.app_usage[:5]:
                lines.append(f"- {usage.app_name}: {usage.minutes}min ({usage.open_count} opens)")

        return "\n".join(lines).strip()
