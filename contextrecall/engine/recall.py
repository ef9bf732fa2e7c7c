"""
Recall-question routing.

Answers questions about past activity ("what did I copy yesterday?",
"what was I doing in the last 3 hours?") straight from the source stores,
with templated answers. Anything that does not look like one of the known
question types falls back to full context retrieval.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from loguru import logger

from .config import RecallConfig
from .error_handling import IsolatedExecutor
from .models import (
    RAGContext, ClipboardItem, SearchItem, ActivityItem, AppUsageSummary,
    HOUR_MS, DAY_MS, format_relative_time, short_app_name, truncate, now_ms
)
from .stores import RecallStore, AppUsageStore


class RecallIntent(Enum):
    CLIPBOARD = "clipboard"
    SEARCH = "search"
    APP_USAGE = "app_usage"
    ACTIVITY = "activity"
    GENERAL = "general"


# Checked in order; the first intent with a matching phrase wins.
INTENT_PHRASES = [
    (RecallIntent.CLIPBOARD, ("copied", "clipboard")),
    (RecallIntent.SEARCH, ("search", "looked up", "googled")),
    (RecallIntent.APP_USAGE, ("used", "app", "time spent")),
    (RecallIntent.ACTIVITY, ("doing", "looking at", "visited")),
]

_HOURS = re.compile(r"(\d+)\s*hour")
_DAYS = re.compile(r"(\d+)\s*day")

NO_GENERAL_MATCH = "I don't have any relevant information stored about that."


@dataclass
class TimeWindow:
    start: int
    end: int

    def contains(self, timestamp: int) -> bool:
        return self.start <= timestamp <= self.end


def classify_intent(query: str) -> RecallIntent:
    query_lower = query.lower()
    for intent, phrases in INTENT_PHRASES:
        if any(phrase in query_lower for phrase in phrases):
            return intent
    return RecallIntent.GENERAL


def parse_time_window(query: str, now: Optional[int] = None) -> Optional[TimeWindow]:
    """Rolling time window named in the query, if any."""
    if now is None:
        now = now_ms()
    q = query.lower()

    if "yesterday" in q:
        return TimeWindow(now - 2 * DAY_MS, now - DAY_MS)
    if "today" in q:
        return TimeWindow(now - DAY_MS, now)
    if "this week" in q:
        return TimeWindow(now - 7 * DAY_MS, now)
    if "last hour" in q:
        return TimeWindow(now - HOUR_MS, now)
    if "last" in q and "hour" in q:
        match = _HOURS.search(q)
        hours = int(match.group(1)) if match else 1
        return TimeWindow(now - hours * HOUR_MS, now)
    if "last" in q and "day" in q:
        match = _DAYS.search(q)
        days = int(match.group(1)) if match else 1
        return TimeWindow(now - days * DAY_MS, now)
    return None


class RecallRouter:
    """Dispatches recall questions to the matching store and formats the answer."""

    def __init__(self,
                 clipboard: RecallStore[ClipboardItem],
                 searches: RecallStore[SearchItem],
                 activities: RecallStore[ActivityItem],
                 app_usage: Optional[AppUsageStore],
                 general: Callable[[str], Awaitable[RAGContext]],
                 config: Optional[RecallConfig] = None,
                 executor: Optional[IsolatedExecutor] = None):
        """
        Args:
            clipboard, searches, activities: Source stores
            app_usage: Optional usage store for "which apps" questions
            general: Fallback full retrieval for unmatched questions
        """
        self.clipboard = clipboard
        self.searches = searches
        self.activities = activities
        self.app_usage = app_usage
        self.general = general
        self.config = config or RecallConfig()
        self.executor = executor or IsolatedExecutor()

    async def answer(self, query: str, now: Optional[int] = None) -> str:
        if now is None:
            now = now_ms()
        intent = classify_intent(query)
        window = parse_time_window(query, now)
        logger.debug(f"Recall intent={intent.value} window={window}")

        if intent == RecallIntent.CLIPBOARD:
            clips = await self._windowed(
                "store.clipboard", self.clipboard, window, self.config.recent_clips
            )
            return self.format_clipboard(clips, now)

        if intent == RecallIntent.SEARCH:
            searches = await self._windowed(
                "store.searches", self.searches, window, self.config.recent_searches
            )
            return self.format_searches(searches, now)

        if intent == RecallIntent.APP_USAGE:
            usage: List[AppUsageSummary] = []
            if self.app_usage is not None:
                usage = await self.executor.execute(
                    "store.app_usage",
                    self.app_usage.get_most_used,
                    self.config.most_used_apps,
                    fallback=[],
                )
            return self.format_usage(usage)

        if intent == RecallIntent.ACTIVITY:
            activities = await self._windowed(
                "store.activities", self.activities, window, self.config.recent_snapshots
            )
            return self.format_activities(activities, now)

        context = await self.general(query)
        if context.is_empty:
            return NO_GENERAL_MATCH
        return f"Based on your activity:\n\n{context.context_string}"

    async def _windowed(self, service: str, store: RecallStore, window: Optional[TimeWindow], recent: int) -> list:
        if window is None:
            return await self.executor.execute(service, store.get_recent, recent, fallback=[])
        items = await self.executor.execute(service, store.get_since, window.start, fallback=[])
        return [item for item in items if window.contains(item.timestamp)]

    # Templates ----------------------------------------------------------

    def format_clipboard(self, clips: List[ClipboardItem], now: int) -> str:
        if not clips:
            return "I don't have any clipboard history for that time period."
        lines = ["Here's what you copied recently:"]
        for clip in clips[:self.config.answer_limit]:
            when = format_relative_time(clip.timestamp, now)
            lines.append(f"• [{when}] {truncate(clip.content, 100)}")
        return "\n".join(lines)

    def format_searches(self, searches: List[SearchItem], now: int) -> str:
        if not searches:
            return "I don't have any search history for that time period."
        lines = ["Here's what you searched for:"]
        for search in searches[:self.config.answer_limit]:
            when = format_relative_time(search.timestamp, now)
            lines.append(f"• [{when}] \"{search.query}\" in {short_app_name(search.source_app)}")
        return "\n".join(lines)

    def format_usage(self, usage: List[AppUsageSummary]) -> str:
        if not usage:
            return "I don't have any app usage data yet."
        lines = ["Your most used apps:"]
        for app in usage[:self.config.answer_limit]:
            lines.append(f"• {app.app_name}: {app.minutes}min ({app.open_count} opens)")
        return "\n".join(lines)

    def format_activities(self, activities: List[ActivityItem], now: int) -> str:
        if not activities:
            return "I don't have any activity history for that time period."
        lines = ["Here's what you were doing:"]
        seen = set()
        for activity in activities[:self.config.answer_limit]:
            key = (activity.package_name, activity.screen_title)
            if key in seen:
                continue
            seen.add(key)
            when = format_relative_time(activity.timestamp, now)
            lines.append(f"• [{when}] {activity.app_name}: {activity.title}")
        return "\n".join(lines)
