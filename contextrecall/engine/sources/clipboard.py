"""Clipboard history."""

from ..config import ProfileConfig, SourcePool
from ..models import ClipboardItem
from ..scoring import recency_boost
from .base import SourceRetriever


class ClipboardRetriever(SourceRetriever[ClipboardItem]):
    name = "clipboard"

    def pool(self, profile: ProfileConfig) -> SourcePool:
        return profile.clipboard_pool

    def cap(self) -> int:
        return self.config.limits.clipboard

    def static_boost(self, item: ClipboardItem, profile: ProfileConfig) -> float:
        return profile.pinned_boost if item.is_pinned else 0.0

    def recency_boost(self, item: ClipboardItem, profile: ProfileConfig, now: int) -> float:
        return recency_boost(item.timestamp, profile.recency, now)
