"""Past search queries."""

from ..config import ProfileConfig, SourcePool
from ..models import SearchItem
from ..scoring import recency_boost
from .base import SourceRetriever


class SearchRetriever(SourceRetriever[SearchItem]):
    name = "searches"

    def pool(self, profile: ProfileConfig) -> SourcePool:
        return profile.search_pool

    def cap(self) -> int:
        return self.config.limits.searches

    def recency_boost(self, item: SearchItem, profile: ProfileConfig, now: int) -> float:
        return recency_boost(item.timestamp, profile.recency, now)
