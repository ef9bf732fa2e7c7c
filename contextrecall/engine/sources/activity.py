"""Screen-activity snapshots."""

from ..config import ProfileConfig, SourcePool
from ..models import ActivityItem
from ..scoring import recency_boost
from .base import SourceRetriever


class ActivityRetriever(SourceRetriever[ActivityItem]):
    name = "activities"

    def pool(self, profile: ProfileConfig) -> SourcePool:
        return profile.activity_pool

    def cap(self) -> int:
        return self.config.limits.activities

    def recency_boost(self, item: ActivityItem, profile: ProfileConfig, now: int) -> float:
        return recency_boost(item.timestamp, profile.recency, now)
