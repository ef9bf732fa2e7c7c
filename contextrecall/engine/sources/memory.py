"""Remembered facts and preferences."""

from ..config import ProfileConfig, SourcePool
from ..models import MemoryItem
from .base import SourceRetriever


class MemoryRetriever(SourceRetriever[MemoryItem]):
    """Memories rank on importance and access count; age is ignored."""

    name = "memories"

    def pool(self, profile: ProfileConfig) -> SourcePool:
        return profile.memory_pool

    def cap(self) -> int:
        return self.config.limits.memories

    def static_boost(self, item: MemoryItem, profile: ProfileConfig) -> float:
        return item.boost
