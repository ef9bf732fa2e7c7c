"""Per-source retrievers."""

from .base import SourceRetriever
from .memory import MemoryRetriever
from .clipboard import ClipboardRetriever
from .activity import ActivityRetriever
from .searches import SearchRetriever

__all__ = [
    'SourceRetriever',
    'MemoryRetriever',
    'ClipboardRetriever',
    'ActivityRetriever',
    'SearchRetriever',
]
