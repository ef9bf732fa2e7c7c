"""
contextrecall - on-device retrieval and context assembly.

Ranks a user's memories, clipboard, screen activity and past searches
against a query and packs the best of them into a prompt-sized context block.
"""

__version__ = "0.1.0"

from .engine import RAGEngine, EngineConfig, RAGContext

__all__ = ['RAGEngine', 'EngineConfig', 'RAGContext', '__version__']
