"""
memory-recall: pre-turn memory recall for conversational agents.

Picks a small, diversified, budget-limited set of stored memory snippets
relevant to each incoming message and renders them as a context block.
"""

from .errors import MemoryRecallError, RecallConfigError, SearchManagerUnavailable
from .models import MemorySearchManager, MemorySearchResult, SearchManagerFactory
from .recall import MemoryRecall, run_pre_turn_memory_recall
from .settings import RecallSettings, load_config, resolve_recall_settings
from .store import ChromaSearchManager, VectorStore, chroma_manager_factory

__all__ = [
    "ChromaSearchManager",
    "MemoryRecall",
    "MemoryRecallError",
    "MemorySearchManager",
    "MemorySearchResult",
    "RecallConfigError",
    "RecallSettings",
    "SearchManagerFactory",
    "SearchManagerUnavailable",
    "VectorStore",
    "chroma_manager_factory",
    "load_config",
    "resolve_recall_settings",
    "run_pre_turn_memory_recall",
]
