"""
Types shared between the recall pipeline and its search collaborator.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class MemorySearchResult:
    """One relevance-scored snippet returned by a search manager."""

    snippet: str
    score: float
    path: str | None = None
    source: str | None = None
    start_line: int | None = None

    @property
    def identifier(self) -> str | None:
        """The path of the snippet, falling back to its source label."""
        return self.path or self.source


class MemorySearchManager(Protocol):
    """Anything that can run a similarity search over stored memories.

    Results must come back sorted by descending score with any relevance
    decay already applied.
    """

    async def search(
        self,
        query: str,
        *,
        max_results: int,
        min_score: float,
        session_key: str | None = None,
    ) -> list[MemorySearchResult]: ...


#: ``(host_config, agent_id) -> manager``.  May raise, or return ``None``
#: when the agent has no memory to search.
SearchManagerFactory = Callable[
    [Mapping[str, Any], str], Awaitable[MemorySearchManager | None]
]
