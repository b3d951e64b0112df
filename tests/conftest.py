"""
Shared pytest fixtures for memory-recall tests.

Uses ChromaDB in ephemeral (in-memory) mode and a deterministic
fake embedding function so that tests run fast without downloading
any ML models.  Pipeline tests use ``FakeSearchManager`` instead of a
real store so that scores and ordering are exact.
"""

from __future__ import annotations

import hashlib
import uuid
from typing import Any

import chromadb
import pytest

from memory_recall.models import MemorySearchResult
from memory_recall.store import VectorStore


class FakeEmbeddingFunction:
    """
    Deterministic embedding function that maps text to a unit vector
    derived from its MD5 hash.  Fast and reproducible – no model download.
    Implements both the legacy ``__call__`` interface and the newer
    ``embed_documents`` / ``embed_query`` interface used by ChromaDB ≥ 0.5.
    """

    def name(self) -> str:  # required by ChromaDB >= 0.5
        return "fake-md5-embedding"

    def _embed(self, texts: list[str]) -> list[list[float]]:
        embeddings = []
        for text in texts:
            digest = hashlib.md5(text.encode()).digest()
            # 16-byte digest → 16-dim float vector in [-1, 1]
            vec = [(b - 128) / 128.0 for b in digest]
            norm = sum(x * x for x in vec) ** 0.5 or 1.0
            embeddings.append([x / norm for x in vec])
        return embeddings

    def __call__(self, input: list[str]) -> list[list[float]]:  # noqa: A002
        return self._embed(input)

    def embed_documents(self, input: list[str]) -> list[list[float]]:  # noqa: A002
        return self._embed(input)

    def embed_query(self, input: list[str]) -> list[list[float]]:  # noqa: A002
        return self._embed(input)


class FakeSearchManager:
    """Search manager returning a fixed result list and recording each call."""

    def __init__(
        self,
        results: list[MemorySearchResult] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.results = results or []
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def search(
        self,
        query: str,
        *,
        max_results: int,
        min_score: float,
        session_key: str | None = None,
    ) -> list[MemorySearchResult]:
        self.calls.append(
            {
                "query": query,
                "max_results": max_results,
                "min_score": min_score,
                "session_key": session_key,
            }
        )
        if self.error is not None:
            raise self.error
        return list(self.results)


class FakeManagerFactory:
    """Async factory handing out one manager (or raising), counting acquisitions."""

    def __init__(
        self,
        manager: FakeSearchManager | None = None,
        error: Exception | None = None,
    ) -> None:
        self.manager = manager
        self.error = error
        self.calls: list[tuple[Any, str]] = []

    async def __call__(self, config, agent_id: str) -> FakeSearchManager | None:
        self.calls.append((config, agent_id))
        if self.error is not None:
            raise self.error
        return self.manager


def make_results(*scores: float, prefix: str = "memory/note") -> list[MemorySearchResult]:
    """Build results with distinct paths, in the order given."""
    return [
        MemorySearchResult(
            snippet=f"snippet {i}",
            score=score,
            path=f"{prefix}-{i}.md",
            start_line=i + 1,
        )
        for i, score in enumerate(scores)
    ]


def recall_config(**overrides: Any) -> dict[str, Any]:
    """Host config with recall enabled and the given camelCase overrides."""
    section: dict[str, Any] = {"enabled": True}
    section.update(overrides)
    return {"agents": {"defaults": {"memoryRecall": section}}}


def seed(store: VectorStore, id: str, document: str, metadata: dict | None = None) -> None:
    """Write a document straight into *store*'s collection, as an indexer would."""
    store.collection.add(
        ids=[id],
        documents=[document],
        metadatas=[metadata] if metadata else None,
    )


LONG_MESSAGE ="What did we decide about the database migration last week?"


# A single shared EphemeralClient instance for the test session.
# Each fixture call creates a uniquely named collection so tests are isolated.
_EPHEMERAL_CLIENT = chromadb.EphemeralClient()


@pytest.fixture()
def ephemeral_store() -> VectorStore:
    """In-memory VectorStore with the fake embedding function.

    A unique collection name is used per fixture invocation so that tests
    cannot interfere with each other despite sharing the same EphemeralClient.
    """
    collection_name = f"test_{uuid.uuid4().hex}"
    return VectorStore(
        _client=_EPHEMERAL_CLIENT,
        collection_name=collection_name,
        _embedding_function=FakeEmbeddingFunction(),
    )


@pytest.fixture()
def fake_manager() -> FakeSearchManager:
    """Search manager returning five results scored 0.9 down to 0.5."""
    return FakeSearchManager(make_results(0.9, 0.8, 0.7, 0.6, 0.5))


@pytest.fixture()
def fake_factory(fake_manager: FakeSearchManager) -> FakeManagerFactory:
    return FakeManagerFactory(fake_manager)
