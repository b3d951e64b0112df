"""
ChromaDB-backed search manager for the recall pipeline.

The store is read-only from this package's point of view: snippets are
written by whatever indexes the agent's memory files, with ``path``,
``source`` and ``start_line`` metadata on each document.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import chromadb
from chromadb.utils import embedding_functions

from .errors import SearchManagerUnavailable
from .models import MemorySearchResult, SearchManagerFactory
from .settings import get_section

#: Location of the store settings inside the host configuration.
STORE_SECTION: tuple[str, ...] = ("agents", "defaults", "memorySearch", "store")

DEFAULT_DB_PATH = "./chroma_db"
DEFAULT_COLLECTION = "memories"
DEFAULT_EMBEDDING_MODEL = "all-MiniLM-L6-v2"


def get_embedding_function(
    model_name: str = DEFAULT_EMBEDDING_MODEL,
) -> embedding_functions.SentenceTransformerEmbeddingFunction:
    """Return a sentence-transformer embedding function for ChromaDB."""
    return embedding_functions.SentenceTransformerEmbeddingFunction(
        model_name=model_name
    )


class VectorStore:
    """
    Vector store backed by ChromaDB.

    Uses cosine space so that distance values returned by queries
    are in the range [0, 2]:
        distance = 1 - cosine_similarity
        cosine_similarity ∈ [-1, 1]  →  distance ∈ [0, 2]
    """

    def __init__(
        self,
        path: str = DEFAULT_DB_PATH,
        collection_name: str = DEFAULT_COLLECTION,
        embedding_model: str = DEFAULT_EMBEDDING_MODEL,
        _client: chromadb.ClientAPI | None = None,
        _embedding_function: Any | None = None,
    ) -> None:
        self.client = _client or chromadb.PersistentClient(path=path)
        ef = _embedding_function or get_embedding_function(embedding_model)
        self.collection = self.client.get_or_create_collection(
            name=collection_name,
            embedding_function=ef,
            metadata={"hnsw:space": "cosine"},
        )

    def query(self, query_text: str, n_results: int = 5) -> dict:
        """
        Query the collection by semantic similarity.

        Returns a ChromaDB result dict with keys:
            ids, documents, metadatas, distances
        """
        n = min(n_results, self.count())
        if n == 0:
            return {"ids": [[]], "documents": [[]], "metadatas": [[]], "distances": [[]]}
        return self.collection.query(
            query_texts=[query_text],
            n_results=n,
        )

    def count(self) -> int:
        """Return the total number of stored documents."""
        return self.collection.count()


class ChromaSearchManager:
    """
    Search manager over a :class:`VectorStore`.

    Scores are cosine similarities (``1 - distance``).  Results under the
    relevance floor are dropped and the rest returned best-first.
    ``session_key`` is accepted for interface compatibility; a single
    collection has no notion of sessions.
    """

    def __init__(self, store: VectorStore) -> None:
        self._store = store

    async def search(
        self,
        query: str,
        *,
        max_results: int,
        min_score: float,
        session_key: str | None = None,
    ) -> list[MemorySearchResult]:
        raw = await asyncio.to_thread(self._store.query, query, max_results)
        results = [r for r in _to_results(raw) if r.score >= min_score]
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:max_results]


def _to_results(raw: dict) -> list[MemorySearchResult]:
    docs = raw["documents"][0] if raw.get("documents") else []
    distances = raw["distances"][0] if raw.get("distances") else []
    metadatas = raw.get("metadatas") or [[]]
    metas = metadatas[0] or []

    results: list[MemorySearchResult] = []
    for i, doc in enumerate(docs):
        meta = (metas[i] if i < len(metas) else None) or {}
        start_line = meta.get("start_line")
        results.append(
            MemorySearchResult(
                snippet=doc,
                score=1.0 - distances[i],
                path=meta.get("path") or None,
                source=meta.get("source") or None,
                start_line=int(start_line) if start_line is not None else None,
            )
        )
    return results


def resolve_store_settings(config: Mapping[str, Any] | None) -> dict[str, Any]:
    """Return the ``memorySearch.store`` section of *config*, or ``{}``."""
    section = get_section(config, STORE_SECTION)
    return dict(section) if isinstance(section, Mapping) else {}


def chroma_manager_factory(
    db_path: str | None = None,
    collection_name: str | None = None,
    embedding_model: str | None = None,
    _client: chromadb.ClientAPI | None = None,
    _embedding_function: Any | None = None,
) -> SearchManagerFactory:
    """
    Build a search manager factory backed by ChromaDB.

    Explicit arguments win over the host config's ``memorySearch.store``
    section (``path``, ``collection``, ``model``), which wins over the
    defaults.  The collection name may contain ``{agent_id}`` to give each
    agent its own collection.  One store is opened per collection and reused
    by later calls to the same factory.
    """
    stores: dict[tuple[str, str], VectorStore] = {}

    async def factory(config: Mapping[str, Any], agent_id: str) -> ChromaSearchManager:
        store_cfg = resolve_store_settings(config)
        path = db_path or store_cfg.get("path") or DEFAULT_DB_PATH
        template = collection_name or store_cfg.get("collection") or DEFAULT_COLLECTION
        model = embedding_model or store_cfg.get("model") or DEFAULT_EMBEDDING_MODEL
        collection = template.format(agent_id=agent_id)

        key = (path, collection)
        store = stores.get(key)
        if store is None:
            try:
                store = await asyncio.to_thread(
                    VectorStore,
                    path=path,
                    collection_name=collection,
                    embedding_model=model,
                    _client=_client,
                    _embedding_function=_embedding_function,
                )
            except Exception as exc:
                raise SearchManagerUnavailable(
                    f"cannot open memory store {collection!r} at {path!r}: {exc}"
                ) from exc
            stores[key] = store
        return ChromaSearchManager(store)

    return factory
