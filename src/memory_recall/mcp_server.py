"""
MCP (Model Context Protocol) server for memory-recall.

Exposes pre-turn recall as a tool so an agent host can fetch relevant
memories for the message it is about to answer.

Run as a stdio server:
    python -m memory_recall.mcp_server

Or via the installed entry-point:
    memory-recall-mcp

Configuration (environment variables):
    MEMORY_RECALL_CONFIG      - YAML host configuration file (default: none, recall disabled;
                                an unreadable file also disables recall)
    MEMORY_RECALL_DB_PATH     - path to the ChromaDB store (default: ~/.cache/memory-recall)
    MEMORY_RECALL_COLLECTION  - ChromaDB collection name, may contain {agent_id} (default: memories)
    MEMORY_RECALL_MODEL       - sentence-transformers model (default: all-MiniLM-L6-v2)
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from .errors import RecallConfigError
from .recall import MemoryRecall
from .settings import load_config
from .store import DEFAULT_COLLECTION, DEFAULT_EMBEDDING_MODEL, chroma_manager_factory

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Resolve configuration from environment (with sensible defaults)
# ---------------------------------------------------------------------------

_DEFAULT_DB_PATH = str(Path.home() / ".cache" / "memory-recall")

_CONFIG_PATH = os.environ.get("MEMORY_RECALL_CONFIG")
_DB_PATH = os.environ.get("MEMORY_RECALL_DB_PATH", _DEFAULT_DB_PATH)
_COLLECTION = os.environ.get("MEMORY_RECALL_COLLECTION", DEFAULT_COLLECTION)
_MODEL = os.environ.get("MEMORY_RECALL_MODEL", DEFAULT_EMBEDDING_MODEL)

# Lazy-initialised so the config file and embedding model are only loaded once.
_config: dict[str, Any] | None = None
_recall: MemoryRecall | None = None


def _get_config() -> dict[str, Any]:
    """Load the host config once.  An unreadable file disables recall until restart."""
    global _config
    if _config is None:
        try:
            _config = load_config(_CONFIG_PATH) if _CONFIG_PATH else {}
        except RecallConfigError as exc:
            logger.warning("memory recall disabled: %s", exc)
            _config = {}
    return _config


def _get_recall() -> MemoryRecall:
    global _recall
    if _recall is None:
        _recall = MemoryRecall(
            chroma_manager_factory(
                db_path=_DB_PATH,
                collection_name=_COLLECTION,
                embedding_model=_MODEL,
            )
        )
    return _recall


# ---------------------------------------------------------------------------
# FastMCP server
# ---------------------------------------------------------------------------

mcp = FastMCP(
    "memory-recall",
    instructions=(
        "Pre-turn memory recall. "
        "Call `recall_memories` with the incoming user message before "
        "answering it; if a context block comes back, treat it as background "
        "that may or may not be relevant."
    ),
)


@mcp.tool()
async def recall_memories(
    message: str,
    agent_id: str = "main",
    is_heartbeat: bool = False,
    bootstrapped_paths: list[str] | None = None,
    session_key: str | None = None,
) -> str:
    """
    Recall stored memories relevant to an incoming message.

    Args:
        message:            The incoming message that starts the turn.
        agent_id:           Agent whose memory is searched (default "main").
        is_heartbeat:       True for automatic heartbeat or cron turns.
        bootstrapped_paths: Files already in the agent's context; snippets
                            from them are not repeated.
        session_key:        Optional session identifier for the search.

    Returns:
        A markdown context block, or a short notice when nothing was recalled.
    """
    block = await _get_recall().recall(
        _get_config(),
        agent_id,
        message,
        is_heartbeat=is_heartbeat,
        bootstrapped_paths=bootstrapped_paths,
        session_key=session_key,
    )
    return block if block is not None else "No memories recalled."


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------


def main() -> None:
    """Run the MCP server over stdio."""
    logging.basicConfig(level=logging.INFO, stream=sys.stderr)
    logger.info("starting memory-recall MCP server (db=%s)", _DB_PATH)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
