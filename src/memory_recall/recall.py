"""
MemoryRecall: pre-turn memory recall for conversational agents.

Before each agent turn the incoming message is used as a query against the
agent's memory; a few relevant snippets are picked and returned as a text
block for the agent's system context.

Usage example::

    from memory_recall import MemoryRecall, chroma_manager_factory

    recall = MemoryRecall(chroma_manager_factory(db_path="./chroma_db"))

    block = await recall.recall(
        config,
        agent_id="main",
        incoming_message="What did we decide about the database migration?",
    )
    if block:
        system_prompt += "\n\n" + block
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Iterable, Mapping
from typing import Any

from .errors import RecallConfigError
from .models import MemorySearchResult, SearchManagerFactory
from .selection import (
    apply_token_budget,
    estimate_tokens,
    filter_bootstrapped,
    format_recall_block,
    format_snippets,
    is_eligible,
    request_count,
    select_diverse,
)
from .settings import RecallSettings, resolve_recall_settings

logger = logging.getLogger(__name__)


class MemoryRecall:
    """
    Runs the recall pipeline against an injected search manager factory.

    Responsibilities
    ----------------
    * **Gate** – Skips disabled configs, short messages and (optionally)
      heartbeats before any search is issued.
    * **Fetch** – Over-fetches from the search manager so that later
      filtering and the random slot still leave enough candidates.
    * **Select** – Drops snippets already present in the agent's bootstrap
      context and keeps the top results plus one random pick.
    * **Budget** – Renders the selection and cuts it to the token budget.

    Recall is best effort: every failure is logged and turned into ``None``
    so the agent's turn is never blocked.

    Parameters
    ----------
    manager_factory:
        Async callable ``(config, agent_id)`` returning a search manager, or
        ``None`` when the agent has nothing to search.
    rng:
        Random source for the diversity slot.  Pass a seeded
        ``random.Random`` for reproducible selections.
    """

    def __init__(
        self,
        manager_factory: SearchManagerFactory,
        rng: random.Random | None = None,
    ) -> None:
        self._manager_factory = manager_factory
        self._rng = rng or random.Random()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def recall(
        self,
        config: Mapping[str, Any],
        agent_id: str,
        incoming_message: str,
        is_heartbeat: bool = False,
        bootstrapped_paths: Iterable[str] | None = None,
        session_key: str | None = None,
    ) -> str | None:
        """
        Return a recall block for *incoming_message*, or ``None``.

        ``None`` means recall is disabled, the message was skipped, the
        search failed, or nothing relevant and new was found.  This method
        never raises.

        Parameters
        ----------
        config:
            Host configuration holding the ``agents.defaults.memoryRecall``
            section.
        agent_id:
            Agent whose memory is searched.
        incoming_message:
            The user message that starts the turn; used as the query.
        is_heartbeat:
            ``True`` for automatic (heartbeat or cron) turns.
        bootstrapped_paths:
            Paths already injected into the agent's context.
        session_key:
            Passed through to the search manager.
        """
        try:
            settings = resolve_recall_settings(config)
        except RecallConfigError as exc:
            logger.warning("memory recall: %s", exc)
            return None
        if settings is None:
            return None

        if not is_eligible(settings, incoming_message, is_heartbeat):
            return None

        try:
            return await self._run(
                settings,
                config,
                agent_id,
                incoming_message,
                bootstrapped_paths,
                session_key,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("memory recall: unexpected failure: %s", exc, exc_info=True)
            return None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _run(
        self,
        settings: RecallSettings,
        config: Mapping[str, Any],
        agent_id: str,
        incoming_message: str,
        bootstrapped_paths: Iterable[str] | None,
        session_key: str | None,
    ) -> str | None:
        start = time.monotonic()

        results = await self._fetch(settings, config, agent_id, incoming_message, session_key)
        if not results:
            return None

        if settings.exclude_bootstrapped:
            results = filter_bootstrapped(results, bootstrapped_paths or ())
            if not results:
                return None

        selected = select_diverse(
            results, settings.max_results, settings.random_slot, self._rng
        )
        snippets = format_snippets(selected)
        body, truncated = apply_token_budget(snippets, settings.max_tokens)

        elapsed_ms = int((time.monotonic() - start) * 1000)
        if truncated:
            logger.info(
                "memory recall: %d results, truncated to ~%d tokens (%dms)",
                len(selected),
                settings.max_tokens,
                elapsed_ms,
            )
        else:
            logger.info(
                "memory recall: %d results, ~%d tokens (%dms)",
                len(selected),
                estimate_tokens(snippets),
                elapsed_ms,
            )
        return format_recall_block(body)

    async def _fetch(
        self,
        settings: RecallSettings,
        config: Mapping[str, Any],
        agent_id: str,
        query: str,
        session_key: str | None,
    ) -> list[MemorySearchResult]:
        """Acquire the search manager and run the over-fetching search.

        Failures are logged and reported as an empty candidate list.
        """
        try:
            manager = await self._manager_factory(config, agent_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning("memory recall: failed to get manager: %s", exc)
            return []
        if manager is None:
            return []

        try:
            results = await manager.search(
                query,
                max_results=request_count(settings),
                min_score=settings.min_score,
                session_key=session_key,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("memory recall: search failed: %s", exc)
            return []
        return list(results)


async def run_pre_turn_memory_recall(
    config: Mapping[str, Any],
    agent_id: str,
    incoming_message: str,
    is_heartbeat: bool = False,
    bootstrapped_paths: Iterable[str] | None = None,
    session_key: str | None = None,
    *,
    manager_factory: SearchManagerFactory,
    rng: random.Random | None = None,
) -> str | None:
    """One-shot form of :meth:`MemoryRecall.recall`."""
    return await MemoryRecall(manager_factory, rng=rng).recall(
        config,
        agent_id,
        incoming_message,
        is_heartbeat=is_heartbeat,
        bootstrapped_paths=bootstrapped_paths,
        session_key=session_key,
    )
