"""
Pure stages of the recall pipeline.

These functions sit between the search manager and the agent's context:
  - Eligibility gating and over-fetch sizing before the search
  - Bootstrap exclusion so content already in the context is not repeated
  - Diversity selection: a fixed top slice plus one random slot
  - Rendering and a character-based token budget
"""

from __future__ import annotations

import math
import random
from collections.abc import Iterable, Sequence
from pathlib import PurePosixPath

from .models import MemorySearchResult
from .settings import RecallSettings

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: File names that are always injected into the agent's context, so any
#: snippet taken from them is redundant.
BOOTSTRAP_FILENAMES: frozenset[str] = frozenset({"MEMORY.md", "memory.md"})

#: Extra candidates requested when bootstrap exclusion may discard some.
BOOTSTRAP_HEADROOM: int = 3

#: Extra candidates requested so the random slot has a tail to draw from.
RANDOM_SLOT_HEADROOM: int = 2

#: Rough characters-per-token ratio used for budgeting.
CHARS_PER_TOKEN: int = 4

RECALL_HEADER: str = (
    "## Auto-recalled from memory\n"
    "The following was automatically retrieved from memory based on the "
    "incoming message. Use if relevant, ignore if not."
)


# ---------------------------------------------------------------------------
# Before the search
# ---------------------------------------------------------------------------


def is_eligible(settings: RecallSettings, message: str, is_heartbeat: bool) -> bool:
    """
    Decide whether *message* is worth a search at all.

    Short messages are usually commands or reactions.  Heartbeats (which
    include cron-triggered turns) are skipped when ``skip_heartbeats`` is set.
    """
    if len(message) < settings.min_message_length:
        return False
    if is_heartbeat and settings.skip_heartbeats:
        return False
    return True


def request_count(settings: RecallSettings) -> int:
    """Number of candidates to ask the search manager for."""
    extra = (BOOTSTRAP_HEADROOM if settings.exclude_bootstrapped else 0) + (
        RANDOM_SLOT_HEADROOM if settings.random_slot else 0
    )
    return settings.max_results + extra


# ---------------------------------------------------------------------------
# Bootstrap exclusion
# ---------------------------------------------------------------------------


def is_bootstrapped(result: MemorySearchResult, bootstrapped: Iterable[str]) -> bool:
    """
    Return ``True`` if *result* duplicates content already in the context.

    A result matches when its file name is a well-known bootstrap file, or
    when its identifier and a bootstrapped path contain one another in either
    direction.  The containment test is loose on purpose: it catches
    relative/absolute variants of the same path without normalising them, at
    the cost of occasionally excluding an unrelated file whose identifier
    overlaps.  Results without an identifier never match.
    """
    source = result.identifier
    if not source:
        return False

    if PurePosixPath(source).name in BOOTSTRAP_FILENAMES:
        return True

    for entry in bootstrapped:
        # An empty fragment is contained in every identifier and would drop
        # all results; it is skipped on purpose rather than matched.
        if not entry:
            continue
        if entry in source or source in entry:
            return True
    return False


def filter_bootstrapped(
    results: Sequence[MemorySearchResult],
    bootstrapped: Iterable[str] = (),
) -> list[MemorySearchResult]:
    """Drop every result that :func:`is_bootstrapped` matches, keeping order."""
    entries = list(bootstrapped)
    return [r for r in results if not is_bootstrapped(r, entries)]


# ---------------------------------------------------------------------------
# Diversity selection
# ---------------------------------------------------------------------------


def select_diverse(
    results: Sequence[MemorySearchResult],
    max_results: int,
    random_slot: bool,
    rng: random.Random,
) -> list[MemorySearchResult]:
    """
    Pick at most *max_results* entries from *results* (already best-first).

    Without a random slot, or when there is nothing beyond *max_results* to
    choose from, this is the plain top slice.  Otherwise the top
    ``max_results - 1`` are kept in order and the last slot is drawn
    uniformly from everything after them, so repeated turns on the same
    topic can surface memories that never make the top slice.
    """
    if not random_slot or len(results) <= max_results:
        return list(results[:max_results])

    top = list(results[: max_results - 1])
    tail = results[max_results - 1 :]
    return top + [rng.choice(tail)]


# ---------------------------------------------------------------------------
# Rendering and budget
# ---------------------------------------------------------------------------


def format_location(result: MemorySearchResult) -> str:
    """Return the bracketed tag for *result*, e.g. ``[memory/2024-05-01.md#L12]``."""
    source = result.identifier
    if not source:
        return "[memory]"
    line = f"#L{result.start_line}" if result.start_line else ""
    return f"[{source}{line}]"


def format_snippets(results: Iterable[MemorySearchResult]) -> str:
    """Render one ``[location]: snippet`` line per result, blank-line separated."""
    return "\n\n".join(f"{format_location(r)}: {r.snippet}" for r in results)


def estimate_tokens(text: str) -> int:
    """Approximate token count at :data:`CHARS_PER_TOKEN` characters per token."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def apply_token_budget(text: str, max_tokens: int) -> tuple[str, bool]:
    """
    Cut *text* to ``max_tokens * CHARS_PER_TOKEN`` characters if its estimate
    exceeds *max_tokens*.

    The cut is a plain character slice and may end mid-line.

    Returns
    -------
    tuple[str, bool]
        The (possibly shortened) text and whether it was truncated.
    """
    if estimate_tokens(text) <= max_tokens:
        return text, False
    return text[: max_tokens * CHARS_PER_TOKEN], True


def format_recall_block(body: str) -> str:
    """Wrap *body* in the fixed recall header."""
    return f"{RECALL_HEADER}\n\n{body}"
