"""Exception types raised by memory-recall."""

from __future__ import annotations


class MemoryRecallError(Exception):
    """Base class for every error raised by this package."""


class RecallConfigError(MemoryRecallError):
    """The host configuration or its ``memoryRecall`` section is invalid."""


class SearchManagerUnavailable(MemoryRecallError):
    """A search manager factory could not open its backing store."""
