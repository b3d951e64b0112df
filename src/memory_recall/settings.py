"""
Recall settings: loading the host configuration and resolving the
``memoryRecall`` section into a validated, immutable settings object.

The host configuration is a nested mapping, usually read from YAML::

    agents:
      defaults:
        memoryRecall:
          enabled: true
          maxResults: 3
          minScore: 0.5

Keys are accepted in camelCase (as existing host configs write them) or
snake_case.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from .errors import RecallConfigError

#: Location of the recall section inside the host configuration.
RECALL_SECTION: tuple[str, ...] = ("agents", "defaults", "memoryRecall")


class RecallSettings(BaseModel):
    """
    Resolved recall configuration for one invocation.

    ``respect_temporal_decay`` is deprecated and has no effect.  It is still
    accepted and validated so older configuration files keep loading; any
    recency weighting belongs to the search collaborator.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )

    enabled: bool = False
    min_message_length: int = Field(default=20, ge=0)
    max_results: int = Field(default=3, ge=1)
    min_score: float = Field(default=0.5, ge=0.0, le=1.0)
    max_tokens: int = Field(default=1000, ge=1)
    skip_heartbeats: bool = True
    exclude_bootstrapped: bool = True
    random_slot: bool = True
    respect_temporal_decay: bool = True


def get_section(config: Mapping[str, Any] | None, keys: tuple[str, ...]) -> Any:
    """Walk *keys* through nested mappings, returning ``None`` when a level is missing."""
    current: Any = config
    for key in keys:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def resolve_recall_settings(config: Mapping[str, Any] | None) -> RecallSettings | None:
    """
    Return the recall settings for *config*, or ``None`` when recall is off.

    Recall is off when the section is missing or its ``enabled`` flag is
    falsy.  Omitted or null fields take their documented defaults.

    Raises
    ------
    RecallConfigError
        A field is present but outside its allowed range or of the wrong type.
    """
    raw = get_section(config, RECALL_SECTION)
    if not isinstance(raw, Mapping) or not raw.get("enabled"):
        return None
    # A blank key (``maxResults:`` in YAML) falls back to its default.
    values = {k: v for k, v in raw.items() if v is not None}
    try:
        return RecallSettings.model_validate({**values, "enabled": True})
    except ValidationError as exc:
        raise RecallConfigError(f"invalid memoryRecall settings: {exc}") from exc


def load_config(path: str | Path) -> dict[str, Any]:
    """Read a YAML host configuration file.  An empty file yields ``{}``."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise RecallConfigError(f"failed to load config '{path}': {exc}") from exc
    if not isinstance(data, dict):
        raise RecallConfigError(f"config '{path}' must contain a mapping at the top level")
    return data
