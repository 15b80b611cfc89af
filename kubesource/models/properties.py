"""Configuration property source data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class PropertySourceOrigin(StrEnum):
    """Kind of object a property source was derived from."""

    CONFIG_MAP = "ConfigMap"
    SECRET = "Secret"
    ENVIRONMENT = "Environment"


# Ordering between layers; a higher value overrides a lower one.
PRIORITY_LITERAL = 0
PRIORITY_FILE = 100
PRIORITY_MOUNTED = 150


@dataclass(frozen=True)
class PropertySource:
    """A named, prioritized map of configuration properties.

    ``data`` is always flat: nested documents are flattened to dotted keys
    before a source is built.
    """

    name: str
    priority: int
    data: dict[str, Any] = field(default_factory=dict)
    origin: PropertySourceOrigin = PropertySourceOrigin.CONFIG_MAP
    source_resource_version: str = ""


@dataclass(frozen=True)
class RefreshEvent:
    """Published when a reconciliation changed the effective configuration.

    ``changes`` maps each changed key to its previous value (None when the
    key did not exist before).
    """

    changes: dict[str, Any]
    cause: str = ""
    occurred_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    @property
    def changed_keys(self) -> list[str]:
        return sorted(self.changes)
