"""Layered configuration view over base sources and the property source store."""

from __future__ import annotations

import threading
from collections.abc import Iterable
from typing import Any

from kubesource.configuration.store import PropertySourceStore
from kubesource.models.properties import PropertySource

_MISSING = object()


class Environment:
    """Effective properties computed from every known property source.

    Sources are applied in ascending ``(priority, name)`` order, so a higher
    priority overrides a lower one and, at equal priority, the source whose
    name sorts last wins. The effective map only changes on
    ``refresh_and_diff``.
    """

    def __init__(self, store: PropertySourceStore, base_sources: Iterable[PropertySource] = ()) -> None:
        self._store = store
        self._base = list(base_sources)
        self._lock = threading.Lock()
        self._effective = self._compute()

    @property
    def properties(self) -> dict[str, Any]:
        return dict(self._effective)

    def get(self, key: str, default: Any = None) -> Any:
        return self._effective.get(key, default)

    def sources(self) -> list[PropertySource]:
        return sorted([*self._base, *self._store.snapshot()], key=lambda s: (s.priority, s.name))

    def _compute(self) -> dict[str, Any]:
        merged: dict[str, Any] = {}
        for source in self.sources():
            merged.update(source.data)
        return merged

    def refresh_and_diff(self) -> dict[str, Any]:
        """Recompute the effective properties.

        Returns the changed keys mapped to their previous values (None for
        keys that did not exist before). An empty dict means nothing changed.
        """
        with self._lock:
            previous = self._effective
            current = self._compute()
            changes = {
                key: previous.get(key)
                for key in previous.keys() | current.keys()
                if previous.get(key, _MISSING) != current.get(key, _MISSING)
            }
            self._effective = current
        return changes
