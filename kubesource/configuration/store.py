"""Owned, injectable store of property sources keyed by name."""

from __future__ import annotations

import threading
from collections.abc import Iterable

from kubesource.models.properties import PropertySource
from kubesource.observability.metrics import property_sources


class PropertySourceStore:
    """Name -> PropertySource map with atomic multi-entry updates.

    Writers swap in a fresh dict under a lock; readers take the current dict
    reference without locking, so a ``replace`` is observed either entirely
    or not at all.
    """

    def __init__(self, sources: Iterable[PropertySource] = ()) -> None:
        self._sources: dict[str, PropertySource] = {s.name: s for s in sources}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sources)

    def __contains__(self, name: object) -> bool:
        return name in self._sources

    def get(self, name: str) -> PropertySource | None:
        return self._sources.get(name)

    def names(self) -> list[str]:
        return sorted(self._sources)

    def snapshot(self) -> list[PropertySource]:
        """All sources, lowest priority first (ties ordered by name)."""
        return sorted(self._sources.values(), key=lambda s: (s.priority, s.name))

    def add(self, source: PropertySource) -> None:
        self.replace((), (source,))

    def remove(self, name: str) -> PropertySource | None:
        existing = self._sources.get(name)
        if existing is not None:
            self.replace((name,), ())
        return existing

    def replace(self, remove_names: Iterable[str], add: Iterable[PropertySource]) -> None:
        """Remove *remove_names* then insert *add*, as one atomic step."""
        with self._lock:
            sources = dict(self._sources)
            for name in remove_names:
                sources.pop(name, None)
            for source in add:
                sources[source.name] = source
            self._sources = sources
        property_sources.set(len(sources))
