"""Name and label filters applied to discovered services and config sources."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from kubesource.models.resources import Resource


@dataclass(frozen=True)
class ResourceFilter:
    """Includes/excludes by name, plus required labels.

    A non-empty ``includes`` is authoritative and ``excludes`` is then
    ignored. Every label in ``labels`` must be present with the same value.
    """

    includes: frozenset[str] = frozenset()
    excludes: frozenset[str] = frozenset()
    labels: tuple[tuple[str, str], ...] = field(default_factory=tuple)

    @classmethod
    def build(
        cls,
        includes: Iterable[str] = (),
        excludes: Iterable[str] = (),
        labels: Mapping[str, str] | None = None,
    ) -> ResourceFilter:
        return cls(
            includes=frozenset(includes),
            excludes=frozenset(excludes),
            labels=tuple((labels or {}).items()),
        )

    def matches_name(self, name: str) -> bool:
        if self.includes:
            return name in self.includes
        if self.excludes:
            return name not in self.excludes
        return True

    def matches_labels(self, labels: Mapping[str, str]) -> bool:
        return all(labels.get(key) == value for key, value in self.labels)

    def matches(self, resource: Resource) -> bool:
        return self.matches_name(resource.name) and self.matches_labels(resource.labels)
