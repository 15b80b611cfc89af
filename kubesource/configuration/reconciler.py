"""Watch-driven reconciliation of ConfigMap/Secret property sources.

A ``ConfigurationReconciler`` is registered as a ``ResourceEventHandler`` on
every ConfigMap (or Secret) informer. For each accepted event it rebuilds
the property sources owned by that resource, swaps them into the store in
one step, recomputes the environment and publishes a ``RefreshEvent`` when
the effective configuration changed.

Events delivered before ``mark_started`` are ignored: the initial state is
loaded in bulk through ``load`` instead.
"""

from __future__ import annotations

from collections.abc import Iterable

from kubesource.configuration.environment import Environment
from kubesource.configuration.readers import DEFAULT_READERS, PropertySourceReader
from kubesource.configuration.store import PropertySourceStore
from kubesource.configuration.transform import as_property_sources, is_opaque_secret
from kubesource.errors import PropertySourceReadError
from kubesource.filters import ResourceFilter
from kubesource.models.properties import PropertySource, PropertySourceOrigin, RefreshEvent
from kubesource.models.resources import Resource, ResourceKey, WatchEvent, WatchEventType
from kubesource.notifications.manager import RefreshEventPublisher
from kubesource.observability.logging import get_logger
from kubesource.observability.metrics import property_source_events_total, property_source_read_errors_total

_log = get_logger("configuration.reconciler")


class ConfigurationReconciler:
    """Keeps the store in line with one kind of configuration resource."""

    def __init__(
        self,
        kind: str,
        store: PropertySourceStore,
        environment: Environment,
        publisher: RefreshEventPublisher,
        resource_filter: ResourceFilter | None = None,
        readers: tuple[PropertySourceReader, ...] = DEFAULT_READERS,
    ) -> None:
        self._origin = PropertySourceOrigin(kind)
        self._store = store
        self._environment = environment
        self._publisher = publisher
        self._filter = resource_filter or ResourceFilter()
        self._readers = readers
        self._owned: dict[ResourceKey, list[PropertySource]] = {}
        self._started = False

    @property
    def kind(self) -> str:
        return self._origin.value

    @property
    def service_started(self) -> bool:
        return self._started

    def mark_started(self) -> None:
        self._started = True
        _log.info("reconciler_started", kind=self.kind, owned=len(self._owned))

    def owned_names(self, key: ResourceKey) -> list[str]:
        return [s.name for s in self._owned.get(key, [])]

    def accepts(self, resource: Resource) -> bool:
        if self._origin == PropertySourceOrigin.SECRET and not is_opaque_secret(resource):
            return False
        return self._filter.matches(resource)

    # ------------------------------------------------------------------
    # Bulk load
    # ------------------------------------------------------------------

    def load(self, resources: Iterable[Resource]) -> list[PropertySource]:
        """Store the sources of every accepted resource without publishing.

        Resources whose payload cannot be read are logged and skipped.
        """
        loaded: list[PropertySource] = []
        for resource in resources:
            if not self.accepts(resource):
                continue
            sources = self._transform(resource)
            if sources is None:
                continue
            self._swap(resource.key, sources)
            loaded.extend(sources)
        self._environment.refresh_and_diff()
        return loaded

    # ------------------------------------------------------------------
    # ResourceEventHandler
    # ------------------------------------------------------------------

    def on_add(self, resource: Resource) -> None:
        if not self._observe(WatchEventType.ADDED):
            return
        if not self.accepts(resource):
            return
        sources = self._transform(resource)
        if sources is None:
            return
        self._swap(resource.key, sources)
        self._refresh(f"{self.kind} {resource.key} added")

    def on_update(self, old: Resource, new: Resource) -> None:
        if not self._observe(WatchEventType.MODIFIED):
            return
        if not self.accepts(new):
            if self._owned.get(old.key):
                self._swap(old.key, [])
                self._refresh(f"{self.kind} {new.key} no longer selected")
            return
        sources = self._transform(new)
        if sources is None:
            # the last readable payload stays in effect
            return
        self._swap(new.key, sources)
        self._refresh(f"{self.kind} {new.key} modified")

    def on_delete(self, resource: Resource) -> None:
        if not self._observe(WatchEventType.DELETED):
            return
        if not self._owned.get(resource.key):
            return
        self._swap(resource.key, [])
        self._refresh(f"{self.kind} {resource.key} deleted")

    def on_error(self, event: WatchEvent) -> None:
        property_source_events_total.labels(kind=self.kind, event_type=WatchEventType.ERROR.value).inc()
        _log.warning("watch_error_event", kind=self.kind, status_code=event.status_code, status=event.status)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _observe(self, event_type: WatchEventType) -> bool:
        property_source_events_total.labels(kind=self.kind, event_type=event_type.value).inc()
        if not self._started:
            _log.debug("event_before_start_ignored", kind=self.kind, event_type=event_type.value)
        return self._started

    def _transform(self, resource: Resource) -> list[PropertySource] | None:
        try:
            return as_property_sources(resource, self._readers)
        except PropertySourceReadError as exc:
            property_source_read_errors_total.labels(kind=self.kind).inc()
            _log.error(
                "property_source_read_failed",
                kind=self.kind,
                namespace=resource.namespace,
                name=resource.name,
                error=str(exc),
            )
            return None

    def _swap(self, key: ResourceKey, sources: list[PropertySource]) -> None:
        """Make *sources* the ones owned by *key*, in one store update.

        Several resources may produce the same source name (two ConfigMaps
        each holding ``application.yml``). The store holds the most recently
        applied owner's source; a released name falls back to the source of
        another live owner and is removed only when none is left.
        """
        previous = self._owned.pop(key, [])
        if sources:
            self._owned[key] = sources
        added = {s.name for s in sources}

        released: list[str] = []
        restored: list[PropertySource] = []
        for source in previous:
            if source.name in added:
                continue
            survivor = self._live_source(source.name)
            if survivor is None:
                released.append(source.name)
            else:
                restored.append(survivor)

        for source in sources:
            other = self._live_source(source.name, exclude=key)
            if other is not None:
                _log.warning(
                    "property_source_name_shared",
                    kind=self.kind,
                    source=source.name,
                    resource=str(key),
                )
        self._store.replace(released, [*restored, *sources])

    def _live_source(self, name: str, exclude: ResourceKey | None = None) -> PropertySource | None:
        """The source named *name* of the last-applied live owner, if any."""
        found: PropertySource | None = None
        for key, owned in self._owned.items():
            if key == exclude:
                continue
            for source in owned:
                if source.name == name:
                    found = source
        return found

    def _refresh(self, cause: str) -> None:
        changes = self._environment.refresh_and_diff()
        if not changes:
            _log.debug("configuration_unchanged", cause=cause)
            return
        self._publisher.publish(RefreshEvent(changes=changes, cause=cause))
