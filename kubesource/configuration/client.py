"""Initial bulk pull of configuration property sources."""

from __future__ import annotations

from collections.abc import Sequence

from kubesource.cache.sources import ResourceReader
from kubesource.configuration.mounted import MountedVolumeWatcher
from kubesource.configuration.reconciler import ConfigurationReconciler
from kubesource.configuration.store import PropertySourceStore
from kubesource.models.properties import PropertySource
from kubesource.observability.logging import get_logger

_log = get_logger("configuration.client")


class KubernetesConfigurationClient:
    """Builds the property source set the first time it is requested.

    Each ``(reconciler, reader)`` pair contributes the sources of one kind
    in *namespace*; mounted volumes contribute on top. Once the store holds
    anything, later calls return the store as it is and leave updates to the
    reconcilers and the mounted volume watcher.
    """

    def __init__(
        self,
        store: PropertySourceStore,
        namespace: str,
        kinds: Sequence[tuple[ConfigurationReconciler, ResourceReader]] = (),
        mounted: MountedVolumeWatcher | None = None,
    ) -> None:
        self._store = store
        self._namespace = namespace
        self._kinds = list(kinds)
        self._mounted = mounted

    async def get_property_sources(self) -> list[PropertySource]:
        if len(self._store):
            return self._store.snapshot()

        for reconciler, reader in self._kinds:
            try:
                resources = await reader.list(self._namespace)
            except Exception as exc:
                _log.error(
                    "property_source_list_failed",
                    kind=reconciler.kind,
                    namespace=self._namespace,
                    error=str(exc),
                )
                continue
            loaded = reconciler.load(resources)
            _log.info(
                "property_sources_loaded",
                kind=reconciler.kind,
                namespace=self._namespace,
                resources=len(resources),
                sources=len(loaded),
            )

        if self._mounted is not None:
            mounted = self._mounted.load()
            _log.info("mounted_property_sources_loaded", paths=self._mounted.paths, sources=len(mounted))

        return self._store.snapshot()
