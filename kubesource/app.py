"""Application bootstrap for kubesource.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → K8s client → discovery cache → notifications
              → property source store → informers → discovery client
              → initial configuration pull → reconcilers and mounted volume
              watcher started → REST

Shutdown stops components in reverse startup order. Each component's stop
error is caught and logged independently.
"""

from __future__ import annotations

import asyncio
import functools
import signal
from collections.abc import Sequence
from datetime import timedelta
from typing import TYPE_CHECKING

from kubesource.cache import ALL_NAMESPACES, IndexerComposite, Informer, ResourceCache, ResourceEventHandler
from kubesource.cache.discovery_cache import DiscoveryMetadataCache, resolve_namespaces
from kubesource.cache.sources import IndexerReader, ResourceReader, SourceReader
from kubesource.config import load_config
from kubesource.configuration import (
    ConfigurationReconciler,
    Environment,
    KubernetesConfigurationClient,
    MountedVolumeWatcher,
    PropertySourceStore,
)
from kubesource.discovery import (
    EndpointsInstanceProvider,
    KubernetesDiscoveryClient,
    ServiceInstanceProvider,
    ServicesInstanceProvider,
    resolve_provider_namespaces,
)
from kubesource.filters import ResourceFilter
from kubesource.models.config import KubeSourceConfig, ResourceSourceConfig
from kubesource.models.discovery import DiscoveryMode
from kubesource.notifications import RefreshEventPublisher, build_refresh_publisher
from kubesource.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

_SHUTDOWN_GRACE_SECONDS = 15
_SYNC_TIMEOUT_SECONDS = 30.0

# Resource kind read by each discovery mode.
_MODE_KINDS = {
    DiscoveryMode.ENDPOINT.value: "Endpoints",
    DiscoveryMode.SERVICE.value: "Service",
}
_MODE_PROVIDERS = {
    DiscoveryMode.ENDPOINT.value: EndpointsInstanceProvider,
    DiscoveryMode.SERVICE.value: ServicesInstanceProvider,
}


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class KubeSourceApp:
    """Application root. Owns every component and coordinates their lifecycle.

    ``stop()`` on an app that was never started (or already stopped) is safe.
    """

    def __init__(self) -> None:
        self.config: KubeSourceConfig | None = None

        self._api_client: object | None = None
        self._core_v1: object | None = None
        self._discovery_cache: DiscoveryMetadataCache | None = None
        self._publisher: RefreshEventPublisher | None = None
        self._store: PropertySourceStore | None = None
        self._environment: Environment | None = None
        self._reconcilers: list[tuple[ConfigurationReconciler, ResourceReader]] = []
        self._informers: list[Informer] = []
        self._indexers: list[IndexerComposite] = []
        self._discovery_client: KubernetesDiscoveryClient | None = None
        self._configuration_client: KubernetesConfigurationClient | None = None
        self._mounted_watcher: MountedVolumeWatcher | None = None
        self._rest_server: object | None = None

        self._background_tasks: list[asyncio.Task[None]] = []

        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    @property
    def running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        # --- 1. Configuration -------------------------------------------
        self.config = load_config()

        # --- 2. Logging -------------------------------------------------
        setup_logging(self.config.log.level, namespace=self.config.namespace)
        self._log = get_logger("app")
        self._log.info("kubesource starting", version=_kubesource_version(), namespace=self.config.namespace)

        # --- 3. Kubernetes client ----------------------------------------
        await self._start_k8s_client()

        # --- 4. API discovery metadata cache (optional) ------------------
        await self._start_discovery_cache()

        # --- 5. Refresh notifications ------------------------------------
        self._publisher = build_refresh_publisher(self.config.notifications)

        # --- 6. Property source store and reconcilers --------------------
        await self._start_configuration()

        # --- 7. Service discovery ----------------------------------------
        await self._start_discovery()

        # --- 8. Wait for informer caches ---------------------------------
        await self._wait_for_informers()

        # --- 9. Initial configuration pull, then accept watch events -----
        await self._load_property_sources()

        # --- 10. REST API ------------------------------------------------
        await self._start_rest()

        self._running = True
        self._log.info("kubesource started", informers=len(self._informers))

    # ------------------------------------------------------------------
    # Component startup helpers
    # ------------------------------------------------------------------

    async def _start_k8s_client(self) -> None:
        """Initialise the kubernetes-asyncio client from in-cluster config or kubeconfig."""
        assert self._log is not None
        self._log.debug("starting k8s client")
        try:
            import kubernetes_asyncio.config as k8s_config  # type: ignore[import-untyped]
            from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

            try:
                k8s_config.load_incluster_config()
                self._log.info("k8s client configured from in-cluster service account")
            except k8s_config.ConfigException:
                await k8s_config.load_kube_config()
                self._log.info("k8s client configured from kubeconfig")

            self._api_client = k8s_client.ApiClient()
            self._core_v1 = k8s_client.CoreV1Api(self._api_client)
        except Exception as exc:
            raise _ComponentError("k8s_client", exc) from exc

    async def _start_discovery_cache(self) -> None:
        """Build the API discovery metadata cache and warm it.

        Non-fatal: without a catalogue every kind is treated as namespaced.
        """
        assert self._log is not None
        assert self.config is not None
        settings = self.config.discovery_cache
        if not settings.enabled:
            self._log.info("api discovery cache disabled")
            return
        from kubesource.client.kubernetes import fetch_discovery_entries

        self._discovery_cache = DiscoveryMetadataCache(
            functools.partial(fetch_discovery_entries, self._api_client),
            refresh_interval=timedelta(minutes=settings.refresh_interval_minutes),
            timeout=timedelta(seconds=settings.timeout_seconds),
        )
        try:
            entries = await self._discovery_cache.find_all()
            self._log.info("api discovery cache started", entries=len(entries))
        except Exception as exc:
            self._log.warning("api discovery cache warm-up failed; retrying on demand", error=str(exc))

    async def _start_configuration(self) -> None:
        """Create the store, the environment and one reconciler per enabled kind."""
        assert self._log is not None
        assert self.config is not None
        assert self._publisher is not None
        try:
            self._store = PropertySourceStore()
            self._environment = Environment(self._store)
            kinds: list[tuple[str, ResourceSourceConfig]] = [
                ("ConfigMap", self.config.config_maps),
                ("Secret", self.config.secrets),
            ]
            for kind, settings in kinds:
                if not settings.enabled:
                    self._log.info("property source kind disabled", kind=kind)
                    continue
                reconciler = ConfigurationReconciler(
                    kind,
                    self._store,
                    self._environment,
                    self._publisher,
                    resource_filter=ResourceFilter.build(settings.includes, settings.excludes, settings.labels),
                )
                selector = await self._label_selector(settings.labels, settings.pod_labels)
                reader = await self._build_reader(
                    kind,
                    [self.config.namespace],
                    selector,
                    settings.watch_enabled,
                    handlers=[reconciler],
                )
                self._reconcilers.append((reconciler, reader))

            config_map_paths = self.config.config_maps.paths if self.config.config_maps.enabled else []
            secret_paths = self.config.secrets.paths if self.config.secrets.enabled else []
            if config_map_paths or secret_paths:
                self._mounted_watcher = MountedVolumeWatcher(
                    self._store,
                    self._environment,
                    self._publisher,
                    config_map_paths=config_map_paths,
                    secret_paths=secret_paths,
                    interval=self.config.mounted_poll_interval_seconds,
                )

            self._configuration_client = KubernetesConfigurationClient(
                self._store,
                self.config.namespace,
                self._reconcilers,
                mounted=self._mounted_watcher,
            )
            self._log.info("configuration reconcilers started", kinds=[r.kind for r, _ in self._reconcilers])
        except Exception as exc:
            raise _ComponentError("configuration", exc) from exc

    async def _start_discovery(self) -> None:
        """Build one provider per discovery mode in use and the discovery client."""
        assert self._log is not None
        assert self.config is not None
        discovery = self.config.discovery
        if not discovery.enabled:
            self._log.info("service discovery disabled")
            return
        try:
            modes = {discovery.mode.lower()}
            modes.update((s.mode or discovery.mode).lower() for s in discovery.services.values())
            selector = await self._label_selector(discovery.labels, discovery.pod_labels)
            discovery_filter = ResourceFilter.build(discovery.includes, discovery.excludes, discovery.labels)

            providers: dict[str, ServiceInstanceProvider] = {}
            for mode in sorted(modes):
                provider_cls = _MODE_PROVIDERS.get(mode)
                if provider_cls is None:
                    self._log.warning("unknown discovery mode skipped", mode=mode)
                    continue
                namespaces = resolve_provider_namespaces(
                    mode, discovery.mode, self.config.namespace, discovery.services
                )
                reader = await self._build_reader(_MODE_KINDS[mode], namespaces, selector, discovery.watch_enabled)
                providers[mode] = provider_cls(reader, discovery_filter)

            self._discovery_client = KubernetesDiscoveryClient(discovery, self.config.namespace, providers)
            self._log.info("service discovery started", modes=sorted(providers))
        except Exception as exc:
            raise _ComponentError("discovery", exc) from exc

    async def _label_selector(self, labels: dict[str, str], pod_labels: Sequence[str]) -> str:
        from kubesource.client.kubernetes import KubernetesPodLabels
        from kubesource.labels import LabelSelectorResolver

        assert self.config is not None
        resolver = LabelSelectorResolver(
            KubernetesPodLabels(self._core_v1),  # type: ignore[arg-type]
            self.config.namespace,
            fail_fast=self.config.labels_fail_fast,
        )
        return await resolver.resolve(labels, pod_labels)

    async def _build_reader(
        self,
        kind: str,
        namespaces: Sequence[str] | set[str],
        label_selector: str,
        watch_enabled: bool,
        handlers: list[ResourceEventHandler] | None = None,
    ) -> ResourceReader:
        """Start informers for *kind* over *namespaces*, or read straight from the API."""
        from kubesource.client.kubernetes import KubernetesWatchSource

        assert self._log is not None
        assert self.config is not None
        source = KubernetesWatchSource(kind, self._core_v1)  # type: ignore[arg-type]
        if not watch_enabled:
            self._log.info("watch disabled; reading directly", kind=kind)
            return SourceReader(source, label_selector)

        resolved = await resolve_namespaces(kind, namespaces, self._discovery_cache, self.config.namespace)
        indexer = IndexerComposite(kind)
        for namespace in sorted(resolved):
            cache = ResourceCache(kind, namespace)
            informer = Informer(source, cache, label_selector=label_selector, handlers=handlers)
            indexer.add(namespace, cache)
            self._informers.append(informer)
            self._background_tasks.append(informer.start())
        self._indexers.append(indexer)
        self._log.info(
            "informers started",
            kind=kind,
            namespaces=sorted(resolved),
            label_selector=label_selector,
            cluster_wide=ALL_NAMESPACES in resolved,
        )
        return IndexerReader(indexer)

    async def _wait_for_informers(self) -> None:
        assert self._log is not None
        for informer in self._informers:
            if not await informer.wait_for_sync(timeout=_SYNC_TIMEOUT_SECONDS):
                self._log.warning(
                    "informer not synced before timeout",
                    kind=informer.cache.kind,
                    namespace=informer.cache.namespace,
                    timeout=_SYNC_TIMEOUT_SECONDS,
                )

    async def _load_property_sources(self) -> None:
        assert self._log is not None
        if self._configuration_client is None:
            return
        try:
            sources = await self._configuration_client.get_property_sources()
        except Exception as exc:
            raise _ComponentError("property_sources", exc) from exc
        for reconciler, _ in self._reconcilers:
            reconciler.mark_started()
        if self._mounted_watcher is not None:
            self._background_tasks.append(self._mounted_watcher.start())
            self._log.info("mounted volume watcher started", paths=self._mounted_watcher.paths)
        self._log.info("property sources loaded", count=len(sources))

    async def _start_rest(self) -> None:
        """Start the uvicorn REST server."""
        assert self._log is not None
        assert self.config is not None
        if not self.config.api.enabled:
            self._log.info("rest api disabled")
            return
        self._log.debug("starting rest api")
        try:
            import uvicorn  # type: ignore[import-untyped]

            from kubesource.api import create_app

            fastapi_app = create_app(
                discovery_client=self._discovery_client,
                store=self._store,
                indexers=self._indexers,
                publisher=self._publisher,
                config=self.config,
            )
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host="0.0.0.0",
                port=self.config.api.port,
                log_config=None,
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            task = asyncio.create_task(server.serve(), name="rest-server")
            self._background_tasks.append(task)
            self._rest_server = server
            self._log.info("rest api started", port=self.config.api.port)
        except Exception as exc:
            raise _ComponentError("rest", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Gracefully stop all components in reverse startup order."""
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("kubesource shutting down")

        self._running = False

        if self._rest_server is not None:
            self._rest_server.should_exit = True  # type: ignore[attr-defined]

        # Watch loops stop before their consumers are torn down.
        for task in reversed(self._background_tasks):
            if not task.done():
                task.cancel()
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()

        if self._publisher is not None:
            try:
                await asyncio.wait_for(self._publisher.drain(), timeout=_SHUTDOWN_GRACE_SECONDS)
            except TimeoutError:
                log.warning("refresh deliveries still pending at shutdown", timeout=_SHUTDOWN_GRACE_SECONDS)

        self._informers.clear()
        await self._stop_k8s_client()

        log.info("kubesource stopped")

    async def _stop_k8s_client(self) -> None:
        """Close the kubernetes-asyncio ApiClient connection pool."""
        if self._api_client is None:
            return
        log = self._log or get_logger("app")
        try:
            await self._api_client.close()  # type: ignore[attr-defined]
        except Exception as exc:
            log.debug("k8s client close raised (non-fatal)", error=str(exc))
        self._api_client = None


def _kubesource_version() -> str:
    from kubesource import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main() -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = KubeSourceApp()
    loop = asyncio.get_running_loop()

    shutdown_triggered = False

    def _request_shutdown() -> None:
        nonlocal shutdown_triggered
        if shutdown_triggered:
            return
        shutdown_triggered = True
        asyncio.create_task(app.stop(), name="shutdown")

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _request_shutdown)

    try:
        await app.start()
        while app.running:
            await asyncio.sleep(1)
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        if app.running:
            await app.stop()
