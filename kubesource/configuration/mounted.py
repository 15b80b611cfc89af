"""Property sources read from ConfigMap/Secret volumes mounted into the pod."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Iterable, Sequence
from pathlib import Path

from kubesource.configuration.environment import Environment
from kubesource.configuration.readers import DEFAULT_READERS, PropertySourceReader
from kubesource.configuration.store import PropertySourceStore
from kubesource.configuration.transform import data_as_property_sources, property_source_name
from kubesource.errors import PropertySourceReadError
from kubesource.models.properties import PRIORITY_MOUNTED, PropertySource, PropertySourceOrigin, RefreshEvent
from kubesource.notifications.manager import RefreshEventPublisher
from kubesource.observability.logging import get_logger
from kubesource.observability.metrics import mounted_volume_reloads_total, property_source_read_errors_total

_log = get_logger("configuration.mounted")

_DEFAULT_POLL_INTERVAL_S = 5.0


def _visible_files(directory: Path) -> list[Path]:
    # kubelet keeps the real payload under hidden ..data/..timestamp entries
    return sorted(p for p in directory.iterdir() if p.is_file() and not p.name.startswith("."))


def _read_files(path: Path) -> dict[str, str]:
    files = _visible_files(path) if path.is_dir() else [path]
    return {f.name: f.read_text(encoding="utf-8") for f in files}


def config_map_sources_from_paths(
    paths: Iterable[str],
    readers: tuple[PropertySourceReader, ...] = DEFAULT_READERS,
) -> list[PropertySource]:
    """One source per mounted file, classified like a single-key ConfigMap."""
    sources: list[PropertySource] = []
    for raw_path in paths:
        path = Path(raw_path)
        try:
            files = _read_files(path)
            for filename, content in files.items():
                sources.extend(
                    data_as_property_sources(
                        filename,
                        {filename: content},
                        PropertySourceOrigin.CONFIG_MAP,
                        literal_priority=PRIORITY_MOUNTED,
                        file_priority=PRIORITY_MOUNTED,
                        readers=readers,
                    )
                )
        except (OSError, PropertySourceReadError) as exc:
            property_source_read_errors_total.labels(kind=PropertySourceOrigin.CONFIG_MAP.value).inc()
            _log.error("mounted_config_map_unreadable", path=raw_path, error=str(exc))
    return sources


def secret_sources_from_paths(paths: Iterable[str]) -> list[PropertySource]:
    """One literal source per mounted secret directory: file name -> content."""
    sources: list[PropertySource] = []
    for raw_path in paths:
        path = Path(raw_path)
        try:
            data = {name: content.strip() for name, content in _read_files(path).items()}
        except OSError as exc:
            property_source_read_errors_total.labels(kind=PropertySourceOrigin.SECRET.value).inc()
            _log.error("mounted_secret_unreadable", path=raw_path, error=str(exc))
            continue
        if data:
            sources.append(
                PropertySource(
                    name=property_source_name(str(path), PropertySourceOrigin.SECRET),
                    priority=PRIORITY_MOUNTED,
                    data=data,
                    origin=PropertySourceOrigin.SECRET,
                )
            )
    return sources


# ---------------------------------------------------------------------------
# Watching
# ---------------------------------------------------------------------------


class MountedVolumeWatcher:
    """Re-reads mounted volumes periodically and reconciles their sources.

    kubelet rewrites a mounted ConfigMap or Secret in place by swapping the
    ``..data`` symlink, so the volume is re-read as a whole on every poll and
    compared with the sources currently in effect. A difference swaps the
    mounted sources in one store update, refreshes the environment and
    publishes a ``RefreshEvent`` when the effective configuration changed.
    """

    def __init__(
        self,
        store: PropertySourceStore,
        environment: Environment,
        publisher: RefreshEventPublisher,
        config_map_paths: Sequence[str] = (),
        secret_paths: Sequence[str] = (),
        interval: float = _DEFAULT_POLL_INTERVAL_S,
        readers: tuple[PropertySourceReader, ...] = DEFAULT_READERS,
    ) -> None:
        self._store = store
        self._environment = environment
        self._publisher = publisher
        self._config_map_paths = list(config_map_paths)
        self._secret_paths = list(secret_paths)
        self._interval = interval
        self._readers = readers
        self._current: list[PropertySource] = []
        self._task: asyncio.Task[None] | None = None

    @property
    def paths(self) -> list[str]:
        return [*self._config_map_paths, *self._secret_paths]

    @property
    def sources(self) -> list[PropertySource]:
        return list(self._current)

    def read(self) -> list[PropertySource]:
        return config_map_sources_from_paths(self._config_map_paths, self._readers) + secret_sources_from_paths(
            self._secret_paths
        )

    def load(self) -> list[PropertySource]:
        """Read the volumes and store their sources without publishing."""
        self._swap(self.read())
        self._environment.refresh_and_diff()
        return self.sources

    def poll(self) -> bool:
        """Re-read the volumes; returns True when the mounted sources changed."""
        sources = self.read()
        if sources == self._current:
            return False
        self._swap(sources)
        mounted_volume_reloads_total.inc()
        changes = self._environment.refresh_and_diff()
        _log.info("mounted_volumes_changed", sources=len(sources), changed_keys=len(changes))
        if changes:
            self._publisher.publish(RefreshEvent(changes=changes, cause="mounted volume changed"))
        return True

    def _swap(self, sources: list[PropertySource]) -> None:
        self._store.replace([s.name for s in self._current], sources)
        self._current = sources

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> asyncio.Task[None]:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="mounted-volume-watcher")
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.poll()
            except Exception as exc:
                _log.error("mounted_volume_poll_failed", error=str(exc), exc_info=True)
