"""Time-bounded cache of the API server's resource catalogue.

The catalogue maps resource kinds to their API group, version, plural name
and scope. It changes rarely, so it is fetched at most once per refresh
interval (30 minutes by default).

Failure semantics
-----------------
A failed or timed-out refresh leaves both the snapshot and the next refresh
time untouched, so the next call retries immediately:

- ``find_all`` raises ``DiscoveryRefreshError`` to its caller.
- ``find`` logs the failure and answers from the previous snapshot, or
  returns None when no snapshot has ever been fetched.

The application itself only watches core/v1 kinds and needs
``resolve_namespaces``. ``find_for_type``, ``resolve_api_group`` and
``resolve_resource_plural`` are library surface for callers that build
informers over other API groups.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterable
from datetime import timedelta

from kubesource.cache.kinds import decompose_type_name
from kubesource.cache.resource_cache import ALL_NAMESPACES
from kubesource.errors import ConfigurationError, DiscoveryRefreshError
from kubesource.models.discovery import DiscoveryEntry
from kubesource.observability.logging import get_logger
from kubesource.observability.metrics import discovery_entries, discovery_refresh_total

DiscoveryFetcher = Callable[[], Awaitable[Iterable[DiscoveryEntry]]]
Clock = Callable[[], float]

_DEFAULT_REFRESH_INTERVAL = timedelta(minutes=30)
_DEFAULT_TIMEOUT = timedelta(seconds=10)


class DiscoveryMetadataCache:
    """Caches ``DiscoveryEntry`` values returned by *fetcher*.

    Args:
        fetcher:          Coroutine function returning the full catalogue.
        refresh_interval: Minimum time between two successful fetches.
        timeout:          Upper bound for a single fetch.
        clock:            Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        fetcher: DiscoveryFetcher,
        refresh_interval: timedelta = _DEFAULT_REFRESH_INTERVAL,
        timeout: timedelta = _DEFAULT_TIMEOUT,
        clock: Clock = time.monotonic,
    ) -> None:
        self._fetcher = fetcher
        self._refresh_interval = refresh_interval
        self._timeout = timeout
        self._clock = clock
        self._log = get_logger("cache.discovery")

        self._snapshot: frozenset[DiscoveryEntry] = frozenset()
        self._next_refresh_time = 0.0
        self._lock = asyncio.Lock()

    @property
    def next_refresh_time(self) -> float:
        return self._next_refresh_time

    @property
    def snapshot(self) -> frozenset[DiscoveryEntry]:
        """Last successfully fetched catalogue, without triggering a refresh."""
        return self._snapshot

    async def find_all(self) -> frozenset[DiscoveryEntry]:
        """Return the catalogue, refreshing it when the interval has elapsed.

        Raises:
            DiscoveryRefreshError: the refresh failed or timed out.
        """
        if self._clock() < self._next_refresh_time:
            return self._snapshot

        async with self._lock:
            # Another caller may have refreshed while we waited for the lock.
            if self._clock() < self._next_refresh_time:
                return self._snapshot
            await self._refresh()
        return self._snapshot

    async def find(self, kind: str) -> DiscoveryEntry | None:
        """Return the entry whose kind equals *kind*, ignoring case."""
        try:
            entries = await self.find_all()
        except DiscoveryRefreshError as exc:
            self._log.error(
                "discovery_lookup_failed",
                kind=kind,
                error=str(exc),
                stale_entries=len(self._snapshot),
            )
            entries = self._snapshot
        wanted = kind.lower()
        for entry in sorted(entries, key=lambda e: (e.group, e.version)):
            if entry.kind.lower() == wanted:
                return entry
        return None

    async def find_for_type(self, type_name: str) -> DiscoveryEntry | None:
        """Resolve a generated model type name such as ``AppsV1Deployment``."""
        return await self.find(decompose_type_name(type_name).kind)

    async def _refresh(self) -> None:
        started = self._clock()
        try:
            fetched = await asyncio.wait_for(self._fetcher(), timeout=self._timeout.total_seconds())
            snapshot = frozenset(fetched)
        except TimeoutError as exc:
            discovery_refresh_total.labels(outcome="timeout").inc()
            raise DiscoveryRefreshError(
                f"API discovery timed out after {self._timeout.total_seconds():.0f}s"
            ) from exc
        except Exception as exc:
            discovery_refresh_total.labels(outcome="error").inc()
            raise DiscoveryRefreshError(f"API discovery failed: {exc}") from exc

        self._snapshot = snapshot
        self._next_refresh_time = started + self._refresh_interval.total_seconds()
        discovery_refresh_total.labels(outcome="success").inc()
        discovery_entries.set(len(snapshot))
        self._log.debug(
            "discovery_refreshed",
            entries=len(snapshot),
            refresh_interval_minutes=self._refresh_interval.total_seconds() / 60,
        )


# ---------------------------------------------------------------------------
# Resolvers used while building informers
# ---------------------------------------------------------------------------


async def _require_entry(kind: str, cache: DiscoveryMetadataCache | None) -> DiscoveryEntry:
    if cache is None:
        raise ConfigurationError(f"Cannot resolve API metadata for {kind}: API discovery cache is disabled")
    entry = await cache.find(kind)
    if entry is None:
        raise ConfigurationError(f"Kind {kind} is not served by the API server")
    return entry


async def resolve_api_group(kind: str, configured: str, cache: DiscoveryMetadataCache | None) -> str:
    """Return *configured* when set, otherwise the group served for *kind*."""
    if configured:
        return configured
    return (await _require_entry(kind, cache)).group


async def resolve_resource_plural(kind: str, configured: str, cache: DiscoveryMetadataCache | None) -> str:
    """Return *configured* when set, otherwise the plural resource name for *kind*."""
    if configured:
        return configured
    return (await _require_entry(kind, cache)).resource_plural


async def resolve_namespaces(
    kind: str,
    configured: Iterable[str],
    cache: DiscoveryMetadataCache | None,
    default_namespace: str,
) -> set[str]:
    """Namespaces an informer for *kind* must watch.

    Cluster-scoped kinds and a configured ``"*"`` collapse to ``{"*"}``.
    With nothing configured the application's own namespace is used.
    """
    namespaces = {ns for ns in configured if ns}
    if ALL_NAMESPACES in namespaces:
        return {ALL_NAMESPACES}
    if cache is not None:
        entry = await cache.find(kind)
        if entry is not None and not entry.namespaced:
            return {ALL_NAMESPACES}
    return namespaces or {default_namespace}
