"""Label selector computation for list/watch calls.

A selector combines statically configured labels with a chosen subset of
the labels of the pod the application is running in, so that replicas of a
deployment pick up ConfigMaps or services tagged for them.
"""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from typing import Protocol

from kubesource.errors import ConfigurationError
from kubesource.observability.logging import get_logger

ENV_KUBERNETES_SERVICE_HOST = "KUBERNETES_SERVICE_HOST"
ENV_HOSTNAME = "HOSTNAME"


class PodLabelsLookup(Protocol):
    async def get_labels(self, namespace: str, pod_name: str) -> dict[str, str]: ...


def compute_label_selector(labels: Mapping[str, str]) -> str:
    """Render ``{"app": "x", "team": "a"}`` as ``app=x,team=a`` (insertion order)."""
    return ",".join(f"{key}={value}" for key, value in labels.items())


class LabelSelectorResolver:
    """Builds label selectors, looking up the current pod's labels on demand.

    Args:
        lookup:     Reads the labels of a pod.
        namespace:  Namespace of the current pod.
        fail_fast:  Raise ``ConfigurationError`` instead of skipping a
                    requested pod label that is missing.
        environ:    Environment mapping, injectable for tests.
    """

    def __init__(
        self,
        lookup: PodLabelsLookup | None,
        namespace: str,
        fail_fast: bool = False,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._lookup = lookup
        self._namespace = namespace
        self._fail_fast = fail_fast
        self._environ = environ if environ is not None else os.environ
        self._log = get_logger("labels")

    @property
    def in_cluster(self) -> bool:
        return bool(self._environ.get(ENV_KUBERNETES_SERVICE_HOST))

    async def pod_labels(self, keys: Sequence[str]) -> dict[str, str]:
        """Values of the requested *keys* on the current pod.

        Returns an empty mapping outside a cluster, or when the pod cannot be
        read. Keys missing on the pod are logged and skipped.
        """
        if not keys:
            return {}
        if not self.in_cluster or self._lookup is None:
            self._log.debug("pod label lookup skipped; not running in a cluster")
            return {}

        pod_name = self._environ.get(ENV_HOSTNAME, "")
        try:
            labels = await self._lookup.get_labels(self._namespace, pod_name)
        except Exception as exc:
            self._log.error(
                "pod_labels_lookup_failed",
                pod=pod_name,
                namespace=self._namespace,
                error=str(exc),
            )
            return {}

        result: dict[str, str] = {}
        for key in keys:
            value = labels.get(key)
            if value is None:
                self._log.warning("pod_label_missing", pod=pod_name, label=key)
                if self._fail_fast:
                    raise ConfigurationError(f"Pod metadata does not contain label: {key}")
                continue
            result[key] = value
        return result

    async def resolve(self, static_labels: Mapping[str, str], pod_label_keys: Sequence[str] = ()) -> str:
        """Selector of *static_labels* followed by the requested pod labels.

        A static label wins over a pod label with the same key.
        """
        merged: dict[str, str] = dict(static_labels)
        for key, value in (await self.pod_labels(pod_label_keys)).items():
            merged.setdefault(key, value)
        selector = compute_label_selector(merged)
        self._log.debug("label_selector_computed", selector=selector)
        return selector
