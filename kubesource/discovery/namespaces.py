"""Namespaces the informers of a discovery mode have to watch."""

from __future__ import annotations

from collections.abc import Mapping

from kubesource.models.config import ServiceSettings


def resolve_provider_namespaces(
    mode: str,
    default_mode: str,
    app_namespace: str,
    services: Mapping[str, ServiceSettings],
) -> set[str]:
    """Namespaces needed to resolve every service handled by *mode*.

    Manually configured services contribute their namespace when their mode
    (or the default mode, when they declare none) equals *mode*. The
    application namespace is added when *mode* is the default mode.
    """
    wanted = mode.lower()
    namespaces = {
        settings.namespace
        for settings in services.values()
        if settings.namespace and (settings.mode or default_mode).lower() == wanted
    }
    if default_mode.lower() == wanted:
        namespaces.add(app_namespace)
    return namespaces
