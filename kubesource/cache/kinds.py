"""Decomposition of generated Kubernetes model type names.

Client libraries name their model types ``<Group><Version><Kind>``, e.g.
``AppsV1Deployment`` or ``V1ConfigMap``. The group prefix and version infix
are stripped with explicit, ordered tables so that resolution is
deterministic and the tables can be extended by callers.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence

import structlog

from kubesource.models.discovery import GroupVersionKind

_log = structlog.get_logger(component="cache.kinds")

DEFAULT_GROUP_PREFIXES: Mapping[str, str] = {
    "Admissionregistration": "admissionregistration.k8s.io",
    "Apiextensions": "apiextensions.k8s.io",
    "Apiregistration": "apiregistration.k8s.io",
    "Apps": "apps",
    "Authentication": "authentication.k8s.io",
    "Authorization": "authorization.k8s.io",
    "Autoscaling": "autoscaling",
    "Batch": "batch",
    "Certificates": "certificates.k8s.io",
    "Core": "",
    "Extensions": "extensions",
    "Events": "events.k8s.io",
    "FlowControl": "flowcontrol.apiserver.k8s.io",
    "Networking": "networking.k8s.io",
    "Policy": "policy",
    "RbacAuthorization": "rbac.authorization.k8s.io",
    "Scheduling": "scheduling.k8s.io",
    "Settings": "settings.k8s.io",
    "Storage": "storage.k8s.io",
}

# Order matters: the first entry the remainder starts with wins.
DEFAULT_VERSION_INFIXES: Sequence[str] = (
    "V2beta1",
    "V2beta2",
    "V2alpha1",
    "V1beta2",
    "V1beta1",
    "V1alpha1",
    "V1",
)

_CUSTOM_VERSION_RE = re.compile(r"^(V[0-9]+(?:(?:alpha|beta)[0-9]+)?)(?=[A-Z])")


def _strip_group(name: str, group_prefixes: Mapping[str, str]) -> tuple[str | None, str]:
    best: tuple[str, str] | None = None
    for prefix, group in group_prefixes.items():
        if name.startswith(prefix) and (best is None or len(prefix) > len(best[0])):
            best = (prefix, group)
    if best is None:
        return None, name
    return best[1], name[len(best[0]) :]


def _strip_version(name: str, version_infixes: Sequence[str]) -> tuple[str | None, str]:
    for version in version_infixes:
        if name.startswith(version):
            return version, name[len(version) :]
    match = _CUSTOM_VERSION_RE.match(name)
    if match is not None:
        version = match.group(1)
        return version, name[len(version) :]
    _log.warning("api_version_not_extracted", type_name=name)
    return None, name


def decompose_type_name(
    name: str,
    group_prefixes: Mapping[str, str] = DEFAULT_GROUP_PREFIXES,
    version_infixes: Sequence[str] = DEFAULT_VERSION_INFIXES,
) -> GroupVersionKind:
    """Split a model type name into group, lowercase version and kind.

    The longest matching group prefix is stripped first (ties resolved by
    table order), then the first matching version infix, falling back to a
    ``V<n>[alpha|beta<n>]`` pattern for custom resources. An unmatched
    version yields ``""`` and leaves the remainder as the kind.

    >>> decompose_type_name("AppsV1Deployment")
    GroupVersionKind(group='apps', version='v1', kind='Deployment')
    >>> decompose_type_name("V1ConfigMap")
    GroupVersionKind(group='', version='v1', kind='ConfigMap')
    """
    group, remainder = _strip_group(name, group_prefixes)
    version, kind = _strip_version(remainder, version_infixes)
    return GroupVersionKind(
        group=group or "",
        version=version.lower() if version else "",
        kind=kind,
    )
