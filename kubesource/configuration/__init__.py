"""Configuration property sources backed by ConfigMaps and Secrets.

Exports:
    ConfigurationReconciler       -- Applies watch events to the store.
    Environment                   -- Effective merged properties.
    KubernetesConfigurationClient -- Initial bulk pull.
    MountedVolumeWatcher          -- Polls mounted ConfigMap/Secret volumes.
    PropertySourceStore           -- Name -> PropertySource map.
    as_property_sources           -- ConfigMap/Secret to sources.
"""

from kubesource.configuration.client import KubernetesConfigurationClient
from kubesource.configuration.environment import Environment
from kubesource.configuration.mounted import MountedVolumeWatcher
from kubesource.configuration.reconciler import ConfigurationReconciler
from kubesource.configuration.store import PropertySourceStore
from kubesource.configuration.transform import as_property_sources

__all__ = [
    "ConfigurationReconciler",
    "Environment",
    "KubernetesConfigurationClient",
    "MountedVolumeWatcher",
    "PropertySourceStore",
    "as_property_sources",
]
