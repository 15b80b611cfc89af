"""Cache layer for kubesource.

Keeps eventually-consistent, watch-fed copies of cluster resources and of
the API server's discovery catalogue.

Submodules:
    resource_cache  -- Copy-on-write store for one (kind, namespace) partition.
    indexer         -- Aggregates the partitions of one kind.
    informer        -- List+watch loop feeding a partition.
    sources         -- WatchSource / ResourceReader interfaces and readers.
    discovery_cache -- TTL cache over the API discovery catalogue.
    kinds           -- Model type name decomposition.
"""

from kubesource.cache.indexer import IndexerComposite
from kubesource.cache.informer import Informer, ResourceEventHandler
from kubesource.cache.resource_cache import ALL_NAMESPACES, ResourceCache

__all__ = ["ALL_NAMESPACES", "IndexerComposite", "Informer", "ResourceCache", "ResourceEventHandler"]
