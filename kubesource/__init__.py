"""kubesource: watch-fed Kubernetes service discovery and configuration reconciliation."""

__version__ = "0.1.0"
