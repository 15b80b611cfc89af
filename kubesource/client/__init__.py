"""Kubernetes API client adapters."""
