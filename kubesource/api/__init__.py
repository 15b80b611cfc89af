"""REST API for kubesource."""

from kubesource.api.app import create_app

__all__ = ["create_app"]
