"""REST API surface."""

from seawatch.api.app import create_app

__all__ = ["create_app"]
