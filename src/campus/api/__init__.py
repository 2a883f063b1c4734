"""HTTP surface of the Campus cache service."""

from campus.api.app import create_app

__all__ = ["create_app"]
