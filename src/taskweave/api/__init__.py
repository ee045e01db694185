"""HTTP API for the task graph."""

from taskweave.api.app import create_app

__all__ = ["create_app"]
