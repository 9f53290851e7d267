"""API routers for the secret synchronizer."""

from . import health, sync

__all__ = ["health", "sync"]
