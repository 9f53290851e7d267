"""Clients for the object stores the synchronizer reads and writes."""

from .kubernetes_store import KubernetesObjectStore, label_selector
from .object_store import (
    ObjectAlreadyExistsError,
    ObjectConflictError,
    ObjectNotFoundError,
    ObjectStore,
    ObjectStoreError,
    call_with_timeout,
)

__all__ = [
    "KubernetesObjectStore",
    "ObjectAlreadyExistsError",
    "ObjectConflictError",
    "ObjectNotFoundError",
    "ObjectStore",
    "ObjectStoreError",
    "call_with_timeout",
    "label_selector",
]
