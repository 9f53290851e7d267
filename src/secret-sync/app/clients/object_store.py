"""Object store interface consumed by the synchronizer.

The store offers no multi-object transactions; every cross-object
operation built on top of it must be safe to retry.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable
from typing import TypeVar

from shared.models import ClusterPairing, ConfigMapObject, SecretObject

T = TypeVar("T")


class ObjectStoreError(Exception):
    """Transient or unexpected failure talking to the object store."""


class ObjectNotFoundError(ObjectStoreError):
    """Raised when the addressed object does not exist."""

    def __init__(self, kind: str, namespace: str | None, name: str):
        self.kind = kind
        self.namespace = namespace
        self.name = name
        where = f"{namespace}/{name}" if namespace else name
        super().__init__(f"{kind} '{where}' not found")


class ObjectAlreadyExistsError(ObjectStoreError):
    """Raised by create when an object with the same key exists."""

    def __init__(self, kind: str, namespace: str, name: str):
        self.kind = kind
        self.namespace = namespace
        self.name = name
        super().__init__(f"{kind} '{namespace}/{name}' already exists")


class ObjectConflictError(ObjectStoreError):
    """Raised by update when the stored object changed underneath us."""

    def __init__(self, kind: str, namespace: str, name: str):
        self.kind = kind
        self.namespace = namespace
        self.name = name
        super().__init__(f"{kind} '{namespace}/{name}' was modified concurrently")


class ObjectStore(ABC):
    """Async key-object store addressed by (namespace, name)."""

    @abstractmethod
    async def get_secret(self, namespace: str, name: str) -> SecretObject:
        """Return a secret or raise ObjectNotFoundError."""

    @abstractmethod
    async def list_secrets(
        self,
        namespace: str | None,
        labels: dict[str, str],
    ) -> list[SecretObject]:
        """List secrets carrying all given labels; namespace None means all."""

    @abstractmethod
    async def create_secret(self, secret: SecretObject) -> SecretObject:
        """Create a secret or raise ObjectAlreadyExistsError."""

    @abstractmethod
    async def update_secret(self, secret: SecretObject) -> SecretObject:
        """Replace a secret or raise ObjectConflictError."""

    @abstractmethod
    async def delete_secret(self, namespace: str, name: str) -> None:
        """Delete a secret or raise ObjectNotFoundError."""

    @abstractmethod
    async def get_config_map(self, namespace: str, name: str) -> ConfigMapObject:
        """Return a config map or raise ObjectNotFoundError."""

    @abstractmethod
    async def list_pairings(self) -> list[ClusterPairing]:
        """List every pairing registered on the hub."""

    @abstractmethod
    async def list_managed_clusters(self) -> set[str]:
        """Return the identities of all known member clusters."""

    @abstractmethod
    async def get_route_host(self, namespace: str, name: str) -> str:
        """Return the host of a network route or raise ObjectNotFoundError."""

    async def ping(self) -> bool:
        """Check the store is reachable."""
        await self.list_pairings()
        return True


async def call_with_timeout(awaitable: Awaitable[T], timeout: float, operation: str) -> T:
    """Await a store call, turning a timeout into an ObjectStoreError.

    A timed out call is a failure subject to retry, never a silent success.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        raise ObjectStoreError(f"{operation} timed out after {timeout}s") from e
