"""Test fixtures for Secret Sync."""

import os
from collections.abc import Callable

import pytest

# Set test environment before importing settings
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("LOG_FORMAT", "text")

from shared.config import MirrorSyncSettings  # noqa: E402
from shared.models import (  # noqa: E402
    NAMESPACE_KEY,
    SECRET_DATA_KEY,
    SECRET_ORIGIN_KEY,
    SECRET_TYPE_LABEL,
    STORAGE_CLUSTER_NAME_KEY,
    ClusterPairing,
    SecretLabelType,
    SecretObject,
)

from fakes import FakeObjectStore  # noqa: E402

STORAGE_NAME = "ocs-storagecluster"
STORAGE_NAMESPACE = "openshift-storage"


def build_pairing(
    name: str,
    clusters: tuple[str, ...] = ("east", "west"),
    storage_name: str = STORAGE_NAME,
    storage_namespace: str = STORAGE_NAMESPACE,
    client_ref: bool = False,
) -> ClusterPairing:
    """Build a pairing the way it arrives from the hub API."""
    items = []
    for cluster in clusters:
        item = {
            "clusterName": cluster,
            "storageClusterRef": {"name": storage_name, "namespace": storage_namespace},
        }
        if client_ref:
            item["storageClientRef"] = {"name": f"client-{cluster}"}
        items.append(item)
    return ClusterPairing.from_resource(
        {"metadata": {"name": name}, "spec": {"type": "async", "items": items}}
    )


def build_source_secret(
    cluster: str,
    payload: bytes | None = None,
    name: str | None = None,
    storage_name: str = STORAGE_NAME,
    storage_namespace: str = STORAGE_NAMESPACE,
    origin: str | None = None,
) -> SecretObject:
    """Build the source secret a member's storage publishes on the hub."""
    data = {
        NAMESPACE_KEY: storage_namespace.encode(),
        STORAGE_CLUSTER_NAME_KEY: storage_name.encode(),
        SECRET_DATA_KEY: payload if payload is not None else f"token-{cluster}".encode(),
    }
    if origin is not None:
        data[SECRET_ORIGIN_KEY] = origin.encode()
    return SecretObject(
        name=name or f"{cluster}-{storage_name}-peer",
        namespace=cluster,
        labels={SECRET_TYPE_LABEL: SecretLabelType.SOURCE.value},
        data=data,
    )


@pytest.fixture
def make_pairing() -> Callable[..., ClusterPairing]:
    return build_pairing


@pytest.fixture
def make_source_secret() -> Callable[..., SecretObject]:
    return build_source_secret


@pytest.fixture
def sync_settings() -> MirrorSyncSettings:
    """Synchronizer settings with short timeouts."""
    return MirrorSyncSettings(
        request_timeout_seconds=0.5,
        requeue_after_seconds=10.0,
        max_concurrent_members=4,
    )


@pytest.fixture
def hub_store() -> FakeObjectStore:
    """Hub with one east/west pairing and both source secrets published."""
    store = FakeObjectStore()
    store.add_pairing(build_pairing("mirrorpeer-east-west"))
    store.managed_clusters |= {"north", "south"}
    store.put_secret(build_source_secret("east"))
    store.put_secret(build_source_secret("west"))
    return store


@pytest.fixture
def empty_store() -> FakeObjectStore:
    return FakeObjectStore()
