"""Kubernetes-backed object store.

Secrets and config maps go through CoreV1Api, pairings, managed clusters
and routes through CustomObjectsApi. The kubernetes client is blocking, so
every call runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import base64
import time
from collections.abc import Callable
from typing import Any, TypeVar

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from pydantic import ValidationError

from shared.models import (
    MIRROR_PEER_GROUP,
    MIRROR_PEER_PLURAL,
    MIRROR_PEER_VERSION,
    ClusterPairing,
    ConfigMapObject,
    SecretObject,
)
from shared.observability import get_logger, log_store_call_end, log_store_call_start

from .object_store import (
    ObjectAlreadyExistsError,
    ObjectConflictError,
    ObjectNotFoundError,
    ObjectStore,
    ObjectStoreError,
)

logger = get_logger(__name__)

T = TypeVar("T")

MANAGED_CLUSTER_GROUP = "cluster.open-cluster-management.io"
MANAGED_CLUSTER_VERSION = "v1"
MANAGED_CLUSTER_PLURAL = "managedclusters"

ROUTE_GROUP = "route.openshift.io"
ROUTE_VERSION = "v1"
ROUTE_PLURAL = "routes"


def label_selector(labels: dict[str, str]) -> str:
    """Render an equality-based label selector."""
    return ",".join(f"{key}={value}" for key, value in sorted(labels.items()))


def secret_from_v1(secret: client.V1Secret) -> SecretObject:
    """Convert a V1Secret into a SecretObject with decoded payload."""
    metadata = secret.metadata
    return SecretObject(
        name=metadata.name,
        namespace=metadata.namespace,
        type=secret.type or "Opaque",
        labels=dict(metadata.labels or {}),
        annotations=dict(metadata.annotations or {}),
        data={k: base64.b64decode(v) for k, v in (secret.data or {}).items()},
        resource_version=metadata.resource_version,
    )


def secret_to_v1(secret: SecretObject) -> client.V1Secret:
    """Convert a SecretObject into a V1Secret body."""
    return client.V1Secret(
        metadata=client.V1ObjectMeta(
            name=secret.name,
            namespace=secret.namespace,
            labels=dict(secret.labels),
            annotations=dict(secret.annotations),
            resource_version=secret.resource_version,
        ),
        type=secret.type,
        data={k: base64.b64encode(v).decode() for k, v in secret.data.items()},
    )


def pairing_from_resource(resource: dict[str, Any]) -> ClusterPairing:
    """Parse a MirrorPeer, keeping a malformed one as a pairing without spec.

    A pairing without spec fails validation, so one bad resource is
    reported as invalid instead of breaking every lookup.
    """
    try:
        return ClusterPairing.from_resource(resource)
    except ValidationError as e:
        name = (resource.get("metadata") or {}).get("name", "")
        logger.warning("MirrorPeer could not be parsed", pairing=name, error=str(e))
        return ClusterPairing(name=name, spec=None)


class KubernetesObjectStore(ObjectStore):
    """ObjectStore over one Kubernetes API server."""

    def __init__(
        self,
        kubeconfig: str | None = None,
        in_cluster: bool = True,
        request_timeout: float = 30.0,
    ):
        self._kubeconfig = kubeconfig
        self._in_cluster = in_cluster
        self._request_timeout = request_timeout
        self._api_client: client.ApiClient | None = None
        self._core: client.CoreV1Api | None = None
        self._custom: client.CustomObjectsApi | None = None

    def _get_api_client(self) -> client.ApiClient:
        """Get or create the Kubernetes API client."""
        if self._api_client is None:
            if self._kubeconfig:
                self._api_client = config.new_client_from_config(config_file=self._kubeconfig)
            else:
                configuration = client.Configuration()
                try:
                    if not self._in_cluster:
                        raise config.ConfigException("in-cluster config disabled")
                    config.load_incluster_config(client_configuration=configuration)
                except config.ConfigException:
                    # Fall back to the default kubeconfig
                    config.load_kube_config(client_configuration=configuration)
                self._api_client = client.ApiClient(configuration)
        return self._api_client

    def _get_core_client(self) -> client.CoreV1Api:
        if self._core is None:
            self._core = client.CoreV1Api(self._get_api_client())
        return self._core

    def _get_custom_client(self) -> client.CustomObjectsApi:
        if self._custom is None:
            self._custom = client.CustomObjectsApi(self._get_api_client())
        return self._custom

    async def _call(
        self,
        operation: str,
        kind: str,
        namespace: str | None,
        name: str,
        fn: Callable[..., T],
        /,
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Run a blocking API call and map ApiException onto the store errors.

        The leading arguments are positional-only so that ``name`` and
        ``namespace`` keywords pass through to ``fn``.
        """
        log_store_call_start(logger, operation, namespace, name or None)
        start = time.perf_counter()
        kwargs.setdefault("_request_timeout", self._request_timeout)
        try:
            result = await asyncio.to_thread(fn, *args, **kwargs)
        except ApiException as e:
            duration_ms = (time.perf_counter() - start) * 1000
            log_store_call_end(logger, operation, False, duration_ms, error=f"{e.status} {e.reason}")
            if e.status == 404:
                raise ObjectNotFoundError(kind, namespace, name) from e
            if e.status == 409 and operation == "create":
                raise ObjectAlreadyExistsError(kind, namespace or "", name) from e
            if e.status == 409:
                raise ObjectConflictError(kind, namespace or "", name) from e
            raise ObjectStoreError(
                f"{operation} {kind} '{namespace}/{name}' failed: {e.status} {e.reason}"
            ) from e

        log_store_call_end(logger, operation, True, (time.perf_counter() - start) * 1000)
        return result

    async def get_secret(self, namespace: str, name: str) -> SecretObject:
        core = self._get_core_client()
        secret = await self._call(
            "get", "Secret", namespace, name,
            core.read_namespaced_secret, name=name, namespace=namespace,
        )
        return secret_from_v1(secret)

    async def list_secrets(
        self,
        namespace: str | None,
        labels: dict[str, str],
    ) -> list[SecretObject]:
        core = self._get_core_client()
        selector = label_selector(labels)
        if namespace is None:
            result = await self._call(
                "list", "Secret", None, "",
                core.list_secret_for_all_namespaces, label_selector=selector,
            )
        else:
            result = await self._call(
                "list", "Secret", namespace, "",
                core.list_namespaced_secret, namespace=namespace, label_selector=selector,
            )
        return [secret_from_v1(item) for item in result.items]

    async def create_secret(self, secret: SecretObject) -> SecretObject:
        core = self._get_core_client()
        body = secret_to_v1(secret)
        body.metadata.resource_version = None
        created = await self._call(
            "create", "Secret", secret.namespace, secret.name,
            core.create_namespaced_secret, namespace=secret.namespace, body=body,
        )
        logger.info("Created secret", secret=secret.name, namespace=secret.namespace)
        return secret_from_v1(created)

    async def update_secret(self, secret: SecretObject) -> SecretObject:
        core = self._get_core_client()
        updated = await self._call(
            "update", "Secret", secret.namespace, secret.name,
            core.replace_namespaced_secret,
            name=secret.name, namespace=secret.namespace, body=secret_to_v1(secret),
        )
        logger.info("Updated secret", secret=secret.name, namespace=secret.namespace)
        return secret_from_v1(updated)

    async def delete_secret(self, namespace: str, name: str) -> None:
        core = self._get_core_client()
        await self._call(
            "delete", "Secret", namespace, name,
            core.delete_namespaced_secret, name=name, namespace=namespace,
        )
        logger.info("Deleted secret", secret=name, namespace=namespace)

    async def get_config_map(self, namespace: str, name: str) -> ConfigMapObject:
        core = self._get_core_client()
        cm = await self._call(
            "get", "ConfigMap", namespace, name,
            core.read_namespaced_config_map, name=name, namespace=namespace,
        )
        return ConfigMapObject(name=name, namespace=namespace, data=dict(cm.data or {}))

    async def list_pairings(self) -> list[ClusterPairing]:
        custom = self._get_custom_client()
        result = await self._call(
            "list", "MirrorPeer", None, "",
            custom.list_cluster_custom_object,
            group=MIRROR_PEER_GROUP, version=MIRROR_PEER_VERSION, plural=MIRROR_PEER_PLURAL,
        )
        return [pairing_from_resource(item) for item in result.get("items", [])]

    async def list_managed_clusters(self) -> set[str]:
        custom = self._get_custom_client()
        result = await self._call(
            "list", "ManagedCluster", None, "",
            custom.list_cluster_custom_object,
            group=MANAGED_CLUSTER_GROUP, version=MANAGED_CLUSTER_VERSION,
            plural=MANAGED_CLUSTER_PLURAL,
        )
        return {item["metadata"]["name"] for item in result.get("items", [])}

    async def get_route_host(self, namespace: str, name: str) -> str:
        custom = self._get_custom_client()
        route = await self._call(
            "get", "Route", namespace, name,
            custom.get_namespaced_custom_object,
            group=ROUTE_GROUP, version=ROUTE_VERSION,
            namespace=namespace, plural=ROUTE_PLURAL, name=name,
        )
        host = (route.get("spec") or {}).get("host", "")
        if not host:
            raise ObjectNotFoundError("Route host", namespace, name)
        return host

    async def ping(self) -> bool:
        version_api = client.VersionApi(self._get_api_client())
        await self._call("get", "Version", None, "", version_api.get_code)
        return True

    def close(self) -> None:
        """Release the underlying API client."""
        if self._api_client is not None:
            self._api_client.close()
            self._api_client = None
            self._core = None
            self._custom = None
