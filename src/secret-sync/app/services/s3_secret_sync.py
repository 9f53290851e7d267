"""Object gateway credential path.

Runs next to a member cluster: turns the member's bucket claim secret and
config map into an S3 profile secret and delivers it to the hub, in the
namespace named after the member.
"""

from __future__ import annotations

from uuid import uuid4

from shared.config import MirrorSyncSettings, get_sync_settings
from shared.observability import SyncContext, get_logger

from ..clients.object_store import (
    ObjectNotFoundError,
    ObjectStore,
    ObjectStoreError,
    call_with_timeout,
)
from ..schemas.sync import DeliveryRecord, SyncResult, SyncStatus
from .pairing_directory import PairingDirectory, PairingNotFoundError
from .secret_transcoder import TranscodeError, derive_s3_secret
from .sync_engine import deliver_secret

logger = get_logger(__name__)


class S3SecretSync:
    """Syncs one member's bucket claim credentials to the hub."""

    def __init__(
        self,
        spoke_store: ObjectStore,
        hub_store: ObjectStore,
        cluster_name: str,
        settings: MirrorSyncSettings | None = None,
        directory: PairingDirectory | None = None,
    ):
        self.spoke_store = spoke_store
        self.hub_store = hub_store
        self.cluster_name = cluster_name
        self.settings = settings or get_sync_settings()
        self.timeout = self.settings.request_timeout_seconds
        self.directory = directory or PairingDirectory(hub_store, timeout=self.timeout)

    def _requeue(self, message: str) -> SyncResult:
        return SyncResult(
            status=SyncStatus.REQUEUE,
            message=message,
            requeue_after_seconds=self.settings.requeue_after_seconds,
        )

    async def sync(self, name: str, namespace: str) -> SyncResult:
        """Sync the bucket claim secret ``namespace/name`` to the hub."""
        async with SyncContext(invocation_id=uuid4().hex[:12], cluster=self.cluster_name):
            try:
                secret = await call_with_timeout(
                    self.spoke_store.get_secret(namespace, name),
                    self.timeout,
                    f"get bucket secret {namespace}/{name}",
                )
                config_map = await call_with_timeout(
                    self.spoke_store.get_config_map(namespace, name),
                    self.timeout,
                    f"get bucket config map {namespace}/{name}",
                )
            except ObjectNotFoundError as e:
                logger.info("Bucket claim not ready yet, requeuing", error=str(e))
                return self._requeue(str(e))
            except ObjectStoreError as e:
                logger.error("Failed to read bucket claim on managed cluster", error=str(e))
                return SyncResult(status=SyncStatus.FAILED, errors=[str(e)])

            try:
                pairing, peer_ref = await self.directory.resolve_peer_ref(self.cluster_name)
            except PairingNotFoundError as e:
                logger.info("No MirrorPeer references this cluster yet, requeuing")
                return self._requeue(str(e))
            except ObjectStoreError as e:
                logger.error("Failed to fetch all mirror peers", error=str(e))
                return SyncResult(status=SyncStatus.FAILED, errors=[str(e)])

            if peer_ref.has_client_ref:
                logger.info("Peer ref has StorageClient reference, skipping S3 secret", pairing=pairing.name)
                return SyncResult(status=SyncStatus.SKIPPED, pairing=pairing.name)

            storage_ref = peer_ref.storage_cluster_ref
            try:
                host = await call_with_timeout(
                    self.spoke_store.get_route_host(storage_ref.namespace, self.settings.s3_route_name),
                    self.timeout,
                    "get S3 route",
                )
            except ObjectNotFoundError as e:
                logger.info("S3 endpoint not exposed yet, requeuing", namespace=storage_ref.namespace)
                return self._requeue(str(e))
            except ObjectStoreError as e:
                logger.error("Failed to retrieve the S3 endpoint", error=str(e))
                return SyncResult(status=SyncStatus.FAILED, pairing=pairing.name, errors=[str(e)])

            try:
                s3_secret = derive_s3_secret(
                    secret,
                    config_map,
                    storage_ref,
                    cluster_name=self.cluster_name,
                    endpoint_host=host,
                    profile_prefix=self.settings.s3_profile_prefix,
                    default_region=self.settings.default_s3_region,
                    protocol=self.settings.s3_endpoint_protocol,
                )
                outcome = await deliver_secret(
                    self.hub_store, s3_secret, self.timeout, update_existing=False
                )
            except (TranscodeError, ObjectStoreError) as e:
                logger.error("Failed to sync S3 secret to the hub", secret=name, error=str(e))
                return SyncResult(status=SyncStatus.FAILED, pairing=pairing.name, errors=[str(e)])

            logger.info(
                "Synced managed cluster S3 bucket secret to the hub",
                secret=name,
                namespace=namespace,
                hub_namespace=s3_secret.namespace,
                outcome=outcome.value,
            )
            return SyncResult(
                status=SyncStatus.SUCCEEDED,
                pairing=pairing.name,
                deliveries=[
                    DeliveryRecord(
                        name=s3_secret.name,
                        namespace=s3_secret.namespace,
                        source_cluster=self.cluster_name,
                        outcome=outcome,
                    )
                ],
            )
