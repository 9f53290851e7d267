"""Synchronization engine for pairing secrets.

For one pairing the engine matches each member's source secret, derives the
mirrored copy for every sibling and delivers it. Members are processed
concurrently and a failure on one member never stops the others. The
cleanup sweep, the only destructive step, runs only after a delivery pass
without errors.
"""

from __future__ import annotations

import asyncio
from uuid import uuid4

from shared.config import MirrorSyncSettings, get_sync_settings
from shared.models import (
    CREATED_BY_LABEL,
    CREATED_BY_MIRROR_SYNC,
    SOURCE_CLUSTER_ANNOTATION,
    STORAGE_NAME_ANNOTATION,
    STORAGE_NAMESPACE_ANNOTATION,
    ClusterPairing,
    PeerRef,
    SecretObject,
    StorageClusterRef,
)
from shared.observability import SyncContext, get_logger

from ..clients.object_store import (
    ObjectAlreadyExistsError,
    ObjectNotFoundError,
    ObjectStore,
    ObjectStoreError,
    call_with_timeout,
)
from ..schemas.sync import (
    DeliveryOutcome,
    DeliveryRecord,
    SweepReport,
    SyncResult,
    SyncStatus,
)
from .naming import ManagedSecretKind, classify_managed_secret, unique_secret_name
from .pairing_directory import (
    PairingDirectory,
    PairingIndex,
    PairingNotFoundError,
    PairingValidationError,
)
from .secret_matcher import SOURCE_SECRET_LABELS, find_match
from .secret_transcoder import derive_mirror_secret

logger = get_logger(__name__)

MANAGED_SECRET_LABELS = {CREATED_BY_LABEL: CREATED_BY_MIRROR_SYNC}


class CleanupError(Exception):
    """Raised when the sweep could not settle every managed secret."""

    def __init__(self, report: SweepReport):
        self.report = report
        super().__init__(
            f"cleanup failed for {len(report.errors)} secret(s): {'; '.join(report.errors)}"
        )


def _ref(secret: SecretObject) -> str:
    return f"{secret.namespace}/{secret.name}"


async def deliver_secret(
    store: ObjectStore,
    secret: SecretObject,
    timeout: float,
    update_existing: bool = True,
) -> DeliveryOutcome:
    """Create a destination secret; an existing one counts as delivered.

    With ``update_existing`` an existing secret whose content differs is
    replaced in place, otherwise it is left untouched.
    """
    try:
        await call_with_timeout(store.create_secret(secret), timeout, f"create secret {_ref(secret)}")
        return DeliveryOutcome.CREATED
    except ObjectAlreadyExistsError:
        if not update_existing:
            logger.info(
                "Secret already exists, not creating again",
                secret=secret.name,
                namespace=secret.namespace,
            )
            return DeliveryOutcome.UNCHANGED

    existing = await call_with_timeout(
        store.get_secret(secret.namespace, secret.name), timeout, f"get secret {_ref(secret)}"
    )
    if existing.same_content(secret):
        return DeliveryOutcome.UNCHANGED

    desired = secret.model_copy(update={"resource_version": existing.resource_version})
    await call_with_timeout(store.update_secret(desired), timeout, f"update secret {_ref(secret)}")
    logger.info("Refreshed stale destination secret", secret=secret.name, namespace=secret.namespace)
    return DeliveryOutcome.UPDATED


class SyncEngine:
    """Mirrors pairing secrets between members and sweeps orphans on the hub."""

    def __init__(
        self,
        store: ObjectStore,
        settings: MirrorSyncSettings | None = None,
        directory: PairingDirectory | None = None,
    ):
        self.store = store
        self.settings = settings or get_sync_settings()
        self.timeout = self.settings.request_timeout_seconds
        self.directory = directory or PairingDirectory(store, timeout=self.timeout)
        self._sweep_lock = asyncio.Lock()
        self._member_slots = asyncio.Semaphore(self.settings.max_concurrent_members)

    # =========================================================================
    # Entry points
    # =========================================================================

    async def reconcile_pairing(self, name: str) -> SyncResult:
        """Validate, match, deliver, then sweep for one pairing."""
        async with SyncContext(invocation_id=uuid4().hex[:12], pairing=name):
            logger.info("Reconciling MirrorPeer")

            try:
                pairing = await self.directory.get_pairing(name)
            except PairingNotFoundError:
                logger.info("MirrorPeer not found, sweeping the secrets it justified")
                return await self._sweep_result(name, "MirrorPeer not found")
            except ObjectStoreError as e:
                logger.error("Failed to get MirrorPeer", error=str(e))
                return SyncResult(status=SyncStatus.FAILED, pairing=name, errors=[str(e)])

            try:
                await self.directory.validate(pairing)
            except PairingValidationError as e:
                logger.error("MirrorPeer failed validation", error=str(e))
                return SyncResult(status=SyncStatus.INVALID, pairing=name, message=str(e))
            except ObjectStoreError as e:
                logger.error("Could not validate MirrorPeer", error=str(e))
                return SyncResult(status=SyncStatus.FAILED, pairing=name, errors=[str(e)])
            logger.debug("All validations for MirrorPeer passed")

            if pairing.has_client_ref:
                logger.info("MirrorPeer contains StorageClient reference, skipping secret mirroring")
                return SyncResult(
                    status=SyncStatus.SKIPPED,
                    pairing=name,
                    message="StorageClient pairing needs no secret mirroring",
                )

            deliveries, errors = await self.mirror_pairing(pairing)
            if errors:
                logger.warning("Delivery errors, skipping cleanup", errors=len(errors))
                return SyncResult(
                    status=SyncStatus.FAILED,
                    pairing=name,
                    message="delivery failed for at least one member",
                    deliveries=deliveries,
                    errors=errors,
                )

            result = await self._sweep_result(name, "secrets delivered")
            result.deliveries = deliveries
            return result

    async def reconcile_cluster_set(self, cluster_a: str, cluster_b: str) -> SyncResult:
        """Reconcile the pairing between two clusters, requeueing until it exists."""
        async with SyncContext(invocation_id=uuid4().hex[:12], cluster=f"{cluster_a},{cluster_b}"):
            try:
                pairing = await self.directory.resolve_pairing_for_cluster_set(cluster_a, cluster_b)
            except PairingNotFoundError as e:
                logger.info("MirrorPeer not found, requeuing", clusters=[cluster_a, cluster_b])
                return SyncResult(
                    status=SyncStatus.REQUEUE,
                    message=str(e),
                    requeue_after_seconds=self.settings.requeue_after_seconds,
                )
            except ObjectStoreError as e:
                logger.error("Error occurred while fetching MirrorPeer for cluster set", error=str(e))
                return SyncResult(status=SyncStatus.FAILED, errors=[str(e)])

            if pairing.has_client_ref:
                logger.info("MirrorPeer contains StorageClient reference, skipping", pairing=pairing.name)
                return SyncResult(status=SyncStatus.SKIPPED, pairing=pairing.name)

        return await self.reconcile_pairing(pairing.name)

    # =========================================================================
    # Delivery
    # =========================================================================

    async def mirror_pairing(
        self, pairing: ClusterPairing
    ) -> tuple[list[DeliveryRecord], list[str]]:
        """Deliver every member's source secret to its siblings.

        Returns the delivery records and the per-member error messages.
        """
        peer_refs = pairing.peer_refs
        results = await asyncio.gather(
            *(self._mirror_member(pairing, peer_ref) for peer_ref in peer_refs),
            return_exceptions=True,
        )

        deliveries: list[DeliveryRecord] = []
        errors: list[str] = []
        for peer_ref, result in zip(peer_refs, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                logger.error(
                    "Error while updating destination secrets",
                    member=peer_ref.cluster_name,
                    error=str(result),
                )
                errors.append(f"{peer_ref.cluster_name}: {result}")
                continue
            deliveries.extend(result)
        return deliveries, errors

    async def _mirror_member(
        self, pairing: ClusterPairing, peer_ref: PeerRef
    ) -> list[DeliveryRecord]:
        async with self._member_slots:
            candidates = await call_with_timeout(
                self.store.list_secrets(peer_ref.cluster_name, SOURCE_SECRET_LABELS),
                self.timeout,
                f"list source secrets in {peer_ref.cluster_name}",
            )
            source = find_match(peer_ref, candidates)
            if source is None:
                logger.info("No source secret for member yet", member=peer_ref.cluster_name)
                return []

            records = []
            for sibling in pairing.siblings_of(peer_ref.cluster_name):
                destination = derive_mirror_secret(
                    source,
                    peer_ref.storage_cluster_ref,
                    source_cluster=peer_ref.cluster_name,
                    destination_cluster=sibling.cluster_name,
                )
                outcome = await deliver_secret(self.store, destination, self.timeout)
                logger.info(
                    "Delivered mirrored secret",
                    member=peer_ref.cluster_name,
                    secret=destination.name,
                    namespace=destination.namespace,
                    outcome=outcome.value,
                )
                records.append(
                    DeliveryRecord(
                        name=destination.name,
                        namespace=destination.namespace,
                        source_cluster=peer_ref.cluster_name,
                        outcome=outcome,
                    )
                )
            return records

    # =========================================================================
    # Cleanup sweep
    # =========================================================================

    async def _sweep_result(self, pairing: str, message: str) -> SyncResult:
        try:
            report = await self.cleanup_orphans()
        except CleanupError as e:
            return SyncResult(
                status=SyncStatus.FAILED,
                pairing=pairing,
                message="cleanup sweep incomplete",
                errors=list(e.report.errors),
                sweep=e.report,
            )
        except ObjectStoreError as e:
            logger.error("Cleanup sweep could not start", error=str(e))
            return SyncResult(status=SyncStatus.FAILED, pairing=pairing, errors=[str(e)])
        return SyncResult(status=SyncStatus.SUCCEEDED, pairing=pairing, message=message, sweep=report)

    async def cleanup_orphans(self) -> SweepReport:
        """Delete managed secrets no longer justified by a live, valid pairing and source.

        Sweeps are serialized. A failure on one secret does not stop the
        sweep; failures are collected and raised together as CleanupError.
        """
        async with self._sweep_lock:
            index = await self.directory.valid_index()
            managed = await call_with_timeout(
                self.store.list_secrets(None, MANAGED_SECRET_LABELS),
                self.timeout,
                "list managed secrets",
            )

            report = SweepReport()
            sources: dict[str, list[SecretObject]] = {}
            for secret in sorted(managed, key=lambda s: s.key):
                kind = classify_managed_secret(secret)
                if kind is None:
                    continue
                report.examined += 1
                try:
                    if await self._is_justified(secret, kind, index, sources):
                        report.kept.append(_ref(secret))
                        continue
                    await call_with_timeout(
                        self.store.delete_secret(secret.namespace, secret.name),
                        self.timeout,
                        f"delete secret {_ref(secret)}",
                    )
                    logger.info("Deleted orphaned secret", secret=secret.name, namespace=secret.namespace)
                    report.deleted.append(_ref(secret))
                except ObjectNotFoundError:
                    report.deleted.append(_ref(secret))
                except Exception as e:
                    logger.error("Failed to clean up secret", secret=_ref(secret), error=str(e))
                    report.errors.append(f"{_ref(secret)}: {e}")

            logger.info(
                "Cleanup sweep finished",
                examined=report.examined,
                deleted=len(report.deleted),
                errors=len(report.errors),
            )
            if report.errors:
                raise CleanupError(report)
            return report

    async def _is_justified(
        self,
        secret: SecretObject,
        kind: ManagedSecretKind,
        index: PairingIndex,
        sources: dict[str, list[SecretObject]],
    ) -> bool:
        source_cluster = secret.annotations.get(SOURCE_CLUSTER_ANNOTATION, "")
        storage_ref = StorageClusterRef(
            name=secret.annotations.get(STORAGE_NAME_ANNOTATION, ""),
            namespace=secret.annotations.get(STORAGE_NAMESPACE_ANNOTATION, ""),
        )
        if not (source_cluster and storage_ref.name and storage_ref.namespace):
            return False

        if kind == ManagedSecretKind.GATEWAY:
            expected = unique_secret_name(
                source_cluster,
                storage_ref.namespace,
                storage_ref.name,
                prefix=self.settings.s3_profile_prefix,
            )
            return (
                secret.name == expected
                and secret.namespace == source_cluster
                and index.is_peer_ref_live(source_cluster, storage_ref)
            )

        expected = unique_secret_name(source_cluster, storage_ref.namespace, storage_ref.name)
        if secret.name != expected:
            return False
        destination_cluster = secret.namespace
        for pairing, peer_ref in index.memberships(source_cluster):
            if pairing.has_client_ref or pairing.peer_ref_for(destination_cluster) is None:
                continue
            if peer_ref.storage_cluster_ref != storage_ref:
                continue
            if source_cluster not in sources:
                sources[source_cluster] = await call_with_timeout(
                    self.store.list_secrets(source_cluster, SOURCE_SECRET_LABELS),
                    self.timeout,
                    f"list source secrets in {source_cluster}",
                )
            if find_match(peer_ref, sources[source_cluster]) is not None:
                return True
        return False
