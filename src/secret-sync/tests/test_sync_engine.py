"""Tests for the pairing synchronization engine."""

import asyncio

import pytest
from app.clients.object_store import ObjectStoreError
from app.schemas.sync import DeliveryOutcome, SyncStatus
from app.services.naming import ManagedSecretKind, ownership_labels, unique_secret_name
from app.services.secret_transcoder import source_annotations
from app.services.sync_engine import CleanupError, SyncEngine, deliver_secret

from shared.models import (
    CREATED_BY_LABEL,
    SECRET_TYPE_LABEL,
    ClusterPairing,
    SecretObject,
    SecretOrigin,
    StorageClusterRef,
)

STORAGE_NAME = "ocs-storagecluster"
STORAGE_NAMESPACE = "openshift-storage"
PAIRING = "mirrorpeer-east-west"
STORAGE_REF = StorageClusterRef(name=STORAGE_NAME, namespace=STORAGE_NAMESPACE)


def mirror_name(cluster: str) -> str:
    return unique_secret_name(cluster, STORAGE_NAMESPACE, STORAGE_NAME)


def managed_secret(
    name: str,
    namespace: str,
    source_cluster: str,
    kind: ManagedSecretKind = ManagedSecretKind.MIRROR,
    storage_ref: StorageClusterRef = STORAGE_REF,
) -> SecretObject:
    origin = SecretOrigin.S3 if kind == ManagedSecretKind.GATEWAY else SecretOrigin.ROOK
    return SecretObject(
        name=name,
        namespace=namespace,
        labels=ownership_labels(kind, origin),
        annotations=source_annotations(source_cluster, storage_ref),
        data={"secret-data": b"stale"},
    )


@pytest.fixture
def engine(hub_store, sync_settings):
    return SyncEngine(hub_store, settings=sync_settings)


class TestDeliverSecret:
    async def test_create_then_unchanged(self, empty_store):
        """Test delivering the same secret twice creates it once."""
        secret = managed_secret("s", "west", "east")

        first = await deliver_secret(empty_store, secret, timeout=1.0)
        second = await deliver_secret(empty_store, secret, timeout=1.0)

        assert first == DeliveryOutcome.CREATED
        assert second == DeliveryOutcome.UNCHANGED
        assert empty_store.calls_to("update_secret") == []

    async def test_stale_secret_updated(self, empty_store):
        """Test an existing secret with different content is replaced."""
        empty_store.put_secret(managed_secret("s", "west", "east"))
        fresh = managed_secret("s", "west", "east").model_copy(
            update={"data": {"secret-data": b"fresh"}}
        )

        outcome = await deliver_secret(empty_store, fresh, timeout=1.0)

        assert outcome == DeliveryOutcome.UPDATED
        assert empty_store.secrets[("west", "s")].data == {"secret-data": b"fresh"}

    async def test_create_only_leaves_existing(self, empty_store):
        """Test create-only delivery never rewrites an existing secret."""
        empty_store.put_secret(managed_secret("s", "west", "east"))
        fresh = managed_secret("s", "west", "east").model_copy(
            update={"data": {"secret-data": b"fresh"}}
        )

        outcome = await deliver_secret(empty_store, fresh, timeout=1.0, update_existing=False)

        assert outcome == DeliveryOutcome.UNCHANGED
        assert empty_store.secrets[("west", "s")].data == {"secret-data": b"stale"}

    async def test_timeout_is_failure(self, empty_store):
        """Test a timed out create raises instead of counting as delivered."""
        empty_store.delays[("create_secret", "west")] = 1.0

        with pytest.raises(ObjectStoreError, match="timed out"):
            await deliver_secret(empty_store, managed_secret("s", "west", "east"), timeout=0.05)


class TestReconcilePairing:
    async def test_mirrors_both_directions(self, engine, hub_store):
        """Test each member's source lands in the sibling's namespace."""
        result = await engine.reconcile_pairing(PAIRING)

        assert result.status == SyncStatus.SUCCEEDED
        assert result.pairing == PAIRING
        assert {(d.namespace, d.source_cluster) for d in result.deliveries} == {
            ("west", "east"),
            ("east", "west"),
        }
        assert all(d.outcome == DeliveryOutcome.CREATED for d in result.deliveries)

        in_west = hub_store.secrets[("west", mirror_name("east"))]
        assert in_west.data["secret-data"] == b"token-east"
        assert in_west.labels[SECRET_TYPE_LABEL] == "GREEN"
        in_east = hub_store.secrets[("east", mirror_name("west"))]
        assert in_east.data["secret-data"] == b"token-west"

    async def test_repeat_is_idempotent(self, engine, hub_store):
        """Test a second invocation leaves the store unchanged."""
        await engine.reconcile_pairing(PAIRING)
        snapshot = dict(hub_store.secrets)

        result = await engine.reconcile_pairing(PAIRING)

        assert result.status == SyncStatus.SUCCEEDED
        assert all(d.outcome == DeliveryOutcome.UNCHANGED for d in result.deliveries)
        assert hub_store.secrets == snapshot
        assert result.sweep.deleted == []

    async def test_rotated_source_refreshes_mirror(self, engine, hub_store, make_source_secret):
        """Test a changed source payload updates the mirrored copy."""
        await engine.reconcile_pairing(PAIRING)
        hub_store.put_secret(make_source_secret("east", payload=b"rotated"))

        result = await engine.reconcile_pairing(PAIRING)

        outcomes = {d.source_cluster: d.outcome for d in result.deliveries}
        assert outcomes == {"east": DeliveryOutcome.UPDATED, "west": DeliveryOutcome.UNCHANGED}
        assert hub_store.secrets[("west", mirror_name("east"))].data["secret-data"] == b"rotated"

    async def test_missing_source_is_not_an_error(self, engine, hub_store, make_source_secret):
        """Test a member without a source secret yet is skipped quietly."""
        del hub_store.secrets[("west", make_source_secret("west").name)]

        result = await engine.reconcile_pairing(PAIRING)

        assert result.status == SyncStatus.SUCCEEDED
        assert [d.source_cluster for d in result.deliveries] == ["east"]

    async def test_member_failure_does_not_stop_siblings(self, engine, hub_store):
        """Test one member's failure still delivers the other member."""
        hub_store.failures[("list_secrets", "west")] = ObjectStoreError("west unavailable")
        orphan = hub_store.put_secret(managed_secret("orphan", "north", "south"))

        result = await engine.reconcile_pairing(PAIRING)

        assert result.status == SyncStatus.FAILED
        assert [d.source_cluster for d in result.deliveries] == ["east"]
        assert len(result.errors) == 1
        assert "west unavailable" in result.errors[0]
        # no sweep after a failed delivery pass
        assert result.sweep is None
        assert orphan.key in hub_store.secrets
        assert hub_store.calls_to("delete_secret") == []

    async def test_failed_delivery_isolated_to_one_destination(self, engine, hub_store):
        """Test a write failure into one member leaves the other delivered."""
        hub_store.failures[("create_secret", "east")] = ObjectStoreError("east rejected write")

        result = await engine.reconcile_pairing(PAIRING)

        assert result.status == SyncStatus.FAILED
        assert ("west", mirror_name("east")) in hub_store.secrets
        assert ("east", mirror_name("west")) not in hub_store.secrets
        assert result.sweep is None

    async def test_delivery_timeout_fails_invocation(self, hub_store, sync_settings):
        """Test a hung store call fails the invocation."""
        settings = sync_settings.model_copy(update={"request_timeout_seconds": 0.05})
        engine = SyncEngine(hub_store, settings=settings)
        hub_store.delays[("create_secret", "west")] = 1.0

        result = await engine.reconcile_pairing(PAIRING)

        assert result.status == SyncStatus.FAILED
        assert any("timed out" in e for e in result.errors)

    async def test_client_ref_pairing_skipped(self, empty_store, make_pairing, make_source_secret, sync_settings):
        """Test pairings with a storage client reference mirror nothing."""
        empty_store.add_pairing(make_pairing("mp-client", client_ref=True))
        empty_store.put_secret(make_source_secret("east"))
        engine = SyncEngine(empty_store, settings=sync_settings)

        result = await engine.reconcile_pairing("mp-client")

        assert result.status == SyncStatus.SKIPPED
        assert empty_store.calls_to("create_secret") == []

    async def test_invalid_pairing_is_terminal(self, empty_store, make_pairing, sync_settings):
        """Test a malformed pairing yields INVALID without touching secrets."""
        empty_store.add_pairing(make_pairing("mp-single", clusters=("east",)))
        engine = SyncEngine(empty_store, settings=sync_settings)

        result = await engine.reconcile_pairing("mp-single")

        assert result.status == SyncStatus.INVALID
        assert "exactly 2" in result.message
        assert empty_store.calls_to("list_secrets") == []

    async def test_unknown_cluster_is_invalid(self, hub_store, engine, make_pairing):
        """Test a pairing naming an unregistered cluster is rejected."""
        hub_store.pairings["mp-far"] = make_pairing("mp-far", clusters=("east", "far"))

        result = await engine.reconcile_pairing("mp-far")

        assert result.status == SyncStatus.INVALID

    async def test_store_failure_reading_pairing(self, engine, hub_store):
        """Test an unreachable hub yields FAILED."""
        hub_store.failures[("list_pairings", None)] = ObjectStoreError("hub unavailable")

        result = await engine.reconcile_pairing(PAIRING)

        assert result.status == SyncStatus.FAILED
        assert result.errors == ["hub unavailable"]

    async def test_no_leakage_between_pairings(self, engine, hub_store, make_pairing, make_source_secret):
        """Test reconciling one pairing writes only to its own members."""
        hub_store.add_pairing(make_pairing("mp-north-south", clusters=("north", "south")))
        hub_store.put_secret(make_source_secret("north"))
        hub_store.put_secret(make_source_secret("south"))

        await engine.reconcile_pairing(PAIRING)

        written = {c[1] for c in hub_store.calls_to("create_secret")}
        assert written == {"east", "west"}
        assert ("south", mirror_name("north")) not in hub_store.secrets

    async def test_overlapping_pairing_mirror_kept(self, engine, hub_store, make_pairing, make_source_secret):
        """Test the sweep keeps mirrors justified by another pairing."""
        hub_store.add_pairing(make_pairing("mp-east-north", clusters=("east", "north")))
        hub_store.put_secret(make_source_secret("north"))

        await engine.reconcile_pairing("mp-east-north")
        result = await engine.reconcile_pairing(PAIRING)

        assert result.status == SyncStatus.SUCCEEDED
        assert result.sweep.deleted == []
        assert ("north", mirror_name("east")) in hub_store.secrets
        assert ("east", mirror_name("north")) in hub_store.secrets


class TestDeletedPairing:
    async def test_deleted_pairing_sweeps_its_mirrors(self, engine, hub_store, make_source_secret):
        """Test mirrors of a deleted pairing are removed and sources kept."""
        await engine.reconcile_pairing(PAIRING)
        del hub_store.pairings[PAIRING]

        result = await engine.reconcile_pairing(PAIRING)

        assert result.status == SyncStatus.SUCCEEDED
        assert sorted(result.sweep.deleted) == sorted(
            [f"east/{mirror_name('west')}", f"west/{mirror_name('east')}"]
        )
        assert ("west", mirror_name("east")) not in hub_store.secrets
        assert ("east", make_source_secret("east").name) in hub_store.secrets
        assert ("west", make_source_secret("west").name) in hub_store.secrets

    async def test_unowned_secrets_survive_sweep(self, engine, hub_store):
        """Test secrets without the ownership label are never deleted."""
        foreign = hub_store.put_secret(
            SecretObject(name="foreign", namespace="west", labels={SECRET_TYPE_LABEL: "GREEN"})
        )
        del hub_store.pairings[PAIRING]

        await engine.reconcile_pairing(PAIRING)

        assert foreign.key in hub_store.secrets

    async def test_mirror_removed_when_source_disappears(self, engine, hub_store, make_source_secret):
        """Test a mirror whose source secret is gone is swept."""
        await engine.reconcile_pairing(PAIRING)
        del hub_store.secrets[("east", make_source_secret("east").name)]

        result = await engine.reconcile_pairing(PAIRING)

        assert result.sweep.deleted == [f"west/{mirror_name('east')}"]
        assert ("east", mirror_name("west")) in hub_store.secrets


class TestCleanupOrphans:
    async def test_unannotated_managed_secret_is_orphan(self, engine, hub_store):
        """Test a managed secret missing its origin annotations is deleted."""
        secret = managed_secret("bare", "west", "east")
        secret.annotations.clear()
        hub_store.put_secret(secret)

        report = await engine.cleanup_orphans()

        assert report.deleted == ["west/bare"]

    async def test_renamed_mirror_is_orphan(self, engine, hub_store, make_source_secret):
        """Test a mirror whose name does not match its derived name is deleted."""
        hub_store.put_secret(managed_secret("not-the-hash", "west", "east"))

        report = await engine.cleanup_orphans()

        assert report.deleted == ["west/not-the-hash"]

    async def test_gateway_secret_kept_while_paired(self, engine, hub_store, sync_settings):
        """Test an S3 profile secret is kept while its member is paired."""
        name = unique_secret_name(
            "east", STORAGE_NAMESPACE, STORAGE_NAME, prefix=sync_settings.s3_profile_prefix
        )
        hub_store.put_secret(managed_secret(name, "east", "east", kind=ManagedSecretKind.GATEWAY))
        stale_ref = StorageClusterRef(name="retired", namespace=STORAGE_NAMESPACE)
        stale_name = unique_secret_name(
            "east", STORAGE_NAMESPACE, "retired", prefix=sync_settings.s3_profile_prefix
        )
        hub_store.put_secret(
            managed_secret(stale_name, "east", "east", kind=ManagedSecretKind.GATEWAY, storage_ref=stale_ref)
        )

        report = await engine.cleanup_orphans()

        assert report.kept == [f"east/{name}"]
        assert report.deleted == [f"east/{stale_name}"]

    async def test_delete_failure_collected(self, engine, hub_store):
        """Test one failed delete does not stop the sweep."""
        hub_store.put_secret(managed_secret("orphan-a", "north", "south"))
        hub_store.put_secret(managed_secret("orphan-b", "south", "north"))
        hub_store.failures[("delete_secret", "north")] = ObjectStoreError("forbidden")

        with pytest.raises(CleanupError) as exc_info:
            await engine.cleanup_orphans()

        report = exc_info.value.report
        assert report.deleted == ["south/orphan-b"]
        assert len(report.errors) == 1
        assert "north/orphan-a" in report.errors[0]
        assert ("north", "orphan-a") in hub_store.secrets

    async def test_sweep_failure_fails_reconcile(self, engine, hub_store):
        """Test a failed sweep is reported on the invocation."""
        hub_store.put_secret(managed_secret("orphan", "north", "south"))
        hub_store.failures[("delete_secret", "north")] = ObjectStoreError("forbidden")

        result = await engine.reconcile_pairing(PAIRING)

        assert result.status == SyncStatus.FAILED
        assert result.sweep is not None
        assert result.sweep.errors


    async def test_mirrors_of_duplicate_pair_swept(self, engine, hub_store, make_pairing):
        """Test mirrors of a pairing that lost its cluster pair to a smaller name are deleted."""
        await engine.reconcile_pairing(PAIRING)
        hub_store.add_pairing(make_pairing("aaa-east-west", storage_name="other-storage"))

        result = await engine.reconcile_pairing(PAIRING)
        report = await engine.cleanup_orphans()

        assert result.status == SyncStatus.INVALID
        assert sorted(report.deleted) == sorted(
            [f"east/{mirror_name('west')}", f"west/{mirror_name('east')}"]
        )
        assert report.kept == []

    async def test_mirrors_of_oversized_pairing_swept(self, engine, hub_store, make_pairing):
        """Test mirrors are deleted once their pairing names more than two clusters."""
        await engine.reconcile_pairing(PAIRING)
        hub_store.pairings[PAIRING] = make_pairing(PAIRING, clusters=("east", "west", "north"))

        report = await engine.cleanup_orphans()

        assert len(report.deleted) == 2
        assert ("west", mirror_name("east")) not in hub_store.secrets
        assert ("east", mirror_name("west")) not in hub_store.secrets

    async def test_mirrors_of_unknown_cluster_pairing_swept(self, engine, hub_store):
        """Test mirrors are deleted once a member is no longer a managed cluster."""
        await engine.reconcile_pairing(PAIRING)
        hub_store.managed_clusters.discard("west")

        report = await engine.cleanup_orphans()

        assert len(report.deleted) == 2

    async def test_gateway_secret_of_client_ref_member_swept(self, empty_store, make_pairing, sync_settings):
        """Test an S3 profile secret is deleted when its member pairs through a storage client."""
        empty_store.add_pairing(make_pairing("mp-client", client_ref=True))
        name = unique_secret_name(
            "east", STORAGE_NAMESPACE, STORAGE_NAME, prefix=sync_settings.s3_profile_prefix
        )
        empty_store.put_secret(managed_secret(name, "east", "east", kind=ManagedSecretKind.GATEWAY))
        engine = SyncEngine(empty_store, settings=sync_settings)

        report = await engine.cleanup_orphans()

        assert report.deleted == [f"east/{name}"]
        assert report.kept == []

    async def test_managed_cluster_listing_failure(self, engine, hub_store):
        """Test the sweep does not start without the managed cluster list."""
        hub_store.put_secret(managed_secret("orphan", "north", "south"))
        hub_store.failures[("list_managed_clusters", None)] = ObjectStoreError("hub unavailable")

        with pytest.raises(ObjectStoreError):
            await engine.cleanup_orphans()

        assert hub_store.calls_to("delete_secret") == []


class TestConcurrency:
    async def test_concurrent_sweeps_are_serialized(self, engine, hub_store):
        """Test two sweeps started together run one after the other."""
        hub_store.put_secret(managed_secret("orphan", "north", "south"))
        hub_store.delays[("list_secrets", None)] = 0.05

        first, second = await asyncio.gather(engine.cleanup_orphans(), engine.cleanup_orphans())

        sweep_calls = [
            c[0] for c in hub_store.calls
            if c[0] == "delete_secret" or (c[0] == "list_secrets" and c[1] is None)
        ]
        assert sweep_calls == ["list_secrets", "delete_secret", "list_secrets"]
        assert first.deleted == ["north/orphan"]
        assert second.deleted == []

    async def test_cancelled_reconcile_converges(self, engine, hub_store):
        """Test a reconcile cancelled mid-delivery converges on the next run."""
        hub_store.delays[("create_secret", "west")] = 0.2
        task = asyncio.create_task(engine.reconcile_pairing(PAIRING))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        del hub_store.delays[("create_secret", "west")]
        result = await engine.reconcile_pairing(PAIRING)

        assert result.status == SyncStatus.SUCCEEDED
        in_west = [
            s.name for s in hub_store.secrets.values()
            if s.namespace == "west" and CREATED_BY_LABEL in s.labels
        ]
        assert in_west == [mirror_name("east")]

    async def test_unparseable_pairing_does_not_block_others(self, engine, hub_store):
        """Test a pairing kept without spec is invalid and leaves other pairings working."""
        hub_store.pairings["mp-bad"] = ClusterPairing(name="mp-bad", spec=None)

        bad = await engine.reconcile_pairing("mp-bad")
        good = await engine.reconcile_pairing(PAIRING)

        assert bad.status == SyncStatus.INVALID
        assert "undefined spec" in bad.message
        assert good.status == SyncStatus.SUCCEEDED


class TestReconcileClusterSet:
    async def test_resolves_in_either_order(self, engine):
        """Test the cluster pair resolves regardless of order."""
        result = await engine.reconcile_cluster_set("west", "east")

        assert result.status == SyncStatus.SUCCEEDED
        assert result.pairing == PAIRING

    async def test_requeue_when_no_pairing(self, empty_store, sync_settings):
        """Test a missing pairing asks for a delayed retry."""
        engine = SyncEngine(empty_store, settings=sync_settings)

        result = await engine.reconcile_cluster_set("east", "west")

        assert result.status == SyncStatus.REQUEUE
        assert result.requeue_after_seconds == sync_settings.requeue_after_seconds

    async def test_client_ref_skipped(self, empty_store, make_pairing, sync_settings):
        """Test client ref pairings are skipped before reconciling."""
        empty_store.add_pairing(make_pairing("mp-client", client_ref=True))
        engine = SyncEngine(empty_store, settings=sync_settings)

        result = await engine.reconcile_cluster_set("east", "west")

        assert result.status == SyncStatus.SKIPPED
        assert result.pairing == "mp-client"
