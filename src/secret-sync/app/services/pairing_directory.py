"""Pairing directory: indexed lookups over the registered MirrorPeers.

The index is rebuilt whenever the listed pairing set changes. Pairings are
ordered by name, so when several pairings name the same cluster the one
with the lexicographically smallest name wins.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from shared.models import ClusterPairing, PeerRef, StorageClusterRef
from shared.observability import get_logger

from ..clients.object_store import ObjectStore, call_with_timeout

logger = get_logger(__name__)

PAIRING_SIZE = 2


class PairingNotFoundError(Exception):
    """Raised when no pairing satisfies a lookup. Callers requeue after a delay."""

    pass


class PairingValidationError(Exception):
    """Raised when a pairing is malformed. Terminal until the pairing is edited."""

    pass


def validate_pairing(
    pairing: ClusterPairing,
    known_clusters: set[str] | None = None,
    others: Iterable[ClusterPairing] = (),
) -> None:
    """Check the structural invariants of a pairing.

    Args:
        pairing: Pairing to validate
        known_clusters: Identities of registered member clusters; skipped when None
        others: Every other registered pairing, for the duplicate pair check

    Raises:
        PairingValidationError: on the first violated invariant
    """
    if pairing.spec is None:
        raise PairingValidationError(f"MirrorPeer '{pairing.name}' has an undefined spec")

    items = pairing.spec.items
    if len(items) != PAIRING_SIZE:
        raise PairingValidationError(
            f"MirrorPeer '{pairing.name}' must name exactly {PAIRING_SIZE} clusters, got {len(items)}"
        )

    seen: set[str] = set()
    for peer_ref in items:
        if peer_ref.cluster_name in seen:
            raise PairingValidationError(
                f"MirrorPeer '{pairing.name}' names cluster '{peer_ref.cluster_name}' more than once"
            )
        seen.add(peer_ref.cluster_name)

    for peer_ref in items:
        _validate_peer_ref_fields(pairing.name, peer_ref)
        if known_clusters is not None and peer_ref.cluster_name not in known_clusters:
            raise PairingValidationError(
                f"MirrorPeer '{pairing.name}' references unknown cluster '{peer_ref.cluster_name}'"
            )

    for other in others:
        if other.name == pairing.name or other.spec is None:
            continue
        # the pairing with the smaller name keeps the cluster pair
        if other.cluster_names == pairing.cluster_names and other.name < pairing.name:
            raise PairingValidationError(
                f"MirrorPeer '{pairing.name}' pairs the same clusters as '{other.name}'"
            )


def _validate_peer_ref_fields(pairing_name: str, peer_ref: PeerRef) -> None:
    missing = []
    if not peer_ref.cluster_name:
        missing.append("clusterName")
    if not peer_ref.storage_cluster_ref.name:
        missing.append("storageClusterRef.name")
    if not peer_ref.storage_cluster_ref.namespace:
        missing.append("storageClusterRef.namespace")
    if peer_ref.storage_client_ref is not None and not peer_ref.storage_client_ref.name:
        missing.append("storageClientRef.name")
    if missing:
        raise PairingValidationError(
            f"MirrorPeer '{pairing_name}' has empty fields: {', '.join(missing)}"
        )


def _pair_key(cluster_a: str, cluster_b: str) -> frozenset[str]:
    return frozenset((cluster_a, cluster_b))


@dataclass(frozen=True)
class PairingIndex:
    """Immutable lookup structure over one snapshot of the pairing set."""

    pairings: tuple[ClusterPairing, ...] = ()
    by_name: dict[str, ClusterPairing] = field(default_factory=dict)
    by_cluster: dict[str, tuple[tuple[ClusterPairing, PeerRef], ...]] = field(default_factory=dict)
    by_cluster_set: dict[frozenset[str], ClusterPairing] = field(default_factory=dict)

    @classmethod
    def build(cls, pairings: Iterable[ClusterPairing]) -> "PairingIndex":
        ordered = tuple(sorted(pairings, key=lambda p: p.name))
        by_cluster: dict[str, list[tuple[ClusterPairing, PeerRef]]] = {}
        by_cluster_set: dict[frozenset[str], ClusterPairing] = {}

        for pairing in ordered:
            for peer_ref in pairing.peer_refs:
                by_cluster.setdefault(peer_ref.cluster_name, []).append((pairing, peer_ref))
            if len(pairing.cluster_names) == PAIRING_SIZE:
                by_cluster_set.setdefault(pairing.cluster_names, pairing)

        return cls(
            pairings=ordered,
            by_name={p.name: p for p in ordered},
            by_cluster={k: tuple(v) for k, v in by_cluster.items()},
            by_cluster_set=by_cluster_set,
        )

    def get(self, name: str) -> ClusterPairing | None:
        return self.by_name.get(name)

    def memberships(self, cluster_name: str) -> tuple[tuple[ClusterPairing, PeerRef], ...]:
        """Every (pairing, peer ref) naming the cluster, in pairing-name order."""
        return self.by_cluster.get(cluster_name, ())

    def resolve_peer_ref(self, cluster_name: str) -> tuple[ClusterPairing, PeerRef]:
        memberships = self.memberships(cluster_name)
        if not memberships:
            raise PairingNotFoundError(f"No MirrorPeer references cluster '{cluster_name}'")
        return memberships[0]

    def resolve_storage_ref(self, cluster_name: str) -> StorageClusterRef:
        """StorageClusterRef of the first pairing naming the cluster."""
        _, peer_ref = self.resolve_peer_ref(cluster_name)
        return peer_ref.storage_cluster_ref

    def resolve_pairing_for_cluster_set(self, cluster_a: str, cluster_b: str) -> ClusterPairing:
        """Pairing whose members are {cluster_a, cluster_b}, in either order."""
        pairing = self.by_cluster_set.get(_pair_key(cluster_a, cluster_b))
        if pairing is None:
            raise PairingNotFoundError(
                f"No MirrorPeer pairs clusters '{cluster_a}' and '{cluster_b}'"
            )
        return pairing

    def is_peer_ref_live(self, cluster_name: str, storage_ref: StorageClusterRef) -> bool:
        """True if some pairing still names this cluster with this storage.

        Memberships through a storage client mirror nothing and do not count.
        """
        return any(
            not p.has_client_ref
            and p.storage_cluster_ref.name == storage_ref.name
            and p.storage_cluster_ref.namespace == storage_ref.namespace
            for _, p in self.memberships(cluster_name)
        )


class PairingDirectory:
    """Async facade that keeps a PairingIndex in step with the object store."""

    def __init__(self, store: ObjectStore, timeout: float = 30.0):
        self.store = store
        self.timeout = timeout
        self._index = PairingIndex()
        self._fingerprint: tuple[str, ...] | None = None

    @property
    def index(self) -> PairingIndex:
        return self._index

    async def refresh(self) -> PairingIndex:
        """List pairings and rebuild the index if the set changed."""
        pairings = await call_with_timeout(
            self.store.list_pairings(), self.timeout, "list MirrorPeers"
        )
        fingerprint = tuple(sorted(p.model_dump_json() for p in pairings))
        if fingerprint != self._fingerprint:
            self._index = PairingIndex.build(pairings)
            self._fingerprint = fingerprint
            logger.debug("Rebuilt pairing index", pairings=len(pairings))
        return self._index

    async def get_pairing(self, name: str) -> ClusterPairing:
        index = await self.refresh()
        pairing = index.get(name)
        if pairing is None:
            raise PairingNotFoundError(f"MirrorPeer '{name}' not found")
        return pairing

    async def resolve_storage_ref(self, cluster_name: str) -> StorageClusterRef:
        index = await self.refresh()
        return index.resolve_storage_ref(cluster_name)

    async def resolve_peer_ref(self, cluster_name: str) -> tuple[ClusterPairing, PeerRef]:
        index = await self.refresh()
        return index.resolve_peer_ref(cluster_name)

    async def resolve_pairing_for_cluster_set(
        self, cluster_a: str, cluster_b: str
    ) -> ClusterPairing:
        index = await self.refresh()
        if not index.pairings:
            logger.info("No MirrorPeers found on hub yet")
        return index.resolve_pairing_for_cluster_set(cluster_a, cluster_b)

    async def validate(self, pairing: ClusterPairing) -> None:
        """Run full validation, including the known-cluster check."""
        index = await self.refresh()
        known_clusters = await call_with_timeout(
            self.store.list_managed_clusters(), self.timeout, "list ManagedClusters"
        )
        validate_pairing(pairing, known_clusters=known_clusters, others=index.pairings)

    async def valid_index(self) -> PairingIndex:
        """Index over only the pairings that pass full validation."""
        index = await self.refresh()
        known_clusters = await call_with_timeout(
            self.store.list_managed_clusters(), self.timeout, "list ManagedClusters"
        )
        valid = []
        for pairing in index.pairings:
            try:
                validate_pairing(pairing, known_clusters=known_clusters, others=index.pairings)
            except PairingValidationError as e:
                logger.debug("Ignoring invalid MirrorPeer", pairing=pairing.name, error=str(e))
                continue
            valid.append(pairing)
        return PairingIndex.build(valid)
