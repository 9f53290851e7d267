"""Cluster pairing (MirrorPeer) domain models.

Fields default to empty values instead of being required so that a
resource with missing fields still parses and can be rejected by pairing
validation with a terminal error. A resource whose fields have the wrong
type does not parse; the store keeps it as a pairing without spec.
"""

from enum import Enum
from typing import Any

from pydantic import Field

from .base import MirrorSyncBaseModel

MIRROR_PEER_GROUP = "multicluster.odf.openshift.io"
MIRROR_PEER_VERSION = "v1alpha1"
MIRROR_PEER_PLURAL = "mirrorpeers"


class ReplicationType(str, Enum):
    """Replication mode of a pairing."""

    ASYNC = "async"
    SYNC = "sync"


class StorageClusterRef(MirrorSyncBaseModel):
    """Storage deployment participating in a pairing on one member."""

    name: str = ""
    namespace: str = ""


class StorageClientRef(MirrorSyncBaseModel):
    """Storage client reference; its presence disables credential mirroring."""

    name: str = ""


class PeerRef(MirrorSyncBaseModel):
    """One member cluster's participation record within a pairing."""

    cluster_name: str = Field(default="", alias="clusterName")
    storage_cluster_ref: StorageClusterRef = Field(
        default_factory=StorageClusterRef,
        alias="storageClusterRef",
    )
    storage_client_ref: StorageClientRef | None = Field(
        default=None,
        alias="storageClientRef",
    )

    @property
    def has_client_ref(self) -> bool:
        return self.storage_client_ref is not None


class PairingSpec(MirrorSyncBaseModel):
    """Desired state of a pairing."""

    items: list[PeerRef] = Field(default_factory=list)
    type: ReplicationType = ReplicationType.ASYNC
    scheduling_intervals: list[str] = Field(
        default_factory=list,
        alias="schedulingIntervals",
    )


class ClusterPairing(MirrorSyncBaseModel):
    """A named pairing of exactly two member clusters."""

    name: str
    spec: PairingSpec | None = None

    @classmethod
    def from_resource(cls, resource: dict[str, Any]) -> "ClusterPairing":
        """Build a pairing from a MirrorPeer custom resource dict."""
        metadata = resource.get("metadata") or {}
        spec = resource.get("spec")
        return cls(
            name=metadata.get("name", ""),
            spec=PairingSpec.model_validate(spec) if spec is not None else None,
        )

    @property
    def peer_refs(self) -> list[PeerRef]:
        return list(self.spec.items) if self.spec else []

    @property
    def cluster_names(self) -> frozenset[str]:
        return frozenset(p.cluster_name for p in self.peer_refs)

    def peer_ref_for(self, cluster_name: str) -> PeerRef | None:
        """Return the PeerRef naming the given cluster, if any."""
        for peer_ref in self.peer_refs:
            if peer_ref.cluster_name == cluster_name:
                return peer_ref
        return None

    def siblings_of(self, cluster_name: str) -> list[PeerRef]:
        """Return every other member of this pairing."""
        return [p for p in self.peer_refs if p.cluster_name != cluster_name]

    @property
    def has_client_ref(self) -> bool:
        return any(p.has_client_ref for p in self.peer_refs)
