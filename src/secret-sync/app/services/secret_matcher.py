"""Match a pairing member to its locally produced source secret.

Source secrets live on the hub in the namespace named after the member
cluster and record the storage deployment they belong to in their payload.
"""

from __future__ import annotations

from collections.abc import Iterable

from shared.models import (
    NAMESPACE_KEY,
    SECRET_TYPE_LABEL,
    STORAGE_CLUSTER_NAME_KEY,
    PeerRef,
    SecretLabelType,
    SecretObject,
)
from shared.observability import get_logger

logger = get_logger(__name__)

SOURCE_SECRET_LABELS = {SECRET_TYPE_LABEL: SecretLabelType.SOURCE.value}


def secret_matches_peer_ref(peer_ref: PeerRef, secret: SecretObject) -> bool:
    """True if the secret is the source secret of this member's storage."""
    if secret.labels.get(SECRET_TYPE_LABEL) != SecretLabelType.SOURCE.value:
        return False
    if secret.namespace != peer_ref.cluster_name:
        return False
    storage_ref = peer_ref.storage_cluster_ref
    return (
        secret.get_str(NAMESPACE_KEY) == storage_ref.namespace
        and secret.get_str(STORAGE_CLUSTER_NAME_KEY) == storage_ref.name
    )


def find_match(peer_ref: PeerRef, candidates: Iterable[SecretObject]) -> SecretObject | None:
    """Return the source secret for a member, or None if it was not produced yet.

    When several candidates match, the one with the smallest name wins.
    """
    matches = sorted(
        (s for s in candidates if secret_matches_peer_ref(peer_ref, s)),
        key=lambda s: s.name,
    )
    if not matches:
        return None
    if len(matches) > 1:
        logger.warning(
            "Multiple source secrets match peer ref; using the first by name",
            cluster=peer_ref.cluster_name,
            storage_cluster=peer_ref.storage_cluster_ref.name,
            candidates=[s.name for s in matches],
        )
    return matches[0]
