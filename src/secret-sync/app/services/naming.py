"""Deterministic destination naming and ownership tagging.

Destination names must stay bit-stable across releases: renaming them would
orphan every mirror already delivered.
"""

from __future__ import annotations

import hashlib
from enum import Enum

from shared.models import (
    CREATED_BY_LABEL,
    CREATED_BY_MIRROR_SYNC,
    SECRET_ORIGIN_LABEL,
    SECRET_TYPE_LABEL,
    SecretLabelType,
    SecretObject,
    SecretOrigin,
)

UNIQUE_NAME_LENGTH = 39


def create_unique_name(*parts: str) -> str:
    """Hex SHA-1 of the dash-joined parts."""
    return hashlib.sha1("-".join(parts).encode("utf-8")).hexdigest()


def unique_secret_name(
    cluster_name: str,
    storage_namespace: str,
    storage_name: str,
    prefix: str | None = None,
) -> str:
    """Name of the destination secret derived from one member's storage.

    Returns ``<prefix>-<hash>`` or the bare hash when no prefix is given.
    """
    digest = create_unique_name(cluster_name, storage_namespace, storage_name)
    digest = digest[:UNIQUE_NAME_LENGTH]
    if prefix:
        return f"{prefix}-{digest}"
    return digest


class ManagedSecretKind(str, Enum):
    """Secrets the synchronizer owns and may therefore delete."""

    MIRROR = "mirror"  # pairing secret delivered to a sibling member
    GATEWAY = "gateway"  # object gateway credential synthesized for the hub


def ownership_labels(kind: ManagedSecretKind, origin: SecretOrigin) -> dict[str, str]:
    """Labels stamped on every secret the synchronizer creates."""
    secret_type = (
        SecretLabelType.DESTINATION if kind == ManagedSecretKind.MIRROR else SecretLabelType.INTERNAL
    )
    return {
        CREATED_BY_LABEL: CREATED_BY_MIRROR_SYNC,
        SECRET_TYPE_LABEL: secret_type.value,
        SECRET_ORIGIN_LABEL: origin.value,
    }


def classify_managed_secret(secret: SecretObject) -> ManagedSecretKind | None:
    """Return the kind of a synchronizer-owned secret, None for anything else.

    Only secrets carrying the ownership label are ever candidates for
    deletion; names are never inspected.
    """
    labels = secret.labels
    if labels.get(CREATED_BY_LABEL) != CREATED_BY_MIRROR_SYNC:
        return None
    secret_type = labels.get(SECRET_TYPE_LABEL)
    if secret_type == SecretLabelType.DESTINATION.value:
        return ManagedSecretKind.MIRROR
    if (
        secret_type == SecretLabelType.INTERNAL.value
        and labels.get(SECRET_ORIGIN_LABEL) == SecretOrigin.S3.value
    ):
        return ManagedSecretKind.GATEWAY
    return None
