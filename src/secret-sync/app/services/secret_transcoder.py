"""Derive destination secrets from source secrets.

Both derivations are pure: no store access, same inputs give the same
name and payload. Malformed input raises TranscodeError instead of
yielding a partial secret.
"""

from __future__ import annotations

from shared.models import (
    AWS_ACCESS_KEY_ID,
    AWS_SECRET_ACCESS_KEY,
    BUCKET_NAME_CONFIG_KEY,
    BUCKET_REGION_CONFIG_KEY,
    NAMESPACE_KEY,
    S3_BUCKET_NAME_KEY,
    S3_ENDPOINT_KEY,
    S3_PROFILE_NAME_KEY,
    S3_REGION_KEY,
    SECRET_DATA_KEY,
    SECRET_ORIGIN_KEY,
    SOURCE_CLUSTER_ANNOTATION,
    STORAGE_CLUSTER_NAME_KEY,
    STORAGE_NAME_ANNOTATION,
    STORAGE_NAMESPACE_ANNOTATION,
    ConfigMapObject,
    SecretObject,
    SecretOrigin,
    StorageClusterRef,
)

from .naming import ManagedSecretKind, ownership_labels, unique_secret_name

DEFAULT_S3_PROFILE_PREFIX = "s3profile"
DEFAULT_S3_REGION = "noobaa"
DEFAULT_S3_ENDPOINT_PROTOCOL = "https"


class TranscodeError(Exception):
    """Raised when a source secret cannot be turned into a destination secret."""

    pass


def source_annotations(cluster_name: str, storage_ref: StorageClusterRef) -> dict[str, str]:
    """Annotations recording which member storage a destination came from."""
    return {
        SOURCE_CLUSTER_ANNOTATION: cluster_name,
        STORAGE_NAMESPACE_ANNOTATION: storage_ref.namespace,
        STORAGE_NAME_ANNOTATION: storage_ref.name,
    }


def _source_origin(source: SecretObject) -> SecretOrigin:
    raw = source.get_str(SECRET_ORIGIN_KEY, SecretOrigin.ROOK.value)
    try:
        return SecretOrigin(raw)
    except ValueError as e:
        raise TranscodeError(
            f"secret '{source.namespace}/{source.name}' has unknown origin '{raw}'"
        ) from e


def derive_mirror_secret(
    source: SecretObject,
    storage_ref: StorageClusterRef,
    source_cluster: str,
    destination_cluster: str,
) -> SecretObject:
    """Build the mirrored copy of a member's source secret for one sibling.

    The copy lives in the namespace named after the sibling cluster and
    carries the source payload under the mirrored-secret keys.
    """
    if SECRET_DATA_KEY not in source.data:
        raise TranscodeError(
            f"source secret '{source.namespace}/{source.name}' has no '{SECRET_DATA_KEY}'"
        )
    origin = _source_origin(source)

    return SecretObject(
        name=unique_secret_name(source_cluster, storage_ref.namespace, storage_ref.name),
        namespace=destination_cluster,
        labels=ownership_labels(ManagedSecretKind.MIRROR, origin),
        annotations=source_annotations(source_cluster, storage_ref),
        data={
            NAMESPACE_KEY: storage_ref.namespace.encode(),
            STORAGE_CLUSTER_NAME_KEY: storage_ref.name.encode(),
            SECRET_DATA_KEY: source.data[SECRET_DATA_KEY],
            SECRET_ORIGIN_KEY: origin.value.encode(),
        },
    )


def derive_s3_secret(
    source: SecretObject,
    config_map: ConfigMapObject,
    storage_ref: StorageClusterRef,
    cluster_name: str,
    endpoint_host: str,
    profile_prefix: str = DEFAULT_S3_PROFILE_PREFIX,
    default_region: str = DEFAULT_S3_REGION,
    protocol: str = DEFAULT_S3_ENDPOINT_PROTOCOL,
) -> SecretObject:
    """Build the hub-side S3 profile secret from a bucket claim secret.

    Bucket name and region come from the claim's config map; an empty
    region becomes ``default_region``. Access keys are copied byte for byte.
    """
    missing = [k for k in (AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY) if k not in source.data]
    if missing:
        raise TranscodeError(
            f"bucket secret '{source.namespace}/{source.name}' is missing {', '.join(missing)}"
        )
    bucket_name = config_map.data.get(BUCKET_NAME_CONFIG_KEY, "")
    if not bucket_name:
        raise TranscodeError(
            f"bucket config map '{config_map.namespace}/{config_map.name}' has no {BUCKET_NAME_CONFIG_KEY}"
        )
    if not endpoint_host:
        raise TranscodeError("S3 endpoint host is empty")

    region = config_map.data.get(BUCKET_REGION_CONFIG_KEY) or default_region
    profile_name = f"{profile_prefix}-{cluster_name}-{storage_ref.name}"

    return SecretObject(
        name=unique_secret_name(
            cluster_name, storage_ref.namespace, storage_ref.name, prefix=profile_prefix
        ),
        namespace=cluster_name,
        labels=ownership_labels(ManagedSecretKind.GATEWAY, SecretOrigin.S3),
        annotations=source_annotations(cluster_name, storage_ref),
        data={
            S3_PROFILE_NAME_KEY: profile_name.encode(),
            S3_BUCKET_NAME_KEY: bucket_name.encode(),
            S3_REGION_KEY: region.encode(),
            S3_ENDPOINT_KEY: f"{protocol}://{endpoint_host}".encode(),
            AWS_ACCESS_KEY_ID: source.data[AWS_ACCESS_KEY_ID],
            AWS_SECRET_ACCESS_KEY: source.data[AWS_SECRET_ACCESS_KEY],
        },
    )
