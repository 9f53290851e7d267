"""Shared data models for Mirror Sync.

All models follow these conventions:
- Field names: lowercase snake_case (Kubernetes camelCase via aliases)
- Enums: uppercase SNAKE_CASE members
"""

# Base
from .base import MirrorSyncBaseModel

# Pairing domain
from .pairing import (
    MIRROR_PEER_GROUP,
    MIRROR_PEER_PLURAL,
    MIRROR_PEER_VERSION,
    ClusterPairing,
    PairingSpec,
    PeerRef,
    ReplicationType,
    StorageClientRef,
    StorageClusterRef,
)

# Secret domain
from .secrets import (
    AWS_ACCESS_KEY_ID,
    AWS_SECRET_ACCESS_KEY,
    BUCKET_NAME_CONFIG_KEY,
    BUCKET_REGION_CONFIG_KEY,
    CREATED_BY_LABEL,
    CREATED_BY_MIRROR_SYNC,
    NAMESPACE_KEY,
    S3_BUCKET_NAME_KEY,
    S3_ENDPOINT_KEY,
    S3_PROFILE_NAME_KEY,
    S3_REGION_KEY,
    SECRET_DATA_KEY,
    SECRET_ORIGIN_KEY,
    SECRET_ORIGIN_LABEL,
    SECRET_TYPE_LABEL,
    SOURCE_CLUSTER_ANNOTATION,
    STORAGE_CLUSTER_NAME_KEY,
    STORAGE_NAME_ANNOTATION,
    STORAGE_NAMESPACE_ANNOTATION,
    ConfigMapObject,
    SecretLabelType,
    SecretObject,
    SecretOrigin,
)

__all__ = [
    # Base
    "MirrorSyncBaseModel",
    # Pairing
    "MIRROR_PEER_GROUP",
    "MIRROR_PEER_PLURAL",
    "MIRROR_PEER_VERSION",
    "ClusterPairing",
    "PairingSpec",
    "PeerRef",
    "ReplicationType",
    "StorageClientRef",
    "StorageClusterRef",
    # Secrets
    "ConfigMapObject",
    "SecretLabelType",
    "SecretObject",
    "SecretOrigin",
    # Labels and annotations
    "CREATED_BY_LABEL",
    "CREATED_BY_MIRROR_SYNC",
    "SECRET_ORIGIN_LABEL",
    "SECRET_TYPE_LABEL",
    "SOURCE_CLUSTER_ANNOTATION",
    "STORAGE_NAME_ANNOTATION",
    "STORAGE_NAMESPACE_ANNOTATION",
    # Payload keys
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "BUCKET_NAME_CONFIG_KEY",
    "BUCKET_REGION_CONFIG_KEY",
    "NAMESPACE_KEY",
    "S3_BUCKET_NAME_KEY",
    "S3_ENDPOINT_KEY",
    "S3_PROFILE_NAME_KEY",
    "S3_REGION_KEY",
    "SECRET_DATA_KEY",
    "SECRET_ORIGIN_KEY",
    "STORAGE_CLUSTER_NAME_KEY",
]
