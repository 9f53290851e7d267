"""Secret synchronization services."""

from .naming import (
    ManagedSecretKind,
    classify_managed_secret,
    ownership_labels,
    unique_secret_name,
)
from .pairing_directory import (
    PairingDirectory,
    PairingIndex,
    PairingNotFoundError,
    PairingValidationError,
    validate_pairing,
)
from .s3_secret_sync import S3SecretSync
from .secret_matcher import find_match, secret_matches_peer_ref
from .secret_transcoder import TranscodeError, derive_mirror_secret, derive_s3_secret
from .sync_engine import CleanupError, SyncEngine, deliver_secret

__all__ = [
    "CleanupError",
    "ManagedSecretKind",
    "PairingDirectory",
    "PairingIndex",
    "PairingNotFoundError",
    "PairingValidationError",
    "S3SecretSync",
    "SyncEngine",
    "TranscodeError",
    "classify_managed_secret",
    "deliver_secret",
    "derive_mirror_secret",
    "derive_s3_secret",
    "find_match",
    "ownership_labels",
    "secret_matches_peer_ref",
    "unique_secret_name",
    "validate_pairing",
]
