"""Secret and config map models plus the label/key vocabulary they carry."""

from enum import Enum

from pydantic import Field

from .base import MirrorSyncBaseModel

# Label keys
SECRET_TYPE_LABEL = "multicluster.odf.openshift.io/secret-type"
CREATED_BY_LABEL = "multicluster.odf.openshift.io/created-by"
SECRET_ORIGIN_LABEL = "multicluster.odf.openshift.io/secret-origin"
CREATED_BY_MIRROR_SYNC = "mirror-sync"

# Annotations recording where a synthesized secret came from
SOURCE_CLUSTER_ANNOTATION = "multicluster.odf.openshift.io/source-cluster"
STORAGE_NAMESPACE_ANNOTATION = "multicluster.odf.openshift.io/storage-cluster-namespace"
STORAGE_NAME_ANNOTATION = "multicluster.odf.openshift.io/storage-cluster-name"

# Source (blue) and mirrored (green) payload keys
NAMESPACE_KEY = "namespace"
STORAGE_CLUSTER_NAME_KEY = "storage-cluster-name"
SECRET_DATA_KEY = "secret-data"
SECRET_ORIGIN_KEY = "secret-origin"

# Object gateway payload keys
S3_PROFILE_NAME_KEY = "s3ProfileName"
S3_BUCKET_NAME_KEY = "s3Bucket"
S3_REGION_KEY = "s3Region"
S3_ENDPOINT_KEY = "s3CompatibleEndpoint"
AWS_ACCESS_KEY_ID = "AWS_ACCESS_KEY_ID"
AWS_SECRET_ACCESS_KEY = "AWS_SECRET_ACCESS_KEY"

# ObjectBucketClaim config map keys
BUCKET_NAME_CONFIG_KEY = "BUCKET_NAME"
BUCKET_REGION_CONFIG_KEY = "BUCKET_REGION"


class SecretLabelType(str, Enum):
    """Role of a secret in the mirroring flow."""

    SOURCE = "BLUE"  # produced on a member, read only
    DESTINATION = "GREEN"  # mirrored copy delivered to a sibling
    INTERNAL = "INTERNAL"  # gateway credential synthesized for the hub


class SecretOrigin(str, Enum):
    """Subsystem a credential originates from."""

    ROOK = "rook"
    S3 = "S3"


class SecretObject(MirrorSyncBaseModel):
    """A namespaced secret with raw (decoded) payload bytes."""

    name: str
    namespace: str
    type: str = "Opaque"
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    data: dict[str, bytes] = Field(default_factory=dict)
    resource_version: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.namespace, self.name)

    def get_str(self, key: str, default: str = "") -> str:
        """Decode a payload value as UTF-8."""
        value = self.data.get(key)
        if value is None:
            return default
        return value.decode("utf-8")

    def same_content(self, other: "SecretObject") -> bool:
        """Compare everything the synchronizer owns, ignoring server state."""
        return (
            self.type == other.type
            and self.labels == other.labels
            and self.annotations == other.annotations
            and self.data == other.data
        )


class ConfigMapObject(MirrorSyncBaseModel):
    """A namespaced config map."""

    name: str
    namespace: str
    data: dict[str, str] = Field(default_factory=dict)
