"""Configuration management with Pydantic Settings.

Environment variables are loaded from:
1. Environment variables (highest priority)
2. .env file (development)
3. Defaults (lowest priority)
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Logging level."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Logging format."""

    JSON = "json"
    TEXT = "text"


class KubernetesSettings(BaseSettings):
    """Kubernetes API access for the hub and the local member cluster."""

    model_config = SettingsConfigDict(env_prefix="KUBE_")

    in_cluster: bool = Field(
        default=True,
        description="Load the in-cluster service account config before kubeconfig files",
    )
    hub_kubeconfig: str | None = Field(
        default=None,
        description="Kubeconfig path for the hub cluster",
    )
    spoke_kubeconfig: str | None = Field(
        default=None,
        description="Kubeconfig path for the local member cluster",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        description="Per-call timeout passed to the Kubernetes API client",
    )


class Settings(BaseSettings):
    """Main application settings.

    All settings can be overridden via environment variables.
    For nested settings, use the appropriate prefix (e.g., KUBE_IN_CLUSTER).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(default="mirror-sync", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        alias="ENV",
        description="Deployment environment",
    )

    # Logging configuration
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_format: LogFormat = Field(default=LogFormat.JSON, description="Logging format")

    # Server configuration
    host: str = Field(default="0.0.0.0", description="Server bind host")
    port: int = Field(default=8080, description="Server bind port")
    debug: bool = Field(default=False, description="Enable debug mode")

    kubernetes: KubernetesSettings = Field(default_factory=KubernetesSettings)

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == Environment.PRODUCTION


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses LRU cache to avoid re-parsing environment variables.
    """
    return Settings()


class MirrorSyncSettings(Settings):
    """Settings specific to the secret synchronizer."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    cluster_name: str = Field(
        default="",
        description="Identity of the local member cluster (agent mode only)",
    )
    requeue_after_seconds: float = Field(
        default=10.0,
        description="Delay before re-invocation when a pairing is not found yet",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        description="Upper bound for a single object store call",
    )
    max_concurrent_members: int = Field(
        default=4,
        description="Max members processed concurrently within one invocation",
    )

    # Object gateway credentials
    s3_route_name: str = Field(default="s3", description="Route exposing the S3 gateway")
    s3_profile_prefix: str = Field(default="s3profile", description="S3 profile name prefix")
    default_s3_region: str = Field(
        default="noobaa",
        description="Region placeholder used when the bucket config has none",
    )
    s3_endpoint_protocol: str = Field(default="https", description="S3 endpoint protocol")

    @field_validator("max_concurrent_members")
    @classmethod
    def validate_max_concurrent_members(cls, v: int) -> int:
        """Ensure at least one member is processed at a time."""
        return max(1, v)


@lru_cache
def get_sync_settings() -> MirrorSyncSettings:
    """Get cached synchronizer settings."""
    return MirrorSyncSettings()
