"""Secret Sync FastAPI Application.

The Secret Sync service provides:
- Mirroring of MirrorPeer member secrets between paired clusters
- Object gateway (S3) credential sync from a member to the hub
- Orphan cleanup of synchronizer-owned secrets
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.config import MirrorSyncSettings
from shared.observability import get_logger, setup_logging

from .api import health, sync
from .clients.kubernetes_store import KubernetesObjectStore
from .services.s3_secret_sync import S3SecretSync
from .services.sync_engine import SyncEngine

settings = MirrorSyncSettings()
setup_logging(log_level=settings.log_level, log_format=settings.log_format)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Builds the hub store and engine, plus the member store and S3 sync
    when a member cluster name is configured.
    """
    logger.info("Starting Secret Sync service", version=settings.app_version)

    kube = settings.kubernetes
    hub_store = KubernetesObjectStore(
        kubeconfig=kube.hub_kubeconfig,
        in_cluster=kube.in_cluster,
        request_timeout=kube.request_timeout_seconds,
    )
    app.state.hub_store = hub_store
    app.state.engine = SyncEngine(hub_store, settings=settings)

    if settings.cluster_name:
        spoke_store = KubernetesObjectStore(
            kubeconfig=kube.spoke_kubeconfig,
            in_cluster=kube.in_cluster,
            request_timeout=kube.request_timeout_seconds,
        )
        app.state.spoke_store = spoke_store
        app.state.s3_sync = S3SecretSync(
            spoke_store,
            hub_store,
            cluster_name=settings.cluster_name,
            settings=settings,
        )
        logger.info("S3 secret sync enabled", cluster=settings.cluster_name)

    logger.info("Secret Sync service started successfully")

    yield

    logger.info("Shutting down Secret Sync service")
    if settings.cluster_name:
        spoke_store.close()
    hub_store.close()
    logger.info("Secret Sync service shutdown complete")


app = FastAPI(
    title="Secret Sync Service",
    description="Keeps storage replication secrets consistent across paired clusters",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sync.router, prefix="/api/v1", tags=["Sync"])
app.include_router(health.router, tags=["Health"])


@app.get("/")
async def root():
    """Root endpoint with service info."""
    return {
        "service": "secret-sync",
        "version": settings.app_version,
        "docs": "/docs",
    }
