"""Sync trigger endpoints.

The external scheduler calls these on every observed change and honours
``requeue_after_seconds`` in the response for delayed re-invocation.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel, Field

from shared.observability import get_logger

from ..clients.object_store import ObjectStoreError
from ..schemas.sync import SweepReport, SyncResult, SyncStatus
from ..services.s3_secret_sync import S3SecretSync
from ..services.sync_engine import CleanupError, SyncEngine

logger = get_logger(__name__)

router = APIRouter()


class ClusterSetRequest(BaseModel):
    """Pair of clusters whose MirrorPeer should be reconciled."""

    clusters: list[str] = Field(min_length=2, max_length=2, description="Two cluster names")


def get_engine(request: Request) -> SyncEngine:
    """Return the hub sync engine."""
    return request.app.state.engine


def get_s3_sync(request: Request) -> S3SecretSync:
    """Return the member-side S3 sync, if this instance runs next to a member."""
    s3_sync = getattr(request.app.state, "s3_sync", None)
    if s3_sync is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": "S3_SYNC_DISABLED", "message": "No member cluster configured"},
        )
    return s3_sync


def _respond(result: SyncResult) -> SyncResult:
    """Map terminal and failed results onto HTTP errors."""
    if result.status == SyncStatus.INVALID:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"error": "PAIRING_INVALID", "result": result.model_dump(mode="json")},
        )
    if result.status == SyncStatus.FAILED:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "SYNC_FAILED", "result": result.model_dump(mode="json")},
        )
    return result


@router.post(
    "/sync/pairings/{name}",
    response_model=SyncResult,
    summary="Reconcile a MirrorPeer",
    description="Mirror the member secrets of one pairing and sweep orphans.",
)
async def sync_pairing(request: Request, name: str):
    """Reconcile one pairing by name."""
    return _respond(await get_engine(request).reconcile_pairing(name))


@router.post(
    "/sync/cluster-sets",
    response_model=SyncResult,
    summary="Reconcile the MirrorPeer of a cluster pair",
)
async def sync_cluster_set(request: Request, body: ClusterSetRequest):
    """Reconcile the pairing that joins two clusters."""
    cluster_a, cluster_b = body.clusters
    return _respond(await get_engine(request).reconcile_cluster_set(cluster_a, cluster_b))


@router.post(
    "/sync/s3/{namespace}/{name}",
    response_model=SyncResult,
    summary="Sync an object bucket secret to the hub",
)
async def sync_s3_secret(request: Request, namespace: str, name: str):
    """Sync a bucket claim secret of the local member cluster."""
    return _respond(await get_s3_sync(request).sync(name, namespace))


@router.post(
    "/sync/cleanup",
    response_model=SweepReport,
    summary="Run the orphan cleanup sweep",
)
async def cleanup(request: Request):
    """Delete mirrored secrets no longer backed by a pairing."""
    try:
        return await get_engine(request).cleanup_orphans()
    except CleanupError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "CLEANUP_INCOMPLETE", "report": e.report.model_dump(mode="json")},
        )
    except ObjectStoreError as e:
        logger.error("Cleanup sweep could not start", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "CLEANUP_FAILED", "message": str(e)},
        )
