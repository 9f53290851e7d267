"""Pydantic schemas for synchronizer results."""

from .sync import DeliveryOutcome, DeliveryRecord, SweepReport, SyncResult, SyncStatus

__all__ = [
    "DeliveryOutcome",
    "DeliveryRecord",
    "SweepReport",
    "SyncResult",
    "SyncStatus",
]
