"""Sync invocation result schemas."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class SyncStatus(str, Enum):
    """Outcome of one synchronizer invocation."""

    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"  # nothing to mirror for this pairing/member
    REQUEUE = "requeue"  # retry after requeue_after_seconds
    INVALID = "invalid"  # terminal until the pairing is edited
    FAILED = "failed"  # retried on the next trigger


class DeliveryOutcome(str, Enum):
    """What a single delivery did to the destination store."""

    CREATED = "created"
    UNCHANGED = "unchanged"
    UPDATED = "updated"


class DeliveryRecord(BaseModel):
    """One destination secret written (or confirmed) by an invocation."""

    name: str
    namespace: str
    source_cluster: str
    outcome: DeliveryOutcome


class SweepReport(BaseModel):
    """Result of one cleanup sweep."""

    examined: int = 0
    kept: list[str] = Field(default_factory=list)
    deleted: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class SyncResult(BaseModel):
    """Result of one invocation, handed back to the scheduler."""

    status: SyncStatus
    message: str = ""
    pairing: str | None = None
    requeue_after_seconds: float | None = None
    deliveries: list[DeliveryRecord] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    sweep: SweepReport | None = None
