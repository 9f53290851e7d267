"""Observability module for structured logging."""

from .logging import (
    SyncContext,
    cluster_var,
    get_logger,
    invocation_id_var,
    log_store_call_end,
    log_store_call_start,
    pairing_var,
    setup_logging,
)

__all__ = [
    # Setup
    "setup_logging",
    "get_logger",
    # Context
    "SyncContext",
    "invocation_id_var",
    "pairing_var",
    "cluster_var",
    # Logging helpers
    "log_store_call_start",
    "log_store_call_end",
]
