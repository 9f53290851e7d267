"""Structured logging configuration.

Features:
- JSON and text format support
- Sync invocation correlation (pairing, cluster, invocation id)
- Service context injection
"""

import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from shared.config import LogFormat, LogLevel, get_settings

# Context variables for sync invocation tracking
invocation_id_var: ContextVar[str | None] = ContextVar("invocation_id", default=None)
pairing_var: ContextVar[str | None] = ContextVar("pairing", default=None)
cluster_var: ContextVar[str | None] = ContextVar("cluster", default=None)


def add_service_context(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Add service context to log events."""
    settings = get_settings()
    event_dict["service"] = settings.app_name
    event_dict["environment"] = settings.environment.value
    return event_dict


def add_sync_context(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Add sync invocation context from context variables."""
    if invocation_id := invocation_id_var.get():
        event_dict.setdefault("invocation_id", invocation_id)
    if pairing := pairing_var.get():
        event_dict.setdefault("pairing", pairing)
    if cluster := cluster_var.get():
        event_dict.setdefault("cluster", cluster)
    return event_dict


def add_timestamp(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Add ISO 8601 timestamp."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def setup_logging(
    service_name: str | None = None,
    log_level: LogLevel | None = None,
    log_format: LogFormat | None = None,
) -> None:
    """Configure structured logging for the application.

    Args:
        service_name: Override service name (defaults to settings.app_name)
        log_level: Override log level (defaults to settings.log_level)
        log_format: Override log format (defaults to settings.log_format)
    """
    settings = get_settings()

    level = log_level or settings.log_level
    fmt = log_format or settings.log_format

    # Accept both the enum and a plain string
    level_str = level.value if hasattr(level, "value") else str(level).upper()
    numeric_level = getattr(logging, level_str)

    logging.basicConfig(
        level=numeric_level,
        stream=sys.stdout,
        format="%(message)s",
    )

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_timestamp,
        add_service_context,
        add_sync_context,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if service_name:
        structlog.contextvars.bind_contextvars(service_name=service_name)

    fmt_str = fmt.value if hasattr(fmt, "value") else str(fmt).lower()
    if fmt_str == LogFormat.JSON.value:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Suppress noisy loggers
    logging.getLogger("kubernetes.client.rest").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (defaults to module name)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


class SyncContext:
    """Context manager for invocation-scoped logging context.

    Usage:
        async with SyncContext(pairing="mirrorpeer-sample", invocation_id="abc123"):
            logger.info("Reconciling")  # Includes pairing and invocation_id
    """

    def __init__(
        self,
        invocation_id: str | None = None,
        pairing: str | None = None,
        cluster: str | None = None,
    ):
        self.invocation_id = invocation_id
        self.pairing = pairing
        self.cluster = cluster
        self._tokens: list[tuple[ContextVar[str | None], Any]] = []

    def __enter__(self) -> "SyncContext":
        if self.invocation_id:
            self._tokens.append((invocation_id_var, invocation_id_var.set(self.invocation_id)))
        if self.pairing:
            self._tokens.append((pairing_var, pairing_var.set(self.pairing)))
        if self.cluster:
            self._tokens.append((cluster_var, cluster_var.set(self.cluster)))
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()

    async def __aenter__(self) -> "SyncContext":
        return self.__enter__()

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def log_store_call_start(
    logger: structlog.stdlib.BoundLogger,
    operation: str,
    namespace: str | None,
    name: str | None = None,
) -> None:
    """Log start of an object store call."""
    logger.debug(
        "Store call started",
        store_operation=operation,
        store_namespace=namespace,
        store_name=name,
    )


def log_store_call_end(
    logger: structlog.stdlib.BoundLogger,
    operation: str,
    success: bool,
    duration_ms: float,
    error: str | None = None,
) -> None:
    """Log completion of an object store call."""
    log_data: dict[str, Any] = {
        "store_operation": operation,
        "success": success,
        "duration_ms": round(duration_ms, 2),
    }
    if error:
        log_data["error"] = error

    if success:
        logger.debug("Store call completed", **log_data)
    else:
        logger.warning("Store call failed", **log_data)
