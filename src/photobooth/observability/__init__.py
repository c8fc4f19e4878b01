"""Observability for the photo-booth kiosk.

Structured logging and operation statistics.

Example:
    from photobooth.observability import BoothStats, LogContext, get_logger

    logger = get_logger(__name__)

    with LogContext(epoch=3):
        logger.info("Print submitted", copies=2, paper_size="4x6")

    stats = BoothStats()
    stats.record("capture", duration_ms=2100.0, success=True)
"""

from photobooth.observability.logging import (
    JSONFormatter,
    LogContext,
    StructuredFormatter,
    StructuredLogger,
    configure_logging,
    get_logger,
    reset_logging,
)
from photobooth.observability.stats import BoothStats, StatsSummary

__all__ = [
    # Logging
    "JSONFormatter",
    "LogContext",
    "StructuredFormatter",
    "StructuredLogger",
    "configure_logging",
    "get_logger",
    "reset_logging",
    # Statistics
    "BoothStats",
    "StatsSummary",
]
