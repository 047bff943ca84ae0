"""
Audit Logger

DESIGN DECISION: Every state change, and every failure the planner
deliberately swallows (persistence, remote sync), is logged.
This provides:
1. Complete traceability of local and remote mutations
2. Debugging capability for best-effort paths that never raise
3. A bounded in-memory trail that the app (and tests) can inspect

The audit logger:
- Is synchronous: it is called from inside repository mutations
- Never raises into the caller
"""

import logging
from collections import deque
from typing import Optional

import structlog

from eventplanner.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


def configure_logging(level: str = "INFO", json_output: bool = True) -> None:
    """
    Configure structlog on top of the standard library logger.

    Safe to call more than once; the last call wins.
    """
    logging.basicConfig(format="%(message)s", level=level.upper())
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


# Defaults until the application calls configure_logging with its settings
configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Logs every event to the structured log and keeps the most recent
    ones in memory.
    """

    def __init__(self, max_events: int = 500):
        """
        Initialize audit logger.

        Args:
            max_events: How many recent events to keep in memory.
        """
        self._events: deque[AuditEvent] = deque(maxlen=max_events)
        self._logger = structlog.get_logger("eventplanner.audit")

    def log(self, event: AuditEvent) -> None:
        """Log an audit event locally and remember it."""
        self._events.append(event)
        log_dict = event.to_log_dict()
        try:
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # A broken log handler must not break a mutation
            logging.getLogger(__name__).warning("audit log write failed: %s", e)

    def recent(self, limit: Optional[int] = None) -> list[AuditEvent]:
        """Most recent events, newest first."""
        events = list(reversed(self._events))
        return events if limit is None else events[:limit]

    def clear(self) -> None:
        self._events.clear()

    def log_write_failed(self, key: str, error: Exception) -> None:
        """Log a failed local persistence write."""
        self.log(AuditEventBuilder.persistence_write_failed(key, str(error)))

    def log_read_failed(self, key: str, error: Exception) -> None:
        """Log a failed local persistence read."""
        self.log(AuditEventBuilder.persistence_read_failed(key, str(error)))

    def log_push_failed(
        self,
        entity_type: str,
        entity_id: Optional[str],
        action: str,
        error: Optional[str] = None,
    ) -> None:
        """Log a remote call that returned a failure value."""
        self.log(AuditEventBuilder.remote_push_failed(entity_type, entity_id, action, error))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(error_type, error_message, details))
