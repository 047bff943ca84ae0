"""
Audit Models for Event Planner

Every state change and every swallowed failure is recorded as an audit
event. This provides:
1. Traceability of local and remote mutations
2. Visibility into best-effort persistence and sync failures that are
   deliberately not raised to the caller
3. Debugging information when derived state looks wrong

DESIGN DECISION: Audit events are append-only values.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Entity mutations
    ENTITY_CREATED = "entity_created"
    ENTITY_UPDATED = "entity_updated"
    ENTITY_DELETED = "entity_deleted"
    EVENT_SELECTED = "event_selected"

    # Derived state
    MIRRORED_EXPENSES_RECONCILED = "mirrored_expenses_reconciled"
    CATEGORY_TOTALS_UPDATED = "category_totals_updated"

    # Local persistence
    PERSISTENCE_READ_FAILED = "persistence_read_failed"
    PERSISTENCE_WRITE_FAILED = "persistence_write_failed"

    # Validation
    VALIDATION_REJECTED = "validation_rejected"
    DUPLICATE_WARNING = "duplicate_warning"

    # Remote sync
    REMOTE_PUSH_FAILED = "remote_push_failed"
    REMOTE_MERGE_APPLIED = "remote_merge_applied"
    REALTIME_SUBSCRIBED = "realtime_subscribed"
    REALTIME_UNSUBSCRIBED = "realtime_unsubscribed"

    # Collaborators
    ASSISTANT_COMMAND_EXECUTED = "assistant_command_executed"
    BUDGET_EXPORTED = "budget_exported"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'task', 'budget_expense')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    # Where the change came from
    origin: str = Field(
        default="local",
        pattern="^(local|remote)$",
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "origin": self.origin,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entity_created("task", task.id)
        event = AuditEventBuilder.persistence_write_failed("tasks", str(exc))
    """

    @staticmethod
    def entity_created(entity_type: str, entity_id: str, origin: str = "local") -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTITY_CREATED,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type} created",
            origin=origin,
        )

    @staticmethod
    def entity_updated(
        entity_type: str,
        entity_id: str,
        fields: list[str],
        origin: str = "local",
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTITY_UPDATED,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type} updated",
            details={"fields": sorted(fields)},
            origin=origin,
        )

    @staticmethod
    def entity_deleted(entity_type: str, entity_id: str, origin: str = "local") -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTITY_DELETED,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type} deleted",
            origin=origin,
        )

    @staticmethod
    def event_selected(event_id: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EVENT_SELECTED,
            entity_type="event",
            entity_id=event_id,
            description="Event selection cleared" if event_id is None else "Event selected",
        )

    @staticmethod
    def mirrored_expenses_reconciled(added: int, updated: int, removed: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MIRRORED_EXPENSES_RECONCILED,
            entity_type="budget_expense",
            description=f"Task expenses reconciled: +{added} ~{updated} -{removed}",
            details={"added": added, "updated": updated, "removed": removed},
        )

    @staticmethod
    def category_totals_updated(category_ids: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_TOTALS_UPDATED,
            entity_type="budget_category",
            description=f"Spent totals changed for {len(category_ids)} categories",
            details={"category_ids": category_ids},
        )

    @staticmethod
    def persistence_read_failed(key: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSISTENCE_READ_FAILED,
            severity=AuditSeverity.ERROR,
            description=f"Could not read '{key}' from local storage",
            details={"key": key},
            error_message=error_message,
        )

    @staticmethod
    def persistence_write_failed(key: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSISTENCE_WRITE_FAILED,
            severity=AuditSeverity.ERROR,
            description=f"Could not write '{key}' to local storage",
            details={"key": key},
            error_message=error_message,
        )

    @staticmethod
    def validation_rejected(entity_type: str, issues: list[dict]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            description=f"{entity_type} rejected with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def duplicate_warning(entity_type: str, title: str, confirmed: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DUPLICATE_WARNING,
            severity=AuditSeverity.WARNING if not confirmed else AuditSeverity.INFO,
            entity_type=entity_type,
            description=f"Similar {entity_type} title: {title}",
            details={"title": title, "confirmed": confirmed},
        )

    @staticmethod
    def remote_push_failed(
        entity_type: str,
        entity_id: Optional[str],
        action: str,
        error_message: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_PUSH_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"Remote {action} failed for {entity_type}",
            details={"action": action},
            error_message=error_message,
        )

    @staticmethod
    def remote_merge_applied(entity_type: str, entity_id: str, action: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_MERGE_APPLIED,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"Remote {entity_type} merged ({action})",
            details={"action": action},
            origin="remote",
        )

    @staticmethod
    def realtime_subscribed(channel: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REALTIME_SUBSCRIBED,
            description=f"Subscribed to realtime channel {channel}",
            details={"channel": channel},
        )

    @staticmethod
    def realtime_unsubscribed(channels: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REALTIME_UNSUBSCRIBED,
            description=f"Unsubscribed from {len(channels)} realtime channels",
            details={"channels": channels},
        )

    @staticmethod
    def assistant_command_executed(tool_name: str, succeeded: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ASSISTANT_COMMAND_EXECUTED,
            severity=AuditSeverity.INFO if succeeded else AuditSeverity.WARNING,
            description=f"Assistant tool {tool_name} {'completed' if succeeded else 'failed'}",
            details={"tool": tool_name, "succeeded": succeeded},
        )

    @staticmethod
    def budget_exported(sheet_count: int, destination: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_EXPORTED,
            description=f"Budget exported as {sheet_count} sheets",
            details={"sheet_count": sheet_count, "destination": destination},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )
