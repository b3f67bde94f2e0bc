"""
Audit Models for Piggy Budget

Every ledger mutation, store fallback and sync transition is recorded
as an audit event. This provides:
1. Traceability of where each record was written
2. Visibility into silent fallbacks (remote down, local only)
3. Debugging information for sync degradation

DESIGN DECISION: Audit events are emitted, never edited.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Ledger mutations
    EXPENSE_CREATED = "expense_created"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"
    VALIDATION_FAILED = "validation_failed"

    # Store fallbacks
    REMOTE_WRITE_FAILED = "remote_write_failed"
    REMOTE_DELETE_FAILED = "remote_delete_failed"
    LOCAL_MIRROR_FAILED = "local_mirror_failed"

    # Live sync
    SYNC_STARTED = "sync_started"
    SYNC_SNAPSHOT_APPLIED = "sync_snapshot_applied"
    SYNC_DEGRADED = "sync_degraded"
    SYNC_STOPPED = "sync_stopped"

    # Accounts
    USER_SIGNED_UP = "user_signed_up"
    USER_LOGGED_IN = "user_logged_in"
    USER_LOGIN_FAILED = "user_login_failed"
    USER_LOGGED_OUT = "user_logged_out"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


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
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'user', 'subscription')"
    )
    entity_id: Optional[str] = None
    user_id: Optional[str] = Field(
        default=None,
        description="Active user when the event happened"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "user_id": self.user_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_created(expense_id, user_id, "remote")
        event = AuditEventBuilder.sync_degraded(user_id, error, restored=12)
    """

    @staticmethod
    def expense_created(expense_id: str, user_id: str, origin: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_CREATED,
            entity_type="expense",
            entity_id=expense_id,
            user_id=user_id,
            description=f"Expense created ({origin})",
            details={"origin": origin},
        )

    @staticmethod
    def expense_updated(expense_id: str, user_id: str, fields: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_UPDATED,
            entity_type="expense",
            entity_id=expense_id,
            user_id=user_id,
            description=f"Expense updated: {', '.join(fields) or 'no changes'}",
            details={"fields": fields},
        )

    @staticmethod
    def expense_deleted(expense_id: str, user_id: str, remote_deleted: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            severity=AuditSeverity.INFO if remote_deleted else AuditSeverity.WARNING,
            entity_type="expense",
            entity_id=expense_id,
            user_id=user_id,
            description=(
                "Expense deleted"
                if remote_deleted
                else "Expense deleted locally; it may reappear on the next remote sync"
            ),
            details={"remote_deleted": remote_deleted},
        )

    @staticmethod
    def validation_failed(issues: list[dict], user_id: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="expense",
            user_id=user_id,
            description=f"Expense rejected with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def remote_write_failed(
        expense_id: Optional[str],
        user_id: str,
        operation: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_WRITE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="expense",
            entity_id=expense_id,
            user_id=user_id,
            description=f"Remote {operation} failed; kept local copy only",
            details={"operation": operation},
            error_message=error_message,
        )

    @staticmethod
    def remote_delete_failed(expense_id: str, user_id: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_DELETE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="expense",
            entity_id=expense_id,
            user_id=user_id,
            description="Remote delete failed; record removed locally only",
            error_message=error_message,
        )

    @staticmethod
    def local_mirror_failed(expense_id: str, user_id: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOCAL_MIRROR_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="expense",
            entity_id=expense_id,
            user_id=user_id,
            description="Remote write succeeded but the local backup copy failed",
            error_message=error_message,
        )

    @staticmethod
    def sync_started(user_id: str, collection: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_STARTED,
            entity_type="subscription",
            entity_id=collection,
            user_id=user_id,
            description=f"Live subscription opened on '{collection}'",
        )

    @staticmethod
    def sync_snapshot_applied(user_id: str, received: int, visible: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_SNAPSHOT_APPLIED,
            severity=AuditSeverity.DEBUG,
            entity_type="subscription",
            user_id=user_id,
            description=f"Snapshot applied: {visible} of {received} records visible",
            details={"received": received, "visible": visible},
        )

    @staticmethod
    def sync_degraded(user_id: str, error_message: str, restored: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_DEGRADED,
            severity=AuditSeverity.WARNING,
            entity_type="subscription",
            user_id=user_id,
            description=f"Live subscription failed; serving {restored} local records",
            details={"restored": restored},
            error_message=error_message,
        )

    @staticmethod
    def sync_stopped(user_id: Optional[str], snapshots: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_STOPPED,
            entity_type="subscription",
            user_id=user_id,
            description="Live subscription stopped",
            details={"snapshots_applied": snapshots},
        )

    @staticmethod
    def user_signed_up(user_id: str, email: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_SIGNED_UP,
            entity_type="user",
            entity_id=user_id,
            user_id=user_id,
            description=f"Account created for {email}",
        )

    @staticmethod
    def user_logged_in(user_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_LOGGED_IN,
            entity_type="user",
            entity_id=user_id,
            user_id=user_id,
            description="User logged in",
        )

    @staticmethod
    def user_login_failed(email: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_LOGIN_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="user",
            description="Login rejected: invalid email or password",
            details={"email": email},
        )

    @staticmethod
    def user_logged_out(user_id: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_LOGGED_OUT,
            entity_type="user",
            entity_id=user_id,
            user_id=user_id,
            description="User logged out",
        )
