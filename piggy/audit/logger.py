"""
Audit Logger

DESIGN DECISION: Every ledger mutation, fallback and sync transition is
logged as a structured event. This provides:
1. Visibility into silent fallbacks (the caller never sees them)
2. Debugging capability for sync races
3. A history of which store accepted each record

The audit logger:
- Is async so it sits naturally between awaited store calls
- Never raises into the caller if logging itself fails
"""

import logging
from typing import Optional

import structlog

from piggy.models.audit import AuditEvent, AuditEventBuilder


# Configure structlog for local logging
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
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog output to stderr at the given stdlib level."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper()))
    logging.getLogger().setLevel(level.upper())


class AuditLogger:
    """
    Central audit logging service.

    Events are written to the structured log and kept in a bounded
    in-memory history so callers (and tests) can inspect recent activity.
    """

    def __init__(self, history_size: int = 500):
        self._logger = structlog.get_logger("piggy.audit")
        self._history: list[AuditEvent] = []
        self._history_size = history_size

    @property
    def history(self) -> list[AuditEvent]:
        """Recent events, oldest first."""
        return list(self._history)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if writing the log line failed; never raises.
        """
        self._history.append(event)
        if len(self._history) > self._history_size:
            del self._history[: len(self._history) - self._history_size]

        log_dict = event.to_log_dict()
        try:
            if event.severity.value == "error":
                self._logger.error("audit_event", **log_dict)
            elif event.severity.value == "warning":
                self._logger.warning("audit_event", **log_dict)
            elif event.severity.value == "debug":
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # A broken log handler must not break a ledger write
            logging.getLogger(__name__).error("audit log write failed: %s", e)
            return False
        return True

    async def log_expense_created(self, expense_id: str, user_id: str, origin: str) -> None:
        await self.log(AuditEventBuilder.expense_created(expense_id, user_id, origin))

    async def log_expense_updated(self, expense_id: str, user_id: str, fields: list[str]) -> None:
        await self.log(AuditEventBuilder.expense_updated(expense_id, user_id, fields))

    async def log_expense_deleted(
        self,
        expense_id: str,
        user_id: str,
        remote_deleted: bool,
    ) -> None:
        await self.log(AuditEventBuilder.expense_deleted(expense_id, user_id, remote_deleted))

    async def log_validation_failed(self, issues: list[dict], user_id: Optional[str]) -> None:
        await self.log(AuditEventBuilder.validation_failed(issues, user_id))

    async def log_remote_write_failed(
        self,
        expense_id: Optional[str],
        user_id: str,
        operation: str,
        error_message: str,
    ) -> None:
        """Log a remote create/update that fell back to the local store."""
        await self.log(
            AuditEventBuilder.remote_write_failed(expense_id, user_id, operation, error_message)
        )

    async def log_remote_delete_failed(
        self,
        expense_id: str,
        user_id: str,
        error_message: str,
    ) -> None:
        await self.log(AuditEventBuilder.remote_delete_failed(expense_id, user_id, error_message))

    async def log_local_mirror_failed(
        self,
        expense_id: str,
        user_id: str,
        error_message: str,
    ) -> None:
        await self.log(AuditEventBuilder.local_mirror_failed(expense_id, user_id, error_message))

    async def log_sync_started(self, user_id: str, collection: str) -> None:
        await self.log(AuditEventBuilder.sync_started(user_id, collection))

    async def log_sync_snapshot(self, user_id: str, received: int, visible: int) -> None:
        await self.log(AuditEventBuilder.sync_snapshot_applied(user_id, received, visible))

    async def log_sync_degraded(self, user_id: str, error_message: str, restored: int) -> None:
        await self.log(AuditEventBuilder.sync_degraded(user_id, error_message, restored))

    async def log_sync_stopped(self, user_id: Optional[str], snapshots: int) -> None:
        await self.log(AuditEventBuilder.sync_stopped(user_id, snapshots))

    async def log_user_signed_up(self, user_id: str, email: str) -> None:
        await self.log(AuditEventBuilder.user_signed_up(user_id, email))

    async def log_user_logged_in(self, user_id: str) -> None:
        await self.log(AuditEventBuilder.user_logged_in(user_id))

    async def log_user_login_failed(self, email: str) -> None:
        await self.log(AuditEventBuilder.user_login_failed(email))

    async def log_user_logged_out(self, user_id: Optional[str]) -> None:
        await self.log(AuditEventBuilder.user_logged_out(user_id))
