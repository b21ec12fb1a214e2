"""
Audit Logger

DESIGN DECISION: Every change to a challenge is logged.
This provides:
1. Complete traceability
2. Debugging capability
3. User can see history of their deposits
4. Compliance readiness

The audit logger:
- Is async like the storage layer it writes to
- Gracefully handles failures (doesn't crash the app if logging fails)
- Tags events with the owner they concern
"""

import logging
from typing import Optional
from uuid import UUID

import structlog

from savings_tracker.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from savings_tracker.services.storage import AuditStorageInterface


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
    """
    Route structlog output through the stdlib root logger at `level`.

    structlog.stdlib.filter_by_level drops anything below the stdlib
    level, which defaults to WARNING.
    """
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper()))
    logging.getLogger().setLevel(getattr(logging, level.upper()))


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("savings_tracker.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_challenge_created(
        self,
        challenge_id: UUID,
        owner_id: str,
        target: str,
        deposit_count: int,
    ) -> None:
        """Log challenge creation."""
        event = AuditEventBuilder.challenge_created(
            challenge_id=challenge_id,
            owner_id=owner_id,
            target=target,
            deposit_count=deposit_count,
        )
        await self.log(event)

    async def log_challenge_rejected(
        self,
        owner_id: str,
        target: str,
        reason: str,
        error_code: str,
    ) -> None:
        """Log a refused challenge creation."""
        event = AuditEventBuilder.challenge_creation_rejected(
            owner_id=owner_id,
            target=target,
            reason=reason,
            error_code=error_code,
        )
        await self.log(event)

    async def log_challenge_deleted(
        self,
        challenge_id: UUID,
        owner_id: str,
    ) -> None:
        event = AuditEventBuilder.challenge_deleted(
            challenge_id=challenge_id,
            owner_id=owner_id,
        )
        await self.log(event)

    async def log_deposit_transitioned(
        self,
        deposit_id: UUID,
        value: int,
        from_status: str,
        to_status: str,
    ) -> None:
        event = AuditEventBuilder.deposit_transitioned(
            deposit_id=deposit_id,
            value=value,
            from_status=from_status,
            to_status=to_status,
        )
        await self.log(event)

    async def log_transition_rejected(
        self,
        deposit_id: UUID,
        from_status: str,
        to_status: str,
    ) -> None:
        event = AuditEventBuilder.transition_rejected(
            deposit_id=deposit_id,
            from_status=from_status,
            to_status=to_status,
        )
        await self.log(event)

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        owner_id: Optional[str] = None,
    ) -> None:
        """Log a storage backend failure."""
        event = AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            owner_id=owner_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        owner_id: Optional[str] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            owner_id=owner_id,
        )
        await self.log(event)
