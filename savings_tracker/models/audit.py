"""
Audit Models for Savings Tracker

Every change to a user's challenge is logged for audit purposes.
This provides:
1. Complete traceability of all operations
2. Debugging information when things go wrong
3. A history the user can review ("when did I mark deposit 150?")
4. Ability to reconstruct history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from savings_tracker.models.challenge import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Challenge lifecycle
    CHALLENGE_CREATED = "challenge_created"
    CHALLENGE_CREATION_REJECTED = "challenge_creation_rejected"
    CHALLENGE_DELETED = "challenge_deleted"

    # Deposits
    DEPOSIT_TRANSITIONED = "deposit_transitioned"
    TRANSITION_REJECTED = "transition_rejected"

    # System events
    SYSTEM_ERROR = "system_error"
    STORAGE_ERROR = "storage_error"


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
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
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
        description="Type of entity (e.g., 'challenge', 'deposit')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Who the event concerns
    owner_id: Optional[str] = Field(
        default=None,
        description="Identity of the user whose challenge this is about"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    # Additional data (event-specific)
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    # User action tracking
    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
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
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "owner_id": self.owner_id,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         owner_id, description, details_json, error_code, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            self.owner_id or "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_code or "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.challenge_created(challenge_id, owner_id, ...)
        event = AuditEventBuilder.deposit_transitioned(deposit_id, ...)
    """

    @staticmethod
    def challenge_created(
        challenge_id: UUID,
        owner_id: str,
        target: str,
        deposit_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHALLENGE_CREATED,
            entity_type="challenge",
            entity_id=challenge_id,
            owner_id=owner_id,
            description=f"Challenge started with target {target} ({deposit_count} deposits)",
            details={
                "target": target,
                "deposit_count": deposit_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def challenge_creation_rejected(
        owner_id: str,
        target: str,
        reason: str,
        error_code: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHALLENGE_CREATION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="challenge",
            owner_id=owner_id,
            description=f"Challenge creation rejected: {reason}",
            details={
                "target": target,
            },
            error_code=error_code,
            error_message=reason,
            is_user_action=True,
        )

    @staticmethod
    def challenge_deleted(
        challenge_id: UUID,
        owner_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHALLENGE_DELETED,
            entity_type="challenge",
            entity_id=challenge_id,
            owner_id=owner_id,
            description="Challenge and its deposits deleted",
            is_user_action=True,
        )

    @staticmethod
    def deposit_transitioned(
        deposit_id: UUID,
        value: int,
        from_status: str,
        to_status: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEPOSIT_TRANSITIONED,
            entity_type="deposit",
            entity_id=deposit_id,
            description=f"Deposit of {value} moved from {from_status} to {to_status}",
            details={
                "value": value,
                "from_status": from_status,
                "to_status": to_status,
            },
            is_user_action=True,
        )

    @staticmethod
    def transition_rejected(
        deposit_id: UUID,
        from_status: str,
        to_status: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSITION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="deposit",
            entity_id=deposit_id,
            description=f"Rejected transition from {from_status} to {to_status}",
            details={
                "from_status": from_status,
                "to_status": to_status,
            },
            error_code="invalid_transition",
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        owner_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            owner_id=owner_id,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        owner_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={
                "operation": operation,
            },
            owner_id=owner_id,
        )
