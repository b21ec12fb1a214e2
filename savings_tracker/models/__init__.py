"""
Data Models Package

This package contains all Pydantic models used in the Savings Tracker system.
All data flowing through the system must conform to these schemas.
"""

from savings_tracker.models.challenge import (
    Challenge,
    ChallengeProgress,
    ChallengeState,
    DepositObligation,
    DepositStatus,
    utc_now,
)
from savings_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Challenge models
    "Challenge",
    "ChallengeProgress",
    "ChallengeState",
    "DepositObligation",
    "DepositStatus",
    "utc_now",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
