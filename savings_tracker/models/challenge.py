"""
Core Data Models for the Savings Challenge

These models define the strict schemas for all challenge data flowing
through the system. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Support the audit trail

DESIGN DECISION: A deposit's status is a closed enumeration.
Which status may follow which is decided in one place
(savings_tracker.challenge.transitions), never by string comparisons
scattered through the code.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    Field,
    model_validator,
)


MAX_OWNER_ID_LENGTH = 100


def utc_now() -> datetime:
    """Timezone-aware current time; all stored timestamps are UTC."""
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class DepositStatus(str, Enum):
    """
    Fulfilment status of a single deposit obligation.

    There is no terminal state: a deposit can always be cycled
    pending -> completed -> skipped -> pending again.
    """
    PENDING = "pending"      # Not deposited yet
    COMPLETED = "completed"  # User made the deposit
    SKIPPED = "skipped"      # User chose to skip this one


# =============================================================================
# CHALLENGE MODELS
# =============================================================================

class Challenge(BaseModel):
    """
    A savings challenge owned by one user.

    CRITICAL: An owner has at most one challenge at any time.
    That rule is enforced by the storage backend, not here.
    The owner ID is opaque and stored exactly as given.
    """

    # Identity
    id: UUID = Field(
        default_factory=uuid4,
        description="Unique challenge ID"
    )
    owner_id: str = Field(
        ...,
        min_length=1,
        max_length=MAX_OWNER_ID_LENGTH,
        description="Opaque identity of the owning user"
    )

    target: Annotated[
        Decimal,
        Field(gt=0, decimal_places=2, description="Savings goal (required)")
    ]
    is_active: bool = Field(
        default=True,
        description="Whether the challenge is the owner's running challenge"
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        description="When the challenge was started"
    )


class DepositObligation(BaseModel):
    """
    One deposit of the challenge plan.

    The value and position are fixed at creation time.
    Only `status` and `completed_at` change afterwards.
    """

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique deposit ID"
    )
    challenge_id: UUID = Field(
        ...,
        description="Challenge this deposit belongs to"
    )
    value: int = Field(
        ...,
        gt=0,
        description="Amount to deposit"
    )
    sequence_order: int = Field(
        ...,
        ge=1,
        description="1-based position within the challenge"
    )
    status: DepositStatus = Field(
        default=DepositStatus.PENDING,
        description="Fulfilment status"
    )
    completed_at: Optional[datetime] = Field(
        default=None,
        description="When the deposit was marked completed"
    )
    created_at: datetime = Field(
        default_factory=utc_now
    )

    @model_validator(mode='after')
    def validate_completion_timestamp(self) -> 'DepositObligation':
        """completed_at is present exactly when the deposit is completed."""
        if self.status == DepositStatus.COMPLETED and self.completed_at is None:
            raise ValueError("Completed deposit must have completed_at")
        if self.status != DepositStatus.COMPLETED and self.completed_at is not None:
            raise ValueError(
                f"Deposit in status '{self.status.value}' cannot have completed_at"
            )
        return self


class ChallengeState(BaseModel):
    """A challenge together with its deposits, ordered by sequence_order."""

    challenge: Challenge
    deposits: list[DepositObligation] = Field(default_factory=list)

    @property
    def target(self) -> Decimal:
        return self.challenge.target

    def get_deposit(self, deposit_id: UUID) -> Optional[DepositObligation]:
        for deposit in self.deposits:
            if deposit.id == deposit_id:
                return deposit
        return None


# =============================================================================
# PROGRESS MODEL
# =============================================================================

class ChallengeProgress(BaseModel):
    """
    Aggregate progress of a challenge.

    `completion_percent` is the raw value and is NOT clamped.
    Use `bar_percent` when drawing a bounded progress bar.
    """

    target: Decimal
    accumulated: int = Field(
        ...,
        ge=0,
        description="Sum of completed deposit values"
    )
    remaining: Decimal = Field(
        ...,
        description="target - accumulated (may be negative)"
    )
    completion_percent: float = Field(
        ...,
        description="accumulated / target * 100, unclamped"
    )
    completed_count: int = Field(default=0, ge=0)
    skipped_count: int = Field(default=0, ge=0)
    pending_count: int = Field(default=0, ge=0)
    total_count: int = Field(default=0, ge=0)

    @property
    def is_complete(self) -> bool:
        """Challenge is complete once the target has been reached."""
        return self.completion_percent >= 100

    @property
    def bar_percent(self) -> float:
        """Percentage clamped to [0, 100] for display."""
        return min(max(self.completion_percent, 0.0), 100.0)
