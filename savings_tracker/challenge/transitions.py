"""
Deposit Status State Machine

Allowed moves:

    pending   -> completed   (completed_at set)
    completed -> skipped     (completed_at cleared)
    skipped   -> pending     (completed_at cleared)
    completed -> pending     (completed_at cleared, "undo")

Clicking a deposit follows the cycle pending -> completed -> skipped ->
pending. Every other request, including skipped -> completed and
asking for the current status again, is rejected.
"""

from datetime import datetime
from typing import Optional

from savings_tracker.challenge.errors import InvalidTransitionError
from savings_tracker.models.challenge import DepositObligation, DepositStatus, utc_now


TRANSITIONS: dict[DepositStatus, frozenset[DepositStatus]] = {
    DepositStatus.PENDING: frozenset({DepositStatus.COMPLETED}),
    DepositStatus.COMPLETED: frozenset({DepositStatus.SKIPPED, DepositStatus.PENDING}),
    DepositStatus.SKIPPED: frozenset({DepositStatus.PENDING}),
}

CYCLE: dict[DepositStatus, DepositStatus] = {
    DepositStatus.PENDING: DepositStatus.COMPLETED,
    DepositStatus.COMPLETED: DepositStatus.SKIPPED,
    DepositStatus.SKIPPED: DepositStatus.PENDING,
}


def can_transition(current: DepositStatus, target: DepositStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def next_status(current: DepositStatus) -> DepositStatus:
    """Status a deposit moves to when toggled."""
    return CYCLE[current]


def apply_transition(
    deposit: DepositObligation,
    target: DepositStatus,
    now: Optional[datetime] = None,
) -> DepositObligation:
    """
    Return a copy of the deposit moved to `target`.

    The input deposit is never modified.

    Raises:
        InvalidTransitionError: If the move is not in TRANSITIONS.
    """
    try:
        target = DepositStatus(target)
    except ValueError:
        raise InvalidTransitionError(deposit.status.value, str(target))

    if not can_transition(deposit.status, target):
        raise InvalidTransitionError(deposit.status.value, target.value)

    completed_at = (now or utc_now()) if target == DepositStatus.COMPLETED else None
    return deposit.model_copy(update={"status": target, "completed_at": completed_at})
