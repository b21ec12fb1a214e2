"""
Deposit Sequence Generator

The challenge plan is fixed: deposit 1, 2, ..., 200 and then
200, 199, ..., 1. That adds up to 40,200. A 40,000 challenge drops
the first 200 found scanning from the start, which is the last
deposit of the ascending run (sequence_order 200).

DESIGN DECISION: Generation is pure. It knows nothing about storage,
so the plan can be tested without any backend. Persisting the plan is
the ledger's job.
"""

from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from savings_tracker.challenge.errors import InvalidTargetError
from savings_tracker.models.challenge import DepositObligation, DepositStatus


MAX_DEPOSIT_VALUE = 200

STANDARD_TARGET = Decimal("40000")
FULL_TARGET = Decimal("40200")
SUPPORTED_TARGETS = frozenset({STANDARD_TARGET, FULL_TARGET})


def normalize_target(target: Any) -> Decimal:
    """
    Convert a requested target to Decimal and check it is supported.

    Raises:
        InvalidTargetError: If the target is not a number or not supported.
    """
    if isinstance(target, bool):
        raise InvalidTargetError(target, SUPPORTED_TARGETS)
    try:
        value = target if isinstance(target, Decimal) else Decimal(str(target))
    except (InvalidOperation, ValueError):
        raise InvalidTargetError(target, SUPPORTED_TARGETS)

    if not value.is_finite() or value not in SUPPORTED_TARGETS:
        raise InvalidTargetError(target, SUPPORTED_TARGETS)
    return value


def generate_deposit_values(target: Any) -> list[int]:
    """
    Produce the ordered deposit values for a target.

    Returns 399 values for 40,000 and 400 values for 40,200.
    Each list sums to its target.
    """
    value = normalize_target(target)

    ascending = list(range(1, MAX_DEPOSIT_VALUE + 1))
    descending = list(range(MAX_DEPOSIT_VALUE, 0, -1))
    values = ascending + descending

    if value == STANDARD_TARGET:
        # list.remove drops the first occurrence
        values.remove(MAX_DEPOSIT_VALUE)

    return values


def build_deposits(challenge_id: UUID, target: Any) -> list[DepositObligation]:
    """
    Turn the deposit plan into pending DepositObligation records.

    sequence_order is the 1-based position in the plan.
    """
    return [
        DepositObligation(
            challenge_id=challenge_id,
            value=value,
            sequence_order=position,
            status=DepositStatus.PENDING,
            completed_at=None,
        )
        for position, value in enumerate(generate_deposit_values(target), start=1)
    ]
