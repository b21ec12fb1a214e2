"""
Progress Calculator

Pure aggregation over a challenge's deposits. Nothing here is stored;
progress is recomputed from the current deposit statuses on every read.
"""

from decimal import Decimal
from typing import Iterable

from savings_tracker.models.challenge import (
    ChallengeProgress,
    ChallengeState,
    DepositObligation,
    DepositStatus,
)


def calculate_progress(
    target: Decimal,
    deposits: Iterable[DepositObligation],
) -> ChallengeProgress:
    """
    Compute accumulated/remaining amounts and completion percentage.

    The percentage is not clamped. A target of zero yields 0%.
    """
    target = Decimal(target)
    accumulated = 0
    counts = {status: 0 for status in DepositStatus}

    for deposit in deposits:
        counts[deposit.status] += 1
        if deposit.status == DepositStatus.COMPLETED:
            accumulated += deposit.value

    if target > 0:
        completion_percent = float(Decimal(accumulated) / target * 100)
    else:
        completion_percent = 0.0

    return ChallengeProgress(
        target=target,
        accumulated=accumulated,
        remaining=target - accumulated,
        completion_percent=completion_percent,
        completed_count=counts[DepositStatus.COMPLETED],
        skipped_count=counts[DepositStatus.SKIPPED],
        pending_count=counts[DepositStatus.PENDING],
        total_count=sum(counts.values()),
    )


def progress_for(state: ChallengeState) -> ChallengeProgress:
    return calculate_progress(state.target, state.deposits)
