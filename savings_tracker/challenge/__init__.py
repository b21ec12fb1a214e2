"""Savings challenge core: deposit plan, status machine and progress."""

from savings_tracker.challenge.errors import (
    ChallengeError,
    ChallengeLookupError,
    ChallengeNotFoundError,
    DepositNotFoundError,
    DuplicateChallengeError,
    InvalidOwnerError,
    InvalidTargetError,
    InvalidTransitionError,
)
from savings_tracker.challenge.generator import (
    FULL_TARGET,
    MAX_DEPOSIT_VALUE,
    STANDARD_TARGET,
    SUPPORTED_TARGETS,
    build_deposits,
    generate_deposit_values,
    normalize_target,
)
from savings_tracker.challenge.progress import calculate_progress, progress_for
from savings_tracker.challenge.transitions import (
    CYCLE,
    TRANSITIONS,
    apply_transition,
    can_transition,
    next_status,
)

__all__ = [
    # Errors
    "ChallengeError",
    "ChallengeLookupError",
    "ChallengeNotFoundError",
    "DepositNotFoundError",
    "DuplicateChallengeError",
    "InvalidOwnerError",
    "InvalidTargetError",
    "InvalidTransitionError",
    # Generator
    "FULL_TARGET",
    "MAX_DEPOSIT_VALUE",
    "STANDARD_TARGET",
    "SUPPORTED_TARGETS",
    "build_deposits",
    "generate_deposit_values",
    "normalize_target",
    # Progress
    "calculate_progress",
    "progress_for",
    # Transitions
    "CYCLE",
    "TRANSITIONS",
    "apply_transition",
    "can_transition",
    "next_status",
]
