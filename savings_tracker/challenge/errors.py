"""
Challenge Errors

All errors are raised to the immediate caller. Nothing in the challenge
core retries; retries belong to the storage backends.
"""

from decimal import Decimal
from typing import Any
from uuid import UUID


class ChallengeError(Exception):
    """Base exception for challenge operations."""
    pass


class DuplicateChallengeError(ChallengeError):
    """Owner already has an active challenge."""

    def __init__(self, owner_id: str):
        self.owner_id = owner_id
        super().__init__(f"Owner {owner_id} already has an active challenge")


class InvalidTargetError(ChallengeError, ValueError):
    """Requested target is not one of the supported challenge targets."""

    def __init__(self, target: Any, supported: frozenset[Decimal]):
        self.target = target
        self.supported = supported
        allowed = ", ".join(str(t) for t in sorted(supported))
        super().__init__(f"Unsupported challenge target: {target!r}. Allowed: {allowed}")


class InvalidOwnerError(ChallengeError, ValueError):
    """Owner ID is missing or too long to store."""

    def __init__(self, owner_id: Any):
        self.owner_id = owner_id
        super().__init__(f"Invalid owner ID: {owner_id!r}")


class InvalidTransitionError(ChallengeError):
    """Requested status change is not in the transition table."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move deposit from '{current}' to '{requested}'")


class ChallengeLookupError(ChallengeError):
    """Referenced challenge or deposit does not exist."""
    pass


class ChallengeNotFoundError(ChallengeLookupError):

    def __init__(self, owner_id: str):
        self.owner_id = owner_id
        super().__init__(f"No challenge found for owner {owner_id}")


class DepositNotFoundError(ChallengeLookupError):

    def __init__(self, deposit_id: UUID):
        self.deposit_id = deposit_id
        super().__init__(f"Deposit not found: {deposit_id}")
