"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The one-challenge-per-owner rule lives HERE, as a uniqueness constraint
of the backend, not as in-process state in the ledger.

The interface is intentionally simple - we're not building a full ORM.
Just the operations the challenge ledger needs.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from uuid import UUID

from savings_tracker.models.challenge import (
    Challenge,
    DepositObligation,
    DepositStatus,
)
from savings_tracker.models.audit import AuditEvent


class ChallengeStorageInterface(ABC):
    """
    Abstract interface for challenge storage operations.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def create_challenge(
        self,
        challenge: Challenge,
        deposits: list[DepositObligation],
    ) -> None:
        """
        Persist a challenge and all of its deposits as one unit.

        Deposits are written in the order given (sequence_order order).

        Raises:
            DuplicateError: If the owner already has a challenge
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_challenge_by_owner(self, owner_id: str) -> Optional[Challenge]:
        """
        Retrieve the owner's challenge.

        Returns:
            The challenge if found, None otherwise
        """
        pass

    @abstractmethod
    async def list_deposits(self, challenge_id: UUID) -> list[DepositObligation]:
        """
        List a challenge's deposits ordered by sequence_order ascending.
        """
        pass

    @abstractmethod
    async def get_deposit(self, deposit_id: UUID) -> Optional[DepositObligation]:
        """
        Retrieve a single deposit by ID.

        Returns:
            The deposit if found, None otherwise
        """
        pass

    @abstractmethod
    async def update_deposit_status(
        self,
        deposit_id: UUID,
        status: DepositStatus,
        completed_at: Optional[datetime],
    ) -> DepositObligation:
        """
        Point update of one deposit's status and completion timestamp.

        Returns:
            The deposit as stored after the update

        Raises:
            NotFoundError: If deposit doesn't exist
            StorageError: If update fails
        """
        pass

    @abstractmethod
    async def delete_challenge(self, challenge_id: UUID) -> bool:
        """
        Delete a challenge together with all of its deposits.

        Returns:
            True if a challenge was deleted
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_owner(self, owner_id: str) -> list[AuditEvent]:
        """
        Get all events about one user's challenge, in chronological order.
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Args:
            entity_type: Type of entity (e.g., 'challenge', 'deposit')
            entity_id: The entity's ID

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
