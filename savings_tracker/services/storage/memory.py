"""
In-Memory Storage Implementation

Keeps challenges, deposits and audit events in process memory.
Used by the test suite and for running without Google Sheets.

The uniqueness check and the insert in create_challenge happen without
an intervening await, so two racing creations for the same owner on one
event loop cannot both succeed.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from savings_tracker.models.challenge import (
    Challenge,
    DepositObligation,
    DepositStatus,
)
from savings_tracker.models.audit import AuditEvent
from savings_tracker.services.storage.interface import (
    AuditStorageInterface,
    ChallengeStorageInterface,
    DuplicateError,
    NotFoundError,
)


class InMemoryChallengeStorage(ChallengeStorageInterface):
    """Challenge storage backed by dictionaries."""

    def __init__(self):
        self._challenges: dict[UUID, Challenge] = {}
        self._owner_index: dict[str, UUID] = {}
        self._deposits: dict[UUID, DepositObligation] = {}
        self._deposit_index: dict[UUID, list[UUID]] = {}

    async def create_challenge(
        self,
        challenge: Challenge,
        deposits: list[DepositObligation],
    ) -> None:
        if challenge.owner_id in self._owner_index:
            raise DuplicateError(f"Owner already has a challenge: {challenge.owner_id}")
        for deposit in deposits:
            if deposit.challenge_id != challenge.id:
                raise ValueError(
                    f"Deposit {deposit.id} does not belong to challenge {challenge.id}"
                )

        self._challenges[challenge.id] = challenge.model_copy()
        self._owner_index[challenge.owner_id] = challenge.id
        self._deposit_index[challenge.id] = []
        for deposit in deposits:
            self._deposits[deposit.id] = deposit.model_copy()
            self._deposit_index[challenge.id].append(deposit.id)

    async def get_challenge_by_owner(self, owner_id: str) -> Optional[Challenge]:
        challenge_id = self._owner_index.get(owner_id)
        if challenge_id is None:
            return None
        return self._challenges[challenge_id].model_copy()

    async def list_deposits(self, challenge_id: UUID) -> list[DepositObligation]:
        deposits = [
            self._deposits[deposit_id].model_copy()
            for deposit_id in self._deposit_index.get(challenge_id, [])
        ]
        deposits.sort(key=lambda d: d.sequence_order)
        return deposits

    async def get_deposit(self, deposit_id: UUID) -> Optional[DepositObligation]:
        deposit = self._deposits.get(deposit_id)
        return deposit.model_copy() if deposit else None

    async def update_deposit_status(
        self,
        deposit_id: UUID,
        status: DepositStatus,
        completed_at: Optional[datetime],
    ) -> DepositObligation:
        if deposit_id not in self._deposits:
            raise NotFoundError(f"Deposit not found: {deposit_id}")

        updated = self._deposits[deposit_id].model_copy(
            update={"status": status, "completed_at": completed_at}
        )
        self._deposits[deposit_id] = updated
        return updated.model_copy()

    async def delete_challenge(self, challenge_id: UUID) -> bool:
        challenge = self._challenges.pop(challenge_id, None)
        if challenge is None:
            return False

        self._owner_index.pop(challenge.owner_id, None)
        for deposit_id in self._deposit_index.pop(challenge_id, []):
            self._deposits.pop(deposit_id, None)
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_owner(self, owner_id: str) -> list[AuditEvent]:
        events = [e for e in self._events if e.owner_id == owner_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
