"""
Integration tests for ChallengeLedger over in-memory storage.

Async tests run under pytest-asyncio (asyncio_mode = "auto").
"""

import asyncio
import pytest
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from savings_tracker.audit import AuditLogger
from savings_tracker.challenge import (
    ChallengeLookupError,
    ChallengeNotFoundError,
    DepositNotFoundError,
    DuplicateChallengeError,
    InvalidOwnerError,
    InvalidTargetError,
    InvalidTransitionError,
)
from savings_tracker.models.audit import AuditEventType
from savings_tracker.models.challenge import DepositObligation, DepositStatus
from savings_tracker.orchestrator import ChallengeLedger, create_app_components
from savings_tracker.services.storage import (
    InMemoryAuditStorage,
    InMemoryChallengeStorage,
    StorageError,
)


FIXED_NOW = datetime(2026, 1, 4, 19, 51, tzinfo=timezone.utc)


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def storage():
    return InMemoryChallengeStorage()


@pytest.fixture
def ledger(storage, audit_storage):
    return ChallengeLedger(
        storage=storage,
        audit_logger=AuditLogger(audit_storage),
        clock=lambda: FIXED_NOW,
    )


class TestCreateChallenge:
    """Tests for starting a challenge."""

    async def test_create_standard_challenge(self, ledger):
        state = await ledger.create_challenge("user-1", 40000)

        assert state.challenge.owner_id == "user-1"
        assert state.challenge.target == Decimal("40000")
        assert len(state.deposits) == 399
        assert sum(d.value for d in state.deposits) == 40000

    async def test_create_full_challenge(self, ledger):
        state = await ledger.create_challenge("user-1", 40200)
        assert len(state.deposits) == 400
        assert sum(d.value for d in state.deposits) == 40200

    async def test_created_challenge_is_persisted(self, ledger):
        created = await ledger.create_challenge("user-1", 40000)
        fetched = await ledger.get_challenge("user-1")

        assert fetched.challenge.id == created.challenge.id
        assert [d.id for d in fetched.deposits] == [d.id for d in created.deposits]

    async def test_duplicate_challenge_rejected(self, ledger):
        """Test a second challenge for the same owner fails and changes nothing."""
        await ledger.create_challenge("user-1", 40000)
        before = await ledger.get_challenge("user-1")

        with pytest.raises(DuplicateChallengeError) as exc_info:
            await ledger.create_challenge("user-1", 40200)
        assert exc_info.value.owner_id == "user-1"

        after = await ledger.get_challenge("user-1")
        assert after == before
        assert after.challenge.target == Decimal("40000")

    async def test_other_owner_unaffected(self, ledger):
        await ledger.create_challenge("user-1", 40000)
        state = await ledger.create_challenge("user-2", 40200)
        assert state.challenge.owner_id == "user-2"

    async def test_invalid_target_writes_nothing(self, ledger):
        with pytest.raises(InvalidTargetError):
            await ledger.create_challenge("user-1", 12345)
        assert await ledger.get_challenge("user-1") is None

    async def test_owner_id_kept_verbatim(self, ledger):
        """Test an owner ID with surrounding spaces reads back unchanged."""
        created = await ledger.create_challenge(" alice ", 40000)
        assert created.challenge.owner_id == " alice "

        fetched = await ledger.get_challenge(" alice ")
        assert fetched is not None
        assert fetched.challenge.id == created.challenge.id
        assert await ledger.get_challenge("alice") is None

    @pytest.mark.parametrize("owner_id", ["", "x" * 101, None])
    async def test_invalid_owner_rejected(self, ledger, storage, owner_id):
        with pytest.raises(InvalidOwnerError):
            await ledger.create_challenge(owner_id, 40000)
        assert storage._challenges == {}

    async def test_default_target(self, ledger):
        state = await ledger.create_challenge("user-1")
        assert state.challenge.target == Decimal("40000")
        assert len(state.deposits) == 399

    async def test_configured_default_target(self, storage):
        ledger = ChallengeLedger(storage, default_target=Decimal("40200"))
        state = await ledger.create_challenge("user-1")
        assert state.challenge.target == Decimal("40200")
        assert len(state.deposits) == 400

    async def test_racing_creations_one_wins(self, ledger):
        """Test concurrent creations for one owner yield exactly one challenge."""
        results = await asyncio.gather(
            ledger.create_challenge("user-1", 40000),
            ledger.create_challenge("user-1", 40200),
            return_exceptions=True,
        )
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], DuplicateChallengeError)

    async def test_storage_failure_propagates(self, audit_storage):
        class BrokenStorage(InMemoryChallengeStorage):
            async def create_challenge(self, challenge, deposits):
                raise StorageError("sheet unavailable")

        ledger = ChallengeLedger(BrokenStorage(), AuditLogger(audit_storage))
        with pytest.raises(StorageError):
            await ledger.create_challenge("user-1", 40000)

        events = await audit_storage.get_events_by_owner("user-1")
        assert events[-1].event_type == AuditEventType.STORAGE_ERROR


class TestGetChallenge:
    """Tests for reading a challenge back."""

    async def test_no_challenge_returns_none(self, ledger):
        assert await ledger.get_challenge("nobody") is None
        assert await ledger.get_progress("nobody") is None

    async def test_deposits_ordered_by_sequence(self, ledger):
        await ledger.create_challenge("user-1", 40200)
        state = await ledger.get_challenge("user-1")
        assert [d.sequence_order for d in state.deposits] == list(range(1, 401))

    async def test_reads_are_idempotent(self, ledger):
        """Test two reads without mutation return identical lists."""
        await ledger.create_challenge("user-1", 40000)
        first = await ledger.get_challenge("user-1")
        second = await ledger.get_challenge("user-1")
        assert first.deposits == second.deposits

    async def test_corrupted_record_is_audited(self, audit_storage):
        """Test a stored row that fails validation is logged and re-raised."""
        class CorruptedStorage(InMemoryChallengeStorage):
            async def list_deposits(self, challenge_id):
                # Completed without a timestamp
                return [DepositObligation(
                    challenge_id=challenge_id,
                    value=1,
                    sequence_order=1,
                    status=DepositStatus.COMPLETED,
                )]

        ledger = ChallengeLedger(CorruptedStorage(), AuditLogger(audit_storage))
        await ledger.create_challenge("user-1", 40000)

        with pytest.raises(ValidationError):
            await ledger.get_challenge("user-1")

        events = await audit_storage.get_events_by_owner("user-1")
        assert events[-1].event_type == AuditEventType.SYSTEM_ERROR
        assert events[-1].description == "System error: invalid_stored_record"


class TestTransitionDeposit:
    """Tests for changing deposit status through the ledger."""

    async def test_complete_deposit(self, ledger):
        state = await ledger.create_challenge("user-1", 40000)
        deposit = state.deposits[0]

        updated = await ledger.transition_deposit(deposit.id, DepositStatus.COMPLETED)

        assert updated.status == DepositStatus.COMPLETED
        assert updated.completed_at == FIXED_NOW
        stored = (await ledger.get_challenge("user-1")).get_deposit(deposit.id)
        assert stored.status == DepositStatus.COMPLETED

    async def test_skipped_to_completed_rejected(self, ledger):
        """Test a skipped deposit cannot be completed directly."""
        state = await ledger.create_challenge("user-1", 40000)
        deposit_id = state.deposits[3].id
        await ledger.transition_deposit(deposit_id, DepositStatus.COMPLETED)
        await ledger.transition_deposit(deposit_id, DepositStatus.SKIPPED)

        with pytest.raises(InvalidTransitionError):
            await ledger.transition_deposit(deposit_id, DepositStatus.COMPLETED)

        stored = (await ledger.get_challenge("user-1")).get_deposit(deposit_id)
        assert stored.status == DepositStatus.SKIPPED
        assert stored.completed_at is None

    async def test_unknown_status_rejected(self, ledger):
        state = await ledger.create_challenge("user-1", 40000)
        with pytest.raises(InvalidTransitionError):
            await ledger.transition_deposit(state.deposits[0].id, "paid")

    async def test_unknown_deposit(self, ledger):
        with pytest.raises(DepositNotFoundError):
            await ledger.transition_deposit(uuid4(), DepositStatus.COMPLETED)

    async def test_not_found_is_not_validation_error(self, ledger):
        with pytest.raises(ChallengeLookupError):
            await ledger.toggle_deposit(uuid4())

    async def test_toggle_cycles_three_times(self, ledger):
        """Test toggling walks pending -> completed -> skipped -> pending."""
        state = await ledger.create_challenge("user-1", 40000)
        deposit_id = state.deposits[0].id

        seen = []
        for _ in range(3):
            seen.append((await ledger.toggle_deposit(deposit_id)).status)

        assert seen == [
            DepositStatus.COMPLETED,
            DepositStatus.SKIPPED,
            DepositStatus.PENDING,
        ]
        stored = (await ledger.get_challenge("user-1")).get_deposit(deposit_id)
        assert stored.status == DepositStatus.PENDING
        assert stored.completed_at is None

    async def test_reset_completed_deposit(self, ledger):
        state = await ledger.create_challenge("user-1", 40000)
        deposit_id = state.deposits[0].id
        await ledger.transition_deposit(deposit_id, DepositStatus.COMPLETED)

        reset = await ledger.reset_deposit(deposit_id)
        assert reset.status == DepositStatus.PENDING
        assert reset.completed_at is None

    async def test_reset_pending_deposit_rejected(self, ledger):
        state = await ledger.create_challenge("user-1", 40000)
        with pytest.raises(InvalidTransitionError):
            await ledger.reset_deposit(state.deposits[0].id)

    async def test_transitions_are_audited(self, ledger, audit_storage):
        state = await ledger.create_challenge("user-1", 40000)
        deposit_id = state.deposits[0].id
        await ledger.toggle_deposit(deposit_id)
        with pytest.raises(InvalidTransitionError):
            await ledger.transition_deposit(deposit_id, DepositStatus.COMPLETED)

        events = await audit_storage.get_events_by_entity("deposit", deposit_id)
        assert [e.event_type for e in events] == [
            AuditEventType.DEPOSIT_TRANSITIONED,
            AuditEventType.TRANSITION_REJECTED,
        ]


class TestProgress:
    """Tests for progress through the ledger."""

    async def test_completing_everything_reaches_target(self, ledger):
        state = await ledger.create_challenge("user-1", 40000)
        for deposit in state.deposits:
            await ledger.transition_deposit(deposit.id, DepositStatus.COMPLETED)

        progress = await ledger.get_progress("user-1")
        assert progress.completion_percent == 100.0
        assert progress.remaining == 0
        assert progress.is_complete is True

    async def test_complete_then_skip_restores_accumulated(self, ledger):
        state = await ledger.create_challenge("user-1", 40200)
        await ledger.toggle_deposit(state.deposits[0].id)
        before = (await ledger.get_progress("user-1")).accumulated

        deposit_id = state.deposits[199].id
        await ledger.toggle_deposit(deposit_id)
        assert (await ledger.get_progress("user-1")).accumulated == before + 200
        await ledger.toggle_deposit(deposit_id)

        progress = await ledger.get_progress("user-1")
        assert progress.accumulated == before
        assert progress.skipped_count == 1


class TestDeleteChallenge:
    """Tests for deleting (restarting) a challenge."""

    async def test_delete_cascades_to_deposits(self, ledger, storage):
        state = await ledger.create_challenge("user-1", 40000)
        await ledger.delete_challenge("user-1")

        assert await ledger.get_challenge("user-1") is None
        assert await storage.get_deposit(state.deposits[0].id) is None

    async def test_owner_can_start_again(self, ledger):
        await ledger.create_challenge("user-1", 40000)
        await ledger.delete_challenge("user-1")
        state = await ledger.create_challenge("user-1", 40200)
        assert len(state.deposits) == 400

    async def test_delete_without_challenge(self, ledger):
        with pytest.raises(ChallengeNotFoundError):
            await ledger.delete_challenge("nobody")


class TestAuditTrail:
    """Tests for the audit events the ledger emits."""

    async def test_owner_history(self, ledger, audit_storage):
        await ledger.create_challenge("user-1", 40000)
        with pytest.raises(DuplicateChallengeError):
            await ledger.create_challenge("user-1", 40000)
        await ledger.delete_challenge("user-1")

        events = await audit_storage.get_events_by_owner("user-1")
        assert [e.event_type for e in events] == [
            AuditEventType.CHALLENGE_CREATED,
            AuditEventType.CHALLENGE_CREATION_REJECTED,
            AuditEventType.CHALLENGE_DELETED,
        ]
        assert events[1].error_code == "duplicate_challenge"

    async def test_audit_failure_does_not_break_flow(self, storage):
        class FailingAuditStorage(InMemoryAuditStorage):
            async def append_event(self, event):
                raise RuntimeError("audit sheet offline")

        ledger = ChallengeLedger(storage, AuditLogger(FailingAuditStorage()))
        state = await ledger.create_challenge("user-1", 40000)
        assert len(state.deposits) == 399


class TestCreateAppComponents:
    """Tests for the component factory."""

    async def test_in_memory_components(self):
        ledger, sheets_client = create_app_components(use_storage=False)
        assert sheets_client is None

        state = await ledger.create_challenge("user-1", 40000)
        assert (await ledger.get_challenge("user-1")).challenge.id == state.challenge.id

    async def test_default_target_from_settings(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_CHALLENGE_TARGET", "40200")
        ledger, _ = create_app_components(use_storage=False)

        state = await ledger.create_challenge("user-1")
        assert state.challenge.target == Decimal("40200")

    def test_unconfigured_storage_falls_back_to_memory(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)

        ledger, sheets_client = create_app_components(use_storage=True)
        assert sheets_client is None
        assert isinstance(ledger._storage, InMemoryChallengeStorage)
