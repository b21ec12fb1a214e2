"""
Main Orchestrator for Savings Tracker

This module ties together the challenge core, storage and audit trail,
and defines the challenge flows:
1. Start (target -> deposit plan -> persist challenge and deposits)
2. Review (read challenge, deposits in order, progress)
3. Mark (move one deposit between pending/completed/skipped)
4. Restart (delete challenge and deposits)

DESIGN DECISION: The orchestrator enforces the boundaries:
- The deposit plan comes from the generator, never from the caller
- One challenge per owner is the storage backend's constraint
- Status changes go through the transition table
- Every change is audited

Errors are raised to the caller as they happen. Nothing here retries.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Optional
from uuid import UUID

import structlog
from pydantic import ValidationError

from savings_tracker.audit import AuditLogger, configure_logging
from savings_tracker.challenge import (
    STANDARD_TARGET,
    ChallengeNotFoundError,
    DepositNotFoundError,
    DuplicateChallengeError,
    InvalidOwnerError,
    InvalidTargetError,
    InvalidTransitionError,
    apply_transition,
    build_deposits,
    next_status,
    normalize_target,
    progress_for,
)
from savings_tracker.config import get_settings, validate_all_settings
from savings_tracker.models.challenge import (
    MAX_OWNER_ID_LENGTH,
    Challenge,
    ChallengeProgress,
    ChallengeState,
    DepositObligation,
    DepositStatus,
    utc_now,
)
from savings_tracker.services.storage import (
    AuditStorageInterface,
    ChallengeStorageInterface,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsChallengeStorage,
    GoogleSheetsClient,
    InMemoryAuditStorage,
    InMemoryChallengeStorage,
    NotFoundError,
    StorageError,
)


logger = structlog.get_logger(__name__)


class ChallengeLedger:
    """
    Owns each user's single savings challenge and its deposits.

    Flow:
    1. create_challenge → generate plan → persist as one unit
    2. get_challenge / get_progress → read, recompute aggregates
    3. transition_deposit / toggle_deposit / reset_deposit → one row update
    4. delete_challenge → cascade delete, owner may start again
    """

    def __init__(
        self,
        storage: ChallengeStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = utc_now,
        default_target: Decimal = STANDARD_TARGET,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._clock = clock
        self._default_target = default_target

    async def create_challenge(
        self,
        owner_id: str,
        target: Any = None,
    ) -> ChallengeState:
        """
        Start a challenge for `owner_id`.

        Without a `target` the ledger's default target is used.

        Raises:
            InvalidOwnerError: Owner ID is empty or too long
            InvalidTargetError: Target is not 40000 or 40200
            DuplicateChallengeError: Owner already has a challenge
        """
        if not isinstance(owner_id, str) or not 0 < len(owner_id) <= MAX_OWNER_ID_LENGTH:
            raise InvalidOwnerError(owner_id)
        if target is None:
            target = self._default_target

        try:
            normalized = normalize_target(target)
        except InvalidTargetError as e:
            await self._audit_rejected(owner_id, target, str(e), "invalid_target")
            raise

        challenge = Challenge(owner_id=owner_id, target=normalized)
        deposits = build_deposits(challenge.id, normalized)

        try:
            await self._storage.create_challenge(challenge, deposits)
        except DuplicateError:
            error = DuplicateChallengeError(owner_id)
            await self._audit_rejected(owner_id, target, str(error), "duplicate_challenge")
            raise error
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_storage_error(
                    operation="create_challenge",
                    error_message=str(e),
                    owner_id=owner_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_challenge_created(
                challenge_id=challenge.id,
                owner_id=owner_id,
                target=str(normalized),
                deposit_count=len(deposits),
            )

        return ChallengeState(challenge=challenge, deposits=deposits)

    async def get_challenge(self, owner_id: str) -> Optional[ChallengeState]:
        """
        The owner's challenge with deposits in sequence order.

        Returns None if the owner has not started a challenge.

        Raises:
            ValidationError: A stored row no longer satisfies the model
        """
        try:
            challenge = await self._storage.get_challenge_by_owner(owner_id)
            if challenge is None:
                return None
            deposits = await self._storage.list_deposits(challenge.id)
        except ValidationError as e:
            # Rows in a hand-editable backend can be corrupted outside the app
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type="invalid_stored_record",
                    error_message=str(e),
                    owner_id=owner_id,
                )
            raise

        deposits.sort(key=lambda d: d.sequence_order)
        return ChallengeState(challenge=challenge, deposits=deposits)

    async def get_progress(self, owner_id: str) -> Optional[ChallengeProgress]:
        """Progress of the owner's challenge, or None without one."""
        state = await self.get_challenge(owner_id)
        if state is None:
            return None
        return progress_for(state)

    async def transition_deposit(
        self,
        deposit_id: UUID,
        target_status: DepositStatus,
    ) -> DepositObligation:
        """
        Move a deposit to `target_status`.

        Raises:
            DepositNotFoundError: No deposit with that ID
            InvalidTransitionError: Move is not allowed; nothing is written
        """
        deposit = await self._storage.get_deposit(deposit_id)
        if deposit is None:
            raise DepositNotFoundError(deposit_id)
        try:
            status = DepositStatus(target_status)
        except ValueError:
            raise InvalidTransitionError(deposit.status.value, str(target_status))
        return await self._apply(deposit, status)

    async def toggle_deposit(self, deposit_id: UUID) -> DepositObligation:
        """Advance a deposit one step: pending → completed → skipped → pending."""
        deposit = await self._storage.get_deposit(deposit_id)
        if deposit is None:
            raise DepositNotFoundError(deposit_id)
        return await self._apply(deposit, next_status(deposit.status))

    async def reset_deposit(self, deposit_id: UUID) -> DepositObligation:
        """Undo a completed deposit back to pending."""
        return await self.transition_deposit(deposit_id, DepositStatus.PENDING)

    async def delete_challenge(self, owner_id: str) -> None:
        """
        Delete the owner's challenge and all of its deposits.

        Raises:
            ChallengeNotFoundError: Owner has no challenge
        """
        challenge = await self._storage.get_challenge_by_owner(owner_id)
        if challenge is None or not await self._storage.delete_challenge(challenge.id):
            raise ChallengeNotFoundError(owner_id)

        if self._audit_logger:
            await self._audit_logger.log_challenge_deleted(
                challenge_id=challenge.id,
                owner_id=owner_id,
            )

    async def _apply(
        self,
        deposit: DepositObligation,
        target_status: DepositStatus,
    ) -> DepositObligation:
        try:
            moved = apply_transition(deposit, target_status, now=self._clock())
        except InvalidTransitionError:
            if self._audit_logger:
                await self._audit_logger.log_transition_rejected(
                    deposit_id=deposit.id,
                    from_status=deposit.status.value,
                    to_status=target_status.value,
                )
            raise

        try:
            updated = await self._storage.update_deposit_status(
                deposit.id, moved.status, moved.completed_at
            )
        except NotFoundError:
            # Deleted between the read and the write
            raise DepositNotFoundError(deposit.id)

        if self._audit_logger:
            await self._audit_logger.log_deposit_transitioned(
                deposit_id=deposit.id,
                value=deposit.value,
                from_status=deposit.status.value,
                to_status=updated.status.value,
            )
        return updated

    async def _audit_rejected(
        self,
        owner_id: str,
        target: Any,
        reason: str,
        error_code: str,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_challenge_rejected(
                owner_id=owner_id,
                target=str(target),
                reason=reason,
                error_code=error_code,
            )


def create_app_components(
    use_storage: bool = True,
) -> tuple[ChallengeLedger, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run on in-memory storage.

    Returns:
        (challenge_ledger, sheets_client)
    """
    app_settings = get_settings().app
    configure_logging(app_settings.log_level)

    sheets_client = None
    challenge_storage: ChallengeStorageInterface
    audit_storage: AuditStorageInterface

    checks = validate_all_settings() if use_storage else {}
    if checks.get("google_sheets"):
        sheets_client = GoogleSheetsClient()
        challenge_storage = GoogleSheetsChallengeStorage(sheets_client)
        audit_storage = GoogleSheetsAuditStorage(sheets_client)
    else:
        if use_storage:
            # Storage not configured - continue in memory
            logger.warning(
                "storage_not_configured",
                error=checks.get("google_sheets_error"),
            )
        challenge_storage = InMemoryChallengeStorage()
        audit_storage = InMemoryAuditStorage()

    ledger = ChallengeLedger(
        storage=challenge_storage,
        audit_logger=AuditLogger(audit_storage),
        default_target=app_settings.default_challenge_target,
    )

    return ledger, sheets_client
