"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the remote storage backend because:
1. Users can view their deposit grid directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- No transactions: a challenge row is written first, then its deposits in
  one append_rows call; if the deposits fail the challenge row is removed.
- No uniqueness constraints: one challenge per owner is checked by reading
  the Challenges sheet before appending. Two processes racing for the same
  owner can both pass the check; use a real database if that matters.
- Limited query capabilities (we filter in Python)

Reads are retried with backoff. Writes are not, since they are not
idempotent.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1
from tenacity import retry, stop_after_attempt, wait_exponential

from savings_tracker.config import get_settings
from savings_tracker.models.challenge import (
    Challenge,
    DepositObligation,
    DepositStatus,
)
from savings_tracker.models.audit import AuditEvent, AuditEventType, AuditSeverity
from savings_tracker.services.storage.interface import (
    AuditStorageInterface,
    ChallengeStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    StorageError,
)


logger = structlog.get_logger(__name__)


# Column mappings for Challenges sheet
CHALLENGE_COLUMNS = [
    "id",
    "owner_id",
    "target",
    "is_active",
    "created_at",
]

# Column mappings for ChallengeDeposits sheet
DEPOSIT_COLUMNS = [
    "id",
    "challenge_id",
    "value",
    "sequence_order",
    "status",
    "completed_at",
    "created_at",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "owner_id",
    "description",
    "details_json",
    "error_code",
    "error_message",
    "is_user_action",
]

# 1-based sheet columns touched by status updates; they must stay adjacent
STATUS_COLUMN = DEPOSIT_COLUMNS.index("status") + 1
COMPLETED_AT_COLUMN = DEPOSIT_COLUMNS.index("completed_at") + 1


def _status_range(row: int) -> str:
    """A1 range covering the status and completed_at cells of `row`."""
    return (
        f"{rowcol_to_a1(row, STATUS_COLUMN)}:"
        f"{rowcol_to_a1(row, COMPLETED_AT_COLUMN)}"
    )


def _safe_get(row: list, index: int, default: str = "") -> str:
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _contiguous_ranges(indices: list[int]) -> list[tuple[int, int]]:
    """Group sorted row numbers into (start, end) runs, inclusive."""
    ranges: list[tuple[int, int]] = []
    for idx in sorted(indices):
        if ranges and ranges[-1][1] == idx - 1:
            ranges[-1] = (ranges[-1][0], idx)
        else:
            ranges.append((idx, idx))
    return ranges


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_challenges_sheet(self) -> gspread.Worksheet:
        """Get or create the Challenges worksheet."""
        return self._get_or_create_sheet(
            self._settings.challenges_sheet_name, CHALLENGE_COLUMNS, rows=1000
        )

    def get_deposits_sheet(self) -> gspread.Worksheet:
        """Get or create the ChallengeDeposits worksheet."""
        # 400 deposits per challenge
        return self._get_or_create_sheet(
            self._settings.deposits_sheet_name, DEPOSIT_COLUMNS, rows=20000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def get_rows(self, sheet: gspread.Worksheet) -> list[list[str]]:
        """All rows of a sheet, including the header row."""
        return sheet.get_all_values()


class GoogleSheetsChallengeStorage(ChallengeStorageInterface):
    """
    Google Sheets implementation of challenge storage.

    Challenges and deposits live in two worksheets, one row each.
    Deposits reference their challenge by challenge_id.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _challenge_to_row(self, challenge: Challenge) -> list:
        return [
            str(challenge.id),
            challenge.owner_id,
            str(challenge.target),
            str(challenge.is_active),
            challenge.created_at.isoformat(),
        ]

    def _row_to_challenge(self, row: list) -> Challenge:
        return Challenge(
            id=UUID(_safe_get(row, 0)),
            owner_id=_safe_get(row, 1),
            target=Decimal(_safe_get(row, 2)),
            is_active=_safe_get(row, 3, "True").lower() == "true",
            created_at=datetime.fromisoformat(_safe_get(row, 4)),
        )

    def _deposit_to_row(self, deposit: DepositObligation) -> list:
        return [
            str(deposit.id),
            str(deposit.challenge_id),
            str(deposit.value),
            str(deposit.sequence_order),
            deposit.status.value,
            deposit.completed_at.isoformat() if deposit.completed_at else "",
            deposit.created_at.isoformat(),
        ]

    def _row_to_deposit(self, row: list) -> DepositObligation:
        completed_at = _safe_get(row, 5)
        return DepositObligation(
            id=UUID(_safe_get(row, 0)),
            challenge_id=UUID(_safe_get(row, 1)),
            value=int(_safe_get(row, 2)),
            sequence_order=int(_safe_get(row, 3)),
            status=DepositStatus(_safe_get(row, 4)),
            completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
            created_at=datetime.fromisoformat(_safe_get(row, 6)),
        )

    def _find_challenge_row(
        self,
        rows: list[list[str]],
        column: int,
        value: str,
    ) -> Optional[int]:
        """Sheet row number (header is row 1) of the first match."""
        for idx, row in enumerate(rows[1:], start=2):
            if row and len(row) > column and row[column] == value:
                return idx
        return None

    async def create_challenge(
        self,
        challenge: Challenge,
        deposits: list[DepositObligation],
    ) -> None:
        """Save a challenge and its deposits to Google Sheets."""
        try:
            challenges_sheet = self._client.get_challenges_sheet()
            rows = self._client.get_rows(challenges_sheet)
        except Exception as e:
            raise StorageError(f"Failed to read challenges: {e}")

        if self._find_challenge_row(rows, 1, challenge.owner_id) is not None:
            raise DuplicateError(f"Owner already has a challenge: {challenge.owner_id}")

        try:
            challenges_sheet.append_row(
                self._challenge_to_row(challenge), value_input_option="RAW"
            )
        except Exception as e:
            raise StorageError(f"Failed to save challenge: {e}")

        try:
            deposits_sheet = self._client.get_deposits_sheet()
            deposits_sheet.append_rows(
                [self._deposit_to_row(d) for d in deposits],
                value_input_option="RAW",
            )
        except Exception as e:
            # Undo the challenge row so the owner is not left with an empty plan
            self._remove_challenge_row(challenge.id)
            raise StorageError(f"Failed to save deposits: {e}")

    def _remove_challenge_row(self, challenge_id: UUID) -> None:
        try:
            sheet = self._client.get_challenges_sheet()
            idx = self._find_challenge_row(self._client.get_rows(sheet), 0, str(challenge_id))
            if idx is not None:
                sheet.delete_rows(idx)
        except Exception as e:
            logger.error(
                "challenge_rollback_failed",
                challenge_id=str(challenge_id),
                error=str(e),
            )

    async def get_challenge_by_owner(self, owner_id: str) -> Optional[Challenge]:
        """Retrieve the owner's challenge."""
        try:
            sheet = self._client.get_challenges_sheet()
            rows = self._client.get_rows(sheet)
        except Exception as e:
            raise StorageError(f"Failed to get challenge: {e}")

        idx = self._find_challenge_row(rows, 1, owner_id)
        if idx is None:
            return None
        return self._row_to_challenge(rows[idx - 1])

    async def list_deposits(self, challenge_id: UUID) -> list[DepositObligation]:
        """List a challenge's deposits in sequence order."""
        try:
            sheet = self._client.get_deposits_sheet()
            all_rows = self._client.get_rows(sheet)[1:]  # Skip header
        except Exception as e:
            raise StorageError(f"Failed to list deposits: {e}")

        deposits = [
            self._row_to_deposit(row)
            for row in all_rows
            if row and len(row) > 1 and row[1] == str(challenge_id)
        ]
        deposits.sort(key=lambda d: d.sequence_order)
        return deposits

    async def get_deposit(self, deposit_id: UUID) -> Optional[DepositObligation]:
        """Retrieve a deposit by its ID."""
        try:
            sheet = self._client.get_deposits_sheet()
            all_rows = self._client.get_rows(sheet)[1:]
        except Exception as e:
            raise StorageError(f"Failed to get deposit: {e}")

        for row in all_rows:
            if row and row[0] == str(deposit_id):
                return self._row_to_deposit(row)
        return None

    async def update_deposit_status(
        self,
        deposit_id: UUID,
        status: DepositStatus,
        completed_at: Optional[datetime],
    ) -> DepositObligation:
        """Update one deposit's status and completion timestamp."""
        try:
            sheet = self._client.get_deposits_sheet()
            all_rows = self._client.get_rows(sheet)

            for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is header
                if row and row[0] == str(deposit_id):
                    completed_value = completed_at.isoformat() if completed_at else ""
                    # Both cells in one request so the row is never half-written
                    sheet.update(
                        range_name=_status_range(idx),
                        values=[[status.value, completed_value]],
                        value_input_option="RAW",
                    )

                    updated = list(row) + [""] * (len(DEPOSIT_COLUMNS) - len(row))
                    updated[STATUS_COLUMN - 1] = status.value
                    updated[COMPLETED_AT_COLUMN - 1] = completed_value
                    return self._row_to_deposit(updated)

            raise NotFoundError(f"Deposit not found: {deposit_id}")
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update deposit: {e}")

    async def delete_challenge(self, challenge_id: UUID) -> bool:
        """Delete a challenge and its deposits."""
        try:
            challenges_sheet = self._client.get_challenges_sheet()
            challenge_idx = self._find_challenge_row(
                self._client.get_rows(challenges_sheet), 0, str(challenge_id)
            )
            if challenge_idx is None:
                return False

            deposits_sheet = self._client.get_deposits_sheet()
            deposit_rows = self._client.get_rows(deposits_sheet)
            indices = [
                idx
                for idx, row in enumerate(deposit_rows[1:], start=2)
                if row and len(row) > 1 and row[1] == str(challenge_id)
            ]
            # Delete from the bottom up so earlier row numbers stay valid
            for start, end in reversed(_contiguous_ranges(indices)):
                deposits_sheet.delete_rows(start, end)

            challenges_sheet.delete_rows(challenge_idx)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete challenge: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            entity_type=_safe_get(row, 4) or None,
            entity_id=UUID(_safe_get(row, 5)) if _safe_get(row, 5) else None,
            owner_id=_safe_get(row, 6) or None,
            description=_safe_get(row, 7),
            details=json.loads(_safe_get(row, 8)) if _safe_get(row, 8) else {},
            error_code=_safe_get(row, 9) or None,
            error_message=_safe_get(row, 10) or None,
            is_user_action=_safe_get(row, 11).lower() == "true",
        )

    def _read_events(self, matches) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = self._client.get_rows(sheet)[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if not row or not row[0] or not matches(row):
                continue
            try:
                events.append(self._row_to_event(row))
            except Exception as e:
                logger.warning("audit_row_unreadable", row_id=row[0], error=str(e))
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning(
                "audit_append_failed",
                event_id=str(event.event_id),
                error=str(e),
            )
            return False

    async def get_events_by_owner(self, owner_id: str) -> list[AuditEvent]:
        """Get events by owner."""
        events = self._read_events(lambda row: len(row) > 6 and row[6] == owner_id)
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        events = self._read_events(
            lambda row: len(row) > 5 and row[4] == entity_type and row[5] == str(entity_id)
        )
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        events = self._read_events(lambda row: True)
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
