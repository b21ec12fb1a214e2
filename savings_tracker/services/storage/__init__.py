"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the remote backend; the in-memory backend serves tests and
local runs. Both sit behind the same interface.
"""

from savings_tracker.services.storage.interface import (
    AuditStorageInterface,
    ChallengeStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    StorageError,
)
from savings_tracker.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryChallengeStorage,
)
from savings_tracker.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsChallengeStorage,
    GoogleSheetsClient,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ChallengeStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryChallengeStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsChallengeStorage",
    "GoogleSheetsClient",
]
