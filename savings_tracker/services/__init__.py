"""Services package."""

from savings_tracker.services.storage import (
    AuditStorageInterface,
    ChallengeStorageInterface,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsChallengeStorage,
    GoogleSheetsClient,
    InMemoryAuditStorage,
    InMemoryChallengeStorage,
    NotFoundError,
    StorageError,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "ChallengeStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsChallengeStorage",
    "GoogleSheetsClient",
    "InMemoryAuditStorage",
    "InMemoryChallengeStorage",
    "NotFoundError",
    "StorageError",
]
