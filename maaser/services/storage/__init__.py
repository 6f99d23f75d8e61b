"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage:
an in-memory backend and a Google Sheets backend.
"""

from maaser.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    FinancialRecordStorageInterface,
    NotFoundError,
    NotificationStorageInterface,
    SchemaVersionError,
    SettingsStorageInterface,
    StorageError,
)
from maaser.services.storage.memory import InMemoryStorage
from maaser.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsNotificationStorage,
    GoogleSheetsRecordStorage,
    GoogleSheetsSettingsStorage,
)
from maaser.services.storage.migrations import (
    SCHEMA_VERSION,
    apply_migrations,
    ensure_schema_current,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "FinancialRecordStorageInterface",
    "NotificationStorageInterface",
    "SettingsStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "SchemaVersionError",
    "StorageError",
    # In-memory implementation
    "InMemoryStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsNotificationStorage",
    "GoogleSheetsRecordStorage",
    "GoogleSheetsSettingsStorage",
    # Schema
    "SCHEMA_VERSION",
    "apply_migrations",
    "ensure_schema_current",
]
