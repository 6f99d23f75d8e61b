"""Services package."""

from maaser.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    FinancialRecordStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsNotificationStorage,
    GoogleSheetsRecordStorage,
    GoogleSheetsSettingsStorage,
    InMemoryStorage,
    NotFoundError,
    NotificationStorageInterface,
    SchemaVersionError,
    SettingsStorageInterface,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "FinancialRecordStorageInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsNotificationStorage",
    "GoogleSheetsRecordStorage",
    "GoogleSheetsSettingsStorage",
    "InMemoryStorage",
    "NotFoundError",
    "NotificationStorageInterface",
    "SchemaVersionError",
    "SettingsStorageInterface",
    "StorageError",
]
