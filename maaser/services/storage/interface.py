"""
Abstract Storage Interface

DESIGN DECISION: We define abstract interfaces for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the aggregation engine decoupled from storage

The interfaces are intentionally simple - we're not building a full ORM.
Every method is scoped by user_id: records are strictly partitioned per
user and no method ever reads across users.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from maaser.models.audit import AuditEvent
from maaser.models.finance import (
    DonationRecord,
    UserFinancialSettings,
    VariableIncomeRecord,
)
from maaser.models.notification import Notification


class FinancialRecordStorageInterface(ABC):
    """
    Abstract interface for income and donation records.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def list_incomes(self, user_id: str) -> list[VariableIncomeRecord]:
        """
        List a user's variable incomes, newest anchor date first.
        """
        pass

    @abstractmethod
    async def get_income(
        self,
        user_id: str,
        income_id: UUID,
    ) -> Optional[VariableIncomeRecord]:
        """
        Retrieve one income by ID.

        Returns:
            The income if found for this user, None otherwise
        """
        pass

    @abstractmethod
    async def create_income(self, record: VariableIncomeRecord) -> VariableIncomeRecord:
        """
        Persist a new income.

        Raises:
            DuplicateError: If the ID is already taken
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def update_income(self, record: VariableIncomeRecord) -> VariableIncomeRecord:
        """
        Replace an existing income (same ID, same user).

        Raises:
            NotFoundError: If the income doesn't exist for this user
        """
        pass

    @abstractmethod
    async def delete_income(self, user_id: str, income_id: UUID) -> bool:
        """
        Delete an income.

        Returns:
            True if a row was deleted, False if nothing matched
        """
        pass

    @abstractmethod
    async def list_donations(self, user_id: str) -> list[DonationRecord]:
        """
        List a user's donations, newest start date first.
        """
        pass

    @abstractmethod
    async def create_donation(self, record: DonationRecord) -> DonationRecord:
        """
        Persist a new donation.

        Raises:
            DuplicateError: If the ID is already taken
        """
        pass

    @abstractmethod
    async def delete_donation(self, user_id: str, donation_id: UUID) -> bool:
        """
        Delete a donation.

        Returns:
            True if a row was deleted, False if nothing matched
        """
        pass


class SettingsStorageInterface(ABC):
    """Per-user financial settings."""

    @abstractmethod
    async def get_settings(self, user_id: str) -> Optional[UserFinancialSettings]:
        """
        Returns:
            Stored settings, or None if the user never saved any
        """
        pass

    @abstractmethod
    async def save_settings(
        self,
        user_id: str,
        settings: UserFinancialSettings,
    ) -> UserFinancialSettings:
        """Create or replace the user's settings."""
        pass


class NotificationStorageInterface(ABC):
    """
    Notification store.

    Notifications are unique per (user_id, type, context_id).
    """

    @abstractmethod
    async def upsert(self, notification: Notification) -> Notification:
        """
        Insert, or update title/message/metadata of the existing row with
        the same key. An update keeps id, is_read and created_at.
        """
        pass

    @abstractmethod
    async def list_for_user(self, user_id: str) -> list[Notification]:
        """
        Unread first, then newest first.
        """
        pass

    @abstractmethod
    async def mark_read(self, user_id: str, ids: list[UUID], is_read: bool) -> int:
        """
        Returns:
            Number of rows updated
        """
        pass

    @abstractmethod
    async def mark_all_read(self, user_id: str) -> int:
        """
        Returns:
            Number of previously unread rows now marked read
        """
        pass

    @abstractmethod
    async def delete(self, user_id: str, ids: list[UUID]) -> int:
        """
        Returns:
            Number of rows deleted
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
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        All events for one request, in chronological order.
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        All events for a specific entity, in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Most recent events, newest first.
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


class SchemaVersionError(StorageError):
    """Storage schema is missing or older than the code expects."""
    pass
