"""
In-Memory Storage Implementation

Implements every storage interface with plain dictionaries.
Used by the test-suite and for the "memory" backend.

Records are copied on the way in and on the way out, so callers can
never mutate stored state by accident.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from maaser.models.audit import AuditEvent
from maaser.models.finance import (
    DonationRecord,
    UserFinancialSettings,
    VariableIncomeRecord,
)
from maaser.models.notification import Notification, NotificationType
from maaser.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    FinancialRecordStorageInterface,
    NotFoundError,
    NotificationStorageInterface,
    SettingsStorageInterface,
)

NotificationKey = tuple[str, NotificationType, Optional[str]]


class InMemoryStorage(
    FinancialRecordStorageInterface,
    SettingsStorageInterface,
    NotificationStorageInterface,
    AuditStorageInterface,
):
    """Dictionary-backed storage for all collaborators."""

    def __init__(self):
        self._incomes: dict[UUID, VariableIncomeRecord] = {}
        self._donations: dict[UUID, DonationRecord] = {}
        self._settings: dict[str, UserFinancialSettings] = {}
        self._notifications: dict[NotificationKey, Notification] = {}
        self._events: list[AuditEvent] = []

    # -------------------------------------------------------------------------
    # Incomes
    # -------------------------------------------------------------------------

    async def list_incomes(self, user_id: str) -> list[VariableIncomeRecord]:
        rows = [
            income.model_copy(deep=True)
            for income in self._incomes.values()
            if income.user_id == user_id
        ]
        rows.sort(key=lambda r: r.date, reverse=True)
        return rows

    async def get_income(
        self,
        user_id: str,
        income_id: UUID,
    ) -> Optional[VariableIncomeRecord]:
        income = self._incomes.get(income_id)
        if income is None or income.user_id != user_id:
            return None
        return income.model_copy(deep=True)

    async def create_income(self, record: VariableIncomeRecord) -> VariableIncomeRecord:
        if record.id in self._incomes:
            raise DuplicateError(f"Income already exists: {record.id}")
        self._incomes[record.id] = record.model_copy(deep=True)
        return record

    async def update_income(self, record: VariableIncomeRecord) -> VariableIncomeRecord:
        existing = self._incomes.get(record.id)
        if existing is None or existing.user_id != record.user_id:
            raise NotFoundError(f"Income not found: {record.id}")
        self._incomes[record.id] = record.model_copy(deep=True)
        return record

    async def delete_income(self, user_id: str, income_id: UUID) -> bool:
        existing = self._incomes.get(income_id)
        if existing is None or existing.user_id != user_id:
            return False
        del self._incomes[income_id]
        return True

    # -------------------------------------------------------------------------
    # Donations
    # -------------------------------------------------------------------------

    async def list_donations(self, user_id: str) -> list[DonationRecord]:
        rows = [
            donation.model_copy(deep=True)
            for donation in self._donations.values()
            if donation.user_id == user_id
        ]
        rows.sort(key=lambda r: r.start_date, reverse=True)
        return rows

    async def create_donation(self, record: DonationRecord) -> DonationRecord:
        if record.id in self._donations:
            raise DuplicateError(f"Donation already exists: {record.id}")
        self._donations[record.id] = record.model_copy(deep=True)
        return record

    async def delete_donation(self, user_id: str, donation_id: UUID) -> bool:
        existing = self._donations.get(donation_id)
        if existing is None or existing.user_id != user_id:
            return False
        del self._donations[donation_id]
        return True

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    async def get_settings(self, user_id: str) -> Optional[UserFinancialSettings]:
        settings = self._settings.get(user_id)
        return settings.model_copy(deep=True) if settings else None

    async def save_settings(
        self,
        user_id: str,
        settings: UserFinancialSettings,
    ) -> UserFinancialSettings:
        self._settings[user_id] = settings.model_copy(deep=True)
        return settings

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    async def upsert(self, notification: Notification) -> Notification:
        existing = self._notifications.get(notification.key)
        if existing is None:
            stored = notification.model_copy(deep=True)
        else:
            stored = existing.model_copy(
                update={
                    "title": notification.title,
                    "message": notification.message,
                    "metadata": notification.metadata,
                    "updated_at": datetime.utcnow(),
                },
                deep=True,
            )
        self._notifications[notification.key] = stored
        return stored.model_copy(deep=True)

    async def list_for_user(self, user_id: str) -> list[Notification]:
        rows = [
            n.model_copy(deep=True)
            for n in self._notifications.values()
            if n.user_id == user_id
        ]
        # Unread first, newest first within each group
        rows.sort(key=lambda n: n.created_at, reverse=True)
        rows.sort(key=lambda n: n.is_read)
        return rows

    async def mark_read(self, user_id: str, ids: list[UUID], is_read: bool) -> int:
        if not ids:
            return 0
        wanted = set(ids)
        updated = 0
        for n in self._notifications.values():
            if n.user_id == user_id and n.id in wanted:
                n.is_read = is_read
                n.updated_at = datetime.utcnow()
                updated += 1
        return updated

    async def mark_all_read(self, user_id: str) -> int:
        updated = 0
        for n in self._notifications.values():
            if n.user_id == user_id and not n.is_read:
                n.is_read = True
                n.updated_at = datetime.utcnow()
                updated += 1
        return updated

    async def delete(self, user_id: str, ids: list[UUID]) -> int:
        if not ids:
            return 0
        wanted = set(ids)
        doomed = [
            key
            for key, n in self._notifications.items()
            if n.user_id == user_id and n.id in wanted
        ]
        for key in doomed:
            del self._notifications[key]
        return len(doomed)

    # -------------------------------------------------------------------------
    # Audit
    # -------------------------------------------------------------------------

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event.model_copy(deep=True))
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
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
