"""
Main Orchestrator for Maaser Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Record management (payload → validate → persist → audit)
2. Dashboard (fetch → aggregate → compute balances)
3. Month details (fetch → filter → convert)
4. System notifications (fetch → derive → upsert)
5. Onboarding (settings + initial records in one call)

DESIGN DECISION: The orchestrator enforces the boundaries:
- The engine never touches storage or the clock; both are injected here
- No record persists without passing schema validation
- Every state change is audited

Storage errors are never swallowed. They are audited as system errors
and re-raised unchanged.
"""

import asyncio
from datetime import date
from typing import Any, Awaitable, Callable, Iterable, Optional, TypeVar
from uuid import UUID

import structlog

from maaser.audit import AuditLogger, create_correlation_id
from maaser.config import TrackerSettings, get_settings
from maaser.engine import compute_dashboard_years
from maaser.models.finance import (
    Currency,
    DashboardData,
    DonationPayload,
    DonationRecord,
    IncomePayload,
    OnboardingResult,
    SettingsUpdate,
    UserFinancialSettings,
    VariableIncomeRecord,
)
from maaser.models.notification import Notification, NotificationList
from maaser.models.query import MonthDetails
from maaser.models.validation import ValidationResult
from maaser.notifications import derive_notifications
from maaser.queries import MonthDetailsExecutor
from maaser.services.storage import (
    FinancialRecordStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsNotificationStorage,
    GoogleSheetsRecordStorage,
    GoogleSheetsSettingsStorage,
    InMemoryStorage,
    NotificationStorageInterface,
    SettingsStorageInterface,
    StorageError,
)
from maaser.validation import RecordValidationError, RecordValidator

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class TitheTracker:
    """
    Application facade over storage, the aggregation engine and notifications.

    All methods are scoped to one user_id. The clock is only read here and
    passed down as plain values (current year, today).
    """

    def __init__(
        self,
        record_storage: FinancialRecordStorageInterface,
        settings_storage: SettingsStorageInterface,
        notification_storage: NotificationStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[RecordValidator] = None,
        tracker_settings: Optional[TrackerSettings] = None,
        clock: Callable[[], date] = date.today,
    ):
        self._records = record_storage
        self._settings_storage = settings_storage
        self._notifications = notification_storage
        self._audit_logger = audit_logger or AuditLogger()  # Local-only logging
        self._config = tracker_settings or get_settings().tracker
        self._validator = validator or RecordValidator(self._config)
        self._clock = clock
        self._month_details = MonthDetailsExecutor(
            record_storage,
            settings_storage,
            default_currency=Currency(self._config.default_currency),
            rate=self._config.usd_to_ils_rate,
        )

    async def _guarded(
        self,
        user_id: str,
        operation: str,
        awaitable: Awaitable[T],
        correlation_id: Optional[UUID] = None,
    ) -> T:
        """Await a storage call, auditing StorageError before re-raising it."""
        try:
            return await awaitable
        except StorageError as e:
            await self._audit_logger.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                user_id=user_id,
                details={"operation": operation},
                correlation_id=correlation_id,
            )
            raise

    async def _check(
        self,
        user_id: str,
        result: ValidationResult,
        correlation_id: UUID,
    ) -> None:
        if result.schema_valid:
            if result.warnings:
                logger.info(
                    "record_validation_warnings",
                    user_id=user_id,
                    entity_type=result.entity_type,
                    warnings=result.warnings,
                )
            return

        await self._audit_logger.log_validation_failed(
            user_id=user_id,
            entity_type=result.entity_type,
            issues=[issue.model_dump() for issue in result.issues],
            correlation_id=correlation_id,
        )
        raise RecordValidationError(result)

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    def default_settings(self) -> UserFinancialSettings:
        """Settings for a user who never saved any."""
        return UserFinancialSettings(
            currency=self._config.default_currency,
            tithe_percent=self._config.default_tithe_percent,
        )

    async def get_settings(self, user_id: str) -> UserFinancialSettings:
        stored = await self._guarded(
            user_id, "get_settings", self._settings_storage.get_settings(user_id)
        )
        return stored or self.default_settings()

    async def update_settings(
        self,
        user_id: str,
        update: SettingsUpdate,
    ) -> UserFinancialSettings:
        """Apply a partial update. Fields left as None keep their current value."""
        correlation_id = create_correlation_id()
        current = await self.get_settings(user_id)

        changes = update.model_dump(exclude_none=True)
        if update.fixed_income is not None:
            changes["fixed_income"] = update.fixed_income
        merged = current.model_copy(update=changes)

        saved = await self._guarded(
            user_id,
            "update_settings",
            self._settings_storage.save_settings(user_id, merged),
            correlation_id,
        )
        await self._audit_logger.log_settings_updated(
            user_id=user_id,
            changed_fields=sorted(changes),
            correlation_id=correlation_id,
        )
        return saved

    # -------------------------------------------------------------------------
    # Onboarding
    # -------------------------------------------------------------------------

    async def needs_setup(self, user_id: str) -> bool:
        """True until the user has completed first-time setup."""
        settings = await self.get_settings(user_id)
        return not settings.is_first_time_setup_completed

    async def complete_onboarding(
        self,
        user_id: str,
        update: SettingsUpdate,
        incomes: Iterable[IncomePayload] = (),
        donations: Iterable[DonationPayload] = (),
    ) -> OnboardingResult:
        """
        Save the first-time settings and the initial records in one call.

        Entries with a zero amount are dropped. Every remaining entry is
        validated before anything is stored, so a schema failure leaves the
        user still needing setup.

        Raises:
            RecordValidationError: If any entry fails schema validation
        """
        correlation_id = create_correlation_id()
        today = self._clock()
        incomes = [p for p in incomes if p.amount > 0]
        donations = [p for p in donations if p.amount > 0]

        for income in incomes:
            await self._check(user_id, self._validator.validate_income(income, today), correlation_id)
        for donation in donations:
            await self._check(user_id, self._validator.validate_donation(donation, today), correlation_id)

        settings = await self.update_settings(
            user_id, update.model_copy(update={"is_first_time_setup_completed": True})
        )
        created_incomes = [
            await self._store_income(user_id, income, correlation_id) for income in incomes
        ]
        created_donations = [
            await self._store_donation(user_id, donation, correlation_id) for donation in donations
        ]

        logger.info(
            "onboarding_completed",
            user_id=user_id,
            incomes=len(created_incomes),
            donations=len(created_donations),
        )
        return OnboardingResult(
            settings=settings,
            incomes=created_incomes,
            donations=created_donations,
        )

    # -------------------------------------------------------------------------
    # Incomes
    # -------------------------------------------------------------------------

    async def add_income(
        self,
        user_id: str,
        payload: IncomePayload,
    ) -> VariableIncomeRecord:
        """
        Validate and store a new income.

        Raises:
            RecordValidationError: If the payload fails schema validation
        """
        correlation_id = create_correlation_id()
        await self._check(
            user_id, self._validator.validate_income(payload, self._clock()), correlation_id
        )

        return await self._store_income(user_id, payload, correlation_id)

    async def _store_income(
        self,
        user_id: str,
        payload: IncomePayload,
        correlation_id: UUID,
    ) -> VariableIncomeRecord:
        created = await self._guarded(
            user_id, "add_income", self._records.create_income(payload.to_record(user_id)), correlation_id
        )
        await self._audit_logger.log_income_created(
            user_id=user_id,
            income_id=created.id,
            description=created.description,
            amount=created.amount,
            currency=created.currency.value,
            correlation_id=correlation_id,
        )
        return created

    async def update_income(
        self,
        user_id: str,
        income_id: UUID,
        payload: IncomePayload,
    ) -> VariableIncomeRecord:
        """
        Replace an existing income in place.

        Raises:
            RecordValidationError: If the payload fails schema validation
            NotFoundError: If the user has no income with this id
        """
        correlation_id = create_correlation_id()
        await self._check(
            user_id, self._validator.validate_income(payload, self._clock()), correlation_id
        )

        record = payload.to_record(user_id, record_id=income_id)
        updated = await self._guarded(
            user_id, "update_income", self._records.update_income(record), correlation_id
        )
        await self._audit_logger.log_income_updated(
            user_id=user_id,
            income_id=income_id,
            correlation_id=correlation_id,
        )
        return updated

    async def remove_income(self, user_id: str, income_id: UUID) -> bool:
        correlation_id = create_correlation_id()
        found = await self._guarded(
            user_id,
            "remove_income",
            self._records.delete_income(user_id, income_id),
            correlation_id,
        )
        await self._audit_logger.log_record_deleted(
            user_id=user_id,
            entity_type="income",
            entity_id=income_id,
            found=found,
            correlation_id=correlation_id,
        )
        return found

    async def list_incomes(self, user_id: str) -> list[VariableIncomeRecord]:
        return await self._guarded(user_id, "list_incomes", self._records.list_incomes(user_id))

    # -------------------------------------------------------------------------
    # Donations
    # -------------------------------------------------------------------------

    async def add_donation(
        self,
        user_id: str,
        payload: DonationPayload,
    ) -> DonationRecord:
        """
        Validate and store a new donation.

        Raises:
            RecordValidationError: If the payload fails schema validation
        """
        correlation_id = create_correlation_id()
        await self._check(
            user_id, self._validator.validate_donation(payload, self._clock()), correlation_id
        )

        return await self._store_donation(user_id, payload, correlation_id)

    async def _store_donation(
        self,
        user_id: str,
        payload: DonationPayload,
        correlation_id: UUID,
    ) -> DonationRecord:
        created = await self._guarded(
            user_id, "add_donation", self._records.create_donation(payload.to_record(user_id)), correlation_id
        )
        await self._audit_logger.log_donation_created(
            user_id=user_id,
            donation_id=created.id,
            organization=created.organization,
            amount=created.amount,
            currency=created.currency.value,
            correlation_id=correlation_id,
        )
        return created

    async def remove_donation(self, user_id: str, donation_id: UUID) -> bool:
        correlation_id = create_correlation_id()
        found = await self._guarded(
            user_id,
            "remove_donation",
            self._records.delete_donation(user_id, donation_id),
            correlation_id,
        )
        await self._audit_logger.log_record_deleted(
            user_id=user_id,
            entity_type="donation",
            entity_id=donation_id,
            found=found,
            correlation_id=correlation_id,
        )
        return found

    async def list_donations(self, user_id: str) -> list[DonationRecord]:
        return await self._guarded(
            user_id, "list_donations", self._records.list_donations(user_id)
        )

    # -------------------------------------------------------------------------
    # Derived views
    # -------------------------------------------------------------------------

    async def _fetch_all(self, user_id: str, operation: str, correlation_id: UUID):
        return await self._guarded(
            user_id,
            operation,
            asyncio.gather(
                self._settings_storage.get_settings(user_id),
                self._records.list_incomes(user_id),
                self._records.list_donations(user_id),
            ),
            correlation_id,
        )

    async def get_dashboard(
        self,
        user_id: str,
        year: Optional[int] = None,
    ) -> DashboardData:
        """
        Yearly snapshots with obligations and running balances.

        Args:
            year: If given, only that year is returned. Its starting balance
                still reflects every earlier year, tracked or not.
        """
        correlation_id = create_correlation_id()
        stored, incomes, donations = await self._fetch_all(user_id, "get_dashboard", correlation_id)
        settings = stored or self.default_settings()

        years = compute_dashboard_years(
            incomes,
            donations,
            settings,
            current_year=self._clock().year,
            year=year,
            rate=self._config.usd_to_ils_rate,
        )

        await self._audit_logger.log_dashboard_computed(
            user_id=user_id,
            years=[y.year.year for y in years],
            income_count=len(incomes),
            donation_count=len(donations),
            correlation_id=correlation_id,
        )
        return DashboardData(years=years, settings=settings)

    async def get_month_details(
        self,
        user_id: str,
        year: int,
        month_index: int,
    ) -> MonthDetails:
        """
        Raises:
            InvalidQueryError: If month_index is outside 0-11
        """
        correlation_id = create_correlation_id()
        details = await self._guarded(
            user_id,
            "get_month_details",
            self._month_details.execute(user_id, year, month_index),
            correlation_id,
        )
        await self._audit_logger.log_month_details_computed(
            user_id=user_id,
            year=year,
            month_index=month_index,
            result_count=details.result_count,
            correlation_id=correlation_id,
        )
        return details

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    async def refresh_notifications(self, user_id: str) -> list[Notification]:
        """Derive and upsert the user's system reminders as of today."""
        correlation_id = create_correlation_id()
        upserted = await self._guarded(
            user_id,
            "refresh_notifications",
            derive_notifications(user_id, self._records, self._notifications, self._clock()),
            correlation_id,
        )
        await self._audit_logger.log_notifications_derived(
            user_id=user_id,
            upserted=len(upserted),
            correlation_id=correlation_id,
        )
        return upserted

    async def list_notifications(self, user_id: str) -> NotificationList:
        """Unread first, newest first within each group."""
        notifications = await self._guarded(
            user_id, "list_notifications", self._notifications.list_for_user(user_id)
        )
        return NotificationList(
            notifications=notifications,
            unread_count=sum(1 for n in notifications if not n.is_read),
        )

    async def mark_notifications_read(
        self,
        user_id: str,
        ids: list[UUID],
        is_read: bool = True,
    ) -> int:
        return await self._guarded(
            user_id,
            "mark_notifications_read",
            self._notifications.mark_read(user_id, ids, is_read),
        )

    async def mark_all_notifications_read(self, user_id: str) -> int:
        return await self._guarded(
            user_id,
            "mark_all_notifications_read",
            self._notifications.mark_all_read(user_id),
        )

    async def delete_notifications(self, user_id: str, ids: list[UUID]) -> int:
        return await self._guarded(
            user_id,
            "delete_notifications",
            self._notifications.delete(user_id, ids),
        )


def create_app_components(
    backend: Optional[str] = None,
    clock: Callable[[], date] = date.today,
) -> TitheTracker:
    """
    Factory function to create a fully wired tracker.

    Args:
        backend: "memory" or "google_sheets". Defaults to
                 MAASER_STORAGE_BACKEND.
        clock: Source of today's date

    Returns:
        A TitheTracker over the chosen storage backend
    """
    config = get_settings().tracker
    backend = backend or config.storage_backend

    if backend == "google_sheets":
        sheets_client = GoogleSheetsClient()
        storages: dict[str, Any] = {
            "record_storage": GoogleSheetsRecordStorage(sheets_client),
            "settings_storage": GoogleSheetsSettingsStorage(sheets_client),
            "notification_storage": GoogleSheetsNotificationStorage(sheets_client),
        }
        audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
    elif backend == "memory":
        memory = InMemoryStorage()
        storages = {
            "record_storage": memory,
            "settings_storage": memory,
            "notification_storage": memory,
        }
        audit_logger = AuditLogger(memory)
    else:
        raise ValueError(f"Unknown storage backend: {backend}")

    logger.info("tracker_created", backend=backend)
    return TitheTracker(
        audit_logger=audit_logger,
        tracker_settings=config,
        clock=clock,
        **storages,
    )
