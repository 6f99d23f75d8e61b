"""Integration tests for the TitheTracker facade over in-memory storage."""

import asyncio
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from maaser.audit import AuditLogger
from maaser.config import TrackerSettings
from maaser.models.audit import AuditEventType
from maaser.models.finance import (
    CarryStrategy,
    Currency,
    DonationPayload,
    FixedIncomeSettings,
    IncomePayload,
    SettingsUpdate,
)
from maaser.models.notification import NotificationType
from maaser.orchestrator import TitheTracker, create_app_components
from maaser.queries import InvalidQueryError
from maaser.services.storage import InMemoryStorage, NotFoundError, StorageError
from maaser.validation import RecordValidationError

USER_ID = "user-1"


class BrokenRecordStorage(InMemoryStorage):
    """Record storage whose reads always fail."""

    async def list_incomes(self, user_id):
        raise StorageError("backend unavailable")


class TestSettingsFlow:

    def test_defaults_for_new_user(self, tracker):
        settings = asyncio.run(tracker.get_settings(USER_ID))
        assert settings.currency == Currency.ILS
        assert settings.tithe_percent == Decimal("10")
        assert settings.carry_strategy == CarryStrategy.CARRY

    def test_partial_update_keeps_other_fields(self, tracker, storage):
        asyncio.run(tracker.update_settings(USER_ID, SettingsUpdate(starting_balance=Decimal("40"))))
        updated = asyncio.run(tracker.update_settings(USER_ID, SettingsUpdate(carry_strategy="reset")))
        assert updated.starting_balance == Decimal("40")
        assert updated.carry_strategy == CarryStrategy.RESET

        events = asyncio.run(storage.get_events_by_entity("settings", USER_ID))
        assert [e.event_type for e in events] == [AuditEventType.SETTINGS_UPDATED] * 2
        assert events[-1].details["changed_fields"] == ["carry_strategy"]

    def test_update_rejects_non_positive_tithe(self):
        with pytest.raises(ValueError):
            SettingsUpdate(tithe_percent=Decimal("0"))


class TestRecordFlow:

    def test_add_list_remove_income(self, tracker, storage):
        created = asyncio.run(tracker.add_income(
            USER_ID, IncomePayload(description="Bonus", amount=Decimal("800"), date=date(2024, 5, 1))
        ))
        assert [i.id for i in asyncio.run(tracker.list_incomes(USER_ID))] == [created.id]

        assert asyncio.run(tracker.remove_income(USER_ID, created.id)) is True
        assert asyncio.run(tracker.remove_income(USER_ID, created.id)) is False

        audited = asyncio.run(storage.get_events_by_entity("income", str(created.id)))
        assert [e.event_type for e in audited] == [
            AuditEventType.INCOME_CREATED,
            AuditEventType.INCOME_DELETED,
            AuditEventType.INCOME_DELETED,
        ]

    def test_invalid_income_not_stored(self, tracker, storage):
        payload = IncomePayload(
            description="Grant", amount=Decimal("100"), schedule="multiMonth", date=date(2024, 5, 1)
        )
        with pytest.raises(RecordValidationError) as excinfo:
            asyncio.run(tracker.add_income(USER_ID, payload))
        assert excinfo.value.result.entity_type == "income"
        assert asyncio.run(tracker.list_incomes(USER_ID)) == []
        events = asyncio.run(storage.get_recent_events())
        assert events[0].event_type == AuditEventType.VALIDATION_FAILED

    def test_update_income_replaces(self, tracker):
        created = asyncio.run(tracker.add_income(
            USER_ID, IncomePayload(description="Bonus", amount=Decimal("800"), date=date(2024, 5, 1))
        ))
        updated = asyncio.run(tracker.update_income(
            USER_ID,
            created.id,
            IncomePayload(description="Bonus", amount=Decimal("900"), date=date(2024, 5, 1)),
        ))
        assert updated.id == created.id
        assert asyncio.run(tracker.list_incomes(USER_ID))[0].amount == Decimal("900")

    def test_update_unknown_income(self, tracker):
        payload = IncomePayload(description="Bonus", amount=Decimal("1"), date=date(2024, 5, 1))
        with pytest.raises(NotFoundError):
            asyncio.run(tracker.update_income(USER_ID, uuid4(), payload))

    def test_add_and_remove_donation(self, tracker):
        created = asyncio.run(tracker.add_donation(
            USER_ID,
            DonationPayload(organization="Shul", amount=Decimal("36"), type="oneTime", start_date=date(2024, 6, 1)),
        ))
        assert created.is_active is False
        assert len(asyncio.run(tracker.list_donations(USER_ID))) == 1
        assert asyncio.run(tracker.remove_donation(USER_ID, created.id)) is True
        assert asyncio.run(tracker.list_donations(USER_ID)) == []


class TestDashboard:

    def test_end_to_end_scenario(self, tracker):
        """5000 fixed income, 10%, one 300 donation in January 2024."""
        asyncio.run(tracker.update_settings(
            USER_ID,
            SettingsUpdate(
                fixed_income=FixedIncomeSettings(personal=Decimal("5000")),
                tithe_percent=Decimal("10"),
                starting_balance=Decimal("0"),
                carry_strategy="carry",
            ),
        ))
        asyncio.run(tracker.add_donation(
            USER_ID,
            DonationPayload(organization="Shul", amount=Decimal("300"), type="oneTime", start_date=date(2024, 1, 15)),
        ))

        dashboard = asyncio.run(tracker.get_dashboard(USER_ID))

        assert [y.year.year for y in dashboard.years] == [2024]
        january, february = dashboard.years[0].months[:2]
        assert january.incomes_base == Decimal("5000")
        assert january.obligation == Decimal("500")
        assert january.donations_base == Decimal("300")
        assert january.running_balance == Decimal("-200")
        assert february.incomes_base == Decimal("5000")
        assert february.obligation == Decimal("500")
        assert february.donations_base == 0
        assert february.running_balance == Decimal("-700")

    def test_year_filter_keeps_carried_balance(self, tracker):
        asyncio.run(tracker.add_income(
            USER_ID, IncomePayload(description="Bonus", amount=Decimal("1000"), date=date(2023, 3, 1))
        ))
        dashboard = asyncio.run(tracker.get_dashboard(USER_ID, year=2024))
        assert [y.year.year for y in dashboard.years] == [2024]
        assert dashboard.years[0].year.starting_balance == Decimal("-100")

    def test_year_filter_for_untracked_year(self, tracker):
        dashboard = asyncio.run(tracker.get_dashboard(USER_ID, year=2019))
        assert [y.year.year for y in dashboard.years] == [2019]
        assert len(dashboard.years[0].months) == 12

    def test_storage_errors_audited_and_reraised(self, storage):
        broken = BrokenRecordStorage()
        tracker = TitheTracker(
            record_storage=broken,
            settings_storage=storage,
            notification_storage=storage,
            audit_logger=AuditLogger(storage),
            tracker_settings=TrackerSettings(),
            clock=lambda: date(2024, 6, 15),
        )
        with pytest.raises(StorageError, match="backend unavailable"):
            asyncio.run(tracker.get_dashboard(USER_ID))

        event = asyncio.run(storage.get_recent_events())[0]
        assert event.event_type == AuditEventType.SYSTEM_ERROR
        assert event.details["operation"] == "get_dashboard"

    def test_gap_year_carried_into_current_year(self, tracker):
        asyncio.run(tracker.add_income(
            USER_ID,
            IncomePayload(
                description="Rent", amount=Decimal("1000"), schedule="recurring", date=date(2022, 1, 1)
            ),
        ))
        full = asyncio.run(tracker.get_dashboard(USER_ID))
        gap = asyncio.run(tracker.get_dashboard(USER_ID, year=2023))

        assert [y.year.year for y in full.years] == [2024, 2022]
        assert gap.years[0].year.starting_balance == Decimal("-1200")
        assert full.years[0].year.starting_balance == gap.years[0].totals.balance == Decimal("-2400")


class TestMonthDetailsFlow:

    def test_month_details(self, tracker):
        asyncio.run(tracker.add_income(
            USER_ID, IncomePayload(description="Bonus", amount=Decimal("10"), currency="USD", date=date(2024, 2, 1))
        ))
        details = asyncio.run(tracker.get_month_details(USER_ID, 2024, 1))
        assert details.incomes[0].amount_base == Decimal("35")

    def test_invalid_month(self, tracker):
        with pytest.raises(InvalidQueryError):
            asyncio.run(tracker.get_month_details(USER_ID, 2024, 12))


class TestNotificationsFlow:

    def test_refresh_list_mark_delete(self, tracker):
        asyncio.run(tracker.add_donation(
            USER_ID,
            DonationPayload(
                organization="Yeshiva", amount=Decimal("100"), type="installments",
                installments_total=10, installments_paid=9, start_date=date(2024, 1, 1),
            ),
        ))
        asyncio.run(tracker.add_income(
            USER_ID,
            IncomePayload(
                description="Grant", amount=Decimal("500"), schedule="multiMonth",
                total_months=4, date=date(2024, 3, 1),
            ),
        ))

        refreshed = asyncio.run(tracker.refresh_notifications(USER_ID))
        asyncio.run(tracker.refresh_notifications(USER_ID))

        listing = asyncio.run(tracker.list_notifications(USER_ID))
        assert len(refreshed) == 2
        assert listing.unread_count == 2
        assert {n.type for n in listing.notifications} == {
            NotificationType.FINAL_PAYMENT,
            NotificationType.INCOME_ENDING,
        }

        first_id = listing.notifications[0].id
        assert asyncio.run(tracker.mark_notifications_read(USER_ID, [first_id])) == 1
        assert asyncio.run(tracker.list_notifications(USER_ID)).unread_count == 1
        assert asyncio.run(tracker.mark_all_notifications_read(USER_ID)) == 1
        assert asyncio.run(tracker.delete_notifications(USER_ID, [first_id])) == 1
        assert asyncio.run(tracker.delete_notifications(USER_ID, [])) == 0
        assert len(asyncio.run(tracker.list_notifications(USER_ID)).notifications) == 1


class TestOnboarding:

    def test_new_user_needs_setup(self, tracker):
        assert asyncio.run(tracker.needs_setup(USER_ID)) is True

    def test_complete_onboarding(self, tracker, storage):
        result = asyncio.run(tracker.complete_onboarding(
            USER_ID,
            SettingsUpdate(currency="USD", tithe_percent=Decimal("20"), carry_strategy="reset"),
            incomes=[
                IncomePayload(description="Bonus", amount=Decimal("800"), date=date(2024, 5, 1)),
                IncomePayload(description="Nothing", amount=Decimal("0"), date=date(2024, 5, 1)),
            ],
            donations=[
                DonationPayload(organization="Shul", amount=Decimal("36"), start_date=date(2024, 5, 1)),
            ],
        ))

        assert asyncio.run(tracker.needs_setup(USER_ID)) is False
        assert result.settings.currency == Currency.USD
        assert result.settings.carry_strategy == CarryStrategy.RESET
        assert [i.description for i in asyncio.run(tracker.list_incomes(USER_ID))] == ["Bonus"]
        assert [d.id for d in asyncio.run(tracker.list_donations(USER_ID))] == [result.donations[0].id]

        created = asyncio.run(storage.get_events_by_entity("income", str(result.incomes[0].id)))
        assert [e.event_type for e in created] == [AuditEventType.INCOME_CREATED]

    def test_invalid_entry_stores_nothing(self, tracker):
        broken = IncomePayload(
            description="Grant", amount=Decimal("100"), schedule="multiMonth", date=date(2024, 5, 1)
        )
        with pytest.raises(RecordValidationError):
            asyncio.run(tracker.complete_onboarding(USER_ID, SettingsUpdate(), incomes=[broken]))

        assert asyncio.run(tracker.needs_setup(USER_ID)) is True
        assert asyncio.run(tracker.list_incomes(USER_ID)) == []


class TestAppComponents:

    def test_memory_backend(self):
        tracker = create_app_components(backend="memory", clock=lambda: date(2024, 1, 1))
        dashboard = asyncio.run(tracker.get_dashboard(USER_ID))
        assert [y.year.year for y in dashboard.years] == [2024]

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_app_components(backend="postgres")
