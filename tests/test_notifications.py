"""Tests for system notification derivation."""

import asyncio
from datetime import date

from maaser.models.notification import NotificationSeverity, NotificationType
from maaser.notifications import (
    build_system_notifications,
    derive_notifications,
    final_payment_notification,
    income_ending_notification,
)
from maaser.services.storage import InMemoryStorage

USER_ID = "user-1"


class InterleavedStorage(InMemoryStorage):
    """Income listing only completes once donation listing has started."""

    def __init__(self):
        super().__init__()
        self.donations_listed = asyncio.Event()

    async def list_incomes(self, user_id):
        await asyncio.wait_for(self.donations_listed.wait(), timeout=1)
        return await super().list_incomes(user_id)

    async def list_donations(self, user_id):
        self.donations_listed.set()
        return await super().list_donations(user_id)


class TestFinalPayment:

    def test_one_installment_left(self, make_donation):
        donation = make_donation(
            type="installments", organization="Yeshiva", installments_total=12, installments_paid=11
        )
        notification = final_payment_notification(USER_ID, donation)
        assert notification.type == NotificationType.FINAL_PAYMENT
        assert notification.context_id == str(donation.id)
        assert notification.message == "Only one installment remains for Yeshiva"
        assert notification.metadata.title_key == "notifications.installments.finalPayment.title"
        assert notification.metadata.params["totalInstallments"] == 12
        assert notification.metadata.severity == NotificationSeverity.WARNING

    def test_other_remaining_counts_ignored(self, make_donation):
        for paid in (0, 10, 12, 15):
            donation = make_donation(type="installments", installments_total=12, installments_paid=paid)
            assert final_payment_notification(USER_ID, donation) is None

    def test_inactive_or_incomplete_donations_ignored(self, make_donation):
        inactive = make_donation(
            type="installments", installments_total=2, installments_paid=1, is_active=False
        )
        unpaid_unknown = make_donation(type="installments", installments_total=1)
        recurring = make_donation(type="recurring")
        for donation in (inactive, unpaid_unknown, recurring):
            assert final_payment_notification(USER_ID, donation) is None


class TestIncomeEnding:

    def test_final_month(self, make_income):
        """Started in April for 3 months: June is the last month."""
        income = make_income(
            schedule="multiMonth", total_months=3, description="Grant", date=date(2024, 4, 30)
        )
        notification = income_ending_notification(USER_ID, income, date(2024, 6, 1))
        assert notification.type == NotificationType.INCOME_ENDING
        assert notification.message == "Grant is in its final month"
        assert notification.metadata.params["endDate"] == "2024-06-30"
        assert notification.metadata.entity_type == "income"

    def test_not_final_month(self, make_income):
        income = make_income(schedule="multiMonth", total_months=3, date=date(2024, 4, 1))
        assert income_ending_notification(USER_ID, income, date(2024, 5, 20)) is None
        assert income_ending_notification(USER_ID, income, date(2024, 7, 1)) is None

    def test_not_started(self, make_income):
        """A one-month income that begins next month is skipped."""
        income = make_income(schedule="multiMonth", total_months=1, date=date(2024, 7, 1))
        assert income_ending_notification(USER_ID, income, date(2024, 6, 15)) is None

    def test_other_schedules_ignored(self, make_income):
        one_time = make_income(schedule="oneTime", date=date(2024, 6, 1))
        no_span = make_income(schedule="multiMonth", total_months=0, date=date(2024, 6, 1))
        for income in (one_time, no_span):
            assert income_ending_notification(USER_ID, income, date(2024, 6, 15)) is None


class TestDeriveNotifications:

    def test_build_collects_both_kinds(self, make_income, make_donation):
        incomes = [make_income(schedule="multiMonth", total_months=1, date=date(2024, 6, 1))]
        donations = [make_donation(type="installments", installments_total=2, installments_paid=1)]
        built = build_system_notifications(USER_ID, incomes, donations, date(2024, 6, 15))
        assert {n.type for n in built} == {NotificationType.FINAL_PAYMENT, NotificationType.INCOME_ENDING}

    def test_derive_twice_is_idempotent(self, storage, make_donation):
        """Re-deriving updates the same row; is_read and created_at survive."""
        donation = make_donation(type="installments", installments_total=3, installments_paid=2)
        asyncio.run(storage.create_donation(donation))

        first = asyncio.run(derive_notifications(USER_ID, storage, storage, date(2024, 6, 15)))
        asyncio.run(storage.mark_read(USER_ID, [first[0].id], True))
        second = asyncio.run(derive_notifications(USER_ID, storage, storage, date(2024, 6, 15)))

        stored = asyncio.run(storage.list_for_user(USER_ID))
        assert len(stored) == 1
        assert second[0].id == first[0].id
        assert stored[0].is_read is True
        assert stored[0].created_at == first[0].created_at

    def test_derive_nothing_to_remind(self, storage, make_donation):
        asyncio.run(storage.create_donation(make_donation(type="oneTime")))
        assert asyncio.run(derive_notifications(USER_ID, storage, storage, date(2024, 6, 15))) == []
        assert asyncio.run(storage.list_for_user(USER_ID)) == []

    def test_records_fetched_concurrently(self, make_donation):
        storage = InterleavedStorage()
        asyncio.run(storage.create_donation(
            make_donation(type="installments", installments_total=2, installments_paid=1)
        ))
        derived = asyncio.run(derive_notifications(USER_ID, storage, storage, date(2024, 6, 15)))
        assert [n.type for n in derived] == [NotificationType.FINAL_PAYMENT]
