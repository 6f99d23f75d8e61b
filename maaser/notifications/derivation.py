"""
System Notification Derivation

Reminders are derived from the raw records on demand:
- FINAL_PAYMENT: an active installments donation with exactly one
  installment left
- INCOME_ENDING: a multiMonth income that is in its final month

Each reminder is keyed by (user_id, type, record id). Deriving again
rewrites the title, message and metadata of the existing notification;
its id, is_read flag and created_at are kept by the store.
"""

import asyncio
from datetime import date
from typing import Optional

import structlog

from maaser.engine.schedule import add_months, effective_span, months_since_start
from maaser.models.finance import (
    DonationRecord,
    DonationType,
    IncomeSchedule,
    VariableIncomeRecord,
)
from maaser.models.notification import (
    Notification,
    NotificationMetadata,
    NotificationSeverity,
    NotificationType,
)
from maaser.services.storage import (
    FinancialRecordStorageInterface,
    NotificationStorageInterface,
)

logger = structlog.get_logger(__name__)

FINAL_INSTALLMENT_THRESHOLD = 1


def final_payment_notification(
    user_id: str,
    donation: DonationRecord,
) -> Optional[Notification]:
    """FINAL_PAYMENT reminder for a donation, or None if it does not qualify."""
    if donation.type != DonationType.INSTALLMENTS or not donation.is_active:
        return None
    if donation.installments_total is None or donation.installments_paid is None:
        return None

    total = donation.installments_total
    remaining = max(total - donation.installments_paid, 0)
    if total <= 0 or remaining != FINAL_INSTALLMENT_THRESHOLD:
        return None

    return Notification(
        user_id=user_id,
        type=NotificationType.FINAL_PAYMENT,
        context_id=str(donation.id),
        title="Final installment reminder",
        message=f"Only one installment remains for {donation.organization}",
        metadata=NotificationMetadata(
            title_key="notifications.installments.finalPayment.title",
            message_key="notifications.installments.finalPayment.body",
            params={
                "organization": donation.organization,
                "totalInstallments": total,
                "amount": str(donation.amount),
                "currency": donation.currency.value,
            },
            entity_type="donation",
            entity_id=str(donation.id),
            severity=NotificationSeverity.WARNING,
        ),
    )


def income_ending_notification(
    user_id: str,
    income: VariableIncomeRecord,
    today: date,
) -> Optional[Notification]:
    """INCOME_ENDING reminder for an income, or None if it does not qualify."""
    if income.schedule != IncomeSchedule.MULTI_MONTH:
        return None
    total = effective_span(income)
    if total is None:
        return None

    elapsed = months_since_start(income.date, today)
    if elapsed < 0:
        # Not started yet
        return None
    if total - (elapsed + 1) != 0:
        return None

    end_date = add_months(income.date, total - 1)
    return Notification(
        user_id=user_id,
        type=NotificationType.INCOME_ENDING,
        context_id=str(income.id),
        title="Limited income is ending",
        message=f"{income.description} is in its final month",
        metadata=NotificationMetadata(
            title_key="notifications.incomes.lastMonth.title",
            message_key="notifications.incomes.lastMonth.body",
            params={
                "description": income.description,
                "amount": str(income.amount),
                "currency": income.currency.value,
                "endDate": end_date.isoformat(),
            },
            entity_type="income",
            entity_id=str(income.id),
            severity=NotificationSeverity.WARNING,
        ),
    )


def build_system_notifications(
    user_id: str,
    incomes: list[VariableIncomeRecord],
    donations: list[DonationRecord],
    today: date,
) -> list[Notification]:
    """Every reminder the records currently call for. Pure."""
    notifications = []
    for donation in donations:
        notification = final_payment_notification(user_id, donation)
        if notification is not None:
            notifications.append(notification)
    for income in incomes:
        notification = income_ending_notification(user_id, income, today)
        if notification is not None:
            notifications.append(notification)
    return notifications


async def derive_notifications(
    user_id: str,
    record_storage: FinancialRecordStorageInterface,
    notification_storage: NotificationStorageInterface,
    today: date,
) -> list[Notification]:
    """
    Upsert the user's system reminders.

    Returns:
        The stored notifications, as returned by the store
    """
    incomes, donations = await asyncio.gather(
        record_storage.list_incomes(user_id),
        record_storage.list_donations(user_id),
    )

    upserted = []
    for notification in build_system_notifications(user_id, incomes, donations, today):
        upserted.append(await notification_storage.upsert(notification))

    logger.debug(
        "system_notifications_derived",
        user_id=user_id,
        upserted=len(upserted),
    )
    return upserted
