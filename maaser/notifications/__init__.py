"""System notification derivation package."""

from maaser.notifications.derivation import (
    FINAL_INSTALLMENT_THRESHOLD,
    build_system_notifications,
    derive_notifications,
    final_payment_notification,
    income_ending_notification,
)

__all__ = [
    "FINAL_INSTALLMENT_THRESHOLD",
    "build_system_notifications",
    "derive_notifications",
    "final_payment_notification",
    "income_ending_notification",
]
