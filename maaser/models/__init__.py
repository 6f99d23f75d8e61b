"""
Data Models Package

This package contains all Pydantic models used in Maaser Tracker.
All data flowing through the system must conform to these schemas.
"""

from maaser.models.finance import (
    CarryStrategy,
    ComputedMonth,
    ComputedYear,
    Currency,
    DashboardData,
    DonationPayload,
    DonationRecord,
    DonationType,
    FixedIncomeSettings,
    IncomePayload,
    IncomeSchedule,
    IncomeSource,
    Language,
    MonthlySnapshot,
    OnboardingResult,
    SettingsUpdate,
    UserFinancialSettings,
    VariableIncomeRecord,
    YearSnapshot,
    YearTotals,
)
from maaser.models.notification import (
    Notification,
    NotificationList,
    NotificationMetadata,
    NotificationSeverity,
    NotificationType,
)
from maaser.models.query import (
    MonthDetails,
    MonthDonationRow,
    MonthIncomeRow,
    MonthTotals,
)
from maaser.models.validation import ValidationIssue, ValidationResult
from maaser.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Financial models
    "CarryStrategy",
    "ComputedMonth",
    "ComputedYear",
    "Currency",
    "DashboardData",
    "DonationPayload",
    "DonationRecord",
    "DonationType",
    "FixedIncomeSettings",
    "IncomePayload",
    "IncomeSchedule",
    "IncomeSource",
    "Language",
    "MonthlySnapshot",
    "OnboardingResult",
    "SettingsUpdate",
    "UserFinancialSettings",
    "VariableIncomeRecord",
    "YearSnapshot",
    "YearTotals",
    # Notification models
    "Notification",
    "NotificationList",
    "NotificationMetadata",
    "NotificationSeverity",
    "NotificationType",
    # Month details models
    "MonthDetails",
    "MonthDonationRow",
    "MonthIncomeRow",
    "MonthTotals",
    # Validation models
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
