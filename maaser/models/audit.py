"""
Audit Models for Maaser Tracker

Every state-changing action (record created/deleted, settings updated)
and every derivation run is logged for audit purposes. This provides:
1. Traceability of how a user's balance came to be
2. Debugging information when a snapshot looks wrong
3. Ability to reconstruct history of deleted records

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Income records
    INCOME_CREATED = "income_created"
    INCOME_UPDATED = "income_updated"
    INCOME_DELETED = "income_deleted"

    # Donation records
    DONATION_CREATED = "donation_created"
    DONATION_DELETED = "donation_deleted"

    # Settings
    SETTINGS_UPDATED = "settings_updated"

    # Derived views
    DASHBOARD_COMPUTED = "dashboard_computed"
    MONTH_DETAILS_COMPUTED = "month_details_computed"
    NOTIFICATIONS_DERIVED = "notifications_derived"

    # Boundary validation
    VALIDATION_FAILED = "validation_failed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Whose data was touched
    user_id: Optional[str] = None

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'income', 'donation', 'settings')"
    )
    entity_id: Optional[str] = None

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one request)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, user_id, entity_type,
         entity_id, correlation_id, description, details_json,
         error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.income_created(user_id, income_id, ...)
        event = AuditEventBuilder.notifications_derived(user_id, 2, ...)
    """

    @staticmethod
    def income_created(
        user_id: str,
        income_id: UUID,
        description: str,
        amount: str,
        currency: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INCOME_CREATED,
            user_id=user_id,
            entity_type="income",
            entity_id=str(income_id),
            correlation_id=correlation_id,
            description=f"Income added: {description} - {amount} {currency}",
            details={
                "amount": amount,
                "currency": currency,
            },
            is_user_action=True,
        )

    @staticmethod
    def income_updated(
        user_id: str,
        income_id: UUID,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INCOME_UPDATED,
            user_id=user_id,
            entity_type="income",
            entity_id=str(income_id),
            correlation_id=correlation_id,
            description="Income replaced",
            is_user_action=True,
        )

    @staticmethod
    def record_deleted(
        user_id: str,
        entity_type: str,
        entity_id: UUID,
        found: bool,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        event_type = (
            AuditEventType.INCOME_DELETED
            if entity_type == "income"
            else AuditEventType.DONATION_DELETED
        )
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.INFO if found else AuditSeverity.WARNING,
            user_id=user_id,
            entity_type=entity_type,
            entity_id=str(entity_id),
            correlation_id=correlation_id,
            description=(
                f"{entity_type.capitalize()} deleted"
                if found
                else f"{entity_type.capitalize()} not found for deletion"
            ),
            details={"found": found},
            is_user_action=True,
        )

    @staticmethod
    def donation_created(
        user_id: str,
        donation_id: UUID,
        organization: str,
        amount: str,
        currency: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DONATION_CREATED,
            user_id=user_id,
            entity_type="donation",
            entity_id=str(donation_id),
            correlation_id=correlation_id,
            description=f"Donation added: {organization} - {amount} {currency}",
            details={
                "organization": organization,
                "amount": amount,
                "currency": currency,
            },
            is_user_action=True,
        )

    @staticmethod
    def settings_updated(
        user_id: str,
        changed_fields: list[str],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTINGS_UPDATED,
            user_id=user_id,
            entity_type="settings",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"Settings updated: {', '.join(changed_fields) or 'no changes'}",
            details={"changed_fields": changed_fields},
            is_user_action=True,
        )

    @staticmethod
    def dashboard_computed(
        user_id: str,
        years: list[int],
        income_count: int,
        donation_count: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DASHBOARD_COMPUTED,
            severity=AuditSeverity.DEBUG,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Dashboard computed for {len(years)} year(s)",
            details={
                "years": years,
                "income_count": income_count,
                "donation_count": donation_count,
            },
        )

    @staticmethod
    def month_details_computed(
        user_id: str,
        year: int,
        month_index: int,
        result_count: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MONTH_DETAILS_COMPUTED,
            severity=AuditSeverity.DEBUG,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Month details for {year}-{month_index + 1:02d} returned {result_count} rows",
            details={
                "year": year,
                "month_index": month_index,
                "result_count": result_count,
            },
        )

    @staticmethod
    def notifications_derived(
        user_id: str,
        upserted: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NOTIFICATIONS_DERIVED,
            user_id=user_id,
            entity_type="notification",
            correlation_id=correlation_id,
            description=f"System notifications derived: {upserted} upserted",
            details={"upserted": upserted},
        )

    @staticmethod
    def validation_failed(
        user_id: str,
        entity_type: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type=entity_type,
            correlation_id=correlation_id,
            description=f"{entity_type.capitalize()} validation failed with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        user_id: Optional[str] = None,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
