"""
Audit Logger

DESIGN DECISION: Every state change and every derivation run is logged.
This provides:
1. Complete traceability of how a balance came to be
2. Debugging capability
3. A history of deleted records

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from maaser.models.audit import AuditEvent, AuditEventBuilder
from maaser.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_income_created(
        self,
        user_id: str,
        income_id: UUID,
        description: str,
        amount: Decimal,
        currency: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.income_created(
            user_id=user_id,
            income_id=income_id,
            description=description,
            amount=str(amount),
            currency=currency,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_income_updated(
        self,
        user_id: str,
        income_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.income_updated(
            user_id=user_id,
            income_id=income_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_record_deleted(
        self,
        user_id: str,
        entity_type: str,
        entity_id: UUID,
        found: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a delete attempt, including ones that matched nothing."""
        event = AuditEventBuilder.record_deleted(
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            found=found,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_donation_created(
        self,
        user_id: str,
        donation_id: UUID,
        organization: str,
        amount: Decimal,
        currency: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.donation_created(
            user_id=user_id,
            donation_id=donation_id,
            organization=organization,
            amount=str(amount),
            currency=currency,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_settings_updated(
        self,
        user_id: str,
        changed_fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.settings_updated(
            user_id=user_id,
            changed_fields=changed_fields,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_dashboard_computed(
        self,
        user_id: str,
        years: list[int],
        income_count: int,
        donation_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.dashboard_computed(
            user_id=user_id,
            years=years,
            income_count=income_count,
            donation_count=donation_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_month_details_computed(
        self,
        user_id: str,
        year: int,
        month_index: int,
        result_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.month_details_computed(
            user_id=user_id,
            year=year,
            month_index=month_index,
            result_count=result_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_notifications_derived(
        self,
        user_id: str,
        upserted: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.notifications_derived(
            user_id=user_id,
            upserted=upserted,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_validation_failed(
        self,
        user_id: str,
        entity_type: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log validation failure."""
        event = AuditEventBuilder.validation_failed(
            user_id=user_id,
            entity_type=entity_type,
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        user_id: Optional[str] = None,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            user_id=user_id,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., adding a donation).
    Pass it through all subsequent operations.
    """
    return uuid4()
