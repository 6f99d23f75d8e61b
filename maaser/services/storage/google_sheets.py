"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the initial storage backend because:
1. Users can view and export their records directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions (we handle this with careful ordering)
- Limited query capabilities (we filter in Python)

Every worksheet holds rows for all users; each row carries its user_id
and every read filters on it.

The worksheets are created by maaser.services.storage.migrations at
deploy time. This module only reads and writes them.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from maaser.config import GoogleSheetsSettings, get_settings
from maaser.models.audit import AuditEvent, AuditEventType, AuditSeverity
from maaser.models.finance import (
    DonationRecord,
    FixedIncomeSettings,
    UserFinancialSettings,
    VariableIncomeRecord,
)
from maaser.models.notification import (
    Notification,
    NotificationMetadata,
    NotificationType,
)
from maaser.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    FinancialRecordStorageInterface,
    NotFoundError,
    NotificationStorageInterface,
    SettingsStorageInterface,
    StorageError,
)
from maaser.services.storage.migrations import (
    NOTIFICATION_COLUMNS,
    ensure_schema_current,
)

logger = structlog.get_logger(__name__)


def _safe_get(row: list, index: int, default: str = "") -> str:
    """Handle missing columns gracefully."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _optional_int(value: str) -> Optional[int]:
    return int(value) if value else None


def _as_bool(value: str) -> bool:
    return value.strip().lower() == "true"


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    The schema version is checked once per client, on first worksheet access.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets
        self._schema_checked = False

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str) -> gspread.Worksheet:
        """
        Get an existing worksheet.

        Raises:
            SchemaVersionError: If migrations have not been applied
        """
        spreadsheet = self.get_spreadsheet()
        if not self._schema_checked:
            ensure_schema_current(spreadsheet, self._settings)
            self._schema_checked = True
        return spreadsheet.worksheet(title)


class GoogleSheetsRecordStorage(FinancialRecordStorageInterface):
    """
    Google Sheets implementation of income and donation storage.

    One record per row. Amounts are stored as decimal strings.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _incomes_sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(self._client.settings.incomes_sheet_name)

    def _donations_sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(self._client.settings.donations_sheet_name)

    @staticmethod
    def income_to_row(record: VariableIncomeRecord) -> list:
        """Convert an income to a spreadsheet row."""
        return [
            str(record.id),
            record.user_id,
            record.description,
            str(record.amount),
            record.currency.value,
            record.source.value,
            record.date.isoformat(),
            record.schedule.value,
            str(record.total_months) if record.total_months is not None else "",
            record.note or "",
        ]

    @staticmethod
    def row_to_income(row: list) -> VariableIncomeRecord:
        """Convert a spreadsheet row to an income."""
        return VariableIncomeRecord(
            id=UUID(_safe_get(row, 0)),
            user_id=_safe_get(row, 1),
            description=_safe_get(row, 2),
            amount=Decimal(_safe_get(row, 3, "0")),
            currency=_safe_get(row, 4, "ILS"),
            source=_safe_get(row, 5, "other"),
            date=date.fromisoformat(_safe_get(row, 6)),
            schedule=_safe_get(row, 7, "oneTime"),
            total_months=_optional_int(_safe_get(row, 8)),
            note=_safe_get(row, 9) or None,
        )

    @staticmethod
    def donation_to_row(record: DonationRecord) -> list:
        """Convert a donation to a spreadsheet row."""
        return [
            str(record.id),
            record.user_id,
            record.organization,
            str(record.amount),
            record.currency.value,
            record.type.value,
            record.start_date.isoformat(),
            str(record.installments_total) if record.installments_total is not None else "",
            str(record.installments_paid) if record.installments_paid is not None else "",
            str(record.is_active),
            record.note or "",
        ]

    @staticmethod
    def row_to_donation(row: list) -> DonationRecord:
        """Convert a spreadsheet row to a donation."""
        active = _safe_get(row, 9)
        return DonationRecord(
            id=UUID(_safe_get(row, 0)),
            user_id=_safe_get(row, 1),
            organization=_safe_get(row, 2),
            amount=Decimal(_safe_get(row, 3, "0")),
            currency=_safe_get(row, 4, "ILS"),
            type=_safe_get(row, 5, "recurring"),
            start_date=date.fromisoformat(_safe_get(row, 6)),
            installments_total=_optional_int(_safe_get(row, 7)),
            installments_paid=_optional_int(_safe_get(row, 8)),
            is_active=_as_bool(active) if active else None,
            note=_safe_get(row, 10) or None,
        )

    def _user_rows(self, sheet: gspread.Worksheet, user_id: str) -> list[tuple[int, list]]:
        """(sheet row number, row) pairs for one user, header skipped."""
        rows = []
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
            if row and row[0] and _safe_get(row, 1) == user_id:
                rows.append((idx, row))
        return rows

    def _find_row(self, sheet: gspread.Worksheet, record_id: UUID) -> Optional[tuple[int, list]]:
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
            if row and row[0] == str(record_id):
                return idx, row
        return None

    async def list_incomes(self, user_id: str) -> list[VariableIncomeRecord]:
        try:
            sheet = self._incomes_sheet()
            incomes = [self.row_to_income(row) for _, row in self._user_rows(sheet, user_id)]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list incomes: {e}")
        incomes.sort(key=lambda r: r.date, reverse=True)
        return incomes

    async def get_income(
        self,
        user_id: str,
        income_id: UUID,
    ) -> Optional[VariableIncomeRecord]:
        try:
            found = self._find_row(self._incomes_sheet(), income_id)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get income: {e}")
        if found is None or _safe_get(found[1], 1) != user_id:
            return None
        return self.row_to_income(found[1])

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(DuplicateError),
        reraise=True,
    )
    async def create_income(self, record: VariableIncomeRecord) -> VariableIncomeRecord:
        try:
            sheet = self._incomes_sheet()
            if self._find_row(sheet, record.id) is not None:
                raise DuplicateError(f"Income already exists: {record.id}")
            sheet.append_row(self.income_to_row(record), value_input_option="RAW")
            return record
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save income: {e}")

    async def update_income(self, record: VariableIncomeRecord) -> VariableIncomeRecord:
        try:
            sheet = self._incomes_sheet()
            found = self._find_row(sheet, record.id)
            if found is None or _safe_get(found[1], 1) != record.user_id:
                raise NotFoundError(f"Income not found: {record.id}")

            idx = found[0]
            for col_idx, value in enumerate(self.income_to_row(record), start=1):
                sheet.update_cell(idx, col_idx, value)
            return record
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update income: {e}")

    async def delete_income(self, user_id: str, income_id: UUID) -> bool:
        try:
            sheet = self._incomes_sheet()
            found = self._find_row(sheet, income_id)
            if found is None or _safe_get(found[1], 1) != user_id:
                return False
            sheet.delete_rows(found[0])
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete income: {e}")

    async def list_donations(self, user_id: str) -> list[DonationRecord]:
        try:
            sheet = self._donations_sheet()
            donations = [self.row_to_donation(row) for _, row in self._user_rows(sheet, user_id)]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list donations: {e}")
        donations.sort(key=lambda r: r.start_date, reverse=True)
        return donations

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(DuplicateError),
        reraise=True,
    )
    async def create_donation(self, record: DonationRecord) -> DonationRecord:
        try:
            sheet = self._donations_sheet()
            if self._find_row(sheet, record.id) is not None:
                raise DuplicateError(f"Donation already exists: {record.id}")
            sheet.append_row(self.donation_to_row(record), value_input_option="RAW")
            return record
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save donation: {e}")

    async def delete_donation(self, user_id: str, donation_id: UUID) -> bool:
        try:
            sheet = self._donations_sheet()
            found = self._find_row(sheet, donation_id)
            if found is None or _safe_get(found[1], 1) != user_id:
                return False
            sheet.delete_rows(found[0])
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete donation: {e}")


class GoogleSheetsSettingsStorage(SettingsStorageInterface):
    """One settings row per user."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(self._client.settings.settings_sheet_name)

    @staticmethod
    def settings_to_row(user_id: str, settings: UserFinancialSettings) -> list:
        return [
            user_id,
            settings.language.value,
            settings.currency.value,
            str(settings.tithe_percent),
            str(settings.fixed_income.personal),
            str(settings.fixed_income.spouse),
            str(settings.fixed_income.include_spouse),
            str(settings.starting_balance),
            settings.carry_strategy.value,
            str(settings.is_first_time_setup_completed),
            datetime.utcnow().isoformat(),
        ]

    @staticmethod
    def row_to_settings(row: list) -> UserFinancialSettings:
        return UserFinancialSettings(
            language=_safe_get(row, 1, "he"),
            currency=_safe_get(row, 2, "ILS"),
            tithe_percent=Decimal(_safe_get(row, 3, "10")),
            fixed_income=FixedIncomeSettings(
                personal=Decimal(_safe_get(row, 4, "0")),
                spouse=Decimal(_safe_get(row, 5, "0")),
                include_spouse=_as_bool(_safe_get(row, 6)),
            ),
            starting_balance=Decimal(_safe_get(row, 7, "0")),
            carry_strategy=_safe_get(row, 8, "carry"),
            is_first_time_setup_completed=_as_bool(_safe_get(row, 9)),
        )

    async def get_settings(self, user_id: str) -> Optional[UserFinancialSettings]:
        try:
            for row in self._sheet().get_all_values()[1:]:
                if row and row[0] == user_id:
                    return self.row_to_settings(row)
            return None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get settings: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_settings(
        self,
        user_id: str,
        settings: UserFinancialSettings,
    ) -> UserFinancialSettings:
        try:
            sheet = self._sheet()
            new_row = self.settings_to_row(user_id, settings)
            for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
                if row and row[0] == user_id:
                    for col_idx, value in enumerate(new_row, start=1):
                        sheet.update_cell(idx, col_idx, value)
                    return settings
            sheet.append_row(new_row, value_input_option="RAW")
            return settings
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save settings: {e}")


class GoogleSheetsNotificationStorage(NotificationStorageInterface):
    """
    Notifications worksheet.

    (user_id, type, context_id) identifies a row; upsert rewrites the
    title, message, metadata and updated_at cells of a matching row.
    """

    _TITLE_COL = NOTIFICATION_COLUMNS.index("title") + 1
    _MESSAGE_COL = NOTIFICATION_COLUMNS.index("message") + 1
    _METADATA_COL = NOTIFICATION_COLUMNS.index("metadata_json") + 1
    _IS_READ_COL = NOTIFICATION_COLUMNS.index("is_read") + 1
    _UPDATED_AT_COL = NOTIFICATION_COLUMNS.index("updated_at") + 1

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(self._client.settings.notifications_sheet_name)

    @staticmethod
    def _metadata_json(notification: Notification) -> str:
        if notification.metadata is None:
            return ""
        return json.dumps(notification.metadata.model_dump(mode="json", by_alias=True))

    @classmethod
    def notification_to_row(cls, notification: Notification) -> list:
        return [
            str(notification.id),
            notification.user_id,
            notification.type.value,
            notification.context_id or "",
            notification.title,
            notification.message,
            cls._metadata_json(notification),
            str(notification.is_read),
            notification.created_at.isoformat(),
            notification.updated_at.isoformat(),
        ]

    @staticmethod
    def row_to_notification(row: list) -> Notification:
        metadata_json = _safe_get(row, 6)
        return Notification(
            id=UUID(_safe_get(row, 0)),
            user_id=_safe_get(row, 1),
            type=NotificationType(_safe_get(row, 2)),
            context_id=_safe_get(row, 3) or None,
            title=_safe_get(row, 4),
            message=_safe_get(row, 5),
            metadata=NotificationMetadata.model_validate(json.loads(metadata_json)) if metadata_json else None,
            is_read=_as_bool(_safe_get(row, 7)),
            created_at=datetime.fromisoformat(_safe_get(row, 8)),
            updated_at=datetime.fromisoformat(_safe_get(row, 9)),
        )

    def _user_rows(self, sheet: gspread.Worksheet, user_id: str) -> list[tuple[int, Notification]]:
        rows = []
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
            if row and row[0] and _safe_get(row, 1) == user_id:
                rows.append((idx, self.row_to_notification(row)))
        return rows

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def upsert(self, notification: Notification) -> Notification:
        try:
            sheet = self._sheet()
            for idx, existing in self._user_rows(sheet, notification.user_id):
                if existing.key != notification.key:
                    continue
                updated = existing.model_copy(
                    update={
                        "title": notification.title,
                        "message": notification.message,
                        "metadata": notification.metadata,
                        "updated_at": datetime.utcnow(),
                    }
                )
                sheet.update_cell(idx, self._TITLE_COL, updated.title)
                sheet.update_cell(idx, self._MESSAGE_COL, updated.message)
                sheet.update_cell(idx, self._METADATA_COL, self._metadata_json(updated))
                sheet.update_cell(idx, self._UPDATED_AT_COL, updated.updated_at.isoformat())
                return updated

            sheet.append_row(self.notification_to_row(notification), value_input_option="RAW")
            return notification
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to upsert notification: {e}")

    async def list_for_user(self, user_id: str) -> list[Notification]:
        try:
            notifications = [n for _, n in self._user_rows(self._sheet(), user_id)]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list notifications: {e}")
        notifications.sort(key=lambda n: n.created_at, reverse=True)
        notifications.sort(key=lambda n: n.is_read)
        return notifications

    async def mark_read(self, user_id: str, ids: list[UUID], is_read: bool) -> int:
        if not ids:
            return 0
        wanted = set(ids)
        try:
            sheet = self._sheet()
            updated = 0
            for idx, notification in self._user_rows(sheet, user_id):
                if notification.id in wanted:
                    sheet.update_cell(idx, self._IS_READ_COL, str(is_read))
                    sheet.update_cell(idx, self._UPDATED_AT_COL, datetime.utcnow().isoformat())
                    updated += 1
            return updated
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update notifications: {e}")

    async def mark_all_read(self, user_id: str) -> int:
        try:
            sheet = self._sheet()
            updated = 0
            for idx, notification in self._user_rows(sheet, user_id):
                if not notification.is_read:
                    sheet.update_cell(idx, self._IS_READ_COL, "True")
                    sheet.update_cell(idx, self._UPDATED_AT_COL, datetime.utcnow().isoformat())
                    updated += 1
            return updated
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update notifications: {e}")

    async def delete(self, user_id: str, ids: list[UUID]) -> int:
        if not ids:
            return 0
        wanted = set(ids)
        try:
            sheet = self._sheet()
            doomed = [
                idx for idx, notification in self._user_rows(sheet, user_id)
                if notification.id in wanted
            ]
            # Bottom-up so earlier row numbers stay valid
            for idx in sorted(doomed, reverse=True):
                sheet.delete_rows(idx)
            return len(doomed)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete notifications: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(self._client.settings.audit_sheet_name)

    @staticmethod
    def row_to_event(row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            user_id=_safe_get(row, 4) or None,
            entity_type=_safe_get(row, 5) or None,
            entity_id=_safe_get(row, 6) or None,
            correlation_id=UUID(_safe_get(row, 7)) if _safe_get(row, 7) else None,
            description=_safe_get(row, 8),
            details=json.loads(_safe_get(row, 9)) if _safe_get(row, 9) else {},
            error_message=_safe_get(row, 10) or None,
            is_user_action=_as_bool(_safe_get(row, 11)),
        )

    def _all_events(self) -> list[AuditEvent]:
        events = []
        for row in self._sheet().get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self.row_to_event(row))
            except (ValueError, json.JSONDecodeError):
                logger.warning("audit_row_unreadable", event_id=row[0])
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning("audit_event_write_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [e for e in self._all_events() if e.correlation_id == correlation_id]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        try:
            events = [
                e for e in self._all_events()
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = self._all_events()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
