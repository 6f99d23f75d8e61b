"""
Spreadsheet Schema Migrations

DESIGN DECISION: The worksheet layout is versioned. Migrations are applied
ONCE, at deploy time, by running:

    python -m maaser.services.storage.migrations

Storage adapters never create worksheets or add columns while serving a
request. If the spreadsheet is behind SCHEMA_VERSION they refuse to run
(SchemaVersionError) instead of patching it on the fly.

Applied migrations are recorded in a dedicated worksheet, one row per
version: [version, description, applied_at].
"""

from datetime import datetime
from typing import Callable, NamedTuple, Optional

import gspread
import structlog

from maaser.config import GoogleSheetsSettings, get_settings
from maaser.services.storage.interface import SchemaVersionError

logger = structlog.get_logger(__name__)


INCOME_COLUMNS = [
    "id",
    "user_id",
    "description",
    "amount",
    "currency",
    "source",
    "date",
    "schedule",
    "total_months",
    "note",
]

DONATION_COLUMNS = [
    "id",
    "user_id",
    "organization",
    "amount",
    "currency",
    "type",
    "start_date",
    "installments_total",
    "installments_paid",
    "is_active",
    "note",
]

SETTINGS_COLUMNS = [
    "user_id",
    "language",
    "currency",
    "tithe_percent",
    "fixed_personal_income",
    "fixed_spouse_income",
    "include_spouse_income",
    "starting_balance",
    "carry_strategy",
    "is_first_time_setup_completed",
    "updated_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

# (user_id, type, context_id) is the logical unique key
NOTIFICATION_COLUMNS = [
    "id",
    "user_id",
    "type",
    "context_id",
    "title",
    "message",
    "metadata_json",
    "is_read",
    "created_at",
    "updated_at",
]

SCHEMA_COLUMNS = ["version", "description", "applied_at"]


class Migration(NamedTuple):
    version: int
    description: str
    apply: Callable[[gspread.Spreadsheet, GoogleSheetsSettings], None]


def ensure_worksheet(
    spreadsheet: gspread.Spreadsheet,
    title: str,
    columns: list[str],
    rows: int = 1000,
) -> gspread.Worksheet:
    """Create a worksheet with a header row, or add the header if it is blank."""
    try:
        sheet = spreadsheet.worksheet(title)
    except gspread.WorksheetNotFound:
        sheet = spreadsheet.add_worksheet(title=title, rows=rows, cols=len(columns))
        sheet.append_row(columns)
        return sheet

    if not sheet.row_values(1):
        sheet.append_row(columns)
    return sheet


def _create_core_worksheets(
    spreadsheet: gspread.Spreadsheet,
    settings: GoogleSheetsSettings,
) -> None:
    ensure_worksheet(spreadsheet, settings.incomes_sheet_name, INCOME_COLUMNS)
    ensure_worksheet(spreadsheet, settings.donations_sheet_name, DONATION_COLUMNS)
    ensure_worksheet(spreadsheet, settings.settings_sheet_name, SETTINGS_COLUMNS)
    ensure_worksheet(spreadsheet, settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


def _create_notifications_worksheet(
    spreadsheet: gspread.Spreadsheet,
    settings: GoogleSheetsSettings,
) -> None:
    ensure_worksheet(spreadsheet, settings.notifications_sheet_name, NOTIFICATION_COLUMNS)


MIGRATIONS: list[Migration] = [
    Migration(1, "create incomes, donations, settings and audit worksheets", _create_core_worksheets),
    Migration(2, "create notifications worksheet keyed by user, type and context", _create_notifications_worksheet),
]

SCHEMA_VERSION = MIGRATIONS[-1].version


def get_applied_version(
    spreadsheet: gspread.Spreadsheet,
    settings: GoogleSheetsSettings,
) -> int:
    """Highest recorded migration version, 0 for a fresh spreadsheet."""
    try:
        sheet = spreadsheet.worksheet(settings.schema_sheet_name)
    except gspread.WorksheetNotFound:
        return 0

    versions = []
    for row in sheet.get_all_values()[1:]:
        if row and row[0].strip().isdigit():
            versions.append(int(row[0]))
    return max(versions, default=0)


def apply_migrations(
    spreadsheet: gspread.Spreadsheet,
    settings: Optional[GoogleSheetsSettings] = None,
) -> list[int]:
    """
    Apply every pending migration in order.

    Returns:
        Versions applied by this call (empty when already current)
    """
    settings = settings or get_settings().google_sheets
    current = get_applied_version(spreadsheet, settings)
    schema_sheet = ensure_worksheet(
        spreadsheet, settings.schema_sheet_name, SCHEMA_COLUMNS, rows=100
    )

    applied = []
    for migration in MIGRATIONS:
        if migration.version <= current:
            continue
        logger.info(
            "schema_migration_started",
            version=migration.version,
            description=migration.description,
        )
        migration.apply(spreadsheet, settings)
        schema_sheet.append_row([
            str(migration.version),
            migration.description,
            datetime.utcnow().isoformat(),
        ])
        applied.append(migration.version)

    logger.info("schema_migrations_complete", applied=applied, version=SCHEMA_VERSION)
    return applied


def ensure_schema_current(
    spreadsheet: gspread.Spreadsheet,
    settings: GoogleSheetsSettings,
) -> None:
    """
    Raises:
        SchemaVersionError: If migrations are pending
    """
    version = get_applied_version(spreadsheet, settings)
    if version < SCHEMA_VERSION:
        raise SchemaVersionError(
            f"Spreadsheet schema is at version {version}, expected {SCHEMA_VERSION}. "
            "Run `python -m maaser.services.storage.migrations` before starting."
        )


if __name__ == "__main__":
    from maaser.services.storage.google_sheets import GoogleSheetsClient

    applied_versions = apply_migrations(GoogleSheetsClient().get_spreadsheet())
    print(f"Applied migrations: {applied_versions or 'none (already current)'}")
