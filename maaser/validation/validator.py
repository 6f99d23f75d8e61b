"""
Two-Stage Validation Pipeline

DESIGN DECISION: Validation of create payloads happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Rules that depend on the schedule or donation type
- multiMonth incomes need a positive total_months
- installments donations need a positive installments_total
- Types, ranges and enum spellings are already enforced by the pydantic
  payload models before we get here

STAGE 2 - SEMANTIC VALIDATION:
- Plausibility checks that never block
- Zero amounts
- Absurd amounts
- Dates far in the future
- More installments paid than scheduled

WHY TWO STAGES:
1. Separation of concerns (structural vs logical)
2. Better error messages (know exactly what kind of issue)
3. Can skip stage 2 if stage 1 fails

IMPORTANT: Validation NEVER silently fixes issues.
It reports them; the caller decides.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional, Union

from maaser.config import TrackerSettings, get_settings
from maaser.engine.currency import convert_amount
from maaser.models.finance import (
    Currency,
    DonationPayload,
    DonationType,
    IncomePayload,
    IncomeSchedule,
)
from maaser.models.validation import ValidationIssue, ValidationResult


class RecordValidationError(ValueError):
    """A payload failed schema validation."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(
            issue.message for issue in result.issues if issue.severity == "error"
        )
        super().__init__(f"Invalid {result.entity_type}: {messages}")


class RecordValidator:
    """
    Validates income and donation payloads through a two-stage pipeline.

    Stage 1: Schema validation (errors)
    Stage 2: Semantic validation (warnings only)
    """

    def __init__(self, settings: Optional[TrackerSettings] = None):
        self._settings = settings or get_settings().tracker

    # -------------------------------------------------------------------------
    # Stage 1
    # -------------------------------------------------------------------------

    def _validate_income_schema(
        self,
        payload: IncomePayload,
    ) -> tuple[bool, list[ValidationIssue]]:
        issues = []

        if payload.schedule == IncomeSchedule.MULTI_MONTH:
            if payload.total_months is None:
                issues.append(ValidationIssue(
                    field="total_months",
                    issue_type="missing",
                    message="A multi-month income needs the number of months it covers",
                    severity="error",
                    suggested_fix="Enter how many months this income is paid for",
                ))
            elif payload.total_months < 1:
                issues.append(ValidationIssue(
                    field="total_months",
                    issue_type="invalid_value",
                    message="Number of months must be at least 1",
                    severity="error",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_donation_schema(
        self,
        payload: DonationPayload,
    ) -> tuple[bool, list[ValidationIssue]]:
        issues = []

        if payload.type == DonationType.INSTALLMENTS:
            if payload.installments_total is None:
                issues.append(ValidationIssue(
                    field="installments_total",
                    issue_type="missing",
                    message="An installments donation needs the total number of installments",
                    severity="error",
                    suggested_fix="Enter how many installments were pledged",
                ))
            elif payload.installments_total < 1:
                issues.append(ValidationIssue(
                    field="installments_total",
                    issue_type="invalid_value",
                    message="Number of installments must be at least 1",
                    severity="error",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    # -------------------------------------------------------------------------
    # Stage 2
    # -------------------------------------------------------------------------

    def _amount_issues(self, amount: Decimal, currency: Currency) -> list[ValidationIssue]:
        issues = []
        if amount == 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message="Amount is zero",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        amount_ils = convert_amount(amount, currency, Currency.ILS, self._settings.usd_to_ils_rate)
        if amount_ils > self._settings.max_reasonable_amount_ils:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({amount:,.2f} {currency.value}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))
        return issues

    def _date_issues(self, field: str, value: date, today: date) -> list[ValidationIssue]:
        max_future_date = today + timedelta(days=self._settings.future_date_tolerance_days)
        if value > max_future_date:
            return [ValidationIssue(
                field=field,
                issue_type="future_date",
                message=f"Date ({value}) is far in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            )]
        return []

    def _validate_income_semantic(
        self,
        payload: IncomePayload,
        today: date,
    ) -> tuple[bool, list[ValidationIssue]]:
        issues = self._amount_issues(payload.amount, payload.currency)
        issues.extend(self._date_issues("date", payload.date, today))
        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_donation_semantic(
        self,
        payload: DonationPayload,
        today: date,
    ) -> tuple[bool, list[ValidationIssue]]:
        issues = self._amount_issues(payload.amount, payload.currency)
        issues.extend(self._date_issues("start_date", payload.start_date, today))

        if (
            payload.type == DonationType.INSTALLMENTS
            and payload.installments_total is not None
            and payload.installments_paid is not None
            and payload.installments_paid > payload.installments_total
        ):
            issues.append(ValidationIssue(
                field="installments_paid",
                issue_type="inconsistent",
                message=(
                    f"Installments paid ({payload.installments_paid}) exceeds "
                    f"the total ({payload.installments_total})"
                ),
                severity="warning",
                suggested_fix="Please verify both installment counts",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    def _run(self, entity_type: str, schema_stage, semantic_stage) -> ValidationResult:
        all_issues = []

        schema_valid, schema_issues = schema_stage()
        all_issues.extend(schema_issues)

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = semantic_stage()
            all_issues.extend(semantic_issues)

        warnings = [issue.message for issue in all_issues if issue.severity == "warning"]

        return ValidationResult(
            entity_type=entity_type,
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=warnings,
        )

    def validate_income(
        self,
        payload: IncomePayload,
        today: Optional[date] = None,
    ) -> ValidationResult:
        """Run the two-stage pipeline on an income payload."""
        today = today or date.today()
        return self._run(
            "income",
            lambda: self._validate_income_schema(payload),
            lambda: self._validate_income_semantic(payload, today),
        )

    def validate_donation(
        self,
        payload: DonationPayload,
        today: Optional[date] = None,
    ) -> ValidationResult:
        """Run the two-stage pipeline on a donation payload."""
        today = today or date.today()
        return self._run(
            "donation",
            lambda: self._validate_donation_schema(payload),
            lambda: self._validate_donation_semantic(payload, today),
        )

    def validate(
        self,
        payload: Union[IncomePayload, DonationPayload],
        today: Optional[date] = None,
    ) -> ValidationResult:
        if isinstance(payload, IncomePayload):
            return self.validate_income(payload, today)
        return self.validate_donation(payload, today)

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show to non-technical users.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed."

        lines = []

        if not result.schema_valid:
            lines.append("❌ Some required information is missing or invalid:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
