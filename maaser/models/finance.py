"""
Core Financial Models for Maaser Tracker

These models define the strict schemas for the raw records (incomes,
donations, settings) and for the derived snapshots the engine produces.

DESIGN DECISION: Currency, schedule, source, donation type and carry
strategy are closed enums. Free-form strings coming from storage or from
a client are parsed ONCE here, at deserialization, and business logic
only ever sees enum members.

Derived models (MonthlySnapshot, YearSnapshot, ComputedMonth, ComputedYear)
are never persisted. They are recomputed from the raw records on every read.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    model_validator,
)


def _normalize_token(value: str) -> str:
    return value.strip().replace("_", "").replace("-", "").replace(" ", "").lower()


class _LenientStrEnum(str, Enum):
    """
    String enum that also accepts legacy storage spellings.

    "ONE_TIME", "one_time" and "oneTime" all resolve to the same member.
    """

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            normalized = _normalize_token(value)
            for member in cls:
                if _normalize_token(member.value) == normalized:
                    return member
        return None


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Currency(_LenientStrEnum):
    """Supported currencies. The user's base currency is one of these."""
    ILS = "ILS"
    USD = "USD"


class IncomeSource(_LenientStrEnum):
    """Who earned a variable income entry."""
    SELF = "self"
    SPOUSE = "spouse"
    OTHER = "other"


class IncomeSchedule(_LenientStrEnum):
    """
    Temporal applicability of an income record.

    ONE_TIME applies to its anchor month only, RECURRING to every month from
    the anchor onward, MULTI_MONTH to `total_months` months from the anchor.
    """
    ONE_TIME = "oneTime"
    RECURRING = "recurring"
    MULTI_MONTH = "multiMonth"


class DonationType(_LenientStrEnum):
    """Donation kinds. Only the start month is ever attributed (see engine.schedule)."""
    ONE_TIME = "oneTime"
    RECURRING = "recurring"
    INSTALLMENTS = "installments"


class CarryStrategy(_LenientStrEnum):
    """
    How a year's terminal balance flows into the next year.

    The deprecated month-level values CARRY_FORWARD and ASK_ME are folded
    into CARRY when parsed.
    """
    CARRY = "carry"
    CARRY_POSITIVE_ONLY = "carryPositiveOnly"
    RESET = "reset"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str) and _normalize_token(value) in _LEGACY_CARRY_ALIASES:
            return cls.CARRY
        return super()._missing_(value)


_LEGACY_CARRY_ALIASES = {"carryforward", "askme"}


class Language(_LenientStrEnum):
    HE = "he"
    EN = "en"


def _enum_parser(enum_cls):
    def parse(value):
        if isinstance(value, str) and not isinstance(value, enum_cls):
            return enum_cls(value)
        return value
    return parse


CurrencyCode = Annotated[Currency, BeforeValidator(_enum_parser(Currency))]


# =============================================================================
# RAW RECORDS
# =============================================================================

class VariableIncomeRecord(BaseModel):
    """
    A dated income entry.

    `date` is the anchor month for scheduling; the day of month is kept
    for display only.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique income ID"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        description="Owner of the record"
    )
    description: str = Field(
        ...,
        min_length=1,
        max_length=200,
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount in `currency`"
    )
    currency: CurrencyCode = Currency.ILS
    source: Annotated[IncomeSource, BeforeValidator(_enum_parser(IncomeSource))] = IncomeSource.SELF
    schedule: Annotated[IncomeSchedule, BeforeValidator(_enum_parser(IncomeSchedule))] = IncomeSchedule.ONE_TIME
    # Tolerated as <= 0 here: the scheduler degrades it to a one-time entry.
    total_months: Optional[int] = Field(
        default=None,
        description="Inclusive span in months, multiMonth only"
    )
    note: Optional[str] = Field(
        default=None,
        max_length=1000,
    )
    date: date

    @model_validator(mode='after')
    def drop_span_for_unbounded_schedules(self) -> 'VariableIncomeRecord':
        """total_months only exists for multiMonth incomes."""
        if self.schedule != IncomeSchedule.MULTI_MONTH:
            self.total_months = None
        return self


class DonationRecord(BaseModel):
    """
    A donation entry.

    Installment counters are only meaningful for INSTALLMENTS donations.
    `installments_paid <= installments_total` is deliberately not enforced.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    organization: str = Field(
        ...,
        min_length=1,
        max_length=200,
    )
    amount: Decimal = Field(..., ge=0)
    currency: CurrencyCode = Currency.ILS
    type: Annotated[DonationType, BeforeValidator(_enum_parser(DonationType))] = DonationType.RECURRING
    start_date: date
    installments_total: Optional[int] = Field(default=None, ge=0)
    installments_paid: Optional[int] = Field(default=None, ge=0)
    # None means "derive from type"
    is_active: Optional[bool] = None
    note: Optional[str] = Field(default=None, max_length=1000)

    @model_validator(mode='after')
    def normalize_type_dependent_fields(self) -> 'DonationRecord':
        if self.type != DonationType.INSTALLMENTS:
            self.installments_total = None
            self.installments_paid = None
        if self.is_active is None:
            self.is_active = self.type != DonationType.ONE_TIME
        return self

    @property
    def installments_remaining(self) -> Optional[int]:
        if self.installments_total is None:
            return None
        return max(self.installments_total - (self.installments_paid or 0), 0)


class IncomePayload(BaseModel):
    """Client payload for creating or replacing an income entry."""
    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0)
    currency: CurrencyCode = Currency.ILS
    source: Annotated[IncomeSource, BeforeValidator(_enum_parser(IncomeSource))] = IncomeSource.SELF
    schedule: Annotated[IncomeSchedule, BeforeValidator(_enum_parser(IncomeSchedule))] = IncomeSchedule.ONE_TIME
    total_months: Optional[int] = None
    note: Optional[str] = Field(default=None, max_length=1000)
    date: date

    def to_record(self, user_id: str, record_id: Optional[UUID] = None) -> VariableIncomeRecord:
        data = self.model_dump()
        if record_id is not None:
            data["id"] = record_id
        return VariableIncomeRecord(user_id=user_id, **data)


class DonationPayload(BaseModel):
    """Client payload for creating a donation entry."""
    model_config = ConfigDict(str_strip_whitespace=True)

    organization: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0)
    currency: CurrencyCode = Currency.ILS
    type: Annotated[DonationType, BeforeValidator(_enum_parser(DonationType))] = DonationType.RECURRING
    start_date: date
    installments_total: Optional[int] = Field(default=None, ge=0)
    installments_paid: Optional[int] = Field(default=None, ge=0)
    note: Optional[str] = Field(default=None, max_length=1000)

    def to_record(self, user_id: str) -> DonationRecord:
        return DonationRecord(user_id=user_id, **self.model_dump())


# =============================================================================
# USER SETTINGS
# =============================================================================

class FixedIncomeSettings(BaseModel):
    """Flat monthly income that is not tied to any dated record."""

    personal: Decimal = Decimal("0")
    spouse: Decimal = Decimal("0")
    include_spouse: bool = False

    @property
    def monthly_total(self) -> Decimal:
        return self.personal + (self.spouse if self.include_spouse else Decimal("0"))


class UserFinancialSettings(BaseModel):
    """
    Per-user financial configuration.

    `tithe_percent` is a whole percentage (10 means 10%). It is turned into
    a fraction only when a YearSnapshot is built.
    """

    language: Annotated[Language, BeforeValidator(_enum_parser(Language))] = Language.HE
    currency: CurrencyCode = Currency.ILS
    tithe_percent: Decimal = Field(
        default=Decimal("10"),
        gt=0,
        description="Obligation as a whole percentage of income"
    )
    fixed_income: FixedIncomeSettings = Field(default_factory=FixedIncomeSettings)
    starting_balance: Decimal = Field(
        default=Decimal("0"),
        description="Balance carried into the first tracked month"
    )
    carry_strategy: Annotated[CarryStrategy, BeforeValidator(_enum_parser(CarryStrategy))] = CarryStrategy.CARRY
    is_first_time_setup_completed: bool = False


class SettingsUpdate(BaseModel):
    """Partial settings update. Unset fields keep their stored value."""

    language: Optional[Annotated[Language, BeforeValidator(_enum_parser(Language))]] = None
    currency: Optional[CurrencyCode] = None
    tithe_percent: Optional[Decimal] = Field(default=None, gt=0)
    fixed_income: Optional[FixedIncomeSettings] = None
    starting_balance: Optional[Decimal] = None
    carry_strategy: Optional[Annotated[CarryStrategy, BeforeValidator(_enum_parser(CarryStrategy))]] = None
    is_first_time_setup_completed: Optional[bool] = None


class OnboardingResult(BaseModel):
    """What the first-time setup stored."""

    settings: UserFinancialSettings
    incomes: list[VariableIncomeRecord] = Field(default_factory=list)
    donations: list[DonationRecord] = Field(default_factory=list)


# =============================================================================
# DERIVED SNAPSHOTS (never persisted)
# =============================================================================

class MonthlySnapshot(BaseModel):
    """Per-month totals in the base currency."""

    id: str = Field(..., description="YYYY-MM")
    month_index: int = Field(..., ge=0, le=11)
    incomes_base: Decimal = Decimal("0")
    fixed_income_base: Decimal = Decimal("0")
    variable_income_base: Decimal = Decimal("0")
    donations_base: Decimal = Decimal("0")
    converted_entries: int = Field(default=0, ge=0)
    converted_total: Decimal = Decimal("0")


class YearSnapshot(BaseModel):
    """Twelve monthly snapshots for one calendar year."""

    year: int
    base_currency: Currency
    tithe_percent: Decimal = Field(..., description="Obligation as a fraction (0.10)")
    starting_balance: Decimal = Decimal("0")
    carry_strategy: CarryStrategy = CarryStrategy.CARRY
    monthly: list[MonthlySnapshot] = Field(..., min_length=12, max_length=12)


class ComputedMonth(MonthlySnapshot):
    """A monthly snapshot with obligation and balance applied."""

    obligation: Decimal
    running_balance: Decimal
    progress: Decimal = Field(..., ge=0, le=1)


class YearTotals(BaseModel):
    income: Decimal = Decimal("0")
    donations: Decimal = Decimal("0")
    obligation: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")
    converted_total: Decimal = Decimal("0")
    converted_count: int = 0


class ComputedYear(BaseModel):
    year: YearSnapshot
    months: list[ComputedMonth]
    totals: YearTotals


class DashboardData(BaseModel):
    """What the presentation layer consumes."""

    years: list[ComputedYear]
    settings: UserFinancialSettings
    generated_at: datetime = Field(default_factory=datetime.utcnow)
