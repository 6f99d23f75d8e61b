"""Shared fixtures: record factories and a wired in-memory tracker."""

from datetime import date
from decimal import Decimal

import pytest

from maaser.audit import AuditLogger
from maaser.config import TrackerSettings
from maaser.models.finance import DonationRecord, VariableIncomeRecord
from maaser.orchestrator import TitheTracker
from maaser.services.storage import InMemoryStorage

USER_ID = "user-1"


@pytest.fixture
def make_income():
    def factory(**overrides) -> VariableIncomeRecord:
        data = {
            "user_id": USER_ID,
            "description": "Salary bonus",
            "amount": Decimal("1000"),
            "currency": "ILS",
            "schedule": "oneTime",
            "date": date(2024, 1, 15),
        }
        data.update(overrides)
        return VariableIncomeRecord(**data)
    return factory


@pytest.fixture
def make_donation():
    def factory(**overrides) -> DonationRecord:
        data = {
            "user_id": USER_ID,
            "organization": "Food bank",
            "amount": Decimal("100"),
            "currency": "ILS",
            "type": "oneTime",
            "start_date": date(2024, 1, 15),
        }
        data.update(overrides)
        return DonationRecord(**data)
    return factory


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def tracker(storage):
    """Tracker over one in-memory store, with the clock fixed to 2024-06-15."""
    return TitheTracker(
        record_storage=storage,
        settings_storage=storage,
        notification_storage=storage,
        audit_logger=AuditLogger(storage),
        tracker_settings=TrackerSettings(),
        clock=lambda: date(2024, 6, 15),
    )
