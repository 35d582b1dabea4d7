"""
Pytest fixtures for the agency ledger test suite.

Provides:
- Structured logging configured once per session, plus log capture
- SQLite in-memory database sessions (fresh schema per test)
- A DeterministicClock
- A seeded InMemoryRecordStore (builders live in agency_factories)
"""

import json
import logging
from collections.abc import Generator
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest
from sqlalchemy.orm import Session

from agency_config.schema import EngineSettings
from agency_engines.affiliate import AffiliateModelDeal
from agency_engines.basis import BasisType
from agency_engines.categories import Department, Role
from agency_engines.members import AgencyRevenue, PayoutType
from agency_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from agency_kernel.domain.clock import DeterministicClock
from agency_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from agency_services.record_store import InMemoryRecordStore
from agency_services.settings_service import SettingsService

from agency_factories import FX, MONTH_ID, MONTH_KEY, make_entry, make_member, make_model, make_pnl


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture agency_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            aggregate_basis(...)
            logs = captured_logs()
            assert any(r["message"] == "basis_entries_dropped" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("agency_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """A session on a fresh in-memory SQLite schema."""
    init_engine_from_url("sqlite://")
    create_tables()
    db_session = get_session()
    try:
        yield db_session
    finally:
        db_session.rollback()
        db_session.close()
        drop_tables()
        reset_engine()


# =============================================================================
# Time
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(datetime(2025, 2, 1, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def store() -> InMemoryRecordStore:
    """
    One month with a chatter, a chatting manager, an affiliator and one
    talent with actual revenue, plus an affiliate deal on that talent.
    """
    record_store = InMemoryRecordStore()
    record_store.add_month(MONTH_ID, MONTH_KEY, "January 2025")
    record_store.add_team_members(
        [
            make_member(
                "chatter-1",
                payout_type=PayoutType.PERCENTAGE,
                payout_percentage=Decimal("10"),
            ),
            make_member(
                "manager-1",
                role=Role.CHATTING_MANAGER,
                department=Department.CHATTING,
                payout_type=PayoutType.PERCENTAGE,
                chatting_percentage=Decimal("5"),
            ),
            make_member(
                "aff-1",
                role=Role.AFFILIATOR,
                department=Department.AFFILIATE,
                payout_type=PayoutType.PERCENTAGE,
            ),
        ]
    )
    record_store.add_basis_entries(
        [
            make_entry("b1", "chatter-1", BasisType.CHATTER_SALES, amount_usd=Decimal("1000")),
            make_entry("b2", "chatter-1", BasisType.BONUS, amount_usd=Decimal("50")),
        ]
    )
    record_store.set_agency_revenue(MONTH_ID, AgencyRevenue(chatting_amount_eur=Decimal("10000")))
    record_store.add_models([make_model("model-1", payee_team_member_id="payee-1")])
    record_store.add_pnl_records([make_pnl("model-1", gross="5000", net="4000")])
    record_store.add_affiliate_deals(
        [
            AffiliateModelDeal(
                id="deal-1",
                affiliator_id="aff-1",
                model_id="model-1",
                percentage=Decimal("10"),
            )
        ]
    )
    record_store.fx_rate = FX
    return record_store


@pytest.fixture
def settings_service(store, deterministic_clock) -> SettingsService:
    return SettingsService(store, deterministic_clock, defaults=EngineSettings())
