"""
Tests for PayoutPreviewService.

Covers:
- Month preview line set, order and category partition
- FX resolution (caller, store, configured default)
- Month resolution failures and the fatal configuration guard
- Range totals, sequential and threaded
"""

from decimal import Decimal

import pytest

from agency_engines.basis import BasisType
from agency_engines.categories import PayoutCategory, Role
from agency_engines.members import AgencyRevenue
from agency_kernel.exceptions import (
    AmbiguousPercentageConfigError,
    InvalidExchangeRateError,
    InvalidMonthKeyError,
    MonthNotFoundError,
)
from agency_services.payout_preview_service import PayoutPreviewService

from agency_factories import MONTH_ID, MONTH_KEY, make_entry, make_member, make_pnl


@pytest.fixture
def service(store, settings_service, deterministic_clock):
    return PayoutPreviewService(store, settings_service, deterministic_clock)


@pytest.fixture
def two_month_store(store):
    """Adds February: talent revenue only, no basis entries, no agency revenue."""
    store.add_month("rec-month-2025-02", "2025-02", "February 2025")
    store.add_pnl_records([make_pnl("model-1", month_key="2025-02", gross="1000", net="800")])
    return store


class TestComputePreviewPayouts:

    def test_lines_and_order(self, service):
        result = service.compute_preview_payouts(MONTH_ID)

        assert result.month_key == MONTH_KEY
        assert [line.line_key for line in result.lines] == [
            "member:chatter-1",
            "member:manager-1",
            "model:model-1",
            f"affiliate:aff-1:{MONTH_KEY}",
        ]
        chatter, manager, model, affiliate = result.lines
        assert chatter.payout_amount == Decimal("150.00")
        assert manager.payout_amount == Decimal("500.00")
        assert manager.amount_usd == Decimal("543.48")
        assert model.payout_amount == Decimal("1200.00")
        assert model.team_member_id == "payee-1"
        assert affiliate.payout_amount == Decimal("400.00")

    def test_categories_partition_lines(self, service):
        result = service.compute_preview_payouts(MONTH_ID)

        assert set(result.by_category) == set(PayoutCategory)
        assert sum(len(lines) for lines in result.by_category.values()) == len(result.lines)
        assert len(result.by_category[PayoutCategory.CHATTER]) == 1
        assert len(result.by_category[PayoutCategory.MANAGER]) == 1
        assert len(result.by_category[PayoutCategory.MODEL]) == 1
        assert len(result.by_category[PayoutCategory.AFFILIATE]) == 1
        assert result.by_category[PayoutCategory.VA] == ()

    def test_deterministic(self, service):
        assert service.compute_preview_payouts(MONTH_ID) == service.compute_preview_payouts(MONTH_ID)

    def test_diagnostics(self, service, store):
        store.add_basis_entries([make_entry("x1", "ghost", BasisType.BONUS, amount_usd=Decimal("5"))])
        diagnostics = service.compute_preview_payouts(MONTH_ID).diagnostics

        assert diagnostics.fx_rate == Decimal("0.92")
        assert diagnostics.fx_source == "store"
        assert diagnostics.dropped_basis_count == 1
        assert diagnostics.dropped_member_ids == ("ghost",)
        assert diagnostics.affiliate_deals_in_range == 1
        assert diagnostics.matched_model_count == 1
        assert diagnostics.affiliate_total_usd == Decimal("400.00")

    def test_fixed_bulk_reads(self, service, store):
        service.compute_preview_payouts(MONTH_ID)
        for name in (
            "get_month",
            "list_team_members",
            "list_basis_entries",
            "get_agency_revenue",
            "list_models",
            "list_pnl_records",
            "list_active_affiliate_deals",
            "get_fx_rate",
        ):
            assert store.calls[name] == 1, name

    def test_month_key_bound_in_logs(self, service, captured_logs):
        service.compute_preview_payouts(MONTH_ID)
        [completed] = [r for r in captured_logs() if r["message"] == "payout_preview_completed"]
        assert completed["month_key"] == MONTH_KEY
        assert completed["line_count"] == 4

    def test_missing_month(self, service):
        with pytest.raises(MonthNotFoundError):
            service.compute_preview_payouts("rec-nope")

    def test_malformed_month_key(self, service, store):
        store.add_month("rec-bad", "2025/01")
        with pytest.raises(InvalidMonthKeyError):
            service.compute_preview_payouts("rec-bad")

    def test_ambiguous_config_aborts_month(self, service, store):
        store.add_team_members(
            [
                make_member(
                    "manager-2",
                    role=Role.CHATTING_MANAGER,
                    gunzo_percentage=Decimal("3"),
                    gunzo_percentage_messages_tips=Decimal("2"),
                )
            ]
        )
        with pytest.raises(AmbiguousPercentageConfigError):
            service.compute_preview_payouts(MONTH_ID)


class TestFxResolution:

    def test_caller_rate_wins(self, service):
        result = service.compute_preview_payouts(MONTH_ID, fx_rate="0.5")
        assert result.diagnostics.fx_source == "caller"
        assert result.lines[1].amount_usd == Decimal("1000.00")

    def test_caller_rate_must_be_positive(self, service):
        with pytest.raises(InvalidExchangeRateError):
            service.compute_preview_payouts(MONTH_ID, fx_rate="0")

    def test_missing_store_rate_uses_default(self, service, store):
        store.fx_rate = None
        snapshot = service.resolve_fx()
        assert snapshot.source == "default"
        assert snapshot.rate == Decimal("0.92")

    def test_store_failure_uses_default(self, service, store, captured_logs):
        store.fx_error = RuntimeError("store unavailable")
        snapshot = service.resolve_fx()
        assert snapshot.source == "default"
        assert any(r["message"] == "fx_rate_fetch_failed" for r in captured_logs())

    def test_stored_setting_changes_default(self, service, store):
        store.fx_rate = None
        store.settings = {"default_fx_rate": "0.8"}
        assert service.resolve_fx().rate == Decimal("0.8")


class TestLivePayoutsInRange:

    def test_single_month_totals(self, service):
        result = service.compute_live_payouts_in_range(MONTH_KEY, MONTH_KEY)

        assert result.by_team_member_id == {
            "chatter-1": Decimal("150.00"),
            "manager-1": Decimal("543.48"),
        }
        assert result.by_model_id == {"model-1": Decimal("1200.00")}
        assert result.affiliate_total_usd == Decimal("400.00")
        assert result.total_payout_usd == Decimal("2293.48")
        assert result.item_count == 4

    def test_two_months_skip_zero_lines(self, two_month_store, service):
        result = service.compute_live_payouts_in_range("2025-01", "2025-02")

        assert result.by_model_id == {"model-1": Decimal("1440.00")}
        assert result.affiliate_total_usd == Decimal("480.00")
        assert result.total_payout_usd == Decimal("2613.48")
        assert result.item_count == 6

    def test_threaded_matches_sequential(self, two_month_store, settings_service, deterministic_clock):
        sequential = PayoutPreviewService(two_month_store, settings_service, deterministic_clock)
        threaded = PayoutPreviewService(
            two_month_store, settings_service, deterministic_clock, max_workers=4
        )
        assert threaded.compute_live_payouts_in_range(
            "2025-01", "2025-02"
        ) == sequential.compute_live_payouts_in_range("2025-01", "2025-02")

    def test_fx_resolved_once_per_range(self, two_month_store, service):
        service.compute_live_payouts_in_range("2025-01", "2025-02")
        assert two_month_store.calls["get_fx_rate"] == 1

    def test_empty_range(self, service):
        result = service.compute_live_payouts_in_range("2030-01", "2030-12")
        assert result.item_count == 0
        assert result.total_payout_usd == Decimal("0.00")

    def test_invalid_key(self, service):
        with pytest.raises(InvalidMonthKeyError):
            service.compute_live_payouts_in_range("2025-1", "2025-02")

    def test_eur_native_lines_summed_in_usd(self, store, settings_service, deterministic_clock):
        store.set_agency_revenue(MONTH_ID, AgencyRevenue(chatting_amount_eur=Decimal("920")))
        service = PayoutPreviewService(store, settings_service, deterministic_clock)
        result = service.compute_live_payouts_in_range(MONTH_KEY, MONTH_KEY)
        assert result.by_team_member_id["manager-1"] == Decimal("50.00")
