"""Tests for natural identity keys."""

import pytest

from agency_kernel.exceptions import IdentityKeyError
from agency_kernel.utils.identity import (
    affiliate_line_identity_key,
    derive_week_key,
    is_month_key,
    parse_pnl_identity_key,
    payout_line_identity_key,
    pnl_identity_key,
    weekly_forecast_identity_key,
)


class TestMonthKey:

    @pytest.mark.parametrize("value", ["2025-01", "1999-12", " 2025-06 "])
    def test_valid(self, value):
        assert is_month_key(value)

    @pytest.mark.parametrize("value", ["", None, "2025-1", "2025-13", "2025-00", "25-01", "2025/01"])
    def test_invalid(self, value):
        assert not is_month_key(value)


class TestPnlKey:

    def test_build(self):
        assert pnl_identity_key("rec123", "2025-01", "actual") == "rec123-2025-01-actual"

    def test_parse_round_trip_with_dashes_in_model_id(self):
        key = pnl_identity_key("rec-with-dashes", "2025-01", "forecast")
        assert parse_pnl_identity_key(key) == ("rec-with-dashes", "2025-01", "forecast")

    @pytest.mark.parametrize(
        "model_id,month_key,status",
        [("", "2025-01", "actual"), ("m", "2025-13", "actual"), ("m", "2025-01", "budget")],
    )
    def test_build_rejects_bad_parts(self, model_id, month_key, status):
        with pytest.raises(IdentityKeyError):
            pnl_identity_key(model_id, month_key, status)

    def test_parse_rejects_garbage(self):
        with pytest.raises(IdentityKeyError):
            parse_pnl_identity_key("not-a-key")


class TestWeeklyKeys:

    def test_week_key(self):
        assert derive_week_key("2026-01-29", "2026-02-04") == "2026-01-29_to_2026-02-04"

    def test_week_key_with_one_side(self):
        assert derive_week_key("2026-01-29", None) == "2026-01-29"
        assert derive_week_key(None, "") == ""

    def test_unknown_scenario_collapses_to_expected(self):
        assert weekly_forecast_identity_key("m1", "w1", "wild") == "m1-w1-expected"
        assert weekly_forecast_identity_key("m1", "w1", "aggressive") == "m1-w1-aggressive"

    def test_weekly_requires_ids(self):
        with pytest.raises(IdentityKeyError):
            weekly_forecast_identity_key("", "w1", "expected")


class TestPayoutLineKeys:

    def test_model_wins_over_member(self):
        assert payout_line_identity_key("payee-1", "model-1") == "model:model-1"
        assert payout_line_identity_key("member-1", None) == "member:member-1"

    def test_line_needs_a_subject(self):
        with pytest.raises(IdentityKeyError):
            payout_line_identity_key(None, None)

    def test_affiliate_key(self):
        assert affiliate_line_identity_key("aff-1", "2025-01") == "affiliate:aff-1:2025-01"
        with pytest.raises(IdentityKeyError):
            affiliate_line_identity_key("aff-1", "January")
