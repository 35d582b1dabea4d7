"""
Tests for the basis aggregator.

Covers:
- Per-member USD and EUR aggregates by basis type
- Currency fallbacks (USD, converted EUR, legacy amount)
- Hourly entries kept out of the ordinary sums
- Dropping entries for unknown or inactive members
- Legacy notes parsing and the hourly entry builder
"""

import json
from decimal import Decimal

import pytest

from agency_engines.basis import BasisEntry, BasisType, aggregate_basis, make_hourly_entry
from agency_kernel.exceptions import (
    DuplicateHourlyEntryError,
    InvalidHourlyEntryError,
    InvalidMonthKeyError,
)

from agency_factories import FX, MONTH_KEY, make_entry


class TestAggregation:
    """Sums per member and basis type."""

    def test_sales_bonus_and_fine(self):
        entries = [
            make_entry("e1", "m1", BasisType.CHATTER_SALES, amount_usd=Decimal("600")),
            make_entry("e2", "m1", BasisType.CHATTER_SALES, amount_usd=Decimal("400")),
            make_entry("e3", "m1", BasisType.BONUS, amount_usd=Decimal("50")),
            make_entry("e4", "m1", BasisType.FINE, amount_usd=Decimal("-20")),
        ]
        result = aggregate_basis(entries, {"m1"}, FX)

        usd = result.usd_for("m1")
        assert usd.chatter_sales.amount == Decimal("1000")
        assert usd.bonus.amount == Decimal("50")
        assert usd.adjustment.amount == Decimal("-20")
        assert usd.bonus.currency.code == "USD"
        assert result.dropped_count == 0

    def test_fine_and_adjustment_share_a_bucket(self):
        entries = [
            make_entry("e1", "m1", BasisType.FINE, amount_usd=Decimal("-20")),
            make_entry("e2", "m1", BasisType.ADJUSTMENT, amount_usd=Decimal("5")),
        ]
        result = aggregate_basis(entries, {"m1"}, FX)
        assert result.usd_for("m1").adjustment.amount == Decimal("-15")

    def test_eur_only_entry_is_converted_to_usd(self):
        entries = [make_entry("e1", "m1", BasisType.BONUS, amount_eur=Decimal("92"))]
        result = aggregate_basis(entries, {"m1"}, FX)
        assert result.usd_for("m1").bonus.amount == Decimal("100")
        assert result.eur_for("m1").bonus.amount == Decimal("92")

    def test_eur_aggregate_derived_from_usd(self):
        entries = [make_entry("e1", "m1", BasisType.BONUS, amount_usd=Decimal("100"))]
        result = aggregate_basis(entries, {"m1"}, FX)
        assert result.eur_for("m1").bonus.amount == Decimal("92")
        assert result.eur_for("m1").bonus.currency.code == "EUR"

    def test_legacy_amount_is_last_fallback(self):
        entries = [make_entry("e1", "m1", BasisType.BONUS, amount=Decimal("30"))]
        result = aggregate_basis(entries, {"m1"}, None)
        assert result.usd_for("m1").bonus.amount == Decimal("30")
        assert result.eur_for("m1").bonus.amount == Decimal("30")

    def test_eur_only_without_rate_has_no_usd_value(self):
        entries = [make_entry("e1", "m1", BasisType.BONUS, amount_eur=Decimal("92"))]
        result = aggregate_basis(entries, {"m1"}, None)
        assert result.usd_for("m1").bonus.amount == Decimal("0")
        assert result.eur_for("m1").bonus.amount == Decimal("92")

    def test_member_without_entries_gets_zero_aggregates(self):
        result = aggregate_basis([], {"m1"}, FX)
        assert result.usd_for("m1").chatter_sales.is_zero
        assert result.hourly_for("m1") == Decimal("0")

    def test_unknown_basis_type_contributes_nothing(self):
        entries = [BasisEntry(id="e1", month_key=MONTH_KEY, team_member_id="m1", basis_type=None, amount_usd=Decimal("99"))]
        result = aggregate_basis(entries, {"m1"}, FX)
        assert result.usd_for("m1").bonus.is_zero
        assert result.dropped_count == 0


class TestHourly:
    """Hourly entries only feed the hourly total."""

    def test_hourly_usd_excluded_from_bonus(self):
        entries = [
            make_entry("e1", "m1", BasisType.HOURLY, amount_usd=Decimal("120"), amount_eur=Decimal("110.40")),
            make_entry("e2", "m1", BasisType.BONUS, amount_usd=Decimal("10")),
        ]
        result = aggregate_basis(entries, {"m1"}, FX)
        assert result.hourly_for("m1") == Decimal("120")
        assert result.usd_for("m1").bonus.amount == Decimal("10")

    def test_hourly_eur_converted_when_usd_missing(self):
        entries = [make_entry("e1", "m1", BasisType.HOURLY, amount_eur=Decimal("92"))]
        result = aggregate_basis(entries, {"m1"}, FX)
        assert result.hourly_for("m1") == Decimal("100")

    def test_hourly_eur_without_rate_is_zero(self):
        entries = [make_entry("e1", "m1", BasisType.HOURLY, amount_eur=Decimal("92"))]
        result = aggregate_basis(entries, {"m1"}, None)
        assert result.hourly_for("m1") == Decimal("0")


class TestDroppedEntries:
    """Entries for unknown or inactive members are dropped and counted."""

    def test_unknown_members_dropped(self, captured_logs):
        entries = [
            make_entry("e1", "m1", BasisType.BONUS, amount_usd=Decimal("10")),
            make_entry("e2", "ghost", BasisType.BONUS, amount_usd=Decimal("10")),
            make_entry("e3", "inactive", BasisType.BONUS, amount_usd=Decimal("10")),
            make_entry("e4", "ghost", BasisType.FINE, amount_usd=Decimal("-5")),
        ]
        result = aggregate_basis(entries, {"m1"}, FX)

        assert result.dropped_count == 3
        assert result.dropped_member_ids == ("ghost", "inactive")
        assert "ghost" not in result.usd

        logs = captured_logs()
        dropped = [r for r in logs if r["message"] == "basis_entries_dropped"]
        assert dropped and dropped[0]["dropped_count"] == 3

    def test_blank_member_counted_but_not_listed(self):
        entries = [make_entry("e1", "", BasisType.BONUS, amount_usd=Decimal("10"))]
        result = aggregate_basis(entries, {"m1"}, FX)
        assert result.dropped_count == 1
        assert result.dropped_member_ids == ()


class TestFromRecord:
    """Legacy record parsing at the store boundary."""

    def test_plain_record(self):
        entry = BasisEntry.from_record(
            {
                "id": "rec1",
                "month_key": " 2025-01 ",
                "team_member_id": "m1",
                "basis_type": "Bonus",
                "amount_usd": 12.5,
                "amount_eur": "",
            }
        )
        assert entry.basis_type is BasisType.BONUS
        assert entry.month_key == "2025-01"
        assert entry.amount_usd == Decimal("12.5")
        assert entry.amount_eur is None
        assert entry.hourly is None

    def test_hourly_payload_in_notes(self):
        notes = json.dumps(
            {"payout_type": "hourly", "hours_worked": "10", "hourly_rate_eur": "20", "total_eur": "200"}
        )
        entry = BasisEntry.from_record(
            {"id": "rec2", "team_member_id": "m1", "basis_type": "bonus", "notes": notes}
        )
        assert entry.is_hourly
        assert entry.hourly.total_eur == Decimal("200")
        assert entry.hourly.hours_worked == Decimal("10")

    def test_malformed_notes_are_not_hourly(self, captured_logs):
        entry = BasisEntry.from_record(
            {"id": "rec3", "team_member_id": "m1", "basis_type": "bonus", "notes": "{not json"}
        )
        assert entry.basis_type is BasisType.BONUS
        assert entry.hourly is None
        assert any(r["message"] == "basis_notes_malformed" for r in captured_logs())

    def test_unknown_type_is_logged(self, captured_logs):
        entry = BasisEntry.from_record({"id": "rec4", "team_member_id": "m1", "basis_type": "tip"})
        assert entry.basis_type is None
        assert any(r["message"] == "basis_type_unknown" for r in captured_logs())


class TestMakeHourlyEntry:

    def test_builds_totals(self):
        entry = make_hourly_entry("h1", MONTH_KEY, "m1", "10", "18.5", FX)
        assert entry.is_hourly
        assert entry.amount_eur == Decimal("185.00")
        assert entry.amount_usd == Decimal("201.09")
        assert entry.hourly.fx_rate == FX
        assert json.loads(entry.notes)["payout_type"] == "hourly"

    def test_default_rate_when_missing(self):
        entry = make_hourly_entry("h1", MONTH_KEY, "m1", 1, 92, None)
        assert entry.hourly.fx_rate == Decimal("0.92")
        assert entry.amount_usd == Decimal("100.00")

    def test_duplicate_rejected(self):
        first = make_hourly_entry("h1", MONTH_KEY, "m1", 1, 10, FX)
        with pytest.raises(DuplicateHourlyEntryError) as exc_info:
            make_hourly_entry("h2", MONTH_KEY, "m1", 2, 10, FX, existing_entries=[first])
        assert exc_info.value.existing_entry_id == "h1"

    def test_other_month_is_not_a_duplicate(self):
        first = make_hourly_entry("h1", "2024-12", "m1", 1, 10, FX)
        entry = make_hourly_entry("h2", MONTH_KEY, "m1", 2, 10, FX, existing_entries=[first])
        assert entry.id == "h2"

    @pytest.mark.parametrize("hours,rate", [("0", "10"), ("-1", "10"), ("5", "0"), ("x", "10")])
    def test_invalid_values_rejected(self, hours, rate):
        with pytest.raises(InvalidHourlyEntryError):
            make_hourly_entry("h1", MONTH_KEY, "m1", hours, rate, FX)

    def test_invalid_month_rejected(self):
        with pytest.raises(InvalidMonthKeyError):
            make_hourly_entry("h1", "2025-13", "m1", 1, 10, FX)
