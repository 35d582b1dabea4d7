"""
Hypothesis-based fuzzing of the pure engines.

Boundaries fuzzed here:
- Basis aggregation: entry order never changes the aggregate
- Currency conversion: USD -> EUR -> USD stays within a cent
- P&L margin: always finite, 0 whenever net revenue is not positive
- Categories: every (role, department) pair lands in exactly one bucket
- Rounding: round_money is idempotent and never moves more than half a cent

Boundaries not fuzzed here (covered by explicit tests):
- Tiered deal thresholds (tests/engines/test_tiered_deal.py)
- Affiliate deal windows (tests/engines/test_affiliate_allocator.py)
"""

from decimal import Decimal

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
from hypothesis.strategies import composite

from agency_engines.basis import BasisEntry, BasisType, aggregate_basis
from agency_engines.categories import (
    Department,
    PayoutCategory,
    Role,
    classify_member,
    uses_eur_agency_formula,
)
from agency_engines.fx import eur_to_usd, usd_to_eur
from agency_engines.pnl import EXPENSE_FIELDS, PnlRecord, PnlSettings, compute_pnl_row
from agency_kernel.domain.values import round_money

FUZZ_SETTINGS = settings(
    max_examples=100,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)

amounts = st.decimals(min_value=Decimal("0"), max_value=Decimal("1000000"), places=2)
signed_amounts = st.decimals(min_value=Decimal("-1000000"), max_value=Decimal("1000000"), places=2)
fx_amounts = st.decimals(min_value=Decimal("0"), max_value=Decimal("1E15"), places=2)
fx_rates = st.decimals(
    min_value=Decimal("1E-12"),
    max_value=Decimal("1E6"),
    allow_nan=False,
    allow_infinity=False,
)
month_rates = st.decimals(min_value=Decimal("0.01"), max_value=Decimal("100"), places=4)

ACTIVE = frozenset({"m0", "m1", "m2"})


@composite
def basis_entries(draw):
    count = draw(st.integers(min_value=0, max_value=12))
    entries = []
    for i in range(count):
        currency_field = draw(st.sampled_from(["amount_usd", "amount_eur"]))
        entries.append(
            BasisEntry(
                id=f"e{i}",
                month_key="2025-01",
                team_member_id=draw(st.sampled_from(["m0", "m1", "m2", "gone"])),
                basis_type=draw(
                    st.sampled_from([BasisType.CHATTER_SALES, BasisType.BONUS, BasisType.ADJUSTMENT])
                ),
                **{currency_field: draw(signed_amounts)},
            )
        )
    return entries


class TestBasisAggregationFuzzing:

    @FUZZ_SETTINGS
    @given(data=st.data(), rate=month_rates)
    def test_order_does_not_matter(self, data, rate):
        entries = data.draw(basis_entries())
        shuffled = data.draw(st.permutations(entries))

        assert aggregate_basis(shuffled, ACTIVE, rate) == aggregate_basis(entries, ACTIVE, rate)

    @FUZZ_SETTINGS
    @given(data=st.data())
    def test_unknown_members_counted_not_aggregated(self, data):
        entries = data.draw(basis_entries())
        result = aggregate_basis(entries, ACTIVE)

        assert result.dropped_count == sum(1 for e in entries if e.team_member_id == "gone")
        assert "gone" not in result.usd


class TestCurrencyFuzzing:

    @FUZZ_SETTINGS
    @given(usd=fx_amounts, rate=fx_rates)
    def test_round_trip_within_a_cent(self, usd, rate):
        back = eur_to_usd(usd_to_eur(usd, rate), rate)
        assert abs(back - usd) <= Decimal("0.01")

    @FUZZ_SETTINGS
    @given(amount=signed_amounts.map(lambda d: d / 7))
    def test_round_money_idempotent(self, amount):
        rounded = round_money(amount)
        assert round_money(rounded) == rounded
        assert abs(rounded - amount) <= Decimal("0.005")


@composite
def pnl_records(draw):
    expenses = {
        name: draw(amounts)
        for name in draw(st.lists(st.sampled_from(EXPENSE_FIELDS), unique=True, max_size=5))
    }
    return PnlRecord(
        id="pnl-fuzz",
        model_id="model-fuzz",
        month_key="2025-01",
        gross_revenue=draw(amounts),
        net_revenue=draw(st.one_of(st.none(), signed_amounts)),
        expenses=expenses,
    )


class TestPnlFuzzing:

    @FUZZ_SETTINGS
    @given(record=pnl_records())
    def test_margin_always_finite(self, record):
        row = compute_pnl_row(record, PnlSettings())

        assert row.profit_margin_pct.is_finite()
        if row.net_revenue <= 0:
            assert row.profit_margin_pct == 0
        assert row.net_profit == row.net_revenue - row.total_expenses


class TestCategoryFuzzing:

    @FUZZ_SETTINGS
    @given(role=st.sampled_from(Role), department=st.sampled_from(Department))
    def test_every_member_has_exactly_one_bucket(self, role, department):
        category = classify_member(role, department)

        assert isinstance(category, PayoutCategory)
        assert category is not PayoutCategory.MODEL
        if role is Role.CHATTER:
            assert category is PayoutCategory.CHATTER
        assert uses_eur_agency_formula(category) is (
            category in (PayoutCategory.MANAGER, PayoutCategory.VA, PayoutCategory.NONE)
        )
