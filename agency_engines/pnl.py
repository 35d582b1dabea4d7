"""
P&L Calculator -- derive a full profit-and-loss row from one raw record.

Responsibility:
    Turn one raw revenue/expense record (one talent, one month, one
    status) into a PnlRow: OF fee, net revenue, marketing and total
    expenses, net profit and profit margin.  Classify the margin into a
    band against the configured thresholds.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - A stored net revenue wins over the derived ``gross - of_fee``
      whenever it is a finite number.
    - profit_margin_pct is always finite: 0 when net revenue is not
      positive, never a division by zero.
    - Missing expense fields count as 0.
    - unique_key is the P&L natural identity ``{model}-{month}-{status}``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from agency_engines.tracer import traced_engine
from agency_kernel.domain.values import to_decimal
from agency_kernel.logging_config import get_logger
from agency_kernel.utils.identity import pnl_identity_key

logger = get_logger("engines.pnl")

_ZERO = Decimal("0")

EXPENSE_FIELDS: tuple[str, ...] = (
    "chatting_costs_team",
    "marketing_costs_team",
    "production_costs_team",
    "ads_spend",
    "other_marketing_costs",
    "salary",
    "affiliate_fee",
    "bonuses",
    "airbnbs",
    "softwares",
    "fx_withdrawal_fees",
    "other_costs",
)


class PnlStatus(str, Enum):
    ACTUAL = "actual"
    FORECAST = "forecast"


class MarginBand(str, Enum):
    GOOD = "good"
    OK = "ok"
    LOW = "low"


@dataclass(frozen=True)
class PnlSettings:
    """The settings the P&L derivation reads."""

    of_fee_pct: Decimal = Decimal("0.2")
    green_threshold: Decimal = Decimal("0.3")
    yellow_threshold_low: Decimal = Decimal("0.15")


@dataclass(frozen=True)
class PnlRecord:
    """Raw revenue/expense record for one talent, month and status."""

    id: str
    model_id: str
    month_key: str
    status: PnlStatus = PnlStatus.ACTUAL
    gross_revenue: Decimal = _ZERO
    net_revenue: Decimal | None = None
    expenses: dict[str, Decimal] = field(default_factory=dict)
    notes_issues: str = ""

    def expense(self, name: str) -> Decimal:
        return self.expenses.get(name, _ZERO)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> PnlRecord:
        status_text = str(record.get("status") or PnlStatus.ACTUAL.value).strip().lower()
        status = PnlStatus.FORECAST if status_text == PnlStatus.FORECAST.value else PnlStatus.ACTUAL
        expenses: dict[str, Decimal] = {}
        for name in EXPENSE_FIELDS:
            value = to_decimal(record.get(name))
            if value is not None:
                expenses[name] = value
        return cls(
            id=str(record.get("id") or ""),
            model_id=str(record.get("model_id") or "").strip(),
            month_key=str(record.get("month_key") or "").strip(),
            status=status,
            gross_revenue=to_decimal(record.get("gross_revenue")) or _ZERO,
            net_revenue=to_decimal(record.get("net_revenue")),
            expenses=expenses,
            notes_issues=str(record.get("notes_issues") or ""),
        )


@dataclass(frozen=True)
class PnlRow:
    """Derived P&L row."""

    id: str
    model_id: str
    month_key: str
    status: PnlStatus
    unique_key: str
    gross_revenue: Decimal
    of_fee: Decimal
    net_revenue: Decimal
    expenses: dict[str, Decimal]
    total_marketing_costs: Decimal
    total_expenses: Decimal
    net_profit: Decimal
    profit_margin_pct: Decimal
    month_name: str | None = None
    notes_issues: str = ""

    def expense(self, name: str) -> Decimal:
        return self.expenses.get(name, _ZERO)


@traced_engine("pnl", "1.0", fingerprint_fields=("record", "settings"))
def compute_pnl_row(
    record: PnlRecord,
    settings: PnlSettings,
    month_name: str | None = None,
) -> PnlRow:
    """
    Derive the full P&L row for ``record``.

    Raises:
        IdentityKeyError: record has no model id or an invalid month key.
    """
    gross = record.gross_revenue
    of_fee = gross * settings.of_fee_pct
    net = record.net_revenue if record.net_revenue is not None else gross - of_fee

    expenses = {name: record.expense(name) for name in EXPENSE_FIELDS}
    total_marketing = expenses["ads_spend"] + expenses["other_marketing_costs"]
    total_expenses = sum(expenses.values(), _ZERO)
    net_profit = net - total_expenses
    margin = net_profit / net if net > 0 else _ZERO

    return PnlRow(
        id=record.id,
        model_id=record.model_id,
        month_key=record.month_key,
        status=record.status,
        unique_key=pnl_identity_key(record.model_id, record.month_key, record.status.value),
        gross_revenue=gross,
        of_fee=of_fee,
        net_revenue=net,
        expenses=expenses,
        total_marketing_costs=total_marketing,
        total_expenses=total_expenses,
        net_profit=net_profit,
        profit_margin_pct=margin,
        month_name=month_name,
        notes_issues=record.notes_issues,
    )


def margin_band(margin: Decimal, settings: PnlSettings) -> MarginBand:
    """``> green`` is good, ``>= yellow_low`` is ok, anything else is low."""
    if margin > settings.green_threshold:
        return MarginBand.GOOD
    if margin >= settings.yellow_threshold_low:
        return MarginBand.OK
    return MarginBand.LOW
