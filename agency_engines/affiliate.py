"""
Module: agency_engines.affiliate
Responsibility:
    Compute affiliate payout lines from active revenue-share deals and the
    month's talent net revenue.  One line per affiliator, never per deal.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - A deal applies only when it is active, its affiliator is a known
      affiliate-category member, and the month lies in its
      ``[start_month_key, end_month_key]`` window (inclusive; an unset
      bound is open).  Month keys compare as strings.
    - Each deal contributes ``model_net_usd * percentage / 100``.  Talent
      without actual revenue for the month contributes 0.
    - The affiliator's USD bonus/adjustment aggregate is added once per
      line, not once per deal.
    - Lines appear in the order their affiliator is first seen in the
      deal list.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from agency_engines.basis import BasisAggregation
from agency_engines.categories import PayoutCategory
from agency_engines.fx import resolve_rate, usd_to_eur
from agency_engines.members import TeamMember
from agency_engines.payout import ModelRevenue, PayoutLine
from agency_engines.tracer import traced_engine
from agency_kernel.domain.values import round_money, to_decimal
from agency_kernel.logging_config import get_logger
from agency_kernel.utils.identity import affiliate_line_identity_key

logger = get_logger("engines.affiliate")

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


class DealBasis(str, Enum):
    NET = "net"
    GROSS = "gross"


@dataclass(frozen=True)
class AffiliateModelDeal:
    """Revenue-share deal between one affiliator and one talent."""

    id: str
    affiliator_id: str
    model_id: str
    percentage: Decimal
    basis: DealBasis = DealBasis.NET
    is_active: bool = True
    start_month_key: str | None = None
    end_month_key: str | None = None

    def covers(self, month_key: str) -> bool:
        if self.start_month_key and month_key < self.start_month_key:
            return False
        if self.end_month_key and month_key > self.end_month_key:
            return False
        return True

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> AffiliateModelDeal:
        basis = DealBasis.GROSS if record.get("basis") == DealBasis.GROSS.value else DealBasis.NET
        return cls(
            id=str(record.get("id") or ""),
            affiliator_id=str(record.get("affiliator_id") or ""),
            model_id=str(record.get("model_id") or ""),
            percentage=to_decimal(record.get("percentage")) or _ZERO,
            basis=basis,
            is_active=record.get("is_active") is not False,
            start_month_key=(record.get("start_month_key") or None),
            end_month_key=(record.get("end_month_key") or None),
        )


@dataclass(frozen=True)
class AffiliateAllocation:
    """Affiliate lines for one month plus diagnostics."""

    lines: list[PayoutLine] = field(default_factory=list)
    deals_in_range: int = 0
    matched_model_count: int = 0
    total_usd: Decimal = _ZERO


class AffiliateAllocator:
    """
    Allocate talent net revenue to affiliators.

    Contract:
        Pure; identical inputs produce identical lines in identical order.
    Non-goals:
        - Gross-basis deals are paid on net revenue like every other deal;
          the deal's declared basis is recorded in the breakdown only.
    """

    @traced_engine("affiliate", "1.0", fingerprint_fields=("month_key", "deals", "fx_rate"))
    def allocate(
        self,
        month_key: str,
        deals: Sequence[AffiliateModelDeal],
        members: Sequence[TeamMember],
        revenue_by_model: Mapping[str, ModelRevenue],
        basis: BasisAggregation,
        fx_rate: Decimal | None = None,
    ) -> AffiliateAllocation:
        rate = resolve_rate(fx_rate)
        affiliators = {
            m.id: m
            for m in members
            if m.is_active and m.category is PayoutCategory.AFFILIATE
        }
        in_range = [
            d
            for d in deals
            if d.is_active and d.affiliator_id in affiliators and d.covers(month_key)
        ]

        deal_totals: dict[str, Decimal] = {}
        deal_rows: dict[str, list[dict[str, Any]]] = {}
        matched_models: set[str] = set()
        for deal in in_range:
            net = revenue_by_model.get(deal.model_id, ModelRevenue()).net_revenue
            if net > 0:
                matched_models.add(deal.model_id)
            amount_usd = net * deal.percentage / _HUNDRED
            deal_totals[deal.affiliator_id] = deal_totals.get(deal.affiliator_id, _ZERO) + amount_usd
            deal_rows.setdefault(deal.affiliator_id, []).append(
                {
                    "deal_id": deal.id,
                    "model_id": deal.model_id,
                    "pct": deal.percentage,
                    "basis": deal.basis.value,
                    "net_revenue": round_money(net),
                    "amount_usd": round_money(amount_usd),
                }
            )

        lines: list[PayoutLine] = []
        total = _ZERO
        for affiliator_id, deals_usd in deal_totals.items():
            member = affiliators[affiliator_id]
            usd = basis.usd_for(affiliator_id)
            eur = basis.eur_for(affiliator_id)
            bonus = usd.bonus.amount
            adjustment = usd.adjustment.amount
            line_usd = deals_usd + bonus + adjustment
            total += line_usd
            amount_eur = usd_to_eur(line_usd, rate) if rate is not None else None
            lines.append(
                PayoutLine(
                    line_key=affiliate_line_identity_key(affiliator_id, month_key),
                    category=PayoutCategory.AFFILIATE,
                    payout_type="affiliate",
                    currency="USD",
                    payout_amount=round_money(line_usd),
                    amount_usd=round_money(line_usd),
                    amount_eur=round_money(amount_eur) if amount_eur is not None else None,
                    team_member_id=affiliator_id,
                    team_member_name=member.name,
                    payee_team_member_id=affiliator_id,
                    department="affiliate",
                    role="affiliator",
                    bonus_amount=round_money(bonus),
                    adjustments_amount=round_money(adjustment),
                    fx_rate=rate,
                    bonus_eur=round_money(eur.bonus.amount),
                    adjustments_eur=round_money(eur.adjustment.amount),
                    breakdown={
                        "payout_type": "affiliate",
                        "fx_rate": rate,
                        "models": deal_rows[affiliator_id],
                        "deals_usd": round_money(deals_usd),
                        "bonus_usd": round_money(bonus),
                        "adjustments_usd": round_money(adjustment),
                    },
                )
            )

        logger.info(
            "affiliate_payouts_computed",
            extra={
                "month_key": month_key,
                "deals_in_range": len(in_range),
                "matched_model_count": len(matched_models),
                "line_count": len(lines),
                "total_usd": round_money(total),
            },
        )
        return AffiliateAllocation(
            lines=lines,
            deals_in_range=len(in_range),
            matched_model_count=len(matched_models),
            total_usd=round_money(total),
        )
