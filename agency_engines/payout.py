"""
Module: agency_engines.payout
Responsibility:
    Compute one payout line per team member and per talent for a month,
    branching on the member's payout category and payout type.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Reads aggregates produced by agency_engines.basis and delegates talent
    payouts to a pluggable TieredDealEvaluator.

Formulas:
    payout_type none (any category)   payout = hourly_usd
    chatter / percentage              sales * pct/100 + bonus + adj + hourly   (USD)
    chatter / flat_fee                flat + bonus + adj + hourly              (USD)
    chatter / hybrid                  sales * pct/100 + flat + bonus + adj + hourly (USD)
    manager, va, none category        agency_share + flat + bonus_eur + adj_eur + hourly_eur (EUR)
    talent                            evaluator(net_usd, model, fx)            (USD)

    agency_share = chatting_total * cp/100 + chatting_msgs * cpm/100
                 + gunzo_total * gp/100 + gunzo_msgs * gpm/100

Invariants enforced:
    - A member with both the total-net and the messages/tips percentage set
      (> 0) for one bucket raises AmbiguousPercentageConfigError and aborts
      the whole month.  The two percentages are never summed.
    - Talent payout is forced to 0 when net revenue is missing or zero while
      gross revenue is positive; the line is flagged net_revenue_missing.
    - Each line is computed natively in one currency; the other side is
      derived at the snapshot rate, or None when no rate is available.
    - Line amounts are rounded to cents only when the line is finalized.
    - Affiliate-category and inactive members get no line here.

Failure modes:
    - AmbiguousPercentageConfigError (fatal, propagates to the caller).
"""

from __future__ import annotations

import json
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from agency_engines.basis import BasisAggregation
from agency_engines.categories import PayoutCategory, uses_eur_agency_formula
from agency_engines.fx import eur_to_usd, resolve_rate, usd_to_eur
from agency_engines.members import AgencyRevenue, CompensationType, Model, PayoutType, TeamMember
from agency_engines.pnl import PnlRecord, PnlStatus
from agency_engines.tiered_deal import TieredDealEvaluator, evaluate_model_payout
from agency_engines.tracer import traced_engine
from agency_kernel.domain.values import round_money
from agency_kernel.exceptions import AmbiguousPercentageConfigError
from agency_kernel.logging_config import get_logger
from agency_kernel.utils.identity import payout_line_identity_key

logger = get_logger("engines.payout")

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")

USD_CODE = "USD"
EUR_CODE = "EUR"


def _money(value: Decimal | None) -> Decimal | None:
    return round_money(value) if value is not None else None


@dataclass(frozen=True)
class PayoutLine:
    """
    One computed payout line.

    Contract:
        Frozen output of the payout engines; ``payout_amount`` is in
        ``currency``.  ``amount_usd`` / ``amount_eur`` carry both sides of
        the pair, the derived side being None without an FX rate.
    Non-goals:
        - Carries no paid state; that belongs to the persisted line.
    """

    line_key: str
    category: PayoutCategory
    payout_type: str
    currency: str
    payout_amount: Decimal
    amount_usd: Decimal | None
    amount_eur: Decimal | None
    team_member_id: str | None = None
    model_id: str | None = None
    team_member_name: str = ""
    payee_team_member_id: str | None = None
    department: str = ""
    role: str = ""
    payout_percentage: Decimal | None = None
    payout_flat_fee: Decimal | None = None
    basis_webapp_amount: Decimal = _ZERO
    basis_manual_amount: Decimal = _ZERO
    bonus_amount: Decimal = _ZERO
    adjustments_amount: Decimal = _ZERO
    basis_total: Decimal = _ZERO
    hourly_usd: Decimal = _ZERO
    fx_rate: Decimal | None = None
    bonus_eur: Decimal | None = None
    adjustments_eur: Decimal | None = None
    hourly_eur: Decimal | None = None
    pct_payout_eur: Decimal | None = None
    breakdown: dict[str, Any] = field(default_factory=dict)

    @property
    def breakdown_json(self) -> str:
        """Deterministic JSON rendering of the breakdown (sorted keys)."""
        return json.dumps(self.breakdown, sort_keys=True, default=str)

    def usd_value(self, fx_rate: Decimal | None = None) -> Decimal:
        """USD value of the line: amount_usd, else amount_eur / fx, else 0."""
        if self.amount_usd is not None:
            return self.amount_usd
        rate = resolve_rate(fx_rate if fx_rate is not None else self.fx_rate)
        if self.amount_eur is not None and rate is not None:
            return round_money(eur_to_usd(self.amount_eur, rate))
        return _ZERO


@dataclass(frozen=True)
class ModelRevenue:
    """A talent's summed actual revenue for the month (USD)."""

    gross_revenue: Decimal = _ZERO
    net_revenue: Decimal = _ZERO


def aggregate_model_revenue(records: Iterable[PnlRecord]) -> dict[str, ModelRevenue]:
    """
    Sum gross and stored net revenue of ``actual`` P&L records per talent.

    A record without a stored net revenue contributes 0 to the net sum.
    """
    gross: dict[str, Decimal] = {}
    net: dict[str, Decimal] = {}
    for record in records:
        if record.status is not PnlStatus.ACTUAL or not record.model_id:
            continue
        gross[record.model_id] = gross.get(record.model_id, _ZERO) + record.gross_revenue
        net[record.model_id] = net.get(record.model_id, _ZERO) + (record.net_revenue or _ZERO)
    return {
        model_id: ModelRevenue(gross_revenue=gross[model_id], net_revenue=net[model_id])
        for model_id in sorted(gross)
    }


def _pct(value: Decimal | None) -> Decimal:
    return value if value is not None else _ZERO


def check_percentage_config(member: TeamMember) -> None:
    """
    Reject a member configured with both percentages for one bucket.

    Raises:
        AmbiguousPercentageConfigError: total-net and messages/tips-net
            percentage are both > 0 for the gunzo or the chatting bucket.
    """
    buckets = (
        ("gunzo", member.gunzo_percentage, member.gunzo_percentage_messages_tips),
        ("chatting", member.chatting_percentage, member.chatting_percentage_messages_tips),
    )
    for bucket, total_pct, msgs_pct in buckets:
        if _pct(total_pct) > 0 and _pct(msgs_pct) > 0:
            logger.error(
                "ambiguous_percentage_config",
                extra={
                    "team_member_id": member.id,
                    "bucket": bucket,
                    "total_pct": total_pct,
                    "msgs_tips_pct": msgs_pct,
                },
            )
            raise AmbiguousPercentageConfigError(member.id, bucket, str(total_pct), str(msgs_pct))


def agency_share_eur(revenue: AgencyRevenue, member: TeamMember) -> Decimal:
    """The member's percentage share of the month's agency revenue buckets (EUR)."""
    return (
        revenue.chatting_amount_eur * _pct(member.chatting_percentage) / _HUNDRED
        + revenue.chatting_msgs_tips_net_eur * _pct(member.chatting_percentage_messages_tips) / _HUNDRED
        + revenue.gunzo_amount_eur * _pct(member.gunzo_percentage) / _HUNDRED
        + revenue.gunzo_msgs_tips_net_eur * _pct(member.gunzo_percentage_messages_tips) / _HUNDRED
    )


class PayoutCalculator:
    """
    Compute payout lines for team members and talent.

    Contract:
        Pure; identical inputs always produce identical lines in identical
        order (members in input order, then talent in input order).
    Guarantees:
        - Every line's category comes from ``classify_member``.
        - Configuration ambiguity propagates; data gaps degrade one line.
    Non-goals:
        - Affiliate lines; see ``AffiliateAllocator``.
        - Persistence; see ``ReconciliationService``.
    """

    def __init__(self, tiered_deal_evaluator: TieredDealEvaluator = evaluate_model_payout):
        self._evaluate_model = tiered_deal_evaluator

    @traced_engine("payout", "1.0", fingerprint_fields=("members", "revenue", "fx_rate"))
    def compute_member_lines(
        self,
        members: Sequence[TeamMember],
        basis: BasisAggregation,
        revenue: AgencyRevenue,
        fx_rate: Decimal | None = None,
    ) -> list[PayoutLine]:
        """One line per active, non-affiliate team member."""
        t0 = time.monotonic()
        rate = resolve_rate(fx_rate)
        lines: list[PayoutLine] = []
        skipped = 0
        for member in members:
            if not member.is_active or member.category is PayoutCategory.AFFILIATE:
                skipped += 1
                continue
            lines.append(self.member_line(member, basis, revenue, rate))

        logger.info(
            "member_payouts_computed",
            extra={
                "line_count": len(lines),
                "skipped_count": skipped,
                "fx_available": rate is not None,
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            },
        )
        return lines

    def member_line(
        self,
        member: TeamMember,
        basis: BasisAggregation,
        revenue: AgencyRevenue,
        fx_rate: Decimal | None,
    ) -> PayoutLine:
        category = member.category
        if member.payout_type is PayoutType.NONE:
            return self._none_line(member, category, basis, fx_rate)
        if category is PayoutCategory.CHATTER:
            return self._chatter_line(member, basis, fx_rate)
        if uses_eur_agency_formula(category):
            return self._agency_line(member, category, basis, revenue, fx_rate)
        raise ValueError(f"No member payout formula for category {category.value}")

    def _none_line(
        self,
        member: TeamMember,
        category: PayoutCategory,
        basis: BasisAggregation,
        fx_rate: Decimal | None,
    ) -> PayoutLine:
        usd = basis.usd_for(member.id)
        eur = basis.eur_for(member.id)
        hourly_usd = basis.hourly_for(member.id)
        hourly_eur = usd_to_eur(hourly_usd, fx_rate) if fx_rate is not None else None
        return PayoutLine(
            line_key=payout_line_identity_key(member.id, None),
            category=category,
            payout_type=PayoutType.NONE.value,
            currency=USD_CODE,
            payout_amount=round_money(hourly_usd),
            amount_usd=round_money(hourly_usd),
            amount_eur=_money(hourly_eur),
            team_member_id=member.id,
            team_member_name=member.name,
            payee_team_member_id=member.id,
            department=member.department.value,
            role=member.role.value,
            bonus_amount=round_money(usd.bonus.amount),
            adjustments_amount=round_money(usd.adjustment.amount),
            hourly_usd=round_money(hourly_usd),
            fx_rate=fx_rate,
            bonus_eur=round_money(eur.bonus.amount),
            adjustments_eur=round_money(eur.adjustment.amount),
            hourly_eur=_money(hourly_eur),
            breakdown={
                "note": "payout_type is none",
                "hourly_usd": round_money(hourly_usd),
            },
        )

    def _chatter_line(
        self,
        member: TeamMember,
        basis: BasisAggregation,
        fx_rate: Decimal | None,
    ) -> PayoutLine:
        usd = basis.usd_for(member.id)
        hourly_usd = basis.hourly_for(member.id)
        sales = usd.chatter_sales.amount
        bonus = usd.bonus.amount
        adjustment = usd.adjustment.amount
        flat = _pct(member.payout_flat_fee)
        pct = member.payout_percentage_chatters or _pct(member.payout_percentage)

        match member.payout_type:
            case PayoutType.PERCENTAGE:
                payout = sales * pct / _HUNDRED + bonus + adjustment
                formula = f"(chatter_revenue * {pct}%) + bonus + adj + hourly"
            case PayoutType.FLAT_FEE:
                payout = flat + bonus + adjustment
                formula = "flat_fee + bonus + adj + hourly"
            case PayoutType.HYBRID:
                payout = sales * pct / _HUNDRED + flat + bonus + adjustment
                formula = f"(chatter_revenue * {pct}%) + flat + bonus + adj + hourly"
            case _:
                raise ValueError(f"Unexpected chatter payout type {member.payout_type.value}")
        payout += hourly_usd

        has_pct = member.payout_type in (PayoutType.PERCENTAGE, PayoutType.HYBRID)
        has_flat = member.payout_type in (PayoutType.FLAT_FEE, PayoutType.HYBRID)

        def to_eur(value: Decimal) -> Decimal | None:
            return round_money(usd_to_eur(value, fx_rate)) if fx_rate is not None else None

        return PayoutLine(
            line_key=payout_line_identity_key(member.id, None),
            category=PayoutCategory.CHATTER,
            payout_type=member.payout_type.value,
            currency=USD_CODE,
            payout_amount=round_money(payout),
            amount_usd=round_money(payout),
            amount_eur=to_eur(payout),
            team_member_id=member.id,
            team_member_name=member.name,
            payee_team_member_id=member.id,
            department=member.department.value,
            role=member.role.value,
            payout_percentage=pct if has_pct else None,
            payout_flat_fee=flat if has_flat else None,
            basis_manual_amount=round_money(sales),
            bonus_amount=round_money(bonus),
            adjustments_amount=round_money(adjustment),
            basis_total=round_money(sales),
            hourly_usd=round_money(hourly_usd),
            fx_rate=fx_rate,
            bonus_eur=to_eur(bonus),
            adjustments_eur=to_eur(adjustment),
            hourly_eur=to_eur(hourly_usd),
            breakdown={
                "basis_manual": round_money(sales),
                "bonus": round_money(bonus),
                "adjustments": round_money(adjustment),
                "hourly_usd": round_money(hourly_usd),
                "formula": formula,
            },
        )

    def _agency_line(
        self,
        member: TeamMember,
        category: PayoutCategory,
        basis: BasisAggregation,
        revenue: AgencyRevenue,
        fx_rate: Decimal | None,
    ) -> PayoutLine:
        check_percentage_config(member)

        usd = basis.usd_for(member.id)
        eur = basis.eur_for(member.id)
        hourly_usd = basis.hourly_for(member.id)
        agency_part = agency_share_eur(revenue, member)
        flat = _pct(member.payout_flat_fee)
        bonus_eur = eur.bonus.amount
        adjustments_eur = eur.adjustment.amount
        hourly_eur = usd_to_eur(hourly_usd, fx_rate) if fx_rate is not None else _ZERO
        payout = agency_part + flat + bonus_eur + adjustments_eur + hourly_eur
        amount_usd = eur_to_usd(payout, fx_rate) if fx_rate is not None else None

        has_flat = member.payout_type in (PayoutType.FLAT_FEE, PayoutType.HYBRID)
        breakdown: dict[str, Any] = {
            "chatting_revenue": revenue.chatting_amount_eur,
            "gunzo_revenue": revenue.gunzo_amount_eur,
            "chatting_percentage": _pct(member.chatting_percentage),
            "chatting_percentage_messages_tips": _pct(member.chatting_percentage_messages_tips),
            "gunzo_percentage": _pct(member.gunzo_percentage),
            "gunzo_percentage_messages_tips": _pct(member.gunzo_percentage_messages_tips),
            "agency_part": round_money(agency_part),
            "flat_fee": flat,
            "bonus_eur": round_money(bonus_eur),
            "adjustments_eur": round_money(adjustments_eur),
            "hourly_usd": round_money(hourly_usd),
            "hourly_eur": round_money(hourly_eur),
            "formula": "manager: sum(bucket_eur * pct) + flat + bonus + adj + hourly",
        }
        if fx_rate is None and hourly_usd != 0:
            breakdown["hourly_unconverted"] = True

        return PayoutLine(
            line_key=payout_line_identity_key(member.id, None),
            category=category,
            payout_type=member.payout_type.value,
            currency=EUR_CODE,
            payout_amount=round_money(payout),
            amount_usd=_money(amount_usd),
            amount_eur=round_money(payout),
            team_member_id=member.id,
            team_member_name=member.name,
            payee_team_member_id=member.id,
            department=member.department.value,
            role=member.role.value,
            payout_flat_fee=flat if has_flat else None,
            bonus_amount=round_money(usd.bonus.amount),
            adjustments_amount=round_money(usd.adjustment.amount),
            hourly_usd=round_money(hourly_usd),
            fx_rate=fx_rate,
            bonus_eur=round_money(bonus_eur),
            adjustments_eur=round_money(adjustments_eur),
            hourly_eur=round_money(hourly_eur),
            pct_payout_eur=round_money(agency_part),
            breakdown=breakdown,
        )

    @traced_engine("payout_models", "1.0", fingerprint_fields=("models", "fx_rate"))
    def compute_model_lines(
        self,
        models: Sequence[Model],
        revenue_by_model: dict[str, ModelRevenue],
        fx_rate: Decimal | None = None,
    ) -> list[PayoutLine]:
        """One line per talent, in input order."""
        rate = resolve_rate(fx_rate)
        lines = [
            self.model_line(model, revenue_by_model.get(model.id, ModelRevenue()), rate)
            for model in models
        ]
        logger.info(
            "model_payouts_computed",
            extra={
                "line_count": len(lines),
                "net_revenue_missing_count": sum(
                    1 for line in lines if line.breakdown.get("net_revenue_missing")
                ),
            },
        )
        return lines

    def model_line(
        self,
        model: Model,
        revenue: ModelRevenue,
        fx_rate: Decimal | None,
    ) -> PayoutLine:
        gross = revenue.gross_revenue
        net = revenue.net_revenue
        net_revenue_missing = net == 0 and gross > 0
        basis = _ZERO if net_revenue_missing else net
        payout = _ZERO if net_revenue_missing else self._evaluate_model(net, model, fx_rate)

        if net_revenue_missing:
            logger.warning(
                "model_net_revenue_missing",
                extra={"model_id": model.id, "gross_revenue": gross},
            )

        if model.compensation_type is CompensationType.PERCENTAGE:
            payout_type = "percentage"
        elif model.compensation_type is CompensationType.TIERED_DEAL:
            payout_type = "hybrid"
        else:
            payout_type = "none"

        amount_eur = usd_to_eur(payout, fx_rate) if fx_rate is not None else None
        return PayoutLine(
            line_key=payout_line_identity_key(model.payee_team_member_id, model.id),
            category=PayoutCategory.MODEL,
            payout_type=payout_type,
            currency=USD_CODE,
            payout_amount=round_money(payout),
            amount_usd=round_money(payout),
            amount_eur=_money(amount_eur),
            team_member_id=model.payee_team_member_id,
            model_id=model.id,
            team_member_name=model.name,
            payee_team_member_id=model.payee_team_member_id,
            department="models",
            role="model",
            payout_percentage=model.creator_payout_pct,
            basis_webapp_amount=round_money(basis),
            basis_total=round_money(basis),
            fx_rate=fx_rate,
            bonus_eur=Decimal("0.00"),
            adjustments_eur=Decimal("0.00"),
            breakdown={
                "gross_revenue": round_money(gross),
                "net_revenue": round_money(net),
                "net_revenue_missing": net_revenue_missing,
                "compensation_type": model.compensation_type.value if model.compensation_type else None,
                "creator_payout_pct": model.creator_payout_pct,
                "computed_payout": round_money(payout),
            },
        )
