"""
Tiered deal evaluator -- talent payout for one month.

Responsibility:
    Compute a talent's USD payout from the month's net revenue and the
    talent's compensation configuration.  The payout engine only depends
    on the ``TieredDealEvaluator`` call signature; ``evaluate_model_payout``
    is the default implementation and can be swapped for any callable
    with the same contract.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Default rule:
    A valid tiered deal (threshold > 0, a flat amount in USD or EUR that
    is >= 0, and a finite percent) pays the flat amount while revenue is
    at or under the threshold and ``revenue * percent / 100`` above it.
    Otherwise the compensation type decides:

        Percentage  revenue * creator_payout_pct / 100
        Salary      salary_usd, else salary_eur / fx
        Hybrid      percentage part + salary
        anything    0

Invariants enforced:
    - Payout is never negative.
    - Negative revenue pays 0.
    - Revenue is net revenue, never gross.
    - No rounding; the payout engine rounds when finalizing.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol

from agency_engines.fx import eur_to_usd, resolve_rate
from agency_engines.members import CompensationType, Model
from agency_kernel.logging_config import get_logger

logger = get_logger("engines.tiered_deal")

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


class TieredDealEvaluator(Protocol):
    """Payout contract for talent compensation."""

    def __call__(self, net_revenue_usd: Decimal, model: Model, fx_rate: Decimal | None) -> Decimal:
        ...


def compute_tiered_deal(
    revenue: Decimal,
    threshold: Decimal,
    flat: Decimal,
    percent: Decimal,
) -> Decimal:
    """Flat at or under the threshold, percent of revenue above it."""
    if revenue < 0 or threshold <= 0:
        return _ZERO
    if revenue <= threshold:
        payout = flat
    else:
        payout = revenue * percent / _HUNDRED
    return max(_ZERO, payout)


def has_valid_tiered_deal(model: Model) -> bool:
    if model.deal_threshold is None or model.deal_threshold <= 0:
        return False
    has_flat = any(
        flat is not None and flat >= 0
        for flat in (model.deal_flat_under_threshold, model.deal_flat_under_threshold_usd)
    )
    if not has_flat or model.deal_percent_above_threshold is None:
        logger.debug(
            "tiered_deal_incomplete",
            extra={"model_id": model.id, "has_flat": has_flat},
        )
        return False
    return True


def _salary_usd(model: Model, fx_rate: Decimal | None) -> Decimal:
    if model.salary_usd is not None:
        return model.salary_usd
    if model.salary_eur is not None and fx_rate is not None:
        return eur_to_usd(model.salary_eur, fx_rate)
    return _ZERO


def evaluate_model_payout(
    net_revenue_usd: Decimal,
    model: Model,
    fx_rate: Decimal | None,
) -> Decimal:
    """Default TieredDealEvaluator."""
    if net_revenue_usd < 0:
        return _ZERO
    rate = resolve_rate(fx_rate)

    if has_valid_tiered_deal(model):
        if model.deal_flat_under_threshold_usd is not None:
            flat_usd = model.deal_flat_under_threshold_usd
        elif model.deal_flat_under_threshold is not None and rate is not None:
            flat_usd = eur_to_usd(model.deal_flat_under_threshold, rate)
        else:
            flat_usd = _ZERO
        return compute_tiered_deal(
            revenue=net_revenue_usd,
            threshold=model.deal_threshold,
            flat=flat_usd,
            percent=model.deal_percent_above_threshold,
        )

    pct = model.creator_payout_pct
    if model.compensation_type is CompensationType.PERCENTAGE and pct is not None:
        return max(_ZERO, net_revenue_usd * pct / _HUNDRED)
    if model.compensation_type is CompensationType.SALARY:
        return max(_ZERO, _salary_usd(model, rate))
    if model.compensation_type is CompensationType.HYBRID:
        pct_part = net_revenue_usd * pct / _HUNDRED if pct is not None else _ZERO
        return max(_ZERO, pct_part + _salary_usd(model, rate))
    return _ZERO
