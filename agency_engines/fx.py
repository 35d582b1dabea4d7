"""
FX Converter -- USD/EUR conversion against a snapshot rate.

Responsibility:
    Pure conversion helpers used by every engine that derives the second
    side of a USD/EUR amount pair.  The snapshot rate is always expressed
    as EUR per 1 USD.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - usd_to_eur(usd, r) = usd * r and eur_to_usd(eur, r) = eur / r.
    - Converted values are quantized to a scale fixed by the rate (10 dp
      for ordinary rates, finer for rates below 0.1) so that sums of
      values converted at one rate are exact and order independent.
      Amounts too large for the default 28-digit context are quantized
      in a widened local context.  Rounding to cents happens only when an
      amount is finalized (``round_money``).
    - A rate that is zero, negative or non-finite passed explicitly raises
      InvalidExchangeRateError.  A rate that is merely absent is modelled
      as ``None`` and leaves the derived side ``None``.

Failure modes:
    - InvalidExchangeRateError from usd_to_eur / eur_to_usd.

Audit relevance:
    Every payout line records the FxSnapshot rate used, so recomputation
    against a later rate is visible in the breakdown.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, localcontext
from typing import Any

from agency_kernel.domain.values import EUR, USD, ExchangeRate, Money, round_money, to_decimal

DEFAULT_FX_RATE = Decimal("0.92")

CONVERSION_PLACES = 10


def conversion_quantum(scale_exponent: int) -> Decimal:
    """
    Quantum for a converted amount: 10 dp, finer when the conversion
    multiplies by less than 0.1 (``scale_exponent`` is the adjusted
    exponent of the multiplier).  The quantum depends on the rate only, so
    every amount converted at one rate lands on the same scale.
    """
    return Decimal(1).scaleb(min(-CONVERSION_PLACES, scale_exponent - CONVERSION_PLACES + 1))


def _quantize(amount: Decimal, quantum: Decimal) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, amount.adjusted() - quantum.adjusted() + 2)
        return amount.quantize(quantum)


def usd_to_eur(usd: Decimal, rate: Decimal | str | int | float) -> Decimal:
    """Convert a USD amount to EUR (``usd * rate``)."""
    fx = ExchangeRate.usd_eur(rate)
    return _quantize(fx.convert(Money(usd, USD)).amount, conversion_quantum(fx.rate.adjusted()))


def eur_to_usd(eur: Decimal, rate: Decimal | str | int | float) -> Decimal:
    """Convert a EUR amount to USD (``eur / rate``)."""
    fx = ExchangeRate.usd_eur(rate)
    return _quantize(fx.convert(Money(eur, EUR)).amount, conversion_quantum(-fx.rate.adjusted() - 1))


def resolve_rate(value: Any) -> Decimal | None:
    """A strictly positive finite rate, or None when the value is unusable."""
    rate = to_decimal(value)
    if rate is None or rate <= 0:
        return None
    return rate


@dataclass(frozen=True)
class FxSnapshot:
    """
    The USD->EUR rate frozen for one computation.

    ``rate`` is None when no usable rate was available; conversions then
    return None instead of raising.
    """

    rate: Decimal | None
    as_of: datetime | None = None
    source: str = "store"

    @classmethod
    def of(cls, value: Any, as_of: datetime | None = None, source: str = "store") -> FxSnapshot:
        return cls(rate=resolve_rate(value), as_of=as_of, source=source)

    @property
    def is_available(self) -> bool:
        return self.rate is not None

    def to_eur(self, usd: Decimal | None) -> Decimal | None:
        if usd is None or self.rate is None:
            return None
        return usd_to_eur(usd, self.rate)

    def to_usd(self, eur: Decimal | None) -> Decimal | None:
        if eur is None or self.rate is None:
            return None
        return eur_to_usd(eur, self.rate)


def ensure_dual_amounts(
    amount_usd: Any,
    amount_eur: Any,
    rate: Any,
) -> tuple[Decimal, Decimal]:
    """
    Fill in the missing side of a USD/EUR pair.

    Both sides present are kept as given.  One side present is converted
    when a usable rate exists.  Without a rate the missing side is 0.
    Both results are rounded to cents.
    """
    usd = to_decimal(amount_usd)
    eur = to_decimal(amount_eur)
    fx = resolve_rate(rate)
    if usd is not None and eur is not None:
        return round_money(usd), round_money(eur)
    if usd is not None and fx is not None:
        return round_money(usd), round_money(usd_to_eur(usd, fx))
    if eur is not None and fx is not None:
        return round_money(eur_to_usd(eur, fx)), round_money(eur)
    return (
        round_money(usd) if usd is not None else Decimal("0.00"),
        round_money(eur) if eur is not None else Decimal("0.00"),
    )
