"""
Values -- Immutable, self-validating money value objects.

Responsibility:
    Provides the value types every computation in the engine uses:
    Currency (USD or EUR), Money and the USD->EUR ExchangeRate, plus the
    ``to_decimal`` coercion applied to every number read from the record
    store.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Amounts are always Decimal, never float.
    - Only the USD/EUR pair exists; anything else is rejected at
      construction.
    - Arithmetic never mixes currencies silently.

Failure modes:
    - InvalidCurrencyError on an unsupported currency code.
    - CurrencyMismatchError when adding/subtracting USD and EUR.
    - InvalidExchangeRateError when a rate is not strictly positive.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from agency_kernel.exceptions import (
    CurrencyMismatchError,
    InvalidCurrencyError,
    InvalidExchangeRateError,
)

MONEY_PLACES = Decimal("0.01")

_SUPPORTED = ("USD", "EUR")


def to_decimal(value: Any) -> Decimal | None:
    """
    Coerce a record-store value to Decimal.

    None, empty strings, booleans, NaN and infinities map to None so that
    "missing" and "not a number" are handled the same way downstream.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return Decimal(str(value))
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return None
        try:
            parsed = Decimal(text)
        except InvalidOperation:
            return None
        return parsed if parsed.is_finite() else None
    return None


def round_money(amount: Decimal) -> Decimal:
    """Round to cents (ROUND_HALF_UP). Applied only when a value is finalized."""
    return amount.quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True, slots=True)
class Currency:
    """
    Currency code value object, restricted to the USD/EUR pair.

    Guarantees:
        - code is always uppercase and one of USD, EUR.
    """

    code: str

    def __post_init__(self) -> None:
        normalized = self.code.upper().strip() if isinstance(self.code, str) else ""
        if normalized not in _SUPPORTED:
            raise InvalidCurrencyError(str(self.code))
        object.__setattr__(self, "code", normalized)

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"Currency({self.code!r})"


USD = Currency("USD")
EUR = Currency("EUR")


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount value object.

    Contract:
        Pairs a Decimal amount with its Currency.

    Guarantees:
        - amount is always a Decimal.
        - Addition and subtraction enforce the same-currency constraint.

    Non-goals:
        - Does NOT auto-round -- callers call ``.round()`` when finalizing.
        - Does NOT convert -- use ``ExchangeRate.convert``.
    """

    amount: Decimal
    currency: Currency

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            try:
                object.__setattr__(self, "amount", Decimal(str(self.amount)))
            except (InvalidOperation, ValueError) as e:
                raise ValueError(f"Invalid amount: {self.amount}") from e
        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        elif not isinstance(self.currency, Currency):
            raise TypeError(f"currency must be Currency or str, got {type(self.currency)}")

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str | Currency) -> Money:
        """Factory method for creating Money."""
        if isinstance(amount, (str, int)):
            amount = Decimal(str(amount))
        if isinstance(currency, str):
            currency = Currency(currency)
        return cls(amount=amount, currency=currency)

    @classmethod
    def zero(cls, currency: str | Currency) -> Money:
        """Create a zero amount in the given currency."""
        return cls.of(0, currency)

    @property
    def is_zero(self) -> bool:
        return self.amount == Decimal("0")

    def round(self) -> Money:
        """Return a new Money rounded to cents."""
        return Money(amount=round_money(self.amount), currency=self.currency)

    def _check(self, other: Money) -> None:
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency.code, other.currency.code)

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other)
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other)
        return Money(amount=self.amount - other.amount, currency=self.currency)

    def __neg__(self) -> Money:
        return Money(amount=-self.amount, currency=self.currency)

    def __mul__(self, factor: Decimal | int | str) -> Money:
        if isinstance(factor, (int, str)):
            factor = Decimal(str(factor))
        if not isinstance(factor, Decimal):
            return NotImplemented
        return Money(amount=self.amount * factor, currency=self.currency)

    def __rmul__(self, factor: Decimal | int | str) -> Money:
        return self.__mul__(factor)

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.code}"

    def __repr__(self) -> str:
        return f"Money({self.amount!r}, {self.currency!r})"


@dataclass(frozen=True, slots=True)
class ExchangeRate:
    """
    USD/EUR exchange rate.

    Contract:
        1 unit of from_currency = rate units of to_currency.  The engine's
        snapshot rate is always USD->EUR ("EUR per 1 USD").

    Guarantees:
        - rate is a strictly positive Decimal.
    """

    from_currency: Currency
    to_currency: Currency
    rate: Decimal

    def __post_init__(self) -> None:
        if isinstance(self.from_currency, str):
            object.__setattr__(self, "from_currency", Currency(self.from_currency))
        if isinstance(self.to_currency, str):
            object.__setattr__(self, "to_currency", Currency(self.to_currency))
        rate = to_decimal(self.rate)
        if rate is None:
            raise InvalidExchangeRateError(str(self.rate), "rate must be a finite number")
        if rate <= Decimal("0"):
            raise InvalidExchangeRateError(str(rate))
        object.__setattr__(self, "rate", rate)

    @classmethod
    def usd_eur(cls, rate: Decimal | str | int | float) -> ExchangeRate:
        """The USD->EUR snapshot rate."""
        return cls(from_currency=USD, to_currency=EUR, rate=rate)

    def convert(self, money: Money) -> Money:
        """Convert ``money`` in either direction of the pair."""
        if money.currency == self.from_currency:
            return Money(amount=money.amount * self.rate, currency=self.to_currency)
        if money.currency == self.to_currency:
            return Money(amount=money.amount / self.rate, currency=self.from_currency)
        raise CurrencyMismatchError(self.from_currency.code, money.currency.code)

    def inverse(self) -> ExchangeRate:
        return ExchangeRate(
            from_currency=self.to_currency,
            to_currency=self.from_currency,
            rate=Decimal("1") / self.rate,
        )

    def __str__(self) -> str:
        return f"{self.from_currency}/{self.to_currency} = {self.rate}"
