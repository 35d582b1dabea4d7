"""
Basis Aggregator -- per-member monthly sums of manual basis entries.

Responsibility:
    Group a month's basis entries (chatter sales, bonuses, adjustments and
    fines, hourly pay) by team member and produce the USD aggregate, the
    parallel EUR aggregate and the hourly USD total every payout formula
    reads from.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Hourly entries never enter the ordinary sales/bonus/adjustment sums.
    - ``fine`` and ``adjustment`` land in the same (signed) bucket.
    - Aggregation is commutative and associative: converted values are
      quantized to a fixed scale before summation, so any permutation of
      the entries yields identical totals.
    - Multiple entries per (month, member, type) are additive.

Failure modes:
    - Entries for an unknown or inactive member are dropped, counted in
      ``BasisAggregation.dropped_count`` and logged.  Never raised.
    - make_hourly_entry raises InvalidHourlyEntryError for non-positive
      hours/rate and DuplicateHourlyEntryError for a second hourly entry
      in the same month.

Legacy data:
    Older records encode hourly pay as a ``bonus`` whose notes field holds
    a JSON payload with ``payout_type == "hourly"``.  ``BasisEntry.from_record``
    converts that payload into the structured ``HourlyDetail`` variant at
    the boundary; notes that are not valid JSON are treated as "not hourly".
"""

from __future__ import annotations

import json
from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from agency_engines.fx import DEFAULT_FX_RATE, eur_to_usd, resolve_rate, usd_to_eur
from agency_engines.tracer import traced_engine
from agency_kernel.domain.values import EUR, USD, Money, round_money, to_decimal
from agency_kernel.exceptions import (
    DuplicateHourlyEntryError,
    InvalidHourlyEntryError,
    InvalidMonthKeyError,
)
from agency_kernel.logging_config import get_logger
from agency_kernel.utils.identity import is_month_key

logger = get_logger("engines.basis")

_ZERO = Decimal("0")


class BasisType(str, Enum):
    """Kind of manual basis entry."""

    CHATTER_SALES = "chatter_sales"
    BONUS = "bonus"
    ADJUSTMENT = "adjustment"
    FINE = "fine"
    HOURLY = "hourly"

    @classmethod
    def parse(cls, value: Any) -> BasisType | None:
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value == text:
                return member
        return None


@dataclass(frozen=True)
class HourlyDetail:
    """Structured hourly payload: hours x EUR rate, with the FX rate used."""

    hours_worked: Decimal
    hourly_rate_eur: Decimal
    total_eur: Decimal
    fx_rate: Decimal | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> HourlyDetail:
        hours = to_decimal(payload.get("hours_worked")) or _ZERO
        rate = to_decimal(payload.get("hourly_rate_eur")) or _ZERO
        total = to_decimal(payload.get("total_eur"))
        return cls(
            hours_worked=hours,
            hourly_rate_eur=rate,
            total_eur=total if total is not None else round_money(hours * rate),
            fx_rate=resolve_rate(payload.get("fx_rate")),
        )

    def to_notes(self) -> str:
        """Legacy notes encoding, for stores that still expect it."""
        return json.dumps(
            {
                "hours_worked": str(self.hours_worked),
                "hourly_rate_eur": str(self.hourly_rate_eur),
                "total_eur": str(self.total_eur),
                "fx_rate": str(self.fx_rate) if self.fx_rate is not None else None,
                "payout_type": "hourly",
            },
            sort_keys=True,
        )


def _parse_hourly_notes(entry_id: str, notes: str) -> HourlyDetail | None:
    text = (notes or "").strip()
    if not text:
        return None
    try:
        payload = json.loads(text)
    except ValueError:
        if text.startswith("{"):
            logger.warning(
                "basis_notes_malformed",
                extra={"entry_id": entry_id, "notes_length": len(text)},
            )
        return None
    if not isinstance(payload, dict) or payload.get("payout_type") != "hourly":
        return None
    return HourlyDetail.from_payload(payload)


@dataclass(frozen=True)
class BasisEntry:
    """
    One manual monthly amount attributed to one team member.

    ``basis_type`` is None for a type the engine does not know; such an
    entry contributes nothing.  ``hourly`` is set exactly when
    ``basis_type`` is HOURLY.
    """

    id: str
    month_key: str
    team_member_id: str
    basis_type: BasisType | None
    amount_usd: Decimal | None = None
    amount_eur: Decimal | None = None
    amount: Decimal | None = None
    notes: str = ""
    hourly: HourlyDetail | None = None

    @property
    def is_hourly(self) -> bool:
        return self.basis_type is BasisType.HOURLY

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> BasisEntry:
        """Build an entry from a raw record-store mapping."""
        entry_id = str(record.get("id") or "")
        notes = str(record.get("notes") or "")
        basis_type = BasisType.parse(record.get("basis_type"))
        hourly = _parse_hourly_notes(entry_id, notes)
        if hourly is not None:
            basis_type = BasisType.HOURLY
        elif basis_type is BasisType.HOURLY:
            amount_eur = to_decimal(record.get("amount_eur")) or _ZERO
            hourly = HourlyDetail(hours_worked=_ZERO, hourly_rate_eur=_ZERO, total_eur=amount_eur)
        if basis_type is None:
            logger.warning(
                "basis_type_unknown",
                extra={"entry_id": entry_id, "basis_type": str(record.get("basis_type"))},
            )
        return cls(
            id=entry_id,
            month_key=str(record.get("month_key") or "").strip(),
            team_member_id=str(record.get("team_member_id") or "").strip(),
            basis_type=basis_type,
            amount_usd=to_decimal(record.get("amount_usd")),
            amount_eur=to_decimal(record.get("amount_eur")),
            amount=to_decimal(record.get("amount")),
            notes=notes,
            hourly=hourly,
        )


@dataclass(frozen=True)
class MemberBasisUsd:
    chatter_sales: Money = field(default_factory=lambda: Money.zero(USD))
    bonus: Money = field(default_factory=lambda: Money.zero(USD))
    adjustment: Money = field(default_factory=lambda: Money.zero(USD))


@dataclass(frozen=True)
class MemberBasisEur:
    bonus: Money = field(default_factory=lambda: Money.zero(EUR))
    adjustment: Money = field(default_factory=lambda: Money.zero(EUR))


@dataclass(frozen=True)
class BasisAggregation:
    """Per-member aggregates for one month plus drop diagnostics."""

    usd: dict[str, MemberBasisUsd]
    eur: dict[str, MemberBasisEur]
    hourly_usd: dict[str, Decimal]
    dropped_count: int = 0
    dropped_member_ids: tuple[str, ...] = ()

    def usd_for(self, member_id: str) -> MemberBasisUsd:
        return self.usd.get(member_id) or MemberBasisUsd()

    def eur_for(self, member_id: str) -> MemberBasisEur:
        return self.eur.get(member_id) or MemberBasisEur()

    def hourly_for(self, member_id: str) -> Decimal:
        return self.hourly_usd.get(member_id, _ZERO)


def _usd_value(entry: BasisEntry, fx_rate: Decimal | None) -> Decimal:
    if entry.amount_usd is not None:
        return entry.amount_usd
    if entry.amount_eur is not None and fx_rate is not None:
        return eur_to_usd(entry.amount_eur, fx_rate)
    return entry.amount if entry.amount is not None else _ZERO


def _eur_value(entry: BasisEntry, fx_rate: Decimal | None) -> Decimal:
    if entry.amount_eur is not None:
        return entry.amount_eur
    if entry.amount_usd is not None and fx_rate is not None:
        return usd_to_eur(entry.amount_usd, fx_rate)
    return entry.amount if entry.amount is not None else _ZERO


def _hourly_usd_value(entry: BasisEntry, fx_rate: Decimal | None) -> Decimal:
    if entry.amount_usd is not None and entry.amount_usd > 0:
        return entry.amount_usd
    if entry.amount_eur is not None and entry.amount_eur > 0 and fx_rate is not None:
        return eur_to_usd(entry.amount_eur, fx_rate)
    return _ZERO


@traced_engine("basis", "1.0")
def aggregate_basis(
    entries: Iterable[BasisEntry],
    active_member_ids: Collection[str],
    fx_rate: Decimal | None = None,
) -> BasisAggregation:
    """
    Aggregate a month's basis entries per team member.

    Args:
        entries: Every basis entry of the month, in any order.
        active_member_ids: Ids of the known, active team members.
        fx_rate: USD->EUR snapshot rate, or None when unavailable.
    """
    rate = resolve_rate(fx_rate)
    sales: dict[str, Decimal] = {}
    bonus: dict[str, Decimal] = {}
    adjustment: dict[str, Decimal] = {}
    bonus_eur: dict[str, Decimal] = {}
    adjustment_eur: dict[str, Decimal] = {}
    hourly: dict[str, Decimal] = {}
    members: set[str] = set()
    dropped: list[str] = []

    for entry in entries:
        member_id = entry.team_member_id
        if not member_id or member_id not in active_member_ids:
            dropped.append(member_id)
            continue
        if entry.basis_type is None:
            continue
        members.add(member_id)

        if entry.is_hourly:
            hourly[member_id] = hourly.get(member_id, _ZERO) + _hourly_usd_value(entry, rate)
            continue

        usd = _usd_value(entry, rate)
        if entry.basis_type is BasisType.CHATTER_SALES:
            sales[member_id] = sales.get(member_id, _ZERO) + usd
        elif entry.basis_type is BasisType.BONUS:
            bonus[member_id] = bonus.get(member_id, _ZERO) + usd
            bonus_eur[member_id] = bonus_eur.get(member_id, _ZERO) + _eur_value(entry, rate)
        else:
            adjustment[member_id] = adjustment.get(member_id, _ZERO) + usd
            adjustment_eur[member_id] = adjustment_eur.get(member_id, _ZERO) + _eur_value(entry, rate)

    usd_aggregates = {
        m: MemberBasisUsd(
            chatter_sales=Money(sales.get(m, _ZERO), USD),
            bonus=Money(bonus.get(m, _ZERO), USD),
            adjustment=Money(adjustment.get(m, _ZERO), USD),
        )
        for m in sorted(members)
    }
    eur_aggregates = {
        m: MemberBasisEur(
            bonus=Money(bonus_eur.get(m, _ZERO), EUR),
            adjustment=Money(adjustment_eur.get(m, _ZERO), EUR),
        )
        for m in sorted(members)
    }
    dropped_ids = tuple(sorted({m for m in dropped if m}))

    if dropped:
        logger.warning(
            "basis_entries_dropped",
            extra={"dropped_count": len(dropped), "dropped_member_ids": list(dropped_ids)},
        )
    logger.debug(
        "basis_aggregated",
        extra={"member_count": len(members), "fx_available": rate is not None},
    )

    return BasisAggregation(
        usd=usd_aggregates,
        eur=eur_aggregates,
        hourly_usd={m: hourly[m] for m in sorted(hourly)},
        dropped_count=len(dropped),
        dropped_member_ids=dropped_ids,
    )


def make_hourly_entry(
    entry_id: str,
    month_key: str,
    team_member_id: str,
    hours_worked: Any,
    hourly_rate_eur: Any,
    fx_rate: Any = None,
    existing_entries: Iterable[BasisEntry] = (),
) -> BasisEntry:
    """
    Build a validated hourly basis entry.

    ``total_eur = round2(hours * rate)`` and ``amount_usd`` is its USD value
    at ``fx_rate`` (DEFAULT_FX_RATE when no usable rate is given).

    Raises:
        InvalidMonthKeyError: month_key is not YYYY-MM.
        InvalidHourlyEntryError: hours or rate is not a positive number.
        DuplicateHourlyEntryError: the member already has an hourly entry
            for the month among ``existing_entries``.
    """
    if not is_month_key(month_key):
        raise InvalidMonthKeyError(str(month_key))
    hours = to_decimal(hours_worked)
    if hours is None or hours <= 0:
        raise InvalidHourlyEntryError("hours_worked", str(hours_worked))
    rate_eur = to_decimal(hourly_rate_eur)
    if rate_eur is None or rate_eur <= 0:
        raise InvalidHourlyEntryError("hourly_rate_eur", str(hourly_rate_eur))

    for existing in existing_entries:
        if (
            existing.is_hourly
            and existing.team_member_id == team_member_id
            and existing.month_key == month_key
        ):
            raise DuplicateHourlyEntryError(team_member_id, month_key, existing.id)

    fx = resolve_rate(fx_rate) or DEFAULT_FX_RATE
    total_eur = round_money(hours * rate_eur)
    amount_usd = round_money(eur_to_usd(total_eur, fx))
    detail = HourlyDetail(
        hours_worked=hours,
        hourly_rate_eur=rate_eur,
        total_eur=total_eur,
        fx_rate=fx,
    )
    logger.info(
        "hourly_entry_built",
        extra={
            "team_member_id": team_member_id,
            "month_key": month_key,
            "total_eur": total_eur,
            "amount_usd": amount_usd,
        },
    )
    return BasisEntry(
        id=entry_id,
        month_key=month_key,
        team_member_id=team_member_id,
        basis_type=BasisType.HOURLY,
        amount_usd=amount_usd,
        amount_eur=total_eur,
        amount=total_eur,
        notes=detail.to_notes(),
        hourly=detail,
    )
