"""
Record store -- read contract of the external hosted record store.

Responsibility:
    Declares the bulk reads a month computation issues against the
    external store and ships ``InMemoryRecordStore``, the reference
    implementation used by tests and local tooling.  The REST client of a
    real store implements the same ABC outside this package.

Architecture position:
    Services -- I/O boundary.  Returns engine value types
    (TeamMember, BasisEntry, Model, ...) so engines never see raw records.

Invariants enforced:
    - Every read is a bulk read; one month computation issues a fixed
      number of calls regardless of the number of members.
    - ``list_pnl_records`` bounds are inclusive month keys.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from agency_engines.affiliate import AffiliateModelDeal
from agency_engines.basis import BasisEntry
from agency_engines.members import AgencyRevenue, Model, TeamMember
from agency_engines.pnl import PnlRecord


@dataclass(frozen=True)
class MonthRef:
    """A month record: opaque id plus its ``YYYY-MM`` key."""

    id: str
    month_key: str
    name: str = ""


class RecordStore(ABC):
    """Read contract of the external record store."""

    @abstractmethod
    def get_month(self, month_id: str) -> MonthRef | None:
        ...

    @abstractmethod
    def list_months(self) -> list[MonthRef]:
        ...

    @abstractmethod
    def list_team_members(self) -> list[TeamMember]:
        ...

    @abstractmethod
    def list_basis_entries(self, month_id: str, month_key: str) -> list[BasisEntry]:
        ...

    @abstractmethod
    def get_agency_revenue(self, month_id: str) -> AgencyRevenue | None:
        ...

    @abstractmethod
    def list_models(self) -> list[Model]:
        ...

    @abstractmethod
    def list_pnl_records(
        self,
        from_key: str,
        to_key: str,
        status: str | None = None,
    ) -> list[PnlRecord]:
        ...

    @abstractmethod
    def list_active_affiliate_deals(self) -> list[AffiliateModelDeal]:
        ...

    @abstractmethod
    def get_fx_rate(self) -> Decimal | None:
        """Current USD->EUR rate, or None when the store has none."""

    @abstractmethod
    def get_settings(self) -> dict[str, Any]:
        """Stored settings as a flat ``name -> value`` mapping."""

    def months_in_range(self, from_key: str, to_key: str) -> list[MonthRef]:
        """Months with ``from_key <= month_key <= to_key``, ascending."""
        months = [m for m in self.list_months() if from_key <= m.month_key <= to_key]
        return sorted(months, key=lambda m: (m.month_key, m.id))


class InMemoryRecordStore(RecordStore):
    """
    Dict-backed RecordStore.

    ``calls`` counts reads per method so tests can assert the bulk-read
    contract and cache behaviour.  Setting ``fx_error`` makes
    ``get_fx_rate`` raise it.
    """

    def __init__(self) -> None:
        self.months: dict[str, MonthRef] = {}
        self.team_members: list[TeamMember] = []
        self.basis_entries: list[BasisEntry] = []
        self.agency_revenue: dict[str, AgencyRevenue] = {}
        self.models: list[Model] = []
        self.pnl_records: list[PnlRecord] = []
        self.affiliate_deals: list[AffiliateModelDeal] = []
        self.fx_rate: Decimal | None = None
        self.fx_error: Exception | None = None
        self.settings: dict[str, Any] = {}
        self.calls: Counter[str] = Counter()
        self._lock = threading.Lock()

    def _count(self, name: str) -> None:
        with self._lock:
            self.calls[name] += 1

    # -- seeding ------------------------------------------------------------

    def add_month(self, month_id: str, month_key: str, name: str = "") -> MonthRef:
        month = MonthRef(id=month_id, month_key=month_key, name=name)
        self.months[month_id] = month
        return month

    def add_team_members(self, members: Iterable[TeamMember]) -> None:
        self.team_members.extend(members)

    def add_basis_entries(self, entries: Iterable[BasisEntry]) -> None:
        self.basis_entries.extend(entries)

    def set_agency_revenue(self, month_id: str, revenue: AgencyRevenue) -> None:
        self.agency_revenue[month_id] = revenue

    def add_models(self, models: Iterable[Model]) -> None:
        self.models.extend(models)

    def add_pnl_records(self, records: Iterable[PnlRecord]) -> None:
        self.pnl_records.extend(records)

    def add_affiliate_deals(self, deals: Iterable[AffiliateModelDeal]) -> None:
        self.affiliate_deals.extend(deals)

    # -- RecordStore --------------------------------------------------------

    def get_month(self, month_id: str) -> MonthRef | None:
        self._count("get_month")
        return self.months.get(month_id)

    def list_months(self) -> list[MonthRef]:
        self._count("list_months")
        return list(self.months.values())

    def list_team_members(self) -> list[TeamMember]:
        self._count("list_team_members")
        return list(self.team_members)

    def list_basis_entries(self, month_id: str, month_key: str) -> list[BasisEntry]:
        self._count("list_basis_entries")
        return [e for e in self.basis_entries if e.month_key == month_key]

    def get_agency_revenue(self, month_id: str) -> AgencyRevenue | None:
        self._count("get_agency_revenue")
        return self.agency_revenue.get(month_id)

    def list_models(self) -> list[Model]:
        self._count("list_models")
        return list(self.models)

    def list_pnl_records(
        self,
        from_key: str,
        to_key: str,
        status: str | None = None,
    ) -> list[PnlRecord]:
        self._count("list_pnl_records")
        return [
            r
            for r in self.pnl_records
            if from_key <= r.month_key <= to_key and (status is None or r.status.value == status)
        ]

    def list_active_affiliate_deals(self) -> list[AffiliateModelDeal]:
        self._count("list_active_affiliate_deals")
        return [d for d in self.affiliate_deals if d.is_active]

    def get_fx_rate(self) -> Decimal | None:
        self._count("get_fx_rate")
        if self.fx_error is not None:
            raise self.fx_error
        return self.fx_rate

    def get_settings(self) -> dict[str, Any]:
        self._count("get_settings")
        return dict(self.settings)
