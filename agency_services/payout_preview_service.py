"""
agency_services.payout_preview_service -- month payout preview and range totals.

Responsibility:
    Load one month's inputs from the record store, run the basis, payout
    and affiliate engines, and return every payout line of the month
    grouped by category.  Sum previews over a month range for the agency
    overview.  Nothing is written; persistence is the caller's choice
    (see ``ReconciliationService``).

Architecture position:
    Services -- orchestration over engines + the RecordStore I/O boundary.

Invariants enforced:
    - One month computation issues a fixed set of bulk reads.
    - The FX rate is frozen once per invocation: explicit rate, else the
      store's rate, else the configured default.
    - Line order is deterministic: members, then talent, then affiliators.
    - Range computations merge per-month results in month order, so the
      result does not depend on ``max_workers``.

Failure modes:
    - MonthNotFoundError / InvalidMonthKeyError for an unresolvable month.
    - AmbiguousPercentageConfigError aborts the month (and the range).
    - InvalidExchangeRateError for an explicit non-positive rate.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from decimal import Decimal

from agency_engines.affiliate import AffiliateAllocator
from agency_engines.basis import aggregate_basis
from agency_engines.categories import PayoutCategory
from agency_engines.fx import FxSnapshot, resolve_rate
from agency_engines.members import AgencyRevenue
from agency_engines.payout import PayoutCalculator, PayoutLine, aggregate_model_revenue
from agency_engines.pnl import PnlStatus
from agency_kernel.domain.clock import Clock
from agency_kernel.domain.values import ExchangeRate, round_money
from agency_kernel.exceptions import InvalidMonthKeyError, MonthNotFoundError
from agency_kernel.logging_config import LogContext, get_logger
from agency_kernel.utils.identity import is_month_key
from agency_services.record_store import MonthRef, RecordStore
from agency_services.settings_service import SettingsService

logger = get_logger("services.payout_preview")

_ZERO = Decimal("0")


@dataclass(frozen=True)
class PreviewDiagnostics:
    fx_rate: Decimal
    fx_source: str
    dropped_basis_count: int = 0
    dropped_member_ids: tuple[str, ...] = ()
    affiliate_deals_in_range: int = 0
    matched_model_count: int = 0
    affiliate_total_usd: Decimal = _ZERO


@dataclass(frozen=True)
class PayoutPreviewResult:
    """Every payout line of one month, plus the per-category view."""

    month_key: str
    lines: tuple[PayoutLine, ...]
    by_category: dict[PayoutCategory, tuple[PayoutLine, ...]]
    diagnostics: PreviewDiagnostics


@dataclass(frozen=True)
class LivePayoutsResult:
    """USD payout totals over a month range."""

    by_model_id: dict[str, Decimal] = field(default_factory=dict)
    by_team_member_id: dict[str, Decimal] = field(default_factory=dict)
    affiliate_total_usd: Decimal = _ZERO
    total_payout_usd: Decimal = _ZERO
    item_count: int = 0


class PayoutPreviewService:
    """
    Compute payout previews against a RecordStore.

    Contract:
        Read-only.  Calling ``compute_preview_payouts`` twice with unchanged
        store contents yields equal results.
    Non-goals:
        - Persisting lines or runs.
        - Cancellation and timeouts; those belong to the caller.
    """

    def __init__(
        self,
        store: RecordStore,
        settings: SettingsService,
        clock: Clock,
        calculator: PayoutCalculator | None = None,
        allocator: AffiliateAllocator | None = None,
        max_workers: int = 1,
    ):
        self._store = store
        self._settings = settings
        self._clock = clock
        self._calculator = calculator or PayoutCalculator()
        self._allocator = allocator or AffiliateAllocator()
        self._max_workers = max(1, max_workers)

    # =========================================================================
    # FX
    # =========================================================================

    def resolve_fx(self, fx_rate: Decimal | str | None = None) -> FxSnapshot:
        """
        Freeze the rate for one invocation.

        An explicit rate must be positive (InvalidExchangeRateError
        otherwise).  A missing or failing store rate falls back to the
        configured default.
        """
        now = self._clock.now()
        if fx_rate is not None:
            return FxSnapshot(rate=ExchangeRate.usd_eur(fx_rate).rate, as_of=now, source="caller")

        try:
            stored = self._store.get_fx_rate()
        except Exception:
            logger.warning("fx_rate_fetch_failed", exc_info=True)
            stored = None
        rate = resolve_rate(stored)
        if rate is not None:
            return FxSnapshot(rate=rate, as_of=now, source="store")

        default = self._settings.get().default_fx_rate
        logger.warning("fx_rate_defaulted", extra={"default_fx_rate": default})
        return FxSnapshot(rate=default, as_of=now, source="default")

    # =========================================================================
    # Month preview
    # =========================================================================

    def _resolve_month(self, month_id: str) -> MonthRef:
        month = self._store.get_month(month_id)
        if month is None:
            raise MonthNotFoundError(month_id)
        if not is_month_key(month.month_key):
            raise InvalidMonthKeyError(month.month_key, month_id)
        return month

    def compute_preview_payouts(
        self,
        month_id: str,
        fx_rate: Decimal | str | None = None,
    ) -> PayoutPreviewResult:
        """Compute every payout line of ``month_id`` without writing anything."""
        month = self._resolve_month(month_id)
        fx = self.resolve_fx(fx_rate)
        return self._compute_month(month, fx)

    def _compute_month(self, month: MonthRef, fx: FxSnapshot) -> PayoutPreviewResult:
        t0 = time.monotonic()
        with LogContext.bind(month_key=month.month_key):
            logger.info(
                "payout_preview_started",
                extra={"month_id": month.id, "fx_rate": fx.rate, "fx_source": fx.source},
            )

            members = self._store.list_team_members()
            entries = self._store.list_basis_entries(month.id, month.month_key)
            revenue = self._store.get_agency_revenue(month.id) or AgencyRevenue()
            models = self._store.list_models()
            pnl_records = self._store.list_pnl_records(
                month.month_key, month.month_key, status=PnlStatus.ACTUAL.value
            )
            deals = self._store.list_active_affiliate_deals()

            active_ids = {m.id for m in members if m.is_active}
            basis = aggregate_basis(entries, active_ids, fx.rate)
            revenue_by_model = aggregate_model_revenue(pnl_records)

            member_lines = self._calculator.compute_member_lines(members, basis, revenue, fx.rate)
            model_lines = self._calculator.compute_model_lines(models, revenue_by_model, fx.rate)
            allocation = self._allocator.allocate(
                month.month_key, deals, members, revenue_by_model, basis, fx.rate
            )

            lines = tuple(member_lines + model_lines + allocation.lines)
            by_category = {
                category: tuple(line for line in lines if line.category is category)
                for category in PayoutCategory
            }
            diagnostics = PreviewDiagnostics(
                fx_rate=fx.rate,
                fx_source=fx.source,
                dropped_basis_count=basis.dropped_count,
                dropped_member_ids=basis.dropped_member_ids,
                affiliate_deals_in_range=allocation.deals_in_range,
                matched_model_count=allocation.matched_model_count,
                affiliate_total_usd=allocation.total_usd,
            )

            logger.info(
                "payout_preview_completed",
                extra={
                    "month_id": month.id,
                    "line_count": len(lines),
                    "by_category": {c.value: len(v) for c, v in by_category.items()},
                    "dropped_basis_count": basis.dropped_count,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return PayoutPreviewResult(
                month_key=month.month_key,
                lines=lines,
                by_category=by_category,
                diagnostics=diagnostics,
            )

    # =========================================================================
    # Range totals
    # =========================================================================

    def compute_live_payouts_in_range(
        self,
        from_key: str,
        to_key: str,
        fx_rate: Decimal | str | None = None,
    ) -> LivePayoutsResult:
        """
        Sum USD payout values over every month in ``[from_key, to_key]``.

        Affiliate lines go to ``affiliate_total_usd``, talent lines to
        ``by_model_id`` and every other line to ``by_team_member_id``.
        Lines worth 0 USD are skipped.
        """
        for key in (from_key, to_key):
            if not is_month_key(key):
                raise InvalidMonthKeyError(key)

        fx = self.resolve_fx(fx_rate)
        months = self._store.months_in_range(from_key.strip(), to_key.strip())
        logger.info(
            "live_payouts_started",
            extra={
                "from_key": from_key,
                "to_key": to_key,
                "month_count": len(months),
                "max_workers": self._max_workers,
            },
        )

        if self._max_workers > 1 and len(months) > 1:
            with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
                previews = list(pool.map(lambda m: self._compute_month(m, fx), months))
        else:
            previews = [self._compute_month(m, fx) for m in months]

        by_model: dict[str, Decimal] = {}
        by_member: dict[str, Decimal] = {}
        affiliate_total = _ZERO
        total = _ZERO
        item_count = 0
        for preview in previews:
            for line in preview.lines:
                amount_usd = line.usd_value(fx.rate)
                if amount_usd == 0:
                    continue
                item_count += 1
                total += amount_usd
                if line.category is PayoutCategory.AFFILIATE:
                    affiliate_total += amount_usd
                elif line.category is PayoutCategory.MODEL and line.model_id:
                    by_model[line.model_id] = by_model.get(line.model_id, _ZERO) + amount_usd
                elif line.team_member_id:
                    by_member[line.team_member_id] = by_member.get(line.team_member_id, _ZERO) + amount_usd

        result = LivePayoutsResult(
            by_model_id=by_model,
            by_team_member_id=by_member,
            affiliate_total_usd=round_money(affiliate_total),
            total_payout_usd=round_money(total),
            item_count=item_count,
        )
        logger.info(
            "live_payouts_completed",
            extra={"item_count": item_count, "total_payout_usd": result.total_payout_usd},
        )
        return result
