"""
agency_services.reconciliation_service -- persist computed lines and P&L rows.

Responsibility:
    Map computed payout lines and P&L rows onto persisted records by
    natural identity key.  Two explicitly named payout-line strategies:

    * ``merge_run_lines``: idempotent upsert.  Computed fields are
      overwritten, ``paid_status`` / ``paid_at`` are never touched on an
      existing line, new lines start ``pending``.  Lines the computation
      no longer produces are left in place.
    * ``replace_run_lines``: destructive.  Deletes every line of the run
      and inserts the computed set; any paid state is lost.

    Also resolves the month's run, validates run status transitions and
    marks single lines paid.

Architecture position:
    Services -- stateful persistence over the kernel ORM models.
    Flush-only: the caller's session owns commit/rollback.

Invariants enforced:
    - One line per (run, line_key); one P&L row per unique_key.
    - Run status changes only through PAYOUT_RUN_WORKFLOW transitions.
    - ``paid_at`` and run timestamps come from the injected Clock.

Failure modes:
    - InvalidRunTransitionError for an action not allowed from the run's
      current status.
    - PayoutRunNotFoundError / PayoutLineNotFoundError for unknown ids.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from agency_engines.payout import PayoutLine
from agency_engines.pnl import EXPENSE_FIELDS, PnlRow
from agency_kernel.domain.clock import Clock
from agency_kernel.domain.workflow import Transition, Workflow
from agency_kernel.exceptions import (
    InvalidRunTransitionError,
    PayoutLineNotFoundError,
    PayoutRunNotFoundError,
)
from agency_kernel.logging_config import LogContext, get_logger
from agency_kernel.models.payout import (
    PaidStatus,
    PayoutLineModel,
    PayoutRunModel,
    PayoutRunStatus,
)
from agency_kernel.models.pnl import PnlLineModel
from agency_services.base import BaseService

logger = get_logger("services.reconciliation")


PAYOUT_RUN_WORKFLOW = Workflow(
    name="payout_run",
    description="Month payout run: computed lines are locked, then paid out.",
    initial_state=PayoutRunStatus.DRAFT.value,
    states=(
        PayoutRunStatus.DRAFT.value,
        PayoutRunStatus.LOCKED.value,
        PayoutRunStatus.PAID.value,
    ),
    transitions=(
        Transition(PayoutRunStatus.DRAFT.value, PayoutRunStatus.LOCKED.value, "lock"),
        Transition(PayoutRunStatus.LOCKED.value, PayoutRunStatus.DRAFT.value, "unlock"),
        Transition(PayoutRunStatus.LOCKED.value, PayoutRunStatus.PAID.value, "mark_paid"),
    ),
    terminal_states=(PayoutRunStatus.PAID.value,),
)


@dataclass(frozen=True)
class LineReconciliation:
    """Outcome of persisting a computed line set onto a run."""

    run_id: UUID
    created: int = 0
    updated: int = 0
    deleted: int = 0
    paid_preserved: int = 0
    lines: list[PayoutLineModel] = field(default_factory=list)


def _apply_computed_fields(model: PayoutLineModel, line: PayoutLine) -> None:
    model.team_member_id = line.team_member_id
    model.model_id = line.model_id
    model.department = line.department
    model.role = line.role
    model.category = line.category.value
    model.payout_type = line.payout_type
    model.payout_percentage = line.payout_percentage
    model.payout_flat_fee = line.payout_flat_fee
    model.basis_webapp_amount = line.basis_webapp_amount
    model.basis_manual_amount = line.basis_manual_amount
    model.bonus_amount = line.bonus_amount
    model.adjustments_amount = line.adjustments_amount
    model.basis_total = line.basis_total
    model.payout_amount = line.payout_amount
    model.amount_usd = line.amount_usd
    model.amount_eur = line.amount_eur
    model.fx_rate_usd_eur = line.fx_rate
    model.currency = line.currency
    model.breakdown_json = line.breakdown_json


class ReconciliationService(BaseService[PayoutLineModel]):
    """
    Persist computed results onto payout runs and P&L rows.

    Contract:
        Every write is flushed into the caller's transaction.
    Guarantees:
        - ``merge_run_lines`` run twice with the same lines is a no-op the
          second time apart from ``updated_at``.
        - A line marked paid stays paid under ``merge_run_lines``.
    Non-goals:
        - Does not compute lines; see PayoutPreviewService.
        - Does not commit.
    """

    def __init__(self, session: Session, clock: Clock):
        super().__init__(session)
        self._clock = clock

    # =========================================================================
    # Runs
    # =========================================================================

    def get_run(self, run_id: UUID) -> PayoutRunModel:
        run = self.session.get(PayoutRunModel, run_id)
        if run is None:
            raise PayoutRunNotFoundError(str(run_id))
        return run

    def get_or_create_run(self, month_id: str, month_key: str) -> PayoutRunModel:
        """
        The month's payout run.  When several exist the newest (by
        created_at) wins; when none exists a draft is created.
        """
        runs = self.session.scalars(
            select(PayoutRunModel)
            .where(PayoutRunModel.month_id == month_id)
            .order_by(PayoutRunModel.created_at.desc())
        ).all()
        if runs:
            if len(runs) > 1:
                logger.warning(
                    "payout_run_duplicates",
                    extra={"month_id": month_id, "run_count": len(runs), "chosen_run_id": runs[0].id},
                )
            return runs[0]

        now = self._clock.now()
        run = PayoutRunModel(
            month_id=month_id,
            month_key=month_key,
            status=PAYOUT_RUN_WORKFLOW.initial_state,
            created_at=now,
            updated_at=now,
        )
        self.session.add(run)
        self.session.flush()
        logger.info(
            "payout_run_created",
            extra={"run_id": run.id, "month_id": month_id, "month_key": month_key},
        )
        return run

    def transition_run(self, run: PayoutRunModel, action: str) -> PayoutRunModel:
        """
        Apply ``action`` to the run if PAYOUT_RUN_WORKFLOW allows it.

        Raises:
            InvalidRunTransitionError: no such transition from the current status.
        """
        transition = PAYOUT_RUN_WORKFLOW.find_transition(run.status, action)
        if transition is None:
            logger.warning(
                "payout_run_transition_rejected",
                extra={"run_id": run.id, "status": run.status, "action": action},
            )
            raise InvalidRunTransitionError(str(run.id), run.status, action)

        now = self._clock.now()
        previous = run.status
        run.status = transition.to_state
        if transition.to_state == PayoutRunStatus.LOCKED.value:
            run.locked_at = now
        elif transition.to_state == PayoutRunStatus.PAID.value:
            run.paid_at = now
        elif transition.to_state == PayoutRunStatus.DRAFT.value:
            run.locked_at = None
        self.session.flush()
        logger.info(
            "payout_run_transitioned",
            extra={
                "run_id": run.id,
                "from_status": previous,
                "to_status": run.status,
                "action": action,
            },
        )
        return run

    # =========================================================================
    # Lines
    # =========================================================================

    def _existing_lines(self, run: PayoutRunModel) -> list[PayoutLineModel]:
        return list(
            self.session.scalars(
                select(PayoutLineModel)
                .where(PayoutLineModel.run_id == run.id)
                .order_by(PayoutLineModel.line_key)
            )
        )

    def _new_line(self, run: PayoutRunModel, line: PayoutLine) -> PayoutLineModel:
        model = PayoutLineModel(
            run_id=run.id,
            line_key=line.line_key,
            paid_status=PaidStatus.PENDING.value,
            paid_at=None,
        )
        _apply_computed_fields(model, line)
        self.session.add(model)
        return model

    @staticmethod
    def _dedupe(lines: Sequence[PayoutLine]) -> dict[str, PayoutLine]:
        by_key: dict[str, PayoutLine] = {}
        for line in lines:
            if line.line_key in by_key:
                logger.warning("payout_line_key_repeated", extra={"line_key": line.line_key})
            by_key[line.line_key] = line
        return by_key

    def replace_run_lines(
        self,
        run: PayoutRunModel,
        lines: Sequence[PayoutLine],
    ) -> LineReconciliation:
        """
        Destructively replace every line of ``run``.

        Paid state on the deleted lines is lost.  Use merge_run_lines to
        recompute a run that may already be partly paid.
        """
        with LogContext.bind(run_id=str(run.id), month_key=run.month_key):
            existing = self._existing_lines(run)
            paid_lost = sum(1 for line in existing if line.paid_status == PaidStatus.PAID.value)
            self.session.execute(delete(PayoutLineModel).where(PayoutLineModel.run_id == run.id))
            self.session.flush()
            self.session.expire(run, ["lines"])

            created = [self._new_line(run, line) for line in self._dedupe(lines).values()]
            self.session.flush()

            if paid_lost:
                logger.warning("payout_lines_replaced_paid_lost", extra={"paid_lost": paid_lost})
            logger.info(
                "payout_lines_replaced",
                extra={"deleted_count": len(existing), "created_count": len(created)},
            )
            return LineReconciliation(
                run_id=run.id,
                created=len(created),
                deleted=len(existing),
                lines=created,
            )

    def merge_run_lines(
        self,
        run: PayoutRunModel,
        lines: Sequence[PayoutLine],
    ) -> LineReconciliation:
        """
        Upsert computed lines by natural key, preserving paid state.
        """
        with LogContext.bind(run_id=str(run.id), month_key=run.month_key):
            existing = {line.line_key: line for line in self._existing_lines(run)}
            created = 0
            updated = 0
            paid_preserved = 0
            result: list[PayoutLineModel] = []

            for key, line in self._dedupe(lines).items():
                model = existing.get(key)
                if model is None:
                    model = self._new_line(run, line)
                    created += 1
                else:
                    _apply_computed_fields(model, line)
                    updated += 1
                    if model.paid_status == PaidStatus.PAID.value:
                        paid_preserved += 1
                result.append(model)
            self.session.flush()

            logger.info(
                "payout_lines_merged",
                extra={
                    "created_count": created,
                    "updated_count": updated,
                    "paid_preserved": paid_preserved,
                    "untouched": len(existing) - updated,
                },
            )
            return LineReconciliation(
                run_id=run.id,
                created=created,
                updated=updated,
                paid_preserved=paid_preserved,
                lines=result,
            )

    def mark_line_paid(self, line_id: UUID) -> PayoutLineModel:
        line = self.session.get(PayoutLineModel, line_id)
        if line is None:
            raise PayoutLineNotFoundError(str(line_id))
        line.paid_status = PaidStatus.PAID.value
        line.paid_at = self._clock.now()
        self.session.flush()
        logger.info(
            "payout_line_marked_paid",
            extra={"line_id": line.id, "line_key": line.line_key, "paid_at": line.paid_at},
        )
        return line

    # =========================================================================
    # P&L
    # =========================================================================

    def upsert_pnl_row(self, row: PnlRow) -> PnlLineModel:
        """Insert or update the P&L row identified by ``row.unique_key``."""
        model = self.session.scalars(
            select(PnlLineModel).where(PnlLineModel.unique_key == row.unique_key)
        ).one_or_none()
        created = model is None
        if model is None:
            model = PnlLineModel(unique_key=row.unique_key)
            self.session.add(model)

        model.model_id = row.model_id
        model.month_key = row.month_key
        model.status = row.status.value
        model.gross_revenue = row.gross_revenue
        model.of_fee = row.of_fee
        model.net_revenue = row.net_revenue
        for name in EXPENSE_FIELDS:
            setattr(model, name, row.expense(name))
        model.total_marketing_costs = row.total_marketing_costs
        model.total_expenses = row.total_expenses
        model.net_profit = row.net_profit
        model.profit_margin_pct = row.profit_margin_pct.quantize(Decimal("1E-9"))
        model.notes_issues = row.notes_issues
        self.session.flush()

        logger.info(
            "pnl_row_upserted",
            extra={"unique_key": row.unique_key, "row_created": created},
        )
        return model
