"""
Module: agency_kernel.models.pnl
Responsibility: ORM persistence for derived P&L rows.

Invariants enforced:
    - At most one row per (model, month, status): ``unique_key`` =
      ``{model_id}-{month_key}-{status}`` carries a unique constraint.
"""

from decimal import Decimal

from sqlalchemy import Index, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from agency_kernel.db.base import TrackedBase


class PnlLineModel(TrackedBase):
    """Persisted P&L row for one talent, month and status."""

    __tablename__ = "pnl_lines"

    __table_args__ = (
        UniqueConstraint("unique_key", name="uq_pnl_unique_key"),
        Index("idx_pnl_model_month", "model_id", "month_key"),
    )

    unique_key: Mapped[str] = mapped_column(String(160), nullable=False)

    model_id: Mapped[str] = mapped_column(String(64), nullable=False)

    month_key: Mapped[str] = mapped_column(String(7), nullable=False)

    status: Mapped[str] = mapped_column(String(16), nullable=False)

    gross_revenue: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"))
    of_fee: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"))
    net_revenue: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"))

    chatting_costs_team: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"))
    marketing_costs_team: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"))
    production_costs_team: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"))
    ads_spend: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"))
    other_marketing_costs: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"))
    salary: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"))
    affiliate_fee: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"))
    bonuses: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"))
    airbnbs: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"))
    softwares: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"))
    fx_withdrawal_fees: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"))
    other_costs: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"))

    total_marketing_costs: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"))
    total_expenses: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"))
    net_profit: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"))
    profit_margin_pct: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"))

    notes_issues: Mapped[str] = mapped_column(Text, default="", nullable=False)

    def __repr__(self) -> str:
        return f"<PnlLine {self.unique_key}: net={self.net_revenue}>"
