"""
Module: agency_kernel.models.payout
Responsibility: ORM persistence for payout runs and their payout lines.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One line per natural key inside a run (uq_payout_line_run_key):
      ``member:{team_member_id}`` or ``model:{model_id}``.
    - ``paid_status`` / ``paid_at`` are owned by the operator, never by the
      computation; merge reconciliation leaves them untouched.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agency_kernel.db.base import TrackedBase, UUIDString


class PayoutRunStatus(str, Enum):
    """Coarse workflow status of a month's payout run."""

    DRAFT = "draft"
    LOCKED = "locked"
    PAID = "paid"


class PaidStatus(str, Enum):
    """Operator-owned payment state of one line."""

    PENDING = "pending"
    PAID = "paid"


class PayoutRunModel(TrackedBase):
    """
    Month-scoped container for a batch of computed payout lines.

    Non-goals:
        - Does not enforce the draft -> locked -> paid workflow; the
          reconciliation service validates explicit transition requests.
    """

    __tablename__ = "payout_runs"

    __table_args__ = (Index("idx_payout_run_month", "month_id"),)

    month_id: Mapped[str] = mapped_column(String(64), nullable=False)

    month_key: Mapped[str] = mapped_column(String(7), nullable=False)

    status: Mapped[str] = mapped_column(
        String(16),
        default=PayoutRunStatus.DRAFT.value,
        nullable=False,
    )

    locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    notes: Mapped[str] = mapped_column(Text, default="", nullable=False)

    lines: Mapped[list["PayoutLineModel"]] = relationship(
        back_populates="run",
        cascade="all, delete-orphan",
        order_by="PayoutLineModel.line_key",
    )

    def __repr__(self) -> str:
        return f"<PayoutRun {self.month_key}: {self.status}>"


class PayoutLineModel(TrackedBase):
    """One persisted payout line (team member, talent or affiliator)."""

    __tablename__ = "payout_lines"

    __table_args__ = (
        UniqueConstraint("run_id", "line_key", name="uq_payout_line_run_key"),
        Index("idx_payout_line_member", "team_member_id"),
    )

    run_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("payout_runs.id", ondelete="CASCADE"),
        nullable=False,
    )

    line_key: Mapped[str] = mapped_column(String(160), nullable=False)

    team_member_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    model_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    department: Mapped[str] = mapped_column(String(32), default="", nullable=False)

    role: Mapped[str] = mapped_column(String(32), default="", nullable=False)

    category: Mapped[str] = mapped_column(String(16), nullable=False)

    payout_type: Mapped[str] = mapped_column(String(16), default="none", nullable=False)

    payout_percentage: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)

    payout_flat_fee: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)

    basis_webapp_amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"))

    basis_manual_amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"))

    bonus_amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"))

    adjustments_amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"))

    basis_total: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"))

    payout_amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    amount_usd: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)

    amount_eur: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)

    # FX snapshot used for this line; later rate changes never alter it
    fx_rate_usd_eur: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    breakdown_json: Mapped[str] = mapped_column(Text, default="{}", nullable=False)

    paid_status: Mapped[str] = mapped_column(
        String(16),
        default=PaidStatus.PENDING.value,
        nullable=False,
    )

    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    run: Mapped[PayoutRunModel] = relationship(back_populates="lines")

    def __repr__(self) -> str:
        return f"<PayoutLine {self.line_key}: {self.payout_amount} {self.currency} [{self.paid_status}]>"
