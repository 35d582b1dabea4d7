"""ORM models for the agency kernel."""

from agency_kernel.models.payout import (
    PaidStatus,
    PayoutLineModel,
    PayoutRunModel,
    PayoutRunStatus,
)
from agency_kernel.models.pnl import PnlLineModel

__all__ = [
    "PaidStatus",
    "PayoutLineModel",
    "PayoutRunModel",
    "PayoutRunStatus",
    "PnlLineModel",
]
