"""
Module: agency_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    payout and P&L calculation engines.  This is the canonical import
    surface for agency_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import agency_kernel (domain values, identity keys, logging)
    and sibling engine modules.  MUST NOT import agency_services.

Invariants enforced:
    - Purity: engines never read the clock or the record store; the FX
      rate, settings and every input record are passed in explicitly.
    - Decimal-only arithmetic; floats are coerced at the record boundary.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine entry points are wrapped in ``@traced_engine`` and emit
    AGENCY_ENGINE_TRACE records with an input fingerprint.

Usage:
    from agency_engines import PayoutCalculator, aggregate_basis, compute_pnl_row
"""

from agency_kernel.logging_config import get_logger

logger = get_logger("engines")

from agency_engines.affiliate import (  # noqa: E402
    AffiliateAllocation,
    AffiliateAllocator,
    AffiliateModelDeal,
    DealBasis,
)
from agency_engines.basis import (  # noqa: E402
    BasisAggregation,
    BasisEntry,
    BasisType,
    HourlyDetail,
    MemberBasisEur,
    MemberBasisUsd,
    aggregate_basis,
    make_hourly_entry,
)
from agency_engines.categories import (  # noqa: E402
    Department,
    PayoutCategory,
    Role,
    classify_member,
)
from agency_engines.fx import (  # noqa: E402
    DEFAULT_FX_RATE,
    FxSnapshot,
    ensure_dual_amounts,
    eur_to_usd,
    resolve_rate,
    usd_to_eur,
)
from agency_engines.members import (  # noqa: E402
    AgencyRevenue,
    CompensationType,
    Model,
    PayoutType,
    TeamMember,
)
from agency_engines.payout import (  # noqa: E402
    ModelRevenue,
    PayoutCalculator,
    PayoutLine,
    aggregate_model_revenue,
)
from agency_engines.pnl import (  # noqa: E402
    MarginBand,
    PnlRecord,
    PnlRow,
    PnlSettings,
    PnlStatus,
    compute_pnl_row,
    margin_band,
)
from agency_engines.tiered_deal import (  # noqa: E402
    TieredDealEvaluator,
    compute_tiered_deal,
    evaluate_model_payout,
)

__all__ = [
    "AffiliateAllocation",
    "AffiliateAllocator",
    "AffiliateModelDeal",
    "AgencyRevenue",
    "BasisAggregation",
    "BasisEntry",
    "BasisType",
    "CompensationType",
    "DEFAULT_FX_RATE",
    "DealBasis",
    "Department",
    "FxSnapshot",
    "HourlyDetail",
    "MarginBand",
    "MemberBasisEur",
    "MemberBasisUsd",
    "Model",
    "ModelRevenue",
    "PayoutCalculator",
    "PayoutCategory",
    "PayoutLine",
    "PayoutType",
    "PnlRecord",
    "PnlRow",
    "PnlSettings",
    "PnlStatus",
    "Role",
    "TeamMember",
    "TieredDealEvaluator",
    "aggregate_basis",
    "aggregate_model_revenue",
    "classify_member",
    "compute_pnl_row",
    "compute_tiered_deal",
    "ensure_dual_amounts",
    "eur_to_usd",
    "evaluate_model_payout",
    "make_hourly_entry",
    "margin_band",
    "resolve_rate",
    "usd_to_eur",
]
