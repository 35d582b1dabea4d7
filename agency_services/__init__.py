"""
agency_services -- Package init and public API.

Responsibility:
    Stateful orchestration over the pure engines: the record-store read
    boundary, the settings cache, payout previews and the persistence of
    computed lines and P&L rows.  This is the only layer that reads the
    record store, holds database sessions or consults the clock.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

        agency_services/ -> agency_engines/  (allowed)
        agency_services/ -> agency_kernel/   (allowed)
        agency_engines/  -> agency_services/ (FORBIDDEN)

Invariants enforced:
    - Persisting services flush only; the caller owns commit/rollback.
"""

from agency_kernel.logging_config import get_logger

logger = get_logger("services")

from agency_services.payout_preview_service import (  # noqa: E402
    LivePayoutsResult,
    PayoutPreviewResult,
    PayoutPreviewService,
    PreviewDiagnostics,
)
from agency_services.reconciliation_service import (  # noqa: E402
    PAYOUT_RUN_WORKFLOW,
    LineReconciliation,
    ReconciliationService,
)
from agency_services.record_store import (  # noqa: E402
    InMemoryRecordStore,
    MonthRef,
    RecordStore,
)
from agency_services.settings_service import SettingsService  # noqa: E402

__all__ = [
    "InMemoryRecordStore",
    "LineReconciliation",
    "LivePayoutsResult",
    "MonthRef",
    "PAYOUT_RUN_WORKFLOW",
    "PayoutPreviewResult",
    "PayoutPreviewService",
    "PreviewDiagnostics",
    "ReconciliationService",
    "RecordStore",
    "SettingsService",
]
