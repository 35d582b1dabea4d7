"""
Natural identity keys for idempotent persistence.

Identity keys guarantee that recomputing the same month never creates a
second P&L row, weekly forecast or payout line for the same subject.

Formats:
    P&L row           {model_id}-{month_key}-{status}
    Weekly forecast   {model_id}-{week_key}-{scenario}
    Payout line       member:{team_member_id} | model:{model_id}
    Affiliate line    affiliate:{affiliator_id}:{month_key}
"""

import re

from agency_kernel.exceptions import IdentityKeyError

PNL_STATUSES = frozenset({"actual", "forecast"})
WEEKLY_FORECAST_SCENARIOS = frozenset({"expected", "conservative", "aggressive"})
DEFAULT_WEEKLY_SCENARIO = "expected"

_MONTH_KEY_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")
_PNL_KEY_RE = re.compile(r"^(?P<model>.+)-(?P<month>\d{4}-\d{2})-(?P<status>actual|forecast)$")


def is_month_key(value: str | None) -> bool:
    """True for a well-formed ``YYYY-MM`` month key."""
    return bool(value) and bool(_MONTH_KEY_RE.match(value.strip()))


def pnl_identity_key(model_id: str, month_key: str, status: str) -> str:
    """
    Identity of a P&L row: at most one row per (model, month, status).

    Example:
        >>> pnl_identity_key("rec123", "2025-01", "actual")
        "rec123-2025-01-actual"
    """
    model_id = (model_id or "").strip()
    month_key = (month_key or "").strip()
    if not model_id:
        raise IdentityKeyError(model_id, "model_id is required")
    if not is_month_key(month_key):
        raise IdentityKeyError(month_key, "month_key must be YYYY-MM")
    if status not in PNL_STATUSES:
        raise IdentityKeyError(status, f"status must be one of {sorted(PNL_STATUSES)}")
    return f"{model_id}-{month_key}-{status}"


def parse_pnl_identity_key(key: str) -> tuple[str, str, str]:
    """
    Parse a P&L identity key into (model_id, month_key, status).

    Raises:
        IdentityKeyError: If key format is invalid.
    """
    match = _PNL_KEY_RE.match(key or "")
    if match is None:
        raise IdentityKeyError(key, "expected {model_id}-{YYYY-MM}-{status}")
    return match.group("model"), match.group("month"), match.group("status")


def derive_week_key(week_start: str | None, week_end: str | None) -> str:
    """Week key from ISO start/end dates, e.g. ``2026-01-29_to_2026-02-04``."""
    start = (week_start or "").strip()
    end = (week_end or "").strip()
    if not start or not end:
        return start or end
    return f"{start}_to_{end}"


def weekly_forecast_identity_key(model_id: str, week_key: str, scenario: str) -> str:
    """Identity of a weekly forecast row; unknown scenarios collapse to ``expected``."""
    model_id = (model_id or "").strip()
    week_key = (week_key or "").strip()
    if not model_id or not week_key:
        raise IdentityKeyError(f"{model_id}-{week_key}", "model_id and week_key are required")
    scenario = scenario if scenario in WEEKLY_FORECAST_SCENARIOS else DEFAULT_WEEKLY_SCENARIO
    return f"{model_id}-{week_key}-{scenario}"


def payout_line_identity_key(team_member_id: str | None, model_id: str | None) -> str:
    """Identity of a payout line inside one run: the talent wins over its payee."""
    if model_id:
        return f"model:{model_id}"
    if team_member_id:
        return f"member:{team_member_id}"
    raise IdentityKeyError("", "payout line needs a team_member_id or a model_id")


def affiliate_line_identity_key(affiliator_id: str, month_key: str) -> str:
    """One affiliate payout line per affiliator per month, never per deal."""
    if not affiliator_id:
        raise IdentityKeyError("", "affiliator_id is required")
    if not is_month_key(month_key):
        raise IdentityKeyError(month_key, "month_key must be YYYY-MM")
    return f"affiliate:{affiliator_id}:{month_key}"
