"""
EngineSettings schema.

The typed, validated form of the engine's tunable settings.  YAML defaults
and record-store overrides are both parsed into this one frozen dataclass
by ``agency_config.loader``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any

from agency_kernel.exceptions import InvalidSettingsError


@dataclass(frozen=True)
class EngineSettings:
    """Settings the P&L and payout computations read."""

    of_fee_pct: Decimal = Decimal("0.2")
    green_threshold: Decimal = Decimal("0.3")
    yellow_threshold_low: Decimal = Decimal("0.15")
    default_fx_rate: Decimal = Decimal("0.92")
    settings_cache_ttl_seconds: int = 300

    def __post_init__(self) -> None:
        if not Decimal("0") <= self.of_fee_pct < Decimal("1"):
            raise InvalidSettingsError("of_fee_pct", str(self.of_fee_pct), "must be in [0, 1)")
        if self.yellow_threshold_low > self.green_threshold:
            raise InvalidSettingsError(
                "yellow_threshold_low",
                str(self.yellow_threshold_low),
                f"must not exceed green_threshold ({self.green_threshold})",
            )
        if self.default_fx_rate <= 0:
            raise InvalidSettingsError("default_fx_rate", str(self.default_fx_rate), "must be positive")
        if self.settings_cache_ttl_seconds < 0:
            raise InvalidSettingsError(
                "settings_cache_ttl_seconds",
                str(self.settings_cache_ttl_seconds),
                "must not be negative",
            )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
