"""
Settings service -- read-through cache of engine settings.

Responsibility:
    Serve ``EngineSettings`` (YAML defaults overridden by the store's
    settings table) to the computation services, re-reading the store
    only when the cached copy is older than the configured TTL.

Architecture position:
    Services -- the only place settings are read from the record store.

Invariants enforced:
    - Staleness is measured against the injected ``Clock``, never the
      wall clock, so tests control expiry deterministically.
    - ``invalidate()`` forces the next ``get()`` to re-read the store.
    - A TTL of 0 disables caching.

Failure modes:
    - InvalidSettingsError when a stored value is out of range; the cache
      keeps its previous value in that case.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta

from agency_config.loader import load_engine_settings, parse_engine_settings
from agency_config.schema import EngineSettings
from agency_engines.pnl import PnlSettings
from agency_kernel.domain.clock import Clock
from agency_kernel.logging_config import get_logger
from agency_services.record_store import RecordStore

logger = get_logger("services.settings")


class SettingsService:
    """
    TTL cache over the record store's settings.

    Contract:
        ``get()`` returns the merged settings; at most one store read per
        TTL window.
    Non-goals:
        - Does not write settings back to the store.
    """

    def __init__(
        self,
        store: RecordStore,
        clock: Clock,
        defaults: EngineSettings | None = None,
        ttl_seconds: int | None = None,
    ):
        self._store = store
        self._clock = clock
        self._defaults = defaults if defaults is not None else load_engine_settings()
        ttl = ttl_seconds if ttl_seconds is not None else self._defaults.settings_cache_ttl_seconds
        self._ttl = timedelta(seconds=ttl)
        self._cached: EngineSettings | None = None
        self._loaded_at: datetime | None = None
        self._lock = threading.Lock()

    @property
    def defaults(self) -> EngineSettings:
        return self._defaults

    def get(self) -> EngineSettings:
        with self._lock:
            now = self._clock.now()
            if (
                self._cached is not None
                and self._loaded_at is not None
                and now - self._loaded_at < self._ttl
            ):
                return self._cached

            stored = self._store.get_settings()
            settings = parse_engine_settings(stored, base=self._defaults)
            self._cached = settings
            self._loaded_at = now
            logger.debug(
                "settings_refreshed",
                extra={"stored_key_count": len(stored), "loaded_at": now},
            )
            return settings

    def invalidate(self) -> None:
        with self._lock:
            self._cached = None
            self._loaded_at = None
        logger.debug("settings_invalidated")

    def pnl_settings(self) -> PnlSettings:
        settings = self.get()
        return PnlSettings(
            of_fee_pct=settings.of_fee_pct,
            green_threshold=settings.green_threshold,
            yellow_threshold_low=settings.yellow_threshold_low,
        )
