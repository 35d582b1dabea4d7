"""
Configuration Loader (``agency_config.loader``).

Responsibility
--------------
Loads the YAML defaults file and parses it, together with any settings
stored in the record store, into a frozen ``EngineSettings``.

Architecture position
---------------------
**Config layer**.  Consumed by ``agency_services.settings_service``.  Has
no dependency on engines or services.

Invariants enforced
-------------------
* Store-provided values override YAML defaults key by key.
* Unknown keys are ignored (and logged), never silently mapped.
* ``compute_checksum`` produces a deterministic SHA-256 hash of a
  settings set for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* A value that is not a number  -> ``InvalidSettingsError``.
* A value out of range  -> ``InvalidSettingsError`` from ``EngineSettings``.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Mapping
from dataclasses import fields
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from agency_config.schema import EngineSettings
from agency_kernel.domain.values import to_decimal
from agency_kernel.exceptions import InvalidSettingsError

_logger = logging.getLogger("agency_kernel.config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _coerce(name: str, field_type: Any, value: Any) -> Decimal | int:
    number = to_decimal(value)
    if number is None:
        raise InvalidSettingsError(name, str(value), "must be a finite number")
    if field_type in (int, "int"):
        if number != number.to_integral_value():
            raise InvalidSettingsError(name, str(value), "must be a whole number")
        return int(number)
    return number


def parse_engine_settings(
    data: Mapping[str, Any],
    base: EngineSettings | None = None,
) -> EngineSettings:
    """
    Parse a flat ``name -> value`` mapping onto ``base`` (or the built-in
    defaults).  Keys absent from ``data`` keep the ``base`` value.
    """
    values = (base or EngineSettings()).to_dict()
    known = {f.name: f.type for f in fields(EngineSettings)}
    for name, raw in data.items():
        if name not in known:
            _logger.debug("settings_key_ignored", extra={"setting_name": name})
            continue
        if raw is None:
            continue
        values[name] = _coerce(name, known[name], raw)
    return EngineSettings(**values)


def load_engine_settings(
    path: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> EngineSettings:
    """
    Load YAML defaults from ``path`` (the packaged defaults when None) and
    apply ``overrides`` on top.
    """
    raw = load_yaml_file(path or DEFAULTS_PATH)
    settings = parse_engine_settings(raw.get("settings", {}))
    if overrides:
        settings = parse_engine_settings(overrides, base=settings)
    _logger.info(
        "engine_settings_loaded",
        extra={
            "source": str(path or DEFAULTS_PATH),
            "override_count": len(overrides or {}),
            "checksum": compute_checksum(settings.to_dict()),
        },
    )
    return settings


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
