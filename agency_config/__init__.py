"""
agency_config -- engine settings.

Responsibility:
    Provides typed engine settings: YAML defaults shipped with the package
    (``defaults.yaml``), overridden key by key by the values stored in the
    record store's settings table.

Architecture position:
    Configuration -- sits above ``agency_kernel`` and below
    ``agency_services``.  Engines never import it; services translate
    ``EngineSettings`` into the plain parameters engines take.
"""

from agency_config.loader import (
    DEFAULTS_PATH,
    compute_checksum,
    load_engine_settings,
    load_yaml_file,
    parse_engine_settings,
)
from agency_config.schema import EngineSettings

__all__ = [
    "DEFAULTS_PATH",
    "EngineSettings",
    "compute_checksum",
    "load_engine_settings",
    "load_yaml_file",
    "parse_engine_settings",
]
