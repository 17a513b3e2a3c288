"""
Config Module - Black Box Interface

Purpose: Typed controller configuration and deterministic pod naming
Interface: load_config(), Config.pod_name(), Metrics.name_for()
Hidden: ConfigMap layout, YAML parsing, owner lookup of the controller pod

Can be replaced with any config source that produces a Config.
"""

from .config import (
    CONFIG_FILE_NAME,
    POD_TEMPLATE_NAME,
    Config,
    ConfigError,
    Metric,
    Metrics,
    load_config,
)

__all__ = [
    "CONFIG_FILE_NAME",
    "POD_TEMPLATE_NAME",
    "Config",
    "ConfigError",
    "Metric",
    "Metrics",
    "load_config",
]
