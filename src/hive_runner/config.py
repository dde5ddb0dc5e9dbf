"""YAML configuration for the runner builder.

Example ``hive-runner.yaml``::

    hive_properties:
      hive.max-split-size: 32MB
    initial_tables: [nation, region]
    tpch_bucketed_catalog_enabled: true
    initial_schemas_location_base: ${HIVE_RUNNER_LOCATION}
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml

from hive_runner.errors import ConfigurationError
from hive_runner.runner import HiveQueryRunnerBuilder
from hive_runner.tpch import ColumnNaming, DecimalTypeMapping, TpchTable

CONFIG_FILE_NAME = "hive-runner.yaml"


def load_config_file(path: Path) -> dict[str, Any]:
    """Load a YAML mapping from *path*."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Config file {path} contains invalid YAML:\n  {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must be a YAML mapping, got {type(data).__name__}")
    return data


def _resolve_placeholders(value: str) -> str:
    """Expand ``${VAR_NAME}`` tokens in *value* using the environment."""

    def _replacer(match: re.Match[str]) -> str:
        var = match.group(1)
        env_val = os.environ.get(var)
        if env_val is None:
            raise ConfigurationError(f"Environment variable ${{{var}}} referenced in config but not set")
        return env_val

    return re.sub(r"\$\{(\w+)\}", _replacer, value)


def _to_str(v: Any) -> str:
    # YAML parses bare true/false as bools and sizes like 1000 as ints
    if isinstance(v, bool):
        return str(v).lower()
    if isinstance(v, str):
        return _resolve_placeholders(v)
    return str(v)


def _properties(key: str, value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        raise ConfigurationError(f"'{key}' must be a mapping, got {type(value).__name__}")
    return {str(k): _to_str(v) for k, v in value.items()}


def _flag(key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(f"'{key}' must be true or false, got {value!r}")
    return value


def _enum(enum_type, key: str, value: Any):
    try:
        return enum_type(str(value).upper())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_type)
        raise ConfigurationError(f"'{key}' must be one of {allowed}, got {value!r}") from None


def _tables(value: Any) -> list[str]:
    if isinstance(value, str):
        if value.lower() == "all":
            return [t.table_name for t in TpchTable.get_tables()]
        return [value]
    if not isinstance(value, list):
        raise ConfigurationError(f"'initial_tables' must be a list or 'all', got {type(value).__name__}")
    return [str(v) for v in value]


def apply_config(builder: HiveQueryRunnerBuilder, config: dict[str, Any]) -> HiveQueryRunnerBuilder:
    """Apply the known keys of *config* to *builder*. Unknown keys are rejected."""
    for key, value in config.items():
        if key == "hive_properties":
            for name, prop in _properties(key, value).items():
                builder.add_hive_property(name, prop)
        elif key == "extra_properties":
            for name, prop in _properties(key, value).items():
                builder.add_extra_property(name, prop)
        elif key == "initial_tables":
            builder.set_initial_tables(_tables(value))
        elif key == "initial_schemas_location_base":
            builder.set_initial_schemas_location_base(_to_str(value))
        elif key == "skip_timezone_setup":
            builder.set_skip_timezone_setup(_flag(key, value))
        elif key == "tpcds_catalog_enabled":
            builder.set_tpcds_catalog_enabled(_flag(key, value))
        elif key == "tpch_bucketed_catalog_enabled":
            builder.set_tpch_bucketed_catalog_enabled(_flag(key, value))
        elif key == "create_tpch_schemas":
            builder.set_create_tpch_schemas(_flag(key, value))
        elif key == "tpch_column_naming":
            builder.set_tpch_column_naming(_enum(ColumnNaming, key, value))
        elif key == "tpch_decimal_type_mapping":
            builder.set_tpch_decimal_type_mapping(_enum(DecimalTypeMapping, key, value))
        else:
            raise ConfigurationError(f"Unknown configuration key: '{key}'")
    return builder


def apply_config_file(builder: HiveQueryRunnerBuilder, path: Path) -> HiveQueryRunnerBuilder:
    return apply_config(builder, load_config_file(path))
