"""Connectors for the benchmark catalogs and the Hive catalog under test."""

from __future__ import annotations

from collections.abc import Mapping

from hive_runner.errors import ConfigurationError


def check_properties(connector_name: str, properties: Mapping[str, str], known: set[str]) -> None:
    """Reject catalog properties the connector does not understand."""
    unknown = sorted(set(properties) - known)
    if unknown:
        raise ConfigurationError(
            f"Unknown properties for connector '{connector_name}': {', '.join(unknown)}"
        )
