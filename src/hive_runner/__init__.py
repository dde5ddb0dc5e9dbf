"""Ephemeral Hive query environments seeded with TPC-H data."""

from __future__ import annotations

__version__ = "0.1.0"

from hive_runner.bucketing import BUCKET_COUNT, BucketSpec, resolve_bucketing  # noqa: E402
from hive_runner.errors import (  # noqa: E402
    ConfigurationError,
    DataPopulationError,
    EnvironmentStartupError,
    PreconditionMismatchError,
    QueryError,
    QueryRunnerError,
)
from hive_runner.runner import HiveQueryRunner, HiveQueryRunnerBuilder  # noqa: E402
from hive_runner.session import create_bucketed_session, create_session  # noqa: E402
from hive_runner.tpch import ColumnNaming, DecimalTypeMapping, TpchTable  # noqa: E402

__all__ = [
    "BUCKET_COUNT",
    "BucketSpec",
    "ColumnNaming",
    "ConfigurationError",
    "DataPopulationError",
    "DecimalTypeMapping",
    "EnvironmentStartupError",
    "HiveQueryRunner",
    "HiveQueryRunnerBuilder",
    "PreconditionMismatchError",
    "QueryError",
    "QueryRunnerError",
    "TpchTable",
    "__version__",
    "create_bucketed_session",
    "create_session",
    "resolve_bucketing",
]
