"""Exception hierarchy for the query runner and its collaborators."""

from __future__ import annotations


class QueryRunnerError(Exception):
    """Base class for every error raised by hive_runner."""


class ConfigurationError(QueryRunnerError, ValueError):
    """Invalid builder, catalog or connector configuration. Never retryable."""


class UnsupportedTableError(ConfigurationError):
    """A benchmark table has no bucketing rule."""

    def __init__(self, table_name: str) -> None:
        super().__init__(f"Unsupported TPC-H table for bucketed copy: '{table_name}'")
        self.table_name = table_name


class EnvironmentStartupError(QueryRunnerError):
    """Engine start, plugin installation or catalog registration failed."""


class DataPopulationError(EnvironmentStartupError):
    """Copying benchmark data into the catalog under test failed."""

    def __init__(self, table_name: str, cause: BaseException) -> None:
        super().__init__(f"Failed to populate '{table_name}': {cause}")
        self.table_name = table_name


class PreconditionMismatchError(EnvironmentStartupError):
    """The process does not satisfy an environment precondition."""


class QueryError(QueryRunnerError):
    """A statement failed inside the engine."""

    def __init__(self, message: str, sql: str | None = None) -> None:
        super().__init__(message)
        self.sql = sql


class AccessDeniedError(QueryError):
    pass


class SchemaNotFoundError(QueryError):
    def __init__(self, schema_name: str) -> None:
        super().__init__(f"Schema '{schema_name}' does not exist")
        self.schema_name = schema_name


class SchemaAlreadyExistsError(QueryError):
    def __init__(self, schema_name: str) -> None:
        super().__init__(f"Schema '{schema_name}' already exists")
        self.schema_name = schema_name


class TableNotFoundError(QueryError):
    def __init__(self, schema_name: str, table_name: str) -> None:
        super().__init__(f"Table '{schema_name}.{table_name}' does not exist")
        self.schema_name = schema_name
        self.table_name = table_name


class TableAlreadyExistsError(QueryError):
    def __init__(self, schema_name: str, table_name: str) -> None:
        super().__init__(f"Table '{schema_name}.{table_name}' already exists")
        self.schema_name = schema_name
        self.table_name = table_name
