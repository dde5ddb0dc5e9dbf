"""Copy TPC-H reference tables into a Hive schema."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from urllib.parse import urlparse

from hive_runner.bucketing import bucketing_clause, resolve_bucketing
from hive_runner.engine import QueryEngine
from hive_runner.errors import ConfigurationError, DataPopulationError, QueryRunnerError
from hive_runner.metastore import Database, HiveMetastore, PrincipalType
from hive_runner.session import Session
from hive_runner.tpch import ColumnNaming, TpchTable
from hive_runner.utils import format_duration, to_local_path

log = logging.getLogger(__name__)

SCHEMA_OWNER = "public"


@dataclass(frozen=True)
class PopulationResult:
    table_name: str
    row_count: int
    elapsed: float


def _table_name(table: TpchTable | str) -> str:
    name = table.table_name if isinstance(table, TpchTable) else str(table)
    return name.lower()


def _copy_table(engine: QueryEngine, session: Session, target: str, source: str, clause: str) -> PopulationResult:
    start = time.monotonic()
    parts = [f"CREATE TABLE {target}"]
    if clause:
        parts.append(clause)
    parts.append(f"AS SELECT * FROM {source}")
    try:
        rows = engine.execute(session, " ".join(parts)).only_value()
    except (QueryRunnerError, ValueError) as exc:
        raise DataPopulationError(target, exc) from exc
    elapsed = time.monotonic() - start
    log.info("Imported %s rows from %s in %s", rows, source, format_duration(elapsed))
    return PopulationResult(target, rows, elapsed)


def copy_tpch_tables(
    engine: QueryEngine,
    source_catalog: str,
    source_schema: str,
    session: Session,
    tables: Iterable[TpchTable | str],
) -> list[PopulationResult]:
    """``CREATE TABLE <t> AS SELECT * FROM <source_catalog>.<source_schema>.<t>`` for each table, in order."""
    results = []
    for table in tables:
        name = _table_name(table)
        results.append(_copy_table(engine, session, name, f"{source_catalog}.{source_schema}.{name}", ""))
    return results


def copy_tpch_tables_bucketed(
    engine: QueryEngine,
    source_catalog: str,
    source_schema: str,
    session: Session,
    tables: Iterable[TpchTable | str],
    column_naming: ColumnNaming = ColumnNaming.SIMPLIFIED,
) -> list[PopulationResult]:
    """Like :func:`copy_tpch_tables`, bucketing each table per :func:`resolve_bucketing`.

    An unsupported table raises before anything is copied for it.
    """
    results = []
    for table in tables:
        name = _table_name(table)
        clause = bucketing_clause(resolve_bucketing(name, column_naming))
        results.append(_copy_table(engine, session, name, f"{source_catalog}.{source_schema}.{name}", clause))
    return results


def populate_tables(
    engine: QueryEngine,
    tables: Iterable[TpchTable | str],
    session: Session,
    *,
    bucketed: bool = False,
    source_catalog: str = "tpch",
    source_schema: str = "tiny",
    column_naming: ColumnNaming = ColumnNaming.SIMPLIFIED,
) -> list[PopulationResult]:
    if bucketed:
        return copy_tpch_tables_bucketed(engine, source_catalog, source_schema, session, tables, column_naming)
    return copy_tpch_tables(engine, source_catalog, source_schema, session, tables)


def validate_location_base(location_base: str) -> str:
    """Return *location_base* without its trailing slash.

    Only local locations are supported: an absolute path or a ``file:`` URI.
    """
    base = location_base.strip()
    if not base:
        raise ConfigurationError("Location base must not be blank")
    scheme = urlparse(base).scheme
    if scheme and scheme != "file":
        raise ConfigurationError(f"Unsupported location base scheme '{scheme}': {location_base}")
    if not to_local_path(base).is_absolute():
        raise ConfigurationError(f"Location base must be absolute: {location_base}")
    return base.rstrip("/") or "/"


def create_database_metastore_object(name: str, location_base: str | None = None) -> Database:
    """Schema record owned by the ``public`` role, located at ``<location_base>/<name>`` when a base is given."""
    if location_base is not None:
        location_base = validate_location_base(location_base)
    return Database(
        database_name=name,
        location=f"{location_base}/{name}" if location_base is not None else None,
        owner_name=SCHEMA_OWNER,
        owner_type=PrincipalType.ROLE,
    )


def populate_schema(
    engine: QueryEngine,
    metastore: HiveMetastore,
    schema_name: str,
    session: Session,
    tables: Iterable[TpchTable | str],
    *,
    location_base: str | None = None,
    bucketed: bool = False,
    column_naming: ColumnNaming = ColumnNaming.SIMPLIFIED,
    session_mutator: Callable[[Session], Session] | None = None,
) -> list[PopulationResult] | None:
    """Create *schema_name* and copy *tables* into it, unless the schema already exists.

    Returns ``None`` when the schema was already present; nothing is copied
    in that case, not even tables that are missing from it.
    """
    if metastore.get_database(schema_name) is not None:
        log.info("Schema %s already exists, skipping data population", schema_name)
        return None
    metastore.create_database(create_database_metastore_object(schema_name, location_base))
    if session_mutator is not None:
        session = session_mutator(session)
    return populate_tables(engine, tables, session, bucketed=bucketed, column_naming=column_naming)
