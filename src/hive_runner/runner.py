"""Build a ready-to-query Hive test environment.

    with HiveQueryRunner.builder().set_initial_tables(TpchTable.get_tables()).build() as runner:
        runner.execute("SELECT count(*) FROM orders")

``build()`` starts an engine, registers the ``tpch`` (and optionally
``tpcds``) benchmark catalogs, the ``hive`` catalog and optionally the
``hive_bucketed`` catalog, then copies the requested TPC-H tables into
``hive.tpch`` (and ``hive_bucketed.tpch_bucketed``). Either a fully
populated runner is returned or the engine is closed and the error raised.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import Any

from opentelemetry import trace

from hive_runner import utils
from hive_runner.connectors.hive import DirectoryLister, HiveConnector, HivePlugin
from hive_runner.connectors.hive.config import SQL_STANDARD
from hive_runner.connectors.tpcds import TpcdsPlugin
from hive_runner.connectors.tpch import TpchPlugin
from hive_runner.engine import MaterializedResult, QueryEngine, start_engine
from hive_runner.errors import (
    ConfigurationError,
    DataPopulationError,
    EnvironmentStartupError,
    PreconditionMismatchError,
)
from hive_runner.metastore import HiveMetastore, HiveMetastoreFactory
from hive_runner.population import (
    create_database_metastore_object,
    populate_schema,
    validate_location_base,
)
from hive_runner.session import (
    ADMIN_ROLE,
    HIVE_BUCKETED_CATALOG,
    HIVE_CATALOG,
    TPCH_BUCKETED_SCHEMA,
    TPCH_SCHEMA,
    SelectedRole,
    Session,
    create_bucketed_session,
    create_session,
)
from hive_runner.tpch import ColumnNaming, DecimalTypeMapping, TpchTable

log = logging.getLogger(__name__)

TIME_ZONE = "America/Bahia_Banderas"
HIVE_DATA_DIR = "hive_data"

__all__ = [
    "HIVE_BUCKETED_CATALOG",
    "HIVE_CATALOG",
    "TIME_ZONE",
    "TPCH_BUCKETED_SCHEMA",
    "TPCH_SCHEMA",
    "HiveQueryRunner",
    "HiveQueryRunnerBuilder",
    "assemble_hive_properties",
    "check_time_zone",
    "create_database_metastore_object",
]


def check_time_zone() -> None:
    zone = utils.default_time_zone()
    if zone != TIME_ZONE:
        raise PreconditionMismatchError(
            f"Timezone not configured correctly: expected {TIME_ZONE}, got {zone or 'unknown'}. "
            f"Run with TZ={TIME_ZONE} or skip timezone setup."
        )


def assemble_hive_properties(
    overrides: Mapping[str, str] | None = None,
    *,
    skip_timezone_setup: bool = False,
) -> dict[str, str]:
    """Default Hive catalog properties with *overrides* applied on top."""
    properties: dict[str, str] = {}
    if not skip_timezone_setup:
        properties["hive.rcfile.time-zone"] = TIME_ZONE
        properties["hive.parquet.time-zone"] = TIME_ZONE
    properties["hive.max-partitions-per-scan"] = "1000"
    properties["hive.max-partitions-for-eager-load"] = "1000"
    properties["hive.security"] = SQL_STANDARD
    properties.update(overrides or {})
    return properties


def bucketed_catalog_properties(hive_properties: Mapping[str, str]) -> dict[str, str]:
    properties = dict(hive_properties)
    # small splits so each bucket file is read as several splits
    properties["hive.max-initial-split-size"] = "10kB"
    properties["hive.max-split-size"] = "10kB"
    # uncompressed text has no minimum split size
    properties["hive.storage-format"] = "TEXTFILE"
    properties["hive.compression-codec"] = "NONE"
    return properties


class HiveQueryRunnerBuilder:
    def __init__(self, default_session: Session | None = None) -> None:
        self._default_session = default_session or create_session(SelectedRole.of(ADMIN_ROLE))
        self._skip_timezone_setup = False
        self._hive_properties: dict[str, str] = {}
        self._initial_tables: list[TpchTable] = []
        self._initial_schemas_location_base: str | None = None
        self._initial_tables_session_mutator: Callable[[Session], Session] = lambda session: session
        self._metastore: Callable[[QueryEngine], HiveMetastore] | None = None
        self._tracer_provider: trace.TracerProvider | None = None
        self._module: Callable[[HiveConnector], None] | None = None
        self._directory_lister: DirectoryLister | None = None
        self._tpcds_catalog_enabled = False
        self._tpch_bucketed_catalog_enabled = False
        self._create_tpch_schemas = True
        self._tpch_column_naming = ColumnNaming.SIMPLIFIED
        self._tpch_decimal_type_mapping = DecimalTypeMapping.DOUBLE
        self._base_data_dir: Path | None = None
        self._extra_properties: dict[str, str] = {}
        self._additional_setup: Callable[[QueryEngine], None] | None = None
        self._frozen = False

    def _check_not_frozen(self) -> None:
        if self._frozen:
            raise ConfigurationError("Builder cannot be modified after build() has been called")

    def _set(self, name: str, value: Any) -> HiveQueryRunnerBuilder:
        self._check_not_frozen()
        setattr(self, name, value)
        return self

    # ─── setters ─────────────────────────────────────────────

    def set_skip_timezone_setup(self, skip: bool) -> HiveQueryRunnerBuilder:
        return self._set("_skip_timezone_setup", bool(skip))

    def set_hive_properties(self, properties: Mapping[str, Any]) -> HiveQueryRunnerBuilder:
        return self._set("_hive_properties", {str(k): str(v) for k, v in properties.items()})

    def add_hive_property(self, key: str, value: Any) -> HiveQueryRunnerBuilder:
        self._check_not_frozen()
        self._hive_properties[key] = str(value)
        return self

    def set_initial_tables(self, tables: Iterable[TpchTable | str]) -> HiveQueryRunnerBuilder:
        resolved = []
        for table in tables:
            if isinstance(table, TpchTable):
                resolved.append(table)
                continue
            try:
                resolved.append(TpchTable.from_name(table))
            except ValueError:
                raise ConfigurationError(f"Unknown TPC-H table: '{table}'") from None
        return self._set("_initial_tables", resolved)

    def set_initial_schemas_location_base(self, location_base: str) -> HiveQueryRunnerBuilder:
        return self._set("_initial_schemas_location_base", validate_location_base(location_base))

    def set_initial_tables_session_mutator(self, mutator: Callable[[Session], Session]) -> HiveQueryRunnerBuilder:
        return self._set("_initial_tables_session_mutator", mutator)

    def set_metastore(self, metastore: Callable[[QueryEngine], HiveMetastore]) -> HiveQueryRunnerBuilder:
        return self._set("_metastore", metastore)

    def set_tracer_provider(self, tracer_provider: trace.TracerProvider) -> HiveQueryRunnerBuilder:
        return self._set("_tracer_provider", tracer_provider)

    def set_module(self, module: Callable[[HiveConnector], None]) -> HiveQueryRunnerBuilder:
        return self._set("_module", module)

    def set_directory_lister(self, directory_lister: DirectoryLister | None) -> HiveQueryRunnerBuilder:
        return self._set("_directory_lister", directory_lister)

    def set_tpcds_catalog_enabled(self, enabled: bool) -> HiveQueryRunnerBuilder:
        return self._set("_tpcds_catalog_enabled", bool(enabled))

    def set_tpch_bucketed_catalog_enabled(self, enabled: bool) -> HiveQueryRunnerBuilder:
        return self._set("_tpch_bucketed_catalog_enabled", bool(enabled))

    def set_create_tpch_schemas(self, enabled: bool) -> HiveQueryRunnerBuilder:
        return self._set("_create_tpch_schemas", bool(enabled))

    def set_tpch_column_naming(self, naming: ColumnNaming) -> HiveQueryRunnerBuilder:
        return self._set("_tpch_column_naming", ColumnNaming(naming))

    def set_tpch_decimal_type_mapping(self, mapping: DecimalTypeMapping) -> HiveQueryRunnerBuilder:
        return self._set("_tpch_decimal_type_mapping", DecimalTypeMapping(mapping))

    def set_base_data_dir(self, base_data_dir: Path | str | None) -> HiveQueryRunnerBuilder:
        return self._set("_base_data_dir", Path(base_data_dir) if base_data_dir is not None else None)

    def set_extra_properties(self, properties: Mapping[str, Any]) -> HiveQueryRunnerBuilder:
        return self._set("_extra_properties", {str(k): str(v) for k, v in properties.items()})

    def add_extra_property(self, key: str, value: Any) -> HiveQueryRunnerBuilder:
        self._check_not_frozen()
        self._extra_properties[key] = str(value)
        return self

    def set_additional_setup(self, setup: Callable[[QueryEngine], None]) -> HiveQueryRunnerBuilder:
        return self._set("_additional_setup", setup)

    # ─── build ───────────────────────────────────────────────

    def build(self) -> HiveQueryRunner:
        self._check_not_frozen()
        self._frozen = True

        # before the engine starts so that a mismatch registers nothing
        if not self._skip_timezone_setup:
            check_time_zone()

        try:
            engine = start_engine(self._base_data_dir, self._extra_properties, self._default_session)
        except (ConfigurationError, EnvironmentStartupError):
            raise
        except Exception as exc:
            raise EnvironmentStartupError(f"Failed to start engine: {exc}") from exc

        try:
            hive_plugin = self._register_catalogs(engine)
            metastore = HiveMetastoreFactory(hive_plugin.get_metastore()).create_metastore()
            if self._additional_setup is not None:
                try:
                    self._additional_setup(engine)
                except (ConfigurationError, EnvironmentStartupError):
                    raise
                except Exception as exc:
                    raise EnvironmentStartupError(f"Additional setup failed: {exc}") from exc
            if self._create_tpch_schemas:
                self._populate_data(engine, metastore)
            engine.freeze_catalogs()
        except BaseException:
            try:
                engine.close()
            except Exception:
                log.exception("Failed to close engine after build failure")
            raise

        log.info("Hive query runner ready with catalogs %s", ", ".join(engine.catalog_names))
        return HiveQueryRunner(engine, hive_plugin)

    def _register_catalogs(self, engine: QueryEngine) -> HivePlugin:
        try:
            engine.install_plugin(TpchPlugin())
            engine.create_catalog("tpch", "tpch", {
                "tpch.column-naming": self._tpch_column_naming.value,
                "tpch.double-type-mapping": self._tpch_decimal_type_mapping.value,
            })

            if self._tpcds_catalog_enabled:
                engine.install_plugin(TpcdsPlugin())
                engine.create_catalog("tpcds", "tpcds")

            metastore = self._metastore(engine) if self._metastore is not None else None
            data_dir = engine.base_data_dir / HIVE_DATA_DIR
            hive_plugin = HivePlugin(
                data_dir,
                metastore,
                self._tracer_provider,
                self._module,
                self._directory_lister,
            )
            engine.install_plugin(hive_plugin)

            hive_properties = assemble_hive_properties(
                self._hive_properties,
                skip_timezone_setup=self._skip_timezone_setup,
            )
            if self._tpch_bucketed_catalog_enabled:
                engine.create_catalog(HIVE_BUCKETED_CATALOG, "hive", bucketed_catalog_properties(hive_properties))
            engine.create_catalog(HIVE_CATALOG, "hive", hive_properties)
        except (ConfigurationError, EnvironmentStartupError):
            raise
        except Exception as exc:
            raise EnvironmentStartupError(f"Failed to register catalogs: {exc}") from exc
        return hive_plugin

    def _populate_schema(self, engine: QueryEngine, metastore: HiveMetastore, schema: str, session: Session, bucketed: bool) -> None:
        try:
            populate_schema(
                engine,
                metastore,
                schema,
                session,
                self._initial_tables,
                location_base=self._initial_schemas_location_base,
                bucketed=bucketed,
                column_naming=self._tpch_column_naming,
                session_mutator=self._initial_tables_session_mutator,
            )
        except (ConfigurationError, DataPopulationError):
            raise
        except Exception as exc:
            raise DataPopulationError(schema, exc) from exc

    def _populate_data(self, engine: QueryEngine, metastore: HiveMetastore) -> None:
        self._populate_schema(engine, metastore, TPCH_SCHEMA, engine.default_session, bucketed=False)
        if self._tpch_bucketed_catalog_enabled:
            self._populate_schema(engine, metastore, TPCH_BUCKETED_SCHEMA, create_bucketed_session(), bucketed=True)


class HiveQueryRunner:
    """A built environment. Close it (or use it as a context manager) to release the engine."""

    def __init__(self, engine: QueryEngine, hive_plugin: HivePlugin) -> None:
        self.engine = engine
        self._hive_plugin = hive_plugin

    @staticmethod
    def builder(default_session: Session | None = None) -> HiveQueryRunnerBuilder:
        return HiveQueryRunnerBuilder(default_session)

    @classmethod
    def create(cls) -> HiveQueryRunner:
        return cls.builder().build()

    def __enter__(self) -> HiveQueryRunner:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def default_session(self) -> Session:
        return self.engine.default_session

    @property
    def catalog_names(self) -> list[str]:
        return self.engine.catalog_names

    @property
    def base_url(self) -> str:
        return self.engine.base_url

    def execute(self, sql: str, session: Session | None = None) -> MaterializedResult:
        return self.engine.execute(session, sql)

    def get_metastore(self) -> HiveMetastore:
        return self._hive_plugin.get_metastore()

    def get_hive_connector(self, catalog_name: str = HIVE_CATALOG) -> HiveConnector:
        return self.engine.get_connector(catalog_name)

    def close(self) -> None:
        self.engine.close()

