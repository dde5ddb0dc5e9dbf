"""In-process query engine: plugins, catalogs and statement execution on DuckDB.

Every catalog is an attached in-memory DuckDB database owned by a connector.
Statements that change catalog metadata (``CREATE SCHEMA`` and
``CREATE TABLE ... AS``) are routed to the connector of the target catalog;
everything else runs directly in DuckDB after the session catalog and
schema have been selected.
"""

from __future__ import annotations

import logging
import re
import shutil
import tempfile
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import duckdb
import pyarrow as pa

from hive_runner.errors import ConfigurationError, QueryError, QueryRunnerError
from hive_runner.session import Session, test_session
from hive_runner.utils import quote_identifier, quote_string

log = logging.getLogger(__name__)

_CREATE_TABLE_AS = re.compile(
    r"^\s*CREATE\s+TABLE\s+(?P<if_not_exists>IF\s+NOT\s+EXISTS\s+)?(?P<name>[\w\".]+)\s*"
    r"(?:WITH\s*\((?P<props>[^)]*)\)\s*)?AS\s+(?P<query>.+?)\s*;?\s*$",
    re.IGNORECASE | re.DOTALL,
)
_CREATE_SCHEMA = re.compile(
    r"^\s*CREATE\s+SCHEMA\s+(?P<if_not_exists>IF\s+NOT\s+EXISTS\s+)?(?P<name>[\w\".]+)\s*"
    r"(?:WITH\s*\((?P<props>[^)]*)\)\s*)?;?\s*$",
    re.IGNORECASE | re.DOTALL,
)
_SHOW_CATALOGS = re.compile(r"^\s*SHOW\s+CATALOGS\s*;?\s*$", re.IGNORECASE)
_SHOW_SCHEMAS = re.compile(r"^\s*SHOW\s+SCHEMAS(?:\s+(?:FROM|IN)\s+(?P<catalog>[\w\"]+))?\s*;?\s*$", re.IGNORECASE)
_SHOW_TABLES = re.compile(r"^\s*SHOW\s+TABLES(?:\s+(?:FROM|IN)\s+(?P<name>[\w\".]+))?\s*;?\s*$", re.IGNORECASE)
_ARRAY = re.compile(r"^ARRAY\s*\[(?P<items>.*)\]$", re.IGNORECASE | re.DOTALL)

_HIDDEN_SCHEMAS = ("main", "information_schema", "pg_catalog")


# ─── results ─────────────────────────────────────────────────


@dataclass(frozen=True)
class MaterializedResult:
    column_names: list[str]
    rows: list[tuple[Any, ...]]

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def only_value(self) -> Any:
        if len(self.rows) != 1 or len(self.rows[0]) != 1:
            raise ValueError(f"Expected a single value, got {len(self.rows)} row(s)")
        return self.rows[0][0]

    def only_column(self) -> list[Any]:
        return [row[0] for row in self.rows]


# ─── plugins & connectors ────────────────────────────────────


class Connector(ABC):
    """A catalog implementation. One instance per registered catalog."""

    def __init__(self, catalog_name: str, engine: QueryEngine) -> None:
        self.catalog_name = catalog_name
        self.engine = engine

    @abstractmethod
    def attach(self) -> None:
        """Create the catalog's objects in the engine."""

    def refresh(self) -> None:
        """Bring engine objects in line with external metadata before a statement runs."""

    def create_schema(self, session: Session, schema_name: str, properties: dict[str, Any]) -> None:
        raise QueryError(f"Catalog '{self.catalog_name}' does not support schema creation")

    def create_table_as(
        self,
        session: Session,
        schema_name: str,
        table_name: str,
        properties: dict[str, Any],
        query: str,
    ) -> int:
        raise QueryError(f"Catalog '{self.catalog_name}' does not support table creation")

    def shutdown(self) -> None:
        pass


ConnectorFactory = Callable[[str, Mapping[str, str], "QueryEngine"], Connector]


class Plugin(ABC):
    name: str

    @abstractmethod
    def get_connector_factories(self) -> Mapping[str, ConnectorFactory]: ...


@dataclass
class CatalogRegistration:
    catalog_name: str
    connector_name: str
    properties: dict[str, str]
    connector: Connector = field(repr=False)


# ─── statement helpers ───────────────────────────────────────


def _split_top_level(text: str, sep: str = ",") -> list[str]:
    parts, depth, quoted, current = [], 0, False, []
    for ch in text:
        if ch == "'":
            quoted = not quoted
        elif not quoted and ch in "([":
            depth += 1
        elif not quoted and ch in ")]":
            depth -= 1
        if ch == sep and depth == 0 and not quoted:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    if "".join(current).strip():
        parts.append("".join(current))
    return [p.strip() for p in parts]


def _parse_literal(text: str) -> Any:
    text = text.strip()
    match = _ARRAY.match(text)
    if match:
        return [_parse_literal(item) for item in _split_top_level(match.group("items"))]
    if len(text) >= 2 and text[0] == text[-1] == "'":
        return text[1:-1].replace("''", "'")
    if text.lower() in ("true", "false"):
        return text.lower() == "true"
    try:
        return int(text)
    except ValueError:
        raise QueryError(f"Invalid property value: {text}") from None


def parse_properties(text: str | None) -> dict[str, Any]:
    """Parse the body of a ``WITH (...)`` clause into a dict."""
    properties: dict[str, Any] = {}
    if not text or not text.strip():
        return properties
    for item in _split_top_level(text):
        key, sep, value = item.partition("=")
        if not sep:
            raise QueryError(f"Invalid property: {item}")
        key = key.strip().lower()
        if key in properties:
            raise QueryError(f"Duplicate property: {key}")
        properties[key] = _parse_literal(value)
    return properties


def _identifier_parts(name: str) -> list[str]:
    parts = []
    for part in name.split("."):
        part = part.strip()
        if len(part) >= 2 and part[0] == part[-1] == '"':
            parts.append(part[1:-1])
        else:
            parts.append(part.lower())
    return parts


def qualified_name(*parts: str) -> str:
    return ".".join(quote_identifier(p) for p in parts)


# ─── engine ──────────────────────────────────────────────────


class QueryEngine:
    """A running engine. Use :func:`start_engine` to create one."""

    def __init__(
        self,
        base_data_dir: Path | None = None,
        extra_properties: Mapping[str, str] | None = None,
        default_session: Session | None = None,
    ) -> None:
        self._owns_data_dir = base_data_dir is None
        if base_data_dir is None:
            base_data_dir = Path(tempfile.mkdtemp(prefix="hive-runner-"))
        self.base_data_dir = Path(base_data_dir)
        self.base_data_dir.mkdir(parents=True, exist_ok=True)
        self.extra_properties = dict(extra_properties or {})
        self.default_session = default_session or test_session()
        self._lock = threading.RLock()
        self._plugins: list[Plugin] = []
        self._connector_factories: dict[str, ConnectorFactory] = {}
        self._catalogs: dict[str, CatalogRegistration] = {}
        self._catalogs_frozen = False
        self._closed = False
        try:
            self._connection = duckdb.connect(database=":memory:", config=self.extra_properties)
        except duckdb.Error as exc:
            self._remove_data_dir()
            raise ConfigurationError(f"Invalid engine properties: {exc}") from exc

    def __enter__(self) -> QueryEngine:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def base_url(self) -> str:
        return self.base_data_dir.resolve().as_uri()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def catalog_names(self) -> list[str]:
        return list(self._catalogs)

    def _check_open(self) -> None:
        if self._closed:
            raise QueryRunnerError("Engine is closed")

    # ─── plugins & catalogs ──────────────────────────────────

    def install_plugin(self, plugin: Plugin) -> None:
        self._check_open()
        factories = plugin.get_connector_factories()
        for name in factories:
            if name in self._connector_factories:
                raise ConfigurationError(f"Connector '{name}' is already registered")
        self._connector_factories.update(factories)
        self._plugins.append(plugin)
        log.debug("Installed plugin %s", plugin.name)

    def create_catalog(
        self,
        catalog_name: str,
        connector_name: str,
        properties: Mapping[str, str] | None = None,
    ) -> None:
        self._check_open()
        if self._catalogs_frozen:
            raise ConfigurationError("Catalogs cannot be added after the environment is built")
        if catalog_name in self._catalogs:
            raise ConfigurationError(f"Catalog '{catalog_name}' already exists")
        factory = self._connector_factories.get(connector_name)
        if factory is None:
            raise ConfigurationError(f"No factory for connector '{connector_name}'")
        props = dict(properties or {})
        with self._lock:
            connector = factory(catalog_name, props, self)
            self._connection.execute(f"ATTACH ':memory:' AS {quote_identifier(catalog_name)}")
            self._catalogs[catalog_name] = CatalogRegistration(catalog_name, connector_name, props, connector)
            try:
                connector.attach()
            except Exception:
                del self._catalogs[catalog_name]
                self._connection.execute(f"DETACH {quote_identifier(catalog_name)}")
                raise
        log.info("-- Added catalog %s using connector %s --", catalog_name, connector_name)

    def freeze_catalogs(self) -> None:
        self._catalogs_frozen = True

    def get_catalog(self, catalog_name: str) -> CatalogRegistration:
        try:
            return self._catalogs[catalog_name]
        except KeyError:
            raise QueryError(f"Catalog '{catalog_name}' does not exist") from None

    def get_connector(self, catalog_name: str) -> Connector:
        return self.get_catalog(catalog_name).connector

    # ─── low-level access for connectors ─────────────────────

    def run(self, sql: str, parameters: list[Any] | None = None) -> MaterializedResult:
        """Run *sql* directly in DuckDB without session handling."""
        with self._lock:
            self._check_open()
            try:
                cursor = self._connection.execute(sql, parameters)
                names = [d[0] for d in cursor.description] if cursor.description else []
                rows = cursor.fetchall() if names else []
            except duckdb.Error as exc:
                raise QueryError(str(exc), sql) from exc
        return MaterializedResult(names, rows)

    def fetch_arrow(self, session: Session, query: str) -> pa.Table:
        with self._lock:
            self._use(session)
            try:
                return self._connection.execute(query).to_arrow_table()
            except duckdb.Error as exc:
                raise QueryError(str(exc), query) from exc

    def load_arrow(self, target: str, table: pa.Table) -> None:
        """Materialize *table* as ``CREATE TABLE target``."""
        view_name = f"__load_{threading.get_ident()}"
        with self._lock:
            self._connection.register(view_name, table)
            try:
                self._connection.execute(f"CREATE TABLE {target} AS SELECT * FROM {view_name}")
            except duckdb.Error as exc:
                raise QueryError(str(exc)) from exc
            finally:
                self._connection.unregister(view_name)

    def schema_exists(self, catalog_name: str, schema_name: str) -> bool:
        result = self.run(
            "SELECT count(*) FROM duckdb_schemas() WHERE database_name = ? AND schema_name = ?",
            [catalog_name, schema_name],
        )
        return result.only_value() > 0

    def _use(self, session: Session) -> None:
        if session.catalog is None:
            return
        self.get_catalog(session.catalog)
        if session.schema and self.schema_exists(session.catalog, session.schema):
            target = qualified_name(session.catalog, session.schema)
        else:
            target = quote_identifier(session.catalog)
        self._connection.execute(f"USE {target}")

    # ─── statements ──────────────────────────────────────────

    def execute(self, session: Session | None, sql: str) -> MaterializedResult:
        """Execute one statement under *session* and return its materialized result."""
        session = session or self.default_session
        with self._lock:
            self._check_open()
            for registration in self._catalogs.values():
                registration.connector.refresh()

            match = _CREATE_TABLE_AS.match(sql)
            if match:
                return self._create_table_as(session, match, sql)
            match = _CREATE_SCHEMA.match(sql)
            if match:
                return self._create_schema(session, match)
            match = _SHOW_CATALOGS.match(sql)
            if match:
                return MaterializedResult(["Catalog"], [(name,) for name in sorted(self._catalogs)])
            match = _SHOW_SCHEMAS.match(sql)
            if match:
                return self._show_schemas(session, match.group("catalog"))
            match = _SHOW_TABLES.match(sql)
            if match:
                return self._show_tables(session, match.group("name"))

            self._use(session)
            log.debug("Executing in %s.%s: %s", session.catalog, session.schema, sql)
            try:
                cursor = self._connection.execute(sql)
                names = [d[0] for d in cursor.description] if cursor.description else []
                rows = cursor.fetchall() if names else []
            except duckdb.Error as exc:
                raise QueryError(str(exc), sql) from exc
            return MaterializedResult(names, rows)

    def _resolve_table_name(self, session: Session, name: str) -> tuple[str, str, str]:
        parts = _identifier_parts(name)
        if len(parts) == 3:
            return parts[0], parts[1], parts[2]
        if session.catalog is None:
            raise QueryError("Catalog must be specified when session catalog is not set")
        if len(parts) == 2:
            return session.catalog, parts[0], parts[1]
        if session.schema is None:
            raise QueryError("Schema must be specified when session schema is not set")
        return session.catalog, session.schema, parts[0]

    def _create_table_as(self, session: Session, match: re.Match[str], sql: str) -> MaterializedResult:
        catalog, schema, table = self._resolve_table_name(session, match.group("name"))
        connector = self.get_connector(catalog)
        properties = parse_properties(match.group("props"))
        log.debug("Creating table %s.%s.%s with %s", catalog, schema, table, properties)
        try:
            rows = connector.create_table_as(session, schema, table, properties, match.group("query"))
        except QueryError as exc:
            if exc.sql is None:
                exc.sql = sql
            raise
        return MaterializedResult(["rows"], [(rows,)])

    def _create_schema(self, session: Session, match: re.Match[str]) -> MaterializedResult:
        parts = _identifier_parts(match.group("name"))
        if len(parts) == 2:
            catalog, schema = parts
        elif session.catalog is None:
            raise QueryError("Catalog must be specified when session catalog is not set")
        else:
            catalog, schema = session.catalog, parts[0]
        connector = self.get_connector(catalog)
        if match.group("if_not_exists") and self.schema_exists(catalog, schema):
            return MaterializedResult([], [])
        connector.create_schema(session, schema, parse_properties(match.group("props")))
        return MaterializedResult([], [])

    def _show_schemas(self, session: Session, catalog: str | None) -> MaterializedResult:
        catalog = _identifier_parts(catalog)[0] if catalog else session.catalog
        if catalog is None:
            raise QueryError("Catalog must be specified when session catalog is not set")
        self.get_catalog(catalog)
        result = self.run(
            "SELECT schema_name FROM duckdb_schemas() WHERE database_name = ? "
            f"AND schema_name NOT IN ({', '.join(quote_string(s) for s in _HIDDEN_SCHEMAS)}) "
            "ORDER BY schema_name",
            [catalog],
        )
        return MaterializedResult(["Schema"], result.rows)

    def _show_tables(self, session: Session, name: str | None) -> MaterializedResult:
        parts = _identifier_parts(name) if name else []
        if len(parts) == 2:
            catalog, schema = parts
        elif len(parts) == 1 and session.catalog:
            catalog, schema = session.catalog, parts[0]
        elif not parts and session.catalog and session.schema:
            catalog, schema = session.catalog, session.schema
        else:
            raise QueryError("Schema must be specified when session schema is not set")
        self.get_catalog(catalog)
        result = self.run(
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_catalog = ? AND table_schema = ? ORDER BY table_name",
            [catalog, schema],
        )
        return MaterializedResult(["Table"], result.rows)

    # ─── lifecycle ───────────────────────────────────────────

    def _remove_data_dir(self) -> None:
        if self._owns_data_dir:
            shutil.rmtree(self.base_data_dir, ignore_errors=True)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            for registration in self._catalogs.values():
                try:
                    registration.connector.shutdown()
                except Exception:
                    log.warning("Error shutting down catalog %s", registration.catalog_name, exc_info=True)
            self._connection.close()
            self._remove_data_dir()
        log.debug("Engine at %s closed", self.base_data_dir)


def start_engine(
    base_data_dir: Path | None = None,
    extra_properties: Mapping[str, str] | None = None,
    default_session: Session | None = None,
) -> QueryEngine:
    """Start an empty engine. A temporary data dir is used (and removed on close) when none is given."""
    engine = QueryEngine(base_data_dir, extra_properties, default_session)
    log.info("Started engine with data dir %s", engine.base_data_dir)
    return engine
