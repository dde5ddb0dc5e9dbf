"""The Hive connector: metastore-backed schemas and tables stored as files."""

from __future__ import annotations

import logging
import shutil
import threading
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import pyarrow as pa
import pyarrow.compute as pc
from opentelemetry import trace

from hive_runner.connectors.hive.config import COMPRESSION_CODECS, HiveConfig
from hive_runner.connectors.hive.security import create_access_control
from hive_runner.connectors.hive.splits import HiveSplit, bucket_file_name, get_splits
from hive_runner.connectors.hive.storage import (
    TEXT_FIELD_DELIMITER,
    DirectoryLister,
    FileSystemDirectoryLister,
    file_extension,
    write_data_file,
)
from hive_runner.engine import Connector, ConnectorFactory, Plugin, QueryEngine, qualified_name
from hive_runner.errors import QueryError, SchemaNotFoundError, TableAlreadyExistsError, TableNotFoundError
from hive_runner.metastore import (
    BucketProperty,
    Column,
    Database,
    HiveMetastore,
    HiveMetastoreFactory,
    PrincipalType,
    StorageFormat,
    Table,
)
from hive_runner.metastore.file import FileHiveMetastore
from hive_runner.session import Session
from hive_runner.types import arrow_to_sql_type
from hive_runner.utils import quote_identifier, quote_string, to_local_path

log = logging.getLogger(__name__)

COMPRESSION_CODEC_SESSION_PROPERTY = "compression_codec"

BUCKETED_BY = "bucketed_by"
BUCKET_COUNT = "bucket_count"
FORMAT = "format"
TABLE_PROPERTIES = (BUCKETED_BY, BUCKET_COUNT, FORMAT)
MAX_BUCKET_COUNT = 100_000


# ─── bucketing ───────────────────────────────────────────────


def _string_hash(value: str) -> int:
    h = 0
    for b in value.encode("utf-8"):
        signed = b - 256 if b > 127 else b
        h = (31 * h + signed) & 0xFFFFFFFF
    return h


def hive_hashes(values: pa.ChunkedArray | pa.Array) -> pa.Array:
    """Hive hash code of every value as an unsigned 32-bit number.

    ``BIGINT`` hashes as ``(int) (v ^ (v >>> 32))``, narrower integers as the
    value itself, strings with the 31-multiplier byte hash. Nulls hash to 0.
    """
    if isinstance(values, pa.ChunkedArray):
        values = values.combine_chunks()
    if pa.types.is_integer(values.type):
        v = pc.cast(pc.fill_null(values, 0), pa.int64())
        if values.type.bit_width == 64:
            v = pc.bit_wise_xor(v, pc.shift_right(v, 32))
        return pc.bit_wise_and(v, 0xFFFFFFFF)
    if pa.types.is_string(values.type) or pa.types.is_large_string(values.type):
        return pa.array([0 if v is None else _string_hash(v) for v in values.to_pylist()], type=pa.int64())
    raise QueryError(f"Bucketing on column type {values.type} is not supported")


def _bucket_of(hashes: pa.Array, bucket_count: int) -> pa.Array:
    h = pc.bit_wise_and(hashes, 0x7FFFFFFF)
    remainder = pc.subtract(h, pc.multiply(pc.divide(h, bucket_count), bucket_count))
    return pc.cast(remainder, pa.int32())


def hive_bucket_numbers(values: pa.ChunkedArray | pa.Array, bucket_count: int) -> pa.Array:
    """Hive bucket of every value: ``(hash & Integer.MAX_VALUE) % bucket_count``."""
    return _bucket_of(hive_hashes(values), bucket_count)


# ─── table properties ────────────────────────────────────────


def _bucket_property(properties: Mapping[str, Any], column_names: list[str]) -> BucketProperty | None:
    bucketed_by = properties.get(BUCKETED_BY)
    bucket_count = properties.get(BUCKET_COUNT)
    if bucketed_by is None and bucket_count is None:
        return None
    if not bucketed_by or bucket_count is None:
        raise QueryError(f"{BUCKETED_BY} and {BUCKET_COUNT} must be specified together")
    if isinstance(bucketed_by, str):
        bucketed_by = [bucketed_by]
    if not isinstance(bucket_count, int) or isinstance(bucket_count, bool):
        raise QueryError(f"{BUCKET_COUNT} must be an integer")
    if not 0 < bucket_count <= MAX_BUCKET_COUNT:
        raise QueryError(f"{BUCKET_COUNT} must be between 1 and {MAX_BUCKET_COUNT}")
    for column in bucketed_by:
        if column not in column_names:
            raise QueryError(f"Bucketing columns {bucketed_by} not present in schema")
    return BucketProperty(tuple(bucketed_by), bucket_count)


def _combined_buckets(data: pa.Table, bucket_property: BucketProperty) -> pa.Array:
    if len(bucket_property.bucketed_by) == 1:
        return hive_bucket_numbers(data.column(bucket_property.bucketed_by[0]), bucket_property.bucket_count)
    # multi-column bucketing combines the raw per-column hashes with the 31 multiplier
    combined = pa.array([0] * data.num_rows, type=pa.int64())
    for column in bucket_property.bucketed_by:
        hashes = hive_hashes(data.column(column))
        combined = pc.bit_wise_and(pc.add(pc.multiply(combined, 31), hashes), 0xFFFFFFFF)
    return _bucket_of(combined, bucket_property.bucket_count)


# ─── connector ───────────────────────────────────────────────


class HiveConnector(Connector):
    def __init__(
        self,
        catalog_name: str,
        engine: QueryEngine,
        config: HiveConfig,
        metastore_factory: HiveMetastoreFactory,
        data_dir: Path,
        tracer: trace.Tracer,
        directory_lister: DirectoryLister,
    ) -> None:
        super().__init__(catalog_name, engine)
        self.config = config
        self.metastore_factory = metastore_factory
        self.data_dir = Path(data_dir)
        self.tracer = tracer
        self.directory_lister = directory_lister
        self.access_control = create_access_control(config.security, catalog_name)
        self._schemas: set[str] = set()
        self._views: set[tuple[str, str]] = set()

    @property
    def metastore(self) -> HiveMetastore:
        return self.metastore_factory.create_metastore()

    def attach(self) -> None:
        self.refresh()

    # ─── metadata sync ───────────────────────────────────────

    def refresh(self) -> None:
        """Expose every metastore schema and table that is not visible in the engine yet."""
        for database_name in self.metastore.get_all_databases():
            if database_name not in self._schemas:
                self.engine.run(f"CREATE SCHEMA IF NOT EXISTS {qualified_name(self.catalog_name, database_name)}")
                self._schemas.add(database_name)
            for table_name in self.metastore.get_tables(database_name):
                if (database_name, table_name) in self._views:
                    continue
                table = self.metastore.get_table(database_name, table_name)
                if table is not None:
                    self._create_view(table)

    def _table_path(self, table: Table) -> Path:
        return to_local_path(table.location)

    def _create_view(self, table: Table) -> None:
        # empty bucket files carry no rows and cannot be sniffed as text
        files = [
            str(entry.path)
            for entry in self.directory_lister.list_files(self._table_path(table))
            if entry.size > 0
        ]
        target = qualified_name(self.catalog_name, table.database_name, table.table_name)
        columns = ", ".join(quote_identifier(c.name) for c in table.columns)
        if not files:
            nulls = ", ".join(f"CAST(NULL AS {c.type}) AS {quote_identifier(c.name)}" for c in table.columns)
            source = f"SELECT {nulls} WHERE false"
        else:
            file_list = "[" + ", ".join(quote_string(f) for f in files) + "]"
            if table.storage_format is StorageFormat.PARQUET:
                source = f"SELECT {columns} FROM read_parquet({file_list})"
            else:
                column_types = ", ".join(f"{quote_string(c.name)}: {quote_string(c.type)}" for c in table.columns)
                compression = "gzip" if table.compression == "GZIP" else "none"
                source = (
                    f"SELECT {columns} FROM read_csv({file_list}, delim={quote_string(TEXT_FIELD_DELIMITER)}, "
                    f"header=false, compression={quote_string(compression)}, columns={{{column_types}}})"
                )
        self.engine.run(f"CREATE OR REPLACE VIEW {target} AS {source}")
        self._views.add((table.database_name, table.table_name))
        log.debug("Exposed %s.%s.%s over %d file(s)", self.catalog_name, table.database_name, table.table_name, len(files))

    # ─── DDL ─────────────────────────────────────────────────

    def create_schema(self, session: Session, schema_name: str, properties: dict[str, Any]) -> None:
        unknown = sorted(set(properties) - {"location"})
        if unknown:
            raise QueryError(f"Catalog '{self.catalog_name}' schema property '{unknown[0]}' does not exist")
        self.access_control.check_can_create_schema(session, schema_name)
        self.metastore.create_database(
            Database(
                database_name=schema_name,
                location=properties.get("location"),
                owner_name=session.user,
                owner_type=PrincipalType.USER,
            )
        )
        self.refresh()

    def _table_location(self, database: Database, table_name: str) -> Path:
        if database.location:
            return to_local_path(database.location.rstrip("/")) / table_name
        return self.data_dir / database.database_name / table_name

    def _compression(self, session: Session) -> str:
        codec = session.get_catalog_property(self.catalog_name, COMPRESSION_CODEC_SESSION_PROPERTY)
        if codec is None:
            return self.config.compression_codec
        codec = codec.upper()
        if codec not in COMPRESSION_CODECS:
            raise QueryError(f"Invalid value for session property {COMPRESSION_CODEC_SESSION_PROPERTY}: '{codec}'")
        return codec

    def create_table_as(
        self,
        session: Session,
        schema_name: str,
        table_name: str,
        properties: dict[str, Any],
        query: str,
    ) -> int:
        unknown = sorted(set(properties) - set(TABLE_PROPERTIES))
        if unknown:
            raise QueryError(f"Catalog '{self.catalog_name}' table property '{unknown[0]}' does not exist")
        metastore = self.metastore
        database = metastore.get_database(schema_name)
        if database is None:
            raise SchemaNotFoundError(schema_name)
        self.access_control.check_can_create_table(session, database, table_name)
        if metastore.get_table(schema_name, table_name) is not None:
            raise TableAlreadyExistsError(schema_name, table_name)

        storage_format = self.config.storage_format
        if FORMAT in properties:
            try:
                storage_format = StorageFormat(str(properties[FORMAT]).upper())
            except ValueError:
                raise QueryError(f"Unsupported storage format: {properties[FORMAT]}") from None
        compression = self._compression(session)
        location = self._table_location(database, table_name)
        if self.directory_lister.list_files(location):
            raise QueryError(f"Target directory for table '{schema_name}.{table_name}' already exists: {location}")

        with self.tracer.start_as_current_span("hive.create_table_as") as span:
            span.set_attribute("hive.catalog", self.catalog_name)
            span.set_attribute("hive.table", f"{schema_name}.{table_name}")
            data = self.engine.fetch_arrow(session, query)
            bucket_property = _bucket_property(properties, data.column_names)
            table = Table(
                database_name=schema_name,
                table_name=table_name,
                owner=session.user,
                columns=tuple(Column(f.name, arrow_to_sql_type(f.type)) for f in data.schema),
                storage_format=storage_format,
                compression=compression,
                location=str(location),
                bucket_property=bucket_property,
                parameters={
                    "numRows": str(data.num_rows),
                    "writer.time-zone": self.config.writer_time_zone(),
                },
            )
            try:
                self._write(table, data, location)
                metastore.create_table(table)
            except Exception:
                shutil.rmtree(location, ignore_errors=True)
                raise
            span.set_attribute("hive.rows", data.num_rows)

        self._create_view(table)
        return data.num_rows

    def _write(self, table: Table, data: pa.Table, location: Path) -> None:
        extension = file_extension(table.storage_format, table.compression)
        if table.bucket_property is None:
            write_data_file(data, location / f"part-00000{extension}", table.storage_format, table.compression)
            return
        buckets = _combined_buckets(data, table.bucket_property)
        for bucket in range(table.bucket_property.bucket_count):
            rows = data.filter(pc.equal(buckets, bucket))
            write_data_file(
                rows,
                location / f"{bucket_file_name(bucket)}{extension}",
                table.storage_format,
                table.compression,
            )

    # ─── splits ──────────────────────────────────────────────

    def get_splits(self, schema_name: str, table_name: str) -> list[HiveSplit]:
        table = self.metastore.get_table(schema_name, table_name)
        if table is None:
            raise TableNotFoundError(schema_name, table_name)
        return get_splits(table, self.directory_lister.list_files(self._table_path(table)), self.config)


# ─── plugin ──────────────────────────────────────────────────


class HivePlugin(Plugin):
    """Provides the ``hive`` connector.

    Every catalog created from one plugin instance shares its metastore, so
    tables written through one Hive catalog are visible in the others.
    ``module`` is called with each new connector and may replace its
    collaborators (access control, directory lister, ...).
    """

    name = "hive"

    def __init__(
        self,
        data_dir: Path,
        metastore: HiveMetastore | None = None,
        tracer_provider: trace.TracerProvider | None = None,
        module: Callable[[HiveConnector], None] | None = None,
        directory_lister: DirectoryLister | None = None,
    ) -> None:
        self.data_dir = Path(data_dir)
        self.metastore = metastore
        self.tracer_provider = tracer_provider
        self.module = module
        self.directory_lister = directory_lister
        self._lock = threading.Lock()

    def get_metastore(self) -> HiveMetastore:
        with self._lock:
            if self.metastore is None:
                self.data_dir.mkdir(parents=True, exist_ok=True)
                self.metastore = FileHiveMetastore(self.data_dir)
            return self.metastore

    def create_connector(self, catalog_name: str, properties: Mapping[str, str], engine: QueryEngine) -> HiveConnector:
        config = HiveConfig.from_properties(properties)
        if self.tracer_provider is not None:
            tracer = self.tracer_provider.get_tracer(__name__)
        else:
            tracer = trace.get_tracer(__name__)
        connector = HiveConnector(
            catalog_name,
            engine,
            config,
            HiveMetastoreFactory(self.get_metastore()),
            self.data_dir,
            tracer,
            self.directory_lister or FileSystemDirectoryLister(),
        )
        if self.module is not None:
            self.module(connector)
        return connector

    def get_connector_factories(self) -> Mapping[str, ConnectorFactory]:
        return {"hive": self.create_connector}
