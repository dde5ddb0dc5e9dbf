"""Metastore backed by a pyiceberg catalog.

Databases map to namespaces and their properties. Tables are registered as
Iceberg tables whose schema is the Hive column list and whose properties
carry the storage description. Iceberg metadata lives in the catalog
warehouse; the data files stay in the Hive table location and are never
committed to the Iceberg table.
"""

from __future__ import annotations

import threading
from pathlib import Path

from pyiceberg.catalog import Catalog
from pyiceberg.catalog.sql import SqlCatalog
from pyiceberg.exceptions import (
    NamespaceAlreadyExistsError,
    NoSuchNamespaceError,
    NoSuchTableError,
)
from pyiceberg.exceptions import TableAlreadyExistsError as IcebergTableAlreadyExistsError
from pyiceberg.io.pyarrow import schema_to_pyarrow

from hive_runner.errors import (
    SchemaAlreadyExistsError,
    SchemaNotFoundError,
    TableAlreadyExistsError,
)
from hive_runner.metastore import (
    BucketProperty,
    Column,
    Database,
    HiveMetastore,
    PrincipalType,
    StorageFormat,
    Table,
)
from hive_runner.types import arrow_to_sql_type, columns_to_arrow_schema

PARAMETER_PREFIX = "param."

OWNER = "hive.owner"
STORAGE_FORMAT = "hive.storage-format"
COMPRESSION = "hive.compression"
BUCKETED_BY = "hive.bucketed-by"
BUCKET_COUNT = "hive.bucket-count"
LOCATION = "hive.location"


def _parameters(props: dict[str, str]) -> dict[str, str]:
    return {k[len(PARAMETER_PREFIX):]: v for k, v in props.items() if k.startswith(PARAMETER_PREFIX)}


class IcebergCatalogMetastore(HiveMetastore):
    def __init__(self, catalog: Catalog) -> None:
        self.catalog = catalog
        self._lock = threading.RLock()

    @classmethod
    def local(cls, base_dir: Path, name: str = "hive") -> IcebergCatalogMetastore:
        """SQLite-backed catalog in *base_dir*."""
        base_dir = Path(base_dir)
        warehouse_path = base_dir / "warehouse"
        warehouse_path.mkdir(parents=True, exist_ok=True)
        catalog = SqlCatalog(
            name,
            **{
                "uri": f"sqlite:///{base_dir / 'metastore.db'}",
                "warehouse": str(warehouse_path),
            },
        )
        return cls(catalog)

    def __repr__(self) -> str:
        return f"IcebergCatalogMetastore({self.catalog.name!r})"

    # ─── databases ────────────────────────────────────────────

    def get_database(self, name: str) -> Database | None:
        try:
            props = self.catalog.load_namespace_properties(name)
        except NoSuchNamespaceError:
            return None
        owner_type = props.get("owner_type")
        return Database(
            database_name=name,
            location=props.get(LOCATION),
            owner_name=props.get("owner"),
            owner_type=PrincipalType(owner_type) if owner_type else None,
            comment=props.get("comment"),
            parameters=_parameters(props),
        )

    def create_database(self, database: Database) -> None:
        props = {
            LOCATION: database.location,
            "owner": database.owner_name,
            "owner_type": database.owner_type.value if database.owner_type else None,
            "comment": database.comment,
        }
        props = {k: v for k, v in props.items() if v is not None}
        props.update({PARAMETER_PREFIX + k: v for k, v in database.parameters.items()})
        with self._lock:
            try:
                self.catalog.create_namespace(database.database_name, properties=props)
            except NamespaceAlreadyExistsError:
                raise SchemaAlreadyExistsError(database.database_name) from None

    def get_all_databases(self) -> list[str]:
        return sorted(ns[0] for ns in self.catalog.list_namespaces())

    # ─── tables ───────────────────────────────────────────────

    def get_table(self, database_name: str, table_name: str) -> Table | None:
        try:
            tbl = self.catalog.load_table((database_name, table_name))
        except (NoSuchTableError, NoSuchNamespaceError):
            return None
        props = dict(tbl.properties)
        arrow_schema = schema_to_pyarrow(tbl.schema())
        bucketing = None
        if props.get(BUCKETED_BY):
            bucketing = BucketProperty(
                tuple(props[BUCKETED_BY].split(",")), int(props[BUCKET_COUNT])
            )
        return Table(
            database_name=database_name,
            table_name=table_name,
            owner=props.get(OWNER),
            columns=tuple(Column(f.name, arrow_to_sql_type(f.type)) for f in arrow_schema),
            storage_format=StorageFormat(props[STORAGE_FORMAT]),
            compression=props[COMPRESSION],
            location=props[LOCATION],
            bucket_property=bucketing,
            parameters=_parameters(props),
        )

    def create_table(self, table: Table) -> None:
        props = {
            STORAGE_FORMAT: table.storage_format.value,
            COMPRESSION: table.compression,
            LOCATION: table.location,
        }
        if table.owner:
            props[OWNER] = table.owner
        if table.bucket_property:
            props[BUCKETED_BY] = ",".join(table.bucket_property.bucketed_by)
            props[BUCKET_COUNT] = str(table.bucket_property.bucket_count)
        props.update({PARAMETER_PREFIX + k: v for k, v in table.parameters.items()})
        schema = columns_to_arrow_schema([(c.name, c.type) for c in table.columns])
        with self._lock:
            if self.get_database(table.database_name) is None:
                raise SchemaNotFoundError(table.database_name)
            try:
                self.catalog.create_table(
                    (table.database_name, table.table_name),
                    schema=schema,
                    properties=props,
                )
            except IcebergTableAlreadyExistsError:
                raise TableAlreadyExistsError(table.database_name, table.table_name) from None

    def get_tables(self, database_name: str) -> list[str]:
        try:
            identifiers = self.catalog.list_tables(database_name)
        except NoSuchNamespaceError:
            raise SchemaNotFoundError(database_name) from None
        return sorted(identifier[-1] for identifier in identifiers)
