"""Metastore persisted as YAML files under the Hive data directory.

Layout::

    <root>/<database>/.schema.yaml
    <root>/<database>/<table>/.table.yaml
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

import yaml

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

SCHEMA_FILE = ".schema.yaml"
TABLE_FILE = ".table.yaml"


def _read(path: Path) -> dict[str, Any]:
    with open(path) as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Metastore file {path} must be a YAML mapping, got {type(data).__name__}")
    return data


def _write(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    with open(tmp, "w") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    tmp.replace(path)


class FileHiveMetastore(HiveMetastore):
    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self._lock = threading.RLock()

    def __repr__(self) -> str:
        return f"FileHiveMetastore({str(self.root)!r})"

    def _database_dir(self, name: str) -> Path:
        return self.root / name

    # ─── databases ────────────────────────────────────────────

    def get_database(self, name: str) -> Database | None:
        path = self._database_dir(name) / SCHEMA_FILE
        if not path.exists():
            return None
        data = _read(path)
        owner_type = data.get("owner_type")
        return Database(
            database_name=name,
            location=data.get("location"),
            owner_name=data.get("owner_name"),
            owner_type=PrincipalType(owner_type) if owner_type else None,
            comment=data.get("comment"),
            parameters=dict(data.get("parameters") or {}),
        )

    def create_database(self, database: Database) -> None:
        with self._lock:
            path = self._database_dir(database.database_name) / SCHEMA_FILE
            if path.exists():
                raise SchemaAlreadyExistsError(database.database_name)
            _write(path, {
                "location": database.location,
                "owner_name": database.owner_name,
                "owner_type": database.owner_type.value if database.owner_type else None,
                "comment": database.comment,
                "parameters": dict(database.parameters),
            })

    def get_all_databases(self) -> list[str]:
        if not self.root.exists():
            return []
        return sorted(p.parent.name for p in self.root.glob(f"*/{SCHEMA_FILE}"))

    # ─── tables ───────────────────────────────────────────────

    def get_table(self, database_name: str, table_name: str) -> Table | None:
        path = self._database_dir(database_name) / table_name / TABLE_FILE
        if not path.exists():
            return None
        data = _read(path)
        bucketing = data.get("bucketing")
        return Table(
            database_name=database_name,
            table_name=table_name,
            owner=data.get("owner"),
            columns=tuple(Column(c["name"], c["type"]) for c in data["columns"]),
            storage_format=StorageFormat(data["storage_format"]),
            compression=data["compression"],
            location=data["location"],
            bucket_property=(
                BucketProperty(tuple(bucketing["bucketed_by"]), int(bucketing["bucket_count"]))
                if bucketing
                else None
            ),
            parameters=dict(data.get("parameters") or {}),
        )

    def create_table(self, table: Table) -> None:
        with self._lock:
            if self.get_database(table.database_name) is None:
                raise SchemaNotFoundError(table.database_name)
            path = self._database_dir(table.database_name) / table.table_name / TABLE_FILE
            if path.exists():
                raise TableAlreadyExistsError(table.database_name, table.table_name)
            bucketing = table.bucket_property
            _write(path, {
                "owner": table.owner,
                "columns": [{"name": c.name, "type": c.type} for c in table.columns],
                "storage_format": table.storage_format.value,
                "compression": table.compression,
                "location": table.location,
                "bucketing": (
                    {"bucketed_by": list(bucketing.bucketed_by), "bucket_count": bucketing.bucket_count}
                    if bucketing
                    else None
                ),
                "parameters": dict(table.parameters),
            })

    def get_tables(self, database_name: str) -> list[str]:
        db_dir = self._database_dir(database_name)
        if not (db_dir / SCHEMA_FILE).exists():
            raise SchemaNotFoundError(database_name)
        return sorted(p.parent.name for p in db_dir.glob(f"*/{TABLE_FILE}"))
