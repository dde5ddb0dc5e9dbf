"""Metastore records and the interface the Hive connector stores them through."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hive_runner.session import Identity


class PrincipalType(str, Enum):
    USER = "USER"
    ROLE = "ROLE"


class StorageFormat(str, Enum):
    PARQUET = "PARQUET"
    TEXTFILE = "TEXTFILE"


@dataclass(frozen=True)
class BucketProperty:
    bucketed_by: tuple[str, ...]
    bucket_count: int


@dataclass(frozen=True)
class Database:
    """Schema (namespace) record."""

    database_name: str
    location: str | None = None
    owner_name: str | None = None
    owner_type: PrincipalType | None = None
    comment: str | None = None
    parameters: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Column:
    name: str
    type: str


@dataclass(frozen=True)
class Table:
    database_name: str
    table_name: str
    owner: str | None
    columns: tuple[Column, ...]
    storage_format: StorageFormat
    compression: str
    location: str
    bucket_property: BucketProperty | None = None
    parameters: dict[str, str] = field(default_factory=dict)

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]


class HiveMetastore(ABC):
    """Storage for database and table records shared by every Hive catalog of an engine."""

    @abstractmethod
    def get_database(self, name: str) -> Database | None: ...

    @abstractmethod
    def create_database(self, database: Database) -> None: ...

    @abstractmethod
    def get_all_databases(self) -> list[str]: ...

    @abstractmethod
    def get_table(self, database_name: str, table_name: str) -> Table | None: ...

    @abstractmethod
    def create_table(self, table: Table) -> None: ...

    @abstractmethod
    def get_tables(self, database_name: str) -> list[str]: ...


class HiveMetastoreFactory:
    """Hands out the metastore a Hive catalog was configured with."""

    def __init__(self, metastore: HiveMetastore) -> None:
        self._metastore = metastore

    def create_metastore(self, identity: Identity | None = None) -> HiveMetastore:
        return self._metastore
