"""Listing and writing of Hive table data files."""

from __future__ import annotations

import gzip
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

import pyarrow as pa
import pyarrow.compute as pc
import pyarrow.csv as csv
import pyarrow.parquet as pq

from hive_runner.errors import QueryError
from hive_runner.metastore import StorageFormat

log = logging.getLogger(__name__)

TEXT_FIELD_DELIMITER = "\x01"


@dataclass(frozen=True)
class FileEntry:
    path: Path
    size: int


class DirectoryLister(ABC):
    """Lists the data files of a table location."""

    @abstractmethod
    def list_files(self, location: Path) -> list[FileEntry]: ...


class FileSystemDirectoryLister(DirectoryLister):
    """Recursive listing that skips hidden (``.`` or ``_`` prefixed) files and directories."""

    def list_files(self, location: Path) -> list[FileEntry]:
        location = Path(location)
        if not location.is_dir():
            return []
        entries = []
        for path in sorted(location.rglob("*")):
            relative = path.relative_to(location)
            if any(part.startswith((".", "_")) for part in relative.parts):
                continue
            if path.is_file():
                entries.append(FileEntry(path, path.stat().st_size))
        return entries


def file_extension(storage_format: StorageFormat, compression: str) -> str:
    if storage_format is StorageFormat.PARQUET:
        return ".parquet"
    return ".gz" if compression == "GZIP" else ""


def _text_table(table: pa.Table) -> pa.Table:
    # booleans are written the way Hive text serde expects them
    columns = []
    for column in table.columns:
        if pa.types.is_boolean(column.type):
            column = pc.if_else(column, "true", "false")
        columns.append(column)
    return pa.Table.from_arrays(columns, names=table.column_names)


def write_data_file(
    table: pa.Table,
    path: Path,
    storage_format: StorageFormat,
    compression: str,
) -> int:
    """Write *table* to *path* and return the file size in bytes."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if storage_format is StorageFormat.PARQUET:
        pq.write_table(table, path, compression=compression.lower())
        return path.stat().st_size

    if compression not in ("NONE", "GZIP"):
        raise QueryError(f"Compression codec {compression} is not supported for TEXTFILE")
    options = csv.WriteOptions(
        include_header=False,
        delimiter=TEXT_FIELD_DELIMITER,
        quoting_style="none",
    )
    if compression == "GZIP":
        with gzip.open(path, "wb") as f:
            csv.write_csv(_text_table(table), f, write_options=options)
    else:
        csv.write_csv(_text_table(table), str(path), write_options=options)
    return path.stat().st_size


def is_splittable(storage_format: StorageFormat, compression: str) -> bool:
    return storage_format is StorageFormat.PARQUET or compression == "NONE"
