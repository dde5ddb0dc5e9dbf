"""Split planning over the data files of a Hive table."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from hive_runner.connectors.hive.config import HiveConfig
from hive_runner.connectors.hive.storage import FileEntry, is_splittable
from hive_runner.metastore import Table

_BUCKET_FILE = re.compile(r"^bucket-(\d+)")


@dataclass(frozen=True)
class HiveSplit:
    path: Path
    start: int
    length: int
    file_size: int
    bucket_number: int | None = None


def bucket_file_name(bucket: int) -> str:
    return f"bucket-{bucket:05d}"


def bucket_number(path: Path) -> int | None:
    match = _BUCKET_FILE.match(path.name)
    if match:
        return int(match.group(1))
    return None


def get_splits(table: Table, files: Iterable[FileEntry], config: HiveConfig) -> list[HiveSplit]:
    """Cut the table files into splits.

    The first ``max_initial_splits`` splits are at most
    ``max_initial_split_size`` bytes, the rest at most ``max_split_size``.
    Files that cannot be split (compressed text) become one split each.
    """
    splittable = is_splittable(table.storage_format, table.compression)
    bucketed = table.bucket_property is not None
    remaining_initial = config.max_initial_splits
    splits = []
    for entry in files:
        bucket = bucket_number(entry.path) if bucketed else None
        if not splittable or entry.size == 0:
            splits.append(HiveSplit(entry.path, 0, entry.size, entry.size, bucket))
            continue
        start = 0
        while start < entry.size:
            if remaining_initial > 0:
                max_size = config.max_initial_split_size
                remaining_initial -= 1
            else:
                max_size = config.max_split_size
            length = min(max_size, entry.size - start)
            splits.append(HiveSplit(entry.path, start, length, entry.size, bucket))
            start += length
    return splits
