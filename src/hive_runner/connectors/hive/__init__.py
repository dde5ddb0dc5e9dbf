"""Hive connector under test."""

from __future__ import annotations

from hive_runner.connectors.hive.config import ALLOW_ALL, READ_ONLY, SQL_STANDARD, HiveConfig
from hive_runner.connectors.hive.connector import HiveConnector, HivePlugin, hive_bucket_numbers
from hive_runner.connectors.hive.splits import HiveSplit
from hive_runner.connectors.hive.storage import DirectoryLister, FileEntry, FileSystemDirectoryLister

__all__ = [
    "ALLOW_ALL",
    "READ_ONLY",
    "SQL_STANDARD",
    "DirectoryLister",
    "FileEntry",
    "FileSystemDirectoryLister",
    "HiveConfig",
    "HiveConnector",
    "HivePlugin",
    "HiveSplit",
    "hive_bucket_numbers",
]
