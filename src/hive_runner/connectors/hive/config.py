"""Validated configuration for a Hive catalog."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from hive_runner.connectors import check_properties
from hive_runner.errors import ConfigurationError
from hive_runner.metastore import StorageFormat
from hive_runner.utils import parse_data_size

ALLOW_ALL = "allow-all"
READ_ONLY = "read-only"
SQL_STANDARD = "sql-standard"
SECURITY_MODES = (ALLOW_ALL, READ_ONLY, SQL_STANDARD)

COMPRESSION_CODECS = ("NONE", "SNAPPY", "GZIP", "ZSTD", "LZ4")
# text files are only written plain or gzipped
TEXT_COMPRESSION_CODECS = ("NONE", "GZIP")

RCFILE_TIME_ZONE = "hive.rcfile.time-zone"
PARQUET_TIME_ZONE = "hive.parquet.time-zone"
MAX_PARTITIONS_PER_SCAN = "hive.max-partitions-per-scan"
MAX_PARTITIONS_FOR_EAGER_LOAD = "hive.max-partitions-for-eager-load"
SECURITY = "hive.security"
MAX_INITIAL_SPLIT_SIZE = "hive.max-initial-split-size"
MAX_INITIAL_SPLITS = "hive.max-initial-splits"
MAX_SPLIT_SIZE = "hive.max-split-size"
STORAGE_FORMAT = "hive.storage-format"
COMPRESSION_CODEC = "hive.compression-codec"

KNOWN_PROPERTIES = {
    RCFILE_TIME_ZONE,
    PARQUET_TIME_ZONE,
    MAX_PARTITIONS_PER_SCAN,
    MAX_PARTITIONS_FOR_EAGER_LOAD,
    SECURITY,
    MAX_INITIAL_SPLIT_SIZE,
    MAX_INITIAL_SPLITS,
    MAX_SPLIT_SIZE,
    STORAGE_FORMAT,
    COMPRESSION_CODEC,
}


def _time_zone(properties: Mapping[str, str], key: str) -> str:
    value = properties.get(key, "UTC")
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigurationError(f"Invalid time zone for {key}: '{value}'") from None
    return value


def _positive_int(properties: Mapping[str, str], key: str, default: int) -> int:
    value = properties.get(key)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        raise ConfigurationError(f"Invalid integer for {key}: '{value}'") from None
    if parsed < 1:
        raise ConfigurationError(f"{key} must be at least 1, got {parsed}")
    return parsed


def _data_size(properties: Mapping[str, str], key: str, default: str) -> int:
    value = properties.get(key, default)
    try:
        parsed = parse_data_size(value)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid value for {key}: {exc}") from None
    if parsed < 1:
        raise ConfigurationError(f"{key} must be positive, got '{value}'")
    return parsed


def _choice(properties: Mapping[str, str], key: str, default: str, allowed: tuple[str, ...], upper: bool) -> str:
    value = properties.get(key, default).strip()
    if upper:
        value = value.upper()
    else:
        value = value.lower()
    if value not in allowed:
        raise ConfigurationError(f"Invalid value for {key}: '{value}' (expected one of {', '.join(allowed)})")
    return value


@dataclass(frozen=True)
class HiveConfig:
    rcfile_time_zone: str = "UTC"
    parquet_time_zone: str = "UTC"
    max_partitions_per_scan: int = 100_000
    max_partitions_for_eager_load: int = 100_000
    security: str = ALLOW_ALL
    max_initial_split_size: int = 32 * 1024 * 1024
    max_initial_splits: int = 200
    max_split_size: int = 64 * 1024 * 1024
    storage_format: StorageFormat = StorageFormat.PARQUET
    compression_codec: str = "GZIP"

    @classmethod
    def from_properties(cls, properties: Mapping[str, str]) -> HiveConfig:
        """Build a config from catalog properties. Unknown keys are rejected."""
        check_properties("hive", properties, KNOWN_PROPERTIES)
        storage_format = _choice(
            properties, STORAGE_FORMAT, "PARQUET", tuple(f.value for f in StorageFormat), upper=True
        )
        max_split_size = _data_size(properties, MAX_SPLIT_SIZE, "64MB")
        config = cls(
            rcfile_time_zone=_time_zone(properties, RCFILE_TIME_ZONE),
            parquet_time_zone=_time_zone(properties, PARQUET_TIME_ZONE),
            max_partitions_per_scan=_positive_int(properties, MAX_PARTITIONS_PER_SCAN, 100_000),
            max_partitions_for_eager_load=_positive_int(properties, MAX_PARTITIONS_FOR_EAGER_LOAD, 100_000),
            security=_choice(properties, SECURITY, ALLOW_ALL, SECURITY_MODES, upper=False),
            max_initial_split_size=_data_size(
                properties, MAX_INITIAL_SPLIT_SIZE, f"{max(1, max_split_size // 2)}B"
            ),
            max_initial_splits=_positive_int(properties, MAX_INITIAL_SPLITS, 200),
            max_split_size=max_split_size,
            storage_format=StorageFormat(storage_format),
            compression_codec=_choice(properties, COMPRESSION_CODEC, "GZIP", COMPRESSION_CODECS, upper=True),
        )
        if config.max_partitions_for_eager_load > config.max_partitions_per_scan:
            raise ConfigurationError(
                f"{MAX_PARTITIONS_FOR_EAGER_LOAD} ({config.max_partitions_for_eager_load}) "
                f"cannot exceed {MAX_PARTITIONS_PER_SCAN} ({config.max_partitions_per_scan})"
            )
        if config.max_initial_split_size > config.max_split_size:
            raise ConfigurationError(f"{MAX_INITIAL_SPLIT_SIZE} cannot exceed {MAX_SPLIT_SIZE}")
        if config.storage_format is StorageFormat.TEXTFILE and config.compression_codec not in TEXT_COMPRESSION_CODECS:
            raise ConfigurationError(
                f"Compression codec {config.compression_codec} is not supported for TEXTFILE"
            )
        return config

    def writer_time_zone(self) -> str:
        if self.storage_format is StorageFormat.TEXTFILE:
            return self.rcfile_time_zone
        return self.parquet_time_zone
