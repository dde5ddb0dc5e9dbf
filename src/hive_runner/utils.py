"""Utility functions for formatting, conversion and process introspection."""

from __future__ import annotations

import os
import re
from pathlib import Path
from urllib.parse import unquote, urlparse

_DATA_SIZE_UNITS = {
    "B": 1,
    "kB": 1024,
    "MB": 1024**2,
    "GB": 1024**3,
    "TB": 1024**4,
    "PB": 1024**5,
}

_DATA_SIZE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([a-zA-Z]+)\s*$")


def parse_data_size(value: str) -> int:
    """Parse a data size such as ``10kB`` or ``64MB`` into bytes."""
    match = _DATA_SIZE_PATTERN.match(value)
    if not match or match.group(2) not in _DATA_SIZE_UNITS:
        raise ValueError(f"Invalid data size: '{value}' (expected e.g. 10kB, 64MB, 1GB)")
    return int(float(match.group(1)) * _DATA_SIZE_UNITS[match.group(2)])


def format_duration(seconds: float) -> str:
    """Render an elapsed wall time the way engine logs print it."""
    if seconds < 0.001:
        return f"{seconds * 1_000_000:.2f}us"
    if seconds < 1.0:
        return f"{seconds * 1000:.2f}ms"
    if seconds < 60.0:
        return f"{seconds:.2f}s"
    return f"{seconds / 60.0:.2f}m"


def default_time_zone() -> str | None:
    """Return the IANA key of the process default time zone, if it can be determined.

    ``TZ`` wins over ``/etc/localtime`` the same way libc resolves it.
    """
    tz = os.environ.get("TZ")
    if tz:
        return tz.lstrip(":")
    localtime = Path("/etc/localtime")
    if not localtime.exists():
        return None
    target = str(localtime.resolve())
    marker = "zoneinfo/"
    if marker in target:
        return target.split(marker, 1)[1]
    return None


def to_local_path(location: str) -> Path:
    """Convert a plain path or ``file:`` URI into a local path."""
    if location.startswith("file:"):
        return Path(unquote(urlparse(location).path))
    return Path(location)


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def quote_string(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"
