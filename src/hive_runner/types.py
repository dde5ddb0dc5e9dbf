"""Mapping between engine SQL type names and pyarrow types."""

from __future__ import annotations

import re

import pyarrow as pa

_DECIMAL = re.compile(r"^DECIMAL\((\d+),\s*(\d+)\)$")
_VARCHAR = re.compile(r"^VARCHAR(\(\d+\))?$")

_SIMPLE_TO_ARROW: dict[str, pa.DataType] = {
    "BOOLEAN": pa.bool_(),
    "TINYINT": pa.int8(),
    "SMALLINT": pa.int16(),
    "INTEGER": pa.int32(),
    "BIGINT": pa.int64(),
    "REAL": pa.float32(),
    "DOUBLE": pa.float64(),
    "DATE": pa.date32(),
    "TIMESTAMP": pa.timestamp("us"),
    "VARBINARY": pa.binary(),
}


def arrow_to_sql_type(data_type: pa.DataType) -> str:
    """Return the SQL type name used in metastore records for *data_type*."""
    if pa.types.is_decimal(data_type):
        return f"DECIMAL({data_type.precision},{data_type.scale})"
    if pa.types.is_string(data_type) or pa.types.is_large_string(data_type):
        return "VARCHAR"
    if pa.types.is_binary(data_type) or pa.types.is_large_binary(data_type):
        return "VARBINARY"
    if pa.types.is_timestamp(data_type):
        return "TIMESTAMP"
    if pa.types.is_date(data_type):
        return "DATE"
    for name, candidate in _SIMPLE_TO_ARROW.items():
        if data_type == candidate:
            return name
    raise ValueError(f"Unsupported column type: {data_type}")


def sql_to_arrow_type(type_name: str) -> pa.DataType:
    normalized = type_name.strip().upper()
    match = _DECIMAL.match(normalized)
    if match:
        return pa.decimal128(int(match.group(1)), int(match.group(2)))
    if _VARCHAR.match(normalized):
        return pa.string()
    if normalized in _SIMPLE_TO_ARROW:
        return _SIMPLE_TO_ARROW[normalized]
    raise ValueError(f"Unsupported column type: {type_name}")


def arrow_schema_to_columns(schema: pa.Schema) -> list[tuple[str, str]]:
    return [(f.name, arrow_to_sql_type(f.type)) for f in schema]


def columns_to_arrow_schema(columns: list[tuple[str, str]]) -> pa.Schema:
    return pa.schema([pa.field(name, sql_to_arrow_type(type_name)) for name, type_name in columns])
