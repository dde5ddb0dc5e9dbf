"""Which TPC-H tables are bucketed, and on what column, in the bucketed catalog."""

from __future__ import annotations

from dataclasses import dataclass

from hive_runner.errors import UnsupportedTableError
from hive_runner.tpch import ColumnNaming, TpchTable

BUCKET_COUNT = 11

_UNBUCKETED = frozenset({"part", "partsupp", "supplier", "nation", "region"})
_BUCKET_KEYS = {
    "lineitem": "orderkey",
    "customer": "custkey",
    "orders": "custkey",
}


@dataclass(frozen=True)
class BucketSpec:
    column: str
    bucket_count: int = BUCKET_COUNT


def resolve_bucketing(
    table: TpchTable | str,
    column_naming: ColumnNaming = ColumnNaming.SIMPLIFIED,
) -> BucketSpec | None:
    """Return the bucketing of *table*, or ``None`` when it is copied unbucketed.

    Raises :class:`UnsupportedTableError` for a table without a rule.
    """
    name = table.table_name if isinstance(table, TpchTable) else str(table).lower()
    if name in _UNBUCKETED:
        return None
    key = _BUCKET_KEYS.get(name)
    if key is None:
        raise UnsupportedTableError(name)
    column = TpchTable.from_name(name).get_column(key)
    return BucketSpec(column_naming.get_name(column), BUCKET_COUNT)


def bucketing_clause(spec: BucketSpec | None) -> str:
    if spec is None:
        return ""
    return f"WITH (bucketed_by=ARRAY['{spec.column}'], bucket_count={spec.bucket_count})"
