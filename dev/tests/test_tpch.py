"""TPC-H generator and the ``tpch`` catalog."""

import pyarrow as pa
import pytest

from hive_runner import tpch
from hive_runner.connectors.tpch import TpchPlugin
from hive_runner.errors import ConfigurationError
from hive_runner.tpch import (
    ColumnNaming,
    DecimalTypeMapping,
    TpchTable,
    generate_table,
    order_key,
    scale_factor_for_schema,
    table_row_count,
)

TINY_COUNTS = {
    TpchTable.REGION: 5,
    TpchTable.NATION: 25,
    TpchTable.SUPPLIER: 100,
    TpchTable.CUSTOMER: 1500,
    TpchTable.PART: 2000,
    TpchTable.PARTSUPP: 8000,
    TpchTable.ORDERS: 15000,
}


@pytest.mark.parametrize(("table", "count"), list(TINY_COUNTS.items()))
def test_tiny_cardinalities(table, count):
    assert table_row_count(table) == count
    assert generate_table(table).num_rows == count


def test_generation_is_deterministic():
    first = generate_table(TpchTable.CUSTOMER)
    generate_table.cache_clear()
    tpch._raw_table.cache_clear()
    assert generate_table(TpchTable.CUSTOMER).equals(first)


def test_column_naming():
    simplified = generate_table(TpchTable.NATION)
    standard = generate_table(TpchTable.NATION, column_naming=ColumnNaming.STANDARD)
    assert simplified.column_names == ["nationkey", "name", "regionkey", "comment"]
    assert standard.column_names == ["n_nationkey", "n_name", "n_regionkey", "n_comment"]


def test_decimal_type_mapping():
    doubles = generate_table(TpchTable.ORDERS)
    decimals = generate_table(TpchTable.ORDERS, decimal_mapping=DecimalTypeMapping.DECIMAL)
    assert doubles.schema.field("totalprice").type == pa.float64()
    assert decimals.schema.field("totalprice").type == pa.decimal128(12, 2)


def test_order_keys_are_sparse():
    assert [order_key(i) for i in range(10)] == [1, 2, 3, 4, 5, 6, 7, 8, 33, 34]


def test_lineitems_reference_orders():
    orders = set(generate_table(TpchTable.ORDERS).column("orderkey").to_pylist())
    lines = set(generate_table(TpchTable.LINEITEM).column("orderkey").to_pylist())
    assert lines == orders


def test_no_customer_key_divisible_by_three_places_orders():
    custkeys = generate_table(TpchTable.ORDERS).column("custkey").to_pylist()
    assert all(key % 3 != 0 for key in custkeys)


@pytest.mark.parametrize(("schema", "expected"), [("tiny", 0.01), ("sf1", 1.0), ("sf0.1", 0.1), ("public", None)])
def test_scale_factor_for_schema(schema, expected):
    assert scale_factor_for_schema(schema) == expected


def test_get_column_unknown():
    with pytest.raises(KeyError):
        TpchTable.REGION.get_column("orderkey")


def test_catalog_exposes_tiny_schema(engine):
    engine.install_plugin(TpchPlugin())
    engine.create_catalog("tpch", "tpch", {"tpch.column-naming": "STANDARD"})
    result = engine.execute(None, "SELECT count(*) FROM tpch.tiny.nation WHERE n_regionkey = 1")
    assert result.only_value() == 5


def test_catalog_rejects_unknown_property(engine):
    engine.install_plugin(TpchPlugin())
    with pytest.raises(ConfigurationError, match="tpch.bogus"):
        engine.create_catalog("tpch", "tpch", {"tpch.bogus": "1"})


def test_catalog_rejects_invalid_naming(engine):
    engine.install_plugin(TpchPlugin())
    with pytest.raises(ConfigurationError):
        engine.create_catalog("tpch", "tpch", {"tpch.column-naming": "FANCY"})
