"""Deterministic TPC-H dataset: table definitions, column naming and data generation.

Rows are produced with seeded RNGs (one per table and scale factor) so that
every engine started in the same process, or in a later process, sees the
same data.  The generator follows the shape of ``dbgen`` (fixed nations and
regions, sparse order keys, part/supplier key relationships) without
reproducing its exact text grammar.
"""

from __future__ import annotations

import random
import re
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from functools import lru_cache
from typing import Any

import pyarrow as pa

TINY_SCHEMA_NAME = "tiny"
TINY_SCALE_FACTOR = 0.01

_SF_SCHEMA = re.compile(r"^sf(\d+(?:\.\d+)?)$")


class ColumnNaming(str, Enum):
    """``SIMPLIFIED`` drops the per-table prefix (``orderkey``), ``STANDARD`` keeps it (``o_orderkey``)."""

    SIMPLIFIED = "SIMPLIFIED"
    STANDARD = "STANDARD"

    def get_name(self, column: TpchColumn) -> str:
        if self is ColumnNaming.STANDARD:
            return column.column_name
        return column.simplified_name


class DecimalTypeMapping(str, Enum):
    """How monetary and quantity columns are typed."""

    DOUBLE = "DOUBLE"
    DECIMAL = "DECIMAL"


@dataclass(frozen=True)
class TpchColumn:
    column_name: str
    simplified_name: str
    type: str

    def arrow_type(self, decimal_mapping: DecimalTypeMapping) -> pa.DataType:
        if self.type == "identifier":
            return pa.int64()
        if self.type == "integer":
            return pa.int32()
        if self.type == "date":
            return pa.date32()
        if self.type == "decimal":
            if decimal_mapping is DecimalTypeMapping.DECIMAL:
                return pa.decimal128(12, 2)
            return pa.float64()
        return pa.string()


def _columns(prefix: str, *specs: tuple[str, str]) -> tuple[TpchColumn, ...]:
    return tuple(TpchColumn(f"{prefix}_{name}", name, type_) for name, type_ in specs)


_TABLE_COLUMNS: dict[str, tuple[TpchColumn, ...]] = {
    "customer": _columns(
        "c",
        ("custkey", "identifier"),
        ("name", "varchar(25)"),
        ("address", "varchar(40)"),
        ("nationkey", "identifier"),
        ("phone", "varchar(15)"),
        ("acctbal", "decimal"),
        ("mktsegment", "varchar(10)"),
        ("comment", "varchar(117)"),
    ),
    "orders": _columns(
        "o",
        ("orderkey", "identifier"),
        ("custkey", "identifier"),
        ("orderstatus", "varchar(1)"),
        ("totalprice", "decimal"),
        ("orderdate", "date"),
        ("orderpriority", "varchar(15)"),
        ("clerk", "varchar(15)"),
        ("shippriority", "integer"),
        ("comment", "varchar(79)"),
    ),
    "lineitem": _columns(
        "l",
        ("orderkey", "identifier"),
        ("partkey", "identifier"),
        ("suppkey", "identifier"),
        ("linenumber", "integer"),
        ("quantity", "decimal"),
        ("extendedprice", "decimal"),
        ("discount", "decimal"),
        ("tax", "decimal"),
        ("returnflag", "varchar(1)"),
        ("linestatus", "varchar(1)"),
        ("shipdate", "date"),
        ("commitdate", "date"),
        ("receiptdate", "date"),
        ("shipinstruct", "varchar(25)"),
        ("shipmode", "varchar(10)"),
        ("comment", "varchar(44)"),
    ),
    "part": _columns(
        "p",
        ("partkey", "identifier"),
        ("name", "varchar(55)"),
        ("mfgr", "varchar(25)"),
        ("brand", "varchar(10)"),
        ("type", "varchar(25)"),
        ("size", "integer"),
        ("container", "varchar(10)"),
        ("retailprice", "decimal"),
        ("comment", "varchar(23)"),
    ),
    "partsupp": _columns(
        "ps",
        ("partkey", "identifier"),
        ("suppkey", "identifier"),
        ("availqty", "integer"),
        ("supplycost", "decimal"),
        ("comment", "varchar(199)"),
    ),
    "supplier": _columns(
        "s",
        ("suppkey", "identifier"),
        ("name", "varchar(25)"),
        ("address", "varchar(40)"),
        ("nationkey", "identifier"),
        ("phone", "varchar(15)"),
        ("acctbal", "decimal"),
        ("comment", "varchar(101)"),
    ),
    "nation": _columns(
        "n",
        ("nationkey", "identifier"),
        ("name", "varchar(25)"),
        ("regionkey", "identifier"),
        ("comment", "varchar(152)"),
    ),
    "region": _columns(
        "r",
        ("regionkey", "identifier"),
        ("name", "varchar(25)"),
        ("comment", "varchar(152)"),
    ),
}


class TpchTable(Enum):
    CUSTOMER = "customer"
    ORDERS = "orders"
    LINEITEM = "lineitem"
    PART = "part"
    PARTSUPP = "partsupp"
    SUPPLIER = "supplier"
    NATION = "nation"
    REGION = "region"

    @property
    def table_name(self) -> str:
        return self.value

    @property
    def columns(self) -> tuple[TpchColumn, ...]:
        return _TABLE_COLUMNS[self.value]

    def get_column(self, simplified_name: str) -> TpchColumn:
        for column in self.columns:
            if column.simplified_name == simplified_name:
                return column
        raise KeyError(f"Table {self.value} has no column '{simplified_name}'")

    def column_names(self, naming: ColumnNaming = ColumnNaming.SIMPLIFIED) -> list[str]:
        return [naming.get_name(c) for c in self.columns]

    @classmethod
    def get_tables(cls) -> list[TpchTable]:
        return list(cls)

    @classmethod
    def from_name(cls, name: str) -> TpchTable:
        return cls(name.lower())


def scale_factor_for_schema(schema_name: str) -> float | None:
    """``tiny`` is 0.01, ``sfN`` is N; anything else is not a TPC-H schema."""
    if schema_name == TINY_SCHEMA_NAME:
        return TINY_SCALE_FACTOR
    match = _SF_SCHEMA.match(schema_name)
    if match:
        return float(match.group(1))
    return None


# ---------------------------------------------------------------------------
# Reference data and vocabularies
# ---------------------------------------------------------------------------

REGIONS = ["AFRICA", "AMERICA", "ASIA", "EUROPE", "MIDDLE EAST"]

NATIONS = [
    ("ALGERIA", 0), ("ARGENTINA", 1), ("BRAZIL", 1), ("CANADA", 1), ("EGYPT", 4),
    ("ETHIOPIA", 0), ("FRANCE", 3), ("GERMANY", 3), ("INDIA", 2), ("INDONESIA", 2),
    ("IRAN", 4), ("IRAQ", 4), ("JAPAN", 2), ("JORDAN", 4), ("KENYA", 0),
    ("MOROCCO", 0), ("MOZAMBIQUE", 0), ("PERU", 1), ("CHINA", 2), ("ROMANIA", 3),
    ("SAUDI ARABIA", 4), ("VIETNAM", 2), ("RUSSIA", 3), ("UNITED KINGDOM", 3),
    ("UNITED STATES", 1),
]

_WORDS = [
    "furiously", "quickly", "carefully", "blithely", "slyly", "regular", "express",
    "final", "ironic", "pending", "special", "bold", "even", "silent", "unusual",
    "deposits", "requests", "accounts", "packages", "instructions", "foxes", "ideas",
    "theodolites", "asymptotes", "dependencies", "excuses", "platelets", "courts",
    "dolphins", "sleep", "wake", "haggle", "nag", "use", "boost", "affix", "detect",
    "integrate", "cajole", "among", "across", "above", "after", "against", "along",
    "the", "about", "fluffily", "busily", "according", "to",
]
_COLORS = [
    "almond", "antique", "aquamarine", "azure", "beige", "bisque", "black", "blanched",
    "blue", "blush", "brown", "burlywood", "chartreuse", "chocolate", "coral", "cornsilk",
    "cream", "cyan", "dark", "deep", "dim", "dodger", "drab", "firebrick", "floral",
    "forest", "frosted", "gainsboro", "ghost", "goldenrod", "green", "grey", "honeydew",
    "hot", "indian", "ivory", "khaki", "lace", "lavender", "lawn", "lemon", "light",
    "lime", "linen", "magenta", "maroon", "medium", "metallic", "midnight", "mint",
]
_SEGMENTS = ["AUTOMOBILE", "BUILDING", "FURNITURE", "HOUSEHOLD", "MACHINERY"]
_PRIORITIES = ["1-URGENT", "2-HIGH", "3-MEDIUM", "4-NOT SPECIFIED", "5-LOW"]
_INSTRUCTIONS = ["DELIVER IN PERSON", "COLLECT COD", "NONE", "TAKE BACK RETURN"]
_MODES = ["REG AIR", "AIR", "RAIL", "SHIP", "TRUCK", "MAIL", "FOB"]
_TYPE_SIZES = ["STANDARD", "SMALL", "MEDIUM", "LARGE", "ECONOMY", "PROMO"]
_TYPE_FINISHES = ["ANODIZED", "BURNISHED", "PLATED", "POLISHED", "BRUSHED"]
_TYPE_MATERIALS = ["TIN", "NICKEL", "BRASS", "STEEL", "COPPER"]
_CONTAINER_SIZES = ["SM", "LG", "MED", "JUMBO", "WRAP"]
_CONTAINER_KINDS = ["CASE", "BOX", "BAG", "JAR", "PKG", "PACK", "CAN", "DRUM"]
_ALNUM = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"

START_DATE = date(1992, 1, 1)
END_DATE = date(1998, 12, 31)
CURRENT_DATE = date(1995, 6, 17)
_ORDER_DATE_SPAN = (END_DATE - START_DATE).days - 151


def _scaled(base: int, scale_factor: float) -> int:
    return max(1, int(round(base * scale_factor)))


def _rng(table: str, scale_factor: float) -> random.Random:
    return random.Random(f"tpch:{table}:{scale_factor}")


def _comment(rng: random.Random, max_length: int) -> str:
    text = " ".join(rng.choice(_WORDS) for _ in range(rng.randint(3, 9)))
    return text[:max_length].rstrip()


def _address(rng: random.Random) -> str:
    return "".join(rng.choices(_ALNUM, k=rng.randint(10, 40)))


def _phone(rng: random.Random, nationkey: int) -> str:
    return (
        f"{nationkey + 10}-{rng.randint(100, 999)}-{rng.randint(100, 999)}-{rng.randint(1000, 9999)}"
    )


def retail_price_cents(partkey: int) -> int:
    return 90000 + ((partkey // 10) % 20001) + 100 * (partkey % 1000)


def partsupp_suppkey(partkey: int, index: int, supplier_count: int) -> int:
    return (partkey + index * ((supplier_count // 4) + (partkey - 1) // supplier_count)) % supplier_count + 1


def order_key(index: int) -> int:
    """Order keys are sparse: 8 used keys out of every 32."""
    return (index // 8) * 32 + (index % 8) + 1


# ---------------------------------------------------------------------------
# Raw generation (cached per scale factor)
# ---------------------------------------------------------------------------

Columns = dict[str, list[Any]]


def _region(scale_factor: float) -> Columns:
    rng = _rng("region", scale_factor)
    return {
        "r_regionkey": list(range(len(REGIONS))),
        "r_name": list(REGIONS),
        "r_comment": [_comment(rng, 152) for _ in REGIONS],
    }


def _nation(scale_factor: float) -> Columns:
    rng = _rng("nation", scale_factor)
    return {
        "n_nationkey": list(range(len(NATIONS))),
        "n_name": [name for name, _ in NATIONS],
        "n_regionkey": [region for _, region in NATIONS],
        "n_comment": [_comment(rng, 152) for _ in NATIONS],
    }


def _supplier(scale_factor: float) -> Columns:
    rng = _rng("supplier", scale_factor)
    cols: Columns = {c.column_name: [] for c in TpchTable.SUPPLIER.columns}
    for key in range(1, _scaled(10_000, scale_factor) + 1):
        nationkey = rng.randint(0, 24)
        cols["s_suppkey"].append(key)
        cols["s_name"].append(f"Supplier#{key:09d}")
        cols["s_address"].append(_address(rng))
        cols["s_nationkey"].append(nationkey)
        cols["s_phone"].append(_phone(rng, nationkey))
        cols["s_acctbal"].append(rng.randint(-99_999, 999_999))
        cols["s_comment"].append(_comment(rng, 101))
    return cols


def _customer(scale_factor: float) -> Columns:
    rng = _rng("customer", scale_factor)
    cols: Columns = {c.column_name: [] for c in TpchTable.CUSTOMER.columns}
    for key in range(1, _scaled(150_000, scale_factor) + 1):
        nationkey = rng.randint(0, 24)
        cols["c_custkey"].append(key)
        cols["c_name"].append(f"Customer#{key:09d}")
        cols["c_address"].append(_address(rng))
        cols["c_nationkey"].append(nationkey)
        cols["c_phone"].append(_phone(rng, nationkey))
        cols["c_acctbal"].append(rng.randint(-99_999, 999_999))
        cols["c_mktsegment"].append(rng.choice(_SEGMENTS))
        cols["c_comment"].append(_comment(rng, 117))
    return cols


def _part(scale_factor: float) -> Columns:
    rng = _rng("part", scale_factor)
    cols: Columns = {c.column_name: [] for c in TpchTable.PART.columns}
    for key in range(1, _scaled(200_000, scale_factor) + 1):
        mfgr = rng.randint(1, 5)
        cols["p_partkey"].append(key)
        cols["p_name"].append(" ".join(rng.sample(_COLORS, 5)))
        cols["p_mfgr"].append(f"Manufacturer#{mfgr}")
        cols["p_brand"].append(f"Brand#{mfgr}{rng.randint(1, 5)}")
        cols["p_type"].append(
            f"{rng.choice(_TYPE_SIZES)} {rng.choice(_TYPE_FINISHES)} {rng.choice(_TYPE_MATERIALS)}"
        )
        cols["p_size"].append(rng.randint(1, 50))
        cols["p_container"].append(f"{rng.choice(_CONTAINER_SIZES)} {rng.choice(_CONTAINER_KINDS)}")
        cols["p_retailprice"].append(retail_price_cents(key))
        cols["p_comment"].append(_comment(rng, 23))
    return cols


def _partsupp(scale_factor: float) -> Columns:
    rng = _rng("partsupp", scale_factor)
    supplier_count = _scaled(10_000, scale_factor)
    cols: Columns = {c.column_name: [] for c in TpchTable.PARTSUPP.columns}
    for partkey in range(1, _scaled(200_000, scale_factor) + 1):
        for index in range(4):
            cols["ps_partkey"].append(partkey)
            cols["ps_suppkey"].append(partsupp_suppkey(partkey, index, supplier_count))
            cols["ps_availqty"].append(rng.randint(1, 9999))
            cols["ps_supplycost"].append(rng.randint(100, 100_000))
            cols["ps_comment"].append(_comment(rng, 199))
    return cols


@lru_cache(maxsize=8)
def _orders_and_lineitems(scale_factor: float) -> tuple[Columns, Columns]:
    rng = _rng("orders", scale_factor)
    customer_count = _scaled(150_000, scale_factor)
    part_count = _scaled(200_000, scale_factor)
    supplier_count = _scaled(10_000, scale_factor)
    clerk_count = _scaled(1_000, scale_factor)

    orders: Columns = {c.column_name: [] for c in TpchTable.ORDERS.columns}
    lines: Columns = {c.column_name: [] for c in TpchTable.LINEITEM.columns}

    for index in range(_scaled(1_500_000, scale_factor)):
        orderkey = order_key(index)
        custkey = rng.randint(1, customer_count)
        if custkey % 3 == 0:
            custkey -= 1
        orderdate = START_DATE + timedelta(days=rng.randint(0, _ORDER_DATE_SPAN))

        total_cents = 0
        statuses = set()
        for linenumber in range(1, rng.randint(1, 7) + 1):
            partkey = rng.randint(1, part_count)
            quantity = rng.randint(1, 50)
            extended = quantity * retail_price_cents(partkey)
            discount = rng.randint(0, 10)
            tax = rng.randint(0, 8)
            shipdate = orderdate + timedelta(days=rng.randint(1, 121))
            receiptdate = shipdate + timedelta(days=rng.randint(1, 30))
            linestatus = "O" if shipdate > CURRENT_DATE else "F"
            statuses.add(linestatus)

            lines["l_orderkey"].append(orderkey)
            lines["l_partkey"].append(partkey)
            lines["l_suppkey"].append(partsupp_suppkey(partkey, rng.randint(0, 3), supplier_count))
            lines["l_linenumber"].append(linenumber)
            lines["l_quantity"].append(quantity * 100)
            lines["l_extendedprice"].append(extended)
            lines["l_discount"].append(discount)
            lines["l_tax"].append(tax)
            lines["l_returnflag"].append(
                rng.choice("RA") if receiptdate <= CURRENT_DATE else "N"
            )
            lines["l_linestatus"].append(linestatus)
            lines["l_shipdate"].append(shipdate)
            lines["l_commitdate"].append(orderdate + timedelta(days=rng.randint(30, 90)))
            lines["l_receiptdate"].append(receiptdate)
            lines["l_shipinstruct"].append(rng.choice(_INSTRUCTIONS))
            lines["l_shipmode"].append(rng.choice(_MODES))
            lines["l_comment"].append(_comment(rng, 44))
            total_cents += extended * (100 + tax) * (100 - discount) // 10_000

        if statuses == {"F"}:
            status = "F"
        elif statuses == {"O"}:
            status = "O"
        else:
            status = "P"

        orders["o_orderkey"].append(orderkey)
        orders["o_custkey"].append(custkey)
        orders["o_orderstatus"].append(status)
        orders["o_totalprice"].append(total_cents)
        orders["o_orderdate"].append(orderdate)
        orders["o_orderpriority"].append(rng.choice(_PRIORITIES))
        orders["o_clerk"].append(f"Clerk#{rng.randint(1, clerk_count):09d}")
        orders["o_shippriority"].append(0)
        orders["o_comment"].append(_comment(rng, 79))

    return orders, lines


_GENERATORS = {
    "region": _region,
    "nation": _nation,
    "supplier": _supplier,
    "customer": _customer,
    "part": _part,
    "partsupp": _partsupp,
    "orders": lambda sf: _orders_and_lineitems(sf)[0],
    "lineitem": lambda sf: _orders_and_lineitems(sf)[1],
}


@lru_cache(maxsize=64)
def _raw_table(table: TpchTable, scale_factor: float) -> Columns:
    return _GENERATORS[table.value](scale_factor)


def _to_arrow(column: TpchColumn, values: list[Any], decimal_mapping: DecimalTypeMapping) -> pa.Array:
    arrow_type = column.arrow_type(decimal_mapping)
    if column.type != "decimal":
        return pa.array(values, type=arrow_type)
    # decimal columns are generated as integer hundredths
    if decimal_mapping is DecimalTypeMapping.DECIMAL:
        return pa.array([Decimal(v).scaleb(-2) for v in values], type=arrow_type)
    return pa.array([v / 100 for v in values], type=arrow_type)


@lru_cache(maxsize=64)
def generate_table(
    table: TpchTable,
    scale_factor: float = TINY_SCALE_FACTOR,
    column_naming: ColumnNaming = ColumnNaming.SIMPLIFIED,
    decimal_mapping: DecimalTypeMapping = DecimalTypeMapping.DOUBLE,
) -> pa.Table:
    """Return the rows of *table* at *scale_factor* as a pyarrow table."""
    raw = _raw_table(table, scale_factor)
    arrays = [_to_arrow(c, raw[c.column_name], decimal_mapping) for c in table.columns]
    names = [column_naming.get_name(c) for c in table.columns]
    return pa.Table.from_arrays(arrays, names=names)


def table_row_count(table: TpchTable, scale_factor: float = TINY_SCALE_FACTOR) -> int:
    return len(_raw_table(table, scale_factor)[table.columns[0].column_name])
