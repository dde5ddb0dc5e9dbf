"""Deterministic TPC-DS subset used by the secondary benchmark catalog."""

from __future__ import annotations

import random
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from functools import lru_cache
from typing import Any

import pyarrow as pa

TINY_SCHEMA_NAME = "tiny"
TINY_SCALE_FACTOR = 0.01

_DATE_DIM_START = date(1900, 1, 2)
_DATE_DIM_END = date(2100, 1, 1)
_DATE_DIM_FIRST_SK = 2415022
_SALES_START = date(1998, 1, 2)
_SALES_DAYS = 1826

_DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
_FIRST_NAMES = ["James", "Mary", "John", "Linda", "Robert", "Susan", "Michael", "Karen", "David", "Lisa"]
_LAST_NAMES = ["Smith", "Johnson", "Brown", "Jones", "Miller", "Davis", "Garcia", "Wilson", "Moore", "Clark"]
_COUNTRIES = ["UNITED STATES", "CANADA", "MEXICO", "GERMANY", "FRANCE", "JAPAN", "BRAZIL"]
_CATEGORIES = ["Books", "Children", "Electronics", "Home", "Jewelry", "Men", "Music", "Shoes", "Sports", "Women"]
_CLASSES = ["accessories", "classical", "computers", "decor", "fiction", "pants", "rings", "swimwear"]
_CITIES = [("Fairview", "TN"), ("Midway", "TN"), ("Oak Grove", "GA"), ("Five Points", "SD"), ("Pleasant Hill", "OH")]


class TpcdsTable(Enum):
    DATE_DIM = "date_dim"
    ITEM = "item"
    CUSTOMER = "customer"
    STORE = "store"
    WAREHOUSE = "warehouse"
    STORE_SALES = "store_sales"

    @property
    def table_name(self) -> str:
        return self.value

    @classmethod
    def get_tables(cls) -> list[TpcdsTable]:
        return list(cls)


_SCHEMAS: dict[str, pa.Schema] = {
    "date_dim": pa.schema([
        pa.field("d_date_sk", pa.int64()),
        pa.field("d_date_id", pa.string()),
        pa.field("d_date", pa.date32()),
        pa.field("d_month_seq", pa.int32()),
        pa.field("d_year", pa.int32()),
        pa.field("d_dow", pa.int32()),
        pa.field("d_moy", pa.int32()),
        pa.field("d_dom", pa.int32()),
        pa.field("d_qoy", pa.int32()),
        pa.field("d_day_name", pa.string()),
        pa.field("d_weekend", pa.string()),
    ]),
    "item": pa.schema([
        pa.field("i_item_sk", pa.int64()),
        pa.field("i_item_id", pa.string()),
        pa.field("i_item_desc", pa.string()),
        pa.field("i_current_price", pa.decimal128(7, 2)),
        pa.field("i_brand", pa.string()),
        pa.field("i_class", pa.string()),
        pa.field("i_category", pa.string()),
        pa.field("i_manufact_id", pa.int32()),
    ]),
    "customer": pa.schema([
        pa.field("c_customer_sk", pa.int64()),
        pa.field("c_customer_id", pa.string()),
        pa.field("c_first_name", pa.string()),
        pa.field("c_last_name", pa.string()),
        pa.field("c_birth_year", pa.int32()),
        pa.field("c_birth_country", pa.string()),
        pa.field("c_email_address", pa.string()),
    ]),
    "store": pa.schema([
        pa.field("s_store_sk", pa.int64()),
        pa.field("s_store_id", pa.string()),
        pa.field("s_store_name", pa.string()),
        pa.field("s_number_employees", pa.int32()),
        pa.field("s_city", pa.string()),
        pa.field("s_state", pa.string()),
    ]),
    "warehouse": pa.schema([
        pa.field("w_warehouse_sk", pa.int64()),
        pa.field("w_warehouse_id", pa.string()),
        pa.field("w_warehouse_name", pa.string()),
        pa.field("w_warehouse_sq_ft", pa.int32()),
        pa.field("w_city", pa.string()),
        pa.field("w_state", pa.string()),
    ]),
    "store_sales": pa.schema([
        pa.field("ss_sold_date_sk", pa.int64()),
        pa.field("ss_item_sk", pa.int64()),
        pa.field("ss_customer_sk", pa.int64()),
        pa.field("ss_store_sk", pa.int64()),
        pa.field("ss_ticket_number", pa.int64()),
        pa.field("ss_quantity", pa.int32()),
        pa.field("ss_sales_price", pa.decimal128(7, 2)),
        pa.field("ss_net_profit", pa.decimal128(7, 2)),
    ]),
}

# rows at scale factor 1; dimension tables that do not scale linearly have floors
_BASE_ROWS = {
    "item": (18_000, 100),
    "customer": (100_000, 100),
    "store": (12, 2),
    "warehouse": (5, 5),
    "store_sales": (2_880_404, 1000),
}


def _count(table: str, scale_factor: float) -> int:
    base, floor = _BASE_ROWS[table]
    return max(floor, int(round(base * scale_factor)))


def _business_id(key: int) -> str:
    return f"AAAAAAAA{key:08X}"


def _money(cents: int) -> Decimal:
    return Decimal(cents).scaleb(-2)


def _date_dim(rng: random.Random, scale_factor: float) -> list[dict[str, Any]]:
    rows = []
    day = _DATE_DIM_START
    sk = _DATE_DIM_FIRST_SK
    while day <= _DATE_DIM_END:
        rows.append({
            "d_date_sk": sk,
            "d_date_id": _business_id(sk),
            "d_date": day,
            "d_month_seq": (day.year - 1900) * 12 + day.month - 1,
            "d_year": day.year,
            "d_dow": (day.weekday() + 1) % 7,
            "d_moy": day.month,
            "d_dom": day.day,
            "d_qoy": (day.month - 1) // 3 + 1,
            "d_day_name": _DAY_NAMES[day.weekday()],
            "d_weekend": "Y" if day.weekday() >= 5 else "N",
        })
        day += timedelta(days=1)
        sk += 1
    return rows


def _item(rng: random.Random, scale_factor: float) -> list[dict[str, Any]]:
    return [
        {
            "i_item_sk": sk,
            "i_item_id": _business_id(sk),
            "i_item_desc": f"{rng.choice(_CLASSES)} item {sk}",
            "i_current_price": _money(rng.randint(9, 9999)),
            "i_brand": f"brand #{rng.randint(1, 10)}",
            "i_class": rng.choice(_CLASSES),
            "i_category": rng.choice(_CATEGORIES),
            "i_manufact_id": rng.randint(1, 1000),
        }
        for sk in range(1, _count("item", scale_factor) + 1)
    ]


def _customer(rng: random.Random, scale_factor: float) -> list[dict[str, Any]]:
    rows = []
    for sk in range(1, _count("customer", scale_factor) + 1):
        first, last = rng.choice(_FIRST_NAMES), rng.choice(_LAST_NAMES)
        rows.append({
            "c_customer_sk": sk,
            "c_customer_id": _business_id(sk),
            "c_first_name": first,
            "c_last_name": last,
            "c_birth_year": rng.randint(1924, 1992),
            "c_birth_country": rng.choice(_COUNTRIES),
            "c_email_address": f"{first}.{last}.{sk}@example.com",
        })
    return rows


def _store(rng: random.Random, scale_factor: float) -> list[dict[str, Any]]:
    rows = []
    for sk in range(1, _count("store", scale_factor) + 1):
        city, state = rng.choice(_CITIES)
        rows.append({
            "s_store_sk": sk,
            "s_store_id": _business_id(sk),
            "s_store_name": rng.choice(["ought", "able", "pri", "ese", "anti", "cally"]),
            "s_number_employees": rng.randint(200, 300),
            "s_city": city,
            "s_state": state,
        })
    return rows


def _warehouse(rng: random.Random, scale_factor: float) -> list[dict[str, Any]]:
    rows = []
    for sk in range(1, _count("warehouse", scale_factor) + 1):
        city, state = rng.choice(_CITIES)
        rows.append({
            "w_warehouse_sk": sk,
            "w_warehouse_id": _business_id(sk),
            "w_warehouse_name": f"Warehouse {sk}",
            "w_warehouse_sq_ft": rng.randint(50_000, 1_000_000),
            "w_city": city,
            "w_state": state,
        })
    return rows


def _store_sales(rng: random.Random, scale_factor: float) -> list[dict[str, Any]]:
    items = _count("item", scale_factor)
    customers = _count("customer", scale_factor)
    stores = _count("store", scale_factor)
    first_sales_sk = _DATE_DIM_FIRST_SK + (_SALES_START - _DATE_DIM_START).days
    rows = []
    ticket = 0
    while len(rows) < _count("store_sales", scale_factor):
        ticket += 1
        sold = first_sales_sk + rng.randint(0, _SALES_DAYS)
        customer = rng.randint(1, customers)
        store = rng.randint(1, stores)
        for _ in range(rng.randint(1, 12)):
            price = rng.randint(100, 20_000)
            rows.append({
                "ss_sold_date_sk": sold,
                "ss_item_sk": rng.randint(1, items),
                "ss_customer_sk": customer,
                "ss_store_sk": store,
                "ss_ticket_number": ticket,
                "ss_quantity": rng.randint(1, 100),
                "ss_sales_price": _money(price),
                "ss_net_profit": _money(rng.randint(-price, price)),
            })
    return rows


_GENERATORS = {
    "date_dim": _date_dim,
    "item": _item,
    "customer": _customer,
    "store": _store,
    "warehouse": _warehouse,
    "store_sales": _store_sales,
}


@lru_cache(maxsize=32)
def generate_table(table: TpcdsTable, scale_factor: float = TINY_SCALE_FACTOR) -> pa.Table:
    rng = random.Random(f"tpcds:{table.value}:{scale_factor}")
    rows = _GENERATORS[table.value](rng, scale_factor)
    return pa.Table.from_pylist(rows, schema=_SCHEMAS[table.value])
