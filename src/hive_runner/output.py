"""Render query results as a Rich table, JSON or CSV."""

from __future__ import annotations

import csv
import io
import json
from enum import Enum
from typing import Any

from rich.console import Console
from rich.table import Table as RichTable

from hive_runner.engine import MaterializedResult


class OutputFormat(str, Enum):
    TABLE = "table"
    JSON = "json"
    CSV = "csv"


def emit(
    console: Console,
    result: MaterializedResult,
    fmt: OutputFormat = OutputFormat.TABLE,
    *,
    title: str = "",
) -> None:
    """Print *result* in the requested format.

    Statements without a result set (``CREATE SCHEMA``) print nothing in
    table mode and an empty list in JSON mode.
    """
    if fmt == OutputFormat.JSON:
        _emit_json(console, result)
    elif fmt == OutputFormat.CSV:
        _emit_csv(console, result)
    else:
        _emit_table(console, result, title=title)


def _rows_as_dicts(result: MaterializedResult) -> list[dict[str, Any]]:
    return [dict(zip(result.column_names, row)) for row in result.rows]


def _emit_json(console: Console, result: MaterializedResult) -> None:
    console.print_json(json.dumps(_rows_as_dicts(result), default=str))


def _emit_csv(console: Console, result: MaterializedResult) -> None:
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(result.column_names)
    writer.writerows(result.rows)
    console.out(buf.getvalue(), end="")


def _cell(value: Any) -> str:
    if value is None:
        return "NULL"
    return str(value)


def _emit_table(console: Console, result: MaterializedResult, *, title: str = "") -> None:
    if not result.column_names:
        return
    table = RichTable(title=title or None, caption=f"({result.row_count} rows)")
    for name in result.column_names:
        table.add_column(name)
    for row in result.rows:
        table.add_row(*(_cell(v) for v in row))
    console.print(table)
