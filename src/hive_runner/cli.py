"""Start a Hive query environment and run SQL against it from the terminal."""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from hive_runner import __version__
from hive_runner.config import CONFIG_FILE_NAME, apply_config_file
from hive_runner.connectors.hive.config import ALLOW_ALL
from hive_runner.errors import ConfigurationError, EnvironmentStartupError, QueryRunnerError
from hive_runner.output import OutputFormat, emit
from hive_runner.runner import HiveQueryRunner, HiveQueryRunnerBuilder
from hive_runner.tpch import TpchTable

USAGE = "usage: hive-runner [BASE_DATA_DIR]"
BANNER = "======== SERVER STARTED ========"

app = typer.Typer(
    name="hive-runner",
    help="Start an ephemeral Hive query environment seeded with TPC-H data.",
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"hive-runner {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
    )
    for noisy in ("pyarrow", "duckdb", "pyiceberg"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def create_builder(base_data_dir: Path | None) -> HiveQueryRunnerBuilder:
    """Builder for an interactive environment: open security, all TPC-H tables and TPC-DS."""
    builder = (
        HiveQueryRunner.builder()
        .set_hive_properties({"hive.security": ALLOW_ALL})
        .set_skip_timezone_setup(True)
        .set_initial_tables(TpchTable.get_tables())
        .set_base_data_dir(base_data_dir)
        .set_tpcds_catalog_enabled(True)
    )
    if base_data_dir is not None:
        config_path = base_data_dir / CONFIG_FILE_NAME
        if config_path.exists():
            apply_config_file(builder, config_path)
    return builder


def _repl(runner: HiveQueryRunner, fmt: OutputFormat) -> None:
    while True:
        try:
            line = input()
        except EOFError:
            return
        sql = line.strip().rstrip(";").strip()
        if not sql:
            continue
        if sql.lower() in ("quit", "exit"):
            return
        try:
            result = runner.execute(sql)
        except QueryRunnerError as exc:
            err_console.print(f"[red bold]Query failed:[/red bold] {exc}")
            continue
        emit(console, result, fmt)


@app.command()
def main(
    args: list[str] | None = typer.Argument(  # noqa: B008
        None, metavar="[BASE_DATA_DIR]", help="Directory for catalog data; created if missing"
    ),
    output: OutputFormat = typer.Option(  # noqa: B008
        OutputFormat.TABLE, "--output", "-o", help="Output format (table, json, csv)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log statement routing"),
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Start the environment, print its URL, then read SQL statements from stdin (one per line)."""
    args = args or []
    if len(args) > 1:
        err_console.print(USAGE, markup=False, highlight=False)
        raise SystemExit(1)

    base_data_dir = None
    if args:
        base_data_dir = Path(args[0])
        base_data_dir.mkdir(parents=True, exist_ok=True)

    _configure_logging(verbose)

    try:
        runner = create_builder(base_data_dir).build()
    except ConfigurationError as exc:
        err_console.print(f"[red bold]Config error:[/red bold] {exc}")
        raise SystemExit(1) from None
    except EnvironmentStartupError as exc:
        err_console.print(f"[red bold]Startup failed:[/red bold] {exc}")
        raise SystemExit(1) from None

    with runner:
        console.out(runner.base_url)
        console.out(BANNER)
        _repl(runner, output)
