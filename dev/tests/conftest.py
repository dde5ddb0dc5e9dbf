"""Shared fixtures.

``runner`` is a fully populated environment (all TPC-H tables, bucketed and
TPC-DS catalogs) built once per session; tests that need their own
environment use ``builder`` and build a smaller one.
"""

from unittest.mock import patch

import pytest

from hive_runner.engine import start_engine
from hive_runner.runner import TIME_ZONE, HiveQueryRunner
from hive_runner.tpch import TpchTable


@pytest.fixture
def reference_time_zone():
    """Pretend the process runs in the reference time zone."""
    with patch("hive_runner.utils.default_time_zone", return_value=TIME_ZONE):
        yield TIME_ZONE


@pytest.fixture(scope="session")
def runner(tmp_path_factory):
    base = tmp_path_factory.mktemp("runner")
    with patch("hive_runner.utils.default_time_zone", return_value=TIME_ZONE):
        query_runner = (
            HiveQueryRunner.builder()
            .set_initial_tables(TpchTable.get_tables())
            .set_tpch_bucketed_catalog_enabled(True)
            .set_tpcds_catalog_enabled(True)
            .set_base_data_dir(base)
            .build()
        )
    yield query_runner
    query_runner.close()


@pytest.fixture
def builder(tmp_path):
    return (
        HiveQueryRunner.builder()
        .set_skip_timezone_setup(True)
        .set_base_data_dir(tmp_path / "data")
    )


@pytest.fixture
def engine(tmp_path):
    with start_engine(tmp_path / "engine") as e:
        yield e
