"""YAML configuration applied to the runner builder."""

import pytest

from hive_runner.config import apply_config, apply_config_file, load_config_file
from hive_runner.errors import ConfigurationError
from hive_runner.runner import HiveQueryRunner
from hive_runner.tpch import ColumnNaming, TpchTable


@pytest.fixture
def config_path(tmp_path):
    def write(text):
        path = tmp_path / "hive-runner.yaml"
        path.write_text(text)
        return path

    return write


def test_load_empty_file(config_path):
    assert load_config_file(config_path("")) == {}


def test_load_invalid_yaml(config_path):
    with pytest.raises(ConfigurationError, match="invalid YAML"):
        load_config_file(config_path("hive_properties: [unclosed\n"))


def test_load_non_mapping(config_path):
    with pytest.raises(ConfigurationError, match="mapping"):
        load_config_file(config_path("- region\n- nation\n"))


def test_apply_config_file(config_path):
    path = config_path(
        "hive_properties:\n"
        "  hive.max-split-size: 32MB\n"
        "  hive.max-partitions-per-scan: 10\n"
        "initial_tables: [nation, region]\n"
        "tpch_bucketed_catalog_enabled: true\n"
        "skip_timezone_setup: true\n"
        "tpch_column_naming: standard\n"
    )
    builder = apply_config_file(HiveQueryRunner.builder(), path)
    assert builder._hive_properties == {
        "hive.max-split-size": "32MB",
        "hive.max-partitions-per-scan": "10",
    }
    assert builder._initial_tables == [TpchTable.NATION, TpchTable.REGION]
    assert builder._tpch_bucketed_catalog_enabled is True
    assert builder._skip_timezone_setup is True
    assert builder._tpch_column_naming == ColumnNaming.STANDARD


def test_all_tables():
    builder = apply_config(HiveQueryRunner.builder(), {"initial_tables": "all"})
    assert builder._initial_tables == TpchTable.get_tables()


def test_booleans_become_lowercase_strings():
    builder = apply_config(HiveQueryRunner.builder(), {"extra_properties": {"flag": True}})
    assert builder._extra_properties == {"flag": "true"}


def test_placeholders(monkeypatch, tmp_path):
    monkeypatch.setenv("HIVE_RUNNER_LOCATION", str(tmp_path))
    builder = apply_config(
        HiveQueryRunner.builder(),
        {"initial_schemas_location_base": "${HIVE_RUNNER_LOCATION}/warehouse/"},
    )
    assert builder._initial_schemas_location_base == f"{tmp_path}/warehouse"


def test_missing_placeholder(monkeypatch):
    monkeypatch.delenv("HIVE_RUNNER_MISSING", raising=False)
    with pytest.raises(ConfigurationError, match="HIVE_RUNNER_MISSING"):
        apply_config(HiveQueryRunner.builder(), {"hive_properties": {"hive.security": "${HIVE_RUNNER_MISSING}"}})


@pytest.mark.parametrize("config", [
    {"hive_catalog": "x"},
    {"hive_properties": ["hive.security"]},
    {"tpcds_catalog_enabled": "yes"},
    {"tpch_column_naming": "camel"},
    {"initial_tables": 3},
    {"initial_tables": ["region", "nope"]},
])
def test_invalid_config(config):
    with pytest.raises(ConfigurationError):
        apply_config(HiveQueryRunner.builder(), config)
