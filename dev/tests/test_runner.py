"""End-to-end runner construction: catalogs, population, preconditions and teardown."""

from unittest.mock import patch

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from hive_runner.connectors.hive import FileSystemDirectoryLister
from hive_runner.engine import start_engine
from hive_runner.errors import (
    AccessDeniedError,
    ConfigurationError,
    DataPopulationError,
    EnvironmentStartupError,
    PreconditionMismatchError,
)
from hive_runner.metastore import BucketProperty, StorageFormat
from hive_runner.metastore.file import FileHiveMetastore
from hive_runner.population import create_database_metastore_object
from hive_runner.runner import (
    TIME_ZONE,
    HiveQueryRunner,
    assemble_hive_properties,
    check_time_zone,
)
from hive_runner.session import create_bucketed_session
from hive_runner.tpch import TpchTable


def _capture_engines():
    """Patch ``start_engine`` so the tests can inspect the engine a failed build created."""
    engines = []

    def start(*args, **kwargs):
        engine = start_engine(*args, **kwargs)
        engines.append(engine)
        return engine

    return engines, patch("hive_runner.runner.start_engine", side_effect=start)


# ─── fully populated environment ─────────────────────────────


def test_catalogs(runner):
    assert sorted(runner.catalog_names) == ["hive", "hive_bucketed", "tpcds", "tpch"]
    catalogs = runner.execute("SHOW CATALOGS").only_column()
    assert catalogs == ["hive", "hive_bucketed", "tpcds", "tpch"]


def test_tpch_tables_are_copied(runner):
    assert runner.execute("SELECT count(*) FROM region").only_value() == 5
    assert runner.execute("SELECT count(*) FROM hive.tpch.nation").only_value() == 25
    tables = runner.execute("SHOW TABLES FROM hive.tpch").only_column()
    assert sorted(tables) == sorted(t.table_name for t in TpchTable.get_tables())


def test_copies_match_source(runner):
    copied = runner.execute("SELECT sum(quantity) FROM hive.tpch.lineitem").only_value()
    source = runner.execute("SELECT sum(quantity) FROM tpch.tiny.lineitem").only_value()
    assert copied == source


def test_tpch_schema_is_owned_by_public_role(runner):
    database = runner.get_metastore().get_database("tpch")
    assert database.owner_name == "public"


def test_bucketed_lineitem(runner):
    table = runner.get_metastore().get_table("tpch_bucketed", "lineitem")
    assert table.bucket_property == BucketProperty(("orderkey",), 11)
    assert table.storage_format == StorageFormat.TEXTFILE

    count = runner.execute("SELECT count(*) FROM lineitem", create_bucketed_session()).only_value()
    assert count == runner.execute("SELECT count(*) FROM tpch.tiny.lineitem").only_value()

    splits = runner.get_hive_connector("hive_bucketed").get_splits("tpch_bucketed", "lineitem")
    assert {s.bucket_number for s in splits} == set(range(11))
    assert len({s.path for s in splits}) == 11
    assert max(s.length for s in splits) <= 10 * 1024


def test_unbucketed_tables_in_bucketed_schema(runner):
    assert runner.get_metastore().get_table("tpch_bucketed", "nation").bucket_property is None


def test_hive_catalogs_share_tables(runner):
    count = runner.execute("SELECT count(*) FROM hive.tpch_bucketed.region").only_value()
    assert count == 5


def test_tpcds_catalog(runner):
    assert "tiny" in runner.execute("SHOW SCHEMAS FROM tpcds").only_column()


def test_catalogs_are_frozen_after_build(runner):
    with pytest.raises(ConfigurationError):
        runner.engine.create_catalog("other", "hive")


# ─── time zone precondition ──────────────────────────────────


def test_time_zone_mismatch_starts_nothing(builder):
    builder.set_skip_timezone_setup(False)
    with patch("hive_runner.utils.default_time_zone", return_value="UTC"), \
            patch("hive_runner.runner.start_engine") as start:
        with pytest.raises(PreconditionMismatchError, match=TIME_ZONE):
            builder.build()
    start.assert_not_called()


def test_time_zone_match(reference_time_zone):
    check_time_zone()


def test_time_zone_properties_are_applied(builder, reference_time_zone):
    builder.set_skip_timezone_setup(False).set_initial_tables(["region"])
    with builder.build() as query_runner:
        config = query_runner.get_hive_connector().config
        assert config.parquet_time_zone == TIME_ZONE
        assert config.rcfile_time_zone == TIME_ZONE


def test_skipped_time_zone_setup_uses_defaults(builder):
    with builder.build() as query_runner:
        assert query_runner.get_hive_connector().config.parquet_time_zone == "UTC"


# ─── properties ──────────────────────────────────────────────


def test_hive_property_defaults():
    properties = assemble_hive_properties()
    assert properties["hive.security"] == "sql-standard"
    assert properties["hive.parquet.time-zone"] == TIME_ZONE
    assert properties["hive.max-partitions-per-scan"] == "1000"


def test_hive_property_overrides_win():
    properties = assemble_hive_properties(
        {"hive.security": "allow-all", "hive.max-partitions-per-scan": "5"},
        skip_timezone_setup=True,
    )
    assert properties["hive.security"] == "allow-all"
    assert properties["hive.max-partitions-per-scan"] == "5"
    assert "hive.parquet.time-zone" not in properties


def test_builder_hive_properties(builder):
    builder.set_hive_properties({"hive.security": "read-only"}).add_hive_property("hive.max-split-size", "1MB")
    builder.set_create_tpch_schemas(False)
    with builder.build() as query_runner:
        config = query_runner.get_hive_connector().config
        assert config.security == "read-only"
        assert config.max_split_size == 1024 * 1024


def test_unknown_table_name(builder):
    with pytest.raises(ConfigurationError, match="nope"):
        builder.set_initial_tables(["region", "nope"])


# ─── pluggable collaborators ─────────────────────────────────


def test_pre_seeded_metastore_skips_population(builder, tmp_path):
    metastore = FileHiveMetastore(tmp_path / "metastore")
    metastore.create_database(create_database_metastore_object("tpch"))
    builder.set_metastore(lambda engine: metastore).set_initial_tables(["region", "nation"])
    with builder.build() as query_runner:
        assert query_runner.get_metastore() is metastore
        assert query_runner.execute("SHOW TABLES FROM hive.tpch").row_count == 0


def test_location_base(builder, tmp_path):
    base = tmp_path / "warehouse"
    builder.set_initial_tables(["region"]).set_initial_schemas_location_base(str(base))
    with builder.build() as query_runner:
        assert query_runner.get_metastore().get_database("tpch").location == f"{base}/tpch"
        assert (base / "tpch" / "region").is_dir()


def test_session_mutator_is_applied(builder):
    sessions = []

    def mutator(session):
        sessions.append(session)
        return session.with_catalog_property("hive", "compression_codec", "SNAPPY")

    builder.set_initial_tables(["region"]).set_initial_tables_session_mutator(mutator)
    with builder.build() as query_runner:
        assert [s.catalog for s in sessions] == ["hive"]
        assert query_runner.get_metastore().get_table("tpch", "region").compression == "SNAPPY"


def test_module_and_directory_lister(builder):
    class CountingLister(FileSystemDirectoryLister):
        calls = 0

        def list_files(self, location):
            CountingLister.calls += 1
            return super().list_files(location)

    connectors = []
    builder.set_initial_tables(["region"]).set_tpch_bucketed_catalog_enabled(True)
    builder.set_module(connectors.append).set_directory_lister(CountingLister())
    with builder.build():
        assert sorted(c.catalog_name for c in connectors) == ["hive", "hive_bucketed"]
    assert CountingLister.calls > 0


def test_population_is_traced(builder):
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    builder.set_initial_tables(["region", "nation"]).set_tracer_provider(provider)
    with builder.build():
        tables = [s.attributes["hive.table"] for s in exporter.get_finished_spans()]
    assert tables == ["tpch.region", "tpch.nation"]


def test_additional_setup_runs_before_population(builder):
    seen = []
    builder.set_initial_tables(["region"])
    builder.set_additional_setup(lambda engine: seen.append(engine.schema_exists("hive", "tpch")))
    with builder.build():
        assert seen == [False]


# ─── lifecycle ───────────────────────────────────────────────


def test_builder_is_frozen_after_build(builder):
    builder.set_create_tpch_schemas(False)
    with builder.build():
        with pytest.raises(ConfigurationError):
            builder.set_initial_tables(["region"])
        with pytest.raises(ConfigurationError):
            builder.build()


def test_failed_setup_closes_engine(builder):
    def fail(engine):
        raise RuntimeError("boom")

    engines, patcher = _capture_engines()
    builder.set_additional_setup(fail)
    with patcher, pytest.raises(EnvironmentStartupError, match="boom"):
        builder.build()
    assert [e.closed for e in engines] == [True]


def test_invalid_hive_property_closes_engine(builder):
    engines, patcher = _capture_engines()
    builder.add_hive_property("hive.not-a-property", "x")
    with patcher, pytest.raises(ConfigurationError, match="hive.not-a-property"):
        builder.build()
    assert [e.closed for e in engines] == [True]


def test_failed_population_closes_engine(builder):
    engines, patcher = _capture_engines()
    builder.add_hive_property("hive.security", "read-only").set_initial_tables(["region"])
    with patcher, pytest.raises(DataPopulationError, match="region") as excinfo:
        builder.build()
    assert isinstance(excinfo.value.__cause__, AccessDeniedError)
    assert [e.closed for e in engines] == [True]


def test_close_failure_keeps_build_error(builder, caplog):
    def fail(engine):
        raise RuntimeError("boom")

    builder.set_additional_setup(fail)
    with patch("hive_runner.engine.QueryEngine.close", side_effect=OSError("disk gone")), \
            pytest.raises(EnvironmentStartupError, match="boom"):
        builder.build()
    assert "Failed to close engine" in caplog.text


def test_duplicate_catalog_in_setup(builder):
    engines, patcher = _capture_engines()
    builder.set_additional_setup(lambda engine: engine.create_catalog("hive", "hive"))
    with patcher, pytest.raises(ConfigurationError):
        builder.build()
    assert [e.closed for e in engines] == [True]


def test_close_removes_temporary_data_dir():
    query_runner = HiveQueryRunner.builder().set_skip_timezone_setup(True).set_create_tpch_schemas(False).build()
    data_dir = query_runner.engine.base_data_dir
    assert data_dir.is_dir()
    query_runner.close()
    query_runner.close()
    assert not data_dir.exists()
