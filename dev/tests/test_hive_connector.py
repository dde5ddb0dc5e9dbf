"""Hive connector: configuration, writes, bucket layout, splits and security."""

import gzip

import pyarrow as pa
import pyarrow.parquet as pq
import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from data_factory import EVENT_ROWS, events_table
from hive_runner.connectors.hive import FileSystemDirectoryLister, HiveConfig, HivePlugin, hive_bucket_numbers
from hive_runner.connectors.hive.connector import _combined_buckets
from hive_runner.connectors.hive.storage import TEXT_FIELD_DELIMITER
from hive_runner.errors import (
    AccessDeniedError,
    ConfigurationError,
    QueryError,
    SchemaNotFoundError,
    TableAlreadyExistsError,
)
from hive_runner.metastore import BucketProperty, Database, PrincipalType, StorageFormat
from hive_runner.session import Identity, SelectedRole, Session, create_session


@pytest.fixture
def hive(engine, tmp_path):
    """Engine with an ``events`` source table and a factory for Hive catalogs."""
    engine.load_arrow('"memory"."main"."events"', events_table())
    plugin = HivePlugin(tmp_path / "hive_data")
    engine.install_plugin(plugin)

    def create(name="hive", **properties):
        engine.create_catalog(name, "hive", properties)
        return engine.get_connector(name)

    create.plugin = plugin
    return create


def _create_schema(plugin, name="tpch", owner="public", owner_type=PrincipalType.ROLE, location=None):
    plugin.get_metastore().create_database(
        Database(database_name=name, location=location, owner_name=owner, owner_type=owner_type)
    )


def _session(catalog="hive", user="hive", role=None):
    roles = {catalog: SelectedRole.of(role)} if role else {}
    return Session(identity=Identity.for_user(user, roles), catalog=catalog, schema="tpch")


CTAS = "CREATE TABLE events {} AS SELECT * FROM memory.main.events"


# ─── config ──────────────────────────────────────────────────


def test_config_defaults():
    config = HiveConfig.from_properties({})
    assert config.storage_format == StorageFormat.PARQUET
    assert config.security == "allow-all"
    assert config.max_initial_split_size == config.max_split_size // 2


def test_config_parses_sizes_and_format():
    config = HiveConfig.from_properties({
        "hive.max-initial-split-size": "10kB",
        "hive.max-split-size": "10kB",
        "hive.storage-format": "textfile",
        "hive.compression-codec": "none",
    })
    assert config.max_split_size == 10 * 1024
    assert config.storage_format == StorageFormat.TEXTFILE
    assert config.compression_codec == "NONE"


@pytest.mark.parametrize("properties", [
    {"hive.unknown": "x"},
    {"hive.security": "file"},
    {"hive.max-split-size": "ten"},
    {"hive.parquet.time-zone": "Mars/Olympus"},
    {"hive.max-partitions-per-scan": "0"},
    {"hive.max-partitions-per-scan": "10", "hive.max-partitions-for-eager-load": "100"},
    {"hive.storage-format": "TEXTFILE", "hive.compression-codec": "ZSTD"},
])
def test_config_rejects_invalid_properties(properties):
    with pytest.raises(ConfigurationError):
        HiveConfig.from_properties(properties)


def test_invalid_properties_fail_catalog_creation(hive):
    with pytest.raises(ConfigurationError):
        hive(**{"hive.security": "nope"})


# ─── writes ──────────────────────────────────────────────────


def test_ctas_writes_parquet_and_exposes_table(hive, engine, tmp_path):
    create = hive
    create()
    _create_schema(create.plugin)
    session = _session()
    assert engine.execute(session, CTAS.format("")).only_value() == EVENT_ROWS
    assert engine.execute(session, "SELECT count(*) FROM events").only_value() == EVENT_ROWS

    table_dir = tmp_path / "hive_data" / "tpch" / "events"
    assert (table_dir / ".table.yaml").is_file()
    assert pq.read_table(table_dir / "part-00000.parquet").num_rows == EVENT_ROWS


def test_table_is_visible_in_every_hive_catalog(hive, engine):
    hive("hive")
    hive("hive_other")
    _create_schema(hive.plugin)
    engine.execute(_session("hive"), CTAS.format(""))
    assert engine.execute(_session("hive_other"), "SELECT count(*) FROM events").only_value() == EVENT_ROWS


def test_ctas_into_missing_schema(hive, engine):
    hive()
    with pytest.raises(SchemaNotFoundError):
        engine.execute(None, "CREATE TABLE hive.nope.events AS SELECT 1 AS x")


def test_ctas_existing_table(hive, engine):
    hive()
    _create_schema(hive.plugin)
    engine.execute(_session(), CTAS.format(""))
    with pytest.raises(TableAlreadyExistsError):
        engine.execute(_session(), CTAS.format(""))


def test_unknown_table_property(hive, engine):
    hive()
    _create_schema(hive.plugin)
    with pytest.raises(QueryError, match="partitioned_by"):
        engine.execute(_session(), CTAS.format("WITH (partitioned_by=ARRAY['region'])"))


def test_bucketing_requires_both_properties(hive, engine):
    hive()
    _create_schema(hive.plugin)
    with pytest.raises(QueryError):
        engine.execute(_session(), CTAS.format("WITH (bucketed_by=ARRAY['event_id'])"))


def test_text_table_with_gzip(hive, engine, tmp_path):
    hive(**{"hive.storage-format": "TEXTFILE", "hive.compression-codec": "GZIP"})
    _create_schema(hive.plugin)
    engine.execute(_session(), CTAS.format(""))
    data_file = tmp_path / "hive_data" / "tpch" / "events" / "part-00000.gz"
    with gzip.open(data_file, "rt") as f:
        first = f.readline()
    assert first.count(TEXT_FIELD_DELIMITER) == 3
    total = engine.execute(_session(), "SELECT sum(event_id) FROM events").only_value()
    assert total == EVENT_ROWS * (EVENT_ROWS + 1) // 2


def test_compression_session_property(hive, engine, tmp_path):
    hive(**{"hive.storage-format": "TEXTFILE"})
    _create_schema(hive.plugin)
    session = _session().with_catalog_property("hive", "compression_codec", "NONE")
    engine.execute(session, CTAS.format(""))
    assert (tmp_path / "hive_data" / "tpch" / "events" / "part-00000").is_file()
    table = hive.plugin.get_metastore().get_table("tpch", "events")
    assert table.compression == "NONE"


def test_schema_location_is_used(hive, engine, tmp_path):
    hive()
    _create_schema(hive.plugin, location=(tmp_path / "external" / "tpch").as_uri())
    engine.execute(_session(), CTAS.format(""))
    assert (tmp_path / "external" / "tpch" / "events" / "part-00000.parquet").is_file()


def test_writes_are_traced(engine, tmp_path):
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    plugin = HivePlugin(tmp_path / "hive_data", tracer_provider=provider)
    engine.install_plugin(plugin)
    engine.create_catalog("hive", "hive")
    _create_schema(plugin)
    engine.execute(_session(), "CREATE TABLE t AS SELECT 1 AS x")
    spans = exporter.get_finished_spans()
    assert [s.name for s in spans] == ["hive.create_table_as"]
    assert spans[0].attributes["hive.table"] == "tpch.t"
    assert spans[0].attributes["hive.rows"] == 1


def test_module_customizes_connector(engine, tmp_path):
    seen = []
    plugin = HivePlugin(tmp_path / "hive_data", module=seen.append)
    engine.install_plugin(plugin)
    engine.create_catalog("hive", "hive")
    assert [c.catalog_name for c in seen] == ["hive"]


# ─── bucketing & splits ──────────────────────────────────────


def test_hive_bucket_hash_for_integers():
    values = pa.array([0, 1, 11, 12, 2**32 + 5, None], type=pa.int64())
    # (v ^ (v >>> 32)) & MAX_INT % 11
    assert hive_bucket_numbers(values, 11).to_pylist() == [0, 1, 0, 1, 4, 0]


def test_hive_bucket_hash_for_narrow_integers():
    # INTEGER hashes as the value itself: -1 & MAX_INT == 2147483647
    values = pa.array([-1, 5, None], type=pa.int32())
    assert hive_bucket_numbers(values, 11).to_pylist() == [2147483647 % 11, 5, 0]
    assert hive_bucket_numbers(pa.array([-1], type=pa.int64()), 11).to_pylist() == [0]


def test_multi_column_buckets_combine_raw_hashes():
    data = pa.table({
        "a": pa.array([0, 1], type=pa.int32()),
        "b": pa.array([2**31 - 1, 3], type=pa.int32()),
    })
    buckets = _combined_buckets(data, BucketProperty(("a", "b"), 11))
    assert buckets.to_pylist() == [(2**31 - 1) % 11, (31 * 1 + 3) % 11]


def test_hive_bucket_hash_for_strings():
    # "a".hashCode() == 97
    assert hive_bucket_numbers(pa.array(["a"]), 11).to_pylist() == [97 % 11]


def test_bucketed_table_has_one_file_per_bucket(hive, engine, tmp_path):
    hive()
    _create_schema(hive.plugin)
    engine.execute(_session(), CTAS.format("WITH (bucketed_by=ARRAY['event_id'], bucket_count=11)"))

    table_dir = tmp_path / "hive_data" / "tpch" / "events"
    files = sorted(e.path.name for e in FileSystemDirectoryLister().list_files(table_dir))
    assert files == [f"bucket-{b:05d}.parquet" for b in range(11)]
    for bucket in range(11):
        ids = pq.read_table(table_dir / f"bucket-{bucket:05d}.parquet").column("event_id").to_pylist()
        assert all(i % 11 == bucket for i in ids)

    table = hive.plugin.get_metastore().get_table("tpch", "events")
    assert table.bucket_property.bucketed_by == ("event_id",)
    assert table.bucket_property.bucket_count == 11


def test_splits_respect_max_split_size(hive, engine):
    connector = hive(**{
        "hive.storage-format": "TEXTFILE",
        "hive.compression-codec": "NONE",
        "hive.max-initial-split-size": "10kB",
        "hive.max-split-size": "10kB",
    })
    _create_schema(hive.plugin)
    engine.execute(_session(), CTAS.format("WITH (bucketed_by=ARRAY['event_id'], bucket_count=2)"))
    splits = connector.get_splits("tpch", "events")
    assert all(s.length <= 10 * 1024 for s in splits)
    assert {s.bucket_number for s in splits} == {0, 1}
    for path in {s.path for s in splits}:
        parts = [s for s in splits if s.path == path]
        assert sum(s.length for s in parts) == parts[0].file_size
        assert len(parts) > 1


def test_compressed_text_is_not_split(hive, engine):
    connector = hive(**{
        "hive.storage-format": "TEXTFILE",
        "hive.compression-codec": "GZIP",
        "hive.max-initial-split-size": "1kB",
        "hive.max-split-size": "1kB",
    })
    _create_schema(hive.plugin)
    engine.execute(_session(), CTAS.format(""))
    splits = connector.get_splits("tpch", "events")
    assert len(splits) == 1
    assert splits[0].length == splits[0].file_size


def test_lister_skips_hidden_files(tmp_path):
    (tmp_path / ".hidden").write_text("x")
    (tmp_path / "_SUCCESS").write_text("")
    (tmp_path / "data").write_text("abc")
    (tmp_path / ".staging").mkdir()
    (tmp_path / ".staging" / "data").write_text("x")
    entries = FileSystemDirectoryLister().list_files(tmp_path)
    assert [(e.path.name, e.size) for e in entries] == [("data", 3)]


# ─── security ────────────────────────────────────────────────


def test_sql_standard_public_schema_is_writable(hive, engine):
    hive(**{"hive.security": "sql-standard"})
    _create_schema(hive.plugin)
    engine.execute(_session(user="alice"), "CREATE TABLE t AS SELECT 1 AS x")


def test_sql_standard_denies_non_owner(hive, engine):
    hive(**{"hive.security": "sql-standard"})
    _create_schema(hive.plugin, owner="bob", owner_type=PrincipalType.USER)
    with pytest.raises(AccessDeniedError):
        engine.execute(_session(user="alice"), "CREATE TABLE t AS SELECT 1 AS x")
    engine.execute(_session(user="bob"), "CREATE TABLE t AS SELECT 1 AS x")


def test_sql_standard_admin_role(hive, engine):
    hive(**{"hive.security": "sql-standard"})
    _create_schema(hive.plugin, owner="bob", owner_type=PrincipalType.USER)
    engine.execute(_session(user="alice", role="admin"), "CREATE TABLE t AS SELECT 1 AS x")


def test_sql_standard_create_schema_requires_admin(hive, engine):
    hive(**{"hive.security": "sql-standard"})
    with pytest.raises(AccessDeniedError):
        engine.execute(_session(), "CREATE SCHEMA hive.sales")
    engine.execute(create_session(SelectedRole.of("admin")), "CREATE SCHEMA hive.sales")
    assert hive.plugin.get_metastore().get_database("sales").owner_name == "hive"


def test_read_only_denies_writes(hive, engine):
    hive(**{"hive.security": "read-only"})
    _create_schema(hive.plugin)
    with pytest.raises(AccessDeniedError):
        engine.execute(_session(), "CREATE TABLE t AS SELECT 1 AS x")


def test_failed_write_leaves_no_files(hive, engine, tmp_path):
    hive()
    _create_schema(hive.plugin)
    with pytest.raises(QueryError):
        engine.execute(_session(), "CREATE TABLE t AS SELECT * FROM missing_source")
    assert not (tmp_path / "hive_data" / "tpch" / "t").exists()
