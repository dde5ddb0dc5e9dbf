"""File and pyiceberg-backed metastores share one contract."""

import pytest

from data_factory import orders_table_record, sales_database, seed_metastore
from hive_runner.errors import SchemaAlreadyExistsError, SchemaNotFoundError, TableAlreadyExistsError
from hive_runner.metastore import BucketProperty, HiveMetastoreFactory, PrincipalType, StorageFormat
from hive_runner.metastore.file import FileHiveMetastore
from hive_runner.metastore.iceberg import IcebergCatalogMetastore


@pytest.fixture(params=["file", "iceberg"])
def metastore(request, tmp_path):
    if request.param == "file":
        return FileHiveMetastore(tmp_path / "metastore")
    return IcebergCatalogMetastore.local(tmp_path / "metastore")


def test_database_round_trip(metastore, tmp_path):
    metastore.create_database(sales_database(str(tmp_path / "sales")))
    database = metastore.get_database("sales")
    assert database.location == str(tmp_path / "sales")
    assert database.owner_name == "analytics"
    assert database.owner_type == PrincipalType.USER
    assert database.comment == "sales data"
    assert database.parameters == {"team": "analytics"}
    assert metastore.get_all_databases() == ["sales"]


def test_missing_database(metastore):
    assert metastore.get_database("nope") is None
    with pytest.raises(SchemaNotFoundError):
        metastore.get_tables("nope")


def test_duplicate_database(metastore):
    metastore.create_database(sales_database())
    with pytest.raises(SchemaAlreadyExistsError):
        metastore.create_database(sales_database())


def test_table_round_trip(metastore, tmp_path):
    location = str(tmp_path / "sales")
    seed_metastore(metastore, location)
    table = metastore.get_table("sales", "orders")
    assert table.column_names == ["order_id", "customer", "amount", "order_date"]
    assert [c.type for c in table.columns] == ["BIGINT", "VARCHAR", "DECIMAL(12,2)", "DATE"]
    assert table.storage_format == StorageFormat.PARQUET
    assert table.compression == "SNAPPY"
    assert table.location == f"{location}/orders"
    assert table.bucket_property == BucketProperty(("order_id",), 4)
    assert table.owner == "analytics"
    assert metastore.get_tables("sales") == ["orders"]


def test_table_requires_database(metastore, tmp_path):
    with pytest.raises(SchemaNotFoundError):
        metastore.create_table(orders_table_record(str(tmp_path / "orders")))


def test_duplicate_table(metastore, tmp_path):
    seed_metastore(metastore, str(tmp_path / "sales"))
    with pytest.raises(TableAlreadyExistsError):
        metastore.create_table(orders_table_record(str(tmp_path / "sales" / "orders")))


def test_missing_table(metastore):
    metastore.create_database(sales_database())
    assert metastore.get_table("sales", "nope") is None


def test_file_metastore_persists_across_instances(tmp_path):
    seed_metastore(FileHiveMetastore(tmp_path), str(tmp_path / "data"))
    reopened = FileHiveMetastore(tmp_path)
    assert reopened.get_tables("sales") == ["orders"]
    assert (tmp_path / "sales" / ".schema.yaml").is_file()


def test_iceberg_metadata_stays_out_of_table_location(tmp_path):
    metastore = IcebergCatalogMetastore.local(tmp_path / "catalog")
    seed_metastore(metastore, str(tmp_path / "data"))
    assert not (tmp_path / "data" / "orders").exists()


def test_factory_returns_configured_metastore(tmp_path):
    metastore = FileHiveMetastore(tmp_path)
    assert HiveMetastoreFactory(metastore).create_metastore() is metastore
