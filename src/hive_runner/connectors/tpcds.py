"""Read-only TPC-DS catalog with a single ``tiny`` schema."""

from __future__ import annotations

from collections.abc import Mapping

from hive_runner.connectors import check_properties
from hive_runner.engine import Connector, ConnectorFactory, Plugin, QueryEngine, qualified_name
from hive_runner.tpcds import TINY_SCALE_FACTOR, TINY_SCHEMA_NAME, TpcdsTable, generate_table


class TpcdsConnector(Connector):
    def attach(self) -> None:
        self.engine.run(f"CREATE SCHEMA {qualified_name(self.catalog_name, TINY_SCHEMA_NAME)}")
        for table in TpcdsTable.get_tables():
            self.engine.load_arrow(
                qualified_name(self.catalog_name, TINY_SCHEMA_NAME, table.table_name),
                generate_table(table, TINY_SCALE_FACTOR),
            )


def create_tpcds_connector(catalog_name: str, properties: Mapping[str, str], engine: QueryEngine) -> TpcdsConnector:
    check_properties("tpcds", properties, set())
    return TpcdsConnector(catalog_name, engine)


class TpcdsPlugin(Plugin):
    name = "tpcds"

    def get_connector_factories(self) -> Mapping[str, ConnectorFactory]:
        return {"tpcds": create_tpcds_connector}
