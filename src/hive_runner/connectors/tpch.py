"""Read-only TPC-H catalog. Each schema is a scale factor (``tiny``, ``sf1``, ...)."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from hive_runner.connectors import check_properties
from hive_runner.engine import Connector, ConnectorFactory, Plugin, QueryEngine, qualified_name
from hive_runner.errors import ConfigurationError
from hive_runner.tpch import (
    TINY_SCHEMA_NAME,
    ColumnNaming,
    DecimalTypeMapping,
    TpchTable,
    generate_table,
    scale_factor_for_schema,
)

log = logging.getLogger(__name__)

COLUMN_NAMING = "tpch.column-naming"
DOUBLE_TYPE_MAPPING = "tpch.double-type-mapping"
SCHEMAS = "tpch.schemas"


def _enum_property(enum_type, properties: Mapping[str, str], key: str, default):
    value = properties.get(key)
    if value is None:
        return default
    try:
        return enum_type(value.strip().upper())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_type)
        raise ConfigurationError(f"Invalid value for {key}: '{value}' (expected one of {allowed})") from None


class TpchConnector(Connector):
    def __init__(
        self,
        catalog_name: str,
        engine: QueryEngine,
        column_naming: ColumnNaming = ColumnNaming.SIMPLIFIED,
        decimal_mapping: DecimalTypeMapping = DecimalTypeMapping.DOUBLE,
        schemas: tuple[str, ...] = (TINY_SCHEMA_NAME,),
    ) -> None:
        super().__init__(catalog_name, engine)
        self.column_naming = column_naming
        self.decimal_mapping = decimal_mapping
        self.schemas = schemas

    def attach(self) -> None:
        for schema in self.schemas:
            scale_factor = scale_factor_for_schema(schema)
            self.engine.run(f"CREATE SCHEMA {qualified_name(self.catalog_name, schema)}")
            for table in TpchTable.get_tables():
                data = generate_table(table, scale_factor, self.column_naming, self.decimal_mapping)
                self.engine.load_arrow(qualified_name(self.catalog_name, schema, table.table_name), data)
            log.debug("Loaded TPC-H schema %s.%s (sf %s)", self.catalog_name, schema, scale_factor)


def create_tpch_connector(catalog_name: str, properties: Mapping[str, str], engine: QueryEngine) -> TpchConnector:
    check_properties("tpch", properties, {COLUMN_NAMING, DOUBLE_TYPE_MAPPING, SCHEMAS})
    schemas = tuple(s.strip() for s in properties.get(SCHEMAS, TINY_SCHEMA_NAME).split(",") if s.strip())
    for schema in schemas:
        if scale_factor_for_schema(schema) is None:
            raise ConfigurationError(f"Invalid TPC-H schema '{schema}' (expected tiny or sfN)")
    return TpchConnector(
        catalog_name,
        engine,
        column_naming=_enum_property(ColumnNaming, properties, COLUMN_NAMING, ColumnNaming.SIMPLIFIED),
        decimal_mapping=_enum_property(DecimalTypeMapping, properties, DOUBLE_TYPE_MAPPING, DecimalTypeMapping.DOUBLE),
        schemas=schemas,
    )


class TpchPlugin(Plugin):
    name = "tpch"

    def get_connector_factories(self) -> Mapping[str, ConnectorFactory]:
        return {"tpch": create_tpch_connector}
