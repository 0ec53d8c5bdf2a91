from .identifiers import (
    DEFAULT_SCHEMA,
    TABLES,
    TIME_BUCKET_UNITS,
    qualified_table,
    schema_for_environment,
    time_bucket_unit,
)

__all__ = [
    "DEFAULT_SCHEMA",
    "TABLES",
    "TIME_BUCKET_UNITS",
    "qualified_table",
    "schema_for_environment",
    "time_bucket_unit",
]
