"""
Allow-listed SQL identifiers.

The query handlers choose a schema per environment, a time bucket per
request and a table per endpoint. None of these can be bound as query
parameters, so they are resolved through fixed lookup tables here and the
caller's string is never interpolated into SQL.

Usage:
    schema = schema_for_environment(request_env)
    table = qualified_table(schema, "measurements")
    unit = time_bucket_unit(request.query["time_interval"])
    sql = f"SELECT date_trunc('{unit}', ts) AS bucket, ... FROM {table} WHERE ..."
"""

from powertick_db.core.exceptions import InvalidIdentifierError

DEFAULT_SCHEMA = "public"

# environment -> schema
SCHEMAS = {
    "production": "public",
    "dev": "dev",
    "demo": "demo",
}

TIME_BUCKET_UNITS = frozenset({"hour", "day", "week", "month", "year"})

TABLES = frozenset({
    "powermeters",
    "measurements",
    "installations",
    "user_installations",
    "users",
})

_KNOWN_SCHEMAS = frozenset(SCHEMAS.values()) | {DEFAULT_SCHEMA}


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


def schema_for_environment(environment: str | None) -> str:
    """Schema of an environment; unknown or missing environments use ``public``."""
    if not isinstance(environment, str):
        return DEFAULT_SCHEMA
    return SCHEMAS.get(environment.strip().lower(), DEFAULT_SCHEMA)


def time_bucket_unit(interval: str | None) -> str:
    """
    Validate a time bucket unit for ``date_trunc`` / ``time_bucket``.

    Raises:
        InvalidIdentifierError: interval is not hour, day, week, month or year
    """
    unit = interval.strip().lower() if isinstance(interval, str) else None
    if unit not in TIME_BUCKET_UNITS:
        raise InvalidIdentifierError(
            f"Invalid time interval: {interval!r}",
            details={"field": "time_interval", "allowed": sorted(TIME_BUCKET_UNITS)},
        )
    return unit


def qualified_table(schema_key: str, table: str) -> str:
    """
    Return ``"schema"."table"`` for an allow-listed schema and table.

    ``schema_key`` may be an environment name or a schema name.

    Raises:
        InvalidIdentifierError: schema or table is not allow-listed
    """
    key = schema_key.strip().lower() if isinstance(schema_key, str) else None
    schema = SCHEMAS.get(key, key)
    if schema not in _KNOWN_SCHEMAS:
        raise InvalidIdentifierError(
            f"Unknown schema: {schema_key!r}",
            details={"field": "schema", "allowed": sorted(_KNOWN_SCHEMAS)},
        )
    if table not in TABLES:
        raise InvalidIdentifierError(
            f"Unknown table: {table!r}",
            details={"field": "table", "allowed": sorted(TABLES)},
        )
    return f"{_quote(schema)}.{_quote(table)}"
