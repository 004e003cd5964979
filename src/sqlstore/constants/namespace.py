"""Naming constants for internally managed objects."""

# Every table the pipeline creates and may drop carries this prefix.
INTERNAL_TABLE_PREFIX = "dd_"

DEFAULT_POOL_NAME = "default"

DEFAULT_ENVIRONMENT = "deepdive"

DEFAULT_SQL_COMMAND = "deepdive-sql"

# Literal a PostgreSQL-family engine prints for boolean true in TSV output.
TSV_TRUE = "t"
TSV_FALSE = "f"
TSV_NULL = "\\N"
