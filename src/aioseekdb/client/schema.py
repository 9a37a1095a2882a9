"""
Collection table DDL and the reverse direction: recovering a collection's
vector dimension and distance metric from the server's schema description.

Resolution works for tables that were not created through this package, as
long as they follow the c$v1$ naming and column conventions.
"""
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Sequence, Union

from .configuration import DistanceMetric
from .errors import ConfigError, NotFoundError
from .meta_info import CollectionFieldNames, CollectionNames
from .sql_utils import quote_identifier

logger = logging.getLogger(__name__)

_DIMENSION_PATTERN = re.compile(r"vector\s*\(\s*(\d+)\s*\)", re.IGNORECASE)
_DISTANCE_PATTERN = re.compile(r"distance\s*=\s*['\"]?(\w+)", re.IGNORECASE)


@dataclass(frozen=True)
class CollectionSchema:
    """Vector configuration recovered from a collection table"""
    dimension: int
    distance: DistanceMetric


def build_create_table_sql(table_name: str, dimension: int, distance: Union[str, DistanceMetric]) -> str:
    """
    Build the CREATE TABLE statement of a collection

    HNSW is the only supported index type; tables use HEAP organization.
    """
    if isinstance(dimension, bool) or not isinstance(dimension, int) or dimension <= 0:
        raise ConfigError(f"dimension must be a positive integer, got {dimension!r}")
    metric = DistanceMetric.parse(distance)
    return (
        f"CREATE TABLE {quote_identifier(table_name)} (\n"
        f"    {CollectionFieldNames.ID} varbinary(512) PRIMARY KEY NOT NULL,\n"
        f"    {CollectionFieldNames.DOCUMENT} text,\n"
        f"    {CollectionFieldNames.EMBEDDING} vector({dimension}),\n"
        f"    {CollectionFieldNames.METADATA} json,\n"
        f"    FULLTEXT INDEX idx_fts({CollectionFieldNames.DOCUMENT}) WITH PARSER ik,\n"
        f"    VECTOR INDEX idx_vec ({CollectionFieldNames.EMBEDDING}) "
        f"with(distance={metric.value}, type=hnsw, lib=vsag)\n"
        f") ORGANIZATION = HEAP"
    )


def _row_field(row: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if name in row:
            return row[name]
    return None


def parse_dimension(describe_rows: Sequence[Mapping[str, Any]], create_statement: str = "") -> int:
    """
    Extract the vector dimension from DESCRIBE rows

    The embedding column type is read first; the CREATE TABLE text is used
    when DESCRIBE does not report the vector type.

    Raises:
        ConfigError: dimension not found or not positive
    """
    field_type = None
    for row in describe_rows:
        if _row_field(row, "Field", "field", "COLUMN_NAME") == CollectionFieldNames.EMBEDDING:
            field_type = str(_row_field(row, "Type", "type", "COLUMN_TYPE") or "")
            break

    match = _DIMENSION_PATTERN.search(field_type or "") or _DIMENSION_PATTERN.search(create_statement or "")
    if match is None:
        raise ConfigError("Cannot determine vector dimension: no vector(N) column declaration found")

    dimension = int(match.group(1))
    if dimension <= 0:
        raise ConfigError(f"Invalid vector dimension {dimension}: must be positive")
    return dimension


def parse_distance(create_statement: str) -> DistanceMetric:
    """
    Extract the distance metric from the vector index options

    Raises:
        ConfigError: no distance option found, or the value is not a known metric
    """
    match = _DISTANCE_PATTERN.search(create_statement or "")
    if match is None:
        raise ConfigError("Cannot determine distance metric: no distance option in vector index definition")
    return DistanceMetric.parse(match.group(1))


def _create_statement(rows: List[Dict[str, Any]]) -> str:
    if not rows:
        return ""
    row = rows[0]
    statement = _row_field(row, "Create Table", "create table", "CREATE TABLE")
    if statement is None and len(row) > 1:
        # second column of SHOW CREATE TABLE
        statement = list(row.values())[1]
    return str(statement or "")


async def resolve_collection_schema(connection: Any, collection_name: str) -> CollectionSchema:
    """
    Read dimension and distance of an existing collection

    Args:
        connection: object exposing ``async fetch_all(sql, params)``
        collection_name: logical collection name

    Raises:
        NotFoundError: the collection table does not exist
        ConfigError: the table exists but its vector configuration can't be parsed
    """
    table = quote_identifier(CollectionNames.table_name(collection_name))

    describe_rows = await connection.fetch_all(f"DESCRIBE {table}")
    if not describe_rows:
        raise NotFoundError(f"Collection '{collection_name}' does not exist")

    create_statement = _create_statement(await connection.fetch_all(f"SHOW CREATE TABLE {table}"))

    try:
        schema = CollectionSchema(
            dimension=parse_dimension(describe_rows, create_statement),
            distance=parse_distance(create_statement),
        )
    except ConfigError as e:
        raise ConfigError(f"Collection '{collection_name}': {e}") from e

    logger.debug(f"Resolved collection '{collection_name}': {schema}")
    return schema
