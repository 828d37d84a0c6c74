"""
Physical table metadata from the SQL Server system catalog.

The catalog, not the entity mapping, decides which columns a table has and
in which order. `fetch_columns` is called once per bulk copy and is never
cached: a table altered between two copies must be seen as it is now.
"""
import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from bulkcopy.connection import ConnectionWrapper

__all__ = [
    'PhysicalColumn',
    'fetch_columns',
    'COLUMNS_SQL',
]

logger = logging.getLogger(__name__)


COLUMNS_SQL = """
select c.name, c.column_id as colorder, c.is_nullable as isnullable,
       c.is_identity as isidentity, c.is_computed as iscomputed,
       ty.name as typename
from sys.columns c
join sys.types ty on c.user_type_id = ty.user_type_id
join sys.objects o on c.object_id = o.object_id
where o.type = 'U' and o.name = ?
"""

SCHEMA_FILTER_SQL = 'and schema_name(o.schema_id) = ?\n'

# unqualified names resolve to the caller's default schema
DEFAULT_SCHEMA_FILTER_SQL = 'and o.schema_id = schema_id()\n'

ORDER_SQL = 'order by c.column_id asc'


@dataclass(frozen=True)
class PhysicalColumn:
    """A column as it exists in the table's current schema.
    """
    name: str
    ordinal: int
    nullable: bool
    type_name: str
    is_identity: bool = False
    is_computed: bool = False

    def __str__(self) -> str:
        return self.name


@contextmanager
def _cursor(cn: 'ConnectionWrapper', sql: str, params: tuple) -> Iterator[Any]:
    """Cursor lifecycle for a single catalog query."""
    cursor = cn.cursor()
    start = time.time()
    try:
        cursor.execute(sql, params)
        yield cursor
    finally:
        cursor.close()
        cn.addcall(time.time() - start)


def _row_to_column(columns: list[str], row: Any) -> PhysicalColumn:
    record = dict(zip(columns, row))
    return PhysicalColumn(
        name=record['name'],
        ordinal=int(record['colorder']),
        nullable=bool(record['isnullable']),
        type_name=record['typename'],
        is_identity=bool(record['isidentity']),
        is_computed=bool(record['iscomputed']),
        )


def fetch_columns(cn: 'ConnectionWrapper', table: str,
                  schema: str | None = None) -> list[PhysicalColumn]:
    """Get the physical columns of a user table ordered by column id.

    Args:
        cn: Open connection
        table: Table name, unquoted
        schema: Schema name, unquoted; when None the user's default schema

    Returns
        list of PhysicalColumn, empty when the table does not exist

    Driver errors propagate unchanged.
    """
    sql = COLUMNS_SQL
    params: tuple = (table,)
    if schema:
        sql += SCHEMA_FILTER_SQL
        params = (table, schema)
    else:
        sql += DEFAULT_SCHEMA_FILTER_SQL
    sql += ORDER_SQL

    with _cursor(cn, sql, params) as cursor:
        names = [desc[0].lower() for desc in cursor.description]
        columns = [_row_to_column(names, row) for row in cursor.fetchall()]

    logger.debug(f'Fetched {len(columns)} columns for {table=} {schema=}')
    return columns
