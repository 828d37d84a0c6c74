"""
SQL text helpers for SQL Server.
"""
import logging

logger = logging.getLogger(__name__)

__all__ = [
    'quote_identifier',
    'destination_table_name',
    'make_placeholders',
    'build_insert_sql',
]


def quote_identifier(identifier: str) -> str:
    """Quote an identifier for SQL Server.

    >>> quote_identifier('my_table')
    '[my_table]'
    >>> quote_identifier('weird]name')
    '[weird]]name]'
    """
    if not identifier:
        raise ValueError('Identifier cannot be empty')
    return f"[{identifier.replace(']', ']]')}]"


def destination_table_name(table: str, schema: str | None = None) -> str:
    """Build the quoted destination table name, schema-qualified when a schema is set.

    >>> destination_table_name('Orders')
    '[Orders]'
    >>> destination_table_name('Orders', 'sales')
    '[sales].[Orders]'
    """
    if not schema:
        return quote_identifier(table)
    return f'{quote_identifier(schema)}.{quote_identifier(table)}'


def make_placeholders(count: int) -> str:
    """Create pyodbc qmark placeholders.

    >>> make_placeholders(3)
    '?, ?, ?'
    """
    return ', '.join(['?'] * count)


def build_insert_sql(destination: str, columns: list[str]) -> str:
    """Build the parameterized INSERT used for each bulk copy batch.

    >>> build_insert_sql('[dbo].[T]', ['Id', 'Name'])
    'INSERT INTO [dbo].[T] ([Id], [Name]) VALUES (?, ?)'
    >>> build_insert_sql('[dbo].[Seq]', [])
    'INSERT INTO [dbo].[Seq] DEFAULT VALUES'
    """
    if not columns:
        return f'INSERT INTO {destination} DEFAULT VALUES'
    quoted_cols = ', '.join(quote_identifier(col) for col in columns)
    placeholders = make_placeholders(len(columns))
    return f'INSERT INTO {destination} ({quoted_cols}) VALUES ({placeholders})'
