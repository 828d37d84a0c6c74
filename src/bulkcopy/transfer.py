"""
Bulk copy of a tabular buffer into a SQL Server table.

Rows are sent with pyodbc's `fast_executemany`, which binds the whole
parameter array and ships it to the server in one round trip per batch.

Connection ownership
    `connection_scope` joins the session's ambient transaction when there
    is one, and never closes that connection. Otherwise it opens a private
    connection and closes it on every exit path.
"""
import logging
import time
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from bulkcopy.buffer import TabularBuffer
from bulkcopy.catalog import PhysicalColumn
from bulkcopy.options import BulkCopyOptions
from bulkcopy.sql import build_insert_sql
from bulkcopy.types import MISSING

if TYPE_CHECKING:
    from bulkcopy.connection import ConnectionWrapper
    from bulkcopy.session import Session, Transaction

__all__ = [
    'BulkCopy',
    'connection_scope',
    'transfer',
]

logger = logging.getLogger(__name__)


@contextmanager
def connection_scope(session: 'Session') -> Iterator[tuple['ConnectionWrapper', 'Transaction | None']]:
    """Yield the connection and external transaction a bulk copy should use.

    Reuses the session's connection and transaction when a transaction is
    active. Otherwise opens a private connection, yields it with no
    transaction and closes it afterwards, whether the block succeeds or not.
    """
    if session.is_in_transaction:
        logger.debug('Joining the ambient transaction')
        yield session.current_connection, session.current_transaction
        return

    cn = session.open_connection()
    try:
        yield cn, None
    finally:
        cn.close()
        logger.debug('Closed private bulk copy connection')


def _chunks(rows: Sequence[Any], size: int | None) -> Iterator[Sequence[Any]]:
    if not size:
        yield rows
        return
    for start in range(0, len(rows), size):
        yield rows[start:start + size]


class BulkCopy:
    """Write a TabularBuffer to one destination table.

    Computed and timestamp columns are never written. Identity columns are
    written only with `keep_identity`, under SET IDENTITY_INSERT; otherwise
    the server assigns them. MISSING values are sent as NULL. When no column
    is left to write, each row becomes one `DEFAULT VALUES` insert.

    Without an external transaction each batch is committed as soon as it
    is written. With one, nothing is committed here.
    """

    def __init__(self, cn: 'ConnectionWrapper', destination_table_name: str,
                 options: BulkCopyOptions | None = None,
                 external_transaction: 'Transaction | None' = None) -> None:
        self.cn = cn
        self.destination_table_name = destination_table_name
        self.options = options or BulkCopyOptions()
        self.external_transaction = external_transaction

    def _writable_indexes(self, buffer: TabularBuffer,
                          columns: Sequence[PhysicalColumn] | None) -> list[int]:
        if columns is None:
            return list(range(len(buffer.columns)))

        indexes = []
        for i, column in enumerate(columns):
            if column.is_computed or column.type_name.lower() == 'timestamp':
                logger.debug(f'Skipping server-generated column {column.name}')
                continue
            if column.is_identity and not self.options.keep_identity:
                logger.debug(f'Skipping identity column {column.name}, server assigns values')
                continue
            indexes.append(i)
        return indexes

    def _identity_insert(self, cursor: Any, enabled: bool) -> None:
        state = 'ON' if enabled else 'OFF'
        cursor.execute(f'SET IDENTITY_INSERT {self.destination_table_name} {state}')
        logger.debug(f'IDENTITY_INSERT {state} for {self.destination_table_name}')

    def write_to_server(self, buffer: TabularBuffer,
                        columns: Sequence[PhysicalColumn] | None = None) -> int:
        """Send all rows of the buffer to the destination table.

        Args:
            buffer: Rows to write, one value per buffer column
            columns: Physical columns matching the buffer columns, used to
                skip identity and server-generated columns; all buffer
                columns are written when None

        Returns
            Number of rows sent

        Driver errors propagate unchanged.
        """
        if columns is not None and len(columns) != len(buffer.columns):
            raise ValueError(f'{len(columns)} physical columns for {len(buffer.columns)} buffer columns')

        if not len(buffer):
            logger.debug(f'No rows to copy into {self.destination_table_name}')
            return 0

        indexes = self._writable_indexes(buffer, columns)
        names = [buffer.columns[i][0] for i in indexes]
        identity_insert = self.options.keep_identity and columns is not None \
            and any(columns[i].is_identity for i in indexes)

        sql = build_insert_sql(self.destination_table_name, names)
        params = [
            tuple(None if row[i] is MISSING else row[i] for i in indexes)
            for row in buffer.rows
            ]

        driver_connection = self.cn.driver_connection
        previous_timeout = driver_connection.timeout

        start = time.time()
        cursor = None
        try:
            cursor = self.cn.cursor()
            cursor.fast_executemany = True
            if self.options.bulk_copy_timeout:
                driver_connection.timeout = self.options.bulk_copy_timeout
            if identity_insert:
                self._identity_insert(cursor, True)
            try:
                sent = self._write_batches(cursor, sql, params)
            except Exception:
                if identity_insert:
                    self._reset_identity_insert_after_error(cursor)
                raise
            if identity_insert:
                self._identity_insert(cursor, False)
        finally:
            if cursor is not None:
                cursor.close()
            driver_connection.timeout = previous_timeout
            self.cn.addcall(time.time() - start)

        logger.debug(f'Copied {sent} rows into {self.destination_table_name} in {time.time() - start:.2f}s')
        return sent

    def _write_batches(self, cursor: Any, sql: str, params: list[tuple]) -> int:
        sent = 0
        for batch in _chunks(params, self.options.batch_size):
            if batch and not batch[0]:
                # nothing but server-generated columns
                for _ in batch:
                    cursor.execute(sql)
            else:
                cursor.executemany(sql, batch)
            if self.external_transaction is None:
                self.cn.commit()
            sent += len(batch)
            logger.debug(f'Sent batch of {len(batch)} rows ({sent}/{len(params)})')
        return sent

    def _reset_identity_insert_after_error(self, cursor: Any) -> None:
        try:
            self._identity_insert(cursor, False)
        except Exception as e:
            logger.warning(f'Could not reset IDENTITY_INSERT for {self.destination_table_name}: {e}')


def transfer(session: 'Session', buffer: TabularBuffer, destination_table_name: str,
             options: BulkCopyOptions | None = None,
             columns: Sequence[PhysicalColumn] | None = None) -> int:
    """Copy a prepared buffer into a table using the session's connection rules.
    """
    with connection_scope(session) as (cn, external_transaction):
        bulk_copy = BulkCopy(cn, destination_table_name, options, external_transaction)
        return bulk_copy.write_to_server(buffer, columns)
