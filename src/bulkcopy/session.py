"""
Ambient session and transaction handling.

A Session owns an engine and, while a transaction is open, the connection
and transaction that bulk copies should join. Outside of a transaction the
session holds no connection; each bulk copy checks out its own.

Examples
    sess = bulkcopy.session(options)

    sess.bulk_insert(orders)                 # private connection, closed afterwards

    with sess.transaction():
        sess.bulk_insert(orders)             # joins the ambient transaction
        sess.bulk_insert(order_lines)
"""
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from bulkcopy.connection import ConnectionWrapper, get_engine_for_options
from bulkcopy.connection import open_connection
from bulkcopy.options import DatabaseOptions
from sqlalchemy.engine import Engine

from libb import load_options

if TYPE_CHECKING:
    from bulkcopy.mapping import EntityDescriptor

__all__ = [
    'Session',
    'Transaction',
    'session',
]

logger = logging.getLogger(__name__)


_local = threading.local()


def _active_transactions() -> dict[int, bool]:
    if not hasattr(_local, 'active_transactions'):
        _local.active_transactions = {}
    return _local.active_transactions


class Transaction:
    """Transaction on a single connection.

    Uses thread-local storage to refuse nested transactions on the same
    connection within a thread.

    Examples
        with Transaction(cn) as tx:
            ...
    """

    def __init__(self, cn: ConnectionWrapper) -> None:
        self.cn = cn
        self.is_active = False

    def begin(self) -> 'Transaction':
        connection_id = id(self.cn)
        active = _active_transactions()
        if connection_id in active:
            raise RuntimeError('Nested transactions are not supported')

        self.cn.driver_connection.autocommit = False
        active[connection_id] = True
        self.cn.in_transaction = True
        self.is_active = True
        logger.debug(f'Started transaction for connection {connection_id}')
        return self

    def commit(self) -> None:
        try:
            self.cn.commit()
            logger.debug(f'Committed transaction for connection {id(self.cn)}')
        finally:
            self._end()

    def rollback(self) -> None:
        try:
            self.cn.rollback()
            logger.warning('Rolling back the current transaction')
        finally:
            self._end()

    def _end(self) -> None:
        _active_transactions().pop(id(self.cn), None)
        self.cn.in_transaction = False
        self.is_active = False

    def __enter__(self) -> 'Transaction':
        return self.begin()

    def __exit__(self, exc_type: type | None, value: Exception | None, traceback: Any | None) -> None:
        if not self.is_active:
            return
        if exc_type is not None:
            self.rollback()
        else:
            self.commit()


class Session:
    """Ambient session: exposes the current connection and transaction.

    `is_in_transaction`, `current_connection` and `current_transaction` are
    what a bulk copy reads to decide whether to join or open its own
    connection. Bulk copies never change this state.
    """

    def __init__(self, engine: Engine, options: DatabaseOptions | None = None) -> None:
        self.engine = engine
        self.options = options
        self.current_connection: ConnectionWrapper | None = None
        self.current_transaction: Transaction | None = None

    @property
    def is_in_transaction(self) -> bool:
        tx = self.current_transaction
        return tx is not None and tx.is_active

    def open_connection(self) -> ConnectionWrapper:
        """Check out a new connection that the caller owns and must close.
        """
        cn = open_connection(self.engine, self.options)
        logger.debug(f'Opened connection {id(cn)}')
        return cn

    def begin_transaction(self) -> Transaction:
        """Open a connection and start the session's ambient transaction.
        """
        if self.is_in_transaction:
            raise RuntimeError('Nested transactions are not supported')
        cn = self.open_connection()
        try:
            tx = Transaction(cn).begin()
        except Exception:
            cn.close()
            raise
        self.current_connection = cn
        self.current_transaction = tx
        return tx

    def commit_transaction(self) -> None:
        """Commit the ambient transaction and release its connection.
        """
        self._finish(commit=True)

    def rollback_transaction(self) -> None:
        """Roll back the ambient transaction and release its connection.
        """
        self._finish(commit=False)

    def _finish(self, commit: bool) -> None:
        if not self.is_in_transaction:
            raise RuntimeError('No transaction is active')
        cn, tx = self.current_connection, self.current_transaction
        try:
            if commit:
                tx.commit()
            else:
                tx.rollback()
        finally:
            self.current_connection = None
            self.current_transaction = None
            cn.close()

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """Run a block inside the session's ambient transaction.
        """
        tx = self.begin_transaction()
        try:
            yield tx
        except BaseException:
            self.rollback_transaction()
            raise
        self.commit_transaction()

    def bulk_insert(self, entities: list[Any] | None,
                    entity_type: 'type | EntityDescriptor | None' = None,
                    batch_size: int | None = None,
                    bulk_copy_timeout: int | None = None,
                    keep_identity: bool = False) -> int:
        """Bulk insert entities into their mapped table. See `bulkcopy.bulk.bulk_insert`.
        """
        from bulkcopy.bulk import bulk_insert
        return bulk_insert(self, entities, entity_type=entity_type,
                           batch_size=batch_size,
                           bulk_copy_timeout=bulk_copy_timeout,
                           keep_identity=keep_identity)

    def close(self) -> None:
        """Roll back any open transaction and release its connection.
        """
        if self.is_in_transaction:
            self.rollback_transaction()

    def __enter__(self) -> 'Session':
        return self

    def __exit__(self, exc_type: type | None, value: Exception | None, traceback: Any | None) -> None:
        self.close()


@load_options(cls=DatabaseOptions)
def session(options: DatabaseOptions | dict[str, Any] | str,
            config: Any | None = None, **kw: Any) -> Session:
    """Return a Session for the configured SQL Server database.
    """
    if not isinstance(options, DatabaseOptions):
        options_func = load_options(cls=DatabaseOptions)(lambda o, c: o)
        options = options_func(options, config, **kw)

    engine = get_engine_for_options(options, use_pool=options.use_pool,
                                    pool_size=options.pool_max_connections,
                                    pool_recycle=options.pool_max_idle_time,
                                    pool_timeout=options.pool_wait_timeout)
    return Session(engine, options)
