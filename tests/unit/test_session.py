"""
Tests for the ambient session and its transaction.
"""
import pytest
from bulkcopy.session import Session, Transaction


class TestSession:

    def test_no_connection_outside_transaction(self, make_session):
        sess, engine = make_session()

        assert not sess.is_in_transaction
        assert sess.current_connection is None
        assert sess.current_transaction is None
        assert engine.connections == []

    def test_open_connection_is_new_each_time(self, make_session):
        sess, engine = make_session()
        first = sess.open_connection()
        second = sess.open_connection()

        assert first is not second
        assert len(engine.connections) == 2
        first.close()
        second.close()

    def test_begin_and_commit(self, make_session):
        sess, engine = make_session()
        tx = sess.begin_transaction()

        assert sess.is_in_transaction
        assert sess.current_transaction is tx
        assert sess.current_connection.in_transaction
        assert sess.current_connection.driver_connection.autocommit is False

        sess.commit_transaction()

        driver = engine.connections[0].connection
        assert driver.commits == 1
        assert not sess.is_in_transaction
        assert sess.current_connection is None
        assert engine.connections[0].closed

    def test_rollback(self, make_session):
        sess, engine = make_session()
        sess.begin_transaction()
        sess.rollback_transaction()

        assert engine.connections[0].connection.rollbacks == 1
        assert engine.connections[0].closed

    def test_nested_transaction_rejected(self, make_session):
        sess, engine = make_session()
        sess.begin_transaction()
        try:
            with pytest.raises(RuntimeError):
                sess.begin_transaction()
            assert len(engine.connections) == 1
        finally:
            sess.rollback_transaction()

    def test_finish_without_transaction(self, make_session):
        sess, _ = make_session()
        with pytest.raises(RuntimeError):
            sess.commit_transaction()
        with pytest.raises(RuntimeError):
            sess.rollback_transaction()

    def test_transaction_context_commits(self, make_session):
        sess, engine = make_session()
        with sess.transaction() as tx:
            assert isinstance(tx, Transaction)
            assert sess.is_in_transaction

        driver = engine.connections[0].connection
        assert driver.commits == 1
        assert driver.rollbacks == 0

    def test_transaction_context_rolls_back(self, make_session):
        sess, engine = make_session()
        with pytest.raises(ValueError):
            with sess.transaction():
                raise ValueError('stop')

        driver = engine.connections[0].connection
        assert driver.commits == 0
        assert driver.rollbacks == 1
        assert not sess.is_in_transaction

    def test_close_rolls_back_open_transaction(self, make_session):
        sess, engine = make_session()
        with sess:
            sess.begin_transaction()

        assert engine.connections[0].connection.rollbacks == 1
        assert engine.connections[0].closed
        assert not sess.is_in_transaction


class TestTransaction:

    def test_nested_on_same_connection(self, make_connection):
        cn = make_connection()
        with Transaction(cn):
            with pytest.raises(RuntimeError, match='Nested'):
                Transaction(cn).begin()
        assert not cn.in_transaction

    def test_context_rolls_back_on_error(self, make_connection):
        cn = make_connection()
        with pytest.raises(KeyError):
            with Transaction(cn):
                raise KeyError('x')

        assert cn.dbapi_connection.rollbacks == 1
        assert cn.dbapi_connection.commits == 0

    def test_commit_ends_transaction(self, make_connection):
        cn = make_connection()
        tx = Transaction(cn).begin()
        tx.commit()

        assert not tx.is_active
        assert not cn.in_transaction
        Transaction(cn).begin().rollback()


def test_session_factory(mocker):
    engine = mocker.sentinel.engine
    get_engine = mocker.patch('bulkcopy.session.get_engine_for_options', return_value=engine)

    import bulkcopy
    sess = bulkcopy.session(hostname='dbhost', username='sa', password='pw',
                            database='app', port=1433)

    assert isinstance(sess, Session)
    assert sess.engine is engine
    assert sess.options.hostname == 'dbhost'
    assert get_engine.call_args.kwargs['use_pool'] is False


if __name__ == '__main__':
    __import__('pytest').main([__file__])
