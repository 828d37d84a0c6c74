import pytest
from bulkcopy.exceptions import ValidationError
from bulkcopy.options import BulkCopyOptions, DatabaseOptions


def make_options(**kw):
    params = {
        'hostname': 'testhost',
        'username': 'testuser',
        'password': 'testpass',
        'database': 'testdb',
        'port': 1433,
        'timeout': 30,
        }
    params.update(kw)
    return DatabaseOptions(**params)


def test_init_defaults():
    """Test default initialization"""
    options = make_options()

    assert options.drivername == 'mssql'
    assert options.appname is not None
    assert options.driver == 'ODBC Driver 18 for SQL Server'
    assert options.trust_server_certificate is True

    assert options.use_pool is False
    assert options.pool_max_connections == 5
    assert options.pool_max_idle_time == 300
    assert options.pool_wait_timeout == 30


def test_pooling_options():
    """Test connection pooling options"""
    options = make_options(use_pool=True, pool_max_connections=10,
                           pool_max_idle_time=600, pool_wait_timeout=60)

    assert options.use_pool is True
    assert options.pool_max_connections == 10
    assert options.pool_max_idle_time == 600
    assert options.pool_wait_timeout == 60


def test_validation():
    """Test validation rules"""
    with pytest.raises(ValueError, match='drivername'):
        make_options(drivername='postgresql')

    for field in ('hostname', 'username', 'password', 'database'):
        with pytest.raises(ValueError, match=f'field {field}'):
            make_options(**{field: None})

    with pytest.raises(ValueError, match='field port'):
        make_options(port=0)


def test_explicit_appname_kept():
    assert make_options(appname='loader').appname == 'loader'


class TestBulkCopyOptions:

    def test_defaults(self):
        options = BulkCopyOptions()
        assert options.batch_size is None
        assert options.bulk_copy_timeout is None
        assert options.keep_identity is False
        assert options.keep_nulls is True

    def test_positive_values_accepted(self):
        options = BulkCopyOptions(batch_size=500, bulk_copy_timeout=60, keep_identity=True)
        assert options.batch_size == 500
        assert options.bulk_copy_timeout == 60
        assert options.keep_identity is True

    @pytest.mark.parametrize('value', [0, -1, 1.5, '100', True])
    def test_invalid_batch_size(self, value):
        with pytest.raises(ValidationError, match='batch_size'):
            BulkCopyOptions(batch_size=value)

    @pytest.mark.parametrize('value', [0, -30, 2.0, False])
    def test_invalid_timeout(self, value):
        with pytest.raises(ValidationError, match='bulk_copy_timeout'):
            BulkCopyOptions(bulk_copy_timeout=value)

    def test_nulls_always_kept(self):
        with pytest.raises(ValidationError):
            BulkCopyOptions(keep_nulls=False)

    def test_frozen(self):
        options = BulkCopyOptions()
        with pytest.raises(AttributeError):
            options.batch_size = 10


if __name__ == '__main__':
    __import__('pytest').main([__file__])
