from dataclasses import dataclass

from bulkcopy.exceptions import ValidationError

from libb import ConfigOptions, scriptname

__all__ = [
    'DatabaseOptions',
    'BulkCopyOptions',
]

SUPPORTED_DRIVERNAMES = ('mssql',)
REQUIRED_OPTIONS = ('hostname', 'username', 'password', 'database', 'port')


@dataclass
class DatabaseOptions(ConfigOptions):
    """Options

    supported driver names: `mssql`

    Connection pooling options:
    - use_pool: Whether to use connection pooling (default: False)
    - pool_max_connections: Maximum connections in pool (default: 5)
    - pool_max_idle_time: Maximum seconds a connection can be idle (default: 300)
    - pool_wait_timeout: Maximum seconds to wait for a connection (default: 30)
    """
    drivername: str = 'mssql'
    hostname: str = None
    username: str = None
    password: str = None
    database: str = None
    port: int = 1433
    timeout: int = 0
    appname: str = None
    driver: str = 'ODBC Driver 18 for SQL Server'
    trust_server_certificate: bool = True
    # Connection pooling parameters
    use_pool: bool = False
    pool_max_connections: int = 5
    pool_max_idle_time: int = 300
    pool_wait_timeout: int = 30

    def __post_init__(self):
        if self.drivername not in SUPPORTED_DRIVERNAMES:
            raise ValueError(f'drivername must be one of: {list(SUPPORTED_DRIVERNAMES)}')
        for field in REQUIRED_OPTIONS:
            if not getattr(self, field):
                raise ValueError(f'field {field} cannot be None or 0')
        self.appname = self.appname or scriptname() or 'python_console'


def _check_positive(name: str, value: int | None) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f'{name} must be a positive integer, got {value!r}')


@dataclass(frozen=True)
class BulkCopyOptions:
    """Settings for one bulk copy.

    - batch_size: Rows sent per round trip, all rows in one batch when None
    - bulk_copy_timeout: Seconds before the server operation times out, driver default when None
    - keep_identity: Write supplied identity values instead of letting the server assign them
    - keep_nulls: Explicit nulls are kept rather than replaced by column defaults (always on)
    """
    batch_size: int | None = None
    bulk_copy_timeout: int | None = None
    keep_identity: bool = False
    keep_nulls: bool = True

    def __post_init__(self):
        _check_positive('batch_size', self.batch_size)
        _check_positive('bulk_copy_timeout', self.bulk_copy_timeout)
        if not self.keep_nulls:
            raise ValidationError('keep_nulls cannot be disabled')
