"""
Type handling for bulk copy operations.

This module provides:
- TypeEntry: SQL Server type name -> Python type and zero value
- lookup_type: Read-only access to the fixed SQL Server type table
- MISSING: Marker for a cell with no value (sent to the server as NULL)
- coerce_value: Convert entity attribute values to buffer values
"""
import datetime
import decimal
import enum
import logging
import typing
import uuid
from dataclasses import dataclass
from types import MappingProxyType, NoneType, UnionType
from typing import Any

from bulkcopy.exceptions import TypeConversionError, UnsupportedTypeError

logger = logging.getLogger(__name__)

__all__ = [
    'MISSING',
    'TypeEntry',
    'lookup_type',
    'supported_type_names',
    'unwrap_optional',
    'is_enum_type',
    'representation_type',
    'coerce_value',
    'is_missing',
]


class _Missing:
    """Marker for an absent cell value.

    Distinct from every valid value, including each type's zero value.
    """

    _instance = None

    def __new__(cls) -> '_Missing':
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return 'MISSING'

    def __bool__(self) -> bool:
        return False

    def __reduce__(self) -> str:
        return 'MISSING'


MISSING = _Missing()


def is_missing(value: Any) -> bool:
    """Check if a buffer value is the missing marker."""
    return value is MISSING


@dataclass(frozen=True)
class TypeEntry:
    """SQL Server type name with its Python representation and zero value.
    """
    type_name: str
    python_type: type
    zero_value: Any


# datetime and smalldatetime columns reject dates before 1753/1900
_SQLSERVER_ZERO_DATE = datetime.datetime(1900, 1, 1)


def _build_type_table() -> MappingProxyType:
    entries = [
        TypeEntry('image', bytes, b''),
        TypeEntry('text', str, ''),
        TypeEntry('uniqueidentifier', uuid.UUID, uuid.UUID(int=0)),
        TypeEntry('date', datetime.date, datetime.date.min),
        TypeEntry('time', datetime.time, datetime.time(0, 0)),
        TypeEntry('datetime2', datetime.datetime, datetime.datetime.min),
        TypeEntry('tinyint', int, 0),
        TypeEntry('smallint', int, 0),
        TypeEntry('int', int, 0),
        TypeEntry('smalldatetime', datetime.datetime, _SQLSERVER_ZERO_DATE),
        TypeEntry('real', float, 0.0),
        TypeEntry('money', decimal.Decimal, decimal.Decimal(0)),
        TypeEntry('datetime', datetime.datetime, _SQLSERVER_ZERO_DATE),
        TypeEntry('float', float, 0.0),
        TypeEntry('ntext', str, ''),
        TypeEntry('bit', bool, False),
        TypeEntry('decimal', decimal.Decimal, decimal.Decimal(0)),
        TypeEntry('numeric', decimal.Decimal, decimal.Decimal(0)),
        TypeEntry('smallmoney', decimal.Decimal, decimal.Decimal(0)),
        TypeEntry('bigint', int, 0),
        TypeEntry('varbinary', bytes, b''),
        TypeEntry('varchar', str, ''),
        TypeEntry('binary', bytes, b''),
        TypeEntry('char', str, ''),
        TypeEntry('timestamp', bytes, b''),
        TypeEntry('nvarchar', str, ''),
        TypeEntry('nchar', str, ''),
        TypeEntry('xml', str, ''),
        TypeEntry('sysname', str, ''),
    ]
    # datetimeoffset, sql_variant, hierarchyid, geometry and geography are not supported
    return MappingProxyType({entry.type_name: entry for entry in entries})


_TYPE_TABLE = _build_type_table()


def lookup_type(type_name: str) -> TypeEntry:
    """Get the registry entry for a SQL Server type name.

    Lookup is case-insensitive; catalog names are lower case.

    Raises UnsupportedTypeError when the type is not in the table.
    """
    entry = _TYPE_TABLE.get((type_name or '').lower())
    if entry is None:
        raise UnsupportedTypeError(type_name)
    return entry


def supported_type_names() -> list[str]:
    """Return the SQL Server type names known to the registry."""
    return list(_TYPE_TABLE)


def unwrap_optional(host_type: Any) -> Any:
    """Strip an Optional wrapper: ``Optional[int]`` and ``int | None`` -> ``int``.

    Unions of several non-None types are returned unchanged.
    """
    if typing.get_origin(host_type) in {typing.Union, UnionType}:
        args = [arg for arg in typing.get_args(host_type) if arg is not NoneType]
        if len(args) == 1:
            return args[0]
    return host_type


def is_enum_type(host_type: Any) -> bool:
    """Check if a host type (after unwrapping Optional) is an Enum class."""
    host_type = unwrap_optional(host_type)
    return isinstance(host_type, type) and issubclass(host_type, enum.Enum)


def representation_type(host_type: Any) -> type:
    """Get the buffer column type for an entity attribute's declared type.

    Enums are represented by their integer code.
    """
    host_type = unwrap_optional(host_type)
    if is_enum_type(host_type):
        return int
    if isinstance(host_type, type):
        return host_type
    return object


def _enum_code(value: enum.Enum) -> int:
    if isinstance(value, int):
        return int(value)
    code = value.value
    if isinstance(code, int) and not isinstance(code, bool):
        return code
    raise TypeConversionError(
        f'Cannot convert {type(value).__name__}.{value.name} to an integer code: '
        f'value {code!r} is not an integer')


def coerce_value(value: Any) -> Any:
    """Convert an entity attribute value to its buffer value.

    - None or MISSING -> MISSING
    - Enum member -> integer code
    - anything else -> unchanged
    """
    if value is None or value is MISSING:
        return MISSING
    if isinstance(value, enum.Enum):
        return _enum_code(value)
    return value
