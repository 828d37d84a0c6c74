"""
Entity mapping descriptors.

The bulk copy pipeline only reads mappings: which table an entity type goes
to and, per mapped attribute, the column name, how to read the value and
the declared Python type. Descriptors can be built by hand or derived from
a dataclass or a SQLAlchemy mapped class with `describe_entity`.

Dataclass entities
    @dataclass
    class Order:
        __table__ = 'Orders'
        __schema__ = 'sales'

        id: int = field(metadata={'column': 'Id'})
        status: OrderStatus | None = field(default=None, metadata={'column': 'Status'})
        note: str = field(default='', metadata={'ignore': True})
"""
import dataclasses
import enum
import logging
import operator
import typing
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

import sqlalchemy as sa
from bulkcopy.exceptions import TypeConversionError, ValidationError

__all__ = [
    'PropertyDescriptor',
    'EntityDescriptor',
    'describe_entity',
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PropertyDescriptor:
    """Mapped attribute: column name, value accessor and declared type.
    """
    column_name: str
    accessor: Callable[[Any], Any]
    host_type: Any = object

    def get_value(self, entity: Any) -> Any:
        return self.accessor(entity)


@dataclass(frozen=True)
class EntityDescriptor:
    """Destination table of an entity type and its mapped attributes in declaration order.
    """
    entity_type: type | None
    table: str
    schema: str | None = None
    properties: Sequence[PropertyDescriptor] = ()


def _type_hints(entity_type: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(entity_type)
    except (NameError, TypeError) as e:
        logger.debug(f'Could not resolve type hints for {entity_type.__name__}: {e}')
        return {}


def _describe_dataclass(entity_type: type) -> EntityDescriptor:
    hints = _type_hints(entity_type)
    properties = []
    for field in dataclasses.fields(entity_type):
        if field.metadata.get('ignore'):
            continue
        properties.append(PropertyDescriptor(
            column_name=field.metadata.get('column', field.name),
            accessor=operator.attrgetter(field.name),
            host_type=hints.get(field.name, field.type),
            ))
    return EntityDescriptor(
        entity_type=entity_type,
        table=getattr(entity_type, '__table__', entity_type.__name__),
        schema=getattr(entity_type, '__schema__', None),
        properties=tuple(properties),
        )


def _column_python_type(column: sa.Column) -> Any:
    try:
        return column.type.python_type
    except NotImplementedError:
        return object


class _EnumLabelGetter:
    """Read an enum attribute as the string SQLAlchemy persists for it.

    `sa.Enum` stores member names, or the `values_callable` strings when
    given, not the member values.
    """

    def __init__(self, key: str, enum_type: sa.Enum) -> None:
        self.key = key
        self.getter = operator.attrgetter(key)
        members = list(enum_type.enum_class.__members__.values())
        # aliases map to the label of their canonical member
        self.labels = dict(zip(reversed(members), reversed(enum_type.enums)))

    def __call__(self, entity: Any) -> Any:
        value = self.getter(entity)
        if not isinstance(value, enum.Enum):
            return value
        try:
            return self.labels[value]
        except KeyError:
            raise TypeConversionError(f"{value!r} is not a member of the enum type of {self.key}") from None


def _describe_mapped_class(mapper: Any) -> EntityDescriptor:
    properties = []
    for prop in mapper.column_attrs:
        column = prop.columns[0]
        if not isinstance(column, sa.Column):
            continue
        if isinstance(column.type, sa.Enum) and column.type.enum_class is not None:
            python_type = str
            accessor = _EnumLabelGetter(prop.key, column.type)
        else:
            python_type = _column_python_type(column)
            accessor = operator.attrgetter(prop.key)
        if column.nullable and isinstance(python_type, type):
            python_type = python_type | None
        properties.append(PropertyDescriptor(
            column_name=column.name,
            accessor=accessor,
            host_type=python_type,
            ))
    table = mapper.local_table
    return EntityDescriptor(
        entity_type=mapper.class_,
        table=table.name,
        schema=table.schema,
        properties=tuple(properties),
        )


def describe_entity(entity_type: type) -> EntityDescriptor:
    """Build the mapping descriptor for a dataclass or SQLAlchemy mapped class.

    Raises ValidationError for any other type.
    """
    mapper = sa.inspect(entity_type, raiseerr=False)
    if mapper is not None and hasattr(mapper, 'column_attrs'):
        return _describe_mapped_class(mapper)

    if dataclasses.is_dataclass(entity_type) and isinstance(entity_type, type):
        return _describe_dataclass(entity_type)

    raise ValidationError(f'No entity mapping for {entity_type!r}: expected a dataclass or a SQLAlchemy mapped class')
