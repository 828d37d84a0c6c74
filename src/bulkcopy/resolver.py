"""
Column mapping resolution.

Pairs every physical column with either a mapped entity attribute or a
default value. The bulk copy sends one value per physical column, so
columns the entity does not map still need a value: NULL when the column
allows it, the type's zero value otherwise.

Duplicate column names
    When several attributes declare the same column name, the first
    declared attribute wins and the others are ignored. This follows the
    declaration order of the entity mapping, so reordering attributes in
    the mapping changes which one is written.
"""
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from bulkcopy.catalog import PhysicalColumn
from bulkcopy.mapping import PropertyDescriptor
from bulkcopy.types import MISSING, lookup_type, representation_type

__all__ = [
    'ColumnMapping',
    'resolve',
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ColumnMapping:
    """Value source for one physical column.

    Either `accessor` is bound, or `default` is used for every row.
    """
    column: PhysicalColumn
    python_type: type
    accessor: Callable[[Any], Any] | None = None
    host_type: Any = None
    default: Any = MISSING

    @property
    def name(self) -> str:
        return self.column.name

    @property
    def is_bound(self) -> bool:
        return self.accessor is not None


def _index_by_column(descriptors: Sequence[PropertyDescriptor]) -> dict[str, PropertyDescriptor]:
    index: dict[str, PropertyDescriptor] = {}
    for descriptor in descriptors:
        if descriptor.column_name in index:
            logger.debug(f'Column {descriptor.column_name!r} is mapped more than once, keeping the first declaration')
            continue
        index[descriptor.column_name] = descriptor
    return index


def _bound_mapping(column: PhysicalColumn, descriptor: PropertyDescriptor) -> ColumnMapping:
    return ColumnMapping(
        column=column,
        python_type=representation_type(descriptor.host_type),
        accessor=descriptor.accessor,
        host_type=descriptor.host_type,
        )


def _default_mapping(column: PhysicalColumn) -> ColumnMapping:
    entry = lookup_type(column.type_name)
    return ColumnMapping(
        column=column,
        python_type=entry.python_type,
        default=MISSING if column.nullable else entry.zero_value,
        )


def resolve(columns: Sequence[PhysicalColumn],
            descriptors: Sequence[PropertyDescriptor]) -> list[ColumnMapping]:
    """Resolve one ColumnMapping per physical column, in physical order.

    Column names match exactly. Unmapped columns are checked against the
    type registry, so an unsupported type raises UnsupportedTypeError here,
    before any row is built or sent.
    """
    by_column = _index_by_column(descriptors)

    mappings = []
    for column in columns:
        descriptor = by_column.get(column.name)
        if descriptor is None:
            mapping = _default_mapping(column)
            logger.debug(f'Column {column.name} is not mapped, using default {mapping.default!r}')
        else:
            mapping = _bound_mapping(column, descriptor)
        mappings.append(mapping)

    unmatched = set(by_column) - {column.name for column in columns}
    if unmatched:
        logger.debug(f'Mapped columns not in table: {sorted(unmatched)}')

    return mappings
