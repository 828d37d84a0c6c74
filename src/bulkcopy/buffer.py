"""
Tabular buffer construction.

The buffer is the in-memory table handed to the bulk copy: its columns are
exactly the physical columns in physical order and every row carries one
value per column. All rows are materialized before the copy starts; the
copy itself splits them into batches on the wire.
"""
import logging
from collections.abc import Iterable, Iterator, Sequence
from typing import Any

import pandas as pd
from bulkcopy.resolver import ColumnMapping
from bulkcopy.types import MISSING, coerce_value

__all__ = [
    'TabularBuffer',
    'build',
]

logger = logging.getLogger(__name__)


class TabularBuffer:
    """Ordered column schema plus rows of values in the same order.

    Absent values are the MISSING marker, never a type's zero value.
    """

    def __init__(self, columns: Sequence[tuple[str, type]],
                 rows: Sequence[tuple[Any, ...]] = ()) -> None:
        self.columns = list(columns)
        self.rows: list[tuple[Any, ...]] = []
        for row in rows:
            self.add_row(row)

    def add_row(self, row: Sequence[Any]) -> None:
        if len(row) != len(self.columns):
            raise ValueError(f'Row has {len(row)} values, expected {len(self.columns)}')
        self.rows.append(tuple(row))

    @property
    def column_names(self) -> list[str]:
        return [name for name, _ in self.columns]

    @property
    def column_types(self) -> dict[str, type]:
        return dict(self.columns)

    def column_index(self, name: str) -> int:
        return self.column_names.index(name)

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[tuple[Any, ...]]:
        return iter(self.rows)

    def __repr__(self) -> str:
        return f'TabularBuffer(columns={self.column_names}, rows={len(self.rows)})'

    def to_dataframe(self) -> pd.DataFrame:
        """Render the buffer as a DataFrame with MISSING shown as None.

        Column types are kept in DataFrame.attrs['column_types'].
        """
        data = [[None if value is MISSING else value for value in row] for row in self.rows]
        df = pd.DataFrame(data, columns=self.column_names, dtype=object)
        df.attrs['column_types'] = self.column_types
        return df


def _row_values(entity: Any, mappings: Sequence[ColumnMapping]) -> list[Any]:
    values = []
    for mapping in mappings:
        if mapping.accessor is None:
            values.append(mapping.default)
        else:
            values.append(coerce_value(mapping.accessor(entity)))
    return values


def build(mappings: Sequence[ColumnMapping], entities: Iterable[Any]) -> TabularBuffer:
    """Build the buffer for a list of entities.

    One column per mapping in mapping order. Bound columns read the entity
    attribute (enums become their integer code, None becomes MISSING);
    unbound columns take the mapping's default.
    """
    buffer = TabularBuffer([(mapping.name, mapping.python_type) for mapping in mappings])
    for entity in entities:
        buffer.add_row(_row_values(entity, mappings))
    logger.debug(f'Built buffer with {len(buffer.columns)} columns and {len(buffer)} rows')
    return buffer
