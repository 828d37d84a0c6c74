"""
Tests for building the tabular buffer handed to the bulk copy.
"""
import datetime
import decimal

import pytest
from bulkcopy.buffer import TabularBuffer, build
from bulkcopy.catalog import PhysicalColumn
from bulkcopy.exceptions import TypeConversionError
from bulkcopy.mapping import describe_entity
from bulkcopy.resolver import resolve
from bulkcopy.types import MISSING

from tests.fixtures.entities import Item, Label, Painted, Priority, Status
from tests.fixtures.entities import Ticket


def physical(rows):
    return [PhysicalColumn(name, ordinal, bool(nullable), type_name, bool(identity), bool(computed))
            for name, ordinal, nullable, identity, computed, type_name in rows]


def build_for(entity_type, table_rows, entities):
    mappings = resolve(physical(table_rows), describe_entity(entity_type).properties)
    return build(mappings, entities)


class TestBuild:

    def test_unmapped_not_null_column_gets_zero_value(self, item_table):
        buffer = build_for(Item, item_table, [Item(1, 'a'), Item(2, None)])

        assert buffer.columns == [('Id', int), ('Name', str), ('Flag', bool)]
        assert buffer.rows == [(1, 'a', False), (2, MISSING, False)]

    def test_missing_is_not_empty_string(self, item_table):
        buffer = build_for(Item, item_table, [Item(2, None), Item(3, '')])

        assert buffer.rows[0][1] is MISSING
        assert buffer.rows[1][1] == ''

    def test_physical_order_and_enum_codes(self, ticket_table):
        opened = datetime.datetime(2024, 3, 1, 9, 30)
        tickets = [
            Ticket(id=7, priority=Priority.HIGH, status=Status.CLOSED,
                   amount=decimal.Decimal('12.50'), opened=opened, cached_total=99),
            Ticket(id=8),
            ]
        buffer = build_for(Ticket, ticket_table, tickets)

        assert buffer.column_names == [
            'TicketId', 'Status', 'Opened', 'Priority', 'Amount',
            'CreatedAt', 'Notes', 'RowVer', 'Total',
            ]
        assert buffer.rows[0] == (
            7, 20, opened, 5, decimal.Decimal('12.50'),
            datetime.datetime(1900, 1, 1), MISSING, b'', MISSING,
            )
        assert buffer.rows[1][:5] == (8, MISSING, MISSING, 1, decimal.Decimal(0))
        assert type(buffer.rows[0][1]) is int
        assert type(buffer.rows[0][3]) is int
        assert 99 not in buffer.rows[0]

    def test_column_types(self, ticket_table):
        buffer = build_for(Ticket, ticket_table, [Ticket(id=1)])

        types = buffer.column_types
        assert types['Status'] is int
        assert types['Priority'] is int
        assert types['CreatedAt'] is datetime.datetime
        assert types['Notes'] is str

    def test_enum_without_integer_code(self):
        table = [('Id', 1, 0, 0, 0, 'int'), ('Color', 2, 0, 0, 0, 'nvarchar')]
        with pytest.raises(TypeConversionError):
            build_for(Painted, table, [Painted(1, Label.RED)])

    def test_no_entities(self, item_table):
        buffer = build_for(Item, item_table, [])

        assert len(buffer) == 0
        assert buffer.column_names == ['Id', 'Name', 'Flag']


class TestTabularBuffer:

    def test_row_width_checked(self):
        buffer = TabularBuffer([('Id', int), ('Name', str)])
        with pytest.raises(ValueError):
            buffer.add_row((1,))

    def test_iteration_and_index(self):
        buffer = TabularBuffer([('Id', int), ('Name', str)], [(1, 'a'), (2, MISSING)])

        assert list(buffer) == [(1, 'a'), (2, MISSING)]
        assert buffer.column_index('Name') == 1
        assert repr(buffer) == "TabularBuffer(columns=['Id', 'Name'], rows=2)"

    def test_to_dataframe(self):
        buffer = TabularBuffer(
            [('Id', int), ('Name', str), ('Flag', bool)],
            [(1, 'a', False), (2, MISSING, False)],
            )
        df = buffer.to_dataframe()

        assert list(df.columns) == ['Id', 'Name', 'Flag']
        assert df['Name'].tolist() == ['a', None]
        assert df['Flag'].tolist() == [False, False]
        assert df.attrs['column_types'] == {'Id': int, 'Name': str, 'Flag': bool}


if __name__ == '__main__':
    __import__('pytest').main([__file__])
