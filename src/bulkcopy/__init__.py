"""
Bulk loading of entity lists into SQL Server tables.

The physical table, read from the system catalog at call time, decides the
columns and their order. Entity attributes are matched to columns by exact
name; unmapped columns get NULL or their type's zero value.

Examples
    sess = bulkcopy.session(hostname='db', username='sa', password='...', database='app')

    bulkcopy.bulk_insert(sess, orders, batch_size=5000)

    with sess.transaction():
        bulkcopy.bulk_insert(sess, orders, keep_identity=True)
"""
__version__ = '0.1.0'

from bulkcopy.buffer import TabularBuffer
from bulkcopy.bulk import bulk_insert
from bulkcopy.catalog import PhysicalColumn, fetch_columns
from bulkcopy.connection import ConnectionWrapper, connect
from bulkcopy.exceptions import DatabaseError
from bulkcopy.exceptions import InvalidArgumentError, QueryError
from bulkcopy.exceptions import TypeConversionError, UnsupportedTypeError
from bulkcopy.exceptions import ValidationError
from bulkcopy.mapping import EntityDescriptor, PropertyDescriptor
from bulkcopy.mapping import describe_entity
from bulkcopy.options import BulkCopyOptions, DatabaseOptions
from bulkcopy.resolver import ColumnMapping, resolve
from bulkcopy.session import Session, Transaction, session
from bulkcopy.transfer import BulkCopy, transfer
from bulkcopy.types import MISSING, TypeEntry, lookup_type

__all__ = [
    'bulk_insert',
    'connect',
    'session',
    'Session',
    'Transaction',
    'ConnectionWrapper',
    'DatabaseOptions',
    'BulkCopyOptions',
    'BulkCopy',
    'transfer',
    'TabularBuffer',
    'PhysicalColumn',
    'fetch_columns',
    'ColumnMapping',
    'resolve',
    'EntityDescriptor',
    'PropertyDescriptor',
    'describe_entity',
    'MISSING',
    'TypeEntry',
    'lookup_type',
    'DatabaseError',
    'QueryError',
    'TypeConversionError',
    'ValidationError',
    'InvalidArgumentError',
    'UnsupportedTypeError',
]
