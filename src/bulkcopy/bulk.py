"""
Bulk insert of entity lists into SQL Server tables.

Pipeline, all on one connection:
1. fetch the table's physical columns from the catalog
2. resolve one column mapping per physical column
3. build the tabular buffer for all entities
4. copy the buffer with BulkCopy
"""
import logging
from typing import TYPE_CHECKING, Any

from bulkcopy.buffer import build
from bulkcopy.catalog import fetch_columns
from bulkcopy.exceptions import InvalidArgumentError, QueryError
from bulkcopy.mapping import EntityDescriptor, describe_entity
from bulkcopy.options import BulkCopyOptions
from bulkcopy.resolver import resolve
from bulkcopy.sql import destination_table_name
from bulkcopy.transfer import BulkCopy, connection_scope

if TYPE_CHECKING:
    from bulkcopy.session import Session

__all__ = ['bulk_insert']

logger = logging.getLogger(__name__)


def _entity_descriptor(entities: list[Any],
                       entity_type: 'type | EntityDescriptor | None') -> EntityDescriptor:
    if isinstance(entity_type, EntityDescriptor):
        return entity_type
    if entity_type is None:
        entity_type = type(entities[0])
    return describe_entity(entity_type)


def bulk_insert(session: 'Session', entities: list[Any] | None,
                entity_type: 'type | EntityDescriptor | None' = None,
                batch_size: int | None = None,
                bulk_copy_timeout: int | None = None,
                keep_identity: bool = False) -> int:
    """Bulk insert entities into the table their mapping names.

    Args:
        session: Session supplying the connection; an active transaction is joined
        entities: Entities to insert
        entity_type: Mapped class or prebuilt EntityDescriptor; defaults to the
            type of the first entity
        batch_size: Rows per batch, all rows in one batch when None
        bulk_copy_timeout: Seconds before the copy times out
        keep_identity: Write supplied identity values instead of letting the
            server assign them

    Returns
        Number of rows sent

    Raises
        InvalidArgumentError: entities is None (before any I/O)
        UnsupportedTypeError: an unmapped column has an unsupported type
            (before any row is sent)
    """
    if entities is None:
        raise InvalidArgumentError('entities cannot be None')

    options = BulkCopyOptions(batch_size=batch_size,
                              bulk_copy_timeout=bulk_copy_timeout,
                              keep_identity=keep_identity)

    entities = list(entities)
    if not entities:
        logger.debug('Skipping bulk insert of empty entity list')
        return 0

    descriptor = _entity_descriptor(entities, entity_type)
    destination = destination_table_name(descriptor.table, descriptor.schema)

    with connection_scope(session) as (cn, external_transaction):
        columns = fetch_columns(cn, descriptor.table, descriptor.schema)
        if not columns:
            raise QueryError(f'Table {destination} not found')

        mappings = resolve(columns, descriptor.properties)
        buffer = build(mappings, entities)

        bulk_copy = BulkCopy(cn, destination, options, external_transaction)
        rc = bulk_copy.write_to_server(buffer, columns)

    logger.debug(f'Bulk inserted {rc} rows into {destination}')
    return rc
