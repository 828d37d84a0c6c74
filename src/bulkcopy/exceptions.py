"""
Bulk copy exception classes.

Driver errors raised while reading the catalog or copying rows are not
wrapped: they reach the caller as the pyodbc exception the driver raised.
"""


class DatabaseError(Exception):
    """Base class for all bulkcopy module errors.
    """


class QueryError(DatabaseError):
    """Error in query syntax or execution.
    """


class TypeConversionError(DatabaseError):
    """Error converting types between Python and database.
    """


class ValidationError(DatabaseError):
    """Error in input validation.
    """


class InvalidArgumentError(ValidationError, ValueError):
    """Argument that cannot be used at all, such as a missing entity list.
    """


class UnsupportedTypeError(TypeConversionError):
    """Physical column type with no entry in the type registry.
    """

    def __init__(self, type_name: str) -> None:
        super().__init__(f"Does not support SQL Server type '{type_name}'")
        self.type_name = type_name
