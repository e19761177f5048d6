"""TesseraDB exceptions"""

from typing import List, Optional


NOT_OPEN_MESSAGE = "Session is not open, please invoke Session.open() first"


class TesseraDBError(Exception):
    """Base exception for all TesseraDB errors"""
    pass


class NotOpenError(TesseraDBError):
    """Operation attempted on a session that is not open"""

    def __init__(self, message: str = NOT_OPEN_MESSAGE):
        super().__init__(message)


class SessionStateError(TesseraDBError):
    """open() called on a session that is already open or closed"""
    pass


class ConnectionError(TesseraDBError):
    """Error connecting to or talking with the TesseraDB server"""
    pass


class TimeoutError(ConnectionError):
    """Operation timed out"""
    pass


class AuthenticationError(TesseraDBError):
    """Authentication failed"""
    pass


class StatementExecutionError(TesseraDBError):
    """The server rejected, or partially rejected, a statement.

    For writes, ``failed_measurements`` names the columns the server dropped.
    Columns not listed there were committed, and ``created`` lists the series
    the server registered for them along the way.
    """

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        failed_measurements: Optional[List[str]] = None,
        created: Optional[List[dict]] = None
    ):
        super().__init__(message)
        self.code = code
        self.failed_measurements = list(failed_measurements or [])
        self.created = list(created or [])

    @property
    def is_partial_write(self) -> bool:
        return bool(self.failed_measurements)


class SchemaConflictError(StatementExecutionError):
    """A series already exists with an incompatible data type"""
    pass


class CoercionError(TesseraDBError):
    """A native value cannot be stored in a column of the declared type"""
    pass


class LiteralFormatError(CoercionError):
    """A textual literal does not parse as the declared type"""

    def __init__(self, literal: str, data_type):
        name = getattr(data_type, "name", data_type)
        super().__init__(f"Cannot parse literal {literal!r} as {name}")
        self.literal = literal
        self.data_type = data_type


class CapacityExceededError(TesseraDBError):
    """Row index outside a tablet's capacity"""
    pass


class FieldTypeError(TesseraDBError):
    """Field accessed through the accessor of a different data type"""
    pass


class ResultSetClosedError(TesseraDBError):
    """Result set used after it was closed"""
    pass
