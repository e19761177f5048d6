"""
TesseraDB Python Client

An asyncio session client for TesseraDB - a time-series database with
columnar batch writes and server-side cursors.

Example usage:
    ```python
    import asyncio
    from tesseradb import DataType, MeasurementSchema, Session, Tablet

    async def main():
        session = Session.builder().host("127.0.0.1").port(6667).build()
        await session.open()

        # Columnar batch write
        schemas = [
            MeasurementSchema("temperature", DataType.DOUBLE),
            MeasurementSchema("status", DataType.BOOLEAN),
        ]
        tablet = Tablet("root.plant.line1", schemas, max_row_number=100)
        for ts in range(100):
            row = tablet.row_size
            tablet.add_timestamp(row, ts)
            tablet.add_value(row, "temperature", 20.0 + ts / 10)
            tablet.add_value(row, "status", ts % 2 == 0)
        await session.insert_tablet(tablet)

        # Single row from string literals
        await session.insert_str_record(
            "root.plant.line1", 100, ["temperature", "status"], ["31.5", "true"]
        )

        # Lazily paginated query
        async with await session.execute_query_statement(
            "select * from root.plant.line1"
        ) as data_set:
            async for record in data_set:
                print(record.timestamp, record.fields[0].double_v)

        await session.close()

    asyncio.run(main())
    ```
"""

from .config import SessionConfig
from .coercion import coerce_literal, coerce_value, infer_data_type
from .exceptions import (
    TesseraDBError,
    NotOpenError,
    SessionStateError,
    ConnectionError,
    TimeoutError,
    AuthenticationError,
    StatementExecutionError,
    SchemaConflictError,
    CoercionError,
    LiteralFormatError,
    CapacityExceededError,
    FieldTypeError,
    ResultSetClosedError,
)
from .query import SessionDataSet
from .schema import SchemaRegistry
from .session import Session, SessionBuilder
from .state import SessionState
from .tablet import Tablet
from .transport import StreamTransport, Transport
from .types import (
    Binary,
    Compression,
    DataType,
    Encoding,
    Field,
    MeasurementSchema,
    RowRecord,
    SeriesPath,
)

__version__ = "0.1.0"
__all__ = [
    "Session",
    "SessionBuilder",
    "SessionConfig",
    "SessionDataSet",
    "SessionState",
    "SchemaRegistry",
    "Tablet",
    "Transport",
    "StreamTransport",
    "coerce_value",
    "coerce_literal",
    "infer_data_type",
    "TesseraDBError",
    "NotOpenError",
    "SessionStateError",
    "ConnectionError",
    "TimeoutError",
    "AuthenticationError",
    "StatementExecutionError",
    "SchemaConflictError",
    "CoercionError",
    "LiteralFormatError",
    "CapacityExceededError",
    "FieldTypeError",
    "ResultSetClosedError",
    "Binary",
    "Compression",
    "DataType",
    "Encoding",
    "Field",
    "MeasurementSchema",
    "RowRecord",
    "SeriesPath",
]
