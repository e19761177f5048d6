"""Wire format: request builders, cell codec and status handling.

Every message is a JSON object. Requests carry a ``type``; replies carry
``type`` ``"ok"`` or ``"error"``, and errors add ``code``, ``message`` and,
for writes, ``failed_measurements``.
"""

import datetime
from enum import IntEnum
from typing import Any, Dict, List, Optional, Sequence

from .exceptions import (
    AuthenticationError,
    SchemaConflictError,
    StatementExecutionError,
)
from .tablet import Tablet
from .types import Binary, DataType, Field, MeasurementSchema, RowRecord


class StatusCode(IntEnum):
    SUCCESS = 200
    EXECUTE_STATEMENT_ERROR = 301
    MULTIPLE_ERROR = 302
    PATH_ALREADY_EXISTS = 501
    DATA_TYPE_MISMATCH = 507
    PATH_NOT_EXIST = 508
    QUERY_NOT_FOUND = 601
    AUTHENTICATION_FAILED = 801


# Cells

def encode_cell(value: Any, data_type: DataType) -> Any:
    """Turn a coerced cell into its JSON representation"""
    if value is None:
        return None
    if data_type is DataType.DATE:
        return value.isoformat()
    if data_type is DataType.BLOB:
        return value.hex()
    return value


def decode_cell(raw: Any, data_type: Optional[DataType]) -> Any:
    """Inverse of ``encode_cell``"""
    if raw is None or data_type is None:
        return None
    if data_type is DataType.DATE:
        return datetime.date.fromisoformat(raw)
    if data_type is DataType.BLOB:
        return Binary(bytes.fromhex(raw))
    if data_type in (DataType.FLOAT, DataType.DOUBLE):
        return float(raw)
    return raw


def decode_row(raw: Sequence[Any], column_types: Sequence[Optional[DataType]]) -> RowRecord:
    """Build a RowRecord from ``[timestamp, v1, v2, ...]``.

    A null value yields a null field, whatever the column's type.
    """
    timestamp, cells = raw[0], raw[1:]
    fields = []
    for cell, data_type in zip(cells, column_types):
        if cell is None or data_type is None:
            fields.append(Field.null())
        else:
            fields.append(Field(data_type, decode_cell(cell, data_type)))
    return RowRecord(timestamp, fields)


# Requests

def open_request(username: Optional[str], password: Optional[str]) -> Dict[str, Any]:
    return {"type": "open", "username": username, "password": password}


def close_request() -> Dict[str, Any]:
    return {"type": "close"}


def tablet_request(tablet: Tablet, sort: bool = True) -> Dict[str, Any]:
    """Encode the written rows of a tablet.

    When ``sort`` is set and the timestamps are out of order, rows are sent
    in ascending timestamp order. The tablet itself is left untouched.
    """
    rows = list(range(tablet.row_size))
    missing = [row for row in rows if tablet.timestamps[row] is None]
    if missing:
        raise ValueError(f"Rows {missing} of tablet {tablet.device_id} have no timestamp")
    if sort and not tablet.is_sorted():
        rows.sort(key=lambda row: tablet.timestamps[row])

    columns = []
    for schema, column in zip(tablet.schemas, tablet.values):
        columns.append([encode_cell(column[row], schema.data_type) for row in rows])

    return {
        "type": "insert_tablet",
        "device": str(tablet.device_id),
        "schemas": [schema.to_dict() for schema in tablet.schemas],
        "timestamps": [tablet.timestamps[row] for row in rows],
        "columns": columns,
    }


def record_request(
    device_id: str,
    timestamp: int,
    measurements: Sequence[str],
    data_types: Sequence[DataType],
    cells: Sequence[Any]
) -> Dict[str, Any]:
    """Encode one row of already-coerced cells"""
    return {
        "type": "insert_record",
        "device": str(device_id),
        "timestamp": timestamp,
        "measurements": list(measurements),
        "data_types": [data_type.value for data_type in data_types],
        "values": [encode_cell(cell, dt) for cell, dt in zip(cells, data_types)],
    }


def create_timeseries_request(path: str, schema: MeasurementSchema) -> Dict[str, Any]:
    request = {"type": "create_timeseries", "path": str(path)}
    request.update(schema.to_dict())
    del request["name"]
    return request


def describe_timeseries_request(path: str) -> Dict[str, Any]:
    return {"type": "describe_timeseries", "path": str(path)}


def delete_timeseries_request(paths: Sequence[str]) -> Dict[str, Any]:
    return {"type": "delete_timeseries", "paths": [str(p) for p in paths]}


def query_request(sql: str, fetch_size: int, timeout_ms: Optional[int] = None) -> Dict[str, Any]:
    return {"type": "execute_query", "sql": sql, "fetch_size": fetch_size, "timeout_ms": timeout_ms}


def fetch_request(query_id: Any, fetch_size: int) -> Dict[str, Any]:
    return {"type": "fetch", "query_id": query_id, "fetch_size": fetch_size}


def close_query_request(query_id: Any) -> Dict[str, Any]:
    return {"type": "close_query", "query_id": query_id}


def statement_request(sql: str) -> Dict[str, Any]:
    return {"type": "execute_statement", "sql": sql}


def delete_data_request(paths: Sequence[str], end_time: int) -> Dict[str, Any]:
    return {"type": "delete_data", "paths": [str(p) for p in paths], "end_time": end_time}


def create_database_request(name: str) -> Dict[str, Any]:
    return {"type": "create_database", "name": name}


def delete_database_request(name: str) -> Dict[str, Any]:
    return {"type": "delete_database", "name": name}


# Replies

def schema_from_reply(path: str, reply: Dict[str, Any]) -> MeasurementSchema:
    """Build the schema carried by a describe_timeseries reply"""
    data = dict(reply["schema"])
    data.setdefault("name", path.rsplit(".", 1)[-1])
    return MeasurementSchema.from_dict(data)


def column_types_from_reply(reply: Dict[str, Any]) -> List[Optional[DataType]]:
    return [DataType(t) if t else None for t in reply.get("data_types", [])]


def raise_for_status(response: Dict[str, Any]) -> Dict[str, Any]:
    """Return ``response`` if it is a success, otherwise raise the mapped error"""
    if response.get("type") != "error":
        return response

    message = response.get("message", "Unknown error")
    code = response.get("code")
    if code == StatusCode.AUTHENTICATION_FAILED:
        raise AuthenticationError(message)
    if code == StatusCode.PATH_ALREADY_EXISTS:
        raise SchemaConflictError(message, code=code)
    raise StatementExecutionError(
        message,
        code=code,
        failed_measurements=response.get("failed_measurements"),
        created=response.get("created"),
    )
