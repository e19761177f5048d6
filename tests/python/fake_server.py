"""In-process stand-in for a TesseraDB server.

``FakeTesseraServer`` keeps series and points in dictionaries and answers the
wire messages of ``tesseradb.protocol``. It can be reached through
``InMemoryTransport`` or, for end-to-end tests of ``StreamTransport``, over a
real asyncio TCP listener started with ``serve_tcp``.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import re
from typing import Any

from tesseradb import protocol
from tesseradb.coercion import coerce_literal, infer_data_type
from tesseradb.exceptions import ConnectionError
from tesseradb.protocol import StatusCode
from tesseradb.transport import Transport
from tesseradb.types import DataType, SeriesPath

# (written type, series type) pairs the server converts instead of rejecting
WIDENINGS = {
    (DataType.INT32, DataType.INT64),
    (DataType.INT32, DataType.FLOAT),
    (DataType.INT32, DataType.DOUBLE),
    (DataType.INT64, DataType.DOUBLE),
    (DataType.FLOAT, DataType.DOUBLE),
    (DataType.TEXT, DataType.STRING),
    (DataType.STRING, DataType.TEXT),
    (DataType.INT64, DataType.TIMESTAMP),
    (DataType.TIMESTAMP, DataType.INT64),
}

_SELECT = re.compile(r"^\s*select\s+(.+?)\s+from\s+(\S+?)\s*;?\s*$", re.IGNORECASE)
_CREATE_DATABASE = re.compile(r"^\s*create\s+database\s+(\S+?)\s*;?\s*$", re.IGNORECASE)
_INSERT = re.compile(
    r"^\s*insert\s+into\s+(\S+)\s*\(\s*time\s*,(.+?)\)\s*values\s*\((.+)\)\s*;?\s*$",
    re.IGNORECASE,
)


def _ok(**payload: Any) -> dict[str, Any]:
    return {"type": "ok", **payload}


def _error(code: StatusCode, message: str, **payload: Any) -> dict[str, Any]:
    return {"type": "error", "code": int(code), "message": message, **payload}


def _convert(value: Any, written: DataType, series: DataType) -> Any:
    if series in (DataType.FLOAT, DataType.DOUBLE):
        return float(value)
    return value


class FakeTesseraServer:
    """Single-node, in-memory server answering protocol messages."""

    def __init__(self, users: dict[str, str] | None = None) -> None:
        self.users = users if users is not None else {"root": "root"}
        self.sessions: set[int] = set()
        self.databases: set[str] = set()
        self.schemas: dict[str, dict[str, str]] = {}
        self.points: dict[str, dict[int, Any]] = {}
        self.queries: dict[int, list[list[Any]]] = {}
        self.closed_queries: list[int] = []
        self.fetch_sizes: list[int] = []
        self._ids = itertools.count(1)

    # Helpers used by tests

    def series_type(self, path: str) -> DataType | None:
        schema = self.schemas.get(path)
        return DataType(schema["data_type"]) if schema else None

    def values(self, path: str) -> dict[int, Any]:
        return dict(sorted(self.points.get(path, {}).items()))

    # Dispatch

    def handle(self, request: dict[str, Any]) -> dict[str, Any]:
        kind = request.get("type")
        if kind == "open":
            return self._open(request)
        if request.get("session_id") not in self.sessions:
            return _error(StatusCode.EXECUTE_STATEMENT_ERROR, "Unknown session")
        handler = getattr(self, f"_{kind}", None)
        if handler is None:
            return _error(StatusCode.EXECUTE_STATEMENT_ERROR, f"Unsupported request {kind!r}")
        return handler(request)

    def _open(self, request: dict[str, Any]) -> dict[str, Any]:
        if self.users.get(request.get("username")) != request.get("password"):
            return _error(StatusCode.AUTHENTICATION_FAILED, "Authentication failed")
        session_id = next(self._ids)
        self.sessions.add(session_id)
        return _ok(session_id=session_id)

    def _close(self, request: dict[str, Any]) -> dict[str, Any]:
        self.sessions.discard(request["session_id"])
        return _ok()

    # Schema

    def _create_series(self, path: str, data_type: DataType, encoding: str = "PLAIN",
                       compression: str = "LZ4") -> dict[str, str]:
        schema = {"data_type": data_type.value, "encoding": encoding, "compression": compression}
        self.schemas[path] = schema
        self.points.setdefault(path, {})
        return schema

    def _create_timeseries(self, request: dict[str, Any]) -> dict[str, Any]:
        path = request["path"]
        data_type = DataType(request["data_type"])
        existing = self.series_type(path)
        if existing is not None and existing is not data_type:
            return _error(
                StatusCode.PATH_ALREADY_EXISTS,
                f"Timeseries {path} already exists as {existing.value}",
            )
        if existing is None:
            self._create_series(path, data_type, request["encoding"], request["compression"])
        return _ok()

    def _describe_timeseries(self, request: dict[str, Any]) -> dict[str, Any]:
        path = request["path"]
        schema = self.schemas.get(path)
        if schema is None:
            return _ok(exists=False)
        return _ok(exists=True, schema={"name": path.rsplit(".", 1)[-1], **schema})

    def _delete_timeseries(self, request: dict[str, Any]) -> dict[str, Any]:
        missing = [p for p in request["paths"] if p not in self.schemas]
        if missing:
            return _error(StatusCode.PATH_NOT_EXIST, f"Timeseries {missing} do not exist")
        for path in request["paths"]:
            del self.schemas[path]
            self.points.pop(path, None)
        return _ok()

    def _create_database(self, request: dict[str, Any]) -> dict[str, Any]:
        name = request["name"]
        if name in self.databases:
            return _error(StatusCode.PATH_ALREADY_EXISTS, f"Database {name} already exists")
        self.databases.add(name)
        return _ok()

    def _delete_database(self, request: dict[str, Any]) -> dict[str, Any]:
        name = request["name"]
        if name not in self.databases:
            return _error(StatusCode.PATH_NOT_EXIST, f"Database {name} does not exist")
        self.databases.discard(name)
        for path in [p for p in self.schemas if SeriesPath(p).is_under(name)]:
            del self.schemas[path]
            self.points.pop(path, None)
        return _ok()

    # Writes

    def _write_columns(self, device: str, columns: list[tuple[str, DataType, list[Any]]],
                       timestamps: list[int]) -> dict[str, Any]:
        failed = []
        created = []
        for name, written, raw_values in columns:
            path = f"{device}.{name}"
            series = self.series_type(path)
            if series is None:
                schema = self._create_series(path, written)
                created.append({"path": path, "name": name, **schema})
                series = written
            elif series is not written and (written, series) not in WIDENINGS:
                failed.append(name)
                continue
            store = self.points[path]
            for ts, raw in zip(timestamps, raw_values):
                if raw is not None:
                    store[ts] = _convert(protocol.decode_cell(raw, written), written, series)

        if failed:
            return _error(
                StatusCode.DATA_TYPE_MISMATCH,
                f"Data type mismatch for {device}: {failed}",
                failed_measurements=failed,
                created=created,
            )
        return _ok(created=created)

    def _insert_tablet(self, request: dict[str, Any]) -> dict[str, Any]:
        columns = [
            (schema["name"], DataType(schema["data_type"]), values)
            for schema, values in zip(request["schemas"], request["columns"])
        ]
        return self._write_columns(request["device"], columns, request["timestamps"])

    def _insert_record(self, request: dict[str, Any]) -> dict[str, Any]:
        columns = [
            (name, DataType(data_type), [value])
            for name, data_type, value in zip(
                request["measurements"], request["data_types"], request["values"]
            )
        ]
        return self._write_columns(request["device"], columns, [request["timestamp"]])

    def _delete_data(self, request: dict[str, Any]) -> dict[str, Any]:
        for path in request["paths"]:
            store = self.points.get(path, {})
            for ts in [t for t in store if t <= request["end_time"]]:
                del store[ts]
        return _ok()

    # Statements

    def _execute_statement(self, request: dict[str, Any]) -> dict[str, Any]:
        sql = request["sql"]
        match = _CREATE_DATABASE.match(sql)
        if match:
            return self._create_database({"name": match.group(1)})
        match = _INSERT.match(sql)
        if match:
            return self._insert_sql(*match.groups())
        return _error(StatusCode.EXECUTE_STATEMENT_ERROR, f"Cannot execute {sql!r}")

    def _insert_sql(self, device: str, names: str, literals: str) -> dict[str, Any]:
        measurements = [n.strip() for n in names.split(",")]
        values = [v.strip() for v in literals.split(",")]
        timestamp, values = int(values[0]), values[1:]
        columns = []
        for name, literal in zip(measurements, values):
            literal = literal.strip("'\"")
            data_type = self.series_type(f"{device}.{name}") or infer_data_type(literal)
            cell = coerce_literal(literal, data_type)
            columns.append((name, data_type, [protocol.encode_cell(cell, data_type)]))
        return self._write_columns(device, columns, [timestamp])

    # Queries

    def _execute_query(self, request: dict[str, Any]) -> dict[str, Any]:
        match = _SELECT.match(request["sql"])
        if not match:
            return _error(StatusCode.EXECUTE_STATEMENT_ERROR, f"Cannot parse {request['sql']!r}")
        selection, device = match.groups()
        if selection.strip() == "*":
            paths = [p for p in self.schemas if SeriesPath(p).device == device]
        else:
            paths = [f"{device}.{name.strip()}" for name in selection.split(",")]

        types = [self.series_type(p) for p in paths]
        timestamps = sorted({ts for p in paths for ts in self.points.get(p, {})})
        rows = []
        for ts in timestamps:
            cells = [
                protocol.encode_cell(self.points.get(p, {}).get(ts), t) for p, t in zip(paths, types)
            ]
            rows.append([ts, *cells])

        query_id = next(self._ids)
        fetch_size = request["fetch_size"]
        self.fetch_sizes.append(fetch_size)
        first, rest = rows[:fetch_size], rows[fetch_size:]
        self.queries[query_id] = rest
        return _ok(
            query_id=query_id,
            columns=["Time", *paths],
            data_types=[t.value if t else None for t in types],
            rows=first,
            has_more=bool(rest),
        )

    def _fetch(self, request: dict[str, Any]) -> dict[str, Any]:
        rest = self.queries.get(request["query_id"])
        if rest is None:
            return _error(StatusCode.QUERY_NOT_FOUND, f"No query {request['query_id']}")
        size = request["fetch_size"]
        self.fetch_sizes.append(size)
        batch, self.queries[request["query_id"]] = rest[:size], rest[size:]
        return _ok(rows=batch, has_more=bool(rest[size:]))

    def _close_query(self, request: dict[str, Any]) -> dict[str, Any]:
        self.queries.pop(request["query_id"], None)
        self.closed_queries.append(request["query_id"])
        return _ok()


class InMemoryTransport(Transport):
    """Delivers requests to a FakeTesseraServer through a JSON round trip."""

    def __init__(self, server: FakeTesseraServer) -> None:
        self.server = server
        self.connects: list[tuple[str, int]] = []
        self.requests: list[dict[str, Any]] = []
        self.disconnects = 0
        self.fail_connect = False
        self.fail_send = False

    async def connect(self, endpoint: tuple[str, int]) -> Any:
        if self.fail_connect:
            raise ConnectionError(f"Failed to connect to {endpoint[0]}:{endpoint[1]}")
        self.connects.append(endpoint)
        return object()

    async def disconnect(self, handle: Any) -> None:
        self.disconnects += 1

    async def send(self, handle: Any, request: dict[str, Any]) -> dict[str, Any]:
        if self.fail_send:
            raise ConnectionError("Connection reset by peer")
        wire = json.loads(json.dumps(request))
        self.requests.append(wire)
        return json.loads(json.dumps(self.server.handle(wire)))

    def request_types(self) -> list[str]:
        return [r["type"] for r in self.requests]


async def serve_tcp(server: FakeTesseraServer, host: str = "127.0.0.1") -> asyncio.AbstractServer:
    """Listen on an ephemeral port, answering one JSON line per request."""

    async def handle_client(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            while True:
                line = await reader.readline()
                if not line:
                    break
                reply = server.handle(json.loads(line.decode()))
                writer.write(json.dumps(reply).encode() + b"\n")
                await writer.drain()
        finally:
            writer.close()

    return await asyncio.start_server(handle_client, host, 0)
