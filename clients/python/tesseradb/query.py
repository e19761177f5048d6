"""Query result handling"""

from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Sequence

from . import protocol
from .exceptions import ConnectionError, NotOpenError, ResultSetClosedError
from .log import get_logger
from .types import DataType, RowRecord

logger = get_logger(__name__)

Request = Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]


class SessionDataSet:
    """
    Cursor over the rows of one query.

    Rows arrive in batches of at most ``fetch_size``. The next batch is
    requested only when the current one has been consumed, so at most one
    batch is held in memory. The cursor is forward-only and cannot be
    restarted. Closing it releases the server-side query handle.

    Example:
        ```python
        async with await session.execute_query_statement("select * from root.sg1.d1") as data_set:
            print(data_set.column_names)   # ["Time", "root.sg1.d1.s1", ...]
            data_set.set_fetch_size(1024)
            while await data_set.has_next():
                record = await data_set.next()
                print(record.timestamp, record.fields)

        # or
        async with await session.execute_query_statement(sql) as data_set:
            async for record in data_set:
                ...
        ```
    """

    def __init__(
        self,
        request: Request,
        query_id: Any,
        column_names: Sequence[str],
        column_types: Sequence[Optional[DataType]],
        rows: Sequence[Sequence[Any]],
        has_more: bool,
        fetch_size: int
    ):
        self._request = request
        self._query_id = query_id
        self.column_names: List[str] = list(column_names)
        self.column_types: List[Optional[DataType]] = list(column_types)
        self._buffer: Deque[Sequence[Any]] = deque(rows)
        self._has_more = has_more
        self._fetch_size = fetch_size
        self._rows_read = 0
        self._released = False
        self._closed = False

    @classmethod
    def from_reply(cls, request: Request, reply: Dict[str, Any], fetch_size: int) -> "SessionDataSet":
        return cls(
            request,
            reply.get("query_id"),
            reply.get("columns", []),
            protocol.column_types_from_reply(reply),
            reply.get("rows", []),
            bool(reply.get("has_more")),
            fetch_size,
        )

    @property
    def fetch_size(self) -> int:
        return self._fetch_size

    def set_fetch_size(self, fetch_size: int) -> None:
        """Set the batch size used by subsequent fetches"""
        if fetch_size <= 0:
            raise ValueError("fetch_size must be positive")
        self._fetch_size = fetch_size

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def rows_read(self) -> int:
        return self._rows_read

    def get_column_names(self) -> List[str]:
        """All column names, the leading time column included"""
        return list(self.column_names)

    async def has_next(self) -> bool:
        if self._closed:
            raise ResultSetClosedError("Result set is closed")
        while not self._buffer and self._has_more:
            await self._fetch()
        if not self._buffer and not self._has_more:
            await self._release()
        return bool(self._buffer)

    async def next(self) -> RowRecord:
        if not await self.has_next():
            raise StopAsyncIteration
        self._rows_read += 1
        return protocol.decode_row(self._buffer.popleft(), self.column_types)

    async def to_list(self) -> List[RowRecord]:
        """Drain the remaining rows"""
        return [record async for record in self]

    async def _fetch(self) -> None:
        reply = await self._request(protocol.fetch_request(self._query_id, self._fetch_size))
        rows = reply.get("rows", [])
        self._buffer.extend(rows)
        self._has_more = bool(reply.get("has_more")) and bool(rows)
        logger.debug("fetch_batch", query_id=self._query_id, rows=len(rows), has_more=self._has_more)

    async def _release(self) -> None:
        if self._released:
            return
        self._released = True
        await self._request(protocol.close_query_request(self._query_id))
        logger.debug("query_closed", query_id=self._query_id, rows_read=self._rows_read)

    async def close(self) -> None:
        """Release the server-side handle. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._buffer.clear()
        try:
            await self._release()
        except (NotOpenError, ConnectionError) as e:
            # The server drops query handles together with their session
            logger.debug("query_release_skipped", query_id=self._query_id, error=str(e))

    def __aiter__(self) -> "SessionDataSet":
        return self

    async def __anext__(self) -> RowRecord:
        return await self.next()

    async def __aenter__(self) -> "SessionDataSet":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else f"{self._rows_read} rows read"
        return f"SessionDataSet({len(self.column_names)} columns, {state})"
