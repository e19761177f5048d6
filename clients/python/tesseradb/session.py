"""
TesseraDB Session Implementation
"""

from typing import Any, Dict, Iterable, Optional, Sequence, Union

from . import protocol
from .config import SessionConfig
from .exceptions import ConnectionError, StatementExecutionError
from .log import get_logger
from .query import SessionDataSet
from .schema import SchemaRegistry
from .state import ConnectionStateMachine, SessionState, requires_open
from .tablet import Tablet
from .transport import StreamTransport, Transport
from .types import Compression, DataType, Encoding, SeriesPath
from .writer import WriteRequestExecutor

logger = get_logger(__name__)

Paths = Union[str, Iterable[str]]


def _as_path_list(paths: Paths) -> list:
    if isinstance(paths, str):
        return [SeriesPath(paths)]
    return [SeriesPath(p) for p in paths]


class Session:
    """
    One logical connection to a TesseraDB server.

    A session starts unopened, is opened once, and is closed once for good.
    Every operation other than ``open`` requires an open session and raises
    ``NotOpenError`` otherwise, before anything is sent.

    Example:
        ```python
        session = Session.builder().host("127.0.0.1").port(6667).build()
        await session.open()

        await session.create_timeseries("root.sg1.d1.s1", DataType.INT64)
        await session.insert_record("root.sg1.d1", 1, ["s1"], [DataType.INT64], [42])

        async with await session.execute_query_statement("select * from root.sg1.d1") as data_set:
            async for record in data_set:
                print(record)

        await session.close()
        ```

    Sessions are also async context managers that open on entry and close
    on exit:

        ```python
        async with Session(SessionConfig(host="db.local")) as session:
            ...
        ```
    """

    def __init__(self, config: Optional[SessionConfig] = None, transport: Optional[Transport] = None):
        self.config = config or SessionConfig()
        self._transport = transport or StreamTransport(
            connect_timeout=self.config.connect_timeout,
            request_timeout=self.config.request_timeout,
        )
        self._state = ConnectionStateMachine()
        self._handle: Any = None
        self._session_id: Any = None
        self._fetch_size = self.config.fetch_size
        self.registry = SchemaRegistry(self._request)
        self._writer = WriteRequestExecutor(self._request, self.registry)

    @classmethod
    def builder(cls) -> "SessionBuilder":
        return SessionBuilder()

    @property
    def state(self) -> SessionState:
        return self._state.state

    @property
    def is_open(self) -> bool:
        return self._state.is_open

    @property
    def session_id(self) -> Any:
        return self._session_id

    @property
    def fetch_size(self) -> int:
        return self._fetch_size

    def set_fetch_size(self, fetch_size: int) -> None:
        """Default batch size for result sets created from now on"""
        if fetch_size <= 0:
            raise ValueError("fetch_size must be positive")
        self._fetch_size = fetch_size

    # Lifecycle

    async def open(self) -> None:
        """
        Connect and authenticate.

        Raises SessionStateError if the session is already open or has been
        closed; a closed session cannot be reopened.
        """
        self._state.require_openable()
        handle = await self._transport.connect(self.config.endpoint)
        try:
            reply = await self._transport.send(
                handle, protocol.open_request(self.config.username, self.config.password)
            )
            protocol.raise_for_status(reply)
        except BaseException:
            await self._transport.disconnect(handle)
            raise

        self._handle = handle
        self._session_id = reply.get("session_id")
        self._state.mark_open()
        logger.info(
            "session_opened",
            host=self.config.host,
            port=self.config.port,
            session_id=self._session_id,
        )

    async def close(self) -> None:
        """
        Close the session. Closing twice is a no-op; closing a session that
        was never opened raises NotOpenError.
        """
        if self._state.is_closed:
            return
        self._state.require_open()

        try:
            await self._request(protocol.close_request())
        except (ConnectionError, StatementExecutionError) as e:
            logger.warning("close_request_failed", session_id=self._session_id, error=str(e))
        finally:
            handle, self._handle = self._handle, None
            self._state.mark_closed()
            self.registry.clear()
            try:
                await self._transport.disconnect(handle)
            except ConnectionError as e:
                logger.warning("disconnect_failed", session_id=self._session_id, error=str(e))
        logger.info("session_closed", session_id=self._session_id)

    async def __aenter__(self) -> "Session":
        if not self._state.is_open:
            await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._state.is_open:
            await self.close()

    async def _request(self, request: Dict[str, Any]) -> Dict[str, Any]:
        self._state.require_open()
        message = dict(request, session_id=self._session_id)
        reply = await self._transport.send(self._handle, message)
        return protocol.raise_for_status(reply)

    # Schema

    @requires_open
    async def create_timeseries(
        self,
        path: str,
        data_type: DataType,
        encoding: Optional[Encoding] = None,
        compression: Optional[Compression] = None
    ) -> None:
        await self.registry.declare(path, data_type, encoding, compression)

    @requires_open
    async def check_timeseries_exists(self, path: str) -> bool:
        return await self.registry.exists(path)

    @requires_open
    async def delete_timeseries(self, paths: Paths) -> None:
        path_list = _as_path_list(paths)
        await self._request(protocol.delete_timeseries_request(path_list))
        for path in path_list:
            self.registry.forget(path)

    @requires_open
    async def create_database(self, name: str) -> None:
        await self._request(protocol.create_database_request(str(SeriesPath(name))))

    @requires_open
    async def delete_database(self, name: str) -> None:
        await self._request(protocol.delete_database_request(str(SeriesPath(name))))
        self.registry.forget(name)

    # Writes

    @requires_open
    async def insert_tablet(self, tablet: Tablet, sorted: bool = False) -> None:
        """
        Write the rows of a tablet.

        Raises StatementExecutionError if the server dropped any column; the
        columns not listed in ``failed_measurements`` were still written.
        """
        await self._writer.insert_tablet(tablet, sorted=sorted)

    @requires_open
    async def insert_tablets(self, tablets: Iterable[Tablet], sorted: bool = False) -> None:
        await self._writer.insert_tablets(tablets, sorted=sorted)

    @requires_open
    async def insert_record(
        self,
        device_id: str,
        timestamp: int,
        measurements: Sequence[str],
        data_types: Sequence[DataType],
        values: Sequence[Any]
    ) -> None:
        await self._writer.insert_record(device_id, timestamp, measurements, data_types, values)

    @requires_open
    async def insert_str_record(
        self,
        device_id: str,
        timestamp: int,
        measurements: Sequence[str],
        values: Sequence[Optional[str]]
    ) -> None:
        await self._writer.insert_str_record(device_id, timestamp, measurements, values)

    @requires_open
    async def delete_data(self, paths: Paths, end_time: int) -> None:
        """Delete points with ``time <= end_time`` from the given series"""
        await self._request(protocol.delete_data_request(_as_path_list(paths), end_time))

    # Statements

    @requires_open
    async def execute_query_statement(self, sql: str, timeout_ms: Optional[int] = None) -> SessionDataSet:
        reply = await self._request(protocol.query_request(sql, self._fetch_size, timeout_ms))
        data_set = SessionDataSet.from_reply(self._request, reply, self._fetch_size)
        logger.debug(
            "query_executed",
            sql=sql,
            query_id=reply.get("query_id"),
            columns=len(data_set.column_names),
        )
        return data_set

    @requires_open
    async def execute_non_query_statement(self, sql: str) -> None:
        await self._request(protocol.statement_request(sql))

    def __repr__(self) -> str:
        return f"Session({self.config.host}:{self.config.port}, {self.state.value})"


class SessionBuilder:
    """
    Fluent construction of an unopened Session.

    Example:
        ```python
        session = (Session.builder()
            .host("10.0.0.5")
            .port(6667)
            .username("reader")
            .password("secret")
            .fetch_size(2048)
            .build())
        ```
    """

    def __init__(self):
        self._settings: Dict[str, Any] = {}
        self._transport: Optional[Transport] = None

    def host(self, host: str) -> "SessionBuilder":
        self._settings["host"] = host
        return self

    def port(self, port: int) -> "SessionBuilder":
        self._settings["port"] = port
        return self

    def username(self, username: str) -> "SessionBuilder":
        self._settings["username"] = username
        return self

    def password(self, password: str) -> "SessionBuilder":
        self._settings["password"] = password
        return self

    def fetch_size(self, fetch_size: int) -> "SessionBuilder":
        self._settings["fetch_size"] = fetch_size
        return self

    def connect_timeout(self, seconds: float) -> "SessionBuilder":
        self._settings["connect_timeout"] = seconds
        return self

    def request_timeout(self, seconds: float) -> "SessionBuilder":
        self._settings["request_timeout"] = seconds
        return self

    def transport(self, transport: Transport) -> "SessionBuilder":
        self._transport = transport
        return self

    def build(self) -> Session:
        return Session(SessionConfig(**self._settings), transport=self._transport)

    def __repr__(self) -> str:
        return f"SessionBuilder({self._settings})"
