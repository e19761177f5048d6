"""
Request/response channels between a Session and the server.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

from .exceptions import ConnectionError, TimeoutError
from .log import get_logger

logger = get_logger(__name__)

Endpoint = Tuple[str, int]


class Transport(ABC):
    """
    A request/response channel.

    ``connect`` returns an opaque handle that is passed back to ``send`` and
    ``disconnect``. Every failure of the channel itself surfaces as
    ``ConnectionError``; server-side rejections come back as ordinary
    replies and are not the transport's concern.
    """

    @abstractmethod
    async def connect(self, endpoint: Endpoint) -> Any:
        ...

    @abstractmethod
    async def disconnect(self, handle: Any) -> None:
        ...

    @abstractmethod
    async def send(self, handle: Any, request: Dict[str, Any]) -> Dict[str, Any]:
        ...


class StreamConnection:
    """A single connection to a TesseraDB server."""

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self, timeout: float = 10.0) -> None:
        """Establish connection to the server."""
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=timeout
            )
            self._connected = True
        except asyncio.TimeoutError:
            raise TimeoutError(f"Connection timeout after {timeout}s") from None
        except OSError as e:
            raise ConnectionError(f"Failed to connect to {self.host}:{self.port}: {e}") from e

    async def request(self, message: Dict[str, Any], timeout: Optional[float] = None) -> Dict[str, Any]:
        """Send one message and wait for its reply."""
        if not self._connected:
            raise ConnectionError("Not connected to server")

        try:
            self._writer.write(json.dumps(message).encode() + b"\n")
            await self._writer.drain()

            response_data = await asyncio.wait_for(self._reader.readline(), timeout=timeout)
            if not response_data:
                self._connected = False
                raise ConnectionError(f"Server {self.host}:{self.port} closed the connection")
            response = json.loads(response_data.decode())
        except asyncio.TimeoutError:
            # A late reply would answer the next request, so the stream is unusable
            await self.close()
            raise TimeoutError(f"No reply to {message.get('type')!r} after {timeout}s") from None
        except json.JSONDecodeError as e:
            raise ConnectionError(f"Invalid response from server: {e}") from e
        except OSError as e:
            self._connected = False
            raise ConnectionError(f"Request to {self.host}:{self.port} failed: {e}") from e

        if not isinstance(response, dict):
            raise ConnectionError(f"Invalid response from server: {response!r}")
        return response

    async def close(self) -> None:
        """Close the connection."""
        writer, self._writer = self._writer, None
        self._connected = False
        if writer:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError as e:
                logger.debug("connection_close_failed", host=self.host, port=self.port, error=str(e))


class StreamTransport(Transport):
    """
    Newline-delimited JSON over asyncio streams.

    Example:
        ```python
        transport = StreamTransport(connect_timeout=5.0, request_timeout=30.0)
        session = Session(SessionConfig(host="db.local"), transport=transport)
        ```
    """

    def __init__(self, connect_timeout: float = 10.0, request_timeout: Optional[float] = None):
        self.connect_timeout = connect_timeout
        self.request_timeout = request_timeout

    async def connect(self, endpoint: Endpoint) -> StreamConnection:
        host, port = endpoint
        conn = StreamConnection(host, port)
        await conn.connect(self.connect_timeout)
        logger.debug("transport_connected", host=host, port=port)
        return conn

    async def disconnect(self, handle: StreamConnection) -> None:
        await handle.close()

    async def send(self, handle: StreamConnection, request: Dict[str, Any]) -> Dict[str, Any]:
        return await handle.request(request, timeout=self.request_timeout)
