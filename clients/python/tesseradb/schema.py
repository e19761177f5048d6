"""Client-side cache of series schemas"""

from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

from . import protocol
from .exceptions import SchemaConflictError
from .log import get_logger
from .types import Compression, DataType, Encoding, MeasurementSchema, SeriesPath

logger = get_logger(__name__)

Request = Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]


class SchemaRegistry:
    """
    Maps full series paths to their schema.

    The cache is advisory: the server owns the schema and may have changed
    it since an entry was cached. Writes are validated by the server
    regardless of what the registry holds.
    """

    def __init__(self, request: Request):
        self._request = request
        self._schemas: Dict[SeriesPath, MeasurementSchema] = {}

    def get(self, path: str) -> Optional[MeasurementSchema]:
        return self._schemas.get(SeriesPath(path))

    def remember(self, path: str, schema: MeasurementSchema) -> None:
        self._schemas[SeriesPath(path)] = schema

    def forget(self, prefix: str) -> int:
        """Drop ``prefix`` and every cached path under it; returns the count"""
        stale = [path for path in self._schemas if path.is_under(prefix)]
        for path in stale:
            del self._schemas[path]
        return len(stale)

    def clear(self) -> None:
        self._schemas.clear()

    def __contains__(self, path: str) -> bool:
        return SeriesPath(path) in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)

    async def declare(
        self,
        path: str,
        data_type: DataType,
        encoding: Optional[Encoding] = None,
        compression: Optional[Compression] = None
    ) -> MeasurementSchema:
        """Register a series on the server and cache it.

        Raises SchemaConflictError, without a round trip, if the cache already
        holds ``path`` with another data type.
        """
        path = SeriesPath(path)
        schema = MeasurementSchema(path.measurement, data_type, encoding, compression)
        cached = self._schemas.get(path)
        if cached is not None and cached.data_type is not schema.data_type:
            raise SchemaConflictError(
                f"Series {path} already exists as {cached.data_type.value}, "
                f"cannot declare it as {schema.data_type.value}",
                code=protocol.StatusCode.PATH_ALREADY_EXISTS,
            )

        await self._request(protocol.create_timeseries_request(path, schema))
        self._schemas[path] = schema
        logger.debug("timeseries_declared", path=path, data_type=schema.data_type.value)
        return schema

    async def resolve(self, path: str) -> Optional[MeasurementSchema]:
        """Cached schema of ``path``, asking the server on a miss"""
        path = SeriesPath(path)
        cached = self._schemas.get(path)
        if cached is not None:
            return cached

        reply = await self._request(protocol.describe_timeseries_request(path))
        if not reply.get("exists"):
            return None
        schema = protocol.schema_from_reply(path, reply)
        self._schemas[path] = schema
        return schema

    async def exists(self, path: str) -> bool:
        return await self.resolve(path) is not None

    async def resolve_many(self, paths: Iterable[str]) -> Dict[SeriesPath, Optional[MeasurementSchema]]:
        return {SeriesPath(p): await self.resolve(p) for p in paths}

    def mismatches(self, device_id: str, schemas: Iterable[MeasurementSchema]) -> Dict[str, DataType]:
        """Columns whose cached series type differs from the given schema.

        Maps measurement name to the cached type. Unknown series are skipped.
        """
        device = SeriesPath(device_id)
        found = {}
        for schema in schemas:
            cached = self._schemas.get(device.child(schema.name))
            if cached is not None and cached.data_type is not schema.data_type:
                found[schema.name] = cached.data_type
        return found
