"""Batch and single-row writes"""

from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Sequence

from . import protocol
from .coercion import coerce_literal, coerce_value, infer_data_type
from .exceptions import StatementExecutionError
from .log import get_logger
from .schema import SchemaRegistry
from .tablet import Tablet
from .types import DataType, SeriesPath

logger = get_logger(__name__)

Request = Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]


class WriteRequestExecutor:
    """
    Turns tablets and records into write requests and interprets the replies.

    The server checks each column against the registered series type. Columns
    that do not fit are dropped while the rest commit, and the reply reports
    the dropped ones. Any dropped column makes the call raise
    ``StatementExecutionError`` with ``failed_measurements`` set.
    """

    def __init__(self, request: Request, registry: SchemaRegistry):
        self._request = request
        self._registry = registry

    async def insert_tablet(self, tablet: Tablet, sorted: bool = False) -> None:
        if not tablet.schemas or tablet.row_size == 0:
            logger.debug("empty_tablet_skipped", device=tablet.device_id)
            return

        suspect = self._registry.mismatches(tablet.device_id, tablet.schemas)
        if suspect:
            logger.warning(
                "schema_mismatch_suspected",
                device=tablet.device_id,
                columns={name: dt.value for name, dt in suspect.items()},
            )

        request = protocol.tablet_request(tablet, sort=not sorted)
        await self._send_write(request, tablet.device_id)
        logger.debug("tablet_inserted", device=tablet.device_id, rows=tablet.row_size)

    async def insert_tablets(self, tablets: Iterable[Tablet], sorted: bool = False) -> None:
        for tablet in tablets:
            await self.insert_tablet(tablet, sorted=sorted)

    async def insert_record(
        self,
        device_id: str,
        timestamp: int,
        measurements: Sequence[str],
        data_types: Sequence[DataType],
        values: Sequence[Any]
    ) -> None:
        """Write one row of native values with explicit types"""
        _check_lengths(measurements, values, data_types)
        data_types = [DataType(dt) for dt in data_types]
        cells = [coerce_value(value, dt) for value, dt in zip(values, data_types)]
        await self._write_row(device_id, timestamp, measurements, data_types, cells)

    async def insert_str_record(
        self,
        device_id: str,
        timestamp: int,
        measurements: Sequence[str],
        values: Sequence[Optional[str]]
    ) -> None:
        """Write one row of textual literals.

        Each literal is parsed as the type of its series, looked up in the
        registry (and on the server on a miss). Literals for unknown series
        get an inferred type.
        """
        _check_lengths(measurements, values)
        device = SeriesPath(device_id)
        data_types = []
        for name, literal in zip(measurements, values):
            schema = await self._registry.resolve(device.child(name))
            if schema is not None:
                data_types.append(schema.data_type)
            elif literal is not None:
                data_types.append(infer_data_type(literal))
            else:
                data_types.append(DataType.TEXT)
        cells = [coerce_literal(literal, dt) for literal, dt in zip(values, data_types)]
        await self._write_row(device, timestamp, measurements, data_types, cells)

    async def _write_row(
        self,
        device_id: str,
        timestamp: int,
        measurements: Sequence[str],
        data_types: Sequence[DataType],
        cells: Sequence[Any]
    ) -> None:
        # Null values are not sent at all
        kept = [i for i, cell in enumerate(cells) if cell is not None]
        if not kept:
            logger.debug("empty_record_skipped", device=device_id, timestamp=timestamp)
            return
        timestamp = coerce_value(timestamp, DataType.TIMESTAMP)
        request = protocol.record_request(
            device_id,
            timestamp,
            [measurements[i] for i in kept],
            [data_types[i] for i in kept],
            [cells[i] for i in kept],
        )
        await self._send_write(request, device_id)

    async def _send_write(self, request: Dict[str, Any], device_id: str) -> None:
        try:
            reply = await self._request(request)
        except StatementExecutionError as e:
            # Committed columns may still have created series
            self._remember_created(e.created)
            if e.failed_measurements:
                logger.warning(
                    "partial_write",
                    device=device_id,
                    failed_measurements=e.failed_measurements,
                    code=e.code,
                )
            raise
        self._remember_created(reply.get("created", []))

    def _remember_created(self, created: Iterable[Dict[str, Any]]) -> None:
        for entry in created:
            path = SeriesPath(entry["path"])
            self._registry.remember(path, protocol.schema_from_reply(path, {"schema": entry}))


def _check_lengths(measurements: Sequence[str], values: Sequence[Any], data_types: Optional[Sequence[Any]] = None) -> None:
    if len(measurements) != len(values):
        raise ValueError(
            f"{len(measurements)} measurements but {len(values)} values"
        )
    if data_types is not None and len(data_types) != len(measurements):
        raise ValueError(
            f"{len(measurements)} measurements but {len(data_types)} data types"
        )
