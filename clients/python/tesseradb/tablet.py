"""Columnar write batches"""

from typing import Any, Dict, List, Optional, Sequence, Union

from .coercion import coerce_value
from .exceptions import CapacityExceededError
from .types import DataType, MeasurementSchema, SeriesPath


DEFAULT_MAX_ROW_NUMBER = 1024

Column = Union[int, str]


class Tablet:
    """
    A fixed-capacity batch of rows for one device, stored column by column.

    Rows are addressed by index and columns by position or measurement name;
    both forms reach the same slot. Values are coerced to the column's
    declared type as they are added.

    Example:
        ```python
        schemas = [
            MeasurementSchema("s1", DataType.INT64),
            MeasurementSchema("s2", DataType.DOUBLE),
        ]
        tablet = Tablet("root.sg1.d1", schemas, max_row_number=100)

        for ts in range(10):
            row = tablet.row_size
            tablet.add_timestamp(row, ts)
            tablet.add_value(row, "s1", ts)
            tablet.add_value(row, 1, ts * 0.5)

        await session.insert_tablet(tablet)
        tablet.reset()
        ```
    """

    def __init__(
        self,
        device_id: str,
        schemas: Sequence[MeasurementSchema],
        max_row_number: int = DEFAULT_MAX_ROW_NUMBER
    ):
        if max_row_number <= 0:
            raise ValueError("max_row_number must be positive")
        self.device_id = SeriesPath(device_id)
        self.schemas: List[MeasurementSchema] = list(schemas)
        self.max_row_number = max_row_number

        self._index: Dict[str, int] = {}
        for position, schema in enumerate(self.schemas):
            if schema.name in self._index:
                raise ValueError(f"Duplicate measurement {schema.name!r} in tablet")
            self._index[schema.name] = position

        self.timestamps: List[Optional[int]] = [None] * max_row_number
        self.values: List[List[Any]] = [[None] * max_row_number for _ in self.schemas]
        self._row_size = 0

    @property
    def row_size(self) -> int:
        """Number of written rows; also the next free row index"""
        return self._row_size

    @property
    def is_full(self) -> bool:
        return self._row_size >= self.max_row_number

    @property
    def measurements(self) -> List[str]:
        return [schema.name for schema in self.schemas]

    @property
    def data_types(self) -> List[DataType]:
        return [schema.data_type for schema in self.schemas]

    def column_index(self, column: Column) -> int:
        """Resolve a column position or measurement name to a position"""
        if isinstance(column, str):
            if column not in self._index:
                raise KeyError(f"No measurement {column!r} in tablet for {self.device_id}")
            return self._index[column]
        if isinstance(column, bool) or not isinstance(column, int):
            raise TypeError(f"Column must be an index or a name, got {column!r}")
        if not 0 <= column < len(self.schemas):
            raise IndexError(f"Column index {column} out of range for {len(self.schemas)} columns")
        return column

    def _check_row(self, row_index: int) -> None:
        if not 0 <= row_index < self.max_row_number:
            raise CapacityExceededError(
                f"Row index {row_index} outside tablet capacity {self.max_row_number}"
            )

    def add_timestamp(self, row_index: int, timestamp: int) -> None:
        """Set the timestamp of a row, marking it written"""
        self._check_row(row_index)
        self.timestamps[row_index] = coerce_value(timestamp, DataType.TIMESTAMP)
        self._row_size = max(self._row_size, row_index + 1)

    def add_value(self, row_index: int, column: Column, value: Any) -> None:
        """Store a value, coerced to the column's declared type"""
        self._check_row(row_index)
        position = self.column_index(column)
        data_type = self.schemas[position].data_type
        self.values[position][row_index] = coerce_value(value, data_type)

    def get_value(self, row_index: int, column: Column) -> Any:
        self._check_row(row_index)
        return self.values[self.column_index(column)][row_index]

    def reset(self) -> None:
        """Forget all rows; schemas and capacity are kept"""
        self._row_size = 0
        self.timestamps[:] = [None] * self.max_row_number
        for column in self.values:
            column[:] = [None] * self.max_row_number

    def is_sorted(self) -> bool:
        ts = self.timestamps[:self._row_size]
        return all(a <= b for a, b in zip(ts, ts[1:]))

    def __len__(self) -> int:
        return self._row_size

    def __repr__(self) -> str:
        return (
            f"Tablet({self.device_id}, {len(self.schemas)} columns, "
            f"{self._row_size}/{self.max_row_number} rows)"
        )
