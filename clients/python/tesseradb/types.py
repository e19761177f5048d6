"""Type definitions for TesseraDB"""

import datetime
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple, Union

from .exceptions import FieldTypeError


class DataType(Enum):
    """Column data types supported by TesseraDB"""
    BOOLEAN = "BOOLEAN"
    INT32 = "INT32"
    INT64 = "INT64"
    FLOAT = "FLOAT"
    DOUBLE = "DOUBLE"
    TEXT = "TEXT"
    TIMESTAMP = "TIMESTAMP"
    DATE = "DATE"
    BLOB = "BLOB"
    STRING = "STRING"


class Encoding(Enum):
    """Series encodings"""
    PLAIN = "PLAIN"
    DICTIONARY = "DICTIONARY"
    RLE = "RLE"
    TS_2DIFF = "TS_2DIFF"
    GORILLA = "GORILLA"
    ZIGZAG = "ZIGZAG"
    CHIMP = "CHIMP"
    SPRINTZ = "SPRINTZ"
    RLBE = "RLBE"


class Compression(Enum):
    """Series compression codecs"""
    UNCOMPRESSED = "UNCOMPRESSED"
    SNAPPY = "SNAPPY"
    GZIP = "GZIP"
    LZ4 = "LZ4"
    ZSTD = "ZSTD"
    LZMA2 = "LZMA2"


_DEFAULT_ENCODINGS = {
    DataType.BOOLEAN: Encoding.RLE,
    DataType.INT32: Encoding.RLE,
    DataType.INT64: Encoding.RLE,
    DataType.TIMESTAMP: Encoding.RLE,
    DataType.DATE: Encoding.RLE,
    DataType.FLOAT: Encoding.GORILLA,
    DataType.DOUBLE: Encoding.GORILLA,
}

DEFAULT_COMPRESSION = Compression.LZ4


def default_encoding(data_type: DataType) -> Encoding:
    """Encoding used when a schema does not name one"""
    return _DEFAULT_ENCODINGS.get(data_type, Encoding.PLAIN)


class Binary:
    """Immutable byte string stored in BLOB, TEXT and STRING columns"""

    __slots__ = ("_values",)

    def __init__(self, values: Union[bytes, bytearray, memoryview, str]):
        if isinstance(values, str):
            values = values.encode("utf-8")
        self._values = bytes(values)

    @property
    def values(self) -> bytes:
        return self._values

    def hex(self) -> str:
        return self._values.hex()

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Binary):
            return self._values == other._values
        if isinstance(other, (bytes, bytearray)):
            return self._values == bytes(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._values)

    def __str__(self) -> str:
        return self._values.decode("utf-8", errors="replace")

    def __repr__(self) -> str:
        return f"Binary({self._values!r})"


class SeriesPath(str):
    """Dot-delimited series identifier, e.g. ``root.sg1.d1.s1``.

    A ``str`` subclass, so equality and hashing are those of the text.
    """

    def __new__(cls, value: str) -> "SeriesPath":
        if isinstance(value, SeriesPath):
            return value
        text = str(value)
        if not text or any(node == "" for node in text.split(".")):
            raise ValueError(f"Invalid series path: {text!r}")
        return super().__new__(cls, text)

    @property
    def nodes(self) -> List[str]:
        return self.split(".")

    @property
    def device(self) -> "SeriesPath":
        """Everything but the last node"""
        nodes = self.nodes
        if len(nodes) < 2:
            raise ValueError(f"Series path {self!r} has no device")
        return SeriesPath(".".join(nodes[:-1]))

    @property
    def measurement(self) -> str:
        return self.nodes[-1]

    def child(self, name: str) -> "SeriesPath":
        return SeriesPath(f"{self}.{name}")

    def is_under(self, prefix: str) -> bool:
        """True if this path equals ``prefix`` or lives below it"""
        return self == prefix or self.startswith(prefix + ".")

    def __repr__(self) -> str:
        return f"SeriesPath({str.__repr__(self)})"


class MeasurementSchema:
    """Name, data type, encoding and compression of one column"""

    def __init__(
        self,
        name: str,
        data_type: DataType,
        encoding: Optional[Encoding] = None,
        compression: Optional[Compression] = None
    ):
        if not name or "." in name:
            raise ValueError(f"Invalid measurement name: {name!r}")
        self.name = name
        self.data_type = DataType(data_type)
        self.encoding = Encoding(encoding) if encoding else default_encoding(self.data_type)
        self.compression = Compression(compression) if compression else DEFAULT_COMPRESSION

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "data_type": self.data_type.value,
            "encoding": self.encoding.value,
            "compression": self.compression.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MeasurementSchema":
        return cls(
            data["name"],
            DataType(data["data_type"]),
            Encoding(data["encoding"]) if data.get("encoding") else None,
            Compression(data["compression"]) if data.get("compression") else None,
        )

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, MeasurementSchema):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self) -> int:
        return hash(tuple(self.to_dict().items()))

    def __repr__(self) -> str:
        return (
            f"MeasurementSchema({self.name}: {self.data_type.value} "
            f"{self.encoding.value} {self.compression.value})"
        )


class Field:
    """One cell of a result row.

    A null field has neither a value nor a data type. Each typed accessor
    only answers for its own data types and raises ``FieldTypeError`` for
    any other, including null.
    """

    __slots__ = ("_data_type", "_value")

    def __init__(self, data_type: Optional[DataType], value: Any):
        if (data_type is None) != (value is None):
            raise ValueError("A field is null only when both type and value are None")
        self._data_type = data_type
        self._value = value

    @classmethod
    def null(cls) -> "Field":
        return cls(None, None)

    @property
    def data_type(self) -> Optional[DataType]:
        return self._data_type

    @property
    def is_null(self) -> bool:
        return self._data_type is None

    @property
    def value(self) -> Any:
        """Raw value regardless of type, ``None`` for null"""
        return self._value

    def _expect(self, *types: DataType) -> Any:
        if self._data_type not in types:
            wanted = "/".join(t.value for t in types)
            actual = self._data_type.value if self._data_type else "null"
            raise FieldTypeError(f"Field of type {actual} read as {wanted}")
        return self._value

    @property
    def bool_v(self) -> bool:
        return self._expect(DataType.BOOLEAN)

    @property
    def int_v(self) -> int:
        return self._expect(DataType.INT32)

    @property
    def long_v(self) -> int:
        return self._expect(DataType.INT64, DataType.TIMESTAMP)

    @property
    def float_v(self) -> float:
        return self._expect(DataType.FLOAT)

    @property
    def double_v(self) -> float:
        return self._expect(DataType.DOUBLE)

    @property
    def date_v(self) -> datetime.date:
        return self._expect(DataType.DATE)

    @property
    def string_v(self) -> str:
        return self._expect(DataType.TEXT, DataType.STRING)

    @property
    def binary_v(self) -> Binary:
        value = self._expect(DataType.BLOB, DataType.TEXT, DataType.STRING)
        return value if isinstance(value, Binary) else Binary(value)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Field):
            return NotImplemented
        return self._data_type == other._data_type and self._value == other._value

    def __str__(self) -> str:
        return "null" if self.is_null else str(self._value)

    def __repr__(self) -> str:
        if self.is_null:
            return "Field(null)"
        return f"Field({self._data_type.value}, {self._value!r})"


class RowRecord:
    """A timestamped result row"""

    __slots__ = ("_timestamp", "_fields")

    def __init__(self, timestamp: int, fields: Sequence[Field]):
        self._timestamp = timestamp
        self._fields: Tuple[Field, ...] = tuple(fields)

    @property
    def timestamp(self) -> int:
        return self._timestamp

    @property
    def fields(self) -> Tuple[Field, ...]:
        return self._fields

    def __getitem__(self, index: int) -> Field:
        return self._fields[index]

    def __len__(self) -> int:
        return len(self._fields)

    def values(self) -> List[Any]:
        """Raw field values, ``None`` for nulls"""
        return [f.value for f in self._fields]

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, RowRecord):
            return NotImplemented
        return self._timestamp == other._timestamp and self._fields == other._fields

    def __repr__(self) -> str:
        cells = "\t".join(str(f) for f in self._fields)
        return f"RowRecord({self._timestamp}\t{cells})"
