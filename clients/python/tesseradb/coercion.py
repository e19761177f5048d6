"""Conversion of native values and textual literals into column cells.

Both entry points look the target type up in the same table, so a value
inserted as ``datetime.date(2024, 1, 5)`` and one inserted as the literal
``"2024-1-5"`` end up as the same Python object and encode identically on
the wire.
"""

import datetime
import re
from typing import Any, Callable, Dict, NamedTuple, Optional

from .exceptions import CoercionError, LiteralFormatError
from .types import Binary, DataType


INT32_RANGE = (-(2 ** 31), 2 ** 31 - 1)
INT64_RANGE = (-(2 ** 63), 2 ** 63 - 1)

_INTEGER_LITERAL = re.compile(r"[+-]?[0-9]+")
_FLOAT_LITERAL = re.compile(r"[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?")
_DATE_LITERAL = re.compile(r"([0-9]{4})-([0-9]{1,2})-([0-9]{1,2})")
_BLOB_LITERAL = re.compile(r"[xX]'([0-9a-fA-F]*)'")

_EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)


class _Rule(NamedTuple):
    typed: Callable[[Any, DataType], Any]
    textual: Callable[[str, DataType], Any]


def _reject(value: Any, data_type: DataType) -> CoercionError:
    return CoercionError(
        f"Value {value!r} of type {type(value).__name__} "
        f"is not compatible with {data_type.value}"
    )


def _check_range(number: int, data_type: DataType, original: Any) -> int:
    low, high = INT32_RANGE if data_type is DataType.INT32 else INT64_RANGE
    if not low <= number <= high:
        if isinstance(original, str):
            raise LiteralFormatError(original, data_type)
        raise CoercionError(f"Value {number} out of range for {data_type.value}")
    return number


# Typed path

def _typed_bool(value: Any, data_type: DataType) -> bool:
    if isinstance(value, bool):
        return value
    raise _reject(value, data_type)


def _typed_int(value: Any, data_type: DataType) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return _check_range(value, data_type, value)
    raise _reject(value, data_type)


def _typed_timestamp(value: Any, data_type: DataType) -> int:
    if isinstance(value, datetime.datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=datetime.timezone.utc)
        delta = value - _EPOCH
        return _check_range(delta // datetime.timedelta(milliseconds=1), data_type, value)
    return _typed_int(value, data_type)


def _typed_float(value: Any, data_type: DataType) -> float:
    if isinstance(value, bool):
        raise _reject(value, data_type)
    if isinstance(value, (int, float)):
        return float(value)
    raise _reject(value, data_type)


def _typed_text(value: Any, data_type: DataType) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, Binary):
        return str(value)
    raise _reject(value, data_type)


def _typed_date(value: Any, data_type: DataType) -> datetime.date:
    if isinstance(value, datetime.date) and not isinstance(value, datetime.datetime):
        return value
    raise _reject(value, data_type)


def _typed_blob(value: Any, data_type: DataType) -> Binary:
    if isinstance(value, Binary):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return Binary(value)
    raise _reject(value, data_type)


# Textual path

def _parse_bool(literal: str, data_type: DataType) -> bool:
    lowered = literal.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    raise LiteralFormatError(literal, data_type)


def _parse_int(literal: str, data_type: DataType) -> int:
    text = literal.strip()
    if not _INTEGER_LITERAL.fullmatch(text):
        raise LiteralFormatError(literal, data_type)
    return _check_range(int(text), data_type, literal)


def _parse_float(literal: str, data_type: DataType) -> float:
    text = literal.strip()
    if not _FLOAT_LITERAL.fullmatch(text):
        raise LiteralFormatError(literal, data_type)
    return float(text)


def _parse_text(literal: str, data_type: DataType) -> str:
    return literal


def _parse_date(literal: str, data_type: DataType) -> datetime.date:
    match = _DATE_LITERAL.fullmatch(literal.strip())
    if not match:
        raise LiteralFormatError(literal, data_type)
    year, month, day = (int(part) for part in match.groups())
    try:
        return datetime.date(year, month, day)
    except ValueError:
        raise LiteralFormatError(literal, data_type) from None


def _parse_blob(literal: str, data_type: DataType) -> Binary:
    match = _BLOB_LITERAL.fullmatch(literal.strip())
    if not match or len(match.group(1)) % 2:
        raise LiteralFormatError(literal, data_type)
    return Binary(bytes.fromhex(match.group(1)))


_RULES: Dict[DataType, _Rule] = {
    DataType.BOOLEAN: _Rule(_typed_bool, _parse_bool),
    DataType.INT32: _Rule(_typed_int, _parse_int),
    DataType.INT64: _Rule(_typed_int, _parse_int),
    DataType.TIMESTAMP: _Rule(_typed_timestamp, _parse_int),
    DataType.FLOAT: _Rule(_typed_float, _parse_float),
    DataType.DOUBLE: _Rule(_typed_float, _parse_float),
    DataType.TEXT: _Rule(_typed_text, _parse_text),
    DataType.STRING: _Rule(_typed_text, _parse_text),
    DataType.DATE: _Rule(_typed_date, _parse_date),
    DataType.BLOB: _Rule(_typed_blob, _parse_blob),
}


def coerce_value(value: Any, data_type: DataType) -> Any:
    """Convert a native Python value into a cell of ``data_type``.

    Returns ``None`` for ``None``. Raises ``CoercionError`` when the value's
    type is neither an exact match nor an accepted widening.
    """
    if value is None:
        return None
    return _RULES[DataType(data_type)].typed(value, DataType(data_type))


def coerce_literal(literal: Optional[str], data_type: DataType) -> Any:
    """Parse a textual literal into a cell of ``data_type``.

    Raises ``LiteralFormatError`` naming the literal and type on failure.
    """
    if literal is None:
        return None
    if not isinstance(literal, str):
        raise CoercionError(f"Expected a string literal, got {type(literal).__name__}")
    return _RULES[DataType(data_type)].textual(literal, DataType(data_type))


def infer_data_type(literal: str) -> DataType:
    """Guess a data type for a literal whose series has no schema yet"""
    text = literal.strip()
    if text.lower() in ("true", "false"):
        return DataType.BOOLEAN
    if _INTEGER_LITERAL.fullmatch(text):
        return DataType.INT64
    if _FLOAT_LITERAL.fullmatch(text):
        return DataType.DOUBLE
    return DataType.TEXT
