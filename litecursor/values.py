import ctypes
import enum
import math
import re
from typing import Any, Optional, Union

from .exceptions import UnsupportedType
from .native import (
    SQLITE_TRANSIENT,
    SQLITE_INTEGER, SQLITE_FLOAT, SQLITE_TEXT, SQLITE_BLOB, SQLITE_NULL,
    is_64bit_int,
)

Value = Union[None, int, float, str, bytes]

_NUMERIC_PREFIX = re.compile(rb"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


class SqliteType(enum.IntEnum):
    INTEGER = SQLITE_INTEGER
    FLOAT = SQLITE_FLOAT
    TEXT = SQLITE_TEXT
    BLOB = SQLITE_BLOB
    NULL = SQLITE_NULL


def _kind_of(value) -> SqliteType:
    if value is None:
        return SqliteType.NULL
    if isinstance(value, (bool, int)):
        return SqliteType.INTEGER
    if isinstance(value, float):
        return SqliteType.FLOAT
    if isinstance(value, str):
        return SqliteType.TEXT
    if isinstance(value, (bytes, bytearray, memoryview)):
        return SqliteType.BLOB
    raise UnsupportedType(f"Unsupported value type: {type(value).__name__}")


def _numeric_prefix(raw: bytes):
    m = _NUMERIC_PREFIX.match(raw)
    if not m:
        return 0
    text = m.group(1)
    if re.fullmatch(rb"[+-]?\d+", text):
        return int(text)
    return float(text)


_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1


def _to_int(value) -> int:
    if isinstance(value, float):
        if math.isnan(value):
            return 0
        if math.isinf(value):
            return _INT64_MAX if value > 0 else _INT64_MIN
        value = int(value)
    elif isinstance(value, (str, bytes)):
        raw = value.encode("utf-8") if isinstance(value, str) else value
        return _to_int(_numeric_prefix(raw))
    # Saturates at the int64 bounds like the engine.
    return min(max(int(value), _INT64_MIN), _INT64_MAX)


def _to_float(value) -> float:
    if isinstance(value, (str, bytes)):
        raw = value.encode("utf-8") if isinstance(value, str) else value
        return float(_numeric_prefix(raw))
    return float(value)


def _float_text(value: float) -> str:
    # The engine's "%!.15g": 15 significant digits, always a decimal point.
    if math.isinf(value):
        return "Inf" if value > 0 else "-Inf"
    text = "%.15g" % value
    mantissa, sep, exponent = text.partition("e")
    if "." not in mantissa:
        mantissa += ".0"
    return mantissa + sep + exponent


def _to_text(value) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, float):
        return _float_text(value)
    return str(value)


def _to_bytes(value) -> bytes:
    if isinstance(value, bytes):
        return value
    return _to_text(value).encode("utf-8")


_ZERO = {int: 0, bool: False, float: math.nan, str: None, bytes: None}
_MISSING = object()


class ColumnData:
    """A single SQL value detached from any cursor.

    Holds the storage class (``kind``) and the Python value. Instances are
    immutable and safe to keep after the result they came from is gone.
    """

    __slots__ = ("_kind", "_value")

    def __init__(self, kind: SqliteType, value: Value):
        self._kind = SqliteType(kind)
        self._value = value

    @classmethod
    def from_value(cls, value) -> "ColumnData":
        if isinstance(value, ColumnData):
            return value
        kind = _kind_of(value)
        if kind == SqliteType.BLOB:
            value = bytes(value)
        elif isinstance(value, bool):
            value = int(value)
        return cls(kind, value)

    @property
    def kind(self) -> SqliteType:
        return self._kind

    @property
    def value(self) -> Value:
        return self._value

    @property
    def is_null(self) -> bool:
        return self._kind == SqliteType.NULL

    def as_(self, type_, default=_MISSING):
        """Convert to ``type_`` the way the engine converts column values.

        NULL becomes ``default`` when given, otherwise the zero value of the
        type (NaN for ``float``, ``None`` for ``str`` and ``bytes``).
        """
        if type_ is None or type_ is ColumnData:
            return self if type_ is ColumnData else self._value
        if type_ not in _ZERO:
            raise UnsupportedType(f"Cannot convert a column value to {type_!r}")
        if self.is_null:
            return _ZERO[type_] if default is _MISSING else default
        if type_ is int:
            return _to_int(self._value)
        if type_ is bool:
            return _to_int(self._value) != 0
        if type_ is float:
            return _to_float(self._value)
        if type_ is str:
            return _to_text(self._value)
        return _to_bytes(self._value)

    def __eq__(self, other):
        if isinstance(other, ColumnData):
            return self._kind == other._kind and self._value == other._value
        if other is None or isinstance(other, (int, float, str, bytes)):
            return self._value == other and _kind_of(other) == self._kind
        return NotImplemented

    def __hash__(self):
        return hash(self._value)

    def __repr__(self):
        return f"ColumnData({self._kind.name}, {self._value!r})"

    def __str__(self):
        if self.is_null:
            return "NULL"
        return _to_text(self._value)


def bind_value(lib, stmt, index: int, value: Any) -> int:
    """Bind ``value`` at 1-based ``index``; returns the engine result code."""
    if isinstance(value, ColumnData):
        value = value.value
    if value is None:
        return lib.sqlite3_bind_null(stmt, index)
    if isinstance(value, (bool, int)):
        value = int(value)
        if not is_64bit_int(value):
            raise OverflowError(f"Integer {value} does not fit in 64 bits")
        return lib.sqlite3_bind_int64(stmt, index, value)
    if isinstance(value, float):
        return lib.sqlite3_bind_double(stmt, index, value)
    if isinstance(value, str):
        encoded = value.encode("utf-8")
        return lib.sqlite3_bind_text(stmt, index, encoded, len(encoded), SQLITE_TRANSIENT)
    if isinstance(value, (bytes, bytearray, memoryview)):
        data = bytes(value)
        if not data:
            return lib.sqlite3_bind_null(stmt, index)
        return lib.sqlite3_bind_blob(stmt, index, data, len(data), SQLITE_TRANSIENT)
    raise UnsupportedType(f"Unsupported parameter type: {type(value).__name__}")


class _Accessors:
    # Same reading rules for result columns and function arguments; only the
    # engine entry points differ.

    def __init__(self, type_, int64, double, text, blob, nbytes):
        self.type = type_
        self.int64 = int64
        self.double = double
        self.text = text
        self.blob = blob
        self.nbytes = nbytes


def _column_accessors(lib):
    return _Accessors(
        lib.sqlite3_column_type, lib.sqlite3_column_int64, lib.sqlite3_column_double,
        lib.sqlite3_column_text, lib.sqlite3_column_blob, lib.sqlite3_column_bytes,
    )


def _value_accessors(lib):
    return _Accessors(
        lib.sqlite3_value_type, lib.sqlite3_value_int64, lib.sqlite3_value_double,
        lib.sqlite3_value_text, lib.sqlite3_value_blob, lib.sqlite3_value_bytes,
    )


def _read(acc, args, type_):
    if type_ is int:
        return acc.int64(*args)
    if type_ is bool:
        return acc.int64(*args) != 0
    if type_ is float:
        if acc.type(*args) == SQLITE_NULL:
            return math.nan
        return acc.double(*args)
    if type_ is str:
        if acc.type(*args) == SQLITE_NULL:
            return None
        ptr = acc.text(*args)
        n = acc.nbytes(*args)
        return ctypes.string_at(ptr, n).decode("utf-8", errors="replace") if ptr else ""
    if type_ is bytes:
        if acc.type(*args) == SQLITE_NULL:
            return None
        ptr = acc.blob(*args)
        n = acc.nbytes(*args)
        return ctypes.string_at(ptr, n) if ptr else b""
    if type_ is None or type_ is ColumnData:
        kind = acc.type(*args)
        if kind == SQLITE_INTEGER:
            value = acc.int64(*args)
        elif kind == SQLITE_FLOAT:
            value = acc.double(*args)
        elif kind == SQLITE_TEXT:
            value = _read(acc, args, str)
        elif kind == SQLITE_BLOB:
            value = _read(acc, args, bytes)
        else:
            value = None
        if type_ is ColumnData:
            return ColumnData(kind, value)
        return value
    raise UnsupportedType(f"Cannot read a value as {type_!r}")


def read_column(lib, stmt, index: int, type_=ColumnData):
    return _read(_column_accessors(lib), (stmt, index), type_)


def read_value(lib, value_ptr, type_=None):
    return _read(_value_accessors(lib), (value_ptr,), type_)


def literal(value: Any) -> str:
    """Render ``value`` as an SQL literal."""
    if isinstance(value, ColumnData):
        value = value.value
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return "NULL"
        if math.isinf(value):
            return "9e999" if value > 0 else "-9e999"
        return repr(value)
    if isinstance(value, str):
        return "'" + value.replace("'", "''") + "'"
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "X'" + bytes(value).hex().upper() + "'"
    raise UnsupportedType(f"No SQL literal for {type(value).__name__}")


def is_supported_type(type_: Optional[type]) -> bool:
    return type_ in (None, ColumnData, int, bool, float, str, bytes)
