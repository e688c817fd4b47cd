"""Lazy iteration over the rows produced by a statement.

A :class:`ResultRange` steps its statement on demand. Each :class:`Row` is a
view of the statement's current row, not a copy: once the range advances, or
the statement is reset or executed again, the view is stale and any use of it
raises :class:`~litecursor.exceptions.StaleResultError`. Copy rows that must
outlive the cursor with :class:`~litecursor.cache.RowCache`.
"""

from typing import Any, Dict, Iterator, Optional, Tuple, Union

from .exceptions import (
    InvalidColumnIndex, NoRowsAvailable, NotSupportedError,
    StaleResultError, UnknownColumnName, UseAfterClose,
)
from .native import SQLITE_DONE, SQLITE_ROW
from .values import ColumnData, SqliteType, read_column

Key = Union[int, str]


class ResultRange:
    def __init__(self, statement) -> None:
        self._statement = statement
        self._epoch = statement._epoch
        self._generation = 0
        self._pending = False
        if statement._handle is None:
            self._state = SQLITE_DONE
        else:
            self._state = statement._step()

    @property
    def statement(self):
        return self._statement

    def _check(self) -> None:
        if self._statement._closed:
            raise UseAfterClose("Statement closed")
        if self._epoch != self._statement._epoch:
            raise StaleResultError("Statement was reset or executed again")
        self._statement._connection._require_open()

    @property
    def empty(self) -> bool:
        self._check()
        return self._state != SQLITE_ROW

    def front(self) -> "Row":
        if self.empty:
            raise NoRowsAvailable("No rows available")
        return Row(self)

    def advance(self) -> None:
        if self.empty:
            raise NoRowsAvailable("No rows available")
        # The current row now counts as consumed by the iterator too.
        self._pending = False
        self._generation += 1
        self._state = self._statement._step()

    def one_value(self, type_=None) -> Any:
        """Return the first column of the current row, read as ``type_``."""
        return self.front().peek(0, type_)

    def __iter__(self) -> Iterator["Row"]:
        return self

    def __next__(self) -> "Row":
        if self._pending:
            self._pending = False
            self.advance()
        if self.empty:
            raise StopIteration
        self._pending = True
        return Row(self)

    def __repr__(self) -> str:
        return f"<ResultRange {self._statement.sql!r}>"


class Row:
    """Double-ended view over the columns of the current row.

    Positions are zero-based and relative to the narrowed front; negative
    positions count from the back. Names are looked up among the columns still
    in view.
    """

    def __init__(self, results: ResultRange) -> None:
        self._results = results
        self._generation = results._generation
        self._front = 0
        self._back = results._statement._lib.sqlite3_column_count(results._statement._handle) - 1

    def _handle(self):
        self._results._check()
        if self._generation != self._results._generation:
            raise StaleResultError("Row is no longer current")
        return self._results._statement._handle

    @property
    def _lib(self):
        return self._results._statement._lib

    def _index(self, key: Key) -> int:
        n = self._back - self._front + 1
        if isinstance(key, str):
            handle = self._handle()
            encoded = key.encode("utf-8")
            for i in range(self._front, self._back + 1):
                if self._lib.sqlite3_column_name(handle, i) == encoded:
                    return i
            raise UnknownColumnName(f"No column named {key!r}")
        if isinstance(key, bool) or not isinstance(key, int):
            raise TypeError(f"Column key must be int or str, not {type(key).__name__}")
        pos = key + n if key < 0 else key
        if not 0 <= pos < n:
            raise InvalidColumnIndex(f"Column index {key} out of range for {n} columns")
        return self._front + pos

    def __len__(self) -> int:
        self._handle()
        return max(self._back - self._front + 1, 0)

    @property
    def empty(self) -> bool:
        return len(self) == 0

    def __getitem__(self, key: Key) -> ColumnData:
        index = self._index(key)
        return read_column(self._lib, self._handle(), index, ColumnData)

    def peek(self, key: Key, type_=None) -> Any:
        """Read a column as ``type_`` using the engine's conversions.

        ``None`` reads the natural value of the column.
        """
        index = self._index(key)
        return read_column(self._lib, self._handle(), index, type_)

    @property
    def front(self) -> ColumnData:
        return self[0]

    @property
    def back(self) -> ColumnData:
        return self[-1]

    def pop_front(self) -> None:
        if self.empty:
            raise InvalidColumnIndex("Row has no columns left")
        self._front += 1

    def pop_back(self) -> None:
        if self.empty:
            raise InvalidColumnIndex("Row has no columns left")
        self._back -= 1

    def save(self) -> "Row":
        self._handle()
        copy = Row.__new__(Row)
        copy._results = self._results
        copy._generation = self._generation
        copy._front = self._front
        copy._back = self._back
        return copy

    def __iter__(self) -> Iterator[ColumnData]:
        for i in range(len(self)):
            yield self[i]

    def column_name(self, key: Key) -> str:
        name = self._lib.sqlite3_column_name(self._handle(), self._index(key))
        return name.decode("utf-8") if name else ""

    def column_type(self, key: Key) -> SqliteType:
        return SqliteType(self._lib.sqlite3_column_type(self._handle(), self._index(key)))

    def column_declared_type_name(self, key: Key) -> Optional[str]:
        name = self._lib.sqlite3_column_decltype(self._handle(), self._index(key))
        return name.decode("utf-8") if name else None

    def _origin(self, func_name: str, key: Key) -> Optional[str]:
        if not hasattr(self._lib, func_name):
            raise NotSupportedError("SQLite was built without column metadata")
        func = getattr(self._lib, func_name)
        name = func(self._handle(), self._index(key))
        return name.decode("utf-8") if name else None

    def column_database_name(self, key: Key) -> Optional[str]:
        return self._origin("sqlite3_column_database_name", key)

    def column_table_name(self, key: Key) -> Optional[str]:
        return self._origin("sqlite3_column_table_name", key)

    def column_origin_name(self, key: Key) -> Optional[str]:
        return self._origin("sqlite3_column_origin_name", key)

    def astuple(self) -> Tuple[Any, ...]:
        return tuple(self.peek(i) for i in range(len(self)))

    def asdict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for i in range(len(self)):
            out.setdefault(self.column_name(i), self.peek(i))
        return out

    def __repr__(self) -> str:
        try:
            return f"<Row {self.astuple()!r}>"
        except (StaleResultError, UseAfterClose):
            return "<Row (stale)>"
