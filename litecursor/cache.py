from collections.abc import Sequence
from typing import Dict, Iterator, List, Tuple, Union, overload

from .exceptions import InvalidColumnIndex, UnknownColumnName
from .values import ColumnData


class CachedRow(Sequence):
    """A materialized row, safe to keep after its cursor is gone.

    The values can be accessed with an index or by column name.
    """

    _column_idxs: Dict[str, int]
    _values: Tuple[ColumnData, ...]
    __slots__ = ["_column_idxs", "_values"]

    def __init__(self, column_idxs: Dict[str, int], values: Tuple[ColumnData, ...]) -> None:
        self._column_idxs = column_idxs
        self._values = values

    @overload
    def __getitem__(self, key: int) -> ColumnData:
        pass

    @overload
    def __getitem__(self, key: str) -> ColumnData:
        pass

    @overload
    def __getitem__(self, key: slice) -> Tuple[ColumnData, ...]:
        pass

    def __getitem__(self, key):
        """Access a value by index or by name."""
        if isinstance(key, str):
            try:
                key = self._column_idxs[key]
            except KeyError:
                raise UnknownColumnName(f"No column named {key!r}") from None
        try:
            return self._values[key]
        except IndexError:
            raise InvalidColumnIndex(f"Column index {key} out of range for {len(self._values)} columns") from None

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other):
        if isinstance(other, CachedRow):
            return self._values == other._values
        if isinstance(other, tuple):
            return self._values == other
        return NotImplemented

    def __hash__(self):
        return hash(self._values)

    def __repr__(self) -> str:
        return repr(tuple(v.value for v in self._values))

    def astuple(self) -> Tuple[object, ...]:
        return tuple(v.value for v in self._values)

    def asdict(self) -> Dict[str, object]:
        return {key: self._values[idx].value for key, idx in self._column_idxs.items()}


class RowCache(Sequence):
    """All remaining rows of a result range, copied into memory.

    Every row shares one name-to-position mapping; for duplicated column
    names the first occurrence wins.
    """

    _columns: Tuple[str, ...]
    _rows: List[CachedRow]
    __slots__ = ["_columns", "_rows"]

    def __init__(self, results) -> None:
        self._columns = tuple(results.statement.column_names())
        column_idxs: Dict[str, int] = {}
        for idx, name in enumerate(self._columns):
            column_idxs.setdefault(name, idx)

        self._rows = []
        while not results.empty:
            row = results.front()
            self._rows.append(CachedRow(column_idxs, tuple(row)))
            results.advance()

    def __iter__(self) -> Iterator[CachedRow]:
        return self._rows.__iter__()

    def __len__(self) -> int:
        return len(self._rows)

    def __getitem__(self, key: Union[int, slice]):
        return self._rows[key]

    @property
    def columns(self) -> Tuple[str, ...]:
        return self._columns

    @property
    def rows(self) -> List[CachedRow]:
        return self._rows
