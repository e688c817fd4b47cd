from typing import Iterator

from .native import load_library


def _find_end(lib, sql: str) -> int:
    # Grow the candidate up to each ';' until the engine says it is a whole
    # statement; string literals, comments and trigger bodies stay intact.
    pos = 0
    while True:
        offset = sql.find(";", pos)
        pos = len(sql) if offset < 0 else offset + 1
        if lib.sqlite3_complete(sql[:pos].encode("utf-8")) or pos >= len(sql):
            return pos


def split_statements(sql: str) -> Iterator[str]:
    """Yield the consecutive statements of ``sql``.

    Each fragment keeps its surrounding whitespace, so joining the fragments
    gives back ``sql`` unchanged.
    """
    lib = load_library()
    while sql:
        end = _find_end(lib, sql)
        yield sql[:end]
        sql = sql[end:]
