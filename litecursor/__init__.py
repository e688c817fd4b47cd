import ctypes

from .native import (
    load_library, errstr,
    SQLITE_OK,
    SQLITE_OPEN_READONLY, SQLITE_OPEN_READWRITE, SQLITE_OPEN_CREATE, SQLITE_OPEN_URI,
    SQLITE_OPEN_MEMORY, SQLITE_OPEN_NOMUTEX, SQLITE_OPEN_FULLMUTEX,
    SQLITE_OPEN_SHAREDCACHE, SQLITE_OPEN_PRIVATECACHE,
    SQLITE_DELETE, SQLITE_INSERT, SQLITE_UPDATE,
    SQLITE_CONFIG_SINGLETHREAD, SQLITE_CONFIG_MULTITHREAD, SQLITE_CONFIG_SERIALIZED,
)
from .exceptions import (
    Error, Warning, InterfaceError, DatabaseError, InternalError, OperationalError,
    ProgrammingError, IntegrityError, DataError, NotSupportedError,
    EngineError, OperationAborted, ConstraintViolation, FunctionEvaluationError,
    UseAfterClose, UnknownParameter, UnknownColumnName, InvalidColumnIndex,
    NoRowsAvailable, UnsupportedType, StaleResultError,
)
from .values import ColumnData, SqliteType, Value, literal
from .script import split_statements
from .statement import Statement
from .results import ResultRange, Row
from .cache import CachedRow, RowCache
from .connection import ColumnMetadata, Connection, connect


def version_string() -> str:
    return load_library().sqlite3_libversion().decode("utf-8")


def version_number() -> int:
    return load_library().sqlite3_libversion_number()


def thread_safe() -> bool:
    return bool(load_library().sqlite3_threadsafe())


def _check(res):
    if res != SQLITE_OK:
        raise EngineError(res, errstr(res))


def initialize():
    _check(load_library().sqlite3_initialize())


def shutdown():
    _check(load_library().sqlite3_shutdown())


def config(option, *args):
    """Set a process-wide engine option before the first connection is opened.

    Only options taking integer arguments are supported.
    """
    _check(load_library().sqlite3_config(ctypes.c_int(option), *[ctypes.c_int(a) for a in args]))
