import ctypes
import logging
import os
import weakref
from dataclasses import dataclass
from typing import Callable, Optional

from .callbacks import (
    registry, signature_types,
    AggregateCapsule, CollationCapsule, FunctionCapsule, HookCapsule,
    X_FUNC, X_STEP, X_FINAL, X_DESTROY, X_COMPARE,
    X_UPDATE, X_COMMIT, X_ROLLBACK, X_PROGRESS,
)
from .exceptions import (
    EngineError, NotSupportedError, ProgrammingError, UnsupportedType, UseAfterClose,
    make_error, raise_error,
)
from .native import (
    load_library,
    SQLITE_OK, SQLITE_UTF8, SQLITE_DETERMINISTIC,
    SQLITE_OPEN_READWRITE, SQLITE_OPEN_CREATE,
)
from .results import ResultRange
from .script import split_statements
from .statement import Statement

_logger = logging.getLogger(__name__)

DEFAULT_FLAGS = SQLITE_OPEN_READWRITE | SQLITE_OPEN_CREATE


@dataclass(frozen=True)
class ColumnMetadata:
    declared_type_name: Optional[str]
    collation_sequence_name: Optional[str]
    is_not_null: bool
    is_primary_key: bool
    is_auto_increment: bool


class _Payload:
    # Everything the finalizer needs, without a reference to the Connection.
    __slots__ = ("lib", "handle", "zombie", "hooks")

    def __init__(self, lib, handle):
        self.lib = lib
        self.handle = handle
        self.zombie = False
        self.hooks = {}

    def release_hooks(self):
        for key in self.hooks.values():
            registry.release(key)
        self.hooks.clear()


def _close_connection(payload):
    handle = payload.handle
    if handle is None:
        return
    lib = payload.lib
    zombie = hasattr(lib, "sqlite3_close_v2")
    res = lib.sqlite3_close_v2(handle) if zombie else lib.sqlite3_close(handle)
    if res != SQLITE_OK:
        # The handle is still open and still owns the hook capsules.
        _logger.warning("Closing an abandoned connection returned %d", res)
        return
    payload.zombie = zombie
    payload.handle = None
    payload.release_hooks()


class Connection:
    """A connection to an SQLite database.

    The native handle is closed exactly once: by :meth:`close`, on leaving a
    ``with`` block, or when the connection is garbage collected.
    """

    def __init__(self, path, flags=DEFAULT_FLAGS):
        self._lib = load_library()
        self.path = os.fspath(path)

        db = ctypes.c_void_p()
        res = self._lib.sqlite3_open_v2(self.path.encode("utf-8"), ctypes.byref(db), flags, None)
        if res != SQLITE_OK:
            err = make_error(db.value, res, sql=None)
            if db.value:
                self._lib.sqlite3_close(db.value)
            raise err

        self._payload = _Payload(self._lib, db.value)
        self._statements = weakref.WeakSet()
        self._finalizer = weakref.finalize(self, _close_connection, self._payload)
        _logger.debug("Opened %r (flags=0x%x)", self.path, flags)

    @property
    def handle(self):
        return self._payload.handle

    @property
    def closed(self):
        return self._payload.handle is None

    def _require_open(self):
        handle = self._payload.handle
        if handle is None:
            raise UseAfterClose("Connection closed")
        return handle

    def _remember_statement(self, stmt):
        self._statements.add(stmt)

    def close(self):
        """Finalize remaining statements and close the database.

        Calling it again is a no-op. If the engine refuses, the connection
        stays open and :class:`EngineError` is raised.
        """
        handle = self._payload.handle
        if handle is None:
            return
        for stmt in list(self._statements):
            stmt.close()
        res = self._lib.sqlite3_close(handle)
        if res != SQLITE_OK:
            raise_error(handle, res)
        self._payload.handle = None
        self._payload.release_hooks()
        self._finalizer.detach()
        _logger.debug("Closed %r", self.path)

    def prepare(self, sql) -> Statement:
        """Compile the first statement of ``sql``; any text after it is ignored."""
        return Statement(self, sql)

    def execute(self, sql, *values) -> ResultRange:
        stmt = self.prepare(sql)
        stmt.bind_all(*values)
        return stmt.execute()

    def run(self, sql, handler: Optional[Callable[[ResultRange], object]] = None):
        """Execute every statement of the script ``sql`` in order.

        ``handler`` receives the results of each statement; returning
        ``False`` stops the script.
        """
        for fragment in split_statements(sql):
            results = self.prepare(fragment).execute()
            if handler is not None and handler(results) is False:
                return

    def begin(self):
        self.execute("BEGIN")

    def commit(self):
        self.execute("COMMIT")

    def rollback(self):
        self.execute("ROLLBACK")

    @property
    def in_transaction(self) -> bool:
        return not self._lib.sqlite3_get_autocommit(self._require_open())

    @property
    def last_insert_rowid(self) -> int:
        return self._lib.sqlite3_last_insert_rowid(self._require_open())

    @property
    def changes(self) -> int:
        return self._lib.sqlite3_changes(self._require_open())

    @property
    def total_changes(self) -> int:
        return self._lib.sqlite3_total_changes(self._require_open())

    @property
    def error_code(self) -> int:
        handle = self._payload.handle
        if handle is None:
            return 0
        return self._lib.sqlite3_errcode(handle)

    def attached_file_path(self, database="main") -> Optional[str]:
        """Absolute path of an attached database, or None if it is temporary or in memory."""
        name = self._lib.sqlite3_db_filename(self._require_open(), database.encode("utf-8"))
        return name.decode("utf-8") if name else None

    def is_read_only(self, database="main") -> bool:
        res = self._lib.sqlite3_db_readonly(self._require_open(), database.encode("utf-8"))
        if res < 0:
            raise ProgrammingError(f"No database named {database!r}")
        return bool(res)

    def table_column_metadata(self, table, column, database="main") -> ColumnMetadata:
        handle = self._require_open()
        if not hasattr(self._lib, "sqlite3_table_column_metadata"):
            raise NotSupportedError("SQLite was built without column metadata")
        decl_type = ctypes.c_char_p()
        collation = ctypes.c_char_p()
        not_null = ctypes.c_int()
        primary_key = ctypes.c_int()
        auto_increment = ctypes.c_int()
        res = self._lib.sqlite3_table_column_metadata(
            handle, database.encode("utf-8"), table.encode("utf-8"), column.encode("utf-8"),
            ctypes.byref(decl_type), ctypes.byref(collation),
            ctypes.byref(not_null), ctypes.byref(primary_key), ctypes.byref(auto_increment),
        )
        if res != SQLITE_OK:
            raise_error(handle, res)
        return ColumnMetadata(
            decl_type.value.decode("utf-8") if decl_type.value else None,
            collation.value.decode("utf-8") if collation.value else None,
            bool(not_null.value),
            bool(primary_key.value),
            bool(auto_increment.value),
        )

    def enable_load_extension(self, enable=True):
        handle = self._require_open()
        if not hasattr(self._lib, "sqlite3_enable_load_extension"):
            raise NotSupportedError("SQLite was built without extension loading")
        res = self._lib.sqlite3_enable_load_extension(handle, 1 if enable else 0)
        if res != SQLITE_OK:
            raise_error(handle, res)

    def load_extension(self, path, entry_point=None):
        handle = self._require_open()
        if not hasattr(self._lib, "sqlite3_load_extension"):
            raise NotSupportedError("SQLite was built without extension loading")
        err_ptr = ctypes.c_void_p()
        res = self._lib.sqlite3_load_extension(
            handle,
            os.fspath(path).encode("utf-8"),
            entry_point.encode("utf-8") if entry_point else None,
            ctypes.byref(err_ptr),
        )
        if res != SQLITE_OK:
            if err_ptr.value:
                try:
                    msg = ctypes.string_at(err_ptr.value).decode("utf-8", errors="replace")
                finally:
                    # Free engine-allocated memory
                    self._lib.sqlite3_free(err_ptr)
                raise EngineError(res, msg)
            raise_error(handle, res)

    def create_function(self, name, func, deterministic=True):
        """Register ``func`` as a scalar SQL function.

        The SQL arity is the number of positional parameters of ``func``;
        annotations choose how each argument is read.
        """
        handle = self._require_open()
        arg_types = signature_types(func)
        key = registry.add(FunctionCapsule(name, func, arg_types))
        flags = SQLITE_UTF8 | (SQLITE_DETERMINISTIC if deterministic else 0)
        res = self._lib.sqlite3_create_function_v2(
            handle, name.encode("utf-8"), len(arg_types), flags, key,
            X_FUNC, None, None, X_DESTROY,
        )
        if res != SQLITE_OK:
            registry.release(key)
            raise_error(handle, res)

    def create_aggregate(self, aggregate_type, name, deterministic=True):
        """Register an aggregate SQL function.

        ``aggregate_type()`` builds the state of one group, ``accumulate(...)``
        takes each row and ``result()`` gives the value of the group.
        """
        handle = self._require_open()
        for attr in ("accumulate", "result"):
            if not callable(getattr(aggregate_type, attr, None)):
                raise UnsupportedType(f"{aggregate_type!r} has no {attr}() method")
        arg_types = signature_types(aggregate_type.accumulate, skip_first=True)
        key = registry.add(AggregateCapsule(name, aggregate_type, arg_types))
        flags = SQLITE_UTF8 | (SQLITE_DETERMINISTIC if deterministic else 0)
        res = self._lib.sqlite3_create_function_v2(
            handle, name.encode("utf-8"), len(arg_types), flags, key,
            None, X_STEP, X_FINAL, X_DESTROY,
        )
        if res != SQLITE_OK:
            registry.release(key)
            raise_error(handle, res)

    def create_collation(self, name, compare):
        """Register ``compare(a, b)`` (negative, zero or positive) as a collation."""
        handle = self._require_open()
        key = registry.add(CollationCapsule(name, compare))
        res = self._lib.sqlite3_create_collation_v2(
            handle, name.encode("utf-8"), SQLITE_UTF8, key, X_COMPARE, X_DESTROY,
        )
        if res != SQLITE_OK:
            registry.release(key)
            raise_error(handle, res)

    def _set_hook(self, kind, func, install):
        handle = self._require_open()
        key = registry.add(HookCapsule(kind, func)) if func is not None else None
        install(handle, key)
        old = self._payload.hooks.pop(kind, None)
        if key is not None:
            self._payload.hooks[kind] = key
        registry.release(old)

    def set_update_hook(self, hook):
        """Call ``hook(operation, database, table, rowid)`` for each changed row."""
        self._set_hook("update", hook, lambda handle, key: self._lib.sqlite3_update_hook(
            handle, X_UPDATE if key else None, key))

    def set_commit_hook(self, hook):
        """Call ``hook()`` before each commit; a truthy result turns it into a rollback."""
        self._set_hook("commit", hook, lambda handle, key: self._lib.sqlite3_commit_hook(
            handle, X_COMMIT if key else None, key))

    def set_rollback_hook(self, hook):
        self._set_hook("rollback", hook, lambda handle, key: self._lib.sqlite3_rollback_hook(
            handle, X_ROLLBACK if key else None, key))

    def set_progress_handler(self, pace, handler):
        """Call ``handler()`` every ``pace`` virtual machine steps; truthy aborts."""
        self._set_hook("progress", handler, lambda handle, key: self._lib.sqlite3_progress_handler(
            handle, pace, X_PROGRESS if key else None, key))

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self):
        state = "closed" if self.closed else "open"
        return f"<Connection {state} {self.path!r}>"


def connect(path, flags=DEFAULT_FLAGS) -> Connection:
    return Connection(path, flags)
