import ctypes
import weakref

from .callbacks import take_failure
from .exceptions import (
    FunctionEvaluationError, UnknownParameter, UseAfterClose,
    make_error, raise_error,
)
from .native import SQLITE_OK, SQLITE_ROW, SQLITE_DONE
from .results import ResultRange
from .values import bind_value


def _finalize_statement(lib, payload, handle):
    # A plainly closed connection had no statements left; a zombie one
    # (close_v2) stays valid until its statements are finalized.
    if payload.handle is not None or payload.zombie:
        lib.sqlite3_finalize(handle)


class Statement:
    """A prepared statement owned by a :class:`~litecursor.Connection`.

    SQL made only of whitespace or comments prepares to an empty statement:
    it binds nothing and executes to an empty result.
    """

    def __init__(self, connection, sql):
        self._connection = connection
        self._lib = connection._lib
        self.sql = sql

        db = connection._require_open()
        stmt_ptr = ctypes.c_void_p()
        encoded = sql.encode("utf-8")
        res = self._lib.sqlite3_prepare_v2(db, encoded, len(encoded), ctypes.byref(stmt_ptr), None)
        if res != SQLITE_OK:
            raise_error(db, res, sql=sql)

        self._handle = stmt_ptr.value
        self._closed = False
        # Bumped by reset() and execute(); results from older passes are stale.
        self._epoch = 0
        if self._handle:
            self._finalizer = weakref.finalize(
                self, _finalize_statement, self._lib, connection._payload, self._handle
            )
        else:
            self._finalizer = None
        connection._remember_statement(self)

    @property
    def handle(self):
        return self._handle

    @property
    def connection(self):
        return self._connection

    @property
    def closed(self):
        return self._closed

    def _require_handle(self):
        if self._closed:
            raise UseAfterClose("Statement closed")
        self._connection._require_open()
        return self._handle

    def close(self):
        if self._closed:
            return
        if self._finalizer is not None:
            self._finalizer()
        self._handle = None
        self._closed = True

    def bind(self, key, value):
        """Bind ``value`` to a 1-based position or a marker name such as ``:id``."""
        handle = self._require_handle()
        if isinstance(key, str):
            index = self.parameter_index(key)
            if index == 0:
                raise UnknownParameter(f"Unknown parameter {key!r} in {self.sql!r}")
        else:
            index = int(key)
        if handle is None:
            return
        res = bind_value(self._lib, handle, index, value)
        if res != SQLITE_OK:
            raise_error(self._connection.handle, res, sql=self.sql, params=[value])

    def bind_all(self, *values):
        for index, value in enumerate(values, 1):
            self.bind(index, value)

    def clear_bindings(self):
        handle = self._require_handle()
        if handle is None:
            return
        res = self._lib.sqlite3_clear_bindings(handle)
        if res != SQLITE_OK:
            raise_error(self._connection.handle, res, sql=self.sql)

    def reset(self):
        """Rewind the statement. Bindings are kept; earlier results go stale."""
        handle = self._require_handle()
        self._epoch += 1
        if handle is not None:
            # The return value repeats the error of the last step, which
            # that step has already raised.
            self._lib.sqlite3_reset(handle)

    def execute(self):
        """Start a new pass and return its (possibly empty) results."""
        self.reset()
        return ResultRange(self)

    def inject(self, *values):
        """Bind ``values``, run the statement once and rewind it."""
        self.bind_all(*values)
        self.execute()
        self.reset()

    def parameter_count(self):
        handle = self._require_handle()
        if handle is None:
            return 0
        return self._lib.sqlite3_bind_parameter_count(handle)

    def parameter_name(self, index):
        handle = self._require_handle()
        if handle is None:
            return None
        name = self._lib.sqlite3_bind_parameter_name(handle, index)
        return name.decode("utf-8") if name else None

    def parameter_index(self, name):
        handle = self._require_handle()
        if handle is None:
            return 0
        return self._lib.sqlite3_bind_parameter_index(handle, name.encode("utf-8"))

    def column_count(self):
        handle = self._require_handle()
        if handle is None:
            return 0
        return self._lib.sqlite3_column_count(handle)

    def column_names(self):
        handle = self._require_handle()
        if handle is None:
            return []
        names = []
        for i in range(self._lib.sqlite3_column_count(handle)):
            name = self._lib.sqlite3_column_name(handle, i)
            names.append(name.decode("utf-8") if name else "")
        return names

    def _step(self):
        take_failure()
        res = self._lib.sqlite3_step(self._handle)
        if res in (SQLITE_ROW, SQLITE_DONE):
            return res
        db = self._connection.handle
        cause = take_failure()
        if cause is not None:
            raise make_error(db, res, sql=self.sql, cls=FunctionEvaluationError) from cause
        raise_error(db, res, sql=self.sql)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self):
        state = "closed" if self._closed else "open"
        return f"<Statement {state} {self.sql!r}>"
