import collections.abc
import json

from .native import (
    load_library, errmsg, errstr,
    SQLITE_ABORT, SQLITE_INTERRUPT, SQLITE_CONSTRAINT,
)


# DB-API 2.0 hierarchy
class Error(Exception):
    pass

class Warning(Exception):
    pass

class InterfaceError(Error):
    pass

class DatabaseError(Error):
    pass

class InternalError(DatabaseError):
    pass

class OperationalError(DatabaseError):
    pass

class ProgrammingError(DatabaseError):
    pass

class IntegrityError(DatabaseError):
    pass

class DataError(DatabaseError):
    pass

class NotSupportedError(DatabaseError):
    pass


class EngineError(DatabaseError):
    """An error reported by the engine.

    ``code`` is the engine result code, ``message`` the engine's own text and
    ``sql`` the statement being prepared or run, when known.
    """

    def __init__(self, code, message, sql=None, params=None):
        self.code = int(code)
        self.message = message
        self.sql = sql
        self.params = params
        text = f"error {self.code}: {message}"
        if sql is not None:
            ctx = {
                "native_code": self.code,
                "sql": sql,
                "params": _format_params_for_error(params),
            }
            text = text + "\nContext: " + json.dumps(ctx, ensure_ascii=False)
        super().__init__(text)


class OperationAborted(EngineError, OperationalError):
    pass

class ConstraintViolation(EngineError, IntegrityError):
    pass

class FunctionEvaluationError(EngineError):
    pass


class UseAfterClose(ProgrammingError):
    pass

class UnknownParameter(ProgrammingError, LookupError):
    pass

class UnknownColumnName(ProgrammingError, LookupError):
    pass

class InvalidColumnIndex(ProgrammingError, IndexError):
    pass

class NoRowsAvailable(ProgrammingError):
    pass

class UnsupportedType(ProgrammingError, TypeError):
    pass

class StaleResultError(ProgrammingError):
    pass


def _format_value_for_error(v, *, max_str=200, max_bytes=64):
    if v is None:
        return None
    if isinstance(v, (bool, int, float)):
        return v
    if isinstance(v, (bytes, bytearray, memoryview)):
        b = bytes(v)
        if len(b) <= max_bytes:
            return {"_type": "bytes", "hex": b.hex(), "len": len(b)}
        return {"_type": "bytes", "hex_prefix": b[:max_bytes].hex(), "len": len(b)}
    if isinstance(v, str):
        if len(v) <= max_str:
            return v
        return v[:max_str] + "…"
    s = repr(v)
    if len(s) <= max_str:
        return s
    return s[:max_str] + "…"


def _format_params_for_error(params, *, max_items=50):
    if params is None:
        return None
    if isinstance(params, collections.abc.Mapping):
        out = {}
        for i, (k, v) in enumerate(params.items()):
            if i >= max_items:
                out["_truncated"] = True
                break
            out[str(k)] = _format_value_for_error(v)
        return out
    try:
        seq = list(params)
    except TypeError:
        return _format_value_for_error(params)
    if len(seq) > max_items:
        seq = seq[:max_items] + ["<truncated>"]
    return [_format_value_for_error(v) for v in seq]


def error_class(code):
    primary = code & 0xFF
    if primary in (SQLITE_ABORT, SQLITE_INTERRUPT):
        return OperationAborted
    if primary == SQLITE_CONSTRAINT:
        return ConstraintViolation
    return EngineError


def make_error(db_handle, code=None, *, sql=None, params=None, cls=None):
    lib = load_library()
    if db_handle:
        if code is None:
            code = lib.sqlite3_errcode(db_handle)
        msg_str = errmsg(db_handle) or errstr(code)
    else:
        if code is None:
            code = 0
        msg_str = errstr(code)
    if cls is None:
        cls = error_class(code)
    return cls(code, msg_str, sql=sql, params=params)


def raise_error(db_handle, code=None, *, sql=None, params=None):
    raise make_error(db_handle, code, sql=sql, params=params)
