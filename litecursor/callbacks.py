"""Marshalling between engine callbacks and Python callables.

The engine never holds a Python object. Every registered callable is stored in
a process-wide :class:`CapsuleRegistry` and the engine receives only the
integer key as its user-data pointer. A small fixed set of trampolines turns
that key back into the callable, converts arguments and results by type tag,
and keeps Python exceptions from crossing into native code.
"""

import ctypes
import inspect
import logging
import threading
import types
import typing
from ctypes import POINTER, c_int64, c_void_p
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .exceptions import UnsupportedType
from .native import (
    load_library, is_64bit_int,
    SQLITE_TRANSIENT,
    SCALAR_FUNCTION, AGGREGATE_STEP, AGGREGATE_FINAL, DESTRUCTOR, COLLATION,
    UPDATE_HOOK, COMMIT_HOOK, ROLLBACK_HOOK, PROGRESS_HANDLER,
)
from .values import ColumnData, is_supported_type, read_value

_logger = logging.getLogger(__name__)


class CapsuleRegistry:
    """Lock-protected table of live callback capsules keyed by positive ints."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: Dict[int, Any] = {}
        self._next_key = 1
        self.released = 0

    def add(self, capsule: Any) -> int:
        with self._lock:
            key = self._next_key
            self._next_key += 1
            self._items[key] = capsule
            return key

    def get(self, key: Optional[int]) -> Any:
        with self._lock:
            return self._items[key]

    def release(self, key: Optional[int]) -> bool:
        """Drop the capsule for ``key``; a second release is a no-op."""
        if not key:
            return False
        with self._lock:
            if self._items.pop(key, None) is None:
                return False
            self.released += 1
            return True

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


registry = CapsuleRegistry()


@dataclass(frozen=True)
class FunctionCapsule:
    name: str
    func: Callable[..., Any]
    arg_types: List[Optional[type]]


@dataclass(frozen=True)
class AggregateCapsule:
    name: str
    factory: Callable[[], Any]
    arg_types: List[Optional[type]]


@dataclass(frozen=True)
class CollationCapsule:
    name: str
    compare: Callable[[str, str], int]


@dataclass(frozen=True)
class HookCapsule:
    kind: str
    func: Callable[..., Any]


_UNION_ORIGINS = (typing.Union,) + ((types.UnionType,) if hasattr(types, "UnionType") else ())


def _unwrap_optional(hint: Any) -> Any:
    if typing.get_origin(hint) in _UNION_ORIGINS:
        args = [a for a in typing.get_args(hint) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return hint


def signature_types(func: Callable[..., Any], skip_first: bool = False) -> List[Optional[type]]:
    """Return the type tag for each positional parameter of ``func``.

    Unannotated parameters read the natural value (tag ``None``). Variadic
    parameters, required keyword-only parameters and unsupported annotations
    raise :class:`UnsupportedType`.
    """
    try:
        sig = inspect.signature(func)
    except (TypeError, ValueError) as e:
        raise UnsupportedType(f"Cannot inspect {func!r}: {e}") from e
    target = func if inspect.isroutine(func) or inspect.isclass(func) else type(func).__call__
    try:
        hints = typing.get_type_hints(target)
    except Exception as e:
        raise UnsupportedType(f"Cannot resolve annotations of {func!r}: {e}") from e

    params = list(sig.parameters.values())
    if skip_first:
        params = params[1:]

    tags: List[Optional[type]] = []
    for p in params:
        if p.kind in (p.VAR_POSITIONAL, p.VAR_KEYWORD):
            raise UnsupportedType(f"{func!r} must have a fixed number of parameters")
        if p.kind == p.KEYWORD_ONLY:
            if p.default is p.empty:
                raise UnsupportedType(f"{func!r} has a required keyword-only parameter {p.name!r}")
            continue
        hint = _unwrap_optional(hints.get(p.name))
        if hint is Any:
            hint = None
        if not is_supported_type(hint):
            raise UnsupportedType(f"Unsupported parameter type {hint!r} for {p.name!r}")
        tags.append(hint)

    if "return" in hints:
        ret = _unwrap_optional(hints["return"])
        if ret is not type(None) and ret is not Any and not is_supported_type(ret):
            raise UnsupportedType(f"Unsupported return type {ret!r}")
    return tags


_failure = threading.local()


def _record_failure(exc: BaseException) -> None:
    _failure.exc = exc


def take_failure() -> Optional[BaseException]:
    """Return and clear the exception raised by the last failing user function."""
    exc = getattr(_failure, "exc", None)
    _failure.exc = None
    return exc


def set_result(lib, ctx, value: Any) -> None:
    if isinstance(value, ColumnData):
        value = value.value
    if value is None:
        lib.sqlite3_result_null(ctx)
    elif isinstance(value, (bool, int)):
        value = int(value)
        if not is_64bit_int(value):
            raise OverflowError(f"Integer {value} does not fit in 64 bits")
        lib.sqlite3_result_int64(ctx, value)
    elif isinstance(value, float):
        lib.sqlite3_result_double(ctx, value)
    elif isinstance(value, str):
        encoded = value.encode("utf-8")
        lib.sqlite3_result_text(ctx, encoded, len(encoded), SQLITE_TRANSIENT)
    elif isinstance(value, (bytes, bytearray, memoryview)):
        data = bytes(value)
        lib.sqlite3_result_blob(ctx, data, len(data), SQLITE_TRANSIENT)
    else:
        raise UnsupportedType(f"Unsupported result type: {type(value).__name__}")


def _report(lib, ctx, message: str, exc: BaseException) -> None:
    _record_failure(exc)
    encoded = message.encode("utf-8")
    lib.sqlite3_result_error(ctx, encoded, len(encoded))


def _convert_args(lib, arg_types, argc, argv) -> list:
    return [read_value(lib, argv[i], arg_types[i]) for i in range(argc)]


@SCALAR_FUNCTION
def _x_func(ctx, argc, argv):
    lib = load_library()
    name = "?"
    try:
        capsule = registry.get(lib.sqlite3_user_data(ctx))
        name = capsule.name
        args = _convert_args(lib, capsule.arg_types, argc, argv)
        set_result(lib, ctx, capsule.func(*args))
    except Exception as e:
        _report(lib, ctx, f"error in function {name}(): {e}", e)


@AGGREGATE_STEP
def _x_step(ctx, argc, argv):
    lib = load_library()
    name = "?"
    try:
        capsule = registry.get(lib.sqlite3_user_data(ctx))
        name = capsule.name
        slot_ptr = lib.sqlite3_aggregate_context(ctx, ctypes.sizeof(c_int64))
        if not slot_ptr:
            lib.sqlite3_result_error_nomem(ctx)
            return
        slot = ctypes.cast(slot_ptr, POINTER(c_int64))
        if slot[0] == 0:
            instance = capsule.factory()
            slot[0] = registry.add(instance)
        else:
            instance = registry.get(slot[0])
        args = _convert_args(lib, capsule.arg_types, argc, argv)
        instance.accumulate(*args)
    except Exception as e:
        _report(lib, ctx, f"error in aggregate function {name}(): {e}", e)


@AGGREGATE_FINAL
def _x_final(ctx):
    lib = load_library()
    name = "?"
    key = 0
    slot_ptr = lib.sqlite3_aggregate_context(ctx, 0)
    if slot_ptr:
        key = ctypes.cast(slot_ptr, POINTER(c_int64))[0]
    try:
        capsule = registry.get(lib.sqlite3_user_data(ctx))
        name = capsule.name
        # No rows in the group: nothing was accumulated.
        instance = registry.get(key) if key else capsule.factory()
        set_result(lib, ctx, instance.result())
    except Exception as e:
        _report(lib, ctx, f"error in aggregate function {name}(): {e}", e)
    finally:
        registry.release(key)


@DESTRUCTOR
def _x_destroy(key):
    registry.release(key)


def _decode(raw: Optional[bytes]) -> str:
    return raw.decode("utf-8", errors="replace") if raw is not None else ""


@COLLATION
def _x_compare(key, len1, p1, len2, p2):
    try:
        capsule = registry.get(key)
        a = ctypes.string_at(p1, len1).decode("utf-8", errors="replace") if len1 else ""
        b = ctypes.string_at(p2, len2).decode("utf-8", errors="replace") if len2 else ""
        r = capsule.compare(a, b)
        if r < 0:
            return -1
        if r > 0:
            return 1
        return 0
    except Exception:
        _logger.exception("Collation raised; treating values as equal")
        return 0


@UPDATE_HOOK
def _x_update(key, op, db_name, table_name, rowid):
    try:
        registry.get(key).func(op, _decode(db_name), _decode(table_name), rowid)
    except Exception:
        _logger.exception("Update hook raised")


@COMMIT_HOOK
def _x_commit(key):
    try:
        return 1 if registry.get(key).func() else 0
    except Exception:
        _logger.exception("Commit hook raised; rolling back")
        return 1


@ROLLBACK_HOOK
def _x_rollback(key):
    try:
        registry.get(key).func()
    except Exception:
        _logger.exception("Rollback hook raised")


@PROGRESS_HANDLER
def _x_progress(key):
    try:
        return 1 if registry.get(key).func() else 0
    except Exception:
        _logger.exception("Progress handler raised; aborting statement")
        return 1


# Function pointers handed to the engine.
X_FUNC = ctypes.cast(_x_func, c_void_p)
X_STEP = ctypes.cast(_x_step, c_void_p)
X_FINAL = ctypes.cast(_x_final, c_void_p)
X_DESTROY = ctypes.cast(_x_destroy, c_void_p)
X_COMPARE = ctypes.cast(_x_compare, c_void_p)
X_UPDATE = ctypes.cast(_x_update, c_void_p)
X_COMMIT = ctypes.cast(_x_commit, c_void_p)
X_ROLLBACK = ctypes.cast(_x_rollback, c_void_p)
X_PROGRESS = ctypes.cast(_x_progress, c_void_p)
