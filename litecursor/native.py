import ctypes
import ctypes.util
import os
from ctypes import CFUNCTYPE, POINTER, c_char_p, c_double, c_int, c_int64, c_void_p

# Result codes (must match sqlite3.h).
SQLITE_OK = 0
SQLITE_ERROR = 1
SQLITE_INTERNAL = 2
SQLITE_PERM = 3
SQLITE_ABORT = 4
SQLITE_BUSY = 5
SQLITE_LOCKED = 6
SQLITE_NOMEM = 7
SQLITE_READONLY = 8
SQLITE_INTERRUPT = 9
SQLITE_IOERR = 10
SQLITE_CORRUPT = 11
SQLITE_NOTFOUND = 12
SQLITE_FULL = 13
SQLITE_CANTOPEN = 14
SQLITE_PROTOCOL = 15
SQLITE_SCHEMA = 17
SQLITE_TOOBIG = 18
SQLITE_CONSTRAINT = 19
SQLITE_MISMATCH = 20
SQLITE_MISUSE = 21
SQLITE_RANGE = 25
SQLITE_NOTADB = 26
SQLITE_ROW = 100
SQLITE_DONE = 101

# Fundamental datatypes
SQLITE_INTEGER = 1
SQLITE_FLOAT = 2
SQLITE_TEXT = 3
SQLITE_BLOB = 4
SQLITE_NULL = 5

# sqlite3_open_v2() flags
SQLITE_OPEN_READONLY = 0x00000001
SQLITE_OPEN_READWRITE = 0x00000002
SQLITE_OPEN_CREATE = 0x00000004
SQLITE_OPEN_URI = 0x00000040
SQLITE_OPEN_MEMORY = 0x00000080
SQLITE_OPEN_NOMUTEX = 0x00008000
SQLITE_OPEN_FULLMUTEX = 0x00010000
SQLITE_OPEN_SHAREDCACHE = 0x00020000
SQLITE_OPEN_PRIVATECACHE = 0x00040000

# Text encoding and function flags
SQLITE_UTF8 = 1
SQLITE_DETERMINISTIC = 0x000000800

# Update hook operations (these are the authorizer action codes)
SQLITE_DELETE = 9
SQLITE_INSERT = 18
SQLITE_UPDATE = 23

# sqlite3_config() options taking no pointer argument
SQLITE_CONFIG_SINGLETHREAD = 1
SQLITE_CONFIG_MULTITHREAD = 2
SQLITE_CONFIG_SERIALIZED = 3

# Destructor sentinel: the engine makes its own copy before the call returns.
SQLITE_TRANSIENT = c_void_p(-1)

# Native callback signatures. Every callback receives the user-data pointer
# as an integer (or None), which is a key into the capsule registry.
SCALAR_FUNCTION = CFUNCTYPE(None, c_void_p, c_int, POINTER(c_void_p))
AGGREGATE_STEP = SCALAR_FUNCTION
AGGREGATE_FINAL = CFUNCTYPE(None, c_void_p)
DESTRUCTOR = CFUNCTYPE(None, c_void_p)
COLLATION = CFUNCTYPE(c_int, c_void_p, c_int, c_void_p, c_int, c_void_p)
UPDATE_HOOK = CFUNCTYPE(None, c_void_p, c_int, c_char_p, c_char_p, c_int64)
COMMIT_HOOK = CFUNCTYPE(c_int, c_void_p)
ROLLBACK_HOOK = CFUNCTYPE(None, c_void_p)
PROGRESS_HANDLER = CFUNCTYPE(c_int, c_void_p)

_lib = None


def _candidates():
    lib_path = os.environ.get("LITECURSOR_SQLITE_LIB")
    if lib_path:
        return [lib_path]

    candidates = []
    found = ctypes.util.find_library("sqlite3")
    if found:
        candidates.append(found)

    # Common shared library names across platforms
    candidates.extend([
        "libsqlite3.so.0",
        "libsqlite3.so",
        "libsqlite3.dylib",
        "sqlite3.dll",
        "winsqlite3.dll",
    ])

    # The interpreter's own sqlite3 extension either links against the
    # engine or embeds it; its symbols are reachable through its handle.
    try:
        import _sqlite3
    except ImportError:
        pass
    else:
        if getattr(_sqlite3, "__file__", None):
            candidates.append(_sqlite3.__file__)

    return candidates


def load_library():
    global _lib
    if _lib is not None:
        return _lib

    errors = []
    lib = None
    for path in _candidates():
        try:
            lib = ctypes.CDLL(path)
            lib.sqlite3_open_v2
        except (OSError, AttributeError) as e:
            errors.append(f"{path}: {e}")
            lib = None
            continue
        break

    if lib is None:
        raise RuntimeError(
            "Could not load the SQLite library. Set LITECURSOR_SQLITE_LIB env var. "
            f"Tried: {'; '.join(errors) or 'nothing'}"
        )

    _declare(lib)
    _lib = lib
    return _lib


def _declare(lib):
    # Library information and process-wide setup
    lib.sqlite3_libversion.argtypes = []
    lib.sqlite3_libversion.restype = c_char_p

    lib.sqlite3_libversion_number.argtypes = []
    lib.sqlite3_libversion_number.restype = c_int

    lib.sqlite3_threadsafe.argtypes = []
    lib.sqlite3_threadsafe.restype = c_int

    lib.sqlite3_initialize.argtypes = []
    lib.sqlite3_initialize.restype = c_int

    lib.sqlite3_shutdown.argtypes = []
    lib.sqlite3_shutdown.restype = c_int

    # sqlite3_config is variadic: arguments are passed as explicit ctypes values.
    lib.sqlite3_config.restype = c_int

    lib.sqlite3_complete.argtypes = [c_char_p]
    lib.sqlite3_complete.restype = c_int

    lib.sqlite3_free.argtypes = [c_void_p]
    lib.sqlite3_free.restype = None

    lib.sqlite3_errstr.argtypes = [c_int]
    lib.sqlite3_errstr.restype = c_char_p

    # Connections
    lib.sqlite3_open_v2.argtypes = [c_char_p, POINTER(c_void_p), c_int, c_char_p]
    lib.sqlite3_open_v2.restype = c_int

    lib.sqlite3_close.argtypes = [c_void_p]
    lib.sqlite3_close.restype = c_int

    if hasattr(lib, "sqlite3_close_v2"):
        lib.sqlite3_close_v2.argtypes = [c_void_p]
        lib.sqlite3_close_v2.restype = c_int

    lib.sqlite3_errmsg.argtypes = [c_void_p]
    lib.sqlite3_errmsg.restype = c_char_p

    lib.sqlite3_errcode.argtypes = [c_void_p]
    lib.sqlite3_errcode.restype = c_int

    lib.sqlite3_last_insert_rowid.argtypes = [c_void_p]
    lib.sqlite3_last_insert_rowid.restype = c_int64

    lib.sqlite3_changes.argtypes = [c_void_p]
    lib.sqlite3_changes.restype = c_int

    lib.sqlite3_total_changes.argtypes = [c_void_p]
    lib.sqlite3_total_changes.restype = c_int

    lib.sqlite3_get_autocommit.argtypes = [c_void_p]
    lib.sqlite3_get_autocommit.restype = c_int

    lib.sqlite3_db_filename.argtypes = [c_void_p, c_char_p]
    lib.sqlite3_db_filename.restype = c_char_p

    lib.sqlite3_db_readonly.argtypes = [c_void_p, c_char_p]
    lib.sqlite3_db_readonly.restype = c_int

    # Optional: only in builds with SQLITE_ENABLE_COLUMN_METADATA
    if hasattr(lib, "sqlite3_table_column_metadata"):
        lib.sqlite3_table_column_metadata.argtypes = [
            c_void_p, c_char_p, c_char_p, c_char_p,
            POINTER(c_char_p), POINTER(c_char_p),
            POINTER(c_int), POINTER(c_int), POINTER(c_int),
        ]
        lib.sqlite3_table_column_metadata.restype = c_int

    # Optional: absent in builds with SQLITE_OMIT_LOAD_EXTENSION
    if hasattr(lib, "sqlite3_enable_load_extension"):
        lib.sqlite3_enable_load_extension.argtypes = [c_void_p, c_int]
        lib.sqlite3_enable_load_extension.restype = c_int

    if hasattr(lib, "sqlite3_load_extension"):
        lib.sqlite3_load_extension.argtypes = [c_void_p, c_char_p, c_char_p, POINTER(c_void_p)]
        lib.sqlite3_load_extension.restype = c_int

    # Statements
    lib.sqlite3_prepare_v2.argtypes = [c_void_p, c_char_p, c_int, POINTER(c_void_p), POINTER(c_void_p)]
    lib.sqlite3_prepare_v2.restype = c_int

    lib.sqlite3_finalize.argtypes = [c_void_p]
    lib.sqlite3_finalize.restype = c_int

    lib.sqlite3_reset.argtypes = [c_void_p]
    lib.sqlite3_reset.restype = c_int

    lib.sqlite3_clear_bindings.argtypes = [c_void_p]
    lib.sqlite3_clear_bindings.restype = c_int

    lib.sqlite3_step.argtypes = [c_void_p]
    lib.sqlite3_step.restype = c_int

    # Bindings
    lib.sqlite3_bind_null.argtypes = [c_void_p, c_int]
    lib.sqlite3_bind_null.restype = c_int

    lib.sqlite3_bind_int64.argtypes = [c_void_p, c_int, c_int64]
    lib.sqlite3_bind_int64.restype = c_int

    lib.sqlite3_bind_double.argtypes = [c_void_p, c_int, c_double]
    lib.sqlite3_bind_double.restype = c_int

    lib.sqlite3_bind_text.argtypes = [c_void_p, c_int, c_char_p, c_int, c_void_p]
    lib.sqlite3_bind_text.restype = c_int

    lib.sqlite3_bind_blob.argtypes = [c_void_p, c_int, c_char_p, c_int, c_void_p]
    lib.sqlite3_bind_blob.restype = c_int

    lib.sqlite3_bind_parameter_count.argtypes = [c_void_p]
    lib.sqlite3_bind_parameter_count.restype = c_int

    lib.sqlite3_bind_parameter_name.argtypes = [c_void_p, c_int]
    lib.sqlite3_bind_parameter_name.restype = c_char_p

    lib.sqlite3_bind_parameter_index.argtypes = [c_void_p, c_char_p]
    lib.sqlite3_bind_parameter_index.restype = c_int

    # Columns
    lib.sqlite3_column_count.argtypes = [c_void_p]
    lib.sqlite3_column_count.restype = c_int

    lib.sqlite3_column_name.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_name.restype = c_char_p

    lib.sqlite3_column_decltype.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_decltype.restype = c_char_p

    for name in ("sqlite3_column_database_name", "sqlite3_column_table_name", "sqlite3_column_origin_name"):
        if hasattr(lib, name):
            func = getattr(lib, name)
            func.argtypes = [c_void_p, c_int]
            func.restype = c_char_p

    lib.sqlite3_column_type.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_type.restype = c_int

    lib.sqlite3_column_int64.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_int64.restype = c_int64

    lib.sqlite3_column_double.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_double.restype = c_double

    # Text and blob accessors return raw pointers; the length comes from
    # sqlite3_column_bytes, called after the pointer accessor.
    lib.sqlite3_column_text.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_text.restype = c_void_p

    lib.sqlite3_column_blob.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_blob.restype = c_void_p

    lib.sqlite3_column_bytes.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_bytes.restype = c_int

    # Function arguments (sqlite3_value*)
    lib.sqlite3_value_type.argtypes = [c_void_p]
    lib.sqlite3_value_type.restype = c_int

    lib.sqlite3_value_int64.argtypes = [c_void_p]
    lib.sqlite3_value_int64.restype = c_int64

    lib.sqlite3_value_double.argtypes = [c_void_p]
    lib.sqlite3_value_double.restype = c_double

    lib.sqlite3_value_text.argtypes = [c_void_p]
    lib.sqlite3_value_text.restype = c_void_p

    lib.sqlite3_value_blob.argtypes = [c_void_p]
    lib.sqlite3_value_blob.restype = c_void_p

    lib.sqlite3_value_bytes.argtypes = [c_void_p]
    lib.sqlite3_value_bytes.restype = c_int

    # Function results (sqlite3_context*)
    lib.sqlite3_user_data.argtypes = [c_void_p]
    lib.sqlite3_user_data.restype = c_void_p

    lib.sqlite3_aggregate_context.argtypes = [c_void_p, c_int]
    lib.sqlite3_aggregate_context.restype = c_void_p

    lib.sqlite3_result_null.argtypes = [c_void_p]
    lib.sqlite3_result_null.restype = None

    lib.sqlite3_result_int64.argtypes = [c_void_p, c_int64]
    lib.sqlite3_result_int64.restype = None

    lib.sqlite3_result_double.argtypes = [c_void_p, c_double]
    lib.sqlite3_result_double.restype = None

    lib.sqlite3_result_text.argtypes = [c_void_p, c_char_p, c_int, c_void_p]
    lib.sqlite3_result_text.restype = None

    lib.sqlite3_result_blob.argtypes = [c_void_p, c_char_p, c_int, c_void_p]
    lib.sqlite3_result_blob.restype = None

    lib.sqlite3_result_error.argtypes = [c_void_p, c_char_p, c_int]
    lib.sqlite3_result_error.restype = None

    lib.sqlite3_result_error_nomem.argtypes = [c_void_p]
    lib.sqlite3_result_error_nomem.restype = None

    # Registration. Callback parameters are declared as plain pointers; the
    # callers pass pre-cast CFUNCTYPE objects or None.
    lib.sqlite3_create_function_v2.argtypes = [
        c_void_p, c_char_p, c_int, c_int, c_void_p,
        c_void_p, c_void_p, c_void_p, c_void_p,
    ]
    lib.sqlite3_create_function_v2.restype = c_int

    lib.sqlite3_create_collation_v2.argtypes = [c_void_p, c_char_p, c_int, c_void_p, c_void_p, c_void_p]
    lib.sqlite3_create_collation_v2.restype = c_int

    # Hooks return the previous user-data pointer so it can be released.
    lib.sqlite3_update_hook.argtypes = [c_void_p, c_void_p, c_void_p]
    lib.sqlite3_update_hook.restype = c_void_p

    lib.sqlite3_commit_hook.argtypes = [c_void_p, c_void_p, c_void_p]
    lib.sqlite3_commit_hook.restype = c_void_p

    lib.sqlite3_rollback_hook.argtypes = [c_void_p, c_void_p, c_void_p]
    lib.sqlite3_rollback_hook.restype = c_void_p

    lib.sqlite3_progress_handler.argtypes = [c_void_p, c_int, c_void_p, c_void_p]
    lib.sqlite3_progress_handler.restype = None


def errmsg(db_handle):
    lib = load_library()
    msg = lib.sqlite3_errmsg(db_handle)
    return msg.decode("utf-8", errors="replace") if msg else ""


def errstr(code):
    lib = load_library()
    msg = lib.sqlite3_errstr(code)
    return msg.decode("utf-8", errors="replace") if msg else f"Unknown error {code}"


def is_64bit_int(value):
    return -(1 << 63) <= value < (1 << 63)


