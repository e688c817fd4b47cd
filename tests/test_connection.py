import gc
import os

import pytest
import litecursor
from litecursor.callbacks import registry
from litecursor.connection import _Payload, _close_connection

from conftest import has_symbol


def test_open_failure(tmp_path):
    missing = str(tmp_path / "no" / "such" / "dir" / "x.db")
    with pytest.raises(litecursor.EngineError) as excinfo:
        litecursor.connect(missing)
    assert excinfo.value.code == 14

def test_open_read_only_missing_file(tmp_path):
    with pytest.raises(litecursor.EngineError):
        litecursor.connect(str(tmp_path / "x.db"), litecursor.SQLITE_OPEN_READONLY)

def test_close_is_idempotent(db_path):
    conn = litecursor.connect(db_path)
    conn.close()
    conn.close()
    assert conn.closed
    assert conn.handle is None
    assert conn.error_code == 0

def test_use_after_close(db_path):
    conn = litecursor.connect(db_path)
    conn.close()
    with pytest.raises(litecursor.UseAfterClose):
        conn.prepare("SELECT 1")
    with pytest.raises(litecursor.UseAfterClose):
        conn.last_insert_rowid
    with pytest.raises(litecursor.ProgrammingError):
        conn.create_function("f", lambda: 1)

def test_garbage_collected_connection_is_closed(db_path):
    gc.collect()
    live = len(registry)
    conn = litecursor.connect(db_path)
    conn.create_function("f", lambda: 1)
    stmt = conn.prepare("SELECT f()")
    assert stmt.execute().one_value(int) == 1
    del stmt
    del conn
    gc.collect()
    assert len(registry) == live

class _StubLib:
    def __init__(self, result):
        self.result = result
        self.calls = []

    def sqlite3_close(self, handle):
        self.calls.append(handle)
        return self.result


def test_failed_finalizer_close_keeps_handle():
    stub = _StubLib(5)
    payload = _Payload(stub, 1234)
    key = registry.add(object())
    payload.hooks["commit"] = key
    _close_connection(payload)
    assert stub.calls == [1234]
    assert payload.handle == 1234
    assert not payload.zombie
    assert key in registry
    registry.release(key)

def test_finalizer_close_releases_hooks():
    stub = _StubLib(0)
    payload = _Payload(stub, 1234)
    key = registry.add(object())
    payload.hooks["commit"] = key
    _close_connection(payload)
    _close_connection(payload)
    assert stub.calls == [1234]
    assert payload.handle is None
    assert key not in registry

def test_attached_file_path(db_path, db):
    with litecursor.connect(db_path) as conn:
        assert os.path.realpath(conn.attached_file_path()) == os.path.realpath(db_path)
        assert conn.attached_file_path("nope") is None
    assert db.attached_file_path() is None

def test_is_read_only(db_path):
    with litecursor.connect(db_path) as conn:
        conn.execute("CREATE TABLE t (v)")
    with litecursor.connect(db_path, litecursor.SQLITE_OPEN_READONLY) as conn:
        assert conn.is_read_only()
        with pytest.raises(litecursor.ProgrammingError):
            conn.is_read_only("nope")
    with litecursor.connect(db_path) as conn:
        assert not conn.is_read_only()

def test_read_only_write_fails(db_path):
    with litecursor.connect(db_path) as conn:
        conn.execute("CREATE TABLE t (v)")
    with litecursor.connect(db_path, litecursor.SQLITE_OPEN_READONLY) as conn:
        with pytest.raises(litecursor.EngineError) as excinfo:
            conn.execute("INSERT INTO t VALUES (1)")
        assert excinfo.value.code == 8

@pytest.mark.skipif(not has_symbol("sqlite3_table_column_metadata"), reason="SQLite built without column metadata")
def test_table_column_metadata(db):
    db.execute("CREATE TABLE test (id INTEGER PRIMARY KEY AUTOINCREMENT, val FLOAT NOT NULL)")
    assert db.table_column_metadata("test", "id") == litecursor.ColumnMetadata(
        "INTEGER", "BINARY", False, True, True
    )
    assert db.table_column_metadata("test", "val") == litecursor.ColumnMetadata(
        "FLOAT", "BINARY", True, False, False
    )
    with pytest.raises(litecursor.EngineError):
        db.table_column_metadata("test", "missing")

@pytest.mark.skipif(not has_symbol("sqlite3_load_extension"), reason="SQLite built without extension loading")
def test_load_missing_extension(db, tmp_path):
    db.enable_load_extension(True)
    with pytest.raises(litecursor.EngineError):
        db.load_extension(str(tmp_path / "no_such_extension"))
    db.enable_load_extension(False)

def test_error_code(db):
    with pytest.raises(litecursor.EngineError):
        db.execute("SELECT * FROM missing_table")
    assert db.error_code == 1

def test_config_after_initialization_fails(db):
    with pytest.raises(litecursor.EngineError) as excinfo:
        litecursor.config(litecursor.SQLITE_CONFIG_SERIALIZED)
    assert excinfo.value.code == 21

def test_initialize_is_harmless(db):
    litecursor.initialize()
