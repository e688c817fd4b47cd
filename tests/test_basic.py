import pytest
import litecursor


def test_connect(db_path):
    conn = litecursor.connect(db_path)
    assert conn is not None
    assert not conn.closed
    conn.close()
    assert conn.closed

def test_ddl_and_insert(db_path):
    conn = litecursor.connect(db_path)
    conn.execute("CREATE TABLE foo (id INTEGER, name TEXT)")
    conn.execute("INSERT INTO foo VALUES (1, 'alice')")
    conn.execute("INSERT INTO foo VALUES (2, 'bob')")
    conn.close()

    # Reopen and verify
    conn = litecursor.connect(db_path)
    rows = [row.astuple() for row in conn.execute("SELECT * FROM foo ORDER BY id")]
    assert rows == [(1, "alice"), (2, "bob")]
    conn.close()

def test_parameters(db):
    db.execute("CREATE TABLE foo (id INTEGER, val TEXT)")
    db.execute("INSERT INTO foo VALUES (?, ?)", 1, "a")

    stmt = db.prepare("INSERT INTO foo VALUES (:id, :val)")
    stmt.bind(":val", "b")
    stmt.bind(":id", 2)
    stmt.execute()

    assert db.execute("SELECT val FROM foo WHERE id = ?", 1).one_value(str) == "a"
    assert db.execute("SELECT val FROM foo WHERE id = ?", 2).one_value(str) == "b"

def test_last_insert_rowid_and_changes(db):
    db.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, v TEXT)")
    db.execute("INSERT INTO t (v) VALUES ('x')")
    db.execute("INSERT INTO t (v) VALUES ('y')")
    assert db.last_insert_rowid == 2
    assert db.changes == 1

    db.execute("UPDATE t SET v = 'z'")
    assert db.changes == 2
    assert db.total_changes == 4

def test_transactions(db):
    db.execute("CREATE TABLE t (v INTEGER)")
    assert not db.in_transaction

    db.begin()
    assert db.in_transaction
    db.execute("INSERT INTO t VALUES (1)")
    db.rollback()
    assert not db.in_transaction
    assert db.execute("SELECT count(*) FROM t").one_value(int) == 0

    db.begin()
    db.execute("INSERT INTO t VALUES (1)")
    db.commit()
    assert db.execute("SELECT count(*) FROM t").one_value(int) == 1

def test_run_script(db):
    db.run("""CREATE TABLE test1 (val INTEGER);
              CREATE TABLE test2 (val FLOAT);
              DROP TABLE test1;
              DROP TABLE test2;""")
    assert db.execute("SELECT count(*) FROM sqlite_master").one_value(int) == 0

def test_run_with_handler(db):
    seen = []

    def handler(results):
        seen.append(None if results.empty else results.one_value())

    db.run("SELECT 1; CREATE TABLE t (v); SELECT 'two';", handler)
    assert seen == [1, None, "two"]

def test_run_stops_when_handler_returns_false(db):
    db.run("CREATE TABLE t (v)")
    count = []

    def handler(results):
        count.append(1)
        return False

    db.run("INSERT INTO t VALUES (1); INSERT INTO t VALUES (2);", handler)
    assert len(count) == 1
    assert db.execute("SELECT count(*) FROM t").one_value(int) == 1

def test_execute_runs_only_first_statement(db):
    db.execute("CREATE TABLE t (v); INSERT INTO t VALUES (1)")
    assert db.execute("SELECT count(*) FROM t").one_value(int) == 0

def test_context_manager_closes(db_path):
    with litecursor.connect(db_path) as conn:
        conn.execute("CREATE TABLE t (v)")
    assert conn.closed
    with pytest.raises(litecursor.UseAfterClose):
        conn.execute("SELECT 1")

def test_library_information():
    assert litecursor.version_string().startswith("3.")
    assert litecursor.version_number() >= 3008003
    assert isinstance(litecursor.thread_safe(), bool)
