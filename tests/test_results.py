import pytest
import litecursor


@pytest.fixture
def numbers(db):
    db.execute("CREATE TABLE n (i INTEGER, sq INTEGER, name TEXT)")
    stmt = db.prepare("INSERT INTO n VALUES (?, ?, ?)")
    for i in range(1, 4):
        stmt.inject(i, i * i, f"n{i}")
    return db

def test_iteration_in_engine_order(numbers):
    results = numbers.execute("SELECT i, sq FROM n ORDER BY i")
    assert [row.astuple() for row in results] == [(1, 1), (2, 4), (3, 9)]
    assert results.empty

def test_front_and_advance(numbers):
    results = numbers.execute("SELECT i FROM n ORDER BY i")
    assert results.front().peek(0, int) == 1
    results.advance()
    assert results.front().peek(0, int) == 2
    results.advance()
    results.advance()
    assert results.empty
    with pytest.raises(litecursor.NoRowsAvailable):
        results.front()
    with pytest.raises(litecursor.NoRowsAvailable):
        results.advance()
    # Stays exhausted; no step restarts the statement.
    assert results.empty
    with pytest.raises(litecursor.NoRowsAvailable):
        results.front()
    with pytest.raises(litecursor.NoRowsAvailable):
        results.advance()
    assert results.empty
    assert list(results) == []

def test_advance_after_next_does_not_skip(numbers):
    results = numbers.execute("SELECT i FROM n ORDER BY i")
    assert next(results).peek(0, int) == 1
    results.advance()
    assert next(results).peek(0, int) == 2
    assert next(results).peek(0, int) == 3
    with pytest.raises(StopIteration):
        next(results)

def test_empty_result(db):
    results = db.execute("SELECT 1 WHERE 0")
    assert results.empty
    assert list(results) == []
    with pytest.raises(litecursor.NoRowsAvailable):
        results.one_value()

def test_row_is_stale_after_advance(numbers):
    results = numbers.execute("SELECT i FROM n ORDER BY i")
    row = results.front()
    results.advance()
    with pytest.raises(litecursor.StaleResultError):
        row.peek(0)
    with pytest.raises(litecursor.StaleResultError):
        len(row)

def test_results_stale_after_reset(numbers):
    stmt = numbers.prepare("SELECT i FROM n ORDER BY i")
    first = stmt.execute()
    row = first.front()
    second = stmt.execute()
    with pytest.raises(litecursor.StaleResultError):
        first.front()
    with pytest.raises(litecursor.StaleResultError):
        row[0]
    assert second.one_value(int) == 1

def test_access_by_name(numbers):
    row = numbers.execute("SELECT i, sq, name FROM n WHERE i = 2").front()
    assert row["sq"] == 4
    assert row.peek("name", str) == "n2"
    assert row.asdict() == {"i": 2, "sq": 4, "name": "n2"}
    with pytest.raises(litecursor.UnknownColumnName):
        row["missing"]

def test_invalid_index(numbers):
    row = numbers.execute("SELECT i, sq FROM n").front()
    with pytest.raises(litecursor.InvalidColumnIndex):
        row[2]
    with pytest.raises(IndexError):
        row.peek(-3)
    assert row[-1] == row[1]

def test_double_ended_narrowing(db):
    row = db.execute("SELECT 1 AS a, 2 AS b, 3 AS c, 4 AS d").front()
    assert len(row) == 4
    row.pop_front()
    row.pop_back()
    assert len(row) == 2
    assert row.front == 2
    assert row.back == 3
    assert row[0] == 2
    assert row.column_name(0) == "b"
    # Names outside the current bounds are not found.
    with pytest.raises(litecursor.UnknownColumnName):
        row["a"]

    saved = row.save()
    row.pop_front()
    assert len(saved) == 2
    assert len(row) == 1
    row.pop_front()
    assert row.empty
    with pytest.raises(litecursor.InvalidColumnIndex):
        row.pop_back()

def test_column_metadata(db):
    db.execute("CREATE TABLE t (id INTEGER, price FLOAT)")
    db.execute("INSERT INTO t VALUES (1, 2.5)")
    row = db.execute("SELECT id, price, 'x' AS lit FROM t").front()
    assert row.column_type(0) == litecursor.SqliteType.INTEGER
    assert row.column_type("price") == litecursor.SqliteType.FLOAT
    assert row.column_declared_type_name(0) == "INTEGER"
    assert row.column_declared_type_name("lit") is None

@pytest.mark.skipif(
    not hasattr(litecursor.native.load_library(), "sqlite3_column_table_name"),
    reason="SQLite built without column metadata",
)
def test_column_origin(db):
    db.execute("CREATE TABLE t (id INTEGER)")
    db.execute("INSERT INTO t VALUES (1)")
    row = db.execute("SELECT id AS ident FROM t").front()
    assert row.column_name(0) == "ident"
    assert row.column_database_name(0) == "main"
    assert row.column_table_name(0) == "t"
    assert row.column_origin_name(0) == "id"

def test_one_value(db):
    assert db.execute("SELECT 'x', 2").one_value() == "x"
    assert db.execute("SELECT '12'").one_value(int) == 12

def test_results_after_connection_close(db_path):
    conn = litecursor.connect(db_path)
    results = conn.execute("SELECT 1")
    conn.close()
    with pytest.raises(litecursor.UseAfterClose):
        results.front()
