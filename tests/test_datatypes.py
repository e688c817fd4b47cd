import math

import pytest
import litecursor
from litecursor import ColumnData, SqliteType


def test_peek_conversions(db):
    row = db.execute("SELECT NULL, 42, 3.14, 'ABC', x'0102'").front()

    assert row.peek(0, int) == 0
    assert math.isnan(row.peek(0, float))
    assert row.peek(0, str) is None
    assert row.peek(0, bytes) is None

    assert row.peek(1, int) == 42
    assert row.peek(1, bool) is True
    assert row.peek(1, float) == 42.0
    assert row.peek(1, str) == "42"
    assert row.peek(1, bytes) == b"42"

    assert row.peek(2, int) == 3
    assert row.peek(2, float) == 3.14
    assert row.peek(2, str) == "3.14"

    assert row.peek(3, int) == 0
    assert row.peek(3, float) == 0.0
    assert row.peek(3, str) == "ABC"

    assert row.peek(4, bytes) == b"\x01\x02"

def test_natural_values(db):
    row = db.execute("SELECT NULL, 42, 3.5, 'ABC', x'0102'").front()
    assert row.astuple() == (None, 42, 3.5, "ABC", b"\x01\x02")
    assert [c.kind for c in row] == [
        SqliteType.NULL, SqliteType.INTEGER, SqliteType.FLOAT, SqliteType.TEXT, SqliteType.BLOB,
    ]
    assert row[0].is_null
    assert str(row[0]) == "NULL"

def test_named_parameters_round_trip(db):
    db.execute("CREATE TABLE t (i INTEGER, f FLOAT, t TEXT)")
    stmt = db.prepare("INSERT INTO t (i, f, t) VALUES (:i, @f, $t)")
    assert stmt.parameter_count() == 3
    assert stmt.parameter_name(2) == "@f"
    assert stmt.parameter_index("$t") == 3

    stmt.bind("$t", "text")
    stmt.bind(":i", 7)
    stmt.bind("@f", 2.5)
    stmt.execute()

    row = db.execute("SELECT i, f, t FROM t").front()
    assert row.peek(0, int) == 7
    assert row.peek(1, float) == 2.5
    assert row.peek(2, str) == "text"

def test_null_in_text_column(db):
    db.execute("CREATE TABLE t (v TEXT)")
    db.execute("INSERT INTO t VALUES (?)", None)
    row = db.execute("SELECT v FROM t").front()
    assert row.peek(0, str) is None
    assert row.peek(0, int) == 0
    assert math.isnan(row.peek(0, float))

@pytest.mark.parametrize("value", [
    0, -1, 2**63 - 1, -2**63, 1.5, -0.25, "", "héllo wörld", b"\x00\xffbinary",
])
def test_round_trip(db, value):
    got = db.execute("SELECT ?", value).one_value(type(value))
    assert got == value

def test_bool_binds_as_integer(db):
    assert db.execute("SELECT typeof(?), ?", True, False).front().astuple() == ("integer", 0)

def test_empty_blob_binds_null(db):
    assert db.execute("SELECT ? IS NULL", b"").one_value(bool) is True
    assert db.execute("SELECT ? IS NULL", bytearray(b"x")).one_value(bool) is False

def test_column_data_binds_its_value(db):
    assert db.execute("SELECT ?", ColumnData.from_value("abc")).one_value() == "abc"

def test_integer_overflow(db):
    stmt = db.prepare("SELECT ?")
    with pytest.raises(OverflowError):
        stmt.bind(1, 2**63)

def test_unsupported_type(db):
    stmt = db.prepare("SELECT ?")
    with pytest.raises(litecursor.UnsupportedType):
        stmt.bind(1, object())
    with pytest.raises(litecursor.UnsupportedType):
        db.execute("SELECT 1").front().peek(0, list)

def test_bind_out_of_range(db):
    stmt = db.prepare("SELECT ?")
    with pytest.raises(litecursor.EngineError) as excinfo:
        stmt.bind(5, 1)
    assert excinfo.value.code == 25
