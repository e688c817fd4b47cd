import pytest
import litecursor
from litecursor.native import load_library


def has_symbol(name):
    return hasattr(load_library(), name)


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "test.db")

@pytest.fixture
def db():
    conn = litecursor.connect(":memory:")
    yield conn
    conn.close()
