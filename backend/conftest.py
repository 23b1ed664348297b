import pytest

from positional_db import PositionalDB


@pytest.fixture
def db():
    """PositionalDB en memoria con un campo de texto extra."""
    database = PositionalDB(":memory:", "str TEXT", block_size=20)
    yield database
    database.close()
