import os
import pytest
from entql.connection import connect

from tests.entities import create_tables


@pytest.fixture(scope="function")
def setup_db(request):
    """Setup a temporary file SQLite database for each test."""
    os.makedirs("/tmp/entql-tests", exist_ok=True)
    path = f"/tmp/entql-tests/test-{request.function.__module__}-{request.function.__name__}.sqlite3"
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    connect(f"sqlite:///{path}")
    yield path


@pytest.fixture(scope="function")
def tables(setup_db):
    """Same as setup_db, with the tables of tests/entities.py created."""
    create_tables()
    yield setup_db
