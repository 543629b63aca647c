import os
import tempfile
from datetime import date

import pytest

# Keep the module-level Library in api.py off the working-directory library.db
os.environ.setdefault("LIBRARY_DB_FILE", os.path.join(tempfile.gettempdir(), f"libdesk_test_{os.getpid()}.db"))

from libdesk.library import Library  # noqa: E402

TODAY = date(2025, 1, 10)


@pytest.fixture
def seed():
    """Small, consistent data set: book 2 has one overdue loan, book 3 one past loan."""
    return {
        "books": [
            {"id": 1, "title": "Dune", "author": "Frank Herbert", "genre": "Science Fiction",
             "isbn": "9780441172719", "year": 1965, "count": 1, "totalCopies": 1},
            {"id": 2, "title": "Emma", "author": "Jane Austen", "genre": "Romance",
             "isbn": "9780141439587", "year": 1815, "count": 2, "totalCopies": 3},
            {"id": 3, "title": "The Hobbit", "author": "J.R.R. Tolkien", "genre": "Fantasy",
             "isbn": "9780547928227", "year": 1937, "count": 2, "totalCopies": 2},
        ],
        "users": [
            {"id": "u1", "name": "Alice Johnson", "email": "alice@example.com",
             "phone": "555-0101", "memberSince": "2023-01-15"},
            {"id": "u2", "name": "Bob Smith", "email": "bob@example.com",
             "phone": "555-0102", "memberSince": "2023-03-22"},
        ],
        "borrows": [
            {"id": 10, "bookId": 2, "userId": "u2", "userName": "Bob Smith", "borrowDate": "2024-12-01",
             "dueDate": "2024-12-15", "returnDate": None, "status": "active"},
            {"id": 11, "bookId": 3, "userId": "u1", "userName": "Alice Johnson", "borrowDate": "2024-11-01",
             "dueDate": "2024-11-15", "returnDate": "2024-11-10", "status": "returned"},
        ],
    }


@pytest.fixture
def db_file(tmp_path, request):
    # One database file per test
    return str(tmp_path / f"test_{request.node.name}.db")


@pytest.fixture
def lib(db_file, seed):
    lib = Library(db_file=db_file, seed=seed, clock=lambda: TODAY)
    yield lib
    lib.close()


@pytest.fixture
def today():
    return TODAY
