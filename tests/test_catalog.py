import pytest

from libdesk.book import Book
from libdesk.catalog import filter_books, filter_members
from libdesk.errors import InvalidFilter
from libdesk.member import Member

BOOKS = [
    Book(1, "Dune", "Frank Herbert", "Science Fiction", "9780441172719", 1965, count=0, total_copies=1),
    Book(2, "Emma", "Jane Austen", "Romance", "9780141439587", 1815, count=2, total_copies=3),
    Book(3, "The Hobbit", "J.R.R. Tolkien", "Fantasy", "9780547928227", 1937, count=2, total_copies=2),
]
MEMBERS = [
    Member("u1", "Alice Johnson", "alice@example.com", "555-0101"),
    Member("u2", "Bob Smith", "bob@example.com", "555-0102"),
]


@pytest.mark.parametrize("query, expected", [
    ("", [1, 2, 3]),
    (None, [1, 2, 3]),
    ("HOBBIT", [3]),
    ("austen", [2]),
    ("9780441", [1]),
    ("  dune ", [1]),
    ("nothing", []),
])
def test_filter_books_by_query(query, expected):
    assert [b.id for b in filter_books(BOOKS, query)] == expected


def test_filter_books_by_availability():
    assert [b.id for b in filter_books(BOOKS, availability="available")] == [2, 3]
    # any copy out on loan counts as borrowed
    assert [b.id for b in filter_books(BOOKS, availability="borrowed")] == [1, 2]


def test_filter_books_combines_query_and_availability():
    assert filter_books(BOOKS, "dune", "available") == []


def test_filter_books_rejects_unknown_availability():
    with pytest.raises(InvalidFilter):
        filter_books(BOOKS, availability="lost")


def test_filter_members():
    assert [m.id for m in filter_members(MEMBERS, "SMITH")] == ["u2"]
    assert [m.id for m in filter_members(MEMBERS, "@example.com")] == ["u1", "u2"]
    assert [m.id for m in filter_members(MEMBERS, "0101")] == ["u1"]
    assert filter_members(MEMBERS, "") == MEMBERS
