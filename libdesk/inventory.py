"""Inventory ledger: keeps book copy counts consistent with outstanding borrows.

Every function here is a pure transform. It receives the current book list and
returns a new list with one book replaced, leaving the input untouched, or it
raises without producing anything.
"""
from __future__ import annotations

from collections import Counter
from typing import Callable, Dict, Iterable, List, Sequence

from libdesk.book import Book
from libdesk.borrow import BorrowRecord
from libdesk.errors import DataIntegrityError, InvalidCapacity, OutOfStock, UnknownBook


def index_books(books: Iterable[Book]) -> Dict[int, Book]:
    """Build an id -> Book map for callers doing repeated lookups."""
    return {book.id: book for book in books}


def get_book(books: Sequence[Book], book_id: int) -> Book:
    for book in books:
        if book.id == book_id:
            return book
    raise UnknownBook(book_id)


def _replace_book(books: Sequence[Book], book_id: int, update: Callable[[Book], Book]) -> List[Book]:
    current = get_book(books, book_id)
    updated = update(current)
    return [updated if book.id == book_id else book for book in books]


def decrement_availability(books: Sequence[Book], book_id: int) -> List[Book]:
    """Take one copy of ``book_id`` off the shelf."""

    def take(book: Book) -> Book:
        if book.count <= 0:
            raise OutOfStock(book.id)
        return book.with_changes(count=book.count - 1)

    return _replace_book(books, book_id, take)


def increment_availability(books: Sequence[Book], book_id: int) -> List[Book]:
    """Put one copy of ``book_id`` back on the shelf.

    A return that would push ``count`` past ``total_copies`` is reported as a
    DataIntegrityError instead of being clamped.
    """

    def put_back(book: Book) -> Book:
        if book.count >= book.total_copies:
            raise DataIntegrityError(
                f"Excess return for book {book.id}: all {book.total_copies} copies are already available."
            )
        return book.with_changes(count=book.count + 1)

    return _replace_book(books, book_id, put_back)


def adjust_total_copies(books: Sequence[Book], book_id: int, new_total: int) -> List[Book]:
    """Change the number of owned copies, moving availability by the same delta."""

    def resize(book: Book) -> Book:
        borrowed = book.borrowed
        if new_total < 0 or new_total < borrowed:
            raise InvalidCapacity(book.id, new_total, borrowed)
        return book.with_changes(total_copies=new_total, count=new_total - borrowed)

    return _replace_book(books, book_id, resize)


def verify_consistency(books: Iterable[Book], borrows: Iterable[BorrowRecord]) -> List[str]:
    """Return a description of every copy-count invariant violation (empty when clean)."""
    active = Counter(record.book_id for record in borrows if record.is_active)
    problems: List[str] = []
    known = set()
    for book in books:
        known.add(book.id)
        if not 0 <= book.count <= book.total_copies:
            problems.append(
                f"Book {book.id} ({book.title}): count {book.count} outside 0..{book.total_copies}"
            )
        if active[book.id] != book.borrowed:
            problems.append(
                f"Book {book.id} ({book.title}): {active[book.id]} active borrow(s) "
                f"but {book.borrowed} copies marked as borrowed"
            )
    for book_id in sorted(set(active) - known):
        problems.append(f"{active[book_id]} active borrow(s) reference missing book {book_id}")
    return problems
