"""Borrow workflow: creating and returning loans.

A borrow record moves ``active -> returned`` exactly once. Both transitions
are computed against a ``LibraryState`` snapshot and produce a new snapshot,
so a failed precondition never leaves half-applied changes behind.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import List, Optional, Sequence, Tuple

from libdesk import inventory
from libdesk.book import Book
from libdesk.borrow import ACTIVE, RETURNED, BorrowRecord
from libdesk.errors import (
    AlreadyReturned,
    BookUnavailable,
    InvalidDuration,
    InvalidFilter,
    UnknownBorrow,
    UnknownMember,
)
from libdesk.member import Member

MIN_BORROW_DAYS = 1
MAX_BORROW_DAYS = 30
DEFAULT_BORROW_DAYS = 14

STATUS_FILTERS = ("all", "active", "overdue", "returned")


@dataclass(frozen=True)
class LibraryState:
    books: Tuple[Book, ...] = ()
    members: Tuple[Member, ...] = ()
    borrows: Tuple[BorrowRecord, ...] = ()


def find_member(members: Sequence[Member], member_id: str) -> Member:
    for member in members:
        if member.id == member_id:
            return member
    raise UnknownMember(member_id)


def find_borrow(borrows: Sequence[BorrowRecord], borrow_id: int) -> BorrowRecord:
    for record in borrows:
        if record.id == borrow_id:
            return record
    raise UnknownBorrow(borrow_id)


def validate_duration(duration_days) -> int:
    # bool is an int subclass; True is not a duration
    if isinstance(duration_days, bool) or not isinstance(duration_days, int):
        raise InvalidDuration(duration_days, MIN_BORROW_DAYS, MAX_BORROW_DAYS)
    if not MIN_BORROW_DAYS <= duration_days <= MAX_BORROW_DAYS:
        raise InvalidDuration(duration_days, MIN_BORROW_DAYS, MAX_BORROW_DAYS)
    return duration_days


def create_borrow(
    state: LibraryState,
    member_id: str,
    book_id: int,
    duration_days: int,
    today: date,
    borrow_id: int,
) -> Tuple[LibraryState, BorrowRecord]:
    """Lend one copy of ``book_id`` to ``member_id`` for ``duration_days`` days.

    Raises UnknownMember, UnknownBook, BookUnavailable or InvalidDuration
    before any change is computed.
    """
    member = find_member(state.members, member_id)
    book = inventory.get_book(state.books, book_id)
    if book.count <= 0:
        raise BookUnavailable(book.id, book.title)
    days = validate_duration(duration_days)

    books = inventory.decrement_availability(state.books, book.id)
    record = BorrowRecord(
        id=borrow_id,
        book_id=book.id,
        user_id=member.id,
        user_name=member.name,
        borrow_date=today,
        due_date=today + timedelta(days=days),
        return_date=None,
        status=ACTIVE,
    )
    # newest first
    new_state = replace(state, books=tuple(books), borrows=(record,) + tuple(state.borrows))
    return new_state, record


def return_borrow(state: LibraryState, borrow_id: int, today: date) -> Tuple[LibraryState, BorrowRecord]:
    """Close an active loan and put the copy back on the shelf."""
    record = find_borrow(state.borrows, borrow_id)
    if record.status != ACTIVE:
        raise AlreadyReturned(record.id, record.return_date)

    books = inventory.increment_availability(state.books, record.book_id)
    returned = record.mark_returned(today)
    borrows = tuple(returned if r.id == record.id else r for r in state.borrows)
    return replace(state, books=tuple(books), borrows=borrows), returned


def is_overdue(record: BorrowRecord, as_of: date) -> bool:
    return record.status == ACTIVE and as_of > record.due_date


def overdue_borrows(records: Sequence[BorrowRecord], as_of: date) -> List[BorrowRecord]:
    return [record for record in records if is_overdue(record, as_of)]


def filter_borrows(
    records: Sequence[BorrowRecord],
    books: Sequence[Book],
    query: Optional[str],
    status_filter: str,
    as_of: date,
) -> List[BorrowRecord]:
    """Search borrows by member name or book title, then narrow by status.

    Input order is kept, which is most-recent-first for stored borrows.
    """
    if status_filter not in STATUS_FILTERS:
        raise InvalidFilter(status_filter, STATUS_FILTERS)
    needle = (query or "").strip().lower()
    titles = {book.id: book.title.lower() for book in books}

    result = []
    for record in records:
        if needle and needle not in record.user_name.lower() and needle not in titles.get(record.book_id, ""):
            continue
        if status_filter == "active" and record.status != ACTIVE:
            continue
        if status_filter == "returned" and record.status != RETURNED:
            continue
        if status_filter == "overdue" and not is_overdue(record, as_of):
            continue
        result.append(record)
    return result
