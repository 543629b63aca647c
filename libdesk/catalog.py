from __future__ import annotations

from typing import List, Optional, Sequence

from libdesk.book import Book
from libdesk.errors import InvalidFilter
from libdesk.member import Member

AVAILABILITY_FILTERS = ("all", "available", "borrowed")


def filter_books(books: Sequence[Book], query: Optional[str] = None, availability: str = "all") -> List[Book]:
    """Match title, author or ISBN (case-insensitive) and narrow by availability."""
    if availability not in AVAILABILITY_FILTERS:
        raise InvalidFilter(availability, AVAILABILITY_FILTERS)
    needle = (query or "").strip().lower()
    result = []
    for book in books:
        if needle and not any(needle in field.lower() for field in (book.title, book.author, book.isbn)):
            continue
        if availability == "available" and book.count <= 0:
            continue
        if availability == "borrowed" and book.count >= book.total_copies:
            continue
        result.append(book)
    return result


def filter_members(members: Sequence[Member], query: Optional[str] = None) -> List[Member]:
    """Match name, email or phone (case-insensitive)."""
    needle = (query or "").strip().lower()
    if not needle:
        return list(members)
    return [
        member for member in members
        if any(needle in field.lower() for field in (member.name, member.email, member.phone))
    ]
