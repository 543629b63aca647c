"""Dashboard aggregates computed from the current collections."""
from __future__ import annotations

import calendar
from collections import Counter
from datetime import date
from typing import Any, Dict, List, Sequence

from libdesk.book import Book
from libdesk.borrow import BorrowRecord
from libdesk.member import Member
from libdesk.workflow import is_overdue

TOP_GENRES = 7
YEARLY_WINDOW = 10


def _borrowing_trend(borrows: Sequence[BorrowRecord], as_of: date) -> List[Dict[str, Any]]:
    """Borrowings and returns per month of ``as_of``'s year, up to its month."""
    borrowed = Counter(r.borrow_date.month for r in borrows if r.borrow_date.year == as_of.year)
    returned = Counter(
        r.return_date.month for r in borrows if r.return_date and r.return_date.year == as_of.year
    )
    return [
        {
            "month": calendar.month_abbr[month],
            "borrowings": borrowed[month],
            "returns": returned[month],
        }
        for month in range(1, as_of.month + 1)
    ]


def compute_statistics(
    books: Sequence[Book],
    members: Sequence[Member],
    borrows: Sequence[BorrowRecord],
    as_of: date,
) -> Dict[str, Any]:
    available = sum(book.count for book in books)
    total_copies = sum(book.total_copies for book in books)

    genres = Counter(book.genre for book in books if book.genre)
    # most_common keeps first-seen order between equal counts
    popular_genres = [{"name": name, "value": value} for name, value in genres.most_common(TOP_GENRES)]

    years = Counter(book.year for book in books if book.year)
    yearly_trends = [{"year": year, "count": years[year]} for year in sorted(years)][-YEARLY_WINDOW:]

    borrowing_members = {r.user_id for r in borrows if r.is_active}
    active_borrowers = sum(1 for member in members if member.id in borrowing_members)

    return {
        "total_books": len(books),
        "available_books": available,
        "total_copies": total_copies,
        "borrowed_books": total_copies - available,
        "overdue_books": sum(1 for r in borrows if is_overdue(r, as_of)),
        "total_authors": len({book.author for book in books if book.author}),
        "total_genres": len(genres),
        "popular_genres": popular_genres,
        "yearly_trends": yearly_trends,
        "total_members": len(members),
        "active_borrowers": active_borrowers,
        "inactive_members": len(members) - active_borrowers,
        "borrowing_trend": _borrowing_trend(borrows, as_of),
    }
