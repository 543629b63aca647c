from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date

from libdesk.dates import format_date, parse_date

ACTIVE = "active"
RETURNED = "returned"
STATUSES = (ACTIVE, RETURNED)


@dataclass(frozen=True)
class BorrowRecord:
    """One loan of a book copy to a member.

    ``user_name`` is the member's name at the time the loan was made; it is what
    the borrow search matches against.
    """

    id: int
    book_id: int
    user_id: str
    user_name: str
    borrow_date: date
    due_date: date
    return_date: date | None = None
    status: str = ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE

    def mark_returned(self, on: date) -> "BorrowRecord":
        return replace(self, status=RETURNED, return_date=on)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bookId": self.book_id,
            "userId": self.user_id,
            "userName": self.user_name,
            "borrowDate": format_date(self.borrow_date),
            "dueDate": format_date(self.due_date),
            "returnDate": format_date(self.return_date),
            "status": self.status,
        }

    @staticmethod
    def from_dict(data: dict) -> "BorrowRecord":
        return_date = parse_date(data.get("returnDate"))
        status = data.get("status")
        if status not in STATUSES:
            # Derive the status when a record was stored without one
            status = RETURNED if return_date else ACTIVE
        return BorrowRecord(
            id=int(data["id"]),
            book_id=int(data["bookId"]),
            user_id=str(data["userId"]),
            user_name=str(data.get("userName") or ""),
            borrow_date=parse_date(data["borrowDate"]),
            due_date=parse_date(data["dueDate"]),
            return_date=return_date,
            status=status,
        )
