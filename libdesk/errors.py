class LibraryError(Exception):
    """Base exception for library errors.

    ``kind`` is a stable identifier surfaced to API clients next to the message.
    """

    kind = "library_error"


class UnknownBook(LibraryError, LookupError):
    """No book with the requested id exists."""

    kind = "unknown_book"

    def __init__(self, book_id) -> None:
        self.book_id = book_id
        super().__init__(f"Book {book_id} not found.")


class UnknownMember(LibraryError, LookupError):
    """No member with the requested id exists."""

    kind = "unknown_member"

    def __init__(self, member_id) -> None:
        self.member_id = member_id
        super().__init__(f"Member {member_id} not found.")


class UnknownBorrow(LibraryError, LookupError):
    """No borrow record with the requested id exists."""

    kind = "unknown_borrow"

    def __init__(self, borrow_id) -> None:
        self.borrow_id = borrow_id
        super().__init__(f"Borrow record {borrow_id} not found.")


class OutOfStock(LibraryError):
    """The book has no available copies left to lend."""

    kind = "out_of_stock"

    def __init__(self, book_id, message: str | None = None) -> None:
        self.book_id = book_id
        super().__init__(message or f"Book {book_id} has no available copies.")


class BookUnavailable(OutOfStock):
    """A borrow was requested for a book with zero availability."""

    kind = "book_unavailable"

    def __init__(self, book_id, title: str | None = None) -> None:
        label = f"'{title}'" if title else f"Book {book_id}"
        super().__init__(book_id, f"{label} is not available for borrowing.")


class AlreadyReturned(LibraryError):
    """The borrow record has already been returned."""

    kind = "already_returned"

    def __init__(self, borrow_id, return_date=None) -> None:
        self.borrow_id = borrow_id
        suffix = f" on {return_date}" if return_date else ""
        super().__init__(f"Borrow record {borrow_id} was already returned{suffix}.")


class InvalidDuration(LibraryError, ValueError):
    kind = "invalid_duration"

    def __init__(self, duration, minimum: int = 1, maximum: int = 30) -> None:
        self.duration = duration
        super().__init__(
            f"Borrow duration must be between {minimum} and {maximum} days, got {duration!r}."
        )


class InvalidCapacity(LibraryError, ValueError):
    """Total copies cannot drop below the copies currently on loan."""

    kind = "invalid_capacity"

    def __init__(self, book_id, new_total, borrowed: int) -> None:
        self.book_id = book_id
        self.new_total = new_total
        self.borrowed = borrowed
        super().__init__(
            f"Book {book_id} cannot have {new_total} total copies while {borrowed} are borrowed."
        )


class InvalidFilter(LibraryError, ValueError):
    kind = "invalid_filter"

    def __init__(self, value, allowed) -> None:
        self.value = value
        super().__init__(f"Invalid filter {value!r}. Allowed: {', '.join(allowed)}")


class ValidationError(LibraryError, ValueError):
    """A create/update payload is missing required fields or has bad values."""

    kind = "validation_error"


class ActiveBorrowsExist(LibraryError):
    """A book or member still referenced by active borrows cannot be removed."""

    kind = "active_borrows_exist"

    def __init__(self, what: str, active: int) -> None:
        self.active = active
        super().__init__(f"{what} has {active} active borrow(s) and cannot be removed.")


class DataIntegrityError(LibraryError):
    """Stored state would violate the copy-count invariants (e.g. an excess return)."""

    kind = "data_integrity"
