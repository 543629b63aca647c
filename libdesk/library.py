import logging
import threading
import time
from dataclasses import replace
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from config import settings
from libdesk import catalog, inventory, workflow
from libdesk.book import Book
from libdesk.borrow import BorrowRecord
from libdesk.database import SQLiteStore, load_seed
from libdesk.errors import ActiveBorrowsExist, LibraryError, ValidationError
from libdesk.member import Member
from libdesk.statistics import compute_statistics
from libdesk.workflow import LibraryState
from utils.validators import BookValidator, FieldValidator

logger = logging.getLogger(__name__)

# Collection name in the store -> (LibraryState attribute, record type)
COLLECTIONS = {
    "books": ("books", Book),
    "users": ("members", Member),
    "borrows": ("borrows", BorrowRecord),
}


class Library:
    """Manages books, members and borrows and keeps them persisted.

    The whole library lives in one immutable ``LibraryState`` snapshot. Each
    mutation computes a new snapshot, saves the changed collections in a single
    store write and only then swaps the snapshot in. A failed operation leaves
    both the snapshot and the store untouched.
    """

    def __init__(
        self,
        db_file: Optional[str] = None,
        *,
        store=None,
        seed: Optional[Dict[str, List[dict]]] = None,
        clock: Optional[Callable[[], date]] = None,
        storage_prefix: Optional[str] = None,
    ) -> None:
        self.store = store if store is not None else SQLiteStore(db_file or settings.data_file)
        self.clock = clock or date.today
        self.storage_prefix = storage_prefix or settings.storage_prefix
        self._seed = seed if seed is not None else load_seed(settings.seed_file)
        self._lock = threading.Lock()
        self._state = self._load_state()

    # ------------------------- Persistence ------------------------- #
    def _key(self, name: str) -> str:
        return f"{self.storage_prefix}_{name}"

    @staticmethod
    def _decode(raw: Dict[str, List[dict]]) -> LibraryState:
        return LibraryState(**{
            attr: tuple(record_type.from_dict(item) for item in raw.get(name, []))
            for name, (attr, record_type) in COLLECTIONS.items()
        })

    def _load_state(self) -> LibraryState:
        """Read all collections, or start over from the seed.

        The collections are only meaningful together, so one missing, unreadable
        or malformed collection sends all three back to the seed data, which is
        then written to the store.
        """
        raw = {name: self.store.load(self._key(name), None) for name in COLLECTIONS}
        absent = [name for name, value in raw.items() if value is None]
        state = None
        if not absent:
            try:
                state = self._decode(raw)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Stored collections are malformed ({e}); falling back to seed data")
        elif len(absent) < len(raw):
            logger.warning(f"Stored {', '.join(absent)} missing or unreadable; falling back to seed data")

        if state is None:
            state = self._decode(self._seed)
            self._persist(state, *COLLECTIONS)

        for problem in inventory.verify_consistency(state.books, state.borrows):
            logger.error(f"Integrity problem in loaded data: {problem}")
        return state

    def _persist(self, state: LibraryState, *names: str) -> None:
        self.store.save_many({
            self._key(name): [item.to_dict() for item in getattr(state, COLLECTIONS[name][0])]
            for name in names
        })

    def _commit(self, new_state: LibraryState, *names: str) -> None:
        self._persist(new_state, *names)
        self._state = new_state

    @staticmethod
    def _next_id(existing) -> int:
        # Millisecond clock, bumped past the largest id already in use
        candidate = int(time.time() * 1000)
        highest = max(existing, default=0)
        return candidate if candidate > highest else highest + 1

    @property
    def state(self) -> LibraryState:
        return self._state

    def today(self) -> date:
        return self.clock()

    def reset_to_seed(self) -> None:
        """Replace every collection with the seed data."""
        with self._lock:
            self._commit(self._decode(self._seed), *COLLECTIONS)
        logger.info("Library reset to seed data")

    # ------------------------- Books ------------------------- #
    def list_books(self) -> List[Book]:
        return list(self._state.books)

    def find_book(self, book_id: int) -> Optional[Book]:
        return inventory.index_books(self._state.books).get(book_id)

    def get_book(self, book_id: int) -> Book:
        """Like find_book, but raises UnknownBook."""
        return inventory.get_book(self._state.books, book_id)

    def search_books(self, query: Optional[str] = None, availability: str = "all") -> List[Book]:
        return catalog.filter_books(self._state.books, query, availability)

    def add_book(self, title: str, author: str, genre: str, isbn: str, year: int, copies: int = 1) -> Book:
        """Add a new title with ``copies`` copies, all of them available."""
        FieldValidator.require(
            {"title": title, "author": author, "genre": genre, "isbn": isbn, "year": year},
            ("title", "author", "genre", "isbn", "year"),
        )
        BookValidator.validate_genre(genre)
        BookValidator.validate_year(year)
        BookValidator.validate_copies(copies)
        with self._lock:
            book = Book(
                id=self._next_id(b.id for b in self._state.books),
                title=title.strip(),
                author=author.strip(),
                genre=genre,
                isbn=isbn.strip(),
                year=year,
                count=copies,
                total_copies=copies,
            )
            self._commit(replace(self._state, books=self._state.books + (book,)), "books")
        logger.info(f"Book added: {book.id} {book.title!r} ({copies} copies)")
        return book

    def update_book(
        self,
        book_id: int,
        *,
        title: Optional[str] = None,
        author: Optional[str] = None,
        genre: Optional[str] = None,
        isbn: Optional[str] = None,
        year: Optional[int] = None,
        total_copies: Optional[int] = None,
    ) -> Book:
        """Edit a book's details; a new ``total_copies`` moves availability by the same delta."""
        fields = {
            name: value
            for name, value in (("title", title), ("author", author), ("genre", genre), ("isbn", isbn))
            if value is not None
        }
        if not fields and year is None and total_copies is None:
            raise ValidationError("Nothing to update. Provide at least one field.")
        FieldValidator.reject_blank(fields, fields)
        BookValidator.validate_genre(genre)
        BookValidator.validate_year(year)
        if total_copies is not None:
            BookValidator.validate_copies(total_copies, minimum=0)

        with self._lock:
            try:
                books = list(self._state.books)
                if total_copies is not None:
                    books = inventory.adjust_total_copies(books, book_id, total_copies)
                current = inventory.get_book(books, book_id)
                changes = {name: value.strip() if name != "genre" else value for name, value in fields.items()}
                if year is not None:
                    changes["year"] = year
                updated = current.with_changes(**changes)
            except LibraryError as e:
                logger.warning(f"Book update rejected for {book_id}: {e}")
                raise
            books = [updated if b.id == book_id else b for b in books]
            self._commit(replace(self._state, books=tuple(books)), "books")
        logger.info(f"Book updated: {book_id}")
        return updated

    def remove_book(self, book_id: int) -> bool:
        """Delete a book. Returns False if it does not exist."""
        with self._lock:
            if self.find_book(book_id) is None:
                return False
            active = sum(1 for r in self._state.borrows if r.book_id == book_id and r.is_active)
            if active:
                logger.warning(f"Refusing to remove book {book_id}: {active} active borrow(s)")
                raise ActiveBorrowsExist(f"Book {book_id}", active)
            books = tuple(b for b in self._state.books if b.id != book_id)
            self._commit(replace(self._state, books=books), "books")
        logger.info(f"Book removed: {book_id}")
        return True

    # ------------------------- Members ------------------------- #
    def list_members(self) -> List[Member]:
        return list(self._state.members)

    def find_member(self, member_id: str) -> Optional[Member]:
        return {m.id: m for m in self._state.members}.get(member_id)

    def get_member(self, member_id: str) -> Member:
        return workflow.find_member(self._state.members, member_id)

    def search_members(self, query: Optional[str] = None) -> List[Member]:
        return catalog.filter_members(self._state.members, query)

    def add_member(self, name: str, email: str, phone: str, member_since: Optional[date] = None) -> Member:
        FieldValidator.require({"name": name, "email": email, "phone": phone}, ("name", "email", "phone"))
        with self._lock:
            taken = {m.id for m in self._state.members}
            number = self._next_id([])
            while f"u{number}" in taken:
                number += 1
            member = Member(
                id=f"u{number}",
                name=name.strip(),
                email=email.strip(),
                phone=phone.strip(),
                member_since=member_since or self.today(),
            )
            self._commit(replace(self._state, members=self._state.members + (member,)), "users")
        logger.info(f"Member added: {member.id} {member.name!r}")
        return member

    def update_member(
        self,
        member_id: str,
        *,
        name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        member_since: Optional[date] = None,
    ) -> Member:
        fields = {
            key: value.strip()
            for key, value in (("name", name), ("email", email), ("phone", phone))
            if value is not None
        }
        if not fields and member_since is None:
            raise ValidationError("Nothing to update. Provide at least one field.")
        FieldValidator.reject_blank(fields, fields)
        if member_since is not None:
            fields["member_since"] = member_since
        with self._lock:
            updated = self.get_member(member_id).with_changes(**fields)
            members = tuple(updated if m.id == member_id else m for m in self._state.members)
            self._commit(replace(self._state, members=members), "users")
        logger.info(f"Member updated: {member_id}")
        return updated

    def remove_member(self, member_id: str) -> bool:
        with self._lock:
            if self.find_member(member_id) is None:
                return False
            active = sum(1 for r in self._state.borrows if r.user_id == member_id and r.is_active)
            if active:
                logger.warning(f"Refusing to remove member {member_id}: {active} active borrow(s)")
                raise ActiveBorrowsExist(f"Member {member_id}", active)
            members = tuple(m for m in self._state.members if m.id != member_id)
            self._commit(replace(self._state, members=members), "users")
        logger.info(f"Member removed: {member_id}")
        return True

    # ------------------------- Borrowing ------------------------- #
    def list_borrows(self) -> List[BorrowRecord]:
        return list(self._state.borrows)

    def find_borrow(self, borrow_id: int) -> Optional[BorrowRecord]:
        return {r.id: r for r in self._state.borrows}.get(borrow_id)

    def get_borrow(self, borrow_id: int) -> BorrowRecord:
        return workflow.find_borrow(self._state.borrows, borrow_id)

    def create_borrow(self, member_id: str, book_id: int, duration_days: Optional[int] = None) -> BorrowRecord:
        """Lend a copy of ``book_id`` to ``member_id``, due ``duration_days`` from today."""
        days = settings.default_borrow_days if duration_days is None else duration_days
        with self._lock:
            try:
                new_state, record = workflow.create_borrow(
                    self._state,
                    member_id,
                    book_id,
                    days,
                    today=self.today(),
                    borrow_id=self._next_id(r.id for r in self._state.borrows),
                )
            except LibraryError as e:
                logger.warning(f"Borrow rejected (member={member_id}, book={book_id}): {e}")
                raise
            self._commit(new_state, "books", "borrows")
        logger.info(f"Borrow {record.id} created: book {book_id} -> member {member_id}, due {record.due_date}")
        return record

    def return_borrow(self, borrow_id: int) -> BorrowRecord:
        with self._lock:
            try:
                new_state, record = workflow.return_borrow(self._state, borrow_id, today=self.today())
            except LibraryError as e:
                logger.warning(f"Return rejected for borrow {borrow_id}: {e}")
                raise
            self._commit(new_state, "books", "borrows")
        logger.info(f"Borrow {borrow_id} returned: book {record.book_id} back on shelf")
        return record

    def is_overdue(self, record: BorrowRecord) -> bool:
        return workflow.is_overdue(record, self.today())

    def filter_borrows(self, query: Optional[str] = None, status_filter: str = "all") -> List[BorrowRecord]:
        return workflow.filter_borrows(self._state.borrows, self._state.books, query, status_filter, self.today())

    def overdue_count(self) -> int:
        return len(workflow.overdue_borrows(self._state.borrows, self.today()))

    # ------------------------- Reporting ------------------------- #
    def get_statistics(self) -> Dict[str, Any]:
        state = self._state
        return compute_statistics(state.books, state.members, state.borrows, self.today())

    def audit(self) -> List[str]:
        """List copy-count invariant violations in the current state."""
        problems = inventory.verify_consistency(self._state.books, self._state.borrows)
        for problem in problems:
            logger.error(f"Integrity problem: {problem}")
        return problems

    def close(self) -> None:
        """Release store resources. The SQLite store opens a connection per call."""
        return None
