from datetime import date, timedelta

import pytest

from config import settings
from libdesk.database import MemoryStore, SQLiteStore, get_db_connection
from libdesk.errors import (
    ActiveBorrowsExist,
    AlreadyReturned,
    BookUnavailable,
    InvalidCapacity,
    InvalidDuration,
    InvalidFilter,
    UnknownBook,
    UnknownMember,
    ValidationError,
)
from libdesk.library import Library


def assert_consistent(lib):
    assert lib.audit() == []


def test_seed_loaded_on_first_use(lib):
    assert [b.title for b in lib.list_books()] == ["Dune", "Emma", "The Hobbit"]
    assert len(lib.list_members()) == 2
    assert [r.id for r in lib.list_borrows()] == [10, 11]
    assert_consistent(lib)


def test_borrow_scenario_persists(lib, db_file, seed, today):
    record = lib.create_borrow("u1", 1, 14)
    assert record.due_date == today + timedelta(days=14)
    assert lib.find_book(1).count == 0

    with pytest.raises(BookUnavailable):
        lib.create_borrow("u1", 1, 14)

    # A fresh instance reads the persisted state, not the seed
    reopened = Library(db_file=db_file, seed=seed, clock=lambda: today)
    assert reopened.find_book(1).count == 0
    assert reopened.list_borrows()[0].id == record.id

    reopened.return_borrow(record.id)
    assert reopened.find_book(1).count == 1
    assert_consistent(reopened)


def test_default_duration_is_fourteen_days(lib, today):
    record = lib.create_borrow("u2", 3)
    assert record.due_date == today + timedelta(days=14)


def test_failed_borrow_does_not_persist(lib, db_file, seed, today):
    with pytest.raises(InvalidDuration):
        lib.create_borrow("u1", 1, 45)
    with pytest.raises(UnknownMember):
        lib.create_borrow("ghost", 1, 7)

    reopened = Library(db_file=db_file, seed=seed, clock=lambda: today)
    assert reopened.find_book(1).count == 1
    assert len(reopened.list_borrows()) == 2


def test_return_twice(lib):
    lib.return_borrow(10)
    with pytest.raises(AlreadyReturned):
        lib.return_borrow(10)
    assert lib.find_book(2).count == 3
    assert_consistent(lib)


def test_borrow_ids_are_unique_and_increasing(lib):
    first = lib.create_borrow("u1", 3, 7)
    second = lib.create_borrow("u2", 3, 7)
    assert second.id > first.id


def test_filter_borrows_uses_clock(lib):
    assert [r.id for r in lib.filter_borrows(status_filter="overdue")] == [10]
    assert [r.id for r in lib.filter_borrows("hobbit")] == [11]
    assert lib.overdue_count() == 1
    with pytest.raises(InvalidFilter):
        lib.filter_borrows(status_filter="late")


# ------------------------- Books ------------------------- #
def test_add_book(lib):
    book = lib.add_book("Ulysses", "James Joyce", "Fiction", "9780199535675", 1922, copies=2)
    assert book.count == book.total_copies == 2
    assert lib.find_book(book.id) == book
    assert book.id > 3


def test_add_book_requires_fields(lib):
    with pytest.raises(ValidationError, match="title"):
        lib.add_book("  ", "James Joyce", "Fiction", "9780199535675", 1922)
    with pytest.raises(ValidationError):
        lib.add_book("Ulysses", "James Joyce", "Poetry", "9780199535675", 1922)
    with pytest.raises(ValidationError):
        lib.add_book("Ulysses", "James Joyce", "Fiction", "9780199535675", 1922, copies=0)
    assert len(lib.list_books()) == 3


def test_update_book_details(lib):
    updated = lib.update_book(1, title="Dune Messiah", year=1969)
    assert updated.title == "Dune Messiah"
    assert updated.year == 1969
    assert updated.author == "Frank Herbert"


def test_update_book_total_copies_moves_availability(lib):
    # Emma: 3 owned, 1 on loan
    updated = lib.update_book(2, total_copies=5)
    assert (updated.count, updated.total_copies) == (4, 5)
    with pytest.raises(InvalidCapacity):
        lib.update_book(2, total_copies=0)
    assert lib.find_book(2).total_copies == 5
    assert_consistent(lib)


def test_update_book_errors(lib):
    with pytest.raises(UnknownBook):
        lib.update_book(99, title="Nothing")
    with pytest.raises(ValidationError):
        lib.update_book(1)
    with pytest.raises(ValidationError):
        lib.update_book(1, author="")


def test_remove_book(lib):
    assert lib.remove_book(3) is True
    assert lib.remove_book(3) is False
    assert lib.find_book(3) is None


def test_remove_book_with_active_borrow_rejected(lib):
    with pytest.raises(ActiveBorrowsExist):
        lib.remove_book(2)
    assert lib.find_book(2) is not None


def test_search_books(lib):
    assert [b.id for b in lib.search_books("austen")] == [2]
    assert [b.id for b in lib.search_books("9780547928227")] == [3]
    assert [b.id for b in lib.search_books(availability="borrowed")] == [2]
    lib.create_borrow("u1", 1, 7)
    assert [b.id for b in lib.search_books(availability="available")] == [2, 3]


# ------------------------- Members ------------------------- #
def test_add_member_defaults_member_since_to_today(lib, today):
    member = lib.add_member("Carol Davis", "carol@example.com", "555-0103")
    assert member.member_since == today
    assert member.id.startswith("u")
    assert lib.find_member(member.id) == member


def test_add_member_requires_fields(lib):
    with pytest.raises(ValidationError, match="email"):
        lib.add_member("Carol Davis", "", "555-0103")


def test_update_member(lib):
    updated = lib.update_member("u1", email="alice.j@example.com", member_since=date(2022, 5, 1))
    assert updated.email == "alice.j@example.com"
    assert updated.name == "Alice Johnson"
    assert lib.get_member("u1").member_since == date(2022, 5, 1)
    with pytest.raises(UnknownMember):
        lib.update_member("nobody", name="X")


def test_remove_member(lib):
    with pytest.raises(ActiveBorrowsExist):
        lib.remove_member("u2")
    assert lib.remove_member("u1") is True
    assert lib.remove_member("u1") is False


def test_search_members(lib):
    assert [m.id for m in lib.search_members("BOB")] == ["u2"]
    assert [m.id for m in lib.search_members("555-0101")] == ["u1"]
    assert len(lib.search_members("")) == 2


# ------------------------- Store & maintenance ------------------------- #
def test_memory_store_backend(seed, today):
    store = MemoryStore()
    lib = Library(store=store, seed=seed, clock=lambda: today)
    record = lib.create_borrow("u1", 1, 3)

    again = Library(store=store, seed=seed, clock=lambda: today)
    assert again.get_borrow(record.id).status == "active"
    assert again.find_book(1).count == 0


def test_custom_storage_prefix_isolates_data(seed):
    store = MemoryStore()
    Library(store=store, seed=seed, storage_prefix="branchA").remove_book(3)
    other = Library(store=store, seed=seed, storage_prefix="branchB")
    assert other.find_book(3) is not None


def test_malformed_collection_falls_back_to_seed(seed):
    store = MemoryStore()
    store.save("libraryData_books", [{"title": "no id"}])
    lib = Library(store=store, seed=seed, storage_prefix="libraryData")
    assert [b.id for b in lib.list_books()] == [1, 2, 3]


def test_reset_to_seed(lib):
    lib.create_borrow("u1", 1, 7)
    lib.add_member("Carol Davis", "carol@example.com", "555-0103")
    lib.reset_to_seed()
    assert lib.find_book(1).count == 1
    assert len(lib.list_members()) == 2


def test_statistics_from_library(lib):
    stats = lib.get_statistics()
    assert stats["total_books"] == 3
    assert stats["borrowed_books"] == 1
    assert stats["overdue_books"] == 1


def test_corrupt_books_json_resets_every_collection(lib, db_file, seed, today):
    record = lib.create_borrow("u1", 1, 7)
    conn = get_db_connection(db_file)
    with conn:
        conn.execute("UPDATE collections SET value = ? WHERE key = ?", ("{not json", "libraryData_books"))
    conn.close()

    reopened = Library(db_file=db_file, seed=seed, clock=lambda: today)
    assert reopened.audit() == []
    assert reopened.find_borrow(record.id) is None
    assert reopened.find_book(1).count == 1
    # The seed was written back, so the next load reads it from the store
    assert SQLiteStore(db_file).load("libraryData_books", None) is not None


def test_malformed_record_resets_every_collection(seed, today):
    store = MemoryStore()
    lib = Library(store=store, seed=seed, clock=lambda: today, storage_prefix="libraryData")
    lib.create_borrow("u1", 1, 7)
    store.save("libraryData_books", [{"title": "no id"}])

    reopened = Library(store=store, seed=seed, clock=lambda: today, storage_prefix="libraryData")
    assert [r.id for r in reopened.list_borrows()] == [10, 11]
    assert reopened.audit() == []


def test_first_write_to_one_collection_survives_reload(seed, today):
    store = MemoryStore()
    book = Library(store=store, seed=seed, clock=lambda: today).add_book(
        "Ulysses", "James Joyce", "Fiction", "9780199535675", 1922
    )
    again = Library(store=store, seed=seed, clock=lambda: today)
    assert again.find_book(book.id) == book
    assert len(again.list_members()) == 2


def test_inconsistent_stored_data_is_logged(seed, today, caplog):
    store = MemoryStore()
    seed["books"][1]["count"] = 3  # Emma has an active loan but no copy marked as borrowed
    store.save_many({f"libraryData_{name}": seed[name] for name in ("books", "users", "borrows")})

    with caplog.at_level("ERROR", logger="libdesk.library"):
        Library(store=store, seed=seed, clock=lambda: today, storage_prefix="libraryData")
    assert "Integrity problem" in caplog.text
    assert "Emma" in caplog.text


def test_borrow_limit_is_not_configurable(lib, monkeypatch):
    monkeypatch.setenv("MAX_BORROW_DAYS", "60")
    assert not hasattr(settings, "max_borrow_days")
    with pytest.raises(InvalidDuration):
        lib.create_borrow("u1", 1, 45)
    with pytest.raises(TypeError):
        Library(store=MemoryStore(), max_borrow_days=60)
