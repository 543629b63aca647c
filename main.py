import logging
import os
import subprocess
import sys
import webbrowser
from datetime import datetime
from functools import wraps
from typing import Optional

import typer
from rich.console import Console

from config import settings
from libdesk.errors import LibraryError
from libdesk.library import Library
from utils.pagination import paginate
from utils.ui_helpers import print_page_footer, print_rows, print_stats_result, set_output_mode

APP_NAME = "Library Desk CLI"

console = Console()
logger = logging.getLogger(__name__)


class LibraryManager:
    """Holds the single Library instance used by CLI commands."""

    _instance: Optional[Library] = None

    @classmethod
    def get_instance(cls) -> Library:
        if cls._instance is None:
            cls._instance = Library()
            logger.debug("Library instance created")
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        cls._instance = None


def handle_library_errors(func):
    """Print domain errors as a one-line message and exit with status 1."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except LibraryError as e:
            print(f"Error: {e}")
            raise typer.Exit(code=1)

    return wrapper


# --- Typer CLI application ---
app = typer.Typer(help=APP_NAME)


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    )
):
    """Global options for the CLI (e.g. output mode)."""
    logging.basicConfig(level=settings.log_level)
    if output:
        set_output_mode(output)


# --- Books ---
@app.command("books")
@handle_library_errors
def cli_books(
    query: Optional[str] = typer.Option(None, "--query", "-q", help="Search title, author or ISBN"),
    availability: str = typer.Option("all", "--availability", "-a", help="all | available | borrowed"),
    page: int = typer.Option(1, "--page", "-p", min=1, help="Page number"),
):
    """List books in the catalog."""
    lib = LibraryManager.get_instance()
    result = paginate(lib.search_books(query, availability), page, settings.default_page_size)
    print_rows(
        [b.to_dict() for b in result.items],
        ["id", "title", "author", "genre", "year", "count", "totalCopies"],
        title="📚 Books",
        empty_message="No books found.",
        plain_format="{id} - {title} by {author} ({count}/{totalCopies} available)",
    )
    print_page_footer(result.page, result.total_pages, result.total)


@app.command("add-book")
@handle_library_errors
def cli_add_book(
    title: str,
    author: str,
    isbn: str,
    genre: str = typer.Option("Other", "--genre", "-g", help="Book genre"),
    year: int = typer.Option(..., "--year", "-y", help="Publication year"),
    copies: int = typer.Option(1, "--copies", "-c", help="Number of copies owned"),
):
    """Add a new book."""
    book = LibraryManager.get_instance().add_book(title, author, genre, isbn, year, copies)
    print(f"Successfully added: {book.title} by {book.author} (id {book.id})")


@app.command("update-book")
@handle_library_errors
def cli_update_book(
    book_id: int,
    title: Optional[str] = typer.Option(None, "--title"),
    author: Optional[str] = typer.Option(None, "--author"),
    genre: Optional[str] = typer.Option(None, "--genre"),
    isbn: Optional[str] = typer.Option(None, "--isbn"),
    year: Optional[int] = typer.Option(None, "--year"),
    total_copies: Optional[int] = typer.Option(None, "--total-copies", help="New number of copies owned"),
):
    """Edit a book's details or its number of copies."""
    book = LibraryManager.get_instance().update_book(
        book_id, title=title, author=author, genre=genre, isbn=isbn, year=year, total_copies=total_copies
    )
    print(f"Updated: {book.title} by {book.author} ({book.count}/{book.total_copies} available)")


@app.command("remove-book")
@handle_library_errors
def cli_remove_book(book_id: int):
    """Remove a book by id."""
    if LibraryManager.get_instance().remove_book(book_id):
        print(f"Book {book_id} has been removed.")
    else:
        print(f"Book {book_id} not found.")


# --- Members ---
@app.command("members")
@handle_library_errors
def cli_members(
    query: Optional[str] = typer.Option(None, "--query", "-q", help="Search name, email or phone"),
    page: int = typer.Option(1, "--page", "-p", min=1, help="Page number"),
):
    """List library members."""
    lib = LibraryManager.get_instance()
    result = paginate(lib.search_members(query), page, settings.default_page_size)
    print_rows(
        [m.to_dict() for m in result.items],
        ["id", "name", "email", "phone", "memberSince"],
        title="👥 Members",
        empty_message="No members found.",
        plain_format="{id} - {name} <{email}> {phone}",
    )
    print_page_footer(result.page, result.total_pages, result.total)


@app.command("add-member")
@handle_library_errors
def cli_add_member(name: str, email: str, phone: str):
    """Register a new member."""
    member = LibraryManager.get_instance().add_member(name, email, phone)
    print(f"Member registered: {member.name} (id {member.id})")


@app.command("update-member")
@handle_library_errors
def cli_update_member(
    member_id: str,
    name: Optional[str] = typer.Option(None, "--name"),
    email: Optional[str] = typer.Option(None, "--email"),
    phone: Optional[str] = typer.Option(None, "--phone"),
    member_since: Optional[datetime] = typer.Option(None, "--member-since", formats=["%Y-%m-%d"]),
):
    """Edit a member's contact details or membership date."""
    member = LibraryManager.get_instance().update_member(
        member_id,
        name=name,
        email=email,
        phone=phone,
        member_since=member_since.date() if member_since else None,
    )
    print(f"Updated: {member.name} <{member.email}> {member.phone}")


@app.command("remove-member")
@handle_library_errors
def cli_remove_member(member_id: str):
    """Remove a member by id."""
    if LibraryManager.get_instance().remove_member(member_id):
        print(f"Member {member_id} has been removed.")
    else:
        print(f"Member {member_id} not found.")


# --- Borrowing ---
@app.command("borrow")
@handle_library_errors
def cli_borrow(
    member_id: str,
    book_id: int,
    days: int = typer.Option(settings.default_borrow_days, "--days", "-d", help="Borrow duration in days (1-30)"),
):
    """Lend a book to a member."""
    lib = LibraryManager.get_instance()
    record = lib.create_borrow(member_id, book_id, days)
    book = lib.find_book(book_id)
    print(f"Borrow {record.id}: '{book.title}' lent to {record.user_name}, due {record.due_date.isoformat()}")


@app.command("return")
@handle_library_errors
def cli_return(borrow_id: int):
    """Return a borrowed book."""
    record = LibraryManager.get_instance().return_borrow(borrow_id)
    print(f"Borrow {record.id} returned on {record.return_date.isoformat()}")


@app.command("borrows")
@handle_library_errors
def cli_borrows(
    query: Optional[str] = typer.Option(None, "--query", "-q", help="Search member name or book title"),
    status: str = typer.Option("all", "--status", "-s", help="all | active | overdue | returned"),
    page: int = typer.Option(1, "--page", "-p", min=1, help="Page number"),
):
    """List borrow records, most recent first."""
    lib = LibraryManager.get_instance()
    overdue = lib.overdue_count()
    if overdue:
        print(f"There are {overdue} overdue books that need attention.")

    result = paginate(lib.filter_borrows(query, status), page, settings.default_page_size)
    rows = []
    for record in result.items:
        book = lib.find_book(record.book_id)
        row = record.to_dict()
        row["bookTitle"] = book.title if book else "(removed)"
        if record.status == "returned":
            row["state"] = "Returned"
        else:
            row["state"] = "Overdue" if lib.is_overdue(record) else "Active"
        rows.append(row)
    print_rows(
        rows,
        ["id", "userName", "bookTitle", "borrowDate", "dueDate", "state"],
        title="📖 Borrows",
        empty_message="No borrow records found.",
        plain_format="{id} - {userName}: {bookTitle} (borrowed {borrowDate}, due {dueDate}) [{state}]",
    )
    print_page_footer(result.page, result.total_pages, result.total)


# --- Dashboard & maintenance ---
@app.command("stats")
def cli_stats():
    """Show library statistics."""
    print_stats_result(LibraryManager.get_instance().get_statistics())


@app.command("audit")
def cli_audit():
    """Check copy counts against active borrows."""
    problems = LibraryManager.get_instance().audit()
    if not problems:
        print("Inventory is consistent.")
        return
    for problem in problems:
        print(f"- {problem}")
    raise typer.Exit(code=1)


@app.command("reset")
def cli_reset(yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation")):
    """Replace all data with the bundled seed data."""
    if not yes and not typer.confirm("This will discard all changes. Continue?"):
        print("Aborted.")
        return
    LibraryManager.get_instance().reset_to_seed()
    print("Library reset to seed data.")


@app.command("serve")
def cli_serve():
    """Start the HTTP API with uvicorn."""
    host = settings.api_host
    port = int(settings.api_port)
    url = f"http://{host}:{port}/docs"
    print(f"Starting API on {url}")
    try:
        webbrowser.open(url)
    except webbrowser.Error as e:
        console.print(f"[yellow]Could not open browser: {e}[/]")
    args = [sys.executable, "-m", "uvicorn", "api:app", "--host", host, "--port", str(port)]
    if settings.debug:
        args.append("--reload")
    subprocess.run(args, cwd=os.path.dirname(os.path.abspath(__file__)))


if __name__ == "__main__":
    app()
