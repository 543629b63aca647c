import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Generic, List, Optional, TypeVar

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import APIKeyHeader
from pydantic import BaseModel, Field

from config import settings
from libdesk.borrow import BorrowRecord
from libdesk.errors import (
    ActiveBorrowsExist,
    AlreadyReturned,
    DataIntegrityError,
    InvalidCapacity,
    InvalidDuration,
    InvalidFilter,
    LibraryError,
    OutOfStock,
    UnknownBook,
    UnknownBorrow,
    UnknownMember,
    ValidationError,
)
from libdesk.library import Library
from utils.pagination import paginate

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

library = Library()

app = FastAPI(title=settings.app_name, version=settings.app_version)

# Compress responses larger than 1KB
app.add_middleware(GZipMiddleware, minimum_size=1000)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Security ---
api_key_header = APIKeyHeader(name="X-API-Key")


def get_api_key(api_key: str = Security(api_key_header)):
    """Dependency that checks the X-API-Key header on mutating endpoints."""
    if api_key == settings.api_key:
        return api_key
    raise HTTPException(status_code=403, detail="Could not validate credentials")


# --- Error mapping ---
ERROR_STATUS = {
    UnknownBook: 404,
    UnknownMember: 404,
    UnknownBorrow: 404,
    OutOfStock: 409,
    AlreadyReturned: 409,
    ActiveBorrowsExist: 409,
    DataIntegrityError: 409,
    InvalidDuration: 422,
    InvalidCapacity: 422,
    InvalidFilter: 422,
    ValidationError: 422,
}


def _status_for(exc: LibraryError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 400


@app.exception_handler(LibraryError)
async def library_error_handler(request: Request, exc: LibraryError):
    return JSONResponse(status_code=_status_for(exc), content={"detail": str(exc), "error": exc.kind})


# --- Models ---
T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    items: List[T]
    total: int
    page: int
    page_size: int
    total_pages: int


class BookModel(BaseModel):
    id: int
    title: str
    author: str
    genre: str
    isbn: str
    year: int | None = None
    count: int
    totalCopies: int


class BookCreateModel(BaseModel):
    title: str
    author: str
    genre: str = "Other"
    isbn: str
    year: int
    copies: int = Field(default=1, description="Number of copies owned; all start available")


class BookUpdateModel(BaseModel):
    title: str | None = None
    author: str | None = None
    genre: str | None = None
    isbn: str | None = None
    year: int | None = None
    totalCopies: int | None = None


class MemberModel(BaseModel):
    id: str
    name: str
    email: str
    phone: str
    memberSince: str | None = None


class MemberCreateModel(BaseModel):
    name: str
    email: str
    phone: str
    memberSince: date | None = None


class MemberUpdateModel(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    memberSince: date | None = None


class BorrowModel(BaseModel):
    id: int
    bookId: int
    userId: str
    userName: str
    borrowDate: str
    dueDate: str
    returnDate: str | None = None
    status: str
    overdue: bool = False
    bookTitle: str | None = None


class BorrowCreateModel(BaseModel):
    memberId: str
    bookId: int
    durationDays: int = Field(default=settings.default_borrow_days, description="1-30 days")


class StatsModel(BaseModel):
    total_books: int
    available_books: int
    total_copies: int
    borrowed_books: int
    overdue_books: int
    total_authors: int
    total_genres: int
    popular_genres: List[Dict[str, Any]]
    yearly_trends: List[Dict[str, Any]]
    total_members: int
    active_borrowers: int
    inactive_members: int
    borrowing_trend: List[Dict[str, Any]]


class AuditModel(BaseModel):
    consistent: bool
    problems: List[str]


# --- Helpers ---
def _borrow_model(record: BorrowRecord) -> BorrowModel:
    book = library.find_book(record.book_id)
    return BorrowModel(
        **record.to_dict(),
        overdue=library.is_overdue(record),
        bookTitle=book.title if book else None,
    )


# --- Health ---
@app.get("/health")
def health():
    """Lightweight health endpoint with basic library counts."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.app_version,
        "total_books": len(library.list_books()),
        "total_members": len(library.list_members()),
    }


# --- Books ---
@app.get("/books", response_model=PaginatedResponse[BookModel])
def get_books(
    q: Optional[str] = Query(None, description="Search title, author or ISBN"),
    availability: str = Query("all", description="all | available | borrowed"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
):
    """List books with search, availability filter and pagination."""
    books = library.search_books(q, availability)
    result = paginate(books, page, page_size)
    return PaginatedResponse[BookModel](
        items=[BookModel(**b.to_dict()) for b in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
    )


@app.get("/books/{book_id}", response_model=BookModel)
def get_book(book_id: int):
    return BookModel(**library.get_book(book_id).to_dict())


@app.post("/books", response_model=BookModel, status_code=201, dependencies=[Depends(get_api_key)])
def add_book(payload: BookCreateModel):
    """Add a new book to the catalog."""
    book = library.add_book(
        title=payload.title,
        author=payload.author,
        genre=payload.genre,
        isbn=payload.isbn,
        year=payload.year,
        copies=payload.copies,
    )
    return BookModel(**book.to_dict())


@app.put("/books/{book_id}", response_model=BookModel, dependencies=[Depends(get_api_key)])
def update_book(book_id: int, update: BookUpdateModel):
    """Edit a book; changing totalCopies shifts available copies by the same amount."""
    book = library.update_book(
        book_id,
        title=update.title,
        author=update.author,
        genre=update.genre,
        isbn=update.isbn,
        year=update.year,
        total_copies=update.totalCopies,
    )
    return BookModel(**book.to_dict())


@app.delete("/books/{book_id}", dependencies=[Depends(get_api_key)])
def delete_book(book_id: int):
    if not library.remove_book(book_id):
        raise HTTPException(status_code=404, detail="Book not found.")
    return {"message": "Book removed."}


# --- Members ---
@app.get("/members", response_model=PaginatedResponse[MemberModel])
def get_members(
    q: Optional[str] = Query(None, description="Search name, email or phone"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
):
    result = paginate(library.search_members(q), page, page_size)
    return PaginatedResponse[MemberModel](
        items=[MemberModel(**m.to_dict()) for m in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
    )


@app.get("/members/{member_id}", response_model=MemberModel)
def get_member(member_id: str):
    return MemberModel(**library.get_member(member_id).to_dict())


@app.post("/members", response_model=MemberModel, status_code=201, dependencies=[Depends(get_api_key)])
def add_member(payload: MemberCreateModel):
    member = library.add_member(payload.name, payload.email, payload.phone, member_since=payload.memberSince)
    return MemberModel(**member.to_dict())


@app.put("/members/{member_id}", response_model=MemberModel, dependencies=[Depends(get_api_key)])
def update_member(member_id: str, update: MemberUpdateModel):
    member = library.update_member(
        member_id,
        name=update.name,
        email=update.email,
        phone=update.phone,
        member_since=update.memberSince,
    )
    return MemberModel(**member.to_dict())


@app.delete("/members/{member_id}", dependencies=[Depends(get_api_key)])
def delete_member(member_id: str):
    if not library.remove_member(member_id):
        raise HTTPException(status_code=404, detail="Member not found.")
    return {"message": "Member removed."}


# --- Borrows ---
@app.get("/borrows", response_model=PaginatedResponse[BorrowModel])
def get_borrows(
    q: Optional[str] = Query(None, description="Search member name or book title"),
    status: str = Query("all", description="all | active | overdue | returned"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
):
    """List borrow records, most recent first."""
    result = paginate(library.filter_borrows(q, status), page, page_size)
    return PaginatedResponse[BorrowModel](
        items=[_borrow_model(r) for r in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
    )


@app.get("/borrows/{borrow_id}", response_model=BorrowModel)
def get_borrow(borrow_id: int):
    return _borrow_model(library.get_borrow(borrow_id))


@app.post("/borrows", response_model=BorrowModel, status_code=201, dependencies=[Depends(get_api_key)])
def create_borrow(payload: BorrowCreateModel):
    """Lend a book copy to a member."""
    record = library.create_borrow(payload.memberId, payload.bookId, payload.durationDays)
    return _borrow_model(record)


@app.post("/borrows/{borrow_id}/return", response_model=BorrowModel, dependencies=[Depends(get_api_key)])
def return_borrow(borrow_id: int):
    return _borrow_model(library.return_borrow(borrow_id))


# --- Dashboard & admin ---
@app.get("/stats", response_model=StatsModel)
def get_library_stats():
    """Dashboard statistics for the library."""
    return StatsModel(**library.get_statistics())


@app.get("/admin/audit", response_model=AuditModel)
def audit_inventory():
    problems = library.audit()
    return AuditModel(consistent=not problems, problems=problems)


@app.post("/admin/reset", dependencies=[Depends(get_api_key)])
def reset_library():
    library.reset_to_seed()
    return {"message": "Library reset to seed data."}
