from __future__ import annotations

from dataclasses import dataclass, replace

# Fixed genre list offered by the book forms
GENRES = (
    "Fiction",
    "Non-Fiction",
    "Science Fiction",
    "Mystery",
    "Romance",
    "Fantasy",
    "Biography",
    "History",
    "Children",
    "Self-Help",
    "Other",
)


@dataclass(frozen=True)
class Book:
    """A title in the catalog together with its copy counts.

    ``count`` is the number of copies on the shelf, ``total_copies`` the number owned.
    """

    id: int
    title: str
    author: str
    genre: str
    isbn: str
    year: int | None
    count: int
    total_copies: int

    @property
    def borrowed(self) -> int:
        return self.total_copies - self.count

    def with_changes(self, **changes) -> "Book":
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "genre": self.genre,
            "isbn": self.isbn,
            "year": self.year,
            "count": self.count,
            "totalCopies": self.total_copies,
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        count = int(data.get("count", 0))
        # Older records may lack totalCopies; every copy is then assumed on the shelf
        total = data.get("totalCopies", data.get("total_copies"))
        year = data.get("year")
        return Book(
            id=int(data["id"]),
            title=str(data["title"]).strip(),
            author=str(data["author"]).strip(),
            genre=data.get("genre") or "Other",
            isbn=str(data.get("isbn") or "").strip(),
            year=int(year) if year not in (None, "") else None,
            count=count,
            total_copies=int(total) if total is not None else count,
        )
