from dataclasses import dataclass
from typing import Generic, List, Sequence, TypeVar

T = TypeVar("T")

ROWS_PER_PAGE = 10


@dataclass
class Page(Generic[T]):
    items: List[T]
    total: int
    page: int
    page_size: int
    total_pages: int


def paginate(items: Sequence[T], page: int = 1, page_size: int = ROWS_PER_PAGE) -> Page[T]:
    """Slice one page out of ``items``; pages are 1-based, out-of-range pages are empty."""
    page = max(page, 1)
    page_size = max(page_size, 1)
    total = len(items)
    total_pages = (total + page_size - 1) // page_size
    start = (page - 1) * page_size
    return Page(
        items=list(items[start:start + page_size]),
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
    )
