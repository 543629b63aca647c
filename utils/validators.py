from typing import Any, Dict, Iterable, Optional

from libdesk.book import GENRES
from libdesk.errors import ValidationError


class FieldValidator:
    """Basic required-field checks for book and member payloads."""

    @staticmethod
    def is_blank(value: Any) -> bool:
        return value is None or (isinstance(value, str) and not value.strip())

    @staticmethod
    def require(data: Dict[str, Any], fields: Iterable[str]) -> None:
        missing = [name for name in fields if FieldValidator.is_blank(data.get(name))]
        if missing:
            raise ValidationError(f"Missing required field(s): {', '.join(missing)}")

    @staticmethod
    def reject_blank(data: Dict[str, Any], fields: Iterable[str]) -> None:
        """For partial updates: fields that are present must not be emptied."""
        blank = [name for name in fields if name in data and FieldValidator.is_blank(data[name])]
        if blank:
            raise ValidationError(f"Field(s) cannot be empty: {', '.join(blank)}")


class BookValidator:

    @staticmethod
    def validate_genre(genre: Optional[str]) -> None:
        if genre is not None and genre not in GENRES:
            raise ValidationError(f"Unknown genre {genre!r}. Choose one of: {', '.join(GENRES)}")

    @staticmethod
    def validate_copies(copies: Any, minimum: int = 1) -> None:
        if isinstance(copies, bool) or not isinstance(copies, int) or copies < minimum:
            raise ValidationError(f"Copies must be a whole number of at least {minimum}.")

    @staticmethod
    def validate_year(year: Any) -> None:
        if year is None:
            return
        if isinstance(year, bool) or not isinstance(year, int):
            raise ValidationError("Year must be a whole number.")
