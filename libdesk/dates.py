from __future__ import annotations

from datetime import date, datetime


def parse_date(value) -> date | None:
    """Accept a ``date``, an ISO ``YYYY-MM-DD`` string (or ISO timestamp) or None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def format_date(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None
