import json
import os
from typing import Any, Dict, List, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LIB_CLI_OUTPUT"

_console = Console()


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()


def print_rows(
    rows: Sequence[Dict[str, Any]],
    columns: List[str],
    *,
    title: str,
    empty_message: str,
    plain_format: str,
) -> None:
    """Print records in the current output mode.

    - plain: one ``plain_format.format(**row)`` line per row
    - json: JSON array of the rows
    - rich: Rich table with ``columns``
    """
    if not rows:
        # Same empty-state message in every mode
        print(empty_message)
        return

    mode = get_output_mode()
    if mode == "json":
        print(json.dumps(list(rows), ensure_ascii=False))
    elif mode == "rich":
        table = Table(title=title, show_lines=True, header_style="bold cyan")
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*("" if row.get(c) is None else str(row.get(c)) for c in columns))
        _console.print(table)
    else:
        for row in rows:
            print(plain_format.format(**row))


def print_page_footer(page: int, total_pages: int, total: int) -> None:
    if get_output_mode() == "json" or total == 0:
        return
    print(f"Page {page} of {max(total_pages, 1)} ({total} total)")


def print_stats_result(stats: Dict[str, Any]) -> None:
    """Print dashboard statistics in the current output mode."""
    if not stats:
        print("No statistics available.")
        return

    mode = get_output_mode()
    if mode == "json":
        print(json.dumps(stats, ensure_ascii=False))
        return

    headline = [
        ("Total Books", stats.get("total_books", 0)),
        ("Available Copies", stats.get("available_books", 0)),
        ("Borrowed Copies", stats.get("borrowed_books", 0)),
        ("Overdue Borrows", stats.get("overdue_books", 0)),
        ("Unique Authors", stats.get("total_authors", 0)),
        ("Members", stats.get("total_members", 0)),
        ("Active Borrowers", stats.get("active_borrowers", 0)),
    ]
    genres = ", ".join(f"{g['name']} ({g['value']})" for g in stats.get("popular_genres", []))

    if mode == "rich":
        content = "\n".join(f"[bold]{label}:[/] {value}" for label, value in headline)
        if genres:
            content += f"\n[bold]Popular Genres:[/] {genres}"
        _console.print(Panel.fit(content, title="📊 Stats", border_style="blue"))
    else:
        for label, value in headline:
            print(f"{label}: {value}")
        if genres:
            print(f"Popular Genres: {genres}")
