import json
import logging
import os
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

# Load .env before LIBRARY_DB_FILE is read below
load_dotenv()

logger = logging.getLogger(__name__)

# Default database file, relative to the working directory unless LIBRARY_DB_FILE overrides it
DATABASE_FILE = os.environ.get("LIBRARY_DB_FILE") or "library.db"
SEED_FILE = Path(__file__).parent / "data" / "lib-data.json"

Collection = List[Dict[str, Any]]


def get_db_connection(db_file: Optional[str] = None) -> sqlite3.Connection:
    """Open a connection to the SQLite database."""
    conn = sqlite3.connect(db_file or DATABASE_FILE)
    conn.row_factory = sqlite3.Row
    return conn


def create_tables(db_file: Optional[str] = None) -> None:
    """Create the key-value collections table if it does not exist."""
    conn = get_db_connection(db_file)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS collections (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        conn.commit()
    finally:
        conn.close()


def load_seed(path: Optional[str] = None) -> Dict[str, Collection]:
    """Read the seed JSON file holding ``books``, ``users`` and ``borrows`` arrays.

    A missing or unreadable seed file yields empty collections.
    """
    seed_path = Path(path) if path else SEED_FILE
    try:
        with open(seed_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read seed file {seed_path}: {e}")
        return {"books": [], "users": [], "borrows": []}
    return {name: list(data.get(name) or []) for name in ("books", "users", "borrows")}


class SQLiteStore:
    """Collection store backed by a single SQLite table of JSON values.

    Each collection is written whole, the way browser local storage keeps one
    JSON value per key.
    """

    def __init__(self, db_file: Optional[str] = None) -> None:
        self.db_file = db_file or DATABASE_FILE
        create_tables(self.db_file)

    def load(self, key: str, default: Collection) -> Collection:
        """Return the saved collection, or ``default`` on first use or parse failure."""
        conn = get_db_connection(self.db_file)
        try:
            row = conn.execute("SELECT value FROM collections WHERE key = ?", (key,)).fetchone()
        finally:
            conn.close()
        if row is None:
            return default
        try:
            value = json.loads(row["value"])
        except json.JSONDecodeError as e:
            logger.warning(f"Stored collection {key!r} is not valid JSON ({e}); using default")
            return default
        if not isinstance(value, list):
            logger.warning(f"Stored collection {key!r} is not a list; using default")
            return default
        return value

    def save(self, key: str, collection: Collection) -> None:
        self.save_many({key: collection})

    def save_many(self, collections: Dict[str, Collection]) -> None:
        """Overwrite several collections in one transaction."""
        conn = get_db_connection(self.db_file)
        try:
            with conn:
                conn.executemany(
                    """
                    INSERT INTO collections (key, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP
                    """,
                    [(key, json.dumps(value, ensure_ascii=False)) for key, value in collections.items()],
                )
        finally:
            conn.close()

    def clear(self) -> None:
        conn = get_db_connection(self.db_file)
        try:
            with conn:
                conn.execute("DELETE FROM collections")
        finally:
            conn.close()


class MemoryStore:
    """In-process store with the same contract, for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        # Values are kept serialized so callers can never mutate stored state in place
        self._data: Dict[str, str] = dict(initial or {})

    def load(self, key: str, default: Collection) -> Collection:
        raw = self._data.get(key)
        if raw is None:
            return default
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Stored collection {key!r} is not valid JSON; using default")
            return default
        return value if isinstance(value, list) else default

    def save(self, key: str, collection: Collection) -> None:
        self._data[key] = json.dumps(collection, ensure_ascii=False)

    def save_many(self, collections: Dict[str, Collection]) -> None:
        encoded = {key: json.dumps(value, ensure_ascii=False) for key, value in collections.items()}
        self._data.update(encoded)

    def clear(self) -> None:
        self._data.clear()
