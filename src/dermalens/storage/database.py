"""SQLite connection, schema creation and reference data seeding."""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING

from dermalens.errors import StoreError
from dermalens.storage.seed import DISEASE_SEED

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS diseases (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT UNIQUE NOT NULL,
    description TEXT,
    causes TEXT,
    prevention TEXT,
    treatment TEXT,
    severity_level TEXT DEFAULT 'medium',
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS prediction_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    predicted_disease TEXT NOT NULL,
    confidence REAL NOT NULL,
    image_name TEXT DEFAULT 'unknown',
    prediction_date TIMESTAMP NOT NULL,
    all_predictions TEXT
);
"""


class Database:
    """A single shared SQLite connection serialized by a lock."""

    def __init__(self, path: str) -> None:
        self._path = path
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row

    def initialize(self) -> None:
        """Create tables and seed the disease reference data if it is empty."""
        with self.transaction() as conn:
            conn.executescript(_SCHEMA)
            (count,) = conn.execute("SELECT COUNT(*) FROM diseases").fetchone()
            if count == 0:
                conn.executemany(
                    "INSERT OR IGNORE INTO diseases "
                    "(name, description, causes, prevention, treatment, severity_level) "
                    "VALUES (:name, :description, :causes, :prevention, :treatment, :severity)",
                    DISEASE_SEED,
                )
                logger.info("Seeded %d diseases", len(DISEASE_SEED))
        logger.info("Database ready at %s", self._path)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Hold the connection lock for one unit of work; commit or roll back.

        Raises:
            StoreError: Wrapping any sqlite3 error raised inside the block.
        """
        with self._lock:
            try:
                with self._conn:
                    yield self._conn
            except sqlite3.Error as exc:
                raise StoreError(f"Database operation failed: {exc}") from exc

    def ping(self) -> bool:
        """Return True when a trivial query succeeds."""
        try:
            with self.transaction() as conn:
                conn.execute("SELECT 1").fetchone()
        except StoreError:
            return False
        return True

    def close(self) -> None:
        with self._lock:
            self._conn.close()
        logger.info("Database connection closed")
