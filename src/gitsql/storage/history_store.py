"""In-memory SQLite store for repository history.

Schema:
    CREATE TABLE commits (
        id       TEXT PRIMARY KEY,
        author   TEXT,
        date     TEXT NOT NULL,
        message  TEXT
    );
    CREATE TABLE tags (
        id          TEXT PRIMARY KEY,
        name        TEXT,
        target_id   TEXT NOT NULL,
        target_type TEXT,
        tagger      TEXT,
        date        TEXT,
        message     TEXT
    );
    CREATE TABLE branches (
        name             TEXT,
        type             TEXT,
        head_commit_id   TEXT,
        head_commit_date TEXT
    );

There are no foreign keys; rows refer to each other by id string only.
Nothing is ever written to disk.
"""

import logging
import sqlite3
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from ..errors import StoreError

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE commits (
        id       TEXT PRIMARY KEY,
        author   TEXT,
        date     TEXT NOT NULL,
        message  TEXT
    )
    """,
    """
    CREATE TABLE tags (
        id          TEXT PRIMARY KEY,
        name        TEXT,
        target_id   TEXT NOT NULL,
        target_type TEXT,
        tagger      TEXT,
        date        TEXT,
        message     TEXT
    )
    """,
    """
    CREATE TABLE branches (
        name             TEXT,
        type             TEXT,
        head_commit_id   TEXT,
        head_commit_date TEXT
    )
    """,
)

# Commits are walked repeatedly (initial load, traverse), so a commit that
# is already present is skipped and keeps its first-seen values.
INSERT_COMMIT_SQL = (
    "INSERT OR IGNORE INTO commits (id, author, date, message) VALUES (?, ?, ?, ?)"
)
# Tags are loaded once; a duplicate id is a constraint violation that aborts
# the load.
INSERT_TAG_SQL = (
    "INSERT INTO tags (id, name, target_id, target_type, tagger, date, message) "
    "VALUES (?, ?, ?, ?, ?, ?, ?)"
)
# Branches have no key: a local and a remote branch with the same name are
# two rows told apart by type.
INSERT_BRANCH_SQL = (
    "INSERT INTO branches (name, type, head_commit_id, head_commit_date) "
    "VALUES (?, ?, ?, ?)"
)

TABLES = ("commits", "tags", "branches")


@dataclass(frozen=True)
class CommitRow:
    id: str
    author: Optional[str]
    date: str
    message: Optional[str]


@dataclass(frozen=True)
class TagRow:
    id: str
    name: Optional[str]
    target_id: str
    target_type: Optional[str]
    tagger: Optional[str] = None
    date: Optional[str] = None
    message: Optional[str] = None


@dataclass(frozen=True)
class BranchRow:
    name: Optional[str]
    type: str
    head_commit_id: Optional[str]
    head_commit_date: Optional[str]


@dataclass
class QueryResult:
    """Column names and rows of an ad-hoc statement."""

    columns: List[str]
    rows: List[Tuple[Any, ...]]

    @property
    def row_count(self) -> int:
        return len(self.rows)


class HistoryStore:
    """SQLite-backed store for commits, tags and branches.

    The store assumes exclusive, single-threaded access and performs no
    locking of its own.
    """

    def __init__(self, connection: sqlite3.Connection):
        self._conn = connection

    @classmethod
    def open_in_memory(cls) -> "HistoryStore":
        """Open a fresh, empty in-memory database.

        Raises:
            StoreError: If SQLite cannot open the database
        """
        try:
            # Autocommit; user-issued BEGIN/COMMIT work as typed
            connection = sqlite3.connect(":memory:", isolation_level=None)
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open in-memory database: {e}") from e
        return cls(connection)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "HistoryStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _execute(self, sql: str, params: Tuple[Any, ...] = ()) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, params)
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e

    def create_schema(self) -> None:
        """Create the commits, tags and branches tables."""
        for statement in SCHEMA_STATEMENTS:
            self._execute(statement)
        logger.debug("Created history schema")

    def insert_commit(self, row: CommitRow) -> bool:
        """Insert a commit row, ignoring an id that is already present.

        OR IGNORE applies to every constraint, so a row without a date is
        skipped the same way as a duplicate id.

        Returns:
            True if a row was inserted, False if it was ignored
        """
        cursor = self._execute(
            INSERT_COMMIT_SQL, (row.id, row.author, row.date, row.message)
        )
        return cursor.rowcount > 0

    def insert_tag(self, row: TagRow) -> None:
        """Insert a tag row.

        Raises:
            StoreError: If a tag with the same id is already present
        """
        self._execute(
            INSERT_TAG_SQL,
            (
                row.id,
                row.name,
                row.target_id,
                row.target_type,
                row.tagger,
                row.date,
                row.message,
            ),
        )

    def insert_branch(self, row: BranchRow) -> None:
        self._execute(
            INSERT_BRANCH_SQL,
            (row.name, row.type, row.head_commit_id, row.head_commit_date),
        )

    def count(self, table: str) -> int:
        """Number of rows in one of the history tables."""
        if table not in TABLES:
            raise ValueError(f"Unknown table {table!r}")
        row = self._execute(f"SELECT COUNT(*) FROM {table}").fetchone()
        return row[0] if row else 0

    def run_query(self, sql: str) -> QueryResult:
        """Run one arbitrary SQL statement.

        Any statement kind is accepted, including ones that modify or drop
        the history tables.

        Raises:
            StoreError: If the statement fails to prepare or execute
        """
        cursor = self._execute(sql)
        try:
            columns = [d[0] for d in cursor.description] if cursor.description else []
            rows = cursor.fetchall()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e
        return QueryResult(columns=columns, rows=rows)
