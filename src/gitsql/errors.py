"""Error types shared by the repository reader and the history store.

Errors are tagged by the subsystem that raised them so the command line can
tell a repository problem apart from a store problem.
"""

from enum import Enum
from typing import Optional


class GitSqlError(Exception):
    """Base class for all gitsql errors."""

    subsystem = "gitsql"


class ReaderErrorKind(Enum):
    """Reasons a repository read can fail."""

    NOT_FOUND = "not-found"
    AMBIGUOUS = "ambiguous"
    INVALID_PATH = "invalid-path"
    INVALID_UTF8 = "invalid-utf8"
    IO = "io"


class ReaderError(GitSqlError):
    """Raised when the git repository cannot be read."""

    subsystem = "repository"

    def __init__(self, kind: ReaderErrorKind, message: str, stderr: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.stderr = stderr

    def __str__(self) -> str:
        message = super().__str__()
        if self.stderr:
            return f"{message}: {self.stderr.strip()}"
        return message


class StoreError(GitSqlError):
    """Raised when a statement against the history store fails."""

    subsystem = "store"
