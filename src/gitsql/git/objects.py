"""Parsed git objects and references handed out by the graph reader."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Tuple

from ..errors import ReaderError, ReaderErrorKind

COMMIT = "commit"
TAG = "tag"
TREE = "tree"
BLOB = "blob"

TAGS_PREFIX = b"refs/tags/"
LOCAL_BRANCH_PREFIX = b"refs/heads/"
REMOTE_BRANCH_PREFIX = b"refs/remotes/"


@dataclass(frozen=True)
class Signature:
    """Author, committer or tagger line of a git object."""

    name: Optional[str]  # None when the name is not valid UTF-8
    email: Optional[str]
    time: int  # seconds since the epoch
    offset: str  # e.g. "+0200"


@dataclass(frozen=True)
class GitCommit:
    """A commit object."""

    oid: str
    tree: str
    parents: Tuple[str, ...]
    author: Optional[Signature]
    committer: Optional[Signature]
    message: str

    @property
    def time(self) -> int:
        """Commit timestamp: the committer time, falling back to the author time."""
        if self.committer is not None:
            return self.committer.time
        if self.author is not None:
            return self.author.time
        return 0


@dataclass(frozen=True)
class AnnotatedTag:
    """An annotated tag object (a tag with its own object id)."""

    oid: str
    target_id: str
    target_type: Optional[str]
    name: Optional[str]
    tagger: Optional[Signature]
    message: Optional[str]


@dataclass(frozen=True)
class TagRef:
    """One entry under refs/tags as seen by the tag visitor.

    ``oid`` is what the reference points at directly: the tag object for an
    annotated tag, the tagged object itself for a lightweight tag.
    """

    oid: str
    object_type: str
    raw_name: bytes

    @property
    def is_annotated(self) -> bool:
        return self.object_type == TAG

    def short_name(self) -> Optional[str]:
        """Reference name without ``refs/tags/``; None if not valid UTF-8."""
        try:
            name = self.raw_name.decode("utf-8")
        except UnicodeDecodeError:
            return None
        prefix = TAGS_PREFIX.decode("ascii")
        return name[len(prefix):] if name.startswith(prefix) else name


class BranchKind(Enum):
    LOCAL = "local"
    REMOTE = "remote"


@dataclass(frozen=True)
class BranchRef:
    """A local or remote branch reference."""

    raw_name: bytes
    kind: BranchKind
    _peel: Callable[[bytes], GitCommit] = field(repr=False, compare=False)

    def name(self) -> str:
        """Short branch name (``main``, ``origin/main``).

        Raises:
            ReaderError: INVALID_UTF8 if the reference name is not valid UTF-8
        """
        prefix = (
            LOCAL_BRANCH_PREFIX if self.kind is BranchKind.LOCAL else REMOTE_BRANCH_PREFIX
        )
        raw = self.raw_name[len(prefix):] if self.raw_name.startswith(prefix) else self.raw_name
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ReaderError(
                ReaderErrorKind.INVALID_UTF8,
                f"Branch name {self.raw_name!r} is not valid UTF-8",
            ) from e

    def peel_to_commit(self) -> GitCommit:
        """Resolve the commit the branch currently points to.

        Raises:
            ReaderError: NOT_FOUND if the reference does not peel to a commit
        """
        return self._peel(self.raw_name)
