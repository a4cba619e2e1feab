"""
Graph Reader: read-only access to a git repository's topology.

Enumerates commit ancestry, tag references and branch references, and
resolves object ids and id prefixes to parsed objects. Nothing here
modifies the repository.
"""

import logging
import re
import subprocess
from pathlib import Path
from typing import Callable, Iterator, List, Union

from ..errors import ReaderError, ReaderErrorKind
from ..utils.git_runner import run_git_command
from .object_database import ObjectDatabase, parse_commit, parse_tag
from .objects import (
    COMMIT,
    LOCAL_BRANCH_PREFIX,
    TAG,
    AnnotatedTag,
    BranchKind,
    BranchRef,
    GitCommit,
    TagRef,
)

logger = logging.getLogger(__name__)

# git refuses prefixes shorter than four hex digits
MIN_PREFIX_LENGTH = 4
_HEX_PREFIX = re.compile(r"^[0-9a-fA-F]{%d,64}$" % MIN_PREFIX_LENGTH)

TagVisitor = Callable[[TagRef], bool]


class GraphReader:
    """Read-only adapter over a git repository."""

    def __init__(self, repo_dir: Path):
        """Use GraphReader.open() to validate the path first.

        Args:
            repo_dir: Repository root (worktree top level, or git dir if bare)
        """
        self.repo_dir = repo_dir
        self._odb = ObjectDatabase(repo_dir)

    @classmethod
    def open(cls, path: Union[str, Path]) -> "GraphReader":
        """Open the repository rooted at ``path``.

        Parent directories are not searched: ``path`` must be the top level of
        a worktree, or the git directory itself.

        Raises:
            ReaderError: INVALID_PATH if path is not a repository root,
                IO if git is not installed
        """
        path = Path(path).expanduser()
        if not path.is_dir():
            raise ReaderError(
                ReaderErrorKind.INVALID_PATH, f"{path} is not a directory"
            )
        resolved = path.resolve()

        git_dir = cls._rev_parse(resolved, "--absolute-git-dir")
        if Path(git_dir).resolve() == resolved:
            return cls(resolved)

        if cls._rev_parse(resolved, "--is-bare-repository") == "true":
            raise ReaderError(
                ReaderErrorKind.INVALID_PATH,
                f"{path} is inside bare repository {git_dir}, not at its root",
            )

        toplevel = cls._rev_parse(resolved, "--show-toplevel")
        if Path(toplevel).resolve() != resolved:
            raise ReaderError(
                ReaderErrorKind.INVALID_PATH,
                f"{path} is not a repository root (repository root is {toplevel})",
            )

        logger.info(f"Opened repository {resolved}")
        return cls(resolved)

    @staticmethod
    def _rev_parse(path: Path, option: str) -> str:
        try:
            result = run_git_command(
                ["git", "rev-parse", option], cwd=path, check=False
            )
        except FileNotFoundError as e:
            raise ReaderError(ReaderErrorKind.IO, "git executable not found") from e
        if result.returncode != 0:
            raise ReaderError(
                ReaderErrorKind.INVALID_PATH,
                f"{path} is not a git repository",
                stderr=result.stderr,
            )
        return result.stdout.strip()

    def close(self) -> None:
        self._odb.close()

    def __enter__(self) -> "GraphReader":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _git(self, args: List[str], text: bool = True) -> subprocess.CompletedProcess:
        try:
            return run_git_command(["git"] + args, cwd=self.repo_dir, text=text)
        except subprocess.CalledProcessError as e:
            stderr = e.stderr
            if isinstance(stderr, bytes):
                stderr = stderr.decode("utf-8", errors="replace")
            raise ReaderError(
                ReaderErrorKind.IO, f"git {args[0]} failed", stderr=stderr
            ) from e
        except FileNotFoundError as e:
            raise ReaderError(ReaderErrorKind.IO, "git executable not found") from e

    def walk_ancestry(self, starting_point: str = "HEAD") -> Iterator[str]:
        """Yield the full id of every commit reachable from starting_point.

        Each commit is yielded exactly once. The walk is one-shot: start a new
        one for every traversal.

        Raises:
            ReaderError: NOT_FOUND if starting_point does not resolve
        """
        if not starting_point or starting_point.startswith("-"):
            raise ReaderError(
                ReaderErrorKind.NOT_FOUND, f"Invalid starting point {starting_point!r}"
            )

        try:
            result = run_git_command(
                ["git", "rev-list", starting_point, "--"], cwd=self.repo_dir
            )
        except subprocess.CalledProcessError as e:
            raise ReaderError(
                ReaderErrorKind.NOT_FOUND,
                f"Cannot walk history from {starting_point}",
                stderr=e.stderr,
            ) from e
        except FileNotFoundError as e:
            raise ReaderError(ReaderErrorKind.IO, "git executable not found") from e

        for line in result.stdout.splitlines():
            oid = line.strip()
            if oid:
                yield oid

    def find_commit(self, oid: str) -> GitCommit:
        raw = self._odb.read(oid)
        if raw.type != COMMIT:
            raise ReaderError(
                ReaderErrorKind.NOT_FOUND, f"Object {oid} is a {raw.type}, not a commit"
            )
        return parse_commit(raw.oid, raw.data)

    def find_tag(self, oid: str) -> AnnotatedTag:
        raw = self._odb.read(oid)
        if raw.type != TAG:
            raise ReaderError(
                ReaderErrorKind.NOT_FOUND, f"Object {oid} is a {raw.type}, not a tag"
            )
        return parse_tag(raw.oid, raw.data)

    def resolve_commit_by_prefix(self, short_id: str) -> GitCommit:
        """Resolve a possibly abbreviated commit id to exactly one commit.

        Only object ids are matched; a branch or tag whose name happens to
        be hex is never consulted.

        Raises:
            ReaderError: NOT_FOUND if nothing (or no commit) matches,
                AMBIGUOUS if more than one object matches the prefix
        """
        short_id = short_id.strip()
        if not _HEX_PREFIX.match(short_id):
            raise ReaderError(
                ReaderErrorKind.NOT_FOUND,
                f"{short_id!r} is not a valid object identifier "
                f"(expected {MIN_PREFIX_LENGTH} or more hex digits)",
            )
        short_id = short_id.lower()

        matches = self._git(["rev-parse", f"--disambiguate={short_id}"]).stdout.split()
        if not matches:
            raise ReaderError(ReaderErrorKind.NOT_FOUND, f"Object {short_id} not found")
        if len(matches) > 1:
            raise ReaderError(
                ReaderErrorKind.AMBIGUOUS,
                f"Object id {short_id} is ambiguous ({len(matches)} objects match)",
            )
        return self.find_commit(matches[0])

    def peel_to_commit(self, refname: bytes) -> GitCommit:
        """Resolve a reference to the commit it ultimately points to."""
        raw = self._odb.read(refname + b"^{commit}")
        return parse_commit(raw.oid, raw.data)

    def for_each_tag(self, visitor: TagVisitor) -> bool:
        """Call visitor once per tag reference, in refname order.

        The visitor returns True to continue and False to stop. Stopping is
        not an error: the caller is responsible for reporting why it stopped.

        Returns:
            True if every tag was visited, False if the visitor stopped early
        """
        result = self._git(
            [
                "for-each-ref",
                "--format=%(objectname) %(objecttype) %(refname)",
                "refs/tags",
            ],
            text=False,
        )

        for line in result.stdout.splitlines():
            if not line:
                continue
            oid, object_type, raw_name = line.split(b" ", 2)
            tag_ref = TagRef(
                oid=oid.decode("ascii"),
                object_type=object_type.decode("ascii"),
                raw_name=raw_name,
            )
            if not visitor(tag_ref):
                logger.debug(f"Tag iteration stopped at {raw_name!r}")
                return False

        return True

    def list_branches(self) -> List[BranchRef]:
        """Local branches followed by remote-tracking branches."""
        result = self._git(
            ["for-each-ref", "--format=%(refname)", "refs/heads", "refs/remotes"],
            text=False,
        )

        branches = []
        for raw_name in result.stdout.splitlines():
            if not raw_name:
                continue
            kind = (
                BranchKind.LOCAL
                if raw_name.startswith(LOCAL_BRANCH_PREFIX)
                else BranchKind.REMOTE
            )
            branches.append(BranchRef(raw_name=raw_name, kind=kind, _peel=self.peel_to_commit))
        return branches
