"""
Object database access through ``git cat-file --batch``.

A single cat-file process is kept open for the lifetime of the reader and
answers one object request per line, which keeps reading tens of thousands
of commits to one process instead of one process per commit.

Batch protocol (per request line ``<name>``):

    <oid> <type> <size>\\n<size bytes of content>\\n
    <name> missing\\n
    <name> ambiguous\\n
"""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

from ..errors import ReaderError, ReaderErrorKind
from ..utils.git_runner import start_git_process
from .objects import AnnotatedTag, GitCommit, Signature

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawObject:
    oid: str
    type: str
    data: bytes


class ObjectDatabase:
    """Reads raw objects from a repository through a persistent cat-file process."""

    def __init__(self, repo_dir: Path):
        self.repo_dir = repo_dir
        self._process: Optional[subprocess.Popen] = None

    def _ensure_process(self) -> subprocess.Popen:
        if self._process is None or self._process.poll() is not None:
            try:
                self._process = start_git_process(
                    ["git", "cat-file", "--batch"], cwd=self.repo_dir
                )
            except OSError as e:
                raise ReaderError(
                    ReaderErrorKind.IO, f"Cannot start git cat-file: {e}"
                ) from e
        return self._process

    def read(self, name: Union[str, bytes]) -> RawObject:
        """Read one object by id, id prefix or revision expression.

        Raises:
            ReaderError: NOT_FOUND, AMBIGUOUS, or IO if the process failed
        """
        request = name.encode("utf-8") if isinstance(name, str) else name
        if b"\n" in request:
            raise ReaderError(ReaderErrorKind.NOT_FOUND, f"Invalid object name {name!r}")

        process = self._ensure_process()
        assert process.stdin is not None and process.stdout is not None

        try:
            process.stdin.write(request + b"\n")
            process.stdin.flush()
            header = process.stdout.readline()
        except (BrokenPipeError, OSError) as e:
            self.close()
            raise ReaderError(ReaderErrorKind.IO, f"git cat-file failed: {e}") from e

        if not header:
            self.close()
            raise ReaderError(ReaderErrorKind.IO, "git cat-file exited unexpectedly")

        header = header.rstrip(b"\n")
        parts = header.split(b" ")
        if len(parts) == 3 and parts[2].isdigit():
            size = int(parts[2])
            data = process.stdout.read(size)
            process.stdout.read(1)
            if len(data) != size:
                self.close()
                raise ReaderError(
                    ReaderErrorKind.IO, f"Short read for object {parts[0]!r}"
                )
            return RawObject(
                oid=parts[0].decode("ascii"), type=parts[1].decode("ascii"), data=data
            )

        display_name = request.decode("utf-8", errors="replace")
        if header.endswith(b" ambiguous"):
            raise ReaderError(
                ReaderErrorKind.AMBIGUOUS, f"Object id {display_name} is ambiguous"
            )
        if header.endswith(b" missing"):
            raise ReaderError(
                ReaderErrorKind.NOT_FOUND, f"Object {display_name} not found"
            )
        raise ReaderError(
            ReaderErrorKind.IO,
            f"Unexpected git cat-file response for {display_name}: "
            f"{header.decode('utf-8', errors='replace')}",
        )

    def close(self) -> None:
        """Terminate the cat-file process; safe to call repeatedly."""
        process, self._process = self._process, None
        if process is None:
            return
        try:
            if process.stdin is not None:
                process.stdin.close()
            process.wait(timeout=5)
        except (OSError, subprocess.TimeoutExpired):
            process.kill()
            process.wait()
        finally:
            if process.stdout is not None:
                process.stdout.close()


def split_object(data: bytes) -> Tuple[List[Tuple[bytes, bytes]], Optional[bytes]]:
    """Split a commit or tag object into headers and message.

    Continuation lines (starting with a space, as in ``gpgsig``) are folded
    into the previous header value. The message is None when the object has
    no blank line separating it from the headers.
    """
    headers: List[Tuple[bytes, bytes]] = []
    separator = data.find(b"\n\n")
    if separator == -1:
        head, message = data, None
    else:
        head, message = data[:separator], data[separator + 2:]

    for line in head.split(b"\n"):
        if not line:
            continue
        if line.startswith(b" ") and headers:
            key, value = headers[-1]
            headers[-1] = (key, value + b"\n" + line[1:])
            continue
        key, _, value = line.partition(b" ")
        headers.append((key, value))

    return headers, message


def parse_signature(value: bytes) -> Signature:
    """Parse ``Name <email> 1700000000 +0200``."""
    name: Optional[str] = None
    email: Optional[str] = None
    time = 0
    offset = "+0000"

    email_start = value.find(b"<")
    email_end = value.rfind(b">")
    if email_start != -1 and email_end > email_start:
        raw_name = value[:email_start].rstrip(b" ")
        email = value[email_start + 1:email_end].decode("utf-8", errors="replace")
        rest = value[email_end + 1:].split()
    else:
        raw_name = value
        rest = []

    try:
        name = raw_name.decode("utf-8")
    except UnicodeDecodeError:
        name = None

    if rest:
        try:
            time = int(rest[0])
        except ValueError:
            logger.debug(f"Unparseable signature timestamp {rest[0]!r}")
        if len(rest) > 1:
            offset = rest[1].decode("ascii", errors="replace")

    return Signature(name=name, email=email, time=time, offset=offset)


def _decode(value: bytes) -> str:
    return value.decode("utf-8", errors="replace")


def parse_commit(oid: str, data: bytes) -> GitCommit:
    headers, message = split_object(data)
    tree = ""
    parents: List[str] = []
    author: Optional[Signature] = None
    committer: Optional[Signature] = None

    for key, value in headers:
        if key == b"tree":
            tree = _decode(value)
        elif key == b"parent":
            parents.append(_decode(value))
        elif key == b"author":
            author = parse_signature(value)
        elif key == b"committer":
            committer = parse_signature(value)

    return GitCommit(
        oid=oid,
        tree=tree,
        parents=tuple(parents),
        author=author,
        committer=committer,
        message=_decode(message) if message is not None else "",
    )


def parse_tag(oid: str, data: bytes) -> AnnotatedTag:
    headers, message = split_object(data)
    target_id = ""
    target_type: Optional[str] = None
    name: Optional[str] = None
    tagger: Optional[Signature] = None

    for key, value in headers:
        if key == b"object":
            target_id = _decode(value)
        elif key == b"type":
            target_type = _decode(value)
        elif key == b"tag":
            try:
                name = value.decode("utf-8")
            except UnicodeDecodeError:
                name = None
        elif key == b"tagger":
            tagger = parse_signature(value)

    return AnnotatedTag(
        oid=oid,
        target_id=target_id,
        target_type=target_type,
        name=name,
        tagger=tagger,
        message=_decode(message) if message is not None else None,
    )
