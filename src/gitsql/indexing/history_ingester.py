"""
History ingestion: maps git commits, tags and branches onto store rows.

Load order for a fresh store is schema, commits reachable from the
starting point, tags, then branches. Every step is fail-fast; a failed
load closes the store, and a retry needs a fresh store and a fresh walk.

Insertion policy per table:
- commits: duplicates ignored, so overlapping walks are safe
- tags: duplicates are an error and abort the load
- branches: no key, rows are appended
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union

from ..errors import ReaderError
from ..git.graph_reader import GraphReader
from ..git.objects import COMMIT, AnnotatedTag, BranchKind, BranchRef, GitCommit, TagRef
from ..storage.history_store import BranchRow, CommitRow, HistoryStore, TagRow

logger = logging.getLogger(__name__)

ID_LENGTH = 7
PGP_SIGNATURE_MARKER = "-----BEGIN PGP SIGNATURE-----"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S UTC"


@dataclass(frozen=True)
class AnnotatedTagSource:
    tag: AnnotatedTag


@dataclass(frozen=True)
class LightweightTagSource:
    """A reference under refs/tags that points straight at an object."""

    id: str
    name: Optional[str]
    target_id: str


TagSource = Union[AnnotatedTagSource, LightweightTagSource]


@dataclass
class IngestionSummary:
    commits: int = 0
    tags: int = 0
    branches: int = 0


def truncate_id(oid: str) -> str:
    """First seven characters of an object id."""
    return oid[:ID_LENGTH]


def format_timestamp(seconds: int) -> str:
    """Render epoch seconds as a UTC timestamp, discarding the local offset."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc).strftime(DATE_FORMAT)


def strip_signature(message: str) -> str:
    """Drop a trailing PGP signature block from a tag message.

    Everything from the marker on is removed, then trailing whitespace. A
    message without the marker is returned unchanged.
    """
    position = message.find(PGP_SIGNATURE_MARKER)
    if position == -1:
        return message
    return message[:position].rstrip()


def commit_row(commit: GitCommit) -> CommitRow:
    return CommitRow(
        id=truncate_id(commit.oid),
        author=commit.author.name if commit.author is not None else None,
        date=format_timestamp(commit.time),
        message=commit.message,
    )


def tag_row(source: TagSource) -> TagRow:
    """Normalise either tag shape into the single tags row shape."""
    if isinstance(source, AnnotatedTagSource):
        tag = source.tag
        tagger = tag.tagger
        return TagRow(
            id=truncate_id(tag.oid),
            name=tag.name,
            target_id=truncate_id(tag.target_id),
            target_type=tag.target_type,
            tagger=tagger.name if tagger is not None else None,
            date=format_timestamp(tagger.time) if tagger is not None else None,
            message=strip_signature(tag.message) if tag.message is not None else None,
        )

    # Lightweight tags carry no metadata of their own; the target kind is
    # recorded as commit whatever the reference points at.
    return TagRow(
        id=truncate_id(source.id),
        name=source.name,
        target_id=truncate_id(source.target_id),
        target_type=COMMIT,
    )


def branch_row(branch: BranchRef) -> BranchRow:
    """Map a branch, degrading unreadable names and heads to NULL."""
    try:
        name: Optional[str] = branch.name()
    except ReaderError as e:
        logger.warning(f"Storing branch with unreadable name as NULL: {e}")
        name = None

    try:
        head: Optional[GitCommit] = branch.peel_to_commit()
    except ReaderError as e:
        logger.debug(f"Branch {branch.raw_name!r} has no resolvable head: {e}")
        head = None

    return BranchRow(
        name=name,
        type="local" if branch.kind is BranchKind.LOCAL else "remote",
        head_commit_id=truncate_id(head.oid) if head is not None else None,
        head_commit_date=format_timestamp(head.time) if head is not None else None,
    )


def tag_source(reader: GraphReader, tag_ref: TagRef) -> TagSource:
    if tag_ref.is_annotated:
        return AnnotatedTagSource(reader.find_tag(tag_ref.oid))
    return LightweightTagSource(
        id=tag_ref.oid, name=tag_ref.short_name(), target_id=tag_ref.oid
    )


def ingest_commits(store: HistoryStore, reader: GraphReader, starting_point: str) -> int:
    """Insert every commit reachable from starting_point.

    Returns:
        Number of commits walked (including ones already in the store)
    """
    walked = 0
    for oid in reader.walk_ancestry(starting_point):
        store.insert_commit(commit_row(reader.find_commit(oid)))
        walked += 1
    return walked


def ingest_tags(store: HistoryStore, reader: GraphReader) -> int:
    """Insert one row per tag reference.

    The reader's tag iteration only understands continue/stop, so the
    visitor keeps the first error it hits, stops the iteration, and the
    error is raised once iteration has returned.
    """
    captured_error: Optional[Exception] = None
    inserted = 0

    def visit(tag_ref: TagRef) -> bool:
        nonlocal captured_error, inserted
        try:
            store.insert_tag(tag_row(tag_source(reader, tag_ref)))
        except Exception as e:
            captured_error = e
            return False
        inserted += 1
        return True

    completed = reader.for_each_tag(visit)

    if captured_error is not None:
        raise captured_error
    if not completed:
        logger.warning("Tag iteration stopped early without an error")
    return inserted


def ingest_branches(store: HistoryStore, reader: GraphReader) -> int:
    branches = reader.list_branches()
    for branch in branches:
        store.insert_branch(branch_row(branch))
    return len(branches)


def initialize_store(reader: GraphReader, starting_point: str = "HEAD") -> HistoryStore:
    """Build a fully loaded store from the repository.

    Raises:
        ReaderError: If the repository cannot be read
        StoreError: If schema creation or any insert fails
    """
    store = HistoryStore.open_in_memory()
    summary = IngestionSummary()
    try:
        store.create_schema()
        summary.commits = ingest_commits(store, reader, starting_point)
        summary.tags = ingest_tags(store, reader)
        summary.branches = ingest_branches(store, reader)
    except Exception:
        store.close()
        raise

    logger.info(
        f"Loaded {summary.commits} commits from {starting_point}, "
        f"{summary.tags} tags, {summary.branches} branches"
    )
    return store


def extend_history(store: HistoryStore, reader: GraphReader, commit_reference: str) -> int:
    """Add the history reachable from a (possibly abbreviated) commit id.

    Commits already in the store are left as they are. If the walk fails
    part way, the commits inserted before the failure stay.

    Returns:
        Number of commits walked

    Raises:
        ReaderError: NOT_FOUND or AMBIGUOUS if commit_reference does not
            identify exactly one commit; the store is untouched in that case
    """
    commit = reader.resolve_commit_by_prefix(commit_reference)
    walked = ingest_commits(store, reader, commit.oid)
    logger.info(f"Traversed {walked} commits from {truncate_id(commit.oid)}")
    return walked
