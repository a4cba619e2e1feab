"""Read-only git repository access."""

from .graph_reader import GraphReader
from .objects import AnnotatedTag, BranchKind, BranchRef, GitCommit, Signature, TagRef

__all__ = [
    "GraphReader",
    "AnnotatedTag",
    "BranchKind",
    "BranchRef",
    "GitCommit",
    "Signature",
    "TagRef",
]
