"""In-memory relational storage for repository history."""

from .history_store import BranchRow, CommitRow, HistoryStore, QueryResult, TagRow

__all__ = ["BranchRow", "CommitRow", "HistoryStore", "QueryResult", "TagRow"]
