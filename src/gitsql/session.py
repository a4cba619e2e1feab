"""Query session: the opened repository together with its loaded store."""

import logging
from pathlib import Path
from typing import Union

from .git.graph_reader import GraphReader
from .indexing.history_ingester import extend_history, initialize_store
from .storage.history_store import HistoryStore, QueryResult

logger = logging.getLogger(__name__)


class QuerySession:
    """Owns the repository reader and the history store for one run.

    Constructed once at startup and passed to whatever drives the session
    (the interactive loop or one-shot statement execution).
    """

    def __init__(self, reader: GraphReader, store: HistoryStore):
        self.reader = reader
        self.store = store

    @classmethod
    def initialize(
        cls, repository_path: Union[str, Path], starting_point: str = "HEAD"
    ) -> "QuerySession":
        """Open the repository and load its history.

        Raises:
            ReaderError: If the repository cannot be opened or read
            StoreError: If the store cannot be built
        """
        reader = GraphReader.open(repository_path)
        try:
            store = initialize_store(reader, starting_point)
        except Exception:
            reader.close()
            raise
        return cls(reader, store)

    def run_query(self, sql: str) -> QueryResult:
        return self.store.run_query(sql)

    def extend(self, identifier: str) -> int:
        """Walk history from a commit id prefix into the store."""
        return extend_history(self.store, self.reader, identifier)

    def close(self) -> None:
        self.store.close()
        self.reader.close()

    def __enter__(self) -> "QuerySession":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
