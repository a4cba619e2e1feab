"""Ingestion of repository history into the history store."""

from .history_ingester import extend_history, initialize_store, strip_signature

__all__ = ["extend_history", "initialize_store", "strip_signature"]
