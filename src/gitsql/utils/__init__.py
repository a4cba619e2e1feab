"""Shared helpers: git subprocess execution, exception logging, rendering."""
