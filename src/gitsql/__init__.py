"""
gitsql - query git history with SQL.

Loads the commits, tags and branches of a git repository into an
in-memory SQLite database and opens an interactive prompt for running
ad-hoc SQL against them.
"""

__version__ = "0.1.0"
