"""
SQLite Adapter - Note storage, FTS5 keyword search and saved searches.
"""

from .fts import compile_fts_query
from .repository import SQLiteRepository
from .saved_searches import SQLiteSavedSearchStore

__all__ = ["SQLiteRepository", "SQLiteSavedSearchStore", "compile_fts_query"]
