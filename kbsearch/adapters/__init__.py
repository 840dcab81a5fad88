"""
Adapters - Storage and vector index integrations.

Third-party libraries (aiosqlite, faiss, sentence-transformers) are wrapped
here so the search domain only sees its own contracts.
"""

from .faiss import FAISSIndex, FaissSemanticRetriever
from .sqlite import SQLiteRepository, SQLiteSavedSearchStore

__all__ = [
    "SQLiteRepository",
    "SQLiteSavedSearchStore",
    "FAISSIndex",
    "FaissSemanticRetriever",
]
