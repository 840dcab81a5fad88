"""
CLI Interface - Command-line tools for KB Search.

Provides commands for:
- Searching and browsing notes
- Importing notes and rebuilding the vector index
- Managing saved searches
- Running the API server
"""

from .main import app, main

__all__ = ["app", "main"]
