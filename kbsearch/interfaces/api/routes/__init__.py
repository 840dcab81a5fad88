"""
API Routes.
"""

from . import health, saved_searches, search

__all__ = ["health", "search", "saved_searches"]
