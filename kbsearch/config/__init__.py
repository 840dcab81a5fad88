"""
Configuration - Application settings and error taxonomy.
"""

from .errors import (
    ErrorCode,
    KBSearchError,
    NotFoundError,
    SavedSearchConflictError,
    SearchError,
    SemanticUnavailableError,
    StorageError,
    ValidationError,
)
from .settings import Settings, get_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    # Errors
    "ErrorCode",
    "KBSearchError",
    "SearchError",
    "SemanticUnavailableError",
    "SavedSearchConflictError",
    "NotFoundError",
    "ValidationError",
    "StorageError",
]
