"""
Saved Searches Domain - Named SearchSpec persistence.

This domain handles:
- Name validation (trimmed, unique, at most 80 characters)
- Canonicalizing stored requests
- Create / list / delete
"""

from .contracts import SavedSearchStore
from .models import CreateSavedSearchRequest, SavedSearch, SavedSearchList
from .service import SavedSearchService

__all__ = [
    # Contracts
    "SavedSearchStore",
    # Models
    "SavedSearch",
    "SavedSearchList",
    "CreateSavedSearchRequest",
    # Implementations
    "SavedSearchService",
]
