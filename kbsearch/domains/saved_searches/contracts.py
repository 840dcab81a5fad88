"""
Saved Search Contracts - Interface for saved-search persistence.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from kbsearch.domains.search.models import SearchSpec

from .models import SavedSearch


@runtime_checkable
class SavedSearchStore(Protocol):
    """Contract for saved-search storage. Names are unique."""

    async def create(self, name: str, spec: SearchSpec) -> SavedSearch:
        """Persist a new saved search. Raises SavedSearchConflictError on duplicate name."""
        ...

    async def list(self) -> list[SavedSearch]:
        """All saved searches, most recently updated first."""
        ...

    async def delete(self, saved_search_id: str) -> bool:
        """Delete by id. Returns False if it did not exist."""
        ...
