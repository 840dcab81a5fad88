"""
Saved Search Service - Validation in front of the saved-search store.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from kbsearch.config.errors import NotFoundError, ValidationError
from kbsearch.domains.search.filters import build_search_spec
from kbsearch.domains.search.models import SearchSpec

from .contracts import SavedSearchStore
from .models import MAX_NAME_LENGTH, SavedSearch

logger = logging.getLogger(__name__)


class SavedSearchService:
    """
    Create, list and delete saved searches.

    Example:
        >>> service = SavedSearchService(store)
        >>> saved = await service.create("weeknight pasta", {"query": "pasta", "scope": "recipes"})
    """

    def __init__(self, store: SavedSearchStore) -> None:
        self._store = store

    async def create(
        self,
        name: str,
        query: SearchSpec | Mapping[str, Any] | None,
    ) -> SavedSearch:
        """
        Save a search under a unique name.

        Args:
            name: Display name (trimmed, 1-80 characters)
            query: Raw request or SearchSpec; stored in canonical form

        Returns:
            The persisted SavedSearch

        Raises:
            ValidationError: Name missing or too long, or query missing
            SavedSearchConflictError: Name already taken
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("name is required")
        if len(name) > MAX_NAME_LENGTH:
            raise ValidationError(
                f"name must be {MAX_NAME_LENGTH} characters or fewer",
                {"length": len(name)},
            )
        if query is None or not isinstance(query, (SearchSpec, Mapping)):
            raise ValidationError("query is required")

        spec = build_search_spec(query)
        saved = await self._store.create(name, spec)
        logger.info("Saved search '%s' (%s)", saved.name, saved.id)
        return saved

    async def list(self) -> list[SavedSearch]:
        return await self._store.list()

    async def delete(self, saved_search_id: str) -> None:
        """Delete a saved search; raises NotFoundError if it does not exist."""
        if not await self._store.delete(saved_search_id):
            raise NotFoundError(
                "saved search not found",
                {"id": saved_search_id},
            )
        logger.info("Deleted saved search %s", saved_search_id)
