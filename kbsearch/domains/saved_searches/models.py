"""
Saved Search Models - Named, persisted search requests.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from kbsearch.domains.search.models import SearchSpec, WireModel

MAX_NAME_LENGTH = 80


class SavedSearch(WireModel):
    """A named SearchSpec."""

    id: str
    name: str
    query: SearchSpec
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CreateSavedSearchRequest(WireModel):
    """Body of a save request; validated by SavedSearchService."""

    name: str = ""
    query: dict[str, Any] | None = None


class SavedSearchList(WireModel):
    items: list[SavedSearch] = Field(default_factory=list)
