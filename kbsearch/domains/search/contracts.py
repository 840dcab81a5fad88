"""
Search Contracts - Interfaces for search domain collaborators.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from .models import DocumentSummary, RetrievalHit, SearchResponse, SearchSpec


@runtime_checkable
class KeywordRetriever(Protocol):
    """Lexical retrieval. Wildcard queries return newest documents first."""

    async def search_keyword(
        self,
        spec: SearchSpec,
        limit: int,
    ) -> list[RetrievalHit]:
        """Return up to `limit` hits in rank order."""
        ...


@runtime_checkable
class SemanticRetriever(Protocol):
    """Vector retrieval. Raises SemanticUnavailableError when it cannot serve."""

    def is_available(self) -> bool:
        """Cheap readiness check used by mode resolution."""
        ...

    async def search_semantic(
        self,
        spec: SearchSpec,
        limit: int,
    ) -> list[RetrievalHit]:
        """Return up to `limit` hits in rank order, scores in [0, 1]."""
        ...


@runtime_checkable
class DocumentStore(Protocol):
    """Batch lookup of document summaries."""

    async def get_summaries(self, ids: list[str]) -> dict[str, DocumentSummary]:
        """Return summaries keyed by id; unknown ids are omitted."""
        ...


@runtime_checkable
class CandidateFilter(Protocol):
    """Applies scope and facet filters to retrieved candidate ids."""

    async def filter_ids(self, ids: list[str], spec: SearchSpec) -> set[str]:
        """Return the subset of ids passing the spec's filters."""
        ...


@runtime_checkable
class SearchEngine(Protocol):
    """Contract for search implementations."""

    async def search(
        self,
        request: SearchSpec | Mapping[str, Any],
    ) -> SearchResponse:
        """Execute search and return the assembled response."""
        ...
