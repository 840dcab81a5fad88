"""
Mode Resolver - Decide which retrievers run for a request.

Pure and deterministic: identical inputs always resolve identically.
"""

from __future__ import annotations

from .models import WILDCARD_QUERIES, ModeResolution, ResolvedMode, SearchMode

__all__ = ["resolve_mode"]

_PASS_THROUGH = {
    SearchMode.HYBRID: ResolvedMode.HYBRID,
    SearchMode.SEMANTIC: ResolvedMode.SEMANTIC,
    SearchMode.KEYWORD: ResolvedMode.KEYWORD,
}


def resolve_mode(
    requested: SearchMode | str,
    query: str,
    semantic_available: bool = True,
) -> ModeResolution:
    """
    Resolve the requested mode against the query text.

    Args:
        requested: Requested mode (auto, hybrid, semantic, keyword)
        query: Normalized query text
        semantic_available: Whether the vector index can serve requests

    Returns:
        ModeResolution with the executed mode and browse flag
    """
    requested = SearchMode(requested)

    # Match-all queries are a recency browse regardless of mode
    if query.strip() in WILDCARD_QUERIES:
        return ModeResolution(
            requested=requested,
            mode=ResolvedMode.KEYWORD,
            browse=True,
        )

    mode = _PASS_THROUGH.get(requested, ResolvedMode.HYBRID)

    if mode != ResolvedMode.KEYWORD and not semantic_available:
        return ModeResolution(
            requested=requested,
            mode=ResolvedMode.KEYWORD,
            semantic_degraded=True,
        )

    return ModeResolution(requested=requested, mode=mode)
