"""
Search Routes - Hybrid keyword + semantic search endpoints.

Input is normalized, never rejected: unknown modes fall back to auto,
limits are clamped and unparseable filters are ignored.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Request

from kbsearch.domains.search import HybridSearchEngine, SearchResponse
from kbsearch.interfaces.api.deps import get_search_engine
from kbsearch.interfaces.api.middleware import record_search

router = APIRouter()

# Filters that may be repeated in a query string (?tags=a&tags=b)
_LIST_PARAMS = {
    "tags",
    "cuisine",
    "category",
    "keywords",
    "includeIngredients",
    "excludeIngredients",
}


def _query_params_to_request(request: Request) -> dict[str, Any]:
    """Flatten query parameters into a raw search request."""
    params = request.query_params
    raw: dict[str, Any] = {}
    for key in params.keys():
        values = params.getlist(key)
        raw[key] = values if key in _LIST_PARAMS and len(values) > 1 else values[-1]
    return raw


async def _run(
    request: Request, engine: HybridSearchEngine, raw: dict[str, Any]
) -> SearchResponse:
    response = await engine.search(raw)
    record_search(request, response.mode, len(response.results))
    return response


@router.post("", response_model=SearchResponse, response_model_exclude_none=True)
async def search(
    request: Request,
    body: dict[str, Any] | None = Body(default=None),
    engine: HybridSearchEngine = Depends(get_search_engine),
) -> SearchResponse:
    """
    Search notes and recipes.

    - **query**: Free text; empty or "*" browses newest first
    - **mode**: auto | hybrid | semantic | keyword
    - **scope**: all | notes | recipes
    - **limit**: Maximum results (clamped to 1-50)
    - **filters**: Facet filters (camelCase keys)
    - **explain**: Attach RRF explain metadata and debug info
    """
    return await _run(request, engine, body or {})


@router.get("", response_model=SearchResponse, response_model_exclude_none=True)
async def search_get(
    request: Request,
    engine: HybridSearchEngine = Depends(get_search_engine),
) -> SearchResponse:
    """Search via query string (`q`, `mode`, `scope`, `limit`, `explain`, flat filters)."""
    return await _run(request, engine, _query_params_to_request(request))


@router.get("/hybrid", response_model=SearchResponse, response_model_exclude_none=True)
async def search_hybrid(
    request: Request,
    engine: HybridSearchEngine = Depends(get_search_engine),
) -> SearchResponse:
    """Query-string search defaulting to hybrid mode."""
    raw = _query_params_to_request(request)
    raw.setdefault("mode", "hybrid")
    return await _run(request, engine, raw)
