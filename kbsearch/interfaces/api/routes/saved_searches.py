"""
Saved Search Routes - Create, list and delete named searches.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from kbsearch.domains.saved_searches import (
    CreateSavedSearchRequest,
    SavedSearch,
    SavedSearchList,
    SavedSearchService,
)
from kbsearch.interfaces.api.deps import get_saved_search_service

router = APIRouter()


@router.get("", response_model=SavedSearchList, response_model_exclude_none=True)
async def list_saved_searches(
    service: SavedSearchService = Depends(get_saved_search_service),
) -> SavedSearchList:
    """List saved searches, most recently updated first."""
    return SavedSearchList(items=await service.list())


@router.post(
    "",
    response_model=SavedSearch,
    response_model_exclude_none=True,
    status_code=201,
)
async def create_saved_search(
    request: CreateSavedSearchRequest,
    service: SavedSearchService = Depends(get_saved_search_service),
) -> SavedSearch:
    """
    Save a search.

    - **name**: Unique name, 1-80 characters (409 if taken)
    - **query**: Search request to store
    """
    return await service.create(request.name, request.query)


@router.delete("/{saved_search_id}")
async def delete_saved_search(
    saved_search_id: str,
    service: SavedSearchService = Depends(get_saved_search_service),
) -> dict[str, bool]:
    """Delete a saved search (404 if it does not exist)."""
    await service.delete(saved_search_id)
    return {"ok": True}
