"""
Health Routes - System health and status endpoints.
"""

from typing import Any

from fastapi import APIRouter, Depends

from kbsearch import __version__
from kbsearch.adapters.faiss import FaissSemanticRetriever
from kbsearch.interfaces.api.deps import get_semantic_retriever

router = APIRouter()


@router.get("/health")
async def health_check(
    retriever: FaissSemanticRetriever = Depends(get_semantic_retriever),
) -> dict[str, Any]:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "kbsearch",
        "semantic": retriever.is_available(),
    }


@router.get("/api")
async def api_info() -> dict[str, Any]:
    """API info endpoint."""
    return {
        "name": "KB Search API",
        "version": __version__,
        "description": "Hybrid keyword + semantic search for notes and recipes",
        "docs": "/docs",
    }
