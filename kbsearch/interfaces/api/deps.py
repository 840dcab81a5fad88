"""
API Dependencies - Dependency injection for FastAPI routes.

Provides singleton instances of storage, index and search services.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from kbsearch.adapters.faiss import FAISSIndex, FaissSemanticRetriever
from kbsearch.adapters.sqlite import SQLiteRepository, SQLiteSavedSearchStore
from kbsearch.config import SemanticUnavailableError, get_settings
from kbsearch.domains.saved_searches import SavedSearchService
from kbsearch.domains.search import HybridSearchEngine

logger = logging.getLogger(__name__)


@lru_cache
def get_sqlite_repository() -> SQLiteRepository:
    """Get SQLite repository singleton."""
    settings = get_settings()
    return SQLiteRepository(settings.db_path)


@lru_cache
def get_faiss_index() -> FAISSIndex:
    """Get FAISS index singleton (loaded on startup)."""
    settings = get_settings()
    return FAISSIndex(dimension=settings.embedding_dimension)


@lru_cache
def get_semantic_retriever() -> FaissSemanticRetriever:
    """Get semantic retriever singleton."""
    settings = get_settings()
    return FaissSemanticRetriever(
        get_faiss_index(),
        get_sqlite_repository(),
        embedding_model=settings.embedding_model,
    )


@lru_cache
def get_search_engine() -> HybridSearchEngine:
    """Get hybrid search engine singleton."""
    settings = get_settings()
    repo = get_sqlite_repository()
    return HybridSearchEngine(
        keyword_retriever=repo,
        semantic_retriever=get_semantic_retriever(),
        document_store=repo,
        rrf_k=settings.rrf_k,
        candidate_multiplier=settings.candidate_multiplier,
        retriever_timeout=settings.retriever_timeout_seconds,
    )


@lru_cache
def get_saved_search_service() -> SavedSearchService:
    """Get saved-search service singleton."""
    return SavedSearchService(SQLiteSavedSearchStore(get_sqlite_repository()))


async def init_services() -> None:
    """
    Initialize services on startup.

    This should be called from the FastAPI lifespan handler.
    """
    settings = get_settings()

    # Initialize SQLite
    repo = get_sqlite_repository()
    await repo.initialize()

    # Load vector index if one has been built
    index = get_faiss_index()
    if not await index.load(settings.faiss_index_path):
        logger.warning("Semantic search disabled until `kbsearch index` is run")
        return

    # Warm the embedding model so the first query does not pay for the load
    try:
        await get_semantic_retriever().load_model()
    except SemanticUnavailableError as e:
        logger.warning("Embedding model not loaded: %s", e.message)


async def cleanup_services() -> None:
    """Cleanup services on shutdown."""
    repo = get_sqlite_repository()
    await repo.close()
