"""
Tests for the hybrid search engine.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from kbsearch.config.errors import SemanticUnavailableError

from .hybrid_search import HybridSearchEngine, default_min_semantic_score
from .models import (
    DocumentSummary,
    ResolvedMode,
    RetrievalHit,
    Scope,
    SearchResponse,
    SourceName,
)


def _hits(*ids: str, score: float = 0.9) -> list[RetrievalHit]:
    return [RetrievalHit(id=doc_id, rank=i, score=score) for i, doc_id in enumerate(ids, 1)]


@pytest.fixture
def keyword_retriever() -> AsyncMock:
    """Keyword retriever returning A, B, C."""
    mock = AsyncMock()
    mock.search_keyword.return_value = _hits("A", "B", "C", score=5.0)
    return mock


@pytest.fixture
def semantic_retriever() -> MagicMock:
    """Semantic retriever returning B, D, A."""
    mock = MagicMock()
    mock.is_available.return_value = True
    mock.search_semantic = AsyncMock(return_value=_hits("B", "D", "A", score=0.9))
    return mock


@pytest.fixture
def document_store() -> AsyncMock:
    """Store that resolves every id it is asked for."""
    mock = AsyncMock()

    async def get_summaries(ids: list[str]) -> dict[str, DocumentSummary]:
        return {i: DocumentSummary(id=i, title=f"Doc {i}", body=f"about pasta {i}") for i in ids}

    mock.get_summaries.side_effect = get_summaries
    return mock


@pytest.fixture
def search_engine(
    keyword_retriever: AsyncMock,
    semantic_retriever: MagicMock,
    document_store: AsyncMock,
) -> HybridSearchEngine:
    return HybridSearchEngine(
        keyword_retriever=keyword_retriever,
        semantic_retriever=semantic_retriever,
        document_store=document_store,
        rrf_k=60,
        retriever_timeout=0.5,
    )


# --- Defaults ---


def test_default_min_semantic_score() -> None:
    assert default_min_semantic_score(Scope.RECIPES, ResolvedMode.SEMANTIC) == 0.45
    assert default_min_semantic_score(Scope.ALL, ResolvedMode.SEMANTIC) == 0.70
    assert default_min_semantic_score(Scope.RECIPES, ResolvedMode.HYBRID) == 0.35
    assert default_min_semantic_score(Scope.NOTES, ResolvedMode.HYBRID) == 0.55
    assert default_min_semantic_score(Scope.ALL, ResolvedMode.KEYWORD) is None


# --- Hybrid ---


async def test_hybrid_search_fuses_both_sources(
    search_engine: HybridSearchEngine,
    keyword_retriever: AsyncMock,
    semantic_retriever: MagicMock,
) -> None:
    """Test auto mode runs both retrievers and fuses with RRF."""
    response = await search_engine.search({"query": "pasta", "limit": 10})

    assert isinstance(response, SearchResponse)
    assert response.mode == "hybrid"
    assert [r.id for r in response.results] == ["B", "A", "D", "C"]
    assert response.results[0].score == pytest.approx(1 / 61 + 1 / 62, abs=1e-9)
    assert response.results[0].sources == [SourceName.KEYWORD, SourceName.SEMANTIC]
    assert response.debug is None

    # Depth is limit * candidate multiplier
    keyword_retriever.search_keyword.assert_awaited_once()
    assert keyword_retriever.search_keyword.call_args.args[1] == 20
    semantic_retriever.search_semantic.assert_awaited_once()


async def test_hybrid_search_truncates_to_limit(search_engine: HybridSearchEngine) -> None:
    response = await search_engine.search({"query": "pasta", "limit": 2})
    assert [r.id for r in response.results] == ["B", "A"]


async def test_hybrid_search_explain(search_engine: HybridSearchEngine) -> None:
    """Test explain attaches fusion metadata and the debug channel."""
    response = await search_engine.search({"query": "pasta", "mode": "hybrid", "explain": True})

    first = response.results[0]
    assert first.explain is not None
    assert first.explain.fusion.k == 60
    assert first.explain.fusion.combined_score == first.score

    debug = response.debug
    assert debug is not None
    assert debug.resolved_mode == ResolvedMode.HYBRID
    assert debug.keyword_count == 3
    assert debug.semantic_count == 3
    assert debug.overlap_count == 2
    assert debug.returned_count == 4
    assert debug.min_semantic_score == 0.55
    assert debug.keyword.ok and debug.semantic.ok


async def test_explain_only_in_hybrid_mode(search_engine: HybridSearchEngine) -> None:
    """Test single-source modes never carry per-result explain."""
    response = await search_engine.search({"query": "pasta", "mode": "keyword", "explain": True})
    assert all(r.explain is None for r in response.results)
    assert response.debug is not None


async def test_min_semantic_score_filters_before_ranking(
    search_engine: HybridSearchEngine,
    semantic_retriever: MagicMock,
) -> None:
    """Test weak semantic hits are dropped and survivors re-ranked."""
    semantic_retriever.search_semantic.return_value = [
        RetrievalHit(id="X", rank=1, score=0.2),
        RetrievalHit(id="Y", rank=2, score=0.8),
    ]
    response = await search_engine.search(
        {"query": "pasta", "mode": "semantic", "explain": True, "minSemanticScore": 0.5}
    )

    assert [r.id for r in response.results] == ["Y"]
    assert response.results[0].score == 0.8
    assert response.debug.semantic.raw_count == 2
    assert response.debug.semantic.post_filter_count == 1


async def test_min_semantic_score_filtered_to_zero(
    search_engine: HybridSearchEngine,
    semantic_retriever: MagicMock,
) -> None:
    semantic_retriever.search_semantic.return_value = _hits("X", score=0.1)
    response = await search_engine.search({"query": "pasta", "mode": "hybrid", "explain": True})

    assert response.debug.semantic.reason == "filtered_to_zero"
    assert [r.id for r in response.results] == ["A", "B", "C"]


# --- Single source ---


async def test_keyword_mode_skips_semantic(
    search_engine: HybridSearchEngine,
    semantic_retriever: MagicMock,
) -> None:
    response = await search_engine.search({"query": "pasta", "mode": "keyword"})

    assert response.mode == "keyword"
    assert [r.id for r in response.results] == ["A", "B", "C"]
    assert response.results[0].score == 5.0
    semantic_retriever.search_semantic.assert_not_called()


async def test_semantic_mode_skips_keyword(
    search_engine: HybridSearchEngine,
    keyword_retriever: AsyncMock,
) -> None:
    response = await search_engine.search({"query": "pasta", "mode": "semantic"})

    assert response.mode == "semantic"
    assert [r.id for r in response.results] == ["B", "D", "A"]
    keyword_retriever.search_keyword.assert_not_called()


async def test_browse_runs_keyword_only(
    search_engine: HybridSearchEngine,
    semantic_retriever: MagicMock,
) -> None:
    """Test wildcard query browses by recency with no snippets."""
    response = await search_engine.search({"query": "*", "mode": "semantic"})

    assert response.mode == "browse"
    assert [r.id for r in response.results] == ["A", "B", "C"]
    assert all(r.snippet is None for r in response.results)
    semantic_retriever.search_semantic.assert_not_called()


# --- Degradation ---


async def test_semantic_unavailable_degrades_to_keyword(
    search_engine: HybridSearchEngine,
    semantic_retriever: MagicMock,
) -> None:
    semantic_retriever.is_available.return_value = False
    response = await search_engine.search({"query": "pasta", "explain": True})

    assert response.mode == "keyword"
    assert response.debug.semantic.reason == "not_configured"
    semantic_retriever.search_semantic.assert_not_called()


async def test_semantic_error_degrades_hybrid(
    search_engine: HybridSearchEngine,
    semantic_retriever: MagicMock,
) -> None:
    """Test a failing semantic source leaves keyword results intact."""
    semantic_retriever.search_semantic.side_effect = RuntimeError("index corrupt")
    response = await search_engine.search({"query": "pasta", "explain": True})

    assert response.mode == "keyword"
    assert [r.id for r in response.results] == ["A", "B", "C"]
    assert response.debug.semantic.reason == "error"
    assert response.debug.semantic.error_message == "index corrupt"
    # Scores are raw keyword scores, so no RRF explain is attached
    assert all(r.explain is None for r in response.results)
    assert response.results[0].score == 5.0


async def test_semantic_timeout_degrades_hybrid(
    search_engine: HybridSearchEngine,
    semantic_retriever: MagicMock,
) -> None:
    async def slow(*args: object) -> list[RetrievalHit]:
        await asyncio.sleep(5)
        return []

    semantic_retriever.search_semantic.side_effect = slow
    response = await search_engine.search({"query": "pasta", "explain": True})

    assert [r.id for r in response.results] == ["A", "B", "C"]
    assert response.debug.semantic.reason == "timeout"


async def test_keyword_error_degrades_to_semantic(
    search_engine: HybridSearchEngine,
    keyword_retriever: AsyncMock,
) -> None:
    keyword_retriever.search_keyword.side_effect = RuntimeError("fts locked")
    response = await search_engine.search({"query": "pasta"})

    assert response.mode == "semantic"
    assert [r.id for r in response.results] == ["B", "D", "A"]


async def test_semantic_mode_falls_back_to_keyword(
    search_engine: HybridSearchEngine,
    semantic_retriever: MagicMock,
    keyword_retriever: AsyncMock,
) -> None:
    semantic_retriever.search_semantic.side_effect = SemanticUnavailableError("no model")
    response = await search_engine.search({"query": "pasta", "mode": "semantic", "explain": True})

    assert response.mode == "keyword"
    assert [r.id for r in response.results] == ["A", "B", "C"]
    assert response.debug.semantic.reason == "not_configured"
    keyword_retriever.search_keyword.assert_awaited_once()


async def test_both_sources_fail_returns_empty(
    search_engine: HybridSearchEngine,
    keyword_retriever: AsyncMock,
    semantic_retriever: MagicMock,
) -> None:
    keyword_retriever.search_keyword.side_effect = RuntimeError("down")
    semantic_retriever.search_semantic.side_effect = RuntimeError("down")
    response = await search_engine.search({"query": "pasta"})

    assert response.results == []


async def test_stale_ids_are_dropped(
    search_engine: HybridSearchEngine,
    document_store: AsyncMock,
) -> None:
    """Test ids deleted after retrieval are skipped silently."""

    async def partial(ids: list[str]) -> dict[str, DocumentSummary]:
        return {i: DocumentSummary(id=i, title=i) for i in ids if i != "B"}

    document_store.get_summaries.side_effect = partial
    response = await search_engine.search({"query": "pasta", "explain": True})

    assert "B" not in [r.id for r in response.results]
    assert response.debug.dropped_count == 1
