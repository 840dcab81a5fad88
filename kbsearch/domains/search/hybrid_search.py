"""
Hybrid Search Engine - Combines keyword and semantic retrieval with RRF.

Features:
- Request normalization and mode resolution
- Concurrent keyword/semantic fan-out with per-source timeouts
- Graceful degradation when a source fails
- Reciprocal Rank Fusion (RRF) with optional explain metadata
- Debug channel with counts, timings and per-source status
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping
from typing import Any

from kbsearch.config.errors import SemanticUnavailableError

from .assembler import ResultAssembler
from .contracts import DocumentStore, KeywordRetriever, SemanticRetriever
from .filters import build_search_spec
from .fusion import RankFusionEngine
from .models import (
    DEFAULT_RRF_K,
    ModeResolution,
    ResolvedMode,
    RetrievalHit,
    Scope,
    SearchDebug,
    SearchResponse,
    SearchSpec,
    SearchTimings,
    SourceName,
    SourceStatus,
)
from .modes import resolve_mode

logger = logging.getLogger(__name__)

__all__ = ["HybridSearchEngine", "default_min_semantic_score"]

MAX_ERROR_MESSAGE = 300

# (recipes, everything else)
_SEMANTIC_THRESHOLDS = {
    ResolvedMode.SEMANTIC: (0.45, 0.70),
    ResolvedMode.HYBRID: (0.35, 0.55),
}


def default_min_semantic_score(scope: Scope, mode: ResolvedMode) -> float | None:
    """Semantic score floor used when the request does not set one."""
    thresholds = _SEMANTIC_THRESHOLDS.get(mode)
    if thresholds is None:
        return None
    return thresholds[0] if scope == Scope.RECIPES else thresholds[1]


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def _truncate(message: str, max_len: int = MAX_ERROR_MESSAGE) -> str:
    if len(message) <= max_len:
        return message
    return f"{message[: max_len - 3]}..."


def _rerank(hits: list[RetrievalHit]) -> list[RetrievalHit]:
    return [
        hit if hit.rank == i else hit.model_copy(update={"rank": i})
        for i, hit in enumerate(hits, 1)
    ]


class HybridSearchEngine:
    """
    Hybrid search combining keyword and semantic retrieval.

    Example:
        >>> engine = HybridSearchEngine(sqlite_repo, semantic_retriever, sqlite_repo)
        >>> response = await engine.search({"query": "lemon pasta", "explain": True})
    """

    def __init__(
        self,
        keyword_retriever: KeywordRetriever,
        semantic_retriever: SemanticRetriever,
        document_store: DocumentStore,
        rrf_k: int = DEFAULT_RRF_K,
        candidate_multiplier: int = 2,
        retriever_timeout: float = 5.0,
    ) -> None:
        """
        Initialize hybrid search engine.

        Args:
            keyword_retriever: Lexical index (FTS)
            semantic_retriever: Vector index
            document_store: Summary lookup for result assembly
            rrf_k: RRF constant (default 60)
            candidate_multiplier: Retriever depth as a multiple of the limit
            retriever_timeout: Per-source timeout in seconds
        """
        self._keyword = keyword_retriever
        self._semantic = semantic_retriever
        self._fusion = RankFusionEngine(k=rrf_k)
        self._assembler = ResultAssembler(document_store)
        self._candidate_multiplier = max(1, candidate_multiplier)
        self._timeout = retriever_timeout

    @property
    def rrf_k(self) -> int:
        return self._fusion.k

    def _semantic_available(self) -> bool:
        try:
            return bool(self._semantic.is_available())
        except Exception as e:
            logger.warning("Semantic availability check failed: %s", e)
            return False

    async def search(self, request: SearchSpec | Mapping[str, Any]) -> SearchResponse:
        """
        Execute hybrid search.

        Args:
            request: SearchSpec, or a raw request mapping to normalize

        Returns:
            SearchResponse with results in final rank order
        """
        total_start = time.perf_counter()
        spec = request if isinstance(request, SearchSpec) else build_search_spec(request)
        resolution = resolve_mode(spec.mode, spec.query, self._semantic_available())
        depth = spec.limit * self._candidate_multiplier
        timings = SearchTimings()

        keyword_status = SourceStatus()
        semantic_status = SourceStatus()
        if not resolution.runs_semantic:
            semantic_status.reason = (
                "not_configured" if resolution.semantic_degraded else "disabled"
            )

        min_semantic_score = spec.filters.min_semantic_score
        if min_semantic_score is None:
            min_semantic_score = default_min_semantic_score(spec.scope, resolution.mode)

        (keyword_hits, keyword_ms), (semantic_hits, semantic_ms) = await asyncio.gather(
            self._run_keyword(spec, depth, keyword_status)
            if resolution.runs_keyword
            else self._skip(),
            self._run_semantic(spec, depth, semantic_status)
            if resolution.runs_semantic
            else self._skip(),
        )
        timings.keyword = keyword_ms
        timings.semantic = semantic_ms

        effective = resolution.mode
        if resolution.mode == ResolvedMode.SEMANTIC and not semantic_status.ok:
            # Semantic-only request lost its source: fall back to keyword
            keyword_hits, timings.keyword = await self._run_keyword(spec, depth, keyword_status)
            effective = ResolvedMode.KEYWORD
        elif resolution.mode == ResolvedMode.HYBRID:
            if not semantic_status.ok and keyword_status.ok:
                effective = ResolvedMode.KEYWORD
            elif semantic_status.ok and not keyword_status.ok:
                effective = ResolvedMode.SEMANTIC

        if semantic_status.ok:
            semantic_hits = self._apply_min_score(
                semantic_hits, min_semantic_score, semantic_status
            )

        fuse_start = time.perf_counter()
        explain = spec.explain and effective == ResolvedMode.HYBRID
        fused = self._fusion.fuse(keyword=keyword_hits, semantic=semantic_hits, explain=explain)
        timings.fuse = _elapsed_ms(fuse_start)

        score_source = {
            ResolvedMode.KEYWORD: SourceName.KEYWORD,
            ResolvedMode.SEMANTIC: SourceName.SEMANTIC,
        }.get(effective)

        assemble_start = time.perf_counter()
        items, dropped = await self._assembler.assemble(
            fused,
            limit=spec.limit,
            query="" if resolution.browse else spec.query,
            score_source=score_source,
        )
        timings.assemble = _elapsed_ms(assemble_start)
        timings.total = _elapsed_ms(total_start)

        mode_label = "browse" if resolution.browse else effective.value

        logger.info(
            "Hybrid search: query='%s' mode=%s -> %d results (keyword=%d, semantic=%d, dropped=%d)",
            spec.query[:50],
            mode_label,
            len(items),
            len(keyword_hits),
            len(semantic_hits),
            dropped,
        )

        debug = None
        if spec.explain:
            debug = self._build_debug(
                resolution,
                min_semantic_score if resolution.runs_semantic else None,
                keyword_hits,
                semantic_hits,
                fused_count=len(fused),
                returned_count=len(items),
                dropped_count=dropped,
                timings=timings,
                keyword_status=keyword_status,
                semantic_status=semantic_status,
            )

        return SearchResponse(
            query=spec.query,
            mode=mode_label,
            limit=spec.limit,
            spec=spec,
            results=items,
            debug=debug,
        )

    @staticmethod
    async def _skip() -> tuple[list[RetrievalHit], float]:
        return [], 0.0

    async def _run_keyword(
        self,
        spec: SearchSpec,
        depth: int,
        status: SourceStatus,
    ) -> tuple[list[RetrievalHit], float]:
        """Execute keyword search; failures yield an empty list."""
        start = time.perf_counter()
        status.attempted = True
        try:
            hits = await asyncio.wait_for(
                self._keyword.search_keyword(spec, depth), timeout=self._timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Keyword search timed out after %.1fs", self._timeout)
            status.ok, status.reason = False, "timeout"
            return [], _elapsed_ms(start)
        except Exception as e:
            logger.warning("Keyword search failed: %s", e)
            status.ok, status.reason = False, "error"
            status.error_message = _truncate(str(e))
            return [], _elapsed_ms(start)

        status.ok = True
        status.reason = None
        status.raw_count = len(hits)
        return _rerank(list(hits)), _elapsed_ms(start)

    async def _run_semantic(
        self,
        spec: SearchSpec,
        depth: int,
        status: SourceStatus,
    ) -> tuple[list[RetrievalHit], float]:
        """Execute vector search; failures yield an empty list."""
        start = time.perf_counter()
        status.attempted = True
        try:
            hits = await asyncio.wait_for(
                self._semantic.search_semantic(spec, depth), timeout=self._timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Semantic search timed out after %.1fs", self._timeout)
            status.ok, status.reason = False, "timeout"
            return [], _elapsed_ms(start)
        except SemanticUnavailableError as e:
            logger.info("Semantic search unavailable: %s", e.message)
            status.ok, status.reason = False, "not_configured"
            status.error_message = _truncate(e.message)
            return [], _elapsed_ms(start)
        except Exception as e:
            logger.warning("Semantic search failed: %s", e)
            status.ok, status.reason = False, "error"
            status.error_message = _truncate(str(e))
            return [], _elapsed_ms(start)

        status.ok = True
        status.raw_count = len(hits)
        return list(hits), _elapsed_ms(start)

    @staticmethod
    def _apply_min_score(
        hits: list[RetrievalHit],
        min_score: float | None,
        status: SourceStatus,
    ) -> list[RetrievalHit]:
        """Drop weak semantic hits, then re-rank the survivors."""
        kept = hits if min_score is None else [h for h in hits if h.score >= min_score]
        status.post_filter_count = len(kept)
        if not kept:
            status.reason = "filtered_to_zero" if hits and min_score is not None else "no_results"
        return _rerank(kept)

    def _build_debug(
        self,
        resolution: ModeResolution,
        min_semantic_score: float | None,
        keyword_hits: list[RetrievalHit],
        semantic_hits: list[RetrievalHit],
        fused_count: int,
        returned_count: int,
        dropped_count: int,
        timings: SearchTimings,
        keyword_status: SourceStatus,
        semantic_status: SourceStatus,
    ) -> SearchDebug:
        semantic_ids = {h.id for h in semantic_hits}
        overlap = len({h.id for h in keyword_hits} & semantic_ids)
        return SearchDebug(
            k=self._fusion.k,
            requested_mode=resolution.requested,
            resolved_mode=resolution.mode,
            browse=resolution.browse,
            min_semantic_score=min_semantic_score,
            keyword_count=len(keyword_hits),
            semantic_count=len(semantic_hits),
            overlap_count=overlap,
            fused_count=fused_count,
            returned_count=returned_count,
            dropped_count=dropped_count,
            timings_ms=timings,
            keyword=keyword_status,
            semantic=semantic_status,
        )
