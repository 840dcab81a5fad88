"""
Rank Fusion - Reciprocal Rank Fusion (RRF) over keyword and semantic hits.

Each source contributes 1 / (k + rank) for every document it returned,
where rank is the 1-based position in that source's list. Contributions are
always summed in SOURCE_ORDER so the explain output replays the exact float.

Ordering:
    combined score desc -> number of sources desc -> keyword rank asc
    -> document id asc
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

from .models import (
    DEFAULT_RRF_K,
    ExplainMetadata,
    ExplainSources,
    FusedResult,
    FusionExplain,
    RetrievalHit,
    SourceContributions,
    SourceName,
    SourceRank,
)

logger = logging.getLogger(__name__)

__all__ = ["ExplainBuilder", "RankFusionEngine", "rrf_contribution", "SOURCE_ORDER"]

SOURCE_ORDER: tuple[SourceName, ...] = (SourceName.KEYWORD, SourceName.SEMANTIC)


def rrf_contribution(k: int, rank: int) -> float:
    """RRF contribution of a single rank."""
    return 1.0 / (k + rank)


def _rank_map(hits: Sequence[RetrievalHit]) -> dict[str, tuple[int, float]]:
    """Position-based ranks; a repeated id keeps its first rank."""
    ranks: dict[str, tuple[int, float]] = {}
    for hit in hits:
        if hit.id in ranks:
            continue
        ranks[hit.id] = (len(ranks) + 1, hit.score)
    return ranks


class ExplainBuilder:
    """
    Builds per-result explain metadata from the fusion inputs.

    Purely descriptive: uses the same k and contribution function as
    RankFusionEngine and never touches ordering.
    """

    def __init__(self, k: int = DEFAULT_RRF_K) -> None:
        self.k = k

    def build(
        self,
        ranks: dict[SourceName, int],
        scores: dict[SourceName, float],
    ) -> ExplainMetadata:
        contributions: dict[str, float] = {}
        sources: dict[str, SourceRank] = {}
        combined = 0.0

        for source in SOURCE_ORDER:
            rank = ranks.get(source)
            if rank is None:
                continue
            contribution = rrf_contribution(self.k, rank)
            combined += contribution
            contributions[source.value] = contribution
            sources[source.value] = SourceRank(rank=rank, score=scores.get(source))

        return ExplainMetadata(
            fusion=FusionExplain(
                k=self.k,
                contributions=SourceContributions(**contributions),
                combined_score=combined,
            ),
            sources=ExplainSources(**sources),
        )


class RankFusionEngine:
    """
    Merge up to two ranked hit lists into one deduplicated ranking.

    Example:
        >>> engine = RankFusionEngine(k=60)
        >>> fused = engine.fuse(keyword=keyword_hits, semantic=semantic_hits)
    """

    def __init__(self, k: int = DEFAULT_RRF_K) -> None:
        """
        Initialize fusion engine.

        Args:
            k: RRF constant (default 60)
        """
        if k < 0:
            raise ValueError("RRF k must be non-negative")
        self.k = k
        self._explainer = ExplainBuilder(k)

    def fuse(
        self,
        keyword: Sequence[RetrievalHit] = (),
        semantic: Sequence[RetrievalHit] = (),
        explain: bool = False,
    ) -> list[FusedResult]:
        """
        Fuse keyword and semantic hits with RRF.

        Args:
            keyword: Keyword hits in rank order
            semantic: Semantic hits in rank order
            explain: Attach ExplainMetadata to every result

        Returns:
            Fused results in final rank order
        """
        per_source = {
            SourceName.KEYWORD: _rank_map(keyword),
            SourceName.SEMANTIC: _rank_map(semantic),
        }

        # First-seen order over sources; final order comes from the sort key
        doc_ids: dict[str, None] = {}
        for source in SOURCE_ORDER:
            for doc_id in per_source[source]:
                doc_ids.setdefault(doc_id, None)

        results: list[FusedResult] = []
        for doc_id in doc_ids:
            ranks: dict[SourceName, int] = {}
            scores: dict[SourceName, float] = {}
            combined = 0.0
            for source in SOURCE_ORDER:
                entry = per_source[source].get(doc_id)
                if entry is None:
                    continue
                rank, score = entry
                ranks[source] = rank
                scores[source] = score
                combined += rrf_contribution(self.k, rank)

            results.append(
                FusedResult(
                    id=doc_id,
                    combined_score=combined,
                    sources=tuple(ranks),
                    ranks=ranks,
                    scores=scores,
                    explain=self._explainer.build(ranks, scores) if explain else None,
                )
            )

        results.sort(key=self._sort_key)

        logger.debug(
            "RRF fused %d keyword + %d semantic -> %d results (k=%d)",
            len(per_source[SourceName.KEYWORD]),
            len(per_source[SourceName.SEMANTIC]),
            len(results),
            self.k,
        )
        return results

    @staticmethod
    def _sort_key(result: FusedResult) -> tuple[float, int, float, str]:
        keyword_rank = result.ranks.get(SourceName.KEYWORD)
        return (
            -result.combined_score,
            -len(result.sources),
            keyword_rank if keyword_rank is not None else math.inf,
            result.id,
        )
