"""
Semantic Retriever - Sentence-transformer embeddings over a FAISS index.

Candidates are over-fetched from the vector index, post-filtered through
the document store's facet predicates, then truncated to the requested
depth.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

import numpy as np
from sentence_transformers import SentenceTransformer

from kbsearch.config.errors import SemanticUnavailableError
from kbsearch.domains.search.contracts import CandidateFilter
from kbsearch.domains.search.documents import NoteDocument
from kbsearch.domains.search.embedding_text import build_embedding_text, hash_embedding_text
from kbsearch.domains.search.models import RetrievalHit, SearchSpec

from .index import FAISSIndex

logger = logging.getLogger(__name__)

__all__ = ["FaissSemanticRetriever", "cosine_to_unit"]

MIN_CANDIDATES = 100
CANDIDATE_FACTOR = 10
EMBED_BATCH_SIZE = 64


def cosine_to_unit(cosine: float) -> float:
    """Map cosine similarity [-1, 1] onto [0, 1]."""
    return min(1.0, max(0.0, (1.0 + cosine) / 2.0))


class FaissSemanticRetriever:
    """
    Semantic retriever implementing the SemanticRetriever contract.

    Example:
        >>> retriever = FaissSemanticRetriever(index, sqlite_repo, "all-MiniLM-L6-v2")
        >>> hits = await retriever.search_semantic(spec, limit=40)
    """

    def __init__(
        self,
        index: FAISSIndex,
        candidate_filter: CandidateFilter,
        embedding_model: str = "all-MiniLM-L6-v2",
        embedder: Any | None = None,
    ) -> None:
        """
        Initialize semantic retriever.

        Args:
            index: Vector index keyed by note id
            candidate_filter: Store applying scope/facet filters
            embedding_model: Sentence-transformers model name
            embedder: Preloaded encoder (loaded lazily when omitted)
        """
        self._index = index
        self._filter = candidate_filter
        self.embedding_model = embedding_model
        self._embedder = embedder
        self._load_task: asyncio.Future[Any] | None = None

    def is_available(self) -> bool:
        return self._index.size > 0

    async def load_model(self) -> Any:
        """
        Load the sentence-transformers model off the event loop.

        Concurrent callers share one load. A caller cancelled by its timeout
        leaves the load running for the next request; a failed load is
        retried on the next call.

        Raises:
            SemanticUnavailableError: Model could not be loaded
        """
        if self._embedder is not None:
            return self._embedder

        if self._load_task is None:
            self._load_task = asyncio.ensure_future(
                asyncio.to_thread(SentenceTransformer, self.embedding_model)
            )
        task = self._load_task
        try:
            embedder = await asyncio.shield(task)
        except Exception as e:
            if self._load_task is task:
                self._load_task = None
            raise SemanticUnavailableError(
                f"cannot load embedding model: {e}",
                {"model": self.embedding_model},
            ) from e

        if self._embedder is None:
            self._embedder = embedder
            logger.info("Loaded embedding model %s", self.embedding_model)
        return self._embedder

    async def embed(self, texts: Sequence[str]) -> np.ndarray:
        """Encode texts into a (n, dimension) float32 array."""
        embedder = await self.load_model()
        vectors = await asyncio.to_thread(
            embedder.encode,
            list(texts),
            batch_size=EMBED_BATCH_SIZE,
            convert_to_numpy=True,
        )
        return np.asarray(vectors, dtype="float32")

    async def search_semantic(self, spec: SearchSpec, limit: int) -> list[RetrievalHit]:
        """
        Vector search with facet post-filtering.

        Args:
            spec: Normalized search spec
            limit: Maximum hits

        Returns:
            Hits in similarity order, scores mapped to [0, 1]
        """
        if not self.is_available():
            raise SemanticUnavailableError("vector index is empty")

        vector = (await self.embed([spec.query]))[0]
        candidates = max(limit * CANDIDATE_FACTOR, MIN_CANDIDATES)
        raw = await self._index.search(vector, k=candidates)

        allowed = await self._filter.filter_ids([note_id for note_id, _ in raw], spec)

        hits: list[RetrievalHit] = []
        seen: set[str] = set()
        for note_id, cosine in raw:
            if note_id not in allowed or note_id in seen:
                continue
            seen.add(note_id)
            hits.append(RetrievalHit(id=note_id, rank=len(hits) + 1, score=cosine_to_unit(cosine)))
            if len(hits) >= limit:
                break

        logger.debug(
            "Semantic search: %d candidates -> %d after filters (limit=%d)",
            len(raw),
            len(hits),
            limit,
        )
        return hits

    async def index_notes(self, notes: Sequence[NoteDocument]) -> dict[str, str]:
        """
        Embed notes and rebuild the vector index.

        Notes with no embeddable text are skipped.

        Returns:
            Embedding text hash per indexed note id
        """
        ids: list[str] = []
        texts: list[str] = []
        for note in notes:
            text = build_embedding_text(note)
            if not text:
                continue
            ids.append(note.id)
            texts.append(text)

        hashes = [hash_embedding_text(t) for t in texts]
        if texts:
            vectors = await self.embed(texts)
        else:
            vectors = np.zeros((0, self._index.dimension), dtype="float32")

        await self._index.build(vectors, ids, hashes=hashes, model_name=self.embedding_model)
        logger.info("Indexed %d of %d notes", len(ids), len(notes))
        return dict(zip(ids, hashes))
