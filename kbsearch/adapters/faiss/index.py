"""
FAISS Index - Vector similarity search over note embeddings.

Features:
- Async-compatible operations
- Index persistence
- Note id and embedding hash stored alongside each vector
- Cosine similarity via inner product on L2-normalized vectors
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import faiss
import numpy as np

logger = logging.getLogger(__name__)

__all__ = ["FAISSIndex"]

INDEX_FILE = "faiss_index.bin"
METADATA_FILE = "metadata.json"


class FAISSIndex:
    """
    FAISS vector index for semantic search.

    Example:
        >>> index = FAISSIndex(dimension=384)
        >>> await index.build(embeddings, ["n1", "n2"])
        >>> results = await index.search(query_embedding, k=10)
    """

    def __init__(
        self,
        dimension: int = 384,
        index_type: str = "Flat",
    ) -> None:
        """
        Initialize FAISS index.

        Args:
            dimension: Vector dimension (384 for MiniLM, 768 for MPNet)
            index_type: Index type ("Flat" or "HNSW")
        """
        self.dimension = dimension
        self.index_type = index_type

        self._index: faiss.Index | None = None
        self._note_ids: list[str] = []
        self._hashes: list[str | None] = []
        self.model_name: str | None = None

    def _create_index(self) -> faiss.Index:
        """Create FAISS index based on type."""
        if self.index_type == "HNSW":
            return faiss.IndexHNSWFlat(self.dimension, 32, faiss.METRIC_INNER_PRODUCT)
        return faiss.IndexFlatIP(self.dimension)

    def _prepare(self, vectors: np.ndarray) -> np.ndarray:
        if vectors.ndim == 1:
            vectors = vectors.reshape(1, -1)
        if vectors.shape[1] != self.dimension:
            raise ValueError(
                f"vector dimension {vectors.shape[1]} does not match index dimension {self.dimension}"
            )
        vectors = np.ascontiguousarray(vectors.astype("float32"))
        # Normalize for inner product (cosine similarity)
        faiss.normalize_L2(vectors)
        return vectors

    async def build(
        self,
        vectors: np.ndarray,
        note_ids: list[str],
        hashes: list[str | None] | None = None,
        model_name: str | None = None,
    ) -> None:
        """
        Replace the index contents.

        Args:
            vectors: numpy array of shape (n, dimension)
            note_ids: Note id per vector (same length as vectors)
            hashes: Embedding text hash per vector
            model_name: Embedding model that produced the vectors
        """
        if len(note_ids) != len(vectors):
            raise ValueError("note_ids and vectors must have the same length")

        index = self._create_index()
        if len(note_ids):
            await asyncio.to_thread(index.add, self._prepare(vectors))

        self._index = index
        self._note_ids = list(note_ids)
        self._hashes = list(hashes) if hashes is not None else [None] * len(note_ids)
        self.model_name = model_name

        logger.info(
            "FAISS index built: %d vectors, dimension=%d, type=%s",
            len(note_ids),
            self.dimension,
            self.index_type,
        )

    async def search(
        self,
        query_vector: np.ndarray,
        k: int = 10,
    ) -> list[tuple[str, float]]:
        """
        Search for similar vectors.

        Args:
            query_vector: Query vector of shape (dimension,) or (1, dimension)
            k: Number of results

        Returns:
            (note_id, cosine similarity) pairs, most similar first
        """
        if self._index is None or self._index.ntotal == 0:
            return []

        query = self._prepare(query_vector)
        scores, indices = await asyncio.to_thread(
            self._index.search, query, min(k, self._index.ntotal)
        )

        results = []
        for score, idx in zip(scores[0], indices[0]):
            if 0 <= idx < len(self._note_ids):
                results.append((self._note_ids[idx], float(score)))
        return results

    def hashes(self) -> dict[str, str | None]:
        """Embedding text hash per indexed note id."""
        return dict(zip(self._note_ids, self._hashes))

    async def save(self, path: str | Path) -> None:
        """
        Save index to disk.

        Args:
            path: Directory to save index
        """
        if self._index is None:
            raise ValueError("cannot save an index that was never built")

        path = Path(path)
        path.mkdir(parents=True, exist_ok=True)

        await asyncio.to_thread(faiss.write_index, self._index, str(path / INDEX_FILE))

        metadata = {
            "dimension": self.dimension,
            "index_type": self.index_type,
            "model_name": self.model_name,
            "note_ids": self._note_ids,
            "hashes": self._hashes,
        }
        await asyncio.to_thread(self._write_json, path / METADATA_FILE, metadata)

        logger.info("Index saved to %s (%d vectors)", path, self._index.ntotal)

    @staticmethod
    def _write_json(path: Path, data: dict[str, Any]) -> None:
        """Write JSON file (sync helper for to_thread)."""
        with open(path, "w") as f:
            json.dump(data, f)

    async def load(self, path: str | Path) -> bool:
        """
        Load index from disk.

        Args:
            path: Directory containing saved index

        Returns:
            False if no saved index exists at path
        """
        path = Path(path)
        index_path = path / INDEX_FILE
        metadata_path = path / METADATA_FILE
        if not index_path.exists() or not metadata_path.exists():
            logger.info("No FAISS index at %s", path)
            return False

        self._index = await asyncio.to_thread(faiss.read_index, str(index_path))

        data = await asyncio.to_thread(self._read_json, metadata_path)
        self.dimension = data["dimension"]
        self.index_type = data["index_type"]
        self.model_name = data.get("model_name")
        self._note_ids = data["note_ids"]
        self._hashes = data.get("hashes") or [None] * len(self._note_ids)

        logger.info("Index loaded from %s (%d vectors)", path, self._index.ntotal)
        return True

    @staticmethod
    def _read_json(path: Path) -> dict[str, Any]:
        """Read JSON file (sync helper for to_thread)."""
        with open(path) as f:
            result: dict[str, Any] = json.load(f)
            return result

    @property
    def size(self) -> int:
        """Get number of vectors in index."""
        return self._index.ntotal if self._index else 0
