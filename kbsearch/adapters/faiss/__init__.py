"""
FAISS Adapter - Vector similarity search.
"""

from .index import FAISSIndex
from .semantic import FaissSemanticRetriever

__all__ = ["FAISSIndex", "FaissSemanticRetriever"]
