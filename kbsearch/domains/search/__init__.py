"""
Search Domain - Hybrid keyword + semantic search over notes and recipes.

This domain handles:
- Request normalization (filters, limits, scope)
- Mode resolution (auto, hybrid, semantic, keyword, browse)
- Reciprocal Rank Fusion with explain metadata
- Result assembly with snippets
- Power query parsing and embedding text for the indexes
"""

from .assembler import ResultAssembler
from .contracts import (
    CandidateFilter,
    DocumentStore,
    KeywordRetriever,
    SearchEngine,
    SemanticRetriever,
)
from .documents import NoteDocument, RecipeDetails
from .filters import build_search_spec, clamp_limit, normalize_filters
from .fusion import RankFusionEngine
from .hybrid_search import HybridSearchEngine
from .models import (
    Filters,
    FusedResult,
    ResolvedMode,
    RetrievalHit,
    Scope,
    SearchMode,
    SearchResponse,
    SearchResultItem,
    SearchSpec,
    SourceName,
)
from .modes import resolve_mode
from .query_parser import ParsedQuery, parse_power_query

__all__ = [
    "SearchEngine",
    "KeywordRetriever",
    "SemanticRetriever",
    "DocumentStore",
    "CandidateFilter",
    "SearchSpec",
    "SearchMode",
    "ResolvedMode",
    "Scope",
    "SourceName",
    "Filters",
    "RetrievalHit",
    "FusedResult",
    "SearchResultItem",
    "SearchResponse",
    "NoteDocument",
    "RecipeDetails",
    "ParsedQuery",
    "HybridSearchEngine",
    "RankFusionEngine",
    "ResultAssembler",
    "build_search_spec",
    "normalize_filters",
    "clamp_limit",
    "resolve_mode",
    "parse_power_query",
]
